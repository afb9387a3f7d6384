from __future__ import annotations

from typing import Iterable, Sequence

from sitebuild.domain.models import AuditResult, MetricAssertion, Violation


def check(result: AuditResult, assertion: MetricAssertion) -> Violation | None:
    if assertion.is_category:
        category = assertion.metric.split(":", 1)[1]
        actual = result.scores.get(category)
        # scores are stored 0-100, thresholds are 0-1
        if actual is not None and round(actual, 6) < round(assertion.threshold * 100, 6):
            return Violation(label=result.label, assertion=assertion, actual=actual)
        return None

    actual = result.metrics.get(assertion.metric)
    if actual is not None and actual > assertion.threshold:
        return Violation(label=result.label, assertion=assertion, actual=actual)
    return None


def evaluate(results: Iterable[AuditResult], assertions: Sequence[MetricAssertion]) -> list[Violation]:
    violations: list[Violation] = []
    for result in results:
        for assertion in assertions:
            v = check(result, assertion)
            if v is not None:
                violations.append(v)
    return violations


def exit_code_for(violations: Iterable[Violation]) -> int:
    return 1 if any(v.assertion.blocking for v in violations) else 0
