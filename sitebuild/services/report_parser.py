from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from sitebuild.domain.errors import AuditToolError
from sitebuild.domain.models import CATEGORY_IDS, AuditResult

logger = logging.getLogger(__name__)

TIMING_METRICS = (
    "first-contentful-paint",
    "largest-contentful-paint",
    "cumulative-layout-shift",
    "total-blocking-time",
)


def parse_report(label: str, report: dict[str, Any], report_path: Optional[Path] = None) -> Optional[AuditResult]:
    """
    Scale the four category scores to 0-100. A report carrying a runtime
    error yields None rather than a row of zeros.
    """
    runtime_error = report.get("runtimeError")
    if runtime_error:
        message = runtime_error.get("message") if isinstance(runtime_error, dict) else str(runtime_error)
        logger.error("Test failed for %s: %s", label, message)
        return None

    categories = report.get("categories") or {}
    scores: dict[str, float] = {}
    for cid in CATEGORY_IDS:
        if cid not in categories:
            raise AuditToolError(f"Report for {label} has no '{cid}' category")
        # null when lighthouse could not score the category
        scores[cid] = float(categories[cid].get("score") or 0) * 100

    audits = report.get("audits") or {}
    metrics: dict[str, float] = {}
    for name in TIMING_METRICS:
        value = (audits.get(name) or {}).get("numericValue")
        if isinstance(value, (int, float)):
            metrics[name] = float(value)

    return AuditResult(label=label, scores=scores, metrics=metrics, report_path=report_path)
