from __future__ import annotations

import pytest

from sitebuild.domain.errors import AuditToolError
from sitebuild.services.report_parser import parse_report


def make_report(perf=0.9, a11y=0.9, bp=0.9, seo=0.9, **extra):
    report = {
        "categories": {
            "performance": {"score": perf},
            "accessibility": {"score": a11y},
            "best-practices": {"score": bp},
            "seo": {"score": seo},
        },
        "audits": {
            "first-contentful-paint": {"numericValue": 812.5},
            "cumulative-layout-shift": {"numericValue": 0.02},
            "total-blocking-time": {"score": 1},
        },
    }
    report.update(extra)
    return report


def test_scores_scaled_to_percent():
    result = parse_report("Homepage", make_report(perf=0.85, seo=1))

    assert result.label == "Homepage"
    assert result.performance == pytest.approx(85.0)
    assert result.accessibility == pytest.approx(90.0)
    assert result.seo == pytest.approx(100.0)


def test_timing_metrics_collected_when_numeric():
    result = parse_report("Homepage", make_report())

    assert result.metrics == {"first-contentful-paint": 812.5, "cumulative-layout-shift": 0.02}


def test_null_score_counts_as_zero():
    assert parse_report("Homepage", make_report(bp=None)).best_practices == 0.0


def test_runtime_error_yields_no_result(caplog):
    report = make_report(runtimeError={"code": "NO_FCP", "message": "The page did not paint any content."})

    assert parse_report("Speaker Bio", report) is None
    assert "did not paint" in caplog.text


def test_missing_category_is_an_error():
    report = make_report()
    del report["categories"]["seo"]

    with pytest.raises(AuditToolError):
        parse_report("Homepage", report)
