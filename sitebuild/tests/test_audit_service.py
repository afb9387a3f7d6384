from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from sitebuild.adapters.lighthouse_cli import ToolRun
from sitebuild.domain.errors import NoAvailablePortError, ServerStartError
from sitebuild.domain.models import AuditPage, AuditRunConfig, MetricAssertion
from sitebuild.repositories.report_repository import ReportRepository
from sitebuild.services.audit_service import AuditHarness

PAGES = (
    AuditPage(label="Homepage", path="index.html"),
    AuditPage(label="Speaker Bio", path="speaker_bio.html"),
)

GATES = tuple(
    MetricAssertion(metric=f"categories:{c}", severity="error", threshold=0.9)
    for c in ("performance", "accessibility", "best-practices", "seo")
)


# -----------------------------
# Test doubles
# -----------------------------
class FakeLauncher:
    def __init__(self):
        self.launched: list[tuple[Path, int]] = []

    def launch(self, root: Path, port: int):
        self.launched.append((root, port))
        return f"server:{port}"


class FakeRunner:
    """
    Writes a report per URL from a script:
    a score dict, "runtime" for a runtime error, "noreport", or an exception.
    """

    def __init__(self, script: dict, returncode: int = 0):
        self.script = script
        self.returncode = returncode
        self.urls: list[str] = []
        self.profiles: list[Path] = []

    def run(self, url: str, report_path: Path, profile_dir: Path) -> ToolRun:
        self.urls.append(url)
        self.profiles.append(profile_dir)
        page = url.rsplit("/", 1)[-1]
        action = self.script.get(page, 0.95)
        if isinstance(action, Exception):
            raise action
        if action == "noreport":
            return ToolRun(returncode=self.returncode)
        if action == "runtime":
            report = {"runtimeError": {"code": "NO_FCP", "message": "no paint"}}
        else:
            scores = action if isinstance(action, dict) else {}
            report = {
                "categories": {
                    c: {"score": scores.get(c, action if isinstance(action, float) else 0.95)}
                    for c in ("performance", "accessibility", "best-practices", "seo")
                }
            }
        report_path.write_text(json.dumps(report), encoding="utf-8")
        return ToolRun(returncode=self.returncode)


class Recorder:
    def __init__(self):
        self.calls: list = []

    def __call__(self, *args):
        self.calls.append(args)


# -----------------------------
# Helpers
# -----------------------------
def make_harness(tmp_path: Path, runner: FakeRunner, **overrides) -> AuditHarness:
    dist = tmp_path / "dist"
    dist.mkdir(exist_ok=True)
    config = AuditRunConfig(
        pages=PAGES,
        assertions=GATES,
        results_dir=tmp_path / "lighthouse-results",
        **overrides.pop("config", {}),
    )

    def new_profile_dir() -> Path:
        p = tmp_path / "profiles" / f"lh-tmp-{len(runner.profiles)}"
        p.mkdir(parents=True)
        return p

    fields = dict(
        config=config,
        output_dir=dist,
        launcher=FakeLauncher(),
        runner=runner,
        reports=ReportRepository(results_base=config.results_dir),
        find_port=lambda start: start + 2,
        probe=Recorder(),
        terminate=Recorder(),
        sleep=lambda s: None,
        new_profile_dir=new_profile_dir,
    )
    fields.update(overrides)
    return AuditHarness(**fields)


# -----------------------------
# Tests
# -----------------------------
def test_missing_output_dir_fails_without_starting_anything(tmp_path: Path):
    harness = make_harness(tmp_path, FakeRunner({}))
    harness.output_dir = tmp_path / "nope"

    summary = harness.run()

    assert summary.exit_code == 1
    assert harness.launcher.launched == []
    assert harness.runner.urls == []


def test_passing_pages_exit_zero_and_stop_server(tmp_path: Path):
    runner = FakeRunner({"index.html": 0.92, "speaker_bio.html": 0.9})
    harness = make_harness(tmp_path, runner)

    summary = harness.run()

    assert summary.exit_code == 0
    assert [r.label for r in summary.results] == ["Homepage", "Speaker Bio"]
    assert harness.launcher.launched == [(tmp_path / "dist", 3002)]
    assert runner.urls == ["http://127.0.0.1:3002/index.html", "http://127.0.0.1:3002/speaker_bio.html"]
    assert harness.probe.calls == [("http://127.0.0.1:3002/", 5.0)]
    assert harness.terminate.calls == [("server:3002",)]


def test_low_score_fails_the_gate(tmp_path: Path):
    runner = FakeRunner({"index.html": {"performance": 0.85}})
    harness = make_harness(tmp_path, runner)

    summary = harness.run()

    assert summary.exit_code == 1
    assert [(v.label, v.assertion.metric) for v in summary.violations] == [("Homepage", "categories:performance")]


def test_reports_land_in_one_timestamped_run_dir(tmp_path: Path):
    harness = make_harness(tmp_path, FakeRunner({}))

    summary = harness.run()

    run_dirs = list((tmp_path / "lighthouse-results").iterdir())
    assert len(run_dirs) == 1
    assert sorted(p.name for p in run_dirs[0].iterdir()) == [
        "lighthouse-homepage.json",
        "lighthouse-speaker-bio.json",
    ]
    assert summary.results[0].report_path == run_dirs[0] / "lighthouse-homepage.json"


def test_runtime_error_page_is_skipped(tmp_path: Path):
    harness = make_harness(tmp_path, FakeRunner({"index.html": "runtime"}))

    summary = harness.run()

    assert [r.label for r in summary.results] == ["Speaker Bio"]
    assert summary.exit_code == 0


def test_report_wins_over_nonzero_exit(tmp_path: Path):
    harness = make_harness(tmp_path, FakeRunner({}, returncode=1))

    summary = harness.run()

    assert len(summary.results) == 2
    assert summary.exit_code == 0


def test_tool_failure_without_report_moves_on(tmp_path: Path, caplog):
    harness = make_harness(tmp_path, FakeRunner({"index.html": "noreport"}, returncode=1))

    summary = harness.run()

    assert [r.label for r in summary.results] == ["Speaker Bio"]
    assert "Error testing Homepage" in caplog.text
    assert harness.terminate.calls


def test_runner_exception_moves_on(tmp_path: Path):
    runner = FakeRunner({"index.html": RuntimeError("chrome crashed")})
    harness = make_harness(tmp_path, runner)

    summary = harness.run()

    assert [r.label for r in summary.results] == ["Speaker Bio"]
    assert len(runner.urls) == 2
    assert harness.terminate.calls == [("server:3002",)]


def test_profile_dirs_are_removed(tmp_path: Path):
    runner = FakeRunner({"index.html": RuntimeError("chrome crashed")})
    harness = make_harness(tmp_path, runner)

    harness.run()

    assert len(runner.profiles) == 2
    assert not any(p.exists() for p in runner.profiles)


def test_probe_failure_falls_back_to_manual_instructions(tmp_path: Path, caplog):
    caplog.set_level(logging.INFO)

    def refuse(url, timeout):
        raise ServerStartError("Server connection failed: refused")

    runner = FakeRunner({})
    harness = make_harness(tmp_path, runner, probe=refuse)

    summary = harness.run()

    assert summary.exit_code == 0
    assert summary.results == ()
    assert runner.urls == []
    assert harness.terminate.calls == [("server:3002",)]
    assert "Manual Lighthouse Testing" in caplog.text
    assert (tmp_path / "dist" / "index.html").resolve().as_uri() in caplog.text


def test_no_free_port_never_launches(tmp_path: Path):
    def exhausted(start):
        raise NoAvailablePortError("No available ports found in 3000-3099")

    harness = make_harness(tmp_path, FakeRunner({}), find_port=exhausted)

    summary = harness.run()

    assert summary.exit_code == 0
    assert harness.launcher.launched == []
    assert harness.terminate.calls == []


def test_unexpected_error_still_stops_server(tmp_path: Path):
    def broken_probe(url, timeout):
        raise RuntimeError("boom")

    harness = make_harness(tmp_path, FakeRunner({}), probe=broken_probe)

    with pytest.raises(RuntimeError):
        harness.run()
    assert harness.terminate.calls == [("server:3002",)]


def test_external_base_url_skips_server(tmp_path: Path):
    runner = FakeRunner({})
    harness = make_harness(tmp_path, runner, config={"base_url": "https://preview.example.com/site"})

    summary = harness.run()

    assert summary.exit_code == 0
    assert harness.launcher.launched == []
    assert harness.terminate.calls == []
    assert runner.urls[0] == "https://preview.example.com/site/index.html"
