from __future__ import annotations

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urljoin

import requests

from sitebuild.adapters.lighthouse_cli import LighthouseRunner
from sitebuild.adapters.port_probe import LOCALHOST, find_available_port
from sitebuild.adapters.server_process import ServerHandle, StaticServerLauncher, terminate_server
from sitebuild.domain.errors import AuditToolError, ServerStartError, SiteBuildError
from sitebuild.domain.models import AuditPage, AuditResult, AuditRunConfig, AuditSummary
from sitebuild.repositories.report_repository import ReportRepository
from sitebuild.services.report_parser import parse_report
from sitebuild.services.thresholds import evaluate, exit_code_for

logger = logging.getLogger(__name__)

PROFILE_RETRY_DELAY_SECONDS = 0.5


def http_probe(url: str, timeout: float) -> None:
    try:
        requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise ServerStartError(f"Server connection failed: {e}") from e


def make_profile_dir() -> Path:
    return Path(tempfile.mkdtemp(prefix="lh-tmp-"))


@dataclass
class AuditHarness:
    """
    Service layer: serves the built site, audits each configured page in turn
    and enforces the configured thresholds. The server never outlives run().
    """
    config: AuditRunConfig
    output_dir: Path
    launcher: StaticServerLauncher
    runner: LighthouseRunner
    reports: ReportRepository
    find_port: Callable[[int], int] = find_available_port
    probe: Callable[[str, float], None] = http_probe
    terminate: Callable[[ServerHandle], None] = terminate_server
    sleep: Callable[[float], None] = time.sleep
    new_profile_dir: Callable[[], Path] = make_profile_dir

    def run(self) -> AuditSummary:
        logger.info("Running Lighthouse tests...")

        if not self.output_dir.is_dir():
            logger.error('Output directory %s not found. Run "sitebuild build" first.', self.output_dir)
            return AuditSummary(results=(), violations=(), exit_code=1)

        results: list[AuditResult] = []
        server: Optional[ServerHandle] = None
        try:
            run_dir = self.reports.create_run_dir()
            base_url = self.config.base_url
            if not base_url:
                port = self.find_port(self.config.start_port)
                logger.info("Starting server on port %d...", port)
                server = self.launcher.launch(self.output_dir, port)
                base_url = f"http://{LOCALHOST}:{port}/"
                self.sleep(self.config.settle_seconds)
            base_url = base_url if base_url.endswith("/") else base_url + "/"

            self.probe(base_url, self.config.probe_timeout_seconds)
            logger.info("Server is running")

            for page in self.config.pages:
                result = self._audit_page_safely(page, base_url, run_dir)
                if result is not None:
                    results.append(result)
        except (SiteBuildError, OSError) as e:
            logger.error("Setup failed: %s", e)
            self.print_manual_instructions()
        finally:
            if server is not None:
                self.terminate(server)
                logger.info("Server stopped")

        return self.summarize(results)

    def _audit_page_safely(self, page: AuditPage, base_url: str, run_dir: Path) -> Optional[AuditResult]:
        logger.info("")
        logger.info("Testing %s...", page.label)
        try:
            return self.audit_page(page, base_url, run_dir)
        except Exception as e:
            # one broken page never stops the remaining audits
            logger.error("Error testing %s: %s", page.label, e)
            return None

    def audit_page(self, page: AuditPage, base_url: str, run_dir: Path) -> Optional[AuditResult]:
        url = urljoin(base_url, page.path)
        logger.info("Testing URL: %s", url)
        report_path = self.reports.report_path(run_dir, page)
        profile_dir = self.new_profile_dir()
        try:
            tool = self.runner.run(url, report_path, profile_dir)

            # A report wins over the exit status
            if report_path.exists():
                result = parse_report(page.label, self.reports.load(report_path), report_path)
                if result is not None:
                    logger.info("Saved Lighthouse JSON: %s", report_path)
                return result
            if tool.failed:
                raise AuditToolError(tool.error or f"Lighthouse exited with code {tool.returncode}")
            logger.warning("Lighthouse finished without writing %s", report_path)
            return None
        finally:
            self.remove_profile_dir(profile_dir)

    def remove_profile_dir(self, profile_dir: Path) -> None:
        attempts = max(self.config.cleanup_attempts, 1)
        for i in range(attempts):
            try:
                shutil.rmtree(profile_dir)
                return
            except FileNotFoundError:
                return
            except OSError:
                if i == attempts - 1:
                    logger.warning("  Could not remove temp profile dir (in use): %s", profile_dir)
                    return
                self.sleep(PROFILE_RETRY_DELAY_SECONDS)

    def print_manual_instructions(self) -> None:
        logger.info("")
        logger.info("Manual Lighthouse Testing")
        logger.info("Please test manually:")
        logger.info("1. Open the built files in your browser:")
        for page in self.config.pages:
            logger.info("   - %s: %s", page.label, (self.output_dir / page.path).resolve().as_uri())
        logger.info("2. Run Lighthouse audits in DevTools (F12)")
        logger.info("3. Check scores (target 90%+ for all categories)")

    def summarize(self, results: list[AuditResult]) -> AuditSummary:
        if not results:
            logger.info("")
            logger.info("No automated results were gathered.")
            logger.info("Your website is ready for manual testing.")
            return AuditSummary(results=(), violations=(), exit_code=0)

        logger.info("")
        logger.info("Lighthouse Test Results:")
        logger.info("=" * 80)
        for r in results:
            logger.info("%s:", r.label)
            logger.info("  Performance: %.1f%%", r.performance)
            logger.info("  Accessibility: %.1f%%", r.accessibility)
            logger.info("  Best Practices: %.1f%%", r.best_practices)
            logger.info("  SEO: %.1f%%", r.seo)

        violations = evaluate(results, self.config.assertions)
        if violations:
            logger.warning("Issues found:")
            for r in results:
                mine = [v for v in violations if v.label == r.label]
                if not mine:
                    continue
                logger.warning("  %s:", r.label)
                for v in mine:
                    logger.warning("    - %s", v.describe())

        exit_code = exit_code_for(violations)
        if exit_code:
            blocking = sum(1 for v in violations if v.assertion.blocking)
            logger.error("%d blocking threshold violation(s)", blocking)
        else:
            logger.info("All tests passed!")
        return AuditSummary(results=tuple(results), violations=tuple(violations), exit_code=exit_code)
