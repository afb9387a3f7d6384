from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sitebuild.domain.models import AuditPage


def run_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision, filesystem-safe: 2024-05-01T10-20-30-123Z."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class ReportRepository:
    """
    Repository pattern: one timestamped directory per audit run, one JSON report per page.
    """
    results_base: Path

    def create_run_dir(self, now: Optional[datetime] = None) -> Path:
        run_dir = self.results_base / run_timestamp(now)
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def report_path(self, run_dir: Path, page: AuditPage) -> Path:
        return run_dir / f"lighthouse-{page.slug}.json"

    def load(self, report_path: Path) -> dict[str, Any]:
        return json.loads(report_path.read_text(encoding="utf-8"))
