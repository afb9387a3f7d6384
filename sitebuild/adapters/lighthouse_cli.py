from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sitebuild.adapters.process_tools import IS_WINDOWS, resolve_command, tool_env

logger = logging.getLogger(__name__)

CATEGORIES = "performance,accessibility,best-practices,seo"

CHROME_FLAGS = (
    "--headless",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
    "--no-first-run",
    "--disable-extensions",
)


@dataclass(frozen=True)
class ToolRun:
    returncode: Optional[int]
    error: str = ""

    @property
    def failed(self) -> bool:
        return bool(self.error) or self.returncode != 0


def _profile_flag(profile_dir: Path) -> str:
    if IS_WINDOWS:
        return '--user-data-dir="' + str(profile_dir).replace("\\", "/") + '"'
    return f"--user-data-dir={profile_dir}"


@dataclass
class LighthouseRunner:
    """
    Adapter around the lighthouse CLI. The report file is the result;
    the exit status is only reported back.
    """
    command: tuple[str, ...] = ("npx", "lighthouse")
    timeout_seconds: int = 90

    def build_args(self, url: str, report_path: Path, profile_dir: Path) -> list[str]:
        chrome_flags = " ".join([*CHROME_FLAGS, _profile_flag(profile_dir)])
        return [
            url,
            "--output=json",
            f"--output-path={report_path}",
            f"--chrome-flags={chrome_flags}",
            f"--only-categories={CATEGORIES}",
        ]

    def run(self, url: str, report_path: Path, profile_dir: Path) -> ToolRun:
        cmd = [*self.command, *self.build_args(url, report_path, profile_dir)]
        logger.debug("Running: %r", cmd)
        try:
            proc = subprocess.run(
                resolve_command(cmd),
                timeout=self.timeout_seconds,
                env=tool_env(),
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ToolRun(returncode=None, error=f"Lighthouse timed out after {self.timeout_seconds}s")
        except (OSError, ValueError) as e:
            return ToolRun(returncode=None, error=f"Failed to execute Lighthouse: {e}")
        return ToolRun(returncode=proc.returncode)
