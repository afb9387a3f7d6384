from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from sitebuild.adapters.process_tools import resolve_command, tool_env
from sitebuild.domain.models import BundleConfig, Outcome

logger = logging.getLogger(__name__)

ENTRY_NAME = ".cache-chart-entry.mjs"

# Only the radar chart pieces the responsibilities page uses.
ENTRY_SOURCE = """
import { Chart, RadarController, RadialLinearScale, PointElement, LineElement, Filler } from 'chart.js';
Chart.register(RadarController, RadialLinearScale, PointElement, LineElement, Filler);
if (typeof window !== 'undefined') {
  window.Chart = Chart;
}
"""


@dataclass
class ChartBundler:
    """
    Builds a minimal Chart.js bundle with the external bundler CLI.
    Entirely best-effort: every failure comes back as Outcome.failure.
    """
    config: BundleConfig
    project_dir: Path
    output_dir: Path
    timeout_seconds: int = 120

    def build_command(self, entry: Path, outfile: Path, *, minify: bool = True) -> list[str]:
        cmd = [
            *self.config.command,
            str(entry),
            "--bundle",
            "--format=iife",
            "--platform=browser",
            f"--target={self.config.target}",
            f"--outfile={outfile}",
            '--define:process.env.NODE_ENV="production"',
            "--log-level=error",
        ]
        if minify:
            cmd.append("--minify")
        return cmd

    def bundle(self, *, minify: bool = True) -> Outcome[Path]:
        # The entry sits inside node_modules so the bundler resolves chart.js from there
        entry = self.project_dir / "node_modules" / ENTRY_NAME
        outfile = self.output_dir / self.config.output
        try:
            entry.parent.mkdir(parents=True, exist_ok=True)
            entry.write_text(ENTRY_SOURCE, encoding="utf-8")
            outfile.parent.mkdir(parents=True, exist_ok=True)

            proc = subprocess.run(
                resolve_command(self.build_command(entry, outfile, minify=minify)),
                capture_output=True,
                text=True,
                cwd=str(self.project_dir),
                timeout=self.timeout_seconds,
                env=tool_env(),
            )
        except subprocess.TimeoutExpired:
            return Outcome.failure("bundler timed out")
        except (OSError, ValueError) as e:
            return Outcome.failure(f"could not run bundler: {e}")
        finally:
            try:
                entry.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Could not remove bundle entry %s: %s", entry, e)

        if proc.returncode != 0:
            tail = "\n".join((proc.stderr or proc.stdout or "").splitlines()[-20:])
            return Outcome.failure(f"bundler exited with code {proc.returncode}: {tail}".strip())
        if not outfile.exists():
            return Outcome.failure("bundler produced no output")
        return Outcome.success(outfile)
