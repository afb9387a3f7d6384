from __future__ import annotations

import errno
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

REMOVE_ATTEMPTS = 3
REMOVE_DELAY_SECONDS = 0.1
COPY_ATTEMPTS = 3
COPY_DELAY_SECONDS = 0.15


def is_transient(exc: OSError) -> bool:
    return isinstance(exc, PermissionError) or exc.errno in (errno.EBUSY, errno.EPERM, errno.EACCES)


def retry_transient(
    action: Callable[[], T],
    *,
    what: str,
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run action, retrying on busy/permission errors; the last failure propagates."""
    remaining = attempts
    while True:
        try:
            return action()
        except OSError as e:
            remaining -= 1
            if not is_transient(e) or remaining <= 0:
                raise
            logger.info("   Retrying %s... (%d attempts left)", what, remaining)
            sleep(delay)


@dataclass
class OutputRepository:
    """
    Repository pattern: owns every write into the output tree.
    """
    output_dir: Path
    sleep: Callable[[float], None] = time.sleep

    def remove(self) -> None:
        def _rm() -> None:
            if self.output_dir.exists():
                shutil.rmtree(self.output_dir)

        retry_transient(
            _rm,
            what="clean operation",
            attempts=REMOVE_ATTEMPTS,
            delay=REMOVE_DELAY_SECONDS,
            sleep=self.sleep,
        )

    def reset(self) -> None:
        self.remove()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_of(self, rel_path: str) -> Path:
        return self.output_dir / rel_path

    def write_text(self, rel_path: str, content: str) -> Path:
        target = self.path_of(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8", newline="")
        return target

    def copy_from(self, source: Path, rel_path: str) -> Path:
        target = self.path_of(rel_path)

        def _copy() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)

        retry_transient(
            _copy,
            what=f"copy of {rel_path}",
            attempts=COPY_ATTEMPTS,
            delay=COPY_DELAY_SECONDS,
            sleep=self.sleep,
        )
        return target

    def list_files(self) -> list[str]:
        if not self.output_dir.exists():
            return []
        return sorted(
            p.relative_to(self.output_dir).as_posix()
            for p in self.output_dir.rglob("*")
            if p.is_file() and "node_modules" not in p.parts
        )

    def total_size(self, rel_paths: list[str]) -> int:
        return sum(self.path_of(p).stat().st_size for p in rel_paths)
