from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sitebuild.domain.models import WatchConfig
from sitebuild.repositories.source_repository import PathMatcher

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], "threading.Timer"]

_CHANGE_EVENTS = {"created", "modified", "deleted", "moved"}


class WatchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    BUILDING = "building"


class RebuildScheduler:
    """
    Debounced, serialized rebuilds.

    Every change restarts the debounce timer. When it fires while a build is
    running, the changes stay pending and a fresh timer is armed as soon as
    that build finishes, so at most one build runs and nothing is dropped.
    """

    def __init__(
        self,
        build: Callable[[], object],
        delay: float = 0.6,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self._build = build
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._timer = None
        self._generation = 0
        self._building = False
        self.builds_started = 0

    @property
    def state(self) -> WatchState:
        with self._lock:
            if self._building:
                return WatchState.BUILDING
            if self._timer is not None:
                return WatchState.DEBOUNCING
            return WatchState.IDLE

    @property
    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    def notify(self, path: str) -> None:
        with self._lock:
            self._pending.add(path)
            if self._building:
                logger.info("Queued: %s", path)
            self._arm_locked()

    def _arm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        timer = self._timer_factory(self.delay, partial(self._on_timer, self._generation))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            if self._building:
                # picked up again when the running build finishes
                return
            changes = len(self._pending)
            self._pending.clear()
            self._building = True
            self.builds_started += 1

        logger.info("Processing %d file change(s)...", changes)
        try:
            self._build()
            logger.info("   Watching for more changes...")
        except Exception as e:
            logger.error("Build failed: %s", e)
            logger.info("   Continuing to watch for changes...")
        finally:
            with self._lock:
                self._building = False
                if self._pending and self._timer is None:
                    self._arm_locked()


class SourceChangeHandler(FileSystemEventHandler):
    """Turns watchdog events under the source root into scheduler notifications."""

    def __init__(self, root: Path, watched: PathMatcher, ignored: PathMatcher, on_change: Callable[[str], None]):
        super().__init__()
        self._root = root.resolve()
        self._watched = watched
        self._ignored = ignored
        self._on_change = on_change

    def _relative(self, raw_path) -> Optional[str]:
        try:
            return Path(os.fsdecode(raw_path)).resolve().relative_to(self._root).as_posix()
        except ValueError:
            return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        paths = [event.src_path]
        if event.event_type == "moved":
            paths.append(event.dest_path)
        for raw in paths:
            rel = self._relative(raw)
            if rel is None or self._ignored.matches(rel):
                continue
            if self._watched.matches(rel):
                self._on_change(rel)


@dataclass
class WatchService:
    config: WatchConfig
    source_dir: Path
    build: Callable[[], object]
    extra_ignore: tuple[str, ...] = ()

    def make_scheduler(self) -> RebuildScheduler:
        return RebuildScheduler(self.build, delay=self.config.debounce_seconds)

    def make_handler(self, scheduler: RebuildScheduler) -> SourceChangeHandler:
        return SourceChangeHandler(
            root=self.source_dir,
            watched=PathMatcher(self.config.patterns),
            ignored=PathMatcher(self.config.ignore + self.extra_ignore),
            on_change=scheduler.notify,
        )

    def run_forever(self) -> None:
        logger.info("Starting watch mode...")
        logger.info("   Watching for changes to %s", ", ".join(self.config.patterns))
        logger.info("   Press Ctrl+C to stop watching.")

        scheduler = self.make_scheduler()
        observer = Observer()
        observer.schedule(self.make_handler(scheduler), str(self.source_dir), recursive=True)
        observer.start()
        try:
            while observer.is_alive():
                observer.join(1)
        except KeyboardInterrupt:
            logger.info("Stopping watch mode...")
        finally:
            observer.stop()
            observer.join()
