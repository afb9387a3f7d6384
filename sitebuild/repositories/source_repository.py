from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Pattern


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives: ``img/*.{png,svg}`` -> two patterns."""
    m = re.search(r"\{([^{}]*)\}", pattern)
    if not m:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end():]
    out: list[str] = []
    for alt in m.group(1).split(","):
        out.extend(expand_braces(head + alt + tail))
    return out


def pattern_to_regex(pattern: str) -> Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


@dataclass(frozen=True)
class PathMatcher:
    """
    Glob matcher over POSIX-style relative paths.
    A pattern without "/" also matches the basename at any depth.
    """
    patterns: tuple[str, ...]
    _compiled: tuple[tuple[Pattern[str], bool], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        compiled = []
        for raw in self.patterns:
            for p in expand_braces(raw):
                compiled.append((pattern_to_regex(p), "/" not in p))
        object.__setattr__(self, "_compiled", tuple(compiled))

    def matches(self, rel_path: str) -> bool:
        rel_path = rel_path.replace("\\", "/")
        base = rel_path.rsplit("/", 1)[-1]
        for rx, basename_too in self._compiled:
            if rx.match(rel_path) or (basename_too and rx.match(base)):
                return True
        return False


@dataclass
class SourceRepository:
    """
    Repository pattern: resolves glob patterns against the source tree.
    Every lookup goes through the exclusion matcher, so an excluded file is never handed out.
    """
    source_dir: Path
    exclude: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self._excluded = PathMatcher(tuple(self.exclude))

    def is_excluded(self, rel_path: str) -> bool:
        return self._excluded.matches(rel_path)

    def resolve(self, patterns: Iterable[str]) -> list[str]:
        seen: set[str] = set()
        out: list[str] = []
        for raw in patterns:
            for pattern in expand_braces(raw):
                matches = sorted(
                    p.relative_to(self.source_dir).as_posix()
                    for p in self.source_dir.glob(pattern)
                    if p.is_file()
                )
                for rel in matches:
                    if rel in seen or self.is_excluded(rel):
                        continue
                    seen.add(rel)
                    out.append(rel)
        return out

    def path_of(self, rel_path: str) -> Path:
        return self.source_dir / rel_path

    def read_text(self, rel_path: str, errors: str = "strict") -> str:
        if self.is_excluded(rel_path):
            raise PermissionError(f"Refusing to read excluded file: {rel_path}")
        return self.path_of(rel_path).read_text(encoding="utf-8", errors=errors)

    def total_size(self, rel_paths: Iterable[str]) -> int:
        return sum(self.path_of(p).stat().st_size for p in rel_paths)
