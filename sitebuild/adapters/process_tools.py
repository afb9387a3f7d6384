from __future__ import annotations

import os
import shutil
import sys
from typing import Mapping, Optional, Sequence

IS_WINDOWS = sys.platform == "win32"

_WINDOWS_SYSTEM_DIRS = ("C:\\Windows\\System32", "C:\\Windows")


def resolve_command(command: Sequence[str]) -> list[str]:
    """
    Resolve the executable through PATH so "npx" finds npx.cmd on Windows
    without going through a shell.
    """
    if not command:
        raise ValueError("Empty command")
    exe = shutil.which(command[0]) or command[0]
    return [exe, *command[1:]]


def tool_env(base: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """
    Copy of the environment; on Windows the system directories are put on PATH
    so taskkill and friends are reachable from child processes.
    """
    env = dict(os.environ if base is None else base)
    if not IS_WINDOWS:
        return env
    key = "Path" if "Path" in env and "PATH" not in env else "PATH"
    parts = [p for p in (env.get(key) or "").split(";") if p]
    lowered = {p.lower() for p in parts}
    for d in _WINDOWS_SYSTEM_DIRS:
        if d.lower() not in lowered:
            parts.insert(0, d)
    env[key] = ";".join(parts)
    return env
