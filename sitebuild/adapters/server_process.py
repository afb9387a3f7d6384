from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Sequence

from sitebuild.adapters.process_tools import IS_WINDOWS, resolve_command, tool_env
from sitebuild.domain.errors import ServerStartError

logger = logging.getLogger(__name__)

GRACE_SECONDS = 5.0
KILL_WAIT_SECONDS = 5.0


@dataclass
class ServerHandle:
    process: subprocess.Popen
    port: int

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_running(self) -> bool:
        return self.process.poll() is None


def _pump(stream: IO[str], prefix: str, level: int) -> None:
    for line in iter(stream.readline, ""):
        logger.log(level, "%s %s", prefix, line.rstrip())
    stream.close()


class StaticServerLauncher:
    """
    Spawns the static file server for one directory on one port.
    A custom command may use {root}, {port} and {host} placeholders.
    """

    def __init__(self, command: Sequence[str] = (), host: str = "127.0.0.1"):
        self.command = tuple(command)
        self.host = host

    def command_for(self, root: Path, port: int) -> list[str]:
        if not self.command:
            return [
                sys.executable, "-m", "sitebuild.web.static_server", str(root),
                "--port", str(port), "--host", self.host, "--spa",
            ]
        values = {"root": str(root), "port": str(port), "host": self.host}
        return resolve_command([part.format(**values) for part in self.command])

    def launch(self, root: Path, port: int) -> ServerHandle:
        cmd = self.command_for(root, port)
        logger.debug("Server command: %r", cmd)
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                env=tool_env(),
                # own process group so the whole tree can be signalled
                start_new_session=not IS_WINDOWS,
            )
        except OSError as e:
            raise ServerStartError(f"Could not start server: {e}") from e

        threading.Thread(target=_pump, args=(proc.stdout, "[server]", logging.INFO), daemon=True).start()
        threading.Thread(target=_pump, args=(proc.stderr, "[server:err]", logging.WARNING), daemon=True).start()
        return ServerHandle(process=proc, port=port)


def terminate_gracefully(handle: ServerHandle, timeout: float = GRACE_SECONDS) -> bool:
    """SIGTERM to the server's process group, then wait. True once it has exited."""
    if not handle.is_running():
        return True
    try:
        if IS_WINDOWS:
            handle.process.terminate()
        else:
            os.killpg(handle.pid, signal.SIGTERM)
    except ProcessLookupError:
        return True
    try:
        handle.process.wait(timeout=timeout)
        return True
    except subprocess.TimeoutExpired:
        return False


def kill_tree(handle: ServerHandle, timeout: float = KILL_WAIT_SECONDS) -> None:
    """Forcefully kill the server and everything it spawned."""
    if not handle.is_running():
        return
    if IS_WINDOWS:
        subprocess.run(
            ["taskkill", "/pid", str(handle.pid), "/T", "/F"],
            capture_output=True,
            env=tool_env(),
            check=False,
        )
    else:
        try:
            os.killpg(handle.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    if handle.is_running():
        handle.process.kill()
    handle.process.wait(timeout=timeout)


def terminate_server(handle: ServerHandle) -> None:
    """
    Always called on the way out of an audit. Windows signalling is unreliable,
    so it goes straight to the tree kill there.
    """
    try:
        if IS_WINDOWS or not terminate_gracefully(handle):
            kill_tree(handle)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Could not stop server process %d cleanly: %s", handle.pid, e)
