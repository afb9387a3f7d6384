from __future__ import annotations

import sys
from pathlib import Path

import pytest

from sitebuild.adapters.server_process import StaticServerLauncher, kill_tree, terminate_server
from sitebuild.domain.errors import ServerStartError

SLEEPER = [sys.executable, "-c", "import time; time.sleep(60)"]


def test_default_command_runs_bundled_server(tmp_path: Path):
    cmd = StaticServerLauncher().command_for(tmp_path, 3005)

    assert cmd[:3] == [sys.executable, "-m", "sitebuild.web.static_server"]
    assert str(tmp_path) in cmd
    assert cmd[cmd.index("--port") + 1] == "3005"
    assert "--spa" in cmd


def test_custom_command_placeholders(tmp_path: Path):
    launcher = StaticServerLauncher(command=(sys.executable, "-m", "http.server", "{port}", "-d", "{root}", "-b", "{host}"))

    cmd = launcher.command_for(tmp_path, 3001)

    assert cmd[1:] == ["-m", "http.server", "3001", "-d", str(tmp_path), "-b", "127.0.0.1"]


def test_terminate_stops_the_server(tmp_path: Path):
    handle = StaticServerLauncher(command=SLEEPER).launch(tmp_path, 3000)
    assert handle.is_running()

    terminate_server(handle)

    assert not handle.is_running()


def test_kill_tree_stops_the_server(tmp_path: Path):
    handle = StaticServerLauncher(command=SLEEPER).launch(tmp_path, 3000)

    kill_tree(handle)

    assert not handle.is_running()


def test_terminate_is_a_noop_once_exited(tmp_path: Path):
    handle = StaticServerLauncher(command=[sys.executable, "-c", "pass"]).launch(tmp_path, 3000)
    handle.process.wait(timeout=10)

    terminate_server(handle)

    assert not handle.is_running()


def test_missing_server_executable_raises(tmp_path: Path):
    launcher = StaticServerLauncher(command=("sitebuild-no-such-server-xyz", "{port}"))

    with pytest.raises(ServerStartError):
        launcher.launch(tmp_path, 3000)
