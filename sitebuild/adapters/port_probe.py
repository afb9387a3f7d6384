from __future__ import annotations

import socket
from typing import Callable

from sitebuild.domain.errors import NoAvailablePortError

PROBE_RANGE = 100
LOCALHOST = "127.0.0.1"


def can_bind(port: int, host: str = LOCALHOST) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            s.listen(1)
        except OSError:
            return False
    return True


def find_available_port(
    start_port: int = 3000,
    *,
    attempts: int = PROBE_RANGE,
    is_free: Callable[[int], bool] = can_bind,
) -> int:
    """
    First port in [start_port, start_port + attempts) that a throwaway socket can bind.
    Another process may still grab it before the server binds.
    """
    stop = min(start_port + attempts, 65536)
    for port in range(start_port, stop):
        if is_free(port):
            return port
    raise NoAvailablePortError(f"No available ports found in {start_port}-{stop - 1}")
