from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[%(levelname)s] %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Console logging with a severity prefix on every line. No-op if already configured."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    # werkzeug request lines are noise next to the build log
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
