## static_server.py
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from flask import Flask, abort, send_from_directory
from werkzeug.security import safe_join

logger = logging.getLogger(__name__)


def create_static_app(root: Path, *, spa: bool = False) -> Flask:
    """
    Serves a built site. Directories resolve to their index.html; with spa=True
    unknown paths fall back to the root index.html.
    """
    root = Path(root).resolve()
    app = Flask(__name__, static_folder=None)

    def _send(rel: str):
        return send_from_directory(root, rel)

    @app.get("/", defaults={"path": ""})
    @app.get("/<path:path>")
    def serve(path: str):
        joined = safe_join(str(root), path) if path else str(root)
        if joined is None:
            abort(404)

        target = Path(joined)
        if target.is_dir():
            target = target / "index.html"
        if target.is_file():
            return _send(target.relative_to(root).as_posix())

        if spa and (root / "index.html").is_file():
            return _send("index.html")
        abort(404)

    return app


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m sitebuild.web.static_server")
    parser.add_argument("root", help="directory to serve")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--spa", action="store_true", help="fall back to index.html for unknown paths")
    args = parser.parse_args(argv)

    root = Path(args.root)
    if not root.is_dir():
        parser.error(f"not a directory: {root}")

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logger.info("Serving %s on http://%s:%d", root.resolve(), args.host, args.port)

    app = create_static_app(root, spa=args.spa)
    app.run(host=args.host, port=args.port, debug=False, use_reloader=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
