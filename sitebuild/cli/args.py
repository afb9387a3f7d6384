from __future__ import annotations

import argparse

from sitebuild import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitebuild",
        description="Build the static site into its output directory and audit it with Lighthouse.",
    )
    parser.add_argument("--config", help="path to sitebuild.ini (default: $SITEBUILD_INI or ./sitebuild.ini)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="run the asset pipeline")
    build.add_argument("--watch", action="store_true", help="rebuild when source files change")
    build.add_argument("--dev", action="store_true", help="development settings: no purge, keep comments")

    sub.add_parser("clean", help="remove the output directory")
    sub.add_parser("audit", help="serve the output directory and run Lighthouse against each page")

    return parser
