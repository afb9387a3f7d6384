from __future__ import annotations

import logging
from configparser import Error as ConfigParserError
from typing import Optional, Sequence

from sitebuild.app_factory import create_builder, create_harness, create_watch_service
from sitebuild.cli.args import build_parser
from sitebuild.config.ini_config import AppSettings, IniConfig
from sitebuild.domain.errors import SiteBuildError
from sitebuild.log_setup import setup_logging

logger = logging.getLogger(__name__)


def run_build(settings: AppSettings, *, watch: bool = False, dev: bool = False) -> int:
    if dev:
        settings = settings.for_dev()
    builder = create_builder(settings)
    try:
        builder.build()
    except (SiteBuildError, OSError, ValueError) as e:
        logger.error("Build failed: %s", e)
        return 1

    if watch:
        create_watch_service(settings, builder).run_forever()
    return 0


def run_clean(settings: AppSettings) -> int:
    try:
        create_builder(settings).clean()
    except OSError as e:
        logger.error("Clean failed: %s", e)
        return 1
    logger.info("Output directory removed")
    return 0


def run_audit(settings: AppSettings) -> int:
    return create_harness(settings).run().exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = IniConfig.from_env_or_default(args.config).load_settings()
    except (FileNotFoundError, ValueError, ConfigParserError) as e:
        logger.error("Configuration error: %s", e)
        return 1

    if args.command == "build":
        return run_build(settings, watch=args.watch, dev=args.dev)
    if args.command == "clean":
        return run_clean(settings)
    return run_audit(settings)
