"""Command line entry point for the DB-IP pipeline."""

from __future__ import annotations

import argparse
import logging
import logging.handlers
from pathlib import Path

from dbip_pipeline.errors import SettingsError
from dbip_pipeline.pipeline import RunMode, execute
from dbip_pipeline.settings import load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "dbip_pipeline.log"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> None:
    """Log to the console and, if ``log_dir`` is given, to a daily rotating file."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(
                log_dir / LOG_FILENAME, when="midnight", backupCount=31, encoding="utf-8"
            )
        )

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbip-pipeline",
        description="Load the latest DB-IP city lite dataset into DuckDB.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config.yaml (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Let errors propagate with a traceback instead of exiting with status 1",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(verbose=args.verbose)
    try:
        settings = load_settings(args.config)
    except SettingsError as e:
        logger.error("%s", e)
        return 1

    if settings.paths.log_dir is not None:
        configure_logging(verbose=args.verbose, log_dir=settings.paths.log_dir)
    logger.info("Loaded config from %s", args.config)

    mode = RunMode.DEBUG if args.debug else RunMode.NORMAL
    return execute(settings, mode=mode)
