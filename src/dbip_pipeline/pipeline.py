"""Pipeline orchestrator module.

Runs the refresh: locate the latest dataset, skip if already loaded,
otherwise download, load into a staging table and promote it.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from time import perf_counter

import duckdb
import requests

from dbip_pipeline.download import download_dataset
from dbip_pipeline.errors import describe_exception
from dbip_pipeline.load import BatchLoader, create_staging_table
from dbip_pipeline.promote import promote
from dbip_pipeline.records import iter_location_records
from dbip_pipeline.settings import Settings, create_duckdb_connection, create_http_session
from dbip_pipeline.source import locate_latest
from dbip_pipeline.versions import DatasetVersion, ensure_version_table, get_current_version

logger = logging.getLogger(__name__)


class RunMode(enum.Enum):
    """How fatal errors are handled by :func:`execute`."""

    # Log the error and return a non-zero exit code
    NORMAL = "normal"
    # Let the exception propagate with its traceback
    DEBUG = "debug"


@dataclass(frozen=True)
class RunResult:
    """Outcome of a pipeline run."""

    updated: bool
    version: DatasetVersion
    rows: int = 0


def should_update(remote: DatasetVersion, current: DatasetVersion | None) -> bool:
    """Whether the published version differs from the loaded one.

    Any difference triggers a reload, including a loaded version newer than
    the published one.
    """
    return current is None or current != remote


def run(
    settings: Settings,
    session: requests.Session | None = None,
    con: duckdb.DuckDBPyConnection | None = None,
    today: dt.date | None = None,
) -> RunResult:
    """Run the refresh pipeline once.

    Args:
        settings: Application settings.
        session: HTTP session; built from settings when omitted.
        con: Database connection; opened from settings when omitted.
        today: Date used for the current-month link lookup.

    Returns:
        What the run did.

    Raises:
        Any error from a stage. Nothing is retried here beyond the HTTP
        retry policy of the session.
    """
    owns_session = session is None
    owns_con = con is None
    if session is None:
        session = create_http_session(settings)

    try:
        t0 = perf_counter()
        logger.info("Checking for latest file url.")
        link = locate_latest(session, settings, today=today)
        logger.info("Data version on website: %s", link.version)

        if con is None:
            con = create_duckdb_connection(settings)
        ensure_version_table(con)
        current = get_current_version(con)
        logger.info("Data version in database: %s", current or "none")

        if not should_update(link.version, current):
            logger.info("Database already contains the latest version. No update required.")
            return RunResult(updated=False, version=link.version)

        logger.info("Data version on website differs from local database.")
        logger.info("Source lookup completed in %.2f seconds", perf_counter() - t0)

        t0 = perf_counter()
        csv_path = download_dataset(session, link, settings)
        logger.info("Download completed in %.2f seconds", perf_counter() - t0)

        logger.info("Creating temporary table to insert new data into.")
        staging_table = create_staging_table(con, link.version)

        t0 = perf_counter()
        loader = BatchLoader(con, settings.load.batch_size)
        result = loader.load(iter_location_records(csv_path), staging_table)
        logger.info("Load completed in %.2f seconds", perf_counter() - t0)

        t0 = perf_counter()
        promote(con, staging_table, link.version)
        logger.info("Promotion completed in %.2f seconds", perf_counter() - t0)

        logger.info("Deleting downloaded csv file from disk: %s", csv_path)
        csv_path.unlink(missing_ok=True)

        return RunResult(updated=True, version=link.version, rows=result.rows)
    finally:
        if owns_con and con is not None:
            con.close()
        if owns_session:
            session.close()


def execute(settings: Settings, mode: RunMode = RunMode.NORMAL, **kwargs) -> int:
    """Run the pipeline and turn the outcome into a process exit code.

    In ``RunMode.NORMAL`` any error is logged with its full cause chain and
    1 is returned. In ``RunMode.DEBUG`` the error propagates.

    Returns:
        0 on success or when already up to date, 1 on failure.
    """
    start = perf_counter()

    logger.info("=" * 60)
    logger.info("DB-IP Pipeline - Application starting.")
    logger.info("=" * 60)
    logger.info("Config: %s", settings.config_path)
    logger.info("Database: %s", settings.database.path)
    logger.info("Run mode: %s", mode.value)

    try:
        run(settings, **kwargs)
        logger.info("Application finished successfully.")
        return 0
    except Exception as e:
        if mode is RunMode.DEBUG:
            raise
        logger.error(describe_exception(e))
        logger.error("Application exited abnormally.")
        return 1
    finally:
        logger.info("Application total run time: %.2f seconds", perf_counter() - start)
