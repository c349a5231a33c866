"""Promotion of a loaded staging table to the live table."""

from __future__ import annotations

import logging

import duckdb

from dbip_pipeline.errors import PromotionError
from dbip_pipeline.schema import LIVE_INDEX, LIVE_TABLE
from dbip_pipeline.versions import DatasetVersion, record_version

logger = logging.getLogger(__name__)


def promote(
    con: duckdb.DuckDBPyConnection, staging_table: str, version: DatasetVersion
) -> None:
    """Replace the live table with a staging table and record its version.

    All steps run in one transaction, so readers see either the previous
    table and version or the new ones:

    1. drop the live table if it exists
    2. rename the staging table to the live name
    3. create the unique lookup index
    4. record the dataset version

    Args:
        con: Database connection.
        staging_table: Name of the fully loaded staging table.
        version: Version of the data in the staging table.

    Raises:
        PromotionError: If any step fails. The transaction is rolled back.
    """
    logger.info(
        "Completing update process:\n"
        "- Drop live table '%s'\n"
        "- Rename temp table '%s' to live table '%s'\n"
        "- Set updated data version: %s",
        LIVE_TABLE,
        staging_table,
        LIVE_TABLE,
        version,
    )

    con.begin()
    try:
        con.execute(f"DROP TABLE IF EXISTS {LIVE_TABLE}")
        con.execute(f"ALTER TABLE {staging_table} RENAME TO {LIVE_TABLE}")
        con.execute(
            f"CREATE UNIQUE INDEX {LIVE_INDEX} ON {LIVE_TABLE} "
            "(address_family, start_address_bytes, end_address_bytes)"
        )
        record_version(con, version)
        con.commit()
    except duckdb.Error as e:
        con.rollback()
        raise PromotionError(f"Failed to promote {staging_table} to {LIVE_TABLE}: {e}") from e
    except BaseException:
        con.rollback()
        raise

    logger.info("Live table now holds data version %s", version)
