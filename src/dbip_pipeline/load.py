"""Loading location records into the staging table in batches."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from time import perf_counter

import duckdb

from dbip_pipeline.records import LocationRecord
from dbip_pipeline.schema import create_table_sql, insert_sql, staging_table_name
from dbip_pipeline.versions import DatasetVersion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    """Totals for a completed load."""

    rows: int
    batches: int


def create_staging_table(con: duckdb.DuckDBPyConnection, version: DatasetVersion) -> str:
    """Create an empty staging table for a dataset version.

    A table with the same name left behind by an interrupted run is dropped
    and recreated.

    Returns:
        Name of the staging table.
    """
    table_name = staging_table_name(version)

    con.execute(f"DROP TABLE IF EXISTS {table_name}")
    con.execute(create_table_sql(table_name))

    logger.info("Temporary table was created: %s", table_name)
    return table_name


class BatchLoader:
    """Writes records to a table in fixed-size bulk inserts.

    Only one batch of records is held in memory at a time. Each insert is
    committed on its own; the staging table is not visible to consumers until
    it is promoted, so a partially loaded table is harmless.
    """

    def __init__(self, con: duckdb.DuckDBPyConnection, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.con = con
        self.batch_size = batch_size

    def load(self, records: Iterable[LocationRecord], table_name: str) -> LoadResult:
        """Consume records and insert them into ``table_name``.

        Args:
            records: Records to load; consumed once.
            table_name: Destination table.

        Returns:
            Number of rows and insert batches written.
        """
        sql = insert_sql(table_name)
        buffer: list[tuple] = []
        total_rows = 0
        batches = 0
        t0 = perf_counter()

        for record in records:
            buffer.append(record.as_row())
            total_rows += 1

            if len(buffer) >= self.batch_size:
                logger.info(
                    "Uploading batch of %d records to database (total so far: %d).",
                    len(buffer),
                    total_rows,
                )
                self._insert_batch(sql, buffer)
                batches += 1
                buffer = []

        if buffer:
            logger.info(
                "Uploading last %d records to database (total records: %d).",
                len(buffer),
                total_rows,
            )
            self._insert_batch(sql, buffer)
            batches += 1

        logger.info(
            "Loaded %d records in %d batch(es) in %.2f seconds",
            total_rows,
            batches,
            perf_counter() - t0,
        )
        return LoadResult(rows=total_rows, batches=batches)

    def _insert_batch(self, sql: str, rows: list[tuple]) -> None:
        self.con.begin()
        try:
            self.con.executemany(sql, rows)
        except BaseException:
            self.con.rollback()
            raise
        self.con.commit()
