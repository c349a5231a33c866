"""Dataset versions and the table recording which one is loaded."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

import duckdb

logger = logging.getLogger(__name__)

VERSION_TABLE = "data_version"


@dataclass(frozen=True, order=True)
class DatasetVersion:
    """A monthly dataset release."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be in 1..12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"Year must be in 1..9999, got {self.year}")

    @classmethod
    def from_date(cls, value: dt.date) -> DatasetVersion:
        return cls(value.year, value.month)

    def as_date(self) -> dt.date:
        return dt.date(self.year, self.month, 1)

    @property
    def table_suffix(self) -> str:
        return f"{self.year:04d}{self.month:02d}"

    @property
    def label(self) -> str:
        """``YYYY-MM`` form, as used in provider filenames."""
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.as_date().strftime("%B %Y")


def ensure_version_table(con: duckdb.DuckDBPyConnection) -> None:
    """Create the version table if it does not exist yet."""
    con.execute(f"CREATE TABLE IF NOT EXISTS {VERSION_TABLE} (data_version DATE NOT NULL)")


def get_current_version(con: duckdb.DuckDBPyConnection) -> DatasetVersion | None:
    """Return the loaded dataset version, or None if nothing was ever loaded."""
    row = con.execute(f"SELECT data_version FROM {VERSION_TABLE} LIMIT 1").fetchone()
    if row is None:
        return None
    return DatasetVersion.from_date(row[0])


def record_version(con: duckdb.DuckDBPyConnection, version: DatasetVersion) -> None:
    """Store the loaded dataset version, inserting or updating the single row.

    Runs on the caller's connection without managing a transaction, so it
    commits together with whatever the caller is doing.
    """
    existing = con.execute(f"SELECT COUNT(*) FROM {VERSION_TABLE}").fetchone()[0]
    if existing == 0:
        con.execute(f"INSERT INTO {VERSION_TABLE} (data_version) VALUES (?)", [version.as_date()])
    else:
        con.execute(f"UPDATE {VERSION_TABLE} SET data_version = ?", [version.as_date()])
    logger.debug("Recorded data version %s", version.label)
