"""Table names and DDL shared by the load and promotion steps."""

from __future__ import annotations

import duckdb

from dbip_pipeline.versions import DatasetVersion

LIVE_TABLE = "ip_addresses"
LIVE_INDEX = "ix_ip_addresses"

INSERT_COLUMNS = (
    "address_family",
    "start_address_bytes",
    "end_address_bytes",
    "start_address",
    "end_address",
    "continent",
    "country",
    "region",
    "city",
    "latitude",
    "longitude",
)


def staging_table_name(version: DatasetVersion) -> str:
    """Staging table name for a dataset version, e.g. ``ip_addresses_202403``."""
    return f"{LIVE_TABLE}_{version.table_suffix}"


def create_table_sql(table_name: str) -> str:
    return f"""
        CREATE TABLE {table_name} (
            address_family UTINYINT NOT NULL,
            start_address_bytes BLOB NOT NULL,
            end_address_bytes BLOB NOT NULL,
            start_address VARCHAR(39) NOT NULL,
            end_address VARCHAR(39) NOT NULL,
            continent VARCHAR(5),
            country VARCHAR(5),
            region VARCHAR(50),
            city VARCHAR(100),
            latitude DECIMAL(10, 5),
            longitude DECIMAL(10, 5)
        )
    """


def insert_sql(table_name: str) -> str:
    placeholders = ", ".join("?" for _ in INSERT_COLUMNS)
    return f"INSERT INTO {table_name} ({', '.join(INSERT_COLUMNS)}) VALUES ({placeholders})"


def table_exists(con: duckdb.DuckDBPyConnection, table_name: str) -> bool:
    row = con.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
        [table_name],
    ).fetchone()
    return row[0] > 0
