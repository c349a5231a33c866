"""Unit tests for promoting the staging table."""

from __future__ import annotations

import duckdb
import pytest
from fakes import make_record

from dbip_pipeline.errors import PromotionError
from dbip_pipeline.load import BatchLoader, create_staging_table
from dbip_pipeline.promote import promote
from dbip_pipeline.schema import LIVE_TABLE, table_exists
from dbip_pipeline.versions import DatasetVersion, ensure_version_table, get_current_version

OLD = DatasetVersion(2024, 2)
NEW = DatasetVersion(2024, 3)


def load_version(con: duckdb.DuckDBPyConnection, version: DatasetVersion, records) -> str:
    name = create_staging_table(con, version)
    BatchLoader(con, 1000).load(records, name)
    return name


def live_count(con: duckdb.DuckDBPyConnection) -> int:
    return con.execute(f"SELECT COUNT(*) FROM {LIVE_TABLE}").fetchone()[0]


@pytest.fixture
def con(memory_con: duckdb.DuckDBPyConnection) -> duckdb.DuckDBPyConnection:
    ensure_version_table(memory_con)
    return memory_con


class TestPromote:
    """Tests for promote."""

    def test_first_promotion(self, con: duckdb.DuckDBPyConnection) -> None:
        staging = load_version(con, NEW, [make_record(i) for i in range(3)])

        promote(con, staging, NEW)

        assert live_count(con) == 3
        assert not table_exists(con, staging)
        assert get_current_version(con) == NEW

    def test_replaces_live_table(self, con: duckdb.DuckDBPyConnection) -> None:
        promote(con, load_version(con, OLD, [make_record(i) for i in range(5)]), OLD)

        promote(con, load_version(con, NEW, [make_record(i) for i in range(2)]), NEW)

        assert live_count(con) == 2
        assert get_current_version(con) == NEW
        assert con.execute("SELECT COUNT(*) FROM data_version").fetchone()[0] == 1

    def test_creates_unique_index(self, con: duckdb.DuckDBPyConnection) -> None:
        promote(con, load_version(con, NEW, [make_record(0)]), NEW)

        indexes = con.execute(
            "SELECT index_name, is_unique FROM duckdb_indexes() WHERE table_name = ?",
            [LIVE_TABLE],
        ).fetchall()
        assert indexes == [("ix_ip_addresses", True)]

        with pytest.raises(duckdb.ConstraintException):
            con.execute(
                f"INSERT INTO {LIVE_TABLE} SELECT * FROM {LIVE_TABLE} LIMIT 1"
            )

    def test_failure_leaves_previous_state(self, con: duckdb.DuckDBPyConnection) -> None:
        """A failed index build rolls back the drop and rename too."""
        promote(con, load_version(con, OLD, [make_record(i) for i in range(5)]), OLD)
        # Duplicate ranges make the unique index fail part way through promotion
        staging = load_version(con, NEW, [make_record(0), make_record(0)])

        with pytest.raises(PromotionError) as exc_info:
            promote(con, staging, NEW)

        assert isinstance(exc_info.value.__cause__, duckdb.Error)
        assert live_count(con) == 5
        assert get_current_version(con) == OLD
        assert table_exists(con, staging)
        assert con.execute(f"SELECT COUNT(*) FROM {staging}").fetchone()[0] == 2

    def test_missing_staging_table(self, con: duckdb.DuckDBPyConnection) -> None:
        promote(con, load_version(con, OLD, [make_record(0)]), OLD)

        with pytest.raises(PromotionError):
            promote(con, "ip_addresses_209901", NEW)

        assert live_count(con) == 1
        assert get_current_version(con) == OLD
