"""Shared fixtures for the DB-IP pipeline tests."""

from __future__ import annotations

import tempfile
from collections.abc import Generator
from pathlib import Path

import duckdb
import pytest
from fakes import DOWNLOAD_PREFIX, PAGE_URL

from dbip_pipeline.settings import (
    DatabaseSettings,
    LoadSettings,
    PathSettings,
    ProviderSettings,
    Settings,
)


@pytest.fixture
def memory_con() -> Generator[duckdb.DuckDBPyConnection, None, None]:
    con = duckdb.connect(":memory:")
    yield con
    con.close()


@pytest.fixture
def temp_settings() -> Generator[Settings, None, None]:
    """Create settings pointing to a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir_path = Path(tmpdir)

        paths = PathSettings(
            work_dir=tmpdir_path,
            downloads_dir=tmpdir_path / "download",
        )

        settings = Settings(
            paths=paths,
            database=DatabaseSettings(path=str(tmpdir_path / "db" / "dbip.duckdb")),
            load=LoadSettings(batch_size=1000),
            provider=ProviderSettings(page_url=PAGE_URL, download_prefix=DOWNLOAD_PREFIX),
            config_path=tmpdir_path / "config.yaml",
        )

        yield settings
