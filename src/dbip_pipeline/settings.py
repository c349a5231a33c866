"""Settings module for the DB-IP pipeline.

Loads configuration from a YAML file (with optional ``.env`` overrides) and
provides factories for the DuckDB connection and the retrying HTTP session.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from itertools import takewhile
from pathlib import Path
from typing import Any

import duckdb
import requests
import yaml
from dotenv import load_dotenv
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from dbip_pipeline.errors import SettingsError

logger = logging.getLogger(__name__)

# Smallest batch accepted; smaller batches spend most of their time in per-call overhead
MIN_BATCH_SIZE = 1000
DEFAULT_BATCH_SIZE = 100_000

DEFAULT_PAGE_URL = "https://db-ip.com/db/download/ip-to-city-lite"
DEFAULT_DOWNLOAD_PREFIX = "https://download.db-ip.com/free/"

DATABASE_PATH_ENV = "DBIP_DATABASE_PATH"

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

__all__ = [
    "MIN_BATCH_SIZE",
    "DatabaseSettings",
    "ExponentialRetry",
    "HttpSettings",
    "LoadSettings",
    "PathSettings",
    "ProviderSettings",
    "Settings",
    "SettingsError",
    "create_duckdb_connection",
    "create_http_session",
    "load_settings",
]


@dataclass
class PathSettings:
    """Filesystem locations used by the pipeline."""

    work_dir: Path
    downloads_dir: Path
    log_dir: Path | None = None


@dataclass
class DatabaseSettings:
    """DuckDB database location (a file path, or ``:memory:``)."""

    path: str


@dataclass
class LoadSettings:
    """Staging table load settings."""

    batch_size: int = DEFAULT_BATCH_SIZE


@dataclass
class ProviderSettings:
    """Where the provider publishes the dataset."""

    page_url: str = DEFAULT_PAGE_URL
    download_prefix: str = DEFAULT_DOWNLOAD_PREFIX


@dataclass
class HttpSettings:
    """HTTP client behaviour."""

    timeout: float = 60.0
    retries: int = 3
    backoff_base: float = 3.0


@dataclass
class Settings:
    """Application settings."""

    paths: PathSettings
    database: DatabaseSettings
    load: LoadSettings = field(default_factory=LoadSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    config_path: Path | None = None

    def validate(self) -> None:
        """Check settings values.

        Raises:
            SettingsError: If any value is out of range or missing.
        """
        if not isinstance(self.load.batch_size, int) or self.load.batch_size < MIN_BATCH_SIZE:
            raise SettingsError(
                f"load.batch_size must be an integer greater than or equal to {MIN_BATCH_SIZE}."
            )

        if not self.database.path or not str(self.database.path).strip():
            raise SettingsError("database.path must be a non-empty string.")

        if not self.provider.page_url:
            raise SettingsError("provider.page_url must be a non-empty string.")

        if not self.provider.download_prefix:
            raise SettingsError("provider.download_prefix must be a non-empty string.")

        if self.http.timeout <= 0:
            raise SettingsError("http.timeout must be greater than 0.")

        if self.http.retries < 0:
            raise SettingsError("http.retries must be greater than or equal to 0.")


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsError(f"Config section '{name}' must be a mapping.")
    return value


def _resolve(base: Path, value: str | Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def load_settings(config_path: Path) -> Settings:
    """Load and validate settings from a YAML config file.

    A ``.env`` file in the working directory is loaded first; the
    ``DBIP_DATABASE_PATH`` environment variable overrides ``database.path``.
    Relative paths are resolved against ``paths.work_dir``, which itself is
    resolved against the directory containing the config file.

    Args:
        config_path: Path to the config file.

    Returns:
        Validated settings.

    Raises:
        SettingsError: If the file is missing, malformed or has invalid values.
    """
    load_dotenv()

    config_path = Path(config_path)
    if not config_path.exists():
        raise SettingsError(f"Config file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise SettingsError(f"Could not parse config file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise SettingsError(f"Config file {config_path} must contain a mapping.")

    paths_raw = _section(raw, "paths")
    database_raw = _section(raw, "database")
    load_raw = _section(raw, "load")
    provider_raw = _section(raw, "provider")
    http_raw = _section(raw, "http")

    base_dir = config_path.resolve().parent
    work_dir = _resolve(base_dir, paths_raw.get("work_dir", "."))
    log_dir = paths_raw.get("log_dir")

    paths = PathSettings(
        work_dir=work_dir,
        downloads_dir=_resolve(work_dir, paths_raw.get("downloads_dir", "download")),
        log_dir=_resolve(work_dir, log_dir) if log_dir else None,
    )

    db_path = os.environ.get(DATABASE_PATH_ENV) or database_raw.get("path") or ""
    if db_path and db_path != ":memory:":
        db_path = str(_resolve(work_dir, db_path))

    try:
        settings = Settings(
            paths=paths,
            database=DatabaseSettings(path=db_path),
            load=LoadSettings(batch_size=load_raw.get("batch_size", DEFAULT_BATCH_SIZE)),
            provider=ProviderSettings(
                page_url=provider_raw.get("page_url", DEFAULT_PAGE_URL),
                download_prefix=provider_raw.get("download_prefix", DEFAULT_DOWNLOAD_PREFIX),
            ),
            http=HttpSettings(
                timeout=float(http_raw.get("timeout", 60.0)),
                retries=int(http_raw.get("retries", 3)),
                backoff_base=float(http_raw.get("backoff_base", 3.0)),
            ),
            config_path=config_path,
        )
    except (TypeError, ValueError) as e:
        raise SettingsError(f"Invalid value in config file {config_path}: {e}") from e

    settings.validate()
    return settings


def create_duckdb_connection(settings: Settings) -> duckdb.DuckDBPyConnection:
    """Open a connection to the configured DuckDB database."""
    db_path = settings.database.path
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Connecting to DuckDB database: %s", db_path)
    return duckdb.connect(db_path)


class ExponentialRetry(Retry):
    """Retry policy sleeping ``backoff_base ** n`` seconds before the n-th retry."""

    def __init__(self, *args: Any, backoff_base: float = 3.0, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.backoff_base = backoff_base

    def new(self, **kw: Any) -> ExponentialRetry:
        retry = super().new(**kw)
        retry.backoff_base = self.backoff_base
        return retry

    def get_backoff_time(self) -> float:
        consecutive_errors = len(
            list(takewhile(lambda x: x.redirect_location is None, reversed(self.history)))
        )
        if consecutive_errors == 0:
            return 0
        return min(self.backoff_max, self.backoff_base**consecutive_errors)


def create_http_session(settings: Settings) -> requests.Session:
    """Build an HTTP session with the retry policy for the provider."""
    session = requests.Session()
    session.headers.update({"User-Agent": "dbip-pipeline/1.0"})

    retry = ExponentialRetry(
        total=settings.http.retries,
        backoff_base=settings.http.backoff_base,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=frozenset(["GET"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session
