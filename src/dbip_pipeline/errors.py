"""Error types for the DB-IP pipeline and helpers for logging them."""

from __future__ import annotations

import duckdb
import requests


class DbIpPipelineError(Exception):
    """Base class for pipeline errors."""


class SettingsError(DbIpPipelineError):
    """Invalid or missing configuration."""


class SourceLocationError(DbIpPipelineError):
    """No download link could be found on the provider page."""


class DownloadError(DbIpPipelineError):
    """The downloaded file could not be decompressed."""


class RecordParseError(DbIpPipelineError):
    """A row in the dataset file could not be turned into a record."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"Line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class PromotionError(DbIpPipelineError):
    """The staging table could not be promoted to the live table."""


def _describe_single(exc: BaseException) -> str:
    """Describe one exception, without its causes."""
    lines = [f"{type(exc).__module__}.{type(exc).__qualname__}: {exc}"]

    if isinstance(exc, requests.HTTPError):
        response = exc.response
        if response is None:
            lines.append("No response attached.")
        else:
            lines.append(f"Request URL: {response.url}")
            lines.append(f"Status: {response.status_code} {response.reason}")
            try:
                body = response.text
            except Exception as read_exc:  # noqa: BLE001
                body = f"*** Exception occurred while reading response content: {read_exc}"
            if body:
                lines.append("Response content:")
                lines.append(body[:2000])
            else:
                lines.append("There was no content in the body of the response.")

    elif isinstance(exc, duckdb.Error):
        lines.append(f"Database error type: {type(exc).__name__}")

    return "\n".join(lines)


def describe_exception(exc: BaseException) -> str:
    """Describe an exception and every exception in its cause chain.

    Follows ``__cause__`` first and ``__context__`` otherwise, so both
    ``raise ... from ...`` and implicit chaining are covered. HTTP errors
    include the response body; database errors include their error class.
    """
    parts = [_describe_single(exc)]
    seen = {id(exc)}

    inner = exc.__cause__ or exc.__context__
    while inner is not None and id(inner) not in seen:
        seen.add(id(inner))
        parts.append("Caused by:")
        parts.append(_describe_single(inner))
        inner = inner.__cause__ or inner.__context__

    return "\n\n".join(parts)
