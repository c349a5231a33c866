"""Parsing of the decompressed DB-IP CSV file into location records."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dbip_pipeline.addresses import AddressParseError, expected_length, pad_address, parse_address
from dbip_pipeline.errors import RecordParseError

logger = logging.getLogger(__name__)

# Column order in the provider file (no header row)
COLUMNS = (
    "start_address",
    "end_address",
    "continent",
    "country",
    "region",
    "city",
    "latitude",
    "longitude",
)


@dataclass(frozen=True)
class LocationRecord:
    """One address range with its location, ready to be loaded."""

    address_family: int
    start_bytes: bytes
    end_bytes: bytes
    start_address: str
    end_address: str
    continent: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    latitude: Decimal | None = None
    longitude: Decimal | None = None

    def __post_init__(self) -> None:
        length = expected_length(self.address_family)
        if len(self.start_bytes) != length or len(self.end_bytes) != length:
            raise ValueError(
                f"IPv{self.address_family} record needs {length}-byte addresses, got "
                f"{len(self.start_bytes)} and {len(self.end_bytes)}"
            )

    def as_row(self) -> tuple:
        """Values in staging table column order."""
        return (
            self.address_family,
            pad_address(self.start_bytes),
            pad_address(self.end_bytes),
            self.start_address,
            self.end_address,
            self.continent,
            self.country,
            self.region,
            self.city,
            self.latitude,
            self.longitude,
        )


def _optional_text(value: str) -> str | None:
    return value if value != "" else None


def _optional_decimal(value: str, column: str, line_number: int) -> Decimal | None:
    if value.strip() == "":
        return None
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise RecordParseError(f"Invalid {column}: {value!r}", line_number) from None
    if not number.is_finite():
        raise RecordParseError(f"Invalid {column}: {value!r}", line_number)
    return number


def _parse_row(row: list[str], line_number: int) -> LocationRecord:
    if len(row) != len(COLUMNS):
        raise RecordParseError(
            f"Expected {len(COLUMNS)} columns, got {len(row)}", line_number
        )

    start, end, continent, country, region, city, latitude, longitude = row

    try:
        start_family, start_bytes = parse_address(start)
        end_family, end_bytes = parse_address(end)
    except AddressParseError as e:
        raise RecordParseError(str(e), line_number) from e

    if start_family != end_family:
        raise RecordParseError(
            f"Start address {start!r} and end address {end!r} are different IP versions",
            line_number,
        )

    return LocationRecord(
        address_family=start_family,
        start_bytes=start_bytes,
        end_bytes=end_bytes,
        start_address=start,
        end_address=end,
        continent=_optional_text(continent),
        country=_optional_text(country),
        region=_optional_text(region),
        city=_optional_text(city),
        latitude=_optional_decimal(latitude, "latitude", line_number),
        longitude=_optional_decimal(longitude, "longitude", line_number),
    )


def iter_location_records(csv_path: Path) -> Iterator[LocationRecord]:
    """Yield location records from a headerless DB-IP CSV file.

    Records are produced lazily, one row at a time.

    Args:
        csv_path: Path to the decompressed CSV file.

    Yields:
        One LocationRecord per row.

    Raises:
        RecordParseError: On the first row that cannot be parsed.
    """
    logger.info("Parsing downloaded file: %s", csv_path)

    with open(csv_path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        for row in reader:
            if not row:
                continue
            yield _parse_row(row, reader.line_num)
