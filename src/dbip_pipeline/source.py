"""Locating the latest published DB-IP dataset.

The provider publishes a monthly file and links to it from a download page.
The link is found by checking for the current month's URL first and falling
back to a pattern scan of the page.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field

import requests

from dbip_pipeline.errors import SourceLocationError
from dbip_pipeline.settings import DEFAULT_DOWNLOAD_PREFIX, Settings
from dbip_pipeline.versions import DatasetVersion

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "dbip-city-lite-"
FILENAME_SUFFIX = ".csv.gz"


@dataclass(frozen=True)
class DownloadLink:
    """A dataset file published by the provider."""

    url: str
    filename: str
    version: DatasetVersion


def _default_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(
        re.escape(prefix)
        + re.escape(FILENAME_PREFIX)
        + r"(?P<year>20[0-9]{2})-(?P<month>0[1-9]|1[0-2])"
        + re.escape(FILENAME_SUFFIX)
    )


@dataclass(frozen=True)
class LinkFinder:
    """Finds the dataset link in the provider's download page.

    ``fallback_pattern`` must define ``year`` and ``month`` named groups. When
    not given, a pattern for the provider's usual URL layout is built from
    ``download_prefix``.
    """

    download_prefix: str = DEFAULT_DOWNLOAD_PREFIX
    fallback_pattern: re.Pattern[str] | None = field(default=None, compare=False)

    @property
    def pattern(self) -> re.Pattern[str]:
        return self.fallback_pattern or _default_pattern(self.download_prefix)

    def expected_link(self, version: DatasetVersion) -> DownloadLink:
        """The link the provider uses for a given month."""
        filename = f"{FILENAME_PREFIX}{version.label}{FILENAME_SUFFIX}"
        return DownloadLink(url=self.download_prefix + filename, filename=filename, version=version)

    def fast_path(self, html: str, today: dt.date) -> DownloadLink | None:
        """Return the current month's link if the page contains it."""
        link = self.expected_link(DatasetVersion.from_date(today))
        if f'href="{link.url}"' in html:
            return link
        return None

    def fallback(self, html: str) -> DownloadLink | None:
        """Return the first link on the page matching the fallback pattern."""
        match = self.pattern.search(html)
        if not match:
            return None

        url = match.group(0)
        version = DatasetVersion(int(match.group("year")), int(match.group("month")))
        return DownloadLink(url=url, filename=url.rsplit("/", 1)[-1], version=version)


def find_download_link(html: str, finder: LinkFinder, today: dt.date) -> DownloadLink:
    """Find the dataset link in a download page.

    Args:
        html: Download page markup.
        finder: Link finding strategy.
        today: Date used to compute the expected current-month link.

    Returns:
        The download link.

    Raises:
        SourceLocationError: If the page has no matching link.
    """
    link = finder.fast_path(html, today)
    if link is not None:
        logger.debug("Found link for current month: %s", link.url)
        return link

    logger.info("Link for %s not found, scanning page for any dataset link", today.strftime("%B %Y"))
    link = finder.fallback(html)
    if link is None:
        raise SourceLocationError("Could not find CSV download link.")

    return link


def locate_latest(
    session: requests.Session,
    settings: Settings,
    today: dt.date | None = None,
    finder: LinkFinder | None = None,
) -> DownloadLink:
    """Fetch the provider's download page and find the latest dataset link.

    Raises:
        requests.HTTPError: If the page request fails after retries.
        SourceLocationError: If no link is found.
    """
    page_url = settings.provider.page_url
    finder = finder or LinkFinder(download_prefix=settings.provider.download_prefix)
    today = today or dt.date.today()

    logger.info("Looking up URL for latest CSV file from: %s", page_url)
    response = session.get(page_url, timeout=settings.http.timeout)
    response.raise_for_status()

    return find_download_link(response.text, finder, today)
