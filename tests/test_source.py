"""Unit tests for locating the latest dataset link."""

from __future__ import annotations

import datetime as dt
import re

import pytest
import requests
from fakes import DOWNLOAD_PREFIX, PAGE_URL, FakeSession, page_html

from dbip_pipeline.errors import SourceLocationError
from dbip_pipeline.settings import Settings
from dbip_pipeline.source import LinkFinder, find_download_link, locate_latest
from dbip_pipeline.versions import DatasetVersion

MARCH_2024 = dt.date(2024, 3, 15)


@pytest.fixture
def finder() -> LinkFinder:
    return LinkFinder(download_prefix=DOWNLOAD_PREFIX)


class TestFindDownloadLink:
    """Tests for the fast path and fallback link discovery."""

    def test_fast_path(self, finder: LinkFinder) -> None:
        html = page_html("https://download.example/free/dbip-city-lite-2024-03.csv.gz")

        link = find_download_link(html, finder, MARCH_2024)

        assert link.url == "https://download.example/free/dbip-city-lite-2024-03.csv.gz"
        assert link.filename == "dbip-city-lite-2024-03.csv.gz"
        assert link.version == DatasetVersion(2024, 3)
        assert link.version.as_date() == dt.date(2024, 3, 1)

    def test_fast_path_skips_fallback_scan(self, finder: LinkFinder) -> None:
        """The current month's link wins even when an older link comes first."""
        html = page_html(
            "https://download.example/free/dbip-city-lite-2023-09.csv.gz",
            "https://download.example/free/dbip-city-lite-2024-03.csv.gz",
        )

        link = find_download_link(html, finder, MARCH_2024)

        assert link.version == DatasetVersion(2024, 3)

    def test_fallback_to_older_link(self, finder: LinkFinder) -> None:
        html = page_html("https://download.example/free/dbip-city-lite-2023-09.csv.gz")

        link = find_download_link(html, finder, MARCH_2024)

        assert link.url == "https://download.example/free/dbip-city-lite-2023-09.csv.gz"
        assert link.filename == "dbip-city-lite-2023-09.csv.gz"
        assert link.version == DatasetVersion(2023, 9)

    def test_fallback_takes_first_match(self, finder: LinkFinder) -> None:
        html = page_html(
            "https://download.example/free/dbip-city-lite-2024-02.csv.gz",
            "https://download.example/free/dbip-city-lite-2024-01.csv.gz",
        )

        link = find_download_link(html, finder, MARCH_2024)

        assert link.version == DatasetVersion(2024, 2)

    def test_fallback_matches_link_without_href(self, finder: LinkFinder) -> None:
        html = "<p>Latest: https://download.example/free/dbip-city-lite-2024-02.csv.gz</p>"

        assert find_download_link(html, finder, MARCH_2024).version == DatasetVersion(2024, 2)

    @pytest.mark.parametrize(
        "url",
        [
            "https://download.example/free/dbip-city-lite-2024-13.csv.gz",
            "https://download.example/free/dbip-city-lite-2024-00.csv.gz",
            "https://download.example/free/dbip-city-lite-1999-05.csv.gz",
            "https://download.example/free/dbip-city-lite-2024-02.mmdb.gz",
            "https://elsewhere.example/free/dbip-city-lite-2024-02.csv.gz",
        ],
    )
    def test_fallback_rejects_non_matching_urls(self, finder: LinkFinder, url: str) -> None:
        with pytest.raises(SourceLocationError, match="Could not find CSV download link"):
            find_download_link(page_html(url), finder, MARCH_2024)

    def test_no_link(self, finder: LinkFinder) -> None:
        with pytest.raises(SourceLocationError):
            find_download_link("<html></html>", finder, MARCH_2024)

    def test_swapped_fallback_pattern(self) -> None:
        """A different URL layout can be matched by swapping only the fallback."""
        finder = LinkFinder(
            download_prefix=DOWNLOAD_PREFIX,
            fallback_pattern=re.compile(
                r"https://mirror\.example/dbip/(?P<year>20\d{2})/(?P<month>0[1-9]|1[0-2])/city\.csv\.gz"
            ),
        )
        html = page_html("https://mirror.example/dbip/2024/02/city.csv.gz")

        link = find_download_link(html, finder, MARCH_2024)

        assert link.url == "https://mirror.example/dbip/2024/02/city.csv.gz"
        assert link.filename == "city.csv.gz"
        assert link.version == DatasetVersion(2024, 2)


class TestLocateLatest:
    """Tests for fetching the provider page."""

    def test_fetches_page_once(self, temp_settings: Settings) -> None:
        session = FakeSession(
            {PAGE_URL: (200, page_html(f"{DOWNLOAD_PREFIX}dbip-city-lite-2024-03.csv.gz"))}
        )

        link = locate_latest(session, temp_settings, today=MARCH_2024)

        assert session.requested == [PAGE_URL]
        assert link.version == DatasetVersion(2024, 3)

    def test_page_error_raises(self, temp_settings: Settings) -> None:
        session = FakeSession({PAGE_URL: (503, "unavailable")})

        with pytest.raises(requests.HTTPError):
            locate_latest(session, temp_settings, today=MARCH_2024)
