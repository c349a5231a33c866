"""Dataset download module.

Streams the gzip-compressed dataset from the provider and writes the
decompressed CSV to disk.
"""

from __future__ import annotations

import logging
import zlib
from collections.abc import Iterable, Iterator
from pathlib import Path

import requests

from dbip_pipeline.errors import DownloadError
from dbip_pipeline.settings import Settings
from dbip_pipeline.source import DownloadLink

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# zlib window bits accepting a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable format."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


def output_filename(filename: str) -> str:
    """Name of the decompressed file for a downloaded filename."""
    return filename[: -len(".gz")] if filename.endswith(".gz") else filename


def gunzip_chunks(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Decompress a stream of gzip data chunk by chunk.

    Handles files made of several concatenated gzip members.

    Raises:
        DownloadError: If the data is not valid gzip or is truncated.
    """
    decompressor = zlib.decompressobj(_GZIP_WBITS)
    started = False
    received = False

    try:
        for chunk in chunks:
            received = received or bool(chunk)
            while chunk:
                started = True
                data = decompressor.decompress(chunk)
                if data:
                    yield data
                if not decompressor.eof:
                    break
                # Next gzip member, if any
                chunk = decompressor.unused_data
                decompressor = zlib.decompressobj(_GZIP_WBITS)
                started = False

        tail = decompressor.flush()
        if tail:
            yield tail
    except zlib.error as e:
        raise DownloadError(f"Downloaded file is not valid gzip data: {e}") from e

    if not received:
        raise DownloadError("Downloaded file is empty")
    if started and not decompressor.eof:
        raise DownloadError("Downloaded file ended before the end of the gzip stream")


def download_dataset(session: requests.Session, link: DownloadLink, settings: Settings) -> Path:
    """Download and decompress a dataset file.

    The response body is read as sent, without transport decoding, and
    gunzipped exactly once.

    Writes to a ``.part`` file first, then renames it on success.

    Args:
        session: HTTP session with the retry policy mounted.
        link: The file to download.
        settings: Application settings.

    Returns:
        Path to the decompressed CSV file.

    Raises:
        requests.HTTPError: If the download fails after retries.
        DownloadError: If the content cannot be decompressed.
    """
    downloads_dir = settings.paths.downloads_dir
    downloads_dir.mkdir(parents=True, exist_ok=True)

    dest_path = downloads_dir / output_filename(link.filename)
    part_path = dest_path.with_suffix(dest_path.suffix + ".part")

    logger.info("Downloading file: %s", link.url)
    logger.info("Saving file to: %s", dest_path)

    with session.get(link.url, stream=True, timeout=settings.http.timeout) as response:
        response.raise_for_status()

        compressed = 0
        written = 0

        def counted(chunks: Iterable[bytes]) -> Iterator[bytes]:
            nonlocal compressed
            for chunk in chunks:
                compressed += len(chunk)
                yield chunk

        # Body as sent: the payload is gzip regardless of any Content-Encoding header
        body = response.raw.stream(CHUNK_SIZE, decode_content=False)

        try:
            with open(part_path, "wb") as f:
                for data in gunzip_chunks(counted(body)):
                    f.write(data)
                    written += len(data)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise

    part_path.replace(dest_path)
    logger.info(
        "Downloaded %s (decompressed to %s)", format_size(compressed), format_size(written)
    )

    return dest_path
