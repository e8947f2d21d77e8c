"""One-shot HTTP download of a file another peer is serving."""

import asyncio
import logging

import requests

from config import DOWNLOAD_TIMEOUT

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """
    A download that did not end with the file on disk.

    `status_code` is set when the peer answered with a non-2xx status;
    network and write failures are chained as the cause.
    """

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def download_file(url: str, dest_path: str, timeout: float = DOWNLOAD_TIMEOUT) -> str:
    """Fetch `url` and write the full body to `dest_path`. Returns `dest_path`."""
    logger.info(f"Downloading: {url} -> {dest_path}")

    try:
        response = requests.get(url, timeout=timeout)
    except requests.Timeout as t:
        raise DownloadError(f"Timed out after {timeout}s fetching {url}", url) from t
    except requests.RequestException as e:
        raise DownloadError(f"HTTP request failed: {e}", url) from e

    if not 200 <= response.status_code < 300:
        raise DownloadError(
            f"HTTP error: {response.status_code} {response.reason}",
            url,
            status_code=response.status_code,
        )

    try:
        with open(dest_path, "wb") as f:
            f.write(response.content)
    except OSError as e:
        raise DownloadError(f"Failed to write file {dest_path}: {e}", url) from e

    logger.info(f"Download complete: {dest_path} ({len(response.content)} bytes)")
    return dest_path


async def fetch(url: str, dest_path: str, timeout: float = DOWNLOAD_TIMEOUT) -> str:
    """Run download_file() off the event loop."""
    return await asyncio.to_thread(download_file, url, dest_path, timeout)
