"""File utilities for gphoto-cli."""

import logging
import os
import platform
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

import requests

from gphoto_cli.models import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
DOWNLOAD_TIMEOUT = 60
SCRATCH_DIR_NAME = "gphoto-cli"

# Tried in order on Linux
LINUX_VIEWERS = ["xdg-open", "eog", "feh", "display", "firefox", "chromium"]

PathLike = Union[str, Path]


@dataclass
class FileInfo:
    """File information."""
    path: str
    size: int
    modified: str


def get_scratch_dir() -> Path:
    """Return <tmp>/gphoto-cli, creating it if missing."""
    scratch_dir = Path(tempfile.gettempdir()) / SCRATCH_DIR_NAME
    scratch_dir.mkdir(parents=True, exist_ok=True)
    return scratch_dir


def get_default_output_dir() -> Path:
    return Path.home() / "gphoto-downloads"


def output_filename(filename: str, item_id: str, mime_type: str) -> str:
    """Pick a local filename for a media item.

    Args:
        filename: Original filename reported by the API (may be empty)
        item_id: Media item id used when no filename is available
        mime_type: MIME type used to choose the fallback extension

    Returns:
        Filename safe to join onto an output directory
    """
    if filename:
        return os.path.basename(filename)
    ext = ".heic" if "heif" in mime_type else ".jpg"
    return f"{item_id}{ext}"


def scratch_path(directory: PathLike, filename: str) -> Path:
    """Unique path in ``directory`` keeping the extension of ``filename``."""
    ext = os.path.splitext(filename)[1] or ".jpg"
    return Path(directory) / f"{time.time_ns()}{ext}"


def download(
    url: str,
    access_token: str,
    destination: PathLike,
    session: Optional[requests.Session] = None,
) -> int:
    """Download ``url`` to ``destination`` using the bearer token.

    The body is streamed to disk in chunks.

    Args:
        url: Resolved media URL
        access_token: Bearer token for the Authorization header
        destination: File to create or truncate
        session: Optional HTTP session

    Returns:
        Number of bytes written

    Raises:
        DownloadError: If the response status is not 200
        OSError: If the destination cannot be written or the request fails
    """
    destination = Path(destination)
    http = session or requests
    headers = {"Authorization": f"Bearer {access_token}"}

    logger.debug("Downloading %s to %s", url[:80], destination)
    with http.get(url, headers=headers, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
        logger.debug(
            "Response status %s, Content-Length %s",
            response.status_code,
            response.headers.get("Content-Length"),
        )
        if response.status_code != 200:
            raise DownloadError(url, response.status_code)

        written = 0
        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)
                written += len(chunk)

    logger.debug("Wrote %d bytes to %s", written, destination)
    return written


def cleanup_older_than(directory: PathLike, max_age: timedelta) -> int:
    """Delete files in ``directory`` last modified strictly before now - ``max_age``.

    Failures on individual files are logged and skipped.

    Returns:
        Number of files deleted
    """
    cutoff = time.time() - max_age.total_seconds()
    removed = 0

    for root, _dirs, files in os.walk(directory):
        for name in files:
            path = os.path.join(root, name)
            try:
                if os.stat(path).st_mtime < cutoff:
                    os.remove(path)
                    removed += 1
            except OSError as e:
                logger.debug("Could not remove %s: %s", path, e)

    return removed


def get_file_info(file_path: PathLike) -> Optional[FileInfo]:
    """Get size and modification time for a file.

    Returns:
        FileInfo, or None if the file cannot be read
    """
    try:
        stat = os.stat(file_path)
        return FileInfo(
            path=str(file_path),
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime).isoformat(),
        )
    except OSError as e:
        logger.warning("Failed to get info for %s: %s", file_path, str(e))
        return None


def open_with_default_viewer(image_path: PathLike) -> bool:
    """Open an image with the platform's default viewer.

    Returns:
        True if a viewer was launched
    """
    image_path = str(image_path)
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"image file does not exist: {image_path}")

    system = platform.system()
    if system == "Windows":
        command = ["rundll32", "url.dll,FileProtocolHandler", image_path]
    elif system == "Darwin":
        command = ["open", image_path]
    else:
        viewer = next((v for v in LINUX_VIEWERS if shutil.which(v)), None)
        if viewer is None:
            print(f"No suitable image viewer found. File saved at: {image_path}")
            return False
        command = [viewer, image_path]

    logger.debug("Launching viewer: %s", command)
    try:
        subprocess.Popen(command)  # pylint: disable=consider-using-with
    except OSError as e:
        logger.debug("Viewer failed: %s", e)
        print(f"External viewer failed. File saved at: {image_path}")
        return False
    return True
