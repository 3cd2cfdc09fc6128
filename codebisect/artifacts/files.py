#!/usr/bin/env python3
"""File helpers for downloading, checksumming and extracting builds."""

import hashlib
import logging
import subprocess
import zipfile
from pathlib import Path
from typing import List, Optional

import httpx
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from codebisect.errors import DownloadFailed, ExtractionFailed


logger = logging.getLogger(__name__)

# Constants
CHUNK_SIZE = 1024 * 1024
DOWNLOAD_TIMEOUT = httpx.Timeout(30.0, read=None)


def download_file(url: str, path: Path, client: Optional[httpx.Client] = None) -> None:
    """Stream a URL to a file, reporting progress.

    Args:
        url: URL to download
        path: Destination file, parent folders are created
        client: HTTP client to use (a one-off client when None)

    Raises:
        DownloadFailed: If the server does not answer 200 or the transfer fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    http = client or httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        with http.stream("GET", url) as response:
            if response.status_code != 200:
                raise DownloadFailed(
                    f"Failed to download file from update server (code: {response.status_code})"
                )

            total = int(response.headers.get("content-length", 0)) or None
            progress = Progress(
                TextColumn("[grey50]\\[fetch][/]"),
                BarColumn(bar_width=30),
                DownloadColumn(),
                TransferSpeedColumn(),
                transient=True,
            )
            with progress, path.open("wb") as handle:
                task = progress.add_task("download", total=total)
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    handle.write(chunk)
                    progress.update(task, advance=len(chunk))

    except httpx.HTTPError as exc:
        raise DownloadFailed(f"Failed to download file from update server: {exc}") from exc
    except OSError as exc:
        raise DownloadFailed(f"Failed to write download to {path}: {exc}") from exc
    finally:
        if client is None:
            http.close()


def compute_sha256(path: Path) -> str:
    """SHA256 hex digest of a file."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for block in iter(lambda: handle.read(CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def _run_tool(command: List[str]) -> None:
    logger.debug(f"Running: {' '.join(command)}")
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise ExtractionFailed(f"Failed to run {command[0]}: {exc}") from exc

    if result.returncode != 0:
        raise ExtractionFailed(
            f"{command[0]} exited with code {result.returncode}: {result.stderr.strip()}"
        )


def unzip_in_process(source: Path, destination: Path) -> None:
    """Extract a zip archive without external tools.

    Native unzip tooling is missing or unreliable with long paths on Windows.
    """
    try:
        with zipfile.ZipFile(source) as archive:
            archive.extractall(destination)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ExtractionFailed(f"Failed to unzip {source}: {exc}") from exc


def extract_archive(source: Path, destination: Path, in_process_zip: bool = False) -> None:
    """Extract a .zip or .tar.gz archive.

    Args:
        source: Archive path
        destination: Folder to extract into
        in_process_zip: Use the zipfile module instead of the unzip tool

    Raises:
        ExtractionFailed: If the archive type is unknown or extraction fails
    """
    logger.info(f"Unzipping {source} to {destination}...")

    if source.name.endswith(".zip"):
        if in_process_zip:
            unzip_in_process(source, destination)
        else:
            _run_tool(["unzip", "-q", "-o", str(source), "-d", str(destination)])
        return

    if source.name.endswith(".tar.gz"):
        # tar does not create the destination
        destination.mkdir(parents=True, exist_ok=True)
        _run_tool(["tar", "-xzf", str(source), "-C", str(destination)])
        return

    raise ExtractionFailed(f"Unknown archive type: {source.name}")
