#!/usr/bin/env python3
"""Build cache.

Downloads, verifies and extracts builds into one folder per build under the
cache root. A folder is trusted once its install record exists; the record
is only written after every step succeeded.
"""

import json
import logging
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Optional

from codebisect.artifacts.files import compute_sha256, download_file, extract_archive
from codebisect.builds.kinds import Build, Platform, detect_platform, is_container_flavor
from codebisect.builds.naming import (
    cache_folder_name,
    download_name,
    executable_candidates,
    extraction_destination,
    installed_folder_name,
)
from codebisect.catalog.client import CatalogClient
from codebisect.config.config import BisectConfig
from codebisect.errors import IntegrityError, MissingExecutable


logger = logging.getLogger(__name__)

# Constants
INSTALL_RECORD = ".install.json"

Downloader = Callable[[str, Path], None]


@dataclass
class InstallRecord:
    """Completion record of a materialized build.

    Attributes:
        download_name: File name the build was downloaded as
        product_version: Product version from build metadata
        artifact: Usable artifact, relative to the build folder
        sha256: Verified SHA256 of the download
    """

    download_name: str
    product_version: str
    artifact: str
    sha256: str


class BuildCache:
    """Materialize builds on local disk.

    Attributes:
        config: Session configuration
        catalog: Update service client used for build metadata
        platform: Host platform
    """

    def __init__(
        self,
        config: BisectConfig,
        catalog: CatalogClient,
        platform: Optional[Platform] = None,
        downloader: Downloader = download_file,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.platform = platform or detect_platform()
        self._download = downloader

    def build_path(self, build: Build) -> Path:
        """Cache folder of a build."""
        return self.config.builds_dir / cache_folder_name(
            build.commit, build.quality, build.flavor, self.platform
        )

    def installed(self, build: Build) -> Optional[InstallRecord]:
        """Install record of a build, None if it is not fully materialized."""
        record_path = self.build_path(build) / INSTALL_RECORD
        if not record_path.is_file():
            return None

        try:
            return InstallRecord(**json.loads(record_path.read_text()))
        except (ValueError, TypeError) as exc:
            logger.warning(f"Ignoring unreadable install record {record_path}: {exc}")
            return None

    def materialize(self, build: Build, force_refresh: bool = False) -> Optional[Path]:
        """Make sure a verified build exists on disk.

        Args:
            build: Build to materialize
            force_refresh: Delete any cached copy and download again

        Returns:
            Path to the usable artifact (the extracted folder, or the
            downloaded file for installer flavors). None for containerized
            CLI flavors, which download inside the container.

        Raises:
            CatalogUnavailable: If build metadata cannot be fetched
            DownloadFailed: If the download fails
            IntegrityError: If the checksum does not match
            ExtractionFailed: If the archive cannot be extracted
        """
        if is_container_flavor(build.flavor):
            logger.debug(f"Build {build.commit} of flavor {build.flavor.value} runs in a container")
            return None

        path = self.build_path(build)

        if force_refresh and path.exists():
            logger.info(f"Deleting cached build {path} to download it again...")
            shutil.rmtree(path)

        record = self.installed(build)
        if record is not None:
            logger.debug(f"Using cached build {path}")
            return path / record.artifact

        # Leftovers of an interrupted install carry no record
        if path.exists():
            shutil.rmtree(path)

        try:
            return path / self._install(build, path).artifact
        except Exception:
            shutil.rmtree(path, ignore_errors=True)
            raise

    def _install(self, build: Build, path: Path) -> InstallRecord:
        metadata = self.catalog.fetch_metadata(build)
        name = download_name(build, self.platform, metadata)
        archive = path / name

        logger.info(f"Downloading build from {metadata.url}...")
        self._download(metadata.url, archive)

        logger.info(f"Verifying checksum of {archive}...")
        digest = compute_sha256(archive)
        if digest.lower() != metadata.sha256.lower():
            raise IntegrityError(
                f"Expected SHA256 checksum of {archive} is {metadata.sha256}, but was {digest}"
            )

        destination = extraction_destination(build, self.platform, archive)
        if destination is None:
            artifact = name
        else:
            extract_archive(archive, destination, in_process_zip=self.platform.is_windows)
            archive.unlink()
            if destination == path:
                artifact = installed_folder_name(build, self.platform, metadata.product_version)
            else:
                artifact = destination.relative_to(path).as_posix()

        record = InstallRecord(
            download_name=name,
            product_version=metadata.product_version,
            artifact=artifact,
            sha256=digest,
        )
        (path / INSTALL_RECORD).write_text(json.dumps(asdict(record), indent=2))
        return record

    def executable(self, build: Build) -> Path:
        """Executable of a materialized build.

        Raises:
            MissingExecutable: If none of the expected executables exist
        """
        path = self.build_path(build)
        record = self.installed(build)
        if record is None:
            raise MissingExecutable(f"Build {build.commit} is not installed in {path}")

        candidates = executable_candidates(build, self.platform, path, record.product_version)
        if not candidates:
            # Installers and packages are run as downloaded
            candidates = [path / record.artifact]

        for candidate in candidates:
            if candidate.exists():
                return candidate

        raise MissingExecutable(
            f"Unable to find executable {candidates[-1]} on disk. Is the archive corrupt?"
        )

    def evict(self, build: Build) -> None:
        """Delete the cached copy of a build."""
        path = self.build_path(build)
        if path.exists():
            logger.debug(f"Deleting {path}")
            shutil.rmtree(path)
