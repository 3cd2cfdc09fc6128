#!/usr/bin/env python3
"""Configuration classes for build bisection.

This module contains the configuration dataclass threaded through the catalog
client, the build cache and the launcher.
"""

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from codebisect.builds.naming import (
    DEFAULT_COMPARE_URL,
    DEFAULT_HOSTED_WEB_URL,
    DEFAULT_UPDATE_URL,
)


DEFAULT_CACHE_ROOT = Path(tempfile.gettempdir()) / "codebisect"
DEFAULT_PERFORMANCE_FILE_NAME = "startup-perf.txt"


@dataclass
class BisectConfig:
    """Session configuration.

    Attributes:
        cache_root: Root folder for cached builds, user data and history
        catalog_url: Base URL of the update service
        hosted_web_url: Hosted web URL template, {host} is "insiders." or ""
        compare_url: Template of the upstream diff URL between two commits
        verbose: Log child process output and cache decisions
        performance: Hand builds to the performance harness instead of launching them
        performance_file: File the harness appends timings to (optional)
        performance_command: Command line of the performance harness
        performance_folder: Workspace folder opened during performance runs (optional)
        token: GitHub token for authenticated hosted web sessions (optional)
        released_only: Only bisect over released builds
        request_timeout: Timeout in seconds for update service requests
        database_path: SQLite history database (default: <cache_root>/history.db)
        container_runtime: Container command for containerized CLI flavors
    """

    cache_root: Path = DEFAULT_CACHE_ROOT
    catalog_url: str = DEFAULT_UPDATE_URL
    hosted_web_url: str = DEFAULT_HOSTED_WEB_URL
    compare_url: str = DEFAULT_COMPARE_URL

    # Output
    verbose: bool = False

    # Performance harness
    performance: bool = False
    performance_file: Optional[Path] = None
    performance_command: str = "vscode-perf"
    performance_folder: Optional[Path] = None
    token: Optional[str] = None

    # Bisection
    released_only: bool = False

    # Network
    request_timeout: float = 30.0

    # History
    database_path: Optional[Path] = None

    # Containers
    container_runtime: str = "docker"

    def __post_init__(self) -> None:
        self.cache_root = Path(self.cache_root)

    @property
    def builds_dir(self) -> Path:
        return self.cache_root / ".builds"

    @property
    def data_dir(self) -> Path:
        return self.cache_root / ".data"

    @property
    def user_data_dir(self) -> Path:
        return self.data_dir / "data"

    @property
    def extensions_dir(self) -> Path:
        return self.data_dir / "extensions"

    @property
    def history_path(self) -> Path:
        return self.database_path or self.cache_root / "history.db"

    @property
    def default_performance_file(self) -> Path:
        return self.cache_root / DEFAULT_PERFORMANCE_FILE_NAME
