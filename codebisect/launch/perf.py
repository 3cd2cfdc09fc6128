#!/usr/bin/env python3
"""Adapter for the external startup performance harness.

The harness starts a build several times and appends its timings to a file.
Builds run under the harness are never kept running, so every run yields a
NoopInstance carrying the measured wall time.
"""

import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from codebisect.config.config import BisectConfig
from codebisect.errors import LaunchError
from codebisect.launch.base import NoopInstance


logger = logging.getLogger(__name__)


class PerformanceHarness:
    """Run builds through the performance harness command line.

    Attributes:
        config: Session configuration
    """

    def __init__(self, config: BisectConfig) -> None:
        self.config = config

    def _base_command(self, build: str) -> List[str]:
        return shlex.split(self.config.performance_command) + ["--build", build]

    def _workspace(self) -> Optional[Path]:
        return self.config.performance_folder

    def desktop_command(self, executable: Path) -> List[str]:
        command = self._base_command(str(executable))
        folder = self._workspace()
        if folder is not None:
            command += ["--folder", str(folder), "--file", str(folder / "package.json")]
        command += [
            "--prof-append-timers",
            str(self.config.performance_file or self.config.default_performance_file),
        ]
        return command

    def web_command(self, url: str, local: bool) -> List[str]:
        command = self._base_command(url) + ["--runtime", "web"]
        if self.config.token:
            command += ["--token", self.config.token]

        folder = self._workspace()
        if local and folder is not None:
            # Served by the local server, so the file lives on the remote authority
            workspace = folder.resolve().as_posix()
            if not workspace.startswith("/"):
                workspace = f"/{workspace}"
            command += [
                "--folder",
                workspace,
                "--file",
                f"vscode-remote://localhost:9888{workspace}/package.json",
            ]
        if self.config.performance_file is not None:
            command += ["--duration-markers-file", str(self.config.performance_file)]
        return command

    def run(self, command: List[str]) -> NoopInstance:
        """Run the harness to completion.

        Raises:
            LaunchError: If the harness cannot be started or fails
        """
        logger.debug(f"Running: {' '.join(command)}")
        start = time.monotonic()
        try:
            result = subprocess.run(command, check=False)
        except OSError as exc:
            raise LaunchError(f"Failed to start performance harness {command[0]}: {exc}") from exc

        if result.returncode != 0:
            raise LaunchError(f"Performance harness exited with code {result.returncode}")

        return NoopInstance(elapsed=time.monotonic() - start)

    def run_desktop(self, executable: Path) -> NoopInstance:
        return self.run(self.desktop_command(executable))

    def run_web(self, url: str, local: bool) -> NoopInstance:
        return self.run(self.web_command(url, local))
