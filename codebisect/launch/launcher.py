#!/usr/bin/env python3
"""Runtime launcher.

Starts a materialized build the way its runtime and flavor require and
returns an Instance the bisection loop stops before the next build.
"""

import logging
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from codebisect.artifacts.cache import BuildCache
from codebisect.builds.kinds import (
    CONTAINER_TARGETS,
    Build,
    Flavor,
    Platform,
    Runtime,
    detect_platform,
    is_container_flavor,
)
from codebisect.builds.naming import container_download_url, hosted_url
from codebisect.config.config import BisectConfig
from codebisect.core.prompts import InstallChoice, Prompter
from codebisect.errors import LaunchError
from codebisect.launch.base import Instance, NoopInstance, ProcessInstance
from codebisect.launch.desktop import (
    application_command,
    copy_to_clipboard,
    install_command,
    open_url,
)
from codebisect.launch.perf import PerformanceHarness
from codebisect.launch.watcher import OutputWatcher


logger = logging.getLogger(__name__)

# Constants
WEB_AVAILABLE_REGEX = re.compile(r"Web UI available at (http://localhost:8000/?\?tkn=.+)")
GITHUB_DEVICE_URL = "https://github.com/login/device"
GITHUB_CODE_REGEX = re.compile(r"code ([A-Z0-9]{4}-[A-Z0-9]{4})")
MICROSOFT_DEVICE_URL = "https://microsoft.com/devicelogin"
MICROSOFT_CODE_REGEX = re.compile(r"code ([A-Z0-9]{9})")
TUNNEL_LINK_MARKER = "Open this link in your browser "

WINDOWS_INSTALLER_FLAVORS = (Flavor.WINDOWS_USER_INSTALLER, Flavor.WINDOWS_SYSTEM_INSTALLER)
LINUX_PACKAGE_FLAVORS = (Flavor.LINUX_DEB, Flavor.LINUX_RPM, Flavor.LINUX_SNAP)


class Launcher:
    """Launch builds.

    Recreates the isolated data folder (user data and extensions) once on
    construction, so every session starts without leftover state.

    Attributes:
        config: Session configuration
        cache: Build cache used to materialize builds
        prompter: Asks the user to confirm manual package installs
        platform: Host platform
        harness: Performance harness used in performance mode
    """

    def __init__(
        self,
        config: BisectConfig,
        cache: BuildCache,
        prompter: Prompter,
        platform: Optional[Platform] = None,
        opener: Callable[[str], None] = open_url,
    ) -> None:
        self.config = config
        self.cache = cache
        self.prompter = prompter
        self.platform = platform or detect_platform()
        self.harness = PerformanceHarness(config)
        self.open_url = opener

        if config.data_dir.exists():
            shutil.rmtree(config.data_dir)
        config.data_dir.mkdir(parents=True, exist_ok=True)

    def clean_user_data_dir(self) -> None:
        """Delete the user data folder before a fresh retry."""
        if self.config.user_data_dir.exists():
            logger.info(f"Deleting user data folder {self.config.user_data_dir}...")
            shutil.rmtree(self.config.user_data_dir)

    def launch(self, build: Build, force_refresh: bool = False) -> Optional[Instance]:
        """Install and start a build.

        Args:
            build: Build to start
            force_refresh: Download the build again even if it is cached

        Returns:
            Running instance, or None when there is nothing to observe
            (a skipped manual install)

        Raises:
            BisectError: If the build cannot be installed or started
        """
        path: Optional[Path] = None
        if build.runtime is not Runtime.WEB_REMOTE:
            path = self.cache.materialize(build, force_refresh)

        if build.runtime is Runtime.WEB_LOCAL:
            if self.config.performance:
                logger.info(
                    f"Starting local web build {build.commit} multiple times "
                    f"and measuring performance..."
                )
                return self._run_web_performance(build)

            logger.info(f"Starting local web build {build.commit}...")
            return self._launch_local_web(build)

        if build.runtime is Runtime.WEB_REMOTE:
            if self.config.performance:
                logger.info(
                    f"Opening vscode.dev {build.commit} multiple times and measuring performance..."
                )
                return self._run_web_performance(build)

            logger.info(f"Opening vscode.dev {build.commit}...")
            return self._launch_remote_web(build)

        if is_container_flavor(build.flavor):
            logger.info(f"Starting CLI build {build.commit} in a container...")
            return self._launch_container_cli(build)

        if path is not None and build.flavor in WINDOWS_INSTALLER_FLAVORS:
            logger.info(f"Installing {path}...")
            return self._run_windows_installer(path)

        if path is not None and build.flavor in LINUX_PACKAGE_FLAVORS:
            return self._install_linux_package(build, path)

        if self.config.performance:
            logger.info(
                f"Starting desktop build {build.commit} multiple times and measuring performance..."
            )
            return self.harness.run_desktop(self.cache.executable(build))

        if build.flavor is Flavor.CLI:
            logger.info(f"Starting CLI build {build.commit}...")
            return self._launch_cli(build)

        logger.info(f"Starting desktop build {build.commit}...")
        return self._launch_desktop(build)

    def _spawn(self, command: List[str]) -> subprocess.Popen:
        logger.debug(f"Starting build via {' '.join(command)}")
        try:
            return subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start {command[0]}: {exc}") from exc

    def _build_args(self, build: Build) -> List[str]:
        if build.flavor is Flavor.CLI:
            return ["tunnel"]

        args = [
            "--accept-server-license-terms",
            "--extensions-dir",
            str(self.config.extensions_dir),
            "--skip-release-notes",
        ]
        if build.runtime is Runtime.DESKTOP_LOCAL:
            args += [
                "--disable-updates",
                "--user-data-dir",
                str(self.config.user_data_dir),
                "--disable-telemetry",
            ]
        return args

    def _spawn_build(self, build: Build) -> subprocess.Popen:
        executable = self.cache.executable(build)
        return self._spawn([str(executable)] + self._build_args(build))

    def _watch_until_ready(
        self, process: subprocess.Popen, label: str, handler: Callable[[str], Optional[str]]
    ) -> ProcessInstance:
        instance = ProcessInstance(process)
        watcher = OutputWatcher(process, label, handler).start()
        try:
            instance.url = watcher.wait_ready() or ""
        except BaseException:
            instance.stop()
            raise
        return instance

    def _start_local_web_server(self, build: Build) -> ProcessInstance:
        def on_line(line: str) -> Optional[str]:
            match = WEB_AVAILABLE_REGEX.search(line)
            return match.group(1) if match else None

        return self._watch_until_ready(self._spawn_build(build), "server", on_line)

    def _launch_local_web(self, build: Build) -> Instance:
        instance = self._start_local_web_server(build)
        if instance.url:
            self.open_url(instance.url)
        return instance

    def _launch_remote_web(self, build: Build) -> Instance:
        url = hosted_url(build.commit, build.quality, self.config.token, self.config.hosted_web_url)
        self.open_url(url)
        return NoopInstance(url=url)

    def _run_web_performance(self, build: Build) -> Instance:
        if build.runtime is not Runtime.WEB_LOCAL:
            url = hosted_url(
                build.commit, build.quality, self.config.token, self.config.hosted_web_url
            )
            return self.harness.run_web(url, local=False)

        server = self._start_local_web_server(build)
        try:
            return self.harness.run_web(server.url, local=True)
        finally:
            server.stop()

    def _launch_desktop(self, build: Build) -> Instance:
        # Desktop builds count as ready once spawned
        process = self._spawn_build(build)
        instance = ProcessInstance(process)
        OutputWatcher(process, "electron").start()
        return instance

    def _tunnel_handler(self, build: Build) -> Callable[[str], Optional[str]]:
        def on_line(line: str) -> Optional[str]:
            if GITHUB_DEVICE_URL.replace("https://", "") in line:
                match = GITHUB_CODE_REGEX.search(line)
                if match:
                    self._device_login(GITHUB_DEVICE_URL, match.group(1))
                return None

            if MICROSOFT_DEVICE_URL.replace("https://", "") in line:
                match = MICROSOFT_CODE_REGEX.search(line)
                if match:
                    self._device_login(MICROSOFT_DEVICE_URL, match.group(1))
                return None

            if TUNNEL_LINK_MARKER in line:
                href = line[line.index(TUNNEL_LINK_MARKER) + len(TUNNEL_LINK_MARKER):].strip()
                if not href.startswith(("http://", "https://")):
                    logger.warning(f"Invalid URL extracted: {href}")
                    return None

                url = f"{href}?vscode-version={build.commit}"
                logger.info(f"Opening {href} in your browser...")
                self.open_url(url)
                return url

            return None

        return on_line

    def _device_login(self, url: str, code: str) -> None:
        logger.info(f"Open {url} and use code {code} to log in")
        copy_to_clipboard(code, self.platform)
        self.open_url(url)

    def _launch_cli(self, build: Build) -> Instance:
        return self._watch_until_ready(self._spawn_build(build), "cli", self._tunnel_handler(build))

    def container_command(self, build: Build) -> List[str]:
        """Container command that downloads and starts the CLI of a containerized flavor."""
        target = CONTAINER_TARGETS[build.flavor]
        url = container_download_url(build, self.config.catalog_url.rstrip("/"))
        script = (
            f"{target.fetch} {shlex.quote(url)} | tar xz && "
            f"./{application_command(build.quality)} tunnel"
        )
        return [
            self.config.container_runtime,
            "run",
            "--rm",
            "--platform",
            target.docker_platform,
            target.image,
            "sh",
            "-c",
            script,
        ]

    def _launch_container_cli(self, build: Build) -> Instance:
        process = self._spawn(self.container_command(build))
        return self._watch_until_ready(process, "cli", self._tunnel_handler(build))

    def _run_windows_installer(self, path: Path) -> Instance:
        process = self._spawn([str(path), "/silent"])
        instance = ProcessInstance(process)
        OutputWatcher(process, "installer").start()
        return instance

    def _install_linux_package(self, build: Build, path: Path) -> Optional[Instance]:
        command = install_command(build.flavor, str(path))
        copy_to_clipboard(command, self.platform)

        if self.prompter.ask_install(command) is InstallChoice.SKIP:
            logger.info(f"Skipping package install of {build.commit}")
            return None

        application = application_command(build.quality)
        logger.info(f"Starting installed {application} {build.commit}...")
        process = self._spawn([application] + self._build_args(build))
        instance = ProcessInstance(process)
        OutputWatcher(process, "electron").start()
        return instance
