#!/usr/bin/env python3
"""Sanity check mode.

Steps through every desktop flavor of one Stable commit that is available
on the host, so a release can be verified by hand flavor by flavor.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from codebisect.builds.kinds import (
    Arch,
    Build,
    Flavor,
    OperatingSystem,
    Platform,
    Quality,
    Runtime,
    detect_platform,
)
from codebisect.core.orchestrator import log_troubleshoot
from codebisect.core.prompts import Prompter, RecoveryChoice, SanityChoice
from codebisect.errors import BisectError, UnsupportedPlatform


if TYPE_CHECKING:
    from codebisect.launch.launcher import Launcher


logger = logging.getLogger(__name__)

# Constants
OS_LABELS = {
    OperatingSystem.DARWIN: "macOS",
    OperatingSystem.LINUX: "Linux",
    OperatingSystem.WINDOWS: "Windows",
}


def sanity_builds(commit: str, platform: Platform) -> List[Tuple[Build, str]]:
    """Stable desktop builds to check on a platform, with display labels."""

    def build(flavor: Flavor) -> Build:
        return Build(Runtime.DESKTOP_LOCAL, Quality.STABLE, flavor, commit)

    arch = platform.arch.value
    builds = [(build(Flavor.DEFAULT), f"{OS_LABELS[platform.os]} ({arch})")]

    if platform.os is OperatingSystem.DARWIN:
        builds.append((build(Flavor.DARWIN_UNIVERSAL), "macOS (universal)"))
    elif platform.os is OperatingSystem.LINUX:
        builds.append((build(Flavor.LINUX_DEB), "Linux (Debian)"))
        builds.append((build(Flavor.LINUX_RPM), "Linux (RPM)"))
        if platform.arch is Arch.X64:
            builds.append((build(Flavor.LINUX_SNAP), "Linux (Snap)"))
    else:
        builds.append((build(Flavor.WINDOWS_USER_INSTALLER), f"Windows User Installer ({arch})"))
        builds.append(
            (build(Flavor.WINDOWS_SYSTEM_INSTALLER), f"Windows System Installer ({arch})")
        )

    builds.append((build(Flavor.CLI), "Server & CLI"))
    return builds


class SanityChecker:
    """Walk through the flavors of a Stable build.

    Attributes:
        launcher: Launches builds
        prompter: Asks how to continue after each flavor
        platform: Host platform
    """

    def __init__(
        self, launcher: "Launcher", prompter: Prompter, platform: Optional[Platform] = None
    ) -> None:
        self.launcher = launcher
        self.prompter = prompter
        self.platform = platform or detect_platform()

    def run(self, commit: str) -> bool:
        """Check all flavors of a commit.

        Returns:
            True if every flavor was stepped through, False if the user quit
        """
        builds = sanity_builds(commit, self.platform)

        print("=" * 70)
        print("VS Code Build Sanity Checker")
        print("=" * 70)
        print("Run every flavor of VS Code Stable step by step and verify that it")
        print("installs and runs as expected.")
        print("https://github.com/microsoft/vscode/wiki/Sanity-Check\n")

        for index, (build, label) in enumerate(builds):
            if not self.try_build(build, label, is_last=index == len(builds) - 1):
                return False
        return True

    def try_build(self, build: Build, label: str, is_last: bool) -> bool:
        """Launch one flavor until the user moves on.

        Returns:
            False if the user quit, True otherwise
        """
        force_refresh = False
        while True:
            logger.info(f"Running {label}...")
            try:
                instance = self.launcher.launch(build, force_refresh=force_refresh)
            except UnsupportedPlatform:
                raise
            except BisectError as exc:
                logger.error(f"{label} failed: {exc}")
                choice = self.prompter.ask_recovery(build, exc)
                if choice is RecoveryChoice.ABORT:
                    log_troubleshoot()
                    return True
                force_refresh = choice is RecoveryChoice.RETRY_FORCE
                continue

            # Skipped manual install
            if instance is None:
                return True

            try:
                choice = self.prompter.ask_sanity(build, is_last)
            finally:
                instance.stop()

            force_refresh = False
            if choice is SanityChoice.RETRY_FRESH:
                self.launcher.clean_user_data_dir()
                continue
            if choice is SanityChoice.RETRY:
                continue
            return choice is SanityChoice.NEXT
