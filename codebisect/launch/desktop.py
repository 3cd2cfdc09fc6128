#!/usr/bin/env python3
"""Desktop integration: browser, clipboard and package manager commands."""

import logging
import os
import shutil
import subprocess
import webbrowser
from typing import List, Optional

from codebisect.builds.kinds import Flavor, OperatingSystem, Platform, Quality


logger = logging.getLogger(__name__)

# Constants
PACKAGE_INSTALL_COMMANDS = {
    Flavor.LINUX_DEB: "sudo apt install -y {path}",
    Flavor.LINUX_RPM: "sudo dnf install -y {path}",
    Flavor.LINUX_SNAP: "sudo snap install --classic --dangerous {path}",
}


def open_url(url: str) -> None:
    """Open a URL in the default browser."""
    logger.debug(f"Opening {url}")
    if not webbrowser.open(url):
        logger.warning(f"Unable to open a browser, please open {url} manually")


def clipboard_command(platform: Platform) -> Optional[List[str]]:
    """Command that copies stdin to the clipboard, None if no tool is available."""
    if platform.os is OperatingSystem.DARWIN:
        return ["pbcopy"]
    if platform.os is OperatingSystem.WINDOWS:
        return ["clip"]

    candidates = [["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]]
    if os.environ.get("WAYLAND_DISPLAY"):
        candidates.insert(0, ["wl-copy"])
    for command in candidates:
        if shutil.which(command[0]):
            return command
    return None


def copy_to_clipboard(text: str, platform: Platform) -> bool:
    """Copy text to the clipboard.

    Returns:
        True if the text was copied, False otherwise
    """
    command = clipboard_command(platform)
    if command is None:
        logger.warning("No clipboard tool found (install xclip, xsel or wl-copy)")
        return False

    try:
        subprocess.run(command, input=text, text=True, check=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning(f"Failed to copy to clipboard with {command[0]}: {exc}")
        return False
    return True


def install_command(flavor: Flavor, path: str) -> str:
    """Privileged package manager command that installs a downloaded package.

    Raises:
        ValueError: If the flavor is not a Linux package flavor
    """
    try:
        return PACKAGE_INSTALL_COMMANDS[flavor].format(path=path)
    except KeyError:
        raise ValueError(f"Flavor {flavor.value} is not installed by a package manager") from None


def application_command(quality: Quality) -> str:
    """Name of the installed application on the PATH."""
    return "code" if quality is Quality.STABLE else "code-insiders"
