#!/usr/bin/env python3
"""Build descriptors.

Describes what kind of build to run (runtime, quality, flavor), which
concrete commit to run, and the host platform it runs on.
"""

import platform as host_platform
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from codebisect.errors import UnsupportedPlatform


class Runtime(Enum):
    """Execution model of a build."""

    WEB_LOCAL = "web-local"
    WEB_REMOTE = "web-remote"
    DESKTOP_LOCAL = "desktop"


class Quality(Enum):
    """Release channel."""

    INSIDER = "insider"
    STABLE = "stable"
    EXPLORATION = "exploration"


class Flavor(Enum):
    """Packaging variant of a build."""

    DEFAULT = "default"
    DARWIN_UNIVERSAL = "universal"
    WINDOWS_USER_INSTALLER = "win32-user"
    WINDOWS_SYSTEM_INSTALLER = "win32-system"
    LINUX_DEB = "linux-deb"
    LINUX_RPM = "linux-rpm"
    LINUX_SNAP = "linux-snap"
    CLI = "cli"
    CLI_LINUX_AMD64 = "cli-linux-amd64"
    CLI_LINUX_ARM64 = "cli-linux-arm64"
    CLI_LINUX_ARMV7 = "cli-linux-armv7"
    CLI_ALPINE_AMD64 = "cli-alpine-amd64"
    CLI_ALPINE_ARM64 = "cli-alpine-arm64"


class OperatingSystem(Enum):
    """Host operating system family."""

    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "win32"


class Arch(Enum):
    """Host CPU architecture."""

    X64 = "x64"
    ARM64 = "arm64"


@dataclass(frozen=True)
class Platform:
    """Operating system and architecture pair.

    Attributes:
        os: Operating system family
        arch: CPU architecture
    """

    os: OperatingSystem
    arch: Arch

    @property
    def is_windows(self) -> bool:
        return self.os is OperatingSystem.WINDOWS

    def __str__(self) -> str:
        return f"{self.os.value}-{self.arch.value}"


@dataclass(frozen=True)
class ContainerTarget:
    """Container image and CLI download target for a containerized CLI flavor.

    Attributes:
        libc: C library of the container (glibc or musl)
        arch: Architecture label of the target
        docker_platform: Value for `docker run --platform`
        platform_name: Update service platform token of the CLI archive
        image: Container image the CLI is downloaded and run in
        fetch: Shell command prefix that downloads a URL to stdout
    """

    libc: str
    arch: str
    docker_platform: str
    platform_name: str
    image: str
    fetch: str


CONTAINER_TARGETS = {
    Flavor.CLI_LINUX_AMD64: ContainerTarget(
        "glibc", "amd64", "linux/amd64", "cli-linux-x64", "buildpack-deps:curl", "curl -fsSL"
    ),
    Flavor.CLI_LINUX_ARM64: ContainerTarget(
        "glibc", "arm64", "linux/arm64", "cli-linux-arm64", "buildpack-deps:curl", "curl -fsSL"
    ),
    Flavor.CLI_LINUX_ARMV7: ContainerTarget(
        "glibc", "armv7", "linux/arm/v7", "cli-linux-armhf", "buildpack-deps:curl", "curl -fsSL"
    ),
    Flavor.CLI_ALPINE_AMD64: ContainerTarget(
        "musl", "amd64", "linux/amd64", "cli-alpine-x64", "alpine:latest", "wget -qO-"
    ),
    Flavor.CLI_ALPINE_ARM64: ContainerTarget(
        "musl", "arm64", "linux/arm64", "cli-alpine-arm64", "alpine:latest", "wget -qO-"
    ),
}

INSTALLER_FLAVORS = frozenset(
    {
        Flavor.WINDOWS_USER_INSTALLER,
        Flavor.WINDOWS_SYSTEM_INSTALLER,
        Flavor.LINUX_DEB,
        Flavor.LINUX_RPM,
        Flavor.LINUX_SNAP,
    }
)

RUNTIME_ALIASES = {
    "web": Runtime.WEB_LOCAL,
    "vscode.dev": Runtime.WEB_REMOTE,
    "desktop": Runtime.DESKTOP_LOCAL,
}


def is_container_flavor(flavor: Flavor) -> bool:
    """Whether the CLI of this flavor is downloaded and run inside a container."""
    return flavor in CONTAINER_TARGETS


def is_installer_flavor(flavor: Flavor) -> bool:
    """Whether this flavor is an OS installer or package instead of an archive."""
    return flavor in INSTALLER_FLAVORS


def is_cli_flavor(flavor: Flavor) -> bool:
    return flavor is Flavor.CLI or is_container_flavor(flavor)


def runtime_from_string(value: Optional[str]) -> Runtime:
    """Parse a command line runtime name.

    Args:
        value: One of "desktop", "web", "vscode.dev" or None

    Returns:
        Matching Runtime, DESKTOP_LOCAL when value is None

    Raises:
        ValueError: If value is not a known runtime
    """
    if value is None:
        return Runtime.DESKTOP_LOCAL
    try:
        return RUNTIME_ALIASES[value]
    except KeyError:
        raise ValueError(f"Unknown runtime: {value}") from None


def quality_from_string(value: Optional[str]) -> Quality:
    """Parse a quality name, INSIDER when value is None."""
    if value is None:
        return Quality.INSIDER
    try:
        return Quality(value)
    except ValueError:
        raise ValueError(f"Unknown quality: {value}") from None


def flavor_from_string(value: Optional[str]) -> Flavor:
    """Parse a flavor name, DEFAULT when value is None."""
    if value is None:
        return Flavor.DEFAULT
    try:
        return Flavor(value)
    except ValueError:
        raise ValueError(f"Unknown flavor: {value}") from None


def detect_platform() -> Platform:
    """Detect the platform of the running interpreter.

    Returns:
        Platform of this host

    Raises:
        UnsupportedPlatform: If the operating system is not macOS, Linux or Windows
    """
    machine = host_platform.machine().lower()
    arch = Arch.ARM64 if machine in ("arm64", "aarch64") else Arch.X64

    if sys.platform == "win32":
        return Platform(OperatingSystem.WINDOWS, arch)
    if sys.platform == "darwin":
        return Platform(OperatingSystem.DARWIN, arch)
    if sys.platform.startswith("linux"):
        return Platform(OperatingSystem.LINUX, arch)

    raise UnsupportedPlatform(f"Unsupported platform: {sys.platform}")


@dataclass(frozen=True)
class BuildKind:
    """What kind of build to run.

    Attributes:
        runtime: Execution model
        quality: Release channel
        flavor: Packaging variant
    """

    runtime: Runtime = Runtime.DESKTOP_LOCAL
    quality: Quality = Quality.INSIDER
    flavor: Flavor = Flavor.DEFAULT

    def with_commit(self, commit: str) -> "Build":
        return Build(self.runtime, self.quality, self.flavor, commit)


@dataclass(frozen=True)
class Build(BuildKind):
    """One concrete build: a build kind at a specific commit.

    Attributes:
        commit: Full commit hash of the build
    """

    commit: str = ""

    @property
    def kind(self) -> BuildKind:
        return BuildKind(self.runtime, self.quality, self.flavor)

    @property
    def short_commit(self) -> str:
        return self.commit[:7]


@dataclass(frozen=True)
class BuildMetadata:
    """Per-build metadata from the update service.

    Attributes:
        url: Download URL of the artifact
        commit: Commit the service resolved the request to
        product_version: Product version, e.g. "1.93.1"
        sha256: Expected SHA256 hex digest of the artifact
    """

    url: str
    commit: str
    product_version: str
    sha256: str
