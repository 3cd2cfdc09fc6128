#!/usr/bin/env python3
"""Artifact naming.

Maps a build kind on a host platform to the names the update service and the
archives use: the platform token for listing commits and fetching metadata,
the download file name, the folder the archive extracts to, and the
executable inside it.

Naming is irregular across platforms, so all of it lives in one table keyed
by (surface, operating system, flavor). Template fields:

    {arch}         x64 / arm64
    {darwin_arch}  "" on Intel macs, "-arm64" on Apple silicon
    {version}      product version from build metadata
    {suffix}       "-insiders" for Insider and Exploration, else ""
    {app}          macOS application bundle name
    {exe}          Windows executable name without extension
    {folder}       the resolved installed folder name

A download template of None means the file name is the last segment of the
metadata download URL (Linux archives carry a build timestamp).
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from codebisect.builds.kinds import (
    CONTAINER_TARGETS,
    Arch,
    Build,
    BuildKind,
    BuildMetadata,
    Flavor,
    OperatingSystem,
    Platform,
    Quality,
    Runtime,
    is_container_flavor,
)
from codebisect.errors import UnsupportedPlatform


# Constants
WINDOWS_COMMIT_FOLDER_LENGTH = 6
DEFAULT_HOSTED_WEB_URL = "https://{host}vscode.dev"
DEFAULT_COMPARE_URL = "https://github.com/microsoft/vscode/compare/{good}...{bad}"
DEFAULT_UPDATE_URL = "https://update.code.visualstudio.com"


class Surface(Enum):
    """Which product surface a build kind resolves to."""

    SERVER = "server"
    DESKTOP = "desktop"
    CLI = "cli"


class Extract(Enum):
    """Where an archive is extracted relative to the cache folder."""

    # archive contains a single top level folder
    PARENT = "parent"
    # archive has no top level folder, extract into <cache>/<archive stem>
    STEM = "stem"
    # installers and packages are used as downloaded
    NONE = "none"


@dataclass(frozen=True)
class NamingEntry:
    """Naming strategy for one (surface, OS, flavor) combination."""

    catalog: str
    metadata: str
    download: Optional[str]
    folder: str = ""
    executable: Tuple[Tuple[str, ...], ...] = ()
    extract: Extract = Extract.PARENT


_SERVER_UNIX_EXECUTABLES = (
    ("{folder}", "server.sh"),  # builds before 1.64
    ("{folder}", "bin", "code-server{suffix}"),
)

_DARWIN_APP = ("{folder}", "Contents", "MacOS", "Electron")

NAMING_TABLE: Dict[Tuple[Surface, OperatingSystem, Flavor], NamingEntry] = {
    # Server (local and remote web)
    (Surface.SERVER, OperatingSystem.DARWIN, Flavor.DEFAULT): NamingEntry(
        catalog="server-darwin-web",
        metadata="server-darwin{darwin_arch}-web",
        download="vscode-server-darwin-{arch}-web.zip",
        folder="vscode-server-darwin-{arch}-web",
        executable=_SERVER_UNIX_EXECUTABLES,
    ),
    (Surface.SERVER, OperatingSystem.LINUX, Flavor.DEFAULT): NamingEntry(
        catalog="server-linux-{arch}-web",
        metadata="server-linux-{arch}-web",
        download="vscode-server-linux-{arch}-web.tar.gz",
        folder="vscode-server-linux-{arch}-web",
        executable=_SERVER_UNIX_EXECUTABLES,
    ),
    (Surface.SERVER, OperatingSystem.WINDOWS, Flavor.DEFAULT): NamingEntry(
        catalog="server-win32-{arch}-web",
        metadata="server-win32-{arch}-web",
        download="vscode-server-win32-{arch}-web.zip",
        folder="vscode-server-win32-{arch}-web",
        executable=(
            ("{folder}", "server.cmd"),  # builds before 1.64
            ("{folder}", "{folder}", "bin", "code-server{suffix}.cmd"),
        ),
        extract=Extract.STEM,
    ),
    # Desktop
    (Surface.DESKTOP, OperatingSystem.DARWIN, Flavor.DEFAULT): NamingEntry(
        catalog="darwin{darwin_arch}",
        metadata="darwin{darwin_arch}",
        download="VSCode-darwin{darwin_arch}.zip",
        folder="{app}.app",
        executable=(_DARWIN_APP,),
    ),
    (Surface.DESKTOP, OperatingSystem.DARWIN, Flavor.DARWIN_UNIVERSAL): NamingEntry(
        catalog="darwin-universal",
        metadata="darwin-universal",
        download="VSCode-darwin-universal.zip",
        folder="{app}.app",
        executable=(_DARWIN_APP,),
    ),
    (Surface.DESKTOP, OperatingSystem.LINUX, Flavor.DEFAULT): NamingEntry(
        catalog="linux-{arch}",
        metadata="linux-{arch}",
        download=None,
        folder="VSCode-linux-{arch}",
        executable=(("{folder}", "code{suffix}"),),
    ),
    (Surface.DESKTOP, OperatingSystem.LINUX, Flavor.LINUX_DEB): NamingEntry(
        catalog="linux-{arch}",
        metadata="linux-deb-{arch}",
        download=None,
        extract=Extract.NONE,
    ),
    (Surface.DESKTOP, OperatingSystem.LINUX, Flavor.LINUX_RPM): NamingEntry(
        catalog="linux-{arch}",
        metadata="linux-rpm-{arch}",
        download=None,
        extract=Extract.NONE,
    ),
    (Surface.DESKTOP, OperatingSystem.LINUX, Flavor.LINUX_SNAP): NamingEntry(
        catalog="linux-{arch}",
        metadata="linux-snap-{arch}",
        download=None,
        extract=Extract.NONE,
    ),
    (Surface.DESKTOP, OperatingSystem.WINDOWS, Flavor.DEFAULT): NamingEntry(
        catalog="win32-{arch}",
        metadata="win32-{arch}-archive",
        download="VSCode-win32-{arch}-{version}.zip",
        folder="VSCode-win32-{arch}-{version}",
        executable=(("{folder}", "{exe}.exe"),),
        extract=Extract.STEM,
    ),
    (Surface.DESKTOP, OperatingSystem.WINDOWS, Flavor.WINDOWS_USER_INSTALLER): NamingEntry(
        catalog="win32-{arch}",
        metadata="win32-{arch}-user",
        download="VSCodeUserSetup-{arch}-{version}.exe",
        extract=Extract.NONE,
    ),
    (Surface.DESKTOP, OperatingSystem.WINDOWS, Flavor.WINDOWS_SYSTEM_INSTALLER): NamingEntry(
        catalog="win32-{arch}",
        metadata="win32-{arch}",
        download="VSCodeSetup-{arch}-{version}.exe",
        extract=Extract.NONE,
    ),
    # Standalone CLI
    (Surface.CLI, OperatingSystem.DARWIN, Flavor.CLI): NamingEntry(
        catalog="darwin{darwin_arch}",
        metadata="cli-darwin-{arch}",
        download="vscode_cli_darwin_{arch}_cli.zip",
        folder="code{suffix}",
        executable=(("{folder}",),),
    ),
    (Surface.CLI, OperatingSystem.LINUX, Flavor.CLI): NamingEntry(
        catalog="linux-{arch}",
        metadata="cli-linux-{arch}",
        download="vscode_cli_linux_{arch}_cli.tar.gz",
        folder="code{suffix}",
        executable=(("{folder}",),),
    ),
    (Surface.CLI, OperatingSystem.WINDOWS, Flavor.CLI): NamingEntry(
        catalog="win32-{arch}",
        metadata="cli-win32-{arch}",
        download="vscode_cli_win32_{arch}_cli.zip",
        folder="code{suffix}.exe",
        executable=(("{folder}",),),
    ),
}


def surface_of(kind: BuildKind) -> Surface:
    """Product surface a build kind resolves to."""
    if kind.runtime in (Runtime.WEB_LOCAL, Runtime.WEB_REMOTE):
        return Surface.SERVER
    if kind.flavor is Flavor.CLI:
        return Surface.CLI
    return Surface.DESKTOP


def lookup(kind: BuildKind, platform: Platform) -> NamingEntry:
    """Find the naming entry for a build kind.

    Containerized CLI flavors list commits like the default desktop build of
    the host, since the container target is independent of the host.

    Raises:
        UnsupportedPlatform: If the combination has no entry
    """
    surface = surface_of(kind)
    flavor = kind.flavor
    if surface is Surface.SERVER or is_container_flavor(flavor):
        flavor = Flavor.DEFAULT

    try:
        return NAMING_TABLE[(surface, platform.os, flavor)]
    except KeyError:
        raise UnsupportedPlatform(
            f"Flavor '{kind.flavor.value}' of runtime '{kind.runtime.value}' "
            f"is not available on {platform}"
        ) from None


def _is_insiders_naming(quality: Quality) -> bool:
    # Exploration builds are named like Insiders builds
    return quality in (Quality.INSIDER, Quality.EXPLORATION)


def _fields(
    kind: BuildKind, platform: Platform, product_version: Optional[str] = None
) -> Dict[str, str]:
    insiders = _is_insiders_naming(kind.quality)
    fields = {
        "arch": platform.arch.value,
        "darwin_arch": "-arm64" if platform.arch is Arch.ARM64 else "",
        "suffix": "-insiders" if insiders else "",
        "app": "Visual Studio Code - Insiders" if insiders else "Visual Studio Code",
        "exe": "Code - Insiders" if insiders else "Code",
    }
    if product_version is not None:
        fields["version"] = product_version
    return fields


def _render(template: str, fields: Dict[str, str]) -> str:
    try:
        return template.format(**fields)
    except KeyError as exc:
        raise ValueError(f"Build metadata is required to resolve '{template}' ({exc})") from None


def catalog_name(kind: BuildKind, platform: Platform) -> str:
    """Platform token used to list commits and resolve versions."""
    return _render(lookup(kind, platform).catalog, _fields(kind, platform))


def metadata_name(kind: BuildKind, platform: Platform) -> str:
    """Platform token used to fetch the metadata of a single build."""
    target = CONTAINER_TARGETS.get(kind.flavor)
    if target is not None:
        return target.platform_name
    return _render(lookup(kind, platform).metadata, _fields(kind, platform))


def requires_metadata(kind: BuildKind, platform: Platform) -> bool:
    """Whether the download name can only be derived from build metadata."""
    entry = lookup(kind, platform)
    return entry.download is None or "{version}" in entry.download


def download_name(
    kind: BuildKind, platform: Platform, metadata: Optional[BuildMetadata] = None
) -> str:
    """File name of the downloaded artifact.

    Args:
        kind: Build kind
        platform: Host platform
        metadata: Build metadata, required when requires_metadata() is True

    Returns:
        Download file name

    Raises:
        ValueError: If metadata is required but missing
    """
    entry = lookup(kind, platform)
    if entry.download is None:
        if metadata is None:
            raise ValueError(f"Build metadata is required to name {kind.flavor.value} downloads")
        return Path(urlparse(metadata.url).path).name

    version = metadata.product_version if metadata else None
    return _render(entry.download, _fields(kind, platform, version))


def installed_folder_name(
    kind: BuildKind, platform: Platform, product_version: Optional[str] = None
) -> str:
    """Name of the folder (or single file) the archive extracts to."""
    entry = lookup(kind, platform)
    return _render(entry.folder, _fields(kind, platform, product_version))


def extract_mode(kind: BuildKind, platform: Platform) -> Extract:
    return lookup(kind, platform).extract


def extraction_destination(kind: BuildKind, platform: Platform, archive: Path) -> Optional[Path]:
    """Directory an archive is extracted into, None for installers."""
    mode = extract_mode(kind, platform)
    if mode is Extract.NONE:
        return None
    if mode is Extract.STEM:
        return archive.parent / archive_stem(archive.name)
    return archive.parent


def archive_stem(name: str) -> str:
    for suffix in (".tar.gz", ".zip"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def executable_candidates(
    kind: BuildKind, platform: Platform, build_dir: Path, product_version: Optional[str] = None
) -> List[Path]:
    """Possible executable locations inside a cache folder, preferred first.

    Args:
        kind: Build kind
        platform: Host platform
        build_dir: Cache folder of the build
        product_version: Product version, needed on Windows

    Returns:
        Candidate paths; empty for installer flavors
    """
    entry = lookup(kind, platform)
    fields = _fields(kind, platform, product_version)
    fields["folder"] = _render(entry.folder, fields)
    return [
        build_dir.joinpath(*(_render(part, fields) for part in parts))
        for parts in entry.executable
    ]


def cache_folder_name(commit: str, quality: Quality, flavor: Flavor, platform: Platform) -> str:
    """Unique cache folder name of a build.

    Windows keeps the commit short for the maximum path length. Non-insider
    qualities and non-default flavors are prefixed so entries never collide.
    """
    name = commit[:WINDOWS_COMMIT_FOLDER_LENGTH] if platform.is_windows else commit

    prefixes = []
    if quality is Quality.STABLE:
        prefixes.append("stable")
    elif quality is Quality.EXPLORATION:
        prefixes.append("exploration")
    if flavor is not Flavor.DEFAULT:
        prefixes.append(flavor.value)

    if prefixes:
        name = f"{'-'.join(prefixes)}-{name}"
    return name


def hosted_url(
    commit: str,
    quality: Quality,
    token: Optional[str] = None,
    base: str = DEFAULT_HOSTED_WEB_URL,
) -> str:
    """URL of a commit on the hosted web version.

    With a token the github route is used so the session is authenticated.
    Only Insiders builds are served from the insiders host; Exploration
    builds use the stable host even though they carry Insiders names.
    """
    root = base.format(host="insiders." if quality is Quality.INSIDER else "")
    if token:
        return f"{root}/github/microsoft/vscode/blob/main/package.json?vscode-version={commit}"
    return f"{root}/?vscode-version={commit}"


def compare_url(good: str, bad: str, template: str = DEFAULT_COMPARE_URL) -> str:
    return template.format(good=good, bad=bad)


def container_download_url(build: Build, base: str = DEFAULT_UPDATE_URL) -> str:
    """Direct download URL of the CLI archive for a containerized CLI flavor."""
    target = CONTAINER_TARGETS.get(build.flavor)
    if target is None:
        raise UnsupportedPlatform(f"Flavor '{build.flavor.value}' does not run in a container")
    return f"{base}/commit:{build.commit}/{target.platform_name}/{build.quality.value}"
