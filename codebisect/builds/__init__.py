"""Build descriptors and artifact naming."""

from codebisect.builds.kinds import (
    Arch,
    Build,
    BuildKind,
    BuildMetadata,
    Flavor,
    OperatingSystem,
    Platform,
    Quality,
    Runtime,
    detect_platform,
    flavor_from_string,
    quality_from_string,
    runtime_from_string,
)


__all__ = [
    "Arch",
    "Build",
    "BuildKind",
    "BuildMetadata",
    "Flavor",
    "OperatingSystem",
    "Platform",
    "Quality",
    "Runtime",
    "detect_platform",
    "flavor_from_string",
    "quality_from_string",
    "runtime_from_string",
]
