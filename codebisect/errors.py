#!/usr/bin/env python3
"""Exception hierarchy for build resolution, caching and launching.

Every error raised on purpose by codebisect derives from BisectError so the
command line can report it uniformly.
"""


class BisectError(Exception):
    """Base exception for codebisect errors."""


class CatalogError(BisectError):
    """Base exception for update service errors."""


class CatalogUnavailable(CatalogError):
    """Update service answered with a bad status or an unexpected payload."""


class UnknownVersion(CatalogError):
    """No build exists for the requested major.minor version."""


class CommitNotFound(BisectError):
    """A good or bad commit is not part of the list of builds."""


class InvalidRange(BisectError):
    """Bad commit is not strictly newer than the good commit."""


class InvalidCommit(BisectError):
    """Input is neither a full commit hash nor a major.minor version."""


class ArtifactError(BisectError):
    """Base exception for download, verification and extraction errors."""


class DownloadFailed(ArtifactError):
    """Network or disk failure while downloading a build."""


class IntegrityError(ArtifactError):
    """Downloaded build does not match the expected SHA256 checksum."""


class ExtractionFailed(ArtifactError):
    """Archive tool failed to extract a downloaded build."""


class MissingExecutable(ArtifactError):
    """Expected executable is absent after extraction."""


class LaunchError(BisectError):
    """Build process could not be started or exited before it was ready."""


class UnsupportedPlatform(BisectError, ValueError):
    """Runtime, flavor and operating system combination has no mapping."""
