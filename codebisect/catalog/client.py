#!/usr/bin/env python3
"""Update service client.

Lists the commits of a build kind, resolves major.minor versions to commits
and fetches per-build metadata. Responses are never cached.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from codebisect.builds.kinds import Build, BuildKind, BuildMetadata, Platform, Quality, detect_platform
from codebisect.builds.naming import catalog_name, metadata_name
from codebisect.config.config import BisectConfig
from codebisect.errors import CatalogUnavailable, UnknownVersion


logger = logging.getLogger(__name__)

# Constants
METADATA_FIELDS = ("url", "version", "productVersion", "sha256hash")
VERSION_SUFFIXES = {
    Quality.INSIDER: "-insider",
    Quality.EXPLORATION: "-exploration",
    Quality.STABLE: "",
}


class CatalogClient:
    """Client for the update service API.

    Attributes:
        base_url: Base URL of the update service
        platform: Host platform used to pick platform tokens
        client: Underlying HTTP client
    """

    def __init__(
        self,
        config: BisectConfig,
        platform: Optional[Platform] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize catalog client.

        Args:
            config: Session configuration
            platform: Host platform (detected when None)
            client: HTTP client to use (created when None)
        """
        self.base_url = config.catalog_url.rstrip("/")
        self.platform = platform or detect_platform()
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=config.request_timeout, follow_redirects=True
        )

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = f"{self.base_url}/api/{path}"
        logger.debug(f"GET {url} {params or ''}")
        try:
            return self.client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise CatalogUnavailable(f"Failed to reach update server at {url}: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code != 200:
            raise CatalogUnavailable(
                f"Failed to get response from update server "
                f"(code: {response.status_code}, message: {response.reason_phrase})"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogUnavailable(f"Update server returned invalid JSON: {exc}") from exc

    @staticmethod
    def _metadata(payload: Any) -> BuildMetadata:
        if not isinstance(payload, dict) or any(field not in payload for field in METADATA_FIELDS):
            raise CatalogUnavailable(f"Update server returned unexpected build metadata: {payload!r}")

        return BuildMetadata(
            url=payload["url"],
            commit=payload["version"],
            product_version=payload["productVersion"],
            sha256=payload["sha256hash"],
        )

    def list_commits(self, kind: BuildKind, released_only: bool = False) -> List[Build]:
        """List all builds of a build kind, newest first.

        Args:
            kind: Build kind to list
            released_only: Only list builds that were released

        Returns:
            Builds ordered newest first

        Raises:
            CatalogUnavailable: If the service fails or returns an unexpected payload
        """
        path = f"commits/{kind.quality.value}/{catalog_name(kind, self.platform)}"
        logger.info(f"Fetching all builds from {self.base_url}/api/{path}...")

        commits = self._json(
            self._get(path, params={"released": "true" if released_only else "false"})
        )
        if not isinstance(commits, list) or not all(isinstance(c, str) for c in commits):
            raise CatalogUnavailable("Update server returned an unexpected list of commits")

        return [kind.with_commit(commit) for commit in commits]

    def resolve_version(self, kind: BuildKind, version: str) -> Build:
        """Resolve a major.minor version to the latest build of that version.

        Args:
            kind: Build kind
            version: Version in major.minor form, e.g. "1.93"

        Returns:
            Build for the resolved commit

        Raises:
            UnknownVersion: If the service has no build of that version
            CatalogUnavailable: If the service fails otherwise
        """
        suffix = VERSION_SUFFIXES[kind.quality]
        path = (
            f"versions/{version}.0{suffix}/{catalog_name(kind, self.platform)}/{kind.quality.value}"
        )
        response = self._get(path, params={"released": "true"})
        if response.status_code == 404:
            raise UnknownVersion(f"No {kind.quality.value} build found for version {version}")

        metadata = self._metadata(self._json(response))
        logger.info(
            f"Latest {kind.quality.value} build with version {version} is {metadata.commit}"
        )
        return kind.with_commit(metadata.commit)

    def fetch_metadata(self, build: Build) -> BuildMetadata:
        """Fetch download URL, checksum and product version of a build.

        Raises:
            CatalogUnavailable: If the service fails or returns an unexpected payload
        """
        path = (
            f"versions/commit:{build.commit}/"
            f"{metadata_name(build, self.platform)}/{build.quality.value}"
        )
        return self._metadata(self._json(self._get(path)))
