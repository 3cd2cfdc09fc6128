"""Tests for the update service client against a mocked transport."""

import httpx
import pytest

from codebisect.builds.kinds import Build, BuildKind, Flavor, Quality, Runtime
from codebisect.catalog.client import CatalogClient
from codebisect.errors import CatalogUnavailable, UnknownVersion


COMMIT = "c" * 40

METADATA = {
    "url": "https://az.example.com/insider/ccc/code-insider-x64.tar.gz",
    "name": "1.94.0-insider",
    "version": COMMIT,
    "productVersion": "1.94.0-insider",
    "sha256hash": "ab" * 32,
}


def make_client(config, platform, handler):
    transport = httpx.MockTransport(handler)
    return CatalogClient(config, platform, client=httpx.Client(transport=transport))


class TestListCommits:
    def test_lists_builds_newest_first(self, config, linux_x64):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=["c3" * 20, "c2" * 20, "c1" * 20])

        with make_client(config, linux_x64, handler) as catalog:
            builds = catalog.list_commits(BuildKind())

        assert [b.commit for b in builds] == ["c3" * 20, "c2" * 20, "c1" * 20]
        assert all(b.kind == BuildKind() for b in builds)
        assert seen[0].url.path == "/api/commits/insider/linux-x64"
        assert seen[0].url.params["released"] == "false"

    def test_released_only_and_server_token(self, config, linux_x64):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        kind = BuildKind(runtime=Runtime.WEB_LOCAL, quality=Quality.STABLE)
        with make_client(config, linux_x64, handler) as catalog:
            assert catalog.list_commits(kind, released_only=True) == []

        assert seen[0].url.path == "/api/commits/stable/server-linux-x64-web"
        assert seen[0].url.params["released"] == "true"

    def test_server_error(self, config, linux_x64):
        with make_client(config, linux_x64, lambda request: httpx.Response(503)) as catalog:
            with pytest.raises(CatalogUnavailable, match="503"):
                catalog.list_commits(BuildKind())

    def test_unexpected_payload(self, config, linux_x64):
        handler = lambda request: httpx.Response(200, json={"commits": []})  # noqa: E731
        with make_client(config, linux_x64, handler) as catalog:
            with pytest.raises(CatalogUnavailable):
                catalog.list_commits(BuildKind())

    def test_invalid_json(self, config, linux_x64):
        handler = lambda request: httpx.Response(200, content=b"<html>")  # noqa: E731
        with make_client(config, linux_x64, handler) as catalog:
            with pytest.raises(CatalogUnavailable, match="invalid JSON"):
                catalog.list_commits(BuildKind())

    def test_network_failure(self, config, linux_x64):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(config, linux_x64, handler) as catalog:
            with pytest.raises(CatalogUnavailable, match="connection refused"):
                catalog.list_commits(BuildKind())


class TestResolveVersion:
    def test_insider_version(self, config, linux_x64):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=METADATA)

        with make_client(config, linux_x64, handler) as catalog:
            build = catalog.resolve_version(BuildKind(), "1.94")

        assert build == BuildKind().with_commit(COMMIT)
        assert seen[0].url.path == "/api/versions/1.94.0-insider/linux-x64/insider"
        assert seen[0].url.params["released"] == "true"

    def test_stable_version_has_no_suffix(self, config, linux_x64):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=METADATA)

        with make_client(config, linux_x64, handler) as catalog:
            catalog.resolve_version(BuildKind(quality=Quality.STABLE), "1.93")

        assert seen[0].url.path == "/api/versions/1.93.0/linux-x64/stable"

    def test_unknown_version(self, config, linux_x64):
        with make_client(config, linux_x64, lambda request: httpx.Response(404)) as catalog:
            with pytest.raises(UnknownVersion):
                catalog.resolve_version(BuildKind(), "0.1")


class TestFetchMetadata:
    def test_metadata_fields(self, config, linux_x64):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=METADATA)

        build = Build(flavor=Flavor.LINUX_DEB, commit=COMMIT)
        with make_client(config, linux_x64, handler) as catalog:
            meta = catalog.fetch_metadata(build)

        assert seen[0].url.path == f"/api/versions/commit:{COMMIT}/linux-deb-x64/insider"
        assert meta.url == METADATA["url"]
        assert meta.commit == COMMIT
        assert meta.product_version == "1.94.0-insider"
        assert meta.sha256 == "ab" * 32

    def test_missing_fields(self, config, linux_x64):
        payload = {"url": "https://example.com/x.zip", "version": COMMIT}
        handler = lambda request: httpx.Response(200, json=payload)  # noqa: E731
        with make_client(config, linux_x64, handler) as catalog:
            with pytest.raises(CatalogUnavailable, match="unexpected build metadata"):
                catalog.fetch_metadata(Build(commit=COMMIT))

    def test_base_url_from_config(self, config, linux_x64):
        config.catalog_url = "https://mirror.example.com/"
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=METADATA)

        with make_client(config, linux_x64, handler) as catalog:
            catalog.fetch_metadata(Build(commit=COMMIT))

        assert seen[0].url.host == "mirror.example.com"
