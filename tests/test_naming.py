"""Tests for artifact naming across platforms, qualities and flavors."""

from pathlib import Path

import pytest

from codebisect.builds.kinds import (
    Build,
    BuildKind,
    BuildMetadata,
    Flavor,
    Quality,
    Runtime,
)
from codebisect.builds.naming import (
    archive_stem,
    cache_folder_name,
    catalog_name,
    compare_url,
    container_download_url,
    download_name,
    executable_candidates,
    extraction_destination,
    hosted_url,
    installed_folder_name,
    metadata_name,
    requires_metadata,
)
from codebisect.errors import UnsupportedPlatform


COMMIT = "0123456789abcdef0123456789abcdef01234567"

DESKTOP = BuildKind()
SERVER = BuildKind(runtime=Runtime.WEB_LOCAL)
CLI = BuildKind(flavor=Flavor.CLI)


def metadata(url="https://example.com/download/file.bin", version="1.93.1"):
    return BuildMetadata(url=url, commit=COMMIT, product_version=version, sha256="00")


class TestPlatformTokens:
    def test_desktop(self, linux_x64, windows_x64, darwin_arm64):
        assert catalog_name(DESKTOP, linux_x64) == "linux-x64"
        assert catalog_name(DESKTOP, windows_x64) == "win32-x64"
        assert catalog_name(DESKTOP, darwin_arm64) == "darwin-arm64"

    def test_windows_archive_metadata(self, windows_x64):
        assert metadata_name(DESKTOP, windows_x64) == "win32-x64-archive"

    def test_server_on_darwin(self, darwin_arm64):
        assert catalog_name(SERVER, darwin_arm64) == "server-darwin-web"
        assert metadata_name(SERVER, darwin_arm64) == "server-darwin-arm64-web"

    def test_remote_web_uses_server_tokens(self, linux_x64):
        remote = BuildKind(runtime=Runtime.WEB_REMOTE)
        assert catalog_name(remote, linux_x64) == "server-linux-x64-web"

    def test_linux_packages_list_like_desktop(self, linux_x64):
        deb = BuildKind(flavor=Flavor.LINUX_DEB)
        assert catalog_name(deb, linux_x64) == "linux-x64"
        assert metadata_name(deb, linux_x64) == "linux-deb-x64"

    def test_cli(self, linux_x64, darwin_arm64):
        assert metadata_name(CLI, linux_x64) == "cli-linux-x64"
        assert metadata_name(CLI, darwin_arm64) == "cli-darwin-arm64"

    def test_container_flavor_uses_target_token(self, darwin_arm64):
        alpine = BuildKind(flavor=Flavor.CLI_ALPINE_AMD64)
        assert catalog_name(alpine, darwin_arm64) == "darwin-arm64"
        assert metadata_name(alpine, darwin_arm64) == "cli-alpine-x64"

    def test_unsupported_combination(self, darwin_arm64, windows_x64):
        with pytest.raises(UnsupportedPlatform):
            catalog_name(BuildKind(flavor=Flavor.LINUX_DEB), darwin_arm64)
        with pytest.raises(UnsupportedPlatform):
            catalog_name(BuildKind(flavor=Flavor.DARWIN_UNIVERSAL), windows_x64)


class TestDownloadNames:
    def test_linux_name_comes_from_metadata_url(self, linux_x64):
        meta = metadata(url="https://az.example.com/insider/abc/code-insider-x64-1726.tar.gz")
        assert requires_metadata(DESKTOP, linux_x64)
        assert download_name(DESKTOP, linux_x64, meta) == "code-insider-x64-1726.tar.gz"

    def test_windows_name_needs_product_version(self, windows_x64):
        assert requires_metadata(DESKTOP, windows_x64)
        with pytest.raises(ValueError):
            download_name(DESKTOP, windows_x64)
        assert download_name(DESKTOP, windows_x64, metadata()) == "VSCode-win32-x64-1.93.1.zip"

    def test_static_names(self, darwin_arm64, linux_x64):
        assert not requires_metadata(DESKTOP, darwin_arm64)
        assert download_name(DESKTOP, darwin_arm64) == "VSCode-darwin-arm64.zip"
        assert download_name(SERVER, linux_x64) == "vscode-server-linux-x64-web.tar.gz"

    def test_windows_installers(self, windows_x64):
        user = BuildKind(flavor=Flavor.WINDOWS_USER_INSTALLER)
        system = BuildKind(flavor=Flavor.WINDOWS_SYSTEM_INSTALLER)
        assert download_name(user, windows_x64, metadata()) == "VSCodeUserSetup-x64-1.93.1.exe"
        assert download_name(system, windows_x64, metadata()) == "VSCodeSetup-x64-1.93.1.exe"


class TestInstalledLayout:
    def test_darwin_app_bundle_by_quality(self, darwin_arm64):
        stable = BuildKind(quality=Quality.STABLE)
        assert installed_folder_name(DESKTOP, darwin_arm64) == "Visual Studio Code - Insiders.app"
        assert installed_folder_name(stable, darwin_arm64) == "Visual Studio Code.app"

    def test_exploration_is_named_like_insiders(self, linux_x64):
        exploration = BuildKind(quality=Quality.EXPLORATION, flavor=Flavor.CLI)
        assert installed_folder_name(exploration, linux_x64) == "code-insiders"

    def test_linux_desktop_executable(self, linux_x64, tmp_path):
        candidates = executable_candidates(DESKTOP, linux_x64, tmp_path)
        assert candidates == [tmp_path / "VSCode-linux-x64" / "code-insiders"]

    def test_server_executables_prefer_old_layout(self, linux_x64, tmp_path):
        stable = BuildKind(runtime=Runtime.WEB_LOCAL, quality=Quality.STABLE)
        folder = tmp_path / "vscode-server-linux-x64-web"
        assert executable_candidates(stable, linux_x64, tmp_path) == [
            folder / "server.sh",
            folder / "bin" / "code-server",
        ]

    def test_windows_desktop_executable(self, windows_x64, tmp_path):
        candidates = executable_candidates(DESKTOP, windows_x64, tmp_path, "1.93.1")
        assert candidates == [tmp_path / "VSCode-win32-x64-1.93.1" / "Code - Insiders.exe"]

    def test_darwin_executable(self, darwin_arm64, tmp_path):
        candidates = executable_candidates(DESKTOP, darwin_arm64, tmp_path)
        assert candidates == [
            tmp_path / "Visual Studio Code - Insiders.app" / "Contents" / "MacOS" / "Electron"
        ]

    def test_windows_cli_is_a_single_file(self, windows_x64, tmp_path):
        assert installed_folder_name(CLI, windows_x64) == "code-insiders.exe"
        assert executable_candidates(CLI, windows_x64, tmp_path) == [
            tmp_path / "code-insiders.exe"
        ]

    def test_installers_have_no_executable(self, linux_x64, tmp_path):
        rpm = BuildKind(flavor=Flavor.LINUX_RPM)
        assert executable_candidates(rpm, linux_x64, tmp_path) == []


class TestExtractionDestination:
    def test_single_top_level_folder(self, linux_x64, tmp_path):
        archive = tmp_path / "code.tar.gz"
        assert extraction_destination(DESKTOP, linux_x64, archive) == tmp_path

    def test_windows_archive_extracts_into_stem(self, windows_x64, tmp_path):
        archive = tmp_path / "VSCode-win32-x64-1.93.1.zip"
        assert extraction_destination(DESKTOP, windows_x64, archive) == (
            tmp_path / "VSCode-win32-x64-1.93.1"
        )

    def test_installers_are_not_extracted(self, windows_x64, tmp_path):
        user = BuildKind(flavor=Flavor.WINDOWS_USER_INSTALLER)
        assert extraction_destination(user, windows_x64, tmp_path / "setup.exe") is None

    def test_archive_stem(self):
        assert archive_stem("a.tar.gz") == "a"
        assert archive_stem("b.zip") == "b"
        assert archive_stem("c.exe") == "c.exe"


class TestCacheFolderName:
    def test_insider_default(self, linux_x64):
        assert cache_folder_name(COMMIT, Quality.INSIDER, Flavor.DEFAULT, linux_x64) == COMMIT

    def test_windows_uses_short_commit(self, windows_x64):
        assert cache_folder_name(COMMIT, Quality.INSIDER, Flavor.DEFAULT, windows_x64) == "012345"

    def test_prefixes(self, linux_x64, windows_x64):
        assert cache_folder_name(COMMIT, Quality.STABLE, Flavor.DEFAULT, linux_x64) == (
            f"stable-{COMMIT}"
        )
        assert cache_folder_name(COMMIT, Quality.EXPLORATION, Flavor.CLI, linux_x64) == (
            f"exploration-cli-{COMMIT}"
        )
        assert cache_folder_name(COMMIT, Quality.STABLE, Flavor.WINDOWS_USER_INSTALLER, windows_x64) == (
            "stable-win32-user-012345"
        )

    def test_distinct_kinds_never_collide(self, linux_x64):
        names = {
            cache_folder_name(COMMIT, quality, flavor, linux_x64)
            for quality in Quality
            for flavor in Flavor
        }
        assert len(names) == len(Quality) * len(Flavor)


class TestUrls:
    def test_hosted_url_by_quality(self):
        assert hosted_url(COMMIT, Quality.INSIDER) == (
            f"https://insiders.vscode.dev/?vscode-version={COMMIT}"
        )
        assert hosted_url(COMMIT, Quality.EXPLORATION) == (
            f"https://vscode.dev/?vscode-version={COMMIT}"
        )
        assert hosted_url(COMMIT, Quality.STABLE) == f"https://vscode.dev/?vscode-version={COMMIT}"

    def test_hosted_url_with_token(self):
        assert hosted_url(COMMIT, Quality.STABLE, token="ghp_x") == (
            "https://vscode.dev/github/microsoft/vscode/blob/main/package.json"
            f"?vscode-version={COMMIT}"
        )

    def test_compare_url(self):
        assert compare_url("aaa", "bbb") == "https://github.com/microsoft/vscode/compare/aaa...bbb"

    def test_container_download_url(self):
        build = Build(flavor=Flavor.CLI_LINUX_ARMV7, commit=COMMIT)
        assert container_download_url(build) == (
            f"https://update.code.visualstudio.com/commit:{COMMIT}/cli-linux-armhf/insider"
        )

    def test_container_download_url_rejects_host_flavors(self):
        with pytest.raises(UnsupportedPlatform):
            container_download_url(Build(flavor=Flavor.CLI, commit=COMMIT))
