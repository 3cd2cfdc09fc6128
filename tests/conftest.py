"""Shared fixtures: isolated config, fake update service and scripted answers."""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from codebisect.builds.kinds import (
    Arch,
    Build,
    BuildKind,
    BuildMetadata,
    OperatingSystem,
    Platform,
)
from codebisect.config.config import BisectConfig
from codebisect.core.prompts import (
    InstallChoice,
    Prompter,
    RecoveryChoice,
    SanityChoice,
    Verdict,
)
from codebisect.errors import CatalogUnavailable, UnknownVersion
from codebisect.launch.base import NoopInstance


def commit_for(n: int) -> str:
    """Deterministic 40 character commit hash."""
    return f"{n:040x}"


class FakeCatalog:
    """In-memory update service.

    Commits are listed newest first, like the real service.
    """

    def __init__(
        self,
        commits: List[str],
        released: Optional[List[str]] = None,
        versions: Optional[Dict[str, str]] = None,
    ) -> None:
        self.commits = commits
        self.released = released if released is not None else []
        self.versions = versions or {}
        self.metadata: Dict[str, BuildMetadata] = {}
        self.list_calls: List[bool] = []
        self.metadata_calls = 0

    def __enter__(self) -> "FakeCatalog":
        return self

    def __exit__(self, *exc_info) -> None:
        pass

    def list_commits(self, kind: BuildKind, released_only: bool = False) -> List[Build]:
        self.list_calls.append(released_only)
        source = self.released if released_only else self.commits
        return [kind.with_commit(commit) for commit in source]

    def resolve_version(self, kind: BuildKind, version: str) -> Build:
        if version not in self.versions:
            raise UnknownVersion(f"No build found for version {version}")
        return kind.with_commit(self.versions[version])

    def fetch_metadata(self, build: Build) -> BuildMetadata:
        self.metadata_calls += 1
        try:
            return self.metadata[build.commit]
        except KeyError:
            raise CatalogUnavailable(f"No metadata for {build.commit}") from None


class FakeInstance(NoopInstance):
    def __init__(self) -> None:
        super().__init__()
        self.stopped = 0

    def stop(self) -> None:
        self.stopped += 1


class FakeLauncher:
    """Launcher that records launches instead of starting builds."""

    def __init__(self, failures: Optional[List[Exception]] = None) -> None:
        self.launched: List[Build] = []
        self.force_refresh: List[bool] = []
        self.instances: List[FakeInstance] = []
        self.cleaned = 0
        self.failures = list(failures or [])

    def launch(self, build: Build, force_refresh: bool = False) -> FakeInstance:
        self.launched.append(build)
        self.force_refresh.append(force_refresh)
        if self.failures:
            raise self.failures.pop(0)
        instance = FakeInstance()
        self.instances.append(instance)
        return instance

    def clean_user_data_dir(self) -> None:
        self.cleaned += 1


class ScriptedPrompter(Prompter):
    """Prompter answering from scripts or from a verdict oracle."""

    def __init__(
        self,
        verdicts: Optional[List[Verdict]] = None,
        oracle: Optional[Callable[[Build], Verdict]] = None,
        recoveries: Optional[List[RecoveryChoice]] = None,
        installs: Optional[List[InstallChoice]] = None,
        sanity: Optional[List[SanityChoice]] = None,
        confirms: bool = False,
    ) -> None:
        self.verdicts = list(verdicts or [])
        self.oracle = oracle
        self.recoveries = list(recoveries or [])
        self.installs = list(installs or [])
        self.sanity = list(sanity or [])
        self.confirms = confirms
        self.asked: List[Build] = []
        self.install_commands: List[str] = []

    def ask_verdict(self, build: Build, elapsed: Optional[float] = None) -> Verdict:
        self.asked.append(build)
        if self.verdicts:
            return self.verdicts.pop(0)
        if self.oracle is not None:
            return self.oracle(build)
        return Verdict.QUIT

    def ask_recovery(self, build: Build, error: Exception) -> RecoveryChoice:
        return self.recoveries.pop(0) if self.recoveries else RecoveryChoice.ABORT

    def ask_install(self, command: str) -> InstallChoice:
        self.install_commands.append(command)
        return self.installs.pop(0) if self.installs else InstallChoice.SKIP

    def ask_sanity(self, build: Build, is_last: bool) -> SanityChoice:
        self.asked.append(build)
        return self.sanity.pop(0) if self.sanity else SanityChoice.NEXT

    def ask_commit(self, question: str) -> Optional[str]:
        return None

    def confirm(self, question: str) -> bool:
        return self.confirms

    def wait(self, message: str) -> None:
        pass


@pytest.fixture
def config(tmp_path: Path) -> BisectConfig:
    return BisectConfig(cache_root=tmp_path / "cache")


@pytest.fixture
def linux_x64() -> Platform:
    return Platform(OperatingSystem.LINUX, Arch.X64)


@pytest.fixture
def windows_x64() -> Platform:
    return Platform(OperatingSystem.WINDOWS, Arch.X64)


@pytest.fixture
def darwin_arm64() -> Platform:
    return Platform(OperatingSystem.DARWIN, Arch.ARM64)
