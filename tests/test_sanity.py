"""Tests for sanity check mode."""

from codebisect.builds.kinds import Arch, Flavor, OperatingSystem, Platform, Quality, Runtime
from codebisect.core.prompts import RecoveryChoice, SanityChoice
from codebisect.core.sanity import SanityChecker, sanity_builds
from codebisect.errors import LaunchError

from conftest import FakeLauncher, ScriptedPrompter, commit_for


COMMIT = commit_for(3)


def flavors(platform):
    return [build.flavor for build, _ in sanity_builds(COMMIT, platform)]


class TestSanityBuilds:
    def test_linux_x64_includes_snap(self, linux_x64):
        assert flavors(linux_x64) == [
            Flavor.DEFAULT,
            Flavor.LINUX_DEB,
            Flavor.LINUX_RPM,
            Flavor.LINUX_SNAP,
            Flavor.CLI,
        ]

    def test_linux_arm64_has_no_snap(self):
        platform = Platform(OperatingSystem.LINUX, Arch.ARM64)
        assert Flavor.LINUX_SNAP not in flavors(platform)

    def test_windows_installers(self, windows_x64):
        assert flavors(windows_x64) == [
            Flavor.DEFAULT,
            Flavor.WINDOWS_USER_INSTALLER,
            Flavor.WINDOWS_SYSTEM_INSTALLER,
            Flavor.CLI,
        ]

    def test_darwin_universal(self, darwin_arm64):
        assert flavors(darwin_arm64) == [Flavor.DEFAULT, Flavor.DARWIN_UNIVERSAL, Flavor.CLI]

    def test_all_stable_desktop(self, linux_x64):
        for build, label in sanity_builds(COMMIT, linux_x64):
            assert build.quality is Quality.STABLE
            assert build.runtime is Runtime.DESKTOP_LOCAL
            assert build.commit == COMMIT
            assert label


class TestSanityChecker:
    def test_steps_through_every_flavor(self, darwin_arm64):
        launcher = FakeLauncher()
        checker = SanityChecker(launcher, ScriptedPrompter(), darwin_arm64)

        assert checker.run(COMMIT)
        assert [b.flavor for b in launcher.launched] == flavors(darwin_arm64)
        assert all(instance.stopped == 1 for instance in launcher.instances)

    def test_quit(self, darwin_arm64):
        launcher = FakeLauncher()
        prompter = ScriptedPrompter(sanity=[SanityChoice.NEXT, SanityChoice.QUIT])
        checker = SanityChecker(launcher, prompter, darwin_arm64)

        assert not checker.run(COMMIT)
        assert len(launcher.launched) == 2

    def test_retry_fresh(self, darwin_arm64):
        launcher = FakeLauncher()
        prompter = ScriptedPrompter(sanity=[SanityChoice.RETRY_FRESH, SanityChoice.RETRY])
        checker = SanityChecker(launcher, prompter, darwin_arm64)

        assert checker.run(COMMIT)
        assert [b.flavor for b in launcher.launched][:3] == [Flavor.DEFAULT] * 3
        assert launcher.cleaned == 1

    def test_failed_flavor_moves_on_after_abort(self, darwin_arm64):
        launcher = FakeLauncher(failures=[LaunchError("exited early")])
        prompter = ScriptedPrompter(recoveries=[RecoveryChoice.ABORT])
        checker = SanityChecker(launcher, prompter, darwin_arm64)

        assert checker.run(COMMIT)
        assert len(launcher.launched) == 3

    def test_failed_flavor_retry_forces_download(self, darwin_arm64):
        launcher = FakeLauncher(failures=[LaunchError("exited early")])
        prompter = ScriptedPrompter(recoveries=[RecoveryChoice.RETRY_FORCE])
        checker = SanityChecker(launcher, prompter, darwin_arm64)

        checker.run(COMMIT)

        assert launcher.force_refresh[:2] == [False, True]
