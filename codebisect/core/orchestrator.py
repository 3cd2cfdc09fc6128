#!/usr/bin/env python3
"""Bisection Controller.

Binary search over the builds between a good and a bad commit, asking the
user for a verdict on every build that is launched.
"""

import logging
import math
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from codebisect.builds.kinds import Build, BuildKind
from codebisect.builds.naming import compare_url
from codebisect.catalog.client import CatalogClient
from codebisect.config.config import BisectConfig
from codebisect.core.prompts import Prompter, RecoveryChoice, Verdict
from codebisect.errors import (
    BisectError,
    CommitNotFound,
    InvalidCommit,
    InvalidRange,
    UnsupportedPlatform,
)
from codebisect.launch.desktop import open_url
from codebisect.persistence.state_manager import StateManager, utc_now


if TYPE_CHECKING:
    from codebisect.launch.launcher import Launcher


logger = logging.getLogger(__name__)

# Constants
VERSION_REGEX = re.compile(r"^\d+\.\d+$")
COMMIT_REGEX = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)

# History status of sessions that did not run to the end
SESSION_STATUS = {"quit": "quit", "aborted": "failed"}


def log_troubleshoot() -> None:
    """Print hints for a failed session."""
    print("\nTroubleshooting:")
    print("  - Run again with --verbose to see the output of the build")
    print("  - Run `codebisect reset` to delete all cached builds and user data")
    print("  - Use --exclude to skip builds that cannot be launched")


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass
class BisectState:
    """Binary search position.

    Builds at ``bad_index`` and newer are known to be bad. Builds at
    ``good_index`` and older are known to be good; ``good_index`` starts one
    past the oldest build, which is not known to be good until it is tried.

    Attributes:
        current_chunk: Number of positions the transition can still be at
        current_index: Index of the build to try next
        bad_index: Oldest build known to be bad
        good_index: Newest build known to be good
    """

    current_chunk: int
    current_index: int
    bad_index: int = 0
    good_index: int = 0

    @classmethod
    def seed(cls, total: int) -> "BisectState":
        """Start a search over total builds.

        Index 0 is the newest build and counts as bad, so the first build
        tried is in the middle of the range.
        """
        state = cls(current_chunk=total, current_index=0, good_index=total)
        next_state(state, Verdict.BAD)
        return state


def next_state(state: BisectState, verdict: Verdict) -> bool:
    """Advance the search after a verdict on the current build.

    Args:
        state: Search position, updated in place
        verdict: GOOD moves toward newer builds, BAD toward older ones

    Returns:
        True if the search is exhausted
    """
    if verdict is Verdict.GOOD:
        state.good_index = state.current_index
    else:
        state.bad_index = state.current_index

    state.current_chunk = state.good_index - state.bad_index
    if state.current_chunk <= 1:
        return True

    state.current_index = state.bad_index + round_half_up(state.current_chunk / 2)
    return False


class OutcomeKind(Enum):
    """How a bisection ended."""

    NARROWED = "narrowed"
    ALL_BAD = "all-bad"
    INSUFFICIENT = "insufficient"
    QUIT = "quit"
    ABORTED = "aborted"


@dataclass
class BisectOutcome:
    """Result of a bisection.

    Attributes:
        kind: How the bisection ended
        good: Newest build known to be good
        bad: Oldest build known to be bad
        steps: Number of verdicts that narrowed the search
        total: Number of builds in the range
        session_id: History session, if recorded
    """

    kind: OutcomeKind
    good: Optional[Build] = None
    bad: Optional[Build] = None
    steps: int = 0
    total: int = 0
    session_id: Optional[int] = None


class BuildBisector:
    """Bisect builds of one build kind.

    Attributes:
        config: Session configuration
        catalog: Update service client
        launcher: Launches builds
        prompter: Asks for verdicts
        state: Session history (optional)
    """

    def __init__(
        self,
        config: BisectConfig,
        catalog: CatalogClient,
        launcher: "Launcher",
        prompter: Prompter,
        state: Optional[StateManager] = None,
        opener: Callable[[str], None] = open_url,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.launcher = launcher
        self.prompter = prompter
        self.state = state
        self.open_url = opener

        self.session_id: Optional[int] = None
        self.iteration_count = 0

    def resolve_commit(self, kind: BuildKind, value: Optional[str]) -> Optional[str]:
        """Resolve a commit or major.minor version to a commit.

        Raises:
            InvalidCommit: If value is neither a full commit nor a version
            UnknownVersion: If no build exists for the version
        """
        if not value:
            return None

        if VERSION_REGEX.match(value):
            return self.catalog.resolve_version(kind, value).commit

        if COMMIT_REGEX.match(value):
            return value

        raise InvalidCommit(
            f"Invalid commit or version format: {value}. Please provide a full git "
            f"commit hash or a version in the format of major.minor"
        )

    def fetch_range(
        self,
        kind: BuildKind,
        good_commit: Optional[str] = None,
        bad_commit: Optional[str] = None,
        released_only: bool = False,
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Build]:
        """Builds between the bad and the good commit, newest first.

        Both commits are included. A commit missing from the list of all
        builds is looked up once more in the list of released builds.

        Raises:
            CommitNotFound: If a commit is in neither list
            InvalidRange: If the bad commit is not newer than the good commit
        """
        builds = self.catalog.list_commits(kind, released_only)
        commits = [build.commit for build in builds]

        good_index = len(builds) - 1
        bad_index = 0

        for label, commit in (("good", good_commit), ("bad", bad_commit)):
            if commit is None:
                continue
            if commit not in commits:
                if released_only:
                    raise CommitNotFound(
                        f"Provided {label} commit {commit} was not found in the list of builds. "
                        f"It is either invalid or too old."
                    )
                logger.info(f"Commit {commit} not found, searching released builds...")
                return self.fetch_range(kind, good_commit, bad_commit, True, exclude)

            if label == "good":
                good_index = commits.index(commit)
            else:
                bad_index = commits.index(commit)

        if (good_commit or bad_commit) and bad_index >= good_index:
            raise InvalidRange(
                f"Provided bad commit {bad_commit} cannot be older or same as "
                f"good commit {good_commit}"
            )

        in_range = builds[bad_index : good_index + 1]

        if exclude:
            excluded = set(exclude)
            before = len(in_range)
            in_range = [build for build in in_range if build.commit not in excluded]
            count = before - len(in_range)
            if count:
                logger.info(f"Excluded {count} commit{'' if count == 1 else 's'} from bisecting")

        return in_range

    def start(
        self,
        kind: BuildKind,
        good: Optional[str] = None,
        bad: Optional[str] = None,
        released_only: Optional[bool] = None,
        exclude: Optional[Sequence[str]] = None,
    ) -> BisectOutcome:
        """Run a bisection.

        Args:
            kind: Build kind to bisect
            good: Good commit or version (oldest build when None)
            bad: Bad commit or version (newest build when None)
            released_only: Only use released builds (config default when None)
            exclude: Commits to leave out

        Returns:
            Outcome of the bisection

        Raises:
            BisectError: If the range cannot be resolved or a build fails unrecoverably
        """
        if released_only is None:
            released_only = self.config.released_only

        good_commit = self.resolve_commit(kind, good)
        bad_commit = self.resolve_commit(kind, bad)
        builds = self.fetch_range(kind, good_commit, bad_commit, released_only, exclude)

        total = len(builds)
        steps_estimate = round_half_up(math.log2(total)) if total else 0
        logger.info(f"Total {total} builds with roughly {steps_estimate} steps")

        self._begin_session(kind, good, bad, released_only, exclude)

        if total < 2:
            return self._end(BisectOutcome(OutcomeKind.INSUFFICIENT, total=total))

        state = BisectState.seed(total)
        steps = 0

        try:
            while True:
                verdict = self.try_build(builds[state.current_index])

                if verdict is None or verdict is Verdict.QUIT:
                    stopped = OutcomeKind.ABORTED if verdict is None else OutcomeKind.QUIT
                    return self._end(self._outcome(stopped, builds, state, steps))

                steps += 1
                if next_state(state, verdict):
                    break
        except BaseException:
            if self.state and self.session_id is not None:
                self.state.finish_session(self.session_id, "failed")
            raise

        # Only a bad verdict on the oldest build leaves no good build
        if state.good_index < total:
            kind_of_outcome = OutcomeKind.NARROWED
        else:
            kind_of_outcome = OutcomeKind.ALL_BAD

        return self._end(self._outcome(kind_of_outcome, builds, state, steps))

    def _outcome(
        self, kind: OutcomeKind, builds: List[Build], state: BisectState, steps: int
    ) -> BisectOutcome:
        total = len(builds)
        return BisectOutcome(
            kind,
            good=builds[state.good_index] if state.good_index < total else None,
            bad=builds[state.bad_index],
            steps=steps,
            total=total,
        )

    def try_build(self, build: Build) -> Optional[Verdict]:
        """Launch a build and ask for its verdict.

        Retries repeat the same build. The launched instance is always
        stopped before this returns.

        Returns:
            GOOD, BAD or QUIT, or None if the build failed and the user
            declined to retry it
        """
        force_refresh = False
        while True:
            iteration_id = self._begin_iteration(build)
            started = time.monotonic()

            try:
                instance = self.launcher.launch(build, force_refresh=force_refresh)
            except UnsupportedPlatform:
                raise
            except BisectError as exc:
                logger.error(f"Build {build.commit} failed: {exc}")
                self._end_iteration(iteration_id, started, error=str(exc))

                choice = self.prompter.ask_recovery(build, exc)
                if choice is RecoveryChoice.RETRY:
                    force_refresh = False
                    continue
                if choice is RecoveryChoice.RETRY_FORCE:
                    force_refresh = True
                    continue

                log_troubleshoot()
                return None

            try:
                elapsed = instance.elapsed if instance is not None else None
                verdict = self.prompter.ask_verdict(build, elapsed)
            finally:
                if instance is not None:
                    instance.stop()

            self._end_iteration(iteration_id, started, verdict=verdict)
            force_refresh = False

            if verdict is Verdict.RETRY:
                continue
            if verdict is Verdict.RETRY_FRESH:
                self.launcher.clean_user_data_dir()
                continue
            return verdict

    def finish(self, outcome: BisectOutcome) -> None:
        """Report the outcome of a bisection."""
        if outcome.kind is OutcomeKind.NARROWED:
            good, bad = outcome.good.commit, outcome.bad.commit
            print(f"\n✓ {bad} is the first bad commit after {good}.")

            if self.prompter.confirm("Would you like to open GitHub for the list of changes?"):
                self.open_url(compare_url(good, bad, self.config.compare_url))

            print(
                "\nRun the following commands to continue bisecting via git in a folder "
                "where VS Code is checked out to:\n"
            )
            print(f"  git bisect start && git bisect bad {bad} && git bisect good {good}\n")
        elif outcome.kind is OutcomeKind.ALL_BAD:
            print("\n✗ All builds are bad! Try running with --released-only to support older builds.")
        elif outcome.kind is OutcomeKind.INSUFFICIENT:
            print(
                "\n✗ No builds bisected. Bisect needs at least 2 builds from "
                "\"main\" branch to work."
            )
        elif outcome.kind is OutcomeKind.ABORTED:
            print("\n✗ Bisection aborted after a build failed.")
        else:
            logger.info("Bisection quit")

    def _begin_session(
        self,
        kind: BuildKind,
        good: Optional[str],
        bad: Optional[str],
        released_only: bool,
        exclude: Optional[Sequence[str]],
    ) -> None:
        self.iteration_count = 0
        if self.state is None:
            return

        self.session_id = self.state.create_session(
            kind.runtime.value,
            kind.quality.value,
            kind.flavor.value,
            good,
            bad,
            {"released_only": released_only, "exclude": list(exclude or [])},
        )

    def _end(self, outcome: BisectOutcome) -> BisectOutcome:
        outcome.session_id = self.session_id
        if self.state is not None and self.session_id is not None:
            status = SESSION_STATUS.get(outcome.kind.value, "completed")
            self.state.finish_session(
                self.session_id,
                status,
                first_bad_commit=outcome.bad.commit if outcome.bad else None,
                last_good_commit=outcome.good.commit if outcome.good else None,
            )
        return outcome

    def _begin_iteration(self, build: Build) -> Optional[int]:
        self.iteration_count += 1
        logger.info(f"=== Iteration {self.iteration_count}: {build.commit} ===")
        if self.state is None or self.session_id is None:
            return None
        return self.state.create_iteration(self.session_id, self.iteration_count, build.commit)

    def _end_iteration(
        self,
        iteration_id: Optional[int],
        started: float,
        verdict: Optional[Verdict] = None,
        error: Optional[str] = None,
    ) -> None:
        if self.state is None or iteration_id is None:
            return
        self.state.update_iteration(
            iteration_id,
            verdict=verdict.value if verdict else None,
            end_time=utc_now(),
            duration=time.monotonic() - started,
            error_message=error,
        )
