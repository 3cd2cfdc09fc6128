#!/usr/bin/env python3
"""Human-facing prompts.

The bisection loop treats the human as an oracle that answers each question
with one value of a fixed enum. ConsolePrompter asks on the terminal; tests
substitute a scripted prompter.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from codebisect.builds.kinds import Build


T = TypeVar("T")


class Verdict(Enum):
    """Answer after trying a build."""

    GOOD = "good"
    BAD = "bad"
    QUIT = "quit"
    RETRY = "retry"
    RETRY_FRESH = "retry-fresh"


class RecoveryChoice(Enum):
    """Answer after a build failed to install or launch."""

    RETRY = "retry"
    RETRY_FORCE = "retry-force"
    ABORT = "abort"


class InstallChoice(Enum):
    """Answer after a manual package install."""

    DONE = "done"
    SKIP = "skip"


class SanityChoice(Enum):
    """Answer after trying one flavor in sanity mode."""

    NEXT = "next"
    RETRY = "retry"
    RETRY_FRESH = "retry-fresh"
    QUIT = "quit"


class Prompter(ABC):
    """Source of human answers."""

    @abstractmethod
    def ask_verdict(self, build: Build, elapsed: Optional[float] = None) -> Verdict:
        """Ask whether a build is good or bad."""

    @abstractmethod
    def ask_recovery(self, build: Build, error: Exception) -> RecoveryChoice:
        """Ask how to continue after a build failed to install or launch."""

    @abstractmethod
    def ask_install(self, command: str) -> InstallChoice:
        """Ask the user to run an install command and confirm."""

    @abstractmethod
    def ask_sanity(self, build: Build, is_last: bool) -> SanityChoice:
        """Ask how to continue after a sanity check step."""

    @abstractmethod
    def ask_commit(self, question: str) -> Optional[str]:
        """Ask for a commit or version, None when left empty."""

    @abstractmethod
    def confirm(self, question: str) -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    def wait(self, message: str) -> None:
        """Block until the user acknowledges."""


class ConsolePrompter(Prompter):
    """Prompt on the terminal with numbered choices.

    Attributes:
        input_fn: Function used to read a line (input by default)
    """

    def __init__(self, input_fn: Callable[[str], str] = input) -> None:
        self.input_fn = input_fn

    def _choose(self, question: str, choices: Sequence[Tuple[str, T]]) -> T:
        print(f"\n{question}")
        for index, (title, _) in enumerate(choices, start=1):
            print(f"  {index}) {title}")

        while True:
            answer = self.input_fn(f"Select [1-{len(choices)}]: ").strip()
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][1]
            print(f"Please enter a number between 1 and {len(choices)}")

    def ask_verdict(self, build: Build, elapsed: Optional[float] = None) -> Verdict:
        question = f"Is build {build.commit} good or bad?"
        if elapsed is not None:
            question = f"Build {build.commit} took {elapsed:.1f}s. Is it good or bad?"

        choices: List[Tuple[str, Verdict]] = [
            ("Good", Verdict.GOOD),
            ("Bad", Verdict.BAD),
            ("Retry", Verdict.RETRY),
            ("Retry (fresh user data dir)", Verdict.RETRY_FRESH),
            ("Quit", Verdict.QUIT),
        ]
        return self._choose(question, choices)

    def ask_recovery(self, build: Build, error: Exception) -> RecoveryChoice:
        print(f"\n✗ Build {build.commit} failed: {error}")
        return self._choose(
            "Would you like to retry?",
            [
                ("Retry", RecoveryChoice.RETRY),
                ("Retry (force download)", RecoveryChoice.RETRY_FORCE),
                ("Quit", RecoveryChoice.ABORT),
            ],
        )

    def ask_install(self, command: str) -> InstallChoice:
        print("\nThe install command was copied to the clipboard, run it in a terminal:")
        print(f"  {command}")
        return self._choose(
            "Is the package installed?",
            [("Done", InstallChoice.DONE), ("Skip", InstallChoice.SKIP)],
        )

    def ask_sanity(self, build: Build, is_last: bool) -> SanityChoice:
        return self._choose(
            f"Does {build.flavor.value} ({build.runtime.value}) work?",
            [
                ("Done" if is_last else "Next", SanityChoice.NEXT),
                ("Retry", SanityChoice.RETRY),
                ("Retry (fresh user data dir)", SanityChoice.RETRY_FRESH),
                ("Quit", SanityChoice.QUIT),
            ],
        )

    def ask_commit(self, question: str) -> Optional[str]:
        answer = self.input_fn(f"{question}: ").strip()
        return answer or None

    def confirm(self, question: str) -> bool:
        answer = self.input_fn(f"{question} [y/N]: ").strip().lower()
        return answer in ("y", "yes")

    def wait(self, message: str) -> None:
        self.input_fn(message)
