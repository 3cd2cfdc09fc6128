"""Tests for terminal prompts."""

from codebisect.builds.kinds import Build
from codebisect.core.prompts import (
    ConsolePrompter,
    InstallChoice,
    RecoveryChoice,
    SanityChoice,
    Verdict,
)


BUILD = Build(commit="e" * 40)


def scripted_input(*answers):
    replies = list(answers)
    questions = []

    def input_fn(question):
        questions.append(question)
        return replies.pop(0)

    input_fn.questions = questions
    return input_fn


class TestConsolePrompter:
    def test_verdict_by_number(self):
        prompter = ConsolePrompter(scripted_input("2"))
        assert prompter.ask_verdict(BUILD) is Verdict.BAD

    def test_invalid_answers_are_asked_again(self, capsys):
        input_fn = scripted_input("", "9", "good", "1")
        prompter = ConsolePrompter(input_fn)

        assert prompter.ask_verdict(BUILD) is Verdict.GOOD
        assert len(input_fn.questions) == 4
        assert "between 1 and 5" in capsys.readouterr().out

    def test_verdict_shows_elapsed_time(self, capsys):
        ConsolePrompter(scripted_input("5")).ask_verdict(BUILD, elapsed=3.4)
        assert "took 3.4s" in capsys.readouterr().out

    def test_recovery(self):
        prompter = ConsolePrompter(scripted_input("2"))
        assert prompter.ask_recovery(BUILD, RuntimeError("boom")) is RecoveryChoice.RETRY_FORCE

    def test_install(self, capsys):
        prompter = ConsolePrompter(scripted_input("2"))
        assert prompter.ask_install("sudo apt install -y x.deb") is InstallChoice.SKIP
        assert "sudo apt install -y x.deb" in capsys.readouterr().out

    def test_sanity_last_step(self, capsys):
        prompter = ConsolePrompter(scripted_input("1"))
        assert prompter.ask_sanity(BUILD, is_last=True) is SanityChoice.NEXT
        assert "1) Done" in capsys.readouterr().out

    def test_commit_empty_is_none(self):
        prompter = ConsolePrompter(scripted_input("  ", " 1.93 "))
        assert prompter.ask_commit("Good commit") is None
        assert prompter.ask_commit("Bad commit") == "1.93"

    def test_confirm(self):
        prompter = ConsolePrompter(scripted_input("Y", "", "no"))
        assert prompter.confirm("Open?")
        assert not prompter.confirm("Open?")
        assert not prompter.confirm("Open?")
