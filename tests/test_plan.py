"""Tests for the plan runner using a recording fake substrate."""

from __future__ import annotations

import pytest

from mob_consensus.context import ExecutionMode
from mob_consensus.errors import AbortedError, PreconditionError
from mob_consensus.gitops import GitRepo
from mob_consensus.plan import PlanStep, run_plan


class RecordingGit:
    """Records every mutating call instead of running git."""

    render = staticmethod(GitRepo.render)

    def __init__(self):
        self.calls = []

    def run(self, args):
        self.calls.append(list(args))


def exploding_precheck():
    raise PreconditionError("should not run while previewing")


STEPS = [
    PlanStep("Fetch remote refs from origin", lambda: ["fetch", "origin"]),
    PlanStep("Create twig", lambda: ["checkout", "-b", "feature-x", "main"], precheck=exploding_precheck),
    PlanStep("Push twig", lambda: ["push", "-u", "origin", "feature-x"]),
]


@pytest.mark.parametrize("mode", [ExecutionMode.PLAN, ExecutionMode.DRY_RUN])
def test_previews_never_mutate(mode, make_streams):
    git = RecordingGit()
    streams = make_streams("y\ny\ny\n")
    run_plan(git, "title", STEPS, mode, streams)
    assert git.calls == []
    # No prompts either
    assert streams.err.getvalue() == ""


def test_plan_output(make_streams):
    streams = make_streams()
    run_plan(RecordingGit(), "mob-consensus start (twig=feature-x)", STEPS, ExecutionMode.PLAN, streams)
    assert streams.out.getvalue().splitlines() == [
        "mob-consensus start (twig=feature-x)",
        "  1) Fetch remote refs from origin",
        "       git fetch origin",
        "  2) Create twig",
        "       git checkout -b feature-x main",
        "  3) Push twig",
        "       git push -u origin feature-x",
    ]


def test_dry_run_prints_commands_only(make_streams):
    streams = make_streams()
    run_plan(RecordingGit(), "title", STEPS, ExecutionMode.DRY_RUN, streams)
    assert streams.out.getvalue().splitlines() == [
        "git fetch origin",
        "git checkout -b feature-x main",
        "git push -u origin feature-x",
    ]


def test_execute_with_yes_runs_in_order(make_streams):
    git = RecordingGit()
    steps = [STEPS[0], STEPS[2]]
    run_plan(git, "title", steps, ExecutionMode.EXECUTE, make_streams(), yes=True)
    assert git.calls == [["fetch", "origin"], ["push", "-u", "origin", "feature-x"]]


def test_execute_asks_before_each_step(make_streams):
    git = RecordingGit()
    streams = make_streams("y\nn\n")
    with pytest.raises(AbortedError):
        run_plan(git, "title", [STEPS[0], STEPS[2]], ExecutionMode.EXECUTE, streams)
    assert git.calls == [["fetch", "origin"]]
    assert streams.err.getvalue().count("Run this? [y/N]: ") == 2


def test_eof_declines(make_streams):
    git = RecordingGit()
    with pytest.raises(AbortedError):
        run_plan(git, "title", [STEPS[0]], ExecutionMode.EXECUTE, make_streams(""))
    assert git.calls == []


def test_failed_precheck_stops_before_mutation(make_streams):
    git = RecordingGit()
    with pytest.raises(PreconditionError):
        run_plan(git, "title", STEPS, ExecutionMode.EXECUTE, make_streams(), yes=True)
    # The first step already ran and is not rolled back
    assert git.calls == [["fetch", "origin"]]


def test_commands_are_shell_quoted(make_streams):
    streams = make_streams()
    step = PlanStep("odd", lambda: ["commit", "-m", "two words"])
    run_plan(RecordingGit(), "t", [step], ExecutionMode.DRY_RUN, streams)
    assert streams.out.getvalue().strip() == "git commit -m 'two words'"
