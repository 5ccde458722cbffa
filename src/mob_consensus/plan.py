"""Step-sequence runner with plan, dry-run and execute modes.

Steps run strictly in order. A failed pre-check or command aborts the rest;
finished steps are not rolled back. Each step is idempotent, so re-running
the same plan after a partial run converges to the same end state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from .context import ExecutionMode, Streams
from .errors import AbortedError
from .observability import log_action

if TYPE_CHECKING:
    from .gitops import GitRepo


@dataclass
class PlanStep:
    explain: str
    # Returns git args; may read repo state to choose create vs switch
    command: Callable[[], List[str]]
    precheck: Optional[Callable[[], None]] = None


def run_plan(
    git: "GitRepo",
    title: str,
    steps: Sequence[PlanStep],
    mode: ExecutionMode,
    streams: Streams,
    *,
    yes: bool = False,
) -> None:
    if mode is ExecutionMode.PLAN:
        streams.say(title)
        for i, step in enumerate(steps, start=1):
            streams.say(f"  {i}) {step.explain}")
            streams.say(f"       {git.render(step.command())}")
        return

    if mode is ExecutionMode.DRY_RUN:
        for step in steps:
            streams.say(git.render(step.command()))
        return

    streams.say(title)
    total = len(steps)
    for i, step in enumerate(steps, start=1):
        if step.precheck is not None:
            step.precheck()
        args = step.command()

        streams.say()
        streams.say(f"Step {i}/{total}: {step.explain}")
        streams.say(f"  {git.render(args)}")

        if not yes and not streams.confirm("Run this? [y/N]: "):
            log_action("plan_step", outcome="declined", title=title, step=i)
            raise AbortedError("mob-consensus: aborted")

        git.run(args)
        log_action("plan_step", title=title, step=i, args=args)
