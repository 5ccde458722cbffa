"""Merge state machine.

Resolving -> Confirming -> Merging -> (ConflictReview) -> MessageReady ->
Committing -> Pushing -> Done, with Aborted reachable from Confirming.

After the merge command the orchestrator always reads the merge state from
the substrate instead of trusting the exit code: ``git merge`` can exit
non-zero and still leave a merge that is completable after manual
resolution, and a merge that changes nothing leaves no state at all.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .coauthors import coauthor_lines, merge_message
from .context import Options, Session
from .divergence import collect_status
from .errors import AbortedError, AmbiguityError, NotFoundError, SubstrateError
from .observability import log_action, log_debug, log_warning
from .remotes import smart_push
from .targets import MergeTarget, check_target_name, resolve_merge_target
from .worktree import ensure_clean


class MergePhase(str, Enum):
    RESOLVING = "resolving"
    CONFIRMING = "confirming"
    MERGING = "merging"
    CONFLICT_REVIEW = "conflict_review"
    MESSAGE_READY = "message_ready"
    COMMITTING = "committing"
    PUSHING = "pushing"
    DONE = "done"
    ABORTED = "aborted"


class MergeOutcome(str, Enum):
    NOOP = "noop"  # Already converged; nothing committed
    COMMITTED = "committed"  # Merge committed, push skipped or not needed
    PUSHED = "pushed"  # Merge committed and pushed


@dataclass
class MergePlanState:
    """Transient state for one merge invocation."""

    merge_in_progress: bool = False
    conflicted: bool = False
    message_draft: str = ""
    resolved_target: Optional[MergeTarget] = None


class MergeOrchestrator:
    def __init__(self, session: Session, options: Options, current_branch: str):
        self.session = session
        self.options = options
        self.current_branch = current_branch
        self.state = MergePlanState()
        self.phase = MergePhase.RESOLVING

    @property
    def git(self):
        return self.session.git

    def _enter(self, phase: MergePhase) -> None:
        log_debug("merge phase", previous=self.phase.value, phase=phase.value)
        self.phase = phase

    # ------------------------------------------------------------------

    def run(self) -> MergeOutcome:
        name = check_target_name(self.options.target)

        target = self.resolve(name)
        self.confirm(name, target)
        ensure_clean(self.session, self.options, require_clean=True)

        self._enter(MergePhase.MERGING)
        if not self.merge(target):
            self._enter(MergePhase.DONE)
            log_action("merge", outcome=MergeOutcome.NOOP.value, target=target.ref, branch=self.current_branch)
            return MergeOutcome.NOOP

        return self.finish(target)

    def resolve(self, name: str) -> MergeTarget:
        try:
            target = resolve_merge_target(name, self.git.remotes(), self.git.verify_ref)
        except (AmbiguityError, NotFoundError):
            # Same listing as `status`, so the operator can pick a valid name
            self.show_related()
            raise
        self.state.resolved_target = target
        return target

    def show_related(self) -> None:
        streams = self.session.streams
        streams.say()
        streams.say()
        streams.say("Related branches and their diffs (if any):")
        streams.say()
        try:
            statuses = collect_status(self.git, self.current_branch)
        except SubstrateError as exc:
            # Only a hint; the resolution error is what the caller reports
            log_warning("related branch listing failed", error=exc.message)
            streams.say(f"(related branch listing unavailable: {exc.stderr.strip() or exc.message})")
            return
        for status in statuses:
            streams.say(status.line())

    def confirm(self, name: str, target: MergeTarget) -> None:
        if not target.needs_confirmation:
            return
        self._enter(MergePhase.CONFIRMING)
        prompt = f'Resolved "{name}" to "{target.ref}". Merge this branch? [y/N]: '
        if not self.session.streams.confirm(prompt):
            self._enter(MergePhase.ABORTED)
            log_action("merge", outcome="aborted", target=target.ref)
            raise AbortedError("mob-consensus: merge aborted")

    def merge(self, target: MergeTarget) -> bool:
        """Run the merge. False when there was nothing to merge."""
        result = self.git.merge_no_commit(target.ref)
        self.state.merge_in_progress = self.git.merge_state().in_progress
        if not self.state.merge_in_progress:
            # Failed without leaving a merge behind: a real error
            result.raise_for_status()
            return False

        if not result.ok:
            self.state.conflicted = True
            self._enter(MergePhase.CONFLICT_REVIEW)
            self.git.run_interactive(["mergetool", "-t", self.session.config.merge.conflict_tool])
        return True

    def finish(self, target: MergeTarget) -> MergeOutcome:
        self._enter(MergePhase.MESSAGE_READY)
        coauthors = coauthor_lines(self.git.coauthor_log(target.ref), self.session.email)
        self.state.message_draft = merge_message(target.ref, self.current_branch, coauthors)

        fd, scratch = tempfile.mkstemp(prefix="mob-consensus-", suffix=".msg", dir=str(self.git.git_dir()))
        msg_path = Path(scratch)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(self.state.message_draft)
            self.git.merge_state().merge_msg_path.write_text(self.state.message_draft, encoding="utf-8")

            merge_cfg = self.session.config.merge
            if merge_cfg.review_tool:
                self.git.run_interactive(["difftool", "-t", merge_cfg.review_tool, "HEAD"])

            self._enter(MergePhase.COMMITTING)
            before = self.git.head_sha()
            try:
                self.git.commit_with_message_file(msg_path, edit=merge_cfg.edit_message)
            except SubstrateError:
                # The pending merge stays in place for the operator to finish
                self.session.streams.say("don't forget to push")
                raise
        finally:
            msg_path.unlink(missing_ok=True)

        log_action(
            "merge",
            outcome=MergeOutcome.COMMITTED.value,
            target=target.ref,
            branch=self.current_branch,
            conflicted=self.state.conflicted,
            coauthors=len(coauthors),
        )
        if self.git.head_sha() == before:
            self._enter(MergePhase.DONE)
            return MergeOutcome.COMMITTED

        if self.options.no_push:
            self.session.streams.say("skipping automatic push -- don't forget to push later")
            self._enter(MergePhase.DONE)
            return MergeOutcome.COMMITTED

        self._enter(MergePhase.PUSHING)
        smart_push(self.git)
        self._enter(MergePhase.DONE)
        return MergeOutcome.PUSHED
