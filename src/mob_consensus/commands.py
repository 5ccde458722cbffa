"""Engine entry point: resolve the session once, then dispatch a command."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config_schema import MobConsensusConfig
from .context import Command, Options, Session, Streams
from .divergence import collect_status
from .gitops import GitRepo
from .merge import MergeOrchestrator, MergeOutcome
from .naming import identity_from_email, personal_branch, require_user_branch, twig_from_branch, validate_branch_name
from .observability import log_action, timeit
from .onboarding import run_init, run_join, run_start
from .remotes import fetch_for, push_advice
from .targets import check_target_name
from .worktree import ensure_clean


def open_session(
    streams: Streams,
    repo_path: Optional[Path] = None,
    config: Optional[MobConsensusConfig] = None,
) -> Session:
    git = GitRepo(Path(repo_path) if repo_path else Path.cwd(), out=streams.out, err=streams.err)
    email = git.user_email()
    identity = identity_from_email(email, git.check_ref_format)
    return Session(
        git=git,
        identity=identity,
        email=email or "",
        streams=streams,
        config=config or MobConsensusConfig.default(),
    )


def show_status(session: Session, options: Options, current_branch: str) -> None:
    require_user_branch(options.force, session.identity, current_branch)
    fetch_for(session.git)
    if options.commit_dirty:
        ensure_clean(session, options, require_clean=False)

    streams = session.streams
    streams.say()
    streams.say("Related branches and their diffs (if any):")
    streams.say()
    statuses = collect_status(session.git, current_branch)
    for status in statuses:
        streams.say(status.line())
    log_action("status", branch=current_branch, related=len(statuses))


def merge_branch(session: Session, options: Options, current_branch: str) -> MergeOutcome:
    require_user_branch(options.force, session.identity, current_branch)
    fetch_for(session.git, ref=check_target_name(options.target))
    return MergeOrchestrator(session, options, current_branch).run()


def create_branch(session: Session, options: Options) -> str:
    """Switch to (or create) ``<identity>/<twig>`` for the given base branch."""
    git = session.git
    base = validate_branch_name("base branch", options.base or "", git.check_ref_format)
    ensure_clean(session, options, require_clean=True)

    branch = validate_branch_name(
        "personal branch", personal_branch(session.identity, twig_from_branch(base)), git.check_ref_format
    )
    if git.local_branch_exists(branch):
        git.checkout(branch)
    else:
        git.checkout(branch, base)

    streams = session.streams
    streams.say()
    streams.say("Next: push your branch when you're ready.")
    for line in push_advice(git, branch):
        streams.say(line)
    log_action("branch", base=base, branch=branch)
    return branch


def run(
    options: Options,
    streams: Optional[Streams] = None,
    repo_path: Optional[Path] = None,
    config: Optional[MobConsensusConfig] = None,
) -> Optional[MergeOutcome]:
    """Run one command. Returns the merge outcome for ``merge``, else None."""
    session = open_session(streams or Streams(), repo_path, config)
    current_branch = session.git.current_branch()

    with timeit("command", command=options.command.value, mode=options.mode.value, user=session.identity) as info:
        if options.command is Command.STATUS:
            show_status(session, options, current_branch)
        elif options.command is Command.MERGE:
            outcome = merge_branch(session, options, current_branch)
            info["outcome_detail"] = outcome.value
            return outcome
        elif options.command is Command.BRANCH:
            info["branch"] = create_branch(session, options)
        elif options.command is Command.INIT:
            run_init(session, options, current_branch)
        elif options.command is Command.START:
            run_start(session, options, current_branch)
        elif options.command is Command.JOIN:
            run_join(session, options, current_branch)
    return None
