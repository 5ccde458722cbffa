"""Onboarding flows: start a shared twig, join one, or let init choose.

Each flow resolves twig/remote/base up front, then hands an ordered list of
idempotent steps to :func:`~mob_consensus.plan.run_plan`.

Twig and remote precedence: explicit flag > inferred from the current
branch > interactive prompt (execute mode without ``--yes`` only) > a
UsageError naming the missing flag.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from .context import Command, ExecutionMode, Options, Session
from .errors import AbortedError, AmbiguityError, PreconditionError, UsageError
from .gitops import is_detached, push_args
from .naming import personal_branch, twig_from_branch, validate_branch_name
from .observability import log_action
from .plan import PlanStep, run_plan
from .remotes import resolve_remote
from .worktree import ensure_clean


def _guard_tree(session: Session, options: Options) -> None:
    if options.previewing:
        if session.git.is_dirty():
            raise UsageError(
                f"mob-consensus: working tree is dirty (clean it before using --{options.mode.value})"
            )
        return
    # Onboarding commits dirty work locally only
    ensure_clean(session, options, require_clean=True, push=False)


def resolve_twig(session: Session, options: Options, current_branch: str) -> str:
    explicit = (options.twig or "").strip()
    if explicit:
        return explicit

    inferred = ""
    if not is_detached(current_branch):
        twig = twig_from_branch(current_branch)
        if current_branch.startswith(f"{session.identity}/"):
            inferred = twig
        elif twig not in session.config.onboarding.default_branches:
            inferred = twig
    if inferred:
        return inferred

    if not options.interactive:
        cmd = options.command.value
        raise UsageError(f"mob-consensus: {cmd} requires --twig (example: mob-consensus {cmd} --twig feature-x)")

    default = session.config.onboarding.default_twig
    answer = session.streams.ask(f"Twig name (shared branch): [{default}]: ")
    return answer or default


def resolve_base(options: Options, current_branch: str) -> Optional[str]:
    """Explicit ``--base`` or the current branch; None when HEAD is detached."""
    base = (options.base or "").strip() or current_branch.strip()
    if is_detached(base):
        return None
    return base


def resolve_onboarding_remote(session: Session, options: Options) -> str:
    git = session.git
    remotes = git.remotes()
    try:
        return resolve_remote(remotes, explicit=options.remote, upstream=git.upstream()).name
    except AmbiguityError as exc:
        candidates = exc.candidates
        if not options.interactive:
            cmd = options.command.value
            raise UsageError(
                f"mob-consensus: {cmd} requires --remote when multiple remotes exist ({', '.join(candidates)})"
            ) from exc

    answer = session.streams.ask(f"Pick remote for fetch/push ({', '.join(candidates)}): ")
    if answer in candidates:
        return answer
    raise UsageError(f"mob-consensus: unknown remote {answer!r} (available: {', '.join(candidates)})")


def _require_base(base: Optional[str]) -> str:
    if base is None:
        raise PreconditionError("mob-consensus: could not determine a base ref (hint: pass --base <ref>)")
    return base


def _fetch_step(remote: str) -> PlanStep:
    return PlanStep(
        explain=f"Fetch remote refs from {remote}",
        command=lambda: ["fetch", remote],
    )


def _personal_branch_steps(session: Session, remote: str, twig: str, user_branch: str) -> List[PlanStep]:
    git = session.git

    def switch_or_create() -> List[str]:
        if git.local_branch_exists(user_branch):
            return ["checkout", user_branch]
        if git.remote_tracking_branch_exists(remote, user_branch):
            return ["checkout", "-b", user_branch, f"{remote}/{user_branch}"]
        return ["checkout", "-b", user_branch, twig]

    return [
        PlanStep(
            explain=f"Create/switch to your personal branch {user_branch!r}",
            command=switch_or_create,
        ),
        PlanStep(
            explain=f"Push your personal branch {user_branch!r}",
            command=lambda: push_args(remote, user_branch),
        ),
    ]


def _resolve_common(session: Session, options: Options, current_branch: str) -> tuple[str, str, str]:
    twig = validate_branch_name("twig", resolve_twig(session, options, current_branch), session.git.check_ref_format)
    remote = resolve_onboarding_remote(session, options)
    user_branch = validate_branch_name(
        "personal branch", personal_branch(session.identity, twig), session.git.check_ref_format
    )
    return twig, remote, user_branch


def run_start(session: Session, options: Options, current_branch: str) -> None:
    """First member: create and publish the twig, then a personal branch."""
    _guard_tree(session, options)
    twig, remote, user_branch = _resolve_common(session, options, current_branch)
    base = _require_base(resolve_base(options, current_branch))
    git = session.git

    def twig_absent_on_remote() -> None:
        if git.local_branch_exists(twig):
            return
        if git.remote_tracking_branch_exists(remote, twig):
            raise PreconditionError(
                f"mob-consensus: shared twig {twig!r} already exists on {remote} "
                f"(hint: use `mob-consensus join --twig {twig}`)"
            )

    def switch_or_create_twig() -> List[str]:
        if git.local_branch_exists(twig):
            return ["checkout", twig]
        return ["checkout", "-b", twig, base]

    steps = [
        _fetch_step(remote),
        PlanStep(
            explain=f"Create/switch to shared twig branch {twig!r}",
            command=switch_or_create_twig,
            precheck=twig_absent_on_remote,
        ),
        PlanStep(
            explain=f"Push shared twig {twig!r} (required so others can join)",
            command=lambda: push_args(remote, twig),
        ),
        *_personal_branch_steps(session, remote, twig, user_branch),
    ]
    title = f"mob-consensus start (twig={twig}, base={base}, remote={remote}, user={session.identity})"
    run_plan(git, title, steps, options.mode, session.streams, yes=options.yes)
    if not options.previewing:
        log_action("start", twig=twig, remote=remote, base=base, branch=user_branch)


def run_join(session: Session, options: Options, current_branch: str) -> None:
    """Next member: track the published twig, then a personal branch."""
    _guard_tree(session, options)
    twig, remote, user_branch = _resolve_common(session, options, current_branch)
    git = session.git

    def twig_present_on_remote() -> None:
        if not git.remote_tracking_branch_exists(remote, twig):
            raise PreconditionError(
                f"mob-consensus: shared twig {twig!r} not found on {remote} "
                f"(hint: ask the first member to run `mob-consensus start --twig {twig}`)"
            )

    def switch_or_track_twig() -> List[str]:
        if git.local_branch_exists(twig):
            return ["checkout", twig]
        return ["checkout", "-b", twig, f"{remote}/{twig}"]

    steps = [
        _fetch_step(remote),
        PlanStep(
            explain=f"Create/switch to shared twig branch {twig!r} tracking {remote}/{twig}",
            command=switch_or_track_twig,
            precheck=twig_present_on_remote,
        ),
        *_personal_branch_steps(session, remote, twig, user_branch),
    ]
    title = f"mob-consensus join (twig={twig}, remote={remote}, user={session.identity})"
    run_plan(git, title, steps, options.mode, session.streams, yes=options.yes)
    if not options.previewing:
        log_action("join", twig=twig, remote=remote, branch=user_branch)


def _describe_init(session: Session, options: Options, twig: str, remote: str, base: Optional[str]) -> None:
    """Plan/dry-run output for init, which cannot know which flow will run."""
    say = session.streams.say
    start_cmd = f"mob-consensus start --twig {twig} --remote {remote} --base {base or '<ref>'}"
    join_cmd = f"mob-consensus join --twig {twig} --remote {remote}"
    detached_note = "HEAD is detached: start needs an explicit --base <ref>"

    if options.mode is ExecutionMode.DRY_RUN:
        say(f"git fetch {remote}")
        say(f"{join_cmd}  # if {remote}/{twig} exists")
        say(f"{start_cmd}  # otherwise")
        if base is None:
            say(f"# {detached_note}")
        return

    say(f"mob-consensus init (twig={twig}, remote={remote})")
    say(f"  1) Fetch remote refs:\n       git fetch {remote}")
    say(f"  2) If {remote}/{twig} exists, run: {join_cmd}")
    say(f"     Otherwise run:        {start_cmd}")
    if base is None:
        say(f"     ({detached_note})")


def run_init(session: Session, options: Options, current_branch: str) -> None:
    """Fetch, then suggest and run start or join."""
    _guard_tree(session, options)
    twig = validate_branch_name("twig", resolve_twig(session, options, current_branch), session.git.check_ref_format)
    remote = resolve_onboarding_remote(session, options)
    base = resolve_base(options, current_branch)

    if options.previewing:
        _describe_init(session, options, twig, remote, base)
        return

    git = session.git
    run_plan(
        git,
        f"mob-consensus init (twig={twig}, remote={remote})",
        [_fetch_step(remote)],
        options.mode,
        session.streams,
        yes=options.yes,
    )

    exists = git.remote_tracking_branch_exists(remote, twig)
    next_cmd = Command.JOIN if exists else Command.START
    log_action("init", twig=twig, remote=remote, suggested=next_cmd.value)

    if not options.yes:
        prompt = f"Suggested: mob-consensus {next_cmd.value} --twig {twig} (remote={remote}). Continue? [y/N]: "
        if not session.streams.confirm(prompt):
            raise AbortedError("mob-consensus: aborted")

    follow_up = replace(options, command=next_cmd, twig=twig, remote=remote, base=base)
    if next_cmd is Command.JOIN:
        run_join(session, follow_up, current_branch)
    else:
        run_start(session, follow_up, current_branch)
