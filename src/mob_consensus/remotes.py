"""Remote selection for fetch and push.

Both resolvers walk a fixed precedence list and stop at the first match.
When more than one remote could apply and nothing makes the choice
deterministic they fail with the full candidate set instead of guessing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from .errors import AmbiguityError, NotFoundError, PreconditionError
from .gitops import is_detached, push_args
from .observability import log_action

if TYPE_CHECKING:
    from .gitops import GitRepo


class RemoteSource(str, Enum):
    EXPLICIT = "explicit"
    REF_PREFIX = "ref prefix"
    UPSTREAM = "from current branch upstream"
    ONLY_REMOTE = "only configured remote"
    BRANCH_PUSH_REMOTE = "branch pushRemote"
    PUSH_DEFAULT = "remote.pushDefault"


@dataclass(frozen=True)
class RemoteChoice:
    name: str
    source: RemoteSource


def _remote_prefix(ref: Optional[str], remotes: Sequence[str]) -> Optional[str]:
    if not ref or "/" not in ref:
        return None
    prefix = ref.split("/", 1)[0]
    return prefix if prefix and prefix in remotes else None


def resolve_remote(
    remotes: Sequence[str],
    *,
    explicit: Optional[str] = None,
    ref: Optional[str] = None,
    upstream: Optional[str] = None,
) -> RemoteChoice:
    """Pick the one remote a fetch (or onboarding push) should use.

    Order: explicit remote, remote prefix of ``ref``, remote of the current
    branch's upstream, the only configured remote. Anything else is ambiguous.
    """
    if not remotes:
        raise NotFoundError(
            "mob-consensus: no remotes configured (hint: git remote -v)",
            "remote",
        )

    explicit = (explicit or "").strip()
    if explicit:
        if explicit in remotes:
            return RemoteChoice(explicit, RemoteSource.EXPLICIT)
        raise NotFoundError(
            f"mob-consensus: remote {explicit!r} not found; "
            f"available remotes: {', '.join(sorted(remotes))}",
            explicit,
            remotes,
        )

    prefix = _remote_prefix(ref, remotes)
    if prefix:
        return RemoteChoice(prefix, RemoteSource.REF_PREFIX)

    upstream_remote = _remote_prefix(upstream, remotes)
    if upstream_remote:
        return RemoteChoice(upstream_remote, RemoteSource.UPSTREAM)

    if len(remotes) == 1:
        return RemoteChoice(remotes[0], RemoteSource.ONLY_REMOTE)

    raise AmbiguityError(
        f"mob-consensus: multiple remotes configured ({', '.join(sorted(remotes))}); "
        "set an upstream or fetch explicitly (e.g., git fetch <remote>)",
        remotes,
    )


def suggested_remote(git: "GitRepo") -> Optional[RemoteChoice]:
    """Best remote for hints and push advice, or None when unsure."""
    try:
        return resolve_remote(git.remotes(), upstream=git.upstream())
    except (AmbiguityError, NotFoundError):
        return None


def fetch_for(git: "GitRepo", ref: Optional[str] = None, explicit: Optional[str] = None) -> RemoteChoice:
    """Resolve the remote and fetch it. A failed fetch is fatal."""
    choice = resolve_remote(git.remotes(), explicit=explicit, ref=ref, upstream=git.upstream())
    git.fetch(choice.name)
    log_action("fetch", remote=choice.name, source=choice.source.value)
    return choice


# ----------------------------------------------------------------------
# Push destination
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class PushPlan:
    """Where to push. ``remote`` None means a plain ``git push``."""

    branch: str
    remote: Optional[str] = None
    source: Optional[RemoteSource] = None

    @property
    def args(self) -> list[str]:
        return push_args(self.remote, self.branch)


def choose_push_destination(
    branch: str,
    *,
    upstream: Optional[str],
    branch_push_remote: Optional[str],
    push_default: Optional[str],
    remotes: Sequence[str],
) -> PushPlan:
    if is_detached(branch):
        raise PreconditionError("mob-consensus: cannot push from detached HEAD")
    if upstream:
        return PushPlan(branch)
    if branch_push_remote:
        return PushPlan(branch, branch_push_remote, RemoteSource.BRANCH_PUSH_REMOTE)
    if push_default:
        return PushPlan(branch, push_default, RemoteSource.PUSH_DEFAULT)
    if not remotes:
        raise NotFoundError(
            "mob-consensus: cannot push: no git remotes configured (hint: git remote -v)",
            "remote",
        )
    if len(remotes) == 1:
        return PushPlan(branch, remotes[0], RemoteSource.ONLY_REMOTE)
    raise AmbiguityError(
        f"mob-consensus: cannot push: no upstream is set for branch {branch!r} and "
        f"multiple remotes exist: {', '.join(sorted(remotes))} "
        f"(hint: git push -u <remote> {branch}; or: git config --local remote.pushDefault <remote>)",
        remotes,
    )


def smart_push(git: "GitRepo") -> PushPlan:
    """Push the current branch to a destination chosen without guessing."""
    branch = git.current_branch()
    if is_detached(branch):
        raise PreconditionError("mob-consensus: cannot push from detached HEAD")
    plan = choose_push_destination(
        branch,
        upstream=git.upstream(),
        branch_push_remote=git.branch_push_remote(branch),
        push_default=git.push_default(),
        remotes=git.remotes(),
    )
    git.push(plan.remote, plan.branch)
    log_action(
        "push",
        branch=branch,
        remote=plan.remote or "upstream",
        source=plan.source.value if plan.source else "upstream",
    )
    return plan


def push_advice(git: "GitRepo", branch: str) -> list[str]:
    """Lines telling the operator how to publish ``branch``."""
    choice = suggested_remote(git)
    if choice is not None:
        return [f"  git push -u {choice.name} {branch}"]
    lines = [f"  git push -u <remote> {branch}"]
    remotes = git.remotes()
    if remotes:
        lines.append(f"  Available remotes: {', '.join(remotes)}")
    else:
        lines.append("  (Hint: git remote -v)")
    return lines
