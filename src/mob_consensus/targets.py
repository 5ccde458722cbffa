"""Resolve a short merge target to exactly one ref, or fail saying why."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .errors import AmbiguityError, NotFoundError, UsageError


@dataclass(frozen=True)
class MergeTarget:
    ref: str
    # True only when a remote was guessed; the caller must confirm first
    needs_confirmation: bool = False


def _not_found(name: str, remotes: Sequence[str]) -> NotFoundError:
    if remotes:
        message = (
            f"mob-consensus: branch {name!r} not found locally or on any remote "
            f"({', '.join(sorted(remotes))}) (hint: git fetch --all; "
            f"or use an explicit ref like <remote>/{name})"
        )
    else:
        message = (
            f"mob-consensus: branch {name!r} not found locally and no remotes "
            "configured (hint: git remote -v)"
        )
    friendly = (
        f"mob-consensus: branch {name!r} does not exist.\n\n"
        "Pick a branch name from the list above (the same list shown by "
        "`mob-consensus status`), then re-run:\n"
        "  mob-consensus merge <branch>"
    )
    return NotFoundError(message, name, remotes, friendly=friendly)


def resolve_merge_target(
    name: str,
    remotes: Sequence[str],
    verify: Callable[[str], bool],
) -> MergeTarget:
    """Resolve ``name`` against local refs first, then ``<remote>/<name>``.

    Total: returns a unique ref (guessed or not) or raises NotFoundError
    listing every remote checked / AmbiguityError listing every candidate.
    """
    if verify(name):
        return MergeTarget(name)

    candidates = [f"{remote}/{name}" for remote in remotes if verify(f"{remote}/{name}")]
    if len(candidates) == 1:
        return MergeTarget(candidates[0], needs_confirmation=True)
    if not candidates:
        raise _not_found(name, remotes)
    candidates.sort()
    raise AmbiguityError(
        f"mob-consensus: branch {name!r} is ambiguous; found multiple candidates: "
        f"{', '.join(candidates)} (use an explicit ref)",
        candidates,
    )


def check_target_name(name: Optional[str]) -> str:
    """Trimmed merge target, rejecting empty and option-like names."""
    name = (name or "").strip()
    if not name:
        raise UsageError("mob-consensus: merge requires a branch name")
    if name.startswith("-"):
        raise UsageError(f"mob-consensus: invalid branch name {name!r}")
    return name
