"""Twig and identity naming.

A twig is the final ``/`` segment of a branch name; a personal branch is
``<identity>/<twig>``. The identity is derived from ``user.email`` and must
form a valid branch segment; an invalid identity is never substituted.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from .errors import UsageError

RefFormatChecker = Callable[[str], bool]

# Local pre-checks before asking git (check-ref-format has the final word).
# Each tuple is (compiled_pattern, human_readable_message)
_BRANCH_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^-"), "starts with hyphen"),
    (re.compile(r"\.\."), "contains consecutive dots (..)"),
    (re.compile(r"@\{"), "contains reflog syntax (@{)"),
    (re.compile(r"[\x00-\x1f\x7f]"), "contains control characters"),
    (re.compile(r"[~^:?*\[\]\\]"), "contains invalid git characters (~^:?*[]\\)"),
    (re.compile(r"\s"), "contains whitespace"),
    (re.compile(r"(^|/)\."), "has a component starting with a dot"),
    (re.compile(r"(\.lock|/|\.)$"), "ends with '.lock', '/' or '.'"),
    (re.compile(r"//"), "contains consecutive slashes"),
]


def twig_from_branch(branch: str) -> str:
    """Final ``/`` segment of a ref, trimmed. Total: never raises."""
    return branch.strip().rstrip("/").rsplit("/", 1)[-1]


def personal_branch(identity: str, twig: str) -> str:
    return f"{identity}/{twig}"


def branch_syntax_problem(name: str) -> Optional[str]:
    for pattern, message in _BRANCH_RULES:
        if pattern.search(name):
            return message
    return None


def validate_branch_name(label: str, name: str, checker: RefFormatChecker) -> str:
    """Return the trimmed name or raise UsageError naming ``label``."""
    name = name.strip()
    if not name:
        raise UsageError(f"mob-consensus: {label} is empty")
    problem = branch_syntax_problem(name)
    if problem is not None or not checker(name):
        detail = f" ({problem})" if problem else ""
        raise UsageError(f"mob-consensus: invalid {label} {name!r}{detail}")
    return name


def identity_from_email(email: Optional[str], checker: RefFormatChecker) -> str:
    """Derive the branch-namespace identity from an email address."""
    email = (email or "").strip()
    if not email:
        raise UsageError(
            "mob-consensus: git user.email is not set "
            "(hint: git config --local user.email alice@example.com)"
        )

    user = email.split("@", 1)[0].strip()
    if not user:
        raise UsageError(f"mob-consensus: could not derive a username from git user.email={email!r}")

    sample = personal_branch(user, "sample")
    if branch_syntax_problem(sample) is not None or not checker(sample):
        raise UsageError(
            f"mob-consensus: derived username {user!r} (from git user.email={email!r}) "
            "produces an invalid branch name"
        )
    return user


def require_user_branch(force: bool, identity: str, current_branch: str) -> None:
    if force or current_branch.startswith(f"{identity}/"):
        return
    raise UsageError(f"mob-consensus: you aren't on a '{identity}/' branch")
