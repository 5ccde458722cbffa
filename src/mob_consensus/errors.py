"""Error hierarchy for mob-consensus.

Every error carries two renderings: ``message`` (diagnostic text, also
``str(exc)``) for logs and tests, and ``friendly`` for the operator. Only
the CLI decides exit codes; the engine raises and never retries.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class MobConsensusError(Exception):
    """Base exception for all mob-consensus failures."""

    def __init__(self, message: str, *, friendly: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self._friendly = friendly

    @property
    def friendly(self) -> str:
        return self._friendly or self.message


class UsageError(MobConsensusError):
    """Invalid or insufficient operator input. Nothing was mutated."""


class AmbiguityError(MobConsensusError):
    """More than one valid interpretation exists."""

    def __init__(self, message: str, candidates: Iterable[str], *, friendly: Optional[str] = None):
        super().__init__(message, friendly=friendly)
        self.candidates: list[str] = sorted(candidates)


class NotFoundError(MobConsensusError):
    """A requested ref or remote exists nowhere that was checked."""

    def __init__(
        self,
        message: str,
        name: str,
        checked: Iterable[str] = (),
        *,
        friendly: Optional[str] = None,
    ):
        super().__init__(message, friendly=friendly)
        self.name = name
        self.checked: list[str] = sorted(checked)


class PreconditionError(MobConsensusError):
    """A safety or idempotency pre-check failed before a mutating step."""


class AbortedError(MobConsensusError):
    """The operator declined a confirmation."""


class SubstrateError(MobConsensusError):
    """A git command failed. Raw diagnostics are kept verbatim."""

    def __init__(
        self,
        args: Sequence[str],
        status: Optional[int],
        stderr: str = "",
        stdout: str = "",
        *,
        message: Optional[str] = None,
    ):
        self.git_args = list(args)
        self.status = status
        self.stderr = stderr
        self.stdout = stdout
        if message is None:
            message = f"git {' '.join(self.git_args)}: exit status {status}"
            detail = stderr.strip() or stdout.strip()
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


__all__ = [
    "MobConsensusError",
    "UsageError",
    "AmbiguityError",
    "NotFoundError",
    "PreconditionError",
    "AbortedError",
    "SubstrateError",
]
