"""Invocation context: options, operator streams, and the per-run session."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Optional

from .config_schema import MobConsensusConfig
from .gitops import GitRepo


class Command(str, Enum):
    STATUS = "status"
    MERGE = "merge"
    BRANCH = "branch"
    INIT = "init"
    START = "start"
    JOIN = "join"


class ExecutionMode(str, Enum):
    """How a plan is run. One value, so plan+dry-run cannot coexist."""

    PLAN = "plan"  # Title, explanations and commands; no side effects
    DRY_RUN = "dry-run"  # Raw commands only; no prompts, no side effects
    EXECUTE = "execute"  # Pre-check, confirm (unless yes), run


@dataclass(frozen=True)
class Options:
    command: Command
    twig: Optional[str] = None
    base: Optional[str] = None
    remote: Optional[str] = None
    target: Optional[str] = None
    force: bool = False
    no_push: bool = False
    commit_dirty: bool = False
    mode: ExecutionMode = ExecutionMode.EXECUTE
    yes: bool = False

    @property
    def previewing(self) -> bool:
        return self.mode is not ExecutionMode.EXECUTE

    @property
    def interactive(self) -> bool:
        return self.mode is ExecutionMode.EXECUTE and not self.yes


@dataclass
class Streams:
    """Primary output, diagnostic/prompt output, and operator input."""

    out: IO[str] = field(default_factory=lambda: sys.stdout)
    err: IO[str] = field(default_factory=lambda: sys.stderr)
    inp: IO[str] = field(default_factory=lambda: sys.stdin)

    def say(self, text: str = "") -> None:
        print(text, file=self.out)

    def ask(self, prompt: str) -> str:
        self.err.write(prompt)
        self.err.flush()
        return self.inp.readline().strip()

    def confirm(self, prompt: str) -> bool:
        return self.ask(prompt).lower() in ("y", "yes")


@dataclass
class Session:
    """Everything a command needs, resolved once at the entry point."""

    git: GitRepo
    identity: str
    email: str
    streams: Streams
    config: MobConsensusConfig = field(default_factory=MobConsensusConfig)
