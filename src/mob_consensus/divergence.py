"""Ahead/behind/diverged/synced classification of related branches."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List

from .catalog import related_branches
from .naming import twig_from_branch

if TYPE_CHECKING:
    from .gitops import GitRepo


class Divergence(str, Enum):
    """Relationship of a related branch to the current branch."""

    AHEAD = "ahead"  # Branch has changes the current branch lacks
    BEHIND = "behind"  # Current branch has changes the branch lacks
    DIVERGED = "diverged"  # Both sides have changes
    SYNCED = "synced"  # Neither side has changes


@dataclass(frozen=True)
class BranchStatus:
    branch: str
    state: Divergence
    ahead: str = ""
    behind: str = ""

    def line(self) -> str:
        if self.state is Divergence.DIVERGED:
            return f"{self.branch:>40} has diverged: ahead: {self.ahead}; behind: {self.behind}"
        if self.state is Divergence.AHEAD:
            return f"{self.branch:>40} is ahead: {self.ahead}"
        if self.state is Divergence.BEHIND:
            return f"{self.branch:>40} is behind: {self.behind}"
        return f"{self.branch:>40} is synced"


def classify(branch: str, ahead: str, behind: str) -> BranchStatus:
    """Classify from the two one-directional diff summaries."""
    ahead = ahead.strip()
    behind = behind.strip()
    if ahead and behind:
        state = Divergence.DIVERGED
    elif ahead:
        state = Divergence.AHEAD
    elif behind:
        state = Divergence.BEHIND
    else:
        state = Divergence.SYNCED
    return BranchStatus(branch, state, ahead, behind)


def collect_status(git: "GitRepo", current_branch: str) -> List[BranchStatus]:
    """Status of every branch sharing the current branch's twig."""
    twig = twig_from_branch(current_branch)
    statuses = []
    for branch in related_branches(git.branch_listing(), twig, current=current_branch):
        ahead = git.diff_shortstat(f"...{branch}")
        behind = git.diff_shortstat(f"{branch}...")
        statuses.append(classify(branch, ahead, behind))
    return statuses
