"""Related-branch discovery from ``git branch -a`` output."""

from __future__ import annotations

from typing import List, Optional

# "*" marks the current branch, "+" a branch checked out in another worktree
_SELECTION_MARKERS = "*+"


def related_branches(listing: str, twig: str, current: Optional[str] = None) -> List[str]:
    """Branches from ``listing`` whose final segment is ``twig``.

    Alias lines (``remotes/origin/HEAD -> origin/main``) are skipped and the
    input order is preserved. When ``current`` is given it is excluded.
    """
    suffix = f"/{twig}"
    out: List[str] = []
    for raw in listing.splitlines():
        line = raw.strip().lstrip(_SELECTION_MARKERS).strip()
        if not line or "->" in line:
            continue
        if not line.endswith(suffix):
            continue
        if current is not None and line == current:
            continue
        out.append(line)
    return out
