"""Co-author trailers and the generated merge message."""

from __future__ import annotations

from typing import Iterable, List, Optional


def coauthor_lines(log_output: str, exclude_email: Optional[str]) -> List[str]:
    """Deduplicated, sorted ``Co-authored-by:`` lines.

    Blank lines are dropped, and so is any line containing ``exclude_email``
    as a substring (a coarse match: the acting identity never credits itself).
    """
    exclude = (exclude_email or "").strip()
    seen = set()
    for line in log_output.splitlines():
        line = line.strip()
        if not line:
            continue
        if exclude and exclude in line:
            continue
        seen.add(line)
    return sorted(seen)


def merge_message(target: str, current_branch: str, coauthors: Iterable[str]) -> str:
    lines = [f"mob-consensus merge from {target} onto {current_branch}", ""]
    lines.extend(coauthors)
    return "\n".join(lines) + "\n"
