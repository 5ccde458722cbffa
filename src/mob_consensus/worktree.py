from __future__ import annotations

from .context import Options, Session
from .errors import PreconditionError
from .observability import log_action
from .remotes import smart_push


def ensure_clean(session: Session, options: Options, *, require_clean: bool, push: bool = True) -> None:
    """Deal with uncommitted changes before a flow mutates anything.

    With ``commit_dirty`` the changes are shown, committed interactively and
    (when ``push`` and not ``no_push``) pushed. Without it a dirty tree is a
    PreconditionError if ``require_clean``, otherwise just reported.
    """
    git = session.git
    if not git.is_dirty():
        return

    session.streams.say("you have uncommitted changes")
    if not options.commit_dirty:
        if require_clean:
            raise PreconditionError("working tree is dirty (use -c to commit)")
        return

    git.run(["diff", "HEAD"])
    git.run_interactive(["commit", "-a"])
    log_action("commit_dirty", branch=git.current_branch())
    if push and not options.no_push:
        smart_push(git)
