"""Git substrate adapter.

All git invocations go through :class:`GitRepo`. Results come back as a
tagged :class:`GitResult`; required calls that fail raise
:class:`~mob_consensus.errors.SubstrateError` with stderr kept verbatim,
so nothing downstream re-parses error text.

Captured output of mutating commands is echoed to the streams the adapter
was constructed with. Commands that need the operator's terminal (editor,
merge/diff tools) go through :meth:`GitRepo.run_interactive`.
"""

from __future__ import annotations

import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, List, Optional, Sequence

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from .errors import SubstrateError
from .observability import log_debug

COAUTHOR_FORMAT = "--pretty=format:Co-authored-by: %an <%ae>"


def is_detached(branch: str) -> bool:
    """True for the names ``rev-parse --abbrev-ref HEAD`` gives a detached HEAD."""
    return branch in ("", "HEAD")


def push_args(remote: Optional[str] = None, branch: Optional[str] = None) -> List[str]:
    """Plain ``push`` when remote is None, else ``push -u <remote> <branch>``."""
    if remote is None:
        return ["push"]
    return ["push", "-u", remote, branch]


@dataclass
class GitResult:
    """Outcome of one git invocation."""

    args: List[str]
    status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 0

    def raise_for_status(self) -> "GitResult":
        if not self.ok:
            raise SubstrateError(self.args, self.status, self.stderr, self.stdout)
        return self


@dataclass
class MergeState:
    """Whether a merge is pending, and where git keeps its metadata."""

    in_progress: bool
    merge_head_path: Path
    merge_msg_path: Path


@dataclass
class GitRepo:
    """GitPython-backed view of one working tree."""

    path: Path = field(default_factory=Path.cwd)
    out: Optional[IO[str]] = None
    err: Optional[IO[str]] = None

    def __post_init__(self) -> None:
        try:
            self._repo = Repo(self.path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise SubstrateError(
                ["rev-parse", "--git-dir"],
                128,
                message=f"not a git repository: {self.path}",
            )
        self.work_tree = Path(self._repo.working_tree_dir or self.path)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def execute(self, args: Sequence[str]) -> GitResult:
        """Run git with captured output. Never raises on a non-zero exit."""
        argv = list(args)
        start = time.perf_counter()
        status, stdout, stderr = self._repo.git.execute(
            [self._repo.git.GIT_PYTHON_GIT_EXECUTABLE, *argv],
            with_extended_output=True,
            with_exceptions=False,
        )
        log_debug(
            "git",
            args=argv,
            status=status,
            ms=round((time.perf_counter() - start) * 1000.0, 1),
        )
        return GitResult(argv, status, stdout or "", stderr or "")

    def query(self, *args: str) -> str:
        """Run a read-only git command and return stripped stdout."""
        return self.execute(args).raise_for_status().stdout.strip()

    def query_optional(self, *args: str) -> Optional[str]:
        """Like :meth:`query`, but a failed or empty answer is None."""
        result = self.execute(args)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def run(self, args: Sequence[str]) -> GitResult:
        """Run a mutating git command, echoing its output."""
        result = self.execute(args)
        self._echo(result)
        return result.raise_for_status()

    def run_interactive(self, args: Sequence[str]) -> None:
        """Run git attached to the operator's terminal (editor, tools)."""
        argv = list(args)
        log_debug("git (interactive)", args=argv)
        proc = subprocess.run(
            [self._repo.git.GIT_PYTHON_GIT_EXECUTABLE, *argv],
            cwd=str(self.work_tree),
        )
        if proc.returncode != 0:
            raise SubstrateError(argv, proc.returncode)

    def _echo(self, result: GitResult) -> None:
        if result.stdout and self.out is not None:
            print(result.stdout.rstrip("\n"), file=self.out)
        if result.stderr and self.err is not None:
            print(result.stderr.rstrip("\n"), file=self.err)

    @staticmethod
    def render(args: Sequence[str]) -> str:
        return "git " + " ".join(shlex.quote(a) for a in args)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_branch(self) -> str:
        """Short name of the checked-out branch, or "HEAD" when detached."""
        return self.query("rev-parse", "--abbrev-ref", "HEAD")

    def head_sha(self) -> Optional[str]:
        return self.query_optional("rev-parse", "--verify", "--quiet", "HEAD")

    def branch_listing(self) -> str:
        return self.query("branch", "-a")

    def remotes(self) -> List[str]:
        out = self.query("remote")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def upstream(self) -> Optional[str]:
        """Upstream of the current branch (e.g. ``origin/alice/x``), if any."""
        return self.query_optional("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")

    def branch_push_remote(self, branch: str) -> Optional[str]:
        return self.query_optional("config", "--get", f"branch.{branch}.pushRemote")

    def push_default(self) -> Optional[str]:
        return self.query_optional("config", "--get", "remote.pushDefault")

    def user_email(self) -> Optional[str]:
        return self.query_optional("config", "--get", "user.email")

    def ref_exists(self, full_ref: str) -> bool:
        """``show-ref --verify``: exit 1 means absent, anything else is an error."""
        result = self.execute(["show-ref", "--verify", "--quiet", full_ref])
        if result.ok:
            return True
        if result.status == 1:
            return False
        raise SubstrateError(result.args, result.status, result.stderr, result.stdout)

    def local_branch_exists(self, branch: str) -> bool:
        return self.ref_exists(f"refs/heads/{branch}")

    def remote_tracking_branch_exists(self, remote: str, branch: str) -> bool:
        return self.ref_exists(f"refs/remotes/{remote}/{branch}")

    def verify_ref(self, ref: str) -> bool:
        return self.execute(["rev-parse", "--verify", "--quiet", ref]).ok

    def check_ref_format(self, branch: str) -> bool:
        return self.execute(["check-ref-format", "--branch", branch]).ok

    def diff_shortstat(self, rev_range: str) -> str:
        return self.query("diff", "--shortstat", rev_range)

    def coauthor_log(self, target: str) -> str:
        """One ``Co-authored-by:`` line per commit in ``HEAD..target``."""
        return self.query("log", f"..{target}", COAUTHOR_FORMAT)

    def porcelain_status(self) -> str:
        return self.query("status", "--porcelain")

    def is_dirty(self) -> bool:
        return self.porcelain_status() != ""

    def git_dir(self) -> Path:
        return self._absolute(self.query("rev-parse", "--git-dir"))

    def git_path(self, name: str) -> Path:
        return self._absolute(self.query("rev-parse", "--git-path", name))

    def merge_state(self) -> MergeState:
        merge_head = self.git_path("MERGE_HEAD")
        return MergeState(
            in_progress=merge_head.exists(),
            merge_head_path=merge_head,
            merge_msg_path=self.git_path("MERGE_MSG"),
        )

    def _absolute(self, value: str) -> Path:
        p = Path(value)
        return p if p.is_absolute() else (self.work_tree / p).resolve()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def fetch(self, remote: str) -> GitResult:
        return self.run(["fetch", remote])

    def checkout(self, branch: str, start_point: Optional[str] = None) -> GitResult:
        if start_point is None:
            return self.run(["checkout", branch])
        return self.run(["checkout", "-b", branch, start_point])

    def push(self, remote: Optional[str] = None, branch: Optional[str] = None) -> GitResult:
        if remote is not None and branch is None:
            branch = self.current_branch()
        return self.run(push_args(remote, branch))

    def merge_no_commit(self, target: str) -> GitResult:
        """``merge --no-commit --no-ff``; the caller inspects merge state."""
        result = self.execute(["merge", "--no-commit", "--no-ff", target])
        self._echo(result)
        return result

    def commit_with_message_file(self, message_file: Path, edit: bool = True) -> None:
        if edit:
            self.run_interactive(["commit", "-e", "-F", str(message_file)])
        else:
            self.run(["commit", "-F", str(message_file)])
