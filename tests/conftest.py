from __future__ import annotations

import io
import logging
import os
import sys
from pathlib import Path
from typing import Callable

import pytest
from git import Repo


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    # Ensure console scripts load in editable style as well
    os.environ.setdefault("PYTHONPATH", str(src))


# No-op tools so merges never open an interactive program
GITCONFIG = """\
[init]
    defaultBranch = main
[advice]
    detachedHead = false
[merge]
    conflictstyle = merge
[mergetool]
    prompt = false
    keepBackup = false
[mergetool "mobtest"]
    cmd = true
    trustExitCode = true
[difftool]
    prompt = false
[difftool "mobtest"]
    cmd = true
"""


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary HOME with a known gitconfig; no system config, no editor."""
    home = tmp_path / "home"
    home.mkdir()
    (home / ".gitconfig").write_text(GITCONFIG)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    monkeypatch.setenv("GIT_EDITOR", "true")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    monkeypatch.setenv("MOB_CONSENSUS_LOG_DISABLE_FILE", "1")
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL", "EMAIL"):
        monkeypatch.delenv(var, raising=False)
    for var in list(os.environ):
        if var.startswith("MOB_CONSENSUS_") and var != "MOB_CONSENSUS_LOG_DISABLE_FILE":
            monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset logger state between tests."""
    from mob_consensus import observability as obs

    logger = logging.getLogger(obs.LOGGER_NAME)
    logger.handlers.clear()
    obs._logger_initialized = False
    yield
    logger.handlers.clear()
    obs._logger_initialized = False


@pytest.fixture
def mob_config():
    """Config wired to the no-op ``mobtest`` tools from GITCONFIG."""
    from mob_consensus.config_schema import MergeConfig, MobConsensusConfig

    return MobConsensusConfig(merge=MergeConfig(conflict_tool="mobtest", review_tool="mobtest"))


@pytest.fixture
def make_streams():
    """Build Streams over StringIO; ``answers`` feeds the operator input."""
    from mob_consensus.context import Streams

    def _make(answers: str = "") -> Streams:
        return Streams(out=io.StringIO(), err=io.StringIO(), inp=io.StringIO(answers))

    return _make


def commit_file(repo_path: Path, name: str, content: str, message: str) -> str:
    repo = Repo(repo_path)
    (repo_path / name).write_text(content)
    repo.git.add(name)
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


@pytest.fixture
def commit() -> Callable[[Path, str, str, str], str]:
    """Write, add and commit one file using the repo's own identity."""
    return commit_file


@pytest.fixture
def origin(tmp_path: Path, isolated_git_env: Path) -> Path:
    """Bare remote holding ``main`` and the shared twig ``feature-x``."""
    bare = tmp_path / "origin.git"
    Repo.init(bare, bare=True)

    seed_path = tmp_path / "seed"
    seed_path.mkdir()
    seed = Repo.init(seed_path)
    with seed.config_writer() as cfg:
        cfg.set_value("user", "name", "seed")
        cfg.set_value("user", "email", "seed@example.com")
    commit_file(seed_path, "README.md", "# Project\n", "Initial commit")
    seed.git.branch("-M", "main")
    seed.create_remote("origin", str(bare))
    seed.git.push("-u", "origin", "main")
    seed.git.checkout("-b", "feature-x")
    commit_file(seed_path, "notes.txt", "twig notes\n", "Start feature-x")
    seed.git.push("-u", "origin", "feature-x")
    return bare


@pytest.fixture
def clone_as(tmp_path: Path, origin: Path) -> Callable[[str], Path]:
    """Clone ``origin`` as ``<name>@example.com``; returns the work tree."""

    def _clone(name: str) -> Path:
        path = tmp_path / name
        repo = Repo.clone_from(str(origin), str(path))
        with repo.config_writer() as cfg:
            cfg.set_value("user", "name", name)
            cfg.set_value("user", "email", f"{name}@example.com")
        return path

    return _clone


@pytest.fixture
def on_personal_branch(clone_as: Callable[[str], Path]) -> Callable[[str], Path]:
    """Clone as ``name`` and publish ``<name>/feature-x`` from the twig."""

    def _setup(name: str) -> Path:
        path = clone_as(name)
        repo = Repo(path)
        repo.git.checkout("-b", "feature-x", "origin/feature-x")
        repo.git.checkout("-b", f"{name}/feature-x", "feature-x")
        repo.git.push("-u", "origin", f"{name}/feature-x")
        return path

    return _setup
