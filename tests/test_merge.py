"""Merge orchestration against real repositories.

Every test starts from two clones of the same bare remote with
``alice/feature-x`` and ``bob/feature-x`` published, and bob one commit ahead.
"""

from __future__ import annotations

import stat

import pytest
from git import Repo

from mob_consensus.commands import run
from mob_consensus.context import Command, Options
from mob_consensus.errors import (
    AbortedError,
    AmbiguityError,
    NotFoundError,
    PreconditionError,
    SubstrateError,
    UsageError,
)
from mob_consensus.merge import MergeOutcome


@pytest.fixture
def alice_and_bob(on_personal_branch, commit):
    alice = on_personal_branch("alice")
    bob = on_personal_branch("bob")
    commit(bob, "bob.txt", "from bob\n", "bob adds a file")
    Repo(bob).git.push()
    return alice, bob


@pytest.fixture
def unrelated_branch(alice_and_bob, commit):
    """A local ``carol/feature-x`` with no history in common with alice."""
    alice, _ = alice_and_bob
    repo = Repo(alice)
    repo.git.checkout("--orphan", "carol/feature-x")
    repo.git.rm("-rf", "--quiet", ".")
    commit(alice, "carol.txt", "from carol\n", "carol starts over")
    repo.git.checkout("alice/feature-x")
    return alice


@pytest.fixture
def message_editor(tmp_path, monkeypatch):
    """An editor that writes a fixed commit message."""
    script = tmp_path / "editor.sh"
    script.write_text('#!/bin/sh\necho "wip from editor" > "$1"\n')
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    monkeypatch.setenv("GIT_EDITOR", str(script))
    return script


def merge(alice, target, streams, config, **kwargs):
    return run(Options(Command.MERGE, target=target, **kwargs), streams, repo_path=alice, config=config)


def remote_head(origin, branch):
    return Repo(origin).commit(branch).hexsha


def test_clean_merge_credits_peer_and_pushes(alice_and_bob, origin, make_streams, mob_config):
    alice, _ = alice_and_bob
    streams = make_streams("y\n")

    outcome = merge(alice, "bob/feature-x", streams, mob_config)

    assert outcome is MergeOutcome.PUSHED
    assert 'Resolved "bob/feature-x" to "origin/bob/feature-x". Merge this branch? [y/N]: ' in streams.err.getvalue()
    head = Repo(alice).head.commit
    assert len(head.parents) == 2
    lines = head.message.splitlines()
    assert lines[0] == "mob-consensus merge from origin/bob/feature-x onto alice/feature-x"
    assert "Co-authored-by: bob <bob@example.com>" in lines
    assert not any("alice@example.com" in line for line in lines)
    assert remote_head(origin, "alice/feature-x") == head.hexsha
    assert list((alice / ".git").glob("mob-consensus-*.msg")) == []


def test_repeat_merge_is_a_noop(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    merge(alice, "bob/feature-x", make_streams("y\n"), mob_config)
    before = Repo(alice).head.commit.hexsha

    outcome = merge(alice, "bob/feature-x", make_streams("y\n"), mob_config)

    assert outcome is MergeOutcome.NOOP
    assert Repo(alice).head.commit.hexsha == before
    assert not (alice / ".git" / "MERGE_HEAD").exists()


def test_no_push_commits_locally(alice_and_bob, origin, make_streams, mob_config):
    alice, _ = alice_and_bob
    published = remote_head(origin, "alice/feature-x")
    streams = make_streams()

    outcome = merge(alice, "origin/bob/feature-x", streams, mob_config, no_push=True)

    assert outcome is MergeOutcome.COMMITTED
    assert "skipping automatic push -- don't forget to push later" in streams.out.getvalue()
    assert remote_head(origin, "alice/feature-x") == published
    assert len(Repo(alice).head.commit.parents) == 2


def test_message_without_editor(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    mob_config.merge.edit_message = False
    mob_config.merge.review_tool = ""

    outcome = merge(alice, "origin/bob/feature-x", make_streams(), mob_config, no_push=True)

    assert outcome is MergeOutcome.COMMITTED
    assert Repo(alice).head.commit.message.startswith("mob-consensus merge from origin/bob/feature-x")


def test_declining_confirmation_changes_nothing(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    (alice / "README.md").write_text("dirty\n")
    before = Repo(alice).head.commit.hexsha

    with pytest.raises(AbortedError):
        merge(alice, "bob/feature-x", make_streams("n\n"), mob_config, commit_dirty=True)

    repo = Repo(alice)
    assert repo.head.commit.hexsha == before
    assert repo.is_dirty()
    assert not (alice / ".git" / "MERGE_HEAD").exists()


def test_conflict_goes_through_merge_tool(on_personal_branch, commit, origin, make_streams, mob_config):
    alice = on_personal_branch("alice")
    bob = on_personal_branch("bob")
    commit(bob, "notes.txt", "bob's notes\n", "bob edits notes")
    Repo(bob).git.push()
    commit(alice, "notes.txt", "alice's notes\n", "alice edits notes")

    outcome = merge(alice, "origin/bob/feature-x", make_streams(), mob_config)

    assert outcome is MergeOutcome.PUSHED
    head = Repo(alice).head.commit
    assert len(head.parents) == 2
    assert "Co-authored-by: bob <bob@example.com>" in head.message
    assert remote_head(origin, "alice/feature-x") == head.hexsha


def test_ambiguous_target_lists_candidates_and_related(alice_and_bob, origin, make_streams, mob_config):
    alice, _ = alice_and_bob
    repo = Repo(alice)
    repo.create_remote("mirror", str(origin))
    repo.git.fetch("mirror")
    streams = make_streams("y\n")

    with pytest.raises(AmbiguityError) as excinfo:
        merge(alice, "bob/feature-x", streams, mob_config)

    assert excinfo.value.candidates == ["mirror/bob/feature-x", "origin/bob/feature-x"]
    assert "Related branches and their diffs (if any):" in streams.out.getvalue()


def test_unknown_target(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    streams = make_streams()
    with pytest.raises(NotFoundError) as excinfo:
        merge(alice, "carol/feature-x", streams, mob_config)
    assert excinfo.value.checked == ["origin"]
    assert "bob/feature-x is ahead" in streams.out.getvalue()


def test_option_like_target_is_usage_error(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    with pytest.raises(UsageError):
        merge(alice, "-bad", make_streams(), mob_config)


def test_requires_personal_branch(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    Repo(alice).git.checkout("feature-x")
    with pytest.raises(UsageError, match="aren't on a 'alice/' branch"):
        merge(alice, "origin/bob/feature-x", make_streams(), mob_config)


def test_dirty_tree_without_commit_permission(alice_and_bob, make_streams, mob_config):
    alice, _ = alice_and_bob
    (alice / "README.md").write_text("dirty\n")
    before = Repo(alice).head.commit.hexsha
    streams = make_streams()

    with pytest.raises(PreconditionError, match="working tree is dirty"):
        merge(alice, "origin/bob/feature-x", streams, mob_config)

    assert "you have uncommitted changes" in streams.out.getvalue()
    assert Repo(alice).head.commit.hexsha == before


def test_dirty_tree_committed_first(alice_and_bob, message_editor, make_streams, mob_config):
    alice, _ = alice_and_bob
    (alice / "README.md").write_text("dirty\n")

    outcome = merge(alice, "origin/bob/feature-x", make_streams(), mob_config, commit_dirty=True, no_push=True)

    repo = Repo(alice)
    assert outcome is MergeOutcome.COMMITTED
    assert not repo.is_dirty()
    # The editor also supplies the merge message when editing is on
    first_parent = repo.head.commit.parents[0]
    assert first_parent.message.strip() == "wip from editor"


def test_failed_related_listing_keeps_resolution_error(unrelated_branch, make_streams, mob_config):
    streams = make_streams()

    with pytest.raises(NotFoundError) as excinfo:
        merge(unrelated_branch, "zed/feature-x", streams, mob_config)

    assert excinfo.value.name == "zed/feature-x"
    out = streams.out.getvalue()
    assert "Related branches and their diffs (if any):" in out
    assert "related branch listing unavailable" in out


def test_merge_command_failure_leaves_no_merge(unrelated_branch, make_streams, mob_config):
    before = Repo(unrelated_branch).head.commit.hexsha

    with pytest.raises(SubstrateError) as excinfo:
        merge(unrelated_branch, "carol/feature-x", make_streams(), mob_config)

    assert "unrelated histories" in excinfo.value.stderr
    assert not (unrelated_branch / ".git" / "MERGE_HEAD").exists()
    assert Repo(unrelated_branch).head.commit.hexsha == before


def test_failed_commit_keeps_pending_merge(alice_and_bob, origin, make_streams, mob_config):
    alice, _ = alice_and_bob
    hook = alice / ".git" / "hooks" / "commit-msg"
    hook.parent.mkdir(exist_ok=True)
    hook.write_text("#!/bin/sh\necho 'rejected by hook' >&2\nexit 1\n")
    hook.chmod(hook.stat().st_mode | stat.S_IEXEC)
    mob_config.merge.edit_message = False
    mob_config.merge.review_tool = ""
    published = remote_head(origin, "alice/feature-x")
    streams = make_streams()

    with pytest.raises(SubstrateError):
        merge(alice, "origin/bob/feature-x", streams, mob_config)

    assert "don't forget to push" in streams.out.getvalue()
    assert (alice / ".git" / "MERGE_HEAD").exists()
    assert list((alice / ".git").glob("mob-consensus-*.msg")) == []
    assert remote_head(origin, "alice/feature-x") == published
