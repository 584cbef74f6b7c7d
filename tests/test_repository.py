from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import git, init_repo, requires_git
from gitweave.config import GitweaveSettings
from gitweave.git.options import (
    CheckoutOptions,
    CloneOptions,
    DeleteBranchOptions,
    FetchOptions,
    GitIdentity,
    MergeOptions,
    PushOptions,
    ResetOptions,
)
from gitweave.git.repository import INITIALIZED_SUBMODULES, Git
from gitweave.git.runner import FakeGitRunner, GitCommandError, OutputShapeError, reply
from gitweave.git.submodules import SubmoduleSyncError

OID = "91d92f5732440651499ea7adfa60a362a2bade39"


def run(coro):
    return asyncio.run(coro)


def test_checkout_flags() -> None:
    fake = FakeGitRunner()
    run(Git(fake).checkout("main", CheckoutOptions(force=True, detach=True)))

    assert fake.invocations == [("checkout", "-f", "--detach", "main")]


def test_checkout_recursing_into_submodules() -> None:
    fake = FakeGitRunner()
    run(Git(fake, submodule_jobs=8).checkout("main", CheckoutOptions(recurse_submodules=True)))

    assert fake.invocations == [
        ("checkout", "main"),
        ("submodule", "update", "--jobs=8"),
        ("submodule", "status"),
    ]


def test_clone_flags() -> None:
    fake = FakeGitRunner()
    options = CloneOptions(
        reference="/cache/repo.git",
        depth=1,
        omit_blobs=True,
        recurse_submodules=True,
    )
    run(Git(fake).clone("https://example.com/repo.git", "repo", options))

    assert fake.invocations == [
        (
            "clone",
            "--reference-if-able",
            "/cache/repo.git",
            "--depth",
            "1",
            "--filter=blob:none",
            "--recurse-submodules",
            "--jobs=16",
            "https://example.com/repo.git",
            "repo",
        )
    ]


def test_fetch_flags() -> None:
    fake = FakeGitRunner()
    options = FetchOptions(prune=True, tags=True, depth=5, jobs=4, fetch_tag="v1.0")
    run(Git(fake).fetch_refspec("origin", "refs/heads/main", options))

    assert fake.invocations == [
        ("fetch", "-p", "--tags", "--depth", "5", "--jobs=4", "origin", "tag", "v1.0", "refs/heads/main")
    ]


def test_push_defaults_to_verify() -> None:
    fake = FakeGitRunner()
    git_ = Git(fake)
    run(git_.push("origin", "main"))
    run(git_.push("origin", "main", PushOptions(force=True, verify=False, follow_tags=True)))

    assert fake.invocations == [
        ("push", "--verify", "origin", "main"),
        ("push", "--force", "--no-verify", "--follow-tags", "origin", "main"),
    ]


def test_merge_failure_resets_and_raises() -> None:
    fake = FakeGitRunner([reply(returncode=1, stderr="CONFLICT"), reply()])

    with pytest.raises(GitCommandError):
        run(Git(fake).merge("feature", MergeOptions(strategy="ours")))

    assert fake.invocations == [
        ("merge", "--no-squash", "--strategy=ours", "feature"),
        ("reset", "--merge"),
    ]


def test_merge_failure_without_reset() -> None:
    fake = FakeGitRunner([reply(returncode=1)])

    with pytest.raises(GitCommandError):
        run(Git(fake).merge("feature", MergeOptions(squash=True, reset_on_failure=False)))

    assert fake.invocations == [("merge", "--squash", "feature")]


def test_reset_and_delete_branch() -> None:
    fake = FakeGitRunner()
    git_ = Git(fake)
    run(git_.reset("origin/main", ResetOptions(mode="soft")))
    run(git_.delete_branch("topic"))
    run(git_.delete_branch("topic", DeleteBranchOptions(force=True)))

    assert fake.invocations == [
        ("reset", "--soft", "origin/main", "--"),
        ("branch", "-d", "topic"),
        ("branch", "-D", "topic"),
    ]


def test_option_validation() -> None:
    with pytest.raises(ValidationError):
        FetchOptions(depth=-1)
    with pytest.raises(ValidationError):
        ResetOptions(mode="sideways")
    with pytest.raises(ValidationError):
        CheckoutOptions(forse=True)


def test_branch_exists() -> None:
    fake = FakeGitRunner(
        [
            reply(f"{OID}\n"),
            reply(returncode=1),
            reply(returncode=128, stderr="fatal: not a git repository"),
        ]
    )
    git_ = Git(fake)

    assert run(git_.branch_exists("main")) is True
    assert run(git_.branch_exists("missing")) is False
    with pytest.raises(GitCommandError):
        run(git_.branch_exists("main"))


def test_count_commits_requires_single_line() -> None:
    fake = FakeGitRunner([reply("3\n"), reply("1\n2\n"), reply("many\n", stderr="warning: odd")])
    git_ = Git(fake)

    assert run(git_.count_commits("topic", "main")) == 3
    assert fake.invocations[0] == ("rev-list", "--count", "topic", "^main", "--")
    with pytest.raises(OutputShapeError):
        run(git_.count_commits("topic"))
    with pytest.raises(OutputShapeError) as excinfo:
        run(git_.count_commits("topic"))
    assert excinfo.value.stderr == "warning: odd"
    assert excinfo.value.cwd == git_.root_dir


def test_version_parsing() -> None:
    fake = FakeGitRunner([reply("git version 2.43.0\n"), reply("git version\n")])
    git_ = Git(fake)

    assert run(git_.version()) == (2, 43)
    with pytest.raises(OutputShapeError):
        run(git_.version())


def test_commit_and_edit_is_interactive() -> None:
    fake = FakeGitRunner()
    run(Git(fake).commit_with_message_and_edit("draft"))

    assert fake.invocations == [("commit", "--allow-empty", "-e", "-m", "draft")]


def test_submodule_update_all_combines_failures() -> None:
    def handler(args):
        if args == ("submodule", "update", "--jobs=50"):
            return reply(returncode=1, stderr="fatal: bulk update failed")
        if args == ("submodule", "status"):
            return reply(f"-{OID} a\n-{OID} b\n")
        if args[:2] == ("submodule", "update") and args[-1] == "b":
            return reply(returncode=128, stderr="fatal: b unreachable")
        return reply()

    fake = FakeGitRunner(handler=handler)

    with pytest.raises(SubmoduleSyncError) as excinfo:
        run(Git(fake).submodule_update_all())

    assert set(excinfo.value.failures) == {INITIALIZED_SUBMODULES, "b"}
    assert excinfo.value.outcome.succeeded == {"a"}


def test_from_settings_wires_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    git_path = tmp_path / "git"
    git_path.write_text("#!/bin/sh\n", encoding="utf-8")
    git_path.chmod(0o755)
    monkeypatch.setenv("GITWEAVE_GIT_PATH", str(git_path))
    monkeypatch.setenv("GITWEAVE_USER_NAME", "Jiri")
    monkeypatch.setenv("GITWEAVE_SUBMODULE_JOBS", "7")

    git_ = Git.from_settings(GitweaveSettings(), tmp_path)

    assert git_.runner.executable == git_path
    assert git_.runner.identity == GitIdentity(name="Jiri")
    assert git_.submodules.jobs == 7
    assert git_.root_dir == tmp_path


@requires_git
def test_branch_operations_with_real_git(tmp_path: Path, git_home: Path) -> None:
    repo = init_repo(tmp_path / "repo", "a.txt")
    git_ = Git.from_settings(GitweaveSettings(), repo)

    run(git_.create_branch("topic"))
    run(git_.checkout("topic"))
    (repo / "b.txt").write_text("b\n", encoding="utf-8")
    git("add", "b.txt", cwd=repo)
    run(git_.commit_with_message("add b"))

    assert run(git_.current_branch_name()) == "topic"
    assert run(git_.branch_exists("topic")) is True
    assert run(git_.branch_exists("nope")) is False
    assert run(git_.count_commits("topic", "main")) == 1
    assert run(git_.current_revision("topic")) == git("rev-parse", "topic", cwd=repo)
