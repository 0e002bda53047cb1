"""Tests for classifying git command output."""

from __future__ import annotations

from pathlib import Path

import pytest

from plugsmith.core.process import RunResult
from plugsmith.plugins.vcs import (
    CheckoutStatus,
    GitClient,
    GitError,
    PullStatus,
    classify_checkout,
    classify_pull,
    is_missing_error,
)


def result(returncode: int = 0, stdout: str = "", stderr: str = "") -> RunResult:
    return RunResult(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.mark.parametrize(
    "run, expected",
    [
        (result(stderr="Note: switching to 'v1.2.0'.\nHEAD is now at 3f2a1bc release"), CheckoutStatus.DETACHED),
        (result(stderr="You are in 'detached HEAD' state."), CheckoutStatus.DETACHED),
        (result(stderr="Already on 'main'"), CheckoutStatus.ALREADY_ON),
        (result(stderr="Switched to branch 'develop'"), CheckoutStatus.SWITCHED),
        (result(stderr="Switched to a new branch 'develop'"), CheckoutStatus.SWITCHED),
        (result(), CheckoutStatus.ALREADY_ON),
    ],
)
def test_classify_checkout(run: RunResult, expected: CheckoutStatus) -> None:
    assert classify_checkout(run) is expected


def test_classify_checkout_unknown_ref() -> None:
    run = result(1, stderr="error: pathspec 'v9' did not match any file(s) known to git")
    with pytest.raises(GitError, match="pathspec"):
        classify_checkout(run)


def test_classify_pull() -> None:
    assert classify_pull(result(stdout="Already up to date.\n")) is PullStatus.UP_TO_DATE
    assert classify_pull(result(stdout="Updating 1a2b..3c4d\nFast-forward\n")) is PullStatus.CHANGED


def test_classify_pull_failure_is_fatal() -> None:
    with pytest.raises(GitError, match="Could not resolve host"):
        classify_pull(result(1, stderr="fatal: unable to access: Could not resolve host"))


@pytest.mark.parametrize(
    "text, missing",
    [
        ("remote: Repository not found.", True),
        ("fatal: repository 'https://x/y' does not exist", True),
        ("No such file or directory", True),
        ("fatal: Authentication failed", False),
    ],
)
def test_is_missing_error(text: str, missing: bool) -> None:
    assert is_missing_error(text) is missing


def test_git_client_directories(tmp_path: Path) -> None:
    client = GitClient(tmp_path)
    assert client.directory("github.com/org/mono/plugins/a") == tmp_path / "github.com/org/mono"
    assert not client.exists("github.com/org/mono")


def test_git_client_depth(tmp_path: Path) -> None:
    client = GitClient(tmp_path, depth=4)
    assert client.directory("gitlab.com/group/sub/repo/plugin") == tmp_path / "gitlab.com/group/sub/repo"
