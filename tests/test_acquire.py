"""Tests for repository acquisition against a fake git client."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeToolchain, FakeVCS
from plugsmith.core.errors import CloneError, DependencyError, ResolutionError, SyncError
from plugsmith.plugins.acquire import Acquirer
from plugsmith.plugins.record import PluginRecord, PluginState
from plugsmith.plugins.vcs import CheckoutStatus, GitError, PullStatus

URL = "github.com/user/greeter"


def make_record(tmp_path: Path, key: str) -> PluginRecord:
    return PluginRecord.from_key(tmp_path / "plugins", key, source_root=tmp_path / "src")


def test_clones_missing_source_then_pulls(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(tmp_path / "src")
    record = make_record(tmp_path, URL)

    Acquirer(vcs, toolchain).update(record)

    assert vcs.ops() == ["clone", "pull"]
    assert record.state is PluginState.ACQUIRED
    # Nothing changed, nothing to reinstall
    assert toolchain.names("deps") == []


def test_pinned_version_is_not_pulled(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(tmp_path / "src", existing={URL}, checkouts=[CheckoutStatus.DETACHED])
    record = make_record(tmp_path, f"{URL}@v1.2.0")

    Acquirer(vcs, toolchain).update(record)

    assert vcs.calls == [("checkout", URL, "v1.2.0")]
    assert toolchain.names("deps") == ["greeter"]
    assert record.state is PluginState.ACQUIRED


def test_unknown_ref_fetches_tags_and_retries(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(
        tmp_path / "src",
        existing={URL},
        checkouts=[GitError("error: pathspec 'v2.0.0' did not match"), CheckoutStatus.DETACHED],
    )
    record = make_record(tmp_path, f"{URL}@v2.0.0")

    Acquirer(vcs, toolchain).update(record)

    assert vcs.ops() == ["checkout", "fetch_tags", "checkout"]
    assert record.state is PluginState.ACQUIRED


def test_unresolvable_ref(tmp_path: Path, toolchain: FakeToolchain) -> None:
    missing = GitError("error: pathspec 'v9' did not match")
    vcs = FakeVCS(tmp_path / "src", existing={URL}, checkouts=[missing, missing])
    record = make_record(tmp_path, f"{URL}@v9")

    with pytest.raises(ResolutionError, match="v9") as excinfo:
        Acquirer(vcs, toolchain).update(record)

    assert excinfo.value.alias == "greeter"
    assert excinfo.value.phase == "acquire"
    assert record.state is PluginState.RESOLVED


def test_tag_fetch_failure(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(
        tmp_path / "src",
        existing={URL},
        checkouts=[GitError("pathspec")],
        fetch_error="fatal: could not read from remote",
    )
    record = make_record(tmp_path, f"{URL}#develop")

    with pytest.raises(ResolutionError):
        Acquirer(vcs, toolchain).update(record)
    assert vcs.ops() == ["checkout", "fetch_tags"]


def test_branch_switch_pulls_and_refreshes(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(
        tmp_path / "src",
        existing={URL},
        checkouts=[CheckoutStatus.SWITCHED],
        pull=PullStatus.CHANGED,
    )
    record = make_record(tmp_path, f"{URL}#develop")

    Acquirer(vcs, toolchain).update(record)

    assert vcs.ops() == ["checkout", "pull"]
    assert toolchain.names("deps") == ["greeter"]


def test_branch_override_applies_to_call_only(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(tmp_path / "src", existing={URL})
    record = make_record(tmp_path, f"{URL}@v1.0.0")

    Acquirer(vcs, toolchain).update(record, branch="release")

    assert ("checkout", URL, "release") in vcs.calls
    assert record.ref == "v1.0.0"


def test_pull_failure(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(tmp_path / "src", existing={URL}, pull=GitError("fatal: not a git repository"))
    record = make_record(tmp_path, URL)

    with pytest.raises(SyncError, match="not a git repository"):
        Acquirer(vcs, toolchain).update(record)


def test_missing_remote_is_skipped(
    tmp_path: Path, toolchain: FakeToolchain, capsys: pytest.CaptureFixture[str]
) -> None:
    vcs = FakeVCS(tmp_path / "src", clone_error="remote: Repository not found.")
    record = make_record(tmp_path, URL)

    Acquirer(vcs, toolchain).update(record)

    assert vcs.ops() == ["clone"]
    assert record.state is PluginState.RESOLVED
    assert "unable to fetch source" in capsys.readouterr().err


def test_clone_failure(tmp_path: Path, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(tmp_path / "src", clone_error="fatal: Authentication failed")
    record = make_record(tmp_path, URL)

    with pytest.raises(CloneError, match="Authentication failed") as excinfo:
        Acquirer(vcs, toolchain).update(record)
    assert excinfo.value.alias == "greeter"


def test_dependency_failure(tmp_path: Path) -> None:
    toolchain = FakeToolchain(dependency_error="ERROR: No matching distribution")
    vcs = FakeVCS(tmp_path / "src", existing={URL}, pull=PullStatus.CHANGED)
    record = make_record(tmp_path, URL)

    with pytest.raises(DependencyError, match="No matching distribution"):
        Acquirer(vcs, toolchain).update(record)


def test_local_records_are_skipped(tmp_path: Path, vcs: FakeVCS, toolchain: FakeToolchain) -> None:
    record = make_record(tmp_path, "./local/greeter")

    Acquirer(vcs, toolchain).update(record)

    assert vcs.calls == []
    assert record.state is PluginState.RESOLVED
