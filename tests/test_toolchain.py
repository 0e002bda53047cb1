"""Tests for the Python build toolchain."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from conftest import write_plugin
from plugsmith.plugins.toolchain import PythonToolchain, TestOutcome, ToolchainError, pack_archive


def test_pack_archive_skips_tests_and_hidden_dirs(tmp_path: Path) -> None:
    src = write_plugin(tmp_path / "greeter")
    (src / "tests").mkdir()
    (src / "tests" / "test_greeter.py").write_text("def test_ok():\n    pass\n")
    (src / ".venv").mkdir()
    (src / ".venv" / "site.py").write_text("")
    (src / "pkg").mkdir()
    (src / "pkg" / "__init__.py").write_text("")
    (src / "README.md").write_text("greeter")

    artifact = tmp_path / "out" / "greeter.pyz"
    count = pack_archive(src, artifact)

    with zipfile.ZipFile(artifact) as zf:
        names = sorted(zf.namelist())
    assert names == ["helpers.py", "pkg/__init__.py", "plugin.py"]
    assert count == 3
    assert [p.name for p in artifact.parent.iterdir()] == ["greeter.pyz"]


def test_pack_archive_replaces_existing(tmp_path: Path) -> None:
    src = write_plugin(tmp_path / "greeter")
    artifact = tmp_path / "greeter.pyz"
    artifact.write_text("stale")

    pack_archive(src, artifact)

    assert zipfile.is_zipfile(artifact)


def test_build_produces_archive(tmp_path: Path) -> None:
    src = write_plugin(tmp_path / "greeter")
    artifact = tmp_path / "plugins" / "greeter.pyz"

    PythonToolchain().build(src, artifact)

    assert zipfile.is_zipfile(artifact)


def test_build_reports_syntax_errors(tmp_path: Path) -> None:
    src = write_plugin(tmp_path / "broken", "def Backend(:\n    return 1\n")
    artifact = tmp_path / "plugins" / "broken.pyz"

    with pytest.raises(ToolchainError):
        PythonToolchain().build(src, artifact)
    assert not artifact.exists()


def test_build_requires_entry_module(tmp_path: Path) -> None:
    src = tmp_path / "empty"
    src.mkdir()
    with pytest.raises(ToolchainError, match="plugin.py"):
        PythonToolchain().build(src, tmp_path / "empty.pyz")


def test_build_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(ToolchainError, match="not found"):
        PythonToolchain().build(tmp_path / "nowhere", tmp_path / "x.pyz")


def test_no_requirements_means_no_install(tmp_path: Path) -> None:
    src = write_plugin(tmp_path / "greeter")
    assert PythonToolchain().download_dependencies(src) is False


def test_run_tests_outcomes(tmp_path: Path) -> None:
    toolchain = PythonToolchain()

    empty = write_plugin(tmp_path / "empty")
    assert toolchain.run_tests(empty) is TestOutcome.NO_TESTS

    passing = write_plugin(tmp_path / "passing")
    (passing / "test_passing.py").write_text("def test_ok():\n    assert True\n")
    assert toolchain.run_tests(passing) is TestOutcome.PASSED

    failing = write_plugin(tmp_path / "failing")
    (failing / "test_failing.py").write_text("def test_bad():\n    assert False\n")
    with pytest.raises(ToolchainError):
        toolchain.run_tests(failing)
