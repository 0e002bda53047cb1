"""Build, test and dependency toolchain for Python plugins.

A plugin is built by byte-compiling its sources (to surface syntax errors)
and packing them into a zip archive that the loader can import from.
"""

import os
import sys
import tempfile
import zipfile
from enum import Enum
from pathlib import Path
from typing import Protocol

from plugsmith.core.process import run_command
from plugsmith.plugins.interface import ENTRY_MODULE

PASS_MARKER = "passed"
PYTEST_NO_TESTS_COLLECTED = 5
EXCLUDED_DIRS = {"__pycache__", "tests", "test", "build", "dist"}


class TestOutcome(str, Enum):
    __test__ = False

    PASSED = "passed"
    NO_TESTS = "no_tests"


class ToolchainError(Exception):
    """A toolchain step failed; carries the raw diagnostic text."""

    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.strip() or "toolchain command failed")


class Toolchain(Protocol):
    """Operations the registry needs from a build toolchain."""

    def download_dependencies(self, source_dir: Path) -> bool: ...

    def build(self, source_dir: Path, artifact: Path) -> None: ...

    def run_tests(self, source_dir: Path) -> TestOutcome: ...


def _iter_sources(source_dir: Path):
    for root, dirs, files in os.walk(source_dir):
        dirs[:] = sorted(
            d for d in dirs if not d.startswith(".") and d not in EXCLUDED_DIRS
        )
        for name in sorted(files):
            if name.endswith(".py"):
                path = Path(root, name)
                yield path, path.relative_to(source_dir).as_posix()


def pack_archive(source_dir: Path, artifact: Path) -> int:
    """Write the Python sources of ``source_dir`` into a zip archive.

    The archive is written next to its destination and moved into place,
    so a failed build never leaves a truncated archive behind.

    Returns:
        Number of modules written
    """
    artifact = Path(artifact)
    artifact.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{artifact.stem}-", suffix=".tmp", dir=artifact.parent
    )
    os.close(fd)
    count = 0
    try:
        with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path, arcname in _iter_sources(source_dir):
                zf.write(path, arcname)
                count += 1
        os.replace(tmp_name, artifact)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return count


class PythonToolchain:
    """Toolchain driving pip, compileall and pytest through an interpreter."""

    def __init__(self, python: str | None = None):
        self.python = python or sys.executable

    def download_dependencies(self, source_dir: Path) -> bool:
        """Install requirements.txt if the plugin has one.

        Returns:
            True if dependencies were installed, False if there were none
        """
        requirements = Path(source_dir) / "requirements.txt"
        if not requirements.is_file():
            return False

        result = run_command(
            [
                self.python,
                "-m",
                "pip",
                "install",
                "--quiet",
                "--disable-pip-version-check",
                "-r",
                str(requirements),
            ],
            cwd=Path(source_dir),
        )
        if not result.ok:
            raise ToolchainError(result.diagnostic)
        return True

    def build(self, source_dir: Path, artifact: Path) -> None:
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise ToolchainError(f"source directory not found: {source_dir}")
        if not (source_dir / f"{ENTRY_MODULE}.py").is_file():
            raise ToolchainError(f"missing entry module {ENTRY_MODULE}.py in {source_dir}")

        result = run_command([self.python, "-m", "compileall", "-q", str(source_dir)])
        diagnostic = (result.stdout + result.stderr).strip()
        if not result.ok or diagnostic:
            raise ToolchainError(diagnostic or f"compileall exited with {result.returncode}")

        pack_archive(source_dir, artifact)

    def run_tests(self, source_dir: Path) -> TestOutcome:
        result = run_command([self.python, "-m", "pytest", "-q"], cwd=Path(source_dir))
        if result.returncode == PYTEST_NO_TESTS_COLLECTED:
            return TestOutcome.NO_TESTS
        if not result.ok:
            raise ToolchainError(result.stdout + result.stderr)
        if PASS_MARKER in result.stdout:
            return TestOutcome.PASSED
        return TestOutcome.NO_TESTS
