"""Shared fakes and fixtures for plugsmith tests."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from plugsmith.cli.output import set_output_format
from plugsmith.core.errors import LoadError
from plugsmith.core.logging import configure_logging, set_verbose
from plugsmith.plugins.symbol import SymbolTable
from plugsmith.plugins.toolchain import TestOutcome, ToolchainError, pack_archive
from plugsmith.plugins.vcs import CheckoutStatus, GitError, PullStatus

GREETER_PLUGIN = '''
from . import helpers

_state = {"greeting": "hello", "registry": None}


class Greeter:
    def __init__(self, greeting):
        self.greeting = greeting

    def greet(self, name):
        return helpers.join(self.greeting, name)


def Init(env):
    _state["greeting"] = env.get("GREETING", "hello")


def Load(registry):
    _state["registry"] = registry


def Backend():
    return Greeter(_state["greeting"])


def Echo(*args):
    return list(args)
'''

GREETER_HELPERS = '''
def join(greeting, name):
    return f"{greeting}, {name}"
'''


def write_plugin(directory: Path, source: str = GREETER_PLUGIN, **modules: str) -> Path:
    """Write a plugin source tree; extra modules are given as name=source."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "plugin.py").write_text(textwrap.dedent(source))
    if source is GREETER_PLUGIN and "helpers" not in modules:
        modules["helpers"] = GREETER_HELPERS
    for name, body in modules.items():
        (directory / f"{name}.py").write_text(textwrap.dedent(body))
    return directory


class FakeVCS:
    """In-memory SourceControl recording every call."""

    def __init__(
        self,
        root: Path,
        existing: set[str] | None = None,
        checkouts: list | None = None,
        pull: PullStatus | Exception = PullStatus.UP_TO_DATE,
        clone_error: str | None = None,
        fetch_error: str | None = None,
    ):
        self.root = root
        self.existing = set(existing or ())
        self.checkouts = list(checkouts or [])
        self.pull_result = pull
        self.clone_error = clone_error
        self.fetch_error = fetch_error
        self.calls: list[tuple[str, ...]] = []

    def directory(self, url: str) -> Path:
        return self.root / url

    def exists(self, url: str) -> bool:
        return url in self.existing

    def clone(self, url: str) -> None:
        self.calls.append(("clone", url))
        if self.clone_error:
            raise GitError(self.clone_error)
        self.existing.add(url)

    def fetch_tags(self, url: str) -> None:
        self.calls.append(("fetch_tags", url))
        if self.fetch_error:
            raise GitError(self.fetch_error)

    def checkout(self, url: str, ref: str) -> CheckoutStatus:
        self.calls.append(("checkout", url, ref))
        result = self.checkouts.pop(0) if self.checkouts else CheckoutStatus.ALREADY_ON
        if isinstance(result, Exception):
            raise result
        return result

    def pull(self, url: str) -> PullStatus:
        self.calls.append(("pull", url))
        if isinstance(self.pull_result, Exception):
            raise self.pull_result
        return self.pull_result

    def ops(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeToolchain:
    """Toolchain that packs sources without subprocesses.

    Builds fail for source directories named in ``fail_build``; test
    outcomes (or exceptions) per directory name come from ``tests``.
    """

    def __init__(
        self,
        fail_build: set[str] | None = None,
        tests: dict[str, TestOutcome | Exception] | None = None,
        dependency_error: str | None = None,
    ):
        self.fail_build = set(fail_build or ())
        self.tests = dict(tests or {})
        self.dependency_error = dependency_error
        self.calls: list[tuple[str, str]] = []

    def download_dependencies(self, source_dir: Path) -> bool:
        self.calls.append(("deps", Path(source_dir).name))
        if self.dependency_error:
            raise ToolchainError(self.dependency_error)
        return True

    def build(self, source_dir: Path, artifact: Path) -> None:
        name = Path(source_dir).name
        self.calls.append(("build", name))
        if name in self.fail_build:
            raise ToolchainError(f"SyntaxError: invalid syntax in {name}/plugin.py")
        pack_archive(Path(source_dir), Path(artifact))

    def run_tests(self, source_dir: Path) -> TestOutcome:
        name = Path(source_dir).name
        self.calls.append(("test", name))
        result = self.tests.get(name, TestOutcome.PASSED)
        if isinstance(result, Exception):
            raise result
        return result

    def names(self, op: str) -> list[str]:
        return [name for kind, name in self.calls if kind == op]


class FakeLoader:
    """DynamicLoader serving prepared symbol tables keyed by archive stem."""

    def __init__(self, tables: dict[str, dict]):
        self.tables = tables
        self.loaded: list[str] = []

    def load(self, artifact_paths, search_paths=()) -> SymbolTable:
        table = SymbolTable()
        for path in artifact_paths:
            stem = Path(path).stem
            if stem not in self.tables:
                raise LoadError(f"unable to read plugin archive {path}", path=str(path))
            for name, value in self.tables[stem].items():
                table.add(name, value)
            self.loaded.append(stem)
        return table


@pytest.fixture(autouse=True)
def reset_logging():
    configure_logging(log_format="text", quiet=False)
    set_verbose(False)
    yield
    configure_logging(log_format="text", quiet=False)
    set_verbose(False)
    set_output_format("json")


@pytest.fixture
def vcs(tmp_path: Path) -> FakeVCS:
    return FakeVCS(tmp_path / "src")


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from tmp_path so ./local keys resolve inside it."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
