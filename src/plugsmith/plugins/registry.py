"""Plugin registry: the ordered set of plugins and their batch lifecycle.

Typical use:

    registry = Registry("./plugins")
    registry.register("github.com/user/greeter@v1.2.0")
    registry.retrieve()
    registry.build()
    registry.test()
    registry.initialize()
    slot = Slot(Greeter)
    registry.backend("greeter", slot)
    ...
    registry.close()

Batch operations hold the registry's write lock for their whole duration,
so only one phase runs at a time; ``get`` and ``backend`` share a read
lock. Sequential batches stop at the first failure; the ``*_async``
variants run every task and raise one AggregateError.
"""

import threading
from collections.abc import Callable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from plugsmith.core.errors import (
    CloseError,
    ConfigError,
    DuplicateAliasError,
    ErrorList,
    InvalidDirError,
    LoadError,
    PluginNotLoadedError,
    RegistryClosedError,
)
from plugsmith.core.logging import Scribe
from plugsmith.plugins.acquire import Acquirer
from plugsmith.plugins.builder import Builder
from plugsmith.plugins.interface import INIT, LOAD, bind_backend
from plugsmith.plugins.keys import parse_handler_key
from plugsmith.plugins.loader import ArchiveLoader, DynamicLoader
from plugsmith.plugins.record import LoadedPlugin, PluginRecord, PluginState
from plugsmith.plugins.source import DEFAULT_DEDUPE_DEPTH, repo_key
from plugsmith.plugins.toolchain import PythonToolchain, Toolchain
from plugsmith.plugins.vcs import GitClient, SourceControl

if TYPE_CHECKING:
    from plugsmith.core.config import RegistryConfig

DEFAULT_SOURCE_ROOT = Path.home() / ".cache" / "plugsmith" / "src"
DEFAULT_WORKERS = 4


class ReadWriteLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Registry:
    """Manages plugin records from registration to shutdown."""

    def __init__(
        self,
        directory: str | Path,
        source_root: str | Path | None = None,
        branch: str = "",
        search_paths: list[str | Path] | None = None,
        dedupe_depth: int = DEFAULT_DEDUPE_DEPTH,
        workers: int = DEFAULT_WORKERS,
        vcs: SourceControl | None = None,
        toolchain: Toolchain | None = None,
        loader: DynamicLoader | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            directory: Directory computed plugin archives are written to
            source_root: Directory holding repository clones
            branch: Branch or version overriding every record during retrieve()
            search_paths: Extra import locations made available to loaded plugins
            dedupe_depth: Number of leading URL segments identifying a repository
            workers: Pool size used by the *_async variants when no executor is given
            vcs: Source-control client (defaults to git)
            toolchain: Build toolchain (defaults to the current interpreter)
            loader: Dynamic loader (defaults to the zip archive loader)

        Raises:
            InvalidDirError: If directory is empty
            ConfigError: If dedupe_depth cannot name a host/user/repo repository
        """
        if not directory:
            raise InvalidDirError()
        if dedupe_depth < DEFAULT_DEDUPE_DEPTH:
            raise ConfigError(f"dedupe_depth must be at least {DEFAULT_DEDUPE_DEPTH}, got {dedupe_depth}")

        self.directory = Path(directory)
        self.source_root = Path(source_root or DEFAULT_SOURCE_ROOT).expanduser()
        self.branch = branch
        self.search_paths = list(search_paths or [])
        self.dedupe_depth = dedupe_depth
        self.workers = workers

        self.toolchain = toolchain or PythonToolchain()
        self.vcs = vcs or GitClient(self.source_root, depth=dedupe_depth)
        self.loader = loader or ArchiveLoader()
        self._acquirer = Acquirer(self.vcs, self.toolchain)
        self._builder = Builder(self.toolchain)

        self._lock = ReadWriteLock()
        self._records: list[PluginRecord] = []
        self._closed = False
        self.out = Scribe("Plugins")

    @classmethod
    def from_config(cls, config: "RegistryConfig", **overrides: Any) -> "Registry":
        """Build a registry from a RegistryConfig and register its plugins."""
        kwargs = dict(
            directory=config.directory,
            source_root=config.source_root,
            branch=config.branch,
            search_paths=list(config.search_paths),
            dedupe_depth=config.dedupe_depth,
            workers=config.workers,
            vcs=GitClient(config.source_root, git=config.git, depth=config.dedupe_depth),
            toolchain=PythonToolchain(config.python),
        )
        kwargs.update(overrides)
        registry = cls(**kwargs)
        for entry in config.plugins:
            registry.register(entry.key, update=entry.update)
        return registry

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryClosedError()

    def _find(self, alias: str) -> PluginRecord | None:
        for record in self._records:
            if record.alias == alias:
                return record
        return None

    def records(self) -> list[PluginRecord]:
        """Snapshot of the records in registration order."""
        with self._lock.read():
            self._ensure_open()
            return list(self._records)

    def aliases(self) -> list[str]:
        return [r.alias for r in self.records()]

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, key: str, update: bool = False) -> str:
        """Register a plugin key.

        Accepted keys:
            path/to/plugin.pyz
            ./path/to/source
            github.com/user/repo[/dir][@version|#branch]
        each optionally followed by " as <alias>".

        Returns:
            The plugin's alias

        Raises:
            UnsupportedSourceError: If the key cannot be classified
            DuplicateAliasError: If the alias is already registered
        """
        with self._lock.write():
            self._ensure_open()
            record = PluginRecord.from_key(
                self.directory, key, update=update, source_root=self.source_root
            )
            if self._find(record.alias) is not None:
                raise DuplicateAliasError(record.alias, key)

            self._records.append(record)
            return record.alias

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------
    def retrieve(self) -> None:
        """Download or update the source of every repository plugin.

        Each repository is visited once, however many plugins it hosts.
        Local plugins are skipped. The first failure aborts the batch.
        """
        with self._lock.write():
            self._ensure_open()
            seen: dict[str, PluginRecord] = {}
            for record in self._records:
                if record.kind.is_local:
                    continue

                key = repo_key(record.url, self.dedupe_depth)
                first = seen.get(key)
                if first is not None:
                    if first.state >= PluginState.ACQUIRED:
                        record.advance(PluginState.ACQUIRED)
                    continue
                seen[key] = record

                self.out.notification(f"Updating plugin source: {key}")
                self._acquirer.update(record, self.branch)

    def build(self) -> None:
        """Build every plugin in order, stopping at the first failure."""
        with self._lock.write():
            self._ensure_open()
            for record in self._records:
                self._builder.build(record)

    def build_async(self, executor: Executor | None = None) -> None:
        """Build every plugin concurrently.

        Raises:
            AggregateError: Listing every plugin that failed to build
        """
        with self._lock.write():
            self._ensure_open()
            self._fan_out(self._builder.build, executor)

    def test(self) -> None:
        """Test every plugin in order, stopping at the first failure."""
        with self._lock.write():
            self._ensure_open()
            for record in self._records:
                self._builder.test(record)

    def test_async(self, executor: Executor | None = None) -> None:
        """Test every plugin concurrently.

        Raises:
            AggregateError: Listing every plugin that failed its tests
        """
        with self._lock.write():
            self._ensure_open()
            self._fan_out(self._builder.test, executor)

    def _fan_out(
        self,
        task: Callable[[PluginRecord], Any],
        executor: Executor | None,
    ) -> None:
        if executor is None:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                self._fan_out(task, pool)
            return

        errs = ErrorList()
        futures = [executor.submit(task, record) for record in self._records]
        wait(futures)
        for future in futures:
            errs.push(future.exception())

        err = errs.err()
        if err is not None:
            raise err

    def initialize(self) -> None:
        """Load every plugin archive into the interpreter, in order.

        Raises:
            LoadError: On the first archive that cannot be loaded
        """
        with self._lock.write():
            self._ensure_open()
            for record in self._records:
                self.out.notification(f"Initializing {record.alias} ({record.artifact})...")
                if record.state < PluginState.BUILT:
                    if not record.artifact_exists():
                        raise LoadError(
                            f"{record.alias} has not been built",
                            alias=record.alias,
                            path=str(record.artifact),
                        )
                    record.advance(PluginState.BUILT)

                try:
                    symbols = self.loader.load([record.artifact], self.search_paths)
                except LoadError as e:
                    raise LoadError(
                        f"{record.alias}: {e}", alias=record.alias, path=str(record.artifact)
                    ) from e
                record.attach(symbols)

    def configure(self, env: dict[str, str] | None = None) -> None:
        """Call every loaded plugin's Init with ``env``, in order.

        Raises:
            PluginCallError: On the first plugin reporting an error
        """
        for record in self._loaded_records():
            record.call_lifecycle(INIT, dict(env or {}))

    def link(self) -> None:
        """Call every loaded plugin's Load with this registry, in order.

        Runs without holding the registry lock so plugins can look up
        their siblings through ``get`` and ``backend``.

        Raises:
            PluginCallError: On the first plugin reporting an error
        """
        for record in self._loaded_records():
            record.call_lifecycle(LOAD, self)

    def _loaded_records(self) -> list[PluginRecord]:
        with self._lock.read():
            self._ensure_open()
            return [r for r in self._records if r.loaded]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, alias: str) -> LoadedPlugin:
        """Return the loaded plugin registered under ``alias``.

        Raises:
            PluginNotLoadedError: If the alias is unknown or not yet initialized
        """
        with self._lock.read():
            self._ensure_open()
            record = self._find(alias)
            if record is None or record.plugin is None:
                raise PluginNotLoadedError(alias)
            return record.plugin

    def backend(self, alias: str, destination: Any) -> None:
        """Bind the backend of plugin ``alias`` into ``destination`` (a Slot).

        Raises:
            PluginNotLoadedError, SymbolNotFoundError, NotWritableError, TypeMismatchError
        """
        plugin = self.get(alias)
        bind_backend(plugin.backend(), destination)

    def call(self, handler_key: str) -> Any:
        """Invoke ``alias.Method(args)`` on a loaded plugin."""
        handler = parse_handler_key(handler_key)
        return self.get(handler.alias).call(handler)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Close every loaded plugin and mark the registry closed.

        Every plugin is visited even if some fail; the registry is closed
        regardless.

        Raises:
            RegistryClosedError: If the registry was already closed
            AggregateError: Listing every plugin whose Close failed
        """
        with self._lock.write():
            self._ensure_open()

            errs = ErrorList()
            self.out.notification("Closing plugins")
            for record in self._records:
                if record.plugin is None:
                    continue
                err = record.plugin.close()
                if err is not None:
                    errs.push(CloseError(record.alias, str(record.artifact), err))
                    continue
                self.out.success(f"Closed {record.alias}")

            self._closed = True
            err = errs.err()
            if err is not None:
                raise err
