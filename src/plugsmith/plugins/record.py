"""Per-plugin state held by the registry."""

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

from plugsmith.core.errors import PluginCallError, SymbolNotFoundError, UnsupportedSourceError
from plugsmith.core.logging import Scribe
from plugsmith.plugins.interface import BACKEND, CLOSE, call_error_func
from plugsmith.plugins.keys import ALIAS_DELIMITER, HandlerCall, parse_key
from plugsmith.plugins.source import (
    SourceKind,
    artifact_path,
    artifact_stem,
    build_dir,
    classify_source,
    strip_ref,
)
from plugsmith.plugins.symbol import Symbol, SymbolTable

_UNRESOLVED = object()


class PluginState(IntEnum):
    """Lifecycle states; a record only ever moves forward."""

    REGISTERED = 0
    RESOLVED = 1
    ACQUIRED = 2
    BUILT = 3
    TESTED = 4
    LOADED = 5


class LoadedPlugin:
    """Handle to a plugin whose archive has been loaded."""

    def __init__(self, alias: str, artifact: Path, symbols: SymbolTable):
        self.alias = alias
        self.artifact = artifact
        self.symbols = symbols
        self._backend: Any = _UNRESOLVED

    def lookup(self, name: str) -> Symbol:
        return self.symbols.lookup(name)

    def backend(self) -> Any:
        """The plugin's backend value, resolved on first use."""
        if self._backend is _UNRESOLVED:
            self._backend = self.lookup(BACKEND).as_value_func()()
        return self._backend

    def call(self, handler: HandlerCall) -> Any:
        """Invoke an exported function with the raw string arguments of a handler key."""
        return self.lookup(handler.method).value(*handler.args)

    def close(self) -> BaseException | None:
        """Run the plugin's Close; a plugin without one has nothing to close."""
        try:
            symbol = self.lookup(CLOSE)
        except SymbolNotFoundError:
            return None
        return call_error_func(symbol.as_error_func())

    def __repr__(self) -> str:
        return f"LoadedPlugin({self.alias!r}, {str(self.artifact)!r})"


@dataclass
class PluginRecord:
    """A registered plugin: identity, resolved locations and load state."""

    import_key: str
    alias: str
    kind: SourceKind
    # Repository URL without version/branch markers, or the local source path
    url: str
    ref: str
    artifact: Path
    update: bool = False
    source_root: Path | None = None
    state: PluginState = PluginState.REGISTERED
    plugin: LoadedPlugin | None = None
    out: Scribe = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.out = Scribe(self.alias)

    @classmethod
    def from_key(
        cls,
        directory: Path,
        key: str,
        update: bool = False,
        source_root: Path | None = None,
    ) -> "PluginRecord":
        """Resolve a plugin key into a record; performs no I/O.

        Raises:
            UnsupportedSourceError: If the key's source is not recognized
        """
        source_key, alias = parse_key(key)
        explicit_alias = ALIAS_DELIMITER in key
        source = classify_source(source_key)

        if source.kind is SourceKind.LOCAL_ARTIFACT:
            if not explicit_alias:
                alias = artifact_stem(source_key)
            record = cls(
                import_key=key,
                alias=alias,
                kind=source.kind,
                url="",
                ref="",
                artifact=Path(source_key),
                update=update,
                source_root=source_root,
            )
        elif source.kind is SourceKind.LOCAL_SOURCE:
            record = cls(
                import_key=key,
                alias=alias,
                kind=source.kind,
                url=source_key,
                ref="",
                artifact=artifact_path(directory, alias),
                update=update,
                source_root=source_root,
            )
        else:
            alias = alias or source.repo
            record = cls(
                import_key=key,
                alias=alias,
                kind=source.kind,
                url=strip_ref(source_key),
                ref=source.ref,
                artifact=artifact_path(directory, alias),
                update=update,
                source_root=source_root,
            )

        if not record.alias:
            raise UnsupportedSourceError(key, "cannot derive an alias")

        record.advance(PluginState.RESOLVED)
        return record

    @property
    def build_dir(self) -> Path:
        return build_dir(self.url, self.source_root or Path("."))

    @property
    def loaded(self) -> bool:
        return self.plugin is not None

    def advance(self, state: PluginState) -> None:
        if state > self.state:
            self.state = state

    def artifact_exists(self) -> bool:
        return self.artifact.is_file()

    def attach(self, symbols: SymbolTable) -> LoadedPlugin:
        symbols.alias = self.alias
        self.plugin = LoadedPlugin(self.alias, self.artifact, symbols)
        self.advance(PluginState.LOADED)
        return self.plugin

    def call_lifecycle(self, name: str, *args: Any) -> None:
        """Call Init/Load on the loaded plugin; a missing function is a no-op.

        Raises:
            PluginCallError: If the function reports an error
        """
        if self.plugin is None:
            return
        try:
            symbol = self.plugin.lookup(name)
        except SymbolNotFoundError:
            return
        err = call_error_func(symbol.value, *args)
        if err is not None:
            raise PluginCallError(self.alias, name.lower(), err) from err
