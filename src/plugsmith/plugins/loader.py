"""Dynamic loading of plugin archives.

Each archive is mounted as a private namespace package whose ``__path__``
is the archive itself, so ``zipimport`` resolves the entry module and any
sibling modules it imports (relative imports included). Archives never go
on ``sys.path``, which keeps two plugins with same-named modules apart.
"""

import hashlib
import importlib
import importlib.machinery
import importlib.util
import re
import sys
import threading
import zipfile
from collections.abc import Sequence
from pathlib import Path
from types import ModuleType
from typing import Protocol

from plugsmith.core.errors import LoadError
from plugsmith.core.logging import debug
from plugsmith.plugins.interface import CAPABILITY_METHODS, ENTRY_MODULE, PLUGIN_OBJECT
from plugsmith.plugins.symbol import SymbolTable

NAMESPACE_PREFIX = "_plugsmith"

_import_lock = threading.Lock()


class DynamicLoader(Protocol):
    """Turns built archives into a table of exported names."""

    def load(
        self,
        artifact_paths: Sequence[str | Path],
        search_paths: Sequence[str | Path] = (),
    ) -> SymbolTable: ...


def namespace_for(artifact: Path) -> str:
    """Module name the archive is mounted under."""
    resolved = str(Path(artifact).expanduser().resolve())
    digest = hashlib.sha1(resolved.encode()).hexdigest()[:10]
    stem = re.sub(r"\W", "_", Path(artifact).name.split(".")[0]) or "plugin"
    return f"{NAMESPACE_PREFIX}_{stem}_{digest}"


def _extend_sys_path(search_paths: Sequence[str | Path]) -> None:
    for entry in reversed([str(Path(p).expanduser()) for p in search_paths]):
        if entry not in sys.path:
            sys.path.insert(0, entry)


def _purge(namespace: str) -> None:
    for name in [m for m in sys.modules if m == namespace or m.startswith(namespace + ".")]:
        del sys.modules[name]


def _mount(namespace: str, archive: str) -> ModuleType:
    spec = importlib.machinery.ModuleSpec(namespace, None, is_package=True)
    spec.submodule_search_locations = [archive]
    package = importlib.util.module_from_spec(spec)
    sys.modules[namespace] = package
    return package


def _public(module: ModuleType):
    for name, value in vars(module).items():
        if not name.startswith("_"):
            yield name, value


class ArchiveLoader:
    """DynamicLoader for zip archives produced by the Python toolchain."""

    def load(
        self,
        artifact_paths: Sequence[str | Path],
        search_paths: Sequence[str | Path] = (),
    ) -> SymbolTable:
        """Import every archive and collect its exported names.

        Names are recorded as ``<module>.<name>`` for every module imported
        from the archive. The entry module's names are also recorded bare,
        and a ``PLUGIN`` object's lifecycle methods are exposed under the
        capability names (``Init``, ``Load``, ``Backend``, ``Close``).

        Raises:
            LoadError: If an archive cannot be read or its modules fail to import
        """
        table = SymbolTable()
        with _import_lock:
            _extend_sys_path(search_paths)
            for artifact in artifact_paths:
                self._load_archive(Path(artifact), table)
        return table

    def _load_archive(self, artifact: Path, table: SymbolTable) -> None:
        archive = str(artifact.expanduser().resolve())
        if not zipfile.is_zipfile(archive):
            raise LoadError(f"unable to read plugin archive {artifact}", path=str(artifact))

        namespace = namespace_for(artifact)
        # A rebuilt archive at the same path must not reuse stale modules
        _purge(namespace)
        # zipimport keeps the archive's table of contents keyed by path
        importer = sys.path_importer_cache.pop(archive, None)
        if importer is not None and hasattr(importer, "invalidate_caches"):
            importer.invalidate_caches()
        importlib.invalidate_caches()

        _mount(namespace, archive)
        try:
            entry = importlib.import_module(f"{namespace}.{ENTRY_MODULE}")
        except Exception as e:
            _purge(namespace)
            raise LoadError(
                f"error encountered while loading plugin {artifact}: {e}",
                path=str(artifact),
            ) from e

        debug(f"Loaded {artifact} as {namespace}")

        prefix = namespace + "."
        for module_name, module in list(sys.modules.items()):
            if not module_name.startswith(prefix) or module is None:
                continue
            relative = module_name[len(prefix):]
            for name, value in _public(module):
                table.add(f"{relative}.{name}", value)

        for name, value in _public(entry):
            table.add(name, value)

        plugin = getattr(entry, PLUGIN_OBJECT, None)
        if plugin is not None:
            for capability, method in CAPABILITY_METHODS.items():
                fn = getattr(plugin, method, None)
                if capability not in table and callable(fn):
                    table.add(capability, fn)
