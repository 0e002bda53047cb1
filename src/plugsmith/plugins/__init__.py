"""Plugin acquisition, build and loading.

Provides:
- Parsing of plugin keys and handler keys
- Source synchronization through git
- Building plugin sources into importable archives
- Loading archives and binding their backends
"""

from plugsmith.plugins.interface import BasePlugin, ReadOnlySlot, Slot, bind_backend
from plugsmith.plugins.keys import HandlerCall, parse_handler_key, parse_key
from plugsmith.plugins.loader import ArchiveLoader
from plugsmith.plugins.record import LoadedPlugin, PluginRecord, PluginState
from plugsmith.plugins.registry import Registry
from plugsmith.plugins.source import SourceKind, classify_source
from plugsmith.plugins.symbol import Symbol, SymbolTable

__all__ = [
    "ArchiveLoader",
    "BasePlugin",
    "HandlerCall",
    "LoadedPlugin",
    "PluginRecord",
    "PluginState",
    "ReadOnlySlot",
    "Registry",
    "Slot",
    "SourceKind",
    "Symbol",
    "SymbolTable",
    "bind_backend",
    "classify_source",
    "parse_handler_key",
    "parse_key",
]
