"""Exported plugin symbols and their typed views."""

from collections.abc import Callable, Iterator, Mapping
from typing import Any, cast

from plugsmith.core.errors import SymbolNotFoundError


class Symbol:
    """An object exported by a loaded plugin.

    The ``as_*`` views reinterpret the symbol as a function of a given
    shape. Nothing checks that the symbol actually has that shape: the
    caller must know which view matches the name it looked up. Calling a
    symbol through the wrong view is undefined behaviour (it may raise,
    return garbage, or have unexpected side effects).
    """

    __slots__ = ("name", "value")

    def __init__(self, name: str, value: Any):
        self.name = name
        self.value = value

    def as_procedure(self) -> Callable[[], None]:
        """View as a no-argument side-effecting procedure."""
        return cast(Callable[[], None], self.value)

    def as_value_func(self) -> Callable[[], Any]:
        """View as a no-argument function returning an arbitrary value."""
        return cast(Callable[[], Any], self.value)

    def as_error_func(self) -> Callable[[], BaseException | None]:
        """View as a no-argument function returning an error or None."""
        return cast(Callable[[], BaseException | None], self.value)

    def __repr__(self) -> str:
        return f"Symbol({self.name!r})"


class SymbolTable(Mapping[str, Any]):
    """Mapping from fully-qualified exported name to object."""

    def __init__(self, symbols: Mapping[str, Any] | None = None, alias: str | None = None):
        self._symbols: dict[str, Any] = dict(symbols or {})
        self.alias = alias

    def __getitem__(self, name: str) -> Any:
        return self._symbols[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def add(self, name: str, value: Any) -> None:
        self._symbols[name] = value

    def lookup(self, name: str) -> Symbol:
        """Exact-name lookup.

        Raises:
            SymbolNotFoundError: If the name is absent or bound to None
        """
        value = self._symbols.get(name)
        if value is None:
            raise SymbolNotFoundError(name, alias=self.alias)
        return Symbol(name, value)
