"""Plugin capability contract and backend binding.

A plugin archive exposes four lifecycle functions by name, called in this
order over its life:

    Init(env: dict[str, str]) -> error | None
    Load(registry) -> error | None
    Backend() -> Any
    Close() -> error | None

"error" is an exception instance returned by the function; raising has the
same effect. Instead of module-level functions a plugin may define
``PLUGIN``, an object implementing ``BasePlugin``'s methods.
"""

import inspect
from typing import Any, Generic, TypeVar

from plugsmith.core.errors import NotWritableError, TypeMismatchError

ENTRY_MODULE = "plugin"
PLUGIN_OBJECT = "PLUGIN"

INIT = "Init"
LOAD = "Load"
BACKEND = "Backend"
CLOSE = "Close"

# Capability name -> method name on a PLUGIN object
CAPABILITY_METHODS = {
    INIT: "init",
    LOAD: "load",
    BACKEND: "backend",
    CLOSE: "close",
}

T = TypeVar("T")


class BasePlugin:
    """No-op implementation of every lifecycle capability."""

    def init(self, env: dict[str, str]) -> BaseException | None:
        return None

    def load(self, registry: Any) -> BaseException | None:
        return None

    def backend(self) -> Any:
        return None

    def close(self) -> BaseException | None:
        return None


def call_error_func(fn, *args: Any) -> BaseException | None:
    """Call a lifecycle function and normalize its error result.

    Exceptions raised by the plugin are returned rather than propagated.
    """
    try:
        result = fn(*args)
    except Exception as e:
        return e
    if isinstance(result, BaseException):
        return result
    return None


class Slot(Generic[T]):
    """A writable destination for a plugin backend.

    Example:
        slot = Slot(Greeter)
        registry.backend("greeter", slot)
        slot.value.greet("world")
    """

    writable = True

    def __init__(self, declared_type: type[T], value: T | None = None):
        self.declared_type = declared_type
        self.value = value

    def set(self, value: T) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.declared_type.__qualname__}, value={self.value!r})"


class ReadOnlySlot(Slot[T]):
    """A destination that refuses assignment."""

    writable = False

    def set(self, value: T) -> None:
        raise NotWritableError(self)


def required_capabilities(declared_type: type) -> set[str]:
    """Public methods a value must provide to stand in for ``declared_type``."""
    names: set[str] = set()
    for klass in declared_type.__mro__:
        if klass is object or klass.__module__ == "typing":
            continue
        for name, member in vars(klass).items():
            if name.startswith("_"):
                continue
            if inspect.isfunction(member) or isinstance(member, (staticmethod, classmethod)):
                names.add(name)
    return names


def satisfies(value: Any, declared_type: type) -> bool:
    """Whether ``value`` structurally provides every method of ``declared_type``."""
    required = required_capabilities(declared_type)
    if not required:
        return False
    return all(callable(getattr(value, name, None)) for name in required)


def bind_backend(backend: Any, destination: Any) -> None:
    """Assign ``backend`` into ``destination`` if its type is acceptable.

    Accepted when the backend's type is exactly the declared type or a
    nominal subtype of it. A ``typing.Protocol`` declared type instead
    accepts any backend that provides every method the protocol defines.

    Raises:
        NotWritableError: If destination is not a writable Slot
        TypeMismatchError: If the backend does not fit the declared type
    """
    if not isinstance(destination, Slot) or not destination.writable:
        raise NotWritableError(destination)

    expected = destination.declared_type
    actual = type(backend)

    if actual is expected:
        destination.set(backend)
        return

    if getattr(expected, "_is_protocol", False):
        if satisfies(backend, expected):
            destination.set(backend)
            return
    elif isinstance(backend, expected):
        destination.set(backend)
        return

    raise TypeMismatchError(expected, actual)
