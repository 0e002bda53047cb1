"""Plugin key and handler key parsing.

Plugin keys:
    github.com/user/repo[/subdir][@version|#branch] [as alias]
    ./path/to/source [as alias]
    ./path/to/plugin.pyz [as alias]

Handler keys:
    alias.Method
    alias.Method(arg1,arg2)
"""

import posixpath
from dataclasses import dataclass, field

from plugsmith.core.errors import MalformedCallError

ALIAS_DELIMITER = " as "


@dataclass(frozen=True)
class HandlerCall:
    """A parsed handler key."""

    alias: str
    method: str
    args: list[str] = field(default_factory=list)


def default_alias(source: str) -> str:
    """Derive a short name from the final path segment of a source.

    The segment is truncated at the first "-", then "@", then "#".
    """
    _, name = posixpath.split(source)
    alias = name.split("-")[0]
    alias = alias.split("@")[0]
    alias = alias.split("#")[0]
    return alias


def parse_key(key: str) -> tuple[str, str]:
    """Split a plugin key into its source and alias."""
    parts = key.split(ALIAS_DELIMITER)
    source = parts[0]
    if len(parts) > 1:
        return source, parts[1]

    return source, default_alias(source)


def parse_handler_key(handler_key: str) -> HandlerCall:
    """Parse ``alias.Method(arg,...)`` into its components.

    Raises:
        MalformedCallError: If there is no method or the argument list is unterminated
    """
    alias, sep, handler = handler_key.partition(".")
    if not sep:
        raise MalformedCallError(handler_key, "expected alias.Method")

    method, paren, args_str = handler.partition("(")
    if not paren:
        return HandlerCall(alias=alias, method=method)

    if not args_str.endswith(")"):
        raise MalformedCallError(handler_key)

    args_str = args_str[:-1]
    args = args_str.split(",") if args_str else []
    return HandlerCall(alias=alias, method=method, args=args)
