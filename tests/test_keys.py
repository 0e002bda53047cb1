"""Tests for plugin key and handler key parsing."""

from __future__ import annotations

import pytest

from plugsmith.core.errors import MalformedCallError
from plugsmith.plugins.keys import HandlerCall, default_alias, parse_handler_key, parse_key


@pytest.mark.parametrize(
    "key, source, alias",
    [
        ("github.com/user/my-plugin@v1.2.0", "github.com/user/my-plugin@v1.2.0", "my"),
        ("github.com/user/greeter#dev", "github.com/user/greeter#dev", "greeter"),
        ("github.com/user/repo/sub/audit", "github.com/user/repo/sub/audit", "audit"),
        ("./local/foo.pyz", "./local/foo.pyz", "foo.pyz"),
        ("github.com/user/repo as custom", "github.com/user/repo", "custom"),
        ("./local/src as thing", "./local/src", "thing"),
    ],
)
def test_parse_key(key: str, source: str, alias: str) -> None:
    assert parse_key(key) == (source, alias)


def test_default_alias_truncation_order() -> None:
    assert default_alias("host/user/a@b-c") == "a"
    assert default_alias("host/user/my-plugin#dev") == "my"
    assert default_alias("host/user/name@v1#x") == "name"
    assert default_alias("host/user/name#branch") == "name"


def test_parse_handler_key_with_args() -> None:
    call = parse_handler_key("greeter.Greet(alice,bob)")
    assert call == HandlerCall(alias="greeter", method="Greet", args=["alice", "bob"])


def test_parse_handler_key_without_parens() -> None:
    call = parse_handler_key("greeter.Reload")
    assert call.alias == "greeter"
    assert call.method == "Reload"
    assert call.args == []


def test_parse_handler_key_empty_args() -> None:
    assert parse_handler_key("greeter.Reload()").args == []


def test_parse_handler_key_keeps_raw_args() -> None:
    assert parse_handler_key("a.M( x , y )").args == [" x ", " y "]


def test_parse_handler_key_missing_parenthesis() -> None:
    with pytest.raises(MalformedCallError, match="expected ending parenthesis"):
        parse_handler_key("greeter.Greet(alice")


def test_parse_handler_key_requires_method() -> None:
    with pytest.raises(MalformedCallError, match="alias.Method"):
        parse_handler_key("greeter")
