"""Tests for placeholder substitution."""

import pytest

from serval.scenario_runner.runner.placeholders import (
    stringify,
    substitute_text,
    substitute_value,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("plain", "plain"),
        (42, "42"),
        (1.5, "1.5"),
        (True, "true"),
        (None, "null"),
        ({"a": [1, "b"]}, '{"a":[1,"b"]}'),
        ("héllo", "héllo"),
    ],
)
def test_stringify(value: object, expected: str) -> None:
    """stringify inserts strings verbatim and everything else as compact JSON."""
    assert stringify(value) == expected  # type: ignore[arg-type]


def test_substitute_text_replaces_known_keys() -> None:
    """Known placeholders are replaced; unknown ones are kept."""
    example = {"id": 7, "name": "widget", "active": False}

    result = substitute_text("/items/<id>?name=<name>&on=<active>&x=<missing>", example)

    assert result == "/items/7?name=widget&on=false&x=<missing>"


def test_substitute_text_is_single_pass() -> None:
    """Values that themselves contain placeholders are not expanded again."""
    example = {"a": "<b>", "b": "nested"}

    assert substitute_text("<a> and <b>", example) == "<b> and nested"


def test_substitute_text_is_idempotent_without_placeholders_in_values() -> None:
    """Substituting twice gives the same text when values hold no placeholders."""
    example = {"email": "a@example.com", "n": 3}
    once = substitute_text("user <email> has <n> items", example)

    assert substitute_text(once, example) == once


@pytest.mark.parametrize("example", [None, [], {}, "text", 5])
def test_substitute_text_without_mapping_returns_text(example: object) -> None:
    """Non-object or empty examples leave the text unchanged."""
    assert substitute_text("<id>", example) == "<id>"  # type: ignore[arg-type]


def test_substitute_value_walks_json_tree() -> None:
    """substitute_value rewrites string keys and values at any depth."""
    example = {"user": "alice", "count": 2}
    value = {
        "<user>_profile": {"name": "<user>", "tags": ["<count>", 3, None]},
        "flag": True,
    }

    assert substitute_value(value, example) == {
        "alice_profile": {"name": "alice", "tags": ["2", 3, None]},
        "flag": True,
    }
