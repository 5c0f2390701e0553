"""Substitution of ``<field>`` placeholders with example values."""

import json
import re

from pydantic import JsonValue

PLACEHOLDER_RE = re.compile(r"<([^<>]+)>")


def stringify(value: JsonValue) -> str:
    """Render an example value for insertion into text.

    Strings are inserted verbatim; numbers, booleans, null, objects and arrays
    as compact JSON.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def substitute_text(text: str, example: JsonValue) -> str:
    """Replace each ``<key>`` whose key exists in ``example``.

    Substitution is a single pass: inserted values are not scanned again.
    Unknown placeholders are left untouched.
    """
    if not isinstance(example, dict) or not example:
        return text

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in example:
            return stringify(example[key])
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def substitute_value(value: JsonValue, example: JsonValue) -> JsonValue:
    """Substitute placeholders inside the string keys and values of a JSON tree."""
    if isinstance(value, str):
        return substitute_text(value, example)
    if isinstance(value, list):
        return [substitute_value(item, example) for item in value]
    if isinstance(value, dict):
        return {
            substitute_text(key, example): substitute_value(item, example)
            for key, item in value.items()
        }
    return value
