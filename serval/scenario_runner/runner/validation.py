"""Response checks against the expectations collected from the steps."""

import json

from pydantic import JsonValue

from serval.scenario_runner.runner.steps import StepContext


def json_contains(actual: JsonValue, expected: JsonValue) -> bool:
    """Check that ``expected`` is structurally contained in ``actual``.

    Objects match when every expected key exists with a contained value,
    arrays when every expected element is contained by some actual element,
    scalars only when equal and of the same JSON kind: booleans never equal
    numbers and integers never equal floats.

    >>> json_contains({"id": 1, "name": "t", "extra": "x"}, {"id": 1, "name": "t"})
    True
    >>> json_contains({"id": 1, "name": "t", "extra": "x"}, {"id": 2})
    False
    """
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        return all(
            key in actual and json_contains(actual[key], value)
            for key, value in expected.items()
        )

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return False
        return all(
            any(json_contains(candidate, item) for candidate in actual)
            for item in expected
        )

    numbers = (bool, int, float)
    if isinstance(expected, numbers) or isinstance(actual, numbers):
        return type(expected) is type(actual) and expected == actual

    return expected == actual


def compact_json(value: JsonValue) -> str:
    """Serialize a JSON value without whitespace."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def validate_response(
    context: StepContext, status: int, body: JsonValue
) -> str | None:
    """Return the first unmet expectation as a message, or None when all hold."""
    if context.expected_status is not None and status != context.expected_status:
        return f"Expected status {context.expected_status}, got {status}"

    if context.expected_body_contains:
        body_text = compact_json(body)
        for pattern in context.expected_body_contains:
            if pattern not in body_text:
                return f"Response body does not contain expected pattern: {pattern}"

    if context.expected_body is not None and not json_contains(
        body, context.expected_body
    ):
        return (
            "Response body does not match expected. "
            f"Expected: {compact_json(context.expected_body)}, Got: {compact_json(body)}"
        )

    return None
