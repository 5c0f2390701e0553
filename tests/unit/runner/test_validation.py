"""Tests for response validation."""

import pytest

from serval.scenario_runner.runner.steps import StepContext
from serval.scenario_runner.runner.validation import json_contains, validate_response


@pytest.mark.parametrize(
    ("actual", "expected", "contained"),
    [
        ({"id": 1, "name": "t", "extra": "x"}, {"id": 1, "name": "t"}, True),
        ({"id": 1, "name": "t", "extra": "x"}, {"id": 2}, False),
        ({"a": {"b": 1, "c": 2}}, {"a": {"b": 1}}, True),
        ({"a": 1}, {"b": None}, False),
        ([{"id": 1}, {"id": 2, "x": 0}], [{"id": 2}], True),
        ([1, 2, 3], [3, 1], True),
        ([1, 2], [4], False),
        ([1], [], True),
        ({"a": [1]}, {"a": 1}, False),
        (1, True, False),
        (True, True, True),
        (0, False, False),
        (1, 1.0, False),
        (1.0, 1, False),
        (1.5, 1.5, True),
        ({"n": 2.0}, {"n": 2.0}, True),
        ("a", "a", True),
        (None, None, True),
    ],
)
def test_json_contains(actual: object, expected: object, contained: bool) -> None:
    """json_contains applies the structural containment rules."""
    assert json_contains(actual, expected) is contained  # type: ignore[arg-type]


def test_validate_response_all_expectations_met() -> None:
    """validate_response returns None when every expectation holds."""
    context = StepContext(
        expected_status=200,
        expected_body={"id": 1},
        expected_body_contains=["tok"],
    )

    assert validate_response(context, 200, {"id": 1, "token": "x"}) is None


def test_validate_response_status_mismatch() -> None:
    """A wrong status is reported first."""
    context = StepContext(expected_status=201, expected_body_contains=["missing"])

    assert validate_response(context, 500, {}) == "Expected status 201, got 500"


def test_validate_response_missing_pattern() -> None:
    """A missing substring is reported with the pattern."""
    context = StepContext(expected_body_contains=["id", "token"])

    assert validate_response(context, 200, {"id": 1}) == (
        "Response body does not contain expected pattern: token"
    )


def test_validate_response_patterns_match_json_text() -> None:
    """Patterns are matched against the compact JSON text of the body."""
    quoted = StepContext(expected_body_contains=['"ok"'])
    spaced = StepContext(expected_body_contains=['"id": 1'])

    assert validate_response(quoted, 200, "ok") is None
    assert validate_response(spaced, 200, {"id": 1}) == (
        'Response body does not contain expected pattern: "id": 1'
    )


def test_validate_response_body_mismatch() -> None:
    """A body that does not contain the expected one is reported with both."""
    context = StepContext(expected_body={"id": 2})

    assert validate_response(context, 200, {"id": 1}) == (
        'Response body does not match expected. Expected: {"id":2}, Got: {"id":1}'
    )


def test_validate_response_no_expectations() -> None:
    """Without expectations any response passes."""
    assert validate_response(StepContext(), 503, None) is None
