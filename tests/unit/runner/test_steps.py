"""Tests for step interpretation."""

import pytest

from serval.scenario_runner.models.feature import KeywordType, ParsedStep
from serval.scenario_runner.runner.steps import (
    build_context,
    extract_key_value,
    extract_quoted_string,
    extract_status_code,
)


def step(
    text: str,
    keyword_type: KeywordType = "Context",
    doc_string: str | None = None,
    data_table: list[dict[str, object]] | None = None,
) -> ParsedStep:
    """Build a parsed step."""
    keyword = {"Context": "Given", "Action": "When", "Outcome": "Then"}[keyword_type]
    return ParsedStep(
        keyword=keyword,
        keyword_type=keyword_type,
        text=text,
        doc_string=doc_string,
        data_table=data_table,  # type: ignore[arg-type]
    )


def test_build_context_doc_string_body() -> None:
    """A JSON doc string becomes the request body after substitution."""
    context = build_context(
        [step("I send", "Action", doc_string='{"name": "<name>", "qty": <qty>}')],
        {"name": "pen", "qty": 3},
    )

    assert context.request_body == {"name": "pen", "qty": 3}


def test_build_context_non_json_doc_string_is_ignored() -> None:
    """A doc string that is not JSON leaves the body unset."""
    context = build_context([step("I send", "Action", doc_string="plain text")], {})

    assert context.request_body is None


def test_build_context_inline_json_body() -> None:
    """Inline JSON after a body phrase is used as the body."""
    context = build_context(
        [step('I send a request body {"id": <id>} to the API', "Action")], {"id": 9}
    )

    assert context.request_body == {"id": 9}


def test_build_context_body_phrase_uses_example() -> None:
    """A body phrase without inline JSON sends the example itself."""
    example = {"email": "a@example.com", "password": "secret"}

    context = build_context([step("I post the request payload", "Action")], example)

    assert context.request_body == example
    assert context.request_body is not example


def test_build_context_doc_string_wins_over_later_body_phrase() -> None:
    """A body set earlier is not replaced by a later body phrase."""
    context = build_context(
        [
            step("I prepare", doc_string='{"a": 1}'),
            step("I send the request body", "Action"),
        ],
        {"b": 2},
    )

    assert context.request_body == {"a": 1}


def test_build_context_headers_and_query_params() -> None:
    """Header and query param phrases add key/value pairs."""
    context = build_context(
        [
            step('I set header X-Trace to "<trace>"'),
            step("I set query param page to 2"),
        ],
        {"trace": "abc"},
    )

    assert context.request_headers == {"X-Trace": "abc"}
    assert context.query_params == {"page": "2"}


def test_build_context_data_table_is_setup_data() -> None:
    """Data tables are kept as substituted setup data."""
    context = build_context(
        [step("users exist", data_table=[{"name": "<user>", "age": 30}])],
        {"user": "alice"},
    )

    assert context.setup_data == [{"name": "alice", "age": 30}]


def test_build_context_outcome_sets_expectations() -> None:
    """Outcome steps override the expected status and collect body patterns."""
    context = build_context(
        [
            step("the response status should be <status>", "Outcome"),
            step('the response body contains "token"', "Outcome"),
        ],
        {"status": 201},
        expected_status=200,
    )

    assert context.expected_status == 201
    assert context.expected_body_contains == ["token"]


def test_build_context_status_only_from_outcome_steps() -> None:
    """Numbers in non-outcome steps never set the expected status."""
    context = build_context([step("there are 404 widgets")], {}, expected_status=200)

    assert context.expected_status == 200


def test_build_context_keeps_expected_body() -> None:
    """The example's expected body is carried into the context."""
    context = build_context([], {}, expected_body={"ok": True})

    assert context.expected_body == {"ok": True}


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("the response status should be 201", 201),
        ("I get a 404", 404),
        ("status code 200.", 200),
        ("status 99", None),
        ("status 600", None),
        ("the request succeeds", None),
    ],
)
def test_extract_status_code(text: str, expected: int | None) -> None:
    """extract_status_code finds 3-digit statuses between 100 and 599."""
    assert extract_status_code(text) == expected


def test_extract_key_value_missing_key() -> None:
    """A marker at the end of the text yields nothing."""
    assert extract_key_value("I set header", frozenset({"header"})) is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('body contains "id"', "id"),
        ("body contains 'name' and \"x\"", "name"),
        ('body contains "unterminated', None),
        ("no quotes here", None),
    ],
)
def test_extract_quoted_string(text: str, expected: str | None) -> None:
    """extract_quoted_string returns the first quoted substring."""
    assert extract_quoted_string(text) == expected
