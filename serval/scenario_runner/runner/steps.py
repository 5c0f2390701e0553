"""Interpret step text into request settings and response expectations.

Steps are free text, so intent is recognised by keywords: doc strings and
"request body" phrases set the body, "header" and "query param" phrases add
key/value pairs, and Outcome steps carry the expected status and quoted
substrings the body must contain.
"""

import copy
import json
import logging
import re
from dataclasses import dataclass, field

from pydantic import JsonValue

from serval.scenario_runner.models.feature import ParsedStep
from serval.scenario_runner.runner.placeholders import substitute_text, substitute_value

logger = logging.getLogger(__name__)

BODY_MARKERS = ("request body", "request payload", "with body")
BODY_CONTAINS_MARKERS = ("contains", "should have")
HEADER_MARKERS = frozenset({"header"})
QUERY_MARKERS = frozenset({"param", "parameter"})
STATUS_WORDS = frozenset({"status", "code"})

_STATUS_TOKEN_RE = re.compile(r"^\d{3}$")
_QUOTES = "'\""
_decoder = json.JSONDecoder()


@dataclass
class StepContext:
    """Request settings and expectations collected from one walk of the steps."""

    request_body: JsonValue = None
    request_headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    path_params: dict[str, str] = field(default_factory=dict)
    expected_status: int | None = None
    expected_body: JsonValue = None
    expected_body_contains: list[str] = field(default_factory=list)
    setup_data: list[JsonValue] | None = None


def build_context(
    steps: list[ParsedStep],
    example: JsonValue,
    expected_status: int | None = None,
    expected_body: JsonValue = None,
) -> StepContext:
    """Walk ``steps`` in order for one example."""
    context = StepContext(expected_status=expected_status, expected_body=expected_body)
    for step in steps:
        process_step(context, step, example)
    return context


def process_step(context: StepContext, step: ParsedStep, example: JsonValue) -> None:
    """Apply one step to the context after placeholder substitution."""
    text = substitute_text(step.text, example)
    lowered = text.lower()

    if step.doc_string is not None:
        doc_string = substitute_text(step.doc_string, example)
        try:
            context.request_body = json.loads(doc_string)
        except json.JSONDecodeError:
            logger.debug(f"Doc string of step '{text}' is not JSON, ignoring")

    if step.data_table is not None:
        context.setup_data = [substitute_value(row, example) for row in step.data_table]

    if any(marker in lowered for marker in BODY_MARKERS) and context.request_body is None:
        start = text.find("{")
        if start >= 0:
            body = _decode_json_at(text, start)
            if body is not None:
                context.request_body = body
        else:
            context.request_body = copy.deepcopy(example)

    if "header" in lowered:
        pair = extract_key_value(text, HEADER_MARKERS)
        if pair:
            context.request_headers[pair[0]] = pair[1]

    if "query param" in lowered:
        pair = extract_key_value(text, QUERY_MARKERS)
        if pair:
            context.query_params[pair[0]] = pair[1]

    if step.keyword_type == "Outcome":
        status = extract_status_code(text)
        if status is not None:
            context.expected_status = status

        if any(marker in lowered for marker in BODY_CONTAINS_MARKERS):
            pattern = extract_quoted_string(text)
            if pattern is not None:
                context.expected_body_contains.append(pattern)


def extract_key_value(text: str, markers: frozenset[str]) -> tuple[str, str] | None:
    """Read ``<marker> KEY ... VALUE``: the token after the marker and the last token.

    >>> extract_key_value("I set header X-Trace to abc", frozenset({"header"}))
    ('X-Trace', 'abc')
    """
    words = text.split()
    for idx, word in enumerate(words):
        if word.lower() in markers:
            if idx + 1 >= len(words):
                return None
            return words[idx + 1].strip(_QUOTES), words[-1].strip(_QUOTES)
    return None


def extract_status_code(text: str) -> int | None:
    """Find an HTTP status in step text.

    The first 3-digit token between 100 and 599 wins; the token right after
    "status" or "code" also counts once trailing punctuation is dropped.
    """
    words = text.split()
    for idx, word in enumerate(words):
        status = _as_status(word)
        if status is not None:
            return status
        if word.lower() in STATUS_WORDS and idx + 1 < len(words):
            status = _as_status(words[idx + 1].rstrip(".,;:!"))
            if status is not None:
                return status
    return None


def extract_quoted_string(text: str) -> str | None:
    """Return the content of the first single- or double-quoted substring."""
    quote: str | None = None
    chars: list[str] = []
    for char in text:
        if quote is None:
            if char in _QUOTES:
                quote = char
        elif char == quote:
            return "".join(chars)
        else:
            chars.append(char)
    return None


def _as_status(token: str) -> int | None:
    if not _STATUS_TOKEN_RE.match(token):
        return None
    status = int(token)
    return status if 100 <= status < 600 else None


def _decode_json_at(text: str, start: int) -> JsonValue:
    try:
        value, _ = _decoder.raw_decode(text, start)
    except json.JSONDecodeError:
        logger.debug(f"No JSON body found in step text '{text}'")
        return None
    return value  # type: ignore[no-any-return]
