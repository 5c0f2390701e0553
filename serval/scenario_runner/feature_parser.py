"""Parse Gherkin feature text into scenarios, steps and typed examples.

The parser is line oriented. It understands Feature, Rule, Background,
Scenario (Outline/Template, Example), Examples/Scenarios blocks, tags,
comments, doc strings and data tables. Keywords are English only.
"""

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from pydantic import JsonValue

from serval.scenario_runner.errors import ValidationError
from serval.scenario_runner.models.catalog import Scenario, TestExample
from serval.scenario_runner.models.feature import (
    KeywordType,
    ParsedExample,
    ParsedFeature,
    ParsedScenario,
    ParsedStep,
)

logger = logging.getLogger(__name__)

STATUS_COLUMNS = frozenset({"status", "expected_status", "expected_status_code"})

_KEYWORD_RE = re.compile(
    r"^(Feature|Rule|Background|Scenario Outline|Scenario Template|Scenario"
    r"|Examples|Example|Scenarios):\s*(.*)$"
)
_STEP_RE = re.compile(r"^(Given|When|Then|And|But|\*)(?:\s+(.*))?$")
_DOC_STRING_DELIMITERS = ('"""', "```")

_STEP_TYPES: dict[str, KeywordType] = {
    "Given": "Context",
    "When": "Action",
    "Then": "Outcome",
}

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass
class _Step:
    keyword: str
    keyword_type: KeywordType
    text: str
    doc_string: str | None = None
    rows: list[list[str]] | None = None


@dataclass
class _Scenario:
    title: str
    tags: list[str]
    background: list[_Step]
    description: list[str] = field(default_factory=list)
    steps: list[_Step] = field(default_factory=list)
    examples: list[list[list[str]]] = field(default_factory=list)


class _FeatureParser:
    """Single-use parser state for one document."""

    def __init__(self, text: str) -> None:
        self.lines = text.splitlines()
        self.pos = 0
        self.name: str | None = None
        self.description: list[str] = []
        self.background: list[_Step] = []
        self.scenarios: list[_Scenario] = []

        self.rule_background: list[_Step] | None = None
        self.rule_tags: list[str] = []
        self.rule_has_scenarios = False
        self.pending_tags: list[str] = []

        self.block: str | None = None
        self.steps: list[_Step] | None = None
        self.last_step: _Step | None = None
        self.scenario: _Scenario | None = None
        self.examples: list[list[str]] | None = None
        self.description_target: list[str] | None = None

    def error(self, message: str, line: int | None = None) -> ValidationError:
        number = self.pos if line is None else line
        return ValidationError(f"Gherkin parse error at line {number}: {message}")

    def parse(self) -> ParsedFeature:
        while self.pos < len(self.lines):
            raw = self.lines[self.pos]
            self.pos += 1
            line = raw.strip()

            if not line:
                if self.description_target is not None:
                    self.description_target.append("")
            elif line.startswith("#"):
                continue
            elif line.startswith(_DOC_STRING_DELIMITERS):
                self._doc_string(raw, line)
            elif line.startswith("|"):
                self._table_row(line)
            elif line.startswith("@"):
                self._tags(line)
            elif match := _KEYWORD_RE.match(line):
                self._keyword(match.group(1), match.group(2).strip())
            elif match := _STEP_RE.match(line):
                self._step(match.group(1), match.group(2) or "")
            elif self.description_target is not None:
                self.description_target.append(line)
            else:
                raise self.error(f"unexpected text '{line}'")

        if self.name is None:
            raise ValidationError("Gherkin parse error: no Feature found")
        if self.pending_tags:
            raise self.error("tags must be followed by a Scenario or Examples")

        return ParsedFeature(
            name=self.name,
            description=_clean_description(self.description),
            background_steps=[_to_parsed_step(s) for s in self.background],
            scenarios=[self._to_parsed_scenario(s) for s in self.scenarios],
        )

    def _keyword(self, keyword: str, title: str) -> None:
        if keyword == "Feature":
            if self.name is not None:
                raise self.error("only one Feature is allowed per document")
            self.name = title
            self.pending_tags = []
            self._enter("feature", description=self.description)
            return

        if self.name is None:
            raise self.error(f"{keyword} found before Feature")

        if keyword == "Rule":
            self.rule_background = []
            self.rule_tags = self.pending_tags
            self.rule_has_scenarios = False
            self.pending_tags = []
            self._enter("rule", description=[])
        elif keyword == "Background":
            self._background()
        elif keyword in ("Examples", "Scenarios"):
            if self.scenario is None or self.block not in ("scenario", "examples"):
                raise self.error(f"{keyword} must belong to a Scenario")
            self.examples = []
            self.scenario.examples.append(self.examples)
            self.pending_tags = []
            self._enter("examples", description=[])
        else:
            self._scenario(title)

    def _background(self) -> None:
        if self.pending_tags:
            raise self.error("tags are not allowed on a Background")
        if self.rule_background is not None:
            if self.rule_has_scenarios or self.rule_background:
                raise self.error("Background must come before the Rule's scenarios")
            target = self.rule_background
        else:
            if self.scenarios or self.background:
                raise self.error("Background must come before the scenarios")
            target = self.background
        self._enter("background", description=[])
        self.steps = target

    def _scenario(self, title: str) -> None:
        self.scenario = _Scenario(
            title=title,
            tags=[*self.rule_tags, *self.pending_tags],
            background=self.rule_background if self.rule_background is not None else [],
        )
        self.pending_tags = []
        self.scenarios.append(self.scenario)
        if self.rule_background is not None:
            self.rule_has_scenarios = True
        self._enter("scenario", description=self.scenario.description)
        self.steps = self.scenario.steps

    def _enter(self, block: str, description: list[str]) -> None:
        self.block = block
        self.steps = None
        self.last_step = None
        self.examples = None
        self.description_target = description

    def _step(self, keyword: str, text: str) -> None:
        if self.steps is None or self.block not in ("background", "scenario"):
            raise self.error("steps must belong to a Scenario or Background")
        previous = self.steps[-1].keyword_type if self.steps else "Context"
        self.last_step = _Step(
            keyword=keyword,
            keyword_type=_STEP_TYPES.get(keyword, previous),
            text=text.strip(),
        )
        self.steps.append(self.last_step)
        self.description_target = None

    def _tags(self, line: str) -> None:
        for token in line.split():
            if token.startswith("#"):
                break
            if not token.startswith("@") or len(token) == 1:
                raise self.error(f"invalid tag '{token}'")
            self.pending_tags.append(token[1:])
        self.description_target = None

    def _table_row(self, line: str) -> None:
        cells = _split_row(line)
        if cells is None:
            raise self.error("table rows must end with '|'")

        if self.block == "examples" and self.examples is not None:
            rows = self.examples
        elif (
            self.last_step is not None
            and self.last_step.doc_string is None
            and self.block in ("background", "scenario")
        ):
            if self.last_step.rows is None:
                self.last_step.rows = []
            rows = self.last_step.rows
        else:
            raise self.error("table found without a step or Examples")

        if rows and len(cells) != len(rows[0]):
            raise self.error("inconsistent cell count within the table")
        rows.append(cells)
        self.description_target = None

    def _doc_string(self, raw: str, line: str) -> None:
        start = self.pos
        step = self.last_step
        if step is None or step.doc_string is not None or step.rows is not None:
            raise self.error("doc string must directly follow a step")

        delimiter = line[:3]
        indent = len(raw) - len(raw.lstrip())
        content: list[str] = []
        while self.pos < len(self.lines):
            raw_line = self.lines[self.pos]
            self.pos += 1
            if raw_line.strip() == delimiter:
                step.doc_string = "\n".join(content)
                return
            content.append(
                _dedent(raw_line, indent).replace(f"\\{delimiter[0]}" * 3, delimiter)
            )
        raise self.error("unterminated doc string", line=start)

    def _to_parsed_scenario(self, scenario: _Scenario) -> ParsedScenario:
        return ParsedScenario(
            title=scenario.title,
            description=_clean_description(scenario.description),
            tags=scenario.tags,
            steps=[_to_parsed_step(s) for s in [*scenario.background, *scenario.steps]],
            examples=parse_examples(scenario.examples),
        )


def parse_feature(feature_text: str) -> ParsedFeature:
    """Parse a feature file.

    Args:
        feature_text: Gherkin source

    Returns:
        Parsed feature with background steps and scenarios in source order.
        Scenarios inside a Rule are flattened into the list with the Rule's
        background steps prepended.

    Raises:
        ValidationError: If the text is not valid Gherkin or has no Feature

    """
    parsed = _FeatureParser(feature_text).parse()
    logger.debug(
        f"Parsed feature '{parsed.name}' with {len(parsed.scenarios)} scenarios"
    )
    return parsed


def parse_data_table(rows: list[list[str]]) -> list[dict[str, JsonValue]]:
    """Turn a table whose first row is the header into typed row objects."""
    if not rows:
        return []
    headers = rows[0]
    return [
        {header: parse_cell_value(value) for header, value in zip(headers, row)}
        for row in rows[1:]
    ]


def parse_examples(tables: Iterable[list[list[str]]]) -> list[ParsedExample]:
    """Parse every Examples table of a scenario (header row first).

    The status column, if any, becomes ``expected_status_code`` and is left
    out of the example data.
    """
    parsed: list[ParsedExample] = []

    for rows in tables:
        if not rows:
            continue
        headers = rows[0]
        status_idx = next(
            (i for i, h in enumerate(headers) if h.lower() in STATUS_COLUMNS), None
        )

        for row in rows[1:]:
            data: dict[str, JsonValue] = {}
            expected_status: int | None = None
            for idx, (name, value) in enumerate(zip(headers, row)):
                if idx == status_idx:
                    expected_status = _parse_int(value)
                else:
                    data[name] = parse_cell_value(value)
            parsed.append(
                ParsedExample(data=data, expected_status_code=expected_status)
            )

    return parsed


def parse_cell_value(value: str) -> JsonValue:
    """Infer the JSON type of a table cell.

    JSON literals (arrays, objects, null) first, then integers, floats and
    case-insensitive booleans; anything else stays a string.
    """
    if value.startswith(("[", "{")) or value == "null":
        try:
            return json.loads(value)  # type: ignore[no-any-return]
        except json.JSONDecodeError:
            pass  # not JSON after all; fall through to scalar inference

    as_int = _parse_int(value)
    if as_int is not None:
        return as_int

    if _FLOAT_RE.match(value):
        return float(value)

    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    return value


def scenarios_from_feature(feature: ParsedFeature, api_id: UUID) -> list[Scenario]:
    """Build scenario records for an API from a parsed feature.

    Background steps are prepended to every scenario. Rows without a status
    column expect 200, and a scenario without examples runs once with empty
    data.
    """
    records: list[Scenario] = []
    for parsed in feature.scenarios:
        examples = [
            TestExample(
                example=dict(example.data),
                expected_status_code=example.expected_status_code or 200,
            )
            for example in parsed.examples
        ] or [TestExample()]
        records.append(
            Scenario(
                api_id=api_id,
                title=parsed.title,
                description=parsed.description,
                tags=list(parsed.tags),
                steps=[*feature.background_steps, *parsed.steps],
                examples=examples,
            )
        )
    return records


def _to_parsed_step(step: _Step) -> ParsedStep:
    return ParsedStep(
        keyword=step.keyword,
        keyword_type=step.keyword_type,
        text=step.text,
        doc_string=step.doc_string,
        data_table=parse_data_table(step.rows) if step.rows is not None else None,
    )


def _split_row(line: str) -> list[str] | None:
    """Split ``| a | b |`` into cells, honouring ``\\|``, ``\\\\`` and ``\\n``."""
    if not line.endswith("|") or len(line) < 2:
        return None
    cells: list[str] = []
    cell: list[str] = []
    chars = iter(line[1:])
    for char in chars:
        if char == "\\":
            escaped = next(chars, "")
            if escaped == "n":
                cell.append("\n")
            elif escaped in ("|", "\\"):
                cell.append(escaped)
            else:
                cell.append(char + escaped)
        elif char == "|":
            cells.append("".join(cell).strip())
            cell = []
        else:
            cell.append(char)
    return cells


def _dedent(line: str, indent: int) -> str:
    stripped = line.lstrip()
    removable = len(line) - len(stripped)
    return line[min(indent, removable):]


def _parse_int(value: str) -> int | None:
    if not _INT_RE.match(value):
        return None
    number = int(value)
    if _INT64_MIN <= number <= _INT64_MAX:
        return number
    return None


def _clean_description(lines: list[str]) -> str | None:
    cleaned = "\n".join(line.strip() for line in lines).strip()
    return cleaned or None
