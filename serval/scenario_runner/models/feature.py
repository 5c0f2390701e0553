"""Models for parsed Gherkin features."""

from typing import Literal

from pydantic import BaseModel, Field, JsonValue

KeywordType = Literal["Context", "Action", "Outcome"]


class ParsedStep(BaseModel):
    """One Given/When/Then/And/But line with its optional arguments."""

    keyword: str = Field(..., description="Given, When, Then, And or But")
    keyword_type: KeywordType = Field(..., description="Normalized step intent")
    text: str = Field(..., description="Step text after the keyword")
    doc_string: str | None = Field(
        default=None, description="Multi-line doc string, e.g. a JSON body"
    )
    data_table: list[dict[str, JsonValue]] | None = Field(
        default=None, description="Data table rows keyed by header"
    )


class ParsedExample(BaseModel):
    """One row of an Examples table."""

    data: dict[str, JsonValue] = Field(default_factory=dict)
    expected_status_code: int | None = None


class ParsedScenario(BaseModel):
    """A scenario (or scenario outline) with its steps and examples."""

    title: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    steps: list[ParsedStep] = Field(default_factory=list)
    examples: list[ParsedExample] = Field(default_factory=list)


class ParsedFeature(BaseModel):
    """Result of parsing a feature file."""

    name: str
    description: str | None = None
    background_steps: list[ParsedStep] = Field(
        default_factory=list, description="Steps that run before each scenario"
    )
    scenarios: list[ParsedScenario] = Field(default_factory=list)
