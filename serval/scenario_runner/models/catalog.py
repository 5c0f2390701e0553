"""Read-only projections of the records tests are executed against."""

from uuid import UUID, uuid4

from pydantic import BaseModel, Field, JsonValue

from serval.scenario_runner.models.feature import ParsedStep


class Project(BaseModel):
    """Top of the ownership hierarchy."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID = Field(..., description="Owner of the project")
    name: str


class Collection(BaseModel):
    """Group of APIs inside a project."""

    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    name: str


class Environment(BaseModel):
    """Deployment target, e.g. dev or staging."""

    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    title: str
    domain_name: str = Field(..., description="Base URL requests are sent to")


class Api(BaseModel):
    """One HTTP endpoint under test."""

    id: UUID = Field(default_factory=uuid4)
    collection_id: UUID
    name: str
    http_method: str = Field(..., description="GET, POST, PUT, DELETE, PATCH, ...")
    endpoint: str = Field(..., description="Path template, may hold <placeholders>")
    severity: int = 1
    description: str | None = None


class TestExample(BaseModel):
    """Input data and expectations for one run of a scenario."""

    __test__ = False

    example: JsonValue = Field(default_factory=dict, description="Test data")
    expected_response_body: JsonValue = None
    expected_status_code: int | None = 200


class Scenario(BaseModel):
    """Stored scenario: steps plus the examples to run them with."""

    id: UUID = Field(default_factory=uuid4)
    api_id: UUID
    title: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    steps: list[ParsedStep] = Field(default_factory=list)
    examples: list[TestExample] = Field(default_factory=list)
