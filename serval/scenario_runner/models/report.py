"""Persisted report records and archived documents."""

from datetime import datetime
from enum import IntEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, JsonValue

from serval.scenario_runner.models.job import utc_now


class ReportLevel(IntEnum):
    """Coarse classification of what a report covers."""

    SCENARIO = 0
    API = 1
    PROJECT = 2


class Report(BaseModel):
    """Aggregate outcome of one job."""

    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    environment_id: UUID
    collection_id: UUID | None = None
    report_level: ReportLevel = ReportLevel.SCENARIO
    report_type: str | None = None
    finished: bool = False
    pass_rate: float | None = None
    response_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None


class ResponseRecord(BaseModel):
    """Stored outcome of one example."""

    id: UUID = Field(default_factory=uuid4)
    report_id: UUID
    api_id: UUID
    scenario_id: UUID
    example_index: int
    response_status: int
    passed: bool
    error_message: str | None = None
    response_data: JsonValue = None
    request_duration_ms: int
    request_time: datetime


class ExecutionLog(BaseModel):
    """Raw per-example log mirrored to the document archive."""

    report_id: UUID
    api_id: UUID
    scenario_id: UUID
    example_index: int
    response_status: int
    response_data: JsonValue = None
    passed: bool
    error_message: str | None = None
    duration_ms: int
    created_at: datetime = Field(default_factory=utc_now)


class GherkinDocument(BaseModel):
    """Raw feature text and its parse, archived when scenarios are imported."""

    api_id: UUID
    raw_gherkin: str
    parsed_feature: dict[str, JsonValue]
    created_at: datetime = Field(default_factory=utc_now)
