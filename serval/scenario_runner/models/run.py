"""Request and response models of the test-run service."""

from uuid import UUID

from pydantic import BaseModel, Field

from serval.scenario_runner.models.catalog import Scenario
from serval.scenario_runner.models.job import JobStatus, JobStatusView


class RunTestRequest(BaseModel):
    """Options for running a scenario, API or collection."""

    __test__ = False

    environment_id: UUID = Field(..., description="Environment to run tests against")
    auth_token: str | None = Field(
        default=None, description="Bearer token for authenticated APIs"
    )
    custom_headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: int | None = Field(
        default=None, ge=1, description="Per-request timeout, default from settings"
    )
    async_execution: bool = Field(
        default=False, description="Queue a job instead of running inline"
    )


class AsyncTestResponse(BaseModel):
    """Acknowledgement returned when a job is queued."""

    __test__ = False

    job_id: UUID
    status: JobStatus = JobStatus.PENDING
    message: str = "Test job queued successfully"


class JobList(BaseModel):
    """A page of a user's jobs, newest first."""

    data: list[JobStatusView]
    total: int
    limit: int


class QueueStats(BaseModel):
    """Queue statistics."""

    queue_length: int


class ImportResult(BaseModel):
    """Scenarios created from a feature file."""

    created: list[Scenario]
    count: int
