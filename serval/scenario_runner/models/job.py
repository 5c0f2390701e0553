"""Models for queued test jobs."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Lifecycle status of a test job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Completed, dead and cancelled jobs never change again."""
        return self in {JobStatus.COMPLETED, JobStatus.DEAD, JobStatus.CANCELLED}


class TestJobType(str, Enum):
    """Breadth of a job: one scenario, every scenario of an API or collection."""

    __test__ = False

    SCENARIO = "scenario"
    API = "api"
    COLLECTION = "collection"


class TestJobConfig(BaseModel):
    """Run options applied to every request of a job."""

    __test__ = False

    timeout_seconds: int = Field(default=30, ge=1, description="Per-request timeout")
    auth_token: str | None = Field(
        default=None, description="Bearer token sent as the Authorization header"
    )
    custom_headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent with every request"
    )


class TestJob(BaseModel):
    """A queued request to execute scenarios against an environment."""

    __test__ = False

    id: UUID = Field(default_factory=uuid4, description="Unique job identifier")
    job_type: TestJobType = Field(..., description="What level of tests to run")
    target_id: UUID = Field(..., description="Scenario, API or collection ID")
    environment_id: UUID = Field(..., description="Environment to run against")
    user_id: UUID = Field(..., description="User who submitted the job")
    status: JobStatus = Field(default=JobStatus.PENDING)
    config: TestJobConfig = Field(default_factory=TestJobConfig)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    report_id: UUID | None = None


class JobResult(BaseModel):
    """Summary of a finished job, stored alongside its report."""

    report_id: UUID
    total_tests: int
    passed: int
    failed: int
    pass_rate: float
    total_duration_ms: int


class JobStatusView(BaseModel):
    """Projection of a job returned by status queries."""

    job_id: UUID
    job_type: TestJobType
    target_id: UUID
    environment_id: UUID
    status: JobStatus
    retry_count: int
    max_retries: int
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    error_message: str | None
    report_id: UUID | None

    @classmethod
    def from_job(cls, job: TestJob) -> "JobStatusView":
        """Build the projection for a job."""
        return cls(
            job_id=job.id,
            job_type=job.job_type,
            target_id=job.target_id,
            environment_id=job.environment_id,
            status=job.status,
            retry_count=job.retry_count,
            max_retries=job.max_retries,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            error_message=job.error_message,
            report_id=job.report_id,
        )
