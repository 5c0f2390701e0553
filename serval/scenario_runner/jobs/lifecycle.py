"""Job status transitions shared by every queue backend.

Backends own storage and locking; the rules for how a job moves between
statuses live here so that both backends behave identically.

    pending   --start-->    running
    running   --complete--> completed
    running   --fail-->     failed (retries left) | dead
    failed    --requeue-->  pending
    pending   --cancel-->   cancelled
    running   --cancel-->   cancelled
"""

from uuid import UUID

from serval.scenario_runner.errors import ValidationError
from serval.scenario_runner.models.job import JobStatus, TestJob, utc_now

JOB_TRANSITIONS: dict[str, dict[str, object]] = {
    "start": {
        "from": {JobStatus.PENDING, JobStatus.RUNNING},
        "to": JobStatus.RUNNING,
    },
    "complete": {
        "from": {JobStatus.PENDING, JobStatus.RUNNING, JobStatus.FAILED},
        "to": JobStatus.COMPLETED,
    },
    "fail": {
        "from": {JobStatus.PENDING, JobStatus.RUNNING, JobStatus.FAILED},
        "to": None,
    },
    "requeue": {"from": {JobStatus.FAILED}, "to": JobStatus.PENDING},
    "cancel": {
        "from": {JobStatus.PENDING, JobStatus.RUNNING, JobStatus.FAILED},
        "to": JobStatus.CANCELLED,
    },
}


def _check(job: TestJob, action: str) -> None:
    allowed = JOB_TRANSITIONS[action]["from"]
    if job.status in allowed:  # type: ignore[operator]
        return
    if action == "requeue":
        raise ValidationError("Only failed jobs can be requeued")
    if action == "cancel":
        raise ValidationError(f"Cannot cancel a {job.status.value} job")
    raise ValidationError(f"Cannot {action} job {job.id} (status={job.status.value})")


def start(job: TestJob) -> None:
    """Mark a job running; the first start stamps ``started_at``."""
    _check(job, "start")
    job.status = JobStatus.RUNNING
    if job.started_at is None:
        job.started_at = utc_now()


def complete(job: TestJob, report_id: UUID) -> None:
    """Mark a job completed and attach its report."""
    _check(job, "complete")
    job.status = JobStatus.COMPLETED
    job.completed_at = utc_now()
    job.report_id = report_id


def fail(job: TestJob, error: str, retryable: bool) -> None:
    """Record a failure, leaving the job Failed while retries remain, else Dead."""
    _check(job, "fail")
    job.error_message = error
    if retryable and job.retry_count < job.max_retries:
        job.retry_count += 1
        job.status = JobStatus.FAILED
    else:
        job.status = JobStatus.DEAD
        job.completed_at = utc_now()


def requeue(job: TestJob) -> None:
    """Send a failed job back to pending."""
    _check(job, "requeue")
    job.status = JobStatus.PENDING
    job.started_at = None
    job.error_message = None


def cancel(job: TestJob) -> None:
    """Cancel a job that has not reached a terminal status."""
    _check(job, "cancel")
    job.status = JobStatus.CANCELLED
    job.completed_at = utc_now()


def set_status(job: TestJob, status: JobStatus) -> None:
    """Force a status, refusing to move a job out of a terminal status."""
    if job.status.is_terminal and status != job.status:
        raise ValidationError(
            f"Cannot move job {job.id} from {job.status.value} to {status.value}"
        )
    if status == JobStatus.RUNNING and job.started_at is None:
        job.started_at = utc_now()
    job.status = status
    if status.is_terminal and job.completed_at is None:
        job.completed_at = utc_now()
