"""Abstract base class for job queue backends."""

from abc import ABC, abstractmethod
from uuid import UUID

from serval.scenario_runner.models.job import JobResult, JobStatus, TestJob


class JobQueue(ABC):
    """FIFO of test jobs with status bookkeeping, keyed by job ID and owner."""

    @abstractmethod
    async def enqueue(self, job: TestJob) -> UUID:
        """Store a job, append it to the FIFO and index it under its owner.

        Args:
            job: Job to enqueue, normally in pending status

        Returns:
            The job ID

        """

    @abstractmethod
    async def dequeue(self, timeout: float) -> TestJob | None:
        """Pop the next pending job and mark it running.

        Each popped ID is handed to exactly one caller. IDs of jobs that were
        cancelled or deleted while waiting are discarded.

        Args:
            timeout: Maximum time to wait for a job, in seconds

        Returns:
            Snapshot of the running job, or None if the wait timed out

        """

    @abstractmethod
    async def get_job(self, job_id: UUID) -> TestJob | None:
        """Return a snapshot of a job, or None if unknown."""

    @abstractmethod
    async def update_status(self, job_id: UUID, status: JobStatus) -> None:
        """Set a job's status.

        Raises:
            NotFoundError: If the job does not exist
            ValidationError: If the job is already in a terminal status

        """

    @abstractmethod
    async def complete_job(self, job_id: UUID, result: JobResult) -> None:
        """Mark a job completed and attach its report ID."""

    @abstractmethod
    async def fail_job(self, job_id: UUID, error: str, retryable: bool) -> None:
        """Record a failure.

        A retryable failure with retries left increments ``retry_count`` and
        leaves the job failed; anything else makes it dead.

        """

    @abstractmethod
    async def requeue(self, job_id: UUID) -> None:
        """Put a failed job back at the end of the FIFO as pending."""

    @abstractmethod
    async def cancel_job(self, job_id: UUID) -> None:
        """Cancel a job that is not yet in a terminal status."""

    @abstractmethod
    async def queue_length(self) -> int:
        """Return the number of IDs waiting in the FIFO."""

    @abstractmethod
    async def list_jobs_by_user(self, user_id: UUID, limit: int) -> list[TestJob]:
        """Return a user's jobs, newest first, at most ``limit`` of them."""

    @abstractmethod
    async def delete_job(self, job_id: UUID) -> None:
        """Remove a job and its index entries."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""
