"""In-process job queue used for tests and single-process embedding."""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from uuid import UUID

from serval.scenario_runner.errors import NotFoundError
from serval.scenario_runner.jobs import lifecycle
from serval.scenario_runner.jobs.base import JobQueue
from serval.scenario_runner.models.job import JobResult, JobStatus, TestJob

logger = logging.getLogger(__name__)


class MemoryJobQueue(JobQueue):
    """Job table and FIFO guarded by a single lock."""

    def __init__(self) -> None:
        """Initialize an empty queue."""
        self._jobs: dict[UUID, TestJob] = {}
        self._queue: deque[UUID] = deque()
        self._lock = asyncio.Lock()
        self._available = asyncio.Condition(self._lock)

    async def enqueue(self, job: TestJob) -> UUID:
        """Store the job and wake one waiting consumer."""
        async with self._available:
            self._jobs[job.id] = job.model_copy(deep=True)
            self._queue.append(job.id)
            self._available.notify()
        logger.info(f"Job enqueued: {job.id}")
        return job.id

    async def dequeue(self, timeout: float) -> TestJob | None:
        """Wait up to ``timeout`` seconds for a pending job."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        async with self._available:
            while True:
                job = self._pop_pending()
                if job is not None:
                    return job

                remaining = deadline - loop.time()
                if remaining <= 0:
                    return None
                try:
                    await asyncio.wait_for(self._available.wait(), remaining)
                except asyncio.TimeoutError:
                    return self._pop_pending()

    def _pop_pending(self) -> TestJob | None:
        """Pop IDs until one refers to a pending job; caller holds the lock."""
        while self._queue:
            job_id = self._queue.popleft()
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.PENDING:
                logger.info(f"Skipping job {job_id}: no longer pending")
                continue
            lifecycle.start(job)
            logger.info(f"Job dequeued and started: {job_id}")
            return job.model_copy(deep=True)
        return None

    async def get_job(self, job_id: UUID) -> TestJob | None:
        """Return a copy of the stored job."""
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    async def _mutate(self, job_id: UUID, mutate: Callable[[TestJob], None]) -> TestJob:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job")
            mutate(job)
            return job.model_copy(deep=True)

    async def update_status(self, job_id: UUID, status: JobStatus) -> None:
        """Set the job status."""
        await self._mutate(job_id, lambda job: lifecycle.set_status(job, status))
        logger.info(f"Job {job_id} status updated to {status.value}")

    async def complete_job(self, job_id: UUID, result: JobResult) -> None:
        """Mark the job completed."""
        await self._mutate(job_id, lambda job: lifecycle.complete(job, result.report_id))
        logger.info(
            f"Job completed: {job_id} "
            f"(report={result.report_id}, passed={result.passed}, "
            f"failed={result.failed})"
        )

    async def fail_job(self, job_id: UUID, error: str, retryable: bool) -> None:
        """Record a failure on the job."""
        job = await self._mutate(
            job_id, lambda job: lifecycle.fail(job, error, retryable)
        )
        logger.warning(
            f"Job failed: {job_id} -> {job.status.value} "
            f"(retry {job.retry_count}/{job.max_retries}): {error}"
        )

    async def requeue(self, job_id: UUID) -> None:
        """Return a failed job to the end of the FIFO."""
        async with self._available:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job")
            lifecycle.requeue(job)
            self._queue.append(job_id)
            self._available.notify()
        logger.info(f"Job requeued: {job_id}")

    async def cancel_job(self, job_id: UUID) -> None:
        """Cancel the job."""
        await self._mutate(job_id, lifecycle.cancel)
        logger.info(f"Job cancelled: {job_id}")

    async def queue_length(self) -> int:
        """Return the FIFO length."""
        async with self._lock:
            return len(self._queue)

    async def list_jobs_by_user(self, user_id: UUID, limit: int) -> list[TestJob]:
        """Return the user's newest jobs."""
        async with self._lock:
            jobs = [
                job.model_copy(deep=True)
                for job in self._jobs.values()
                if job.user_id == user_id
            ]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[:limit]

    async def delete_job(self, job_id: UUID) -> None:
        """Drop the job from the table and the FIFO."""
        async with self._lock:
            if self._jobs.pop(job_id, None) is None:
                raise NotFoundError("Job")
            if job_id in self._queue:
                self._queue.remove(job_id)
        logger.info(f"Job deleted: {job_id}")
