"""Redis-backed job queue shared by any number of worker processes.

Key layout (``prefix`` defaults to ``serval:jobs:``):

    {prefix}queue             list of pending job IDs (FIFO)
    {prefix}{id}              JSON-serialized TestJob
    {prefix}by_user:{uid}     set of job IDs owned by a user
"""

import asyncio
import logging
import math
from collections.abc import Callable
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from serval.scenario_runner.errors import NotFoundError, QueueError, ValidationError
from serval.scenario_runner.jobs import lifecycle
from serval.scenario_runner.jobs.base import JobQueue
from serval.scenario_runner.models.job import JobResult, JobStatus, TestJob

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "serval:jobs:"


class RedisJobQueue(JobQueue):
    """Job queue stored in Redis.

    Popping is atomic (``BLPOP``), so each ID reaches one consumer. Every
    read-modify-write of a job record runs under ``WATCH``/``MULTI`` so
    concurrent transitions on the same job are never lost.
    """

    def __init__(self, client: aioredis.Redis, prefix: str = DEFAULT_PREFIX) -> None:
        """Initialize with a Redis client created with ``decode_responses=True``."""
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = DEFAULT_PREFIX) -> "RedisJobQueue":
        """Create a queue connected to the Redis server at ``url``."""
        return cls(aioredis.from_url(url, decode_responses=True), prefix)

    @property
    def queue_key(self) -> str:
        """Key of the pending-ID list."""
        return f"{self.prefix}queue"

    def _job_key(self, job_id: UUID) -> str:
        return f"{self.prefix}{job_id}"

    def _user_key(self, user_id: UUID) -> str:
        return f"{self.prefix}by_user:{user_id}"

    async def enqueue(self, job: TestJob) -> UUID:
        """Store the job, push its ID and index it under the owner."""
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.model_dump_json())
                pipe.rpush(self.queue_key, str(job.id))
                pipe.sadd(self._user_key(job.user_id), str(job.id))
                await pipe.execute()
        except RedisError as e:
            raise QueueError(f"Failed to enqueue job {job.id}: {e}") from e

        logger.info(f"Job enqueued: {job.id}")
        return job.id

    async def dequeue(self, timeout: float) -> TestJob | None:
        """Block on the pending list for up to ``timeout`` seconds."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            remaining = deadline - loop.time()
            job_id = await self._pop_id(remaining)
            if job_id is None:
                return None

            try:
                job = await self._mutate(job_id, _start_pending)
            except (NotFoundError, ValidationError):
                logger.info(f"Skipping job {job_id}: no longer pending")
                continue

            logger.info(f"Job dequeued and started: {job_id}")
            return job

    async def _pop_id(self, timeout: float) -> UUID | None:
        try:
            if timeout <= 0:
                raw = await self.client.lpop(self.queue_key)
            else:
                popped = await self.client.blpop(
                    [self.queue_key], timeout=math.ceil(timeout)
                )
                raw = popped[1] if popped else None
        except RedisError as e:
            raise QueueError(f"Failed to pop from queue: {e}") from e

        if raw is None:
            return None
        try:
            return UUID(raw)
        except ValueError as e:
            raise QueueError(f"Invalid job ID in queue: {raw!r}") from e

    async def get_job(self, job_id: UUID) -> TestJob | None:
        """Load and deserialize the job record."""
        try:
            raw = await self.client.get(self._job_key(job_id))
        except RedisError as e:
            raise QueueError(f"Failed to load job {job_id}: {e}") from e
        return TestJob.model_validate_json(raw) if raw is not None else None

    async def _mutate(self, job_id: UUID, mutate: Callable[[TestJob], None]) -> TestJob:
        """Apply ``mutate`` to the stored job inside an optimistic transaction."""
        key = self._job_key(job_id)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        if raw is None:
                            raise NotFoundError("Job")
                        job = TestJob.model_validate_json(raw)
                        mutate(job)
                        pipe.multi()
                        pipe.set(key, job.model_dump_json())
                        await pipe.execute()
                        return job
                    except WatchError:
                        logger.debug(f"Concurrent update on job {job_id}, retrying")
                        continue
        except RedisError as e:
            raise QueueError(f"Failed to update job {job_id}: {e}") from e

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
        """Reset a failed job to pending and push it back on the list."""
        await self._mutate(job_id, lifecycle.requeue)
        try:
            await self.client.rpush(self.queue_key, str(job_id))
        except RedisError as e:
            raise QueueError(f"Failed to requeue job {job_id}: {e}") from e
        logger.info(f"Job requeued: {job_id}")

    async def cancel_job(self, job_id: UUID) -> None:
        """Cancel the job; its ID is discarded when popped."""
        await self._mutate(job_id, lifecycle.cancel)
        logger.info(f"Job cancelled: {job_id}")

    async def queue_length(self) -> int:
        """Return the length of the pending list."""
        try:
            return int(await self.client.llen(self.queue_key))
        except RedisError as e:
            raise QueueError(f"Failed to read queue length: {e}") from e

    async def list_jobs_by_user(self, user_id: UUID, limit: int) -> list[TestJob]:
        """Load every job indexed under the user and return the newest."""
        try:
            job_ids = await self.client.smembers(self._user_key(user_id))
            if not job_ids:
                return []
            raws = await self.client.mget([f"{self.prefix}{jid}" for jid in job_ids])
        except RedisError as e:
            raise QueueError(f"Failed to list jobs for user {user_id}: {e}") from e

        jobs = [TestJob.model_validate_json(raw) for raw in raws if raw is not None]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[:limit]

    async def delete_job(self, job_id: UUID) -> None:
        """Remove the record, its user index entry and any pending list entry."""
        job = await self.get_job(job_id)
        if job is None:
            raise NotFoundError("Job")

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.srem(self._user_key(job.user_id), str(job_id))
                pipe.lrem(self.queue_key, 0, str(job_id))
                pipe.delete(self._job_key(job_id))
                await pipe.execute()
        except RedisError as e:
            raise QueueError(f"Failed to delete job {job_id}: {e}") from e
        logger.info(f"Job deleted: {job_id}")

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self.client.aclose()


def _start_pending(job: TestJob) -> None:
    if job.status != JobStatus.PENDING:
        raise ValidationError(f"Job {job.id} is {job.status.value}, not pending")
    lifecycle.start(job)
