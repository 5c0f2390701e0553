"""Tests for the in-process job queue."""

import asyncio
from uuid import uuid4

from serval.scenario_runner.jobs.memory_queue import MemoryJobQueue
from serval.scenario_runner.models.job import JobStatus, TestJob, TestJobType


def make_job() -> TestJob:
    """Build a pending job."""
    return TestJob(
        job_type=TestJobType.COLLECTION,
        target_id=uuid4(),
        environment_id=uuid4(),
        user_id=uuid4(),
    )


async def test_blocked_dequeue_wakes_on_enqueue() -> None:
    """A consumer waiting on an empty queue receives a job enqueued later."""
    queue = MemoryJobQueue()
    job = make_job()

    waiter = asyncio.create_task(queue.dequeue(5))
    await asyncio.sleep(0.01)
    assert not waiter.done()

    await queue.enqueue(job)
    dequeued = await asyncio.wait_for(waiter, 1)

    assert dequeued is not None
    assert dequeued.id == job.id
    assert dequeued.status == JobStatus.RUNNING


async def test_blocked_dequeue_wakes_on_requeue() -> None:
    """Requeueing a failed job wakes a waiting consumer."""
    queue = MemoryJobQueue()
    job = make_job()
    await queue.enqueue(job)
    await queue.dequeue(0)
    await queue.fail_job(job.id, "timeout", retryable=True)

    waiter = asyncio.create_task(queue.dequeue(5))
    await asyncio.sleep(0.01)
    await queue.requeue(job.id)
    dequeued = await asyncio.wait_for(waiter, 1)

    assert dequeued is not None
    assert dequeued.retry_count == 1


async def test_cancelled_job_stays_counted_until_popped() -> None:
    """queue_length counts IDs, including cancelled ones not yet discarded."""
    queue = MemoryJobQueue()
    job = make_job()
    await queue.enqueue(job)

    await queue.cancel_job(job.id)

    assert await queue.queue_length() == 1
    assert await queue.dequeue(0) is None
    assert await queue.queue_length() == 0
