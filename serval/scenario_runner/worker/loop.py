"""Long-running consumer that drains the job queue."""

import asyncio
import logging
import signal

from serval.scenario_runner.errors import is_retryable
from serval.scenario_runner.jobs.base import JobQueue
from serval.scenario_runner.models.job import JobStatus, TestJob
from serval.scenario_runner.worker.executor import JobExecutor

logger = logging.getLogger(__name__)


class Worker:
    """Dequeues jobs one at a time, executes them and records the outcome."""

    def __init__(
        self,
        queue: JobQueue,
        executor: JobExecutor,
        dequeue_timeout: float = 5.0,
        error_backoff: float = 1.0,
        retry_failed_jobs: bool = True,
    ) -> None:
        """Initialize worker.

        Args:
            queue: Queue to consume
            executor: Executor running each job
            dequeue_timeout: Seconds to block waiting for a job per iteration
            error_backoff: Seconds to sleep after a queue error
            retry_failed_jobs: Requeue jobs left in failed status automatically

        """
        self.queue = queue
        self.executor = executor
        self.dequeue_timeout = dequeue_timeout
        self.error_backoff = error_backoff
        self.retry_failed_jobs = retry_failed_jobs
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        if not self._stopping.is_set():
            logger.info("Shutdown requested, stopping worker...")
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        """Whether shutdown has been requested."""
        return self._stopping.is_set()

    async def run(self, handle_signals: bool = False) -> None:
        """Process jobs until :meth:`stop` is called.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers that call :meth:`stop`

        """
        if handle_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.stop)

        logger.info("Worker started, waiting for jobs...")
        try:
            while not self.stopping:
                await self.run_once()
        finally:
            if handle_signals:
                loop = asyncio.get_running_loop()
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
        logger.info("Worker shutdown complete")

    async def run_once(self) -> bool:
        """Run a single iteration of the loop.

        Returns:
            True if a job was dequeued and processed, False otherwise

        """
        try:
            job = await self.queue.dequeue(self.dequeue_timeout)
        except Exception:
            logger.exception("Error dequeuing job")
            await asyncio.sleep(self.error_backoff)
            return False

        if job is None:
            return False

        await self.process(job)
        return True

    async def process(self, job: TestJob) -> None:
        """Execute a dequeued job and report its outcome to the queue."""
        extra = {"job_id": str(job.id)}
        logger.info(f"Processing job {job.id} ({job.job_type.value})", extra=extra)

        try:
            await self.queue.update_status(job.id, JobStatus.RUNNING)
        except Exception as e:
            logger.error(f"Failed to update job status for {job.id}: {e}", extra=extra)
            return

        try:
            result = await self.executor.execute(job)
        except Exception as e:
            await self._record_failure(job, e)
            return

        logger.info(
            f"Job {job.id} completed successfully "
            f"(passed={result.passed}, failed={result.failed})",
            extra=extra,
        )
        try:
            await self.queue.complete_job(job.id, result)
        except Exception as e:
            logger.error(f"Failed to mark job {job.id} as complete: {e}", extra=extra)

    async def _record_failure(self, job: TestJob, error: Exception) -> None:
        extra = {"job_id": str(job.id)}
        retryable = is_retryable(error)
        logger.error(
            f"Job {job.id} failed (retryable={retryable}): {error}",
            extra=extra,
            exc_info=None if retryable else error,
        )

        try:
            await self.queue.fail_job(job.id, str(error), retryable)
        except Exception as e:
            logger.error(f"Failed to mark job {job.id} as failed: {e}", extra=extra)
            return

        if not self.retry_failed_jobs:
            return

        try:
            updated = await self.queue.get_job(job.id)
            if updated is None or updated.status != JobStatus.FAILED:
                return
            await self.queue.requeue(job.id)
        except Exception as e:
            logger.error(f"Failed to requeue job {job.id}: {e}", extra=extra)
            return
        logger.info(
            f"Job {job.id} requeued "
            f"(retry {updated.retry_count}/{updated.max_retries})",
            extra=extra,
        )
