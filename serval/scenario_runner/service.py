"""Entry points for submitting test runs, managing jobs and importing features."""

import logging
from uuid import UUID

from serval.scenario_runner.errors import NotFoundError, ValidationError
from serval.scenario_runner.feature_parser import parse_feature, scenarios_from_feature
from serval.scenario_runner.jobs.base import JobQueue
from serval.scenario_runner.models.catalog import Api, Scenario
from serval.scenario_runner.models.job import (
    JobStatusView,
    TestJob,
    TestJobConfig,
    TestJobType,
)
from serval.scenario_runner.models.report import GherkinDocument
from serval.scenario_runner.models.run import (
    AsyncTestResponse,
    ImportResult,
    JobList,
    QueueStats,
    RunTestRequest,
)
from serval.scenario_runner.models.test_result import TestRunSummary
from serval.scenario_runner.repositories.base import CatalogRepository, DocumentArchive
from serval.scenario_runner.runner.test_runner import TestRunner
from serval.scenario_runner.worker.executor import resolve_targets, run_targets

logger = logging.getLogger(__name__)

DEFAULT_JOB_LIMIT = 20
MAX_JOB_LIMIT = 100


class TestRunService:
    """Validates ownership, then runs tests inline or queues them as jobs."""

    __test__ = False

    def __init__(
        self,
        catalog: CatalogRepository,
        queue: JobQueue,
        archive: DocumentArchive | None = None,
        default_timeout_seconds: int = 30,
        max_retries: int = 3,
    ) -> None:
        """Initialize service with its collaborators and job defaults."""
        self.catalog = catalog
        self.queue = queue
        self.archive = archive
        self.default_timeout_seconds = default_timeout_seconds
        self.max_retries = max_retries

    async def run(
        self,
        job_type: TestJobType,
        target_id: UUID,
        user_id: UUID,
        request: RunTestRequest,
    ) -> TestRunSummary | AsyncTestResponse:
        """Run a scenario, API or collection.

        Ownership of the target and the environment is checked first. In async
        mode a pending job is queued and acknowledged immediately; otherwise
        every example runs inline and the summary is returned, even when
        examples fail.

        Args:
            job_type: Breadth of the run
            target_id: Scenario, API or collection ID
            user_id: User submitting the run
            request: Environment and run options

        Returns:
            Inline summary, or the queued-job acknowledgement

        Raises:
            NotFoundError: If the target or environment is not visible to the user
            ValidationError: If an API has no scenarios or a collection no APIs

        """
        environment = await self.catalog.get_environment(request.environment_id, user_id)
        targets = await self._validated_targets(job_type, target_id, user_id)
        config = TestJobConfig(
            timeout_seconds=request.timeout_seconds or self.default_timeout_seconds,
            auth_token=request.auth_token,
            custom_headers=dict(request.custom_headers),
        )

        if request.async_execution:
            job = TestJob(
                job_type=job_type,
                target_id=target_id,
                environment_id=request.environment_id,
                user_id=user_id,
                config=config,
                max_retries=self.max_retries,
            )
            job_id = await self.queue.enqueue(job)
            logger.info(
                f"Queued {job_type.value} job {job_id} for target {target_id}",
                extra={"job_id": str(job_id)},
            )
            return AsyncTestResponse(job_id=job_id)

        results = await run_targets(TestRunner(config), targets, environment)
        if job_type == TestJobType.COLLECTION and not results:
            raise ValidationError("No scenarios found for any API in this collection")
        summary = TestRunSummary.from_results(results)
        logger.info(
            f"Inline {job_type.value} run of {target_id}: "
            f"{summary.passed}/{summary.total} passed"
        )
        return summary

    async def _validated_targets(
        self, job_type: TestJobType, target_id: UUID, user_id: UUID
    ) -> list[tuple[Scenario, Api]]:
        if job_type == TestJobType.COLLECTION:
            await self.catalog.get_collection(target_id, user_id)
            if not await self.catalog.list_apis_by_collection(target_id, user_id):
                raise ValidationError("No APIs found for this collection")

        targets = await resolve_targets(self.catalog, job_type, target_id, user_id)
        if job_type == TestJobType.API and not targets:
            raise ValidationError("No scenarios found for this API")
        return targets

    async def get_job_status(self, job_id: UUID, user_id: UUID) -> JobStatusView:
        """Return the status of a job owned by the user.

        Raises:
            NotFoundError: If the job does not exist or belongs to someone else

        """
        return JobStatusView.from_job(await self._owned_job(job_id, user_id))

    async def list_jobs(self, user_id: UUID, limit: int | None = None) -> JobList:
        """Return the user's most recent jobs, newest first (limit 1-100, default 20)."""
        limit = max(1, min(limit or DEFAULT_JOB_LIMIT, MAX_JOB_LIMIT))
        jobs = await self.queue.list_jobs_by_user(user_id, limit)
        data = [JobStatusView.from_job(job) for job in jobs]
        return JobList(data=data, total=len(data), limit=limit)

    async def cancel_job(self, job_id: UUID, user_id: UUID) -> JobStatusView:
        """Cancel a job owned by the user.

        Raises:
            NotFoundError: If the job does not exist or belongs to someone else
            ValidationError: If the job already reached a terminal status

        """
        await self._owned_job(job_id, user_id)
        await self.queue.cancel_job(job_id)
        return JobStatusView.from_job(await self._owned_job(job_id, user_id))

    async def requeue_job(self, job_id: UUID, user_id: UUID) -> JobStatusView:
        """Send a failed job owned by the user back to the queue.

        Raises:
            NotFoundError: If the job does not exist or belongs to someone else
            ValidationError: If the job is not in failed status

        """
        await self._owned_job(job_id, user_id)
        await self.queue.requeue(job_id)
        return JobStatusView.from_job(await self._owned_job(job_id, user_id))

    async def queue_stats(self) -> QueueStats:
        """Return the number of job IDs waiting in the queue."""
        return QueueStats(queue_length=await self.queue.queue_length())

    async def import_feature(
        self, api_id: UUID, user_id: UUID, feature_text: str
    ) -> ImportResult:
        """Create scenarios under an API from Gherkin text.

        The raw text and its parse are archived on a best-effort basis.

        Raises:
            ValidationError: If the text is not valid Gherkin
            NotFoundError: If the API is not visible to the user

        """
        feature = parse_feature(feature_text)
        await self.catalog.get_api(api_id, user_id)

        if self.archive is not None:
            try:
                await self.archive.save_gherkin_document(
                    GherkinDocument(
                        api_id=api_id,
                        raw_gherkin=feature_text,
                        parsed_feature=feature.model_dump(mode="json"),
                    )
                )
            except Exception as e:
                logger.warning(f"Failed to archive Gherkin document (non-fatal): {e}")

        created = await self.catalog.add_scenarios(
            api_id, user_id, scenarios_from_feature(feature, api_id)
        )
        logger.info(f"Imported {len(created)} scenarios into API {api_id}")
        return ImportResult(created=created, count=len(created))

    async def _owned_job(self, job_id: UUID, user_id: UUID) -> TestJob:
        job = await self.queue.get_job(job_id)
        if job is None or job.user_id != user_id:
            raise NotFoundError("Job")
        return job
