"""Job executor coordinating scenario runs for one job."""

import logging
import time
from uuid import UUID

from serval.scenario_runner.models.catalog import Api, Environment, Scenario
from serval.scenario_runner.models.job import JobResult, TestJob, TestJobType
from serval.scenario_runner.models.test_result import TestResult, pass_rate
from serval.scenario_runner.repositories.base import CatalogRepository
from serval.scenario_runner.runner.test_runner import TestRunner
from serval.scenario_runner.worker.result_handler import ResultHandler

logger = logging.getLogger(__name__)


async def resolve_targets(
    catalog: CatalogRepository, job_type: TestJobType, target_id: UUID, user_id: UUID
) -> list[tuple[Scenario, Api]]:
    """Expand a job target into the scenarios to run, in execution order.

    A scenario target yields itself, an API target every scenario of the API,
    and a collection target every scenario of every API of the collection.

    Raises:
        NotFoundError: If the target or one of its parents is not visible

    """
    if job_type == TestJobType.SCENARIO:
        scenario = await catalog.get_scenario(target_id, user_id)
        api = await catalog.get_api(scenario.api_id, user_id)
        return [(scenario, api)]

    if job_type == TestJobType.API:
        api = await catalog.get_api(target_id, user_id)
        scenarios = await catalog.list_scenarios_by_api(api.id, user_id)
        return [(scenario, api) for scenario in scenarios]

    targets: list[tuple[Scenario, Api]] = []
    for api in await catalog.list_apis_by_collection(target_id, user_id):
        for scenario in await catalog.list_scenarios_by_api(api.id, user_id):
            targets.append((scenario, api))
    return targets


async def run_targets(
    runner: TestRunner, targets: list[tuple[Scenario, Api]], environment: Environment
) -> list[TestResult]:
    """Run every target sequentially and flatten the results."""
    results: list[TestResult] = []
    for scenario, api in targets:
        logger.info(f"Running scenario '{scenario.title}' ({api.http_method} {api.endpoint})")
        results.extend(await runner.run_scenario(scenario, api, environment))
    return results


class JobExecutor:
    """Executes a dequeued job and persists its report."""

    def __init__(self, catalog: CatalogRepository, result_handler: ResultHandler) -> None:
        """Initialize executor with the catalog and the result handler."""
        self.catalog = catalog
        self.result_handler = result_handler

    async def execute(self, job: TestJob) -> JobResult:
        """Run every scenario targeted by ``job`` and save the report.

        Args:
            job: Running job to execute

        Returns:
            Summary of the job with the ID of its report

        Raises:
            NotFoundError: If the environment or target is not visible to the job owner
            ValidationError: If a targeted API declares an unsupported method
            StorageError: If the report cannot be saved

        """
        started = time.monotonic()
        environment = await self.catalog.get_environment(job.environment_id, job.user_id)
        targets = await resolve_targets(
            self.catalog, job.job_type, job.target_id, job.user_id
        )
        logger.info(
            f"Job {job.id}: {len(targets)} scenarios against {environment.domain_name}",
            extra={"job_id": str(job.id)},
        )

        runner = TestRunner(job.config)
        results = await run_targets(runner, targets, environment)
        total_duration_ms = int((time.monotonic() - started) * 1000)

        report_id = await self.result_handler.save_results(
            job, environment.project_id, results
        )

        passed = sum(1 for r in results if r.passed)
        return JobResult(
            report_id=report_id,
            total_tests=len(results),
            passed=passed,
            failed=len(results) - passed,
            pass_rate=pass_rate(passed, len(results)),
            total_duration_ms=total_duration_ms,
        )
