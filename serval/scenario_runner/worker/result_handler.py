"""Persist the results of a job as a report with per-example responses."""

import logging
from uuid import UUID

from serval.scenario_runner.models.job import TestJob, TestJobType
from serval.scenario_runner.models.report import (
    ExecutionLog,
    Report,
    ReportLevel,
    ResponseRecord,
)
from serval.scenario_runner.models.test_result import TestResult, pass_rate
from serval.scenario_runner.repositories.base import DocumentArchive, ReportRepository

logger = logging.getLogger(__name__)


def report_scope(
    job_type: TestJobType, target_id: UUID
) -> tuple[ReportLevel, UUID | None]:
    """Return the report level and collection ID recorded for a job kind."""
    if job_type == TestJobType.SCENARIO:
        return ReportLevel.SCENARIO, None
    if job_type == TestJobType.API:
        return ReportLevel.API, None
    return ReportLevel.API, target_id


class ResultHandler:
    """Writes reports to the primary store and mirrors logs to the archive."""

    def __init__(
        self, reports: ReportRepository, archive: DocumentArchive | None = None
    ) -> None:
        """Initialize handler with the report store and an optional archive."""
        self.reports = reports
        self.archive = archive

    async def save_results(
        self, job: TestJob, project_id: UUID, results: list[TestResult]
    ) -> UUID:
        """Create a finished report for a job's results.

        Args:
            job: Job the results belong to
            project_id: Project owning the job's environment
            results: Flattened example results in execution order

        Returns:
            ID of the finished report

        Raises:
            StorageError: If the primary store fails

        """
        report_level, collection_id = report_scope(job.job_type, job.target_id)
        report = await self.reports.create_report(
            Report(
                project_id=project_id,
                environment_id=job.environment_id,
                collection_id=collection_id,
                report_level=report_level,
                report_type=job.job_type.value,
            )
        )

        await self.reports.save_responses(
            [
                ResponseRecord(
                    report_id=report.id,
                    api_id=r.api_id,
                    scenario_id=r.scenario_id,
                    example_index=r.example_index,
                    response_status=r.response_status,
                    passed=r.passed,
                    error_message=r.error_message,
                    response_data=r.response_data,
                    request_duration_ms=r.request_duration_ms,
                    request_time=r.request_time,
                )
                for r in results
            ]
        )
        await self._archive_logs(report.id, results)

        passed = sum(1 for r in results if r.passed)
        await self.reports.finish_report(
            report.id, pass_rate(passed, len(results)), len(results)
        )

        logger.info(
            f"Report {report.id} saved: {passed}/{len(results)} passed",
            extra={"job_id": str(job.id), "report_id": str(report.id)},
        )
        return report.id

    async def _archive_logs(self, report_id: UUID, results: list[TestResult]) -> None:
        if self.archive is None:
            return
        logs = [
            ExecutionLog(
                report_id=report_id,
                api_id=r.api_id,
                scenario_id=r.scenario_id,
                example_index=r.example_index,
                response_status=r.response_status,
                response_data=r.response_data,
                passed=r.passed,
                error_message=r.error_message,
                duration_ms=r.request_duration_ms,
            )
            for r in results
        ]
        try:
            await self.archive.save_execution_logs(report_id, logs)
        except Exception as e:
            logger.warning(
                f"Failed to archive execution logs for report {report_id} "
                f"(non-fatal): {e}"
            )
