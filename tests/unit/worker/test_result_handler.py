"""Tests for report persistence."""

import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from serval.scenario_runner.errors import StorageError
from serval.scenario_runner.models.job import TestJob, TestJobType
from serval.scenario_runner.models.report import ReportLevel
from serval.scenario_runner.models.test_result import TestResult
from serval.scenario_runner.repositories.memory import (
    MemoryDocumentArchive,
    MemoryReportRepository,
)
from serval.scenario_runner.worker.result_handler import ResultHandler, report_scope


def make_job(job_type: TestJobType = TestJobType.API) -> TestJob:
    """Build a job of the given type."""
    return TestJob(
        job_type=job_type,
        target_id=uuid4(),
        environment_id=uuid4(),
        user_id=uuid4(),
    )


def make_results(*passed: bool) -> list[TestResult]:
    """Build one result per flag."""
    return [
        TestResult(
            scenario_id=uuid4(),
            api_id=uuid4(),
            example_index=index,
            passed=flag,
            error_message=None if flag else "Expected status 200, got 500",
            response_status=200 if flag else 500,
            response_data={"ok": flag},
            request_duration_ms=10 + index,
            request_time=datetime.now(timezone.utc),
        )
        for index, flag in enumerate(passed)
    ]


@pytest.mark.parametrize(
    ("job_type", "level", "has_collection"),
    [
        (TestJobType.SCENARIO, ReportLevel.SCENARIO, False),
        (TestJobType.API, ReportLevel.API, False),
        (TestJobType.COLLECTION, ReportLevel.API, True),
    ],
)
def test_report_scope(
    job_type: TestJobType, level: ReportLevel, has_collection: bool
) -> None:
    """Each job type maps to a report level; collections keep their ID."""
    target_id = uuid4()

    assert report_scope(job_type, target_id) == (
        level,
        target_id if has_collection else None,
    )


async def test_save_results() -> None:
    """save_results writes a finished report, its responses and logs."""
    reports = MemoryReportRepository()
    archive = MemoryDocumentArchive()
    job = make_job(TestJobType.COLLECTION)
    project_id = uuid4()
    results = make_results(True, False, True)

    report_id = await ResultHandler(reports, archive).save_results(
        job, project_id, results
    )

    report = await reports.get_report(report_id)
    assert report is not None
    assert report.project_id == project_id
    assert report.environment_id == job.environment_id
    assert report.collection_id == job.target_id
    assert report.report_type == "collection"
    assert report.finished is True
    assert report.pass_rate == 66.67
    assert report.response_count == 3

    responses = await reports.list_responses(report_id)
    assert [r.example_index for r in responses] == [0, 1, 2]
    assert responses[1].error_message == "Expected status 200, got 500"
    assert responses[2].response_data == {"ok": True}

    logs = archive.execution_logs[report_id]
    assert [log.duration_ms for log in logs] == [10, 11, 12]


async def test_save_results_empty() -> None:
    """A job without results still gets a finished report with a 0 pass rate."""
    reports = MemoryReportRepository()

    report_id = await ResultHandler(reports).save_results(make_job(), uuid4(), [])

    report = await reports.get_report(report_id)
    assert report is not None
    assert report.pass_rate == 0.0
    assert report.response_count == 0


async def test_save_results_archive_failure_is_non_fatal(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A failing archive is logged and the report is still finished."""
    reports = MemoryReportRepository()
    archive = MemoryDocumentArchive()
    archive.save_execution_logs = AsyncMock(  # type: ignore[method-assign]
        side_effect=StorageError("disk full")
    )

    with caplog.at_level(logging.WARNING):
        report_id = await ResultHandler(reports, archive).save_results(
            make_job(), uuid4(), make_results(True)
        )

    report = await reports.get_report(report_id)
    assert report is not None
    assert report.finished is True
    assert "(non-fatal)" in caplog.text


async def test_save_results_primary_store_failure_propagates() -> None:
    """Failures of the report store are raised to the caller."""
    reports = MemoryReportRepository()
    reports.save_responses = AsyncMock(  # type: ignore[method-assign]
        side_effect=StorageError("database unavailable")
    )

    with pytest.raises(StorageError, match="database unavailable"):
        await ResultHandler(reports).save_results(make_job(), uuid4(), make_results(True))
