"""Data models for jobs, parsed features, catalog records, results and reports."""

from serval.scenario_runner.models.catalog import (
    Api,
    Collection,
    Environment,
    Project,
    Scenario,
    TestExample,
)
from serval.scenario_runner.models.feature import (
    KeywordType,
    ParsedExample,
    ParsedFeature,
    ParsedScenario,
    ParsedStep,
)
from serval.scenario_runner.models.job import (
    JobResult,
    JobStatus,
    JobStatusView,
    TestJob,
    TestJobConfig,
    TestJobType,
)
from serval.scenario_runner.models.report import (
    ExecutionLog,
    GherkinDocument,
    Report,
    ReportLevel,
    ResponseRecord,
)
from serval.scenario_runner.models.run import (
    AsyncTestResponse,
    ImportResult,
    JobList,
    QueueStats,
    RunTestRequest,
)
from serval.scenario_runner.models.test_result import TestResult, TestRunSummary

__all__ = [
    "Api",
    "AsyncTestResponse",
    "Collection",
    "Environment",
    "ExecutionLog",
    "GherkinDocument",
    "ImportResult",
    "JobList",
    "JobResult",
    "JobStatus",
    "JobStatusView",
    "KeywordType",
    "ParsedExample",
    "ParsedFeature",
    "ParsedScenario",
    "ParsedStep",
    "Project",
    "QueueStats",
    "Report",
    "ReportLevel",
    "ResponseRecord",
    "RunTestRequest",
    "Scenario",
    "TestExample",
    "TestJob",
    "TestJobConfig",
    "TestJobType",
    "TestResult",
    "TestRunSummary",
]
