"""In-process implementations of the catalog, report store and archive."""

import logging
from uuid import UUID

from serval.scenario_runner.errors import ConflictError, NotFoundError
from serval.scenario_runner.models.catalog import (
    Api,
    Collection,
    Environment,
    Project,
    Scenario,
)
from serval.scenario_runner.models.job import utc_now
from serval.scenario_runner.models.report import (
    ExecutionLog,
    GherkinDocument,
    Report,
    ResponseRecord,
)
from serval.scenario_runner.repositories.base import (
    CatalogRepository,
    DocumentArchive,
    ReportRepository,
)

logger = logging.getLogger(__name__)


class MemoryCatalog(CatalogRepository):
    """Catalog held in dictionaries; ownership is resolved through the project."""

    def __init__(self) -> None:
        """Initialize an empty catalog."""
        self.projects: dict[UUID, Project] = {}
        self.collections: dict[UUID, Collection] = {}
        self.environments: dict[UUID, Environment] = {}
        self.apis: dict[UUID, Api] = {}
        self.scenarios: dict[UUID, Scenario] = {}

    def add_project(self, project: Project) -> Project:
        """Register a project."""
        self._check_new(self.projects, project.id, "Project")
        self.projects[project.id] = project
        return project

    def add_collection(self, collection: Collection) -> Collection:
        """Register a collection under an existing project."""
        self._require(self.projects, collection.project_id, "Project")
        self._check_new(self.collections, collection.id, "Collection")
        self.collections[collection.id] = collection
        return collection

    def add_environment(self, environment: Environment) -> Environment:
        """Register an environment under an existing project."""
        self._require(self.projects, environment.project_id, "Project")
        self._check_new(self.environments, environment.id, "Environment")
        self.environments[environment.id] = environment
        return environment

    def add_api(self, api: Api) -> Api:
        """Register an API under an existing collection."""
        self._require(self.collections, api.collection_id, "Collection")
        self._check_new(self.apis, api.id, "Api")
        self.apis[api.id] = api
        return api

    def add_scenario(self, scenario: Scenario) -> Scenario:
        """Register a scenario under an existing API."""
        self._require(self.apis, scenario.api_id, "Api")
        self._check_new(self.scenarios, scenario.id, "Scenario")
        self.scenarios[scenario.id] = scenario
        return scenario

    async def get_environment(self, environment_id: UUID, user_id: UUID) -> Environment:
        """Return an environment owned by the user."""
        environment = self.environments.get(environment_id)
        if environment is None or not self._owns_project(environment.project_id, user_id):
            raise NotFoundError("Environment")
        return environment

    async def get_scenario(self, scenario_id: UUID, user_id: UUID) -> Scenario:
        """Return a scenario owned by the user."""
        scenario = self.scenarios.get(scenario_id)
        if scenario is None or not self._owns_api(scenario.api_id, user_id):
            raise NotFoundError("Scenario")
        return scenario

    async def get_api(self, api_id: UUID, user_id: UUID) -> Api:
        """Return an API owned by the user."""
        if not self._owns_api(api_id, user_id):
            raise NotFoundError("Api")
        return self.apis[api_id]

    async def get_collection(self, collection_id: UUID, user_id: UUID) -> Collection:
        """Return a collection owned by the user."""
        if not self._owns_collection(collection_id, user_id):
            raise NotFoundError("Collection")
        return self.collections[collection_id]

    async def list_scenarios_by_api(self, api_id: UUID, user_id: UUID) -> list[Scenario]:
        """Return the scenarios of an API in insertion order."""
        await self.get_api(api_id, user_id)
        return [s for s in self.scenarios.values() if s.api_id == api_id]

    async def list_apis_by_collection(
        self, collection_id: UUID, user_id: UUID
    ) -> list[Api]:
        """Return the APIs of a collection in insertion order."""
        await self.get_collection(collection_id, user_id)
        return [a for a in self.apis.values() if a.collection_id == collection_id]

    async def add_scenarios(
        self, api_id: UUID, user_id: UUID, scenarios: list[Scenario]
    ) -> list[Scenario]:
        """Store new scenarios under an owned API."""
        await self.get_api(api_id, user_id)
        for scenario in scenarios:
            self._check_new(self.scenarios, scenario.id, "Scenario")
        for scenario in scenarios:
            self.scenarios[scenario.id] = scenario.model_copy(update={"api_id": api_id})
        return [self.scenarios[s.id] for s in scenarios]

    def _owns_project(self, project_id: UUID, user_id: UUID) -> bool:
        project = self.projects.get(project_id)
        return project is not None and project.user_id == user_id

    def _owns_collection(self, collection_id: UUID, user_id: UUID) -> bool:
        collection = self.collections.get(collection_id)
        return collection is not None and self._owns_project(
            collection.project_id, user_id
        )

    def _owns_api(self, api_id: UUID, user_id: UUID) -> bool:
        api = self.apis.get(api_id)
        return api is not None and self._owns_collection(api.collection_id, user_id)

    @staticmethod
    def _require(table: dict[UUID, object], record_id: UUID, resource: str) -> None:
        if record_id not in table:
            raise NotFoundError(resource)

    @staticmethod
    def _check_new(table: dict[UUID, object], record_id: UUID, resource: str) -> None:
        if record_id in table:
            raise ConflictError(f"{resource} {record_id}")


class MemoryReportRepository(ReportRepository):
    """Reports and responses kept in dictionaries."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self.reports: dict[UUID, Report] = {}
        self.responses: dict[UUID, list[ResponseRecord]] = {}

    async def create_report(self, report: Report) -> Report:
        """Store a new, unfinished report."""
        if report.id in self.reports:
            raise ConflictError(f"Report {report.id}")
        self.reports[report.id] = report
        self.responses[report.id] = []
        return report

    async def save_responses(self, records: list[ResponseRecord]) -> None:
        """Append response records to their reports."""
        for record in records:
            if record.report_id not in self.reports:
                raise NotFoundError("Report")
        for record in records:
            self.responses[record.report_id].append(record)

    async def finish_report(
        self, report_id: UUID, pass_rate: float, response_count: int
    ) -> Report:
        """Mark a report finished."""
        report = self.reports.get(report_id)
        if report is None:
            raise NotFoundError("Report")
        finished = report.model_copy(
            update={
                "finished": True,
                "pass_rate": pass_rate,
                "response_count": response_count,
                "finished_at": utc_now(),
            }
        )
        self.reports[report_id] = finished
        return finished

    async def get_report(self, report_id: UUID) -> Report | None:
        """Return a report, or None if unknown."""
        return self.reports.get(report_id)

    async def list_responses(self, report_id: UUID) -> list[ResponseRecord]:
        """Return the response records of a report in the order they were saved."""
        return list(self.responses.get(report_id, []))


class MemoryDocumentArchive(DocumentArchive):
    """Archive that keeps documents in lists."""

    def __init__(self) -> None:
        """Initialize an empty archive."""
        self.gherkin_documents: list[GherkinDocument] = []
        self.execution_logs: dict[UUID, list[ExecutionLog]] = {}

    async def save_gherkin_document(self, document: GherkinDocument) -> None:
        """Archive an imported feature."""
        self.gherkin_documents.append(document)

    async def save_execution_logs(
        self, report_id: UUID, logs: list[ExecutionLog]
    ) -> None:
        """Archive execution logs of a report."""
        self.execution_logs.setdefault(report_id, []).extend(logs)
        logger.debug(f"Archived {len(logs)} execution logs for report {report_id}")
