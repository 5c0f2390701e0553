"""Abstract collaborators the runner reads catalog records from and writes reports to."""

from abc import ABC, abstractmethod
from uuid import UUID

from serval.scenario_runner.models.catalog import (
    Api,
    Collection,
    Environment,
    Scenario,
)
from serval.scenario_runner.models.report import (
    ExecutionLog,
    GherkinDocument,
    Report,
    ResponseRecord,
)


class CatalogRepository(ABC):
    """Ownership-scoped, read-mostly access to environments, APIs and scenarios.

    Every lookup takes the requesting user; records that exist but belong to
    another user's project are reported as not found.
    """

    @abstractmethod
    async def get_environment(self, environment_id: UUID, user_id: UUID) -> Environment:
        """Return an environment owned by the user.

        Raises:
            NotFoundError: If the environment does not exist or is not owned

        """

    @abstractmethod
    async def get_scenario(self, scenario_id: UUID, user_id: UUID) -> Scenario:
        """Return a scenario owned by the user.

        Raises:
            NotFoundError: If the scenario does not exist or is not owned

        """

    @abstractmethod
    async def get_api(self, api_id: UUID, user_id: UUID) -> Api:
        """Return an API owned by the user.

        Raises:
            NotFoundError: If the API does not exist or is not owned

        """

    @abstractmethod
    async def get_collection(self, collection_id: UUID, user_id: UUID) -> Collection:
        """Return a collection owned by the user.

        Raises:
            NotFoundError: If the collection does not exist or is not owned

        """

    @abstractmethod
    async def list_scenarios_by_api(self, api_id: UUID, user_id: UUID) -> list[Scenario]:
        """Return the scenarios of an API in insertion order.

        Raises:
            NotFoundError: If the API does not exist or is not owned

        """

    @abstractmethod
    async def list_apis_by_collection(
        self, collection_id: UUID, user_id: UUID
    ) -> list[Api]:
        """Return the APIs of a collection in insertion order.

        Raises:
            NotFoundError: If the collection does not exist or is not owned

        """

    @abstractmethod
    async def add_scenarios(
        self, api_id: UUID, user_id: UUID, scenarios: list[Scenario]
    ) -> list[Scenario]:
        """Store new scenarios under an API.

        Args:
            api_id: API the scenarios belong to
            user_id: User importing the scenarios
            scenarios: Scenario records to store

        Returns:
            The stored scenarios

        Raises:
            NotFoundError: If the API does not exist or is not owned
            ConflictError: If a scenario ID is already taken

        """


class ReportRepository(ABC):
    """Primary store for reports and their per-example response records."""

    @abstractmethod
    async def create_report(self, report: Report) -> Report:
        """Store a new, unfinished report."""

    @abstractmethod
    async def save_responses(self, records: list[ResponseRecord]) -> None:
        """Store response records for a report.

        Raises:
            NotFoundError: If a record references an unknown report

        """

    @abstractmethod
    async def finish_report(
        self, report_id: UUID, pass_rate: float, response_count: int
    ) -> Report:
        """Mark a report finished with its pass rate and response count.

        Raises:
            NotFoundError: If the report does not exist

        """

    @abstractmethod
    async def get_report(self, report_id: UUID) -> Report | None:
        """Return a report, or None if unknown."""

    @abstractmethod
    async def list_responses(self, report_id: UUID) -> list[ResponseRecord]:
        """Return the response records of a report in the order they were saved."""


class DocumentArchive(ABC):
    """Secondary store for raw documents. Failures here are never fatal."""

    @abstractmethod
    async def save_gherkin_document(self, document: GherkinDocument) -> None:
        """Archive the raw and parsed form of an imported feature."""

    @abstractmethod
    async def save_execution_logs(
        self, report_id: UUID, logs: list[ExecutionLog]
    ) -> None:
        """Archive per-example execution logs of a report."""
