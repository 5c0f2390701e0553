"""Shared fixtures."""

from dataclasses import dataclass
from uuid import UUID, uuid4

import pytest

from serval.scenario_runner.models.catalog import (
    Api,
    Collection,
    Environment,
    Project,
    Scenario,
    TestExample,
)
from serval.scenario_runner.models.feature import ParsedStep
from serval.scenario_runner.repositories.memory import MemoryCatalog

BASE_URL = "http://api.test"
SIGN_IN_URL = f"{BASE_URL}/api/signin"


@dataclass
class SeededCatalog:
    """A catalog with one owned project and the IDs tests refer to."""

    catalog: MemoryCatalog
    user_id: UUID
    project: Project
    environment: Environment
    collection: Collection
    api: Api
    scenario: Scenario
    empty_collection: Collection
    empty_api: Api


@pytest.fixture
def seeded() -> SeededCatalog:
    """Create a catalog with a sign-in scenario holding two examples."""
    catalog = MemoryCatalog()
    user_id = uuid4()
    project = catalog.add_project(Project(user_id=user_id, name="Shop"))
    environment = catalog.add_environment(
        Environment(project_id=project.id, title="dev", domain_name=BASE_URL)
    )
    collection = catalog.add_collection(Collection(project_id=project.id, name="Auth"))
    api = catalog.add_api(
        Api(
            collection_id=collection.id,
            name="Sign in",
            http_method="POST",
            endpoint="/api/signin",
        )
    )
    scenario = catalog.add_scenario(
        Scenario(
            api_id=api.id,
            title="Sign in with credentials",
            steps=[
                ParsedStep(
                    keyword="When",
                    keyword_type="Action",
                    text="I send the request body",
                ),
            ],
            examples=[
                TestExample(
                    example={"email": "a@example.com", "password": "secret"},
                    expected_status_code=200,
                ),
                TestExample(
                    example={"email": "b@example.com", "password": "wrong"},
                    expected_status_code=403,
                ),
            ],
        )
    )
    empty_collection = catalog.add_collection(
        Collection(project_id=project.id, name="Empty")
    )
    empty_api = catalog.add_api(
        Api(
            collection_id=collection.id,
            name="Sign out",
            http_method="DELETE",
            endpoint="/api/session",
        )
    )
    return SeededCatalog(
        catalog=catalog,
        user_id=user_id,
        project=project,
        environment=environment,
        collection=collection,
        api=api,
        scenario=scenario,
        empty_collection=empty_collection,
        empty_api=empty_api,
    )
