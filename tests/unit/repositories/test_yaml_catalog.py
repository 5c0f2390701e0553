"""Tests for the YAML catalog loader."""

from pathlib import Path
from uuid import UUID

import pytest

from serval.scenario_runner.repositories.yaml_catalog import load_catalog

USER_ID = "0b5e6f3c-2a7d-4f7e-9a55-3a1e1b9f0c01"
PROJECT_ID = "7d1c2b9e-1111-4a2b-8c3d-000000000001"
ENVIRONMENT_ID = "7d1c2b9e-1111-4a2b-8c3d-000000000002"
COLLECTION_ID = "7d1c2b9e-1111-4a2b-8c3d-000000000003"
API_ID = "7d1c2b9e-1111-4a2b-8c3d-000000000004"
FEATURE_API_ID = "7d1c2b9e-1111-4a2b-8c3d-000000000005"

CATALOG = f"""
projects:
  - id: {PROJECT_ID}
    user_id: {USER_ID}
    name: Shop
    environments:
      - id: {ENVIRONMENT_ID}
        title: dev
        domain_name: http://localhost:8080
    collections:
      - id: {COLLECTION_ID}
        name: Auth
        apis:
          - id: {API_ID}
            name: Health
            http_method: GET
            endpoint: /health
            scenarios:
              - title: Service is up
                steps:
                  - keyword: Then
                    keyword_type: Outcome
                    text: the response status should be 200
                examples:
                  - example: {{}}
          - id: {FEATURE_API_ID}
            name: Sign in
            http_method: POST
            endpoint: /api/signin
            feature_file: signin.feature
"""

FEATURE = """Feature: Sign in
  Scenario Outline: Sign in
    When I send the request body
    Examples:
      | email         | status |
      | a@example.com | 200    |
"""


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    """Write a catalog and the feature file it refers to."""
    (tmp_path / "signin.feature").write_text(FEATURE)
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG)
    return path


async def test_load_catalog(catalog_file: Path) -> None:
    """load_catalog registers every record under its parent."""
    catalog = await load_catalog(catalog_file)
    user_id = UUID(USER_ID)

    environment = await catalog.get_environment(UUID(ENVIRONMENT_ID), user_id)
    assert environment.domain_name == "http://localhost:8080"
    assert environment.project_id == UUID(PROJECT_ID)

    apis = await catalog.list_apis_by_collection(UUID(COLLECTION_ID), user_id)
    assert [api.name for api in apis] == ["Health", "Sign in"]

    (health,) = await catalog.list_scenarios_by_api(UUID(API_ID), user_id)
    assert health.title == "Service is up"
    assert health.steps[0].keyword_type == "Outcome"
    assert health.examples[0].expected_status_code == 200


async def test_load_catalog_feature_file(catalog_file: Path) -> None:
    """APIs can take their scenarios from a Gherkin file next to the catalog."""
    catalog = await load_catalog(catalog_file)

    (scenario,) = await catalog.list_scenarios_by_api(
        UUID(FEATURE_API_ID), UUID(USER_ID)
    )
    assert scenario.title == "Sign in"
    assert scenario.examples[0].example == {"email": "a@example.com"}
    assert scenario.examples[0].expected_status_code == 200


async def test_load_catalog_inline_feature(tmp_path: Path) -> None:
    """APIs can embed Gherkin text directly."""
    path = tmp_path / "catalog.yaml"
    path.write_text(
        CATALOG.replace(
            "feature_file: signin.feature",
            "feature: |\n"
            + "\n".join(f"              {line}" for line in FEATURE.splitlines()),
        )
    )

    catalog = await load_catalog(path)

    scenarios = await catalog.list_scenarios_by_api(UUID(FEATURE_API_ID), UUID(USER_ID))
    assert [s.title for s in scenarios] == ["Sign in"]


async def test_load_catalog_file_not_found(tmp_path: Path) -> None:
    """load_catalog raises FileNotFoundError when the file is missing."""
    with pytest.raises(FileNotFoundError, match="Catalog file not found"):
        await load_catalog(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("projects: [unclosed", "Invalid YAML"),
        ("", "Empty catalog file"),
        ("- a\n- b\n", "Catalog root must be a mapping"),
        ("projects:\n  - name: no owner\n", "Invalid catalog schema"),
        (
            CATALOG.replace("http_method: GET", "http_method: GET\n            feature: 'Given x'"),
            "Invalid catalog schema",
        ),
    ],
)
async def test_load_catalog_invalid(tmp_path: Path, content: str, message: str) -> None:
    """load_catalog raises ValueError for invalid content."""
    path = tmp_path / "catalog.yaml"
    path.write_text(content)

    with pytest.raises(ValueError, match=message):
        await load_catalog(path)
