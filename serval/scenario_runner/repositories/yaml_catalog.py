"""Load a catalog of projects, environments, APIs and scenarios from YAML.

Layout::

    projects:
      - id: 7d1c...            # UUIDs are kept so jobs can refer to them
        user_id: 0b5e...
        name: Shop
        environments:
          - id: ...
            title: dev
            domain_name: http://localhost:8080
        collections:
          - id: ...
            name: Auth
            apis:
              - id: ...
                name: Sign in
                http_method: POST
                endpoint: /api/signin
                scenarios: [...]        # structured steps and examples
                feature: |              # or Gherkin text
                  Feature: ...
                feature_file: signin.feature   # or a file next to the catalog
"""

import logging
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from serval.scenario_runner.errors import ScenarioRunnerError
from serval.scenario_runner.feature_parser import parse_feature, scenarios_from_feature
from serval.scenario_runner.models.catalog import (
    Api,
    Collection,
    Environment,
    Project,
    Scenario,
)
from serval.scenario_runner.repositories.memory import MemoryCatalog

logger = logging.getLogger(__name__)


async def load_catalog(catalog_path: Path) -> MemoryCatalog:
    """Load a catalog file into memory.

    Args:
        catalog_path: Path to the YAML catalog

    Returns:
        Catalog holding every record of the file

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        ValueError: If YAML is invalid or doesn't match the catalog schema

    """
    if not catalog_path.exists():
        raise FileNotFoundError(f"Catalog file not found: {catalog_path}")

    try:
        with catalog_path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {catalog_path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty catalog file: {catalog_path}")
    if not isinstance(data, dict):
        raise ValueError(f"Catalog root must be a mapping in {catalog_path}")

    catalog = MemoryCatalog()
    try:
        for project_data in data.get("projects") or []:
            _load_project(catalog, project_data, catalog_path.parent)
    except (ScenarioRunnerError, ValueError, TypeError, KeyError, OSError) as e:
        raise ValueError(f"Invalid catalog schema in {catalog_path}: {e}") from e

    logger.info(
        f"Loaded catalog {catalog_path}: {len(catalog.projects)} projects, "
        f"{len(catalog.apis)} APIs, {len(catalog.scenarios)} scenarios"
    )
    return catalog


def _load_project(catalog: MemoryCatalog, data: dict[str, Any], base_dir: Path) -> None:
    project = catalog.add_project(
        Project.model_validate(_without(data, "environments", "collections"))
    )
    for env_data in data.get("environments") or []:
        catalog.add_environment(
            Environment.model_validate({**env_data, "project_id": project.id})
        )
    for collection_data in data.get("collections") or []:
        collection = catalog.add_collection(
            Collection.model_validate(
                {**_without(collection_data, "apis"), "project_id": project.id}
            )
        )
        for api_data in collection_data.get("apis") or []:
            _load_api(catalog, api_data, collection.id, base_dir)


def _load_api(
    catalog: MemoryCatalog, data: dict[str, Any], collection_id: UUID, base_dir: Path
) -> None:
    api = catalog.add_api(
        Api.model_validate(
            {
                **_without(data, "scenarios", "feature", "feature_file"),
                "collection_id": collection_id,
            }
        )
    )

    for scenario_data in data.get("scenarios") or []:
        catalog.add_scenario(
            Scenario.model_validate({**scenario_data, "api_id": api.id})
        )

    feature_text = data.get("feature")
    if data.get("feature_file"):
        feature_text = (base_dir / data["feature_file"]).read_text()
    if feature_text:
        for scenario in scenarios_from_feature(parse_feature(feature_text), api.id):
            catalog.add_scenario(scenario)


def _without(data: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in keys}
