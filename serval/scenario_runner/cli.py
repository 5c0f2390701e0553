"""CLI entry point for the scenario runner."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar
from uuid import UUID

import typer

from serval.scenario_runner.config import Settings
from serval.scenario_runner.errors import ScenarioRunnerError
from serval.scenario_runner.feature_parser import parse_feature
from serval.scenario_runner.jobs.base import JobQueue
from serval.scenario_runner.jobs.memory_queue import MemoryJobQueue
from serval.scenario_runner.jobs.redis_queue import RedisJobQueue
from serval.scenario_runner.models.job import TestJobType
from serval.scenario_runner.models.run import AsyncTestResponse, RunTestRequest
from serval.scenario_runner.models.test_result import TestRunSummary
from serval.scenario_runner.repositories.file_store import (
    FileReportRepository,
    JsonLinesArchive,
)
from serval.scenario_runner.repositories.memory import MemoryCatalog
from serval.scenario_runner.repositories.yaml_catalog import load_catalog
from serval.scenario_runner.service import TestRunService
from serval.scenario_runner.worker.executor import JobExecutor
from serval.scenario_runner.worker.loop import Worker
from serval.scenario_runner.worker.result_handler import ResultHandler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Run Gherkin API scenarios inline or through a job queue.")

T = TypeVar("T")


def create_job_queue(settings: Settings) -> JobQueue:
    """Create the queue backend selected by ``settings.queue_backend``."""
    if settings.queue_backend == "redis":
        return RedisJobQueue.from_url(settings.redis_url, settings.queue_key_prefix)
    return MemoryJobQueue()


def parse_header_options(values: list[str]) -> dict[str, str]:
    """Turn repeated ``--header KEY=VALUE`` options into a dict.

    Raises:
        typer.BadParameter: If a value has no ``=`` or an empty key

    """
    headers: dict[str, str] = {}
    for value in values:
        key, sep, header_value = value.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{value}'")
        headers[key.strip()] = header_value.strip()
    return headers


def _settings() -> Settings:
    settings = Settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    return settings


def _require_shared_queue(settings: Settings) -> None:
    """Refuse queue commands on a backend that dies with the process."""
    if settings.queue_backend == "memory":
        typer.echo(
            "Error: the memory queue only lives inside one process; "
            "set SERVAL_QUEUE_BACKEND=redis to queue and manage jobs",
            err=True,
        )
        raise typer.Exit(code=1)


def _catalog_path(catalog: Path | None, settings: Settings) -> Path:
    path = catalog or settings.catalog_path
    if path is None:
        raise typer.BadParameter(
            "No catalog given; pass --catalog or set SERVAL_CATALOG_PATH"
        )
    return path


def _run_async(
    settings: Settings,
    action: Callable[[JobQueue], Awaitable[T]],
) -> T:
    """Run ``action`` with a fresh queue, exiting with code 1 on runner errors."""

    async def _main() -> T:
        queue = create_job_queue(settings)
        try:
            return await action(queue)
        finally:
            await queue.close()

    try:
        return asyncio.run(_main())
    except (ScenarioRunnerError, FileNotFoundError, ValueError) as e:
        logger.error(f"Command failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


async def _service(
    queue: JobQueue, settings: Settings, catalog: Path | None = None
) -> TestRunService:
    path = catalog or settings.catalog_path
    loaded = await load_catalog(path) if path else MemoryCatalog()
    return TestRunService(
        loaded,
        queue,
        archive=JsonLinesArchive(settings.reports_dir / "archive"),
        default_timeout_seconds=settings.default_timeout_seconds,
        max_retries=settings.max_retries,
    )


@app.command()
def parse(
    feature_file: Path = typer.Argument(..., help="Gherkin feature file"),  # noqa: B008
) -> None:
    """Parse a feature file and print its structure as JSON."""
    try:
        feature = parse_feature(feature_file.read_text())
    except (ScenarioRunnerError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(feature.model_dump_json(indent=2))


@app.command()
def run(  # noqa: C901
    environment: UUID = typer.Option(..., help="Environment ID to run against"),  # noqa: B008
    user: UUID = typer.Option(..., help="ID of the user submitting the run"),  # noqa: B008
    scenario: UUID | None = typer.Option(None, help="Scenario ID to run"),  # noqa: B008
    api: UUID | None = typer.Option(None, help="Run every scenario of this API"),  # noqa: B008
    collection: UUID | None = typer.Option(  # noqa: B008
        None, help="Run every scenario of every API of this collection"
    ),
    catalog: Path | None = typer.Option(None, help="YAML catalog file"),  # noqa: B008
    auth_token: str | None = typer.Option(None, help="Bearer token for requests"),
    header: list[str] = typer.Option(  # noqa: B008
        [], "--header", "-H", help="Extra request header as KEY=VALUE (repeatable)"
    ),
    timeout: int | None = typer.Option(None, min=1, help="Per-request timeout (s)"),
    async_execution: bool = typer.Option(
        False, "--async", help="Queue a job instead of running inline"
    ),
) -> None:
    """Run a scenario, an API or a collection."""
    targets = [
        (job_type, target_id)
        for job_type, target_id in (
            (TestJobType.SCENARIO, scenario),
            (TestJobType.API, api),
            (TestJobType.COLLECTION, collection),
        )
        if target_id is not None
    ]
    if len(targets) != 1:
        typer.echo(
            "Error: pass exactly one of --scenario, --api or --collection", err=True
        )
        raise typer.Exit(code=1)
    job_type, target_id = targets[0]

    settings = _settings()
    path = _catalog_path(catalog, settings)
    if async_execution:
        _require_shared_queue(settings)
    request = RunTestRequest(
        environment_id=environment,
        auth_token=auth_token,
        custom_headers=parse_header_options(header),
        timeout_seconds=timeout,
        async_execution=async_execution,
    )

    async def _action(queue: JobQueue) -> TestRunSummary | AsyncTestResponse:
        service = await _service(queue, settings, path)
        return await service.run(job_type, target_id, user, request)

    logger.info(f"Running {job_type.value} {target_id} against environment {environment}")
    outcome = _run_async(settings, _action)
    typer.echo(outcome.model_dump_json(indent=2))

    if isinstance(outcome, TestRunSummary):
        for result in outcome.results:
            if result.passed:
                logger.info(
                    f"✓ scenario {result.scenario_id} example {result.example_index}: "
                    f"{result.response_status} ({result.request_duration_ms} ms)"
                )
            else:
                logger.error(
                    f"✗ scenario {result.scenario_id} example {result.example_index}: "
                    f"{result.error_message}"
                )
        if outcome.failed:
            logger.error(f"Tests failed: {outcome.failed}/{outcome.total}")
            raise typer.Exit(code=1)


@app.command()
def status(
    job_id: UUID = typer.Argument(..., help="Job ID"),  # noqa: B008
    user: UUID = typer.Option(..., help="Owner of the job"),  # noqa: B008
) -> None:
    """Show the status of a job."""
    settings = _settings()
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> str:
        service = await _service(queue, settings)
        return (await service.get_job_status(job_id, user)).model_dump_json(indent=2)

    typer.echo(_run_async(settings, _action))


@app.command()
def jobs(
    user: UUID = typer.Option(..., help="Owner of the jobs"),  # noqa: B008
    limit: int = typer.Option(20, min=1, max=100, help="Maximum number of jobs"),
) -> None:
    """List a user's most recent jobs."""
    settings = _settings()
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> str:
        service = await _service(queue, settings)
        return (await service.list_jobs(user, limit)).model_dump_json(indent=2)

    typer.echo(_run_async(settings, _action))


@app.command()
def cancel(
    job_id: UUID = typer.Argument(..., help="Job ID"),  # noqa: B008
    user: UUID = typer.Option(..., help="Owner of the job"),  # noqa: B008
) -> None:
    """Cancel a pending or running job."""
    settings = _settings()
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> str:
        service = await _service(queue, settings)
        return (await service.cancel_job(job_id, user)).model_dump_json(indent=2)

    typer.echo(_run_async(settings, _action))


@app.command()
def requeue(
    job_id: UUID = typer.Argument(..., help="Job ID"),  # noqa: B008
    user: UUID = typer.Option(..., help="Owner of the job"),  # noqa: B008
) -> None:
    """Send a failed job back to the queue."""
    settings = _settings()
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> str:
        service = await _service(queue, settings)
        return (await service.requeue_job(job_id, user)).model_dump_json(indent=2)

    typer.echo(_run_async(settings, _action))


@app.command()
def stats() -> None:
    """Show queue statistics."""
    settings = _settings()
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> str:
        return json.dumps({"queue_length": await queue.queue_length()})

    typer.echo(_run_async(settings, _action))


@app.command()
def worker(
    catalog: Path | None = typer.Option(None, help="YAML catalog file"),  # noqa: B008
    once: bool = typer.Option(False, help="Process at most one job, then exit"),
) -> None:
    """Consume jobs from the queue until interrupted."""
    settings = _settings()
    path = _catalog_path(catalog, settings)
    _require_shared_queue(settings)

    async def _action(queue: JobQueue) -> None:
        result_handler = ResultHandler(
            FileReportRepository(settings.reports_dir),
            JsonLinesArchive(settings.reports_dir / "archive"),
        )
        job_worker = Worker(
            queue,
            JobExecutor(await load_catalog(path), result_handler),
            dequeue_timeout=settings.dequeue_timeout_seconds,
            error_backoff=settings.error_backoff_seconds,
            retry_failed_jobs=settings.retry_failed_jobs,
        )
        if once:
            processed = await job_worker.run_once()
            logger.info("Processed one job" if processed else "No job available")
            return
        await job_worker.run(handle_signals=True)

    logger.info(f"Starting worker ({settings.queue_backend} queue)")
    _run_async(settings, _action)


if __name__ == "__main__":  # pragma: no cover
    app()
