"""Error taxonomy shared by the queue, the worker and the request runner."""

import asyncio

import aiohttp
import redis.exceptions

_TRANSIENT_MARKERS = ("timeout", "timed out", "connection", "network")

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    ConnectionError,
    aiohttp.ClientConnectionError,
    redis.exceptions.ConnectionError,
    redis.exceptions.TimeoutError,
)


class ScenarioRunnerError(Exception):
    """Base class for every error raised by the scenario runner."""


class ValidationError(ScenarioRunnerError):
    """Invalid input or an illegal state transition."""

    def __str__(self) -> str:
        return f"Validation error: {super().__str__()}"


class NotFoundError(ScenarioRunnerError):
    """A job or catalog record does not exist (or is not visible to the user)."""

    def __init__(self, resource: str) -> None:
        """Initialize with the name of the missing resource."""
        super().__init__(resource)
        self.resource = resource

    def __str__(self) -> str:
        return f"{self.resource} not found"


class ConflictError(ScenarioRunnerError):
    """A record with the same identity already exists."""

    def __str__(self) -> str:
        return f"{super().__str__()} already exists"


class AuthError(ScenarioRunnerError):
    """Missing, invalid or expired credentials."""


class StorageError(ScenarioRunnerError):
    """Generic failure of a report or catalog store."""

    def __str__(self) -> str:
        return f"Storage error: {super().__str__()}"


class QueueError(ScenarioRunnerError):
    """Failure talking to the job queue backend."""

    def __str__(self) -> str:
        return f"Queue error: {super().__str__()}"


def _looks_transient(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _TRANSIENT_MARKERS)


def is_retryable(error: BaseException) -> bool:
    """Classify a job-level failure as retryable or permanent.

    Validation, not-found, conflict and auth errors never retry. Storage
    errors always do. Queue errors and anything unexpected retry only when
    they look like a timeout or connection problem.

    """
    if isinstance(error, (ValidationError, NotFoundError, ConflictError, AuthError)):
        return False
    if isinstance(error, StorageError):
        return True
    if isinstance(error, QueueError):
        return _looks_transient(str(error))
    if isinstance(error, _TRANSIENT_TYPES):
        return True
    return _looks_transient(str(error))
