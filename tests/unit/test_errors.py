"""Tests for the error taxonomy."""

import asyncio

import aiohttp
import pytest
import redis.exceptions

from serval.scenario_runner.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    QueueError,
    StorageError,
    ValidationError,
    is_retryable,
)


def test_error_messages() -> None:
    """Errors render with their category prefix."""
    assert str(ValidationError("bad method")) == "Validation error: bad method"
    assert str(NotFoundError("Job")) == "Job not found"
    assert str(ConflictError("Scenario 1")) == "Scenario 1 already exists"
    assert str(StorageError("disk full")) == "Storage error: disk full"
    assert str(QueueError("pop failed")) == "Queue error: pop failed"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValidationError("connection timeout"), False),
        (NotFoundError("Environment"), False),
        (ConflictError("Report"), False),
        (AuthError("token expired"), False),
        (StorageError("constraint violated"), True),
        (QueueError("connection reset"), True),
        (QueueError("wrong type"), False),
        (asyncio.TimeoutError(), True),
        (ConnectionRefusedError("refused"), True),
        (aiohttp.ClientConnectionError("down"), True),
        (redis.exceptions.ConnectionError("down"), True),
        (RuntimeError("network unreachable"), True),
        (RuntimeError("Request timed out"), True),
        (RuntimeError("boom"), False),
        (KeyError("environment"), False),
    ],
)
def test_is_retryable(error: BaseException, expected: bool) -> None:
    """is_retryable classifies permanent and transient failures."""
    assert is_retryable(error) is expected
