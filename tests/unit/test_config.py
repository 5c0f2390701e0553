"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from serval.scenario_runner.config import Settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Settings fall back to defaults when nothing is configured."""
    monkeypatch.chdir(tmp_path)

    settings = Settings()

    assert settings.queue_backend == "memory"
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.queue_key_prefix == "serval:jobs:"
    assert settings.dequeue_timeout_seconds == 5.0
    assert settings.error_backoff_seconds == 1.0
    assert settings.max_retries == 3
    assert settings.retry_failed_jobs is True
    assert settings.default_timeout_seconds == 30
    assert settings.catalog_path is None
    assert settings.reports_dir == Path("reports")


def test_settings_from_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """SERVAL_-prefixed environment variables override defaults."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SERVAL_QUEUE_BACKEND", "redis")
    monkeypatch.setenv("SERVAL_REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("SERVAL_MAX_RETRIES", "5")
    monkeypatch.setenv("SERVAL_RETRY_FAILED_JOBS", "false")
    monkeypatch.setenv("SERVAL_CATALOG_PATH", "catalog.yaml")

    settings = Settings()

    assert settings.queue_backend == "redis"
    assert settings.redis_url == "redis://cache:6379/2"
    assert settings.max_retries == 5
    assert settings.retry_failed_jobs is False
    assert settings.catalog_path == Path("catalog.yaml")


def test_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Settings read a .env file in the working directory."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("SERVAL_DEFAULT_TIMEOUT_SECONDS=12\nOTHER=1\n")

    settings = Settings()

    assert settings.default_timeout_seconds == 12


def test_settings_reject_unknown_backend(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """Only memory and redis backends are accepted."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SERVAL_QUEUE_BACKEND", "kafka")

    with pytest.raises(ValidationError):
        Settings()
