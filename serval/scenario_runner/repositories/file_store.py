"""File-backed report store and JSON-lines document archive.

File access runs in worker threads so the event loop is never blocked on disk.
"""

import asyncio
import json
import logging
from pathlib import Path
from uuid import UUID

from pydantic import BaseModel

from serval.scenario_runner.errors import ConflictError, NotFoundError, StorageError
from serval.scenario_runner.models.job import utc_now
from serval.scenario_runner.models.report import (
    ExecutionLog,
    GherkinDocument,
    Report,
    ResponseRecord,
)
from serval.scenario_runner.repositories.base import DocumentArchive, ReportRepository

logger = logging.getLogger(__name__)


class _StoredReport(BaseModel):
    report: Report
    responses: list[ResponseRecord] = []


class FileReportRepository(ReportRepository):
    """Stores each report and its responses as ``<reports_dir>/<report_id>.json``."""

    def __init__(self, reports_dir: Path) -> None:
        """Initialize store rooted at ``reports_dir`` (created on first write)."""
        self.reports_dir = reports_dir
        self._lock = asyncio.Lock()

    def _path(self, report_id: UUID) -> Path:
        return self.reports_dir / f"{report_id}.json"

    def _read(self, report_id: UUID) -> _StoredReport | None:
        path = self._path(report_id)
        if not path.exists():
            return None
        try:
            return _StoredReport.model_validate_json(path.read_text())
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read report {path}: {e}") from e

    def _write(self, stored: _StoredReport) -> None:
        path = self._path(stored.report.id)
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(stored.model_dump_json(indent=2))
        except OSError as e:
            raise StorageError(f"Failed to write report {path}: {e}") from e

    async def create_report(self, report: Report) -> Report:
        """Write a new, unfinished report."""
        async with self._lock:
            if await asyncio.to_thread(self._path(report.id).exists):
                raise ConflictError(f"Report {report.id}")
            await asyncio.to_thread(self._write, _StoredReport(report=report))
        return report

    async def save_responses(self, records: list[ResponseRecord]) -> None:
        """Append response records to their report files."""
        by_report: dict[UUID, list[ResponseRecord]] = {}
        for record in records:
            by_report.setdefault(record.report_id, []).append(record)

        async with self._lock:
            for report_id, report_records in by_report.items():
                stored = await asyncio.to_thread(self._read, report_id)
                if stored is None:
                    raise NotFoundError("Report")
                stored.responses.extend(report_records)
                await asyncio.to_thread(self._write, stored)

    async def finish_report(
        self, report_id: UUID, pass_rate: float, response_count: int
    ) -> Report:
        """Mark a report finished."""
        async with self._lock:
            stored = await asyncio.to_thread(self._read, report_id)
            if stored is None:
                raise NotFoundError("Report")
            stored.report = stored.report.model_copy(
                update={
                    "finished": True,
                    "pass_rate": pass_rate,
                    "response_count": response_count,
                    "finished_at": utc_now(),
                }
            )
            await asyncio.to_thread(self._write, stored)
        return stored.report

    async def get_report(self, report_id: UUID) -> Report | None:
        """Return a report, or None if there is no file for it."""
        stored = await asyncio.to_thread(self._read, report_id)
        return stored.report if stored else None

    async def list_responses(self, report_id: UUID) -> list[ResponseRecord]:
        """Return the response records of a report in the order they were saved."""
        stored = await asyncio.to_thread(self._read, report_id)
        return stored.responses if stored else []


class JsonLinesArchive(DocumentArchive):
    """Appends archived documents to JSON-lines files in ``archive_dir``."""

    GHERKIN_FILE = "gherkin_documents.jsonl"
    EXECUTION_LOG_FILE = "execution_logs.jsonl"

    def __init__(self, archive_dir: Path) -> None:
        """Initialize archive rooted at ``archive_dir`` (created on first write)."""
        self.archive_dir = archive_dir

    def _append(self, filename: str, lines: list[str]) -> None:
        path = self.archive_dir / filename
        try:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
        except OSError as e:
            raise StorageError(f"Failed to append to {path}: {e}") from e

    async def save_gherkin_document(self, document: GherkinDocument) -> None:
        """Append an imported feature to the Gherkin archive."""
        await asyncio.to_thread(
            self._append, self.GHERKIN_FILE, [document.model_dump_json()]
        )

    async def save_execution_logs(
        self, report_id: UUID, logs: list[ExecutionLog]
    ) -> None:
        """Append execution logs of a report."""
        lines = [log.model_dump_json() for log in logs]
        await asyncio.to_thread(self._append, self.EXECUTION_LOG_FILE, lines)
        logger.debug(f"Archived {len(logs)} execution logs for report {report_id}")

    def read_execution_logs(self, report_id: UUID) -> list[ExecutionLog]:
        """Return archived logs of one report, oldest first."""
        path = self.archive_dir / self.EXECUTION_LOG_FILE
        if not path.exists():
            return []
        logs: list[ExecutionLog] = []
        with path.open(encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                log = ExecutionLog.model_validate(json.loads(line))
                if log.report_id == report_id:
                    logs.append(log)
        return logs
