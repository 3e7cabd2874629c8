"""SQLite analysis history and migrations via aiosqlite."""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path

import aiosqlite

from pipelinex.analyzer.models import AnalysisReport
from pipelinex.db.models import AnalysisRecord, AnalysisSummaryRecord

logger = logging.getLogger(__name__)


def _get_db_path() -> str:
    """Return the database file path (explicit, dev mode or /data)."""
    if os.environ.get("PIPELINEX_DB_PATH"):
        return os.environ["PIPELINEX_DB_PATH"]
    if os.environ.get("PIPELINEX_DEV_MODE", "").lower() == "true":
        db_dir = Path(__file__).resolve().parent.parent.parent.parent / "data"
        db_dir.mkdir(exist_ok=True)
        return str(db_dir / "pipelinex.db")
    db_dir = Path("/data")
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "pipelinex.db")


SCHEMA_VERSION = 2

MIGRATIONS: dict[int, list[str]] = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS analyses (
            id                          TEXT PRIMARY KEY,
            pipeline_name               TEXT NOT NULL,
            source_file                 TEXT DEFAULT '',
            provider                    TEXT DEFAULT '',
            critical_path_duration_secs REAL DEFAULT 0,
            optimized_duration_secs     REAL DEFAULT 0,
            finding_count               INTEGER DEFAULT 0,
            report_json                 TEXT NOT NULL DEFAULT '{}',
            created_at                  TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL
        )
        """,
        "INSERT INTO schema_version (version) VALUES (1)",
    ],
    2: [
        "ALTER TABLE analyses ADD COLUMN signature TEXT",
        "ALTER TABLE analyses ADD COLUMN public_key TEXT",
        "UPDATE schema_version SET version = 2",
    ],
}

_SUMMARY_COLUMNS = (
    "id, pipeline_name, source_file, provider, critical_path_duration_secs, "
    "optimized_duration_secs, finding_count, created_at"
)


class Database:
    """Async SQLite wrapper with migration support."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path or _get_db_path()
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and run pending migrations."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._run_migrations()

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Return the active connection (asserts it exists)."""
        assert self._conn is not None, "Database not connected"
        return self._conn

    async def _run_migrations(self) -> None:
        """Apply any pending schema migrations."""
        try:
            async with self.conn.execute(
                "SELECT version FROM schema_version LIMIT 1"
            ) as cursor:
                row = await cursor.fetchone()
                current = row["version"] if row else 0
        except aiosqlite.OperationalError:
            current = 0

        for version in sorted(MIGRATIONS.keys()):
            if version > current:
                for sql in MIGRATIONS[version]:
                    await self.conn.execute(sql)
                await self.conn.commit()
                logger.info("Applied database migration v%d", version)

    async def save_analysis(
        self,
        report: AnalysisReport,
        signature: str | None = None,
        public_key: str | None = None,
    ) -> str:
        """Store a report and return its new id."""
        analysis_id = uuid.uuid4().hex
        await self.conn.execute(
            "INSERT INTO analyses (id, pipeline_name, source_file, provider, "
            "critical_path_duration_secs, optimized_duration_secs, finding_count, "
            "report_json, signature, public_key) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                analysis_id,
                report.pipeline_name,
                report.source_file,
                report.provider,
                report.critical_path_duration_secs,
                report.optimized_duration_secs,
                len(report.findings),
                json.dumps(report.model_dump(mode="json")),
                signature,
                public_key,
            ),
        )
        await self.conn.commit()
        logger.debug("Saved analysis %s for '%s'", analysis_id, report.pipeline_name)
        return analysis_id

    async def list_analyses(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AnalysisSummaryRecord], int]:
        """Return a page of stored analyses (newest first) and the total count."""
        async with self.conn.execute("SELECT COUNT(*) AS cnt FROM analyses") as cursor:
            row = await cursor.fetchone()
            total = row["cnt"]

        async with self.conn.execute(
            f"SELECT {_SUMMARY_COLUMNS} FROM analyses "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()

        return [AnalysisSummaryRecord(**dict(r)) for r in rows], total

    async def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        async with self.conn.execute(
            "SELECT * FROM analyses WHERE id = ?", (analysis_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return AnalysisRecord(**dict(row))

    async def get_report(self, analysis_id: str) -> AnalysisReport | None:
        """Rehydrate the stored report for an analysis."""
        record = await self.get_analysis(analysis_id)
        if record is None:
            return None
        return AnalysisReport.model_validate_json(record.report_json)
