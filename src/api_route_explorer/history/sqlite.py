"""SQLite-backed test history store."""

import json
import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from api_route_explorer.errors import PersistenceError, ValidationError

from .base import EndpointCount, HistoryStats, HistoryStore, HourCount, TestLogEntry

logger = logging.getLogger(__name__)

TOP_ENDPOINTS_LIMIT = 10
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS test_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        endpoint TEXT NOT NULL,
        method TEXT NOT NULL,
        status_code INTEGER NOT NULL,
        response_time INTEGER NOT NULL,
        user_id TEXT,
        ip_address TEXT,
        user_agent TEXT,
        request_data TEXT,
        response_data TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_test_logs_endpoint ON test_logs(endpoint)",
    "CREATE INDEX IF NOT EXISTS idx_test_logs_method ON test_logs(method)",
    "CREATE INDEX IF NOT EXISTS idx_test_logs_status_code ON test_logs(status_code)",
    "CREATE INDEX IF NOT EXISTS idx_test_logs_created_at ON test_logs(created_at)",
]


class SqliteHistoryStore(HistoryStore):
    """History store in a single SQLite file (or ``:memory:``)."""

    def __init__(self, db_path: str | Path = ":memory:", clock: Callable[[], datetime] = datetime.now):
        self.db_path = str(db_path)
        self.clock = clock
        self._lock = threading.Lock()
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
            self.conn.row_factory = sqlite3.Row
            with self.conn:
                for statement in SCHEMA:
                    self.conn.execute(statement)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Cannot open history database: {e}") from e

    def append(self, entry: TestLogEntry) -> TestLogEntry:
        row = (
            entry.endpoint,
            entry.method,
            entry.status_code,
            entry.response_time_ms,
            entry.user_id,
            entry.ip_address,
            entry.user_agent,
            json.dumps(entry.request_data),
            json.dumps(entry.response_data),
            entry.created_at.strftime(TIMESTAMP_FORMAT),
        )
        cursor = self._write(
            """
            INSERT INTO test_logs (endpoint, method, status_code, response_time, user_id,
                                   ip_address, user_agent, request_data, response_data, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            row,
        )
        return entry.model_copy(update={"id": cursor.lastrowid})

    def list_entries(self, limit: int = 20, offset: int = 0) -> list[TestLogEntry]:
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        rows = self._read(
            "SELECT * FROM test_logs ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [_to_entry(r) for r in rows]

    def get(self, entry_id: int) -> TestLogEntry | None:
        rows = self._read("SELECT * FROM test_logs WHERE id = ?", (entry_id,))
        return _to_entry(rows[0]) if rows else None

    def truncate(self) -> int:
        cursor = self._write("DELETE FROM test_logs")
        logger.info("Cleared %d history entries", cursor.rowcount)
        return cursor.rowcount

    def delete_older_than(self, days: int) -> int:
        if days < 0:
            raise ValidationError("Retention days must not be negative")
        cutoff = (self.clock() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)
        cursor = self._write("DELETE FROM test_logs WHERE created_at < ?", (cutoff,))
        logger.info("Pruned %d history entries older than %d days", cursor.rowcount, days)
        return cursor.rowcount

    def stats(self) -> HistoryStats:
        totals = self._read(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(CASE WHEN status_code >= 200 AND status_code < 300 THEN 1 ELSE 0 END), 0) AS ok,
                   COALESCE(SUM(CASE WHEN status_code >= 400 THEN 1 ELSE 0 END), 0) AS failed,
                   AVG(response_time) AS avg_time
            FROM test_logs
            """
        )[0]
        endpoints = self._read(
            """
            SELECT endpoint, COUNT(*) AS count FROM test_logs
            GROUP BY endpoint ORDER BY count DESC, endpoint LIMIT ?
            """,
            (TOP_ENDPOINTS_LIMIT,),
        )
        codes = self._read(
            "SELECT status_code, COUNT(*) AS count FROM test_logs GROUP BY status_code ORDER BY status_code"
        )
        since = (self.clock() - timedelta(hours=24)).strftime(TIMESTAMP_FORMAT)
        hours = self._read(
            """
            SELECT CAST(strftime('%H', created_at) AS INTEGER) AS hour, COUNT(*) AS count
            FROM test_logs WHERE created_at >= ?
            GROUP BY hour ORDER BY hour
            """,
            (since,),
        )

        return HistoryStats(
            total_count=totals["total"],
            success_count=totals["ok"],
            failure_count=totals["failed"],
            avg_response_time_ms=round(totals["avg_time"] or 0, 2),
            top_endpoints=[EndpointCount(endpoint=r["endpoint"], count=r["count"]) for r in endpoints],
            status_code_histogram={r["status_code"]: r["count"] for r in codes},
            hourly_histogram=[HourCount(hour=r["hour"], count=r["count"]) for r in hours],
        )

    def close(self) -> None:
        self.conn.close()

    def _write(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            with self._lock, self.conn:
                return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.error("History write failed: %s", e)
            raise PersistenceError("Failed to write test history") from e

    def _read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("History read failed: %s", e)
            raise PersistenceError("Failed to read test history") from e


def _to_entry(row: sqlite3.Row) -> TestLogEntry:
    return TestLogEntry(
        id=row["id"],
        endpoint=row["endpoint"],
        method=row["method"],
        status_code=row["status_code"],
        response_time_ms=row["response_time"],
        user_id=row["user_id"],
        ip_address=row["ip_address"] or "",
        user_agent=row["user_agent"] or "",
        request_data=json.loads(row["request_data"] or "{}"),
        response_data=json.loads(row["response_data"] or "{}"),
        created_at=datetime.strptime(row["created_at"], TIMESTAMP_FORMAT),
    )
