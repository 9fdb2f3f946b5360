# src/daybands/storage/execution_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from datetime import datetime
from pathlib import Path

from ..schedule.time_slots import NONE_SLOT
from ..tasks.task_models import ExecutionRecord, TaskInstance

logger = logging.getLogger(__name__)


def _ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt is not None else None


def _dt(ts: float | None) -> datetime | None:
    return datetime.fromtimestamp(float(ts)) if ts is not None else None


class ExecutionStore:
    """
    SQLite execution history: one row per completed instance.

    Schema handling:
    - create table if missing
    - detect missing columns with PRAGMA table_info and ALTER TABLE them in

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "executions.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_executions()
        except sqlite3.Error:
            total = -1
        logger.info("ExecutionStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS executions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    title TEXT NOT NULL,
                    task_path TEXT,
                    created_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(executions)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE executions ADD COLUMN {name} {decl}")
                logger.info("ExecutionStore migration: added column %s", name)

            add_col("instance_id", "TEXT")
            add_col("slot_key", f"TEXT NOT NULL DEFAULT '{NONE_SLOT}'")
            add_col("start_time", "REAL")
            add_col("stop_time", "REAL")
            add_col("duration_seconds", "INTEGER")
            add_col("is_routine", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_executions_date ON executions(date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_executions_instance ON executions(instance_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ExecutionRecord:
        return ExecutionRecord(
            id=int(row["id"]),
            date=str(row["date"]),
            title=str(row["title"] or ""),
            task_path=row["task_path"],
            instance_id=row["instance_id"],
            slot_key=str(row["slot_key"] or NONE_SLOT),
            start_time=_dt(row["start_time"]),
            stop_time=_dt(row["stop_time"]),
            duration_seconds=int(row["duration_seconds"]) if row["duration_seconds"] is not None else None,
            is_routine=bool(row["is_routine"]),
        )

    # ---- public API ----

    def count_executions(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM executions").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_execution(self, instance: TaskInstance, *, date_str: str) -> int:
        if not date_str:
            raise ValueError("date_str is required")
        title = instance.title
        if not title or not title.strip():
            raise ValueError("title is required")

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO executions(
                    date, title, task_path, created_at,
                    instance_id, slot_key, start_time, stop_time,
                    duration_seconds, is_routine
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    date_str,
                    title.strip(),
                    instance.task.path,
                    time.time(),
                    instance.instance_id,
                    instance.slot_key or NONE_SLOT,
                    _ts(instance.start_time),
                    _ts(instance.stop_time),
                    instance.duration_seconds,
                    1 if instance.task.is_routine else 0,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for executions insert")
            logger.debug(
                "Execution added id=%s date=%s instance=%s slot=%s",
                rowid,
                date_str,
                instance.instance_id,
                instance.slot_key,
            )
            return int(rowid)
        finally:
            conn.close()

    def list_for_date(self, date_str: str) -> list[ExecutionRecord]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM executions
                WHERE date = ?
                ORDER BY COALESCE(start_time, created_at) ASC, id ASC
                """,
                (date_str,),
            )
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def delete_by_instance_id(self, instance_id: str) -> int:
        if not instance_id:
            return 0
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM executions WHERE instance_id = ?", (instance_id,))
            conn.commit()
            if cur.rowcount:
                logger.info("Deleted %d execution(s) for instance=%s", cur.rowcount, instance_id)
            return int(cur.rowcount)
        finally:
            conn.close()
