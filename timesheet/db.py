from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .errors import ConcurrentSessionError
from .models import HistoryEntry, Timesheet

_UPDATABLE_COLUMNS = frozenset({"active", "paused", "finished", "total_time", "last_start_utc"})


class TimesheetStore(Protocol):
    def find_active_by_owner(self, owner: str) -> Timesheet | None: ...

    def find_by_id(self, work_id: str) -> Timesheet | None: ...

    def list_by_owner(self, owner: str) -> list[Timesheet]: ...

    def insert(self, record: Timesheet) -> str: ...

    def update(self, work_id: str, **patch: Any) -> None: ...

    def record_edit(self, work_id: str, entry: HistoryEntry, new_total: int) -> None: ...

    def remove(self, work_id: str) -> int: ...


class Database:
    """Thin SQLite access layer for timesheet records and their edit history."""

    def __init__(self, db_path: str | Path) -> None:
        # One connection shared by the bot's event loop and worker threads.
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # timesheets: one row per work session.
        # timesheet_history: append-only log of manual edits.
        # uq_timesheets_owner_active: at most one running session per owner.
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS timesheets (
                  id TEXT PRIMARY KEY,
                  owner TEXT NOT NULL,
                  issue TEXT NOT NULL,
                  project TEXT NOT NULL,
                  created_at_utc TEXT NOT NULL,
                  active INTEGER NOT NULL DEFAULT 0,
                  paused INTEGER NOT NULL DEFAULT 0,
                  finished INTEGER NOT NULL DEFAULT 0,
                  total_time INTEGER NOT NULL DEFAULT 0 CHECK (total_time >= 0),
                  last_start_utc TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS uq_timesheets_owner_active
                  ON timesheets (owner) WHERE active = 1;

                CREATE TABLE IF NOT EXISTS timesheet_history (
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  work_id TEXT NOT NULL,
                  previous_total INTEGER NOT NULL,
                  edited_at_utc TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_timesheet_history_work
                  ON timesheet_history (work_id, seq);
                """
            )
            self._conn.commit()

    def find_active_by_owner(self, owner: str) -> Timesheet | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM timesheets WHERE owner = ? AND active = 1",
                (owner,),
            ).fetchone()
            if row is None:
                return None
            return self._to_timesheet(row)

    def find_by_id(self, work_id: str) -> Timesheet | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM timesheets WHERE id = ?", (work_id,)).fetchone()
            if row is None:
                return None
            return self._to_timesheet(row)

    def list_by_owner(self, owner: str) -> list[Timesheet]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM timesheets
                WHERE owner = ?
                ORDER BY created_at_utc DESC, id ASC
                """,
                (owner,),
            ).fetchall()
            return [self._to_timesheet(row) for row in rows]

    def insert(self, record: Timesheet) -> str:
        last_start = _to_utc(record.last_start_utc).isoformat() if record.last_start_utc else None
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO timesheets (
                      id, owner, issue, project, created_at_utc,
                      active, paused, finished, total_time, last_start_utc
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.owner,
                        record.issue,
                        record.project,
                        _to_utc(record.created_at_utc).isoformat(),
                        int(record.active),
                        int(record.paused),
                        int(record.finished),
                        record.total_time,
                        last_start,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                if record.active and _is_active_conflict(exc):
                    raise ConcurrentSessionError(record.owner) from exc
                raise
            self._conn.commit()
        return record.id

    def update(self, work_id: str, **patch: Any) -> None:
        unknown = set(patch) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update timesheet columns: {', '.join(sorted(unknown))}")
        if not patch:
            return

        columns = sorted(patch)
        values = [_to_column_value(patch[column]) for column in columns]
        assignments = ", ".join(f"{column} = ?" for column in columns)

        with self._lock:
            try:
                self._conn.execute(
                    f"UPDATE timesheets SET {assignments} WHERE id = ?",
                    (*values, work_id),
                )
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                if patch.get("active") and _is_active_conflict(exc):
                    owner = self._conn.execute("SELECT owner FROM timesheets WHERE id = ?", (work_id,)).fetchone()
                    raise ConcurrentSessionError(owner["owner"] if owner else "") from exc
                raise
            self._conn.commit()

    def record_edit(self, work_id: str, entry: HistoryEntry, new_total: int) -> None:
        # History row and new total land together or not at all.
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO timesheet_history (work_id, previous_total, edited_at_utc)
                    VALUES (?, ?, ?)
                    """,
                    (work_id, entry.previous_total, _to_utc(entry.edited_at_utc).isoformat()),
                )
                self._conn.execute(
                    "UPDATE timesheets SET total_time = ? WHERE id = ?",
                    (new_total, work_id),
                )
            except sqlite3.Error:
                self._conn.rollback()
                raise
            self._conn.commit()

    def remove(self, work_id: str) -> int:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM timesheets WHERE id = ?", (work_id,))
            self._conn.execute("DELETE FROM timesheet_history WHERE work_id = ?", (work_id,))
            self._conn.commit()
            return cursor.rowcount

    def _to_timesheet(self, row: sqlite3.Row) -> Timesheet:
        history_rows = self._conn.execute(
            """
            SELECT previous_total, edited_at_utc
            FROM timesheet_history
            WHERE work_id = ?
            ORDER BY seq ASC
            """,
            (row["id"],),
        ).fetchall()

        last_start = row["last_start_utc"]
        return Timesheet(
            id=row["id"],
            owner=row["owner"],
            issue=row["issue"],
            project=row["project"],
            created_at_utc=datetime.fromisoformat(row["created_at_utc"]),
            active=bool(row["active"]),
            paused=bool(row["paused"]),
            finished=bool(row["finished"]),
            total_time=row["total_time"],
            last_start_utc=datetime.fromisoformat(last_start) if last_start else None,
            history=tuple(
                HistoryEntry(
                    previous_total=item["previous_total"],
                    edited_at_utc=datetime.fromisoformat(item["edited_at_utc"]),
                )
                for item in history_rows
            ),
        )


def _is_active_conflict(exc: sqlite3.IntegrityError) -> bool:
    # SQLite reports partial unique index violations by the indexed columns.
    return "timesheets.owner" in str(exc)


def _to_column_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return _to_utc(value).isoformat()
    return value


def _to_utc(value: datetime) -> datetime:
    """Normalize a timezone-aware datetime to UTC for storage."""
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc)
