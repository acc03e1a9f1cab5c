from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from .db import TimesheetStore
from .errors import (
    ConcurrentSessionError,
    ContinueNotAllowedError,
    FinishNotAllowedError,
    NotFoundError,
    PauseNotAllowedError,
    ValidationError,
)
from .issues import parse_issue
from .models import HistoryEntry, Timesheet

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_ms(start_utc: datetime, end_utc: datetime) -> int:
    if start_utc.tzinfo is None or end_utc.tzinfo is None:
        raise ValueError("start_utc and end_utc must be timezone-aware")

    # A clock that stepped backwards contributes nothing.
    return max(0, (end_utc - start_utc) // timedelta(milliseconds=1))


def check_total(new_total: int) -> None:
    # bool is an int subclass; True is not a duration.
    if isinstance(new_total, bool) or not isinstance(new_total, int):
        raise ValidationError("newTotal must be an integer number of milliseconds")
    if new_total < 0:
        raise ValidationError("newTotal must not be negative")


class TimesheetTracker:
    """Work-session state machine: start, pause, continue, edit, finish, delete."""

    def __init__(
        self,
        store: TimesheetStore,
        clock: Clock = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        # Serializes every read-modify-write sequence against the store.
        self._lock = threading.RLock()

    def start_work(self, owner: str, issue: str) -> str:
        project = parse_issue(issue)

        with self._lock:
            if self.store.find_active_by_owner(owner) is not None:
                self.logger.debug("Rejecting second active session for owner %s", owner)
                raise ConcurrentSessionError(owner)

            now = self.clock()
            record = Timesheet(
                id=uuid.uuid4().hex,
                owner=owner,
                issue=issue.strip(),
                project=project,
                created_at_utc=now,
                active=True,
                last_start_utc=now,
            )
            work_id = self.store.insert(record)

        self.logger.info("Work started: owner=%s work=%s project=%s", owner, work_id, project)
        return work_id

    def pause_work(self, owner: str, work_id: str) -> str:
        with self._lock:
            record = self._owned(owner, work_id)
            if not record.active:
                self.logger.debug("Cannot pause %s work %s", record.state, work_id)
                raise PauseNotAllowedError(work_id)

            total = record.total_time + elapsed_ms(record.last_start_utc, self.clock())
            self.store.update(work_id, active=False, paused=True, total_time=total, last_start_utc=None)

        self.logger.info("Work paused: owner=%s work=%s total_ms=%s", owner, work_id, total)
        return work_id

    def continue_work(self, owner: str, work_id: str) -> str:
        with self._lock:
            record = self._owned(owner, work_id)
            if not record.paused:
                self.logger.debug("Cannot continue %s work %s", record.state, work_id)
                raise ContinueNotAllowedError(work_id)

            running = self.store.find_active_by_owner(owner)
            if running is not None:
                self.logger.debug("Cannot continue %s while %s is active", work_id, running.id)
                raise ConcurrentSessionError(owner)

            self.store.update(work_id, active=True, paused=False, last_start_utc=self.clock())

        self.logger.info("Work continued: owner=%s work=%s", owner, work_id)
        return work_id

    def edit_work(self, owner: str, work_id: str, new_total: int) -> str:
        check_total(new_total)

        with self._lock:
            record = self._owned(owner, work_id)
            self.store.record_edit(
                work_id,
                HistoryEntry(previous_total=record.total_time, edited_at_utc=self.clock()),
                new_total,
            )

        self.logger.info(
            "Work edited: owner=%s work=%s total_ms=%s -> %s",
            owner,
            work_id,
            record.total_time,
            new_total,
        )
        return work_id

    def finish_work(self, owner: str, work_id: str) -> str:
        with self._lock:
            record = self._owned(owner, work_id)
            if not record.active:
                self.logger.debug("Cannot finish %s work %s", record.state, work_id)
                raise FinishNotAllowedError(work_id)

            total = record.total_time + elapsed_ms(record.last_start_utc, self.clock())
            self.store.update(
                work_id,
                active=False,
                paused=False,
                finished=True,
                total_time=total,
                last_start_utc=None,
            )

        self.logger.info("Work finished: owner=%s work=%s total_ms=%s", owner, work_id, total)
        return work_id

    def delete_work(self, owner: str, work_id: str) -> str:
        with self._lock:
            self._owned(owner, work_id)
            self.store.remove(work_id)

        self.logger.info("Work deleted: owner=%s work=%s", owner, work_id)
        return work_id

    def get_work(self, owner: str, work_id: str) -> Timesheet:
        return self._owned(owner, work_id)

    def list_work(self, owner: str) -> list[Timesheet]:
        return self.store.list_by_owner(owner)

    def current_total(self, record: Timesheet, now_utc: datetime | None = None) -> int:
        """Accumulated time plus the running interval, if any."""
        if not record.active or record.last_start_utc is None:
            return record.total_time
        return record.total_time + elapsed_ms(record.last_start_utc, now_utc or self.clock())

    def _owned(self, owner: str, work_id: str) -> Timesheet:
        record = self.store.find_by_id(work_id)
        # Other owners' records are reported as missing, not forbidden.
        if record is None or record.owner != owner:
            raise NotFoundError(work_id)
        return record
