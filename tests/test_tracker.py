import threading
from datetime import datetime, timedelta, timezone

import pytest

from timesheet.db import Database
from timesheet.errors import (
    ConcurrentSessionError,
    InvalidIssueError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from timesheet.tracker import TimesheetTracker, elapsed_ms

ISSUE = "https://github.com/EmurgoHK/emurgolance/issues/67"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 2, 1, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_tracker() -> tuple[TimesheetTracker, Database, FakeClock]:
    db = Database(":memory:")
    db.initialize()
    clock = FakeClock()
    return TimesheetTracker(store=db, clock=clock), db, clock


def test_elapsed_ms_clamps_backwards_clock() -> None:
    start = datetime(2026, 2, 1, 10, 0, 0, tzinfo=timezone.utc)

    assert elapsed_ms(start, start + timedelta(seconds=1, microseconds=2500)) == 1002
    assert elapsed_ms(start, start - timedelta(seconds=5)) == 0


def test_start_creates_active_record() -> None:
    tracker, db, clock = make_tracker()

    work_id = tracker.start_work("u1", ISSUE)

    record = db.find_by_id(work_id)
    assert record.owner == "u1"
    assert record.issue == ISSUE
    assert record.project == "emurgolance"
    assert (record.active, record.paused, record.finished) == (True, False, False)
    assert record.total_time == 0
    assert record.last_start_utc == clock.now
    assert record.history == ()


def test_invalid_issue_creates_nothing() -> None:
    tracker, db, _ = make_tracker()

    with pytest.raises(InvalidIssueError):
        tracker.start_work("u1", "testing")

    assert db.list_by_owner("u1") == []


def test_only_one_active_session_per_owner() -> None:
    tracker, db, _ = make_tracker()
    tracker.start_work("u1", ISSUE)

    with pytest.raises(ConcurrentSessionError, match="You can only start one task at a time"):
        tracker.start_work("u1", "org/other#2")

    assert len(db.list_by_owner("u1")) == 1
    # Other owners are unaffected.
    tracker.start_work("u2", ISSUE)


def test_concurrent_starts_yield_a_single_session() -> None:
    tracker, db, _ = make_tracker()
    barrier = threading.Barrier(8)
    outcomes: list[str] = []

    def attempt() -> None:
        barrier.wait()
        try:
            tracker.start_work("u1", ISSUE)
            outcomes.append("ok")
        except ConcurrentSessionError:
            outcomes.append("conflict")

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == 7
    assert len(db.list_by_owner("u1")) == 1


def test_pause_continue_finish_accumulates_active_intervals() -> None:
    tracker, db, clock = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)

    clock.advance(minutes=5)
    tracker.pause_work("u1", work_id)
    record = db.find_by_id(work_id)
    assert (record.active, record.paused) == (False, True)
    assert record.total_time == 300_000
    assert record.last_start_utc is None

    clock.advance(hours=1)
    tracker.continue_work("u1", work_id)
    record = db.find_by_id(work_id)
    assert (record.active, record.paused) == (True, False)
    assert record.total_time == 300_000
    assert record.last_start_utc == clock.now

    clock.advance(seconds=30)
    assert tracker.current_total(record) == 330_000

    tracker.finish_work("u1", work_id)
    record = db.find_by_id(work_id)
    assert (record.active, record.paused, record.finished) == (False, False, True)
    assert record.total_time == 330_000
    assert record.last_start_utc is None
    assert tracker.current_total(record) == 330_000


def test_finish_straight_from_active() -> None:
    tracker, db, clock = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)

    clock.advance(seconds=2)
    tracker.finish_work("u1", work_id)

    assert db.find_by_id(work_id).total_time == 2000
    # The owner may start again once nothing is active.
    tracker.start_work("u1", ISSUE)


@pytest.mark.parametrize("finish_first", [False, True])
def test_pause_rejected_unless_active(finish_first: bool) -> None:
    tracker, db, clock = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    if finish_first:
        tracker.finish_work("u1", work_id)
    else:
        tracker.pause_work("u1", work_id)
    before = db.find_by_id(work_id)

    clock.advance(minutes=1)
    with pytest.raises(InvalidStateError, match="You can't pause work that's been completed"):
        tracker.pause_work("u1", work_id)

    assert db.find_by_id(work_id) == before


def test_continue_rejected_unless_paused() -> None:
    tracker, db, _ = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    before = db.find_by_id(work_id)

    with pytest.raises(InvalidStateError, match="You can't continue work that hasn't been paused"):
        tracker.continue_work("u1", work_id)
    assert db.find_by_id(work_id) == before

    tracker.finish_work("u1", work_id)
    finished = db.find_by_id(work_id)
    with pytest.raises(InvalidStateError):
        tracker.continue_work("u1", work_id)
    assert db.find_by_id(work_id) == finished


def test_continue_rejected_while_another_session_runs() -> None:
    tracker, db, _ = make_tracker()
    first = tracker.start_work("u1", ISSUE)
    tracker.pause_work("u1", first)
    tracker.start_work("u1", "org/repo#2")

    with pytest.raises(ConcurrentSessionError):
        tracker.continue_work("u1", first)

    assert db.find_by_id(first).paused is True


def test_finish_rejected_unless_active() -> None:
    tracker, db, _ = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    tracker.pause_work("u1", work_id)
    before = db.find_by_id(work_id)

    with pytest.raises(InvalidStateError, match="You can't finish work that's not active"):
        tracker.finish_work("u1", work_id)

    assert db.find_by_id(work_id) == before


def test_edit_appends_history_in_any_state() -> None:
    tracker, db, clock = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    clock.advance(minutes=1)
    tracker.finish_work("u1", work_id)

    clock.advance(minutes=1)
    tracker.edit_work("u1", work_id, 600_000)

    record = db.find_by_id(work_id)
    assert record.total_time == 600_000
    assert record.finished is True
    assert len(record.history) == 1
    assert record.history[0].previous_total == 60_000
    assert record.history[0].edited_at_utc == clock.now

    tracker.edit_work("u1", work_id, 0)
    record = db.find_by_id(work_id)
    assert record.total_time == 0
    assert [entry.previous_total for entry in record.history] == [60_000, 600_000]


def test_edit_does_not_restart_running_interval() -> None:
    tracker, db, clock = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    clock.advance(minutes=1)
    tracker.edit_work("u1", work_id, 600_000)

    clock.advance(minutes=1)
    tracker.pause_work("u1", work_id)

    assert db.find_by_id(work_id).total_time == 720_000


def test_delete_from_any_state() -> None:
    tracker, db, _ = make_tracker()
    active_id = tracker.start_work("u1", ISSUE)
    tracker.pause_work("u1", active_id)
    finished_id = tracker.start_work("u1", ISSUE)
    tracker.finish_work("u1", finished_id)

    assert tracker.delete_work("u1", active_id) == active_id
    assert tracker.delete_work("u1", finished_id) == finished_id

    assert db.find_by_id(active_id) is None
    assert db.find_by_id(finished_id) is None
    with pytest.raises(NotFoundError):
        tracker.delete_work("u1", active_id)


def test_foreign_records_are_invisible() -> None:
    tracker, db, _ = make_tracker()
    work_id = tracker.start_work("u1", ISSUE)
    before = db.find_by_id(work_id)

    for operation in (tracker.pause_work, tracker.finish_work, tracker.delete_work, tracker.get_work):
        with pytest.raises(NotFoundError):
            operation("intruder", work_id)
    with pytest.raises(NotFoundError):
        tracker.edit_work("intruder", work_id, 1)
    with pytest.raises(NotFoundError):
        tracker.pause_work("u1", "no-such-id")

    assert db.find_by_id(work_id) == before
    assert tracker.list_work("intruder") == []


@pytest.mark.parametrize("new_total", [-5, 2.5, True])
def test_rejected_edit_writes_nothing(new_total) -> None:
    tracker, db, _ = make_tracker()
    work_id = tracker.start_work("u1", "org/repo#1")

    with pytest.raises(ValidationError):
        tracker.edit_work("u1", work_id, new_total)

    record = db.find_by_id(work_id)
    assert record.history == ()
    assert record.total_time == 0


def test_stored_issue_is_the_validated_reference() -> None:
    tracker, db, _ = make_tracker()

    work_id = tracker.start_work("u1", "  org/Repo#1 \n")

    record = db.find_by_id(work_id)
    assert record.issue == "org/Repo#1"
    assert record.project == "repo"
