from __future__ import annotations

from typing import Any, Callable

from .errors import UnauthenticatedError, ValidationError
from .models import Timesheet
from .tracker import TimesheetTracker, check_total

IdentityResolver = Callable[[Any], str | None]


class TimesheetOperations:
    """Caller-facing surface: binds the caller identity and checks argument shapes."""

    def __init__(self, tracker: TimesheetTracker, resolve_identity: IdentityResolver) -> None:
        self.tracker = tracker
        self.resolve_identity = resolve_identity

    def start_work(self, context: Any, issue: Any) -> str:
        owner = self._caller(context)
        _require_text("issue", issue)
        return self.tracker.start_work(owner, issue)

    def pause_work(self, context: Any, work_id: Any) -> str:
        owner = self._caller(context)
        _require_text("workId", work_id)
        return self.tracker.pause_work(owner, work_id)

    def continue_work(self, context: Any, work_id: Any) -> str:
        owner = self._caller(context)
        _require_text("workId", work_id)
        return self.tracker.continue_work(owner, work_id)

    def edit_work(self, context: Any, work_id: Any, new_total: Any) -> str:
        owner = self._caller(context)
        _require_text("workId", work_id)
        check_total(new_total)
        return self.tracker.edit_work(owner, work_id, new_total)

    def finish_work(self, context: Any, work_id: Any) -> str:
        owner = self._caller(context)
        _require_text("workId", work_id)
        return self.tracker.finish_work(owner, work_id)

    def delete_work(self, context: Any, work_id: Any) -> str:
        owner = self._caller(context)
        _require_text("workId", work_id)
        return self.tracker.delete_work(owner, work_id)

    def get_work(self, context: Any, work_id: Any) -> Timesheet:
        owner = self._caller(context)
        _require_text("workId", work_id)
        return self.tracker.get_work(owner, work_id)

    def list_work(self, context: Any) -> list[Timesheet]:
        return self.tracker.list_work(self._caller(context))

    def _caller(self, context: Any) -> str:
        owner = self.resolve_identity(context)
        if not owner:
            raise UnauthenticatedError()
        return owner


def _require_text(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
