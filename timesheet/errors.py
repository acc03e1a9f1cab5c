"""Exceptions raised by the timesheet core."""

from __future__ import annotations


class TimesheetError(Exception):
    """Base exception for timesheet errors."""

    pass


class InvalidIssueError(TimesheetError):
    """Raised when an issue reference is not a recognizable issue."""

    def __init__(self, issue: str) -> None:
        self.issue = issue
        super().__init__(f"Invalid issue: {issue!r}")


class ConcurrentSessionError(TimesheetError):
    """Raised when an owner would end up with two active sessions."""

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__("You can only start one task at a time")


class InvalidStateError(TimesheetError):
    """Raised when a transition is not legal from the record's current state."""

    message = "This transition is not allowed"

    def __init__(self, work_id: str) -> None:
        self.work_id = work_id
        super().__init__(self.message)


class PauseNotAllowedError(InvalidStateError):
    message = "You can't pause work that's been completed"


class ContinueNotAllowedError(InvalidStateError):
    message = "You can't continue work that hasn't been paused"


class FinishNotAllowedError(InvalidStateError):
    message = "You can't finish work that's not active"


class NotFoundError(TimesheetError):
    """Raised when no record with the id is visible to the caller."""

    def __init__(self, work_id: str) -> None:
        self.work_id = work_id
        super().__init__(f"Work not found: {work_id}")


class ValidationError(TimesheetError):
    """Raised when an operation argument has the wrong shape."""

    pass


class UnauthenticatedError(TimesheetError):
    """Raised when the caller identity cannot be resolved."""

    def __init__(self) -> None:
        super().__init__("You must be logged in to track work")
