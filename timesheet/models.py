from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    previous_total: int
    edited_at_utc: datetime


@dataclass(frozen=True, slots=True)
class Timesheet:
    id: str
    owner: str
    issue: str
    project: str
    created_at_utc: datetime
    active: bool = False
    paused: bool = False
    finished: bool = False
    total_time: int = 0
    last_start_utc: datetime | None = None
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)

    @property
    def state(self) -> str:
        if self.active:
            return "active"
        if self.paused:
            return "paused"
        return "finished"
