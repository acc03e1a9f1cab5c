from __future__ import annotations

from .models import Timesheet


def format_duration(total_ms: int) -> str:
    """Render a millisecond duration as HH:MM:SS."""
    safe_seconds = max(0, int(total_ms)) // 1000
    hours, remainder = divmod(safe_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def describe_work(record: Timesheet, total_ms: int) -> str:
    line = f"`{record.id}` [{record.project}] {record.state} `{format_duration(total_ms)}` {record.issue}"
    if record.history:
        line += f" (edited {len(record.history)}x)"
    return line


def build_work_list(records: list[Timesheet], totals: dict[str, int]) -> str:
    if not records:
        return "No tracked work yet."

    lines = ["Your work:"]
    lines.extend(f"- {describe_work(record, totals.get(record.id, record.total_time))}" for record in records)
    return "\n".join(lines)
