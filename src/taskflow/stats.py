"""Time spent per task within a period."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from taskflow.config import MAX_SESSION_MS
from taskflow.models import Task


class StatsPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TaskTimeStat:
    task_id: str
    title: str
    time_spent: int  # ms


@dataclass(frozen=True)
class TimeStats:
    total_time: int = 0
    task_stats: list[TaskTimeStat] = field(default_factory=list)


def period_window(
    period: StatsPeriod,
    now: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[int, int]:
    """Resolve a period to an epoch-ms [start, end) window.

    day starts at UTC midnight; week, month and year are rolling windows
    of 7, 30 and 365 days ending now. custom needs both start and end.
    """
    if period == StatsPeriod.CUSTOM:
        if start is None or end is None:
            raise ValueError("Custom period needs start and end")
        window_start, window_end = _to_ms(start), _to_ms(end)
        if window_end < window_start:
            raise ValueError("Period end is before its start")
        return window_start, window_end

    now_dt = datetime.fromtimestamp(now / 1000, tz=timezone.utc)
    if period == StatsPeriod.DAY:
        midnight = now_dt.replace(hour=0, minute=0, second=0, microsecond=0)
        return _to_ms(midnight), now
    days = {StatsPeriod.WEEK: 7, StatsPeriod.MONTH: 30, StatsPeriod.YEAR: 365}[period]
    return _to_ms(now_dt - timedelta(days=days)), now


def time_statistics(
    tasks: Iterable[Task],
    window_start: int,
    window_end: int,
    now: int,
    max_session_ms: int = MAX_SESSION_MS,
) -> TimeStats:
    """Overlap of each task's time entries with the window.

    An open entry counts up to now, capped at max_session_ms.
    """
    stats: list[TaskTimeStat] = []
    for task in tasks:
        spent = 0
        for entry in task.time_tracking.time_entries:
            if entry.end_time is not None:
                entry_end = entry.end_time
            else:
                entry_end = min(now, entry.start_time + max_session_ms)
            overlap = min(entry_end, window_end) - max(entry.start_time, window_start)
            if overlap > 0:
                spent += overlap
        if spent > 0:
            stats.append(TaskTimeStat(task_id=task.id, title=task.title, time_spent=spent))

    stats.sort(key=lambda s: s.time_spent, reverse=True)
    return TimeStats(total_time=sum(s.time_spent for s in stats), task_stats=stats)


def _to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)
