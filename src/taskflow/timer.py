"""Per-task session accounting.

All functions here are pure: they take a TimeTracking value and return a
new one. The store decides when to call them and persists the result.
"""

import time
from dataclasses import replace

from taskflow.config import MAX_SESSION_MS
from taskflow.models import TimeEntry, TimeTracking


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def open_session(tracking: TimeTracking, now: int) -> TimeTracking:
    """Open a new session; no-op if one is already open."""
    if tracking.is_active:
        return tracking
    return replace(
        tracking,
        is_active=True,
        last_started=now,
        time_entries=(*tracking.time_entries, TimeEntry(start_time=now)),
    )


def close_session(
    tracking: TimeTracking, now: int, max_session_ms: int = MAX_SESSION_MS
) -> tuple[TimeTracking, int | None]:
    """Close the open session and credit it.

    Returns the new tracking state and the credited duration, or None when
    no session was open.
    """
    if not tracking.is_active:
        return tracking, None

    entries = list(tracking.time_entries)
    open_index = _last_open_index(entries)
    if open_index is None:
        start = tracking.last_started if tracking.last_started is not None else now
        entries.append(TimeEntry(start_time=start))
        open_index = len(entries) - 1

    start = entries[open_index].start_time
    duration = min(max(now - start, 0), max_session_ms)
    entries[open_index] = TimeEntry(
        start_time=start, end_time=start + duration, duration=duration
    )

    closed = TimeTracking(
        total_time_spent=tracking.total_time_spent + duration,
        is_active=False,
        last_started=None,
        time_entries=tuple(entries),
    )
    return closed, duration


def elapsed(
    tracking: TimeTracking, now: int, max_session_ms: int = MAX_SESSION_MS
) -> int:
    """Committed total plus the live part of an open session. Never mutates."""
    if not tracking.is_active or tracking.last_started is None:
        return tracking.total_time_spent
    live = min(max(now - tracking.last_started, 0), max_session_ms)
    return tracking.total_time_spent + live


def session_expired(
    tracking: TimeTracking, now: int, max_session_ms: int = MAX_SESSION_MS
) -> bool:
    """True if the open session has reached the cap."""
    if not tracking.is_active or tracking.last_started is None:
        return False
    return now - tracking.last_started >= max_session_ms


def resume_session(tracking: TimeTracking, started_at: int) -> TimeTracking:
    """Force a running session that started at started_at.

    Used to recover a timer that was running when the process stopped.
    """
    entries = list(tracking.time_entries)
    open_index = _last_open_index(entries)
    if open_index is not None and open_index == len(entries) - 1:
        entries[open_index] = TimeEntry(start_time=started_at)
    else:
        entries.append(TimeEntry(start_time=started_at))
    return replace(
        tracking, is_active=True, last_started=started_at, time_entries=tuple(entries)
    )


def close_for_export(
    tracking: TimeTracking, now: int, max_session_ms: int = MAX_SESSION_MS
) -> TimeTracking:
    """Copy with the live session folded in, for snapshots that leave the engine."""
    closed, _ = close_session(tracking, now, max_session_ms)
    return closed


def _last_open_index(entries: list[TimeEntry]) -> int | None:
    if entries and entries[-1].is_open:
        return len(entries) - 1
    return None
