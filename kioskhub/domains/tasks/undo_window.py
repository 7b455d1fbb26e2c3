"""Undo eligibility for a single completion.

Only simple tasks can be undone: they have exactly one entry per period, so
reversing it is unambiguous. Time is measured continuously from
``completed_at``; the window is closed once strictly more than
``window_minutes`` have elapsed.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from kioskhub.core.utils.clock import as_naive_utc, resolve_now
from kioskhub.domains.tasks.models.task_models import TASK_TYPE_SIMPLE

DEFAULT_UNDO_WINDOW_MINUTES = 5


def seconds_since(completed_at: datetime, now: Optional[datetime] = None) -> float:
    """Elapsed seconds, never negative (future timestamps count as just now)."""
    elapsed = (resolve_now(now) - as_naive_utc(completed_at)).total_seconds()
    return max(0.0, elapsed)


def undo_deadline(completed_at: datetime, window_minutes: int = DEFAULT_UNDO_WINDOW_MINUTES) -> datetime:
    return as_naive_utc(completed_at) + timedelta(minutes=window_minutes)


def can_undo(
    completed_at: datetime,
    task_type: str,
    window_minutes: int = DEFAULT_UNDO_WINDOW_MINUTES,
    now: Optional[datetime] = None,
) -> bool:
    if task_type != TASK_TYPE_SIMPLE:
        return False
    return seconds_since(completed_at, now) <= window_minutes * 60


def remaining_seconds(
    completed_at: datetime,
    window_minutes: int = DEFAULT_UNDO_WINDOW_MINUTES,
    now: Optional[datetime] = None,
) -> int:
    remaining = window_minutes * 60 - seconds_since(completed_at, now)
    return max(0, math.ceil(remaining))


__all__ = [
    "DEFAULT_UNDO_WINDOW_MINUTES",
    "seconds_since",
    "undo_deadline",
    "can_undo",
    "remaining_seconds",
]
