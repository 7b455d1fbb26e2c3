"""Completion validation and per-period aggregation rules.

Pure functions only: callers pass in the completion log for one task and
person, plus the start of the current reset period, and get back the derived
state. Nothing here stores or caches aggregates; they are recomputed from the
log every time.

Three task types, three policies:

* ``simple``: done once per period. The recorder reports the aggregate and
  leaves duplicate prevention to the caller.
* ``multiple_checkin``: repeatable check-ins, capped at 9 per period, never
  "complete".
* ``progress``: integer amounts in ``[1, 999]`` summed toward ``target_value``,
  capped at 99 entries per period.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence

from kioskhub.core.errors import InvalidProgressValue
from kioskhub.domains.tasks.models.task_models import (
    TASK_TYPE_MULTIPLE_CHECKIN,
    TASK_TYPE_PROGRESS,
    TASK_TYPE_SIMPLE,
)

PROGRESS_VALUE_MIN = 1
PROGRESS_VALUE_MAX = 999

_DECIMAL_RE = re.compile(r"-?[0-9]+(\.[0-9]+)?")

ENTRY_LIMITS = {
    TASK_TYPE_MULTIPLE_CHECKIN: 9,
    TASK_TYPE_PROGRESS: 99,
}


class CompletionLike(Protocol):
    completed_at: datetime
    value: Optional[str]


@dataclass(frozen=True)
class TaskAggregate:
    is_complete: bool
    completion_count: int
    progress: Optional[int] = None
    total_value: Optional[float] = None

    def as_dict(self) -> dict:
        payload = {"is_complete": self.is_complete, "completion_count": self.completion_count}
        if self.progress is not None:
            payload["progress"] = self.progress
            payload["total_value"] = self.total_value
        return payload


def validate_progress_value(value: Optional[str]) -> int:
    """Return the integer amount or raise InvalidProgressValue with a sub-reason."""
    if value is None:
        raise InvalidProgressValue(InvalidProgressValue.REASON_NOT_A_NUMBER, "Progress value is required.")
    raw = str(value).strip()
    if raw == "":
        raise InvalidProgressValue(InvalidProgressValue.REASON_NOT_A_NUMBER, "Progress value is required.")
    # Plain ASCII decimals only: no exponents, explicit plus signs or non-ASCII digits.
    if not _DECIMAL_RE.fullmatch(raw):
        raise InvalidProgressValue(InvalidProgressValue.REASON_NOT_A_NUMBER, "Value must be a number.")
    number = float(raw)
    if not number.is_integer():
        raise InvalidProgressValue(InvalidProgressValue.REASON_NOT_AN_INTEGER, "Value must be a whole number.")
    amount = int(number)
    if amount < PROGRESS_VALUE_MIN or amount > PROGRESS_VALUE_MAX:
        raise InvalidProgressValue(
            InvalidProgressValue.REASON_OUT_OF_RANGE,
            f"Value must be between {PROGRESS_VALUE_MIN} and {PROGRESS_VALUE_MAX}.",
        )
    return amount


def period_completions(completions: Iterable[CompletionLike], reset_date: datetime) -> List[CompletionLike]:
    return [c for c in completions if c.completed_at >= reset_date]


def calculate_entry_number(completions: Iterable[CompletionLike], reset_date: datetime) -> int:
    return len(period_completions(completions, reset_date)) + 1


def entry_limit(task_type: str) -> Optional[int]:
    return ENTRY_LIMITS.get(task_type)


def is_within_entry_limit(entry_number: int, task_type: str) -> bool:
    limit = entry_limit(task_type)
    return limit is None or entry_number <= limit


def _numeric(value: Optional[str]) -> float:
    try:
        number = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def calculate_total_value(completions: Iterable[CompletionLike]) -> float:
    return sum(_numeric(c.value) for c in completions)


def calculate_progress(total_value: float, target_value: Optional[int]) -> int:
    target = target_value or 1
    # Round half up, then clamp at 100.
    return min(100, math.floor(total_value / target * 100 + 0.5))


def aggregate(
    task_type: str,
    completions: Sequence[CompletionLike],
    reset_date: datetime,
    target_value: Optional[int] = None,
) -> TaskAggregate:
    relevant = period_completions(completions, reset_date)
    count = len(relevant)

    if task_type == TASK_TYPE_SIMPLE:
        return TaskAggregate(is_complete=count > 0, completion_count=count)
    if task_type == TASK_TYPE_MULTIPLE_CHECKIN:
        return TaskAggregate(is_complete=False, completion_count=count)
    if task_type == TASK_TYPE_PROGRESS:
        total = calculate_total_value(relevant)
        progress = calculate_progress(total, target_value)
        return TaskAggregate(
            is_complete=progress >= 100,
            completion_count=count,
            progress=progress,
            total_value=total,
        )
    return TaskAggregate(is_complete=False, completion_count=0)


__all__ = [
    "ENTRY_LIMITS",
    "PROGRESS_VALUE_MIN",
    "PROGRESS_VALUE_MAX",
    "TaskAggregate",
    "validate_progress_value",
    "period_completions",
    "calculate_entry_number",
    "entry_limit",
    "is_within_entry_limit",
    "calculate_total_value",
    "calculate_progress",
    "aggregate",
]
