"""Completion services: record, undo and status over the completion log."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from kioskhub.core.errors import (
    AlreadyCompleted,
    CompletionNotFound,
    EntryLimitExceeded,
    Forbidden,
    TaskNotFound,
    UndoNotSupported,
    UndoWindowClosed,
)
from kioskhub.core.events.event_models import COMPLETION_RECORDED, COMPLETION_UNDONE, ChangeEvent
from kioskhub.core.events.notifier import ChangeNotifier, notify_safely
from kioskhub.core.utils.clock import as_naive_utc, resolve_now
from kioskhub.domains.tasks.completion_recorder import (
    TaskAggregate,
    aggregate,
    calculate_entry_number,
    entry_limit,
    is_within_entry_limit,
    validate_progress_value,
)
from kioskhub.domains.tasks.models.task_models import (
    TASK_TYPE_PROGRESS,
    TASK_TYPE_SIMPLE,
    Task,
    TaskCompletion,
)
from kioskhub.domains.tasks.undo_window import (
    DEFAULT_UNDO_WINDOW_MINUTES,
    can_undo,
    remaining_seconds,
)
from kioskhub.extensions import db

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    completion: TaskCompletion
    aggregate: TaskAggregate
    was_cached: bool = False


def _undo_window_minutes(window_minutes: Optional[int]) -> int:
    if window_minutes is not None:
        return window_minutes
    return int(current_app.config.get("KIOSK_UNDO_WINDOW_MINUTES", DEFAULT_UNDO_WINDOW_MINUTES))


def _idempotency_key(
    task_id: int,
    person_id: str,
    value: Optional[str],
    device_id: Optional[str],
    now: datetime,
) -> str:
    second = int(now.replace(tzinfo=timezone.utc).timestamp())
    raw = f"{task_id}:{person_id}:{value or ''}:{device_id or ''}:{second}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if not task:
        raise TaskNotFound()
    return task


def list_period_completions(task_id: int, person_id: str, reset_date: datetime) -> List[TaskCompletion]:
    return (
        TaskCompletion.query.filter(
            TaskCompletion.task_id == task_id,
            TaskCompletion.person_id == person_id,
            TaskCompletion.completed_at >= as_naive_utc(reset_date),
        )
        .order_by(TaskCompletion.completed_at.asc(), TaskCompletion.id.asc())
        .all()
    )


def _aggregate_for(task: Task, person_id: str, reset_date: datetime) -> TaskAggregate:
    completions = list_period_completions(task.id, person_id, reset_date)
    return aggregate(task.type, completions, as_naive_utc(reset_date), task.target_value)


def record_completion(
    task_id: int,
    person_id: str,
    *,
    reset_date: datetime,
    value: Optional[str] = None,
    notes: Optional[str] = None,
    device_id: Optional[str] = None,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
    notifier: Optional[ChangeNotifier] = None,
) -> CompletionResult:
    now = resolve_now(now)
    reset_date = as_naive_utc(reset_date)
    task = get_task(task_id)

    key = _idempotency_key(task.id, person_id, value, device_id, now)
    cached = TaskCompletion.query.filter_by(idempotency_key=key).first()
    if cached:
        return CompletionResult(cached, _aggregate_for(task, person_id, reset_date), was_cached=True)

    stored_value = None
    if task.type == TASK_TYPE_PROGRESS:
        stored_value = str(validate_progress_value(value))

    completions = list_period_completions(task.id, person_id, reset_date)
    if task.type == TASK_TYPE_SIMPLE and completions:
        raise AlreadyCompleted()

    entry_number = calculate_entry_number(completions, reset_date)
    if not is_within_entry_limit(entry_number, task.type):
        limit = entry_limit(task.type)
        raise EntryLimitExceeded(f"Maximum {limit} entries per period reached.", limit=limit)

    completion = TaskCompletion(
        task_id=task.id,
        person_id=person_id,
        completed_at=now,
        value=stored_value,
        entry_number=entry_number,
        notes=(notes or "").strip() or None,
        device_id=device_id,
        session_id=session_id,
        idempotency_key=key,
    )
    db.session.add(completion)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        cached = TaskCompletion.query.filter_by(idempotency_key=key).first()
        if not cached:
            raise
        return CompletionResult(cached, _aggregate_for(task, person_id, reset_date), was_cached=True)

    logger.info(
        "Recorded completion %s for task %s (person=%s, entry=%s)",
        completion.id,
        task.id,
        person_id,
        entry_number,
    )
    notify_safely(notifier, ChangeEvent(COMPLETION_RECORDED, entity_id=str(completion.id), person_id=person_id))
    return CompletionResult(completion, _aggregate_for(task, person_id, reset_date))


def undo_completion(
    completion_id: int,
    *,
    person_id: Optional[str] = None,
    window_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
    notifier: Optional[ChangeNotifier] = None,
) -> TaskCompletion:
    now = resolve_now(now)
    window = _undo_window_minutes(window_minutes)
    completion = db.session.get(TaskCompletion, completion_id)
    if not completion:
        raise CompletionNotFound()
    if person_id is not None and str(completion.person_id) != str(person_id):
        raise Forbidden("Completion belongs to another person.")

    task_type = completion.task.type
    if task_type != TASK_TYPE_SIMPLE:
        raise UndoNotSupported()
    if not can_undo(completion.completed_at, task_type, window, now=now):
        raise UndoWindowClosed()

    try:
        db.session.delete(completion)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Undid completion %s for task %s", completion_id, completion.task_id)
    notify_safely(
        notifier,
        ChangeEvent(COMPLETION_UNDONE, entity_id=str(completion_id), person_id=completion.person_id),
    )
    return completion


def get_task_status(
    task_id: int,
    person_id: str,
    *,
    reset_date: datetime,
    window_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Aggregate for the period plus undo details for the latest completion."""
    now = resolve_now(now)
    window = _undo_window_minutes(window_minutes)
    task = get_task(task_id)
    completions = list_period_completions(task.id, person_id, reset_date)
    payload = aggregate(task.type, completions, as_naive_utc(reset_date), task.target_value).as_dict()
    payload["task_id"] = task.id
    payload["type"] = task.type

    latest = completions[-1] if completions else None
    undoable = bool(latest) and can_undo(latest.completed_at, task.type, window, now=now)
    payload["completion_id"] = latest.id if latest else None
    payload["can_undo"] = undoable
    payload["remaining_seconds"] = remaining_seconds(latest.completed_at, window, now=now) if undoable else 0
    return payload


__all__ = [
    "CompletionResult",
    "get_task",
    "list_period_completions",
    "record_completion",
    "undo_completion",
    "get_task_status",
]
