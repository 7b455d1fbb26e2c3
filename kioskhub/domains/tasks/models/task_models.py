"""Task and completion models with prefixed tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship

from kioskhub.core.utils.clock import utcnow
from kioskhub.extensions import db

TASK_TYPE_SIMPLE = "simple"
TASK_TYPE_MULTIPLE_CHECKIN = "multiple_checkin"
TASK_TYPE_PROGRESS = "progress"
TASK_TYPES = (TASK_TYPE_SIMPLE, TASK_TYPE_MULTIPLE_CHECKIN, TASK_TYPE_PROGRESS)
TASK_TYPE_CHECK = "type IN (" + ", ".join(f"'{t}'" for t in TASK_TYPES) + ")"


class Task(db.Model):
    """Routine task mirrored from the authoring service; read-only here."""

    __tablename__ = "tasks_task"
    __table_args__ = (db.CheckConstraint(TASK_TYPE_CHECK, name="ck_tasks_task_type"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    role_id: Mapped[str] = mapped_column(db.String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    type: Mapped[str] = mapped_column(db.String(32), nullable=False, default=TASK_TYPE_SIMPLE)
    target_value: Mapped[int | None] = mapped_column(nullable=True)

    completions: Mapped[list["TaskCompletion"]] = relationship(
        "TaskCompletion",
        back_populates="task",
        cascade="all, delete-orphan",
    )


class TaskCompletion(db.Model):
    __tablename__ = "tasks_task_completion"
    __table_args__ = (
        db.Index("ix_tasks_completion_task_person_completed", "task_id", "person_id", "completed_at"),
        db.UniqueConstraint("idempotency_key", name="uq_tasks_completion_idempotency_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    task_id: Mapped[int] = mapped_column(
        db.ForeignKey("tasks_task.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    person_id: Mapped[str] = mapped_column(db.String(64), index=True, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    value: Mapped[str | None] = mapped_column(db.String(32))
    entry_number: Mapped[int] = mapped_column(nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(db.Text)
    device_id: Mapped[str | None] = mapped_column(db.String(128))
    session_id: Mapped[str | None] = mapped_column(db.String(36))
    idempotency_key: Mapped[str] = mapped_column(db.String(64), nullable=False)

    task: Mapped[Task] = relationship("Task", back_populates="completions")
