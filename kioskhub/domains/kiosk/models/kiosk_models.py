"""Kiosk code and session models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship

from kioskhub.core.utils.clock import utcnow
from kioskhub.domains.kiosk.constants import CODE_SCOPE_ROLE, CODE_STATUS_ACTIVE
from kioskhub.extensions import db


class KioskCode(db.Model):
    __tablename__ = "kiosk_code"
    __table_args__ = (
        db.Index("ix_kiosk_code_code_status", "code", "status"),
        db.Index("ix_kiosk_code_role_status_expires", "owner_role_id", "status", "expires_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_role_id: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    scope: Mapped[str] = mapped_column(db.String(16), nullable=False, default=CODE_SCOPE_ROLE)
    group_id: Mapped[str | None] = mapped_column(db.String(64))
    person_id: Mapped[str | None] = mapped_column(db.String(64))
    code: Mapped[str] = mapped_column(db.String(128), nullable=False)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=CODE_STATUS_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    session_duration_days: Mapped[int] = mapped_column(nullable=False, default=90)
    used_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(db.String(64))

    sessions: Mapped[list["KioskSession"]] = relationship(
        "KioskSession",
        back_populates="kiosk_code",
        cascade="all, delete-orphan",
    )

    @property
    def words(self) -> list[str]:
        return self.code.split("-")


class KioskSession(db.Model):
    __tablename__ = "kiosk_session"
    __table_args__ = (
        db.Index("ix_kiosk_session_code_ended", "code_id", "ended_at"),
        db.Index("ix_kiosk_session_ended_expires", "ended_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code_id: Mapped[int] = mapped_column(
        db.ForeignKey("kiosk_code.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    device_id: Mapped[str] = mapped_column(db.String(128), nullable=False)
    started_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)
    terminated_by: Mapped[str | None] = mapped_column(db.String(64))
    termination_reason: Mapped[str | None] = mapped_column(db.String(255))
    ip_address: Mapped[str | None] = mapped_column(db.String(64))
    user_agent: Mapped[str | None] = mapped_column(db.String(512))

    kiosk_code: Mapped[KioskCode] = relationship("KioskCode", back_populates="sessions")

    def is_active(self, now: datetime) -> bool:
        return self.ended_at is None and self.expires_at > now
