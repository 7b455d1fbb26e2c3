"""Kiosk session lifecycle: promotion from a code, heartbeat, termination, sweep.

A session's lifetime is fixed when it is created from its code
(``session_duration_days``) and is never extended by activity. Consuming the
code and inserting the session happen in one transaction guarded by a
compare-and-swap on the code status, so a concurrent reader sees either a
usable code and no session, or a used code and its session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, select, update

from kioskhub.core.errors import (
    AlreadyEnded,
    CodeAlreadyUsed,
    CodeNotFound,
    SessionExpired,
    SessionNotFound,
    SessionTerminated,
)
from kioskhub.core.events.event_models import SESSION_TERMINATED, SESSION_UPDATED, ChangeEvent
from kioskhub.core.events.notifier import ChangeNotifier, notify_safely
from kioskhub.core.utils.clock import resolve_now
from kioskhub.domains.kiosk.constants import (
    CODE_STATUS_USED,
    CODE_USABLE_STATUSES,
    REASON_ALL_TERMINATED_BY_OWNER,
    REASON_EXPIRED,
    REASON_TERMINATED_BY_OWNER,
    SYSTEM_ACTOR,
)
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode, KioskSession
from kioskhub.domains.kiosk.services.code_registry import CodeRegistry, ensure_code_usable
from kioskhub.extensions import db

logger = logging.getLogger(__name__)

_ERRORS_BY_CODE = {
    SessionNotFound.code: SessionNotFound,
    SessionTerminated.code: SessionTerminated,
    SessionExpired.code: SessionExpired,
}


@dataclass
class SessionValidation:
    valid: bool
    session: Optional[KioskSession] = None
    error: Optional[str] = None

    def raise_for_error(self) -> KioskSession:
        if not self.valid:
            raise _ERRORS_BY_CODE[self.error]()
        return self.session


class SessionManager:
    def __init__(
        self,
        registry: Optional[CodeRegistry] = None,
        notifier: Optional[ChangeNotifier] = None,
    ) -> None:
        self.registry = registry or CodeRegistry()
        self.notifier = notifier

    # --- creation ---

    def create_session(
        self,
        secret: str,
        *,
        device_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> KioskSession:
        now = resolve_now(now)
        code = self.registry.validate(secret, now=now)
        return self.promote(code, device_id=device_id, ip_address=ip_address, user_agent=user_agent, now=now)

    def promote(
        self,
        code: KioskCode,
        *,
        device_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> KioskSession:
        """Consume ``code`` and create its session atomically."""
        now = resolve_now(now)
        code_id = code.id
        duration_days = code.session_duration_days
        try:
            result = db.session.execute(
                update(KioskCode)
                .where(
                    KioskCode.id == code_id,
                    KioskCode.status.in_(CODE_USABLE_STATUSES),
                    KioskCode.expires_at > now,
                )
                .values(status=CODE_STATUS_USED, used_at=now)
            )
            if result.rowcount != 1:
                db.session.rollback()
                current = db.session.get(KioskCode, code_id, populate_existing=True)
                if current is None:
                    raise CodeNotFound()
                ensure_code_usable(current, now)
                raise CodeAlreadyUsed()

            session = KioskSession(
                code_id=code_id,
                device_id=device_id,
                started_at=now,
                last_active_at=now,
                expires_at=now + timedelta(days=duration_days),
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.session.add(session)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Kiosk session %s started from code %s (device=%s)", session.id, code_id, device_id)
        notify_safely(self.notifier, ChangeEvent(SESSION_UPDATED, entity_id=session.id))
        return session

    # --- reads ---

    def get(self, session_id: str) -> KioskSession:
        session = db.session.get(KioskSession, session_id)
        if not session:
            raise SessionNotFound()
        return session

    def validate_session(self, session_id: str, now: Optional[datetime] = None) -> SessionValidation:
        """Check a device session; an expired one is ended on first sight."""
        now = resolve_now(now)
        session = db.session.get(KioskSession, session_id) if session_id else None
        if not session:
            return SessionValidation(valid=False, error=SessionNotFound.code)
        if session.ended_at is not None:
            return SessionValidation(valid=False, session=session, error=SessionTerminated.code)
        if session.expires_at <= now:
            if self._end_sessions([session.id], SYSTEM_ACTOR, REASON_EXPIRED, now):
                logger.info("Kiosk session %s expired on validation", session.id)
            db.session.refresh(session)
            return SessionValidation(valid=False, session=session, error=SessionExpired.code)
        return SessionValidation(valid=True, session=session)

    def _active_filter(self, stmt, *, code_id: Optional[int], role_id: Optional[str], now: datetime):
        if (code_id is None) == (role_id is None):
            raise ValueError("exactly one of code_id or role_id is required")
        stmt = stmt.where(KioskSession.ended_at.is_(None), KioskSession.expires_at > now)
        if code_id is not None:
            return stmt.where(KioskSession.code_id == code_id)
        return stmt.join_from(KioskSession, KioskCode, KioskCode.id == KioskSession.code_id).where(
            KioskCode.owner_role_id == role_id
        )

    def count_active_sessions(
        self,
        *,
        code_id: Optional[int] = None,
        role_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        now = resolve_now(now)
        stmt = self._active_filter(
            select(func.count(KioskSession.id)), code_id=code_id, role_id=role_id, now=now
        )
        return db.session.execute(stmt).scalar() or 0

    def list_active_sessions(
        self,
        *,
        code_id: Optional[int] = None,
        role_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[KioskSession]:
        now = resolve_now(now)
        stmt = self._active_filter(select(KioskSession), code_id=code_id, role_id=role_id, now=now)
        return list(db.session.scalars(stmt.order_by(KioskSession.started_at.desc())))

    def active_session_counts_for_role(self, role_id: str, now: Optional[datetime] = None) -> Dict[int, int]:
        """Active session count per code id for one role."""
        now = resolve_now(now)
        stmt = self._active_filter(
            select(KioskSession.code_id, func.count(KioskSession.id)),
            code_id=None,
            role_id=role_id,
            now=now,
        ).group_by(KioskSession.code_id)
        return {code_id: count for code_id, count in db.session.execute(stmt)}

    # --- updates ---

    def touch(self, session_id: str, now: Optional[datetime] = None) -> KioskSession:
        """Heartbeat: record activity without extending the session lifetime."""
        now = resolve_now(now)
        session = self.validate_session(session_id, now=now).raise_for_error()
        session.last_active_at = now
        db.session.commit()
        return session

    def terminate(
        self,
        session_id: str,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> KioskSession:
        now = resolve_now(now)
        session = self.get(session_id)
        if session.ended_at is not None:
            raise AlreadyEnded()
        if not self._end_sessions([session_id], actor_id, reason or REASON_TERMINATED_BY_OWNER, now):
            raise AlreadyEnded()
        db.session.refresh(session)
        logger.info("Kiosk session %s terminated by %s", session_id, actor_id)
        return session

    def terminate_all_for_code(
        self,
        code_id: int,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        now = resolve_now(now)
        self.registry.get(code_id)
        open_ids = list(
            db.session.scalars(
                select(KioskSession.id).where(
                    KioskSession.code_id == code_id,
                    KioskSession.ended_at.is_(None),
                )
            )
        )
        count = self._end_sessions(open_ids, actor_id, reason or REASON_ALL_TERMINATED_BY_OWNER, now)
        if count:
            logger.info("Terminated %s kiosk sessions for code %s (actor=%s)", count, code_id, actor_id)
        return count

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """End every open session past its lifetime. Stateless and safe to repeat."""
        now = resolve_now(now)
        expired_ids = list(
            db.session.scalars(
                select(KioskSession.id).where(
                    KioskSession.ended_at.is_(None),
                    KioskSession.expires_at <= now,
                )
            )
        )
        return self._end_sessions(expired_ids, SYSTEM_ACTOR, REASON_EXPIRED, now)

    def _end_sessions(self, session_ids: List[str], actor_id: str, reason: str, now: datetime) -> int:
        """Set ended_at once per session; rows already ended are left untouched."""
        if not session_ids:
            return 0
        ended_ids: List[str] = []
        try:
            for session_id in session_ids:
                result = db.session.execute(
                    update(KioskSession)
                    .where(KioskSession.id == session_id, KioskSession.ended_at.is_(None))
                    .values(ended_at=now, terminated_by=actor_id, termination_reason=reason)
                )
                if result.rowcount == 1:
                    ended_ids.append(session_id)
        except Exception:
            db.session.rollback()
            raise
        db.session.commit()
        for session_id in ended_ids:
            notify_safely(self.notifier, ChangeEvent(SESSION_TERMINATED, entity_id=session_id))
        return len(ended_ids)


__all__ = ["SessionManager", "SessionValidation"]
