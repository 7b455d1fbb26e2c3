"""Kiosk code issuance, validation and revocation."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from flask import current_app
from sqlalchemy import func, update

from kioskhub.core.billing.tier_limits import ConfiguredTierLimits, TierLimitSource
from kioskhub.core.errors import (
    AlreadyTerminal,
    CodeAlreadyUsed,
    CodeExpired,
    CodeGenerationFailed,
    CodeNotFound,
    CodeRevoked,
    InvalidScope,
    TierLimitExceeded,
)
from kioskhub.core.utils.clock import resolve_now
from kioskhub.domains.kiosk.constants import (
    CODE_SCOPE_GROUP,
    CODE_SCOPE_PERSON,
    CODE_SCOPE_ROLE,
    CODE_SCOPES,
    CODE_STATUS_ACTIVE,
    CODE_STATUS_EXPIRED,
    CODE_STATUS_REVOKED,
    CODE_STATUS_USED,
    CODE_TERMINAL_STATUSES,
    CODE_USABLE_STATUSES,
    MAX_CODE_GENERATION_ATTEMPTS,
)
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode
from kioskhub.domains.kiosk.safe_words import get_random_safe_words
from kioskhub.extensions import db

logger = logging.getLogger(__name__)

DEFAULT_CODE_PREFIX = "KIOSK"


def normalize_code(raw: Optional[str]) -> str:
    """Accept codes typed with spaces or dashes in any case (e.g. "ocean tiger")."""
    return re.sub(r"\s+", "-", (raw or "").strip()).upper()


def owner_prefix(owner_name: Optional[str]) -> str:
    first = (owner_name or "").strip().split(" ")[0] if owner_name else ""
    cleaned = re.sub(r"[^A-Z0-9]", "", first.upper())
    return cleaned or DEFAULT_CODE_PREFIX


def ensure_code_usable(code: KioskCode, now: datetime) -> None:
    """Raise the credential error matching the code's state; return when usable."""
    if code.status == CODE_STATUS_USED:
        raise CodeAlreadyUsed()
    if code.status == CODE_STATUS_REVOKED:
        raise CodeRevoked()
    if code.status == CODE_STATUS_EXPIRED or code.expires_at <= now:
        raise CodeExpired()
    if code.status not in CODE_USABLE_STATUSES:
        raise CodeNotFound()


class CodeRegistry:
    """Issues short-lived kiosk codes and reports their state. Validation never writes."""

    def __init__(
        self,
        tier_limits: Optional[TierLimitSource] = None,
        settings: Optional[Mapping] = None,
    ) -> None:
        self._tier_limits = tier_limits
        self._settings = settings

    @property
    def settings(self) -> Mapping:
        return self._settings if self._settings is not None else current_app.config

    @property
    def tier_limits(self) -> TierLimitSource:
        if self._tier_limits is None:
            self._tier_limits = ConfiguredTierLimits.from_config(self.settings)
        return self._tier_limits

    # --- queries ---

    def get(self, code_id: int) -> KioskCode:
        code = db.session.get(KioskCode, code_id)
        if not code:
            raise CodeNotFound()
        return code

    def _live_query(self, now: datetime):
        return KioskCode.query.filter(
            KioskCode.status.in_(CODE_USABLE_STATUSES),
            KioskCode.expires_at > now,
        )

    def list_active(self, role_id: str, now: Optional[datetime] = None) -> List[KioskCode]:
        now = resolve_now(now)
        return (
            self._live_query(now)
            .filter(KioskCode.owner_role_id == role_id)
            .order_by(KioskCode.created_at.desc(), KioskCode.id.desc())
            .all()
        )

    def count_active(self, role_id: str, now: Optional[datetime] = None) -> int:
        now = resolve_now(now)
        return (
            db.session.query(func.count(KioskCode.id))
            .filter(
                KioskCode.owner_role_id == role_id,
                KioskCode.status.in_(CODE_USABLE_STATUSES),
                KioskCode.expires_at > now,
            )
            .scalar()
            or 0
        )

    # --- commands ---

    def issue(
        self,
        role_id: str,
        *,
        scope: str = CODE_SCOPE_ROLE,
        owner_name: Optional[str] = None,
        group_id: Optional[str] = None,
        person_id: Optional[str] = None,
        expires_in_minutes: Optional[int] = None,
        session_duration_days: Optional[int] = None,
        word_count: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> KioskCode:
        now = resolve_now(now)
        self._check_scope(scope, group_id, person_id)

        limit = self.tier_limits.kiosk_code_limit(role_id)
        current = self.count_active(role_id, now=now)
        if current >= limit:
            logger.info("Kiosk code tier limit reached for role %s (%s/%s)", role_id, current, limit)
            raise TierLimitExceeded(
                f"Tier limit reached: {current}/{limit} active kiosk codes.",
                current=current,
                limit=limit,
            )

        expires_in = expires_in_minutes or int(self.settings.get("KIOSK_CODE_EXPIRES_MINUTES", 10))
        duration_days = session_duration_days or int(self.settings.get("KIOSK_SESSION_DURATION_DAYS", 90))
        words = word_count or int(self.settings.get("KIOSK_CODE_WORD_COUNT", 2))
        if words not in (2, 3):
            raise ValueError("word_count must be 2 or 3")

        prefix = owner_prefix(owner_name)
        for _ in range(MAX_CODE_GENERATION_ATTEMPTS):
            secret = "-".join([prefix] + [w.upper() for w in get_random_safe_words(words)])
            if self._live_query(now).filter(KioskCode.code == secret).first():
                continue
            code = KioskCode(
                owner_role_id=role_id,
                scope=scope,
                group_id=group_id if scope == CODE_SCOPE_GROUP else None,
                person_id=person_id if scope == CODE_SCOPE_PERSON else None,
                code=secret,
                status=CODE_STATUS_ACTIVE,
                created_at=now,
                expires_at=now + timedelta(minutes=expires_in),
                session_duration_days=duration_days,
            )
            db.session.add(code)
            db.session.commit()
            logger.info("Issued kiosk code %s for role %s (scope=%s)", code.id, role_id, scope)
            return code

        raise CodeGenerationFailed()

    def validate(self, secret: str, now: Optional[datetime] = None) -> KioskCode:
        """Return the usable code for ``secret`` or raise a distinguishable credential error."""
        now = resolve_now(now)
        normalized = normalize_code(secret)
        if not normalized:
            raise CodeNotFound()

        code = (
            KioskCode.query.filter(
                KioskCode.code == normalized,
                KioskCode.status.in_(CODE_USABLE_STATUSES),
            )
            .order_by(KioskCode.created_at.desc(), KioskCode.id.desc())
            .first()
        )
        if code is None:
            # Fall back to the most recent code with this secret to explain why it is unusable.
            code = (
                KioskCode.query.filter(KioskCode.code == normalized)
                .order_by(KioskCode.created_at.desc(), KioskCode.id.desc())
                .first()
            )
        if code is None:
            raise CodeNotFound()
        ensure_code_usable(code, now)
        return code

    def revoke(self, code_id: int, *, actor_id: Optional[str] = None, now: Optional[datetime] = None) -> KioskCode:
        now = resolve_now(now)
        code = self.get(code_id)
        # A code past expires_at is expired even before the sweep records it.
        if code.status in CODE_TERMINAL_STATUSES or code.expires_at <= now:
            raise AlreadyTerminal()

        result = db.session.execute(
            update(KioskCode)
            .where(
                KioskCode.id == code_id,
                KioskCode.status.in_(CODE_USABLE_STATUSES),
                KioskCode.expires_at > now,
            )
            .values(status=CODE_STATUS_REVOKED, revoked_at=now, revoked_by=actor_id)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise AlreadyTerminal()
        db.session.commit()
        db.session.refresh(code)
        logger.info("Revoked kiosk code %s (actor=%s)", code_id, actor_id)
        return code

    def revoke_all_active(
        self,
        role_id: Optional[str] = None,
        *,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Bulk revoke every pending/active code, optionally for one role."""
        now = resolve_now(now)
        stmt = update(KioskCode).where(
            KioskCode.status.in_(CODE_USABLE_STATUSES),
            KioskCode.expires_at > now,
        )
        if role_id is not None:
            stmt = stmt.where(KioskCode.owner_role_id == role_id)
        result = db.session.execute(
            stmt.values(status=CODE_STATUS_REVOKED, revoked_at=now, revoked_by=actor_id)
        )
        db.session.commit()
        return result.rowcount or 0

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Mark pending/active codes past their activation window as expired. Safe to repeat."""
        now = resolve_now(now)
        result = db.session.execute(
            update(KioskCode)
            .where(KioskCode.status.in_(CODE_USABLE_STATUSES), KioskCode.expires_at <= now)
            .values(status=CODE_STATUS_EXPIRED)
        )
        db.session.commit()
        return result.rowcount or 0

    @staticmethod
    def _check_scope(scope: str, group_id: Optional[str], person_id: Optional[str]) -> None:
        if scope not in CODE_SCOPES:
            raise InvalidScope(f"Unknown scope '{scope}'.")
        if scope == CODE_SCOPE_GROUP and not group_id:
            raise InvalidScope("Group codes need a group_id.")
        if scope == CODE_SCOPE_PERSON and not person_id:
            raise InvalidScope("Individual codes need a person_id.")


__all__ = ["CodeRegistry", "normalize_code", "owner_prefix", "ensure_code_usable"]
