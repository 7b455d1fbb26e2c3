"""Tests for kiosk code issuance, validation and revocation."""

from datetime import datetime, timedelta

import pytest

pytestmark = pytest.mark.integration

from kioskhub.core.billing.tier_limits import ConfiguredTierLimits
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
from kioskhub.domains.kiosk import safe_words
from kioskhub.domains.kiosk.constants import (
    CODE_SCOPE_GROUP,
    CODE_SCOPE_PERSON,
    CODE_STATUS_ACTIVE,
    CODE_STATUS_EXPIRED,
    CODE_STATUS_REVOKED,
    CODE_STATUS_USED,
)
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode
from kioskhub.domains.kiosk.services import CodeRegistry, normalize_code
from kioskhub.domains.kiosk.services.code_registry import owner_prefix
from kioskhub.extensions import db

NOW = datetime(2026, 3, 2, 9, 0, 0)
ROLE_ID = "role-1"


def _registry(limit=3):
    return CodeRegistry(tier_limits=ConfiguredTierLimits({"FREE": limit}))


class TestIssue:
    def test_issue_builds_owner_prefixed_secret(self, app):
        code = _registry().issue(ROLE_ID, owner_name="Sarah Connor", now=NOW)

        parts = code.code.split("-")
        assert parts[0] == "SARAH"
        assert len(parts) == 3
        assert all(safe_words.is_safe_word(word) for word in parts[1:])
        assert code.status == CODE_STATUS_ACTIVE
        assert code.expires_at == NOW + timedelta(minutes=10)
        assert code.session_duration_days == 90

    def test_issue_honours_overrides(self, app):
        code = _registry().issue(
            ROLE_ID,
            expires_in_minutes=30,
            session_duration_days=7,
            word_count=3,
            now=NOW,
        )
        assert code.code.startswith("KIOSK-")
        assert len(code.words) == 4
        assert code.expires_at == NOW + timedelta(minutes=30)
        assert code.session_duration_days == 7

    def test_scope_requires_target(self, app):
        registry = _registry()
        with pytest.raises(InvalidScope):
            registry.issue(ROLE_ID, scope=CODE_SCOPE_GROUP, now=NOW)
        with pytest.raises(InvalidScope):
            registry.issue(ROLE_ID, scope=CODE_SCOPE_PERSON, now=NOW)
        with pytest.raises(InvalidScope):
            registry.issue(ROLE_ID, scope="household", now=NOW)

    def test_person_scope_keeps_only_person(self, app):
        code = _registry().issue(ROLE_ID, scope=CODE_SCOPE_PERSON, person_id="kid-1", group_id="g-1", now=NOW)
        assert code.person_id == "kid-1"
        assert code.group_id is None

    def test_tier_limit_counts_live_codes_only(self, app):
        registry = _registry(limit=1)
        first = registry.issue(ROLE_ID, now=NOW)

        with pytest.raises(TierLimitExceeded) as exc_info:
            registry.issue(ROLE_ID, now=NOW)
        assert exc_info.value.details == {"current": 1, "limit": 1}

        # Another role has its own budget.
        registry.issue("role-2", now=NOW)

        registry.revoke(first.id, actor_id="owner-1", now=NOW)
        assert registry.issue(ROLE_ID, now=NOW).status == CODE_STATUS_ACTIVE

    def test_expired_codes_do_not_count_toward_limit(self, app):
        registry = _registry(limit=1)
        registry.issue(ROLE_ID, now=NOW)
        later = NOW + timedelta(minutes=11)
        assert registry.issue(ROLE_ID, now=later).status == CODE_STATUS_ACTIVE

    def test_tier_lookup_selects_limit(self, app):
        limits = ConfiguredTierLimits({"FREE": 1, "GOLD": 10}, tier_lookup=lambda role_id: "gold")
        registry = CodeRegistry(tier_limits=limits)
        for _ in range(3):
            registry.issue(ROLE_ID, now=NOW)
        assert registry.count_active(ROLE_ID, now=NOW) == 3

    def test_generation_gives_up_after_collisions(self, app, monkeypatch):
        registry = _registry()
        monkeypatch.setattr(
            "kioskhub.domains.kiosk.services.code_registry.get_random_safe_words",
            lambda count: ["ocean", "tiger"],
        )
        registry.issue(ROLE_ID, now=NOW)
        with pytest.raises(CodeGenerationFailed):
            registry.issue(ROLE_ID, now=NOW)


class TestValidate:
    def test_normalize_accepts_spaces_and_case(self):
        assert normalize_code("  sarah ocean  tiger ") == "SARAH-OCEAN-TIGER"
        assert owner_prefix("  ") == "KIOSK"
        assert owner_prefix("Zoë-Ann Smith") == "ZOANN"

    def test_validate_returns_code_without_consuming(self, app):
        registry = _registry()
        code = registry.issue(ROLE_ID, owner_name="Sam", now=NOW)

        found = registry.validate(code.code.lower().replace("-", " "), now=NOW)

        assert found.id == code.id
        assert db.session.get(KioskCode, code.id).status == CODE_STATUS_ACTIVE

    def test_unknown_code(self, app):
        with pytest.raises(CodeNotFound):
            _registry().validate("NOBODY-HOME-HERE", now=NOW)
        with pytest.raises(CodeNotFound):
            _registry().validate("   ", now=NOW)

    def test_expired_code(self, app):
        code = _registry().issue(ROLE_ID, now=NOW)
        with pytest.raises(CodeExpired):
            _registry().validate(code.code, now=NOW + timedelta(minutes=10))

    def test_used_and_revoked_codes_are_distinguished(self, app):
        registry = _registry()
        used = registry.issue(ROLE_ID, now=NOW)
        used.status = CODE_STATUS_USED
        revoked = registry.issue(ROLE_ID, now=NOW)
        db.session.commit()
        registry.revoke(revoked.id, actor_id="owner-1", now=NOW)

        with pytest.raises(CodeAlreadyUsed):
            registry.validate(used.code, now=NOW)
        with pytest.raises(CodeRevoked):
            registry.validate(revoked.code, now=NOW)


class TestRevokeAndSweep:
    def test_revoke_records_actor(self, app):
        registry = _registry()
        code = registry.issue(ROLE_ID, now=NOW)

        revoked = registry.revoke(code.id, actor_id="owner-1", now=NOW)

        assert revoked.status == CODE_STATUS_REVOKED
        assert revoked.revoked_by == "owner-1"
        assert revoked.revoked_at == NOW

    def test_revoke_terminal_code_fails(self, app):
        registry = _registry()
        code = registry.issue(ROLE_ID, now=NOW)
        registry.revoke(code.id, actor_id="owner-1", now=NOW)
        with pytest.raises(AlreadyTerminal):
            registry.revoke(code.id, actor_id="owner-1", now=NOW)
        with pytest.raises(CodeNotFound):
            registry.revoke(9999, actor_id="owner-1", now=NOW)

    def test_unswept_expired_code_cannot_be_revoked(self, app):
        registry = _registry()
        code = registry.issue(ROLE_ID, now=NOW - timedelta(minutes=30))

        with pytest.raises(CodeExpired):
            registry.validate(code.code, now=NOW)
        with pytest.raises(AlreadyTerminal):
            registry.revoke(code.id, actor_id="owner-1", now=NOW)

        stored = db.session.get(KioskCode, code.id)
        assert stored.status == CODE_STATUS_ACTIVE
        assert stored.revoked_at is None

    def test_sweep_marks_expired_and_is_repeatable(self, app):
        registry = _registry()
        stale = registry.issue(ROLE_ID, now=NOW - timedelta(minutes=30))
        fresh = registry.issue(ROLE_ID, now=NOW)

        assert registry.sweep_expired(now=NOW) == 1
        assert registry.sweep_expired(now=NOW) == 0
        assert db.session.get(KioskCode, stale.id).status == CODE_STATUS_EXPIRED
        assert db.session.get(KioskCode, fresh.id).status == CODE_STATUS_ACTIVE

    def test_revoke_all_active_by_role(self, app):
        registry = _registry()
        registry.issue(ROLE_ID, now=NOW)
        registry.issue(ROLE_ID, now=NOW)
        other = registry.issue("role-2", now=NOW)
        stale = registry.issue(ROLE_ID, now=NOW - timedelta(minutes=30))

        assert registry.revoke_all_active(ROLE_ID, actor_id="system", now=NOW) == 2
        assert db.session.get(KioskCode, stale.id).revoked_at is None
        assert registry.list_active(ROLE_ID, now=NOW) == []
        assert [c.id for c in registry.list_active("role-2", now=NOW)] == [other.id]
