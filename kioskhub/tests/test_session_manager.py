"""Tests for kiosk session promotion, validation and termination."""

from datetime import datetime, timedelta
from threading import Barrier, Thread

import pytest
from sqlalchemy.exc import IntegrityError

pytestmark = pytest.mark.integration

from kioskhub import create_app
from kioskhub.config import TestingConfig
from kioskhub.core.billing.tier_limits import ConfiguredTierLimits
from kioskhub.core.errors import (
    AlreadyEnded,
    CodeAlreadyUsed,
    CodeExpired,
    CodeNotFound,
    CodeRevoked,
    SessionExpired,
    SessionNotFound,
    SessionTerminated,
)
from kioskhub.core.events.event_models import SESSION_TERMINATED, SESSION_UPDATED
from kioskhub.domains.kiosk.constants import CODE_STATUS_USED, REASON_EXPIRED, SYSTEM_ACTOR
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode, KioskSession
from kioskhub.domains.kiosk.services import CodeRegistry, SessionManager
from kioskhub.extensions import db

NOW = datetime(2026, 3, 2, 9, 0, 0)
ROLE_ID = "role-1"


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def registry(app):
    return CodeRegistry(tier_limits=ConfiguredTierLimits({"FREE": 10}))


@pytest.fixture()
def manager(registry, notifier):
    return SessionManager(registry=registry, notifier=notifier)


def _start(manager, registry, device_id="tablet-1", now=NOW, **issue_kwargs):
    code = registry.issue(ROLE_ID, now=now, **issue_kwargs)
    return code, manager.create_session(code.code, device_id=device_id, now=now)


class TestCreateSession:
    def test_promotes_code_and_fixes_lifetime(self, manager, registry, notifier):
        code, session = _start(manager, registry, session_duration_days=30)

        assert session.code_id == code.id
        assert session.device_id == "tablet-1"
        assert session.started_at == NOW
        assert session.last_active_at == NOW
        assert session.expires_at == NOW + timedelta(days=30)
        stored = db.session.get(KioskCode, code.id)
        assert stored.status == CODE_STATUS_USED
        assert stored.used_at == NOW
        assert [e.event_type for e in notifier.events] == [SESSION_UPDATED]

    def test_used_code_never_starts_a_second_session(self, manager, registry):
        code, _ = _start(manager, registry)
        with pytest.raises(CodeAlreadyUsed):
            manager.create_session(code.code, device_id="tablet-2", now=NOW)
        with pytest.raises(CodeAlreadyUsed):
            manager.create_session(code.code, device_id="tablet-2", now=NOW + timedelta(seconds=1))
        assert KioskSession.query.count() == 1

    def test_stale_validation_loses_the_race(self, manager, registry):
        code = registry.issue(ROLE_ID, now=NOW)
        first_view = registry.validate(code.code, now=NOW)
        second_view = registry.validate(code.code, now=NOW)

        manager.promote(first_view, device_id="tablet-1", now=NOW)
        with pytest.raises(CodeAlreadyUsed):
            manager.promote(second_view, device_id="tablet-2", now=NOW)

        assert KioskSession.query.filter_by(code_id=code.id).count() == 1
        assert db.session.get(KioskCode, code.id).status == CODE_STATUS_USED

    def test_failed_insert_leaves_code_usable(self, manager, registry):
        code = registry.issue(ROLE_ID, now=NOW)

        # device_id is NOT NULL, so the session insert fails after the status update.
        with pytest.raises(IntegrityError):
            manager.create_session(code.code, device_id=None, now=NOW)

        assert KioskSession.query.count() == 0
        assert registry.validate(code.code, now=NOW).id == code.id

    def test_expired_and_revoked_codes_rejected(self, manager, registry):
        expired = registry.issue(ROLE_ID, now=NOW - timedelta(minutes=20))
        revoked = registry.issue(ROLE_ID, now=NOW)
        registry.revoke(revoked.id, actor_id="owner-1", now=NOW)

        with pytest.raises(CodeExpired):
            manager.create_session(expired.code, device_id="tablet-1", now=NOW)
        with pytest.raises(CodeRevoked):
            manager.create_session(revoked.code, device_id="tablet-1", now=NOW)
        with pytest.raises(CodeNotFound):
            manager.create_session("NOPE-NOPE-NOPE", device_id="tablet-1", now=NOW)


class TestValidateSession:
    def test_active_session_is_valid(self, manager, registry):
        _, session = _start(manager, registry)
        result = manager.validate_session(session.id, now=NOW + timedelta(days=1))
        assert result.valid is True
        assert result.session.id == session.id

    def test_unknown_session(self, manager):
        result = manager.validate_session("missing", now=NOW)
        assert result.valid is False
        assert result.error == SessionNotFound.code
        with pytest.raises(SessionNotFound):
            result.raise_for_error()

    def test_expired_session_is_ended_on_first_sight(self, manager, registry, notifier):
        _, session = _start(manager, registry, session_duration_days=1)
        later = NOW + timedelta(days=2)

        first = manager.validate_session(session.id, now=later)
        assert first.valid is False
        assert first.error == SessionExpired.code
        stored = db.session.get(KioskSession, session.id)
        assert stored.ended_at == later
        assert stored.terminated_by == SYSTEM_ACTOR
        assert stored.termination_reason == REASON_EXPIRED
        assert notifier.events[-1].event_type == SESSION_TERMINATED

        second = manager.validate_session(session.id, now=later + timedelta(minutes=1))
        assert second.valid is False
        assert second.error == SessionTerminated.code
        assert db.session.get(KioskSession, session.id).ended_at == later

    def test_touch_records_activity_without_extending(self, manager, registry):
        _, session = _start(manager, registry)
        later = NOW + timedelta(hours=3)

        touched = manager.touch(session.id, now=later)

        assert touched.last_active_at == later
        assert touched.expires_at == NOW + timedelta(days=90)

    def test_touch_rejects_ended_session(self, manager, registry):
        _, session = _start(manager, registry)
        manager.terminate(session.id, actor_id="owner-1", now=NOW)
        with pytest.raises(SessionTerminated):
            manager.touch(session.id, now=NOW)


class TestTermination:
    def test_terminate_records_actor_and_reason(self, manager, registry):
        _, session = _start(manager, registry)

        ended = manager.terminate(session.id, actor_id="owner-1", reason="lost tablet", now=NOW)

        assert ended.ended_at == NOW
        assert ended.terminated_by == "owner-1"
        assert ended.termination_reason == "lost tablet"
        with pytest.raises(AlreadyEnded):
            manager.terminate(session.id, actor_id="owner-1", now=NOW)

    def test_terminate_all_for_code_is_idempotent(self, manager, registry, notifier):
        code, session = _start(manager, registry)

        assert manager.terminate_all_for_code(code.id, actor_id="owner-1", now=NOW) == 1
        assert manager.terminate_all_for_code(code.id, actor_id="owner-1", now=NOW) == 0
        assert [e.entity_id for e in notifier.events if e.event_type == SESSION_TERMINATED] == [session.id]
        with pytest.raises(CodeNotFound):
            manager.terminate_all_for_code(9999, actor_id="owner-1", now=NOW)

    def test_active_listing_and_counts(self, manager, registry):
        code_a, session_a = _start(manager, registry, device_id="tablet-a")
        code_b, session_b = _start(manager, registry, device_id="tablet-b")
        manager.terminate(session_b.id, actor_id="owner-1", now=NOW)

        assert manager.count_active_sessions(role_id=ROLE_ID, now=NOW) == 1
        assert manager.count_active_sessions(code_id=code_a.id, now=NOW) == 1
        assert manager.count_active_sessions(code_id=code_b.id, now=NOW) == 0
        assert [s.id for s in manager.list_active_sessions(role_id=ROLE_ID, now=NOW)] == [session_a.id]
        assert manager.active_session_counts_for_role(ROLE_ID, now=NOW) == {code_a.id: 1}
        assert manager.count_active_sessions(role_id="role-2", now=NOW) == 0
        with pytest.raises(ValueError):
            manager.count_active_sessions(now=NOW)

    def test_sweep_ends_only_expired_sessions(self, manager, registry):
        _, short = _start(manager, registry, session_duration_days=1)
        _, lasting = _start(manager, registry, device_id="tablet-2", session_duration_days=90)
        later = NOW + timedelta(days=2)

        assert manager.sweep_expired(now=later) == 1
        assert manager.sweep_expired(now=later) == 0
        assert db.session.get(KioskSession, short.id).termination_reason == REASON_EXPIRED
        assert db.session.get(KioskSession, lasting.id).ended_at is None


@pytest.fixture()
def file_app(tmp_path, monkeypatch):
    """App on a file-backed database so several connections see the same rows."""
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'kiosk.db'}")
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"timeout": 30}})
    app = create_app("testing")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentPromotion:
    def test_parallel_devices_get_exactly_one_session(self, file_app):
        with file_app.app_context():
            secret = CodeRegistry(tier_limits=ConfiguredTierLimits({"FREE": 10})).issue(ROLE_ID, now=NOW).code

        workers = 4
        barrier = Barrier(workers)
        outcomes = []

        def _claim(device_id):
            with file_app.app_context():
                manager = SessionManager(registry=CodeRegistry(tier_limits=ConfiguredTierLimits({"FREE": 10})))
                barrier.wait()
                try:
                    manager.create_session(secret, device_id=device_id, now=NOW)
                    outcomes.append("ok")
                except CodeAlreadyUsed as exc:
                    outcomes.append(str(exc))
                finally:
                    db.session.remove()

        threads = [Thread(target=_claim, args=(f"tablet-{i}",)) for i in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert sorted(outcomes) == ["code_already_used"] * (workers - 1) + ["ok"]
        with file_app.app_context():
            assert KioskSession.query.count() == 1
            assert KioskCode.query.one().status == CODE_STATUS_USED
