from __future__ import annotations

import pytest
from flask_jwt_extended import create_access_token

from kioskhub import create_app
from kioskhub.core.events.event_bus import ALL_EVENTS, event_bus
from kioskhub.domains.kiosk.models import kiosk_models  # noqa: F401
from kioskhub.domains.tasks.models import task_models
from kioskhub.extensions import db

ROLE_ID = "role-1"


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, API)")


@pytest.fixture()
def app():
    """Per-test app on a fresh in-memory database."""
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers(app):
    """Build Authorization headers for an owner of the given roles."""

    def _headers(role_ids=(ROLE_ID,), tier="BRONZE", actor_id="owner-1"):
        token = create_access_token(
            identity=actor_id,
            additional_claims={"role_ids": list(role_ids), "tier": tier},
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def captured_events():
    """Collect every change event published on the in-process bus."""
    events = []
    event_bus.subscribe(ALL_EVENTS, events.append)
    try:
        yield events
    finally:
        event_bus.unsubscribe(ALL_EVENTS, events.append)


@pytest.fixture()
def make_task(app):
    def _make(task_type=task_models.TASK_TYPE_SIMPLE, target_value=None, role_id=ROLE_ID, name="Brush teeth"):
        task = task_models.Task(role_id=role_id, name=name, type=task_type, target_value=target_value)
        db.session.add(task)
        db.session.commit()
        return task

    return _make
