"""KioskHub application factory and bootstrap."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from flask import Flask
from pydantic import ValidationError

from kioskhub.config import config_by_name
from kioskhub.core.errors import KioskError
from kioskhub.core.events.event_bus import event_bus
from kioskhub.core.events.notifier import EventBusNotifier
from kioskhub.extensions import init_extensions


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the KioskHub Flask application."""
    env_name = (config_name or os.environ.get("APP_ENV") or "development").lower()
    project_root = Path(__file__).resolve().parent.parent
    instance_root = project_root / "instance"

    app = Flask(__name__, instance_path=str(instance_root), instance_relative_config=True)
    config_cls = config_by_name.get(env_name, config_by_name["development"])
    app.config.from_object(config_cls)

    # Normalize sqlite path to absolute to avoid "unable to open database file"
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///"):
        db_path = Path(db_uri.replace("sqlite:///", "", 1))
        abs_path = db_path if db_path.is_absolute() else project_root / db_path
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{abs_path}"

    init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)

    # Attach shared engines
    app.extensions["event_bus"] = event_bus
    app.extensions["kiosk_notifier"] = EventBusNotifier(event_bus)

    @app.get("/health")
    def health():
        return {"ok": True}, 200

    # Register CLI commands
    from kioskhub.scripts.kiosk_maintenance import register_commands

    register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """Lazy import and register all controllers."""
    from kioskhub.domains.kiosk.controllers.kiosk_api import kiosk_api_bp

    app.register_blueprint(kiosk_api_bp, url_prefix="/api/kiosk")


def _register_error_handlers(app: Flask) -> None:
    """JSON error responses."""
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(KioskError)
    def _kiosk_error(exc: KioskError):
        return exc.as_dict(), exc.http_status

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return {"ok": False, "error": "validation_error", "details": exc.errors(include_context=False)}, 400

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return {"ok": False, "error": exc.description}, exc.code

    @app.errorhandler(Exception)
    def _generic_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        return {"ok": False, "error": "unexpected_error"}, 500
