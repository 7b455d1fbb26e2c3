"""Flask extension singletons shared by the kiosk service."""

from pathlib import Path

from flask import jsonify
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# Services keep using rows after commit (payloads, notifications).
db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
jwt = JWTManager()
# Limits and storage come from RATELIMIT_* config; code validation adds its own limit.
limiter = Limiter(key_func=get_remote_address)


def _auth_error(error: str, status: int = 401):
    return jsonify({"ok": False, "error": error}), status


@jwt.unauthorized_loader
def _missing_token(_reason):
    return _auth_error("unauthorized")


@jwt.invalid_token_loader
def _invalid_token(_reason):
    return _auth_error("invalid_token")


@jwt.expired_token_loader
def _expired_token(_header, _payload):
    return _auth_error("token_expired")


def init_extensions(app) -> None:
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))
    jwt.init_app(app)
    limiter.init_app(app)
