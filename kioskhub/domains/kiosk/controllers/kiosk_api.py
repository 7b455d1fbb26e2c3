"""Kiosk JSON API controllers (thin, schema-validated).

Owner endpoints authenticate with a JWT; device endpoints authenticate with
the kiosk session id in the ``X-Kiosk-Session`` header. Service errors are
``KioskError`` instances rendered by the app-level error handler.
"""

from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, g, jsonify, request
from flask_jwt_extended import jwt_required
from pydantic import ValidationError

from kioskhub.core.auth.identity import current_actor_id, current_tier, require_role_access
from kioskhub.core.billing.tier_limits import ConfiguredTierLimits
from kioskhub.core.errors import CompletionNotFound
from kioskhub.core.utils.clock import as_naive_utc, utcnow
from kioskhub.core.utils.decorators import kiosk_session_required
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode, KioskSession
from kioskhub.domains.kiosk.schemas.kiosk_schemas import (
    CompletionCreate,
    CompletionResponse,
    KioskCodeCreate,
    KioskCodeResponse,
    KioskCodeValidate,
    KioskSessionCreate,
    KioskSessionResponse,
    KioskSessionTerminate,
    KioskSettingsResponse,
    TaskStatusResponse,
)
from kioskhub.domains.kiosk.services import (
    CodeRegistry,
    SessionManager,
    check_person_access,
    check_role_access,
)
from kioskhub.domains.tasks import services as task_services
from kioskhub.domains.tasks.models.task_models import TaskCompletion
from kioskhub.extensions import db, limiter

kiosk_api_bp = Blueprint("kiosk_api", __name__)


def _validate_rate_limit() -> str:
    return current_app.config.get("KIOSK_VALIDATE_RATE_LIMIT", "10 per minute")


def _notifier():
    return current_app.extensions.get("kiosk_notifier")


def _registry() -> CodeRegistry:
    # Tier comes from the caller's token; every role they own shares it.
    tier_limits = ConfiguredTierLimits.from_config(current_app.config, tier_lookup=lambda _role_id: current_tier())
    return CodeRegistry(tier_limits=tier_limits)


def _session_manager(registry: CodeRegistry | None = None) -> SessionManager:
    return SessionManager(registry=registry, notifier=_notifier())


def _validation_error(exc: ValidationError):
    return jsonify({"ok": False, "error": "validation_error", "details": exc.errors(include_context=False)}), 400


def _code_payload(code: KioskCode, active_sessions: int = 0) -> dict:
    return KioskCodeResponse(
        id=code.id,
        code=code.code,
        owner_role_id=code.owner_role_id,
        scope=code.scope,
        group_id=code.group_id,
        person_id=code.person_id,
        status=code.status,
        created_at=code.created_at,
        expires_at=code.expires_at,
        session_duration_days=code.session_duration_days,
        used_at=code.used_at,
        active_sessions=active_sessions,
    ).model_dump(mode="json")


def _session_payload(session: KioskSession) -> dict:
    payload = KioskSessionResponse(
        id=session.id,
        code_id=session.code_id,
        device_id=session.device_id,
        started_at=session.started_at,
        last_active_at=session.last_active_at,
        expires_at=session.expires_at,
        ended_at=session.ended_at,
        termination_reason=session.termination_reason,
    ).model_dump(mode="json")
    payload["active"] = session.is_active(utcnow())
    code = session.kiosk_code
    payload["role_id"] = code.owner_role_id
    payload["scope"] = code.scope
    payload["group_id"] = code.group_id
    payload["person_id"] = code.person_id
    return payload


def _completion_payload(completion: TaskCompletion) -> dict:
    return CompletionResponse(
        id=completion.id,
        task_id=completion.task_id,
        person_id=completion.person_id,
        completed_at=completion.completed_at,
        value=completion.value,
        entry_number=completion.entry_number,
        notes=completion.notes,
    ).model_dump(mode="json")


# --- settings ---


@kiosk_api_bp.get("/settings")
def kiosk_settings():
    cfg = current_app.config
    settings = KioskSettingsResponse(
        inactivity_timeout_ms=cfg.get("KIOSK_INACTIVITY_TIMEOUT_MS", 60000),
        undo_window_minutes=cfg.get("KIOSK_UNDO_WINDOW_MINUTES", 5),
        code_expires_minutes=cfg.get("KIOSK_CODE_EXPIRES_MINUTES", 10),
        session_duration_days=cfg.get("KIOSK_SESSION_DURATION_DAYS", 90),
    )
    return jsonify({"ok": True, "settings": settings.model_dump()})


# --- codes (owner) ---


@kiosk_api_bp.post("/codes")
@jwt_required()
def issue_code():
    payload = request.get_json(silent=True) or {}
    try:
        data = KioskCodeCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    require_role_access(data.role_id)
    fields = data.model_dump()
    role_id = fields.pop("role_id")
    code = _registry().issue(role_id, **fields)
    return jsonify({"ok": True, "code": _code_payload(code)}), 201


@kiosk_api_bp.get("/codes")
@jwt_required()
def list_codes():
    role_id = (request.args.get("role_id") or "").strip()
    if not role_id:
        return jsonify({"ok": False, "error": "validation_error"}), 400
    require_role_access(role_id)
    registry = _registry()
    codes = registry.list_active(role_id)
    counts = _session_manager(registry).active_session_counts_for_role(role_id)
    return jsonify({"ok": True, "codes": [_code_payload(code, counts.get(code.id, 0)) for code in codes]})


@kiosk_api_bp.post("/codes/<int:code_id>/revoke")
@jwt_required()
def revoke_code(code_id: int):
    registry = _registry()
    require_role_access(registry.get(code_id).owner_role_id)
    code = registry.revoke(code_id, actor_id=current_actor_id())
    return jsonify({"ok": True, "code": _code_payload(code)})


@kiosk_api_bp.post("/codes/<int:code_id>/sessions/terminate")
@jwt_required()
def terminate_code_sessions(code_id: int):
    registry = _registry()
    require_role_access(registry.get(code_id).owner_role_id)
    count = _session_manager(registry).terminate_all_for_code(code_id, actor_id=current_actor_id())
    return jsonify({"ok": True, "terminated": count})


# --- codes and sessions (device) ---


@kiosk_api_bp.post("/codes/validate")
@limiter.limit(_validate_rate_limit)
def validate_code():
    payload = request.get_json(silent=True) or {}
    try:
        data = KioskCodeValidate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    code = CodeRegistry().validate(data.code)
    return jsonify(
        {
            "ok": True,
            "valid": True,
            "code_id": code.id,
            "scope": code.scope,
            "expires_at": code.expires_at.isoformat(),
        }
    )


@kiosk_api_bp.post("/sessions")
@limiter.limit(_validate_rate_limit)
def start_session():
    payload = request.get_json(silent=True) or {}
    try:
        data = KioskSessionCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    session = _session_manager().create_session(
        data.code,
        device_id=data.device_id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"ok": True, "session": _session_payload(session)}), 201


@kiosk_api_bp.get("/sessions/current")
@kiosk_session_required
def current_session():
    return jsonify({"ok": True, "session": _session_payload(g.kiosk_session)})


@kiosk_api_bp.post("/sessions/current/heartbeat")
@kiosk_session_required
def heartbeat():
    session = _session_manager().touch(g.kiosk_session.id)
    return jsonify({"ok": True, "last_active_at": session.last_active_at.isoformat()})


# --- sessions (owner) ---


@kiosk_api_bp.get("/sessions")
@jwt_required()
def list_sessions():
    role_id = (request.args.get("role_id") or "").strip()
    if not role_id:
        return jsonify({"ok": False, "error": "validation_error"}), 400
    require_role_access(role_id)
    sessions = _session_manager().list_active_sessions(role_id=role_id)
    return jsonify({"ok": True, "sessions": [_session_payload(s) for s in sessions]})


@kiosk_api_bp.delete("/sessions/<session_id>")
@jwt_required()
def terminate_session(session_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        data = KioskSessionTerminate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    manager = _session_manager()
    require_role_access(manager.get(session_id).kiosk_code.owner_role_id)
    session = manager.terminate(session_id, actor_id=current_actor_id(), reason=data.reason)
    return jsonify({"ok": True, "session": _session_payload(session)})


# --- completions (device) ---


@kiosk_api_bp.post("/completions")
@kiosk_session_required
def record_completion():
    payload = request.get_json(silent=True) or {}
    try:
        data = CompletionCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    session = g.kiosk_session
    task = task_services.get_task(data.task_id)
    check_role_access(session.kiosk_code, task.role_id)
    check_person_access(session.kiosk_code, data.person_id)
    result = task_services.record_completion(
        task.id,
        data.person_id,
        reset_date=data.reset_date,
        value=data.value,
        notes=data.notes,
        device_id=session.device_id,
        session_id=session.id,
        notifier=_notifier(),
    )
    body = {
        "ok": True,
        "completion": _completion_payload(result.completion),
        "aggregate": result.aggregate.as_dict(),
        "was_cached": result.was_cached,
    }
    return jsonify(body), 200 if result.was_cached else 201


@kiosk_api_bp.post("/completions/<int:completion_id>/undo")
@kiosk_session_required
def undo_completion(completion_id: int):
    completion = db.session.get(TaskCompletion, completion_id)
    if not completion:
        raise CompletionNotFound()
    code = g.kiosk_session.kiosk_code
    check_role_access(code, completion.task.role_id)
    check_person_access(code, completion.person_id)
    task_services.undo_completion(completion_id, notifier=_notifier())
    return jsonify({"ok": True, "completion_id": completion_id})


@kiosk_api_bp.get("/tasks/<int:task_id>/status")
@kiosk_session_required
def task_status(task_id: int):
    person_id = (request.args.get("person_id") or "").strip()
    raw_reset = (request.args.get("reset_date") or "").strip()
    try:
        reset_date = as_naive_utc(datetime.fromisoformat(raw_reset.replace("Z", "+00:00")))
    except ValueError:
        reset_date = None
    if not person_id or reset_date is None:
        return jsonify({"ok": False, "error": "validation_error"}), 400
    code = g.kiosk_session.kiosk_code
    task = task_services.get_task(task_id)
    check_role_access(code, task.role_id)
    check_person_access(code, person_id)
    status = task_services.get_task_status(task.id, person_id, reset_date=reset_date)
    return jsonify({"ok": True, "status": TaskStatusResponse(**status).model_dump()})
