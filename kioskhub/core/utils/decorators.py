"""Reusable decorators for controllers."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar

from flask import g, jsonify, request

from kioskhub.core.errors import KioskError

F = TypeVar("F", bound=Callable)

KIOSK_SESSION_HEADER = "X-Kiosk-Session"


def kiosk_session_required(fn: F) -> F:
    """Resolve the device session from the X-Kiosk-Session header into ``g.kiosk_session``."""

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[misc]
        from kioskhub.domains.kiosk.services import SessionManager

        session_id = (request.headers.get(KIOSK_SESSION_HEADER) or "").strip()
        if not session_id:
            return jsonify({"ok": False, "error": "unauthorized"}), 401
        try:
            g.kiosk_session = SessionManager().validate_session(session_id).raise_for_error()
        except KioskError as exc:
            return jsonify(exc.as_dict()), exc.http_status
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


__all__ = ["KIOSK_SESSION_HEADER", "kiosk_session_required"]
