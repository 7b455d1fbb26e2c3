"""Kiosk services: code registry, session manager and scope checks."""

from kioskhub.domains.kiosk.services.access import check_person_access, check_role_access
from kioskhub.domains.kiosk.services.code_registry import CodeRegistry, normalize_code
from kioskhub.domains.kiosk.services.session_manager import SessionManager, SessionValidation

__all__ = [
    "CodeRegistry",
    "SessionManager",
    "SessionValidation",
    "check_person_access",
    "check_role_access",
    "normalize_code",
]
