"""Scope checks for requests made through a kiosk session."""

from __future__ import annotations

from kioskhub.core.errors import Forbidden
from kioskhub.domains.kiosk.constants import CODE_SCOPE_PERSON
from kioskhub.domains.kiosk.models.kiosk_models import KioskCode


def check_person_access(code: KioskCode, person_id: str) -> None:
    """An individual code only serves the person it was issued for."""
    if code.scope == CODE_SCOPE_PERSON and str(code.person_id) != str(person_id):
        raise Forbidden("Person does not belong to this kiosk session.")


def check_role_access(code: KioskCode, role_id: str) -> None:
    if str(code.owner_role_id) != str(role_id):
        raise Forbidden("Task does not belong to this kiosk session.")


__all__ = ["check_person_access", "check_role_access"]
