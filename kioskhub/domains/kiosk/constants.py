"""Kiosk code and session lifecycle constants."""

from __future__ import annotations

# Code statuses
CODE_STATUS_PENDING = "pending"
CODE_STATUS_ACTIVE = "active"
CODE_STATUS_USED = "used"
CODE_STATUS_EXPIRED = "expired"
CODE_STATUS_REVOKED = "revoked"

CODE_USABLE_STATUSES = (CODE_STATUS_PENDING, CODE_STATUS_ACTIVE)
CODE_TERMINAL_STATUSES = (CODE_STATUS_USED, CODE_STATUS_EXPIRED, CODE_STATUS_REVOKED)

# Who a code grants access to
CODE_SCOPE_ROLE = "role"
CODE_SCOPE_GROUP = "group"
CODE_SCOPE_PERSON = "person"
CODE_SCOPES = (CODE_SCOPE_ROLE, CODE_SCOPE_GROUP, CODE_SCOPE_PERSON)

MAX_CODE_GENERATION_ATTEMPTS = 10

# Session termination bookkeeping
SYSTEM_ACTOR = "system"
REASON_EXPIRED = "expired"
REASON_TERMINATED_BY_OWNER = "Manually terminated by user"
REASON_ALL_TERMINATED_BY_OWNER = "All sessions terminated by code owner"

__all__ = [
    "CODE_STATUS_PENDING",
    "CODE_STATUS_ACTIVE",
    "CODE_STATUS_USED",
    "CODE_STATUS_EXPIRED",
    "CODE_STATUS_REVOKED",
    "CODE_USABLE_STATUSES",
    "CODE_TERMINAL_STATUSES",
    "CODE_SCOPE_ROLE",
    "CODE_SCOPE_GROUP",
    "CODE_SCOPE_PERSON",
    "CODE_SCOPES",
    "MAX_CODE_GENERATION_ATTEMPTS",
    "SYSTEM_ACTOR",
    "REASON_EXPIRED",
    "REASON_TERMINATED_BY_OWNER",
    "REASON_ALL_TERMINATED_BY_OWNER",
]
