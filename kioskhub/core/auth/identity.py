"""Identity collaborator boundary: who is calling and which roles they own.

Tokens are issued by the external identity service. This module only reads
the claims: ``sub`` is the actor id, ``role_ids`` lists the roles the actor
may act on and ``tier`` names the subscription tier used for limits.
"""

from __future__ import annotations

from typing import Optional

from flask_jwt_extended import get_jwt, get_jwt_identity

from kioskhub.core.errors import Forbidden


def current_actor_id() -> str:
    return str(get_jwt_identity())


def current_role_ids() -> set[str]:
    claims = get_jwt() or {}
    return {str(role_id) for role_id in (claims.get("role_ids") or [])}


def current_tier() -> Optional[str]:
    claims = get_jwt() or {}
    tier = claims.get("tier")
    return str(tier).upper() if tier else None


def require_role_access(role_id: str) -> None:
    """Raise Forbidden unless the caller owns ``role_id``."""
    if str(role_id) not in current_role_ids():
        raise Forbidden()


__all__ = ["current_actor_id", "current_role_ids", "current_tier", "require_role_access"]
