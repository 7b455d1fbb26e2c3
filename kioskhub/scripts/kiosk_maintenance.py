"""Kiosk maintenance CLI commands.

Usage:
    flask kiosk-sweep                       # Expire stale codes, end expired sessions
    flask kiosk-revoke-codes                # Revoke every live code
    flask kiosk-revoke-codes --role-id 42   # Revoke live codes for one role
"""

from __future__ import annotations

import logging
import os

import click
from flask.cli import with_appcontext

from kioskhub.domains.kiosk.constants import SYSTEM_ACTOR

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(level=os.environ.get("KIOSK_LOGLEVEL", "INFO"))


@click.command("kiosk-sweep")
@with_appcontext
def kiosk_sweep_command():
    """Mark expired codes and end sessions past their lifetime. Safe to run repeatedly."""
    from kioskhub.domains.kiosk.services import CodeRegistry, SessionManager

    _configure_logging()
    registry = CodeRegistry()
    expired_codes = registry.sweep_expired()
    ended_sessions = SessionManager(registry=registry).sweep_expired()
    logger.info("Kiosk sweep: %s codes expired, %s sessions ended", expired_codes, ended_sessions)
    click.echo(f"kiosk_sweep ok: expired_codes={expired_codes} ended_sessions={ended_sessions}")


@click.command("kiosk-revoke-codes")
@click.option("--role-id", type=str, help="Revoke live codes for this role only")
@with_appcontext
def kiosk_revoke_codes_command(role_id: str | None):
    """Revoke every pending or active kiosk code."""
    from kioskhub.domains.kiosk.services import CodeRegistry

    _configure_logging()
    count = CodeRegistry().revoke_all_active(role_id, actor_id=SYSTEM_ACTOR)
    logger.info("Revoked %s kiosk codes (role=%s)", count, role_id or "*")
    click.echo(f"kiosk_revoke_codes ok: revoked={count}")


def register_commands(app):
    """Register kiosk CLI commands with the Flask app."""
    app.cli.add_command(kiosk_sweep_command)
    app.cli.add_command(kiosk_revoke_codes_command)


__all__ = ["kiosk_sweep_command", "kiosk_revoke_codes_command", "register_commands"]
