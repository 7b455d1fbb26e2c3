"""Kiosk codes, sessions, tasks and completions.

Revision ID: 20260301_kiosk_initial
Revises:
Create Date: 2026-03-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20260301_kiosk_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "kiosk_code",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_role_id", sa.String(length=64), nullable=False),
        sa.Column("scope", sa.String(length=16), nullable=False, server_default="role"),
        sa.Column("group_id", sa.String(length=64), nullable=True),
        sa.Column("person_id", sa.String(length=64), nullable=True),
        sa.Column("code", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("session_duration_days", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_by", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_kiosk_code_owner_role_id", "kiosk_code", ["owner_role_id"])
    op.create_index("ix_kiosk_code_code_status", "kiosk_code", ["code", "status"])
    op.create_index(
        "ix_kiosk_code_role_status_expires",
        "kiosk_code",
        ["owner_role_id", "status", "expires_at"],
    )

    op.create_table(
        "kiosk_session",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "code_id",
            sa.Integer(),
            sa.ForeignKey("kiosk_code.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("device_id", sa.String(length=128), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_active_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("terminated_by", sa.String(length=64), nullable=True),
        sa.Column("termination_reason", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
    )
    op.create_index("ix_kiosk_session_code_id", "kiosk_session", ["code_id"])
    op.create_index("ix_kiosk_session_code_ended", "kiosk_session", ["code_id", "ended_at"])
    op.create_index("ix_kiosk_session_ended_expires", "kiosk_session", ["ended_at", "expires_at"])

    op.create_table(
        "tasks_task",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("role_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="simple"),
        sa.Column("target_value", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "type IN ('simple', 'multiple_checkin', 'progress')", name="ck_tasks_task_type"
        ),
    )
    op.create_index("ix_tasks_task_role_id", "tasks_task", ["role_id"])

    op.create_table(
        "tasks_task_completion",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks_task.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("person_id", sa.String(length=64), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("value", sa.String(length=32), nullable=True),
        sa.Column("entry_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("device_id", sa.String(length=128), nullable=True),
        sa.Column("session_id", sa.String(length=36), nullable=True),
        sa.Column("idempotency_key", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("idempotency_key", name="uq_tasks_completion_idempotency_key"),
    )
    op.create_index("ix_tasks_task_completion_task_id", "tasks_task_completion", ["task_id"])
    op.create_index("ix_tasks_task_completion_person_id", "tasks_task_completion", ["person_id"])
    op.create_index(
        "ix_tasks_completion_task_person_completed",
        "tasks_task_completion",
        ["task_id", "person_id", "completed_at"],
    )


def downgrade():
    op.drop_index("ix_tasks_completion_task_person_completed", table_name="tasks_task_completion")
    op.drop_index("ix_tasks_task_completion_person_id", table_name="tasks_task_completion")
    op.drop_index("ix_tasks_task_completion_task_id", table_name="tasks_task_completion")
    op.drop_table("tasks_task_completion")
    op.drop_index("ix_tasks_task_role_id", table_name="tasks_task")
    op.drop_table("tasks_task")
    op.drop_index("ix_kiosk_session_ended_expires", table_name="kiosk_session")
    op.drop_index("ix_kiosk_session_code_ended", table_name="kiosk_session")
    op.drop_index("ix_kiosk_session_code_id", table_name="kiosk_session")
    op.drop_table("kiosk_session")
    op.drop_index("ix_kiosk_code_role_status_expires", table_name="kiosk_code")
    op.drop_index("ix_kiosk_code_code_status", table_name="kiosk_code")
    op.drop_index("ix_kiosk_code_owner_role_id", table_name="kiosk_code")
    op.drop_table("kiosk_code")
