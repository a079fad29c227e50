"""Initial database schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2026-10-19

users, lead_statuses and leads belong to the CRM and usually exist
already; they are only created when missing so the migration can run
against both a fresh database and the shared CRM database.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table: str) -> bool:
    """Check if a table already exists (idempotency guard)."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table in insp.get_table_names()


def upgrade() -> None:
    """Create CRM tables when missing, then the commission tables."""

    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(100), nullable=False),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column(
                "role",
                sa.Enum("admin", "sales_manager", "sales_person", name="userrole"),
                nullable=False,
            ),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if not _table_exists("lead_statuses"):
        op.create_table(
            "lead_statuses",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(100), nullable=False, unique=True),
        )

    if not _table_exists("leads"):
        op.create_table(
            "leads",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("email", sa.String(255), nullable=True),
            sa.Column("company", sa.String(255), nullable=True),
            sa.Column("estimated_value", sa.Numeric(14, 2), nullable=True),
            sa.Column("status_id", sa.Integer(), sa.ForeignKey("lead_statuses.id"), nullable=True),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_leads_status_id", "leads", ["status_id"])
        op.create_index("ix_leads_owner_id", "leads", ["owner_id"])
        op.create_index("ix_leads_closed_at", "leads", ["closed_at"])

    # Commission slabs
    op.create_table(
        "commission_slabs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("min_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("rate", sa.Numeric(6, 3), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_commission_slabs_user_id", "commission_slabs", ["user_id"])

    # Manual commissions
    op.create_table(
        "commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "lead_id",
            sa.Integer(),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("commission_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_commissions_user_id", "commissions", ["user_id"])

    op.create_table(
        "commission_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "commission_id",
            sa.Integer(),
            sa.ForeignKey("commissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("new_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("previous_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("new_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("change_reason", sa.String(255), nullable=True),
        sa.Column("changed_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_commission_history_commission_id", "commission_history", ["commission_id"])

    # Audit logs
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "replace_slabs",
                "clear_commissions",
                "record_commission",
                "delete_commission",
                name="auditaction",
            ),
            nullable=False,
        ),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("action_metadata", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    """Drop the commission tables; CRM tables are left alone."""
    op.drop_table("audit_logs")
    op.drop_table("commission_history")
    op.drop_table("commissions")
    op.drop_table("commission_slabs")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS auditaction")
