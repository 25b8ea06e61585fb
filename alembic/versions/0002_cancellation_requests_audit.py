"""cancellation requests and audit logs

Revision ID: 0002_cancellation_requests_audit
Revises: 0001_initial
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_cancellation_requests_audit"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

_ACTIVE = sa.text("status IN ('pending', 'approved')")

def upgrade() -> None:
    op.create_table(
        "cancellation_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("order_number", sa.String(length=20), nullable=False),
        sa.Column("customer_email", sa.String(length=320), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(length=320), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_cancellation_requests_status",
        ),
    )
    op.create_index("ix_cancellation_requests_booking_id", "cancellation_requests", ["booking_id"])
    op.create_index("ix_cancellation_requests_order_number", "cancellation_requests", ["order_number"])
    op.create_index("ix_cancellation_requests_status", "cancellation_requests", ["status"])
    # At most one pending/approved request per booking, enforced by the database
    op.create_index(
        "uq_cancellation_requests_active_booking",
        "cancellation_requests",
        ["booking_id"],
        unique=True,
        postgresql_where=_ACTIVE,
        sqlite_where=_ACTIVE,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor", sa.String(length=320), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("uq_cancellation_requests_active_booking", table_name="cancellation_requests")
    op.drop_table("cancellation_requests")
