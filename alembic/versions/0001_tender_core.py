"""tender core: tenders, bids, reference counters, audit log, notification outbox

Revision ID: 0001_tender_core
Revises:
Create Date: 2025-03-01 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_tender_core"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "tenders",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("reference_code", sa.String(length=32), nullable=False, unique=True),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("items_json", JSONType, nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("budget_price", sa.Numeric(16, 2), nullable=True),
        sa.Column("show_budget", sa.Boolean(), nullable=False),
        sa.Column("closing_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("sealed", sa.Boolean(), nullable=False),
        sa.Column("private", sa.Boolean(), nullable=False),
        sa.Column("invited_vendor_ids", JSONType, nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("organization", sa.String(length=256), nullable=True),
        sa.Column("awarded_vendor_id", sa.String(length=128), nullable=True),
        sa.Column("awarded_bid_id", sa.Uuid(), nullable=True),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("award_remarks", sa.Text(), nullable=True),
        sa.Column("delivery_location", sa.String(length=256), nullable=True),
        sa.Column("delivery_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("is_template", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("template_name", sa.String(length=256), nullable=True),
        sa.Column("bid_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("bids_revealed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("bid_count >= 0", name="ck_tenders_bid_count_nonnegative"),
    )
    op.create_index("ix_tenders_status_closing", "tenders", ["status", "closing_date"])
    op.create_index("ix_tenders_created_by", "tenders", ["created_by"])
    op.create_index("ix_tenders_category", "tenders", ["category"])
    op.create_index("ix_tenders_owner_template", "tenders", ["created_by", "is_template"])

    op.create_table(
        "tender_reference_counters",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
    )

    op.create_table(
        "bids",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "tender_id",
            sa.Uuid(),
            sa.ForeignKey("tenders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("vendor_id", sa.String(length=128), nullable=False),
        sa.Column("unit_price", sa.Numeric(16, 2), nullable=False),
        sa.Column("quantity", sa.Numeric(16, 4), nullable=False),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False),
        sa.Column("vat_registered", sa.Boolean(), nullable=False),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("vat_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("delivery_timeline_days", sa.Integer(), nullable=False),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_months", sa.Integer(), nullable=False),
        sa.Column("warranty_terms", sa.Text(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("technical_specifications", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("revealed", sa.Boolean(), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("withdrawal_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tender_id", "vendor_id", name="uq_bids_tender_vendor"),
        sa.CheckConstraint("unit_price > 0", name="ck_bids_unit_price_positive"),
        sa.CheckConstraint("quantity > 0", name="ck_bids_quantity_positive"),
        sa.CheckConstraint("delivery_timeline_days > 0", name="ck_bids_delivery_positive"),
    )
    op.create_index("ix_bids_tender_status", "bids", ["tender_id", "status"])
    op.create_index("ix_bids_vendor", "bids", ["vendor_id"])

    op.create_table(
        "audit_log_records",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("actor_role", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("target_entity", sa.String(length=32), nullable=False),
        sa.Column("target_id", sa.String(length=64), nullable=False),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column("payload_summary_json", JSONType, nullable=False),
    )
    op.create_index("ix_audit_log_records_request_id", "audit_log_records", ["request_id"])
    op.create_index("ix_audit_target", "audit_log_records", ["target_entity", "target_id"])
    op.create_index("ix_audit_action", "audit_log_records", ["action"])
    op.create_index("ix_audit_created", "audit_log_records", ["created_at"])

    op.create_table(
        "notification_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("recipient_id", sa.String(length=128), nullable=False),
        sa.Column("tender_id", sa.Uuid(), nullable=False),
        sa.Column("bid_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_events_recipient", "notification_events", ["recipient_id"])
    op.create_index("ix_notification_events_undispatched", "notification_events", ["dispatched_at"])


def downgrade():
    op.drop_table("notification_events")
    op.drop_table("audit_log_records")
    op.drop_table("bids")
    op.drop_table("tender_reference_counters")
    op.drop_table("tenders")
