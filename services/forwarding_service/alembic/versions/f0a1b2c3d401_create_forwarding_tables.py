"""create_forwarding_tables

Revision ID: f0a1b2c3d401
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "f0a1b2c3d401"
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    "service_type_enum": ("ship_for_me", "buy_for_me"),
    "order_status_enum": (
        "open",
        "offer_accepted",
        "payment_required",
        "payment_completed",
        "in_tracking",
        "delivered",
        "cancelled",
    ),
    "offer_status_enum": (
        "pending",
        "inprogress",
        "accepted",
        "rejected",
        "cancelled",
        "ignored",
    ),
    "charge_type_enum": ("percent", "fixed"),
    "plan_role_enum": ("shopper", "shipper"),
    "ledger_entry_type_enum": ("credit", "debit", "commission"),
    "ledger_status_enum": ("pending", "completed", "failed", "reversed"),
    "ledger_action_enum": ("release", "reverse", "fail"),
    "message_status_enum": ("pending", "approved", "rejected"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "addon_services",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="ck_addon_service_price_non_negative"),
    )

    op.create_table(
        "payment_plans",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("role", _enum("plan_role_enum"), nullable=False),
        sa.Column("service_type", _enum("service_type_enum"), nullable=True),
        sa.Column("charge_type", _enum("charge_type_enum"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_payment_plan_amount_non_negative"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("request_number", sa.String(20), nullable=False),
        sa.Column("requester_id", sa.String(), nullable=False),
        sa.Column("service_type", _enum("service_type_enum"), nullable=False),
        sa.Column("ship_from_country_id", sa.Integer(), nullable=False),
        sa.Column("ship_from_state_id", sa.Integer(), nullable=False),
        sa.Column("ship_from_city_id", sa.Integer(), nullable=False),
        sa.Column("ship_to_country_id", sa.Integer(), nullable=False),
        sa.Column("ship_to_state_id", sa.Integer(), nullable=False),
        sa.Column("ship_to_city_id", sa.Integer(), nullable=False),
        sa.Column("status", _enum("order_status_enum"), nullable=False),
        sa.Column("accepted_offer_id", sa.Uuid(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_orders_request_number", "orders", ["request_number"], unique=True
    )
    op.create_index("ix_orders_requester_id", "orders", ["requester_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index(
        "ix_orders_requester_created", "orders", ["requester_id", "created_at"]
    )

    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Uuid(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("product_url", sa.String(2048), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_weight", sa.Numeric(10, 3), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_line_item_price_non_negative"),
    )
    op.create_index("ix_order_line_items_order_id", "order_line_items", ["order_id"])

    op.create_table(
        "order_services",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Uuid(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "addon_service_id",
            sa.Uuid(),
            sa.ForeignKey("addon_services.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_order_services_order_id", "order_services", ["order_id"])

    op.create_table(
        "order_surcharges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Uuid(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "payment_plan_id",
            sa.Uuid(),
            sa.ForeignKey("payment_plans.id"),
            nullable=True,
        ),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("charge_type", _enum("charge_type_enum"), nullable=False),
        sa.Column("rate", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_order_surcharges_order_id", "order_surcharges", ["order_id"])

    op.create_table(
        "offers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("shipper_id", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("status", _enum("offer_status_enum"), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="ck_offer_price_positive"),
    )
    op.create_index("ix_offers_order_id", "offers", ["order_id"])
    op.create_index("ix_offers_shipper_id", "offers", ["shipper_id"])
    op.create_index(
        "uq_offers_one_accepted_per_order",
        "offers",
        ["order_id"],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )
    op.create_index(
        "uq_offers_one_active_per_shipper",
        "offers",
        ["order_id", "shipper_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'inprogress')"),
    )

    op.create_table(
        "order_status_steps",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("status_id", sa.Integer(), nullable=False),
        sa.Column("status_name", sa.String(50), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("tracking_number", sa.String(100), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("files", postgresql.JSONB(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("order_id", "status_id", name="uq_order_status_step"),
    )
    op.create_index(
        "ix_order_status_steps_order_id", "order_status_steps", ["order_id"]
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("payer_id", sa.String(), nullable=False),
        sa.Column("service_type", _enum("service_type_enum"), nullable=False),
        sa.Column(
            "transaction_type", _enum("ledger_entry_type_enum"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("processor_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", _enum("ledger_status_enum"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("processor_ref", sa.String(), nullable=False),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_by", sa.String(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversed_by", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transaction_amount_positive"),
        sa.CheckConstraint(
            "processor_fee >= 0 AND commission_amount >= 0",
            name="ck_wallet_transaction_deductions_non_negative",
        ),
        sa.CheckConstraint(
            "processor_fee + commission_amount <= amount",
            name="ck_wallet_transaction_deductions_within_amount",
        ),
    )
    op.create_index(
        "ix_wallet_transactions_order_id", "wallet_transactions", ["order_id"]
    )
    op.create_index("ix_wallet_transactions_user_id", "wallet_transactions", ["user_id"])
    op.create_index(
        "ix_wallet_transactions_payer_id", "wallet_transactions", ["payer_id"]
    )
    op.create_index(
        "ix_wallet_transactions_processor_ref",
        "wallet_transactions",
        ["processor_ref"],
        unique=True,
    )
    op.create_index(
        "ix_wallet_transactions_user_status",
        "wallet_transactions",
        ["user_id", "status"],
    )

    op.create_table(
        "ledger_audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Uuid(),
            sa.ForeignKey("wallet_transactions.id"),
            nullable=False,
        ),
        sa.Column("action", _enum("ledger_action_enum"), nullable=False),
        sa.Column("from_status", _enum("ledger_status_enum"), nullable=False),
        sa.Column("to_status", _enum("ledger_status_enum"), nullable=False),
        sa.Column("balance_delta", sa.Numeric(12, 2), nullable=False),
        sa.Column("performed_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_ledger_audit_logs_transaction_id", "ledger_audit_logs", ["transaction_id"]
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("receiver_id", sa.String(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("status", _enum("message_status_enum"), nullable=False),
        sa.Column("moderated_by", sa.String(), nullable=True),
        sa.Column("moderated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_status", "messages", ["status"])
    op.create_index("ix_messages_order_created", "messages", ["order_id", "created_at"])

    op.create_table(
        "message_attachments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "message_id",
            sa.Uuid(),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("mime_type", sa.String(100), nullable=False),
    )
    op.create_index(
        "ix_message_attachments_message_id", "message_attachments", ["message_id"]
    )


def downgrade() -> None:
    for table in (
        "message_attachments",
        "messages",
        "ledger_audit_logs",
        "wallet_transactions",
        "order_status_steps",
        "offers",
        "order_surcharges",
        "order_services",
        "order_line_items",
        "orders",
        "payment_plans",
        "addon_services",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
