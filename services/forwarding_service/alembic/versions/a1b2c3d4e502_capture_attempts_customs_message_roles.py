"""capture_attempts_customs_message_roles

Revision ID: a1b2c3d4e502
Revises: f0a1b2c3d401
Create Date: 2026-10-19 15:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1b2c3d4e502"
down_revision = "f0a1b2c3d401"
branch_labels = None
depends_on = None


def _flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


def upgrade() -> None:
    op.add_column("orders", sa.Column("capture_key", sa.String(64), nullable=True))
    op.add_column(
        "orders",
        sa.Column("capture_started_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column("messages", sa.Column("sender_role", sa.String(20), nullable=True))

    op.create_table(
        "customs_declarations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Uuid(),
            sa.ForeignKey("orders.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "shipping_type",
            postgresql.ENUM(
                "ship_for_me", "buy_for_me", name="service_type_enum", create_type=False
            ),
            nullable=False,
        ),
        sa.Column("from_name", sa.String(255), nullable=False),
        sa.Column("from_business", sa.String(255), nullable=True),
        sa.Column("from_street", sa.String(255), nullable=False),
        sa.Column("from_postcode", sa.String(20), nullable=True),
        sa.Column("from_country_id", sa.Integer(), nullable=False),
        sa.Column("from_state_id", sa.Integer(), nullable=True),
        sa.Column("from_city_id", sa.Integer(), nullable=True),
        sa.Column("to_name", sa.String(255), nullable=False),
        sa.Column("to_business", sa.String(255), nullable=True),
        sa.Column("to_street", sa.String(255), nullable=False),
        sa.Column("to_postcode", sa.String(20), nullable=True),
        sa.Column("to_country_id", sa.Integer(), nullable=False),
        sa.Column("to_state_id", sa.Integer(), nullable=True),
        sa.Column("to_city_id", sa.Integer(), nullable=True),
        sa.Column("importer_reference", sa.String(100), nullable=True),
        sa.Column("importer_contact", sa.String(255), nullable=True),
        _flag("category_commercial_sample"),
        _flag("category_gift"),
        _flag("category_returned_goods"),
        _flag("category_documents"),
        _flag("category_other"),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("office_origin_posting", sa.String(255), nullable=True),
        _flag("doc_licence"),
        _flag("doc_certificate"),
        _flag("doc_invoice"),
        _flag("contains_prohibited_items"),
        _flag("contains_liquids"),
        _flag("contains_batteries"),
        _flag("is_fragile"),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_declared_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_weight", sa.Numeric(10, 3), nullable=False),
        sa.Column("submitted_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("customs_declarations")
    op.drop_column("messages", "sender_role")
    op.drop_column("orders", "capture_started_at")
    op.drop_column("orders", "capture_key")
