"""create menu items, orders and order items

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "menu_items",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("branch_id", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_menu_items_branch_id", "menu_items", ["branch_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=False),
        sa.Column("branch_id", sa.String(length=50), nullable=False),
        sa.Column("restaurant_name", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=20), nullable=False),
        sa.Column("delivery_method", sa.String(length=20), nullable=False),
        sa.Column("delivery_area", sa.String(length=255), nullable=True),
        sa.Column("delivery_address", sa.String(length=500), nullable=True),
        sa.Column("delivery_notes", sa.String(length=1000), nullable=True),
        sa.Column("customer_latitude", sa.Float(), nullable=True),
        sa.Column("customer_longitude", sa.Float(), nullable=True),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("items_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("delivery_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("status_history", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'preparing', 'ready', "
            "'out_for_delivery', 'completed', 'cancelled')",
            name="ck_orders_status",
        ),
        sa.CheckConstraint(
            "delivery_method IN ('delivery', 'pickup')",
            name="ck_orders_delivery_method",
        ),
        sa.CheckConstraint("payment_method IN ('cash', 'card')", name="ck_orders_payment_method"),
        sa.CheckConstraint("total_amount = items_total + delivery_price", name="ck_orders_total"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
    )
    op.create_index(
        "ix_orders_branch_created_at",
        "orders",
        [sa.text("branch_id"), sa.text("created_at DESC")],
        unique=False,
    )
    op.create_index(
        "ix_orders_created_at",
        "orders",
        [sa.text("created_at DESC")],
        unique=False,
    )

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("menu_item_id", sa.String(length=50), nullable=True),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("item_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)

    op.execute("CREATE SEQUENCE IF NOT EXISTS order_number_seq START WITH 1")


def downgrade() -> None:
    op.execute("DROP SEQUENCE IF EXISTS order_number_seq")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_branch_created_at", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_menu_items_branch_id", table_name="menu_items")
    op.drop_table("menu_items")
