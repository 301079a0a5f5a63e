"""initial schema - parties, catalog, par levels, orders

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "parties",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("business_name", sa.String(255)),
        sa.Column("contact_name", sa.String(255)),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("business_phone", sa.String(50)),
        sa.Column("is_supplier", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("gmail_access_token", sa.Text),
        sa.Column("gmail_refresh_token", sa.Text),
        sa.Column("gmail_token_expires_at", sa.DateTime),
        sa.Column("last_inbox_poll", sa.DateTime),
        sa.Column("created_at", sa.DateTime),
    )

    op.create_table(
        "partnerships",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("restaurant_id", sa.Integer, sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_id", sa.Integer, sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime),
    )
    op.create_index("ix_partnerships_pair", "partnerships", ["restaurant_id", "supplier_id"], unique=True)
    op.create_index("ix_partnerships_supplier", "partnerships", ["supplier_id"])

    op.create_table(
        "catalog_items",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("supplier_id", sa.Integer, sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sku", sa.String(100)),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("unit", sa.String(50)),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
    )
    op.create_index("ix_catalog_items_supplier", "catalog_items", ["supplier_id", "id"])

    op.create_table(
        "par_levels",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(255)),
        sa.Column("restaurant_id", sa.Integer, sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_id", sa.Integer, sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime),
    )
    op.create_index("ix_par_levels_pair", "par_levels", ["restaurant_id", "supplier_id"])

    op.create_table(
        "par_level_items",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("par_level_id", sa.Integer, sa.ForeignKey("par_levels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.Integer, sa.ForeignKey("catalog_items.id", ondelete="SET NULL")),
        sa.Column("quantity", sa.Integer, nullable=False),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("restaurant_id", sa.Integer, sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("supplier_id", sa.Integer, sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("status", sa.String(20), nullable=False, server_default="NOT_APPLICABLE"),
        sa.Column("notes", sa.Text),
        sa.Column("source", sa.String(20)),
        sa.Column("source_message_id", sa.String(255)),
        sa.Column("cancelled", sa.Boolean, server_default=sa.false()),
        sa.Column("disputed", sa.Boolean, server_default=sa.false()),
        sa.Column("expected_delivery_at", sa.DateTime),
        sa.Column("final_delivery_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime),
        sa.Column("last_updated", sa.DateTime),
    )
    op.create_index("ix_orders_supplier_created", "orders", ["supplier_id", "created_at"])
    op.create_index("ix_orders_restaurant", "orders", ["restaurant_id"])
    op.create_index("ix_orders_source_message", "orders", ["source_message_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.Integer, sa.ForeignKey("catalog_items.id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
    )
    op.create_index("ix_order_items_order", "order_items", ["order_id"])

    op.create_table(
        "order_history",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("changed_at", sa.DateTime),
    )
    op.create_index("ix_order_history_order", "order_history", ["order_id"])


def downgrade() -> None:
    """Drop all tables. ⚠️ DESTRUCTIVE — only for dev/test environments."""
    for table in (
        "order_history",
        "order_items",
        "orders",
        "par_level_items",
        "par_levels",
        "catalog_items",
        "partnerships",
        "parties",
    ):
        op.drop_table(table)
