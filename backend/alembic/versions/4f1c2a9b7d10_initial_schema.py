"""initial schema: catalogue, procurement, inventory, ledger

Revision ID: 4f1c2a9b7d10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum("admin", "manager", "storekeeper", name="role")
PO_STATUS = sa.Enum(
    "draft", "sent", "confirmed", "partially_received", "received", "cancelled",
    name="po_status",
)
INVENTORY_STATUS = sa.Enum("in_progress", "closed", "validated", name="inventory_status")
MOVEMENT_DIRECTION = sa.Enum("inbound", "outbound", name="movement_direction")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    # ---------- MASTER DATA ----------
    op.create_table(
        "locations",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
    )
    op.create_table(
        "articles",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("reference", sa.String(64), nullable=False, unique=True),
        sa.Column("designation", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(128)),
        sa.Column("category", sa.String(128)),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_min", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_max", sa.Integer()),
        sa.Column("purchase_price", sa.Numeric(14, 2)),
        sa.Column("location_id", sa.BigInteger(), sa.ForeignKey("locations.id", ondelete="SET NULL")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at"),
        sa.CheckConstraint("stock_min >= 0", name="ck_article_stock_min_nonneg"),
        sa.CheckConstraint("purchase_price IS NULL OR purchase_price >= 0", name="ck_article_price_nonneg"),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("contact_name", sa.String(200)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(64)),
        sa.Column("address", sa.Text()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "article_suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("article_id", sa.BigInteger(), sa.ForeignKey("articles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_price", sa.Numeric(14, 2)),
        sa.Column("min_order_qty", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lead_time_days", sa.Integer()),
        sa.Column("is_principal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        sa.UniqueConstraint("article_id", "supplier_id", name="uq_article_supplier"),
        sa.CheckConstraint("min_order_qty >= 1", name="ck_article_supplier_moq_pos"),
    )
    # Un seul fournisseur principal par article
    op.create_index(
        "uq_article_supplier_principal",
        "article_suppliers",
        ["article_id"],
        unique=True,
        postgresql_where=sa.text("is_principal"),
        sqlite_where=sa.text("is_principal"),
    )

    # ---------- PROCUREMENT ----------
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("number", sa.String(64), unique=True),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="SET NULL")),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("supplier_email", sa.String(255)),
        sa.Column("supplier_phone", sa.String(64)),
        sa.Column("supplier_address", sa.Text()),
        sa.Column("status", PO_STATUS, nullable=False),
        sa.Column("total_ht", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_ttc", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _ts("created_at"),
        _ts("sent_at", nullable=True),
    )
    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("article_id", sa.BigInteger(), sa.ForeignKey("articles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("designation", sa.String(255), nullable=False),
        sa.Column("qty_ordered", sa.Integer(), nullable=False),
        sa.Column("qty_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("qty_ordered > 0", name="ck_po_line_qty_pos"),
        sa.CheckConstraint("qty_received >= 0 AND qty_received <= qty_ordered", name="ck_po_line_received_range"),
        sa.CheckConstraint("unit_price >= 0", name="ck_po_line_unit_price_nonneg"),
    )
    op.create_index("ix_purchase_order_lines_po_id", "purchase_order_lines", ["po_id"])

    # ---------- INVENTORY ----------
    op.create_table(
        "inventory_sessions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("count_date", sa.Date(), nullable=False, unique=True),
        sa.Column("status", INVENTORY_STATUS, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _ts("created_at"),
        _ts("closed_at", nullable=True),
        _ts("validated_at", nullable=True),
        sa.Column("validated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
    )
    op.create_table(
        "inventory_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("inventory_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("article_id", sa.BigInteger(), sa.ForeignKey("articles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("theoretical_qty", sa.Integer(), nullable=False),
        sa.Column("counted_qty", sa.Integer()),
        sa.Column("variance", sa.Integer()),
        sa.Column("counted_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _ts("counted_at", nullable=True),
        sa.UniqueConstraint("session_id", "article_id", name="uq_inventory_line_article"),
        sa.CheckConstraint("counted_qty IS NULL OR counted_qty >= 0", name="ck_inventory_line_counted_nonneg"),
    )
    op.create_index("ix_inventory_lines_session_id", "inventory_lines", ["session_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("article_id", sa.BigInteger(), sa.ForeignKey("articles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("direction", MOVEMENT_DIRECTION, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT")),
        _ts("happened_at"),
        sa.Column("idempotency_key", sa.String(64), unique=True),
        sa.Column(
            "reverses_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_movements.id", ondelete="RESTRICT"),
            unique=True,
        ),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
    )
    op.create_index("ix_stock_movements_article_id", "stock_movements", ["article_id"])
    op.create_index("ix_stock_movements_article_time", "stock_movements", ["article_id", "happened_at"])


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("inventory_lines")
    op.drop_table("inventory_sessions")
    op.drop_table("purchase_order_lines")
    op.drop_table("purchase_orders")
    op.drop_index("uq_article_supplier_principal", table_name="article_suppliers")
    op.drop_table("article_suppliers")
    op.drop_table("suppliers")
    op.drop_table("articles")
    op.drop_table("users")
    op.drop_table("locations")

    bind = op.get_bind()
    for enum in (MOVEMENT_DIRECTION, INVENTORY_STATUS, PO_STATUS, ROLE):
        enum.drop(bind, checkfirst=True)
