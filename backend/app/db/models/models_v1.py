from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, BigIntPK
from backend.app.db.models.core_types import (
    Role,
    MovementDirection,
    POStatus,
    InventoryStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA ----------
class Location(Base):
    __tablename__ = "locations"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Article(Base):
    __tablename__ = "articles"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    reference: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    designation: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[str | None] = mapped_column(String(128))
    category: Mapped[str | None] = mapped_column(String(128))

    # Peut être transitoirement négatif (corrections d'inventaire)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock_min: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock_max: Mapped[int | None] = mapped_column(Integer)
    purchase_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))

    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id", ondelete="SET NULL"))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Compare-and-swap sur chaque UPDATE (StaleDataError si concurrent)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    location: Mapped[Location | None] = relationship()
    supplier_links: Mapped[list["ArticleSupplier"]] = relationship(back_populates="article")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        CheckConstraint("stock_min >= 0", name="ck_article_stock_min_nonneg"),
        CheckConstraint("purchase_price IS NULL OR purchase_price >= 0", name="ck_article_price_nonneg"),
    )


class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ArticleSupplier(Base):
    __tablename__ = "article_suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    article_id: Mapped[int] = mapped_column(ForeignKey("articles.id", ondelete="CASCADE"), nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)

    # NULL => prix d'achat de l'article
    supplier_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    min_order_qty: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    is_principal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    article: Mapped[Article] = relationship(back_populates="supplier_links")
    supplier: Mapped[Supplier] = relationship()

    __table_args__ = (
        UniqueConstraint("article_id", "supplier_id", name="uq_article_supplier"),
        # Un seul fournisseur principal par article
        Index(
            "uq_article_supplier_principal",
            "article_id",
            unique=True,
            postgresql_where=text("is_principal"),
            sqlite_where=text("is_principal"),
        ),
        CheckConstraint("min_order_qty >= 1", name="ck_article_supplier_moq_pos"),
    )


# ---------- PROCUREMENT ----------
class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # Attribué par la base après insertion (PO-<année>-<id>)
    number: Mapped[str | None] = mapped_column(String(64), unique=True)

    # Snapshot fournisseur : les commandes historiques ne suivent pas les modifs
    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("suppliers.id", ondelete="SET NULL"))
    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    supplier_email: Mapped[str | None] = mapped_column(String(255))
    supplier_phone: Mapped[str | None] = mapped_column(String(64))
    supplier_address: Mapped[str | None] = mapped_column(Text)

    status: Mapped[POStatus] = mapped_column(Enum(POStatus, name="po_status"), default=POStatus.draft, nullable=False)
    total_ht: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_ttc: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    lines: Mapped[list["PurchaseOrderLine"]] = relationship(
        back_populates="po",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    po_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    article_id: Mapped[int] = mapped_column(ForeignKey("articles.id", ondelete="RESTRICT"), nullable=False)
    reference: Mapped[str] = mapped_column(String(64), nullable=False)
    designation: Mapped[str] = mapped_column(String(255), nullable=False)
    qty_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    qty_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    po: Mapped[PurchaseOrder] = relationship(back_populates="lines")
    article: Mapped[Article] = relationship()

    __table_args__ = (
        CheckConstraint("qty_ordered > 0", name="ck_po_line_qty_pos"),
        CheckConstraint("qty_received >= 0 AND qty_received <= qty_ordered", name="ck_po_line_received_range"),
        CheckConstraint("unit_price >= 0", name="ck_po_line_unit_price_nonneg"),
    )

    @property
    def qty_remaining(self) -> int:
        return self.qty_ordered - self.qty_received


# ---------- INVENTORY ----------
class InventorySession(Base):
    __tablename__ = "inventory_sessions"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    count_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    status: Mapped[InventoryStatus] = mapped_column(
        Enum(InventoryStatus, name="inventory_status"),
        default=InventoryStatus.in_progress,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    validated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    lines: Mapped[list["InventoryLine"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="InventoryLine.id",
    )


class InventoryLine(Base):
    __tablename__ = "inventory_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    article_id: Mapped[int] = mapped_column(ForeignKey("articles.id", ondelete="RESTRICT"), nullable=False)

    theoretical_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    counted_qty: Mapped[int | None] = mapped_column(Integer)
    # Toujours recalculé : counted - theoretical
    variance: Mapped[int | None] = mapped_column(Integer)

    counted_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    counted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    session: Mapped[InventorySession] = relationship(back_populates="lines")
    article: Mapped[Article] = relationship()

    __table_args__ = (
        UniqueConstraint("session_id", "article_id", name="uq_inventory_line_article"),
        CheckConstraint("counted_qty IS NULL OR counted_qty >= 0", name="ck_inventory_line_counted_nonneg"),
    )


class StockMovement(Base):
    __tablename__ = "stock_movements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    direction: Mapped[MovementDirection] = mapped_column(
        Enum(MovementDirection, name="movement_direction"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))
    happened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(String(64), unique=True)
    # Mouvement compensé (annulation d'une saisie erronée)
    reverses_id: Mapped[int | None] = mapped_column(ForeignKey("stock_movements.id", ondelete="RESTRICT"), unique=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
        Index("ix_stock_movements_article_time", "article_id", "happened_at"),
    )

    @property
    def signed_quantity(self) -> int:
        if self.direction == MovementDirection.inbound:
            return self.quantity
        return -self.quantity
