"""
Planificateur de réapprovisionnement ("commande intelligente").

1. Sélectionne les articles en alerte (stock == 0 ou stock <= stock_min)
   ayant au moins un lien fournisseur actif vers un fournisseur actif.
2. Calcule la quantité à commander et regroupe les lignes par fournisseur,
   le fournisseur principal de l'article étant prioritaire.
3. Crée une commande brouillon par groupe.

Le calcul (``plan_reorders``) est pur : il ne lit que des ReorderCandidate,
ce qui le rend testable sans base.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Article, ArticleSupplier, PurchaseOrder, Supplier
from backend.services.errors import NotFoundError
from backend.services.procurement import DraftLine, create_draft_order

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

STOCKOUT_MIN_QTY = 10
LOW_STOCK_MARGIN = 5


@dataclass(frozen=True)
class SupplierSnapshot:
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class ReorderCandidate:
    """Un lien article/fournisseur actif, joint à son article et son fournisseur."""

    article_id: int
    reference: str
    designation: str
    stock: int
    stock_min: int
    purchase_price: Decimal | None
    supplier: SupplierSnapshot
    supplier_price: Decimal | None = None
    is_principal: bool = False


@dataclass
class PlannedLine:
    article_id: int
    reference: str
    designation: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass
class PlannedOrder:
    supplier: SupplierSnapshot
    lines: list[PlannedLine] = field(default_factory=list)
    total_ht: Decimal = Decimal("0")
    total_ttc: Decimal = Decimal("0")

    def has_article(self, article_id: int) -> bool:
        return any(l.article_id == article_id for l in self.lines)


def needs_reorder(stock: int, stock_min: int) -> bool:
    return stock == 0 or stock <= stock_min


def reorder_quantity(stock: int, stock_min: int) -> int:
    """
    Rupture  : max(stock_min * 2, 10)
    Stock bas: stock_min - stock + 5
    """
    if stock == 0:
        return max(stock_min * 2, STOCKOUT_MIN_QTY)
    return stock_min - stock + LOW_STOCK_MARGIN


def apply_vat(total_ht: Decimal, vat_rate: Decimal) -> Decimal:
    rate = Decimal(vat_rate) / Decimal(100)
    return (Decimal(total_ht) * (Decimal(1) + rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def _unit_price(c: ReorderCandidate) -> Decimal:
    if c.supplier_price is not None:
        return Decimal(c.supplier_price)
    if c.purchase_price is not None:
        return Decimal(c.purchase_price)
    return Decimal("0")


def _planned_line(c: ReorderCandidate) -> PlannedLine:
    qty = reorder_quantity(c.stock, c.stock_min)
    price = _unit_price(c).quantize(CENT, rounding=ROUND_HALF_UP)
    return PlannedLine(
        article_id=c.article_id,
        reference=c.reference,
        designation=c.designation,
        quantity=qty,
        unit_price=price,
        line_total=(price * qty).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def plan_reorders(
    candidates: Iterable[ReorderCandidate],
    vat_rate: Decimal = Decimal("20"),
) -> dict[int, PlannedOrder]:
    """
    Regroupe les articles à commander par fournisseur.

    Garanties :
    - un article apparaît dans au plus UNE commande planifiée
    - un lien principal l'emporte toujours sur un lien non principal
    - aucun groupe vide n'est retourné
    """
    eligible = [c for c in candidates if needs_reorder(c.stock, c.stock_min)]
    principals = [c for c in eligible if c.is_principal]
    others = [c for c in eligible if not c.is_principal]

    groups: dict[int, PlannedOrder] = {}

    def _add(c: ReorderCandidate, line: PlannedLine) -> None:
        group = groups.get(c.supplier.id)
        if group is None:
            group = groups[c.supplier.id] = PlannedOrder(supplier=c.supplier)
        group.lines.append(line)
        group.total_ht += line.line_total

    # ---------- PRINCIPAUX ----------
    for c in principals:
        # Le principal récupère l'article s'il était déjà attribué ailleurs
        for sid, group in groups.items():
            if sid == c.supplier.id:
                continue
            for existing in [l for l in group.lines if l.article_id == c.article_id]:
                group.lines.remove(existing)
                group.total_ht -= existing.line_total

        own = groups.get(c.supplier.id)
        if own is not None and own.has_article(c.article_id):
            continue
        _add(c, _planned_line(c))

    # ---------- AUTRES ----------
    for c in others:
        if any(g.has_article(c.article_id) for g in groups.values()):
            continue
        _add(c, _planned_line(c))

    plan = {sid: g for sid, g in groups.items() if g.lines}
    for g in plan.values():
        g.total_ht = g.total_ht.quantize(CENT, rounding=ROUND_HALF_UP)
        g.total_ttc = apply_vat(g.total_ht, vat_rate)
    return plan


def load_reorder_candidates(db: Session) -> list[ReorderCandidate]:
    """Liens actifs vers fournisseurs actifs, pour les articles en alerte (ordre de création)."""
    rows = db.execute(
        select(ArticleSupplier, Article, Supplier)
        .join(Article, Article.id == ArticleSupplier.article_id)
        .join(Supplier, Supplier.id == ArticleSupplier.supplier_id)
        .where(ArticleSupplier.active.is_(True))
        .where(Supplier.active.is_(True))
        .where(Article.active.is_(True))
        .where(or_(Article.stock == 0, Article.stock <= Article.stock_min))
        .order_by(ArticleSupplier.created_at.asc(), ArticleSupplier.id.asc())
    ).all()

    return [
        ReorderCandidate(
            article_id=int(a.id),
            reference=a.reference,
            designation=a.designation,
            stock=a.stock,
            stock_min=a.stock_min,
            purchase_price=a.purchase_price,
            supplier=SupplierSnapshot(
                id=int(s.id),
                name=s.name,
                email=s.email,
                phone=s.phone,
                address=s.address,
            ),
            supplier_price=link.supplier_price,
            is_principal=link.is_principal,
        )
        for link, a, s in rows
    ]


def plan_reorders_from_db(db: Session, vat_rate: Decimal) -> dict[int, PlannedOrder]:
    return plan_reorders(load_reorder_candidates(db), vat_rate)


def create_order_for_supplier(
    db: Session,
    plan: dict[int, PlannedOrder],
    supplier_id: int,
    *,
    vat_rate: Decimal,
    actor_id: int | None,
) -> PurchaseOrder:
    planned = plan.get(supplier_id)
    if planned is None:
        raise NotFoundError(f"No planned order for supplier {supplier_id}")

    s = planned.supplier
    po = create_draft_order(
        db,
        supplier_id=s.id,
        supplier_name=s.name,
        supplier_email=s.email,
        supplier_phone=s.phone,
        supplier_address=s.address,
        lines=[
            DraftLine(
                article_id=l.article_id,
                reference=l.reference,
                designation=l.designation,
                quantity=l.quantity,
                unit_price=l.unit_price,
            )
            for l in planned.lines
        ],
        vat_rate=vat_rate,
        actor_id=actor_id,
    )
    logger.info("Smart order %s created for supplier %s (%d lines)", po.number, s.name, len(po.lines))
    return po


def create_orders_for_all(
    db: Session,
    plan: dict[int, PlannedOrder],
    *,
    vat_rate: Decimal,
    actor_id: int | None,
) -> list[PurchaseOrder]:
    """
    Une commande brouillon par groupe. Pas de commit ici : l'appelant commit
    une seule fois, tout échec annule donc l'ensemble des commandes.
    """
    return [
        create_order_for_supplier(db, plan, supplier_id, vat_rate=vat_rate, actor_id=actor_id)
        for supplier_id in plan
    ]
