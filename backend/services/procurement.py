"""
Procurement service.

Ce module orchestre les flux d'achat (création de commande brouillon,
confirmation, réception, annulation) mais ne contient AUCUNE logique de
calcul de stock.

Toute la logique stock est centralisée dans :
    backend.services.inventory
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.db.models.models_v1 import PurchaseOrder, PurchaseOrderLine
from backend.app.db.models.core_types import MovementDirection, POStatus
from backend.services import inventory
from backend.services.errors import InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Commandes pouvant encore recevoir de la marchandise
RECEIVABLE_STATUSES = {
    POStatus.sent,
    POStatus.confirmed,
    POStatus.partially_received,
}

CANCELLABLE_STATUSES = {
    POStatus.draft,
    POStatus.sent,
    POStatus.confirmed,
}


@dataclass(frozen=True)
class DraftLine:
    article_id: int
    reference: str
    designation: str
    quantity: int
    unit_price: Decimal


def assign_po_number(po: PurchaseOrder) -> str:
    """Numérotation côté base : PO-<année>-<id sur 6 chiffres>. Nécessite un id (flush)."""
    po.number = f"PO-{po.created_at:%Y}-{int(po.id):06d}"
    return po.number


def create_draft_order(
    db: Session,
    *,
    supplier_id: int | None,
    supplier_name: str,
    supplier_email: str | None,
    supplier_phone: str | None,
    supplier_address: str | None,
    lines: list[DraftLine],
    vat_rate: Decimal,
    actor_id: int | None,
    notes: str | None = None,
) -> PurchaseOrder:
    if not lines:
        raise ValidationError("A purchase order needs at least one line")

    po = PurchaseOrder(
        number=None,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        supplier_email=supplier_email,
        supplier_phone=supplier_phone,
        supplier_address=supplier_address,
        status=POStatus.draft,
        vat_rate=Decimal(vat_rate),
        created_by=actor_id,
        notes=notes,
    )
    db.add(po)

    total_ht = Decimal("0")
    for ln in lines:
        if ln.quantity <= 0:
            raise ValidationError(f"Invalid quantity for {ln.reference}")
        unit_price = Decimal(ln.unit_price).quantize(CENT, rounding=ROUND_HALF_UP)
        line_total = (unit_price * ln.quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        po.lines.append(
            PurchaseOrderLine(
                article_id=ln.article_id,
                reference=ln.reference,
                designation=ln.designation,
                qty_ordered=ln.quantity,
                qty_received=0,
                unit_price=unit_price,
                line_total=line_total,
            )
        )
        total_ht += line_total

    po.total_ht = total_ht
    po.total_ttc = (total_ht * (1 + Decimal(vat_rate) / 100)).quantize(CENT, rounding=ROUND_HALF_UP)

    db.flush()  # get po.id
    assign_po_number(po)
    db.flush()
    return po


def get_order(db: Session, po_id: int) -> PurchaseOrder:
    po = db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.id == po_id)
        .options(selectinload(PurchaseOrder.lines))
    ).scalar_one_or_none()
    if not po:
        raise NotFoundError("PO not found")
    return po


def confirm_order(db: Session, po_id: int) -> PurchaseOrder:
    po = get_order(db, po_id)
    if po.status != POStatus.sent:
        raise InvalidStateError(f"Only sent orders can be confirmed (status={po.status.value})")
    po.status = POStatus.confirmed
    db.flush()
    return po


def cancel_order(db: Session, po_id: int) -> PurchaseOrder:
    po = get_order(db, po_id)
    if po.status not in CANCELLABLE_STATUSES:
        raise InvalidStateError(f"Order cannot be cancelled (status={po.status.value})")
    po.status = POStatus.cancelled
    db.flush()
    logger.info("Purchase order %s cancelled", po.number)
    return po


def receive_order(
    db: Session,
    po_id: int,
    receipts: Mapping[int, int],
    actor_id: int | None,
) -> PurchaseOrder:
    """
    Réception (partielle ou totale) de lignes de commande.

    ``receipts`` : {line_id: quantité reçue maintenant}. La quantité est
    plafonnée au reste à recevoir ; le stock augmente via le ledger.
    """
    po = get_order(db, po_id)
    if po.status not in RECEIVABLE_STATUSES:
        raise InvalidStateError(f"Order cannot be received (status={po.status.value})")

    lines_by_id = {int(l.id): l for l in po.lines}
    for line_id, qty in receipts.items():
        if int(line_id) not in lines_by_id:
            raise ValidationError(f"Line {line_id} not in PO")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError(f"Invalid received quantity for line {line_id}")

    received_any = False
    for line_id, qty in receipts.items():
        line = lines_by_id[int(line_id)]
        qty = min(qty, line.qty_remaining)
        if qty <= 0:
            continue
        line.qty_received += qty
        inventory.apply_movement(
            db,
            line.article_id,
            MovementDirection.inbound,
            qty,
            f"purchase order reception {po.number}",
            actor_id,
        )
        received_any = True

    if not received_any:
        raise ValidationError("Nothing left to receive on these lines")

    if all(l.qty_remaining == 0 for l in po.lines):
        po.status = POStatus.received
    else:
        po.status = POStatus.partially_received
    db.flush()

    logger.info("Purchase order %s received -> %s", po.number, po.status.value)
    return po
