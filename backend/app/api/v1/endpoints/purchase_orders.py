from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.api.deps import get_actor_id, get_db
from backend.app.core.config import Settings, get_settings
from backend.app.db.models.models_v1 import PurchaseOrder
from backend.app.db.models.core_types import POStatus
from backend.app.schemas.purchase_order import PurchaseOrderRead
from backend.services import mailer, procurement
from backend.services.documents import render_purchase_order_pdf

router = APIRouter(prefix="/purchase-orders")


class ReceiptLine(BaseModel):
    line_id: int
    quantity: int = Field(gt=0)


class ReceiptCreate(BaseModel):
    lines: list[ReceiptLine] = Field(min_length=1)


@router.get("", response_model=list[PurchaseOrderRead])
def list_pos(status: POStatus | None = None, db: Session = Depends(get_db)):
    stmt = (
        select(PurchaseOrder)
        .options(selectinload(PurchaseOrder.lines))
        .order_by(PurchaseOrder.id.desc())
    )
    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status)
    return db.execute(stmt).scalars().all()


@router.get("/{po_id}", response_model=PurchaseOrderRead)
def get_po(po_id: int, db: Session = Depends(get_db)):
    return procurement.get_order(db, po_id)


@router.get("/{po_id}/pdf")
def get_po_pdf(
    po_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    po = procurement.get_order(db, po_id)
    content = render_purchase_order_pdf(po, settings.mail_sender_name)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{po.number}.pdf"'},
    )


@router.post("/{po_id}/send", response_model=PurchaseOrderRead)
def send_po(
    po_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    config = mailer.smtp_config_from_settings(settings)
    po = mailer.send_purchase_order(db, po_id, config, settings.mail_sender_name)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/confirm", response_model=PurchaseOrderRead)
def confirm_po(po_id: int, db: Session = Depends(get_db)):
    po = procurement.confirm_order(db, po_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/cancel", response_model=PurchaseOrderRead)
def cancel_po(po_id: int, db: Session = Depends(get_db)):
    po = procurement.cancel_order(db, po_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/receive", response_model=PurchaseOrderRead)
def receive_po(
    po_id: int,
    payload: ReceiptCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    receipts: dict[int, int] = {}
    for ln in payload.lines:
        receipts[ln.line_id] = receipts.get(ln.line_id, 0) + ln.quantity

    po = procurement.receive_order(db, po_id, receipts, actor_id)
    db.commit()
    db.refresh(po)
    return po
