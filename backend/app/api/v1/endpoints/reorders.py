from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.core.config import Settings, get_settings
from backend.app.schemas.purchase_order import PlannedOrderRead, PurchaseOrderRead
from backend.services import reorder

router = APIRouter(prefix="/reorders")


@router.get("/plan", response_model=dict[int, PlannedOrderRead])
def get_plan(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Commandes proposées, groupées par fournisseur (lecture seule)."""
    return reorder.plan_reorders_from_db(db, settings.vat_rate)


@router.post("/orders")
def create_all_orders(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor_id: int = Depends(get_actor_id),
):
    # Plan recalculé au moment de la création, dans la même transaction
    plan = reorder.plan_reorders_from_db(db, settings.vat_rate)
    orders = reorder.create_orders_for_all(db, plan, vat_rate=settings.vat_rate, actor_id=actor_id)
    db.commit()
    return {
        "created": len(orders),
        "orders": [{"id": po.id, "number": po.number, "supplier_name": po.supplier_name} for po in orders],
    }


@router.post("/orders/{supplier_id}", response_model=PurchaseOrderRead)
def create_supplier_order(
    supplier_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor_id: int = Depends(get_actor_id),
):
    plan = reorder.plan_reorders_from_db(db, settings.vat_rate)
    po = reorder.create_order_for_supplier(db, plan, supplier_id, vat_rate=settings.vat_rate, actor_id=actor_id)
    db.commit()
    db.refresh(po)
    return po
