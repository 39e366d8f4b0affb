from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.db.models.models_v1 import Article
from backend.app.db.models.core_types import MovementDirection
from backend.app.schemas.stock_movement import StockMovementRead
from backend.services import inventory

router = APIRouter(prefix="/stock-movements")


# ---------- Schemas ----------
class MovementCreate(BaseModel):
    article_id: int
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=255)


class ReverseCreate(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


# ---------- Helpers ----------
def _require_idempotency_key(idempotency_key: str | None) -> str:
    if not idempotency_key or not idempotency_key.strip():
        raise HTTPException(status_code=400, detail="Missing Idempotency-Key header")
    return idempotency_key.strip()


def _apply(
    db: Session,
    payload: MovementCreate,
    direction: MovementDirection,
    idem: str,
    actor_id: int,
):
    mv = inventory.apply_movement(
        db,
        payload.article_id,
        direction,
        payload.quantity,
        payload.reason,
        actor_id,
        idempotency_key=idem,
    )
    db.commit()
    db.refresh(mv)
    return mv


# ---------- Endpoints ----------
@router.get("", response_model=list[StockMovementRead])
def list_movements(
    article_id: int | None = None,
    limit: int = 200,
    db: Session = Depends(get_db),
):
    return inventory.list_movements(db, article_id=article_id, limit=min(max(limit, 1), 1000))


@router.post("/in", response_model=StockMovementRead)
def stock_entry(
    payload: MovementCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    idem = _require_idempotency_key(idempotency_key)
    return _apply(db, payload, MovementDirection.inbound, idem, actor_id)


@router.post("/out", response_model=StockMovementRead)
def stock_exit(
    payload: MovementCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    idem = _require_idempotency_key(idempotency_key)
    return _apply(db, payload, MovementDirection.outbound, idem, actor_id)


@router.post("/{movement_id}/reverse", response_model=StockMovementRead)
def reverse_movement(
    movement_id: int,
    payload: ReverseCreate | None = None,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    mv = inventory.reverse_movement(
        db,
        movement_id,
        actor_id,
        reason=payload.reason if payload else None,
    )
    db.commit()
    db.refresh(mv)
    return mv


@router.get("/balance/{article_id}")
def movement_balance(article_id: int, db: Session = Depends(get_db)):
    """Stock reconstitué depuis le journal, comparé au stock courant."""
    a = db.get(Article, article_id)
    if not a:
        raise HTTPException(status_code=404, detail="Article not found")
    balance = inventory.ledger_balance(db, article_id)
    return {
        "article_id": a.id,
        "stock": a.stock,
        "ledger_balance": balance,
        "consistent": balance == a.stock,
    }
