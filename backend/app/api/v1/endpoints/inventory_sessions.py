from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.db.models.models_v1 import InventoryLine, InventorySession
from backend.app.schemas.inventory import (
    InventoryLineRead,
    InventorySessionRead,
    InventorySummaryRead,
)
from backend.services import reconciliation

router = APIRouter(prefix="/inventory-sessions")


class SessionCreate(BaseModel):
    count_date: date
    notes: str | None = None


class CountUpdate(BaseModel):
    counted_qty: int = Field(ge=0)


@router.get("", response_model=list[InventorySessionRead])
def list_sessions(db: Session = Depends(get_db)):
    return db.execute(select(InventorySession).order_by(InventorySession.count_date.desc())).scalars().all()


@router.post("", response_model=InventorySessionRead)
def open_session(
    payload: SessionCreate,
    response: Response,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    session, created = reconciliation.open_session(db, payload.count_date, actor_id, payload.notes)
    db.commit()
    db.refresh(session)
    response.status_code = 201 if created else 200
    return session


@router.get("/{session_id}")
def get_session(session_id: int, db: Session = Depends(get_db)):
    session = reconciliation.get_session(db, session_id)
    summary = reconciliation.session_summary(db, session_id)
    return {
        "session": InventorySessionRead.model_validate(session),
        "summary": InventorySummaryRead.model_validate(summary),
    }


@router.get("/{session_id}/lines", response_model=list[InventoryLineRead])
def list_lines(
    session_id: int,
    only_variances: bool = False,
    db: Session = Depends(get_db),
):
    reconciliation.get_session(db, session_id)
    stmt = (
        select(InventoryLine)
        .where(InventoryLine.session_id == session_id)
        .order_by(InventoryLine.id)
    )
    if only_variances:
        stmt = stmt.where(InventoryLine.variance.is_not(None)).where(InventoryLine.variance != 0)
    return db.execute(stmt).scalars().all()


@router.put("/{session_id}/lines/{line_id}", response_model=InventoryLineRead)
def record_count(
    session_id: int,
    line_id: int,
    payload: CountUpdate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    line = db.get(InventoryLine, line_id)
    if not line or line.session_id != session_id:
        raise HTTPException(status_code=404, detail="Inventory line not found")

    line = reconciliation.record_count(db, line_id, payload.counted_qty, actor_id)
    db.commit()
    db.refresh(line)
    return line


@router.post("/{session_id}/close")
def close_session(session_id: int, db: Session = Depends(get_db)):
    session, discrepancies = reconciliation.close_session(db, session_id)
    db.commit()
    db.refresh(session)
    return {
        "session": InventorySessionRead.model_validate(session),
        "discrepancies": discrepancies,
    }


@router.post("/{session_id}/validate")
def validate_session(
    session_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    result = reconciliation.validate_session(db, session_id, actor_id)
    db.commit()
    db.refresh(result.session)
    return {
        "session": InventorySessionRead.model_validate(result.session),
        "adjusted": result.adjusted,
        "drifted": result.drifted,
    }
