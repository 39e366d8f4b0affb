from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.models_v1 import Location

router = APIRouter(prefix="/locations")


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


@router.get("")
def list_locations(db: Session = Depends(get_db)):
    rows = db.execute(select(Location).order_by(Location.name)).scalars().all()
    return [
        {
            "id": l.id,
            "name": l.name,
            "description": l.description,
            "active": l.active,
        }
        for l in rows
    ]


@router.post("")
def create_location(payload: LocationCreate, db: Session = Depends(get_db)):
    exists = db.execute(select(Location).where(Location.name == payload.name)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Location already exists")

    l = Location(name=payload.name, description=payload.description)
    db.add(l)
    db.commit()
    db.refresh(l)
    return {"id": l.id, "name": l.name}
