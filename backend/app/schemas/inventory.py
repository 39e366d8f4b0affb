from datetime import date, datetime

from pydantic import BaseModel

from backend.app.db.models.core_types import InventoryStatus


class InventorySessionRead(BaseModel):
    id: int
    count_date: date
    status: InventoryStatus
    notes: str | None
    created_by: int | None
    created_at: datetime
    closed_at: datetime | None
    validated_at: datetime | None
    validated_by: int | None

    class Config:
        from_attributes = True


class InventoryLineRead(BaseModel):
    id: int
    session_id: int
    article_id: int
    theoretical_qty: int
    counted_qty: int | None
    variance: int | None  # READ ONLY : counted - theoretical
    counted_by: int | None
    counted_at: datetime | None

    class Config:
        from_attributes = True


class InventorySummaryRead(BaseModel):
    total: int
    counted: int
    remaining: int
    with_variance: int

    class Config:
        from_attributes = True
