from datetime import datetime

from pydantic import BaseModel

from backend.app.db.models.core_types import MovementDirection


class StockMovementRead(BaseModel):
    id: int
    article_id: int
    direction: MovementDirection
    quantity: int
    reason: str
    actor_id: int | None
    happened_at: datetime
    idempotency_key: str | None
    reverses_id: int | None

    class Config:
        from_attributes = True
