from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from backend.app.db.models.core_types import POStatus


class PurchaseOrderLineRead(BaseModel):
    id: int
    article_id: int
    reference: str
    designation: str
    qty_ordered: int
    qty_received: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class PurchaseOrderRead(BaseModel):
    id: int
    number: str | None
    supplier_id: int | None
    supplier_name: str
    supplier_email: str | None
    supplier_phone: str | None
    supplier_address: str | None
    status: POStatus
    total_ht: Decimal
    total_ttc: Decimal
    vat_rate: Decimal
    notes: str | None
    created_by: int | None
    created_at: datetime
    sent_at: datetime | None
    lines: list[PurchaseOrderLineRead] = []

    class Config:
        from_attributes = True


class PlannedLineRead(BaseModel):
    article_id: int
    reference: str
    designation: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class PlannedSupplierRead(BaseModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    address: str | None

    class Config:
        from_attributes = True


class PlannedOrderRead(BaseModel):
    supplier: PlannedSupplierRead
    lines: list[PlannedLineRead]
    total_ht: Decimal
    total_ttc: Decimal

    class Config:
        from_attributes = True
