from decimal import Decimal

from pydantic import BaseModel


class ArticleRead(BaseModel):
    id: int
    reference: str
    designation: str
    brand: str | None
    category: str | None

    stock: int  # READ ONLY : modifié uniquement via les mouvements
    stock_min: int
    stock_max: int | None
    purchase_price: Decimal | None
    location_id: int | None
    active: bool

    class Config:
        from_attributes = True


class SupplierRead(BaseModel):
    id: int
    name: str
    contact_name: str | None
    email: str | None
    phone: str | None
    address: str | None
    active: bool

    class Config:
        from_attributes = True


class ArticleSupplierRead(BaseModel):
    id: int
    article_id: int
    supplier_id: int
    supplier_price: Decimal | None
    min_order_qty: int
    lead_time_days: int | None
    is_principal: bool
    active: bool

    class Config:
        from_attributes = True
