from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.db.models.models_v1 import Article, Location
from backend.app.db.models.core_types import MovementDirection
from backend.app.schemas.articles import ArticleRead, ArticleSupplierRead, SupplierRead
from backend.services import inventory, suppliers

router = APIRouter(prefix="/articles")


class ArticleCreate(BaseModel):
    reference: str = Field(min_length=1, max_length=64)
    designation: str = Field(min_length=1, max_length=255)
    brand: str | None = Field(default=None, max_length=128)
    category: str | None = Field(default=None, max_length=128)
    stock_min: int = Field(default=0, ge=0)
    stock_max: int | None = Field(default=None, ge=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    location_id: int | None = None
    initial_stock: int = Field(default=0, ge=0)


class ArticleSupplierLink(BaseModel):
    supplier_id: int
    supplier_price: Decimal | None = Field(default=None, ge=0)
    min_order_qty: int = Field(default=1, ge=1)
    lead_time_days: int | None = Field(default=None, ge=0)
    is_principal: bool = False
    active: bool = True


@router.get("", response_model=list[ArticleRead])
def list_articles(db: Session = Depends(get_db)):
    return db.execute(select(Article).order_by(Article.reference)).scalars().all()


@router.get("/alerts", response_model=list[ArticleRead])
def list_alerts(db: Session = Depends(get_db)):
    """Articles en rupture (stock == 0) ou sous le minimum."""
    stmt = (
        select(Article)
        .where(Article.active.is_(True))
        .where(or_(Article.stock == 0, Article.stock <= Article.stock_min))
        .order_by(Article.stock, Article.reference)
    )
    return db.execute(stmt).scalars().all()


@router.get("/{article_id}", response_model=ArticleRead)
def get_article(article_id: int, db: Session = Depends(get_db)):
    a = db.get(Article, article_id)
    if not a:
        raise HTTPException(status_code=404, detail="Article not found")
    return a


@router.post("", response_model=ArticleRead)
def create_article(
    payload: ArticleCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    exists = db.execute(select(Article).where(Article.reference == payload.reference)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Reference already exists")
    if payload.location_id is not None and not db.get(Location, payload.location_id):
        raise HTTPException(status_code=400, detail="Invalid location_id")

    a = Article(
        reference=payload.reference,
        designation=payload.designation,
        brand=payload.brand,
        category=payload.category,
        stock=0,
        stock_min=payload.stock_min,
        stock_max=payload.stock_max,
        purchase_price=payload.purchase_price,
        location_id=payload.location_id,
    )
    db.add(a)
    db.flush()

    # Le stock initial passe par le journal comme tout le reste
    if payload.initial_stock > 0:
        inventory.apply_movement(
            db,
            a.id,
            MovementDirection.inbound,
            payload.initial_stock,
            "initial stock",
            actor_id,
        )

    db.commit()
    db.refresh(a)
    return a


@router.get("/{article_id}/suppliers", response_model=list[ArticleSupplierRead])
def list_article_suppliers(article_id: int, db: Session = Depends(get_db)):
    if not db.get(Article, article_id):
        raise HTTPException(status_code=404, detail="Article not found")
    return suppliers.suppliers_for(db, article_id)


@router.post("/{article_id}/suppliers", response_model=ArticleSupplierRead)
def link_article_supplier(article_id: int, payload: ArticleSupplierLink, db: Session = Depends(get_db)):
    link = suppliers.link_supplier(
        db,
        article_id,
        payload.supplier_id,
        supplier_price=payload.supplier_price,
        min_order_qty=payload.min_order_qty,
        lead_time_days=payload.lead_time_days,
        is_principal=payload.is_principal,
        active=payload.active,
    )
    db.commit()
    db.refresh(link)
    return link


@router.get("/{article_id}/principal-supplier", response_model=SupplierRead | None)
def get_principal_supplier(article_id: int, db: Session = Depends(get_db)):
    if not db.get(Article, article_id):
        raise HTTPException(status_code=404, detail="Article not found")
    return suppliers.principal_supplier_for(db, article_id)
