"""
Index des préférences fournisseur : pour un article, quels fournisseurs
peuvent le livrer, à quel prix / délai, et lequel est principal.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from backend.app.db.models.models_v1 import Article, ArticleSupplier, Supplier
from backend.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def effective_price(link: ArticleSupplier) -> Decimal:
    """Prix fournisseur, sinon prix d'achat de l'article, sinon 0."""
    if link.supplier_price is not None:
        return Decimal(link.supplier_price)
    if link.article is not None and link.article.purchase_price is not None:
        return Decimal(link.article.purchase_price)
    return Decimal("0")


def _active_links_stmt(article_id: int):
    return (
        select(ArticleSupplier)
        .join(Supplier, Supplier.id == ArticleSupplier.supplier_id)
        .where(ArticleSupplier.article_id == article_id)
        .where(ArticleSupplier.active.is_(True))
        .where(Supplier.active.is_(True))
        .options(joinedload(ArticleSupplier.supplier), joinedload(ArticleSupplier.article))
    )


def suppliers_for(db: Session, article_id: int) -> list[ArticleSupplier]:
    """
    Liens actifs vers des fournisseurs actifs, triés :
    principal d'abord, puis prix effectif croissant, puis délai.
    """
    links = list(db.execute(_active_links_stmt(article_id)).scalars().unique().all())
    links.sort(
        key=lambda l: (
            not l.is_principal,
            effective_price(l),
            l.lead_time_days if l.lead_time_days is not None else 10**6,
            l.id,
        )
    )
    return links


def principal_supplier_for(db: Session, article_id: int) -> Supplier | None:
    link = (
        db.execute(_active_links_stmt(article_id).where(ArticleSupplier.is_principal.is_(True)))
        .scalars()
        .first()
    )
    return link.supplier if link else None


def link_supplier(
    db: Session,
    article_id: int,
    supplier_id: int,
    *,
    supplier_price: Decimal | None = None,
    min_order_qty: int = 1,
    lead_time_days: int | None = None,
    is_principal: bool = False,
    active: bool = True,
) -> ArticleSupplier:
    """
    Crée ou met à jour le lien article/fournisseur.

    Marquer un lien principal retire le drapeau des autres liens de l'article
    (l'index unique partiel refuserait sinon le second principal).
    """
    if not db.get(Article, article_id):
        raise NotFoundError(f"Article {article_id} not found")
    if not db.get(Supplier, supplier_id):
        raise NotFoundError(f"Supplier {supplier_id} not found")
    if min_order_qty < 1:
        raise ValidationError("min_order_qty must be >= 1")

    if is_principal:
        db.execute(
            update(ArticleSupplier)
            .where(ArticleSupplier.article_id == article_id)
            .where(ArticleSupplier.supplier_id != supplier_id)
            .where(ArticleSupplier.is_principal.is_(True))
            .values(is_principal=False)
            .execution_options(synchronize_session="fetch")
        )

    link = db.execute(
        select(ArticleSupplier)
        .where(ArticleSupplier.article_id == article_id)
        .where(ArticleSupplier.supplier_id == supplier_id)
    ).scalar_one_or_none()

    if not link:
        link = ArticleSupplier(article_id=article_id, supplier_id=supplier_id)
        db.add(link)

    link.supplier_price = supplier_price
    link.min_order_qty = min_order_qty
    link.lead_time_days = lead_time_days
    link.is_principal = is_principal
    link.active = active
    db.flush()

    if is_principal:
        logger.info("Supplier %s is now principal for article %s", supplier_id, article_id)
    return link
