"""
Journal des mouvements de stock (ledger).

Toute la logique de mise à jour du stock est centralisée ici : le stock d'un
article ne change JAMAIS sans un StockMovement correspondant.

Invariant :
    article.stock == SUM(in) - SUM(out)   (hors écrasements administratifs)
"""

from __future__ import annotations

import logging

from sqlalchemy import select, func, case
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Article, StockMovement
from backend.app.db.models.core_types import MovementDirection
from backend.services.errors import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _check_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    return quantity


def lock_article(db: Session, article_id: int) -> Article:
    """SELECT ... FOR UPDATE sur l'article (no-op sous SQLite)."""
    article = (
        db.execute(
            select(Article)
            .where(Article.id == article_id)
            .with_for_update()
        )
        .scalar_one_or_none()
    )
    if not article:
        raise NotFoundError(f"Article {article_id} not found")
    return article


def find_by_idempotency_key(db: Session, key: str) -> StockMovement | None:
    return db.execute(
        select(StockMovement).where(StockMovement.idempotency_key == key)
    ).scalar_one_or_none()


def record(
    db: Session,
    article_id: int,
    direction: MovementDirection,
    quantity: int,
    reason: str,
    actor_id: int | None,
    *,
    idempotency_key: str | None = None,
    reverses_id: int | None = None,
) -> StockMovement:
    """
    Ajoute une ligne au journal, sans toucher au stock.

    Append-only : aucune fonction de ce module ne modifie ni ne supprime un
    mouvement existant.
    """
    _check_quantity(quantity)
    direction = MovementDirection(direction)
    if not reason or not reason.strip():
        raise ValidationError("A movement reason is required")

    mv = StockMovement(
        article_id=article_id,
        direction=direction,
        quantity=quantity,
        reason=reason.strip(),
        actor_id=actor_id,
        idempotency_key=idempotency_key,
        reverses_id=reverses_id,
    )
    db.add(mv)
    db.flush()
    return mv


def apply_movement(
    db: Session,
    article_id: int,
    direction: MovementDirection,
    quantity: int,
    reason: str,
    actor_id: int | None,
    *,
    allow_negative: bool = False,
    idempotency_key: str | None = None,
    reverses_id: int | None = None,
) -> StockMovement:
    """
    Enregistre le mouvement ET applique le delta signé au stock de l'article.

    - verrouillage de la ligne article (FOR UPDATE + version)
    - refus d'un stock négatif sauf ``allow_negative``
    - rejeu idempotent : même clé => mouvement existant retourné, pas de double stock
    """
    _check_quantity(quantity)
    direction = MovementDirection(direction)

    if idempotency_key:
        existing = find_by_idempotency_key(db, idempotency_key)
        if existing:
            return existing

    article = lock_article(db, article_id)

    delta = quantity if direction == MovementDirection.inbound else -quantity
    new_stock = article.stock + delta
    if new_stock < 0 and not allow_negative:
        raise InsufficientStockError(
            f"Insufficient stock for {article.reference} (stock={article.stock}, requested={quantity})"
        )

    mv = record(
        db,
        article.id,
        direction,
        quantity,
        reason,
        actor_id,
        idempotency_key=idempotency_key,
        reverses_id=reverses_id,
    )
    article.stock = new_stock
    db.flush()

    logger.info(
        "Stock movement %s %s x%d on %s (%s) -> stock=%d",
        mv.id,
        direction.value,
        quantity,
        article.reference,
        mv.reason,
        new_stock,
    )
    return mv


def reverse_movement(
    db: Session,
    movement_id: int,
    actor_id: int | None,
    reason: str | None = None,
) -> StockMovement:
    """
    Annule une saisie erronée par un mouvement compensatoire (sens inverse).

    L'historique n'est jamais effacé ; un mouvement ne peut être compensé
    qu'une seule fois, et un mouvement compensatoire ne se compense pas.
    """
    original = db.get(StockMovement, movement_id)
    if not original:
        raise NotFoundError(f"Movement {movement_id} not found")
    if original.reverses_id is not None:
        raise InvalidStateError("A compensating movement cannot be reversed")

    already = db.execute(
        select(StockMovement.id).where(StockMovement.reverses_id == original.id)
    ).scalar_one_or_none()
    if already is not None:
        raise InvalidStateError(f"Movement {movement_id} already reversed")

    opposite = (
        MovementDirection.outbound
        if original.direction == MovementDirection.inbound
        else MovementDirection.inbound
    )
    return apply_movement(
        db,
        original.article_id,
        opposite,
        original.quantity,
        reason or f"reversal of movement {original.id}",
        actor_id,
        allow_negative=True,
        reverses_id=original.id,
    )


def ledger_balance(db: Session, article_id: int) -> int:
    """SUM(in) - SUM(out) pour un article, à partir de zéro."""
    signed = case(
        (StockMovement.direction == MovementDirection.inbound, StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    total = db.execute(
        select(func.coalesce(func.sum(signed), 0)).where(StockMovement.article_id == article_id)
    ).scalar_one()
    return int(total)


def list_movements(db: Session, article_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    stmt = select(StockMovement).order_by(StockMovement.happened_at.desc(), StockMovement.id.desc())
    if article_id is not None:
        stmt = stmt.where(StockMovement.article_id == article_id)
    return list(db.execute(stmt.limit(limit)).scalars().all())
