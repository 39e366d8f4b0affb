"""
Moteur de rapprochement d'inventaire (comptage physique).

Cycle de vie (jamais de retour arrière) :
    in_progress -> closed -> validated

- ouverture : une ligne par article actif, stock théorique figé
- comptage  : counted / variance par ligne, AUCUN effet sur le stock réel
- clôture   : refusée tant qu'une ligne n'est pas comptée ; les écarts
              ne bloquent pas, ils sont seulement remontés à l'appelant
- validation: chaque écart non nul est appliqué au stock réel via le ledger
              (un mouvement "inventory correction" par article ajusté)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, func, case, and_
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Article, InventoryLine, InventorySession
from backend.app.db.models.core_types import InventoryStatus, MovementDirection
from backend.services import inventory
from backend.services.errors import (
    IncompleteCountError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CORRECTION_REASON = "inventory correction"


@dataclass(frozen=True)
class SessionSummary:
    total: int
    counted: int
    remaining: int
    with_variance: int


@dataclass(frozen=True)
class ValidationResult:
    session: InventorySession
    adjusted: int
    drifted: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_session(db: Session, session_id: int) -> InventorySession:
    s = db.get(InventorySession, session_id)
    if not s:
        raise NotFoundError("Inventory session not found")
    return s


def open_session(
    db: Session,
    count_date: date,
    actor_id: int | None,
    notes: str | None = None,
) -> tuple[InventorySession, bool]:
    """
    Ouvre (ou reprend) la session d'inventaire du jour ``count_date``.

    Retourne (session, created). Une session déjà validée pour cette date
    ne peut pas être rouverte.

    Une seule session non validée (en cours ou clôturée) à la fois.
    """
    existing = db.execute(
        select(InventorySession).where(InventorySession.count_date == count_date)
    ).scalar_one_or_none()
    if existing:
        if existing.status == InventoryStatus.validated:
            raise InvalidStateError(f"A validated inventory already exists for {count_date.isoformat()}")
        return existing, False

    pending = db.execute(
        select(InventorySession)
        .where(InventorySession.status.in_([InventoryStatus.in_progress, InventoryStatus.closed]))
        .order_by(InventorySession.count_date)
    ).scalars().first()
    if pending:
        raise InvalidStateError(
            f"Inventory of {pending.count_date.isoformat()} is still {pending.status.value}, "
            "validate it before opening another one"
        )

    session = InventorySession(
        count_date=count_date,
        status=InventoryStatus.in_progress,
        notes=(notes or "").strip() or None,
        created_by=actor_id,
    )
    db.add(session)
    db.flush()

    articles = db.execute(
        select(Article).where(Article.active.is_(True)).order_by(Article.reference)
    ).scalars().all()
    for a in articles:
        db.add(
            InventoryLine(
                session_id=session.id,
                article_id=a.id,
                theoretical_qty=a.stock,
                counted_qty=None,
                variance=None,
            )
        )
    db.flush()

    logger.info("Inventory session %s opened for %s (%d lines)", session.id, count_date, len(articles))
    return session, True


def record_count(
    db: Session,
    line_id: int,
    counted_qty: int,
    actor_id: int | None,
) -> InventoryLine:
    if isinstance(counted_qty, bool) or not isinstance(counted_qty, int) or counted_qty < 0:
        raise ValidationError("Counted quantity must be a non-negative integer")

    line = db.get(InventoryLine, line_id)
    if not line:
        raise NotFoundError("Inventory line not found")
    if line.session.status != InventoryStatus.in_progress:
        raise InvalidStateError(f"Inventory session is {line.session.status.value}, counts are locked")

    line.counted_qty = counted_qty
    line.variance = counted_qty - line.theoretical_qty
    line.counted_by = actor_id
    line.counted_at = _now()
    db.flush()
    return line


def session_summary(db: Session, session_id: int) -> SessionSummary:
    get_session(db, session_id)
    total, counted, with_variance = db.execute(
        select(
            func.count(InventoryLine.id),
            func.count(InventoryLine.counted_qty),
            func.coalesce(
                func.sum(
                    case(
                        (and_(InventoryLine.variance.is_not(None), InventoryLine.variance != 0), 1),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(InventoryLine.session_id == session_id)
    ).one()
    return SessionSummary(
        total=int(total),
        counted=int(counted),
        remaining=int(total) - int(counted),
        with_variance=int(with_variance),
    )


def close_session(db: Session, session_id: int) -> tuple[InventorySession, int]:
    """
    Clôture. Retourne (session, nombre d'articles avec écart).

    Seule l'incomplétude bloque ; les écarts sont un avertissement que
    l'appelant doit faire confirmer.
    """
    session = get_session(db, session_id)
    if session.status != InventoryStatus.in_progress:
        raise InvalidStateError(f"Inventory session is already {session.status.value}")

    summary = session_summary(db, session_id)
    if summary.remaining > 0:
        raise IncompleteCountError(summary.remaining)

    session.status = InventoryStatus.closed
    session.closed_at = _now()
    db.flush()

    logger.info(
        "Inventory session %s closed (%d lines, %d discrepancies)",
        session.id,
        summary.total,
        summary.with_variance,
    )
    return session, summary.with_variance


def validate_session(db: Session, session_id: int, actor_id: int | None) -> ValidationResult:
    """
    Applique les écarts au stock réel puis passe la session en ``validated``.

    L'écart est appliqué en delta sur le stock COURANT (article verrouillé) :
    les mouvements saisis entre le comptage et la validation sont conservés.
    Pas de commit ici : l'appelant commit une fois, tout échec annule tout.
    """
    session = get_session(db, session_id)
    if session.status != InventoryStatus.closed:
        raise InvalidStateError(f"Only closed sessions can be validated (status={session.status.value})")

    lines = db.execute(
        select(InventoryLine)
        .where(InventoryLine.session_id == session_id)
        .where(InventoryLine.counted_qty.is_not(None))
        .where(InventoryLine.variance.is_not(None))
        .where(InventoryLine.variance != 0)
        .order_by(InventoryLine.article_id)
    ).scalars().all()

    adjusted = 0
    drifted = 0
    for line in lines:
        article = inventory.lock_article(db, line.article_id)
        if article.stock != line.theoretical_qty:
            drifted += 1
            logger.warning(
                "Stock drift on %s during inventory %s: theoretical=%d current=%d counted=%d",
                article.reference,
                session.id,
                line.theoretical_qty,
                article.stock,
                line.counted_qty,
            )

        direction = MovementDirection.inbound if line.variance > 0 else MovementDirection.outbound
        inventory.apply_movement(
            db,
            line.article_id,
            direction,
            abs(line.variance),
            CORRECTION_REASON,
            actor_id,
            allow_negative=True,
        )
        adjusted += 1

    session.status = InventoryStatus.validated
    session.validated_at = _now()
    session.validated_by = actor_id
    db.flush()

    logger.info("Inventory session %s validated (%d articles adjusted)", session.id, adjusted)
    return ValidationResult(session=session, adjusted=adjusted, drifted=drifted)
