import pytest
from sqlalchemy import select, func

from backend.app.db.models.models_v1 import StockMovement
from backend.app.db.models.core_types import MovementDirection
from backend.services import inventory
from backend.services.errors import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def _count_movements(db):
    return db.scalar(select(func.count(StockMovement.id)))


@pytest.mark.parametrize("bad", [0, -3, 1.5, True])
def test_quantity_must_be_positive_int(db_session, admin, make_article, bad):
    a = make_article("A")
    with pytest.raises(ValidationError):
        inventory.apply_movement(db_session, a.id, MovementDirection.inbound, bad, "receipt", admin.id)
    assert a.stock == 0


def test_reason_is_required(db_session, admin, make_article):
    a = make_article("A")
    with pytest.raises(ValidationError):
        inventory.apply_movement(db_session, a.id, MovementDirection.inbound, 1, "   ", admin.id)


def test_unknown_article(db_session, admin):
    with pytest.raises(NotFoundError):
        inventory.apply_movement(db_session, 999, MovementDirection.inbound, 1, "receipt", admin.id)


def test_outbound_cannot_go_negative(db_session, admin, make_article):
    a = make_article("A", stock=2)
    before = _count_movements(db_session)

    with pytest.raises(InsufficientStockError):
        inventory.apply_movement(db_session, a.id, MovementDirection.outbound, 3, "sale", admin.id)

    assert a.stock == 2
    assert _count_movements(db_session) == before


def test_allow_negative(db_session, admin, make_article):
    a = make_article("A", stock=1)
    inventory.apply_movement(
        db_session, a.id, MovementDirection.outbound, 4, "correction", admin.id, allow_negative=True
    )
    assert a.stock == -3
    assert inventory.ledger_balance(db_session, a.id) == -3


def test_stock_follows_ledger(db_session, admin, make_article):
    a = make_article("A", stock=10)
    inventory.apply_movement(db_session, a.id, MovementDirection.outbound, 4, "sale", admin.id)
    inventory.apply_movement(db_session, a.id, MovementDirection.inbound, 7, "receipt", admin.id)

    assert a.stock == 13
    assert inventory.ledger_balance(db_session, a.id) == 13
    assert [m.signed_quantity for m in inventory.list_movements(db_session, article_id=a.id)] == [7, -4, 10]


def test_idempotency_key_replay_is_harmless(db_session, admin, make_article):
    a = make_article("A")
    first = inventory.apply_movement(
        db_session, a.id, MovementDirection.inbound, 5, "receipt", admin.id, idempotency_key="k-1"
    )
    again = inventory.apply_movement(
        db_session, a.id, MovementDirection.inbound, 5, "receipt", admin.id, idempotency_key="k-1"
    )

    assert again.id == first.id
    assert a.stock == 5


def test_reverse_movement_once(db_session, admin, make_article):
    a = make_article("A", stock=10)
    mv = inventory.apply_movement(db_session, a.id, MovementDirection.outbound, 4, "wrong entry", admin.id)

    comp = inventory.reverse_movement(db_session, mv.id, admin.id)

    assert comp.direction == MovementDirection.inbound
    assert comp.quantity == 4
    assert comp.reverses_id == mv.id
    assert comp.reason == f"reversal of movement {mv.id}"
    assert a.stock == 10

    with pytest.raises(InvalidStateError):
        inventory.reverse_movement(db_session, mv.id, admin.id)
    with pytest.raises(InvalidStateError):
        inventory.reverse_movement(db_session, comp.id, admin.id)


def test_reverse_unknown_movement(db_session, admin):
    with pytest.raises(NotFoundError):
        inventory.reverse_movement(db_session, 42, admin.id)
