from datetime import date

import pytest
from sqlalchemy import select

from backend.app.db.models.models_v1 import InventoryLine, StockMovement
from backend.app.db.models.core_types import InventoryStatus, MovementDirection
from backend.services import inventory, reconciliation
from backend.services.errors import IncompleteCountError, InvalidStateError, ValidationError

DAY = date(2026, 3, 31)


def _lines(db, session_id):
    return {
        l.article_id: l
        for l in db.execute(
            select(InventoryLine).where(InventoryLine.session_id == session_id)
        ).scalars()
    }


def _count_all(db, session_id, counts, actor_id):
    for article_id, line in _lines(db, session_id).items():
        reconciliation.record_count(db, line.id, counts[article_id], actor_id)


def test_open_session_snapshots_active_articles(db_session, admin, make_article):
    a = make_article("A", stock=50)
    b = make_article("B", stock=7)
    make_article("Z", stock=3, active=False)

    session, created = reconciliation.open_session(db_session, DAY, admin.id)

    assert created is True
    assert session.status == InventoryStatus.in_progress
    lines = _lines(db_session, session.id)
    assert set(lines) == {a.id, b.id}
    assert lines[a.id].theoretical_qty == 50
    assert lines[a.id].counted_qty is None
    assert lines[a.id].variance is None


def test_open_session_resumes_same_day(db_session, admin, make_article):
    make_article("A", stock=1)
    first, _ = reconciliation.open_session(db_session, DAY, admin.id)
    again, created = reconciliation.open_session(db_session, DAY, admin.id)

    assert created is False
    assert again.id == first.id


def test_validated_day_cannot_be_reopened(db_session, admin, make_article):
    a = make_article("A", stock=1)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    _count_all(db_session, session.id, {a.id: 1}, admin.id)
    reconciliation.close_session(db_session, session.id)
    reconciliation.validate_session(db_session, session.id, admin.id)

    with pytest.raises(InvalidStateError):
        reconciliation.open_session(db_session, DAY, admin.id)


@pytest.mark.parametrize("bad", [-1, 2.5, True])
def test_counted_qty_must_be_non_negative_int(db_session, admin, make_article, bad):
    a = make_article("A", stock=1)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    line = _lines(db_session, session.id)[a.id]

    with pytest.raises(ValidationError):
        reconciliation.record_count(db_session, line.id, bad, admin.id)


def test_counting_has_no_effect_on_real_stock(db_session, admin, make_article):
    a = make_article("A", stock=50)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    line = _lines(db_session, session.id)[a.id]

    line = reconciliation.record_count(db_session, line.id, 47, admin.id)

    assert line.variance == -3
    assert line.counted_by == admin.id
    assert a.stock == 50


def test_close_refused_while_lines_uncounted(db_session, admin, make_article):
    a = make_article("A", stock=5)
    make_article("B", stock=5)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    reconciliation.record_count(db_session, _lines(db_session, session.id)[a.id].id, 5, admin.id)

    with pytest.raises(IncompleteCountError) as exc:
        reconciliation.close_session(db_session, session.id)

    assert exc.value.remaining == 1
    assert "1 remaining" in exc.value.message
    assert session.status == InventoryStatus.in_progress


def test_close_reports_discrepancies_without_blocking(db_session, admin, make_article):
    a = make_article("A", stock=5)
    b = make_article("B", stock=5)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    _count_all(db_session, session.id, {a.id: 4, b.id: 5}, admin.id)

    closed, discrepancies = reconciliation.close_session(db_session, session.id)

    assert closed.status == InventoryStatus.closed
    assert closed.closed_at is not None
    assert discrepancies == 1


def test_counts_are_locked_after_close(db_session, admin, make_article):
    a = make_article("A", stock=5)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    line = _lines(db_session, session.id)[a.id]
    reconciliation.record_count(db_session, line.id, 5, admin.id)
    reconciliation.close_session(db_session, session.id)

    with pytest.raises(InvalidStateError):
        reconciliation.record_count(db_session, line.id, 4, admin.id)


def test_validate_requires_closed_session(db_session, admin, make_article):
    make_article("A", stock=5)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)

    with pytest.raises(InvalidStateError):
        reconciliation.validate_session(db_session, session.id, admin.id)


def test_validation_applies_variance_through_ledger(db_session, admin, make_article):
    """50 théoriques, 47 comptés : stock 47 et un mouvement sortant de 3."""
    a = make_article("A", stock=50)
    b = make_article("B", stock=10)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    _count_all(db_session, session.id, {a.id: 47, b.id: 10}, admin.id)
    reconciliation.close_session(db_session, session.id)

    result = reconciliation.validate_session(db_session, session.id, admin.id)

    assert result.adjusted == 1
    assert result.drifted == 0
    assert result.session.status == InventoryStatus.validated
    assert result.session.validated_by == admin.id
    assert a.stock == 47
    assert b.stock == 10

    corrections = db_session.execute(
        select(StockMovement).where(StockMovement.reason == reconciliation.CORRECTION_REASON)
    ).scalars().all()
    assert len(corrections) == 1
    assert corrections[0].article_id == a.id
    assert corrections[0].direction == MovementDirection.outbound
    assert corrections[0].quantity == 3

    for article in (a, b):
        assert inventory.ledger_balance(db_session, article.id) == article.stock


def test_positive_variance_is_an_inbound_correction(db_session, admin, make_article):
    a = make_article("A", stock=2)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    _count_all(db_session, session.id, {a.id: 6}, admin.id)
    reconciliation.close_session(db_session, session.id)
    reconciliation.validate_session(db_session, session.id, admin.id)

    mv = db_session.execute(
        select(StockMovement).where(StockMovement.reason == reconciliation.CORRECTION_REASON)
    ).scalar_one()
    assert mv.direction == MovementDirection.inbound
    assert mv.quantity == 4
    assert a.stock == 6


def test_movement_between_count_and_validation_is_kept(db_session, admin, make_article):
    a = make_article("A", stock=50)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    _count_all(db_session, session.id, {a.id: 47}, admin.id)
    reconciliation.close_session(db_session, session.id)

    inventory.apply_movement(db_session, a.id, MovementDirection.outbound, 5, "sale", admin.id)
    result = reconciliation.validate_session(db_session, session.id, admin.id)

    assert result.drifted == 1
    assert a.stock == 42
    assert inventory.ledger_balance(db_session, a.id) == 42


def test_summary_counts(db_session, admin, make_article):
    a = make_article("A", stock=5)
    b = make_article("B", stock=5)
    make_article("C", stock=5)
    session, _ = reconciliation.open_session(db_session, DAY, admin.id)
    lines = _lines(db_session, session.id)
    reconciliation.record_count(db_session, lines[a.id].id, 3, admin.id)
    reconciliation.record_count(db_session, lines[b.id].id, 5, admin.id)

    summary = reconciliation.session_summary(db_session, session.id)

    assert summary.total == 3
    assert summary.counted == 2
    assert summary.remaining == 1
    assert summary.with_variance == 1


@pytest.mark.parametrize("close_first", [False, True])
def test_second_session_refused_while_one_is_pending(db_session, admin, make_article, close_first):
    a = make_article("A", stock=50)
    session, _ = reconciliation.open_session(db_session, date(2026, 1, 1), admin.id)
    if close_first:
        _count_all(db_session, session.id, {a.id: 47}, admin.id)
        reconciliation.close_session(db_session, session.id)

    with pytest.raises(InvalidStateError):
        reconciliation.open_session(db_session, date(2026, 1, 2), admin.id)


def test_consecutive_counts_leave_stock_at_counted_qty(db_session, admin, make_article):
    """
    GIVEN
    - A : stock 50
    - deux inventaires successifs (1er puis 2 janvier) comptant 47 tous les deux

    THEN
    - le second part du stock corrigé par le premier : aucun écart
    - stock final 47, une seule correction au journal
    """
    a = make_article("A", stock=50)

    for day in (date(2026, 1, 1), date(2026, 1, 2)):
        session, created = reconciliation.open_session(db_session, day, admin.id)
        assert created is True
        _count_all(db_session, session.id, {a.id: 47}, admin.id)
        reconciliation.close_session(db_session, session.id)
        reconciliation.validate_session(db_session, session.id, admin.id)

    assert a.stock == 47
    assert inventory.ledger_balance(db_session, a.id) == 47
    corrections = db_session.execute(
        select(StockMovement).where(StockMovement.reason == reconciliation.CORRECTION_REASON)
    ).scalars().all()
    assert [m.quantity for m in corrections] == [3]
