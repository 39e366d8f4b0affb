from decimal import Decimal

import pytest
from sqlalchemy import select, func

from backend.app.db.models.models_v1 import PurchaseOrder, PurchaseOrderLine
from backend.app.db.models.core_types import POStatus
from backend.services import reorder
from backend.services.errors import NotFoundError

VAT = Decimal("20")


def test_end_to_end_grouping_and_single_order(db_session, admin, make_article, make_supplier, make_link):
    """
    GIVEN
    - A : stock 0, stock_min 5, fournisseur principal S1
    - B : stock 3, stock_min 10, pas de principal, S1 listé avant S2

    THEN
    - un seul groupe (S1) contenant A (10) et B (12)
    - "tout commander" crée exactement une commande brouillon
    """
    s1 = make_supplier("S1")
    s2 = make_supplier("S2")
    a = make_article("A", stock=0, stock_min=5)
    b = make_article("B", stock=3, stock_min=10)
    make_link(a, s1, is_principal=True)
    make_link(b, s1)
    make_link(b, s2)

    plan = reorder.plan_reorders_from_db(db_session, VAT)

    assert list(plan) == [s1.id]
    quantities = {l.article_id: l.quantity for l in plan[s1.id].lines}
    assert quantities == {a.id: 10, b.id: 12}

    orders = reorder.create_orders_for_all(db_session, plan, vat_rate=VAT, actor_id=admin.id)
    db_session.commit()

    assert len(orders) == 1
    assert db_session.scalar(select(func.count(PurchaseOrder.id))) == 1

    po = orders[0]
    assert po.status == POStatus.draft
    assert po.supplier_name == "S1"
    assert po.number == f"PO-{po.created_at:%Y}-{po.id:06d}"
    assert po.total_ht == Decimal("220.00")
    assert po.total_ttc == Decimal("264.00")
    assert {l.article_id: l.qty_ordered for l in po.lines} == {a.id: 10, b.id: 12}
    assert all(l.qty_received == 0 for l in po.lines)


def test_inactive_links_and_suppliers_do_not_participate(db_session, make_article, make_supplier, make_link):
    active = make_supplier("Actif")
    dormant = make_supplier("Dormant", active=False)
    a = make_article("A", stock=0, stock_min=2)
    b = make_article("B", stock=0, stock_min=2)
    make_link(a, dormant, is_principal=True)
    make_link(a, active, active=False)
    make_link(b, active)

    plan = reorder.plan_reorders_from_db(db_session, VAT)

    assert list(plan) == [active.id]
    assert [l.article_id for l in plan[active.id].lines] == [b.id]


def test_order_for_single_supplier(db_session, admin, make_article, make_supplier, make_link):
    s1 = make_supplier("S1")
    s2 = make_supplier("S2")
    make_link(make_article("A", stock=0, stock_min=1), s1, is_principal=True)
    make_link(make_article("B", stock=1, stock_min=1), s2, is_principal=True)

    plan = reorder.plan_reorders_from_db(db_session, VAT)
    po = reorder.create_order_for_supplier(db_session, plan, s2.id, vat_rate=VAT, actor_id=admin.id)
    db_session.commit()

    assert po.supplier_id == s2.id
    assert db_session.scalar(select(func.count(PurchaseOrder.id))) == 1
    assert db_session.scalar(select(func.count(PurchaseOrderLine.id))) == 1


def test_order_for_unplanned_supplier_is_rejected(db_session, admin, make_supplier):
    s = make_supplier("S1")
    with pytest.raises(NotFoundError):
        reorder.create_order_for_supplier(db_session, {}, s.id, vat_rate=VAT, actor_id=admin.id)


def test_supplier_snapshot_is_not_a_live_reference(db_session, admin, make_article, make_supplier, make_link):
    s = make_supplier("Ancien Nom", email="old@example.com")
    make_link(make_article("A", stock=0, stock_min=1), s, is_principal=True)

    plan = reorder.plan_reorders_from_db(db_session, VAT)
    (po,) = reorder.create_orders_for_all(db_session, plan, vat_rate=VAT, actor_id=admin.id)
    db_session.commit()

    s.name = "Nouveau Nom"
    s.email = "new@example.com"
    db_session.commit()
    db_session.refresh(po)

    assert po.supplier_name == "Ancien Nom"
    assert po.supplier_email == "old@example.com"
