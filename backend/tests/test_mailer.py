from decimal import Decimal

import pytest

from backend.app.db.models.core_types import POStatus
from backend.services import mailer, procurement
from backend.services.documents import render_purchase_order_html, render_purchase_order_pdf
from backend.services.errors import InvalidStateError, ValidationError


@pytest.fixture
def make_po(db_session, admin, make_article):
    def _make(email="s1@example.com"):
        a = make_article("VIS-01", designation="Vis inox é")
        return procurement.create_draft_order(
            db_session,
            supplier_id=None,
            supplier_name="Fournisseur Un",
            supplier_email=email,
            supplier_phone="0102030405",
            supplier_address="1 rue du Port",
            lines=[procurement.DraftLine(a.id, a.reference, a.designation, 4, Decimal("2.50"))],
            vat_rate=Decimal("20"),
            actor_id=admin.id,
        )

    return _make


def test_documents_render(make_po):
    po = make_po()

    html = render_purchase_order_html(po, "Service achats")
    assert po.number in html
    assert "Vis inox" in html
    assert "10.00" in html

    pdf = render_purchase_order_pdf(po, "Service achats")
    assert pdf.startswith(b"%PDF")


def test_send_purchase_order_marks_sent(db_session, settings, fake_smtp, make_po):
    po = make_po()
    config = mailer.smtp_config_from_settings(settings)

    sent = mailer.send_purchase_order(db_session, po.id, config, settings.mail_sender_name)

    assert sent.status == POStatus.sent
    assert sent.sent_at is not None
    assert len(fake_smtp.sent) == 1
    host, port, message = fake_smtp.sent[0]
    assert (host, port) == ("smtp.example.com", 2525)
    assert message["To"] == "s1@example.com"
    assert po.number in message["Subject"]
    attachments = list(message.iter_attachments())
    assert [a.get_filename() for a in attachments] == [f"{po.number}.pdf"]


def test_only_drafts_are_sent(db_session, settings, fake_smtp, make_po):
    po = make_po()
    po.status = POStatus.cancelled
    db_session.flush()

    with pytest.raises(InvalidStateError):
        mailer.send_purchase_order(db_session, po.id, mailer.smtp_config_from_settings(settings), "x")
    assert fake_smtp.sent == []


def test_supplier_without_email_is_refused(db_session, settings, fake_smtp, make_po):
    po = make_po(email=None)

    with pytest.raises(ValidationError):
        mailer.send_purchase_order(db_session, po.id, mailer.smtp_config_from_settings(settings), "x")
    assert po.status == POStatus.draft


def test_smtp_host_is_required(settings):
    with pytest.raises(ValidationError):
        mailer.smtp_config_from_settings(settings.model_copy(update={"smtp_host": ""}))
