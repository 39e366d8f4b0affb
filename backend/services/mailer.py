"""Envoi des bons de commande aux fournisseurs par SMTP."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from ssl import create_default_context

from sqlalchemy.orm import Session

from backend.app.core.config import Settings
from backend.app.db.models.core_types import POStatus
from backend.app.db.models.models_v1 import PurchaseOrder
from backend.services.documents import render_purchase_order_html, render_purchase_order_pdf
from backend.services.errors import InvalidStateError, ValidationError
from backend.services.procurement import get_order

logger = logging.getLogger(__name__)


@dataclass
class SMTPConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    use_tls: bool
    use_ssl: bool
    sender: str | None


def smtp_config_from_settings(settings: Settings) -> SMTPConfig:
    if not settings.smtp_host:
        raise ValidationError("SMTP_HOST must be configured to send email")
    return SMTPConfig(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        use_ssl=settings.smtp_use_ssl,
        sender=settings.mail_sender or settings.smtp_username,
    )


def build_purchase_order_message(po: PurchaseOrder, sender: str, sender_name: str) -> EmailMessage:
    message = EmailMessage(policy=policy.default)
    message["Subject"] = f"Bon de commande {po.number}"
    message["From"] = f"{sender_name} <{sender}>"
    message["To"] = po.supplier_email

    message.set_content(
        f"Veuillez trouver ci-joint le bon de commande {po.number}.\n"
        f"Total TTC : {po.total_ttc:.2f} EUR\n"
    )
    message.add_alternative(render_purchase_order_html(po, sender_name), subtype="html")
    message.add_attachment(
        render_purchase_order_pdf(po, sender_name),
        maintype="application",
        subtype="pdf",
        filename=f"{po.number}.pdf",
    )
    return message


def send_email_via_smtp(message: EmailMessage, config: SMTPConfig) -> None:
    smtp_class = smtplib.SMTP_SSL if config.use_ssl else smtplib.SMTP
    with smtp_class(config.host, config.port, timeout=10) as client:
        client.ehlo()
        if config.use_tls and not config.use_ssl:
            client.starttls(context=create_default_context())
            client.ehlo()
        if config.username and config.password:
            client.login(config.username, config.password)
        client.send_message(message)


def send_purchase_order(
    db: Session,
    po_id: int,
    config: SMTPConfig,
    sender_name: str,
) -> PurchaseOrder:
    """
    Envoie une commande brouillon au fournisseur puis la passe en ``sent``.

    Le statut n'est modifié qu'après un envoi réussi.
    """
    po = get_order(db, po_id)
    if po.status != POStatus.draft:
        raise InvalidStateError(f"Only draft orders can be sent (status={po.status.value})")
    if not po.supplier_email:
        raise ValidationError(f"Supplier {po.supplier_name} has no email address")
    if not config.sender:
        raise ValidationError("MAIL_SENDER or SMTP username must be configured for sending email")

    message = build_purchase_order_message(po, config.sender, sender_name)
    send_email_via_smtp(message, config)

    po.status = POStatus.sent
    po.sent_at = datetime.now(timezone.utc)
    db.flush()

    logger.info("Purchase order %s sent to %s", po.number, po.supplier_email)
    return po
