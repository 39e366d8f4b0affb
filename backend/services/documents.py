"""Rendu des bons de commande : HTML (corps du mail) et PDF (pièce jointe)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from jinja2 import Environment, FileSystemLoader, select_autoescape

from backend.app.db.models.models_v1 import PurchaseOrder

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)

# largeurs de colonnes (mm) : ref, désignation, qté, PU, total
COLS = (30, 80, 20, 30, 30)


def render_purchase_order_html(po: PurchaseOrder, sender_name: str) -> str:
    template = _env.get_template("purchase_order.html")
    return template.render(
        po=po,
        sender_name=sender_name,
        generated_at=datetime.now(timezone.utc),
    )


def _latin1(value: object) -> str:
    # Les polices standard PDF ne couvrent que latin-1
    return str(value if value is not None else "").encode("latin-1", "replace").decode("latin-1")


def _money(value) -> str:
    return f"{value:.2f} EUR"


def render_purchase_order_pdf(po: PurchaseOrder, sender_name: str) -> bytes:
    pdf = FPDF()
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, _latin1(f"BON DE COMMANDE {po.number}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="C")
    pdf.ln(5)

    pdf.set_font("Helvetica", size=11)
    pdf.cell(0, 7, _latin1(f"Emetteur : {sender_name}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.cell(0, 7, _latin1(f"Date : {po.created_at:%d/%m/%Y}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(3)

    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 7, _latin1(f"Fournisseur : {po.supplier_name}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=10)
    for extra in (po.supplier_address, po.supplier_phone, po.supplier_email):
        if extra:
            pdf.cell(0, 6, _latin1(extra), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(5)

    # ---------- LIGNES ----------
    pdf.set_font("Helvetica", "B", 10)
    for width, title in zip(COLS, ("Reference", "Designation", "Qte", "PU HT", "Total HT")):
        pdf.cell(width, 8, title, border=1)
    pdf.ln()

    pdf.set_font("Helvetica", size=10)
    for line in po.lines:
        pdf.cell(COLS[0], 7, _latin1(line.reference)[:18], border=1)
        pdf.cell(COLS[1], 7, _latin1(line.designation)[:45], border=1)
        pdf.cell(COLS[2], 7, str(line.qty_ordered), border=1, align="R")
        pdf.cell(COLS[3], 7, _money(line.unit_price), border=1, align="R")
        pdf.cell(COLS[4], 7, _money(line.line_total), border=1, align="R")
        pdf.ln()

    pdf.ln(3)
    pdf.set_font("Helvetica", "B", 10)
    label_width = sum(COLS[:4])
    for label, amount in (
        ("Total HT", po.total_ht),
        (f"TVA ({po.vat_rate:.2f} %)", po.total_ttc - po.total_ht),
        ("Total TTC", po.total_ttc),
    ):
        pdf.cell(label_width, 7, label, align="R")
        pdf.cell(COLS[4], 7, _money(amount), border=1, align="R")
        pdf.ln()

    return bytes(pdf.output())
