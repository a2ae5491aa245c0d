from __future__ import annotations

import io
from datetime import date
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from rental_agency.schemas.invoices import InvoiceData
from rental_agency.services.invoice_service import pdf_currency_symbol


TERMS = [
    "Payment is due within 30 days of invoice date.",
    "Late fees may apply for overdue payments.",
    "Assets must be returned in the same condition as received.",
    "Customer is responsible for any damage during the rental period.",
]

_ACCENT = colors.HexColor("#1e40af")
_MUTED = colors.HexColor("#64748b")
_HEADER_BG = colors.HexColor("#f1f5f9")


def _format_date(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "agency": ParagraphStyle("agency", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=18, textColor=_ACCENT, leading=22),
        "muted": ParagraphStyle("muted", parent=base["Normal"], fontSize=9, textColor=_MUTED),
        "title": ParagraphStyle("title", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=24, alignment=TA_RIGHT, leading=28),
        "meta": ParagraphStyle("meta", parent=base["Normal"], fontSize=9, textColor=_MUTED, alignment=TA_RIGHT),
        "section": ParagraphStyle("section", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=11, spaceAfter=4),
        "body": ParagraphStyle("body", parent=base["Normal"], fontSize=9),
        "small": ParagraphStyle("small", parent=base["Normal"], fontSize=7, textColor=_MUTED),
        "footer": ParagraphStyle("footer", parent=base["Normal"], fontSize=7, textColor=_MUTED, alignment=1),
    }


def render_invoice_pdf(invoice: InvoiceData, generated_on: date | None = None) -> bytes:
    symbol = pdf_currency_symbol(invoice.currencySymbol)
    styles = _styles()

    def money(amount: float) -> str:
        return f"{symbol}{amount:,.2f}"

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        topMargin=12 * mm,
        bottomMargin=20 * mm,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        title=f"Invoice {invoice.invoiceNumber}",
    )
    story = []

    left = [Paragraph(escape(invoice.agency.name), styles["agency"])]
    for line in (invoice.agency.address, invoice.agency.email, invoice.agency.phone):
        if line:
            left.append(Paragraph(escape(line), styles["muted"]))
    right = [
        Paragraph("INVOICE", styles["title"]),
        Paragraph(escape(invoice.invoiceNumber), styles["meta"]),
    ]
    if invoice.invoicePeriod:
        right.append(Paragraph(f"Period: {escape(invoice.invoicePeriod)}", styles["meta"]))
    right.append(Paragraph(f"Date: {_format_date(invoice.invoiceDate)}", styles["meta"]))
    right.append(Paragraph(f"Due: {_format_date(invoice.dueDate)}", styles["meta"]))
    header = Table([[left, right]], colWidths=["55%", "45%"])
    header.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 0), (-1, 0), 1.5, colors.HexColor("#3b82f6")),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
    ]))
    story.append(header)
    story.append(Spacer(1, 14))

    story.append(Paragraph("Bill To", styles["section"]))
    bill_to = [["Customer Name:", invoice.customer.name], ["Email:", invoice.customer.email or ""]]
    if invoice.customer.phone:
        bill_to.append(["Phone:", invoice.customer.phone])
    bill_table = Table(bill_to, colWidths=[35 * mm, None])
    bill_table.setStyle(TableStyle([
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TEXTCOLOR", (0, 0), (0, -1), _MUTED),
    ]))
    story.append(bill_table)
    story.append(Spacer(1, 14))

    story.append(Paragraph("Rental Details", styles["section"]))
    rows = [["Asset", "Description", "Rental Period", "Rate/Day", "Total"]]
    for item in invoice.rentals:
        period = [
            Paragraph(f"{_format_date(item.fromDate)} - {_format_date(item.toDate)}", styles["body"]),
            Paragraph(f"({item.totalDays} days)", styles["small"]),
        ]
        rows.append([
            Paragraph(escape(f"{item.manufacturer} {item.assetModel}".strip()), styles["body"]),
            Paragraph(escape(item.assetDescription), styles["body"]),
            period,
            money(item.dailyRate),
            money(item.totalAmount),
        ])
    items_table = Table(rows, colWidths=["30%", "25%", "25%", "10%", "10%"], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (3, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 1), (-1, -1), 0.5, _HEADER_BG),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 14))

    totals = Table(
        [
            ["Subtotal:", money(invoice.subtotal)],
            [f"Tax ({invoice.taxRate:g}%):", money(invoice.tax)],
            ["Total Due:", money(invoice.total)],
        ],
        colWidths=[40 * mm, 35 * mm],
        hAlign="RIGHT",
    )
    totals.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("TEXTCOLOR", (0, 0), (0, 1), _MUTED),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("FONTSIZE", (0, 2), (-1, 2), 12),
        ("TEXTCOLOR", (1, 2), (1, 2), _ACCENT),
        ("LINEABOVE", (0, 2), (-1, 2), 1, colors.black),
    ]))
    story.append(totals)
    story.append(Spacer(1, 20))

    story.append(Paragraph("Terms &amp; Conditions", styles["section"]))
    for index, term in enumerate(TERMS, start=1):
        story.append(Paragraph(f"{index}. {term}", styles["small"]))
    if invoice.notes:
        story.append(Spacer(1, 8))
        story.append(Paragraph(escape(invoice.notes), styles["small"]))
    story.append(Spacer(1, 20))

    generated = _format_date(generated_on or invoice.invoiceDate)
    story.append(Paragraph(
        f"Thank you for your business! | {escape(invoice.agency.name)} | Generated on {generated}",
        styles["footer"],
    ))

    doc.build(story)
    return buf.getvalue()
