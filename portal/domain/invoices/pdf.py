"""
Invoice PDF Generator
Renders an invoice, its line items and totals as a letter-size PDF
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ...models import Organization
from ...models_invoice import Invoice
from ...shared.money import to_float
from ...utils.timezone import format_long_date

logger = logging.getLogger(__name__)


def _money(value) -> str:
    return f"${to_float(value) or 0:,.2f}"


class InvoicePDFGenerator:
    """Generate invoice PDFs"""

    def __init__(self, invoice: Invoice, organization: Organization):
        self.invoice = invoice
        self.organization = organization

        # PDF settings
        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        self.brand_color = colors.HexColor("#1d4ed8")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating PDF for invoice {self.invoice.invoice_number}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Invoice {self.invoice.invoice_number}",
        )

        story = []
        styles = getSampleStyleSheet()

        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=24,
            textColor=self.brand_color,
            spaceAfter=12,
        )
        heading_style = ParagraphStyle(
            "InvoiceHeading",
            parent=styles["Heading2"],
            fontSize=13,
            textColor=self.dark_gray,
            spaceAfter=8,
            spaceBefore=16,
        )
        body_style = ParagraphStyle(
            "InvoiceBody",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.dark_gray,
            spaceAfter=6,
        )

        story.append(Paragraph("INVOICE", title_style))
        story.append(Spacer(1, 0.1 * inch))
        story.append(self._info_table())
        story.append(Spacer(1, 0.3 * inch))

        story.append(Paragraph("Line Items", heading_style))
        story.append(self._line_items_table(body_style))
        story.append(Spacer(1, 0.2 * inch))
        story.append(self._totals_table())

        if self.invoice.notes:
            story.append(Paragraph("Notes", heading_style))
            story.append(Paragraph(escape(self.invoice.notes), body_style))

        if self.organization.payment_terms:
            story.append(Spacer(1, 0.3 * inch))
            story.append(
                Paragraph(
                    f"<i>Payment terms: {escape(self.organization.payment_terms)}</i>",
                    ParagraphStyle(
                        "Footer", parent=body_style, fontSize=8, textColor=colors.grey, alignment=1
                    ),
                )
            )

        doc.build(story, onFirstPage=self._add_page_number, onLaterPages=self._add_page_number)

        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"✅ Generated invoice PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _info_table(self) -> Table:
        invoice = self.invoice
        rows = [
            ["From:", self.organization.name],
            ["Invoice #:", invoice.invoice_number],
            ["Date:", format_long_date(invoice.invoice_date)],
        ]
        if invoice.due_date:
            rows.append(["Due:", format_long_date(invoice.due_date)])
        if invoice.period_start and invoice.period_end:
            rows.append(
                [
                    "Period:",
                    f"{format_long_date(invoice.period_start)} - {format_long_date(invoice.period_end)}",
                ]
            )
        rows.append(["Status:", invoice.status.replace("_", " ").title()])

        table = Table(rows, colWidths=[1.5 * inch, 4.5 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _line_items_table(self, body_style: ParagraphStyle) -> Table:
        rows = [["Description", "Qty", "Rate", "Amount"]]
        for item in self.invoice.line_items:
            rows.append(
                [
                    Paragraph(escape(item.description), body_style),
                    f"{to_float(item.quantity):g}",
                    _money(item.unit_price),
                    _money(item.amount),
                ]
            )

        table = Table(
            rows,
            colWidths=[3.8 * inch, 0.8 * inch, 1.0 * inch, 1.4 * inch],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    # Header row
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                    ("TOPPADDING", (0, 0), (-1, 0), 8),
                    # Data rows
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("TEXTCOLOR", (0, 1), (-1, -1), self.dark_gray),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("VALIGN", (0, 1), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("LEFTPADDING", (0, 0), (-1, -1), 6),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _totals_table(self) -> Table:
        invoice = self.invoice
        rows = [["Subtotal", _money(invoice.subtotal)]]
        if invoice.discount_amount and to_float(invoice.discount_amount) > 0:
            label = "Discount"
            if invoice.discount_type == "percentage":
                label = f"Discount ({to_float(invoice.discount_value):g}%)"
            rows.append([label, f"-{_money(invoice.discount_amount)}"])
        rows.append(["Total", _money(invoice.total)])
        if invoice.amount_paid and to_float(invoice.amount_paid) > 0:
            rows.append(["Paid", f"-{_money(invoice.amount_paid)}"])
        rows.append(["Amount Due", _money(invoice.amount_due)])

        table = Table(rows, colWidths=[5.6 * inch, 1.4 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (-1, -1), "Helvetica", 10),
                    ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 11),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("TEXTCOLOR", (0, -1), (-1, -1), self.brand_color),
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("LINEABOVE", (0, -1), (-1, -1), 1, self.dark_gray),
                    ("TOPPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )
        return table

    def _add_page_number(self, canvas_obj, doc):
        """Add page numbers to PDF"""
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawRightString(
            self.page_width - self.margin, self.margin / 2, f"Page {canvas_obj.getPageNumber()}"
        )


def render_invoice_pdf(invoice: Invoice) -> bytes:
    return InvoicePDFGenerator(invoice, invoice.organization).generate()
