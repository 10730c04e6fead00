"""
PDF Invoice Generation Service
Builds the invoice snapshot handed to the renderer and renders it with reportlab.
"""
import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session
from xml.sax.saxutils import escape

from invoicely.core.config import settings
from invoicely.models.invoice import Invoice
from invoicely.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class DocumentParty:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


@dataclass
class DocumentLine:
    description: str
    quantity: int
    unit_price: Decimal
    taxable: bool
    amount: Decimal


@dataclass
class InvoiceDocument:
    """Everything the renderer needs; no database access past this point."""
    sequence_number: str
    issue_date: date
    due_date: date
    status: str
    company_name: str
    client: DocumentParty
    lines: List[DocumentLine]
    cgst_rate: Decimal
    sgst_rate: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    subtotal: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    logo: Optional[str] = None  # data URL
    signature: Optional[str] = None  # data URL
    generated_at: datetime = field(default_factory=datetime.now)


def build_invoice_document(db: Session, invoice: Invoice) -> InvoiceDocument:
    """Resolve client contact and owner branding into a renderer snapshot."""
    owner = invoice.owner or db.query(User).filter(User.id == invoice.user_id).first()

    if invoice.client is not None:
        c = invoice.client
        client = DocumentParty(name=c.name, email=c.email, phone=c.phone, address=c.address)
    else:
        snapshot = invoice.temp_client or {}
        client = DocumentParty(
            name=snapshot.get("name", ""),
            email=snapshot.get("email"),
            phone=snapshot.get("phone"),
            address=snapshot.get("address"),
        )

    created = invoice.created_at.date() if invoice.created_at else date.today()

    return InvoiceDocument(
        sequence_number=invoice.sequence_number,
        issue_date=created,
        due_date=invoice.due_date,
        status=invoice.status,
        company_name=(owner.company_name if owner and owner.company_name else settings.COMPANY_NAME),
        client=client,
        lines=[
            DocumentLine(
                description=item.description,
                quantity=item.quantity,
                unit_price=Decimal(item.unit_price),
                taxable=item.taxable,
                amount=item.amount,
            )
            for item in invoice.line_items
        ],
        cgst_rate=Decimal(invoice.cgst_rate),
        sgst_rate=Decimal(invoice.sgst_rate),
        taxable_amount=Decimal(invoice.taxable_amount),
        cgst_amount=Decimal(invoice.cgst_amount),
        sgst_amount=Decimal(invoice.sgst_amount),
        subtotal=Decimal(invoice.subtotal),
        total_amount=Decimal(invoice.total_amount),
        notes=invoice.notes,
        logo=owner.logo if owner else None,
        signature=owner.signature if owner else None,
    )


def invoice_filename(document: InvoiceDocument) -> str:
    return f"Invoice-{document.sequence_number}.pdf"


def format_money(amount: Decimal) -> str:
    return f"{Decimal(amount):,.2f}"


def format_rate(rate: Decimal) -> str:
    return f"{Decimal(rate).normalize():f}"


def _decode_data_url(data_url: str) -> Optional[bytes]:
    # "data:image/png;base64,AAAA..."
    if not data_url or "," not in data_url:
        return None
    header, payload = data_url.split(",", 1)
    if ";base64" not in header:
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def _image_flowable(data_url: Optional[str], max_width: float, max_height: float) -> Optional[Image]:
    raw = _decode_data_url(data_url) if data_url else None
    if raw is None:
        return None
    try:
        width, height = ImageReader(BytesIO(raw)).getSize()
    except Exception as e:  # not an image PIL can read
        logger.warning(f"Skipping unreadable image in invoice document: {e}")
        return None
    scale = min(max_width / width, max_height / height, 1.0)
    return Image(BytesIO(raw), width=width * scale, height=height * scale)


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    """
    Render an invoice snapshot to PDF.

    Args:
        document: snapshot from build_invoice_document

    Returns:
        PDF bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=f"Invoice {document.sequence_number}",
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#1a56db'),
        alignment=TA_CENTER,
        spaceAfter=12,
    )
    heading_style = ParagraphStyle(
        'InvoiceHeading',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=6,
    )
    normal_style = ParagraphStyle(
        'InvoiceNormal',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#374151'),
    )
    right_style = ParagraphStyle('InvoiceRight', parent=normal_style, alignment=TA_RIGHT)

    logo = _image_flowable(document.logo, 1.5 * inch, 0.75 * inch)
    if logo is not None:
        elements.append(logo)
        elements.append(Spacer(1, 0.1 * inch))

    elements.append(Paragraph("TAX INVOICE", title_style))
    elements.append(Spacer(1, 0.3 * inch))

    # Company and invoice info
    info_data = [
        [
            Paragraph(f"<b>{escape(document.company_name)}</b>", normal_style),
            Paragraph(
                f"<b>Invoice #:</b> {escape(document.sequence_number)}<br/>"
                f"<b>Date:</b> {document.issue_date.strftime('%d %b %Y')}<br/>"
                f"<b>Due Date:</b> {document.due_date.strftime('%d %b %Y')}<br/>"
                f"<b>Status:</b> {escape(document.status.upper())}",
                normal_style,
            ),
        ]
    ]
    info_table = Table(info_data, colWidths=[3.5 * inch, 3 * inch])
    info_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3 * inch))

    # Bill to
    elements.append(Paragraph("<b>Bill To:</b>", heading_style))
    client = document.client
    client_lines = [f"<b>{escape(client.name)}</b>"]
    for value in (client.address, client.email, client.phone):
        if value:
            client_lines.append(escape(value))
    elements.append(Paragraph("<br/>".join(client_lines), normal_style))
    elements.append(Spacer(1, 0.3 * inch))

    # Line items
    items_data = [[
        Paragraph("<b>Description</b>", normal_style),
        Paragraph("<b>Qty</b>", right_style),
        Paragraph("<b>Price</b>", right_style),
        Paragraph("<b>Tax</b>", right_style),
        Paragraph("<b>Amount</b>", right_style),
    ]]
    for line in document.lines:
        items_data.append([
            Paragraph(escape(line.description), normal_style),
            Paragraph(str(line.quantity), right_style),
            Paragraph(format_money(line.unit_price), right_style),
            Paragraph("Yes" if line.taxable else "No", right_style),
            Paragraph(format_money(line.amount), right_style),
        ])

    items_table = Table(items_data, colWidths=[2.8 * inch, 0.7 * inch, 1.1 * inch, 0.6 * inch, 1.3 * inch], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 1), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 1), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2 * inch))

    # Totals with CGST/SGST breakdown
    total_data = [
        ['', Paragraph("<b>Subtotal:</b>", right_style), Paragraph(format_money(document.subtotal), right_style)],
        ['', Paragraph("Taxable amount:", right_style), Paragraph(format_money(document.taxable_amount), right_style)],
        ['', Paragraph(f"CGST ({format_rate(document.cgst_rate)}%):", right_style), Paragraph(format_money(document.cgst_amount), right_style)],
        ['', Paragraph(f"SGST ({format_rate(document.sgst_rate)}%):", right_style), Paragraph(format_money(document.sgst_amount), right_style)],
        ['', Paragraph("<b>TOTAL:</b>", right_style), Paragraph(f"<b>{format_money(document.total_amount)}</b>", right_style)],
    ]
    total_table = Table(total_data, colWidths=[3.5 * inch, 1.7 * inch, 1.3 * inch])
    total_table.setStyle(TableStyle([
        ('LINEABOVE', (1, 4), (-1, 4), 1, colors.black),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(total_table)
    elements.append(Spacer(1, 0.4 * inch))

    if document.notes:
        elements.append(Paragraph("<b>Notes:</b>", heading_style))
        elements.append(Paragraph(escape(document.notes).replace("\n", "<br/>"), normal_style))
        elements.append(Spacer(1, 0.3 * inch))

    elements.append(Paragraph("<b>Payment Instructions:</b>", heading_style))
    elements.append(Paragraph(
        f"Please pay the above amount by {document.due_date.strftime('%d %b %Y')}.",
        normal_style,
    ))

    signature = _image_flowable(document.signature, 2 * inch, 0.8 * inch)
    if signature is not None:
        elements.append(Spacer(1, 0.4 * inch))
        signature.hAlign = 'RIGHT'
        elements.append(signature)
        elements.append(Paragraph("Authorized Signature", right_style))

    footer_style = ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER,
    )
    elements.append(Spacer(1, 0.5 * inch))
    elements.append(Paragraph("Thank you for your business!", footer_style))
    elements.append(Paragraph(
        f"Invoice generated on {document.generated_at.strftime('%d %b %Y at %I:%M %p')}",
        footer_style,
    ))

    doc.build(elements)
    return buffer.getvalue()
