"""Invoice lifecycle: create, edit, price, number, send, and status changes.

Every function takes the caller's user id explicitly; each query filters on
it. Tax amounts and totals are written only through `_apply_pricing`.
"""
import logging
import os
import tempfile
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoicely.core.config import settings
from invoicely.core.exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError
from invoicely.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from invoicely.schemas.invoice import InvoiceCreate, InvoiceUpdate, LineItemIn, TaxRatesIn, TempClientIn
from invoicely.services import billing
from invoicely.services.client_service import get_client
from invoicely.services.email_service import compose_invoice_email
from invoicely.services.pdf_service import InvoiceDocument, build_invoice_document, invoice_filename, render_invoice_pdf
from invoicely.services.sequence import next_sequence_number

logger = logging.getLogger(__name__)

TERMINAL_STATES = {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}

# draft -> sent happens only through send_invoice
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}

DELETABLE_STATES = {InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED}

TEMP_DOCUMENT_PREFIX = "invoicely-"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _valid_items(items: Sequence[LineItemIn]) -> List[LineItemIn]:
    valid = billing.filter_valid_line_items(items)
    if not valid:
        raise ValidationError(
            "At least one valid line item with description, quantity, and price is required"
        )
    return valid


def _apply_pricing(invoice: Invoice, items: Sequence, rates: TaxRatesIn, submitted_total=None) -> None:
    """Recompute and store tax amounts and total from line items and rates."""
    pricing = billing.price_invoice(items, rates.cgst_rate, rates.sgst_rate)
    billing.check_submitted_total(submitted_total, pricing)

    invoice.cgst_rate = pricing.tax.cgst_rate
    invoice.sgst_rate = pricing.tax.sgst_rate
    invoice.taxable_amount = pricing.tax.taxable_amount
    invoice.cgst_amount = pricing.tax.cgst_amount
    invoice.sgst_amount = pricing.tax.sgst_amount
    invoice.subtotal = pricing.subtotal
    invoice.total_amount = pricing.total_amount


def _replace_line_items(invoice: Invoice, items: Sequence[LineItemIn]) -> None:
    invoice.line_items = [
        InvoiceLineItem(
            position=position,
            description=item.description.strip(),
            quantity=item.quantity,
            unit_price=billing.to_decimal(item.unit_price),
            taxable=item.taxable,
        )
        for position, item in enumerate(items)
    ]


def _temp_client_snapshot(temp_client: TempClientIn) -> dict:
    return {
        "name": temp_client.name.strip(),
        "email": str(temp_client.email),
        "phone": temp_client.phone,
        "address": temp_client.address,
    }


def _current_rates(invoice: Invoice) -> TaxRatesIn:
    return TaxRatesIn(cgst_rate=invoice.cgst_rate, sgst_rate=invoice.sgst_rate)


def create_invoice(db: Session, user_id: int, data: InvoiceCreate) -> Invoice:
    """
    Create a draft invoice.

    Requires exactly one of client_id (owned client) or temp_client, a due
    date and at least one valid line item. The total is always computed
    here; a submitted total must match it.
    """
    if data.client_id is None and data.temp_client is None:
        raise ValidationError("Either clientId or tempClient must be provided")
    if data.client_id is not None and data.temp_client is not None:
        raise ValidationError("Provide either clientId or tempClient, not both")
    if data.due_date is None:
        raise ValidationError("Due date is required")

    if data.client_id is not None:
        get_client(db, user_id, data.client_id)

    items = _valid_items(data.line_items)
    rates = data.tax_info or TaxRatesIn()

    invoice = Invoice(
        user_id=user_id,
        client_id=data.client_id,
        temp_client=_temp_client_snapshot(data.temp_client) if data.temp_client else None,
        status=InvoiceStatus.DRAFT.value,
        due_date=data.due_date,
        notes=data.notes,
    )
    _apply_pricing(invoice, items, rates, data.total_amount)
    _replace_line_items(invoice, items)

    # Counter increment and insert commit together
    invoice.sequence_number = next_sequence_number(db, user_id)
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"[Invoices] Sequence collision for user {user_id}: {e}")
        raise ConflictError("Invoice number already in use, please retry")
    db.refresh(invoice)

    logger.info(
        f"[Invoices] user={user_id} created {invoice.sequence_number} total={invoice.total_amount}"
    )
    return invoice


def list_invoices(
    db: Session,
    user_id: int,
    status: Optional[InvoiceStatus] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Invoice]:
    q = db.query(Invoice).filter(Invoice.user_id == user_id)
    if status is not None:
        q = q.filter(Invoice.status == InvoiceStatus(status).value)
    if start is not None:
        q = q.filter(Invoice.created_at >= datetime.combine(start, datetime.min.time()))
    if end is not None:
        q = q.filter(Invoice.created_at <= datetime.combine(end, datetime.max.time()))
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoice(db: Session, user_id: int, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.user_id == user_id).first()
    if not invoice:
        raise NotFoundError("Invoice")
    return invoice


def update_invoice(db: Session, user_id: int, invoice_id: int, data: InvoiceUpdate) -> Invoice:
    """
    Edit an invoice.

    Notes and due date may change until the invoice is paid or cancelled.
    Client, line items and tax rates are frozen once the invoice leaves draft.
    """
    invoice = get_invoice(db, user_id, invoice_id)
    status = InvoiceStatus(invoice.status)

    if status in TERMINAL_STATES:
        raise ValidationError(f"A {status.value} invoice cannot be edited")

    touches_content = any(
        value is not None
        for value in (data.client_id, data.temp_client, data.line_items, data.tax_info)
    )
    if touches_content and status != InvoiceStatus.DRAFT:
        raise ValidationError("Only draft invoices can change client, line items or tax rates")
    if data.client_id is not None and data.temp_client is not None:
        raise ValidationError("Provide either clientId or tempClient, not both")

    if data.client_id is not None:
        get_client(db, user_id, data.client_id)
        invoice.client_id = data.client_id
        invoice.temp_client = None
    elif data.temp_client is not None:
        invoice.client_id = None
        invoice.temp_client = _temp_client_snapshot(data.temp_client)

    if data.line_items is not None:
        items = _valid_items(data.line_items)
        _replace_line_items(invoice, items)
    else:
        items = list(invoice.line_items)

    if data.line_items is not None or data.tax_info is not None or data.total_amount is not None:
        rates = data.tax_info or _current_rates(invoice)
        _apply_pricing(invoice, items, rates, data.total_amount)

    if data.due_date is not None:
        invoice.due_date = data.due_date
    if data.notes is not None:
        invoice.notes = data.notes

    db.commit()
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, user_id: int, invoice_id: int) -> None:
    invoice = get_invoice(db, user_id, invoice_id)
    if InvoiceStatus(invoice.status) not in DELETABLE_STATES:
        raise ValidationError("Only draft or cancelled invoices can be deleted")
    db.delete(invoice)
    db.commit()
    logger.info(f"[Invoices] user={user_id} deleted {invoice.sequence_number}")


def update_status(
    db: Session,
    user_id: int,
    invoice_id: int,
    status: InvoiceStatus,
    paid_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Invoice:
    """
    Move an invoice along its state machine.

    Re-applying the current status is a successful no-op. Entering PAID
    stamps paid_at (the given date, else now).
    """
    invoice = get_invoice(db, user_id, invoice_id)
    current = InvoiceStatus(invoice.status)
    target = InvoiceStatus(status)

    if target != current:
        if target == InvoiceStatus.SENT and current == InvoiceStatus.DRAFT:
            raise ValidationError("Use the send endpoint to send a draft invoice")
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError(f"Cannot change status from {current.value} to {target.value}")

        invoice.status = target.value
        if target == InvoiceStatus.PAID:
            invoice.paid_at = paid_at or _now()
        logger.info(f"[Invoices] {invoice.sequence_number}: {current.value} -> {target.value}")

    if notes is not None:
        invoice.notes = notes

    db.commit()
    db.refresh(invoice)
    return invoice


def _temp_dir() -> Path:
    path = Path(settings.TEMP_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_temp_document(pdf: bytes, document: InvoiceDocument) -> Path:
    fd, name = tempfile.mkstemp(
        prefix=f"{TEMP_DOCUMENT_PREFIX}{document.sequence_number}-",
        suffix=".pdf",
        dir=_temp_dir(),
    )
    with os.fdopen(fd, "wb") as fh:
        fh.write(pdf)
    return Path(name)


def cleanup_temp_documents(max_age_seconds: int = 0) -> int:
    """Remove rendered documents left behind by a crash between render and delete."""
    path = Path(settings.TEMP_DIR)
    if not path.is_dir():
        return 0
    cutoff = time.time() - max_age_seconds
    removed = 0
    for leftover in path.glob(f"{TEMP_DOCUMENT_PREFIX}*.pdf"):
        if leftover.stat().st_mtime <= cutoff:
            leftover.unlink(missing_ok=True)
            removed += 1
    if removed:
        logger.info(f"[Invoices] Removed {removed} leftover rendered documents")
    return removed


def render_document(db: Session, invoice: Invoice, renderer: Callable[[InvoiceDocument], bytes] = render_invoice_pdf):
    document = build_invoice_document(db, invoice)
    try:
        pdf = renderer(document)
    except Exception as e:
        logger.error(f"[Invoices] Rendering {invoice.sequence_number} failed: {type(e).__name__}: {e}")
        raise UpstreamError("Failed to generate invoice document") from e
    return document, pdf


def send_invoice(
    db: Session,
    user_id: int,
    invoice_id: int,
    mailer,
    renderer: Callable[[InvoiceDocument], bytes] = render_invoice_pdf,
) -> Invoice:
    """
    Render, email, then mark SENT.

    The status changes only after the mailer returns; a render or delivery
    failure raises UpstreamError and leaves the invoice in DRAFT.
    """
    invoice = get_invoice(db, user_id, invoice_id)
    if InvoiceStatus(invoice.status) != InvoiceStatus.DRAFT:
        raise ValidationError("Invoice has already been sent")

    document, pdf = render_document(db, invoice, renderer)
    if not document.client.email:
        raise ValidationError("Client has no email address")

    email = compose_invoice_email(document)
    try:
        pdf_path = write_temp_document(pdf, document)
    except OSError as e:
        logger.error(f"[Invoices] Writing {invoice.sequence_number} to {settings.TEMP_DIR} failed: {e}")
        raise UpstreamError("Failed to generate invoice document") from e
    try:
        mailer.send_invoice(email, pdf_path, invoice_filename(document))
    finally:
        pdf_path.unlink(missing_ok=True)

    invoice.status = InvoiceStatus.SENT.value
    invoice.sent_at = _now()
    db.commit()
    db.refresh(invoice)
    logger.info(f"[Invoices] {invoice.sequence_number} sent to {email.to}")
    return invoice


def mark_overdue_invoices(db: Session, today: Optional[date] = None) -> int:
    """
    Flag every SENT invoice past its due date as OVERDUE.

    Driven by an external job (invoicely.jobs.overdue); runs across all users
    but each change goes through update_status with the owner's id.
    """
    today = today or date.today()
    overdue = (
        db.query(Invoice.id, Invoice.user_id)
        .filter(Invoice.status == InvoiceStatus.SENT.value, Invoice.due_date < today)
        .all()
    )
    for invoice_id, owner_id in overdue:
        update_status(db, owner_id, invoice_id, InvoiceStatus.OVERDUE)
    if overdue:
        logger.info(f"[Invoices] Marked {len(overdue)} invoices overdue")
    return len(overdue)
