"""Invoices: CRUD, send, status changes, PDF download."""
from datetime import date
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from invoicely.api.deps import get_current_user_id, get_db, get_invoice_mailer, get_invoice_renderer
from invoicely.core.audit import AuditLog
from invoicely.models.invoice import InvoiceStatus
from invoicely.schemas.invoice import InvoiceCreate, InvoiceResponse, InvoiceSummary, InvoiceUpdate, StatusUpdate
from invoicely.services import invoice_service
from invoicely.services.email_service import SendGridMailer
from invoicely.services.pdf_service import InvoiceDocument, invoice_filename
from invoicely.services.report_service import summarize

router = APIRouter()


@router.get("", response_model=List[InvoiceSummary])
def list_invoices(
    status: Optional[InvoiceStatus] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """List invoice metadata, newest first. Optional status and creation-date filters."""
    invoices = invoice_service.list_invoices(db, user_id, status=status, start=start_date, end=end_date)
    return [summarize(invoice) for invoice in invoices]


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(data: InvoiceCreate, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    """
    Create a draft invoice.

    Totals and tax amounts are computed server-side. A submitted totalAmount
    that disagrees with the computed total is rejected.
    """
    invoice = invoice_service.create_invoice(db, user_id, data)
    AuditLog.log_action(
        "create", "invoice", invoice.id, user_id,
        changes={"sequence_number": invoice.sequence_number, "total": str(invoice.total_amount)},
    )
    return InvoiceResponse.from_invoice(invoice)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return InvoiceResponse.from_invoice(invoice_service.get_invoice(db, user_id, invoice_id))


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    invoice = invoice_service.update_invoice(db, user_id, invoice_id, data)
    AuditLog.log_action("update", "invoice", invoice.id, user_id, changes={"total": str(invoice.total_amount)})
    return InvoiceResponse.from_invoice(invoice)


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    invoice_service.delete_invoice(db, user_id, invoice_id)
    AuditLog.log_action("delete", "invoice", invoice_id, user_id)
    return {"message": "Invoice deleted successfully", "id": invoice_id}


@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
def send_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    mailer: SendGridMailer = Depends(get_invoice_mailer),
    renderer: Callable[[InvoiceDocument], bytes] = Depends(get_invoice_renderer),
):
    """
    Render the PDF, email it to the client and mark the invoice SENT.
    On a delivery failure the invoice stays DRAFT and 502 is returned.
    """
    invoice = invoice_service.send_invoice(db, user_id, invoice_id, mailer, renderer)
    AuditLog.log_action("send", "invoice", invoice.id, user_id, changes={"status": invoice.status})
    return InvoiceResponse.from_invoice(invoice)


@router.put("/{invoice_id}/status", response_model=InvoiceResponse)
def update_status(
    invoice_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    invoice = invoice_service.update_status(
        db, user_id, invoice_id, data.status, paid_at=data.paid_date, notes=data.notes
    )
    AuditLog.log_action("status", "invoice", invoice.id, user_id, changes={"status": invoice.status})
    return InvoiceResponse.from_invoice(invoice)


@router.get("/{invoice_id}/pdf")
def download_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    renderer: Callable[[InvoiceDocument], bytes] = Depends(get_invoice_renderer),
):
    invoice = invoice_service.get_invoice(db, user_id, invoice_id)
    document, pdf = invoice_service.render_document(db, invoice, renderer)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice_filename(document)}"'},
    )
