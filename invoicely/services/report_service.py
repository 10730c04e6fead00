"""
Reports: read-only aggregations over the caller's invoices.

- Revenue per month (paid invoices, by paid date)
- Outstanding invoices (sent + overdue), grouped by client
- Count and total per status
"""
from collections import OrderedDict
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from invoicely.models.invoice import Invoice, InvoiceStatus
from invoicely.schemas.invoice import InvoiceSummary
from invoicely.schemas.report import OutstandingClient, OutstandingReport, RevenuePoint, StatusSummaryRow
from invoicely.services.billing import round_money

OUTSTANDING_STATES = (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)


def client_display(invoice: Invoice) -> tuple:
    """(client_id, name, email) from the saved client or the inline snapshot."""
    if invoice.client is not None:
        return invoice.client.id, invoice.client.name, invoice.client.email
    snapshot = invoice.temp_client or {}
    return None, snapshot.get("name", "Unknown"), snapshot.get("email")


def summarize(invoice: Invoice) -> InvoiceSummary:
    return InvoiceSummary(
        id=invoice.id,
        sequence_number=invoice.sequence_number,
        client_name=client_display(invoice)[1],
        status=invoice.status,
        due_date=invoice.due_date,
        total_amount=invoice.total_amount,
        created_at=invoice.created_at,
    )


def revenue_by_month(
    db: Session,
    user_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[RevenuePoint]:
    """
    Paid revenue per calendar month of paid_at.
    Defaults to the first day of the same month last year through today.
    """
    end = end or date.today()
    start = start or date(end.year - 1, end.month, 1)

    rows = (
        db.query(Invoice.paid_at, Invoice.total_amount)
        .filter(
            Invoice.user_id == user_id,
            Invoice.status == InvoiceStatus.PAID.value,
            Invoice.paid_at.isnot(None),
            Invoice.paid_at >= datetime.combine(start, time.min),
            Invoice.paid_at <= datetime.combine(end, time.max),
        )
        .order_by(Invoice.paid_at)
        .all()
    )

    totals: "OrderedDict[str, Decimal]" = OrderedDict()
    for paid_at, amount in rows:
        key = paid_at.strftime("%Y-%m")
        totals[key] = totals.get(key, Decimal("0")) + Decimal(amount)

    return [RevenuePoint(date=key, total=total) for key, total in totals.items()]


def outstanding(db: Session, user_id: int) -> OutstandingReport:
    invoices = (
        db.query(Invoice)
        .filter(Invoice.user_id == user_id, Invoice.status.in_(OUTSTANDING_STATES))
        .order_by(Invoice.due_date, Invoice.id)
        .all()
    )

    by_client: "OrderedDict[tuple, dict]" = OrderedDict()
    total = Decimal("0")
    for invoice in invoices:
        total += Decimal(invoice.total_amount)
        client_id, name, email = client_display(invoice)
        # Inline clients group by their email
        key = ("client", client_id) if client_id is not None else ("temp", email or name)
        group = by_client.setdefault(
            key,
            {"client_id": client_id, "client_name": name, "client_email": email, "invoices": [], "total": Decimal("0")},
        )
        group["invoices"].append(summarize(invoice))
        group["total"] += Decimal(invoice.total_amount)

    return OutstandingReport(
        total_outstanding=total,
        invoice_count=len(invoices),
        outstanding_invoices=[summarize(invoice) for invoice in invoices],
        by_client=[OutstandingClient(**group) for group in by_client.values()],
    )


def status_summary(db: Session, user_id: int) -> List[StatusSummaryRow]:
    rows = (
        db.query(
            Invoice.status,
            func.count(Invoice.id).label("count"),
            func.sum(Invoice.total_amount).label("total"),
        )
        .filter(Invoice.user_id == user_id)
        .group_by(Invoice.status)
        .all()
    )
    return [
        StatusSummaryRow(status=status, count=count, total=round_money(total or 0))
        for status, count, total in rows
    ]
