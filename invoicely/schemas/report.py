from typing import List, Optional

from invoicely.models.invoice import InvoiceStatus
from invoicely.schemas.base import APIModel, Money
from invoicely.schemas.invoice import InvoiceSummary


class RevenuePoint(APIModel):
    date: str  # YYYY-MM
    total: Money


class OutstandingClient(APIModel):
    client_id: Optional[int] = None
    client_name: str
    client_email: Optional[str] = None
    invoices: List[InvoiceSummary]
    total: Money


class OutstandingReport(APIModel):
    total_outstanding: Money
    invoice_count: int
    outstanding_invoices: List[InvoiceSummary]
    by_client: List[OutstandingClient]


class StatusSummaryRow(APIModel):
    status: InvoiceStatus
    count: int
    total: Money
