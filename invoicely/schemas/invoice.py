from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from pydantic import AliasChoices, EmailStr, Field, field_validator

from invoicely.core.config import settings
from invoicely.models.invoice import Invoice, InvoiceStatus
from invoicely.schemas.base import APIModel, Money


class LineItemIn(APIModel):
    """Raw form row. Invalid rows are filtered out by the billing service, not rejected here."""
    description: str = ""
    quantity: int = 0
    unit_price: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("unitPrice", "unit_price", "price"),
    )
    taxable: bool = True

    @field_validator("unit_price")
    @classmethod
    def round_unit_price(cls, v: Decimal) -> Decimal:
        # Stored as Numeric(12, 2)
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TempClientIn(APIModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None


class TaxRatesIn(APIModel):
    """Only the rates are read; any submitted amounts are ignored and recomputed."""
    cgst_rate: Decimal = Field(
        default_factory=lambda: Decimal(settings.DEFAULT_CGST_RATE), ge=0, le=100, decimal_places=2
    )
    sgst_rate: Decimal = Field(
        default_factory=lambda: Decimal(settings.DEFAULT_SGST_RATE), ge=0, le=100, decimal_places=2
    )


class InvoiceCreate(APIModel):
    client_id: Optional[int] = None
    temp_client: Optional[TempClientIn] = None
    due_date: Optional[date] = None
    line_items: List[LineItemIn] = Field(default_factory=list)
    tax_info: Optional[TaxRatesIn] = None
    notes: Optional[str] = None
    total_amount: Optional[Decimal] = None  # checked against the computed total if present


class InvoiceUpdate(APIModel):
    client_id: Optional[int] = None
    temp_client: Optional[TempClientIn] = None
    due_date: Optional[date] = None
    line_items: Optional[List[LineItemIn]] = None
    tax_info: Optional[TaxRatesIn] = None
    notes: Optional[str] = None
    total_amount: Optional[Decimal] = None


class StatusUpdate(APIModel):
    status: InvoiceStatus
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None


class LineItemResponse(APIModel):
    description: str
    quantity: int
    unit_price: Money
    taxable: bool
    amount: Money


class TaxInfoResponse(APIModel):
    cgst_rate: Money
    sgst_rate: Money
    taxable_amount: Money
    cgst_amount: Money
    sgst_amount: Money


class ClientContact(APIModel):
    id: Optional[int] = None
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None


class InvoiceResponse(APIModel):
    id: int
    sequence_number: str
    client_id: Optional[int] = None
    client: Optional[ClientContact] = None
    status: InvoiceStatus
    due_date: date
    notes: Optional[str] = None
    line_items: List[LineItemResponse]
    tax_info: TaxInfoResponse
    subtotal: Money
    total_amount: Money
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        if invoice.client is not None:
            client = ClientContact.model_validate(invoice.client)
        elif invoice.temp_client:
            client = ClientContact(**invoice.temp_client)
        else:
            client = None
        return cls(
            id=invoice.id,
            sequence_number=invoice.sequence_number,
            client_id=invoice.client_id,
            client=client,
            status=invoice.status,
            due_date=invoice.due_date,
            notes=invoice.notes,
            line_items=[LineItemResponse.model_validate(item) for item in invoice.line_items],
            tax_info=TaxInfoResponse(
                cgst_rate=invoice.cgst_rate,
                sgst_rate=invoice.sgst_rate,
                taxable_amount=invoice.taxable_amount,
                cgst_amount=invoice.cgst_amount,
                sgst_amount=invoice.sgst_amount,
            ),
            subtotal=invoice.subtotal,
            total_amount=invoice.total_amount,
            sent_at=invoice.sent_at,
            paid_at=invoice.paid_at,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
        )


class InvoiceSummary(APIModel):
    """List row: metadata only."""
    id: int
    sequence_number: str
    client_name: Optional[str] = None
    status: InvoiceStatus
    due_date: date
    total_amount: Money
    created_at: Optional[datetime] = None
