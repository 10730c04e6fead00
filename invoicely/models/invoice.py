"""
Invoice, its line items, and the per-user numbering counter.

Status flow: DRAFT -> SENT -> PAID | OVERDUE -> PAID; CANCELLED from any
non-terminal state. Tax amounts and total are derived from the line items and
rates, written only by invoice_service.
"""
import enum
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from invoicely.db.base import Base


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence_number", name="uq_invoices_user_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_number = Column(String(32), nullable=False)  # INV-001
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    temp_client = Column(JSON, nullable=True)  # {name, email, phone, address} when no saved client
    status = Column(String(32), nullable=False, default=InvoiceStatus.DRAFT.value)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)

    cgst_rate = Column(Numeric(5, 2), nullable=False, default=0)  # percent
    sgst_rate = Column(Numeric(5, 2), nullable=False, default=0)  # percent
    taxable_amount = Column(Numeric(12, 2), nullable=False, default=0)
    cgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    sgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)  # all items, before tax
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)  # subtotal + CGST + SGST

    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", backref="invoices")
    client = relationship("Client", backref="invoices")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )

    def __repr__(self):
        return f"<Invoice {self.sequence_number} user={self.user_id} status={self.status}>"


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(512), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    taxable = Column(Boolean, nullable=False, default=True)

    invoice = relationship("Invoice", back_populates="line_items")

    @property
    def amount(self) -> Decimal:
        # Recomputed on read, never stored
        return Decimal(self.quantity) * Decimal(self.unit_price)


class InvoiceCounter(Base):
    """Last issued invoice number per user. Incremented atomically, never decremented."""
    __tablename__ = "invoice_counters"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
