import base64
from datetime import date
from decimal import Decimal
from io import BytesIO

from reportlab.pdfgen import canvas

from conftest import new_invoice
from invoicely.services.pdf_service import (
    DocumentLine,
    DocumentParty,
    InvoiceDocument,
    build_invoice_document,
    format_money,
    format_rate,
    invoice_filename,
    render_invoice_pdf,
)


def sample_document(**overrides) -> InvoiceDocument:
    values = dict(
        sequence_number="INV-007",
        issue_date=date(2026, 1, 5),
        due_date=date(2026, 2, 4),
        status="draft",
        company_name="Alice Studio",
        client=DocumentParty(name="Acme & Sons <Ltd>", email="billing@acme.example.com", address="1 Main St"),
        lines=[
            DocumentLine("Design work", 2, Decimal("100.00"), True, Decimal("200.00")),
            DocumentLine("Hosting", 1, Decimal("50.00"), False, Decimal("50.00")),
        ],
        cgst_rate=Decimal("9.00"),
        sgst_rate=Decimal("9.00"),
        taxable_amount=Decimal("200.00"),
        cgst_amount=Decimal("18.00"),
        sgst_amount=Decimal("18.00"),
        subtotal=Decimal("250.00"),
        total_amount=Decimal("286.00"),
        notes="Payment by bank transfer",
    )
    values.update(overrides)
    return InvoiceDocument(**values)


def tiny_pdf_as_data_url() -> str:
    # Not an image reportlab can read; rendering must skip it
    buffer = BytesIO()
    c = canvas.Canvas(buffer)
    c.drawString(10, 10, "x")
    c.save()
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


def test_render_produces_pdf():
    pdf = render_invoice_pdf(sample_document())
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_render_skips_unreadable_logo():
    pdf = render_invoice_pdf(sample_document(logo=tiny_pdf_as_data_url(), signature="data:,nothing"))
    assert pdf.startswith(b"%PDF")


def test_filename_and_formatting():
    assert invoice_filename(sample_document()) == "Invoice-INV-007.pdf"
    assert format_money(Decimal("1234567.5")) == "1,234,567.50"
    assert format_rate(Decimal("9.00")) == "9"
    assert format_rate(Decimal("2.50")) == "2.5"


def test_build_document_from_invoice(db, user):
    user.company_name = "Alice Studio"
    db.commit()
    invoice = new_invoice(db, user.id, notes="Thanks")

    document = build_invoice_document(db, invoice)

    assert document.sequence_number == "INV-001"
    assert document.company_name == "Alice Studio"
    assert document.client.name == "Acme Traders"
    assert document.client.email == "billing@acme.example.com"
    assert [line.amount for line in document.lines] == [Decimal("200.00"), Decimal("50.00")]
    assert document.total_amount == Decimal("286.00")
    assert document.notes == "Thanks"


def test_build_document_falls_back_to_default_company(db, user):
    invoice = new_invoice(db, user.id)
    document = build_invoice_document(db, invoice)
    assert document.company_name == "Invoicely"
