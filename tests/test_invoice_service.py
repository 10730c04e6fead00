from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from conftest import FakeMailer, fake_renderer, new_invoice
from invoicely.core.config import settings
from invoicely.core.exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError
from invoicely.models.invoice import InvoiceStatus
from invoicely.schemas.client import ClientCreate
from invoicely.schemas.invoice import InvoiceUpdate
from invoicely.services import client_service, invoice_service


def temp_documents():
    return list(Path(settings.TEMP_DIR).glob("*.pdf"))


def test_create_computes_totals(db, user):
    invoice = new_invoice(db, user.id)

    assert invoice.status == InvoiceStatus.DRAFT.value
    assert invoice.taxable_amount == Decimal("200.00")
    assert invoice.cgst_amount == Decimal("18.00")
    assert invoice.sgst_amount == Decimal("18.00")
    assert invoice.subtotal == Decimal("250.00")
    assert invoice.total_amount == Decimal("286.00")
    assert [line.description for line in invoice.line_items] == ["Design work", "Hosting"]


def test_create_drops_invalid_rows(db, user):
    invoice = new_invoice(
        db,
        user.id,
        lineItems=[
            {"description": "Consulting", "quantity": 1, "unitPrice": 500},
            {"description": "", "quantity": 1, "unitPrice": 10},
            {"description": "Free sample", "quantity": 1, "unitPrice": 0},
        ],
    )
    assert len(invoice.line_items) == 1
    assert invoice.total_amount == Decimal("590.00")


def test_create_requires_a_valid_item(db, user):
    with pytest.raises(ValidationError):
        new_invoice(db, user.id, lineItems=[{"description": "", "quantity": 0, "unitPrice": 0}])


def test_create_requires_due_date(db, user):
    with pytest.raises(ValidationError):
        new_invoice(db, user.id, dueDate=None)


def test_create_requires_exactly_one_client(db, user):
    saved = client_service.create_client(db, user.id, ClientCreate(name="Saved", email="saved@example.com"))

    with pytest.raises(ValidationError):
        new_invoice(db, user.id, tempClient=None)
    with pytest.raises(ValidationError):
        new_invoice(db, user.id, clientId=saved.id)


def test_create_rejects_mismatched_total(db, user):
    with pytest.raises(ValidationError):
        new_invoice(db, user.id, totalAmount=250)

    accepted = new_invoice(db, user.id, totalAmount=286)
    assert accepted.total_amount == Decimal("286.00")


def test_create_with_other_users_client_is_not_found(db, user, other_user):
    theirs = client_service.create_client(db, other_user.id, ClientCreate(name="Theirs", email="t@example.com"))

    with pytest.raises(NotFoundError):
        new_invoice(db, user.id, tempClient=None, clientId=theirs.id)


def test_read_back_matches_created(db, user):
    created = new_invoice(db, user.id, notes="Thanks")

    fetched = invoice_service.get_invoice(db, user.id, created.id)

    assert fetched.sequence_number == created.sequence_number
    assert fetched.total_amount == created.total_amount
    assert fetched.cgst_amount == created.cgst_amount
    assert fetched.notes == "Thanks"
    assert [(l.description, l.quantity, l.unit_price, l.taxable) for l in fetched.line_items] == [
        ("Design work", 2, Decimal("100.00"), True),
        ("Hosting", 1, Decimal("50.00"), False),
    ]


def test_other_user_cannot_see_invoice(db, user, other_user):
    invoice = new_invoice(db, user.id)

    with pytest.raises(NotFoundError):
        invoice_service.get_invoice(db, other_user.id, invoice.id)
    with pytest.raises(NotFoundError):
        invoice_service.update_status(db, other_user.id, invoice.id, InvoiceStatus.CANCELLED)
    assert invoice_service.list_invoices(db, other_user.id) == []


def test_list_filters_by_status(db, user):
    draft = new_invoice(db, user.id)
    cancelled = new_invoice(db, user.id)
    invoice_service.update_status(db, user.id, cancelled.id, InvoiceStatus.CANCELLED)

    drafts = invoice_service.list_invoices(db, user.id, status=InvoiceStatus.DRAFT)

    assert [i.id for i in drafts] == [draft.id]


def test_update_recomputes_totals(db, user):
    invoice = new_invoice(db, user.id)

    updated = invoice_service.update_invoice(
        db,
        user.id,
        invoice.id,
        InvoiceUpdate.model_validate(
            {"lineItems": [{"description": "Audit", "quantity": 1, "unitPrice": 1000}], "taxInfo": {"cgstRate": 6, "sgstRate": 6}}
        ),
    )

    assert updated.subtotal == Decimal("1000.00")
    assert updated.cgst_amount == Decimal("60.00")
    assert updated.total_amount == Decimal("1120.00")


def test_rate_change_keeps_line_items(db, user):
    invoice = new_invoice(db, user.id)

    updated = invoice_service.update_invoice(
        db, user.id, invoice.id, InvoiceUpdate.model_validate({"taxInfo": {"cgstRate": 0, "sgstRate": 0}})
    )

    assert len(updated.line_items) == 2
    assert updated.total_amount == Decimal("250.00")


def test_sent_invoice_content_is_frozen(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    with pytest.raises(ValidationError):
        invoice_service.update_invoice(
            db, user.id, invoice.id,
            InvoiceUpdate.model_validate({"lineItems": [{"description": "x", "quantity": 1, "unitPrice": 1}]}),
        )

    later = date.today() + timedelta(days=60)
    updated = invoice_service.update_invoice(
        db, user.id, invoice.id, InvoiceUpdate(due_date=later, notes="Extended")
    )
    assert updated.due_date == later
    assert updated.notes == "Extended"


def test_send_marks_sent_and_removes_document(db, user, mailer):
    invoice = new_invoice(db, user.id)

    sent = invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    assert sent.status == InvoiceStatus.SENT.value
    assert sent.sent_at is not None
    delivery = mailer.sent[0]
    assert delivery["email"].to == "billing@acme.example.com"
    assert delivery["filename"] == "Invoice-INV-001.pdf"
    assert delivery["existed"] and delivery["size"] > 0
    assert not delivery["path"].exists()
    assert temp_documents() == []


def test_send_failure_leaves_draft(db, user):
    failing = FakeMailer(error=UpstreamError("Email delivery failed"))
    invoice = new_invoice(db, user.id)

    with pytest.raises(UpstreamError):
        invoice_service.send_invoice(db, user.id, invoice.id, failing, fake_renderer)

    db.expire_all()
    reloaded = invoice_service.get_invoice(db, user.id, invoice.id)
    assert reloaded.status == InvoiceStatus.DRAFT.value
    assert reloaded.sent_at is None
    assert not failing.sent[0]["path"].exists()
    assert temp_documents() == []


def test_render_failure_is_upstream_error(db, user, mailer):
    def broken_renderer(document):
        raise RuntimeError("renderer crashed")

    invoice = new_invoice(db, user.id)

    with pytest.raises(UpstreamError):
        invoice_service.send_invoice(db, user.id, invoice.id, mailer, broken_renderer)
    assert mailer.sent == []
    assert invoice_service.get_invoice(db, user.id, invoice.id).status == InvoiceStatus.DRAFT.value


def test_send_twice_rejected(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    with pytest.raises(ValidationError):
        invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)
    assert len(mailer.sent) == 1


def test_paid_sets_paid_at_and_is_idempotent(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    paid = invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.PAID)
    assert paid.status == InvoiceStatus.PAID.value
    first_paid_at = paid.paid_at
    assert first_paid_at is not None

    again = invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.PAID)
    assert again.status == InvoiceStatus.PAID.value
    assert again.paid_at == first_paid_at


def test_paid_uses_given_date(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)
    when = datetime(2026, 3, 15, 10, 30, tzinfo=timezone.utc)

    paid = invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.PAID, paid_at=when)

    assert paid.paid_at.replace(tzinfo=None) == when.replace(tzinfo=None)


@pytest.mark.parametrize(
    "target",
    [InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.OVERDUE],
)
def test_draft_cannot_skip_send(db, user, target):
    invoice = new_invoice(db, user.id)

    with pytest.raises(ValidationError):
        invoice_service.update_status(db, user.id, invoice.id, target)


def test_terminal_states_are_final(db, user):
    invoice = new_invoice(db, user.id)
    invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.CANCELLED)

    for target in (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.PAID):
        with pytest.raises(ValidationError):
            invoice_service.update_status(db, user.id, invoice.id, target)


def test_overdue_can_still_be_paid(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)
    invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.OVERDUE)

    paid = invoice_service.update_status(db, user.id, invoice.id, InvoiceStatus.PAID)

    assert paid.status == InvoiceStatus.PAID.value


def test_delete_only_draft_or_cancelled(db, user, mailer):
    draft = new_invoice(db, user.id)
    sent = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, sent.id, mailer, fake_renderer)

    invoice_service.delete_invoice(db, user.id, draft.id)
    with pytest.raises(ValidationError):
        invoice_service.delete_invoice(db, user.id, sent.id)
    with pytest.raises(NotFoundError):
        invoice_service.get_invoice(db, user.id, draft.id)


def test_client_with_invoices_cannot_be_deleted(db, user):
    saved = client_service.create_client(db, user.id, ClientCreate(name="Saved", email="saved@example.com"))
    new_invoice(db, user.id, tempClient=None, clientId=saved.id)

    with pytest.raises(ConflictError):
        client_service.delete_client(db, user.id, saved.id)


def test_mark_overdue_only_touches_past_due_sent(db, user, mailer):
    past_due = new_invoice(db, user.id)
    also_past_due = new_invoice(db, user.id)
    draft = new_invoice(db, user.id)
    for invoice in (past_due, also_past_due):
        invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    count = invoice_service.mark_overdue_invoices(db, today=past_due.due_date + timedelta(days=1))

    # all three share a due date; only SENT ones move
    assert count == 2
    assert invoice_service.get_invoice(db, user.id, past_due.id).status == InvoiceStatus.OVERDUE.value
    assert invoice_service.get_invoice(db, user.id, draft.id).status == InvoiceStatus.DRAFT.value


def test_mark_overdue_before_due_date(db, user, mailer):
    invoice = new_invoice(db, user.id)
    invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    assert invoice_service.mark_overdue_invoices(db, today=invoice.due_date) == 0


def test_cleanup_removes_leftover_documents(db, user):
    invoice = new_invoice(db, user.id)
    document, pdf = invoice_service.render_document(db, invoice, fake_renderer)
    leftover = invoice_service.write_temp_document(pdf, document)
    assert leftover.exists()

    assert invoice_service.cleanup_temp_documents() == 1
    assert not leftover.exists()


def test_unwritable_temp_dir_is_upstream_error(db, user, mailer, monkeypatch, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    monkeypatch.setattr(settings, "TEMP_DIR", str(blocker / "documents"))
    invoice = new_invoice(db, user.id)

    with pytest.raises(UpstreamError):
        invoice_service.send_invoice(db, user.id, invoice.id, mailer, fake_renderer)

    assert mailer.sent == []
    db.expire_all()
    assert invoice_service.get_invoice(db, user.id, invoice.id).status == InvoiceStatus.DRAFT.value


def test_unit_price_rounded_to_cents(db, user):
    invoice = new_invoice(
        db,
        user.id,
        lineItems=[{"description": "Metered usage", "quantity": 1, "unitPrice": "10.005", "taxable": False}],
    )

    assert invoice.line_items[0].unit_price == Decimal("10.01")
    assert invoice.total_amount == Decimal("10.01")
