from decimal import Decimal

import pytest

from invoicely.core.exceptions import ValidationError
from invoicely.schemas.invoice import LineItemIn
from invoicely.services import billing


def item(quantity, price, taxable=True, description="Item"):
    return LineItemIn(description=description, quantity=quantity, unit_price=price, taxable=taxable)


def test_mixed_taxable_items():
    items = [item(2, 100, True), item(1, 50, False)]

    pricing = billing.price_invoice(items, 9, 9)

    assert pricing.tax.taxable_amount == Decimal("200.00")
    assert pricing.tax.cgst_amount == Decimal("18.00")
    assert pricing.tax.sgst_amount == Decimal("18.00")
    assert pricing.subtotal == Decimal("250.00")
    assert pricing.total_amount == Decimal("286.00")


def test_no_taxable_items_means_no_tax():
    items = [item(3, 40, False), item(1, 15, False)]

    pricing = billing.price_invoice(items, 12, 6)

    assert pricing.tax.cgst_amount == 0
    assert pricing.tax.sgst_amount == 0
    assert pricing.tax.taxable_amount == 0
    assert pricing.total_amount == Decimal("135.00")


def test_zero_rates():
    pricing = billing.price_invoice([item(1, 99.99)], 0, 0)
    assert pricing.total_amount == Decimal("99.99")


def test_tax_rounds_half_up():
    # 0.50 * 9% = 0.045
    tax = billing.calculate_tax([item(1, Decimal("0.50"))], 9, 9)
    assert tax.cgst_amount == Decimal("0.05")
    assert tax.sgst_amount == Decimal("0.05")


def test_uneven_rates():
    tax = billing.calculate_tax([item(1, 1000)], Decimal("2.5"), Decimal("6"))
    assert tax.cgst_amount == Decimal("25.00")
    assert tax.sgst_amount == Decimal("60.00")
    assert tax.total_tax == Decimal("85.00")


def test_total_is_subtotal_plus_taxes():
    items = [item(3, Decimal("33.33")), item(7, Decimal("1.11"), False)]
    pricing = billing.price_invoice(items, Decimal("9"), Decimal("9"))
    assert pricing.total_amount == pricing.subtotal + pricing.tax.cgst_amount + pricing.tax.sgst_amount


def test_negative_rate_rejected():
    with pytest.raises(ValidationError):
        billing.calculate_tax([item(1, 10)], -1, 9)


def test_filter_drops_incomplete_rows():
    rows = [
        item(1, 10, description="Kept"),
        item(0, 10, description="No quantity"),
        item(1, 0, description="No price"),
        item(1, 10, description="   "),
    ]

    valid = billing.filter_valid_line_items(rows)

    assert [row.description for row in valid] == ["Kept"]


def test_filter_on_empty_input():
    assert billing.filter_valid_line_items([]) == []


def test_submitted_total_must_match():
    pricing = billing.price_invoice([item(2, 100), item(1, 50, False)], 9, 9)

    billing.check_submitted_total(None, pricing)
    billing.check_submitted_total(Decimal("286"), pricing)
    billing.check_submitted_total(286.0, pricing)
    with pytest.raises(ValidationError):
        billing.check_submitted_total(Decimal("250"), pricing)


def test_round_money():
    assert billing.round_money(Decimal("2.675")) == Decimal("2.68")
    assert billing.round_money(0.1) == Decimal("0.10")


@pytest.mark.parametrize("rates", [(9, 9), (0, 5), (Decimal("2.5"), Decimal("2.5"))])
def test_making_an_item_taxable_never_lowers_total(rates):
    untaxed = [item(3, Decimal("19.99"), False), item(1, 250, True)]
    taxed = [item(3, Decimal("19.99"), True), item(1, 250, True)]

    before = billing.price_invoice(untaxed, *rates).total_amount
    after = billing.price_invoice(taxed, *rates).total_amount

    assert after >= before
