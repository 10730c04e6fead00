"""Invoice arithmetic: line amounts, CGST/SGST, totals.

Pure functions, no database access. Line items are any objects exposing
`description`, `quantity`, `unit_price` and `taxable` (request schemas and
InvoiceLineItem rows both qualify).

Rounding: money is quantized to 0.01 with ROUND_HALF_UP only where it is
persisted or shown (tax amounts, subtotal, total). Sums are taken on the
unrounded values.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Sequence

from invoicely.core.exceptions import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't carry binary noise
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amount(quantity, unit_price) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def is_valid_line_item(item) -> bool:
    description = (item.description or "").strip()
    return (
        bool(description)
        and item.quantity is not None
        and to_decimal(item.quantity) > 0
        and item.unit_price is not None
        and to_decimal(item.unit_price) > 0
    )


def filter_valid_line_items(items: Iterable) -> List:
    """Drop blank, zero-quantity and zero-price rows. Never raises."""
    return [item for item in items if is_valid_line_item(item)]


@dataclass(frozen=True)
class TaxBreakdown:
    cgst_rate: Decimal
    sgst_rate: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount


@dataclass(frozen=True)
class InvoicePricing:
    subtotal: Decimal
    tax: TaxBreakdown
    total_amount: Decimal


def _validate_rate(name: str, rate) -> Decimal:
    rate = to_decimal(rate)
    if rate < 0:
        raise ValidationError(f"{name} rate cannot be negative")
    return rate


def calculate_tax(items: Sequence, cgst_rate, sgst_rate) -> TaxBreakdown:
    """
    Apply CGST and SGST to the taxable subset of the line items.

    Args:
        items: valid line items
        cgst_rate: CGST percent (9 means 9%)
        sgst_rate: SGST percent

    Returns:
        TaxBreakdown with taxable_amount and rounded tax amounts
    """
    cgst_rate = _validate_rate("CGST", cgst_rate)
    sgst_rate = _validate_rate("SGST", sgst_rate)

    taxable = sum(
        (line_amount(item.quantity, item.unit_price) for item in items if item.taxable),
        Decimal("0"),
    )

    return TaxBreakdown(
        cgst_rate=cgst_rate,
        sgst_rate=sgst_rate,
        taxable_amount=round_money(taxable),
        cgst_amount=round_money(taxable * cgst_rate / HUNDRED),
        sgst_amount=round_money(taxable * sgst_rate / HUNDRED),
    )


def price_invoice(items: Sequence, cgst_rate, sgst_rate) -> InvoicePricing:
    """Total = every line amount (taxable or not) + CGST + SGST."""
    tax = calculate_tax(items, cgst_rate, sgst_rate)
    subtotal = round_money(
        sum((line_amount(item.quantity, item.unit_price) for item in items), Decimal("0"))
    )
    return InvoicePricing(
        subtotal=subtotal,
        tax=tax,
        total_amount=subtotal + tax.cgst_amount + tax.sgst_amount,
    )


def check_submitted_total(submitted, pricing: InvoicePricing) -> None:
    """Reject a caller-computed total that disagrees with the server's."""
    if submitted is None:
        return
    if round_money(submitted) != pricing.total_amount:
        raise ValidationError(
            f"Submitted total {round_money(submitted)} does not match computed total {pricing.total_amount}"
        )
