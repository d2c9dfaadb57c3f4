# Overview: Pure money arithmetic shared by lists, payments, print and dashboard.

from __future__ import annotations

from typing import Iterable


PAYMENT_STATUS_UNPAID = "impayé"
PAYMENT_STATUS_PARTIAL = "partiel"
PAYMENT_STATUS_PAID = "payé"

PAYMENT_STATUSES = (PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_PAID)


def line_total(unit_price_cents: int | None, quantity: int | None, discount_cents: int | None = 0) -> int:
    """unit price x quantity - line discount."""
    return int(unit_price_cents or 0) * int(quantity or 0) - int(discount_cents or 0)


def document_total(lines: Iterable, global_discount_cents: int | None = 0) -> int:
    """
    Sum of line totals minus the global discount, floored at zero.

    lines are objects exposing unit_price_cents, quantity and discount_cents
    (model rows or unsaved line objects).
    """
    subtotal = sum(
        line_total(line.unit_price_cents, line.quantity, getattr(line, "discount_cents", 0))
        for line in lines
    )
    return max(0, subtotal - int(global_discount_cents or 0))


def balance(total_cents: int, paid_cents: int | None) -> int:
    return int(total_cents or 0) - int(paid_cents or 0)


def payment_status(total_cents: int, paid_cents: int | None) -> str:
    """
    Status derived from the amount paid.

    Nothing paid is always "impayé", including zero-total records.
    """
    paid = int(paid_cents or 0)
    if paid <= 0:
        return PAYMENT_STATUS_UNPAID
    if paid >= int(total_cents or 0):
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PARTIAL
