# Overview: Per-societe dashboard figures; totals reuse the shared totals module.

from __future__ import annotations

from datetime import date, timedelta

from ..models import Document, Payment, Purchase, Sale, StockItem, StockLot
from ..validation import ValidationError
from . import totals
from .policy_service import require
from .session_service import Identity
from .settings_service import ensure_settings
from .tenant_service import require_societe, scoped_query


PERIODS = ("jour", "semaine", "mois", "annee", "tout")

CASH_MODES = {"", "especes", "espèces", "cash"}


def period_bounds(period: str, today: date | None = None) -> tuple[date | None, date | None]:
    """Inclusive [start, end] of a named period; "tout" is unbounded."""
    today = today or date.today()
    if period == "jour":
        return today, today
    if period == "semaine":
        return today - timedelta(days=7), today
    if period == "mois":
        return today.replace(day=1), today
    if period == "annee":
        return today.replace(month=1, day=1), today
    if period == "tout":
        return None, None
    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def _in_range(q, column, start: date | None, end: date | None):
    if start is not None:
        q = q.filter(column >= start)
    if end is not None:
        q = q.filter(column <= end)
    return q


def build_dashboard(
    identity: Identity,
    *,
    period: str = "mois",
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    """
    Sales, purchases and payments totals for the period, today's cash,
    unpaid records, stock alerts and lots close to expiry.

    Explicit date_from/date_to override the named period.
    """
    require(identity, "voir_dashboard")
    societe_id = require_societe(identity)
    today = date.today()

    if date_from is not None or date_to is not None:
        start, end = date_from, date_to
    else:
        start, end = period_bounds(period, today)

    sales = _in_range(scoped_query(Sale, societe_id), Sale.sale_date, start, end).all()
    purchases = _in_range(scoped_query(Purchase, societe_id), Purchase.purchase_date, start, end).all()
    payments = _in_range(scoped_query(Payment, societe_id), Payment.paid_on, start, end).all()

    cash_today = sum(
        s.total_cents
        for s in scoped_query(Sale, societe_id).filter(Sale.sale_date == today).all()
        if (s.payment_mode or "").strip().lower() in CASH_MODES
    )

    unpaid_statuses = (totals.PAYMENT_STATUS_UNPAID, totals.PAYMENT_STATUS_PARTIAL)
    unpaid_sales = scoped_query(Sale, societe_id).filter(Sale.payment_status.in_(unpaid_statuses)).count()
    unpaid_purchases = scoped_query(Purchase, societe_id).filter(Purchase.payment_status.in_(unpaid_statuses)).count()
    unpaid_invoices = (
        scoped_query(Document, societe_id)
        .filter(Document.payment_status.in_(unpaid_statuses), Document.is_cancelled.is_(False))
        .count()
    )

    items = scoped_query(StockItem, societe_id).order_by(StockItem.product_name).all()
    alerts = [
        {
            "id": item.id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "threshold": item.threshold,
            "status": "rupture" if item.is_out_of_stock else "seuil",
        }
        for item in items
        if item.is_out_of_stock or item.is_low_stock
    ]

    settings = ensure_settings(societe_id)
    expiry_limit = today + timedelta(days=settings.expiry_alert_days or 0)
    expiring = (
        scoped_query(StockLot, societe_id)
        .filter(
            StockLot.quantity > 0,
            StockLot.expiry_date.isnot(None),
            StockLot.expiry_date <= expiry_limit,
        )
        .order_by(StockLot.expiry_date)
        .all()
    )

    return {
        "period": period if date_from is None and date_to is None else "custom",
        "date_from": start.isoformat() if start else None,
        "date_to": end.isoformat() if end else None,
        "sales_total_cents": sum(s.total_cents for s in sales),
        "sales_count": len(sales),
        "purchases_total_cents": sum(p.total_cents for p in purchases),
        "purchases_count": len(purchases),
        "payments_total_cents": sum(p.amount_cents for p in payments),
        "cash_today_cents": cash_today,
        "unpaid_sales": unpaid_sales,
        "unpaid_purchases": unpaid_purchases,
        "unpaid_invoices": unpaid_invoices,
        "unpaid_documents": unpaid_sales + unpaid_purchases + unpaid_invoices,
        "stock_alerts": alerts,
        "expiring_lots": [
            {
                "id": lot.id,
                "product_name": lot.product_name,
                "lot_number": lot.lot_number,
                "quantity": lot.quantity,
                "expiry_date": lot.expiry_date.isoformat(),
                "expired": lot.expiry_date < today,
            }
            for lot in expiring
        ],
    }
