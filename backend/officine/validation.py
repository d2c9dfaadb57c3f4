from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_date, parse_iso_datetime


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem (missing field, insufficient stock, overpayment)."""


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate invitation, already a member)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_date(key: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
        if d is None:
            raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
        return d
    raise ValidationError(f"{key} must be a date")


def optional_date(key: str, value: Any) -> date | None:
    """coerce_date for query-string filters; blank means no filter."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_date(key, value)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # DateTime before Date: both are checked by isinstance on the column type
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
    aliases: dict[str, str] | None = None,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    aliases maps payload keys to column keys (e.g. "date" -> "sale_date").
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = aliases or {}
    payload = {aliases.get(k, k): v for k, v in payload.items()}

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_amount(key: str, value: int | None, *, allow_zero: bool = True) -> None:
    """Range check for a *_cents field."""
    if value is None:
        return
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_stock(patch: dict) -> None:
    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")
    if "threshold" in patch and patch["threshold"] is not None and patch["threshold"] < 0:
        raise ValidationError("threshold must be >= 0")
    for key in ("purchase_price_cents", "sale_price_cents"):
        enforce_amount(key, patch.get(key))


def enforce_rules_lines(lines: list[dict], *, label: str = "lines") -> None:
    """Every line must name a product and carry a strictly positive quantity."""
    if not lines:
        raise ValidationError(f"{label} must contain at least one line")
    for idx, line in enumerate(lines):
        if not line.get("product_name"):
            raise ValidationError(f"{label}[{idx}].product_name is required")
        if line.get("quantity") is None or line["quantity"] <= 0:
            raise ValidationError(f"{label}[{idx}].quantity must be > 0")
        for key in ("unit_price_cents", "discount_cents", "sale_price_cents"):
            try:
                enforce_amount(key, line.get(key))
            except ValidationError as exc:
                raise ValidationError(f"{label}[{idx}].{exc}")


def validate_lines(
    *,
    model: DeclarativeMeta,
    raw_lines: Any,
    policy: ModelValidationPolicy,
    label: str = "lines",
) -> list[dict]:
    """Validate a list of line payloads against a line model, then apply line rules."""
    if not isinstance(raw_lines, list):
        raise ValidationError(f"{label} must be a list")
    cleaned = []
    for idx, raw in enumerate(raw_lines):
        try:
            cleaned.append(validate_payload(model=model, payload=raw, policy=policy, partial=False))
        except ValidationError as exc:
            raise ValidationError(f"{label}[{idx}]: {exc}")
    enforce_rules_lines(cleaned, label=label)
    return cleaned
