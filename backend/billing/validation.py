from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from billing.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money value: 9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")

RECOGNIZED_UNITS = ("piece", "box", "kg", "gram", "liter", "ml", "bag", "packet", "bottle")

GST_CATEGORIES = ("GST", "Non-GST")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: unknown product code, record id or batch key."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate product code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: client-facing (camelCase) key -> column key
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)


def parse_decimal(
    value: Any,
    field_name: str,
    *,
    positive: bool = False,
    non_negative: bool = False,
) -> Decimal:
    """
    Numeric parsing boundary for untyped request fields.

    Fails closed: None, blank, booleans, non-numeric text, NaN and infinity
    are all rejected before any ledger mutation is attempted.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field_name} must be a number")
    if not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{field_name} must be a number")
    try:
        # str() first so floats keep their shortest repr (0.1, not 0.1000000000000000055)
        dec = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    if positive and dec <= 0:
        raise ValidationError(f"{field_name} must be greater than 0")
    if non_negative and dec < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return dec


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric before Integer: Numeric is not an Integer subclass, but keep the order explicit
    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key)

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return dt
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    Client keys are translated through policy.aliases first, so the API can
    speak camelCase (productCode) while columns stay snake_case (product_code).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    translated: dict = {}
    for k, v in payload.items():
        translated[policy.aliases.get(k, k)] = v

    if not partial:
        missing = [
            f for f in sorted(policy.required_on_create)
            if translated.get(f) is None or translated.get(f) == ""
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in translated.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in translated.items():
        col = cols[k]

        # Empty strings from HTML forms mean "not provided"
        if raw is None or (isinstance(raw, str) and raw.strip() == "" and not isinstance(col.type, (String, Text))):
            if not col.nullable and col.default is None:
                raise ValidationError(f"{k} cannot be null")
            if col.nullable:
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


def _check_amount(patch: dict, key: str) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")


def check_dates(manufactured: datetime | None, expires: datetime | None) -> None:
    if manufactured and expires and expires < manufactured:
        raise ValidationError("expiry_date cannot be before manufacture_date")


def enforce_rules_product(patch: dict, *, partial: bool = False) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("mrp", "seller_price", "base_price", "discount", "gst"):
        _check_amount(patch, key)

    for key in ("stock_quantity", "low_stock_alert"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    if "conversion_rate" in patch and patch["conversion_rate"] is not None:
        if patch["conversion_rate"] <= 0:
            raise ValidationError("conversion_rate must be greater than 0")

    if "base_unit" in patch or not partial:
        base_unit = patch.get("base_unit")
        if base_unit not in RECOGNIZED_UNITS:
            raise ValidationError(f"base_unit must be one of: {', '.join(RECOGNIZED_UNITS)}")

    secondary = patch.get("secondary_unit")
    if secondary:
        if secondary not in RECOGNIZED_UNITS:
            raise ValidationError(f"secondary_unit must be one of: {', '.join(RECOGNIZED_UNITS)}")
        if secondary == patch.get("base_unit"):
            raise ValidationError("secondary_unit must differ from base_unit")

    if "gst_category" in patch or not partial:
        if patch.get("gst_category") not in GST_CATEGORIES:
            raise ValidationError('GST Category must be either "GST" or "Non-GST"')

    check_dates(patch.get("manufacture_date"), patch.get("expiry_date"))


def enforce_rules_restock(patch: dict) -> None:
    # Restock metadata: prices are optional but must be sane when supplied
    _check_amount(patch, "mrp")
    _check_amount(patch, "seller_price")
    check_dates(patch.get("manufacture_date"), patch.get("expiry_date"))
