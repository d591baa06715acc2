from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any single money value; guards against overflow and typos
MAX_AMOUNT = 999_999_999.99


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate pending invitation)."""


class NotFoundError(LookupError):
    """404-level: the row does not exist inside the caller's organization."""


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Decimal amounts (prices, costs, money)
    if isinstance(coltype, Float):
        return coerce_amount(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def coerce_amount(value: Any, field: str) -> float:
    """Accept ints, floats and numeric strings; reject bools, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number")
    return number


def coerce_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{field} must be a positive integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError(f"{field} must be a positive integer")
        value = int(stripped)
    if value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
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
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Optional text fields: "" means "not set"
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount_range(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        value = patch[field]
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,.2f}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_amount_range(patch, "price")
    _check_amount_range(patch, "cost")

    for field in ("stock", "min_stock"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_financial_transaction(patch: dict) -> None:
    from .models.finance import TRANSACTION_TYPES

    if patch.get("type") not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")

    amount = patch.get("amount")
    if amount is None or amount <= 0:
        raise ValidationError("amount must be > 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"amount cannot exceed {MAX_AMOUNT:,.2f}")
