# Overview: Request-body validation driven by model column metadata plus a per-route allowlist.

"""
Payload Validation

Routes describe what a client may send with a ModelValidationPolicy; the
column types of the target model decide how each value is coerced:

    Integer    strict int (no bools, floats, decimals or exponents)
    Numeric    money, via to_money (half-even to cents)
    Date       civil date, YYYY-MM-DD
    DateTime   ISO-8601, normalized to naive UTC
    Boolean    JSON true / false only
    String     stripped text, length-checked

Cross-field rules (warranty in the future, CASH vs INSTALLMENT, and so on)
belong to the services, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import to_money
from .time_utils import parse_iso_date, parse_iso_datetime


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    writable_fields: columns a client may set on the model
    required_on_create: columns that must be present on POST
    extra_fields: non-column inputs the operation takes (e.g. user_id, installment terms)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    extra_fields: set[str] = field(default_factory=set)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if not (digits.isascii() and digits.isdigit()):
            raise ValidationError(f"{key} must be a plain integer", {key: value})
        return int(text)
    raise ValidationError(f"{key} must be an integer")


def _as_date(key: str, value: Any) -> date:
    if isinstance(value, datetime):
        raise ValidationError(f"{key} must be a date, not a timestamp")
    if isinstance(value, date):
        return value
    parsed = None
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be a date in YYYY-MM-DD format", {key: value})
    return parsed


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = None
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime", {key: value})
    return parsed


def _coerce(col, value: Any):
    coltype = col.type
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Numeric):
        return to_money(value, col.key)
    if isinstance(coltype, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be true or false", {col.key: value})
        return value
    # DateTime before Date: neither subclasses the other, but keep timestamps explicit
    if isinstance(coltype, DateTime):
        return _as_datetime(col.key, value)
    if isinstance(coltype, Date):
        return _as_date(col.key, value)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if not col.nullable and text == "":
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return text
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Return a cleaned patch holding only allowed keys, each coerced to its column type.

    partial=False enforces required_on_create (POST); partial=True checks only
    the keys present (PUT/PATCH). Extra fields pass through untouched.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"missing": missing})

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key in policy.extra_fields:
            patch[key] = raw
            continue
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}", {"field": key})
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce(col, raw)
    return patch


def require_non_negative(patch: dict, *fields: str) -> None:
    for name in fields:
        value = patch.get(name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} must be >= 0", {name: str(value)})


def parse_pagination(limit: Any, offset: Any, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """
    Clamp `limit` to [1, max_limit] (default 10) and `offset` to >= 0.

    Non-numeric values fall back to the defaults.
    """
    try:
        lim = int(limit) if limit not in (None, "") else default_limit
    except (TypeError, ValueError):
        lim = default_limit
    try:
        off = int(offset) if offset not in (None, "") else 0
    except (TypeError, ValueError):
        off = 0
    return min(max(lim, 1), max_limit), max(off, 0)
