# Overview: Service-layer operations for cash flows; till money in and out.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import CashFlow, Outlet, User
from ..models.financial import FLOW_TYPES
from ..money import ZERO, quantize, to_money
from ..time_utils import parse_iso_date, utcnow
from .concurrency import run_with_retry
from .lookup import get_live, normalize_status, paginate

EDITABLE_FIELDS = {"flow_type", "source", "amount", "flow_date", "notes", "outlet_id"}


def _as_date(value, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def _clean(patch: dict) -> dict:
    cleaned = dict(patch)
    if "flow_type" in cleaned:
        cleaned["flow_type"] = normalize_status(cleaned["flow_type"], FLOW_TYPES, "flow_type")
    if "amount" in cleaned:
        cleaned["amount"] = to_money(cleaned["amount"], "amount")
        if cleaned["amount"] <= 0:
            raise ValidationError("amount must be > 0")
    if "source" in cleaned:
        source = (cleaned["source"] or "").strip()
        if not source:
            raise ValidationError("source cannot be blank")
        cleaned["source"] = source
    if "flow_date" in cleaned:
        cleaned["flow_date"] = _as_date(cleaned["flow_date"], "flow_date")
    return cleaned


def create_cash_flow(patch: dict, *, user_id: int) -> CashFlow:
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    for required in ("flow_type", "source", "amount"):
        if patch.get(required) is None:
            raise ValidationError(f"{required} is required")
    cleaned = _clean(patch)

    def _op() -> CashFlow:
        get_live(User, user_id, "User")
        if cleaned.get("outlet_id") is not None:
            get_live(Outlet, cleaned["outlet_id"], "Outlet")
        flow = CashFlow(
            flow_type=cleaned["flow_type"],
            source=cleaned["source"],
            amount=cleaned["amount"],
            flow_date=cleaned.get("flow_date") or utcnow().date(),
            notes=cleaned.get("notes"),
            outlet_id=cleaned.get("outlet_id"),
            user_id=user_id,
            created_by=user_id,
        )
        db.session.add(flow)
        db.session.commit()
        return flow

    return run_with_retry(_op)


def get_cash_flow(flow_id: int) -> CashFlow:
    return get_live(CashFlow, flow_id, "Cash flow")


def update_cash_flow(flow_id: int, patch: dict) -> CashFlow:
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = _clean(patch)
    if "flow_date" in cleaned and cleaned["flow_date"] is None:
        raise ValidationError("flow_date cannot be blank")

    def _op() -> CashFlow:
        flow = get_cash_flow(flow_id)
        if cleaned.get("outlet_id") is not None:
            get_live(Outlet, cleaned["outlet_id"], "Outlet")
        for key, value in cleaned.items():
            setattr(flow, key, value)
        db.session.commit()
        return flow

    return run_with_retry(_op)


def delete_cash_flow(flow_id: int) -> None:
    def _op() -> None:
        get_cash_flow(flow_id).soft_delete()
        db.session.commit()

    run_with_retry(_op)


def _in_range(query, start: date | None, end: date | None):
    if start is not None:
        query = query.filter(CashFlow.flow_date >= start)
    if end is not None:
        query = query.filter(CashFlow.flow_date <= end)
    return query


def list_cash_flows(
    *,
    flow_type: str | None = None,
    user_id: int | None = None,
    outlet_id: int | None = None,
    start_date=None,
    end_date=None,
    limit=None,
    offset=None,
) -> list[CashFlow]:
    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start and end and start > end:
        raise ValidationError("start_date must not be after end_date")

    query = CashFlow.live()
    if flow_type:
        query = query.filter(CashFlow.flow_type == normalize_status(flow_type, FLOW_TYPES, "flow_type"))
    if user_id is not None:
        query = query.filter(CashFlow.user_id == user_id)
    if outlet_id is not None:
        query = query.filter(CashFlow.outlet_id == outlet_id)
    query = _in_range(query, start, end)
    return paginate(query, (CashFlow.flow_date.desc(), CashFlow.id.desc()), limit, offset)


def total_by_type(flow_type: str, *, start_date=None, end_date=None, outlet_id: int | None = None) -> Decimal:
    """Sum of live flows of one type, optionally bounded by flow_date (inclusive)."""
    kind = normalize_status(flow_type, FLOW_TYPES, "flow_type")
    query = db.session.query(func.sum(CashFlow.amount)).filter(
        CashFlow.deleted_at.is_(None),
        CashFlow.flow_type == kind,
    )
    if outlet_id is not None:
        query = query.filter(CashFlow.outlet_id == outlet_id)
    query = _in_range(query, _as_date(start_date, "start_date"), _as_date(end_date, "end_date"))
    value = query.scalar()
    return quantize(Decimal(value)) if value is not None else ZERO
