# Overview: Service-layer operations for outlets; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Outlet
from ..models.foundation import OUTLET_ACTIVE, OUTLET_STATUSES
from ..time_utils import resolve_zone
from .concurrency import run_with_retry
from .lookup import apply_patch, get_live, normalize_status

OUTLET_FIELDS = {"name", "branch_type", "city", "address", "contact", "timezone", "status"}


def _clean(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    if creating or "name" in cleaned:
        name = (cleaned.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        cleaned["name"] = name
    if "status" in cleaned:
        cleaned["status"] = normalize_status(cleaned["status"], OUTLET_STATUSES)
    if cleaned.get("timezone"):
        # Reject zones the tz database does not know
        if resolve_zone(cleaned["timezone"]).key != cleaned["timezone"]:
            raise ValidationError(f"Unknown timezone '{cleaned['timezone']}'")
    return cleaned


def create_outlet(patch: dict, *, created_by: int | None = None) -> Outlet:
    cleaned = _clean(patch, creating=True)

    def _op() -> Outlet:
        outlet = Outlet(status=OUTLET_ACTIVE, created_by=created_by)
        apply_patch(outlet, cleaned, OUTLET_FIELDS)
        if not outlet.timezone:
            outlet.timezone = current_app.config.get("OUTLET_DEFAULT_TIMEZONE", "UTC")
        db.session.add(outlet)
        db.session.commit()
        return outlet

    return run_with_retry(_op)


def get_outlet(outlet_id: int, *, include_deleted: bool = False) -> Outlet:
    return get_live(Outlet, outlet_id, "Outlet", include_deleted=include_deleted)


def list_outlets(*, status: str | None = None) -> list[Outlet]:
    query = Outlet.live()
    if status:
        query = query.filter(Outlet.status == normalize_status(status, OUTLET_STATUSES))
    return query.order_by(Outlet.id.asc()).all()


def update_outlet(outlet_id: int, patch: dict) -> Outlet:
    cleaned = _clean(patch, creating=False)

    def _op() -> Outlet:
        outlet = get_outlet(outlet_id)
        apply_patch(outlet, cleaned, OUTLET_FIELDS)
        db.session.commit()
        return outlet

    return run_with_retry(_op)


def delete_outlet(outlet_id: int) -> None:
    def _op() -> None:
        outlet = get_outlet(outlet_id)
        outlet.soft_delete()
        db.session.commit()

    run_with_retry(_op)
