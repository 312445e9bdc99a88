# Overview: Service-layer operations for simple master data (categories, suppliers, unit types, payment methods).

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError
from ..extensions import db
from ..models import Category, PaymentMethod, Supplier, UnitType
from ..models.inventory import MASTER_ACTIVE, MASTER_STATUSES
from .concurrency import run_with_retry
from .lookup import apply_patch, get_live, normalize_status


@dataclass(frozen=True)
class MasterKind:
    model: type
    label: str
    fields: frozenset


MASTER_KINDS = {
    "categories": MasterKind(Category, "Category", frozenset({"name", "description", "status"})),
    "suppliers": MasterKind(
        Supplier, "Supplier", frozenset({"name", "contact_person", "phone", "address", "status"})
    ),
    "unit-types": MasterKind(UnitType, "Unit type", frozenset({"name", "status"})),
    "payment-methods": MasterKind(PaymentMethod, "Payment method", frozenset({"name", "status"})),
}


def _kind(kind: str) -> MasterKind:
    try:
        return MASTER_KINDS[kind]
    except KeyError:
        raise ValidationError(f"unknown master data kind '{kind}'")


def _clean(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    if creating or "name" in cleaned:
        name = (cleaned.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        cleaned["name"] = name
    if "status" in cleaned:
        cleaned["status"] = normalize_status(cleaned["status"], MASTER_STATUSES)
    return cleaned


def create_entry(kind: str, patch: dict, *, created_by: int | None = None):
    master = _kind(kind)
    cleaned = _clean(patch, creating=True)

    def _op():
        obj = master.model(status=MASTER_ACTIVE, created_by=created_by)
        apply_patch(obj, cleaned, master.fields)
        db.session.add(obj)
        db.session.commit()
        return obj

    return run_with_retry(_op)


def get_entry(kind: str, entry_id: int):
    master = _kind(kind)
    return get_live(master.model, entry_id, master.label)


def list_entries(kind: str, *, status: str | None = None) -> list:
    master = _kind(kind)
    query = master.model.live()
    if status:
        query = query.filter(master.model.status == normalize_status(status, MASTER_STATUSES))
    return query.order_by(master.model.name.asc(), master.model.id.asc()).all()


def update_entry(kind: str, entry_id: int, patch: dict):
    master = _kind(kind)
    cleaned = _clean(patch, creating=False)

    def _op():
        obj = get_live(master.model, entry_id, master.label)
        apply_patch(obj, cleaned, master.fields)
        db.session.commit()
        return obj

    return run_with_retry(_op)


def delete_entry(kind: str, entry_id: int) -> None:
    master = _kind(kind)

    def _op() -> None:
        obj = get_live(master.model, entry_id, master.label)
        obj.soft_delete()
        db.session.commit()

    run_with_retry(_op)
