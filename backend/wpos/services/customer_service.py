# Overview: Service-layer operations for customers and their vehicles; uniqueness and referential checks.

"""
Identity & ownership registry for customers and customer-owned vehicles.

RULES:
1. Phone is unique among live customers.
2. Plate, chassis and engine numbers are each unique among live vehicles.
3. Updates run the same collision checks, excluding the row being updated.
4. A customer with live vehicles cannot be deleted.
"""

from __future__ import annotations

from ..errors import ConflictError, IntegrityViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, CustomerVehicle, Vehicle
from ..models.customers import CUSTOMER_ACTIVE, CUSTOMER_STATUSES
from .concurrency import run_with_retry
from .lookup import (
    apply_patch,
    find_collision,
    flush_or_conflict,
    get_live,
    normalize_status,
    paginate,
    substring_filter,
)

CUSTOMER_FIELDS = {"name", "phone", "email", "address", "status"}
VEHICLE_FIELDS = {
    "customer_id", "plate_number", "chassis_number", "engine_number",
    "brand", "model", "vehicle_type", "production_year", "color",
}
VEHICLE_KEYS = (
    ("plate_number", "plate"),
    ("chassis_number", "chassis"),
    ("engine_number", "engine"),
)


# =============================================================================
# Customers
# =============================================================================

def _clean_customer(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    for field in ("name", "phone"):
        if creating or field in cleaned:
            value = (cleaned.get(field) or "").strip()
            if not value:
                raise ValidationError(f"{field} cannot be blank")
            cleaned[field] = value
    if "status" in cleaned:
        cleaned["status"] = normalize_status(cleaned["status"], CUSTOMER_STATUSES)
    return cleaned


def create_customer(patch: dict, *, created_by: int | None = None) -> Customer:
    cleaned = _clean_customer(patch, creating=True)

    def _op() -> Customer:
        if find_collision(Customer, Customer.phone, cleaned["phone"]):
            raise ConflictError("phone already registered", {"phone": cleaned["phone"]})
        customer = Customer(status=CUSTOMER_ACTIVE, created_by=created_by)
        apply_patch(customer, cleaned, CUSTOMER_FIELDS)
        db.session.add(customer)
        flush_or_conflict("phone already registered")
        db.session.commit()
        return customer

    return run_with_retry(_op)


def get_customer(customer_id: int, *, include_deleted: bool = False) -> Customer:
    return get_live(Customer, customer_id, "Customer", include_deleted=include_deleted)


def get_customer_by_phone(phone: str) -> Customer:
    customer = Customer.live().filter(Customer.phone == (phone or "").strip()).first()
    if customer is None:
        raise NotFoundError("Customer not found", {"phone": phone})
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer:
    cleaned = _clean_customer(patch, creating=False)

    def _op() -> Customer:
        customer = get_customer(customer_id)
        if "phone" in cleaned and find_collision(Customer, Customer.phone, cleaned["phone"], exclude_id=customer.id):
            raise ConflictError("phone already registered", {"phone": cleaned["phone"]})
        apply_patch(customer, cleaned, CUSTOMER_FIELDS)
        flush_or_conflict("phone already registered")
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int) -> None:
    """Refused while any live vehicle (registered or bought from the showroom) references the customer."""
    def _op() -> None:
        customer = get_customer(customer_id)
        vehicles = CustomerVehicle.live().filter(CustomerVehicle.customer_id == customer.id).count()
        bought = Vehicle.live().filter(Vehicle.customer_id == customer.id).count()
        if vehicles or bought:
            raise IntegrityViolation(
                "customer still owns vehicles",
                {"customer_id": customer.id, "vehicle_count": vehicles + bought},
            )
        customer.soft_delete()
        db.session.commit()

    run_with_retry(_op)


def restore_customer(customer_id: int) -> Customer:
    """Undo a soft delete, provided no live customer took the phone in between."""
    def _op() -> Customer:
        customer = get_customer(customer_id, include_deleted=True)
        if customer.deleted_at is None:
            return customer
        if find_collision(Customer, Customer.phone, customer.phone, exclude_id=customer.id):
            raise ConflictError("phone already registered", {"phone": customer.phone})
        customer.deleted_at = None
        flush_or_conflict("phone already registered")
        db.session.commit()
        return customer

    return run_with_retry(_op)


def list_customers(*, status: str | None = None, limit=None, offset=None) -> list[Customer]:
    query = Customer.live()
    if status:
        query = query.filter(Customer.status == normalize_status(status, CUSTOMER_STATUSES))
    return paginate(query, (Customer.created_at.desc(), Customer.id.desc()), limit, offset)


def search_customers(term: str, *, limit=None, offset=None) -> list[Customer]:
    """Case-insensitive substring search over name, phone and address; newest first."""
    query = Customer.live()
    if term and term.strip():
        query = query.filter(substring_filter(term, Customer.name, Customer.phone, Customer.address))
    return paginate(query, (Customer.created_at.desc(), Customer.id.desc()), limit, offset)


# =============================================================================
# Customer vehicles
# =============================================================================

def _clean_vehicle(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    for field, _label in VEHICLE_KEYS:
        if creating or field in cleaned:
            value = (cleaned.get(field) or "").strip().upper()
            if not value:
                raise ValidationError(f"{field} cannot be blank")
            cleaned[field] = value
    if creating and cleaned.get("customer_id") is None:
        raise ValidationError("customer_id is required")
    return cleaned


def check_vehicle_keys(model, values: dict, *, exclude_id=None) -> None:
    """Raise ConflictError naming every identifying number already held by a live vehicle."""
    clashes = {}
    for field, label in VEHICLE_KEYS:
        if field in values and find_collision(model, getattr(model, field), values[field], exclude_id=exclude_id):
            clashes[label] = values[field]
    if clashes:
        raise ConflictError(
            f"vehicle {', '.join(clashes)} already registered",
            clashes,
        )


def create_customer_vehicle(patch: dict, *, created_by: int | None = None) -> CustomerVehicle:
    cleaned = _clean_vehicle(patch, creating=True)

    def _op() -> CustomerVehicle:
        get_customer(cleaned["customer_id"])
        check_vehicle_keys(CustomerVehicle, cleaned)
        vehicle = CustomerVehicle(created_by=created_by)
        apply_patch(vehicle, cleaned, VEHICLE_FIELDS)
        db.session.add(vehicle)
        flush_or_conflict("vehicle already registered")
        db.session.commit()
        return vehicle

    return run_with_retry(_op)


def get_customer_vehicle(vehicle_id: int, *, include_deleted: bool = False) -> CustomerVehicle:
    return get_live(CustomerVehicle, vehicle_id, "Vehicle", include_deleted=include_deleted)


def get_customer_vehicle_by(field: str, value: str) -> CustomerVehicle:
    """Lookup by plate_number, chassis_number or engine_number."""
    if field not in {f for f, _ in VEHICLE_KEYS}:
        raise ValidationError(f"cannot look up vehicles by {field}")
    column = getattr(CustomerVehicle, field)
    vehicle = CustomerVehicle.live().filter(column == (value or "").strip().upper()).first()
    if vehicle is None:
        raise NotFoundError("Vehicle not found", {field: value})
    return vehicle


def update_customer_vehicle(vehicle_id: int, patch: dict) -> CustomerVehicle:
    cleaned = _clean_vehicle(patch, creating=False)

    def _op() -> CustomerVehicle:
        vehicle = get_customer_vehicle(vehicle_id)
        if "customer_id" in cleaned:
            get_customer(cleaned["customer_id"])
        check_vehicle_keys(CustomerVehicle, cleaned, exclude_id=vehicle.id)
        apply_patch(vehicle, cleaned, VEHICLE_FIELDS)
        flush_or_conflict("vehicle already registered")
        db.session.commit()
        return vehicle

    return run_with_retry(_op)


def delete_customer_vehicle(vehicle_id: int) -> None:
    def _op() -> None:
        vehicle = get_customer_vehicle(vehicle_id)
        vehicle.soft_delete()
        db.session.commit()

    run_with_retry(_op)


def list_customer_vehicles(*, customer_id: int | None = None, limit=None, offset=None) -> list[CustomerVehicle]:
    query = CustomerVehicle.live()
    if customer_id is not None:
        query = query.filter(CustomerVehicle.customer_id == customer_id)
    return paginate(query, (CustomerVehicle.created_at.desc(), CustomerVehicle.id.desc()), limit, offset)


def search_customer_vehicles(term: str, *, limit=None, offset=None) -> list[CustomerVehicle]:
    """Case-insensitive substring search over plate, brand, model and type; newest first."""
    query = CustomerVehicle.live()
    if term and term.strip():
        query = query.filter(
            substring_filter(
                term,
                CustomerVehicle.plate_number,
                CustomerVehicle.brand,
                CustomerVehicle.model,
                CustomerVehicle.vehicle_type,
            )
        )
    return paginate(query, (CustomerVehicle.created_at.desc(), CustomerVehicle.id.desc()), limit, offset)
