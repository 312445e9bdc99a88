# Overview: Service-layer operations for showroom vehicles; buying in, listing for sale, and profit.

from __future__ import annotations

from decimal import Decimal

from ..errors import IntegrityViolation, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, User, Vehicle, VehiclePurchaseTransaction, VehicleReconditioningJob
from ..models.sales import PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER
from ..models.vehicles import (
    CONDITION_GOOD,
    CONDITION_STATUSES,
    OWNERSHIP_CUSTOMER,
    OWNERSHIP_SHOWROOM,
    OWNERSHIP_STATUSES,
    OWNERSHIP_WORKSHOP,
    SALE_FOR_SALE,
    SALE_NOT_FOR_SALE,
    SALE_SOLD,
    SALE_STATUSES,
)
from ..money import ZERO, quantize, to_money, total
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .customer_service import VEHICLE_KEYS, check_vehicle_keys
from .lookup import apply_patch, flush_or_conflict, get_live, normalize_status, paginate, substring_filter

DESCRIPTIVE_FIELDS = {
    "plate_number", "chassis_number", "engine_number", "brand", "model",
    "vehicle_type", "production_year", "color", "mileage", "fuel_type",
    "transmission", "condition_status", "estimated_value", "condition_notes",
    "internal_notes",
}
CREATE_FIELDS = DESCRIPTIVE_FIELDS | {
    "customer_id", "ownership_status", "sale_status", "purchase_price", "selling_price",
}
PURCHASE_METHODS = {PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER}


def _clean(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    for field, _label in VEHICLE_KEYS:
        if creating or field in cleaned:
            value = (cleaned.get(field) or "").strip().upper()
            if not value:
                raise ValidationError(f"{field} cannot be blank")
            cleaned[field] = value
    if "condition_status" in cleaned:
        cleaned["condition_status"] = normalize_status(cleaned["condition_status"], CONDITION_STATUSES, "condition_status")
    if "ownership_status" in cleaned:
        cleaned["ownership_status"] = normalize_status(cleaned["ownership_status"], OWNERSHIP_STATUSES, "ownership_status")
    if "sale_status" in cleaned:
        cleaned["sale_status"] = normalize_status(cleaned["sale_status"], SALE_STATUSES, "sale_status")
    for key in ("purchase_price", "selling_price", "estimated_value"):
        if cleaned.get(key) is not None:
            cleaned[key] = to_money(cleaned[key], key)
            if cleaned[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
    if cleaned.get("mileage") is not None and cleaned["mileage"] < 0:
        raise ValidationError("mileage must be >= 0")
    return cleaned


def create_vehicle(patch: dict, *, created_by: int | None = None) -> Vehicle:
    """
    Register a vehicle record directly (stock import, customer trade-ins).

    Vehicles bought through the showroom should go through purchase_vehicle().
    """
    unknown = set(patch) - CREATE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = _clean(patch, creating=True)
    if cleaned.get("ownership_status") == OWNERSHIP_WORKSHOP:
        raise ValidationError("vehicles enter the workshop through a reconditioning job")

    def _op() -> Vehicle:
        if cleaned.get("customer_id") is not None:
            get_live(Customer, cleaned["customer_id"], "Customer")
        check_vehicle_keys(Vehicle, cleaned)
        vehicle = Vehicle(
            ownership_status=OWNERSHIP_CUSTOMER,
            condition_status=CONDITION_GOOD,
            sale_status=SALE_NOT_FOR_SALE,
            created_by=created_by,
        )
        apply_patch(vehicle, cleaned, CREATE_FIELDS)
        db.session.add(vehicle)
        flush_or_conflict("vehicle already registered")
        db.session.commit()
        return vehicle

    return run_with_retry(_op)


def get_vehicle(vehicle_id: int, *, include_deleted: bool = False) -> Vehicle:
    return get_live(Vehicle, vehicle_id, "Vehicle", include_deleted=include_deleted)


def get_vehicle_by(field: str, value: str) -> Vehicle:
    if field not in {f for f, _ in VEHICLE_KEYS}:
        raise ValidationError(f"cannot look up vehicles by {field}")
    vehicle = Vehicle.live().filter(getattr(Vehicle, field) == (value or "").strip().upper()).first()
    if vehicle is None:
        raise NotFoundError("Vehicle not found", {field: value})
    return vehicle


def update_vehicle(vehicle_id: int, patch: dict) -> Vehicle:
    """
    Edit descriptive fields. Ownership, sale status and prices only move
    through purchase, reconditioning, listing and sale.
    """
    unknown = set(patch) - DESCRIPTIVE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = _clean(patch, creating=False)

    def _op() -> Vehicle:
        vehicle = get_vehicle(vehicle_id)
        check_vehicle_keys(Vehicle, cleaned, exclude_id=vehicle.id)
        apply_patch(vehicle, cleaned, DESCRIPTIVE_FIELDS)
        flush_or_conflict("vehicle already registered")
        db.session.commit()
        return vehicle

    return run_with_retry(_op)


def delete_vehicle(vehicle_id: int) -> None:
    def _op() -> None:
        vehicle = get_vehicle(vehicle_id)
        if vehicle.ownership_status == OWNERSHIP_WORKSHOP:
            raise IntegrityViolation("vehicle is under reconditioning", {"id": vehicle.id})
        vehicle.soft_delete()
        db.session.commit()

    run_with_retry(_op)


def list_vehicles(
    *,
    sale_status: str | None = None,
    ownership_status: str | None = None,
    limit=None,
    offset=None,
) -> list[Vehicle]:
    query = Vehicle.live()
    if sale_status:
        query = query.filter(Vehicle.sale_status == normalize_status(sale_status, SALE_STATUSES, "sale_status"))
    if ownership_status:
        query = query.filter(
            Vehicle.ownership_status == normalize_status(ownership_status, OWNERSHIP_STATUSES, "ownership_status")
        )
    return paginate(query, (Vehicle.created_at.desc(), Vehicle.id.desc()), limit, offset)


def search_vehicles(term: str, *, limit=None, offset=None) -> list[Vehicle]:
    query = Vehicle.live()
    if term and term.strip():
        query = query.filter(
            substring_filter(term, Vehicle.plate_number, Vehicle.brand, Vehicle.model, Vehicle.vehicle_type)
        )
    return paginate(query, (Vehicle.created_at.desc(), Vehicle.id.desc()), limit, offset)


# =============================================================================
# Buying in and listing
# =============================================================================

def purchase_vehicle(
    *,
    seller_customer_id: int,
    purchase_price,
    vehicle: dict,
    payment_method: str = PAYMENT_METHOD_CASH,
    user_id: int | None = None,
    payment_reference: str | None = None,
    evaluation_notes: str | None = None,
) -> VehiclePurchaseTransaction:
    """
    Buy a vehicle from a customer into the showroom.

    The vehicle (SHOWROOM, NOT_FOR_SALE) and its purchase record are
    created in one transaction.
    """
    price = to_money(purchase_price, "purchase_price")
    if price <= 0:
        raise ValidationError("purchase_price must be > 0")
    method = normalize_status(payment_method, PURCHASE_METHODS, "payment_method")
    unknown = set(vehicle) - DESCRIPTIVE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = _clean(vehicle, creating=True)

    def _op() -> VehiclePurchaseTransaction:
        get_live(Customer, seller_customer_id, "Customer")
        if user_id is not None:
            get_live(User, user_id, "User")
        check_vehicle_keys(Vehicle, cleaned)
        bought = Vehicle(
            ownership_status=OWNERSHIP_SHOWROOM,
            condition_status=CONDITION_GOOD,
            sale_status=SALE_NOT_FOR_SALE,
            purchase_price=price,
            created_by=user_id,
        )
        apply_patch(bought, cleaned, DESCRIPTIVE_FIELDS)
        db.session.add(bought)
        flush_or_conflict("vehicle already registered")

        purchase = VehiclePurchaseTransaction(
            vehicle_id=bought.id,
            customer_id=seller_customer_id,
            user_id=user_id,
            purchase_price=price,
            purchase_date=utcnow(),
            payment_method=method,
            payment_reference=payment_reference,
            evaluation_notes=evaluation_notes,
            created_by=user_id,
        )
        db.session.add(purchase)
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def get_purchase(purchase_id: int) -> VehiclePurchaseTransaction:
    return get_live(VehiclePurchaseTransaction, purchase_id, "Purchase transaction")


def list_purchases(*, vehicle_id: int | None = None, customer_id: int | None = None) -> list[VehiclePurchaseTransaction]:
    query = VehiclePurchaseTransaction.live()
    if vehicle_id is not None:
        query = query.filter(VehiclePurchaseTransaction.vehicle_id == vehicle_id)
    if customer_id is not None:
        query = query.filter(VehiclePurchaseTransaction.customer_id == customer_id)
    return query.order_by(VehiclePurchaseTransaction.purchase_date.desc()).all()


def mark_for_sale(vehicle_id: int, *, selling_price) -> Vehicle:
    """List a showroom vehicle at selling_price (SHOWROOM only; sold vehicles cannot be relisted)."""
    price = to_money(selling_price, "selling_price")
    if price <= 0:
        raise ValidationError("selling_price must be > 0")

    def _op() -> Vehicle:
        vehicle = lock_for_update(Vehicle.live().filter(Vehicle.id == vehicle_id)).first()
        if vehicle is None:
            raise NotFoundError("Vehicle not found", {"id": vehicle_id})
        if vehicle.ownership_status != OWNERSHIP_SHOWROOM or vehicle.sale_status == SALE_SOLD:
            raise InvalidStateError(
                "only showroom vehicles can be listed for sale",
                {"id": vehicle.id, "ownership_status": vehicle.ownership_status},
            )
        vehicle.sale_status = SALE_FOR_SALE
        vehicle.selling_price = price
        db.session.commit()
        return vehicle

    return run_with_retry(_op)


# =============================================================================
# Profit
# =============================================================================

def reconditioning_cost(vehicle_id: int) -> Decimal:
    """Sum of actual_cost over the vehicle's live reconditioning jobs that have one."""
    costs = (
        db.session.query(VehicleReconditioningJob.actual_cost)
        .filter(
            VehicleReconditioningJob.vehicle_id == vehicle_id,
            VehicleReconditioningJob.deleted_at.is_(None),
            VehicleReconditioningJob.actual_cost.isnot(None),
        )
        .all()
    )
    return total(c for (c,) in costs)


def compute_profit(vehicle: Vehicle, sale_price: Decimal) -> Decimal:
    """sale_price - purchase_price - reconditioning costs."""
    purchase = vehicle.purchase_price if vehicle.purchase_price is not None else ZERO
    return quantize(Decimal(sale_price) - Decimal(purchase) - reconditioning_cost(vehicle.id))


def vehicle_profit(vehicle_id: int, *, sale_price=None) -> dict:
    """
    Profit for a vehicle at sale_price, or at its listed selling price.
    """
    vehicle = get_vehicle(vehicle_id)
    price = to_money(sale_price, "sale_price", allow_none=True)
    if price is None:
        price = vehicle.selling_price
    if price is None:
        raise InvalidStateError("vehicle has no selling price", {"id": vehicle.id})
    return {
        "vehicle_id": vehicle.id,
        "sale_price": price,
        "purchase_price": vehicle.purchase_price if vehicle.purchase_price is not None else ZERO,
        "reconditioning_cost": reconditioning_cost(vehicle.id),
        "profit": compute_profit(vehicle, price),
    }
