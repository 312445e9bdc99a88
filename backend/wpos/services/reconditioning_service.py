# Overview: Service-layer operations for vehicle reconditioning; job lifecycle, parts/services, stock usage.

"""
Vehicle Reconditioning Engine

STATE MACHINE:
    (create)  -> PENDING       vehicle SHOWROOM -> WORKSHOP (must be SHOWROOM)
    PENDING   -> IN_PROGRESS   explicit start, or automatically on the first detail
    IN_PROGRESS -> COMPLETED   actual_cost = given value or sum of details;
                               vehicle WORKSHOP -> SHOWROOM, sale status -> FOR_SALE
    PENDING   -> CANCELLED     vehicle WORKSHOP -> SHOWROOM, sale status untouched

DETAILS:
- PART lines name a product; SERVICE lines name a catalog service.
- Adding a PART decrements stock with one conditional UPDATE. When stock is
  short the line is still recorded, flagged stock_shortfall, and stock is
  left alone.
- Serialised parts must list the serial numbers used (one per unit); those
  serials are consumed instead of a plain decrement.
- COMPLETED and CANCELLED jobs accept no new details and no edits.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Product,
    ProductSerialNumber,
    ReconditioningDetail,
    Service,
    User,
    Vehicle,
    VehicleReconditioningJob,
)
from ..models.inventory import SERIAL_AVAILABLE
from ..models.vehicles import (
    DETAIL_PART,
    DETAIL_SERVICE,
    DETAIL_TYPES,
    OWNERSHIP_SHOWROOM,
    OWNERSHIP_WORKSHOP,
    RECON_CANCELLED,
    RECON_COMPLETED,
    RECON_IN_PROGRESS,
    RECON_OPEN_STATUSES,
    RECON_PENDING,
    RECON_STATUSES,
    SALE_FOR_SALE,
    SALE_SOLD,
)
from ..money import mul, to_money, total
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import consume_serial_locked, restore_serial_locked, return_stock, try_deduct_stock
from .lookup import get_live, normalize_status, paginate


def _locked_job(job_id: int) -> VehicleReconditioningJob:
    job = lock_for_update(
        VehicleReconditioningJob.live().filter(VehicleReconditioningJob.id == job_id)
    ).first()
    if job is None:
        raise NotFoundError("Reconditioning job not found", {"id": job_id})
    return job


def _locked_vehicle(vehicle_id: int) -> Vehicle:
    vehicle = lock_for_update(Vehicle.live().filter(Vehicle.id == vehicle_id)).first()
    if vehicle is None:
        raise NotFoundError("Vehicle not found", {"id": vehicle_id})
    return vehicle


def _require_open(job: VehicleReconditioningJob) -> None:
    if job.status not in RECON_OPEN_STATUSES:
        raise InvalidStateError(f"reconditioning job is {job.status}", {"id": job.id})


def _start(job: VehicleReconditioningJob, moment: datetime) -> None:
    job.status = RECON_IN_PROGRESS
    job.started_at = moment


# =============================================================================
# Job lifecycle
# =============================================================================

def create_job(
    *,
    vehicle_id: int,
    title: str,
    description: str | None = None,
    estimated_cost=None,
    technician_id: int | None = None,
    notes: str | None = None,
    created_by: int | None = None,
) -> VehicleReconditioningJob:
    name = (title or "").strip()
    if not name:
        raise ValidationError("title cannot be blank")
    estimate = to_money(estimated_cost, "estimated_cost", allow_none=True)
    if estimate is not None and estimate < 0:
        raise ValidationError("estimated_cost must be >= 0")

    def _op() -> VehicleReconditioningJob:
        vehicle = _locked_vehicle(vehicle_id)
        if vehicle.ownership_status != OWNERSHIP_SHOWROOM or vehicle.sale_status == SALE_SOLD:
            raise InvalidStateError(
                "only showroom vehicles can be reconditioned",
                {"vehicle_id": vehicle.id, "ownership_status": vehicle.ownership_status},
            )
        if technician_id is not None:
            get_live(User, technician_id, "Technician")

        job = VehicleReconditioningJob(
            vehicle_id=vehicle.id,
            technician_id=technician_id,
            title=name,
            description=description,
            estimated_cost=estimate,
            notes=notes,
            status=RECON_PENDING,
            created_by=created_by,
        )
        vehicle.ownership_status = OWNERSHIP_WORKSHOP
        db.session.add(job)
        db.session.commit()
        return job

    return run_with_retry(_op)


def start_job(job_id: int, *, now: datetime | None = None) -> VehicleReconditioningJob:
    def _op() -> VehicleReconditioningJob:
        job = _locked_job(job_id)
        if job.status != RECON_PENDING:
            raise InvalidStateError(f"cannot start a job that is {job.status}", {"id": job.id})
        _start(job, now or utcnow())
        db.session.commit()
        return job

    return run_with_retry(_op)


def complete_job(job_id: int, *, actual_cost=None, now: datetime | None = None) -> VehicleReconditioningJob:
    """Finish the work and put the vehicle back on the showroom floor, listed for sale."""
    explicit = to_money(actual_cost, "actual_cost", allow_none=True)
    if explicit is not None and explicit < 0:
        raise ValidationError("actual_cost must be >= 0")

    def _op() -> VehicleReconditioningJob:
        job = _locked_job(job_id)
        if job.status != RECON_IN_PROGRESS:
            raise InvalidStateError(f"only in-progress jobs can be completed (job is {job.status})", {"id": job.id})
        vehicle = _locked_vehicle(job.vehicle_id)

        if explicit is None:
            details = ReconditioningDetail.live().filter(ReconditioningDetail.reconditioning_job_id == job.id)
            job.actual_cost = total(d.total_price for d in details)
        else:
            job.actual_cost = explicit
        job.status = RECON_COMPLETED
        job.completed_at = now or utcnow()

        vehicle.ownership_status = OWNERSHIP_SHOWROOM
        vehicle.sale_status = SALE_FOR_SALE
        db.session.commit()
        return job

    return run_with_retry(_op)


def cancel_job(job_id: int) -> VehicleReconditioningJob:
    """Withdraw a job that never started; the vehicle returns to the showroom as it was."""
    def _op() -> VehicleReconditioningJob:
        job = _locked_job(job_id)
        if job.status != RECON_PENDING:
            raise InvalidStateError(f"only pending jobs can be cancelled (job is {job.status})", {"id": job.id})
        vehicle = _locked_vehicle(job.vehicle_id)
        job.status = RECON_CANCELLED
        vehicle.ownership_status = OWNERSHIP_SHOWROOM
        db.session.commit()
        return job

    return run_with_retry(_op)


def get_job(job_id: int) -> VehicleReconditioningJob:
    return get_live(VehicleReconditioningJob, job_id, "Reconditioning job")


def list_jobs(*, vehicle_id: int | None = None, status: str | None = None, limit=None, offset=None) -> list[VehicleReconditioningJob]:
    query = VehicleReconditioningJob.live()
    if vehicle_id is not None:
        query = query.filter(VehicleReconditioningJob.vehicle_id == vehicle_id)
    if status:
        query = query.filter(VehicleReconditioningJob.status == normalize_status(status, RECON_STATUSES))
    return paginate(
        query,
        (VehicleReconditioningJob.created_at.desc(), VehicleReconditioningJob.id.desc()),
        limit,
        offset,
    )


# =============================================================================
# Details
# =============================================================================

def _serials_for_part(product: Product, quantity: int, serial_numbers) -> list[str]:
    if not product.has_serial_number:
        if serial_numbers:
            raise ValidationError("serial numbers only apply to serialised products")
        return []
    if not isinstance(serial_numbers, list) or any(not isinstance(s, str) for s in serial_numbers):
        raise ValidationError("serial_numbers must be a list of strings for serialised products")
    cleaned = [s.strip() for s in serial_numbers if s and s.strip()]
    if len(cleaned) != quantity or len(set(cleaned)) != quantity:
        raise ValidationError(
            "serialised parts need one distinct serial number per unit",
            {"quantity": quantity, "serial_numbers": cleaned},
        )
    return cleaned


def add_detail(
    job_id: int,
    *,
    detail_type: str,
    product_id: int | None = None,
    service_id: int | None = None,
    quantity: int = 1,
    unit_price=None,
    description: str | None = None,
    notes: str | None = None,
    serial_numbers: list | None = None,
    created_by: int | None = None,
    now: datetime | None = None,
) -> ReconditioningDetail:
    kind = normalize_status(detail_type, DETAIL_TYPES, "detail_type")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")
    price = to_money(unit_price, "unit_price", allow_none=True)
    if price is not None and price < 0:
        raise ValidationError("unit_price must be >= 0")
    if kind == DETAIL_PART and (product_id is None or service_id is not None):
        raise ValidationError("PART details need product_id and no service_id")
    if kind == DETAIL_SERVICE and (service_id is None or product_id is not None):
        raise ValidationError("SERVICE details need service_id and no product_id")

    def _op() -> ReconditioningDetail:
        moment = now or utcnow()
        job = _locked_job(job_id)
        _require_open(job)

        detail = ReconditioningDetail(
            reconditioning_job_id=job.id,
            detail_type=kind,
            quantity=quantity,
            description=description,
            notes=notes,
            used_at=moment,
            created_by=created_by,
        )

        if kind == DETAIL_PART:
            product = get_live(Product, product_id, "Product")
            serials = _serials_for_part(product, quantity, serial_numbers)
            detail.product_id = product.id
            detail.unit_price = price if price is not None else product.cost_price
            detail.description = description or product.name
            if serials:
                for number in serials:
                    consume_serial_locked(product.id, number)
                detail.serial_numbers = ",".join(serials)
                detail.stock_deducted = True
            elif try_deduct_stock(product.id, quantity):
                detail.stock_deducted = True
            else:
                detail.stock_shortfall = True
                current_app.logger.warning(
                    "stock shortfall on reconditioning job %s: product %s needs %s, on hand %s",
                    job.id, product.id, quantity, product.stock,
                )
        else:
            service = get_live(Service, service_id, "Service")
            detail.service_id = service.id
            detail.unit_price = price if price is not None else service.fee
            detail.description = description or service.name

        detail.total_price = mul(detail.unit_price, quantity)
        if job.status == RECON_PENDING:
            _start(job, moment)
        db.session.add(detail)
        db.session.commit()
        return detail

    return run_with_retry(_op)


def get_detail(detail_id: int) -> ReconditioningDetail:
    return get_live(ReconditioningDetail, detail_id, "Reconditioning detail")


def list_details(job_id: int) -> list[ReconditioningDetail]:
    get_job(job_id)
    return (
        ReconditioningDetail.live()
        .filter(ReconditioningDetail.reconditioning_job_id == job_id)
        .order_by(ReconditioningDetail.id.asc())
        .all()
    )


def update_detail(
    detail_id: int,
    *,
    description: str | None = None,
    unit_price=None,
    quantity: int | None = None,
    notes: str | None = None,
) -> ReconditioningDetail:
    """
    Edit a detail of an open job.

    Part quantities are fixed once stock has been taken; delete and re-add
    the line instead.
    """
    price = to_money(unit_price, "unit_price", allow_none=True)
    if price is not None and price < 0:
        raise ValidationError("unit_price must be >= 0")
    if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1):
        raise ValidationError("quantity must be an integer >= 1")

    def _op() -> ReconditioningDetail:
        detail = get_detail(detail_id)
        job = _locked_job(detail.reconditioning_job_id)
        _require_open(job)
        if quantity is not None and quantity != detail.quantity:
            if detail.detail_type == DETAIL_PART:
                raise InvalidStateError("part quantity cannot be changed; remove and re-add the part")
            detail.quantity = quantity
        if description is not None:
            detail.description = description
        if notes is not None:
            detail.notes = notes
        if price is not None:
            detail.unit_price = price
        detail.total_price = mul(detail.unit_price, detail.quantity)
        db.session.commit()
        return detail

    return run_with_retry(_op)


def delete_detail(detail_id: int) -> None:
    """Remove a detail from an open job, returning any stock it took."""
    def _op() -> None:
        detail = get_detail(detail_id)
        job = _locked_job(detail.reconditioning_job_id)
        _require_open(job)
        if detail.detail_type == DETAIL_PART and detail.stock_deducted:
            serials = detail.serial_list
            if serials:
                for number in serials:
                    serial = (
                        ProductSerialNumber.live()
                        .filter(ProductSerialNumber.serial_number == number)
                        .first()
                    )
                    if serial is not None and serial.status != SERIAL_AVAILABLE:
                        restore_serial_locked(serial)
            else:
                return_stock(detail.product_id, detail.quantity)
        detail.soft_delete()
        db.session.commit()

    run_with_retry(_op)
