# Overview: Service-layer operations for service jobs; intake, status lifecycle, totals, and queries.

"""
Service Job Engine

================================================================================
STATE MACHINE
================================================================================

    QUEUED -> WORKING -> DONE -> PICKED_UP -> COMPLAINT

    QUEUED    -> WORKING    requires an assigned technician
    WORKING   -> DONE       recomputes totals (a failure is logged, the move still happens)
    DONE      -> PICKED_UP  stamps picked_up_at
    PICKED_UP -> COMPLAINT  only while the warranty (if any) has not expired; stamps complaint_at

Everything else, including a move to the current status, is rejected with
InvalidTransitionError. There is no cancelled status: a job can only be
withdrawn by deleting it while still QUEUED.

Every intake and every transition appends a history row through a
HistoryWriter. History is best-effort: if the append fails it is logged and
the job change is still committed.

================================================================================
TOTALS
================================================================================

    grand_total           = sum(price x qty)
    cost_total            = sum(cost x qty)
    technician_commission = sum(price x qty over SERVICE lines) x 0.10
    shop_profit           = grand_total - cost_total - technician_commission

Each product is rounded half-to-even to cents before summing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    IntegrityViolation,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, CustomerVehicle, Outlet, ServiceDetail, ServiceJob, User
from ..models.foundation import OUTLET_ACTIVE
from ..models.services import (
    CLOSED_STATUSES,
    ITEM_SERVICE,
    JOB_COMPLAINT,
    JOB_DONE,
    JOB_PICKED_UP,
    JOB_QUEUED,
    JOB_STATUSES,
    JOB_WORKING,
)
from ..money import ZERO, mul, to_money, total
from ..time_utils import local_date, utcnow
from .concurrency import begin_serialized, lock_for_update, run_with_retry
from .history_service import HistoryWriter, default_writer
from .lookup import get_live, normalize_status, paginate
from .queue_service import close_gap, lock_outlet, next_queue_number
from .sequence_service import next_service_code

COMMISSION_RATE = Decimal("0.10")

ALLOWED_TRANSITIONS = {
    (JOB_QUEUED, JOB_WORKING),
    (JOB_WORKING, JOB_DONE),
    (JOB_DONE, JOB_PICKED_UP),
    (JOB_PICKED_UP, JOB_COMPLAINT),
}

PATCHABLE_FIELDS = {
    "technician_id",
    "technician_notes",
    "problem_description",
    "warranty_expires_at",
    "next_service_reminder_date",
    "down_payment",
    "customer_id",
    "vehicle_id",
}


def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in ALLOWED_TRANSITIONS


# =============================================================================
# Totals
# =============================================================================

@dataclass(frozen=True)
class JobTotals:
    grand_total: Decimal
    cost_total: Decimal
    technician_commission: Decimal
    shop_profit: Decimal


def compute_totals(details) -> JobTotals:
    """Pure roll-up of a job's line items; see the module docstring for the formulas."""
    revenue = []
    costs = []
    service_revenue = []
    for d in details:
        line_total = mul(d.price_per_item, d.quantity)
        revenue.append(line_total)
        costs.append(mul(d.cost_per_item, d.quantity))
        if d.item_type == ITEM_SERVICE:
            service_revenue.append(line_total)

    grand_total = total(revenue)
    cost_total = total(costs)
    commission = mul(total(service_revenue), COMMISSION_RATE)
    return JobTotals(
        grand_total=grand_total,
        cost_total=cost_total,
        technician_commission=commission,
        shop_profit=grand_total - cost_total - commission,
    )


def apply_totals(job: ServiceJob) -> JobTotals:
    """Recompute and store totals on job from its live details. Caller owns the transaction."""
    details = ServiceDetail.live().filter(ServiceDetail.service_job_id == job.id).all()
    totals = compute_totals(details)
    job.grand_total = totals.grand_total
    job.cost_total = totals.cost_total
    job.technician_commission = totals.technician_commission
    job.shop_profit = totals.shop_profit
    return totals


def recompute_totals(job_id: int) -> ServiceJob:
    """Idempotent: running it twice leaves the same numbers. Writes no history."""
    def _op() -> ServiceJob:
        job = get_service_job(job_id)
        apply_totals(job)
        db.session.commit()
        return job

    return run_with_retry(_op)


# =============================================================================
# Helpers
# =============================================================================

def _append_history(writer: HistoryWriter, job: ServiceJob, *, user_id: int, notes: str | None, at: datetime) -> None:
    try:
        writer.append(job_id=job.id, user_id=user_id, status=job.status, notes=notes, changed_at=at)
    except SQLAlchemyError:
        current_app.logger.exception(
            "history append failed for service job %s (%s); continuing", job.id, job.status
        )


def _check_vehicle_owner(customer_id: int, vehicle_id: int) -> None:
    get_live(Customer, customer_id, "Customer")
    vehicle = get_live(CustomerVehicle, vehicle_id, "Vehicle")
    if vehicle.customer_id != customer_id:
        raise ValidationError(
            "vehicle does not belong to customer",
            {"vehicle_id": vehicle_id, "customer_id": customer_id},
        )


def _locked_job(job_id: int) -> ServiceJob:
    job = lock_for_update(ServiceJob.live().filter(ServiceJob.id == job_id)).first()
    if job is None:
        raise NotFoundError("Service job not found", {"id": job_id})
    return job


# =============================================================================
# Intake
# =============================================================================

def create_service_job(
    *,
    customer_id: int,
    vehicle_id: int,
    received_by_user_id: int,
    outlet_id: int,
    problem_description: str,
    intake_at: datetime | None = None,
    down_payment=None,
    technician_id: int | None = None,
    technician_notes: str | None = None,
    warranty_expires_at: date | None = None,
    next_service_reminder_date: date | None = None,
    history: HistoryWriter | None = None,
    now: datetime | None = None,
) -> ServiceJob:
    """
    Intake a vehicle: validate references, allocate code and queue number, log it.

    The outlet lock is held from the queue-number read until commit, so
    concurrent intakes at the same outlet get consecutive numbers.
    """
    description = (problem_description or "").strip()
    if not description:
        raise ValidationError("problem_description cannot be blank")
    deposit = to_money(down_payment if down_payment is not None else ZERO, "down_payment")
    if deposit < 0:
        raise ValidationError("down_payment must be >= 0")
    writer = history or default_writer

    def _op() -> ServiceJob:
        moment = now or utcnow()
        outlet = lock_outlet(outlet_id)
        if outlet.status != OUTLET_ACTIVE:
            raise InvalidStateError("outlet is not active", {"outlet_id": outlet_id})
        _check_vehicle_owner(customer_id, vehicle_id)
        get_live(User, received_by_user_id, "User")
        if technician_id is not None:
            get_live(User, technician_id, "Technician")

        started = intake_at or moment
        intake_date = local_date(started, outlet.timezone)

        job = ServiceJob(
            service_code=next_service_code(outlet.id),
            queue_number=next_queue_number(outlet.id, intake_date),
            outlet_id=outlet.id,
            customer_id=customer_id,
            vehicle_id=vehicle_id,
            technician_id=technician_id,
            received_by_user_id=received_by_user_id,
            problem_description=description,
            technician_notes=technician_notes,
            status=JOB_QUEUED,
            intake_at=started,
            intake_date=intake_date,
            warranty_expires_at=warranty_expires_at,
            next_service_reminder_date=next_service_reminder_date,
            down_payment=deposit,
            grand_total=ZERO,
            cost_total=ZERO,
            technician_commission=ZERO,
            shop_profit=ZERO,
            created_by=received_by_user_id,
        )
        db.session.add(job)
        db.session.flush()

        _append_history(writer, job, user_id=received_by_user_id, notes=description, at=moment)
        db.session.commit()
        current_app.logger.info(
            "service job %s intake at outlet %s, queue #%s", job.service_code, outlet.id, job.queue_number
        )
        return job

    return run_with_retry(_op)


# =============================================================================
# Status transitions
# =============================================================================

def update_status(
    job_id: int,
    *,
    status: str,
    user_id: int,
    notes: str | None = None,
    technician_id: int | None = None,
    history: HistoryWriter | None = None,
    now: datetime | None = None,
) -> ServiceJob:
    """
    Move a job along its lifecycle.

    technician_id, when given, is assigned before the transition is checked,
    so a queued job can be assigned and started in one call.

    Raises:
        InvalidTransitionError: target not reachable from the current status
        InvalidStateError: precondition failed (no technician, warranty expired)
    """
    target = normalize_status(status, JOB_STATUSES)
    writer = history or default_writer

    def _op() -> ServiceJob:
        moment = now or utcnow()
        begin_serialized()
        get_live(User, user_id, "User")
        job = _locked_job(job_id)

        if technician_id is not None:
            get_live(User, technician_id, "Technician")
            job.technician_id = technician_id

        current = job.status
        if not can_transition(current, target):
            raise InvalidTransitionError(current, target)

        if target == JOB_WORKING and job.technician_id is None:
            raise InvalidStateError("a technician must be assigned before work starts", {"id": job.id})

        if target == JOB_DONE:
            try:
                with db.session.begin_nested():
                    apply_totals(job)
            except (SQLAlchemyError, ArithmeticError, ValidationError):
                current_app.logger.exception(
                    "totals recompute failed for service job %s; completing without it", job.id
                )

        if target == JOB_PICKED_UP:
            job.picked_up_at = moment

        if target == JOB_COMPLAINT:
            if job.warranty_expires_at is not None:
                outlet = db.session.get(Outlet, job.outlet_id)
                today = local_date(moment, outlet.timezone if outlet else None)
                if today > job.warranty_expires_at:
                    raise InvalidStateError(
                        "warranty has expired",
                        {"id": job.id, "warranty_expires_at": job.warranty_expires_at.isoformat()},
                    )
            job.complaint_at = moment

        job.status = target
        db.session.flush()

        _append_history(writer, job, user_id=user_id, notes=notes or f"status changed to {target}", at=moment)
        db.session.commit()
        return job

    return run_with_retry(_op)


# =============================================================================
# Update / delete
# =============================================================================

def update_service_job(job_id: int, patch: dict) -> ServiceJob:
    """
    Patch editable job fields. Status and totals are not patchable.

    Rejected once the vehicle has been picked up.
    """
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = dict(patch)
    if "problem_description" in cleaned:
        cleaned["problem_description"] = (cleaned["problem_description"] or "").strip()
        if not cleaned["problem_description"]:
            raise ValidationError("problem_description cannot be blank")
    if "down_payment" in cleaned:
        cleaned["down_payment"] = to_money(cleaned["down_payment"], "down_payment")
        if cleaned["down_payment"] < 0:
            raise ValidationError("down_payment must be >= 0")

    def _op() -> ServiceJob:
        job = _locked_job(job_id)
        if job.status in CLOSED_STATUSES:
            raise InvalidStateError(f"service job is {job.status} and can no longer be edited", {"id": job.id})
        if "customer_id" in cleaned or "vehicle_id" in cleaned:
            _check_vehicle_owner(
                cleaned.get("customer_id", job.customer_id),
                cleaned.get("vehicle_id", job.vehicle_id),
            )
        if cleaned.get("technician_id") is not None:
            get_live(User, cleaned["technician_id"], "Technician")
        for key, value in cleaned.items():
            setattr(job, key, value)
        db.session.commit()
        return job

    return run_with_retry(_op)


def delete_service_job(job_id: int) -> None:
    """
    Soft-delete a QUEUED job together with its details.

    Later jobs of the same outlet and day move up one place so the day's
    numbers stay 1..k.
    """
    def _op() -> None:
        job = get_service_job(job_id)
        lock_outlet(job.outlet_id)
        job = _locked_job(job_id)
        if job.status != JOB_QUEUED:
            raise IntegrityViolation(
                f"only queued jobs can be deleted (job is {job.status})",
                {"id": job.id, "status": job.status},
            )
        moment = utcnow()
        job.soft_delete(moment)
        for detail in ServiceDetail.live().filter(ServiceDetail.service_job_id == job.id):
            detail.soft_delete(moment)
        db.session.flush()
        close_gap(job.outlet_id, job.intake_date, job.queue_number)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Queries
# =============================================================================

def get_service_job(job_id: int, *, include_deleted: bool = False) -> ServiceJob:
    return get_live(ServiceJob, job_id, "Service job", include_deleted=include_deleted)


def get_by_service_code(code: str) -> ServiceJob:
    job = ServiceJob.live().filter(ServiceJob.service_code == (code or "").strip()).first()
    if job is None:
        raise NotFoundError("Service job not found", {"service_code": code})
    return job


def list_service_jobs(
    *,
    status: str | None = None,
    outlet_id: int | None = None,
    customer_id: int | None = None,
    vehicle_id: int | None = None,
    technician_id: int | None = None,
    limit=None,
    offset=None,
) -> list[ServiceJob]:
    query = ServiceJob.live()
    if status:
        query = query.filter(ServiceJob.status == normalize_status(status, JOB_STATUSES))
    if outlet_id is not None:
        query = query.filter(ServiceJob.outlet_id == outlet_id)
    if customer_id is not None:
        query = query.filter(ServiceJob.customer_id == customer_id)
    if vehicle_id is not None:
        query = query.filter(ServiceJob.vehicle_id == vehicle_id)
    if technician_id is not None:
        query = query.filter(ServiceJob.technician_id == technician_id)
    return paginate(query, (ServiceJob.created_at.desc(), ServiceJob.id.desc()), limit, offset)
