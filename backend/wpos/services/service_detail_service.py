# Overview: Service-layer operations for service-job line items; every change re-rolls the job totals.

from __future__ import annotations

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductSerialNumber, Service, ServiceDetail, ServiceJob
from ..models.services import CLOSED_STATUSES, ITEM_SERVICE, ITEM_TYPES, QUEUE_STATUSES
from ..money import to_money
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .lookup import get_live, normalize_status
from .service_job_service import apply_totals

DETAIL_FIELDS = {
    "item_type", "item_id", "description", "serial_number_used",
    "quantity", "price_per_item", "cost_per_item",
}


def _open_job(job_id: int) -> ServiceJob:
    job = lock_for_update(ServiceJob.live().filter(ServiceJob.id == job_id)).first()
    if job is None:
        raise NotFoundError("Service job not found", {"id": job_id})
    if job.status in CLOSED_STATUSES:
        raise InvalidStateError(f"service job is {job.status}; its details are frozen", {"id": job.id})
    return job


def _clean(patch: dict, *, creating: bool) -> dict:
    unknown = set(patch) - DETAIL_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = dict(patch)
    if creating:
        for key in ("item_type", "item_id"):
            if cleaned.get(key) is None:
                raise ValidationError(f"{key} is required")
        cleaned.setdefault("quantity", 1)
        cleaned.setdefault("price_per_item", 0)
        cleaned.setdefault("cost_per_item", 0)
    if "item_type" in cleaned:
        cleaned["item_type"] = normalize_status(cleaned["item_type"], ITEM_TYPES, "item_type")
    if "quantity" in cleaned:
        qty = cleaned["quantity"]
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise ValidationError("quantity must be an integer >= 1")
    for key in ("price_per_item", "cost_per_item"):
        if key in cleaned:
            cleaned[key] = to_money(cleaned[key], key)
            if cleaned[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
    if "serial_number_used" in cleaned:
        cleaned["serial_number_used"] = (cleaned["serial_number_used"] or "").strip() or None
    return cleaned


def _check_item(item_type: str, item_id: int, serial_number: str | None) -> None:
    """
    item_id must resolve within its kind; a used serial must exist and
    belong to that very product.
    """
    if item_type == ITEM_SERVICE:
        get_live(Service, item_id, "Service")
        if serial_number:
            raise ValidationError("serial numbers only apply to product lines")
        return
    get_live(Product, item_id, "Product")
    if serial_number:
        serial = (
            ProductSerialNumber.live()
            .filter(ProductSerialNumber.serial_number == serial_number)
            .first()
        )
        if serial is None:
            raise NotFoundError("Serial number not found", {"serial_number": serial_number})
        if serial.product_id != item_id:
            raise ValidationError(
                "serial number belongs to a different product",
                {"serial_number": serial_number, "item_id": item_id},
            )


def create_detail(job_id: int, patch: dict, *, created_by: int | None = None) -> ServiceDetail:
    cleaned = _clean(patch, creating=True)

    def _op() -> ServiceDetail:
        job = _open_job(job_id)
        _check_item(cleaned["item_type"], cleaned["item_id"], cleaned.get("serial_number_used"))
        detail = ServiceDetail(service_job_id=job.id, created_by=created_by)
        for key, value in cleaned.items():
            setattr(detail, key, value)
        db.session.add(detail)
        db.session.flush()
        apply_totals(job)
        db.session.commit()
        return detail

    return run_with_retry(_op)


def get_detail(detail_id: int) -> ServiceDetail:
    return get_live(ServiceDetail, detail_id, "Service detail")


def list_details(job_id: int) -> list[ServiceDetail]:
    get_live(ServiceJob, job_id, "Service job")
    return (
        ServiceDetail.live()
        .filter(ServiceDetail.service_job_id == job_id)
        .order_by(ServiceDetail.id.asc())
        .all()
    )


def update_detail(detail_id: int, patch: dict) -> ServiceDetail:
    cleaned = _clean(patch, creating=False)

    def _op() -> ServiceDetail:
        detail = get_detail(detail_id)
        job = _open_job(detail.service_job_id)
        item_type = cleaned.get("item_type", detail.item_type)
        item_id = cleaned.get("item_id", detail.item_id)
        serial = cleaned.get("serial_number_used", detail.serial_number_used)
        _check_item(item_type, item_id, serial)
        for key, value in cleaned.items():
            setattr(detail, key, value)
        db.session.flush()
        apply_totals(job)
        db.session.commit()
        return detail

    return run_with_retry(_op)


def delete_detail(detail_id: int) -> None:
    def _op() -> None:
        detail = get_detail(detail_id)
        job = _open_job(detail.service_job_id)
        detail.soft_delete()
        db.session.flush()
        apply_totals(job)
        db.session.commit()

    run_with_retry(_op)


def delete_details_for_job(job_id: int) -> int:
    """
    Remove every line of a job that is still QUEUED or WORKING.

    Returns how many details were removed.
    """
    def _op() -> int:
        job = _open_job(job_id)
        if job.status not in QUEUE_STATUSES:
            raise InvalidStateError(
                f"details can only be cleared while the job is queued or working (job is {job.status})",
                {"id": job.id},
            )
        moment = utcnow()
        details = ServiceDetail.live().filter(ServiceDetail.service_job_id == job.id).all()
        for detail in details:
            detail.soft_delete(moment)
        db.session.flush()
        apply_totals(job)
        db.session.commit()
        return len(details)

    return run_with_retry(_op)
