# Overview: Service-layer operations for the service catalog (billable services and their categories).

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Service, ServiceCategory
from ..models.inventory import MASTER_ACTIVE, MASTER_STATUSES
from ..money import to_money
from .concurrency import run_with_retry
from .lookup import apply_patch, find_collision, flush_or_conflict, get_live, normalize_status, paginate, substring_filter

SERVICE_FIELDS = {"service_code", "name", "service_category_id", "fee", "status"}


# =============================================================================
# Service categories
# =============================================================================

def create_service_category(*, name: str, created_by: int | None = None) -> ServiceCategory:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("name cannot be blank")

    def _op() -> ServiceCategory:
        if find_collision(ServiceCategory, ServiceCategory.name, cleaned):
            raise ConflictError("service category already exists", {"name": cleaned})
        category = ServiceCategory(name=cleaned, status=MASTER_ACTIVE, created_by=created_by)
        db.session.add(category)
        flush_or_conflict("service category already exists")
        db.session.commit()
        return category

    return run_with_retry(_op)


def get_service_category(category_id: int) -> ServiceCategory:
    return get_live(ServiceCategory, category_id, "Service category")


def list_service_categories() -> list[ServiceCategory]:
    return ServiceCategory.live().order_by(ServiceCategory.name.asc()).all()


def update_service_category(category_id: int, *, name: str | None = None, status: str | None = None) -> ServiceCategory:
    def _op() -> ServiceCategory:
        category = get_service_category(category_id)
        if name is not None:
            cleaned = name.strip()
            if not cleaned:
                raise ValidationError("name cannot be blank")
            if find_collision(ServiceCategory, ServiceCategory.name, cleaned, exclude_id=category.id):
                raise ConflictError("service category already exists", {"name": cleaned})
            category.name = cleaned
        if status is not None:
            category.status = normalize_status(status, MASTER_STATUSES)
        flush_or_conflict("service category already exists")
        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_service_category(category_id: int) -> None:
    def _op() -> None:
        category = get_service_category(category_id)
        category.soft_delete()
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Services
# =============================================================================

def _clean(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    for key in ("service_code", "name"):
        if creating or key in cleaned:
            value = (cleaned.get(key) or "").strip()
            if not value:
                raise ValidationError(f"{key} cannot be blank")
            cleaned[key] = value
    if "service_code" in cleaned:
        cleaned["service_code"] = cleaned["service_code"].upper()
    if cleaned.get("fee") is not None:
        cleaned["fee"] = to_money(cleaned["fee"], "fee")
        if cleaned["fee"] < 0:
            raise ValidationError("fee must be >= 0")
    if "status" in cleaned:
        cleaned["status"] = normalize_status(cleaned["status"], MASTER_STATUSES)
    return cleaned


def create_service(patch: dict, *, created_by: int | None = None) -> Service:
    cleaned = _clean(patch, creating=True)

    def _op() -> Service:
        if cleaned.get("service_category_id") is not None:
            get_service_category(cleaned["service_category_id"])
        if find_collision(Service, Service.service_code, cleaned["service_code"]):
            raise ConflictError("service code already in use", {"service_code": cleaned["service_code"]})
        service = Service(status=MASTER_ACTIVE, fee=0, created_by=created_by)
        apply_patch(service, cleaned, SERVICE_FIELDS)
        db.session.add(service)
        flush_or_conflict("service code already in use")
        db.session.commit()
        return service

    return run_with_retry(_op)


def get_service(service_id: int) -> Service:
    return get_live(Service, service_id, "Service")


def get_service_by_code(code: str) -> Service:
    service = Service.live().filter(Service.service_code == (code or "").strip().upper()).first()
    if service is None:
        raise NotFoundError("Service not found", {"service_code": code})
    return service


def list_services(*, category_id: int | None = None, status: str | None = None, limit=None, offset=None) -> list[Service]:
    query = Service.live()
    if category_id is not None:
        query = query.filter(Service.service_category_id == category_id)
    if status:
        query = query.filter(Service.status == normalize_status(status, MASTER_STATUSES))
    return paginate(query, (Service.created_at.desc(), Service.id.desc()), limit, offset)


def search_services(term: str, *, limit=None, offset=None) -> list[Service]:
    query = Service.live()
    if term and term.strip():
        query = query.filter(substring_filter(term, Service.name, Service.service_code))
    return paginate(query, (Service.created_at.desc(), Service.id.desc()), limit, offset)


def update_service(service_id: int, patch: dict) -> Service:
    cleaned = _clean(patch, creating=False)

    def _op() -> Service:
        service = get_service(service_id)
        if cleaned.get("service_category_id") is not None:
            get_service_category(cleaned["service_category_id"])
        if "service_code" in cleaned and find_collision(
            Service, Service.service_code, cleaned["service_code"], exclude_id=service.id
        ):
            raise ConflictError("service code already in use", {"service_code": cleaned["service_code"]})
        apply_patch(service, cleaned, SERVICE_FIELDS)
        flush_or_conflict("service code already in use")
        db.session.commit()
        return service

    return run_with_retry(_op)


def delete_service(service_id: int) -> None:
    def _op() -> None:
        service = get_service(service_id)
        service.soft_delete()
        db.session.commit()

    run_with_retry(_op)
