# Overview: Flask API routes for service jobs, their line items and status history.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import ServiceDetail, ServiceJob
from ..money import as_str
from ..responses import created, dump, json_body, page_args, success
from ..services import history_service, service_detail_service, service_job_service
from ..validation import ModelValidationPolicy, validate_payload

JOB_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "vehicle_id", "received_by_user_id", "outlet_id",
        "problem_description", "intake_at", "down_payment", "technician_id",
        "technician_notes", "warranty_expires_at", "next_service_reminder_date",
    },
    required_on_create={"customer_id", "vehicle_id", "received_by_user_id", "outlet_id", "problem_description"},
)

JOB_PATCH_POLICY = ModelValidationPolicy(writable_fields=set(service_job_service.PATCHABLE_FIELDS))

DETAIL_POLICY = ModelValidationPolicy(
    writable_fields=set(service_detail_service.DETAIL_FIELDS),
    required_on_create={"item_type", "item_id"},
)

service_jobs_bp = Blueprint("service_jobs", __name__, url_prefix="/api/service-jobs")
service_details_bp = Blueprint("service_details", __name__, url_prefix="/api/service-details")
history_bp = Blueprint("service_job_history", __name__, url_prefix="/api/service-job-history")


@service_jobs_bp.get("")
def list_service_jobs():
    """
    Query params: status, outlet_id, customer_id, vehicle_id, technician_id, limit, offset.

    With service_code the single matching job is returned instead of a list.
    """
    code = request.args.get("service_code")
    if code:
        return success(service_job_service.get_by_service_code(code).to_dict())
    rows = service_job_service.list_service_jobs(
        status=request.args.get("status"),
        outlet_id=request.args.get("outlet_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        vehicle_id=request.args.get("vehicle_id", type=int),
        technician_id=request.args.get("technician_id", type=int),
        **page_args(),
    )
    return success(dump(rows))


@service_jobs_bp.post("")
def create_service_job():
    """Register a vehicle at the counter; service code and queue number are assigned here."""
    patch = validate_payload(model=ServiceJob, payload=json_body(), policy=JOB_CREATE_POLICY, partial=False)
    job = service_job_service.create_service_job(**patch)
    return created(job.to_dict())


@service_jobs_bp.get("/code/<code>")
def get_by_service_code(code: str):
    return success(service_job_service.get_by_service_code(code).to_dict())


@service_jobs_bp.get("/<int:job_id>")
def get_service_job(job_id: int):
    return success(service_job_service.get_service_job(job_id).to_dict())


@service_jobs_bp.route("/<int:job_id>", methods=["PUT", "PATCH"])
def update_service_job(job_id: int):
    patch = validate_payload(model=ServiceJob, payload=json_body(), policy=JOB_PATCH_POLICY, partial=True)
    return success(service_job_service.update_service_job(job_id, patch).to_dict())


@service_jobs_bp.delete("/<int:job_id>")
def delete_service_job(job_id: int):
    service_job_service.delete_service_job(job_id)
    return success(None, "deleted")


@service_jobs_bp.post("/<int:job_id>/status")
def update_status(job_id: int):
    """Body: {"status", "user_id", "notes"?, "technician_id"?}."""
    payload = json_body()
    user_id = payload.get("user_id")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError("user_id must be an integer")
    technician_id = payload.get("technician_id")
    if technician_id is not None and (isinstance(technician_id, bool) or not isinstance(technician_id, int)):
        raise ValidationError("technician_id must be an integer")
    job = service_job_service.update_status(
        job_id,
        status=payload.get("status"),
        user_id=user_id,
        notes=payload.get("notes"),
        technician_id=technician_id,
    )
    return success(job.to_dict(), f"status changed to {job.status}")


@service_jobs_bp.get("/<int:job_id>/totals")
def get_totals(job_id: int):
    job = service_job_service.get_service_job(job_id)
    totals = service_job_service.compute_totals(service_detail_service.list_details(job.id))
    return success({
        "service_job_id": job.id,
        "grand_total": as_str(totals.grand_total),
        "cost_total": as_str(totals.cost_total),
        "technician_commission": as_str(totals.technician_commission),
        "shop_profit": as_str(totals.shop_profit),
    })


@service_jobs_bp.post("/<int:job_id>/totals")
def recompute_totals(job_id: int):
    return success(service_job_service.recompute_totals(job_id).to_dict(), "totals recomputed")


@service_jobs_bp.get("/<int:job_id>/history")
def job_history(job_id: int):
    return success(dump(history_service.history_for_job(job_id)))


@service_jobs_bp.get("/<int:job_id>/details")
def list_details(job_id: int):
    return success(dump(service_detail_service.list_details(job_id)))


@service_jobs_bp.post("/<int:job_id>/details")
def create_detail(job_id: int):
    patch = validate_payload(model=ServiceDetail, payload=json_body(), policy=DETAIL_POLICY, partial=False)
    return created(service_detail_service.create_detail(job_id, patch).to_dict())


@service_jobs_bp.delete("/<int:job_id>/details")
def clear_details(job_id: int):
    removed = service_detail_service.delete_details_for_job(job_id)
    return success({"removed": removed}, "deleted")


# =============================================================================
# Single line items
# =============================================================================

@service_details_bp.get("/<int:detail_id>")
def get_detail(detail_id: int):
    return success(service_detail_service.get_detail(detail_id).to_dict())


@service_details_bp.put("/<int:detail_id>")
def update_detail(detail_id: int):
    patch = validate_payload(model=ServiceDetail, payload=json_body(), policy=DETAIL_POLICY, partial=True)
    return success(service_detail_service.update_detail(detail_id, patch).to_dict())


@service_details_bp.delete("/<int:detail_id>")
def delete_detail(detail_id: int):
    service_detail_service.delete_detail(detail_id)
    return success(None, "deleted")


# =============================================================================
# History
# =============================================================================

@history_bp.get("")
def list_history():
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        rows = history_service.history_for_user(user_id, **page_args())
    else:
        rows = history_service.list_history(**page_args())
    return success(dump(rows))


@history_bp.get("/<int:history_id>")
def get_history(history_id: int):
    return success(history_service.get_history(history_id).to_dict())
