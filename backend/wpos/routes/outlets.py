# Overview: Flask API routes for outlets, their daily service queue and their counter transactions.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import Outlet
from ..responses import created, dump, json_body, page_args, success
from ..services import outlet_service, pos_transaction_service, queue_service
from ..validation import ModelValidationPolicy, validate_payload

OUTLET_POLICY = ModelValidationPolicy(
    writable_fields={"name", "branch_type", "city", "address", "contact", "timezone", "status"},
    required_on_create={"name"},
)

outlets_bp = Blueprint("outlets", __name__, url_prefix="/api/outlets")


@outlets_bp.get("")
def list_outlets():
    outlets = outlet_service.list_outlets(status=request.args.get("status"))
    return success(dump(outlets))


@outlets_bp.post("")
def create_outlet():
    patch = validate_payload(model=Outlet, payload=json_body(), policy=OUTLET_POLICY, partial=False)
    outlet = outlet_service.create_outlet(patch, created_by=request.args.get("user_id", type=int))
    return created(outlet.to_dict())


@outlets_bp.get("/<int:outlet_id>")
def get_outlet(outlet_id: int):
    return success(outlet_service.get_outlet(outlet_id).to_dict())


@outlets_bp.put("/<int:outlet_id>")
def update_outlet(outlet_id: int):
    patch = validate_payload(model=Outlet, payload=json_body(), policy=OUTLET_POLICY, partial=True)
    return success(outlet_service.update_outlet(outlet_id, patch).to_dict())


@outlets_bp.delete("/<int:outlet_id>")
def delete_outlet(outlet_id: int):
    outlet_service.delete_outlet(outlet_id)
    return success(None, "deleted")


@outlets_bp.get("/<int:outlet_id>/transactions")
def list_transactions_for_outlet(outlet_id: int):
    """Query params: status, start_date, end_date, limit, offset."""
    outlet_service.get_outlet(outlet_id)
    rows = pos_transaction_service.list_transactions(
        outlet_id=outlet_id,
        status=request.args.get("status"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        **page_args(),
    )
    return success(dump(rows))


# =============================================================================
# Queue
# =============================================================================

@outlets_bp.get("/<int:outlet_id>/queue")
def get_queue(outlet_id: int):
    """Every QUEUED / WORKING job at the outlet, ordered by intake day then number."""
    return success(dump(queue_service.get_queue(outlet_id)))


@outlets_bp.get("/<int:outlet_id>/queue/today")
def get_today_queue(outlet_id: int):
    return success(dump(queue_service.get_today_queue(outlet_id)))


@outlets_bp.post("/<int:outlet_id>/queue/reorder")
def reorder_queue(outlet_id: int):
    """
    Body: a JSON array of job ids in the desired order, or {"job_ids": [..]}.
    Positions 1..n are reassigned atomically.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        if "job_ids" not in payload:
            raise ValidationError("job_ids is required")
        payload = payload["job_ids"]
    if not isinstance(payload, list):
        raise ValidationError("body must be a list of job ids")
    jobs = queue_service.reorder_queue(outlet_id, payload)
    return success(dump(jobs), "queue reordered")
