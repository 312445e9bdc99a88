# Overview: Flask API routes for cash flows.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import CashFlow
from ..money import as_str
from ..responses import created, dump, json_body, page_args, success
from ..services import cash_flow_service
from ..validation import ModelValidationPolicy, validate_payload

CASH_FLOW_POLICY = ModelValidationPolicy(
    writable_fields=set(cash_flow_service.EDITABLE_FIELDS),
    required_on_create={"flow_type", "source", "amount"},
    extra_fields={"user_id"},
)

cash_flows_bp = Blueprint("cash_flows", __name__, url_prefix="/api/cash-flows")


@cash_flows_bp.get("")
def list_cash_flows():
    """Query params: flow_type, user_id, outlet_id, start_date, end_date, limit, offset."""
    rows = cash_flow_service.list_cash_flows(
        flow_type=request.args.get("flow_type"),
        user_id=request.args.get("user_id", type=int),
        outlet_id=request.args.get("outlet_id", type=int),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        **page_args(),
    )
    return success(dump(rows))


@cash_flows_bp.get("/total")
def total_by_type():
    amount = cash_flow_service.total_by_type(
        request.args.get("flow_type"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        outlet_id=request.args.get("outlet_id", type=int),
    )
    return success({"flow_type": request.args.get("flow_type", "").upper(), "total": as_str(amount)})


@cash_flows_bp.post("")
def create_cash_flow():
    patch = validate_payload(model=CashFlow, payload=json_body(), policy=CASH_FLOW_POLICY, partial=False)
    user_id = patch.pop("user_id", None)
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError("user_id must be an integer")
    return created(cash_flow_service.create_cash_flow(patch, user_id=user_id).to_dict())


@cash_flows_bp.get("/<int:flow_id>")
def get_cash_flow(flow_id: int):
    return success(cash_flow_service.get_cash_flow(flow_id).to_dict())


@cash_flows_bp.put("/<int:flow_id>")
def update_cash_flow(flow_id: int):
    patch = validate_payload(model=CashFlow, payload=json_body(), policy=CASH_FLOW_POLICY, partial=True)
    patch.pop("user_id", None)
    return success(cash_flow_service.update_cash_flow(flow_id, patch).to_dict())


@cash_flows_bp.delete("/<int:flow_id>")
def delete_cash_flow(flow_id: int):
    cash_flow_service.delete_cash_flow(flow_id)
    return success(None, "deleted")
