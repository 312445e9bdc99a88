# Overview: Flask API routes for showroom vehicles and their reconditioning jobs.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import Vehicle
from ..money import as_str
from ..responses import created, dump, json_body, page_args, success
from ..services import reconditioning_service, vehicle_service
from ..validation import ModelValidationPolicy, validate_payload

VEHICLE_KEYS = {"plate_number", "chassis_number", "engine_number"}

VEHICLE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=set(vehicle_service.CREATE_FIELDS),
    required_on_create=VEHICLE_KEYS,
)
VEHICLE_PATCH_POLICY = ModelValidationPolicy(writable_fields=set(vehicle_service.DESCRIPTIVE_FIELDS))
PURCHASED_VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields=set(vehicle_service.DESCRIPTIVE_FIELDS),
    required_on_create=VEHICLE_KEYS,
)

vehicles_bp = Blueprint("vehicles", __name__, url_prefix="/api/vehicles")
reconditioning_bp = Blueprint("reconditioning_jobs", __name__, url_prefix="/api/reconditioning-jobs")
reconditioning_details_bp = Blueprint(
    "reconditioning_details", __name__, url_prefix="/api/reconditioning-details"
)


def _optional_int(payload: dict, key: str):
    value = payload.get(key)
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValidationError(f"{key} must be an integer")
    return value


@vehicles_bp.get("")
def list_vehicles():
    term = request.args.get("q")
    if term:
        rows = vehicle_service.search_vehicles(term, **page_args())
    else:
        rows = vehicle_service.list_vehicles(
            sale_status=request.args.get("sale_status"),
            ownership_status=request.args.get("ownership_status"),
            **page_args(),
        )
    return success(dump(rows))


@vehicles_bp.post("")
def create_vehicle():
    patch = validate_payload(model=Vehicle, payload=json_body(), policy=VEHICLE_CREATE_POLICY, partial=False)
    return created(vehicle_service.create_vehicle(patch).to_dict())


@vehicles_bp.get("/lookup/<field>/<value>")
def get_vehicle_by(field: str, value: str):
    return success(vehicle_service.get_vehicle_by(field, value).to_dict())


@vehicles_bp.get("/<int:vehicle_id>")
def get_vehicle(vehicle_id: int):
    return success(vehicle_service.get_vehicle(vehicle_id).to_dict())


@vehicles_bp.put("/<int:vehicle_id>")
def update_vehicle(vehicle_id: int):
    patch = validate_payload(model=Vehicle, payload=json_body(), policy=VEHICLE_PATCH_POLICY, partial=True)
    return success(vehicle_service.update_vehicle(vehicle_id, patch).to_dict())


@vehicles_bp.delete("/<int:vehicle_id>")
def delete_vehicle(vehicle_id: int):
    vehicle_service.delete_vehicle(vehicle_id)
    return success(None, "deleted")


@vehicles_bp.post("/purchase")
def purchase_vehicle():
    """
    Buy a vehicle into the showroom.

    Body: {"seller_customer_id", "purchase_price", "vehicle": {...},
    "payment_method"?, "user_id"?, "payment_reference"?, "evaluation_notes"?}
    """
    payload = json_body()
    vehicle_body = payload.get("vehicle")
    if not isinstance(vehicle_body, dict):
        raise ValidationError("vehicle is required")
    vehicle_patch = validate_payload(model=Vehicle, payload=vehicle_body, policy=PURCHASED_VEHICLE_POLICY, partial=False)
    purchase = vehicle_service.purchase_vehicle(
        seller_customer_id=_optional_int(payload, "seller_customer_id"),
        purchase_price=payload.get("purchase_price"),
        vehicle=vehicle_patch,
        payment_method=payload.get("payment_method") or "CASH",
        user_id=_optional_int(payload, "user_id"),
        payment_reference=payload.get("payment_reference"),
        evaluation_notes=payload.get("evaluation_notes"),
    )
    return created({"purchase": purchase.to_dict(), "vehicle": purchase.vehicle.to_dict()})


@vehicles_bp.get("/purchases")
def list_purchases():
    rows = vehicle_service.list_purchases(
        vehicle_id=request.args.get("vehicle_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
    )
    return success(dump(rows))


@vehicles_bp.get("/purchases/<int:purchase_id>")
def get_purchase(purchase_id: int):
    return success(vehicle_service.get_purchase(purchase_id).to_dict())


@vehicles_bp.post("/<int:vehicle_id>/mark-for-sale")
def mark_for_sale(vehicle_id: int):
    payload = json_body()
    return success(vehicle_service.mark_for_sale(vehicle_id, selling_price=payload.get("selling_price")).to_dict())


@vehicles_bp.get("/<int:vehicle_id>/profit")
def vehicle_profit(vehicle_id: int):
    report = vehicle_service.vehicle_profit(vehicle_id, sale_price=request.args.get("sale_price"))
    return success({key: as_str(value) if key != "vehicle_id" else value for key, value in report.items()})


@vehicles_bp.get("/<int:vehicle_id>/reconditioning-jobs")
def vehicle_reconditioning_jobs(vehicle_id: int):
    vehicle_service.get_vehicle(vehicle_id)
    return success(dump(reconditioning_service.list_jobs(vehicle_id=vehicle_id, **page_args())))


# =============================================================================
# Reconditioning jobs
# =============================================================================

@reconditioning_bp.get("")
def list_jobs():
    rows = reconditioning_service.list_jobs(
        vehicle_id=request.args.get("vehicle_id", type=int),
        status=request.args.get("status"),
        **page_args(),
    )
    return success(dump(rows))


@reconditioning_bp.post("")
def create_job():
    payload = json_body()
    job = reconditioning_service.create_job(
        vehicle_id=_optional_int(payload, "vehicle_id"),
        title=payload.get("title") or "",
        description=payload.get("description"),
        estimated_cost=payload.get("estimated_cost"),
        technician_id=_optional_int(payload, "technician_id"),
        notes=payload.get("notes"),
        created_by=_optional_int(payload, "user_id"),
    )
    return created(job.to_dict())


@reconditioning_bp.get("/<int:job_id>")
def get_job(job_id: int):
    return success(reconditioning_service.get_job(job_id).to_dict())


@reconditioning_bp.post("/<int:job_id>/start")
def start_job(job_id: int):
    return success(reconditioning_service.start_job(job_id).to_dict())


@reconditioning_bp.post("/<int:job_id>/complete")
def complete_job(job_id: int):
    payload = json_body()
    return success(reconditioning_service.complete_job(job_id, actual_cost=payload.get("actual_cost")).to_dict())


@reconditioning_bp.post("/<int:job_id>/cancel")
def cancel_job(job_id: int):
    return success(reconditioning_service.cancel_job(job_id).to_dict())


@reconditioning_bp.get("/<int:job_id>/details")
def list_details(job_id: int):
    return success(dump(reconditioning_service.list_details(job_id)))


@reconditioning_bp.post("/<int:job_id>/details")
def add_detail(job_id: int):
    """
    Body: {"detail_type": "PART"|"SERVICE", "product_id"|"service_id", "quantity"?,
    "unit_price"?, "serial_numbers"?, "description"?, "notes"?, "user_id"?}
    """
    payload = json_body()
    quantity = payload.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    detail = reconditioning_service.add_detail(
        job_id,
        detail_type=payload.get("detail_type"),
        product_id=_optional_int(payload, "product_id"),
        service_id=_optional_int(payload, "service_id"),
        quantity=quantity,
        unit_price=payload.get("unit_price"),
        description=payload.get("description"),
        notes=payload.get("notes"),
        serial_numbers=payload.get("serial_numbers"),
        created_by=_optional_int(payload, "user_id"),
    )
    message = "created with stock shortfall" if detail.stock_shortfall else "created"
    return created(detail.to_dict(), message)


@reconditioning_details_bp.get("/<int:detail_id>")
def get_detail(detail_id: int):
    return success(reconditioning_service.get_detail(detail_id).to_dict())


@reconditioning_details_bp.put("/<int:detail_id>")
def update_detail(detail_id: int):
    payload = json_body()
    unknown = set(payload) - {"description", "unit_price", "quantity", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    detail = reconditioning_service.update_detail(
        detail_id,
        description=payload.get("description"),
        unit_price=payload.get("unit_price"),
        quantity=_optional_int(payload, "quantity"),
        notes=payload.get("notes"),
    )
    return success(detail.to_dict())


@reconditioning_details_bp.delete("/<int:detail_id>")
def delete_detail(detail_id: int):
    reconditioning_service.delete_detail(detail_id)
    return success(None, "deleted")
