# Overview: Flask API routes for customers and customer-owned vehicles.

from flask import Blueprint, request

from ..models import Customer, CustomerVehicle
from ..responses import created, dump, json_body, page_args, success
from ..services import customer_service, pos_transaction_service, service_job_service
from ..validation import ModelValidationPolicy, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "status"},
    required_on_create={"name", "phone"},
)

VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "plate_number", "chassis_number", "engine_number",
        "brand", "model", "vehicle_type", "production_year", "color",
    },
    required_on_create={"customer_id", "plate_number", "chassis_number", "engine_number"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
customer_vehicles_bp = Blueprint("customer_vehicles", __name__, url_prefix="/api/customer-vehicles")


@customers_bp.get("")
def list_customers():
    """
    Query params:
    - q: substring over name, phone and address (newest first)
    - status, limit, offset
    """
    term = request.args.get("q")
    if term:
        rows = customer_service.search_customers(term, **page_args())
    else:
        rows = customer_service.list_customers(status=request.args.get("status"), **page_args())
    return success(dump(rows))


@customers_bp.post("")
def create_customer():
    patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=False)
    return created(customer_service.create_customer(patch).to_dict())


@customers_bp.get("/by-phone/<phone>")
def get_customer_by_phone(phone: str):
    return success(customer_service.get_customer_by_phone(phone).to_dict())


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    return success(customer_service.get_customer(customer_id).to_dict())


@customers_bp.put("/<int:customer_id>")
def update_customer(customer_id: int):
    patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=True)
    return success(customer_service.update_customer(customer_id, patch).to_dict())


@customers_bp.delete("/<int:customer_id>")
def delete_customer(customer_id: int):
    customer_service.delete_customer(customer_id)
    return success(None, "deleted")


@customers_bp.post("/<int:customer_id>/restore")
def restore_customer(customer_id: int):
    return success(customer_service.restore_customer(customer_id).to_dict(), "restored")


@customers_bp.get("/<int:customer_id>/vehicles")
def list_vehicles_for_customer(customer_id: int):
    customer_service.get_customer(customer_id)
    rows = customer_service.list_customer_vehicles(customer_id=customer_id, **page_args())
    return success(dump(rows))


@customers_bp.get("/<int:customer_id>/service-jobs")
def list_service_jobs_for_customer(customer_id: int):
    """Service jobs of one customer, newest first. Query params: status, limit, offset."""
    customer_service.get_customer(customer_id)
    rows = service_job_service.list_service_jobs(
        customer_id=customer_id, status=request.args.get("status"), **page_args()
    )
    return success(dump(rows))


@customers_bp.get("/<int:customer_id>/transactions")
def list_transactions_for_customer(customer_id: int):
    customer_service.get_customer(customer_id)
    rows = pos_transaction_service.list_transactions(
        customer_id=customer_id, status=request.args.get("status"), **page_args()
    )
    return success(dump(rows))


# =============================================================================
# Customer vehicles
# =============================================================================

@customer_vehicles_bp.get("")
def list_customer_vehicles():
    term = request.args.get("q")
    if term:
        rows = customer_service.search_customer_vehicles(term, **page_args())
    else:
        rows = customer_service.list_customer_vehicles(
            customer_id=request.args.get("customer_id", type=int), **page_args()
        )
    return success(dump(rows))


@customer_vehicles_bp.post("")
def create_customer_vehicle():
    patch = validate_payload(model=CustomerVehicle, payload=json_body(), policy=VEHICLE_POLICY, partial=False)
    return created(customer_service.create_customer_vehicle(patch).to_dict())


@customer_vehicles_bp.get("/lookup/<field>/<value>")
def get_customer_vehicle_by(field: str, value: str):
    return success(customer_service.get_customer_vehicle_by(field, value).to_dict())


@customer_vehicles_bp.get("/<int:vehicle_id>")
def get_customer_vehicle(vehicle_id: int):
    return success(customer_service.get_customer_vehicle(vehicle_id).to_dict())


@customer_vehicles_bp.put("/<int:vehicle_id>")
def update_customer_vehicle(vehicle_id: int):
    patch = validate_payload(model=CustomerVehicle, payload=json_body(), policy=VEHICLE_POLICY, partial=True)
    return success(customer_service.update_customer_vehicle(vehicle_id, patch).to_dict())


@customer_vehicles_bp.delete("/<int:vehicle_id>")
def delete_customer_vehicle(vehicle_id: int):
    customer_service.delete_customer_vehicle(vehicle_id)
    return success(None, "deleted")
