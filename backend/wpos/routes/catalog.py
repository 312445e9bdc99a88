# Overview: Flask API routes for the billable service catalog and its categories.

from flask import Blueprint, request

from ..models import Service
from ..responses import created, dump, json_body, page_args, success
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"service_code", "name", "service_category_id", "fee", "status"},
    required_on_create={"service_code", "name"},
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")
service_categories_bp = Blueprint("service_categories", __name__, url_prefix="/api/service-categories")


@services_bp.get("")
def list_services():
    term = request.args.get("q")
    if term:
        rows = catalog_service.search_services(term, **page_args())
    else:
        rows = catalog_service.list_services(
            category_id=request.args.get("category_id", type=int),
            status=request.args.get("status"),
            **page_args(),
        )
    return success(dump(rows))


@services_bp.post("")
def create_service():
    patch = validate_payload(model=Service, payload=json_body(), policy=SERVICE_POLICY, partial=False)
    return created(catalog_service.create_service(patch).to_dict())


@services_bp.get("/code/<code>")
def get_service_by_code(code: str):
    return success(catalog_service.get_service_by_code(code).to_dict())


@services_bp.get("/<int:service_id>")
def get_service(service_id: int):
    return success(catalog_service.get_service(service_id).to_dict())


@services_bp.put("/<int:service_id>")
def update_service(service_id: int):
    patch = validate_payload(model=Service, payload=json_body(), policy=SERVICE_POLICY, partial=True)
    return success(catalog_service.update_service(service_id, patch).to_dict())


@services_bp.delete("/<int:service_id>")
def delete_service(service_id: int):
    catalog_service.delete_service(service_id)
    return success(None, "deleted")


@service_categories_bp.get("")
def list_service_categories():
    return success(dump(catalog_service.list_service_categories()))


@service_categories_bp.post("")
def create_service_category():
    payload = json_body()
    category = catalog_service.create_service_category(name=payload.get("name") or "")
    return created(category.to_dict())


@service_categories_bp.get("/<int:category_id>")
def get_service_category(category_id: int):
    return success(catalog_service.get_service_category(category_id).to_dict())


@service_categories_bp.put("/<int:category_id>")
def update_service_category(category_id: int):
    payload = json_body()
    category = catalog_service.update_service_category(
        category_id, name=payload.get("name"), status=payload.get("status")
    )
    return success(category.to_dict())


@service_categories_bp.delete("/<int:category_id>")
def delete_service_category(category_id: int):
    catalog_service.delete_service_category(category_id)
    return success(None, "deleted")
