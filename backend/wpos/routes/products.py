# Overview: Flask API routes for products, serial numbers and inventory master data.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import Category, PaymentMethod, Product, Supplier, UnitType
from ..responses import created, dump, json_body, page_args, success
from ..services import inventory_service, master_data_service, products_service
from ..validation import ModelValidationPolicy, require_non_negative, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "cost_price", "selling_price", "sku", "barcode",
        "has_serial_number", "shelf_location", "usage_status", "is_active",
        "category_id", "supplier_id", "unit_type_id",
    },
    required_on_create={"name"},
    extra_fields={"stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
serials_bp = Blueprint("serial_numbers", __name__, url_prefix="/api/serial-numbers")
master_data_bp = Blueprint("master_data", __name__, url_prefix="/api")


def _int_field(payload: dict, key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


@products_bp.get("")
def list_products():
    """
    Query params:
    - q: substring over name, sku and barcode
    - category_id, supplier_id, usage_status, limit, offset
    """
    term = request.args.get("q")
    if term:
        rows = products_service.search_products(term, **page_args())
    else:
        rows = products_service.list_products(
            category_id=request.args.get("category_id", type=int),
            supplier_id=request.args.get("supplier_id", type=int),
            usage_status=request.args.get("usage_status"),
            **page_args(),
        )
    return success(dump(rows))


@products_bp.get("/low-stock")
def low_stock():
    threshold = request.args.get("threshold", default=5, type=int)
    return success(dump(products_service.low_stock_products(threshold)))


@products_bp.get("/lookup")
def lookup_product():
    product = products_service.get_product_by_code(
        sku=request.args.get("sku"), barcode=request.args.get("barcode")
    )
    return success(product.to_dict())


@products_bp.post("")
def create_product():
    payload = json_body()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    if "stock" in patch:
        patch["stock"] = _int_field(patch, "stock")
    require_non_negative(patch, "cost_price", "selling_price")
    return created(products_service.create_product(patch).to_dict())


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    return success(products_service.get_product(product_id).to_dict())


@products_bp.put("/<int:product_id>")
def update_product(product_id: int):
    payload = json_body()
    if "stock" in payload:
        raise ValidationError("stock changes go through the stock endpoint")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    require_non_negative(patch, "cost_price", "selling_price")
    return success(products_service.update_product(product_id, patch).to_dict())


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    products_service.delete_product(product_id)
    return success(None, "deleted")


@products_bp.post("/<int:product_id>/restore")
def restore_product(product_id: int):
    return success(products_service.restore_product(product_id).to_dict(), "restored")


@products_bp.post("/<int:product_id>/stock")
def adjust_stock(product_id: int):
    """Body: {"delta": int}. Rejected for serialised products and when stock would go negative."""
    delta = _int_field(json_body(), "delta")
    return success(inventory_service.update_stock(product_id, delta).to_dict())


@products_bp.get("/<int:product_id>/serial-numbers")
def list_product_serials(product_id: int):
    products_service.get_product(product_id)
    rows = inventory_service.list_serials(product_id=product_id, status=request.args.get("status"))
    return success(dump(rows))


# =============================================================================
# Serial numbers
# =============================================================================

@serials_bp.get("")
def list_serials():
    rows = inventory_service.list_serials(
        product_id=request.args.get("product_id", type=int), status=request.args.get("status")
    )
    return success(dump(rows))


@serials_bp.post("")
def create_serial():
    payload = json_body()
    serial = inventory_service.create_serial(
        product_id=_int_field(payload, "product_id"),
        serial_number=payload.get("serial_number") or "",
        status=payload.get("status"),
    )
    return created(serial.to_dict())


@serials_bp.get("/lookup/<serial_number>")
def get_serial_by_number(serial_number: str):
    return success(inventory_service.get_serial_by_number(serial_number).to_dict())


@serials_bp.get("/<int:serial_id>")
def get_serial(serial_id: int):
    return success(inventory_service.get_serial(serial_id).to_dict())


@serials_bp.put("/<int:serial_id>")
def update_serial(serial_id: int):
    """Body: {"serial_number": ...} to rename and/or {"status": ...} to retire."""
    payload = json_body()
    unknown = set(payload) - {"serial_number", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    serial = None
    if "serial_number" in payload:
        serial = inventory_service.rename_serial(serial_id, payload["serial_number"] or "")
    if "status" in payload:
        serial = inventory_service.update_serial_status(serial_id, payload["status"])
    if serial is None:
        serial = inventory_service.get_serial(serial_id)
    return success(serial.to_dict())


@serials_bp.post("/<int:serial_id>/restore")
def restore_serial(serial_id: int):
    return success(inventory_service.restore_serial(serial_id).to_dict(), "restored")


@serials_bp.delete("/<int:serial_id>")
def delete_serial(serial_id: int):
    inventory_service.delete_serial(serial_id)
    return success(None, "deleted")


# =============================================================================
# Categories, suppliers, unit types, payment methods
# =============================================================================

MASTER_MODELS = {
    "categories": Category,
    "suppliers": Supplier,
    "unit-types": UnitType,
    "payment-methods": PaymentMethod,
}
KIND_RULE = "/<any(categories, suppliers, 'unit-types', 'payment-methods'):kind>"


def _master_patch(kind: str, payload: dict, *, partial: bool) -> dict:
    master = master_data_service.MASTER_KINDS[kind]
    policy = ModelValidationPolicy(writable_fields=set(master.fields), required_on_create={"name"})
    return validate_payload(model=MASTER_MODELS[kind], payload=payload, policy=policy, partial=partial)


@master_data_bp.get(KIND_RULE)
def list_entries(kind: str):
    return success(dump(master_data_service.list_entries(kind, status=request.args.get("status"))))


@master_data_bp.post(KIND_RULE)
def create_entry(kind: str):
    patch = _master_patch(kind, json_body(), partial=False)
    return created(master_data_service.create_entry(kind, patch).to_dict())


@master_data_bp.get(KIND_RULE + "/<int:entry_id>")
def get_entry(kind: str, entry_id: int):
    return success(master_data_service.get_entry(kind, entry_id).to_dict())


@master_data_bp.put(KIND_RULE + "/<int:entry_id>")
def update_entry(kind: str, entry_id: int):
    patch = _master_patch(kind, json_body(), partial=True)
    return success(master_data_service.update_entry(kind, entry_id, patch).to_dict())


@master_data_bp.delete(KIND_RULE + "/<int:entry_id>")
def delete_entry(kind: str, entry_id: int):
    master_data_service.delete_entry(kind, entry_id)
    return success(None, "deleted")
