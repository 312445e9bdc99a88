# Overview: Flask API routes for vehicle sales, installment plans and their payments.

from flask import Blueprint, request

from ..errors import ValidationError
from ..responses import created, dump, json_body, page_args, success
from ..services import installment_service, vehicle_sales_service
from ..time_utils import to_iso_date

vehicle_sales_bp = Blueprint("vehicle_sales", __name__, url_prefix="/api/vehicle-sales")
installments_bp = Blueprint("installments", __name__, url_prefix="/api/installments")
installment_payments_bp = Blueprint("installment_payments", __name__, url_prefix="/api/installment-payments")


def _required_int(payload: dict, key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _sale_result(result: dict) -> dict:
    plan = result["installment"]
    return {
        "transaction": result["transaction"].to_dict(),
        "vehicle": result["vehicle"].to_dict(),
        "installment": plan.to_dict() if plan is not None else None,
        "payments": dump(installment_service.payments_for(plan.id)) if plan is not None else [],
    }


@vehicle_sales_bp.post("")
def sell_vehicle():
    """
    Body: {"vehicle_id", "customer_id", "sale_price", "transaction_type",
    "payment_method", "down_payment"?, "sales_person_id"?,
    "installment"?: {"installment_count", "interest_rate"?, "start_date"},
    "payment_reference"?, "notes"?}
    """
    payload = json_body()
    sales_person_id = payload.get("sales_person_id")
    if sales_person_id is not None:
        sales_person_id = _required_int(payload, "sales_person_id")
    result = vehicle_sales_service.sell_vehicle(
        vehicle_id=_required_int(payload, "vehicle_id"),
        customer_id=_required_int(payload, "customer_id"),
        sale_price=payload.get("sale_price"),
        transaction_type=payload.get("transaction_type"),
        payment_method=payload.get("payment_method"),
        down_payment=payload.get("down_payment"),
        sales_person_id=sales_person_id,
        installment=payload.get("installment"),
        payment_reference=payload.get("payment_reference"),
        notes=payload.get("notes"),
    )
    return created(_sale_result(result), "vehicle sold")


@vehicle_sales_bp.get("")
def list_sales():
    rows = vehicle_sales_service.list_sales(
        vehicle_id=request.args.get("vehicle_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        transaction_type=request.args.get("transaction_type"),
        **page_args(),
    )
    return success(dump(rows))


@vehicle_sales_bp.get("/<int:sale_id>")
def get_sale(sale_id: int):
    return success(vehicle_sales_service.get_sale(sale_id).to_dict())


@vehicle_sales_bp.get("/<int:sale_id>/installment")
def get_sale_installment(sale_id: int):
    vehicle_sales_service.get_sale(sale_id)
    return success(installment_service.installment_for_sale(sale_id).to_dict())


# =============================================================================
# Installment plans
# =============================================================================

@installments_bp.get("")
def list_installments():
    return success(dump(installment_service.list_installments(status=request.args.get("status"))))


@installments_bp.get("/overdue")
def overdue_payments():
    return success(dump(installment_service.overdue_payments()))


@installments_bp.post("/mark-overdue")
def mark_overdue():
    changed = installment_service.mark_overdue()
    return success({"marked_late": changed})


@installments_bp.get("/<int:installment_id>")
def get_installment(installment_id: int):
    return success(installment_service.get_installment(installment_id).to_dict())


@installments_bp.get("/<int:installment_id>/payments")
def list_payments(installment_id: int):
    return success(dump(installment_service.payments_for(installment_id)))


@installments_bp.post("/<int:installment_id>/write-off")
def write_off(installment_id: int):
    return success(installment_service.write_off(installment_id).to_dict(), "installment defaulted")


# =============================================================================
# Installment payments
# =============================================================================

@installment_payments_bp.get("/<int:payment_id>")
def get_payment(payment_id: int):
    return success(installment_service.get_payment(payment_id).to_dict())


@installment_payments_bp.post("/<int:payment_id>/pay")
def pay(payment_id: int):
    """Body: {"paid_amount", "payment_method", "payment_reference"?, "notes"?}."""
    payload = json_body()
    result = installment_service.process_payment(
        payment_id,
        paid_amount=payload.get("paid_amount"),
        payment_method=payload.get("payment_method"),
        payment_reference=payload.get("payment_reference"),
        notes=payload.get("notes"),
    )
    return success({
        "payment": result["payment"].to_dict(),
        "installment": result["installment"].to_dict(),
        "status_path": result["status_path"],
        "next_payment_due": to_iso_date(result["next_payment_due"]),
    }, "payment recorded")
