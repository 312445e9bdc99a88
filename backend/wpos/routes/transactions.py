# Overview: Flask API routes for counter transactions, their lines and their payments.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import Payment, PosTransaction
from ..responses import created, dump, json_body, page_args, success
from ..services import pos_transaction_service
from ..validation import ModelValidationPolicy, validate_payload

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"invoice_number", "transaction_type", "customer_id", "transaction_date", "notes"},
    required_on_create={"outlet_id", "user_id"},
    extra_fields={"outlet_id", "user_id"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"method_id", "amount", "status", "payment_date"},
    required_on_create={"method_id", "amount"},
    extra_fields={"created_by"},
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")
transaction_details_bp = Blueprint("transaction_details", __name__, url_prefix="/api/transaction-details")
payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _required_int(payload: dict, key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _optional_int(payload: dict, key: str) -> int | None:
    if payload.get(key) is None:
        return None
    return _required_int(payload, key)


@transactions_bp.get("")
def list_transactions():
    """
    Query params:
    - invoice_number: exact lookup, returns one transaction
    - outlet_id, customer_id, user_id, status, start_date, end_date, limit, offset
    """
    invoice = request.args.get("invoice_number")
    if invoice:
        return success(pos_transaction_service.get_by_invoice(invoice).to_dict())
    rows = pos_transaction_service.list_transactions(
        outlet_id=request.args.get("outlet_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        user_id=request.args.get("user_id", type=int),
        status=request.args.get("status"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        **page_args(),
    )
    return success(dump(rows))


@transactions_bp.post("")
def create_transaction():
    patch = validate_payload(model=PosTransaction, payload=json_body(), policy=TRANSACTION_POLICY, partial=False)
    txn = pos_transaction_service.create_transaction(
        outlet_id=_required_int(patch, "outlet_id"),
        user_id=_required_int(patch, "user_id"),
        transaction_type=patch.get("transaction_type"),
        customer_id=patch.get("customer_id"),
        invoice_number=patch.get("invoice_number"),
        transaction_date=patch.get("transaction_date"),
        notes=patch.get("notes"),
    )
    return created(txn.to_dict())


@transactions_bp.get("/<int:transaction_id>")
def get_transaction(transaction_id: int):
    return success(pos_transaction_service.get_transaction(transaction_id).to_dict())


@transactions_bp.route("/<int:transaction_id>", methods=["PUT", "PATCH"])
def update_transaction(transaction_id: int):
    patch = validate_payload(model=PosTransaction, payload=json_body(), policy=TRANSACTION_POLICY, partial=True)
    for key in ("outlet_id", "user_id", "invoice_number"):
        if key in patch:
            raise ValidationError(f"{key} cannot be changed", {"field": key})
    return success(pos_transaction_service.update_transaction(transaction_id, patch).to_dict())


@transactions_bp.delete("/<int:transaction_id>")
def delete_transaction(transaction_id: int):
    pos_transaction_service.delete_transaction(transaction_id)
    return success(None, "deleted")


@transactions_bp.post("/<int:transaction_id>/complete")
def complete_transaction(transaction_id: int):
    return success(pos_transaction_service.complete_transaction(transaction_id).to_dict(), "completed")


@transactions_bp.post("/<int:transaction_id>/void")
def void_transaction(transaction_id: int):
    return success(pos_transaction_service.void_transaction(transaction_id).to_dict(), "voided")


@transactions_bp.get("/<int:transaction_id>/summary")
def payment_summary(transaction_id: int):
    return success(pos_transaction_service.payment_summary(transaction_id))


# =============================================================================
# Lines
# =============================================================================

@transactions_bp.get("/<int:transaction_id>/details")
def list_details(transaction_id: int):
    return success(dump(pos_transaction_service.list_details(transaction_id)))


@transactions_bp.post("/<int:transaction_id>/details")
def add_detail(transaction_id: int):
    """Body: {"product_id", "quantity"?, "unit_price"?, "serial_number"?, "created_by"?}"""
    payload = json_body()
    allowed = {"product_id", "quantity", "unit_price", "serial_number", "created_by"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", {"fields": unknown})
    line = pos_transaction_service.add_detail(
        transaction_id,
        product_id=_required_int(payload, "product_id"),
        quantity=payload.get("quantity", 1),
        unit_price=payload.get("unit_price"),
        serial_number=payload.get("serial_number"),
        created_by=_optional_int(payload, "created_by"),
    )
    return created(line.to_dict())


@transactions_bp.delete("/<int:transaction_id>/details")
def delete_details(transaction_id: int):
    removed = pos_transaction_service.delete_details_for_transaction(transaction_id)
    return success({"deleted": removed}, "deleted")


@transaction_details_bp.get("")
def list_details_for_product():
    product_id = request.args.get("product_id", type=int)
    if product_id is None:
        raise ValidationError("product_id is required")
    return success(dump(pos_transaction_service.details_for_product(product_id, **page_args())))


@transaction_details_bp.get("/<int:detail_id>")
def get_detail(detail_id: int):
    return success(pos_transaction_service.get_detail(detail_id).to_dict())


@transaction_details_bp.route("/<int:detail_id>", methods=["PUT", "PATCH"])
def update_detail(detail_id: int):
    return success(pos_transaction_service.update_detail(detail_id, json_body()).to_dict())


@transaction_details_bp.delete("/<int:detail_id>")
def delete_detail(detail_id: int):
    pos_transaction_service.delete_detail(detail_id)
    return success(None, "deleted")


# =============================================================================
# Payments
# =============================================================================

@transactions_bp.get("/<int:transaction_id>/payments")
def list_transaction_payments(transaction_id: int):
    pos_transaction_service.get_transaction(transaction_id)
    rows = pos_transaction_service.list_payments(transaction_id=transaction_id, **page_args())
    return success(dump(rows))


@transactions_bp.post("/<int:transaction_id>/payments")
def add_payment(transaction_id: int):
    patch = validate_payload(model=Payment, payload=json_body(), policy=PAYMENT_POLICY, partial=False)
    payment = pos_transaction_service.add_payment(
        transaction_id,
        method_id=patch["method_id"],
        amount=patch["amount"],
        status=patch.get("status"),
        payment_date=patch.get("payment_date"),
        created_by=_optional_int(patch, "created_by"),
    )
    return created(payment.to_dict())


@payments_bp.get("")
def list_payments():
    """Query params: transaction_id, method_id, status, start_date, end_date, limit, offset."""
    rows = pos_transaction_service.list_payments(
        transaction_id=request.args.get("transaction_id", type=int),
        method_id=request.args.get("method_id", type=int),
        status=request.args.get("status"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        **page_args(),
    )
    return success(dump(rows))


@payments_bp.get("/<int:payment_id>")
def get_payment(payment_id: int):
    return success(pos_transaction_service.get_payment(payment_id).to_dict())


@payments_bp.route("/<int:payment_id>/status", methods=["PUT", "PATCH"])
def update_payment_status(payment_id: int):
    payload = json_body()
    return success(pos_transaction_service.update_payment_status(payment_id, payload.get("status")).to_dict())


@payments_bp.delete("/<int:payment_id>")
def delete_payment(payment_id: int):
    pos_transaction_service.delete_payment(payment_id)
    return success(None, "deleted")
