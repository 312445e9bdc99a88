# Overview: Service-layer operations for counter transactions: invoices, their lines and their payments.

"""
Counter transaction invariants (authoritative)

Lines:
- Lines only change while the transaction is PENDING.
- Adding a line takes its stock off the shelf in the same unit of work;
  changing its quantity moves the difference; removing it puts stock back.
- A serialised product is sold one unit per line, pinned to a serial that
  flips AVAILABLE -> CONSUMED.
- total_price = unit_price * quantity, rounded to cents.

Lifecycle:
- PENDING -> SUCCESSFUL (complete, needs at least one line)
- PENDING | SUCCESSFUL -> FAILED (void: every line's stock returns and
  every payment is marked FAILED)

Payments:
- Only SUCCESSFUL payments count toward paid.
- A payment is refused once nothing remains due; the last one may
  over-tender and the excess is reported as change.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import (
    ConflictError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, Outlet, Payment, PaymentMethod, PosTransaction, Product, TransactionDetail, User
from ..models.inventory import MASTER_ACTIVE
from ..models.transactions import (
    BALANCE_OVERPAID,
    BALANCE_PAID,
    BALANCE_PARTIAL,
    BALANCE_UNPAID,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_STATUSES,
    PAYMENT_SUCCESSFUL,
    TXN_FAILED,
    TXN_PENDING,
    TXN_SALE,
    TXN_STATUSES,
    TXN_SUCCESSFUL,
    TXN_TYPES,
)
from ..money import ZERO, as_str, mul, quantize, to_money
from ..time_utils import parse_iso_date, utcnow
from . import inventory_service
from .concurrency import lock_for_update, run_with_retry
from .lookup import find_collision, flush_or_conflict, get_live, normalize_status, paginate
from .sequence_service import next_invoice_number

EDITABLE_FIELDS = {"transaction_type", "customer_id", "transaction_date", "notes"}


def _as_date(value, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def _date_bounds(start_date, end_date) -> tuple[datetime | None, datetime | None]:
    """Inclusive civil-date range as [start 00:00, day after end 00:00)."""
    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start and end and start > end:
        raise ValidationError("start_date must not be after end_date")
    lower = datetime.combine(start, time.min) if start else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return lower, upper


def _quantity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("quantity must be an integer")
    if value <= 0:
        raise ValidationError("quantity must be >= 1")
    return value


def _unit_price(value) -> Decimal:
    price = to_money(value, "unit_price")
    if price < 0:
        raise ValidationError("unit_price must be >= 0")
    return price


# =============================================================================
# Transactions
# =============================================================================

def _locked(transaction_id: int) -> PosTransaction:
    txn = lock_for_update(
        PosTransaction.live().filter(PosTransaction.id == transaction_id)
    ).first()
    if txn is None:
        raise NotFoundError("Transaction not found", {"id": transaction_id})
    return txn


def _require_pending(txn: PosTransaction) -> None:
    if txn.status != TXN_PENDING:
        raise InvalidStateError(
            f"transaction is {txn.status}; lines can only change while {TXN_PENDING}",
            {"transaction_id": txn.id, "status": txn.status},
        )


def create_transaction(
    *,
    outlet_id: int,
    user_id: int,
    transaction_type: str | None = None,
    customer_id: int | None = None,
    invoice_number: str | None = None,
    transaction_date: datetime | None = None,
    notes: str | None = None,
) -> PosTransaction:
    """
    Open a PENDING transaction at an outlet.

    Without an explicit invoice_number the next INV-<outlet>-<n> is
    allocated from the outlet's counter.
    """
    kind = normalize_status(transaction_type or TXN_SALE, TXN_TYPES, "transaction_type")
    invoice = None
    if invoice_number is not None:
        invoice = str(invoice_number).strip()
        if not invoice:
            raise ValidationError("invoice_number cannot be blank")

    def _op() -> PosTransaction:
        outlet = get_live(Outlet, outlet_id, "Outlet")
        get_live(User, user_id, "User")
        if customer_id is not None:
            get_live(Customer, customer_id, "Customer")
        if invoice and find_collision(PosTransaction, PosTransaction.invoice_number, invoice):
            raise ConflictError("invoice number already in use", {"invoice_number": invoice})

        txn = PosTransaction(
            invoice_number=invoice or next_invoice_number(outlet.id),
            transaction_date=transaction_date or utcnow(),
            transaction_type=kind,
            status=TXN_PENDING,
            notes=notes,
            user_id=user_id,
            customer_id=customer_id,
            outlet_id=outlet.id,
            created_by=user_id,
        )
        db.session.add(txn)
        flush_or_conflict("invoice number already in use")
        db.session.commit()
        current_app.logger.info("transaction %s opened at outlet %s", txn.invoice_number, outlet.id)
        return txn

    return run_with_retry(_op)


def get_transaction(transaction_id: int) -> PosTransaction:
    return get_live(PosTransaction, transaction_id, "Transaction")


def get_by_invoice(invoice_number: str) -> PosTransaction:
    invoice = (invoice_number or "").strip()
    if not invoice:
        raise ValidationError("invoice_number is required")
    txn = PosTransaction.live().filter(PosTransaction.invoice_number == invoice).first()
    if txn is None:
        raise NotFoundError("Transaction not found", {"invoice_number": invoice})
    return txn


def list_transactions(
    *,
    outlet_id: int | None = None,
    customer_id: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit=None,
    offset=None,
) -> list[PosTransaction]:
    lower, upper = _date_bounds(start_date, end_date)
    query = PosTransaction.live()
    if outlet_id is not None:
        query = query.filter(PosTransaction.outlet_id == outlet_id)
    if customer_id is not None:
        query = query.filter(PosTransaction.customer_id == customer_id)
    if user_id is not None:
        query = query.filter(PosTransaction.user_id == user_id)
    if status:
        query = query.filter(PosTransaction.status == normalize_status(status, TXN_STATUSES))
    if lower is not None:
        query = query.filter(PosTransaction.transaction_date >= lower)
    if upper is not None:
        query = query.filter(PosTransaction.transaction_date < upper)
    return paginate(query, (PosTransaction.transaction_date.desc(), PosTransaction.id.desc()), limit, offset)


def update_transaction(transaction_id: int, patch: dict) -> PosTransaction:
    """Edit header fields of a PENDING transaction; lines follow a type change."""
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    cleaned = dict(patch)
    if "transaction_type" in cleaned:
        cleaned["transaction_type"] = normalize_status(cleaned["transaction_type"], TXN_TYPES, "transaction_type")
    if "transaction_date" in cleaned and cleaned["transaction_date"] is None:
        raise ValidationError("transaction_date cannot be blank")

    def _op() -> PosTransaction:
        txn = _locked(transaction_id)
        _require_pending(txn)
        if cleaned.get("customer_id") is not None:
            get_live(Customer, cleaned["customer_id"], "Customer")
        for key, value in cleaned.items():
            setattr(txn, key, value)
        if "transaction_type" in cleaned:
            for line in _lines(txn.id):
                line.transaction_type = txn.transaction_type
        db.session.commit()
        return txn

    return run_with_retry(_op)


def complete_transaction(transaction_id: int) -> PosTransaction:
    def _op() -> PosTransaction:
        txn = _locked(transaction_id)
        if txn.status != TXN_PENDING:
            raise InvalidTransitionError(txn.status, TXN_SUCCESSFUL)
        if not _lines(txn.id):
            raise InvalidStateError("transaction has no lines", {"transaction_id": txn.id})
        txn.status = TXN_SUCCESSFUL
        db.session.commit()
        current_app.logger.info("transaction %s completed", txn.invoice_number)
        return txn

    return run_with_retry(_op)


def void_transaction(transaction_id: int) -> PosTransaction:
    """Mark FAILED, return every line's stock and fail every payment, in one commit."""
    def _op() -> PosTransaction:
        txn = _locked(transaction_id)
        if txn.status == TXN_FAILED:
            raise InvalidTransitionError(txn.status, TXN_FAILED)
        for line in _lines(txn.id):
            _restock(line)
        for payment in Payment.live().filter(Payment.transaction_id == txn.id).all():
            payment.status = PAYMENT_FAILED
        txn.status = TXN_FAILED
        db.session.commit()
        current_app.logger.info("transaction %s voided", txn.invoice_number)
        return txn

    return run_with_retry(_op)


def delete_transaction(transaction_id: int) -> None:
    """
    Soft-delete a PENDING or FAILED transaction with its lines and payments.

    A PENDING transaction's stock goes back to the shelf first; a completed
    one has to be voided before it can be removed.
    """
    def _op() -> None:
        txn = _locked(transaction_id)
        if txn.status == TXN_SUCCESSFUL:
            raise InvalidStateError("void a completed transaction before deleting it", {"transaction_id": txn.id})
        moment = utcnow()
        for line in _lines(txn.id):
            if txn.status == TXN_PENDING:
                _restock(line)
            line.soft_delete(moment)
        for payment in Payment.live().filter(Payment.transaction_id == txn.id).all():
            payment.soft_delete(moment)
        txn.soft_delete(moment)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Lines
# =============================================================================

def _lines(transaction_id: int) -> list[TransactionDetail]:
    return (
        TransactionDetail.live()
        .filter(TransactionDetail.transaction_id == transaction_id)
        .order_by(TransactionDetail.id.asc())
        .all()
    )


def _restock(line: TransactionDetail) -> None:
    """Undo a line's stock movement. Does not commit."""
    if line.serial_number_id is not None:
        inventory_service.restore_serial_locked(inventory_service.get_serial(line.serial_number_id))
    else:
        inventory_service.return_stock(line.product_id, line.quantity)


def add_detail(
    transaction_id: int,
    *,
    product_id: int,
    quantity=1,
    unit_price=None,
    serial_number: str | None = None,
    created_by: int | None = None,
) -> TransactionDetail:
    """
    Add a product line and take its stock.

    unit_price defaults to the product's selling price. Serialised products
    need serial_number and a quantity of 1.
    """
    qty = _quantity(quantity)
    price = _unit_price(unit_price) if unit_price is not None else None

    def _op() -> TransactionDetail:
        txn = _locked(transaction_id)
        _require_pending(txn)
        product = get_live(Product, product_id, "Product")
        if not product.is_active:
            raise InvalidStateError("product is not active", {"product_id": product_id})

        serial_id = None
        if product.has_serial_number:
            if not serial_number:
                raise ValidationError("serial_number is required for serialised products")
            if qty != 1:
                raise ValidationError("serialised products are sold one unit per line")
            serial_id = inventory_service.consume_serial_locked(product.id, serial_number).id
        else:
            if serial_number:
                raise ValidationError("product does not track serial numbers", {"product_id": product_id})
            if not inventory_service.try_deduct_stock(product.id, qty):
                raise InsufficientStockError(
                    "insufficient stock",
                    {"product_id": product.id, "on_hand": product.stock, "requested": qty},
                )

        line_price = price if price is not None else quantize(Decimal(product.selling_price))
        line = TransactionDetail(
            transaction_id=txn.id,
            transaction_type=txn.transaction_type,
            product_id=product.id,
            serial_number_id=serial_id,
            quantity=qty,
            unit_price=line_price,
            total_price=mul(line_price, qty),
            created_by=created_by,
        )
        db.session.add(line)
        db.session.commit()
        return line

    return run_with_retry(_op)


def get_detail(detail_id: int) -> TransactionDetail:
    return get_live(TransactionDetail, detail_id, "Transaction detail")


def update_detail(detail_id: int, patch: dict) -> TransactionDetail:
    """Change quantity and/or unit_price of a line on a PENDING transaction."""
    unknown = set(patch) - {"quantity", "unit_price"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    qty = _quantity(patch["quantity"]) if patch.get("quantity") is not None else None
    price = _unit_price(patch["unit_price"]) if patch.get("unit_price") is not None else None

    def _op() -> TransactionDetail:
        line = get_detail(detail_id)
        txn = _locked(line.transaction_id)
        _require_pending(txn)

        if qty is not None and qty != line.quantity:
            if line.serial_number_id is not None:
                raise ValidationError("serialised lines always hold one unit")
            delta = qty - line.quantity
            if delta > 0:
                if not inventory_service.try_deduct_stock(line.product_id, delta):
                    raise InsufficientStockError(
                        "insufficient stock", {"product_id": line.product_id, "requested": delta}
                    )
            else:
                inventory_service.return_stock(line.product_id, -delta)
            line.quantity = qty
        if price is not None:
            line.unit_price = price
        line.total_price = mul(line.unit_price, line.quantity)
        db.session.commit()
        return line

    return run_with_retry(_op)


def delete_detail(detail_id: int) -> None:
    def _op() -> None:
        line = get_detail(detail_id)
        txn = _locked(line.transaction_id)
        _require_pending(txn)
        _restock(line)
        line.soft_delete()
        db.session.commit()

    run_with_retry(_op)


def delete_details_for_transaction(transaction_id: int) -> int:
    """Remove every line of a PENDING transaction; returns how many went."""
    def _op() -> int:
        txn = _locked(transaction_id)
        _require_pending(txn)
        lines = _lines(txn.id)
        moment = utcnow()
        for line in lines:
            _restock(line)
            line.soft_delete(moment)
        db.session.commit()
        return len(lines)

    return run_with_retry(_op)


def list_details(transaction_id: int) -> list[TransactionDetail]:
    get_transaction(transaction_id)
    return _lines(transaction_id)


def details_for_product(product_id: int, *, limit=None, offset=None) -> list[TransactionDetail]:
    get_live(Product, product_id, "Product")
    query = TransactionDetail.live().filter(TransactionDetail.product_id == product_id)
    return paginate(query, (TransactionDetail.id.desc(),), limit, offset)


# =============================================================================
# Payments
# =============================================================================

def transaction_total(transaction_id: int) -> Decimal:
    value = (
        db.session.query(func.sum(TransactionDetail.total_price))
        .filter(
            TransactionDetail.transaction_id == transaction_id,
            TransactionDetail.deleted_at.is_(None),
        )
        .scalar()
    )
    return quantize(Decimal(value)) if value is not None else ZERO


def amount_paid(transaction_id: int) -> Decimal:
    value = (
        db.session.query(func.sum(Payment.amount))
        .filter(
            Payment.transaction_id == transaction_id,
            Payment.status == PAYMENT_SUCCESSFUL,
            Payment.deleted_at.is_(None),
        )
        .scalar()
    )
    return quantize(Decimal(value)) if value is not None else ZERO


def _balance_status(due: Decimal, paid: Decimal) -> str:
    if paid <= 0:
        return BALANCE_UNPAID
    if paid < due:
        return BALANCE_PARTIAL
    if paid == due:
        return BALANCE_PAID
    return BALANCE_OVERPAID


def payment_summary(transaction_id: int) -> dict:
    """
    Totals for one transaction:
        total, paid, remaining (never below zero), change_due, payment_status
    """
    txn = get_transaction(transaction_id)
    due = transaction_total(txn.id)
    paid = amount_paid(txn.id)
    return {
        "transaction_id": txn.id,
        "invoice_number": txn.invoice_number,
        "total": as_str(due),
        "paid": as_str(paid),
        "remaining": as_str(max(due - paid, ZERO)),
        "change_due": as_str(max(paid - due, ZERO)),
        "payment_status": _balance_status(due, paid),
    }


def add_payment(
    transaction_id: int,
    *,
    method_id: int,
    amount,
    status: str | None = None,
    payment_date: datetime | None = None,
    created_by: int | None = None,
) -> Payment:
    """
    Record a payment against a transaction that still has money due.

    Raises:
        InvalidStateError: voided transaction, or nothing left to pay
        ValidationError: non-positive amount or inactive method
    """
    value = to_money(amount, "amount")
    if value <= 0:
        raise ValidationError("amount must be > 0")
    target = normalize_status(status, PAYMENT_STATUSES) if status is not None else PAYMENT_SUCCESSFUL

    def _op() -> Payment:
        txn = _locked(transaction_id)
        if txn.status == TXN_FAILED:
            raise InvalidStateError("cannot pay a voided transaction", {"transaction_id": txn.id})
        method = get_live(PaymentMethod, method_id, "Payment method")
        if method.status != MASTER_ACTIVE:
            raise ValidationError("payment method is not active", {"method_id": method_id})

        remaining = transaction_total(txn.id) - amount_paid(txn.id)
        if remaining <= 0:
            raise InvalidStateError("transaction has no remaining balance due", {"transaction_id": txn.id})

        payment = Payment(
            transaction_id=txn.id,
            method_id=method.id,
            amount=value,
            status=target,
            payment_date=payment_date or utcnow(),
            created_by=created_by,
        )
        db.session.add(payment)
        db.session.commit()
        current_app.logger.info(
            "payment of %s by %s on transaction %s", as_str(value), method.name, txn.invoice_number
        )
        return payment

    return run_with_retry(_op)


def get_payment(payment_id: int) -> Payment:
    return get_live(Payment, payment_id, "Payment")


def list_payments(
    *,
    transaction_id: int | None = None,
    method_id: int | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit=None,
    offset=None,
) -> list[Payment]:
    lower, upper = _date_bounds(start_date, end_date)
    query = Payment.live()
    if transaction_id is not None:
        query = query.filter(Payment.transaction_id == transaction_id)
    if method_id is not None:
        query = query.filter(Payment.method_id == method_id)
    if status:
        query = query.filter(Payment.status == normalize_status(status, PAYMENT_STATUSES))
    if lower is not None:
        query = query.filter(Payment.payment_date >= lower)
    if upper is not None:
        query = query.filter(Payment.payment_date < upper)
    return paginate(query, (Payment.payment_date.desc(), Payment.id.desc()), limit, offset)


def update_payment_status(payment_id: int, status: str) -> Payment:
    """Settle a PENDING payment as SUCCESSFUL or FAILED; settled payments are final."""
    target = normalize_status(status, PAYMENT_STATUSES)

    def _op() -> Payment:
        payment = get_payment(payment_id)
        txn = _locked(payment.transaction_id)
        if payment.status != PAYMENT_PENDING or target == PAYMENT_PENDING:
            raise InvalidTransitionError(payment.status, target)
        if target == PAYMENT_SUCCESSFUL and txn.status == TXN_FAILED:
            raise InvalidStateError("cannot pay a voided transaction", {"transaction_id": txn.id})
        payment.status = target
        db.session.commit()
        return payment

    return run_with_retry(_op)


def delete_payment(payment_id: int) -> None:
    def _op() -> None:
        get_payment(payment_id).soft_delete()
        db.session.commit()

    run_with_retry(_op)
