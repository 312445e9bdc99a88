# Overview: Service-layer operations for inventory; the stock counter and the serial-number registry.

"""
Inventory ledger invariants (authoritative)

Stock counter:
- Product.stock never goes negative. Every mutation is a single conditional
  UPDATE (stock = stock + :delta WHERE stock + :delta >= 0); a decrement that
  would cross zero matches no row and fails with InsufficientStockError,
  leaving state untouched.

Serialised products (has_serial_number = True):
- stock == number of live serial rows with status AVAILABLE.
- update_stock() is rejected; the counter only moves with serial status:
    register AVAILABLE serial     -> +1
    AVAILABLE -> CONSUMED/DAMAGED -> -1
    restore to AVAILABLE          -> +1
    delete an AVAILABLE serial    -> -1
- CONSUMED and DAMAGED are terminal except through restore_serial().
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import ConflictError, InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductSerialNumber
from ..models.inventory import SERIAL_AVAILABLE, SERIAL_CONSUMED, SERIAL_STATUSES
from .concurrency import run_with_retry
from .lookup import find_collision, flush_or_conflict, get_live, normalize_status


# =============================================================================
# Stock counter
# =============================================================================

def _apply_delta(product_id: int, delta: int) -> bool:
    """
    Atomically add delta to stock unless the result would be negative.

    Returns False (and changes nothing) when the guard fails. Does not commit.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.deleted_at.is_(None),
            Product.stock + delta >= 0,
        )
        .values(stock=Product.stock + delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)


def try_deduct_stock(product_id: int, quantity: int) -> bool:
    """Decrement stock by quantity if enough is on hand; caller owns the transaction."""
    if quantity <= 0:
        raise ValidationError("quantity must be >= 1")
    return _apply_delta(product_id, -quantity)


def return_stock(product_id: int, quantity: int) -> None:
    """Put quantity back on the shelf; caller owns the transaction."""
    if quantity <= 0:
        raise ValidationError("quantity must be >= 1")
    _apply_delta(product_id, quantity)


def update_stock(product_id: int, delta: int) -> Product:
    """
    Apply a signed stock delta to a non-serialised product.

    Raises:
        InsufficientStockError: if the decrement would take stock below zero
        InvalidStateError: for serialised products
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")

    def _op() -> Product:
        product = get_live(Product, product_id, "Product")
        if product.has_serial_number:
            raise InvalidStateError("stock of serialised products follows their serial numbers")
        if delta != 0 and not _apply_delta(product_id, delta):
            raise InsufficientStockError(
                "insufficient stock",
                {"product_id": product_id, "on_hand": product.stock, "requested": -delta},
            )
        db.session.commit()
        db.session.refresh(product)
        return product

    return run_with_retry(_op)


# =============================================================================
# Serial registry
# =============================================================================

def _serialised_product(product_id: int) -> Product:
    product = get_live(Product, product_id, "Product")
    if not product.has_serial_number:
        raise InvalidStateError("product does not track serial numbers", {"product_id": product_id})
    return product


def get_serial(serial_id: int) -> ProductSerialNumber:
    return get_live(ProductSerialNumber, serial_id, "Serial number")


def get_serial_by_number(serial_number: str) -> ProductSerialNumber:
    serial = (
        ProductSerialNumber.live()
        .filter(ProductSerialNumber.serial_number == (serial_number or "").strip())
        .first()
    )
    if serial is None:
        raise NotFoundError("Serial number not found", {"serial_number": serial_number})
    return serial


def list_serials(*, product_id: int | None = None, status: str | None = None) -> list[ProductSerialNumber]:
    query = ProductSerialNumber.live()
    if product_id is not None:
        query = query.filter(ProductSerialNumber.product_id == product_id)
    if status:
        query = query.filter(ProductSerialNumber.status == normalize_status(status, SERIAL_STATUSES))
    return query.order_by(ProductSerialNumber.id.asc()).all()


def create_serial(
    *,
    product_id: int,
    serial_number: str,
    status: str | None = None,
    created_by: int | None = None,
) -> ProductSerialNumber:
    number = (serial_number or "").strip()
    if not number:
        raise ValidationError("serial_number cannot be blank")
    initial = normalize_status(status or SERIAL_AVAILABLE, SERIAL_STATUSES)

    def _op() -> ProductSerialNumber:
        _serialised_product(product_id)
        if find_collision(ProductSerialNumber, ProductSerialNumber.serial_number, number):
            raise ConflictError("serial number already registered", {"serial_number": number})
        serial = ProductSerialNumber(
            product_id=product_id,
            serial_number=number,
            status=initial,
            created_by=created_by,
        )
        db.session.add(serial)
        flush_or_conflict("serial number already registered")
        if initial == SERIAL_AVAILABLE:
            _apply_delta(product_id, 1)
        db.session.commit()
        return serial

    return run_with_retry(_op)


def rename_serial(serial_id: int, serial_number: str) -> ProductSerialNumber:
    number = (serial_number or "").strip()
    if not number:
        raise ValidationError("serial_number cannot be blank")

    def _op() -> ProductSerialNumber:
        serial = get_serial(serial_id)
        if find_collision(ProductSerialNumber, ProductSerialNumber.serial_number, number, exclude_id=serial.id):
            raise ConflictError("serial number already registered", {"serial_number": number})
        serial.serial_number = number
        flush_or_conflict("serial number already registered")
        db.session.commit()
        return serial

    return run_with_retry(_op)


def _retire(serial: ProductSerialNumber, target: str) -> None:
    """AVAILABLE -> CONSUMED/DAMAGED with the matching stock decrement. Does not commit."""
    if serial.status != SERIAL_AVAILABLE:
        raise InvalidStateError(
            f"serial number is {serial.status}, not {SERIAL_AVAILABLE}",
            {"serial_number": serial.serial_number},
        )
    if not _apply_delta(serial.product_id, -1):
        # Counter and registry disagree; refuse rather than go negative
        current_app.logger.error(
            "stock counter out of sync for product %s while retiring serial %s",
            serial.product_id, serial.serial_number,
        )
        raise InsufficientStockError("insufficient stock", {"product_id": serial.product_id})
    serial.status = target


def consume_serial_locked(product_id: int, serial_number: str) -> ProductSerialNumber:
    """
    Flip a chosen serial to CONSUMED and decrement its product's stock.

    Caller owns the transaction.
    """
    serial = get_serial_by_number(serial_number)
    if serial.product_id != product_id:
        raise InvalidStateError(
            "serial number belongs to a different product",
            {"serial_number": serial_number, "product_id": product_id},
        )
    _retire(serial, SERIAL_CONSUMED)
    return serial


def consume_serial(product_id: int, serial_number: str) -> ProductSerialNumber:
    def _op() -> ProductSerialNumber:
        _serialised_product(product_id)
        serial = consume_serial_locked(product_id, serial_number)
        db.session.commit()
        return serial

    return run_with_retry(_op)


def update_serial_status(serial_id: int, status: str) -> ProductSerialNumber:
    """
    Move a serial toward a terminal state (CONSUMED or DAMAGED).

    Going back to AVAILABLE is only possible through restore_serial().
    """
    target = normalize_status(status, SERIAL_STATUSES)
    if target == SERIAL_AVAILABLE:
        raise InvalidStateError("use restore to make a serial number available again")

    def _op() -> ProductSerialNumber:
        serial = get_serial(serial_id)
        _retire(serial, target)
        db.session.commit()
        return serial

    return run_with_retry(_op)


def restore_serial_locked(serial: ProductSerialNumber) -> None:
    if serial.status == SERIAL_AVAILABLE:
        raise InvalidStateError("serial number is already available", {"serial_number": serial.serial_number})
    serial.status = SERIAL_AVAILABLE
    _apply_delta(serial.product_id, 1)


def restore_serial(serial_id: int) -> ProductSerialNumber:
    def _op() -> ProductSerialNumber:
        serial = get_serial(serial_id)
        restore_serial_locked(serial)
        db.session.commit()
        return serial

    return run_with_retry(_op)


def delete_serial(serial_id: int) -> None:
    def _op() -> None:
        serial = get_serial(serial_id)
        if serial.status == SERIAL_AVAILABLE:
            _apply_delta(serial.product_id, -1)
        serial.soft_delete()
        db.session.commit()

    run_with_retry(_op)

