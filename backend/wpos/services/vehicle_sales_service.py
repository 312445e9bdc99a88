# Overview: Service-layer operations for selling showroom vehicles, cash or on installments.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, User, Vehicle, VehicleSalesTransaction
from ..models.sales import (
    PAYMENT_METHOD_INSTALLMENT,
    PAYMENT_METHODS,
    SALE_KIND_CASH,
    SALE_KIND_INSTALLMENT,
    SALE_KINDS,
    TXN_SUCCESSFUL,
)
from ..models.vehicles import OWNERSHIP_CUSTOMER, SALE_FOR_SALE, SALE_SOLD
from ..money import to_money
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .installment_service import create_plan, parse_terms
from .lookup import get_live, normalize_status, paginate
from .vehicle_service import compute_profit


def sell_vehicle(
    *,
    vehicle_id: int,
    customer_id: int,
    sale_price,
    transaction_type: str,
    payment_method: str,
    down_payment=None,
    sales_person_id: int | None = None,
    installment: dict | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Sell a FOR_SALE vehicle to a customer.

    The sale record, the vehicle flip to SOLD/CUSTOMER and (for installment
    sales) the plan with its full payment schedule are written in a single
    transaction. Returns {"transaction", "vehicle", "installment"}.
    """
    price = to_money(sale_price, "sale_price")
    if price <= 0:
        raise ValidationError("sale_price must be > 0")
    kind = normalize_status(transaction_type, SALE_KINDS, "transaction_type")
    method = normalize_status(payment_method, PAYMENT_METHODS, "payment_method")
    if kind == SALE_KIND_CASH and method == PAYMENT_METHOD_INSTALLMENT:
        raise ValidationError("cash sales cannot be paid by installment")

    deposit = to_money(down_payment, "down_payment", allow_none=True)
    terms = None
    if kind == SALE_KIND_INSTALLMENT:
        if deposit is None:
            raise ValidationError("down_payment is required for installment sales")
        if not 0 < deposit < price:
            raise ValidationError("down_payment must be greater than 0 and less than sale_price")
        terms = parse_terms(installment)
    elif deposit is not None and not 0 <= deposit <= price:
        raise ValidationError("down_payment must be between 0 and sale_price")

    def _op() -> dict:
        moment = now or utcnow()
        vehicle = lock_for_update(Vehicle.live().filter(Vehicle.id == vehicle_id)).first()
        if vehicle is None:
            raise NotFoundError("Vehicle not found", {"id": vehicle_id})
        if vehicle.sale_status != SALE_FOR_SALE:
            raise InvalidStateError(
                "vehicle is not for sale", {"id": vehicle.id, "sale_status": vehicle.sale_status}
            )
        get_live(Customer, customer_id, "Customer")
        if sales_person_id is not None:
            get_live(User, sales_person_id, "User")

        sale = VehicleSalesTransaction(
            vehicle_id=vehicle.id,
            customer_id=customer_id,
            sales_person_id=sales_person_id,
            sale_price=price,
            down_payment=deposit,
            sale_date=moment,
            transaction_type=kind,
            payment_method=method,
            transaction_status=TXN_SUCCESSFUL,
            profit_amount=compute_profit(vehicle, price),
            payment_reference=payment_reference,
            notes=notes,
            created_by=sales_person_id,
        )
        db.session.add(sale)

        vehicle.sale_status = SALE_SOLD
        vehicle.ownership_status = OWNERSHIP_CUSTOMER
        vehicle.customer_id = customer_id
        vehicle.selling_price = price
        db.session.flush()

        plan = None
        if terms is not None:
            plan = create_plan(
                sales_transaction_id=sale.id,
                sale_price=price,
                down_payment=deposit,
                terms=terms,
                created_by=sales_person_id,
            )
        db.session.commit()
        current_app.logger.info(
            "vehicle %s sold to customer %s for %s (%s)", vehicle.id, customer_id, price, kind
        )
        return {"transaction": sale, "vehicle": vehicle, "installment": plan}

    return run_with_retry(_op)


def get_sale(sale_id: int) -> VehicleSalesTransaction:
    return get_live(VehicleSalesTransaction, sale_id, "Sales transaction")


def list_sales(
    *,
    vehicle_id: int | None = None,
    customer_id: int | None = None,
    transaction_type: str | None = None,
    limit=None,
    offset=None,
) -> list[VehicleSalesTransaction]:
    query = VehicleSalesTransaction.live()
    if vehicle_id is not None:
        query = query.filter(VehicleSalesTransaction.vehicle_id == vehicle_id)
    if customer_id is not None:
        query = query.filter(VehicleSalesTransaction.customer_id == customer_id)
    if transaction_type:
        query = query.filter(
            VehicleSalesTransaction.transaction_type
            == normalize_status(transaction_type, SALE_KINDS, "transaction_type")
        )
    return paginate(query, (VehicleSalesTransaction.sale_date.desc(), VehicleSalesTransaction.id.desc()), limit, offset)
