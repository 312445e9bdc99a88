# Overview: Service-layer operations for installment plans; schedules, payments, late fees, overdue tracking.

"""
Installment plans

SCHEDULE:
    financed   = (sale_price - down_payment) x (1 + rate / 100)     rate > 0
               = (sale_price - down_payment)                        otherwise
    instalment = financed / N, rounded half-to-even to cents
    the last instalment absorbs the rounding drift so the N amounts sum to financed
    due date k = start_date + k months (month-end clamped), k = 1..N

PAYMENTS:
    A payment is overdue once today (UTC civil date) is past its due date.
    Overdue payments carry a late fee:
        D = whole days from the due date to now
        M = D // 30 + 1
        late_fee = due_amount x M x 1%, rounded half-to-even
    PENDING -> (LATE ->) PAID. remaining_balance drops by the amount paid; at
    zero the plan is COMPLETED. An ACTIVE plan can be written off (DEFAULTED).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN

from flask import current_app
from sqlalchemy import func, update

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InstallmentPayment, VehicleInstallment
from ..models.sales import (
    INSTALLMENT_ACTIVE,
    INSTALLMENT_COMPLETED,
    INSTALLMENT_DEFAULTED,
    OUTSTANDING_PAYMENT_STATUSES,
    PAYMENT_LATE,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_TRANSFER,
    PAYMENT_PAID,
    PAYMENT_PENDING,
)
from ..money import CENT, ZERO, mul, quantize, to_money
from ..time_utils import add_months, days_between, parse_iso_date, utcnow
from .concurrency import lock_for_update, run_with_retry
from .lookup import get_live, normalize_status

MAX_INSTALLMENTS = 60
LATE_FEE_RATE = Decimal("0.01")
LATE_FEE_PERIOD_DAYS = 30
MAX_INTEREST_RATE = Decimal("99999")
RATE_STEP = Decimal("0.0001")
PAYMENT_CHANNELS = {PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER}
PLAN_STATUSES = {INSTALLMENT_ACTIVE, INSTALLMENT_COMPLETED, INSTALLMENT_DEFAULTED}


@dataclass(frozen=True)
class InstallmentTerms:
    count: int
    start_date: date
    interest_rate: Decimal | None = None


@dataclass(frozen=True)
class ScheduledPayment:
    payment_number: int
    due_date: date
    amount: Decimal


def parse_terms(config) -> InstallmentTerms:
    """Validate the installment configuration of a sale request."""
    if not isinstance(config, dict):
        raise ValidationError("installment configuration is required for installment sales")

    count = config.get("installment_count")
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("installment_count must be an integer")
    if not 1 <= count <= MAX_INSTALLMENTS:
        raise ValidationError(f"installment_count must be between 1 and {MAX_INSTALLMENTS}")

    raw_start = config.get("start_date")
    if isinstance(raw_start, date) and not isinstance(raw_start, datetime):
        start = raw_start
    else:
        try:
            start = parse_iso_date(raw_start) if isinstance(raw_start, str) else None
        except ValueError:
            start = None
        if start is None:
            raise ValidationError("start_date must be a date in YYYY-MM-DD format")

    rate = parse_rate(config.get("interest_rate"))
    return InstallmentTerms(count=count, start_date=start, interest_rate=rate)


def parse_rate(value) -> Decimal | None:
    """
    Percentage rate kept as given, up to four decimal places.

    Unlike money it is not rounded to cents: 2.125 stays 2.125.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError("interest_rate must be a number")
    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("interest_rate must be a number", {"interest_rate": value})
    if not rate.is_finite():
        raise ValidationError("interest_rate must be a finite number")
    if rate < 0:
        raise ValidationError("interest_rate must be >= 0")
    if rate > MAX_INTEREST_RATE:
        raise ValidationError(f"interest_rate must be <= {MAX_INTEREST_RATE}")
    if rate != rate.quantize(RATE_STEP):
        raise ValidationError("interest_rate allows at most four decimal places", {"interest_rate": str(value)})
    return rate


def financed_amount(principal: Decimal, rate: Decimal | None) -> Decimal:
    if rate is not None and rate > 0:
        return mul(principal, Decimal(1) + rate / Decimal(100))
    return quantize(principal)


def build_schedule(financed: Decimal, terms: InstallmentTerms) -> list[ScheduledPayment]:
    """N equal half-even instalments; the last one takes whatever rounding left over."""
    each = (financed / terms.count).quantize(CENT, rounding=ROUND_HALF_EVEN)
    last = financed - each * (terms.count - 1)
    schedule = []
    for k in range(1, terms.count + 1):
        schedule.append(
            ScheduledPayment(
                payment_number=k,
                due_date=add_months(terms.start_date, k),
                amount=last if k == terms.count else each,
            )
        )
    return schedule


def create_plan(*, sales_transaction_id: int, sale_price: Decimal, down_payment: Decimal, terms: InstallmentTerms, created_by: int | None = None) -> VehicleInstallment:
    """Persist the plan and its N payment rows in the caller's transaction."""
    financed = financed_amount(sale_price - down_payment, terms.interest_rate)
    schedule = build_schedule(financed, terms)

    plan = VehicleInstallment(
        sales_transaction_id=sales_transaction_id,
        total_amount=sale_price,
        down_payment=down_payment,
        financed_amount=financed,
        installment_amount=schedule[0].amount,
        installment_count=terms.count,
        interest_rate=terms.interest_rate,
        start_date=terms.start_date,
        end_date=schedule[-1].due_date,
        status=INSTALLMENT_ACTIVE,
        remaining_balance=financed,
        created_by=created_by,
    )
    db.session.add(plan)
    db.session.flush()

    for row in schedule:
        db.session.add(
            InstallmentPayment(
                installment_id=plan.id,
                payment_number=row.payment_number,
                due_date=row.due_date,
                due_amount=row.amount,
                payment_status=PAYMENT_PENDING,
                created_by=created_by,
            )
        )
    return plan


# =============================================================================
# Late fees
# =============================================================================

def is_overdue(due_date: date, now: datetime) -> bool:
    return now.date() > due_date


def late_fee(due_amount: Decimal, due_date: date, now: datetime) -> Decimal:
    if not is_overdue(due_date, now):
        return ZERO
    days_late = days_between(due_date, now)
    periods = days_late // LATE_FEE_PERIOD_DAYS + 1
    return mul(due_amount, LATE_FEE_RATE * periods)


# =============================================================================
# Payments
# =============================================================================

def _next_due(installment_id: int) -> date | None:
    return (
        db.session.query(func.min(InstallmentPayment.due_date))
        .filter(
            InstallmentPayment.installment_id == installment_id,
            InstallmentPayment.deleted_at.is_(None),
            InstallmentPayment.payment_status.in_(OUTSTANDING_PAYMENT_STATUSES),
        )
        .scalar()
    )


def process_payment(
    payment_id: int,
    *,
    paid_amount,
    payment_method: str,
    payment_reference: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Record a payment against one scheduled instalment.

    Returns the payment, its plan, the status path the payment took and
    the next outstanding due date (None once nothing is left).
    """
    amount = to_money(paid_amount, "paid_amount")
    if amount <= 0:
        raise ValidationError("paid_amount must be > 0")
    method = normalize_status(payment_method, PAYMENT_CHANNELS, "payment_method")

    def _op() -> dict:
        moment = now or utcnow()
        payment = lock_for_update(
            InstallmentPayment.live().filter(InstallmentPayment.id == payment_id)
        ).first()
        if payment is None:
            raise NotFoundError("Installment payment not found", {"id": payment_id})
        if payment.payment_status not in OUTSTANDING_PAYMENT_STATUSES:
            raise InvalidStateError(f"payment is already {payment.payment_status}", {"id": payment.id})

        plan = lock_for_update(
            VehicleInstallment.live().filter(VehicleInstallment.id == payment.installment_id)
        ).first()
        if plan is None:
            raise NotFoundError("Installment not found", {"id": payment.installment_id})
        if plan.status != INSTALLMENT_ACTIVE:
            raise InvalidStateError(f"installment is {plan.status}", {"id": plan.id})

        path = [payment.payment_status]
        fee = late_fee(payment.due_amount, payment.due_date, moment)
        if is_overdue(payment.due_date, moment) and payment.payment_status == PAYMENT_PENDING:
            payment.payment_status = PAYMENT_LATE
            path.append(PAYMENT_LATE)
            db.session.flush()

        payment.paid_at = moment
        payment.paid_amount = amount
        payment.late_fee = fee
        payment.payment_method = method
        payment.payment_reference = payment_reference
        payment.notes = notes
        payment.payment_status = PAYMENT_PAID
        path.append(PAYMENT_PAID)

        balance = quantize(plan.remaining_balance - amount)
        if balance <= 0:
            plan.remaining_balance = ZERO
            plan.status = INSTALLMENT_COMPLETED
        else:
            plan.remaining_balance = balance
        db.session.flush()

        next_due = _next_due(plan.id)
        db.session.commit()
        if fee > 0:
            current_app.logger.info("late fee %s charged on installment payment %s", fee, payment.id)
        return {
            "payment": payment,
            "installment": plan,
            "status_path": path,
            "next_payment_due": next_due,
        }

    return run_with_retry(_op)


def overdue_payments(*, now: datetime | None = None) -> list[InstallmentPayment]:
    today = (now or utcnow()).date()
    return (
        InstallmentPayment.live()
        .filter(
            InstallmentPayment.due_date < today,
            InstallmentPayment.payment_status.in_(OUTSTANDING_PAYMENT_STATUSES),
        )
        .order_by(InstallmentPayment.due_date.asc(), InstallmentPayment.id.asc())
        .all()
    )


def mark_overdue(*, now: datetime | None = None) -> int:
    """Flip PENDING payments past their due date to LATE. Returns how many changed."""
    today = (now or utcnow()).date()

    def _op() -> int:
        result = db.session.execute(
            update(InstallmentPayment)
            .where(
                InstallmentPayment.deleted_at.is_(None),
                InstallmentPayment.payment_status == PAYMENT_PENDING,
                InstallmentPayment.due_date < today,
            )
            .values(payment_status=PAYMENT_LATE)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount or 0

    return run_with_retry(_op)


def write_off(installment_id: int) -> VehicleInstallment:
    """Administratively close an ACTIVE plan as DEFAULTED."""
    def _op() -> VehicleInstallment:
        plan = lock_for_update(
            VehicleInstallment.live().filter(VehicleInstallment.id == installment_id)
        ).first()
        if plan is None:
            raise NotFoundError("Installment not found", {"id": installment_id})
        if plan.status != INSTALLMENT_ACTIVE:
            raise InvalidStateError(f"installment is {plan.status}", {"id": plan.id})
        plan.status = INSTALLMENT_DEFAULTED
        db.session.commit()
        current_app.logger.warning(
            "installment %s written off with %s outstanding", plan.id, plan.remaining_balance
        )
        return plan

    return run_with_retry(_op)


# =============================================================================
# Queries
# =============================================================================

def get_installment(installment_id: int) -> VehicleInstallment:
    return get_live(VehicleInstallment, installment_id, "Installment")


def installment_for_sale(sales_transaction_id: int) -> VehicleInstallment:
    plan = VehicleInstallment.live().filter(VehicleInstallment.sales_transaction_id == sales_transaction_id).first()
    if plan is None:
        raise NotFoundError("Installment not found", {"sales_transaction_id": sales_transaction_id})
    return plan


def list_installments(*, status: str | None = None) -> list[VehicleInstallment]:
    query = VehicleInstallment.live()
    if status:
        query = query.filter(VehicleInstallment.status == normalize_status(status, PLAN_STATUSES))
    return query.order_by(VehicleInstallment.id.desc()).all()


def get_payment(payment_id: int) -> InstallmentPayment:
    return get_live(InstallmentPayment, payment_id, "Installment payment")


def payments_for(installment_id: int) -> list[InstallmentPayment]:
    get_installment(installment_id)
    return (
        InstallmentPayment.live()
        .filter(InstallmentPayment.installment_id == installment_id)
        .order_by(InstallmentPayment.payment_number.asc())
        .all()
    )
