from __future__ import annotations

from ..extensions import db
from ..money import as_str
from ..time_utils import to_iso_date, to_utc_z, utcnow
from .base import AuditMixin


SALE_KIND_CASH = "CASH"
SALE_KIND_INSTALLMENT = "INSTALLMENT"
SALE_KINDS = {SALE_KIND_CASH, SALE_KIND_INSTALLMENT}

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_TRANSFER = "TRANSFER"
PAYMENT_METHOD_INSTALLMENT = "INSTALLMENT"
PAYMENT_METHODS = {PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER, PAYMENT_METHOD_INSTALLMENT}

TXN_PENDING = "PENDING"
TXN_SUCCESSFUL = "SUCCESSFUL"
TXN_FAILED = "FAILED"

INSTALLMENT_ACTIVE = "ACTIVE"
INSTALLMENT_COMPLETED = "COMPLETED"
INSTALLMENT_DEFAULTED = "DEFAULTED"

PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_LATE = "LATE"
PAYMENT_SKIPPED = "SKIPPED"
OUTSTANDING_PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_LATE)


class VehicleSalesTransaction(AuditMixin, db.Model):
    """
    Sale of a showroom vehicle to a customer.

    INSTALLMENT sales carry a down payment strictly between 0 and sale_price
    and own exactly one VehicleInstallment.
    """
    __tablename__ = "vehicle_sales_transactions"
    __table_args__ = (
        db.Index("ix_vehicle_sales_transactions_status", "transaction_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sales_person_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    sale_price = db.Column(db.Numeric(15, 2), nullable=False)
    down_payment = db.Column(db.Numeric(15, 2), nullable=True)
    sale_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    transaction_type = db.Column(db.String(16), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    transaction_status = db.Column(db.String(16), nullable=False, default=TXN_SUCCESSFUL)
    profit_amount = db.Column(db.Numeric(15, 2), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "customer_id": self.customer_id,
            "sales_person_id": self.sales_person_id,
            "sale_price": as_str(self.sale_price),
            "down_payment": as_str(self.down_payment),
            "sale_date": to_utc_z(self.sale_date),
            "transaction_type": self.transaction_type,
            "payment_method": self.payment_method,
            "transaction_status": self.transaction_status,
            "profit_amount": as_str(self.profit_amount),
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            **self.audit_dict(),
        }


class VehicleInstallment(AuditMixin, db.Model):
    """
    Financing plan attached to an installment sale.

    financed_amount = (total_amount - down_payment) * (1 + interest_rate / 100)
    remaining_balance starts at financed_amount and only moves down.
    """
    __tablename__ = "vehicle_installments"
    __table_args__ = (
        db.UniqueConstraint("sales_transaction_id", name="uq_vehicle_installments_sale"),
        db.Index("ix_vehicle_installments_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_transaction_id = db.Column(
        db.Integer, db.ForeignKey("vehicle_sales_transactions.id"), nullable=False
    )
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)
    down_payment = db.Column(db.Numeric(15, 2), nullable=False)
    financed_amount = db.Column(db.Numeric(15, 2), nullable=False)
    installment_amount = db.Column(db.Numeric(15, 2), nullable=False)
    installment_count = db.Column(db.Integer, nullable=False)
    interest_rate = db.Column(db.Numeric(9, 4), nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INSTALLMENT_ACTIVE)
    remaining_balance = db.Column(db.Numeric(15, 2), nullable=False)

    sales_transaction = db.relationship("VehicleSalesTransaction")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_transaction_id": self.sales_transaction_id,
            "total_amount": as_str(self.total_amount),
            "down_payment": as_str(self.down_payment),
            "financed_amount": as_str(self.financed_amount),
            "installment_amount": as_str(self.installment_amount),
            "installment_count": self.installment_count,
            "interest_rate": str(self.interest_rate) if self.interest_rate is not None else None,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "remaining_balance": as_str(self.remaining_balance),
            **self.audit_dict(),
        }


class InstallmentPayment(AuditMixin, db.Model):
    """
    One scheduled payment of an installment plan.

    STATUS FLOW:
        PENDING -> PAID
        PENDING -> LATE -> PAID   (paid after due_date; late_fee applied)
    """
    __tablename__ = "installment_payments"
    __table_args__ = (
        db.UniqueConstraint("installment_id", "payment_number", name="uq_installment_payments_number"),
        db.Index("ix_installment_payments_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    installment_id = db.Column(db.Integer, db.ForeignKey("vehicle_installments.id"), nullable=False, index=True)
    payment_number = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    due_amount = db.Column(db.Numeric(15, 2), nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    paid_amount = db.Column(db.Numeric(15, 2), nullable=True)
    late_fee = db.Column(db.Numeric(15, 2), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    payment_method = db.Column(db.String(16), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "installment_id": self.installment_id,
            "payment_number": self.payment_number,
            "due_date": to_iso_date(self.due_date),
            "due_amount": as_str(self.due_amount),
            "paid_at": to_utc_z(self.paid_at),
            "paid_amount": as_str(self.paid_amount),
            "late_fee": as_str(self.late_fee),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            **self.audit_dict(),
        }
