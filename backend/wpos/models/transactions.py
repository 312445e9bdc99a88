from __future__ import annotations

from ..extensions import db
from ..money import as_str
from ..time_utils import to_utc_z, utcnow
from .base import AuditMixin, live_unique_index
from .inventory import MASTER_ACTIVE


TXN_PENDING = "PENDING"
TXN_SUCCESSFUL = "SUCCESSFUL"
TXN_FAILED = "FAILED"
TXN_STATUSES = {TXN_PENDING, TXN_SUCCESSFUL, TXN_FAILED}

TXN_SALE = "SALE"
TXN_SERVICE = "SERVICE"
TXN_TYPES = {TXN_SALE, TXN_SERVICE}

PAYMENT_PENDING = "PENDING"
PAYMENT_SUCCESSFUL = "SUCCESSFUL"
PAYMENT_FAILED = "FAILED"
PAYMENT_STATUSES = {PAYMENT_PENDING, PAYMENT_SUCCESSFUL, PAYMENT_FAILED}

# Settlement labels derived from paid vs. total; never stored
BALANCE_UNPAID = "UNPAID"
BALANCE_PARTIAL = "PARTIAL"
BALANCE_PAID = "PAID"
BALANCE_OVERPAID = "OVERPAID"


class PaymentMethod(AuditMixin, db.Model):
    __tablename__ = "payment_methods"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status, **self.audit_dict()}


class InvoiceSequence(db.Model):
    """Per-outlet monotonic counter behind INV-<outlet>-<n> invoice numbers."""
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", name="uq_invoice_sequences_outlet"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class PosTransaction(AuditMixin, db.Model):
    """
    Over-the-counter sale of parts and services at an outlet.

    Lifecycle:
    - PENDING: lines may be added, changed or removed; stock moves with them
    - SUCCESSFUL: completed; lines are frozen, payments may still arrive
    - FAILED: voided; every line's stock went back to the shelf (terminal)
    """
    __tablename__ = "transactions"
    __table_args__ = (
        live_unique_index("uq_transactions_invoice_live", "invoice_number"),
        db.Index("ix_transactions_outlet_date", "outlet_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    transaction_date = db.Column(db.DateTime, nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, default=TXN_SALE)
    status = db.Column(db.String(16), nullable=False, default=TXN_PENDING)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "transaction_date": to_utc_z(self.transaction_date),
            "transaction_type": self.transaction_type,
            "status": self.status,
            "notes": self.notes,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "outlet_id": self.outlet_id,
            **self.audit_dict(),
        }


class TransactionDetail(AuditMixin, db.Model):
    """One line of a counter transaction: a product, optionally pinned to a serial."""
    __tablename__ = "transaction_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_details_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_transaction_details_unit_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    transaction_type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    serial_number_id = db.Column(
        db.Integer, db.ForeignKey("product_serial_numbers.id"), nullable=True, index=True
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    total_price = db.Column(db.Numeric(15, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transaction_type": self.transaction_type,
            "product_id": self.product_id,
            "serial_number_id": self.serial_number_id,
            "quantity": self.quantity,
            "unit_price": as_str(self.unit_price),
            "total_price": as_str(self.total_price),
            **self.audit_dict(),
        }


class Payment(AuditMixin, db.Model):
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_SUCCESSFUL)
    payment_date = db.Column(db.DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "method_id": self.method_id,
            "amount": as_str(self.amount),
            "status": self.status,
            "payment_date": to_utc_z(self.payment_date),
            **self.audit_dict(),
        }
