from __future__ import annotations

from ..extensions import db
from ..money import as_str
from ..time_utils import to_iso_date, to_utc_z, utcnow
from .base import AuditMixin, live_unique_index
from .inventory import MASTER_ACTIVE


# Service job lifecycle (see services/service_job_service.py for the transition table)
JOB_QUEUED = "QUEUED"
JOB_WORKING = "WORKING"
JOB_DONE = "DONE"
JOB_PICKED_UP = "PICKED_UP"
JOB_COMPLAINT = "COMPLAINT"
JOB_STATUSES = {JOB_QUEUED, JOB_WORKING, JOB_DONE, JOB_PICKED_UP, JOB_COMPLAINT}

# Statuses that still sit in an outlet's work queue
QUEUE_STATUSES = (JOB_QUEUED, JOB_WORKING)
# Statuses after which details can no longer change
CLOSED_STATUSES = (JOB_PICKED_UP, JOB_COMPLAINT)

ITEM_SERVICE = "SERVICE"
ITEM_PRODUCT = "PRODUCT"
ITEM_TYPES = {ITEM_SERVICE, ITEM_PRODUCT}


class ServiceCategory(AuditMixin, db.Model):
    __tablename__ = "service_categories"
    __table_args__ = (
        live_unique_index("uq_service_categories_name_live", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status, **self.audit_dict()}


class Service(AuditMixin, db.Model):
    """Catalog entry for billable labour (oil change, tune-up, ...)."""
    __tablename__ = "services"
    __table_args__ = (
        live_unique_index("uq_services_code_live", "service_code"),
        db.Index("ix_services_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    service_code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    service_category_id = db.Column(db.Integer, db.ForeignKey("service_categories.id"), nullable=True, index=True)
    fee = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_code": self.service_code,
            "name": self.name,
            "service_category_id": self.service_category_id,
            "fee": as_str(self.fee),
            "status": self.status,
            **self.audit_dict(),
        }


class ServiceCodeSequence(db.Model):
    """
    Per-outlet monotonic counter behind SJ-<outlet>-<n> service codes.

    Allocation is a single UPDATE ... SET next_number = next_number + 1, so
    concurrent intakes at the same outlet never see the same number.
    """
    __tablename__ = "service_code_sequences"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", name="uq_service_code_sequences_outlet"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ServiceJob(AuditMixin, db.Model):
    """
    A vehicle-repair job from intake to pickup.

    LIFECYCLE:
        QUEUED -> WORKING -> DONE -> PICKED_UP -> COMPLAINT (within warranty)

    queue_number restarts at 1 every outlet-local civil day (intake_date)
    and is only ever assigned while holding the outlet lock.
    """
    __tablename__ = "service_jobs"
    __table_args__ = (
        live_unique_index("uq_service_jobs_code_live", "service_code"),
        db.Index("ix_service_jobs_outlet_intake_date", "outlet_id", "intake_date"),
        db.Index("ix_service_jobs_status", "status"),
        db.Index("ix_service_jobs_outlet_status", "outlet_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    service_code = db.Column(db.String(64), nullable=False)
    queue_number = db.Column(db.Integer, nullable=False)

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("customer_vehicles.id"), nullable=False, index=True)
    technician_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    problem_description = db.Column(db.Text, nullable=False)
    technician_notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=JOB_QUEUED)

    intake_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    intake_date = db.Column(db.Date, nullable=False)
    picked_up_at = db.Column(db.DateTime, nullable=True)
    complaint_at = db.Column(db.DateTime, nullable=True)
    warranty_expires_at = db.Column(db.Date, nullable=True)
    next_service_reminder_date = db.Column(db.Date, nullable=True)

    down_payment = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    cost_total = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    technician_commission = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    shop_profit = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    outlet = db.relationship("Outlet")
    customer = db.relationship("Customer")
    vehicle = db.relationship("CustomerVehicle")
    technician = db.relationship("User", foreign_keys=[technician_id])
    received_by = db.relationship("User", foreign_keys=[received_by_user_id])

    def __repr__(self) -> str:
        return f"<ServiceJob id={self.id} code={self.service_code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_code": self.service_code,
            "queue_number": self.queue_number,
            "outlet_id": self.outlet_id,
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "technician_id": self.technician_id,
            "received_by_user_id": self.received_by_user_id,
            "problem_description": self.problem_description,
            "technician_notes": self.technician_notes,
            "status": self.status,
            "intake_at": to_utc_z(self.intake_at),
            "intake_date": to_iso_date(self.intake_date),
            "picked_up_at": to_utc_z(self.picked_up_at),
            "complaint_at": to_utc_z(self.complaint_at),
            "warranty_expires_at": to_iso_date(self.warranty_expires_at),
            "next_service_reminder_date": to_iso_date(self.next_service_reminder_date),
            "down_payment": as_str(self.down_payment),
            "grand_total": as_str(self.grand_total),
            "cost_total": as_str(self.cost_total),
            "technician_commission": as_str(self.technician_commission),
            "shop_profit": as_str(self.shop_profit),
            **self.audit_dict(),
        }


class ServiceDetail(AuditMixin, db.Model):
    """
    Line item on a service job: either a catalog service or a product.

    item_id resolves against services.id or products.id depending on item_type,
    so it carries no foreign key of its own.
    """
    __tablename__ = "service_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_service_details_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    service_job_id = db.Column(db.Integer, db.ForeignKey("service_jobs.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)
    item_id = db.Column(db.Integer, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    serial_number_used = db.Column(db.String(128), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price_per_item = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    cost_per_item = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_job_id": self.service_job_id,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "description": self.description,
            "serial_number_used": self.serial_number_used,
            "quantity": self.quantity,
            "price_per_item": as_str(self.price_per_item),
            "cost_per_item": as_str(self.cost_per_item),
            **self.audit_dict(),
        }


class ServiceJobHistory(AuditMixin, db.Model):
    """
    Append-only log of user-visible job events (intake, status changes).

    There is no update or delete path for these rows.
    """
    __tablename__ = "service_job_histories"
    __table_args__ = (
        db.Index("ix_service_job_histories_job_changed", "service_job_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    service_job_id = db.Column(db.Integer, db.ForeignKey("service_jobs.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_job_id": self.service_job_id,
            "user_id": self.user_id,
            "status": self.status,
            "notes": self.notes,
            "changed_at": to_utc_z(self.changed_at),
            **self.audit_dict(),
        }
