from __future__ import annotations

from ..extensions import db
from ..money import as_str
from ..time_utils import to_utc_z, utcnow
from .base import AuditMixin, live_unique_index


OWNERSHIP_CUSTOMER = "CUSTOMER"
OWNERSHIP_SHOWROOM = "SHOWROOM"
OWNERSHIP_WORKSHOP = "WORKSHOP"
OWNERSHIP_STATUSES = {OWNERSHIP_CUSTOMER, OWNERSHIP_SHOWROOM, OWNERSHIP_WORKSHOP}

CONDITION_EXCELLENT = "EXCELLENT"
CONDITION_GOOD = "GOOD"
CONDITION_FAIR = "FAIR"
CONDITION_POOR = "POOR"
CONDITION_STATUSES = {CONDITION_EXCELLENT, CONDITION_GOOD, CONDITION_FAIR, CONDITION_POOR}

SALE_NOT_FOR_SALE = "NOT_FOR_SALE"
SALE_FOR_SALE = "FOR_SALE"
SALE_SOLD = "SOLD"
SALE_RESERVED = "RESERVED"
SALE_STATUSES = {SALE_NOT_FOR_SALE, SALE_FOR_SALE, SALE_SOLD, SALE_RESERVED}

RECON_PENDING = "PENDING"
RECON_IN_PROGRESS = "IN_PROGRESS"
RECON_COMPLETED = "COMPLETED"
RECON_CANCELLED = "CANCELLED"
RECON_STATUSES = {RECON_PENDING, RECON_IN_PROGRESS, RECON_COMPLETED, RECON_CANCELLED}
RECON_OPEN_STATUSES = (RECON_PENDING, RECON_IN_PROGRESS)

DETAIL_PART = "PART"
DETAIL_SERVICE = "SERVICE"
DETAIL_TYPES = {DETAIL_PART, DETAIL_SERVICE}

PURCHASE_SUCCESSFUL = "SUCCESSFUL"


class Vehicle(AuditMixin, db.Model):
    """
    Showroom vehicle: bought in, reconditioned, and resold.

    OWNERSHIP / SALE STATUS:
    - SHOWROOM + NOT_FOR_SALE: bought in, not yet listed
    - WORKSHOP: under reconditioning (at least one open reconditioning job)
    - SHOWROOM + FOR_SALE: listed
    - CUSTOMER + SOLD: sold to customer_id
    """
    __tablename__ = "vehicles"
    __table_args__ = (
        live_unique_index("uq_vehicles_plate_live", "plate_number"),
        live_unique_index("uq_vehicles_chassis_live", "chassis_number"),
        live_unique_index("uq_vehicles_engine_live", "engine_number"),
        db.Index("ix_vehicles_sale_status", "sale_status"),
        db.Index("ix_vehicles_ownership_status", "ownership_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    plate_number = db.Column(db.String(32), nullable=False)
    chassis_number = db.Column(db.String(64), nullable=False)
    engine_number = db.Column(db.String(64), nullable=False)
    brand = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(64), nullable=True)
    vehicle_type = db.Column(db.String(32), nullable=True)
    production_year = db.Column(db.Integer, nullable=True)
    color = db.Column(db.String(32), nullable=True)
    mileage = db.Column(db.Integer, nullable=True)
    fuel_type = db.Column(db.String(32), nullable=True)
    transmission = db.Column(db.String(32), nullable=True)

    ownership_status = db.Column(db.String(16), nullable=False, default=OWNERSHIP_CUSTOMER)
    condition_status = db.Column(db.String(16), nullable=False, default=CONDITION_GOOD)
    sale_status = db.Column(db.String(16), nullable=False, default=SALE_NOT_FOR_SALE)

    purchase_price = db.Column(db.Numeric(15, 2), nullable=True)
    selling_price = db.Column(db.Numeric(15, 2), nullable=True)
    estimated_value = db.Column(db.Numeric(15, 2), nullable=True)
    condition_notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "plate_number": self.plate_number,
            "chassis_number": self.chassis_number,
            "engine_number": self.engine_number,
            "brand": self.brand,
            "model": self.model,
            "vehicle_type": self.vehicle_type,
            "production_year": self.production_year,
            "color": self.color,
            "mileage": self.mileage,
            "fuel_type": self.fuel_type,
            "transmission": self.transmission,
            "ownership_status": self.ownership_status,
            "condition_status": self.condition_status,
            "sale_status": self.sale_status,
            "purchase_price": as_str(self.purchase_price),
            "selling_price": as_str(self.selling_price),
            "estimated_value": as_str(self.estimated_value),
            "condition_notes": self.condition_notes,
            "internal_notes": self.internal_notes,
            **self.audit_dict(),
        }


class VehiclePurchaseTransaction(AuditMixin, db.Model):
    """Buying a vehicle from a customer into the showroom."""
    __tablename__ = "vehicle_purchase_transactions"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    purchase_price = db.Column(db.Numeric(15, 2), nullable=False)
    purchase_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    payment_method = db.Column(db.String(16), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)
    evaluation_notes = db.Column(db.Text, nullable=True)
    transaction_status = db.Column(db.String(16), nullable=False, default=PURCHASE_SUCCESSFUL)

    vehicle = db.relationship("Vehicle")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "purchase_price": as_str(self.purchase_price),
            "purchase_date": to_utc_z(self.purchase_date),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "evaluation_notes": self.evaluation_notes,
            "transaction_status": self.transaction_status,
            **self.audit_dict(),
        }


class VehicleReconditioningJob(AuditMixin, db.Model):
    """
    Shop-internal work on a showroom vehicle before resale.

    LIFECYCLE:
        PENDING -> IN_PROGRESS -> COMPLETED
        PENDING -> CANCELLED
    """
    __tablename__ = "vehicle_reconditioning_jobs"
    __table_args__ = (
        db.Index("ix_vehicle_reconditioning_jobs_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    technician_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    estimated_cost = db.Column(db.Numeric(15, 2), nullable=True)
    actual_cost = db.Column(db.Numeric(15, 2), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=RECON_PENDING)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    vehicle = db.relationship("Vehicle")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "technician_id": self.technician_id,
            "title": self.title,
            "description": self.description,
            "estimated_cost": as_str(self.estimated_cost),
            "actual_cost": as_str(self.actual_cost),
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
            "notes": self.notes,
            **self.audit_dict(),
        }


class ReconditioningDetail(AuditMixin, db.Model):
    """
    Part or service used on a reconditioning job.

    Exactly one of product_id / service_id is set, matching detail_type.
    stock_deducted records whether the product counter was actually
    decremented; stock_shortfall marks parts added while stock was short.
    """
    __tablename__ = "reconditioning_details"
    __table_args__ = (
        db.CheckConstraint(
            "(detail_type = 'PART' AND product_id IS NOT NULL AND service_id IS NULL)"
            " OR (detail_type = 'SERVICE' AND service_id IS NOT NULL AND product_id IS NULL)",
            name="ck_reconditioning_details_kind_ref",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    reconditioning_job_id = db.Column(
        db.Integer, db.ForeignKey("vehicle_reconditioning_jobs.id"), nullable=False, index=True
    )
    detail_type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)
    serial_numbers = db.Column(db.Text, nullable=True)  # comma-separated, serialised parts only
    stock_deducted = db.Column(db.Boolean, nullable=False, default=False)
    stock_shortfall = db.Column(db.Boolean, nullable=False, default=False)

    @property
    def serial_list(self) -> list[str]:
        if not self.serial_numbers:
            return []
        return [s for s in self.serial_numbers.split(",") if s]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reconditioning_job_id": self.reconditioning_job_id,
            "detail_type": self.detail_type,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": as_str(self.unit_price),
            "total_price": as_str(self.total_price),
            "used_at": to_utc_z(self.used_at),
            "notes": self.notes,
            "serial_numbers": self.serial_list,
            "stock_deducted": self.stock_deducted,
            "stock_shortfall": self.stock_shortfall,
            **self.audit_dict(),
        }
