from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, live_unique_index


CUSTOMER_ACTIVE = "ACTIVE"
CUSTOMER_INACTIVE = "INACTIVE"
CUSTOMER_STATUSES = {CUSTOMER_ACTIVE, CUSTOMER_INACTIVE}


class Customer(AuditMixin, db.Model):
    """
    Workshop customer. Phone is the natural key: unique among live rows.
    """
    __tablename__ = "customers"
    __table_args__ = (
        live_unique_index("uq_customers_phone_live", "phone"),
        db.Index("ix_customers_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=CUSTOMER_ACTIVE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "status": self.status,
            **self.audit_dict(),
        }


class CustomerVehicle(AuditMixin, db.Model):
    """
    A customer's own vehicle brought in for service.

    Plate, chassis and engine numbers are three independent uniqueness
    constraints, each enforced only among live rows.
    """
    __tablename__ = "customer_vehicles"
    __table_args__ = (
        live_unique_index("uq_customer_vehicles_plate_live", "plate_number"),
        live_unique_index("uq_customer_vehicles_chassis_live", "chassis_number"),
        live_unique_index("uq_customer_vehicles_engine_live", "engine_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    plate_number = db.Column(db.String(32), nullable=False)
    chassis_number = db.Column(db.String(64), nullable=False)
    engine_number = db.Column(db.String(64), nullable=False)
    brand = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(64), nullable=True)
    vehicle_type = db.Column(db.String(32), nullable=True)
    production_year = db.Column(db.Integer, nullable=True)
    color = db.Column(db.String(32), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("vehicles", lazy=True))

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
            **self.audit_dict(),
        }
