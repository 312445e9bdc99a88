from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, live_unique_index


OUTLET_ACTIVE = "ACTIVE"
OUTLET_INACTIVE = "INACTIVE"
OUTLET_STATUSES = {OUTLET_ACTIVE, OUTLET_INACTIVE}


class Outlet(AuditMixin, db.Model):
    """
    A workshop branch.

    Service-job queues, queue numbers and service codes are all scoped per
    outlet. `timezone` decides what "today" means for that outlet's queue.
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.Index("ix_outlets_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    branch_type = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    contact = db.Column(db.String(64), nullable=True)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    status = db.Column(db.String(16), nullable=False, default=OUTLET_ACTIVE)

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "branch_type": self.branch_type,
            "city": self.city,
            "address": self.address,
            "contact": self.contact,
            "timezone": self.timezone,
            "status": self.status,
            **self.audit_dict(),
        }


class User(AuditMixin, db.Model):
    """
    Staff account: receptionists, technicians, sales people.

    Email is unique among live users (case-insensitive, stored lower-cased).
    """
    __tablename__ = "users"
    __table_args__ = (
        live_unique_index("uq_users_email_live", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    outlet = db.relationship("Outlet", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        # password_hash never leaves the service layer
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
            **self.audit_dict(),
        }
