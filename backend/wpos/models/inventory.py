from __future__ import annotations

from ..extensions import db
from ..money import as_str
from .base import AuditMixin, live_unique_index


MASTER_ACTIVE = "ACTIVE"
MASTER_INACTIVE = "INACTIVE"
MASTER_STATUSES = {MASTER_ACTIVE, MASTER_INACTIVE}

USAGE_SALE = "SALE"
USAGE_INTERNAL = "INTERNAL_USE"
USAGE_DAMAGED = "DAMAGED"
USAGE_STATUSES = {USAGE_SALE, USAGE_INTERNAL, USAGE_DAMAGED}

SERIAL_AVAILABLE = "AVAILABLE"
SERIAL_CONSUMED = "CONSUMED"
SERIAL_DAMAGED = "DAMAGED"
SERIAL_STATUSES = {SERIAL_AVAILABLE, SERIAL_CONSUMED, SERIAL_DAMAGED}


class Category(AuditMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            **self.audit_dict(),
        }


class Supplier(AuditMixin, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    contact_person = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "address": self.address,
            "status": self.status,
            **self.audit_dict(),
        }


class UnitType(AuditMixin, db.Model):
    __tablename__ = "unit_types"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=MASTER_ACTIVE)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status, **self.audit_dict()}


class Product(AuditMixin, db.Model):
    """
    Product master plus the authoritative stock counter.

    INVARIANTS:
    - stock >= 0 at all times (enforced by conditional UPDATEs, never read-modify-write)
    - SKU and barcode are unique among live rows when set
    - has_serial_number products: stock == count of AVAILABLE serial rows
    """
    __tablename__ = "products"
    __table_args__ = (
        live_unique_index("uq_products_sku_live", "sku"),
        live_unique_index("uq_products_barcode_live", "barcode"),
        db.Index("ix_products_usage_status", "usage_status"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    cost_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    has_serial_number = db.Column(db.Boolean, nullable=False, default=False)
    shelf_location = db.Column(db.String(64), nullable=True)
    usage_status = db.Column(db.String(16), nullable=False, default=USAGE_SALE)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    unit_type_id = db.Column(db.Integer, db.ForeignKey("unit_types.id"), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "cost_price": as_str(self.cost_price),
            "selling_price": as_str(self.selling_price),
            "stock": self.stock,
            "sku": self.sku,
            "barcode": self.barcode,
            "has_serial_number": self.has_serial_number,
            "shelf_location": self.shelf_location,
            "usage_status": self.usage_status,
            "is_active": self.is_active,
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "unit_type_id": self.unit_type_id,
            **self.audit_dict(),
        }


class ProductSerialNumber(AuditMixin, db.Model):
    """
    Per-unit registry for serialised products.

    STATUS FLOW:
        AVAILABLE -> CONSUMED | DAMAGED   (terminal unless explicitly restored)
    """
    __tablename__ = "product_serial_numbers"
    __table_args__ = (
        live_unique_index("uq_product_serial_numbers_serial_live", "serial_number"),
        db.Index("ix_product_serial_numbers_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    serial_number = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SERIAL_AVAILABLE)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "serial_number": self.serial_number,
            "status": self.status,
            **self.audit_dict(),
        }
