# Overview: Service-layer operations for products; catalog metadata, lookups, and low-stock queries.

from __future__ import annotations

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product, Supplier, UnitType
from ..models.inventory import USAGE_SALE, USAGE_STATUSES
from ..money import to_money
from .concurrency import run_with_retry
from .lookup import (
    apply_patch,
    find_collision,
    flush_or_conflict,
    get_live,
    normalize_status,
    paginate,
    substring_filter,
)

PRODUCT_FIELDS = {
    "name", "description", "cost_price", "selling_price", "sku", "barcode",
    "has_serial_number", "shelf_location", "usage_status", "is_active",
    "category_id", "supplier_id", "unit_type_id",
}


def _clean(patch: dict, *, creating: bool) -> dict:
    cleaned = dict(patch)
    if creating or "name" in cleaned:
        name = (cleaned.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        cleaned["name"] = name
    for key in ("sku", "barcode"):
        if key in cleaned:
            # Blank codes are stored as NULL so they never collide
            value = (cleaned[key] or "").strip()
            cleaned[key] = value or None
    for key in ("cost_price", "selling_price"):
        if cleaned.get(key) is not None:
            cleaned[key] = to_money(cleaned[key], key)
            if cleaned[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
    if "stock" in cleaned:
        stock = cleaned["stock"]
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            raise ValidationError("stock must be >= 0")
    if "usage_status" in cleaned:
        cleaned["usage_status"] = normalize_status(cleaned["usage_status"], USAGE_STATUSES, "usage_status")
    return cleaned


def _check_refs(patch: dict) -> None:
    for key, model, label in (
        ("category_id", Category, "Category"),
        ("supplier_id", Supplier, "Supplier"),
        ("unit_type_id", UnitType, "Unit type"),
    ):
        if patch.get(key) is not None:
            get_live(model, patch[key], label)


def _check_codes(patch: dict, *, exclude_id=None) -> None:
    for key in ("sku", "barcode"):
        value = patch.get(key)
        if value and find_collision(Product, getattr(Product, key), value, exclude_id=exclude_id):
            raise ConflictError(f"{key} already in use", {key: value})


def create_product(patch: dict, *, created_by: int | None = None) -> Product:
    """
    Create a product.

    Serialised products always start at stock 0: their counter only moves
    as serial rows are registered.
    """
    cleaned = _clean(patch, creating=True)
    if cleaned.get("has_serial_number") and cleaned.get("stock"):
        raise ValidationError("serialised products start with stock 0; register serial numbers instead")

    def _op() -> Product:
        _check_refs(cleaned)
        _check_codes(cleaned)
        product = Product(
            usage_status=USAGE_SALE,
            stock=cleaned.get("stock") or 0,
            created_by=created_by,
        )
        apply_patch(product, cleaned, PRODUCT_FIELDS)
        db.session.add(product)
        flush_or_conflict("sku or barcode already in use")
        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    return get_live(Product, product_id, "Product", include_deleted=include_deleted)


def get_product_by_code(*, sku: str | None = None, barcode: str | None = None) -> Product:
    if not sku and not barcode:
        raise ValidationError("sku or barcode is required")
    query = Product.live()
    if sku:
        query = query.filter(Product.sku == sku.strip())
    if barcode:
        query = query.filter(Product.barcode == barcode.strip())
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found", {"sku": sku, "barcode": barcode})
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """
    Update product metadata. Stock is not patchable here; use update_stock.
    """
    if "stock" in patch:
        raise ValidationError("stock cannot be patched; use the stock adjustment endpoint")
    cleaned = _clean(patch, creating=False)

    def _op() -> Product:
        product = get_product(product_id)
        if (
            "has_serial_number" in cleaned
            and bool(cleaned["has_serial_number"]) != product.has_serial_number
            and product.stock != 0
        ):
            raise InvalidStateError("cannot change serial tracking while the product has stock")
        _check_refs(cleaned)
        _check_codes(cleaned, exclude_id=product.id)
        apply_patch(product, cleaned, PRODUCT_FIELDS)
        flush_or_conflict("sku or barcode already in use")
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    def _op() -> None:
        product = get_product(product_id)
        product.soft_delete()
        db.session.commit()

    run_with_retry(_op)


def restore_product(product_id: int) -> Product:
    def _op() -> Product:
        product = get_product(product_id, include_deleted=True)
        if product.deleted_at is None:
            return product
        _check_codes({"sku": product.sku, "barcode": product.barcode}, exclude_id=product.id)
        product.deleted_at = None
        flush_or_conflict("sku or barcode already in use")
        db.session.commit()
        return product

    return run_with_retry(_op)


def list_products(
    *,
    category_id: int | None = None,
    supplier_id: int | None = None,
    usage_status: str | None = None,
    limit=None,
    offset=None,
) -> list[Product]:
    query = Product.live()
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if usage_status:
        query = query.filter(Product.usage_status == normalize_status(usage_status, USAGE_STATUSES, "usage_status"))
    return paginate(query, (Product.created_at.desc(), Product.id.desc()), limit, offset)


def search_products(term: str, *, limit=None, offset=None) -> list[Product]:
    query = Product.live()
    if term and term.strip():
        query = query.filter(substring_filter(term, Product.name, Product.sku, Product.barcode))
    return paginate(query, (Product.created_at.desc(), Product.id.desc()), limit, offset)


def low_stock_products(threshold: int) -> list[Product]:
    """Active products with stock at or below threshold, lowest first."""
    if threshold is None or threshold < 0:
        raise ValidationError("threshold must be >= 0")
    return (
        Product.live()
        .filter(Product.is_active.is_(True), Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )
