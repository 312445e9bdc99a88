# Overview: Pytest coverage for the inventory ledger: stock counter, serial registry, product catalog.

import pytest

from wpos.errors import ConflictError, InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from wpos.services import inventory_service, master_data_service, products_service


class TestStockCounter:
    """Stock never goes negative; failed decrements change nothing."""

    def test_increment_and_decrement(self, db_session, product):
        assert inventory_service.update_stock(product.id, 5).stock == 15
        assert inventory_service.update_stock(product.id, -15).stock == 0

    def test_decrement_past_zero_rejected(self, db_session, product):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.update_stock(product.id, -11)
        assert exc.value.details["requested"] == 11
        assert products_service.get_product(product.id).stock == 10

    def test_non_integer_delta_rejected(self, db_session, product):
        with pytest.raises(ValidationError):
            inventory_service.update_stock(product.id, 1.5)
        with pytest.raises(ValidationError):
            inventory_service.update_stock(product.id, True)

    def test_try_deduct_is_conditional(self, db_session, product):
        assert inventory_service.try_deduct_stock(product.id, 10) is True
        assert inventory_service.try_deduct_stock(product.id, 1) is False
        db_session.commit()
        assert products_service.get_product(product.id).stock == 0

    def test_serialised_stock_not_adjustable(self, db_session, serial_product):
        with pytest.raises(InvalidStateError):
            inventory_service.update_stock(serial_product.id, 1)


class TestSerialRegistry:
    """Serialised stock equals the number of AVAILABLE serial rows."""

    def _stock(self, product_id):
        return products_service.get_product(product_id).stock

    def test_register_increments_stock(self, db_session, serial_product):
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0002")
        assert self._stock(serial_product.id) == 2

    def test_register_damaged_does_not_count(self, db_session, serial_product):
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001", status="damaged")
        assert self._stock(serial_product.id) == 0

    def test_duplicate_serial_rejected(self, db_session, serial_product):
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        with pytest.raises(ConflictError):
            inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")

    def test_plain_product_cannot_take_serials(self, db_session, product):
        with pytest.raises(InvalidStateError):
            inventory_service.create_serial(product_id=product.id, serial_number="OF-SN-1")

    def test_consume_then_restore(self, db_session, serial_product):
        serial = inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        inventory_service.consume_serial(serial_product.id, "BAT-0001")
        assert inventory_service.get_serial(serial.id).status == "CONSUMED"
        assert self._stock(serial_product.id) == 0

        with pytest.raises(InvalidStateError):
            inventory_service.consume_serial(serial_product.id, "BAT-0001")

        inventory_service.restore_serial(serial.id)
        assert inventory_service.get_serial(serial.id).status == "AVAILABLE"
        assert self._stock(serial_product.id) == 1

    def test_mark_damaged(self, db_session, serial_product):
        serial = inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        inventory_service.update_serial_status(serial.id, "DAMAGED")
        assert self._stock(serial_product.id) == 0

    def test_cannot_set_available_directly(self, db_session, serial_product):
        serial = inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        with pytest.raises(InvalidStateError):
            inventory_service.update_serial_status(serial.id, "AVAILABLE")

    def test_consume_wrong_product(self, db_session, serial_product, product):
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        with pytest.raises(InvalidStateError):
            inventory_service.consume_serial_locked(product.id, "BAT-0001")

    def test_delete_available_serial_decrements(self, db_session, serial_product):
        serial = inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        inventory_service.delete_serial(serial.id)
        assert self._stock(serial_product.id) == 0
        with pytest.raises(NotFoundError):
            inventory_service.get_serial_by_number("BAT-0001")


class TestProducts:
    """Product catalog rules."""

    def test_sku_unique_among_live(self, db_session, product):
        with pytest.raises(ConflictError):
            products_service.create_product({"name": "Copy", "sku": product.sku})

    def test_blank_codes_never_collide(self, db_session):
        products_service.create_product({"name": "A", "sku": "  ", "barcode": ""})
        second = products_service.create_product({"name": "B", "sku": "", "barcode": None})
        assert second.sku is None

    def test_serialised_product_starts_empty(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "Tyre", "has_serial_number": True, "stock": 4})

    def test_stock_not_patchable(self, db_session, product):
        with pytest.raises(ValidationError):
            products_service.update_product(product.id, {"stock": 99})

    def test_lookup_by_code(self, db_session, product):
        assert products_service.get_product_by_code(sku="OF-001").id == product.id
        with pytest.raises(NotFoundError):
            products_service.get_product_by_code(barcode="000")

    def test_low_stock(self, db_session, product):
        products_service.create_product({"name": "Spark Plug", "sku": "SP-1", "stock": 2})
        names = [p.name for p in products_service.low_stock_products(5)]
        assert names == ["Spark Plug"]

    def test_restore_product(self, db_session, product):
        products_service.delete_product(product.id)
        restored = products_service.restore_product(product.id)
        assert restored.deleted_at is None


class TestMasterData:
    """Categories, suppliers and unit types share one service."""

    @pytest.mark.parametrize("kind", ["categories", "suppliers", "unit-types"])
    def test_crud(self, db_session, kind):
        entry = master_data_service.create_entry(kind, {"name": "  First  "})
        assert entry.name == "First"
        master_data_service.update_entry(kind, entry.id, {"name": "Renamed"})
        assert [e.name for e in master_data_service.list_entries(kind)] == ["Renamed"]
        master_data_service.delete_entry(kind, entry.id)
        with pytest.raises(NotFoundError):
            master_data_service.get_entry(kind, entry.id)

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValidationError):
            master_data_service.list_entries("brands")
