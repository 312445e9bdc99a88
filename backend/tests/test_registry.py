# Overview: Pytest coverage for the identity registry: outlets, staff, customers and their vehicles.

"""
Registry Tests

- Phone is unique among live customers; soft-deleted customers free it up.
- Plate, chassis and engine numbers are unique among live vehicles, and a
  collision names every clashing field.
- Customers still owning vehicles cannot be deleted.
- Staff emails are unique case-insensitively; passwords are bcrypt hashes.
"""

import pytest

from wpos.errors import ConflictError, IntegrityViolation, NotFoundError, ValidationError
from wpos.services import customer_service, outlet_service, user_service, vehicle_sales_service


class TestOutlets:
    """Outlet registry."""

    def test_create_defaults_timezone(self, db_session, app):
        outlet = outlet_service.create_outlet({"name": "  East Branch  "})
        assert outlet.name == "East Branch"
        assert outlet.timezone == app.config["OUTLET_DEFAULT_TIMEZONE"]
        assert outlet.status == "ACTIVE"

    def test_unknown_timezone_rejected(self, db_session):
        with pytest.raises(ValidationError):
            outlet_service.create_outlet({"name": "Moon Base", "timezone": "Mars/Olympus"})

    def test_status_is_normalized(self, db_session, outlet):
        updated = outlet_service.update_outlet(outlet.id, {"status": "inactive"})
        assert updated.status == "INACTIVE"

    def test_deleted_outlet_not_found(self, db_session, outlet):
        outlet_service.delete_outlet(outlet.id)
        with pytest.raises(NotFoundError):
            outlet_service.get_outlet(outlet.id)
        assert outlet_service.get_outlet(outlet.id, include_deleted=True).deleted_at is not None


class TestUsers:
    """Staff accounts."""

    def test_password_is_hashed(self, db_session, outlet):
        user = user_service.create_user(
            {"name": "Sari", "email": "Sari@Workshop.test", "outlet_id": outlet.id},
            password="s3cret-pass",
        )
        assert user.email == "sari@workshop.test"
        assert user.password_hash != "s3cret-pass"
        assert user_service.verify_password("s3cret-pass", user.password_hash)
        assert not user_service.verify_password("wrong", user.password_hash)

    def test_email_unique_case_insensitive(self, db_session):
        user_service.create_user({"name": "A", "email": "a@wpos.test"}, password="pw")
        with pytest.raises(ConflictError):
            user_service.create_user({"name": "B", "email": "A@WPOS.TEST"}, password="pw")

    def test_invalid_email_rejected(self, db_session):
        with pytest.raises(ValidationError):
            user_service.create_user({"name": "A", "email": "not-an-email"}, password="pw")

    def test_change_password_requires_current(self, db_session):
        user = user_service.create_user({"name": "A", "email": "a@wpos.test"}, password="old-pw")
        with pytest.raises(ValidationError):
            user_service.change_password(user.id, current_password="nope", new_password="new-pw")

        user_service.change_password(user.id, current_password="old-pw", new_password="new-pw")
        refreshed = user_service.get_user(user.id)
        assert user_service.verify_password("new-pw", refreshed.password_hash)

    def test_unknown_outlet_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            user_service.create_user({"name": "A", "email": "a@wpos.test", "outlet_id": 999}, password="pw")


class TestCustomers:
    """Customer identity rules."""

    def test_phone_unique_among_live(self, db_session, customer):
        with pytest.raises(ConflictError) as exc:
            customer_service.create_customer({"name": "Other", "phone": customer.phone})
        assert exc.value.details == {"phone": customer.phone}

    def test_soft_deleted_phone_can_be_reused(self, db_session, customer):
        customer_service.delete_customer(customer.id)
        again = customer_service.create_customer({"name": "New Owner", "phone": customer.phone})
        assert again.id != customer.id

    def test_restore_blocked_when_phone_taken(self, db_session, customer):
        customer_service.delete_customer(customer.id)
        customer_service.create_customer({"name": "New Owner", "phone": customer.phone})
        with pytest.raises(ConflictError):
            customer_service.restore_customer(customer.id)

    def test_update_excludes_self_from_collision(self, db_session, customer):
        updated = customer_service.update_customer(customer.id, {"phone": customer.phone, "name": "Andi S."})
        assert updated.name == "Andi S."

    def test_blank_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.create_customer({"name": "   ", "phone": "0800"})

    def test_search_matches_name_phone_address(self, db_session, customer):
        customer_service.create_customer({"name": "Budi", "phone": "0899", "address": "Jl. Sudirman"})
        assert [c.name for c in customer_service.search_customers("merdeka")] == ["Andi"]
        assert [c.name for c in customer_service.search_customers("0899")] == ["Budi"]
        assert len(customer_service.search_customers("")) == 2

    def test_search_wildcards_match_literally(self, db_session, customer):
        customer_service.create_customer({"name": "Rina_Motor", "phone": "0811", "address": "Blok 100% Baru"})
        assert [c.name for c in customer_service.search_customers("_")] == ["Rina_Motor"]
        assert [c.name for c in customer_service.search_customers("%")] == ["Rina_Motor"]
        assert customer_service.search_customers("a_d") == []

    def test_cannot_delete_customer_with_vehicles(self, db_session, customer, customer_vehicle):
        with pytest.raises(IntegrityViolation) as exc:
            customer_service.delete_customer(customer.id)
        assert exc.value.details["vehicle_count"] == 1

    def test_cannot_delete_buyer_of_showroom_vehicle(self, db_session, listed_vehicle):
        buyer = customer_service.create_customer({"name": "Sari", "phone": "0812-7777"})
        vehicle_sales_service.sell_vehicle(
            vehicle_id=listed_vehicle.id,
            customer_id=buyer.id,
            sale_price="125000000",
            transaction_type="CASH",
            payment_method="CASH",
        )
        with pytest.raises(IntegrityViolation) as exc:
            customer_service.delete_customer(buyer.id)
        assert exc.value.details == {"customer_id": buyer.id, "vehicle_count": 1}
        assert customer_service.get_customer(buyer.id).deleted_at is None


class TestCustomerVehicles:
    """Customer-owned vehicle identity rules."""

    def test_identifiers_are_uppercased(self, db_session, customer):
        vehicle = customer_service.create_customer_vehicle({
            "customer_id": customer.id,
            "plate_number": " b 9 abc ",
            "chassis_number": "chs-1",
            "engine_number": "eng-1",
        })
        assert vehicle.plate_number == "B 9 ABC"
        assert vehicle.chassis_number == "CHS-1"

    def test_collision_names_every_clashing_field(self, db_session, customer, customer_vehicle):
        with pytest.raises(ConflictError) as exc:
            customer_service.create_customer_vehicle({
                "customer_id": customer.id,
                "plate_number": customer_vehicle.plate_number,
                "chassis_number": "NEW-CHASSIS",
                "engine_number": customer_vehicle.engine_number,
            })
        assert set(exc.value.details) == {"plate", "engine"}

    def test_unknown_customer_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.create_customer_vehicle({
                "customer_id": 4242,
                "plate_number": "X1",
                "chassis_number": "X2",
                "engine_number": "X3",
            })

    def test_lookup_by_plate(self, db_session, customer_vehicle):
        found = customer_service.get_customer_vehicle_by("plate_number", "b1234xyz")
        assert found.id == customer_vehicle.id

    def test_lookup_by_unsupported_field(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.get_customer_vehicle_by("color", "red")

    def test_deleted_vehicle_frees_plate(self, db_session, customer, customer_vehicle):
        customer_service.delete_customer_vehicle(customer_vehicle.id)
        again = customer_service.create_customer_vehicle({
            "customer_id": customer.id,
            "plate_number": customer_vehicle.plate_number,
            "chassis_number": customer_vehicle.chassis_number,
            "engine_number": customer_vehicle.engine_number,
        })
        assert again.id != customer_vehicle.id
