# Overview: Pytest coverage for service-job line items and the totals roll-up.

"""
Service Detail Tests

Totals formulas under test:

    grand_total           = sum(price x qty)
    cost_total            = sum(cost x qty)
    technician_commission = 10% of service-line revenue
    shop_profit           = grand_total - cost_total - technician_commission
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from conftest import intake
from wpos.errors import InvalidStateError, NotFoundError, ValidationError
from wpos.services import inventory_service, products_service, service_detail_service, service_job_service


@pytest.fixture
def job(db_session, outlet, cashier, technician, customer, customer_vehicle):
    return intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)


def _totals(job_id):
    stored = service_job_service.get_service_job(job_id)
    return (stored.grand_total, stored.cost_total, stored.technician_commission, stored.shop_profit)


class TestTotals:
    """Line changes keep the job totals current."""

    def test_mixed_lines(self, db_session, job, service, product):
        service_detail_service.create_detail(job.id, {
            "item_type": "SERVICE", "item_id": service.id,
            "quantity": 2, "price_per_item": "100", "cost_per_item": "40",
        })
        service_detail_service.create_detail(job.id, {
            "item_type": "PRODUCT", "item_id": product.id,
            "quantity": 1, "price_per_item": "50", "cost_per_item": "30",
        })

        assert _totals(job.id) == (
            Decimal("250.00"), Decimal("110.00"), Decimal("20.00"), Decimal("120.00"),
        )

    def test_recompute_is_idempotent(self, db_session, job, service):
        service_detail_service.create_detail(job.id, {
            "item_type": "SERVICE", "item_id": service.id, "price_per_item": "75.50",
        })
        first = _totals(job.id)
        service_job_service.recompute_totals(job.id)
        service_job_service.recompute_totals(job.id)
        assert _totals(job.id) == first

    def test_update_and_delete_roll_up(self, db_session, job, service, product):
        labour = service_detail_service.create_detail(job.id, {
            "item_type": "SERVICE", "item_id": service.id, "price_per_item": "100",
        })
        part = service_detail_service.create_detail(job.id, {
            "item_type": "PRODUCT", "item_id": product.id, "price_per_item": "40", "cost_per_item": "25",
        })

        service_detail_service.update_detail(labour.id, {"quantity": 3})
        assert _totals(job.id)[0] == Decimal("340.00")

        service_detail_service.delete_detail(part.id)
        assert _totals(job.id) == (
            Decimal("300.00"), Decimal("0.00"), Decimal("30.00"), Decimal("270.00"),
        )
        assert [d.id for d in service_detail_service.list_details(job.id)] == [labour.id]

    def test_clear_all_details(self, db_session, job, service):
        for _ in range(2):
            service_detail_service.create_detail(job.id, {
                "item_type": "SERVICE", "item_id": service.id, "price_per_item": "10",
            })
        assert service_detail_service.delete_details_for_job(job.id) == 2
        assert _totals(job.id)[0] == Decimal("0.00")

    def test_commission_rounds_half_even(self):
        lines = [SimpleNamespace(
            item_type="SERVICE", quantity=1,
            price_per_item=Decimal("0.25"), cost_per_item=Decimal("0"),
        )]
        totals = service_job_service.compute_totals(lines)
        assert totals.technician_commission == Decimal("0.02")
        assert totals.shop_profit == Decimal("0.23")

    def test_empty_job_totals_are_zero(self):
        totals = service_job_service.compute_totals([])
        assert totals.grand_total == Decimal("0.00")
        assert totals.technician_commission == Decimal("0.00")


class TestLineRules:
    """Validation of individual lines."""

    def test_unknown_service_rejected(self, db_session, job):
        with pytest.raises(NotFoundError):
            service_detail_service.create_detail(job.id, {"item_type": "SERVICE", "item_id": 9999})

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2"])
    def test_quantity_must_be_positive_int(self, db_session, job, service, quantity):
        with pytest.raises(ValidationError):
            service_detail_service.create_detail(
                job.id, {"item_type": "SERVICE", "item_id": service.id, "quantity": quantity}
            )

    def test_negative_price_rejected(self, db_session, job, service):
        with pytest.raises(ValidationError):
            service_detail_service.create_detail(
                job.id, {"item_type": "SERVICE", "item_id": service.id, "price_per_item": "-5"}
            )

    def test_serial_must_match_product(self, db_session, job, product, serial_product):
        inventory_service.create_serial(product_id=serial_product.id, serial_number="BAT-0001")
        with pytest.raises(ValidationError):
            service_detail_service.create_detail(job.id, {
                "item_type": "PRODUCT", "item_id": product.id, "serial_number_used": "BAT-0001",
            })

        detail = service_detail_service.create_detail(job.id, {
            "item_type": "PRODUCT", "item_id": serial_product.id, "serial_number_used": "BAT-0001",
        })
        assert detail.serial_number_used == "BAT-0001"

    def test_serial_on_service_line_rejected(self, db_session, job, service):
        with pytest.raises(ValidationError):
            service_detail_service.create_detail(job.id, {
                "item_type": "SERVICE", "item_id": service.id, "serial_number_used": "X-1",
            })

    def test_details_do_not_move_stock(self, db_session, job, product):
        service_detail_service.create_detail(job.id, {
            "item_type": "PRODUCT", "item_id": product.id, "quantity": 3,
        })
        assert products_service.get_product(product.id).stock == 10

    def test_closed_job_details_are_frozen(self, db_session, job, cashier, service):
        detail = service_detail_service.create_detail(job.id, {"item_type": "SERVICE", "item_id": service.id})
        for target in ("WORKING", "DONE", "PICKED_UP"):
            service_job_service.update_status(job.id, status=target, user_id=cashier.id)

        with pytest.raises(InvalidStateError):
            service_detail_service.create_detail(job.id, {"item_type": "SERVICE", "item_id": service.id})
        with pytest.raises(InvalidStateError):
            service_detail_service.update_detail(detail.id, {"quantity": 2})
        with pytest.raises(InvalidStateError):
            service_detail_service.delete_detail(detail.id)
