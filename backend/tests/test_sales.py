# Overview: Pytest coverage for vehicle sales, cash and installment, and schedule generation.

from datetime import date
from decimal import Decimal

import pytest

from wpos.errors import InvalidStateError, NotFoundError, ValidationError
from wpos.services import installment_service, vehicle_sales_service, vehicle_service
from wpos.services.installment_service import InstallmentTerms


def _sell_on_credit(vehicle, customer, **overrides):
    params = dict(
        vehicle_id=vehicle.id,
        customer_id=customer.id,
        sale_price="12000",
        transaction_type="INSTALLMENT",
        payment_method="INSTALLMENT",
        down_payment="2000",
        installment={"installment_count": 4, "start_date": "2024-01-15"},
    )
    params.update(overrides)
    return vehicle_sales_service.sell_vehicle(**params)


class TestCashSale:
    """Cash sales flip the vehicle to SOLD in one step."""

    def test_cash_sale(self, db_session, listed_vehicle, customer, cashier):
        result = vehicle_sales_service.sell_vehicle(
            vehicle_id=listed_vehicle.id,
            customer_id=customer.id,
            sale_price="118000000",
            transaction_type="cash",
            payment_method="transfer",
            sales_person_id=cashier.id,
        )
        sale = result["transaction"]
        vehicle = vehicle_service.get_vehicle(listed_vehicle.id)

        assert result["installment"] is None
        assert sale.transaction_status == "SUCCESSFUL"
        assert sale.profit_amount == Decimal("18000000.00")
        assert vehicle.sale_status == "SOLD"
        assert vehicle.ownership_status == "CUSTOMER"
        assert vehicle.customer_id == customer.id
        assert vehicle.selling_price == Decimal("118000000.00")

    def test_sold_vehicle_cannot_be_sold_again(self, db_session, listed_vehicle, customer):
        vehicle_sales_service.sell_vehicle(
            vehicle_id=listed_vehicle.id, customer_id=customer.id, sale_price=1000,
            transaction_type="CASH", payment_method="CASH",
        )
        with pytest.raises(InvalidStateError):
            vehicle_sales_service.sell_vehicle(
                vehicle_id=listed_vehicle.id, customer_id=customer.id, sale_price=1000,
                transaction_type="CASH", payment_method="CASH",
            )

    def test_unlisted_vehicle_rejected(self, db_session, showroom_vehicle, customer):
        with pytest.raises(InvalidStateError):
            vehicle_sales_service.sell_vehicle(
                vehicle_id=showroom_vehicle.id, customer_id=customer.id, sale_price=1000,
                transaction_type="CASH", payment_method="CASH",
            )
        assert vehicle_service.get_vehicle(showroom_vehicle.id).sale_status == "NOT_FOR_SALE"

    def test_cash_sale_paid_by_installment_rejected(self, db_session, listed_vehicle, customer):
        with pytest.raises(ValidationError):
            vehicle_sales_service.sell_vehicle(
                vehicle_id=listed_vehicle.id, customer_id=customer.id, sale_price=1000,
                transaction_type="CASH", payment_method="INSTALLMENT",
            )

    def test_unknown_buyer_leaves_vehicle_listed(self, db_session, listed_vehicle):
        with pytest.raises(NotFoundError):
            vehicle_sales_service.sell_vehicle(
                vehicle_id=listed_vehicle.id, customer_id=4040, sale_price=1000,
                transaction_type="CASH", payment_method="CASH",
            )
        assert vehicle_service.get_vehicle(listed_vehicle.id).sale_status == "FOR_SALE"


class TestInstallmentSale:
    """Installment sales create the plan and its whole schedule atomically."""

    def test_schedule_is_generated(self, db_session, listed_vehicle, customer):
        result = _sell_on_credit(listed_vehicle, customer)
        plan = result["installment"]
        payments = installment_service.payments_for(plan.id)

        assert plan.status == "ACTIVE"
        assert plan.financed_amount == Decimal("10000.00")
        assert plan.remaining_balance == Decimal("10000.00")
        assert plan.end_date == date(2024, 5, 15)
        assert [p.due_date for p in payments] == [
            date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15), date(2024, 5, 15),
        ]
        assert [p.due_amount for p in payments] == [Decimal("2500.00")] * 4
        assert all(p.payment_status == "PENDING" for p in payments)
        assert installment_service.installment_for_sale(result["transaction"].id).id == plan.id

    def test_interest_is_added_to_financed_amount(self, db_session, listed_vehicle, customer):
        plan = _sell_on_credit(
            listed_vehicle, customer,
            installment={"installment_count": 4, "start_date": "2024-01-15", "interest_rate": "10"},
        )["installment"]
        assert plan.financed_amount == Decimal("11000.00")
        assert plan.installment_amount == Decimal("2750.00")

    def test_fractional_rate_is_not_rounded(self, db_session, listed_vehicle, customer):
        plan = _sell_on_credit(
            listed_vehicle, customer,
            installment={"installment_count": 4, "start_date": "2024-01-15", "interest_rate": "2.125"},
        )["installment"]
        assert plan.interest_rate == Decimal("2.125")
        assert plan.financed_amount == Decimal("10212.50")
        assert Decimal(plan.to_dict()["interest_rate"]) == Decimal("2.125")

    @pytest.mark.parametrize("down_payment", [None, "0", "12000", "15000"])
    def test_down_payment_must_be_inside_price(self, db_session, listed_vehicle, customer, down_payment):
        with pytest.raises(ValidationError):
            _sell_on_credit(listed_vehicle, customer, down_payment=down_payment)
        assert vehicle_service.get_vehicle(listed_vehicle.id).sale_status == "FOR_SALE"

    @pytest.mark.parametrize("config", [
        None,
        {"installment_count": 0, "start_date": "2024-01-15"},
        {"installment_count": 61, "start_date": "2024-01-15"},
        {"installment_count": "4", "start_date": "2024-01-15"},
        {"installment_count": 4, "start_date": "15/01/2024"},
        {"installment_count": 4},
        {"installment_count": 4, "start_date": "2024-01-15", "interest_rate": "-1"},
        {"installment_count": 4, "start_date": "2024-01-15", "interest_rate": "abc"},
        {"installment_count": 4, "start_date": "2024-01-15", "interest_rate": "2.12345"},
        {"installment_count": 4, "start_date": "2024-01-15", "interest_rate": True},
    ])
    def test_bad_terms_rejected(self, db_session, listed_vehicle, customer, config):
        with pytest.raises(ValidationError):
            _sell_on_credit(listed_vehicle, customer, installment=config)


class TestScheduleMath:
    """Pure schedule arithmetic."""

    def test_month_end_clamps(self):
        terms = InstallmentTerms(count=3, start_date=date(2024, 1, 31))
        schedule = installment_service.build_schedule(Decimal("300.00"), terms)
        assert [row.due_date for row in schedule] == [
            date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30),
        ]

    def test_last_instalment_absorbs_rounding(self):
        terms = InstallmentTerms(count=3, start_date=date(2024, 1, 1))
        amounts = [row.amount for row in installment_service.build_schedule(Decimal("100.00"), terms)]
        assert amounts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert sum(amounts) == Decimal("100.00")

    def test_zero_rate_means_no_interest(self):
        assert installment_service.financed_amount(Decimal("500"), Decimal("0")) == Decimal("500.00")
        assert installment_service.financed_amount(Decimal("500"), None) == Decimal("500.00")
