# Overview: Pytest coverage for installment payments: late fees, overdue tracking, completion, write-off.

"""
Installment Payment Tests

Plan used throughout: sale 2500, down payment 500, four instalments of 500
starting 2023-12-15, so payments fall due on the 15th of Jan..Apr 2024.

Late fee = due_amount x (days_late // 30 + 1) x 1%.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from wpos.errors import InvalidStateError, NotFoundError, ValidationError
from wpos.services import installment_service, vehicle_sales_service


@pytest.fixture
def plan(db_session, listed_vehicle, customer):
    result = vehicle_sales_service.sell_vehicle(
        vehicle_id=listed_vehicle.id,
        customer_id=customer.id,
        sale_price="2500",
        transaction_type="INSTALLMENT",
        payment_method="INSTALLMENT",
        down_payment="500",
        installment={"installment_count": 4, "start_date": "2023-12-15"},
    )
    return result["installment"]


def _payments(plan):
    return installment_service.payments_for(plan.id)


class TestLateFee:
    """Pure late-fee arithmetic."""

    @pytest.mark.parametrize("now, expected", [
        (datetime(2024, 1, 15, 23, 59), "0.00"),
        (datetime(2024, 1, 16, 0, 1), "5.00"),
        (datetime(2024, 2, 13, 12, 0), "5.00"),
        (datetime(2024, 2, 14, 0, 0), "10.00"),
        (datetime(2024, 3, 20, 9, 0), "15.00"),
    ])
    def test_fee_grows_every_thirty_days(self, now, expected):
        fee = installment_service.late_fee(Decimal("500.00"), date(2024, 1, 15), now)
        assert fee == Decimal(expected)

    def test_due_day_is_not_overdue(self):
        assert not installment_service.is_overdue(date(2024, 1, 15), datetime(2024, 1, 15, 23, 0))
        assert installment_service.is_overdue(date(2024, 1, 15), datetime(2024, 1, 16, 0, 0))


class TestProcessPayment:
    """Paying scheduled instalments."""

    def test_late_payment_path_and_fee(self, db_session, plan):
        first = _payments(plan)[0]
        result = installment_service.process_payment(
            first.id, paid_amount="500.00", payment_method="cash", now=datetime(2024, 3, 20, 9, 0)
        )
        payment = result["payment"]

        assert result["status_path"] == ["PENDING", "LATE", "PAID"]
        assert payment.payment_status == "PAID"
        assert payment.late_fee == Decimal("15.00")
        assert payment.paid_amount == Decimal("500.00")
        assert payment.payment_method == "CASH"
        assert result["installment"].remaining_balance == Decimal("1500.00")
        assert result["next_payment_due"] == date(2024, 2, 15)

    def test_on_time_payment(self, db_session, plan):
        first = _payments(plan)[0]
        result = installment_service.process_payment(
            first.id, paid_amount="500", payment_method="TRANSFER", now=datetime(2024, 1, 10)
        )
        assert result["status_path"] == ["PENDING", "PAID"]
        assert result["payment"].late_fee == Decimal("0.00")

    def test_paying_everything_completes_plan(self, db_session, plan):
        results = [
            installment_service.process_payment(
                p.id, paid_amount="500", payment_method="CASH", now=datetime(2024, 1, 1)
            )
            for p in _payments(plan)
        ]
        final = results[-1]
        assert final["installment"].status == "COMPLETED"
        assert final["installment"].remaining_balance == Decimal("0.00")
        assert final["next_payment_due"] is None

    def test_overpayment_clamps_balance(self, db_session, plan):
        first = _payments(plan)[0]
        result = installment_service.process_payment(
            first.id, paid_amount="5000", payment_method="CASH", now=datetime(2024, 1, 1)
        )
        assert result["installment"].remaining_balance == Decimal("0.00")
        assert result["installment"].status == "COMPLETED"

    def test_cannot_pay_twice(self, db_session, plan):
        first = _payments(plan)[0]
        installment_service.process_payment(first.id, paid_amount="500", payment_method="CASH")
        with pytest.raises(InvalidStateError):
            installment_service.process_payment(first.id, paid_amount="500", payment_method="CASH")

    @pytest.mark.parametrize("amount, method", [("0", "CASH"), ("-5", "CASH"), ("500", "INSTALLMENT")])
    def test_bad_payment_input(self, db_session, plan, amount, method):
        first = _payments(plan)[0]
        with pytest.raises(ValidationError):
            installment_service.process_payment(first.id, paid_amount=amount, payment_method=method)
        assert installment_service.get_payment(first.id).payment_status == "PENDING"

    def test_unknown_payment(self, db_session):
        with pytest.raises(NotFoundError):
            installment_service.process_payment(12345, paid_amount="1", payment_method="CASH")


class TestOverdue:
    """Overdue sweep and write-off."""

    def test_mark_overdue_flips_pending(self, db_session, plan):
        now = datetime(2024, 3, 1, 8, 0)
        assert [p.payment_number for p in installment_service.overdue_payments(now=now)] == [1, 2]
        assert installment_service.mark_overdue(now=now) == 2
        assert [p.payment_status for p in _payments(plan)] == ["LATE", "LATE", "PENDING", "PENDING"]
        # already LATE rows are not counted again
        assert installment_service.mark_overdue(now=now) == 0

    def test_late_row_is_paid_from_late(self, db_session, plan):
        installment_service.mark_overdue(now=datetime(2024, 3, 1))
        first = _payments(plan)[0]
        result = installment_service.process_payment(
            first.id, paid_amount="500", payment_method="CASH", now=datetime(2024, 3, 1)
        )
        assert result["status_path"] == ["LATE", "PAID"]
        assert result["payment"].late_fee == Decimal("10.00")

    def test_write_off(self, db_session, plan):
        defaulted = installment_service.write_off(plan.id)
        assert defaulted.status == "DEFAULTED"
        assert defaulted.remaining_balance == Decimal("2000.00")

        with pytest.raises(InvalidStateError):
            installment_service.write_off(plan.id)
        with pytest.raises(InvalidStateError):
            installment_service.process_payment(_payments(plan)[0].id, paid_amount="500", payment_method="CASH")

    def test_list_by_status(self, db_session, plan):
        assert [p.id for p in installment_service.list_installments(status="active")] == [plan.id]
        assert installment_service.list_installments(status="COMPLETED") == []
