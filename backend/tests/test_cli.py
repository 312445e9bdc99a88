# Overview: Pytest coverage for the Flask CLI command groups.

from datetime import date
from decimal import Decimal

from wpos.models import InstallmentPayment, Outlet, User, VehicleInstallment, VehicleSalesTransaction


class TestSystemInit:
    """flask system init"""

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["system", "init", "--outlet", "Bengkel Pusat", "--timezone", "Asia/Jakarta"])
        assert first.exit_code == 0, first.output
        assert "Created outlet" in first.output

        second = runner.invoke(args=["system", "init"])
        assert second.exit_code == 0, second.output
        assert "Using existing outlet" in second.output
        assert "Using existing admin user" in second.output

        assert db_session.query(Outlet).count() == 1
        assert db_session.query(User).filter(User.email == "admin@wpos.local").count() == 1

    def test_bad_timezone_fails_cleanly(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--timezone", "Nowhere/City"])
        assert result.exit_code == 1
        assert "Unknown timezone" in result.output


class TestUserCommands:

    def test_create_and_list(self, app, db_session, outlet):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--outlet-id", str(outlet.id),
            "--name", "Rina", "--email", "rina@wpos.test", "--password", "pw-12345",
        ])
        assert result.exit_code == 0, result.output
        assert "rina@wpos.test" in runner.invoke(args=["users", "list"]).output

    def test_duplicate_email_reports_error(self, app, db_session, cashier):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--name", "Dup", "--email", cashier.email, "--password", "pw",
        ])
        assert result.exit_code == 1
        assert "already" in result.output


class TestInstallmentCommands:

    def test_mark_overdue(self, app, db_session, listed_vehicle, customer):
        sale = VehicleSalesTransaction(
            vehicle_id=listed_vehicle.id, customer_id=customer.id,
            sale_price=Decimal("1000.00"), down_payment=Decimal("100.00"),
            transaction_type="INSTALLMENT", payment_method="INSTALLMENT", transaction_status="SUCCESSFUL",
        )
        db_session.add(sale)
        db_session.flush()
        plan = VehicleInstallment(
            sales_transaction_id=sale.id, total_amount=Decimal("1000.00"), down_payment=Decimal("100.00"),
            financed_amount=Decimal("900.00"), installment_amount=Decimal("900.00"), installment_count=1,
            start_date=date(2020, 1, 1), end_date=date(2020, 2, 1), status="ACTIVE",
            remaining_balance=Decimal("900.00"),
        )
        db_session.add(plan)
        db_session.flush()
        db_session.add(InstallmentPayment(
            installment_id=plan.id, payment_number=1, due_date=date(2020, 2, 1),
            due_amount=Decimal("900.00"), payment_status="PENDING",
        ))
        db_session.commit()

        runner = app.test_cli_runner()
        listed = runner.invoke(args=["installments", "overdue"])
        assert "2020-02-01" in listed.output

        result = runner.invoke(args=["installments", "mark-overdue"])
        assert result.exit_code == 0, result.output
        assert "Marked 1 payment(s) LATE" in result.output
