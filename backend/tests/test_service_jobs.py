# Overview: Pytest coverage for the service-job engine: intake, lifecycle, warranty, deletion, history.

"""
Service Job Engine Tests

Covers:
- Intake numbering per outlet and per day, monotonic service codes
- Status state machine and its preconditions
- Warranty window for complaints, judged on the outlet's civil date
- Deleting a queued job compacts the day's queue
- History is best-effort: a failing writer never blocks the job change
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import intake
from wpos.errors import (
    IntegrityViolation,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from wpos.models import Customer, CustomerVehicle, ServiceJobHistory
from wpos.services import history_service, outlet_service, service_detail_service, service_job_service


class FailingHistoryWriter:
    """History sink that is always down."""

    def __init__(self):
        self.calls = 0

    def append(self, **kwargs):
        self.calls += 1
        raise OperationalError("INSERT INTO service_job_histories", {}, Exception("disk I/O error"))


class TestIntake:
    """Queue numbers and service codes."""

    def test_queue_numbers_in_intake_order(
        self, db_session, outlet, other_outlet, cashier, customer, customer_vehicle
    ):
        jobs = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(3)]
        assert [j.queue_number for j in jobs] == [1, 2, 3]
        assert all(j.status == "QUEUED" for j in jobs)

        elsewhere = intake(other_outlet, customer, customer_vehicle, cashier)
        assert elsewhere.queue_number == 1

    def test_service_codes_are_unique_and_monotonic(
        self, db_session, outlet, cashier, customer, customer_vehicle
    ):
        codes = [intake(outlet, customer, customer_vehicle, cashier).service_code for _ in range(3)]
        assert codes == [
            f"SJ-{outlet.id}-0001",
            f"SJ-{outlet.id}-0002",
            f"SJ-{outlet.id}-0003",
        ]

    def test_numbers_restart_each_day(self, db_session, outlet, cashier, customer, customer_vehicle):
        yesterday = datetime(2024, 5, 1, 9, 0)
        first = intake(outlet, customer, customer_vehicle, cashier, intake_at=yesterday)
        second = intake(outlet, customer, customer_vehicle, cashier, intake_at=yesterday + timedelta(days=1))
        assert (first.queue_number, second.queue_number) == (1, 1)
        assert first.intake_date == date(2024, 5, 1)
        assert second.intake_date == date(2024, 5, 2)

    def test_intake_writes_history(self, db_session, outlet, cashier, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier)
        rows = history_service.history_for_job(job.id)
        assert [(r.status, r.user_id) for r in rows] == [("QUEUED", cashier.id)]
        assert rows[0].notes == "Engine rattles at idle"

    def test_vehicle_must_belong_to_customer(self, db_session, outlet, cashier, customer, customer_vehicle):
        stranger = Customer(name="Stranger", phone="0811111")
        db_session.add(stranger)
        db_session.commit()
        with pytest.raises(ValidationError):
            intake(outlet, stranger, customer_vehicle, cashier)

    def test_blank_description_rejected(self, db_session, outlet, cashier, customer, customer_vehicle):
        with pytest.raises(ValidationError):
            intake(outlet, customer, customer_vehicle, cashier, problem_description="   ")

    def test_inactive_outlet_rejected(self, db_session, outlet, cashier, customer, customer_vehicle):
        outlet_service.update_outlet(outlet.id, {"status": "INACTIVE"})
        with pytest.raises(InvalidStateError):
            intake(outlet, customer, customer_vehicle, cashier)

    def test_unknown_receiver_rejected(self, db_session, outlet, customer, customer_vehicle):
        with pytest.raises(NotFoundError):
            service_job_service.create_service_job(
                customer_id=customer.id,
                vehicle_id=customer_vehicle.id,
                received_by_user_id=31337,
                outlet_id=outlet.id,
                problem_description="Brakes squeal",
            )

    def test_negative_down_payment_rejected(self, db_session, outlet, cashier, customer, customer_vehicle):
        with pytest.raises(ValidationError):
            intake(outlet, customer, customer_vehicle, cashier, down_payment="-1")


class TestTransitions:
    """QUEUED -> WORKING -> DONE -> PICKED_UP -> COMPLAINT."""

    def test_working_requires_technician(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier)
        with pytest.raises(InvalidStateError) as exc:
            service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id)
        assert exc.value.kind == "invalid-state"
        assert service_job_service.get_service_job(job.id).status == "QUEUED"

        started = service_job_service.update_status(
            job.id, status="working", user_id=cashier.id, technician_id=technician.id
        )
        assert started.status == "WORKING"
        assert started.technician_id == technician.id

    def test_full_lifecycle_records_history(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        for target in ("WORKING", "DONE", "PICKED_UP", "COMPLAINT"):
            job = service_job_service.update_status(job.id, status=target, user_id=technician.id)

        assert job.picked_up_at is not None
        assert job.complaint_at is not None
        statuses = [h.status for h in history_service.history_for_job(job.id)]
        assert statuses == ["QUEUED", "WORKING", "DONE", "PICKED_UP", "COMPLAINT"]

    @pytest.mark.parametrize("target", ["DONE", "PICKED_UP", "COMPLAINT", "QUEUED"])
    def test_skipping_or_staying_is_rejected(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle, target
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        with pytest.raises(InvalidTransitionError) as exc:
            service_job_service.update_status(job.id, status=target, user_id=cashier.id)
        assert exc.value.details == {"from": "QUEUED", "to": target}

    def test_no_way_back(self, db_session, outlet, cashier, technician, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id)
        with pytest.raises(InvalidTransitionError):
            service_job_service.update_status(job.id, status="QUEUED", user_id=cashier.id)

    def test_unknown_status_rejected(self, db_session, outlet, cashier, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier)
        with pytest.raises(ValidationError):
            service_job_service.update_status(job.id, status="CANCELLED", user_id=cashier.id)

    def test_done_recomputes_totals(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle, service
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id)
        service_detail_service.create_detail(
            job.id,
            {"item_type": "SERVICE", "item_id": service.id, "quantity": 1, "price_per_item": "100.00"},
        )
        # Drift the stored totals so DONE has something to fix
        stored = service_job_service.get_service_job(job.id)
        stored.grand_total = Decimal("0.00")
        db_session.commit()

        done = service_job_service.update_status(job.id, status="DONE", user_id=cashier.id)
        assert done.grand_total == Decimal("100.00")
        assert done.technician_commission == Decimal("10.00")

    def test_done_survives_totals_failure(
        self, db_session, monkeypatch, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id)

        def broken(job):
            raise ArithmeticError("overflow")

        monkeypatch.setattr(service_job_service, "apply_totals", broken)
        done = service_job_service.update_status(job.id, status="DONE", user_id=cashier.id)
        assert done.status == "DONE"
        assert service_job_service.get_service_job(job.id).status == "DONE"


class TestWarranty:
    """Complaints are only accepted while the warranty runs."""

    def _picked_up(self, outlet, cashier, technician, customer, vehicle, warranty):
        job = intake(
            outlet, customer, vehicle, cashier,
            technician_id=technician.id, warranty_expires_at=warranty,
        )
        for target in ("WORKING", "DONE", "PICKED_UP"):
            service_job_service.update_status(job.id, status=target, user_id=cashier.id)
        return job

    def test_complaint_on_last_day_allowed(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = self._picked_up(outlet, cashier, technician, customer, customer_vehicle, date(2024, 1, 31))
        result = service_job_service.update_status(
            job.id, status="COMPLAINT", user_id=cashier.id, now=datetime(2024, 1, 31, 23, 0)
        )
        assert result.status == "COMPLAINT"

    def test_complaint_after_expiry_rejected(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = self._picked_up(outlet, cashier, technician, customer, customer_vehicle, date(2024, 1, 31))
        with pytest.raises(InvalidStateError):
            service_job_service.update_status(
                job.id, status="COMPLAINT", user_id=cashier.id, now=datetime(2024, 2, 1, 0, 30)
            )
        assert service_job_service.get_service_job(job.id).status == "PICKED_UP"

    def test_expiry_judged_on_outlet_local_date(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        outlet_service.update_outlet(outlet.id, {"timezone": "Asia/Jakarta"})
        job = self._picked_up(outlet, cashier, technician, customer, customer_vehicle, date(2024, 1, 31))
        # 18:00 UTC on Jan 31 is already Feb 1 in Jakarta (UTC+7)
        with pytest.raises(InvalidStateError):
            service_job_service.update_status(
                job.id, status="COMPLAINT", user_id=cashier.id, now=datetime(2024, 1, 31, 18, 0)
            )

    def test_no_warranty_means_no_limit(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = self._picked_up(outlet, cashier, technician, customer, customer_vehicle, None)
        result = service_job_service.update_status(
            job.id, status="COMPLAINT", user_id=cashier.id, now=datetime(2099, 1, 1)
        )
        assert result.status == "COMPLAINT"


class TestUpdateAndDelete:
    """Edits and withdrawal of jobs."""

    def test_delete_compacts_queue(self, db_session, outlet, cashier, customer, customer_vehicle):
        first, second, third = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(3)]
        service_job_service.delete_service_job(second.id)

        assert service_job_service.get_service_job(first.id).queue_number == 1
        assert service_job_service.get_service_job(third.id).queue_number == 2
        with pytest.raises(NotFoundError):
            service_job_service.get_service_job(second.id)

        fourth = intake(outlet, customer, customer_vehicle, cashier)
        assert fourth.queue_number == 3

    def test_delete_removes_details(
        self, db_session, outlet, cashier, customer, customer_vehicle, service
    ):
        job = intake(outlet, customer, customer_vehicle, cashier)
        detail = service_detail_service.create_detail(job.id, {"item_type": "SERVICE", "item_id": service.id})
        service_job_service.delete_service_job(job.id)
        with pytest.raises(NotFoundError):
            service_detail_service.get_detail(detail.id)

    def test_only_queued_jobs_can_be_deleted(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id)
        with pytest.raises(IntegrityViolation):
            service_job_service.delete_service_job(job.id)

    def test_status_not_patchable(self, db_session, outlet, cashier, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier)
        with pytest.raises(ValidationError):
            service_job_service.update_service_job(job.id, {"status": "DONE"})

    def test_patch_after_pickup_rejected(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        for target in ("WORKING", "DONE", "PICKED_UP"):
            service_job_service.update_status(job.id, status=target, user_id=cashier.id)
        with pytest.raises(InvalidStateError):
            service_job_service.update_service_job(job.id, {"technician_notes": "late note"})

    def test_patch_vehicle_must_match_customer(
        self, db_session, outlet, cashier, customer, customer_vehicle
    ):
        other = Customer(name="Other", phone="0822")
        db_session.add(other)
        db_session.flush()
        other_vehicle = CustomerVehicle(
            customer_id=other.id, plate_number="D1", chassis_number="D2", engine_number="D3"
        )
        db_session.add(other_vehicle)
        db_session.commit()

        job = intake(outlet, customer, customer_vehicle, cashier)
        with pytest.raises(ValidationError):
            service_job_service.update_service_job(job.id, {"vehicle_id": other_vehicle.id})

        moved = service_job_service.update_service_job(
            job.id, {"customer_id": other.id, "vehicle_id": other_vehicle.id}
        )
        assert moved.customer_id == other.id

    def test_lookup_by_code(self, db_session, outlet, cashier, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier)
        assert service_job_service.get_by_service_code(job.service_code).id == job.id
        with pytest.raises(NotFoundError):
            service_job_service.get_by_service_code("SJ-0-9999")


class TestHistoryBestEffort:
    """A broken history sink never blocks the job change."""

    def test_intake_commits_without_history(self, db_session, outlet, cashier, customer, customer_vehicle):
        writer = FailingHistoryWriter()
        job = intake(outlet, customer, customer_vehicle, cashier, history=writer)

        assert writer.calls == 1
        assert service_job_service.get_service_job(job.id).status == "QUEUED"
        assert db_session.query(ServiceJobHistory).count() == 0

    def test_transition_commits_without_history(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        writer = FailingHistoryWriter()
        service_job_service.update_status(job.id, status="WORKING", user_id=cashier.id, history=writer)

        assert writer.calls == 1
        assert service_job_service.get_service_job(job.id).status == "WORKING"
        assert [h.status for h in history_service.history_for_job(job.id)] == ["QUEUED"]

    def test_history_for_user(self, db_session, outlet, cashier, technician, customer, customer_vehicle):
        job = intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id)
        service_job_service.update_status(job.id, status="WORKING", user_id=technician.id)
        assert [h.status for h in history_service.history_for_user(technician.id)] == ["WORKING"]
