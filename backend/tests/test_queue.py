# Overview: Pytest coverage for the outlet work queue: views and atomic reordering.

import threading
from datetime import datetime, timedelta

import pytest

from conftest import intake
from wpos import create_app
from wpos.extensions import db
from wpos.models import Customer, CustomerVehicle, Outlet, User
from wpos.errors import InvalidStateError, NotFoundError, ValidationError
from wpos.services import queue_service, service_job_service


def _numbers(*jobs):
    return [service_job_service.get_service_job(j.id).queue_number for j in jobs]


class TestQueueViews:
    """Queue listings only show QUEUED and WORKING jobs."""

    def test_queue_in_number_order(self, db_session, outlet, cashier, technician, customer, customer_vehicle):
        a, b, c = [intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id) for _ in range(3)]
        service_job_service.update_status(b.id, status="WORKING", user_id=technician.id)
        service_job_service.update_status(c.id, status="WORKING", user_id=technician.id)
        service_job_service.update_status(c.id, status="DONE", user_id=technician.id)

        queue = queue_service.get_queue(outlet.id)
        assert [j.id for j in queue] == [a.id, b.id]

    def test_today_queue_skips_earlier_days(self, db_session, outlet, cashier, customer, customer_vehicle):
        now = datetime(2024, 6, 10, 8, 0)
        old = intake(outlet, customer, customer_vehicle, cashier, intake_at=now - timedelta(days=1))
        fresh = intake(outlet, customer, customer_vehicle, cashier, intake_at=now)

        assert [j.id for j in queue_service.get_today_queue(outlet.id, now=now)] == [fresh.id]
        assert [j.id for j in queue_service.get_queue(outlet.id)] == [old.id, fresh.id]

    def test_unknown_outlet(self, db_session):
        with pytest.raises(NotFoundError):
            queue_service.get_queue(404)


class TestReorder:
    """Reordering rewrites queue numbers all-or-nothing."""

    def test_reorder_follows_list_order(self, db_session, outlet, cashier, customer, customer_vehicle):
        a, b, c = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(3)]
        result = queue_service.reorder_queue(outlet.id, [c.id, a.id, b.id])

        assert [j.id for j in result] == [c.id, a.id, b.id]
        assert _numbers(c, a, b) == [1, 2, 3]
        assert [j.id for j in queue_service.get_queue(outlet.id)] == [c.id, a.id, b.id]

    def test_current_order_is_a_no_op(self, db_session, outlet, cashier, customer, customer_vehicle):
        a, b, c = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(3)]
        queue_service.reorder_queue(outlet.id, [a.id, b.id, c.id])
        queue_service.reorder_queue(outlet.id, [a.id, b.id, c.id])
        assert _numbers(a, b, c) == [1, 2, 3]

    def test_listed_jobs_numbered_from_one(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        a, b, c = [intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id) for _ in range(3)]
        service_job_service.update_status(a.id, status="WORKING", user_id=cashier.id)
        service_job_service.update_status(a.id, status="DONE", user_id=cashier.id)

        result = queue_service.reorder_queue(outlet.id, [c.id, b.id])
        assert [(j.id, j.queue_number) for j in result] == [(c.id, 1), (b.id, 2)]
        assert [j.id for j in queue_service.get_queue(outlet.id)] == [c.id, b.id]

    def test_missing_id_changes_nothing(self, db_session, outlet, cashier, customer, customer_vehicle):
        a, b = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(2)]
        with pytest.raises(NotFoundError) as exc:
            queue_service.reorder_queue(outlet.id, [b.id, a.id, 999999])
        assert exc.value.details == {"ids": [999999]}
        assert _numbers(a, b) == [1, 2]

    def test_foreign_outlet_job_changes_nothing(
        self, db_session, outlet, other_outlet, cashier, customer, customer_vehicle
    ):
        a, b = [intake(outlet, customer, customer_vehicle, cashier) for _ in range(2)]
        stranger = intake(other_outlet, customer, customer_vehicle, cashier)
        with pytest.raises(ValidationError):
            queue_service.reorder_queue(outlet.id, [b.id, stranger.id, a.id])
        assert _numbers(a, b) == [1, 2]
        assert _numbers(stranger) == [1]

    def test_finished_job_cannot_be_reordered(
        self, db_session, outlet, cashier, technician, customer, customer_vehicle
    ):
        a, b = [intake(outlet, customer, customer_vehicle, cashier, technician_id=technician.id) for _ in range(2)]
        service_job_service.update_status(a.id, status="WORKING", user_id=cashier.id)
        service_job_service.update_status(a.id, status="DONE", user_id=cashier.id)
        with pytest.raises(InvalidStateError):
            queue_service.reorder_queue(outlet.id, [b.id, a.id])
        assert _numbers(a, b) == [1, 2]

    @pytest.mark.parametrize("job_ids", [[], "1,2", [1, 1], [1, "2"], [True]])
    def test_malformed_lists_rejected(self, db_session, outlet, job_ids):
        with pytest.raises(ValidationError):
            queue_service.reorder_queue(outlet.id, job_ids)


class TestConcurrentIntake:
    """Intakes racing on one database file still get distinct, gap-free numbers."""

    WORKERS = 4

    @pytest.fixture
    def shared_app(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'queue.sqlite3'}",
            'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30, 'check_same_thread': False}},
        })
        with app.app_context():
            db.create_all()
            outlet = Outlet(name="Race Workshop", branch_type="WORKSHOP", timezone="UTC")
            customer = Customer(name="Dewi", phone="081300000001")
            db.session.add_all([outlet, customer])
            db.session.flush()
            user = User(outlet_id=outlet.id, name="Desk", email="race@wpos.test", password_hash="x")
            vehicle = CustomerVehicle(
                customer_id=customer.id, plate_number="D4321RC",
                chassis_number="CHS-RACE-0001", engine_number="ENG-RACE-0001",
            )
            db.session.add_all([user, vehicle])
            db.session.commit()
            app.config['RACE_IDS'] = dict(
                outlet_id=outlet.id, customer_id=customer.id,
                vehicle_id=vehicle.id, received_by_user_id=user.id,
            )
        yield app
        with app.app_context():
            db.session.remove()
            db.engine.dispose()

    def test_parallel_intakes_number_consecutively(self, shared_app):
        barrier = threading.Barrier(self.WORKERS)
        results, errors = [], []

        def worker():
            with shared_app.app_context():
                barrier.wait()
                try:
                    job = service_job_service.create_service_job(
                        problem_description="Rough idle", **shared_app.config['RACE_IDS']
                    )
                    results.append((job.queue_number, job.service_code))
                except Exception as exc:  # collected for the assertion below
                    errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert sorted(number for number, _ in results) == list(range(1, self.WORKERS + 1))
        assert len({code for _, code in results}) == self.WORKERS
