# Overview: Per-outlet work queue: queue-number assignment, queue views, and atomic reordering.

"""
Outlet work queue

- A job's queue_number is its intake position at its outlet on its intake
  date (outlet-local civil date). Numbers restart at 1 every day.
- Every writer of queue numbers (intake, delete, reorder) first takes the
  outlet lock via lock_outlet(), so two intakes at one outlet can never both
  read the same MAX(queue_number).
- The queue view is the outlet's QUEUED + WORKING jobs, by queue_number.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, update

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Outlet, ServiceJob
from ..models.services import QUEUE_STATUSES
from ..time_utils import local_date, utcnow
from .concurrency import begin_serialized, lock_for_update, run_with_retry
from .lookup import get_live


def lock_outlet(outlet_id: int) -> Outlet:
    """
    Serialize queue writers for one outlet.

    SELECT ... FOR UPDATE on the outlet row; on SQLite the whole database
    write lock is taken instead.
    """
    begin_serialized()
    outlet = lock_for_update(Outlet.live().filter(Outlet.id == outlet_id)).first()
    if outlet is None:
        raise NotFoundError("Outlet not found", {"id": outlet_id})
    return outlet


def outlet_today(outlet: Outlet, now: datetime | None = None) -> date:
    return local_date(now or utcnow(), outlet.timezone)


def next_queue_number(outlet_id: int, intake_date: date) -> int:
    """One past the highest queue number of the outlet's live jobs that day. Hold lock_outlet()."""
    current = (
        db.session.query(func.max(ServiceJob.queue_number))
        .filter(
            ServiceJob.outlet_id == outlet_id,
            ServiceJob.intake_date == intake_date,
            ServiceJob.deleted_at.is_(None),
        )
        .scalar()
    )
    return (current or 0) + 1


def close_gap(outlet_id: int, intake_date: date, removed_number: int) -> None:
    """Shift later same-day jobs down by one after a job leaves the day's numbering. Hold lock_outlet()."""
    db.session.execute(
        update(ServiceJob)
        .where(
            ServiceJob.outlet_id == outlet_id,
            ServiceJob.intake_date == intake_date,
            ServiceJob.deleted_at.is_(None),
            ServiceJob.queue_number > removed_number,
        )
        .values(queue_number=ServiceJob.queue_number - 1)
        .execution_options(synchronize_session=False)
    )


def get_queue(outlet_id: int) -> list[ServiceJob]:
    get_live(Outlet, outlet_id, "Outlet")
    return (
        ServiceJob.live()
        .filter(ServiceJob.outlet_id == outlet_id, ServiceJob.status.in_(QUEUE_STATUSES))
        .order_by(ServiceJob.intake_date.asc(), ServiceJob.queue_number.asc(), ServiceJob.id.asc())
        .all()
    )


def get_today_queue(outlet_id: int, *, now: datetime | None = None) -> list[ServiceJob]:
    outlet = get_live(Outlet, outlet_id, "Outlet")
    today = outlet_today(outlet, now)
    return (
        ServiceJob.live()
        .filter(
            ServiceJob.outlet_id == outlet_id,
            ServiceJob.status.in_(QUEUE_STATUSES),
            ServiceJob.intake_date == today,
        )
        .order_by(ServiceJob.queue_number.asc(), ServiceJob.id.asc())
        .all()
    )


def reorder_queue(outlet_id: int, job_ids: list) -> list[ServiceJob]:
    """
    Rewrite queue numbers of the listed jobs in list order.

    The first id becomes number 1, the second number 2, and so on. Jobs not
    listed keep their numbers.

    All-or-nothing: every id must exist, be live, belong to the outlet and be
    QUEUED or WORKING, otherwise no number changes.
    """
    if not isinstance(job_ids, list) or not job_ids:
        raise ValidationError("job_ids must be a non-empty list")
    if any(isinstance(i, bool) or not isinstance(i, int) for i in job_ids):
        raise ValidationError("job_ids must be integers")
    if len(set(job_ids)) != len(job_ids):
        raise ValidationError("job_ids must not contain duplicates")

    def _op() -> list[ServiceJob]:
        lock_outlet(outlet_id)
        jobs = (
            ServiceJob.live()
            .filter(ServiceJob.id.in_(job_ids))
            .all()
        )
        by_id = {job.id: job for job in jobs}

        missing = [i for i in job_ids if i not in by_id]
        if missing:
            raise NotFoundError("service jobs not found", {"ids": missing})
        foreign = [i for i in job_ids if by_id[i].outlet_id != outlet_id]
        if foreign:
            raise ValidationError("service jobs belong to another outlet", {"ids": foreign})
        inactive = [i for i in job_ids if by_id[i].status not in QUEUE_STATUSES]
        if inactive:
            raise InvalidStateError("only queued or working jobs can be reordered", {"ids": inactive})

        for number, job_id in enumerate(job_ids, 1):
            by_id[job_id].queue_number = number
        db.session.commit()
        return [by_id[i] for i in job_ids]

    return run_with_retry(_op)
