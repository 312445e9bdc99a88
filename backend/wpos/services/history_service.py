# Overview: Append-only service-job history behind a HistoryWriter capability.

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..extensions import db
from ..models import ServiceJob, ServiceJobHistory
from ..time_utils import utcnow
from .lookup import get_live, paginate


class HistoryWriter(Protocol):
    """Anything that can record a job event. Status transitions only see this."""

    def append(
        self,
        *,
        job_id: int,
        user_id: int,
        status: str | None,
        notes: str | None,
        changed_at: datetime | None = None,
    ) -> None:
        ...


class SqlHistoryWriter:
    """
    Writes history rows into the caller's transaction, inside a savepoint.

    A failed insert only unwinds its own savepoint, so the caller can log
    the failure and still commit the main change.
    """

    def append(
        self,
        *,
        job_id: int,
        user_id: int,
        status: str | None,
        notes: str | None,
        changed_at: datetime | None = None,
    ) -> None:
        with db.session.begin_nested():
            db.session.add(
                ServiceJobHistory(
                    service_job_id=job_id,
                    user_id=user_id,
                    status=status,
                    notes=notes,
                    changed_at=changed_at or utcnow(),
                    created_by=user_id,
                )
            )


default_writer = SqlHistoryWriter()


def get_history(history_id: int) -> ServiceJobHistory:
    return get_live(ServiceJobHistory, history_id, "History entry")


def list_history(*, limit=None, offset=None) -> list[ServiceJobHistory]:
    return paginate(
        ServiceJobHistory.live(),
        (ServiceJobHistory.changed_at.desc(), ServiceJobHistory.id.desc()),
        limit,
        offset,
    )


def history_for_job(job_id: int) -> list[ServiceJobHistory]:
    """Oldest first, so the list reads as the job's timeline."""
    get_live(ServiceJob, job_id, "Service job", include_deleted=True)
    return (
        ServiceJobHistory.live()
        .filter(ServiceJobHistory.service_job_id == job_id)
        .order_by(ServiceJobHistory.changed_at.asc(), ServiceJobHistory.id.asc())
        .all()
    )


def history_for_user(user_id: int, *, limit=None, offset=None) -> list[ServiceJobHistory]:
    query = ServiceJobHistory.live().filter(ServiceJobHistory.user_id == user_id)
    return paginate(query, (ServiceJobHistory.changed_at.desc(), ServiceJobHistory.id.desc()), limit, offset)
