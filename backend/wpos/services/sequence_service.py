# Overview: Per-outlet monotonic counters for service codes and invoice numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceSequence, ServiceCodeSequence

SERVICE_CODE_PREFIX = "SJ"
INVOICE_PREFIX = "INV"


def _bump(model, outlet_id: int) -> int | None:
    stmt = (
        update(model)
        .where(model.outlet_id == outlet_id)
        .values(next_number=model.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = db.session.query(model.next_number).filter(model.outlet_id == outlet_id).scalar()
    return current - 1


def _allocate(model, outlet_id: int) -> int:
    """
    Take the next number from an outlet's counter inside the caller's transaction.

    The counter row is bumped with a single UPDATE, which takes the row lock;
    the first number at an outlet inserts the row, and a concurrent first insert
    falls back to bumping the row the other writer created.
    """
    number = _bump(model, outlet_id)
    if number is None:
        try:
            with db.session.begin_nested():
                db.session.add(model(outlet_id=outlet_id, next_number=2))
            number = 1
        except IntegrityError:
            number = _bump(model, outlet_id)
            if number is None:
                raise
    return number


def next_service_code(outlet_id: int, *, pad: int = 4) -> str:
    """Allocate the next SJ-<outlet>-<n> code."""
    number = _allocate(ServiceCodeSequence, outlet_id)
    return f"{SERVICE_CODE_PREFIX}-{outlet_id}-{number:0{pad}d}"


def next_invoice_number(outlet_id: int, *, pad: int = 6) -> str:
    """Allocate the next INV-<outlet>-<n> invoice number."""
    number = _allocate(InvoiceSequence, outlet_id)
    return f"{INVOICE_PREFIX}-{outlet_id}-{number:0{pad}d}"
