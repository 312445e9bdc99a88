# Overview: Shared read helpers for services: live-row fetches, pagination, substring search.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..validation import parse_pagination


def get_live(model, entity_id, label: str, *, include_deleted: bool = False):
    """Fetch one row by id, hiding soft-deleted rows unless asked not to."""
    if entity_id is None:
        raise ValidationError(f"{label} id is required")
    obj = db.session.get(model, entity_id)
    if obj is None or (obj.deleted_at is not None and not include_deleted):
        raise NotFoundError(f"{label} not found", {"id": entity_id})
    return obj


def paginate(query, order_by, limit=None, offset=None) -> list:
    lim, off = parse_pagination(limit, offset)
    return query.order_by(*order_by).limit(lim).offset(off).all()


def substring_filter(term: str, *columns):
    """Case-insensitive substring match over any of the columns; % and _ in term match literally."""
    escaped = term.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(*(col.ilike(pattern, escape="\\") for col in columns))


def find_collision(model, column, value, *, exclude_id=None):
    """Return a live row (other than exclude_id) already holding value in column."""
    if value is None:
        return None
    query = model.live().filter(column == value)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first()


def flush_or_conflict(message: str) -> None:
    """
    Flush pending writes, turning a unique-index race into ConflictError.

    The service-level collision checks run first; this only fires when a
    concurrent writer got there between the check and the insert.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(message) from exc


def normalize_status(value, allowed: set[str], field: str = "status") -> str:
    """Upper-case a status token and check it is one of `allowed`."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    token = str(value).strip().upper().replace("-", "_").replace(" ", "_")
    if token not in allowed:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(sorted(allowed))}"
        )
    return token


def apply_patch(obj, patch: dict, fields: set[str]) -> None:
    for key, value in patch.items():
        if key in fields:
            setattr(obj, key, value)
