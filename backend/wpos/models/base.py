# Overview: Shared audit columns and soft-delete behaviour for every table.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


LIVE_ROWS = "deleted_at IS NULL"


def live_unique_index(name: str, *columns: str):
    """
    Unique index that only covers live rows.

    Soft-deleted rows keep their values but must not block reuse, so the
    index is partial on both SQLite and PostgreSQL.
    """
    return db.Index(
        name,
        *columns,
        unique=True,
        sqlite_where=db.text(LIVE_ROWS),
        postgresql_where=db.text(LIVE_ROWS),
    )


class AuditMixin:
    """
    created_at / updated_at / deleted_at / created_by on every row.

    Soft-deleted rows (deleted_at set) stay physically present but are
    invisible to `live()` queries, which is what every default read uses.
    """
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)
    created_by = db.Column(db.Integer, nullable=True)

    @classmethod
    def live(cls):
        return db.session.query(cls).filter(cls.deleted_at.is_(None))

    @classmethod
    def scoped(cls, include_deleted: bool = False):
        if include_deleted:
            return db.session.query(cls)
        return cls.live()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, when=None) -> None:
        self.deleted_at = when or utcnow()

    def audit_dict(self) -> dict:
        return {
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "created_by": self.created_by,
        }
