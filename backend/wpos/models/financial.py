from __future__ import annotations

from ..extensions import db
from ..money import as_str
from ..time_utils import to_iso_date
from .base import AuditMixin


FLOW_INFLOW = "INFLOW"
FLOW_OUTFLOW = "OUTFLOW"
FLOW_TYPES = {FLOW_INFLOW, FLOW_OUTFLOW}


class CashFlow(AuditMixin, db.Model):
    """Money in or out of the till, optionally attributed to an outlet."""
    __tablename__ = "cash_flows"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_cash_flows_amount_positive"),
        db.Index("ix_cash_flows_type_date", "flow_type", "flow_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    flow_type = db.Column(db.String(16), nullable=False)
    source = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    flow_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "flow_type": self.flow_type,
            "source": self.source,
            "amount": as_str(self.amount),
            "flow_date": to_iso_date(self.flow_date),
            "notes": self.notes,
            "user_id": self.user_id,
            "outlet_id": self.outlet_id,
            **self.audit_dict(),
        }
