from __future__ import annotations

from ..extensions import db
from cashdesk.time_utils import to_utc_z
from cashdesk.validation import format_amount


class DiscrepancyRecord(db.Model):
    """
    Historical fact produced once per shift close.

    WHY: Reporting (cashier precision, branch rankings) reads this table
    instead of re-deriving every closed shift. It is a materialized view of
    close data, not a second source of truth; rows are never updated.

    shift_date is the operational day of the close (00:00-04:59 counts as
    the previous day), not the calendar day.
    """
    __tablename__ = "discrepancy_history"
    __table_args__ = (
        db.Index("ix_discrepancy_history_user_date", "user_id", "shift_date"),
        db.Index("ix_discrepancy_history_branch_date", "branch_id", "shift_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("cash_register_shifts.id"), nullable=False, unique=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True)

    expected_amount = db.Column(db.Numeric(12, 2), nullable=False)
    actual_amount = db.Column(db.Numeric(12, 2), nullable=False)
    discrepancy = db.Column(db.Numeric(12, 2), nullable=False)

    shift_date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift = db.relationship("CashRegisterShift", backref=db.backref("discrepancy_record", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "register_id": self.register_id,
            "expected_amount": format_amount(self.expected_amount),
            "actual_amount": format_amount(self.actual_amount),
            "discrepancy": format_amount(self.discrepancy),
            "shift_date": self.shift_date.isoformat() if self.shift_date else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
