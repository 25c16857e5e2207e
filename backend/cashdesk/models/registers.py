from __future__ import annotations

from typing import Literal

from ..extensions import db
from cashdesk.time_utils import to_utc_z
from cashdesk.validation import format_amount


RegisterKind = Literal["sales", "relief", "vault"]
ShiftStatus = Literal["open", "closed"]
MovementKind = Literal["income", "expense", "deposit", "withdrawal"]

REGISTER_KIND_SALES = "sales"
REGISTER_KIND_RELIEF = "relief"
REGISTER_KIND_VAULT = "vault"
REGISTER_KINDS = (REGISTER_KIND_SALES, REGISTER_KIND_RELIEF, REGISTER_KIND_VAULT)

SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"
SHIFT_STATUSES = (SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED)

MOVEMENT_INCOME = "income"
MOVEMENT_EXPENSE = "expense"
MOVEMENT_DEPOSIT = "deposit"
MOVEMENT_WITHDRAWAL = "withdrawal"
MOVEMENT_KINDS = (MOVEMENT_INCOME, MOVEMENT_EXPENSE, MOVEMENT_DEPOSIT, MOVEMENT_WITHDRAWAL)


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


Money = db.Numeric(12, 2)


class CashRegister(db.Model):
    """
    Physical till or safe at a branch.

    Kinds form the consolidation hierarchy cash follows:
    sales (till) -> relief (safe) -> vault (main safe) -> out of the building.

    Registers are never deleted; deactivation keeps their shift history.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.CheckConstraint(_in_clause("kind", REGISTER_KINDS), name="kind"),
        db.Index("ix_cash_registers_branch_order", "branch_id", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=REGISTER_KIND_SALES)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("registers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "kind": self.kind,
            "is_active": self.is_active,
            "display_order": self.display_order,
            "created_at": to_utc_z(self.created_at),
        }


class CashRegisterShift(db.Model):
    """
    One open-to-close session of a register.

    LIFECYCLE:
    - open: movements may be recorded; expected cash is recomputed from the ledger
    - closed: terminal; counted cash, expected snapshot and discrepancy are fixed

    At most one open shift per register is enforced by the partial unique
    index below, not only by the service pre-check.
    """
    __tablename__ = "cash_register_shifts"
    __table_args__ = (
        db.CheckConstraint(_in_clause("status", SHIFT_STATUSES), name="status"),
        db.CheckConstraint("opening_amount >= 0", name="opening_amount_non_negative"),
        db.Index(
            "uq_cash_register_shifts_one_open",
            "register_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.Index("ix_cash_register_shifts_register_opened", "register_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Identities come from the external identity provider; no local users table
    opened_by = db.Column(db.Integer, nullable=False, index=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)
    opening_amount = db.Column(Money, nullable=False, default=0)

    closed_by = db.Column(db.Integer, nullable=True, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    counted_amount = db.Column(Money, nullable=True)

    # Snapshot written at close for printed summaries; live value is compute_balance()
    expected_amount = db.Column(Money, nullable=True)
    discrepancy = db.Column(Money, nullable=True)  # counted - expected

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    register = db.relationship("CashRegister", backref=db.backref("shifts", lazy=True))
    branch = db.relationship("Branch")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "register_id": self.register_id,
            "branch_id": self.branch_id,
            "opened_by": self.opened_by,
            "opened_at": to_utc_z(self.opened_at),
            "status": self.status,
            "opening_amount": format_amount(self.opening_amount),
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "counted_amount": format_amount(self.counted_amount),
            "expected_amount": format_amount(self.expected_amount),
            "discrepancy": format_amount(self.discrepancy),
            "notes": self.notes,
            "version_id": self.version_id,
        }


class CashTransfer(db.Model):
    """
    Header tying together the legs of a cash transfer between tiers.

    A tier transfer owns exactly two movements (withdrawal on the source
    shift, deposit on the destination shift). A final withdrawal owns only
    the withdrawal leg: the cash leaves the tracked system (bank deposit,
    owner draw) and destination columns stay NULL.
    """
    __tablename__ = "cash_transfers"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="amount_positive"),
        db.CheckConstraint(
            "(destination_shift_id IS NULL) = is_final_withdrawal",
            name="destination_matches_kind",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    source_shift_id = db.Column(db.Integer, db.ForeignKey("cash_register_shifts.id"), nullable=False, index=True)
    source_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False)
    destination_shift_id = db.Column(db.Integer, db.ForeignKey("cash_register_shifts.id"), nullable=True, index=True)
    destination_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True)

    amount = db.Column(Money, nullable=False)
    concept = db.Column(db.String(255), nullable=False)

    # 1-based count of transfers out of the source shift
    sequence = db.Column(db.Integer, nullable=False)
    is_final_withdrawal = db.Column(db.Boolean, nullable=False, default=False)

    actor_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    source_shift = db.relationship("CashRegisterShift", foreign_keys=[source_shift_id])
    destination_shift = db.relationship("CashRegisterShift", foreign_keys=[destination_shift_id])
    source_register = db.relationship("CashRegister", foreign_keys=[source_register_id])
    destination_register = db.relationship("CashRegister", foreign_keys=[destination_register_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "source_shift_id": self.source_shift_id,
            "source_register_id": self.source_register_id,
            "destination_shift_id": self.destination_shift_id,
            "destination_register_id": self.destination_register_id,
            "amount": format_amount(self.amount),
            "concept": self.concept,
            "sequence": self.sequence,
            "is_final_withdrawal": self.is_final_withdrawal,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
        }


class CashMovement(db.Model):
    """
    Append-only ledger entry against a shift.

    IMMUTABLE: never updated or deleted. Corrections are compensating
    movements on an open shift.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.CheckConstraint(_in_clause("kind", MOVEMENT_KINDS), name="kind"),
        db.CheckConstraint("amount > 0", name="amount_positive"),
        db.Index("ix_cash_movements_shift_created", "shift_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("cash_register_shifts.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    concept = db.Column(db.String(255), nullable=False)

    actor_id = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    transfer_id = db.Column(db.Integer, db.ForeignKey("cash_transfers.id"), nullable=True, index=True)

    # Client-supplied idempotency key for exactly-once submission
    request_id = db.Column(db.String(64), nullable=True, unique=True)

    order_id = db.Column(db.String(64), nullable=True)
    expense_category = db.Column(db.String(64), nullable=True)

    shift = db.relationship("CashRegisterShift", backref=db.backref("movements", lazy=True))
    transfer = db.relationship("CashTransfer", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "branch_id": self.branch_id,
            "kind": self.kind,
            "amount": format_amount(self.amount),
            "payment_method": self.payment_method,
            "concept": self.concept,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
            "transfer_id": self.transfer_id,
            "request_id": self.request_id,
            "order_id": self.order_id,
            "expense_category": self.expense_category,
        }
