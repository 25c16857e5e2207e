"""
Movement ledger: append-only cash events scoped to a shift.

INVARIANTS:
- Movements are only created against a shift whose status is 'open', checked
  by a conditional write (claim_open_shift) in the inserting transaction
- Movements are immutable; corrections are compensating movements
- The balance is always the full sum of the log, never a stored counter:
    opening + income + deposit - expense - withdrawal
  over cash-settled entries only. Card/QR settlement records are kept for
  audit but do not touch the physical till.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashMovement, CashRegisterShift, MOVEMENT_KINDS, SHIFT_STATUS_OPEN
from ..models.registers import MOVEMENT_DEPOSIT, MOVEMENT_EXPENSE, MOVEMENT_INCOME, MOVEMENT_WITHDRAWAL
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ShiftNotOpen,
    ValidationError,
    optional_text,
    parse_amount,
    quantize_amount,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry


CASH_PAYMENT_METHODS = frozenset({"cash", "efectivo"})

_BALANCE_EFFECT = {
    MOVEMENT_INCOME: 1,
    MOVEMENT_DEPOSIT: 1,
    MOVEMENT_EXPENSE: -1,
    MOVEMENT_WITHDRAWAL: -1,
}


def is_cash_method(payment_method: str | None) -> bool:
    return (payment_method or "").strip().lower() in CASH_PAYMENT_METHODS


def balance_effect(kind: str) -> int:
    """+1 for money entering the till, -1 for money leaving it."""
    try:
        return _BALANCE_EFFECT[kind]
    except KeyError:
        raise ValidationError(
            f"Invalid movement kind '{kind}'. Must be one of: {', '.join(MOVEMENT_KINDS)}"
        )


def _get_shift(shift_id: int) -> CashRegisterShift:
    shift = db.session.get(CashRegisterShift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def claim_open_shift(shift_id: int) -> bool:
    """
    Bump the shift's version_id, but only while it is still open.

    This is a write, not a read: it takes SQLite's database lock (a row lock
    on PostgreSQL) for the rest of the transaction, and a close that read the
    shift before this runs fails its version check. False means the shift is
    not open at write time. Loaded instances keep the old version_id until
    they are refreshed or the transaction ends.
    """
    result = db.session.execute(
        update(CashRegisterShift)
        .where(CashRegisterShift.id == shift_id, CashRegisterShift.status == SHIFT_STATUS_OPEN)
        .values(version_id=CashRegisterShift.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def record_movement(
    shift_id: int,
    kind: str,
    amount,
    payment_method: str,
    concept: str,
    actor_id: int,
    *,
    request_id: str | None = None,
    order_id: str | None = None,
    expense_category: str | None = None,
    transfer_id: int | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> CashMovement:
    """
    Append a movement to an open shift.

    Args:
        shift_id: Shift the movement belongs to
        kind: income | expense | deposit | withdrawal
        amount: Strictly positive amount (Decimal, int or numeric string)
        payment_method: Tag such as "cash", "card", "qr"
        concept: Free-text description
        actor_id: Identity recording the movement
        request_id: Optional idempotency key; a repeated submission with the
            same kind, amount and payment method returns the movement already
            stored instead of writing a second one
        commit: False when the caller owns the transaction (transfers)

    Raises:
        InvalidAmount: amount is non-numeric or <= 0
        ShiftNotOpen: shift is closed at insert time
        ConflictError: request_id already used on another shift or with a
            different payload
        NotFoundError: shift does not exist
    """
    amount = parse_amount(amount)
    balance_effect(kind)
    payment_method = require_text(payment_method, "payment_method", max_length=32).lower()
    concept = require_text(concept, "concept")
    request_id = optional_text(request_id, "request_id", max_length=64)
    order_id = optional_text(order_id, "order_id", max_length=64)
    expense_category = optional_text(expense_category, "expense_category", max_length=64)

    def _existing_for_request() -> CashMovement | None:
        if not request_id:
            return None
        existing = db.session.query(CashMovement).filter_by(request_id=request_id).first()
        if not existing:
            return None
        if existing.shift_id != shift_id:
            raise ConflictError("request_id already used for a different shift")
        if (existing.kind, Decimal(existing.amount), existing.payment_method) != (kind, amount, payment_method):
            raise ConflictError("request_id already used for a different movement")
        return existing

    def _op():
        shift = lock_for_update(db.session.query(CashRegisterShift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")

        existing = _existing_for_request()
        if existing:
            return existing

        if not claim_open_shift(shift.id):
            raise ShiftNotOpen(f"Shift {shift_id} is not open")

        movement = CashMovement(
            shift_id=shift.id,
            branch_id=shift.branch_id,
            kind=kind,
            amount=amount,
            payment_method=payment_method,
            concept=concept,
            actor_id=actor_id,
            created_at=now or utcnow(),
            transfer_id=transfer_id,
            request_id=request_id,
            order_id=order_id,
            expense_category=expense_category,
        )
        db.session.add(movement)

        if not commit:
            db.session.flush()
            return movement

        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent duplicate submission won the unique request_id race
            db.session.rollback()
            existing = _existing_for_request()
            if existing:
                return existing
            raise
        return movement

    if not commit:
        return _op()
    return run_with_retry(_op)


def list_movements(shift_id: int, *, oldest_first: bool = False) -> list[CashMovement]:
    """Movements of a shift, newest first unless oldest_first."""
    _get_shift(shift_id)
    order = (CashMovement.created_at, CashMovement.id)
    if not oldest_first:
        order = tuple(col.desc() for col in order)
    return db.session.query(CashMovement).filter_by(shift_id=shift_id).order_by(*order).all()


def _sum_balance(opening_amount, rows) -> Decimal:
    balance = Decimal(opening_amount or 0)
    for kind, amount, payment_method in rows:
        if not is_cash_method(payment_method):
            continue
        balance += balance_effect(kind) * Decimal(amount)
    return quantize_amount(balance)


def compute_balance(shift_id: int) -> Decimal:
    """
    Expected cash in the till right now, reconstructed from the log.

    Summed in Python with Decimal so the result is exact and independent of
    the database's numeric handling (SQLite sums NUMERIC as floats).
    """
    shift = _get_shift(shift_id)
    rows = db.session.query(
        CashMovement.kind,
        CashMovement.amount,
        CashMovement.payment_method,
    ).filter(CashMovement.shift_id == shift_id).all()
    return _sum_balance(shift.opening_amount, rows)


def summarize_movements(shift_id: int) -> dict:
    """
    Totals per kind and per payment method for shift summaries.

    Returns amounts as Decimals:
    {
        "by_kind": {"income": {"cash": .., "non_cash": .., "count": n}, ...},
        "by_payment_method": {"cash": {"income": .., ...}, "card": {...}},
        "cash_in", "cash_out", "non_cash_total", "movement_count"
    }
    """
    _get_shift(shift_id)
    zero = Decimal("0.00")
    by_kind = {kind: {"cash": zero, "non_cash": zero, "count": 0} for kind in MOVEMENT_KINDS}
    by_method: dict[str, dict[str, Decimal]] = {}
    cash_in = zero
    cash_out = zero
    non_cash_total = zero
    count = 0

    rows = db.session.query(
        CashMovement.kind,
        CashMovement.amount,
        CashMovement.payment_method,
    ).filter(CashMovement.shift_id == shift_id).all()

    for kind, amount, payment_method in rows:
        amount = Decimal(amount)
        count += 1
        bucket = by_kind[kind]
        bucket["count"] += 1

        method_totals = by_method.setdefault(payment_method, {k: zero for k in MOVEMENT_KINDS})
        method_totals[kind] += amount

        if is_cash_method(payment_method):
            bucket["cash"] += amount
            if balance_effect(kind) > 0:
                cash_in += amount
            else:
                cash_out += amount
        else:
            bucket["non_cash"] += amount
            non_cash_total += amount

    return {
        "by_kind": by_kind,
        "by_payment_method": by_method,
        "cash_in": cash_in,
        "cash_out": cash_out,
        "non_cash_total": non_cash_total,
        "movement_count": count,
    }
