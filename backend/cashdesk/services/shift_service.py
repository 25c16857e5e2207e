"""
Shift lifecycle: open -> closed.

WHY: Each shift is a period of cash accountability for one register. The
close reconciles counted cash against the expected balance rebuilt from the
movement ledger and leaves a permanent discrepancy record.

DESIGN PRINCIPLES:
- One open shift per register; the partial unique index on
  cash_register_shifts is the source of truth, the pre-check is a UX guard
- Closing is terminal: no reopen, no movements afterwards, no retroactive edits
- expected_amount is only a close-time snapshot; open shifts always use
  compute_balance()
- The discrepancy record is written in the same transaction as the close
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    CashRegister,
    CashRegisterShift,
    SHIFT_STATUS_CLOSED,
    SHIFT_STATUS_OPEN,
    SHIFT_STATUSES,
)
from ..operational_day import operational_day_for, operational_range_bounds
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    RegisterAlreadyOpen,
    ShiftNotOpen,
    ValidationError,
    format_amount,
    optional_text,
    parse_amount,
)
from .concurrency import lock_for_update, run_with_retry
from .movement_service import compute_balance, summarize_movements
from .reconciliation_service import record_discrepancy
from .register_service import RegisterError, branch_timezone, get_active_registers
from .transfer_service import list_transfers


def _open_shift_exists(register_id: int) -> bool:
    return db.session.query(CashRegisterShift.id).filter_by(
        register_id=register_id,
        status=SHIFT_STATUS_OPEN,
    ).first() is not None


def open_shift(
    register_id: int,
    opener_id: int,
    opening_amount=0,
    *,
    now: datetime | None = None,
) -> CashRegisterShift:
    """
    Open a new shift on a register.

    Args:
        register_id: Register to open the shift on
        opener_id: Identity opening the shift
        opening_amount: Starting cash in the till, to the cent (default 0)

    Raises:
        RegisterAlreadyOpen: register already has an open shift (pre-check or
            rejected by the storage-level unique index when two sessions race)
        RegisterError: register is inactive
        NotFoundError: register does not exist
        InvalidAmount: opening amount negative or non-numeric
    """
    opening_amount = parse_amount(opening_amount, "opening_amount", allow_zero=True)

    def _op():
        register = db.session.get(CashRegister, register_id)
        if not register:
            raise NotFoundError("Register not found")

        if not register.is_active:
            raise RegisterError("Cannot open shift on inactive register")

        existing_open = get_open_shift(register_id)
        if existing_open:
            raise RegisterAlreadyOpen(f"Register already has open shift (shift {existing_open.id})")

        shift = CashRegisterShift(
            register_id=register.id,
            branch_id=register.branch_id,
            opened_by=opener_id,
            opened_at=now or utcnow(),
            status=SHIFT_STATUS_OPEN,
            opening_amount=opening_amount,
        )
        db.session.add(shift)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if _open_shift_exists(register_id):
                raise RegisterAlreadyOpen("Register already has open shift")
            raise

        return shift

    shift = run_with_retry(_op)
    current_app.logger.info(
        "Shift %s opened on register %s by %s with %s",
        shift.id, shift.register_id, opener_id, format_amount(shift.opening_amount),
    )
    return shift


def close_shift(
    shift_id: int,
    closer_id: int,
    counted_amount,
    notes: str | None = None,
    *,
    now: datetime | None = None,
) -> CashRegisterShift:
    """
    Close a shift and reconcile counted cash against the ledger.

    discrepancy = counted - compute_balance(shift). A non-zero discrepancy is
    a business outcome, recorded as data, never an error.

    Raises:
        ShiftNotOpen: shift already closed (a second close never overwrites)
        NotFoundError: shift does not exist
        InvalidAmount: counted amount negative or non-numeric
    """
    counted = parse_amount(counted_amount, "counted_amount", allow_zero=True)
    notes = optional_text(notes, "notes", max_length=2000)

    def _op():
        shift = lock_for_update(db.session.query(CashRegisterShift).filter_by(id=shift_id)).first()

        if not shift:
            raise NotFoundError("Shift not found")

        if not shift.is_open:
            raise ShiftNotOpen("Shift already closed")

        expected = compute_balance(shift.id)

        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_by = closer_id
        shift.closed_at = now or utcnow()
        shift.counted_amount = counted
        shift.expected_amount = expected
        shift.discrepancy = counted - expected
        shift.notes = notes

        record_discrepancy(shift)

        db.session.commit()
        return shift

    shift = run_with_retry(_op)

    if shift.discrepancy:
        current_app.logger.warning(
            "Shift %s closed by %s with discrepancy %s (expected %s, counted %s)",
            shift.id, closer_id, format_amount(shift.discrepancy),
            format_amount(shift.expected_amount), format_amount(shift.counted_amount),
        )
    else:
        current_app.logger.info("Shift %s closed by %s with no discrepancy", shift.id, closer_id)

    return shift


def get_shift(shift_id: int) -> CashRegisterShift:
    shift = db.session.get(CashRegisterShift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def get_open_shift(register_id: int) -> CashRegisterShift | None:
    """Get the currently open shift for a register, if any."""
    return db.session.query(CashRegisterShift).filter_by(
        register_id=register_id,
        status=SHIFT_STATUS_OPEN,
    ).first()


def list_shifts(
    register_id: int,
    start_day: date | None = None,
    end_day: date | None = None,
    *,
    status: str | None = None,
    limit: int | None = None,
) -> list[CashRegisterShift]:
    """
    Shifts of a register, newest first.

    start_day/end_day are inclusive operational days matched against
    opened_at in the branch's timezone (a shift opened at 01:00 belongs to
    the previous day).
    """
    register = db.session.get(CashRegister, register_id)
    if not register:
        raise NotFoundError("Register not found")

    if status is not None and status not in SHIFT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SHIFT_STATUSES)}")

    if start_day and end_day and end_day < start_day:
        raise ValidationError("end must not be before start")

    if limit is not None and limit < 1:
        raise ValidationError("limit must be at least 1")

    query = db.session.query(CashRegisterShift).filter_by(register_id=register_id)

    tz_name = branch_timezone(register.branch)
    if start_day:
        start_utc, _ = operational_range_bounds(start_day, start_day, tz_name)
        query = query.filter(CashRegisterShift.opened_at >= start_utc)
    if end_day:
        _, end_utc = operational_range_bounds(end_day, end_day, tz_name)
        query = query.filter(CashRegisterShift.opened_at < end_utc)
    if status:
        query = query.filter_by(status=status)

    query = query.order_by(CashRegisterShift.opened_at.desc(), CashRegisterShift.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_open_shifts_for_branch(branch_id: int) -> list[dict]:
    """
    Dashboard view: every active register with its open shift and live balance.

    Dashboards poll this (DASHBOARD_REFRESH_SECONDS); there is no push.
    """
    result = []
    for register in get_active_registers(branch_id):
        shift = get_open_shift(register.id)
        result.append({
            "register": register,
            "shift": shift,
            "balance": compute_balance(shift.id) if shift else None,
        })
    return result


def get_shift_summary(shift_id: int) -> dict:
    """
    Printed shift-close summary.

    Returns:
        - shift and register details
        - operational day the shift belongs to
        - expected amount (live while open, close snapshot once closed)
        - movement totals per kind / payment method
        - transfers in and out of the shift
    """
    shift = get_shift(shift_id)
    tz_name = branch_timezone(shift.branch)
    expected = compute_balance(shift.id) if shift.is_open else shift.expected_amount
    totals = summarize_movements(shift.id)

    transfers = list_transfers(shift.id)

    return {
        "shift": shift.to_dict(),
        "register": shift.register.to_dict(),
        "operational_day": operational_day_for(shift.opened_at, tz_name).isoformat(),
        "is_closed": not shift.is_open,
        "expected_amount": format_amount(expected),
        "cash_in": format_amount(totals["cash_in"]),
        "cash_out": format_amount(totals["cash_out"]),
        "non_cash_total": format_amount(totals["non_cash_total"]),
        "movement_count": totals["movement_count"],
        "by_kind": {
            kind: {
                "cash": format_amount(bucket["cash"]),
                "non_cash": format_amount(bucket["non_cash"]),
                "count": bucket["count"],
            }
            for kind, bucket in totals["by_kind"].items()
        },
        "by_payment_method": {
            method: {kind: format_amount(value) for kind, value in kinds.items()}
            for method, kinds in totals["by_payment_method"].items()
        },
        "transfers": [t.to_dict() for t in transfers],
    }
