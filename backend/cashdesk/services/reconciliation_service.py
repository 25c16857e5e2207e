# Overview: Discrepancy records written at shift close and the statistics read from them.

"""
Reconciliation & discrepancy reporting.

RULES:
- Exactly one DiscrepancyRecord per closed shift, written inside the close
  transaction and never updated afterwards
- "Perfect" means discrepancy == 0 exactly; there is no tolerance band
- precision_pct = round(perfect / total * 100), 100 when there are no shifts
- "This month" and "today" windows are operational days (00:00-04:59 still
  belongs to the previous day), read from shift_date
- Sums are done in Python with Decimal; SQLite would sum NUMERIC as floats
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import CashRegisterShift, DiscrepancyRecord
from ..operational_day import operational_day_for, operational_month_bounds
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, quantize_amount
from .register_service import branch_timezone, get_branch


ZERO = Decimal("0.00")


def record_discrepancy(shift: CashRegisterShift) -> DiscrepancyRecord:
    """
    Persist the discrepancy fact for a shift that is being closed.

    Called by close_shift inside its transaction (flush only; the caller
    commits). The user is the closer: the person who counted the cash.
    """
    existing = db.session.query(DiscrepancyRecord.id).filter_by(shift_id=shift.id).first()
    if existing:
        raise ConflictError(f"Discrepancy already recorded for shift {shift.id}")

    tz_name = branch_timezone(shift.branch)

    record = DiscrepancyRecord(
        shift_id=shift.id,
        branch_id=shift.branch_id,
        user_id=shift.closed_by,
        register_id=shift.register_id,
        expected_amount=shift.expected_amount,
        actual_amount=shift.counted_amount,
        discrepancy=shift.discrepancy,
        shift_date=operational_day_for(shift.closed_at, tz_name),
        notes=shift.notes,
    )
    db.session.add(record)
    db.session.flush()
    return record


def precision_pct(perfect_shifts: int, total_shifts: int) -> int:
    if total_shifts == 0:
        return 100
    ratio = Decimal(perfect_shifts) * 100 / Decimal(total_shifts)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _aggregate(discrepancies) -> dict:
    total = 0
    perfect = 0
    net = ZERO
    surplus = ZERO
    shortage = ZERO
    for value in discrepancies:
        value = Decimal(value)
        total += 1
        if value == 0:
            perfect += 1
        elif value > 0:
            surplus += value
        else:
            shortage += -value
        net += value
    return {
        "total_shifts": total,
        "perfect_shifts": perfect,
        "precision_pct": precision_pct(perfect, total),
        "total_discrepancy": quantize_amount(net),
        "total_surplus": quantize_amount(surplus),
        "total_shortage": quantize_amount(shortage),
    }


def _today(branch_id: int | None, now: datetime | None) -> date:
    branch = get_branch(branch_id) if branch_id is not None else None
    return operational_day_for(now or utcnow(), branch_timezone(branch))


def get_cashier_statistics(
    user_id: int,
    branch_id: int | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """
    Precision card for one cashier.

    Returns:
        total_shifts, perfect_shifts, precision_pct,
        discrepancy_this_month (operational month of `now`),
        discrepancy_total, total_surplus, total_shortage, last_closing_date
    """
    query = db.session.query(
        DiscrepancyRecord.discrepancy,
        DiscrepancyRecord.shift_date,
    ).filter(DiscrepancyRecord.user_id == user_id)
    if branch_id is not None:
        query = query.filter(DiscrepancyRecord.branch_id == branch_id)
    rows = query.all()

    month_start, month_end = operational_month_bounds(_today(branch_id, now))

    summary = _aggregate(row.discrepancy for row in rows)
    this_month = sum(
        (Decimal(row.discrepancy) for row in rows if month_start <= row.shift_date < month_end),
        ZERO,
    )
    last_closing = max((row.shift_date for row in rows), default=None)

    return {
        "user_id": user_id,
        "branch_id": branch_id,
        "total_shifts": summary["total_shifts"],
        "perfect_shifts": summary["perfect_shifts"],
        "precision_pct": summary["precision_pct"],
        "discrepancy_this_month": quantize_amount(this_month),
        "discrepancy_total": summary["total_discrepancy"],
        "total_surplus": summary["total_surplus"],
        "total_shortage": summary["total_shortage"],
        "last_closing_date": last_closing.isoformat() if last_closing else None,
    }


def get_branch_discrepancy_report(
    branch_id: int,
    start_day: date | None = None,
    end_day: date | None = None,
) -> list[dict]:
    """
    Per-user ranking for supervisors, worst (most negative) total first.

    start_day/end_day are inclusive operational days.
    """
    get_branch(branch_id)
    if start_day and end_day and end_day < start_day:
        raise ValidationError("end must not be before start")

    query = db.session.query(
        DiscrepancyRecord.user_id,
        DiscrepancyRecord.discrepancy,
    ).filter(DiscrepancyRecord.branch_id == branch_id)
    if start_day:
        query = query.filter(DiscrepancyRecord.shift_date >= start_day)
    if end_day:
        query = query.filter(DiscrepancyRecord.shift_date <= end_day)

    per_user: dict[int, list[Decimal]] = {}
    for user_id, discrepancy in query.all():
        per_user.setdefault(user_id, []).append(discrepancy)

    report = []
    for user_id, values in per_user.items():
        row = _aggregate(values)
        row["user_id"] = user_id
        report.append(row)

    report.sort(key=lambda r: (r["total_discrepancy"], r["user_id"]))
    return report


def list_discrepancy_history(
    user_id: int,
    *,
    branch_id: int | None = None,
    limit: int = 10,
) -> list[DiscrepancyRecord]:
    """Recent closings of a cashier, newest operational day first."""
    query = db.session.query(DiscrepancyRecord).filter_by(user_id=user_id)
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    return query.order_by(
        DiscrepancyRecord.shift_date.desc(),
        DiscrepancyRecord.id.desc(),
    ).limit(limit).all()


def get_branch_day_summary(
    branch_id: int,
    day: date | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """
    Closings of one operational day at a branch ("today" when day is None).
    """
    get_branch(branch_id)
    if day is None:
        day = _today(branch_id, now)

    records = db.session.query(DiscrepancyRecord).filter_by(
        branch_id=branch_id,
        shift_date=day,
    ).order_by(DiscrepancyRecord.id).all()

    summary = _aggregate(r.discrepancy for r in records)
    current_app.logger.debug("Day summary for branch %s on %s: %s closings", branch_id, day, len(records))

    return {
        "branch_id": branch_id,
        "operational_day": day.isoformat(),
        **summary,
        "closings": [r.to_dict() for r in records],
    }
