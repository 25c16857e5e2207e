# Overview: Pytest coverage for shift open/close, the one-open-shift rule and discrepancy capture.

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cashdesk.extensions import db
from cashdesk.models import CashRegisterShift, DiscrepancyRecord
from cashdesk.services import movement_service, register_service, shift_service
from cashdesk.services.register_service import RegisterError
from cashdesk.validation import InvalidAmount, NotFoundError, RegisterAlreadyOpen, ShiftNotOpen, ValidationError


class TestOpenShift:

    def test_open_records_opener_and_amount(self, sales_register):
        shift = shift_service.open_shift(sales_register.id, 7, "1000.00")

        assert shift.status == "open"
        assert shift.opened_by == 7
        assert shift.opening_amount == Decimal("1000.00")
        assert shift.branch_id == sales_register.branch_id
        assert shift_service.get_open_shift(sales_register.id).id == shift.id

    def test_second_open_rejected(self, sales_shift, sales_register):
        with pytest.raises(RegisterAlreadyOpen):
            shift_service.open_shift(sales_register.id, 8, "0")

        assert db.session.query(CashRegisterShift).count() == 1

    def test_index_rejects_racing_open(self, sales_shift, sales_register, monkeypatch):
        """A session that missed the other's row still cannot insert a second open shift."""
        monkeypatch.setattr(shift_service, "get_open_shift", lambda register_id: None)

        with pytest.raises(RegisterAlreadyOpen):
            shift_service.open_shift(sales_register.id, 8, "0")

        assert db.session.query(CashRegisterShift).filter_by(status="open").count() == 1

    def test_direct_duplicate_insert_fails(self, sales_shift, sales_register):
        db.session.add(CashRegisterShift(
            register_id=sales_register.id,
            branch_id=sales_register.branch_id,
            opened_by=8,
            opened_at=datetime(2026, 3, 14, 13, 0),
            status="open",
            opening_amount=Decimal("0"),
        ))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_negative_opening_rejected(self, sales_register):
        with pytest.raises(InvalidAmount):
            shift_service.open_shift(sales_register.id, 7, "-1")

    def test_inactive_register_rejected(self, sales_register):
        register_service.deactivate_register(sales_register.id)
        with pytest.raises(RegisterError):
            shift_service.open_shift(sales_register.id, 7, "0")

    def test_unknown_register(self, db_session):
        with pytest.raises(NotFoundError):
            shift_service.open_shift(12345, 7, "0")

    def test_reopen_after_close_is_new_shift(self, sales_shift, sales_register):
        shift_service.close_shift(sales_shift.id, 7, "1000.00")
        new_shift = shift_service.open_shift(sales_register.id, 7, "200.00")
        assert new_shift.id != sales_shift.id


class TestCloseShift:

    def test_close_with_shortage(self, sales_shift):
        movement_service.record_movement(sales_shift.id, "income", "500.00", "cash", "Ventas", 7)
        movement_service.record_movement(sales_shift.id, "expense", "200.00", "cash", "Proveedor", 7)
        movement_service.record_movement(sales_shift.id, "income", "100.00", "card", "Ventas", 7)

        shift = shift_service.close_shift(sales_shift.id, 11, "1290.00", notes="Faltante menor")

        assert shift.status == "closed"
        assert shift.closed_by == 11
        assert shift.expected_amount == Decimal("1300.00")
        assert shift.counted_amount == Decimal("1290.00")
        assert shift.discrepancy == Decimal("-10.00")

        record = db.session.query(DiscrepancyRecord).filter_by(shift_id=shift.id).one()
        assert record.user_id == 11
        assert record.expected_amount == Decimal("1300.00")
        assert record.actual_amount == Decimal("1290.00")
        assert record.discrepancy == Decimal("-10.00")
        assert record.register_id == sales_shift.register_id
        assert record.notes == "Faltante menor"

    def test_exact_close_has_zero_discrepancy(self, sales_shift):
        shift = shift_service.close_shift(sales_shift.id, 7, "1000")
        assert shift.discrepancy == Decimal("0.00")

    def test_second_close_fails_and_keeps_first(self, sales_shift):
        shift_service.close_shift(sales_shift.id, 7, "1000.00")

        with pytest.raises(ShiftNotOpen):
            shift_service.close_shift(sales_shift.id, 8, "900.00")

        shift = shift_service.get_shift(sales_shift.id)
        assert shift.counted_amount == Decimal("1000.00")
        assert shift.closed_by == 7
        assert db.session.query(DiscrepancyRecord).count() == 1

    def test_counted_amount_validated(self, sales_shift):
        with pytest.raises(InvalidAmount):
            shift_service.close_shift(sales_shift.id, 7, "lots")
        assert shift_service.get_shift(sales_shift.id).is_open

    def test_shift_date_is_operational_day(self, sales_shift):
        shift_service.close_shift(sales_shift.id, 7, "1000.00", now=datetime(2026, 3, 15, 1, 30))

        record = db.session.query(DiscrepancyRecord).one()
        assert record.shift_date == date(2026, 3, 14)

    def test_shift_date_uses_branch_timezone(self, db_session):
        branch = register_service.create_branch("Cordoba", timezone="America/Argentina/Cordoba")
        register = register_service.create_register(branch.id, "Caja 1")
        shift = shift_service.open_shift(register.id, 7, "0", now=datetime(2026, 3, 14, 15, 0))

        # 07:00 UTC is 04:00 local (UTC-3)
        shift_service.close_shift(shift.id, 7, "0", now=datetime(2026, 3, 15, 7, 0))

        record = db.session.query(DiscrepancyRecord).one()
        assert record.shift_date == date(2026, 3, 14)


class TestListShifts:

    def _open_close(self, register_id, opened_at):
        shift = shift_service.open_shift(register_id, 7, "0", now=opened_at)
        shift_service.close_shift(shift.id, 7, "0", now=opened_at.replace(hour=23))
        return shift

    def test_range_by_operational_day(self, sales_register):
        day_13 = self._open_close(sales_register.id, datetime(2026, 3, 13, 10, 0))
        day_14 = self._open_close(sales_register.id, datetime(2026, 3, 14, 10, 0))
        # Opened 02:00 on the 15th: belongs to the 14th
        late_14 = shift_service.open_shift(sales_register.id, 7, "0", now=datetime(2026, 3, 15, 2, 0))

        shifts = shift_service.list_shifts(sales_register.id, date(2026, 3, 14), date(2026, 3, 14))
        assert [s.id for s in shifts] == [late_14.id, day_14.id]

        everything = shift_service.list_shifts(sales_register.id)
        assert [s.id for s in everything] == [late_14.id, day_14.id, day_13.id]

    def test_status_filter_and_limit(self, sales_register):
        self._open_close(sales_register.id, datetime(2026, 3, 13, 10, 0))
        self._open_close(sales_register.id, datetime(2026, 3, 14, 10, 0))
        open_one = shift_service.open_shift(sales_register.id, 7, "0", now=datetime(2026, 3, 15, 10, 0))

        assert [s.id for s in shift_service.list_shifts(sales_register.id, status="open")] == [open_one.id]
        assert len(shift_service.list_shifts(sales_register.id, status="closed", limit=1)) == 1

    def test_invalid_filters(self, sales_register):
        with pytest.raises(ValidationError):
            shift_service.list_shifts(sales_register.id, status="paused")
        with pytest.raises(ValidationError):
            shift_service.list_shifts(sales_register.id, date(2026, 3, 14), date(2026, 3, 13))
        with pytest.raises(ValidationError):
            shift_service.list_shifts(sales_register.id, limit=0)


class TestDashboardAndSummary:

    def test_open_shifts_for_branch(self, sales_shift, relief_register, branch):
        rows = shift_service.get_open_shifts_for_branch(branch.id)

        assert [row["register"].kind for row in rows] == ["sales", "relief"]
        assert rows[0]["shift"].id == sales_shift.id
        assert rows[0]["balance"] == Decimal("1000.00")
        assert rows[1]["shift"] is None
        assert rows[1]["balance"] is None

    def test_shift_summary(self, sales_shift):
        movement_service.record_movement(sales_shift.id, "income", "500.00", "cash", "Ventas", 7)
        movement_service.record_movement(sales_shift.id, "income", "80.00", "card", "Ventas", 7)

        summary = shift_service.get_shift_summary(sales_shift.id)

        assert summary["operational_day"] == "2026-03-14"
        assert summary["is_closed"] is False
        assert summary["expected_amount"] == "1500.00"
        assert summary["cash_in"] == "500.00"
        assert summary["non_cash_total"] == "80.00"
        assert summary["by_kind"]["income"]["count"] == 2
        assert summary["transfers"] == []

    def test_summary_after_close_uses_snapshot(self, sales_shift):
        shift_service.close_shift(sales_shift.id, 7, "995.00")
        summary = shift_service.get_shift_summary(sales_shift.id)
        assert summary["is_closed"] is True
        assert summary["expected_amount"] == "1000.00"
        assert summary["shift"]["discrepancy"] == "-5.00"
