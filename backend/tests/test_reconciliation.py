# Overview: Pytest coverage for cashier precision statistics and branch discrepancy reports.

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from cashdesk.services import reconciliation_service, register_service, shift_service
from cashdesk.services.reconciliation_service import precision_pct
from cashdesk.validation import NotFoundError, ValidationError


def _close_with(register_id, user_id, discrepancy, closed_at):
    """Open an empty 100.00 shift and close it off by `discrepancy`."""
    shift = shift_service.open_shift(register_id, user_id, "100.00", now=closed_at - timedelta(hours=8))
    counted = Decimal("100.00") + Decimal(discrepancy)
    return shift_service.close_shift(shift.id, user_id, counted, now=closed_at)


class TestPrecision:

    @pytest.mark.parametrize("perfect, total, expected", [
        (0, 0, 100),
        (8, 10, 80),
        (2, 3, 67),
        (1, 8, 13),
        (0, 4, 0),
    ])
    def test_precision_pct(self, perfect, total, expected):
        assert precision_pct(perfect, total) == expected


class TestCashierStatistics:

    def test_no_shifts(self, branch):
        stats = reconciliation_service.get_cashier_statistics(42, branch.id, now=datetime(2026, 3, 20, 12))

        assert stats["total_shifts"] == 0
        assert stats["perfect_shifts"] == 0
        assert stats["precision_pct"] == 100
        assert stats["discrepancy_this_month"] == Decimal("0.00")
        assert stats["discrepancy_total"] == Decimal("0.00")
        assert stats["last_closing_date"] is None

    def test_eight_of_ten_perfect(self, sales_register, branch):
        for i in range(10):
            discrepancy = "0" if i < 8 else ("-10.00" if i == 8 else "4.50")
            _close_with(sales_register.id, 42, discrepancy, datetime(2026, 3, 1 + i, 22, 0))

        stats = reconciliation_service.get_cashier_statistics(42, branch.id, now=datetime(2026, 3, 20, 12))

        assert stats["total_shifts"] == 10
        assert stats["perfect_shifts"] == 8
        assert stats["precision_pct"] == 80
        assert stats["discrepancy_total"] == Decimal("-5.50")
        assert stats["total_surplus"] == Decimal("4.50")
        assert stats["total_shortage"] == Decimal("10.00")
        assert stats["last_closing_date"] == "2026-03-10"

    def test_one_cent_is_not_perfect(self, sales_register, branch):
        _close_with(sales_register.id, 42, "0.01", datetime(2026, 3, 1, 22, 0))

        stats = reconciliation_service.get_cashier_statistics(42, branch.id, now=datetime(2026, 3, 20, 12))
        assert stats["perfect_shifts"] == 0
        assert stats["precision_pct"] == 0

    def test_this_month_uses_operational_days(self, sales_register, branch):
        _close_with(sales_register.id, 42, "-20.00", datetime(2026, 2, 27, 22, 0))
        # 1 March 03:00 still belongs to 28 February
        _close_with(sales_register.id, 42, "-5.00", datetime(2026, 3, 1, 3, 0))
        _close_with(sales_register.id, 42, "-1.00", datetime(2026, 3, 2, 22, 0))

        stats = reconciliation_service.get_cashier_statistics(42, branch.id, now=datetime(2026, 3, 10, 12))

        assert stats["discrepancy_this_month"] == Decimal("-1.00")
        assert stats["discrepancy_total"] == Decimal("-26.00")

    def test_scoped_to_user(self, sales_register, branch):
        _close_with(sales_register.id, 42, "-3.00", datetime(2026, 3, 1, 22, 0))
        _close_with(sales_register.id, 43, "0", datetime(2026, 3, 2, 22, 0))

        stats = reconciliation_service.get_cashier_statistics(43, branch.id, now=datetime(2026, 3, 20, 12))
        assert stats["total_shifts"] == 1
        assert stats["precision_pct"] == 100

    def test_unknown_branch(self, db_session):
        with pytest.raises(NotFoundError):
            reconciliation_service.get_cashier_statistics(42, 9999)


class TestBranchReport:

    def test_ranking_worst_first(self, sales_register, branch):
        _close_with(sales_register.id, 1, "-50.00", datetime(2026, 3, 1, 22, 0))
        _close_with(sales_register.id, 2, "0", datetime(2026, 3, 2, 22, 0))
        _close_with(sales_register.id, 3, "-5.00", datetime(2026, 3, 3, 22, 0))
        _close_with(sales_register.id, 3, "2.00", datetime(2026, 3, 4, 22, 0))

        report = reconciliation_service.get_branch_discrepancy_report(branch.id)

        assert [row["user_id"] for row in report] == [1, 3, 2]
        assert [row["total_discrepancy"] for row in report] == [
            Decimal("-50.00"), Decimal("-3.00"), Decimal("0.00"),
        ]
        assert report[1]["total_shifts"] == 2
        assert report[1]["precision_pct"] == 0

    def test_date_range_inclusive(self, sales_register, branch):
        _close_with(sales_register.id, 1, "-1.00", datetime(2026, 3, 1, 22, 0))
        _close_with(sales_register.id, 1, "-2.00", datetime(2026, 3, 2, 22, 0))
        _close_with(sales_register.id, 1, "-4.00", datetime(2026, 3, 3, 22, 0))

        report = reconciliation_service.get_branch_discrepancy_report(
            branch.id, date(2026, 3, 2), date(2026, 3, 3),
        )
        assert report[0]["total_discrepancy"] == Decimal("-6.00")

    def test_inverted_range(self, branch):
        with pytest.raises(ValidationError):
            reconciliation_service.get_branch_discrepancy_report(branch.id, date(2026, 3, 3), date(2026, 3, 1))

    def test_other_branch_excluded(self, sales_register, branch):
        other = register_service.create_branch("Norte")
        other_register = register_service.create_register(other.id, "Caja N1")
        _close_with(other_register.id, 1, "-9.00", datetime(2026, 3, 1, 22, 0))

        assert reconciliation_service.get_branch_discrepancy_report(branch.id) == []


class TestHistoryAndDaySummary:

    def test_history_newest_first_with_limit(self, sales_register):
        for day in (1, 2, 3):
            _close_with(sales_register.id, 42, "0", datetime(2026, 3, day, 22, 0))

        records = reconciliation_service.list_discrepancy_history(42, limit=2)
        assert [r.shift_date for r in records] == [date(2026, 3, 3), date(2026, 3, 2)]

    def test_day_summary(self, sales_register, branch):
        _close_with(sales_register.id, 1, "-1.00", datetime(2026, 3, 5, 22, 0))
        # 02:00 on the 6th closes the 5th
        _close_with(sales_register.id, 2, "0", datetime(2026, 3, 6, 2, 0))
        _close_with(sales_register.id, 3, "0", datetime(2026, 3, 6, 22, 0))

        summary = reconciliation_service.get_branch_day_summary(branch.id, date(2026, 3, 5))

        assert summary["operational_day"] == "2026-03-05"
        assert summary["total_shifts"] == 2
        assert summary["perfect_shifts"] == 1
        assert summary["precision_pct"] == 50
        assert len(summary["closings"]) == 2

    def test_day_summary_defaults_to_today(self, branch):
        summary = reconciliation_service.get_branch_day_summary(branch.id, now=datetime(2026, 3, 6, 3, 0))
        assert summary["operational_day"] == "2026-03-05"
        assert summary["total_shifts"] == 0
