# Overview: Pytest coverage for operational (business) day resolution.

from datetime import date, datetime, timezone

import pytest

from cashdesk.operational_day import (
    is_early_morning,
    operational_day_bounds,
    operational_day_for,
    operational_day_key,
    operational_month_bounds,
    operational_range_bounds,
    resolve_operational_day,
    to_local,
)


class TestResolveOperationalDay:

    @pytest.mark.parametrize("instant, expected", [
        (datetime(2025, 1, 15, 0, 0), "2025-01-14"),
        (datetime(2025, 1, 15, 2, 30), "2025-01-14"),
        (datetime(2025, 1, 15, 4, 59, 59), "2025-01-14"),
        (datetime(2025, 1, 15, 5, 0), "2025-01-15"),
        (datetime(2025, 1, 15, 23, 59), "2025-01-15"),
    ])
    def test_cutoff_at_five(self, instant, expected):
        assert operational_day_key(instant) == expected

    def test_crosses_month_and_year(self):
        assert resolve_operational_day(datetime(2025, 3, 1, 3, 0)) == date(2025, 2, 28)
        assert resolve_operational_day(datetime(2024, 3, 1, 3, 0)) == date(2024, 2, 29)
        assert resolve_operational_day(datetime(2025, 1, 1, 1, 0)) == date(2024, 12, 31)

    def test_time_of_day_is_discarded(self):
        day = resolve_operational_day(datetime(2025, 6, 10, 18, 45))
        assert day == date(2025, 6, 10)
        assert not isinstance(day, datetime)

    def test_is_early_morning(self):
        assert is_early_morning(datetime(2025, 1, 1, 0, 0))
        assert is_early_morning(datetime(2025, 1, 1, 4, 59))
        assert not is_early_morning(datetime(2025, 1, 1, 5, 0))
        assert not is_early_morning(datetime(2025, 1, 1, 13, 0))


class TestBranchTimezone:

    def test_naive_is_treated_as_utc(self):
        local = to_local(datetime(2025, 1, 15, 6, 0), "America/Argentina/Buenos_Aires")
        assert (local.hour, local.day) == (3, 15)

    def test_aware_instant_is_converted(self):
        instant = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
        assert to_local(instant, "UTC").hour == 6

    def test_day_depends_on_branch_clock(self):
        # 06:00 UTC is 03:00 in Buenos Aires (UTC-3): still the previous night
        stored = datetime(2025, 1, 15, 6, 0)
        assert operational_day_for(stored, "UTC") == date(2025, 1, 15)
        assert operational_day_for(stored, "America/Argentina/Buenos_Aires") == date(2025, 1, 14)


class TestBounds:

    def test_single_day_bounds_in_utc(self):
        start, end = operational_day_bounds(date(2025, 1, 14), "UTC")
        assert start == datetime(2025, 1, 14, 5, 0)
        assert end == datetime(2025, 1, 15, 5, 0)

    def test_bounds_follow_branch_timezone(self):
        start, end = operational_day_bounds(date(2025, 1, 14), "America/Argentina/Buenos_Aires")
        assert start == datetime(2025, 1, 14, 8, 0)
        assert end == datetime(2025, 1, 15, 8, 0)

    def test_range_bounds_are_inclusive_of_end_day(self):
        start, end = operational_range_bounds(date(2025, 1, 10), date(2025, 1, 12), "UTC")
        assert start == datetime(2025, 1, 10, 5, 0)
        assert end == datetime(2025, 1, 13, 5, 0)

    def test_range_rejects_inverted_days(self):
        with pytest.raises(ValueError):
            operational_range_bounds(date(2025, 1, 12), date(2025, 1, 10), "UTC")

    def test_month_bounds(self):
        assert operational_month_bounds(date(2025, 2, 17)) == (date(2025, 2, 1), date(2025, 3, 1))
        assert operational_month_bounds(date(2025, 12, 31)) == (date(2025, 12, 1), date(2026, 1, 1))
