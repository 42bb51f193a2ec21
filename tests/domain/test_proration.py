"""
Tests for retroactive proration (``viatico_kernel.domain.proration``).

Pure functions only: no session, no clock.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from viatico_kernel.domain.proration import (
    AffectedWindow,
    ProrationLine,
    ProrationVersion,
    affected_window,
    inclusive_day_count,
    overlap_days,
    prorate,
    scaled_days,
)

OLD = Decimal("20000")
NEW = Decimal("25000")


def _version(start, end, *lines):
    return ProrationVersion(version_id=uuid4(), start_date=start, end_date=end, lines=tuple(lines))


# =========================================================================
# Day arithmetic
# =========================================================================


class TestInclusiveDayCount:

    def test_same_day_counts_one(self):
        assert inclusive_day_count(date(2026, 2, 5), date(2026, 2, 5)) == 1

    def test_range_includes_both_ends(self):
        assert inclusive_day_count(date(2026, 2, 5), date(2026, 2, 14)) == 10

    def test_reversed_range_is_empty(self):
        assert inclusive_day_count(date(2026, 2, 14), date(2026, 2, 5)) == 0


class TestAffectedWindow:

    def test_window_runs_from_month_start_to_day_before(self):
        window = affected_window(date(2026, 2, 10))
        assert window == AffectedWindow(start=date(2026, 2, 1), end=date(2026, 2, 9))
        assert window.period_month == "2026-02"

    def test_change_on_first_has_no_window(self):
        assert affected_window(date(2026, 3, 1)) is None

    def test_change_on_second_covers_one_day(self):
        window = affected_window(date(2026, 3, 2))
        assert window.start == window.end == date(2026, 3, 1)

    def test_overlap_clipped_to_window(self):
        window = affected_window(date(2026, 2, 10))
        assert overlap_days(date(2026, 2, 5), date(2026, 2, 14), window) == 5
        assert overlap_days(date(2026, 1, 25), date(2026, 2, 3), window) == 3
        assert overlap_days(date(2026, 2, 10), date(2026, 2, 20), window) == 0


class TestScaledDays:

    def test_proportional_share(self):
        assert scaled_days(Decimal("10"), 5, 10) == Decimal("5")

    def test_half_rounds_up(self):
        # 5 * 3 / 10 = 1.5
        assert scaled_days(Decimal("5"), 3, 10) == Decimal("2")

    def test_never_below_one(self):
        # 1 * 1 / 10 = 0.1
        assert scaled_days(Decimal("1"), 1, 10) == Decimal("1")

    def test_fractional_days_count(self):
        # 2.5 * 4 / 4 = 2.5 -> 3
        assert scaled_days(Decimal("2.5"), 4, 4) == Decimal("3")


# =========================================================================
# prorate
# =========================================================================


class TestProrate:

    def test_worked_example(self):
        """20000 -> 25000 from 02-10; 02-05..02-14 at 10 days is 5 days, +25000."""
        worker = uuid4()
        version = _version(
            date(2026, 2, 5), date(2026, 2, 14), ProrationLine(worker, Decimal("10"), OLD)
        )
        result = prorate([version], affected_window(date(2026, 2, 10)), OLD, NEW)

        assert len(result) == 1
        assert result[0].worker_id == worker
        assert result[0].days_affected == Decimal("5")
        assert result[0].amount_diff == Decimal("25000")
        assert result[0].version_ids == [version.version_id]

    def test_rate_decrease_gives_negative_diff(self):
        worker = uuid4()
        version = _version(
            date(2026, 2, 5), date(2026, 2, 14), ProrationLine(worker, Decimal("10"), NEW)
        )
        result = prorate([version], affected_window(date(2026, 2, 10)), NEW, OLD)
        assert result[0].amount_diff == Decimal("-25000")

    def test_lines_at_other_rates_skipped(self):
        frozen_elsewhere = uuid4()
        version = _version(
            date(2026, 2, 5), date(2026, 2, 14),
            ProrationLine(frozen_elsewhere, Decimal("10"), Decimal("18000")),
        )
        assert prorate([version], affected_window(date(2026, 2, 10)), OLD, NEW) == []

    def test_versions_outside_window_skipped(self):
        version = _version(
            date(2026, 2, 12), date(2026, 2, 20), ProrationLine(uuid4(), Decimal("9"), OLD)
        )
        assert prorate([version], affected_window(date(2026, 2, 10)), OLD, NEW) == []

    def test_aggregates_per_worker_across_versions(self):
        worker = uuid4()
        other = uuid4()
        first = _version(
            date(2026, 2, 1), date(2026, 2, 4),
            ProrationLine(worker, Decimal("4"), OLD),
            ProrationLine(other, Decimal("2"), OLD),
        )
        second = _version(
            date(2026, 2, 6), date(2026, 2, 7), ProrationLine(worker, Decimal("2"), OLD)
        )
        result = prorate([first, second], affected_window(date(2026, 2, 10)), OLD, NEW)

        by_worker = {adj.worker_id: adj for adj in result}
        assert [adj.worker_id for adj in result] == [worker, other]
        assert by_worker[worker].days_affected == Decimal("6")
        assert by_worker[worker].amount_diff == Decimal("30000")
        assert by_worker[worker].version_ids == [first.version_id, second.version_id]
        assert by_worker[other].days_affected == Decimal("2")

    def test_equal_amounts_produce_nothing(self):
        version = _version(
            date(2026, 2, 5), date(2026, 2, 14), ProrationLine(uuid4(), Decimal("10"), OLD)
        )
        assert prorate([version], affected_window(date(2026, 2, 10)), OLD, OLD) == []

    @pytest.mark.parametrize(
        "start,end,days,expected",
        [
            (date(2026, 2, 1), date(2026, 2, 28), Decimal("28"), Decimal("9")),
            (date(2026, 2, 9), date(2026, 2, 12), Decimal("4"), Decimal("1")),
            (date(2026, 1, 30), date(2026, 2, 2), Decimal("4"), Decimal("2")),
        ],
    )
    def test_partial_overlaps(self, start, end, days, expected):
        version = _version(start, end, ProrationLine(uuid4(), days, OLD))
        [adj] = prorate([version], affected_window(date(2026, 2, 10)), OLD, NEW)
        assert adj.days_affected == expected
        assert adj.amount_diff == (NEW - OLD) * expected
