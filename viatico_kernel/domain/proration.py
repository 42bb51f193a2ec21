"""
Retroactive proration -- pure functions.

When the daily rate changes mid-month, the days of the same month that fall
before the change date were paid at the old rate.  Each request version
overlapping that window is apportioned by inclusive-day overlap:

    window      = [first day of the month, effective_from - 1 day]
    range_days  = inclusive_day_count(start, end)
    overlap     = inclusive_day_count(max(start, ws), min(end, we))
    scaled_days = max(1, round_half_up(days_count * overlap / range_days))
    amount_diff = (new_amount - old_amount) * scaled_days

Only lines whose frozen daily amount equals the old rate are adjusted.
Results are aggregated per worker across every affected version.

Example: 20000 -> 25000 effective 2026-02-10, version 02-05..02-14 with a
worker at 10 days: window 02-01..02-09, overlap 5, scaled 5, diff 25000.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from uuid import UUID


@dataclass(frozen=True)
class AffectedWindow:
    start: date
    end: date

    @property
    def period_month(self) -> str:
        """``YYYY-MM`` of the month being back-paid."""
        return f"{self.start.year:04d}-{self.start.month:02d}"


@dataclass(frozen=True)
class ProrationLine:
    """One worker line of one version, as seen by the engine."""
    worker_id: UUID
    days_count: Decimal
    daily_amount: Decimal


@dataclass(frozen=True)
class ProrationVersion:
    version_id: UUID
    start_date: date
    end_date: date
    lines: tuple[ProrationLine, ...]


@dataclass
class WorkerAdjustment:
    """Per-worker aggregate across all affected versions."""
    worker_id: UUID
    days_affected: Decimal = Decimal("0")
    amount_diff: Decimal = Decimal("0")
    version_ids: list[UUID] = field(default_factory=list)


def inclusive_day_count(start: date, end: date) -> int:
    """
    Days in [start, end], both ends included.

    Returns 0 when ``start`` is after ``end`` (no overlap).
    """
    if start > end:
        return 0
    return (end - start).days + 1


def affected_window(effective_from: date) -> AffectedWindow | None:
    """
    Back-pay window for a change effective on ``effective_from``.

    None when the change takes effect on the 1st: nothing earlier in the
    month was paid at the old rate.
    """
    month_start = effective_from.replace(day=1)
    window_end = effective_from - timedelta(days=1)
    if window_end < month_start:
        return None
    return AffectedWindow(start=month_start, end=window_end)


def overlap_days(start: date, end: date, window: AffectedWindow) -> int:
    return inclusive_day_count(max(start, window.start), min(end, window.end))


def scaled_days(days_count: Decimal, overlap: int, range_days: int) -> Decimal:
    """Share of ``days_count`` attributable to the window; never below 1."""
    raw = Decimal(days_count) * Decimal(overlap) / Decimal(range_days)
    rounded = raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(Decimal("1"), rounded)


def prorate(
    versions: Iterable[ProrationVersion],
    window: AffectedWindow,
    old_amount: Decimal,
    new_amount: Decimal,
) -> list[WorkerAdjustment]:
    """
    Aggregate per-worker adjustments for every version overlapping
    ``window``.  Workers whose total days or amount end up zero are
    omitted.  Output order follows first appearance.
    """
    diff = new_amount - old_amount
    totals: dict[UUID, WorkerAdjustment] = {}

    for version in versions:
        range_days = inclusive_day_count(version.start_date, version.end_date)
        if range_days <= 0:
            continue
        overlap = overlap_days(version.start_date, version.end_date, window)
        if overlap <= 0:
            continue

        for line in version.lines:
            if line.daily_amount != old_amount:
                continue
            days = scaled_days(line.days_count, overlap, range_days)
            agg = totals.get(line.worker_id)
            if agg is None:
                agg = totals[line.worker_id] = WorkerAdjustment(worker_id=line.worker_id)
            agg.days_affected += days
            agg.amount_diff += diff * days
            agg.version_ids.append(version.version_id)

    return [
        agg for agg in totals.values()
        if agg.days_affected != 0 and agg.amount_diff != 0
    ]
