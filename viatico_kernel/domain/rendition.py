"""
Rendition math -- pure functions.

A rendition records how many of the granted allowance days a worker
actually consumed.  Consumption is recorded in half-day steps; the unused
remainder becomes debt on the worker balance ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from viatico_kernel.exceptions import InvalidConsumptionError, InvalidInputError

_TWO = Decimal("2")


@dataclass(frozen=True)
class RenditionFields:
    """Free-text fields shared by single and bulk renditions."""
    reason: str | None = None
    vehicle_plate: str | None = None
    attachment_url: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RenditionLegInput:
    departure_location: str | None = None
    arrival_location: str | None = None
    departure_at: datetime | None = None
    arrival_at: datetime | None = None
    departure_km: Decimal | None = None
    arrival_km: Decimal | None = None


@dataclass(frozen=True)
class NormalizedLeg:
    order_index: int
    departure_location: str
    arrival_location: str
    departure_at: datetime | None
    arrival_at: datetime | None
    departure_km: Decimal | None
    arrival_km: Decimal | None


def is_half_step(value: Decimal) -> bool:
    """
    True iff ``round(2 * value) / 2 == value``.

    Values too large to quantize in the decimal context are not half steps.
    """
    try:
        doubled = (Decimal(value) * _TWO).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return False
    return doubled / _TWO == Decimal(value)


def parse_decimal_input(raw: str | None) -> Decimal | None:
    """
    Parse a user-typed day count; accepts a decimal comma ("2,5").

    Blank input means "not rendered yet" and returns None.

    Raises:
        InvalidInputError: If the text is not a number.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    try:
        value = Decimal(text.replace(",", "."))
    except ArithmeticError as exc:
        raise InvalidInputError("consumed_viaticos", f"'{raw}' is not a number") from exc
    if not value.is_finite():
        raise InvalidInputError("consumed_viaticos", f"'{raw}' is not a number")
    return value


def validate_consumption(consumed: Decimal | None, available: Decimal | None) -> None:
    """
    Check a consumed-days figure against the line's granted days.

    ``None`` (not rendered) always passes.  ``available`` may be None when
    only the shape of the value is being checked.

    Raises:
        InvalidConsumptionError: negative, not a half step, or above
            ``available``.
    """
    if consumed is None:
        return
    shown_available = None if available is None else str(available)
    if consumed < 0:
        raise InvalidConsumptionError(
            str(consumed), shown_available, "consumed viaticos cannot be negative"
        )
    if available is not None and consumed > available:
        raise InvalidConsumptionError(
            str(consumed), shown_available,
            f"consumed viaticos exceed the {available} days granted",
        )
    if not is_half_step(consumed):
        raise InvalidConsumptionError(
            str(consumed), shown_available,
            "consumed viaticos must be a multiple of 0.5",
        )


def unused_days(days_count: Decimal, consumed: Decimal) -> Decimal:
    return Decimal(days_count) - Decimal(consumed)


def unused_debt(daily_amount: Decimal, days_count: Decimal, consumed: Decimal) -> Decimal:
    """Debt for unused days; zero or negative means nothing is owed."""
    return Decimal(daily_amount) * unused_days(days_count, consumed)


def normalize_legs(legs: Iterable[RenditionLegInput]) -> list[NormalizedLeg]:
    """
    Drop legs missing a departure or arrival location and number the rest
    1..n in input order.
    """
    result: list[NormalizedLeg] = []
    for leg in legs:
        departure = (leg.departure_location or "").strip()
        arrival = (leg.arrival_location or "").strip()
        if not departure or not arrival:
            continue
        result.append(
            NormalizedLeg(
                order_index=len(result) + 1,
                departure_location=departure,
                arrival_location=arrival,
                departure_at=leg.departure_at,
                arrival_at=leg.arrival_at,
                departure_km=leg.departure_km,
                arrival_km=leg.arrival_km,
            )
        )
    return result
