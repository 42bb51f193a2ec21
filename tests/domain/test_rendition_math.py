"""Tests for rendition math (``viatico_kernel.domain.rendition``)."""

from decimal import Decimal

import pytest

from viatico_kernel.domain.rendition import (
    RenditionLegInput,
    is_half_step,
    normalize_legs,
    parse_decimal_input,
    unused_days,
    unused_debt,
    validate_consumption,
)
from viatico_kernel.exceptions import InvalidConsumptionError, InvalidInputError


class TestHalfStep:

    @pytest.mark.parametrize("value", ["0", "0.5", "2", "2.5", "10.0"])
    def test_accepted(self, value):
        assert is_half_step(Decimal(value))

    @pytest.mark.parametrize("value", ["2.3", "0.25", "1.75", "0.1"])
    def test_rejected(self, value):
        assert not is_half_step(Decimal(value))

    @pytest.mark.parametrize("value", ["1e30", "-1e40"])
    def test_beyond_context_precision(self, value):
        assert not is_half_step(Decimal(value))


class TestParseDecimalInput:

    def test_decimal_comma(self):
        assert parse_decimal_input("2,5") == Decimal("2.5")

    def test_decimal_point_and_whitespace(self):
        assert parse_decimal_input("  3.0 ") == Decimal("3.0")

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_means_not_rendered(self, raw):
        assert parse_decimal_input(raw) is None

    @pytest.mark.parametrize("raw", ["dos", "1,2,3", "NaN", "Infinity"])
    def test_non_numbers_rejected(self, raw):
        with pytest.raises(InvalidInputError):
            parse_decimal_input(raw)


class TestValidateConsumption:

    def test_none_always_passes(self):
        validate_consumption(None, Decimal("3"))

    def test_half_step_within_days(self):
        validate_consumption(Decimal("2.5"), Decimal("3"))

    def test_all_days_consumed(self):
        validate_consumption(Decimal("3"), Decimal("3"))

    def test_not_half_step(self):
        with pytest.raises(InvalidConsumptionError) as exc_info:
            validate_consumption(Decimal("2.3"), Decimal("3"))
        assert exc_info.value.code == "INVALID_CONSUMPTION"

    def test_negative(self):
        with pytest.raises(InvalidConsumptionError):
            validate_consumption(Decimal("-0.5"), Decimal("3"))

    def test_above_available(self):
        with pytest.raises(InvalidConsumptionError):
            validate_consumption(Decimal("3.5"), Decimal("3"))

    def test_huge_value_above_available(self):
        with pytest.raises(InvalidConsumptionError, match="exceed"):
            validate_consumption(Decimal("1e30"), Decimal("3"))

    def test_huge_value_without_available(self):
        with pytest.raises(InvalidConsumptionError):
            validate_consumption(Decimal("1e30"), None)

    def test_shape_only_without_available(self):
        validate_consumption(Decimal("40"), None)
        with pytest.raises(InvalidConsumptionError):
            validate_consumption(Decimal("1.2"), None)

    def test_is_an_invalid_input_error(self):
        with pytest.raises(InvalidInputError):
            validate_consumption(Decimal("0.3"), Decimal("1"))


class TestUnusedDebt:

    def test_half_day_unused(self):
        assert unused_days(Decimal("3"), Decimal("2.5")) == Decimal("0.5")
        assert unused_debt(Decimal("25000"), Decimal("3"), Decimal("2.5")) == Decimal("12500.0")

    def test_fully_consumed_owes_nothing(self):
        assert unused_debt(Decimal("25000"), Decimal("3"), Decimal("3")) == Decimal("0")


class TestNormalizeLegs:

    def test_incomplete_legs_dropped_and_renumbered(self):
        legs = normalize_legs(
            [
                RenditionLegInput(departure_location="Santiago", arrival_location="Termas"),
                RenditionLegInput(departure_location="Termas", arrival_location="  "),
                RenditionLegInput(departure_location=None, arrival_location="Loreto"),
                RenditionLegInput(departure_location=" Termas ", arrival_location="Santiago",
                                  departure_km=Decimal("120")),
            ]
        )
        assert [leg.order_index for leg in legs] == [1, 2]
        assert legs[1].departure_location == "Termas"
        assert legs[1].departure_km == Decimal("120")

    def test_empty(self):
        assert normalize_legs([]) == []
