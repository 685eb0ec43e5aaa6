"""Tests for quantity calculation (fixed, PRN, taper)."""

import pytest

from conftest import make_dosing
from ndc_calculator.compute.quantity import (
    assess_reasonableness,
    compute_quantity,
    compute_taper_quantity,
    estimate_as_needed,
)
from ndc_calculator.errors import (
    InvalidInputError,
    InvalidTaperScheduleError,
    ValidationError,
)
from ndc_calculator.models import ErrorKind, ParsedDosing, QuantityResult, TaperStep


class TestComputeQuantity:
    """Tests for fixed-frequency quantity calculation."""

    @pytest.mark.parametrize(
        "dose,times,days,expected",
        [
            (1, 1, 30, 30),
            (1, 2, 30, 60),
            (2, 2, 30, 120),
            (5, 3, 10, 150),
            (0.5, 2, 7, 7),
            (1, 1, 1, 1),
            (1, 4, 365, 1460),
        ],
    )
    def test_total_is_dose_times_frequency_times_days(
        self, dose: float, times: float, days: int, expected: float
    ) -> None:
        """Total should be dose x times per day x days supply."""
        result = compute_quantity(make_dosing(dose, "tablet", times), days)

        assert result.total_needed == expected
        assert result.daily_dose == dose * times
        assert result.days_supply == days
        assert result.unit == "tablet"

    def test_prn_returns_zero(self, prn_dosing: ParsedDosing) -> None:
        """PRN dosing should not produce a quantity."""
        result = compute_quantity(prn_dosing, 30)

        assert result.total_needed == 0
        assert result.daily_dose == 0
        assert result.unit == "puff"

    def test_ambiguous_returns_zero(self) -> None:
        """Ambiguous dosing should yield zero regardless of dose amount."""
        dosing = make_dosing(3, "tablet", 2, is_ambiguous=True)

        assert compute_quantity(dosing, 30).total_needed == 0

    @pytest.mark.parametrize("days", [0, -1, 366])
    def test_days_out_of_range_raises(
        self, twice_daily_dosing: ParsedDosing, days: int
    ) -> None:
        """Days supply outside 1-365 should raise InvalidInputError."""
        with pytest.raises(InvalidInputError) as exc_info:
            compute_quantity(twice_daily_dosing, days)

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
        assert isinstance(exc_info.value, ValidationError)

    @pytest.mark.parametrize("days", [1, 365])
    def test_days_boundaries_accepted(
        self, twice_daily_dosing: ParsedDosing, days: int
    ) -> None:
        """Days supply of 1 and 365 are valid."""
        assert compute_quantity(twice_daily_dosing, days).days_supply == days

    def test_missing_dosing_raises(self) -> None:
        """None dosing should raise InvalidInputError."""
        with pytest.raises(InvalidInputError, match="dosing is required"):
            compute_quantity(None, 30)


class TestComputeTaperQuantity:
    """Tests for step-down schedules."""

    def test_prednisone_taper(self, taper_dosing: ParsedDosing) -> None:
        """4/3/2/1 tablets for 3 days each should total 30 over 12 days."""
        assert taper_dosing.taper_steps is not None
        result = compute_taper_quantity(taper_dosing.taper_steps)

        assert result.total_needed == 30
        assert result.days_supply == 12
        assert result.daily_dose == 2.5
        assert result.unit == "tablet"

    def test_order_independent(self) -> None:
        """Reordering steps should not change the total."""
        steps = [TaperStep(2, 5), TaperStep(1, 3), TaperStep(0.5, 4)]

        forward = compute_taper_quantity(steps, unit="ml")
        backward = compute_taper_quantity(list(reversed(steps)), unit="ml")

        assert forward.total_needed == backward.total_needed == 15
        assert forward.unit == "ml"

    def test_zero_amount_step_allowed(self) -> None:
        """A drug holiday step (amount 0) is valid."""
        result = compute_taper_quantity([TaperStep(2, 2), TaperStep(0, 2)])

        assert result.total_needed == 4
        assert result.days_supply == 4

    @pytest.mark.parametrize(
        "steps",
        [
            [],
            [TaperStep(-1, 3)],
            [TaperStep(2, 0)],
            [TaperStep(2, 3), TaperStep(1, -2)],
        ],
    )
    def test_invalid_schedule_raises(self, steps: list[TaperStep]) -> None:
        """Empty schedules, negative amounts and non-positive days are invalid."""
        with pytest.raises(InvalidTaperScheduleError):
            compute_taper_quantity(steps)


class TestEstimateAsNeeded:
    """Tests for the opt-in PRN estimate."""

    def test_uses_max_uses_per_day(self, prn_dosing: ParsedDosing) -> None:
        """Estimate should assume maximum daily use."""
        result = estimate_as_needed(prn_dosing, 10)

        assert result.daily_dose == 8
        assert result.total_needed == 80

    def test_custom_max_uses(self, prn_dosing: ParsedDosing) -> None:
        """Max uses per day should be configurable."""
        assert estimate_as_needed(prn_dosing, 10, max_uses_per_day=2).total_needed == 40


class TestAssessReasonableness:
    """Tests for advisory quantity warnings."""

    def test_normal_quantity_no_warnings(self) -> None:
        """Typical quantities should not be flagged."""
        assert assess_reasonableness(QuantityResult(60, "tablet", 30, 2)) == []

    def test_high_total(self) -> None:
        """Totals above 1000 should be flagged."""
        warnings = assess_reasonableness(QuantityResult(1460, "tablet", 365, 4))

        assert len(warnings) == 1
        assert "Very high quantity" in warnings[0]

    def test_high_daily_dose(self) -> None:
        """Daily doses above 100 should be flagged."""
        warnings = assess_reasonableness(QuantityResult(150, "ml", 1, 150))

        assert any("daily dose" in w for w in warnings)

    def test_zero_quantity_needs_review(self) -> None:
        """Zero quantity should request manual review."""
        warnings = assess_reasonableness(QuantityResult(0, "puff", 30, 0))

        assert any("Manual review required" in w for w in warnings)
