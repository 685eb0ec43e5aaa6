"""Quantity calculation from structured dosing and days supply.

Handles three regimens:
- Fixed frequency: dose x times per day x days supply
- As-needed (PRN) or ambiguous SIGs: quantity 0, flagged for manual review
- Tapers: sum of amount x days over each step

Example: "take 2 tablets twice daily" for 30 days
- Daily dose = 2 x 2 = 4 tablets
- Total = 4 x 30 = 120 tablets
"""

import logging
from collections.abc import Sequence

from ndc_calculator.errors import InvalidInputError, InvalidTaperScheduleError
from ndc_calculator.models import ParsedDosing, QuantityResult, TaperStep

logger = logging.getLogger(__name__)

MIN_DAYS_SUPPLY = 1
MAX_DAYS_SUPPLY = 365

# Default maximum uses per day for the PRN estimate
DEFAULT_PRN_MAX_USES_PER_DAY = 4

# Reasonableness thresholds (advisory only)
HIGH_TOTAL_QUANTITY = 1000
HIGH_DAILY_DOSE = 100

# Zero-quantity warning, shared with package selection
MANUAL_REVIEW_WARNING = (
    "Quantity could not be calculated (PRN or ambiguous SIG). "
    "Manual review required: please dispense an appropriate amount."
)


def compute_quantity(dosing: ParsedDosing | None, days_supply: int) -> QuantityResult:
    """Calculate total quantity needed for the days supply.

    PRN (times_per_day == 0) and ambiguous SIGs return a zero quantity. That
    is a signal for manual review, not an error.

    Args:
        dosing: Parsed SIG.
        days_supply: Days of therapy (1-365).

    Returns:
        QuantityResult with total and daily dose.

    Raises:
        InvalidInputError: If dosing is missing or days_supply is out of range.
    """
    if dosing is None:
        raise InvalidInputError("Parsed dosing is required")

    if days_supply < MIN_DAYS_SUPPLY:
        raise InvalidInputError("Days supply must be greater than 0")
    if days_supply > MAX_DAYS_SUPPLY:
        raise InvalidInputError(f"Days supply cannot exceed {MAX_DAYS_SUPPLY} days")

    if dosing.is_as_needed or dosing.is_ambiguous:
        logger.info(
            "Quantity not derivable "
            f"(prn={dosing.is_as_needed}, ambiguous={dosing.is_ambiguous})"
        )
        return QuantityResult(
            total_needed=0,
            unit=dosing.dose_unit,
            days_supply=days_supply,
            daily_dose=0,
        )

    daily_dose = dosing.dose_amount * dosing.times_per_day
    total_needed = daily_dose * days_supply

    logger.debug(
        f"Quantity: {dosing.dose_amount} x {dosing.times_per_day}/day "
        f"x {days_supply} days = {total_needed} {dosing.dose_unit}"
    )

    return QuantityResult(
        total_needed=total_needed,
        unit=dosing.dose_unit,
        days_supply=days_supply,
        daily_dose=daily_dose,
    )


def compute_taper_quantity(
    steps: Sequence[TaperStep],
    unit: str = "tablet",
) -> QuantityResult:
    """Calculate quantity for a step-down (taper) regimen.

    Example: 4 tabs x 3 days, 3 x 3, 2 x 3, 1 x 3 -> 30 tablets over 12 days.

    Args:
        steps: Ordered taper steps.
        unit: Unit of each step's amount.

    Returns:
        QuantityResult where daily_dose is the average over the schedule.

    Raises:
        InvalidTaperScheduleError: If the schedule is empty or a step has a
            negative amount or non-positive days.
    """
    if not steps:
        raise InvalidTaperScheduleError("Taper schedule is required")

    total_needed = 0.0
    total_days = 0

    for step in steps:
        if step.amount < 0 or step.days <= 0:
            raise InvalidTaperScheduleError(
                "Invalid taper schedule: amounts must be non-negative "
                "and days must be positive"
            )
        total_needed += step.amount * step.days
        total_days += step.days

    daily_dose = total_needed / total_days

    logger.debug(
        f"Taper quantity: {len(steps)} steps, {total_needed} {unit} "
        f"over {total_days} days"
    )

    return QuantityResult(
        total_needed=total_needed,
        unit=unit,
        days_supply=total_days,
        daily_dose=daily_dose,
    )


def estimate_as_needed(
    dosing: ParsedDosing,
    days_supply: int,
    max_uses_per_day: int = DEFAULT_PRN_MAX_USES_PER_DAY,
) -> QuantityResult:
    """Conservative quantity estimate for an as-needed regimen.

    Assumes the maximum number of uses every day so the patient does not run
    out. Opt-in only; the pipeline never calls this automatically.

    Args:
        dosing: Parsed SIG.
        days_supply: Days of therapy.
        max_uses_per_day: Assumed maximum daily uses.

    Returns:
        QuantityResult based on maximum daily use.
    """
    daily_dose = dosing.dose_amount * max_uses_per_day
    return QuantityResult(
        total_needed=daily_dose * days_supply,
        unit=dosing.dose_unit,
        days_supply=days_supply,
        daily_dose=daily_dose,
    )


def assess_reasonableness(
    quantity: QuantityResult,
    max_total: float = HIGH_TOTAL_QUANTITY,
    max_daily: float = HIGH_DAILY_DOSE,
) -> list[str]:
    """Flag quantities that look like calculation or transcription errors.

    Args:
        quantity: Calculated quantity.
        max_total: Total above which a warning is raised.
        max_daily: Daily dose above which a warning is raised.

    Returns:
        List of advisory warnings (empty when nothing looks off).
    """
    warnings: list[str] = []

    if quantity.total_needed > max_total:
        warnings.append(
            f"Very high quantity calculated ({quantity.total_needed:g} "
            f"{quantity.unit}). Please verify."
        )

    if quantity.daily_dose > max_daily:
        warnings.append(
            f"Very high daily dose ({quantity.daily_dose:g} {quantity.unit}/day). "
            "Please verify."
        )

    if quantity.total_needed == 0:
        warnings.append(MANUAL_REVIEW_WARNING)

    return warnings
