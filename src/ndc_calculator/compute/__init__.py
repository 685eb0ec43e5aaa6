"""Computation module for the NDC Quantity Calculator.

This module handles:
- Unit compatibility between package and dose units
- Quantity calculation (fixed, PRN, taper)
- Package selection and overfill scoring
"""

from ndc_calculator.compute.quantity import (
    DEFAULT_PRN_MAX_USES_PER_DAY,
    MANUAL_REVIEW_WARNING,
    MAX_DAYS_SUPPLY,
    MIN_DAYS_SUPPLY,
    assess_reasonableness,
    compute_quantity,
    compute_taper_quantity,
    estimate_as_needed,
)
from ndc_calculator.compute.selector import (
    SMALL_PACKAGE_PENALTY,
    SelectionOptions,
    build_selection,
    check_for_inactive_packages,
    filter_compatible_packages,
    find_optimal_combination,
    overfill_percent,
    score_package,
    select_packages,
)
from ndc_calculator.compute.units import canonical_unit, units_compatible

__all__ = [
    # Units
    "units_compatible",
    "canonical_unit",
    # Quantity
    "compute_quantity",
    "compute_taper_quantity",
    "estimate_as_needed",
    "assess_reasonableness",
    "MIN_DAYS_SUPPLY",
    "MAX_DAYS_SUPPLY",
    "DEFAULT_PRN_MAX_USES_PER_DAY",
    "MANUAL_REVIEW_WARNING",
    # Selection
    "SelectionOptions",
    "SMALL_PACKAGE_PENALTY",
    "select_packages",
    "filter_compatible_packages",
    "score_package",
    "build_selection",
    "overfill_percent",
    "check_for_inactive_packages",
    "find_optimal_combination",
]
