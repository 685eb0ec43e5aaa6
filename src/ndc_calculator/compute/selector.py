"""Package (NDC) selection for a calculated quantity.

Each compatible package is scored as a homogeneous repeat of one size
(lower score is better):
- Package smaller than the need: penalty band + (needed - size)
- Package equal to the need: 0
- Otherwise: overfill percentage

Single packages that cover the need therefore always outrank multi-package
tallies of a smaller size. Equal scores keep candidate input order.

Example: 150 ml needed, packages {100 ml, 200 ml}
- 100 ml: smaller than the need, score 10050 (penalty band)
- 200 ml: 1 package, 33.33% overfill, score 33.33 -> primary
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from ndc_calculator.compute.quantity import MANUAL_REVIEW_WARNING
from ndc_calculator.compute.units import units_compatible
from ndc_calculator.models import (
    PackageRecord,
    PackageSelection,
    QuantityResult,
    SelectionOutcome,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_OVERFILL_PERCENT = 20.0
DEFAULT_MAX_ALTERNATIVES = 3
# Score band that ranks packages smaller than the need below all others
SMALL_PACKAGE_PENALTY = 10000.0

NO_COMPATIBLE_WARNING = "No compatible active packages found"


@dataclass(frozen=True)
class SelectionOptions:
    """Tuning knobs for package selection.

    Attributes:
        max_overfill_percent: Overfill above which the primary pick is flagged.
        prefer_single_package: Carried for callers; the score already ranks
            covering single packages ahead of smaller sizes.
        max_alternatives: Number of alternatives returned after the primary.
        small_package_penalty: Score band for packages smaller than the need.
    """

    max_overfill_percent: float = DEFAULT_MAX_OVERFILL_PERCENT
    prefer_single_package: bool = True
    max_alternatives: int = DEFAULT_MAX_ALTERNATIVES
    small_package_penalty: float = SMALL_PACKAGE_PENALTY


def overfill_percent(dispensed: float, needed: float) -> float:
    """Percentage by which the dispensed amount exceeds the need.

    Args:
        dispensed: Quantity dispensed.
        needed: Quantity needed.

    Returns:
        Overfill percentage rounded to 2 decimals; 0 when needed is 0.
    """
    if needed == 0:
        return 0.0
    return round((dispensed - needed) / needed * 100, 2)


def filter_compatible_packages(
    packages: Sequence[PackageRecord],
    quantity: QuantityResult,
) -> list[PackageRecord]:
    """Keep active packages whose unit matches the quantity unit.

    Args:
        packages: Candidate package records.
        quantity: Calculated quantity (provides the unit).

    Returns:
        Compatible packages in input order.
    """
    return [
        pkg
        for pkg in packages
        if pkg.active and pkg.size > 0 and units_compatible(pkg.unit, quantity.unit)
    ]


def score_package(
    package: PackageRecord,
    needed: float,
    small_package_penalty: float = SMALL_PACKAGE_PENALTY,
) -> float:
    """Score a package against the needed quantity (lower is better).

    Args:
        package: Candidate package.
        needed: Total quantity needed.
        small_package_penalty: Base score for packages smaller than the need.

    Returns:
        Score for ranking.
    """
    if package.size < needed:
        return small_package_penalty + (needed - package.size)

    if package.size == needed:
        return 0.0

    return abs(overfill_percent(package.size, needed))


def build_selection(package: PackageRecord, needed: float) -> PackageSelection:
    """Build the dispense plan for repeating one package size."""
    package_count = math.ceil(needed / package.size)
    dispensed = package.size * package_count
    return PackageSelection(
        code=package.code,
        size=package.size,
        unit=package.unit,
        quantity_to_dispense=dispensed,
        package_count=package_count,
        overfill_percent=overfill_percent(dispensed, needed),
        product_name=package.product_name,
        manufacturer=package.manufacturer,
    )


def select_packages(
    candidates: Sequence[PackageRecord],
    quantity: QuantityResult,
    options: SelectionOptions | None = None,
) -> SelectionOutcome:
    """Select the primary package and ranked alternatives.

    Args:
        candidates: Package records available for the drug.
        quantity: Calculated quantity.
        options: Selection options (defaults if None).

    Returns:
        SelectionOutcome with primary, alternatives and warnings.
    """
    options = options or SelectionOptions()
    needed = quantity.total_needed
    outcome = SelectionOutcome()

    if needed == 0:
        outcome.warnings.append(MANUAL_REVIEW_WARNING)
        return outcome

    compatible = filter_compatible_packages(candidates, quantity)
    if not compatible:
        logger.info(
            f"No compatible packages among {len(candidates)} candidates "
            f"for unit '{quantity.unit}'"
        )
        outcome.warnings.append(NO_COMPATIBLE_WARNING)
        return outcome

    scored = [
        (score_package(pkg, needed, options.small_package_penalty), pkg)
        for pkg in compatible
    ]
    ranked = [
        build_selection(pkg, needed)
        for _, pkg in sorted(scored, key=lambda item: item[0])
    ]

    primary = ranked[0]
    outcome.primary = [primary]
    outcome.alternatives = ranked[1 : options.max_alternatives + 1]

    if primary.overfill_percent > options.max_overfill_percent:
        outcome.warnings.append(
            f"Primary selection has {primary.overfill_percent:g}% overfill "
            f"(exceeds {options.max_overfill_percent:g}% threshold)"
        )

    if primary.package_count > 1:
        outcome.warnings.append(
            f"Requires {primary.package_count} packages to fulfill prescription"
        )

    logger.info(
        f"Selected {primary.code}: {primary.package_count} x {primary.size:g} "
        f"{primary.unit} ({primary.overfill_percent:g}% overfill), "
        f"{len(outcome.alternatives)} alternatives"
    )

    return outcome


def check_for_inactive_packages(packages: Sequence[PackageRecord]) -> list[str]:
    """Warn about inactive packages that will be excluded from selection."""
    inactive_count = sum(1 for pkg in packages if not pkg.active)
    if inactive_count == 0:
        return []
    return [
        f"{inactive_count} inactive NDC(s) found. "
        "These have been excluded from selection."
    ]


def find_optimal_combination(
    packages: Sequence[PackageRecord],
    needed: float,
) -> list[PackageSelection] | None:
    """Mixed-size combination search.

    Only homogeneous repeats of one package size are considered by
    select_packages. Combining different sizes is not implemented.

    Returns:
        Always None.
    """
    logger.debug(
        f"Mixed-size combination search not available "
        f"({len(packages)} packages, {needed:g} needed)"
    )
    return None
