"""Unit-of-measure compatibility between packages and prescribed doses.

Matching is deliberately strict: exact match, simple plurals, or an entry in
UNIT_SYNONYMS. Anything else is incompatible and is never coerced.
"""

import logging

logger = logging.getLogger(__name__)

# Canonical unit -> accepted spellings
UNIT_SYNONYMS: dict[str, frozenset[str]] = {
    "tablet": frozenset({"tab", "tabs", "tablets"}),
    "capsule": frozenset({"cap", "caps", "capsules"}),
    "ml": frozenset({"milliliter", "milliliters", "millilitre", "millilitres"}),
    "mg": frozenset({"milligram", "milligrams"}),
    "g": frozenset({"gram", "grams"}),
    "mcg": frozenset({"microgram", "micrograms", "ug"}),
}


def _normalize(unit: str | None) -> str:
    return (unit or "").strip().lower()


def canonical_unit(unit: str | None) -> str:
    """Map a unit spelling to its canonical form.

    Args:
        unit: Raw unit string (any case).

    Returns:
        Canonical unit if the spelling is in the synonym table, otherwise the
        lowercased, trimmed input.
    """
    normalized = _normalize(unit)
    for standard, alternatives in UNIT_SYNONYMS.items():
        if normalized == standard or normalized in alternatives:
            return standard
    return normalized


def units_compatible(package_unit: str | None, needed_unit: str | None) -> bool:
    """Check whether a package unit is equivalent to the prescribed unit.

    Rules, applied in order:
    - Exact match after lowercase/trim
    - Simple plural: "x" vs "xs" or "xes"
    - Same entry in UNIT_SYNONYMS (e.g., "tab" vs "tablet", "ug" vs "mcg")

    Args:
        package_unit: Unit reported for the package.
        needed_unit: Unit of the calculated quantity.

    Returns:
        True if the units are compatible.
    """
    pkg = _normalize(package_unit)
    needed = _normalize(needed_unit)

    if not pkg or not needed:
        return False

    if pkg == needed:
        return True

    if pkg + "s" == needed or needed + "s" == pkg:
        return True
    if pkg + "es" == needed or needed + "es" == pkg:
        return True

    for standard, alternatives in UNIT_SYNONYMS.items():
        accepted = alternatives | {standard}
        if pkg in accepted and needed in accepted:
            return True

    return False
