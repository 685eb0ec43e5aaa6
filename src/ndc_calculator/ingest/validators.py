"""Validation for calculation inputs, package catalogs and selections."""

import logging
import re
from dataclasses import dataclass, field
from numbers import Real

import polars as pl

from ndc_calculator.compute.quantity import MAX_DAYS_SUPPLY, MIN_DAYS_SUPPLY
from ndc_calculator.models import CalculationInput, PackageSelection

logger = logging.getLogger(__name__)

DRUG_INPUT_MIN_LENGTH = 2
DRUG_INPUT_MAX_LENGTH = 200
DOSING_TEXT_MIN_LENGTH = 5
DOSING_TEXT_MAX_LENGTH = 500

# Overfill above which a selection is considered excessive
EXCESSIVE_OVERFILL_PERCENT = 50.0

PACKAGE_CATALOG_REQUIRED_COLUMNS = {"ndc", "package_size", "package_unit"}
PACKAGE_CATALOG_OPTIONAL_COLUMNS = {
    "rxcui",
    "drug_name",
    "product_name",
    "manufacturer",
    "active",
}

_CODE_CHARS = re.compile(r"^[\d\s-]+$")
_CODE_SEPARATORS = re.compile(r"[\s-]")


@dataclass
class ValidationResult:
    """Result of a validation check.

    Attributes:
        is_valid: Whether the validation passed.
        cleaned: Cleaned (trimmed) value, when applicable.
        errors: Fatal problems found.
        warnings: Non-fatal issues detected.
    """

    is_valid: bool
    cleaned: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def is_ndc_format(text: str) -> bool:
    """Check if input is shaped like an NDC.

    Whitespace and dashes are ignored; the rest must be exactly 10 or 11
    digits (e.g., "00074-4339-02", "0074433902").

    Args:
        text: Raw input.

    Returns:
        True if the input is a 10 or 11 digit code.
    """
    cleaned = _CODE_SEPARATORS.sub("", text or "")
    return cleaned.isdigit() and len(cleaned) in (10, 11)


def looks_like_code(text: str) -> bool:
    """Check if input contains only digits, dashes and spaces."""
    return bool(_CODE_CHARS.match(text or "")) and any(c.isdigit() for c in text)


def validate_drug_input(raw: str | None) -> ValidationResult:
    """Validate a drug name or NDC.

    Args:
        raw: Raw input as typed.

    Returns:
        ValidationResult with the trimmed input and any errors.
    """
    if raw is None or not raw.strip():
        return ValidationResult(
            is_valid=False, errors=["Drug name or NDC is required"]
        )

    cleaned = raw.strip()
    errors = []

    if len(cleaned) < DRUG_INPUT_MIN_LENGTH:
        errors.append(
            f"Drug name or NDC must be at least {DRUG_INPUT_MIN_LENGTH} characters"
        )

    if len(cleaned) > DRUG_INPUT_MAX_LENGTH:
        errors.append(
            f"Drug name or NDC is too long (max {DRUG_INPUT_MAX_LENGTH} characters)"
        )

    if looks_like_code(cleaned) and not is_ndc_format(cleaned):
        errors.append("Invalid NDC format (must be 10 or 11 digits)")

    return ValidationResult(is_valid=not errors, cleaned=cleaned, errors=errors)


def validate_dosing_text(raw: str | None) -> ValidationResult:
    """Validate free-text dosing instructions (SIG) length."""
    cleaned = (raw or "").strip()

    if not cleaned:
        return ValidationResult(
            is_valid=False, errors=["Prescription instructions (SIG) are required"]
        )

    errors = []
    if len(cleaned) < DOSING_TEXT_MIN_LENGTH:
        errors.append(
            "Prescription instructions (SIG) must be at least "
            f"{DOSING_TEXT_MIN_LENGTH} characters"
        )
    if len(cleaned) > DOSING_TEXT_MAX_LENGTH:
        errors.append(
            "Prescription instructions are too long "
            f"(max {DOSING_TEXT_MAX_LENGTH} characters)"
        )

    return ValidationResult(is_valid=not errors, cleaned=cleaned, errors=errors)


def validate_days_supply(days_supply: object) -> ValidationResult:
    """Validate days supply is a whole number within range.

    Args:
        days_supply: Value to validate.

    Returns:
        ValidationResult with any errors.
    """
    errors = []

    if (
        isinstance(days_supply, bool)
        or not isinstance(days_supply, Real)
        or days_supply != days_supply  # NaN
    ):
        errors.append("Days supply must be a valid number")
    elif days_supply < MIN_DAYS_SUPPLY:
        errors.append("Days supply must be greater than 0")
    elif days_supply > MAX_DAYS_SUPPLY:
        errors.append(f"Days supply cannot exceed {MAX_DAYS_SUPPLY} days")
    elif int(days_supply) != days_supply:
        errors.append("Days supply must be a whole number")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_calculation_input(data: CalculationInput) -> ValidationResult:
    """Validate every field of a calculation request.

    Args:
        data: Request to validate.

    Returns:
        ValidationResult combining the errors of all fields.
    """
    results = [
        validate_drug_input(data.drug_name_or_code),
        validate_dosing_text(data.dosing_text),
        validate_days_supply(data.days_supply),
    ]
    errors = [error for result in results for error in result.errors]
    return ValidationResult(
        is_valid=not errors,
        cleaned=results[0].cleaned,
        errors=errors,
    )


def validate_package_catalog_schema(df: pl.DataFrame) -> ValidationResult:
    """Validate a normalized package catalog DataFrame.

    Args:
        df: Catalog after column normalization.

    Returns:
        ValidationResult with status and details.
    """
    columns = set(df.columns)
    missing = PACKAGE_CATALOG_REQUIRED_COLUMNS - columns

    if missing:
        return ValidationResult(
            is_valid=False,
            errors=[f"Package catalog missing required columns: {sorted(missing)}"],
        )

    warnings = []
    missing_optional = PACKAGE_CATALOG_OPTIONAL_COLUMNS - columns
    if missing_optional:
        warnings.append(
            f"Package catalog missing recommended columns: {sorted(missing_optional)}"
        )

    if df.height == 0:
        warnings.append("Package catalog is empty")

    return ValidationResult(is_valid=True, warnings=warnings)


def validate_selection(selection: PackageSelection) -> ValidationResult:
    """Check that a dispense plan is internally sane.

    Args:
        selection: Package selection to check.

    Returns:
        ValidationResult with any errors.
    """
    errors = []

    if not selection.code or not selection.code.strip():
        errors.append("NDC is required")

    if selection.size <= 0:
        errors.append("Package size must be greater than 0")

    if selection.package_count <= 0:
        errors.append("Number of packages must be greater than 0")

    if selection.quantity_to_dispense <= 0:
        errors.append("Quantity to dispense must be greater than 0")

    if selection.overfill_percent > EXCESSIVE_OVERFILL_PERCENT:
        errors.append(
            f"Excessive overfill ({selection.overfill_percent:g}%). "
            "Consider alternative NDC or quantity."
        )

    return ValidationResult(is_valid=not errors, errors=errors)
