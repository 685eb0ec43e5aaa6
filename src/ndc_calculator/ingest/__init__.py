"""Input and catalog ingestion for the NDC Quantity Calculator.

This module handles:
- Validating calculation inputs (drug, SIG, days supply)
- Normalizing drug input and resolving identity
- Loading and normalizing local package catalogs
"""

from ndc_calculator.ingest.loaders import (
    detect_file_type,
    load_csv_to_polars,
    load_excel_to_polars,
    load_package_catalog,
)
from ndc_calculator.ingest.normalizers import (
    IdentityNormalizer,
    apply_column_mapping,
    classify_drug_input,
    fuzzy_match_drug_name,
    normalize_ndc,
    normalize_package_catalog,
)
from ndc_calculator.ingest.validators import (
    ValidationResult,
    is_ndc_format,
    validate_calculation_input,
    validate_days_supply,
    validate_dosing_text,
    validate_drug_input,
    validate_package_catalog_schema,
    validate_selection,
)

__all__ = [
    # Loaders
    "detect_file_type",
    "load_csv_to_polars",
    "load_excel_to_polars",
    "load_package_catalog",
    # Normalizers
    "IdentityNormalizer",
    "apply_column_mapping",
    "classify_drug_input",
    "fuzzy_match_drug_name",
    "normalize_ndc",
    "normalize_package_catalog",
    # Validators
    "ValidationResult",
    "is_ndc_format",
    "validate_calculation_input",
    "validate_days_supply",
    "validate_dosing_text",
    "validate_drug_input",
    "validate_package_catalog_schema",
    "validate_selection",
]
