"""Drug input normalization and package catalog cleaning.

This module handles:
- Drug input classification (NDC vs drug name)
- Identity resolution through an injected resolver, with optional caching
- NDC normalization to 11-digit format (preserving leading zeros)
- Column mapping for package catalog files
- Fuzzy drug name matching
"""

import logging
import re

import polars as pl
from thefuzz import fuzz  # type: ignore[import-untyped]

from ndc_calculator.cache import TTLCache
from ndc_calculator.clients.base import IdentityResolver
from ndc_calculator.errors import InvalidCodeFormat, ValidationError
from ndc_calculator.ingest.validators import (
    DRUG_INPUT_MAX_LENGTH,
    DRUG_INPUT_MIN_LENGTH,
    is_ndc_format,
    looks_like_code,
)
from ndc_calculator.models import IdentityResult, InputKind

logger = logging.getLogger(__name__)

# Maps raw catalog column names to standardized names
PACKAGE_CATALOG_COLUMN_MAP = {
    "NDC": "ndc",
    "Package NDC": "ndc",
    "package_ndc": "ndc",
    "RxCUI": "rxcui",
    "RXCUI": "rxcui",
    "Drug Name": "drug_name",
    "Generic Name": "drug_name",
    "Product Name": "product_name",
    "Brand Name": "product_name",
    "Trade Name": "product_name",
    "Manufacturer": "manufacturer",
    "Labeler Name": "manufacturer",
    "Pkg Size": "package_size",
    "Package Size": "package_size",
    "Pkg Unit": "package_unit",
    "Package Unit": "package_unit",
    "Description": "description",
    "Package Description": "description",
    "Active": "active",
}

_TRUE_STRINGS = {"true", "t", "yes", "y", "1", "active"}


def _strip_separators(text: str) -> str:
    return re.sub(r"[\s-]", "", text)


def normalize_ndc(ndc: str) -> str:
    """Normalize NDC to 11-digit format, preserving leading zeros.

    Handles various NDC formats:
    - 11-digit with dashes: 12345-6789-01 -> 12345678901
    - 10-digit: 1234567890 -> 01234567890 (padded)

    Args:
        ndc: Raw NDC string.

    Returns:
        11-digit normalized NDC string, or "" for None.
    """
    if ndc is None:
        return ""

    cleaned = re.sub(r"[^0-9]", "", str(ndc))
    return cleaned.zfill(11)[-11:]


def classify_drug_input(text: str) -> InputKind:
    """Decide whether input is routed as an NDC or a drug name.

    Pure function of the string: strip whitespace and dashes, and treat
    exactly 10 or 11 remaining digits as an NDC.

    Args:
        text: Drug name or code.

    Returns:
        InputKind.NDC or InputKind.NAME.
    """
    return InputKind.NDC if is_ndc_format(text) else InputKind.NAME


def cache_key_for(text: str) -> str:
    """Build the identity cache key for a drug input."""
    if classify_drug_input(text) is InputKind.NDC:
        return f"ndc:{_strip_separators(text)}"
    return f"name:{text.strip().lower()}"


class IdentityNormalizer:
    """Validate raw drug input and resolve it to a canonical identity.

    Args:
        resolver: Identity collaborator (name and code resolution).
        cache: Optional TTL cache keyed by normalized input.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        cache: TTLCache[IdentityResult] | None = None,
    ) -> None:
        self.resolver = resolver
        self.cache = cache

    async def normalize(self, raw: str) -> IdentityResult:
        """Resolve a drug name or NDC.

        Args:
            raw: Drug name or NDC as typed.

        Returns:
            Resolved identity.

        Raises:
            ValidationError: If the trimmed input is empty, too short or too long.
            InvalidCodeFormat: If the input is code-like but not 10/11 digits.
            NotFoundError: Propagated from the resolver.
        """
        text = (raw or "").strip()

        if not text:
            raise ValidationError("Drug name or NDC is required")
        if len(text) < DRUG_INPUT_MIN_LENGTH:
            raise ValidationError(
                f"Drug name or NDC must be at least {DRUG_INPUT_MIN_LENGTH} characters"
            )
        if len(text) > DRUG_INPUT_MAX_LENGTH:
            raise ValidationError(
                f"Drug name or NDC is too long (max {DRUG_INPUT_MAX_LENGTH} characters)"
            )

        kind = classify_drug_input(text)
        if kind is InputKind.NAME and looks_like_code(text):
            raise InvalidCodeFormat("Invalid NDC format (must be 10 or 11 digits)")

        key = cache_key_for(text)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Identity cache hit: {key}")
                return cached

        if kind is InputKind.NDC:
            code = _strip_separators(text)
            logger.info(f"Resolving NDC {code}")
            identity = await self.resolver.resolve_by_code(code)
        else:
            logger.info(f"Resolving drug name '{text}'")
            identity = await self.resolver.resolve_by_name(text)

        if self.cache is not None:
            self.cache.set(key, identity)

        return identity


def apply_column_mapping(
    df: pl.DataFrame,
    column_map: dict[str, str],
) -> pl.DataFrame:
    """Rename columns according to a mapping.

    Only renames columns that exist and whose target is not already present.

    Args:
        df: DataFrame to rename columns in.
        column_map: Mapping of old names to new names.

    Returns:
        DataFrame with renamed columns.
    """
    renames: dict[str, str] = {}
    for old_name, new_name in column_map.items():
        if (
            old_name in df.columns
            and new_name not in df.columns
            and new_name not in renames.values()
        ):
            renames[old_name] = new_name
            logger.debug(f"Mapping column: '{old_name}' -> '{new_name}'")

    if renames:
        df = df.rename(renames)
        logger.info(f"Renamed {len(renames)} columns")

    return df


def _parse_active(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def normalize_package_catalog(df: pl.DataFrame) -> pl.DataFrame:
    """Normalize a package catalog to the standard schema.

    Standard columns: ndc, ndc_normalized, rxcui, drug_name, product_name,
    manufacturer, package_size, package_unit, active.

    Args:
        df: Raw catalog DataFrame.

    Returns:
        Normalized catalog DataFrame.
    """
    logger.info(f"Normalizing package catalog with {df.height} rows")

    df = apply_column_mapping(df, PACKAGE_CATALOG_COLUMN_MAP)

    if "ndc" in df.columns:
        df = df.with_columns(
            pl.col("ndc").cast(pl.String),
            pl.col("ndc")
            .cast(pl.String)
            .map_elements(normalize_ndc, return_dtype=pl.String)
            .alias("ndc_normalized"),
        )

    for col in ("rxcui", "drug_name", "product_name", "manufacturer", "description"):
        if col not in df.columns:
            df = df.with_columns(pl.lit(None, dtype=pl.String).alias(col))
        else:
            df = df.with_columns(pl.col(col).cast(pl.String))

    # Product name falls back to drug name
    df = df.with_columns(
        pl.coalesce(pl.col("product_name"), pl.col("drug_name"), pl.lit("Unknown"))
        .alias("product_name"),
        pl.col("manufacturer").fill_null("Unknown"),
    )

    if "package_size" in df.columns:
        df = df.with_columns(pl.col("package_size").cast(pl.Float64, strict=False))

    if "package_unit" in df.columns:
        df = df.with_columns(
            pl.col("package_unit").cast(pl.String).str.strip_chars().str.to_lowercase()
        )

    if "active" in df.columns:
        df = df.with_columns(
            pl.col("active")
            .map_elements(_parse_active, return_dtype=pl.Boolean)
            .fill_null(True)
        )
    else:
        df = df.with_columns(pl.lit(True).alias("active"))

    return df


def fuzzy_match_drug_name(
    name: str,
    candidates: list[str],
    threshold: int = 80,
) -> str | None:
    """Find best fuzzy match for a drug name.

    Args:
        name: Drug name to match.
        candidates: List of candidate names to match against.
        threshold: Minimum similarity score (0-100).

    Returns:
        Best matching candidate name, or None if no match above threshold.
    """
    if not name or not candidates:
        return None

    best_match = None
    best_score = 0

    name_upper = name.upper()
    for candidate in candidates:
        if candidate is None:
            continue
        score = fuzz.token_set_ratio(name_upper, candidate.upper())
        if score > best_score and score >= threshold:
            best_score = score
            best_match = candidate

    if best_match:
        logger.debug(f"Fuzzy match '{name}' -> '{best_match}' (score: {best_score})")

    return best_match
