"""Offline package catalog backed by a polars DataFrame.

Implements every collaborator contract except dosing interpretation, so the
calculator can run against a CSV/Excel catalog without network access.
Expected (normalized) columns: ndc, ndc_normalized, rxcui, drug_name,
product_name, manufacturer, package_size, package_unit, active.
"""

import logging
from pathlib import Path

import polars as pl

from ndc_calculator.errors import NotFoundError
from ndc_calculator.ingest.loaders import load_package_catalog
from ndc_calculator.ingest.normalizers import (
    fuzzy_match_drug_name,
    normalize_ndc,
    normalize_package_catalog,
)
from ndc_calculator.models import IdentityResult, PackageRecord

logger = logging.getLogger(__name__)

SAMPLE_CATALOG_FILE = Path(__file__).parent.parent / "data" / "sample_packages.csv"


class LocalPackageCatalog:
    """Identity resolver, catalog lookup and package provider over a DataFrame.

    Args:
        df: Package catalog (raw or normalized).
        fuzzy_threshold: Minimum thefuzz score for name matches.
    """

    def __init__(self, df: pl.DataFrame, fuzzy_threshold: int = 80) -> None:
        if "ndc_normalized" not in df.columns:
            df = normalize_package_catalog(df)
        self.df = df.with_columns(
            pl.coalesce(pl.col("rxcui"), pl.col("drug_name").str.to_uppercase())
            .alias("identity_id")
        )
        self.fuzzy_threshold = fuzzy_threshold

    @classmethod
    def from_file(cls, path: Path | str, fuzzy_threshold: int = 80) -> "LocalPackageCatalog":
        """Load a catalog from a CSV or Excel file."""
        return cls(load_package_catalog(path), fuzzy_threshold=fuzzy_threshold)

    @classmethod
    def sample(cls) -> "LocalPackageCatalog":
        """Catalog built from the bundled sample data."""
        return cls.from_file(SAMPLE_CATALOG_FILE)

    def _identity_from_row(self, row: dict, synonym: str | None = None) -> IdentityResult:
        return IdentityResult(
            id=str(row["identity_id"]),
            canonical_name=row.get("drug_name") or row.get("product_name") or "Unknown",
            synonym=synonym,
        )

    async def resolve_by_name(self, text: str) -> IdentityResult:
        """Resolve a drug name by exact (case-insensitive) then fuzzy match."""
        needle = text.strip().upper()
        matches = self.df.filter(
            (pl.col("drug_name").str.to_uppercase() == needle)
            | (pl.col("product_name").str.to_uppercase() == needle)
        )
        if matches.height > 0:
            return self._identity_from_row(matches.row(0, named=True))

        names = self.df["drug_name"].drop_nulls().unique(maintain_order=True).to_list()
        best = fuzzy_match_drug_name(text, names, threshold=self.fuzzy_threshold)
        if best is None:
            raise NotFoundError(f"No drug found in local catalog for name: {text}")

        row = self.df.filter(pl.col("drug_name") == best).row(0, named=True)
        logger.info(f"Local catalog fuzzy match '{text}' -> '{best}'")
        return self._identity_from_row(row, synonym=text)

    async def resolve_by_code(self, code: str) -> IdentityResult:
        """Resolve an NDC to the identity of its catalog row."""
        matches = self.df.filter(pl.col("ndc_normalized") == normalize_ndc(code))
        if matches.height == 0:
            raise NotFoundError(f"No drug found in local catalog for NDC: {code}")
        return self._identity_from_row(matches.row(0, named=True))

    async def list_package_codes(self, identity_id: str) -> list[str]:
        """List NDCs for an identity, in catalog order."""
        return (
            self.df.filter(pl.col("identity_id") == identity_id)["ndc"]
            .drop_nulls()
            .to_list()
        )

    async def get_package_record(self, code: str) -> PackageRecord | None:
        """Return the package record for an NDC, or None if not in the catalog."""
        matches = self.df.filter(pl.col("ndc_normalized") == normalize_ndc(code))
        if matches.height == 0:
            return None

        row = matches.row(0, named=True)
        size = row.get("package_size")
        if size is None:
            logger.warning(f"Package {code} has no size in local catalog")
            return None

        return PackageRecord(
            code=row["ndc"],
            size=float(size),
            unit=row.get("package_unit") or "unit",
            product_name=row.get("product_name") or "Unknown",
            manufacturer=row.get("manufacturer") or "Unknown",
            active=bool(row.get("active", True)),
            description=row.get("description") or "",
        )
