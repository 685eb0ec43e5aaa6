"""File loading for local package catalogs."""

import logging
from pathlib import Path

import pandas as pd
import polars as pl

from ndc_calculator.ingest.normalizers import normalize_package_catalog
from ndc_calculator.ingest.validators import validate_package_catalog_schema

logger = logging.getLogger(__name__)

# Columns that should always be read as strings to preserve leading zeros
NDC_COLUMN_NAMES = {
    "NDC",
    "ndc",
    "Package NDC",
    "package_ndc",
    "RxCUI",
    "RXCUI",
    "rxcui",
}


def detect_file_type(filename: str) -> str:
    """Detect file type from filename extension.

    Args:
        filename: Name of the file (with extension).

    Returns:
        File type string: "excel" or "csv".

    Raises:
        ValueError: If file type is not supported.
    """
    lower_name = filename.lower()

    if lower_name.endswith((".xlsx", ".xls")):
        return "excel"
    if lower_name.endswith(".csv"):
        return "csv"
    raise ValueError(
        f"Unsupported file type: {filename}. Supported types: .xlsx, .xls, .csv"
    )


def load_csv_to_polars(path: Path | str, encoding: str = "utf8") -> pl.DataFrame:
    """Load a CSV file, keeping NDC/RxCUI columns as strings.

    Raises:
        ValueError: If file cannot be parsed as CSV.
    """
    logger.info(f"Loading CSV file {path}")

    try:
        headers = pl.read_csv(path, encoding=encoding, n_rows=0).columns
        schema_overrides = {col: pl.String for col in headers if col in NDC_COLUMN_NAMES}
        df = pl.read_csv(
            path,
            encoding=encoding,
            schema_overrides=schema_overrides or None,
            truncate_ragged_lines=True,
        )
    except Exception as e:
        logger.error(f"Failed to load CSV file: {e}")
        raise ValueError(f"Cannot parse CSV file: {e}") from e

    logger.info(f"Loaded {df.height} rows, {df.width} columns")
    return df


def load_excel_to_polars(path: Path | str, sheet_name: str | int = 0) -> pl.DataFrame:
    """Load an Excel sheet through pandas (openpyxl), then convert to polars.

    Raises:
        ValueError: If file cannot be parsed as Excel.
    """
    logger.info(f"Loading Excel file {path}, sheet: {sheet_name}")

    try:
        headers = pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl", nrows=0)
        dtype_overrides = {col: str for col in headers.columns if col in NDC_COLUMN_NAMES}
        pdf = pd.read_excel(
            path,
            sheet_name=sheet_name,
            engine="openpyxl",
            dtype=dtype_overrides or None,
        )
        df = pl.from_pandas(pdf)
    except Exception as e:
        logger.error(f"Failed to load Excel file: {e}")
        raise ValueError(f"Cannot parse Excel file: {e}") from e

    logger.info(f"Loaded {df.height} rows, {df.width} columns")
    return df


def load_package_catalog(path: Path | str) -> pl.DataFrame:
    """Load and normalize a package catalog file.

    Args:
        path: CSV or Excel file with one row per package NDC.

    Returns:
        Normalized catalog DataFrame.

    Raises:
        ValueError: If the file cannot be parsed or lacks required columns.
    """
    path = Path(path)
    if detect_file_type(path.name) == "excel":
        raw = load_excel_to_polars(path)
    else:
        raw = load_csv_to_polars(path)

    df = normalize_package_catalog(raw)

    validation = validate_package_catalog_schema(df)
    if not validation.is_valid:
        raise ValueError("; ".join(validation.errors))
    for warning in validation.warnings:
        logger.warning(warning)

    return df
