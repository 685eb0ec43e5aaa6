"""openFDA NDC directory adapter for package records.

Package sizes come from the package description, e.g.
"100 TABLET in 1 BOTTLE" -> size 100, unit "tablet".
A package is active when its marketing start date has passed and the
product's marketing end date (if any) has not.
"""

import logging
import re
from datetime import date
from typing import Any

import httpx

from ndc_calculator.errors import PackageLookupError
from ndc_calculator.models import PackageRecord

logger = logging.getLogger(__name__)

OPENFDA_NDC_URL = "https://api.fda.gov/drug/ndc.json"
DEFAULT_TIMEOUT_SECONDS = 20.0

_DESCRIPTION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s+([A-Za-z]+)")


def parse_package_description(description: str) -> tuple[float, str]:
    """Extract size and unit from a package description.

    Args:
        description: e.g. "30 mL in 1 VIAL".

    Returns:
        (size, lowercase unit); (1.0, "unit") when the pattern is absent.
    """
    match = _DESCRIPTION_PATTERN.match(description or "")
    if match:
        return float(match.group(1)), match.group(2).lower()
    return 1.0, "unit"


def format_ndc_for_fda(ndc: str) -> str:
    """Format an NDC as 5-4-2 with dashes, as openFDA stores it.

    10-digit codes are treated as 4-4-2 and the labeler is zero-padded.
    Anything else is returned unchanged.
    """
    digits = re.sub(r"\D", "", ndc or "")
    if len(digits) == 11:
        return f"{digits[:5]}-{digits[5:9]}-{digits[9:]}"
    if len(digits) == 10:
        return f"0{digits[:4]}-{digits[4:8]}-{digits[8:]}"
    return ndc


def parse_marketing_date(value: str | None) -> date | None:
    """Parse openFDA YYYYMMDD dates; None when absent or malformed."""
    if not value or len(value) != 8 or not value.isdigit():
        return None
    try:
        return date(int(value[:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def is_marketed(
    start: str | None,
    end: str | None,
    today: date | None = None,
) -> bool:
    """Check marketing status from openFDA start/end dates.

    Args:
        start: Marketing start date (YYYYMMDD).
        end: Marketing end date (YYYYMMDD), if any.
        today: Reference date (defaults to today).

    Returns:
        True if marketing has started and not ended.
    """
    today = today or date.today()
    start_date = parse_marketing_date(start)
    if start_date is None or start_date > today:
        return False

    end_date = parse_marketing_date(end)
    if end_date is not None and end_date < today:
        return False

    return True


def _record_from_packaging(
    product: dict[str, Any],
    packaging: dict[str, Any],
    fallback_code: str,
    today: date | None = None,
) -> PackageRecord:
    description = packaging.get("description") or ""
    size, unit = parse_package_description(description)
    start = packaging.get("marketing_start_date")
    end = product.get("marketing_end_date")
    return PackageRecord(
        code=packaging.get("package_ndc") or fallback_code,
        size=size,
        unit=unit,
        product_name=product.get("brand_name") or product.get("generic_name") or "Unknown",
        manufacturer=product.get("labeler_name") or "Unknown",
        active=is_marketed(start, end, today),
        description=description,
        marketing_start=start,
        marketing_end=end,
    )


class OpenFDAPackageClient:
    """Package info provider backed by the openFDA NDC directory.

    Args:
        client: Shared httpx async client (owned by the caller).
        endpoint: openFDA NDC endpoint.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str = OPENFDA_NDC_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client
        self.endpoint = endpoint
        self.timeout = timeout

    async def _search(self, search: str, limit: int) -> list[dict[str, Any]] | None:
        try:
            response = await self.client.get(
                self.endpoint,
                params={"search": search, "limit": limit},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise PackageLookupError(f"openFDA request failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise PackageLookupError(
                f"openFDA API error: {response.status_code} {response.reason_phrase}"
            )
        return response.json().get("results") or []

    async def get_package_record(self, code: str) -> PackageRecord | None:
        """Look up one package NDC.

        Returns:
            PackageRecord, or None when openFDA has no matching package.

        Raises:
            PackageLookupError: On non-404 HTTP errors or transport failure.
        """
        formatted = format_ndc_for_fda(code)
        product_ndc = "-".join(formatted.split("-")[:2])
        search = (
            f'product_ndc:"{product_ndc}" OR packaging.package_ndc:"{formatted}"'
        )

        results = await self._search(search, limit=1)
        if not results:
            logger.debug(f"No openFDA results for NDC {code}")
            return None

        product = results[0]
        packaging = product.get("packaging") or []
        if not packaging:
            logger.debug(f"No packaging info for NDC {code}")
            return None

        package = next(
            (p for p in packaging if p.get("package_ndc") == formatted),
            packaging[0],
        )
        record = _record_from_packaging(product, package, formatted)
        logger.debug(
            f"openFDA package {record.code}: {record.size:g} {record.unit}, "
            f"active={record.active}"
        )
        return record

    async def search_by_drug_name(
        self, drug_name: str, limit: int = 10
    ) -> list[PackageRecord]:
        """List every package of products matching a brand or generic name."""
        search = f'brand_name:"{drug_name}" OR generic_name:"{drug_name}"'
        results = await self._search(search, limit=limit)
        if not results:
            return []

        return [
            _record_from_packaging(product, package, package.get("package_ndc", ""))
            for product in results
            for package in product.get("packaging") or []
        ]
