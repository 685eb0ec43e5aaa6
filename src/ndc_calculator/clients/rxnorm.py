"""RxNorm REST adapter: identity resolution and package code listing.

Strategy for names:
- Exact RxNorm name lookup (rxcui.json), then property lookup for the
  canonical RxNorm name.
- Fall back to approximate term matching; the typed name is kept as synonym.

NDCs are resolved through ndcstatus.json.
"""

import logging
from typing import Any

import httpx

from ndc_calculator.errors import CatalogError, NotFoundError
from ndc_calculator.models import IdentityResult

logger = logging.getLogger(__name__)

RXNORM_BASE_URL = "https://rxnav.nlm.nih.gov/REST"
DEFAULT_TIMEOUT_SECONDS = 20.0
APPROX_MAX_ENTRIES = 5


class RxNormClient:
    """Identity resolver and catalog lookup backed by RxNorm.

    Args:
        client: Shared httpx async client (owned by the caller).
        base_url: RxNorm REST base URL.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = RXNORM_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict:
        response = await self.client.get(
            f"{self.base_url}/{path}", params=params, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json() or {}

    async def _canonical_name(self, rxcui: str) -> str | None:
        try:
            data = await self._get_json(
                f"rxcui/{rxcui}/property.json", params={"propName": "RxNorm Name"}
            )
        except httpx.HTTPError as e:
            logger.debug(f"RxNorm property lookup failed for {rxcui}: {e}")
            return None
        concepts = data.get("propConceptGroup", {}).get("propConcept") or []
        if concepts and isinstance(concepts[0], dict):
            return concepts[0].get("propValue")
        return None

    async def resolve_by_name(self, text: str) -> IdentityResult:
        """Resolve a drug name to an RxCUI.

        Raises:
            NotFoundError: If neither exact nor approximate lookup matches,
                or RxNorm is unreachable.
        """
        try:
            exact = await self._get_json("rxcui.json", params={"name": text})
            exact_ids = exact.get("idGroup", {}).get("rxnormId") or []
            if exact_ids:
                rxcui = str(exact_ids[0])
                name = await self._canonical_name(rxcui)
                logger.info(f"RxNorm exact match '{text}' -> {rxcui}")
                return IdentityResult(id=rxcui, canonical_name=name or text)

            approx = await self._get_json(
                "approximateTerm.json",
                params={"term": text, "maxEntries": APPROX_MAX_ENTRIES},
            )
        except httpx.HTTPError as e:
            raise NotFoundError(f"RxNorm lookup failed for '{text}': {e}") from e

        candidates = approx.get("approximateGroup", {}).get("candidate") or []
        if not candidates:
            raise NotFoundError(f"No RxCUI found for drug name: {text}")

        best = candidates[0]
        rxcui = str(best.get("rxcui", ""))
        if not rxcui:
            raise NotFoundError(f"No RxCUI found for drug name: {text}")

        name = best.get("name") or await self._canonical_name(rxcui) or text
        logger.info(f"RxNorm approximate match '{text}' -> {rxcui} ({name})")
        return IdentityResult(id=rxcui, canonical_name=name, synonym=text)

    async def resolve_by_code(self, code: str) -> IdentityResult:
        """Resolve an NDC (digits only) to an RxCUI.

        Raises:
            NotFoundError: If RxNorm has no concept for the NDC.
        """
        try:
            data = await self._get_json("ndcstatus.json", params={"ndc": code})
        except httpx.HTTPError as e:
            raise NotFoundError(f"RxNorm lookup failed for NDC {code}: {e}") from e

        rxcui = data.get("ndcStatus", {}).get("rxcui")
        if not rxcui:
            raise NotFoundError(f"No RxCUI found for NDC: {code}")

        name = await self._canonical_name(str(rxcui))
        logger.info(f"RxNorm NDC {code} -> {rxcui}")
        return IdentityResult(id=str(rxcui), canonical_name=name or "Unknown")

    async def list_package_codes(self, identity_id: str) -> list[str]:
        """List NDCs associated with an RxCUI.

        Raises:
            CatalogError: On HTTP or transport failure.
        """
        try:
            data = await self._get_json(f"rxcui/{identity_id}/ndcs.json")
        except httpx.HTTPError as e:
            raise CatalogError(
                f"Failed to retrieve NDC codes from RxNorm: {e}"
            ) from e

        ndcs = (data.get("ndcGroup") or {}).get("ndcList", {}) or {}
        codes = [str(code) for code in ndcs.get("ndc") or []]
        logger.info(f"RxNorm returned {len(codes)} NDCs for RxCUI {identity_id}")
        return codes

    async def is_active(self, identity_id: str) -> bool:
        """Check whether an RxCUI is Active or Current in RxNorm."""
        try:
            data = await self._get_json(f"rxcui/{identity_id}/status.json")
        except httpx.HTTPError as e:
            logger.debug(f"RxNorm status lookup failed for {identity_id}: {e}")
            return False
        status = data.get("rxcuiStatus", {}).get("status")
        return status in ("Active", "Current")
