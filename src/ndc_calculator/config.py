"""Configuration management for the NDC Quantity Calculator."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from ndc_calculator.cache import TTLCache
from ndc_calculator.compute.selector import SelectionOptions
from ndc_calculator.models import IdentityResult

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        log_level: Logging verbosity level.
        cache_enabled: Whether identity resolutions are cached.
        cache_ttl_minutes: Identity cache time-to-live in minutes.
        max_overfill_percent: Overfill above which the primary pick is flagged.
        max_alternatives: Number of alternative packages to return.
        small_package_penalty: Score band for packages smaller than the need.
        package_batch_size: Concurrent package lookups per batch.
        package_batch_delay_ms: Pause between package lookup batches.
        estimate_as_needed: Estimate PRN quantities instead of returning 0.
        prn_max_uses_per_day: Daily uses assumed by the PRN estimate.
        http_timeout_seconds: Timeout applied by the HTTP adapters.
        rxnorm_base_url: RxNorm REST base URL.
        openfda_ndc_url: openFDA NDC endpoint.
        openai_api_key: API key for the dosing interpreter.
        openai_model: Model used by the dosing interpreter.
        package_catalog_file: Optional local CSV/Excel package catalog.
    """

    log_level: str = "INFO"
    cache_enabled: bool = True
    cache_ttl_minutes: int = 60
    max_overfill_percent: float = 20.0
    max_alternatives: int = 3
    small_package_penalty: float = 10000.0
    package_batch_size: int = 5
    package_batch_delay_ms: int = 100
    estimate_as_needed: bool = False
    prn_max_uses_per_day: int = 4
    http_timeout_seconds: float = 20.0
    rxnorm_base_url: str = "https://rxnav.nlm.nih.gov/REST"
    openfda_ndc_url: str = "https://api.fda.gov/drug/ndc.json"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    package_catalog_file: Path | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with loaded configuration.
        """
        load_dotenv()

        catalog_file = _optional("PACKAGE_CATALOG_FILE")
        settings = cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cache_enabled=os.getenv("CACHE_ENABLED", "true").lower() == "true",
            cache_ttl_minutes=int(os.getenv("CACHE_TTL_MINUTES", "60")),
            max_overfill_percent=float(os.getenv("MAX_OVERFILL_PERCENT", "20")),
            max_alternatives=int(os.getenv("MAX_ALTERNATIVES", "3")),
            small_package_penalty=float(os.getenv("SMALL_PACKAGE_PENALTY", "10000")),
            package_batch_size=int(os.getenv("PACKAGE_BATCH_SIZE", "5")),
            package_batch_delay_ms=int(os.getenv("PACKAGE_BATCH_DELAY_MS", "100")),
            estimate_as_needed=os.getenv("ESTIMATE_AS_NEEDED", "false").lower()
            == "true",
            prn_max_uses_per_day=int(os.getenv("PRN_MAX_USES_PER_DAY", "4")),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "20")),
            rxnorm_base_url=os.getenv(
                "RXNORM_BASE_URL", "https://rxnav.nlm.nih.gov/REST"
            ),
            openfda_ndc_url=os.getenv(
                "OPENFDA_NDC_URL", "https://api.fda.gov/drug/ndc.json"
            ),
            openai_api_key=_optional("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            package_catalog_file=Path(catalog_file) if catalog_file else None,
        )

        logger.debug(
            f"Loaded settings: log_level={settings.log_level}, "
            f"cache_enabled={settings.cache_enabled}, "
            f"max_overfill_percent={settings.max_overfill_percent}"
        )
        return settings

    @property
    def package_batch_delay_seconds(self) -> float:
        return self.package_batch_delay_ms / 1000

    def selection_options(self) -> SelectionOptions:
        """Build package selection options from these settings."""
        return SelectionOptions(
            max_overfill_percent=self.max_overfill_percent,
            max_alternatives=self.max_alternatives,
            small_package_penalty=self.small_package_penalty,
        )

    def make_cache(self) -> TTLCache[IdentityResult] | None:
        """Create the identity cache, or None when caching is disabled."""
        if not self.cache_enabled:
            return None
        return TTLCache(ttl_seconds=self.cache_ttl_minutes * 60)

    def configure_logging(self) -> None:
        """Configure root logging at the configured level."""
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.INFO),
            format=LOG_FORMAT,
        )
