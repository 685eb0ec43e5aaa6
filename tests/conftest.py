"""Shared pytest fixtures for NDC Quantity Calculator tests."""

import asyncio
import os
from collections.abc import Callable, Generator
from unittest.mock import patch

import polars as pl
import pytest

from ndc_calculator.calculator import PrescriptionCalculator
from ndc_calculator.config import Settings
from ndc_calculator.errors import NotFoundError
from ndc_calculator.models import (
    IdentityResult,
    PackageRecord,
    ParsedDosing,
    TaperStep,
)


class FakeIdentityResolver:
    """In-memory identity resolver that records its calls."""

    def __init__(
        self,
        by_name: dict[str, IdentityResult] | None = None,
        by_code: dict[str, IdentityResult] | None = None,
    ) -> None:
        self.by_name = by_name or {}
        self.by_code = by_code or {}
        self.calls: list[tuple[str, str]] = []

    async def resolve_by_name(self, text: str) -> IdentityResult:
        self.calls.append(("name", text))
        if text.lower() not in self.by_name:
            raise NotFoundError(f"No RxCUI found for drug name: {text}")
        return self.by_name[text.lower()]

    async def resolve_by_code(self, code: str) -> IdentityResult:
        self.calls.append(("code", code))
        if code not in self.by_code:
            raise NotFoundError(f"No RxCUI found for NDC: {code}")
        return self.by_code[code]


class FakeDosingInterpreter:
    """Returns a fixed dosing, or raises a fixed exception."""

    def __init__(self, result: ParsedDosing | Exception) -> None:
        self.result = result
        self.calls: list[str] = []

    async def interpret(self, text: str) -> ParsedDosing:
        self.calls.append(text)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeCatalog:
    """Returns fixed package codes, or raises a fixed exception."""

    def __init__(self, codes: list[str] | Exception) -> None:
        self.codes = codes
        self.calls: list[str] = []

    async def list_package_codes(self, identity_id: str) -> list[str]:
        self.calls.append(identity_id)
        if isinstance(self.codes, Exception):
            raise self.codes
        return list(self.codes)


class FakePackageProvider:
    """Package records by code; codes in ``failures`` raise.

    Tracks the highest number of lookups in flight at once.
    """

    def __init__(
        self,
        records: dict[str, PackageRecord],
        failures: set[str] | None = None,
    ) -> None:
        self.records = records
        self.failures = failures or set()
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_package_record(self, code: str) -> PackageRecord | None:
        self.calls.append(code)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if code in self.failures:
                raise ConnectionError(f"lookup failed for {code}")
            return self.records.get(code)
        finally:
            self.in_flight -= 1


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_dosing(
    dose_amount: float = 1,
    dose_unit: str = "tablet",
    times_per_day: float = 2,
    **kwargs: object,
) -> ParsedDosing:
    """Build a ParsedDosing with oral defaults."""
    return ParsedDosing(
        dose_amount=dose_amount,
        dose_unit=dose_unit,
        times_per_day=times_per_day,
        route=kwargs.pop("route", "oral"),  # type: ignore[arg-type]
        readable_instructions=kwargs.pop(  # type: ignore[arg-type]
            "readable_instructions",
            f"Take {dose_amount:g} {dose_unit} {times_per_day:g} times daily",
        ),
        **kwargs,  # type: ignore[arg-type]
    )


def make_package(
    code: str,
    size: float,
    unit: str = "tablet",
    active: bool = True,
) -> PackageRecord:
    """Build a PackageRecord with a generic labeler."""
    return PackageRecord(
        code=code,
        size=size,
        unit=unit,
        product_name="Lisinopril",
        manufacturer="Lupin Pharmaceuticals",
        active=active,
    )


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Set up mock environment variables for testing.

    Yields:
        Dictionary of mock environment variables.
    """
    env_vars = {
        "LOG_LEVEL": "DEBUG",
        "CACHE_ENABLED": "false",
        "CACHE_TTL_MINUTES": "5",
        "MAX_OVERFILL_PERCENT": "15",
        "MAX_ALTERNATIVES": "2",
        "PACKAGE_BATCH_SIZE": "2",
        "PACKAGE_BATCH_DELAY_MS": "0",
        "OPENAI_API_KEY": "sk-test",
        "PACKAGE_CATALOG_FILE": "/tmp/packages.csv",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def test_settings(mock_env_vars: dict[str, str]) -> Settings:
    """Create test settings with mock values.

    Args:
        mock_env_vars: Mock environment variables fixture.

    Returns:
        Settings instance configured for testing.
    """
    return Settings.from_env()


@pytest.fixture
def twice_daily_dosing() -> ParsedDosing:
    """1 tablet by mouth twice daily."""
    return make_dosing(1, "tablet", 2)


@pytest.fixture
def prn_dosing() -> ParsedDosing:
    """2 puffs every 6 hours as needed (PRN sentinel frequency)."""
    return make_dosing(2, "puff", 0, route="inhalation")


@pytest.fixture
def taper_dosing() -> ParsedDosing:
    """Prednisone-style step-down: 4/3/2/1 tablets, 3 days each."""
    return make_dosing(
        4,
        "tablet",
        1,
        taper_steps=[
            TaperStep(amount=4, days=3),
            TaperStep(amount=3, days=3),
            TaperStep(amount=2, days=3),
            TaperStep(amount=1, days=3),
        ],
    )


@pytest.fixture
def lisinopril_identity() -> IdentityResult:
    """Resolved identity for lisinopril 10 MG oral tablet."""
    return IdentityResult(id="314076", canonical_name="lisinopril 10 MG Oral Tablet")


@pytest.fixture
def lisinopril_packages() -> list[PackageRecord]:
    """Bottles of 30, 90 and 100 tablets.

    Returns:
        List of active package records.
    """
    return [
        make_package("68180-0513-01", 30),
        make_package("68180-0513-02", 90),
        make_package("68180-0513-03", 100),
    ]


@pytest.fixture
def sample_catalog_df() -> pl.DataFrame:
    """Raw package catalog DataFrame with file-style column names.

    Returns:
        Polars DataFrame with sample package data.
    """
    return pl.DataFrame(
        {
            "NDC": ["68180-0513-01", "68180-0513-02", "0093-1048-05"],
            "RxCUI": ["314076", "314076", "861007"],
            "Drug Name": [
                "lisinopril 10 MG Oral Tablet",
                "lisinopril 10 MG Oral Tablet",
                "metformin hydrochloride 500 MG Oral Tablet",
            ],
            "Manufacturer": ["Lupin", "Lupin", None],
            "Package Size": [30, 90, 500],
            "Package Unit": ["TABLET", "Tablet ", "TABLET"],
            "Active": ["Y", "yes", "N"],
        }
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Records batch delays instead of sleeping."""
    return SleepRecorder()


@pytest.fixture
def build_calculator(
    lisinopril_identity: IdentityResult,
    twice_daily_dosing: ParsedDosing,
    lisinopril_packages: list[PackageRecord],
    sleep_recorder: SleepRecorder,
) -> Callable[..., PrescriptionCalculator]:
    """Factory for a calculator wired to in-memory collaborators.

    Keyword overrides: resolver, interpreter, catalog, provider, settings,
    cache. Defaults resolve "lisinopril" and "68180051301", interpret every
    SIG as 1 tablet twice daily and offer the 30/90/100 tablet bottles.
    """

    def _build(**overrides: object) -> PrescriptionCalculator:
        resolver = overrides.get("resolver") or FakeIdentityResolver(
            by_name={"lisinopril": lisinopril_identity},
            by_code={"68180051301": lisinopril_identity},
        )
        interpreter = overrides.get("interpreter") or FakeDosingInterpreter(
            twice_daily_dosing
        )
        catalog = overrides.get("catalog") or FakeCatalog(
            [pkg.code for pkg in lisinopril_packages]
        )
        provider = overrides.get("provider") or FakePackageProvider(
            {pkg.code: pkg for pkg in lisinopril_packages}
        )
        settings = overrides.get("settings") or Settings(cache_enabled=False)
        return PrescriptionCalculator(
            resolver,  # type: ignore[arg-type]
            interpreter,  # type: ignore[arg-type]
            catalog,  # type: ignore[arg-type]
            provider,  # type: ignore[arg-type]
            settings=settings,  # type: ignore[arg-type]
            cache=overrides.get("cache"),  # type: ignore[arg-type]
            sleep=sleep_recorder,
        )

    return _build
