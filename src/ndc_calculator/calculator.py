"""Prescription calculation pipeline.

One linear pass per request:
    validate input -> resolve identity -> interpret SIG -> compute quantity
    -> list package codes -> fetch package records (batched)
    -> inactive check -> select packages -> assemble result

Failure policy:
- Invalid input, unknown drug, uninterpretable SIG and quantity errors are
  fatal: the result carries the error plus whatever was computed before it.
- Package code listing, package record retrieval and selection failures are
  recoverable: they become warnings and the pipeline continues with empty lists.
- Any other exception is caught once in calculate() and reported as an
  internal error. calculate() never raises.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

import httpx

from ndc_calculator.cache import TTLCache
from ndc_calculator.clients.base import (
    CatalogLookup,
    DosingInterpreter,
    IdentityResolver,
    PackageInfoProvider,
)
from ndc_calculator.compute.quantity import (
    assess_reasonableness,
    compute_quantity,
    compute_taper_quantity,
    estimate_as_needed,
)
from ndc_calculator.compute.selector import check_for_inactive_packages, select_packages
from ndc_calculator.config import Settings
from ndc_calculator.errors import NDCCalculatorError
from ndc_calculator.ingest.normalizers import IdentityNormalizer
from ndc_calculator.ingest.validators import (
    is_ndc_format,
    looks_like_code,
    validate_calculation_input,
)
from ndc_calculator.models import (
    CalculationInput,
    CalculationResult,
    ErrorKind,
    IdentityResult,
    PackageRecord,
    ParsedDosing,
    QuantityResult,
)
from ndc_calculator.outcome import guard

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 0.1

AMBIGUOUS_DOSING_WARNING = (
    "Prescription instructions are ambiguous and may need manual review"
)

# Transport status per error kind, for HTTP/CLI callers
_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_CODE_FORMAT: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INVALID_TAPER_SCHEDULE: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERPRETATION: 422,
    ErrorKind.INTERNAL: 500,
}


async def fetch_package_records(
    provider: PackageInfoProvider,
    codes: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[PackageRecord]:
    """Fetch package records in concurrent batches.

    Lookups within a batch run concurrently; a failed lookup or a None result
    omits that code without failing the batch. Batches are separated by
    ``batch_delay`` seconds to respect upstream rate limits.

    Args:
        provider: Package info collaborator.
        codes: Package NDCs to look up.
        batch_size: Concurrent lookups per batch.
        batch_delay: Pause between batches, in seconds.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        Package records in code order, omitting missing ones.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    records: list[PackageRecord] = []
    missing: list[str] = []
    total_batches = (len(codes) + batch_size - 1) // batch_size

    for start in range(0, len(codes), batch_size):
        batch = list(codes[start : start + batch_size])
        logger.debug(
            f"Package batch {start // batch_size + 1} of {total_batches}: {batch}"
        )

        results = await asyncio.gather(
            *(provider.get_package_record(code) for code in batch),
            return_exceptions=True,
        )

        for code, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.debug(f"Package lookup failed for {code}: {result}")
                missing.append(code)
            elif result is None:
                missing.append(code)
            else:
                records.append(result)

        if start + batch_size < len(codes):
            await sleep(batch_delay)

    logger.info(
        f"Fetched {len(records)}/{len(codes)} package records "
        f"({len(missing)} missing)"
    )
    return records


def _validation_kind(message: str, drug_input: str) -> ErrorKind:
    text = (drug_input or "").strip()
    if "NDC format" in message and looks_like_code(text) and not is_ndc_format(text):
        return ErrorKind.INVALID_CODE_FORMAT
    return ErrorKind.VALIDATION


class PrescriptionCalculator:
    """Runs the dosing-to-package pipeline against injected collaborators.

    Args:
        identity_resolver: Name/NDC to identity collaborator.
        dosing_interpreter: SIG interpreter collaborator.
        catalog: Package code listing collaborator.
        package_provider: Package record collaborator.
        settings: Thresholds and batching configuration.
        cache: Identity cache; defaults to ``settings.make_cache()``.
        sleep: Awaitable sleep used between package batches.
    """

    def __init__(
        self,
        identity_resolver: IdentityResolver,
        dosing_interpreter: DosingInterpreter,
        catalog: CatalogLookup,
        package_provider: PackageInfoProvider,
        settings: Settings | None = None,
        cache: TTLCache[IdentityResult] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or Settings()
        self.dosing_interpreter = dosing_interpreter
        self.catalog = catalog
        self.package_provider = package_provider
        self.normalizer = IdentityNormalizer(
            identity_resolver,
            cache if cache is not None else self.settings.make_cache(),
        )
        self._sleep = sleep

    async def calculate(self, data: CalculationInput) -> CalculationResult:
        """Calculate quantity and select packages for one prescription.

        Args:
            data: Calculation request.

        Returns:
            CalculationResult with all partial data computed, never raising.
        """
        result = CalculationResult(input=data)
        try:
            await self._run(data, result)
        except Exception as e:
            logger.exception("Unexpected error during calculation")
            _fail(
                result,
                ErrorKind.INTERNAL,
                f"An unexpected error occurred during calculation: {e}",
            )

        logger.info(
            f"Calculation finished: success={result.success}, "
            f"{len(result.primary)} selected, {len(result.warnings)} warnings, "
            f"{len(result.errors)} errors"
        )
        return result

    async def _run(self, data: CalculationInput, result: CalculationResult) -> None:
        validation = validate_calculation_input(data)
        if not validation.is_valid:
            for message in validation.errors:
                _fail(result, _validation_kind(message, data.drug_name_or_code), message)
            return

        identity = await guard(
            self.normalizer.normalize(validation.cleaned), ErrorKind.NOT_FOUND
        )
        if not identity.ok:
            _fail(result, identity.kind, identity.message)
            return
        result.identity = identity.value

        dosing = await guard(
            self.dosing_interpreter.interpret(data.dosing_text.strip()),
            ErrorKind.INTERPRETATION,
        )
        if not dosing.ok:
            _fail(result, dosing.kind, dosing.message)
            return
        result.dosing = dosing.value
        if dosing.value.is_ambiguous:
            _warn(result, dosing.value.clarification or AMBIGUOUS_DOSING_WARNING)

        try:
            result.quantity = self._compute_quantity(dosing.value, data.days_supply, result)
        except NDCCalculatorError as e:
            _fail(result, e.kind, e.message)
            return
        for warning in assess_reasonableness(result.quantity):
            _warn(result, warning)

        codes = await guard(
            self.catalog.list_package_codes(result.identity.id), ErrorKind.CATALOG
        )
        package_codes: list[str] = []
        if not codes.ok:
            _warn(result, codes.message or "Failed to retrieve package codes")
        elif not codes.value:
            _warn(result, "No package codes found for this drug")
        else:
            package_codes = codes.value

        packages: list[PackageRecord] = []
        if package_codes:
            fetched = await guard(
                fetch_package_records(
                    self.package_provider,
                    package_codes,
                    batch_size=self.settings.package_batch_size,
                    batch_delay=self.settings.package_batch_delay_seconds,
                    sleep=self._sleep,
                ),
                ErrorKind.PACKAGE_LOOKUP,
            )
            if not fetched.ok:
                _warn(result, fetched.message or "Failed to retrieve package information")
            elif not fetched.value:
                _warn(result, "No package information found for available NDCs")
            else:
                packages = fetched.value
                for warning in check_for_inactive_packages(packages):
                    _warn(result, warning)

        if not packages:
            _warn(result, "Cannot select packages: no compatible packages available")
            return

        try:
            selection = select_packages(
                packages, result.quantity, self.settings.selection_options()
            )
        except Exception as e:
            logger.warning(f"Package selection failed: {e}")
            _warn(result, f"Failed to select packages: {e}")
            return

        result.primary = selection.primary
        result.alternatives = selection.alternatives
        for warning in selection.warnings:
            _warn(result, warning)

    def _compute_quantity(
        self,
        dosing: ParsedDosing,
        days_supply: int,
        result: CalculationResult,
    ) -> QuantityResult:
        if dosing.is_taper and not dosing.is_ambiguous:
            quantity = compute_taper_quantity(dosing.taper_steps, unit=dosing.dose_unit)
            if quantity.days_supply != days_supply:
                _warn(
                    result,
                    f"Taper schedule covers {quantity.days_supply} days "
                    f"(days supply entered: {days_supply})",
                )
            return quantity
        if (
            dosing.is_as_needed
            and not dosing.is_ambiguous
            and self.settings.estimate_as_needed
        ):
            uses = self.settings.prn_max_uses_per_day
            _warn(
                result,
                f"As-needed quantity estimated at {uses} uses per day. "
                "Please verify.",
            )
            return estimate_as_needed(dosing, days_supply, max_uses_per_day=uses)
        return compute_quantity(dosing, days_supply)


def _warn(result: CalculationResult, message: str) -> None:
    if message not in result.warnings:
        result.warnings.append(message)


def _fail(result: CalculationResult, kind: ErrorKind | None, message: str) -> None:
    logger.warning(f"Calculation error ({kind.value if kind else 'UNKNOWN'}): {message}")
    result.errors.append(message)
    result.error_kinds.append(kind or ErrorKind.INTERNAL)


def error_status(result: CalculationResult) -> int:
    """Map a result to a transport status code.

    Returns:
        400 for invalid input, 404 for unknown drug, 422 for an
        uninterpretable SIG, 500 for internal errors, 200 otherwise.
    """
    if not result.error_kinds:
        return 200
    return _STATUS_BY_KIND.get(result.error_kinds[0], 500)


async def calculate_prescription(
    data: CalculationInput,
    calculator: PrescriptionCalculator,
) -> CalculationResult:
    """Run one calculation with an already wired calculator."""
    return await calculator.calculate(data)


def create_calculator(
    settings: Settings,
    http_client: httpx.AsyncClient,
    dosing_interpreter: DosingInterpreter | None = None,
) -> PrescriptionCalculator:
    """Wire the calculator to RxNorm, openFDA and OpenAI adapters.

    When ``settings.package_catalog_file`` is set, the local catalog replaces
    RxNorm and openFDA for identity, code listing and package records.

    Args:
        settings: Application settings.
        http_client: Shared httpx client for the REST adapters.
        dosing_interpreter: Override for the OpenAI interpreter.

    Returns:
        Configured PrescriptionCalculator.
    """
    from ndc_calculator.clients.dosing import OpenAIDosingInterpreter
    from ndc_calculator.clients.local_catalog import LocalPackageCatalog
    from ndc_calculator.clients.openfda import OpenFDAPackageClient
    from ndc_calculator.clients.rxnorm import RxNormClient

    if dosing_interpreter is None:
        dosing_interpreter = OpenAIDosingInterpreter.from_api_key(
            settings.openai_api_key or "",
            model=settings.openai_model,
            timeout=settings.http_timeout_seconds,
        )

    if settings.package_catalog_file is not None:
        local = LocalPackageCatalog.from_file(settings.package_catalog_file)
        logger.info(f"Using local package catalog {settings.package_catalog_file}")
        return PrescriptionCalculator(local, dosing_interpreter, local, local, settings)

    rxnorm = RxNormClient(
        http_client,
        base_url=settings.rxnorm_base_url,
        timeout=settings.http_timeout_seconds,
    )
    openfda = OpenFDAPackageClient(
        http_client,
        endpoint=settings.openfda_ndc_url,
        timeout=settings.http_timeout_seconds,
    )
    return PrescriptionCalculator(rxnorm, dosing_interpreter, rxnorm, openfda, settings)
