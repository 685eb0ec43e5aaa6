"""Data models for the NDC Quantity Calculator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorKind(str, Enum):
    """Failure classification used to decide fatal vs recoverable steps."""

    VALIDATION = "VALIDATION"
    INVALID_CODE_FORMAT = "INVALID_CODE_FORMAT"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TAPER_SCHEDULE = "INVALID_TAPER_SCHEDULE"
    NOT_FOUND = "NOT_FOUND"
    INTERPRETATION = "INTERPRETATION"
    CATALOG = "CATALOG"
    PACKAGE_LOOKUP = "PACKAGE_LOOKUP"
    INTERNAL = "INTERNAL"


class InputKind(str, Enum):
    """How a raw drug input is routed to the identity resolver."""

    NDC = "NDC"
    NAME = "NAME"


@dataclass(frozen=True)
class CalculationInput:
    """Raw request for a single calculation.

    Attributes:
        drug_name_or_code: Drug name or NDC as typed by the user.
        dosing_text: Free-text SIG (e.g., "take 1 tablet twice daily").
        days_supply: Days of therapy to cover (1-365).
    """

    drug_name_or_code: str
    dosing_text: str
    days_supply: int


@dataclass(frozen=True)
class IdentityResult:
    """Canonical drug identity (RxCUI) resolved from a name or NDC."""

    id: str
    canonical_name: str
    synonym: str | None = None


@dataclass(frozen=True)
class TaperStep:
    """One step of a taper schedule: ``amount`` units per day for ``days``."""

    amount: float
    days: int


@dataclass
class ParsedDosing:
    """Structured dosing produced by the dosing interpreter.

    Attributes:
        dose_amount: Amount per administration.
        dose_unit: Unit of the dose (tablet, ml, ...).
        times_per_day: Administrations per day; 0 means as-needed (PRN).
        route: Route of administration.
        readable_instructions: Plain English rendering of the SIG.
        is_ambiguous: Whether the SIG is too underspecified to trust.
        clarification: What needs clarifying when ambiguous.
        taper_steps: Step-down schedule, if the SIG describes a taper.
    """

    dose_amount: float
    dose_unit: str
    times_per_day: float
    route: str
    readable_instructions: str
    is_ambiguous: bool = False
    clarification: str | None = None
    taper_steps: list[TaperStep] | None = None

    @property
    def is_as_needed(self) -> bool:
        return self.times_per_day == 0

    @property
    def is_taper(self) -> bool:
        return bool(self.taper_steps)


@dataclass
class QuantityResult:
    """Total quantity needed for the days supply."""

    total_needed: float
    unit: str
    days_supply: int
    daily_dose: float


@dataclass(frozen=True)
class PackageRecord:
    """A manufactured package (NDC) as reported by the package catalog.

    Attributes:
        code: Package NDC (any format).
        size: Units contained in one package.
        unit: Unit of ``size`` (tablet, ml, ...).
        product_name: Brand or generic product name.
        manufacturer: Labeler name.
        active: Whether the package is currently marketed.
        description: Raw package description from the catalog.
        marketing_start: Marketing start date (YYYYMMDD) if known.
        marketing_end: Marketing end date (YYYYMMDD) if known.
    """

    code: str
    size: float
    unit: str
    product_name: str
    manufacturer: str
    active: bool = True
    description: str = ""
    marketing_start: str | None = None
    marketing_end: str | None = None

    @property
    def ndc_normalized(self) -> str:
        """Return 11-digit NDC without dashes, leading zeros preserved."""
        cleaned = self.code.replace("-", "").replace(" ", "")
        return cleaned.zfill(11)[-11:]

    @property
    def ndc_formatted(self) -> str:
        """Return NDC in 5-4-2 format (e.g., "00074-4339-02")."""
        normalized = self.ndc_normalized
        return f"{normalized[:5]}-{normalized[5:9]}-{normalized[9:11]}"


@dataclass
class PackageSelection:
    """A dispense plan: ``package_count`` repeats of one package size."""

    code: str
    size: float
    unit: str
    quantity_to_dispense: float
    package_count: int
    overfill_percent: float
    product_name: str
    manufacturer: str

    def to_display_dict(self) -> dict[str, object]:
        return {
            "ndc": self.code,
            "package_size": self.size,
            "package_unit": self.unit,
            "quantity_to_dispense": self.quantity_to_dispense,
            "number_of_packages": self.package_count,
            "overfill_percent": self.overfill_percent,
            "product_name": self.product_name,
            "manufacturer": self.manufacturer,
        }


@dataclass
class SelectionOutcome:
    """Result of package selection: primary plan, ranked alternatives, warnings."""

    primary: list[PackageSelection] = field(default_factory=list)
    alternatives: list[PackageSelection] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CalculationResult:
    """Everything computed for one request, as far as the pipeline got.

    Attributes:
        input: The original request.
        identity: Resolved drug identity, if resolution succeeded.
        dosing: Parsed SIG, if interpretation succeeded.
        quantity: Computed quantity, if calculation succeeded.
        primary: Primary package selection (empty when none is viable).
        alternatives: Ranked alternative selections.
        warnings: Soft signals (PRN, overfill, inactive NDCs, ...).
        errors: Hard stops (invalid input, not found, uninterpretable SIG).
        timestamp: ISO-8601 UTC time the result was assembled.
    """

    input: CalculationInput
    identity: IdentityResult | None = None
    dosing: ParsedDosing | None = None
    quantity: QuantityResult | None = None
    primary: list[PackageSelection] = field(default_factory=list)
    alternatives: list[PackageSelection] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error_kinds: list[ErrorKind] = field(default_factory=list)
    timestamp: str = field(default_factory=_utc_now)

    @property
    def success(self) -> bool:
        """True when no errors were recorded and a primary selection exists."""
        return not self.errors and bool(self.primary)

    def to_display_dict(self) -> dict[str, object]:
        """Convert to a JSON-ready dictionary.

        Returns:
            Dictionary with all fields formatted for display.
        """
        dosing = None
        if self.dosing is not None:
            dosing = {
                "dose": self.dosing.dose_amount,
                "dose_unit": self.dosing.dose_unit,
                "frequency": self.dosing.times_per_day,
                "route": self.dosing.route,
                "instructions": self.dosing.readable_instructions,
                "is_ambiguous": self.dosing.is_ambiguous,
                "clarification": self.dosing.clarification,
            }
        return {
            "success": self.success,
            "input": {
                "drug_name_or_ndc": self.input.drug_name_or_code,
                "sig": self.input.dosing_text,
                "days_supply": self.input.days_supply,
            },
            "normalized_drug": (
                {
                    "rxcui": self.identity.id,
                    "name": self.identity.canonical_name,
                    "synonym": self.identity.synonym,
                }
                if self.identity
                else None
            ),
            "parsed_sig": dosing,
            "calculation": (
                {
                    "total_quantity_needed": self.quantity.total_needed,
                    "unit": self.quantity.unit,
                    "days_supply": self.quantity.days_supply,
                    "daily_dose": self.quantity.daily_dose,
                }
                if self.quantity
                else None
            ),
            "selected_ndcs": [s.to_display_dict() for s in self.primary],
            "alternative_ndcs": [s.to_display_dict() for s in self.alternatives],
            "warnings": list(self.warnings),
            "errors": list(self.errors) or None,
            "timestamp": self.timestamp,
        }
