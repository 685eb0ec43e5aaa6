"""NDC Quantity Calculator.

Turns a prescription (drug, free-text SIG, days supply) into the total
quantity to dispense and the package NDCs that best fulfill it.
"""

from ndc_calculator.calculator import (
    PrescriptionCalculator,
    calculate_prescription,
    create_calculator,
    error_status,
)
from ndc_calculator.config import Settings
from ndc_calculator.models import (
    CalculationInput,
    CalculationResult,
    PackageRecord,
    PackageSelection,
    ParsedDosing,
)

__version__ = "0.1.0"
__all__ = [
    "Settings",
    "PrescriptionCalculator",
    "calculate_prescription",
    "create_calculator",
    "error_status",
    "CalculationInput",
    "CalculationResult",
    "PackageRecord",
    "PackageSelection",
    "ParsedDosing",
]
