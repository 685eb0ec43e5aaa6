"""Exception types raised by the calculator and its collaborators."""

from ndc_calculator.models import ErrorKind


class NDCCalculatorError(Exception):
    """Base class for all calculator errors.

    Attributes:
        kind: Classification used by the pipeline to pick a failure policy.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(NDCCalculatorError, ValueError):
    """Malformed or out-of-range input."""

    kind = ErrorKind.VALIDATION


class InvalidCodeFormat(ValidationError):
    """Input looks like an NDC but is not 10 or 11 digits."""

    kind = ErrorKind.INVALID_CODE_FORMAT


class InvalidInputError(ValidationError):
    """Quantity calculation called with missing dosing or bad days supply."""

    kind = ErrorKind.INVALID_INPUT


class InvalidTaperScheduleError(ValidationError):
    """Taper schedule is empty or contains a negative amount / non-positive days."""

    kind = ErrorKind.INVALID_TAPER_SCHEDULE


class NotFoundError(NDCCalculatorError):
    """Drug identity or package could not be found."""

    kind = ErrorKind.NOT_FOUND


class InterpretationError(NDCCalculatorError):
    """Dosing text could not be turned into structured data."""

    kind = ErrorKind.INTERPRETATION


class CatalogError(NDCCalculatorError):
    """Package code listing failed (collaborator I/O)."""

    kind = ErrorKind.CATALOG


class PackageLookupError(NDCCalculatorError):
    """Package record retrieval failed (collaborator I/O)."""

    kind = ErrorKind.PACKAGE_LOOKUP


class InternalError(NDCCalculatorError):
    """Invariant violation or unexpected exception."""

    kind = ErrorKind.INTERNAL
