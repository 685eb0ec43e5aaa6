"""Non-throwing wrapper for collaborator calls.

The pipeline never branches on exception types directly. Each collaborator
call is awaited through :func:`guard`, which returns an :class:`Outcome`
carrying either the value or an :class:`ErrorKind` plus message.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ndc_calculator.errors import NDCCalculatorError
from ndc_calculator.models import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Kinds that stop the pipeline; everything else degrades to a warning
FATAL_KINDS = frozenset(
    {
        ErrorKind.VALIDATION,
        ErrorKind.INVALID_CODE_FORMAT,
        ErrorKind.INVALID_INPUT,
        ErrorKind.INVALID_TAPER_SCHEDULE,
        ErrorKind.NOT_FOUND,
        ErrorKind.INTERPRETATION,
        ErrorKind.INTERNAL,
    }
)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success value or failure kind + message.

    Attributes:
        value: Result of the call when successful.
        kind: Failure classification, None on success.
        message: Human-readable failure message.
    """

    value: T | None = None
    kind: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def is_fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome[T]":
        return cls(kind=kind, message=message)


async def guard(call: Awaitable[T], default_kind: ErrorKind) -> Outcome[T]:
    """Await a collaborator call and capture any failure as an Outcome.

    Args:
        call: Awaitable returned by the collaborator method.
        default_kind: Kind assigned to exceptions that are not
            NDCCalculatorError (e.g., raw network errors).

    Returns:
        Outcome with the value, or with the failure kind and message.
    """
    try:
        return Outcome.success(await call)
    except NDCCalculatorError as e:
        logger.debug(f"Collaborator call failed ({e.kind.value}): {e.message}")
        return Outcome.failure(e.kind, e.message)
    except Exception as e:
        logger.warning(f"Collaborator call raised {type(e).__name__}: {e}")
        return Outcome.failure(default_kind, str(e) or type(e).__name__)
