"""Contracts for the external collaborators used by the calculator."""

from typing import Protocol

from ndc_calculator.models import IdentityResult, PackageRecord, ParsedDosing


class IdentityResolver(Protocol):
    """Maps a drug name or NDC to a canonical identity.

    Both methods raise NotFoundError when nothing matches.
    """

    async def resolve_by_name(self, text: str) -> IdentityResult: ...

    async def resolve_by_code(self, code: str) -> IdentityResult: ...


class DosingInterpreter(Protocol):
    """Turns a free-text SIG into structured dosing.

    Returns an ambiguous ParsedDosing when the text is parseable but
    underspecified; raises InterpretationError only when no structured
    response could be produced.
    """

    async def interpret(self, text: str) -> ParsedDosing: ...


class CatalogLookup(Protocol):
    """Lists package NDCs for an identity (may be empty)."""

    async def list_package_codes(self, identity_id: str) -> list[str]: ...


class PackageInfoProvider(Protocol):
    """Fetches package details for one NDC, or None when unknown."""

    async def get_package_record(self, code: str) -> PackageRecord | None: ...
