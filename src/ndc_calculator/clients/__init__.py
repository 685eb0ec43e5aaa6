"""External collaborator contracts and adapters.

Adapters live in submodules:
- rxnorm: identity resolution and package code listing (RxNorm REST)
- openfda: package records (openFDA NDC directory)
- dosing: SIG interpretation (OpenAI chat completions)
- local_catalog: offline catalog from a CSV/Excel file
"""

from ndc_calculator.clients.base import (
    CatalogLookup,
    DosingInterpreter,
    IdentityResolver,
    PackageInfoProvider,
)

__all__ = [
    "IdentityResolver",
    "DosingInterpreter",
    "CatalogLookup",
    "PackageInfoProvider",
]
