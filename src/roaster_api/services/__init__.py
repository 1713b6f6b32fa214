# src/roaster_api/services/__init__.py
"""Business logic services for the Roaster API."""

from .api_keys import ApiKeyIssuer, ApiKeyValidator, IssuedKey
from .generation import RoastGenerator
from .ledger import LedgerClient, Plan
from .nonce import NonceService
from .plans import PlanCatalog
from .quota import QuotaResult, QuotaService

__all__ = [
    "ApiKeyIssuer",
    "ApiKeyValidator",
    "IssuedKey",
    "LedgerClient",
    "NonceService",
    "Plan",
    "PlanCatalog",
    "QuotaResult",
    "QuotaService",
    "RoastGenerator",
]
