"""Error taxonomy shared by the services and the HTTP layer.

Every failure a caller can observe is a :class:`RoasterError`. The HTTP layer
renders it as ``{"success": false, "error": ..., "hint": ...}`` with the
status code carried by the exception class, so services never import FastAPI.
"""

from __future__ import annotations

from typing import Any


class RoasterError(RuntimeError):
    """Base exception for failures reported through the response envelope."""

    status_code: int = 500
    error: str = "Internal error"
    hint: str | None = None

    def __init__(
        self,
        error: str | None = None,
        *,
        hint: str | None = None,
        **extra: Any,
    ) -> None:
        if error is not None:
            self.error = error
        if hint is not None:
            self.hint = hint
        self.extra = extra
        super().__init__(self.error)

    def to_envelope(self) -> dict[str, Any]:
        """Return the public response body for this failure."""
        body: dict[str, Any] = {"success": False, "error": self.error}
        if self.hint:
            body["hint"] = self.hint
        body.update(self.extra)
        return body


# --- Input validation (400) -------------------------------------------------


class InputValidation(RoasterError):
    """Malformed identity, signature, or missing request fields."""

    status_code = 400
    error = "Invalid request"


class InvalidAddress(InputValidation):
    error = "Bad address"


class ChallengeExpired(InputValidation):
    """No pending challenge: never issued, already consumed, or expired."""

    error = "Nonce expired. Request a new nonce."


class SignatureInvalid(InputValidation):
    error = "Malformed signature."


class UnknownPlan(InputValidation):
    error = "Unknown plan"


class UnknownTier(InputValidation):
    error = "Unknown entitlement tier"


# --- Authentication (401) ---------------------------------------------------


class AuthFailure(RoasterError):
    status_code = 401
    error = "Authentication failed"


class SignatureMismatch(AuthFailure):
    error = "Signature mismatch."


class CredentialUnusable(AuthFailure):
    error = "Invalid or expired API key"


# --- Entitlement (402) ------------------------------------------------------


class EntitlementAbsent(RoasterError):
    status_code = 402
    error = "No active entitlement"


class NoActiveEntitlement(EntitlementAbsent):
    hint = "Buy a plan onchain then claim again."


# --- Quota (429) ------------------------------------------------------------


class QuotaExceeded(RoasterError):
    """Daily counter went past its limit for the current UTC day."""

    status_code = 429
    error = "Daily limit reached"

    def __init__(
        self,
        error: str | None = None,
        *,
        daily_limit: int,
        reset_utc_day: str,
        hint: str | None = None,
    ) -> None:
        super().__init__(
            error,
            hint=hint,
            reset_utc_day=reset_utc_day,
            daily_limit=daily_limit,
        )
        self.daily_limit = daily_limit
        self.reset_utc_day = reset_utc_day


# --- Upstream (502) ---------------------------------------------------------


class UpstreamFailure(RoasterError):
    status_code = 502
    error = "Upstream failure"


class LedgerError(UpstreamFailure):
    error = "Ledger unavailable"


class StoreUnavailable(UpstreamFailure):
    error = "Store unavailable"


class GenerationError(UpstreamFailure):
    error = "Roast generation failed"


# --- Misconfiguration (500) -------------------------------------------------


class Misconfiguration(RoasterError):
    status_code = 500
    error = "Server misconfigured"
