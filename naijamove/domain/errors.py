"""
Error taxonomy for the dispatch core.

Every error carries a human-readable ``detail`` plus structured ``context``
so the API layer (and any UI behind it) can render an actionable message.
Nothing here is retried by the core.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class DispatchError(Exception):
    """Base class for all typed failures returned to callers."""

    code = "DISPATCH_ERROR"
    status_code = 400

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.detail, "error": self.code}
        for key, value in self.context.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


class ValidationError(DispatchError):
    """Malformed or missing input; raised before any state change."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotFound(DispatchError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)


class InvalidTransition(DispatchError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: Any, requested: Any, detail: str | None = None):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(
            detail or f"Cannot transition from {current} to {requested}",
            current=current,
            requested=requested,
        )


class RideAlreadyTaken(DispatchError):
    """Lost the accept race on a PENDING ride."""

    code = "RIDE_ALREADY_TAKEN"
    status_code = 409

    def __init__(self, ride_id: int):
        super().__init__(
            f"Ride {ride_id} has already been taken by another driver",
            ride_id=ride_id,
        )


class InsufficientFunds(DispatchError):
    code = "INSUFFICIENT_FUNDS"
    status_code = 409

    def __init__(self, balance: Decimal, requested: Decimal):
        deficit = requested - balance
        super().__init__(
            f"Insufficient funds: balance {balance}, requested {requested} "
            f"(short by {deficit})",
            balance=balance,
            requested=requested,
            deficit=deficit,
        )


class FraudSuspension(DispatchError):
    """Passenger was auto-suspended; the triggering booking also fails."""

    code = "FRAUD_SUSPENSION"
    status_code = 403

    def __init__(self, user_id: int, reason: str):
        super().__init__(
            f"Account suspended: {reason}", user_id=user_id, reason=reason
        )


class AccountBlocked(DispatchError):
    """User is BANNED/SUSPENDED, or the request IP is blocklisted."""

    code = "ACCOUNT_BLOCKED"
    status_code = 403


class DuplicateUser(DispatchError):
    code = "DUPLICATE_USER"
    status_code = 409


class MaintenanceMode(DispatchError):
    code = "MAINTENANCE_MODE"
    status_code = 503


class PricingConfigError(DispatchError):
    """No pricing entry for a vehicle type. Fatal; never priced by default."""

    code = "PRICING_CONFIG_ERROR"
    status_code = 500
