# Overview: Coded error taxonomy shared by services and routes.

"""
Error codes (machine-readable, returned to API clients as "code"):

- INSUFFICIENT_STOCK: production or transfer asked for more than is on hand.
- INVALID_STATE: transfer no longer PENDING, shift already closed today,
  or the same action is still in flight for this actor.
- AUTHORIZATION_FAILED: approval refused or wrong outlet acting.
- NOT_FOUND: referenced record does not exist (in this outlet).
- SYNC_FAILURE: remote persistence failed after a local commit. Never raised
  to API callers; recorded on the outbox entry and logged as a warning.

Validation errors are detected before any mutation. Bad input that is not a
state problem is raised as plain ValueError (HTTP 400).
"""

from __future__ import annotations


class CoreError(Exception):
    """Base class for coded domain errors."""

    code = "CORE_ERROR"
    http_status = 400

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class InsufficientStockError(CoreError):
    """Raised when a component or transfer needs more than is on hand."""

    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, item_name: str, available, required):
        super().__init__(
            f"Insufficient stock for {item_name}. On-hand: {available}, required: {required}"
        )
        self.item_name = item_name
        self.available = available
        self.required = required

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "item_name": self.item_name,
            "available": str(self.available),
            "required": str(self.required),
        }


class InvalidStateError(CoreError):
    code = "INVALID_STATE"
    http_status = 409


class ActionInProgressError(InvalidStateError):
    """Raised when the same mutating action is already running for an actor."""


class AuthorizationFailedError(CoreError):
    code = "AUTHORIZATION_FAILED"
    http_status = 403


class ApprovalRequiredError(AuthorizationFailedError):
    """Closing needs a manager/owner approval that was not supplied."""

    def __init__(self, reasons: list[str]):
        super().__init__(f"Manager approval required: {', '.join(reasons)}")
        self.reasons = reasons

    def to_dict(self) -> dict:
        return {**super().to_dict(), "approval_reasons": self.reasons}


class NotFoundError(CoreError):
    code = "NOT_FOUND"
    http_status = 404


class SyncFailureError(CoreError):
    code = "SYNC_FAILURE"
    http_status = 502
