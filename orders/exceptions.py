"""
orders.exceptions

Domain errors raised by the order, ledger and reconciliation services.

Every error carries a stable ``code`` (machine readable), a user-facing
``message`` and the HTTP status the views answer with. Views never build
error payloads by hand; they call ``to_dict()``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class OrderError(Exception):
    code = "order_error"
    http_status = 400

    def __init__(self, message: str, *, code: Optional[str] = None, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.detail:
            err["detail"] = self.detail
        return err


class ValidationError(OrderError):
    """Bad order payload: quantity, sizes, placements, identity, totals."""

    code = "validation_error"
    http_status = 400


class NotFoundError(OrderError):
    code = "not_found"
    http_status = 404


class InvalidTransitionError(OrderError):
    """Target status is not a direct successor in the order's workflow graph."""

    code = "invalid_transition"
    http_status = 409


class ConflictError(OrderError):
    """Optimistic precondition failed (status or updated_at moved underneath us)."""

    code = "conflict"
    http_status = 409


class ReconciliationError(OrderError):
    """Provider object cannot be correlated to an (order, phase)."""

    code = "unresolvable"
    http_status = 400


class ProviderError(OrderError):
    """Stripe call failed (network, 4xx, 5xx)."""

    code = "provider_error"
    http_status = 502
