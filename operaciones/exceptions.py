from __future__ import annotations

from typing import Any, Optional


class OpsError(Exception):
    """Base error for operations on assignments and the monthly schedule."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, *, errors: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class InvalidInput(OpsError):
    kind = "validation"
    status_code = 400


class NotFound(OpsError):
    kind = "not_found"
    status_code = 404


class BusinessRuleViolation(OpsError):
    kind = "business_rule"
    status_code = 422


class ConcurrencyConflict(OpsError):
    kind = "conflict"
    status_code = 409
