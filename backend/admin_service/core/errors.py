"""
Error kinds raised by the admin service registries.

Every error is terminal for the current request; routers translate them to
HTTP responses using ``status_code``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class EntitlementError(Exception):
    """Base exception for catalog and entitlement operations."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(EntitlementError):
    """Malformed input, including requests that would change nothing."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(EntitlementError):
    """A referenced entity or parent aggregate does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ConflictError(EntitlementError):
    """Name collisions, guarded deletes and lost insert races."""

    status_code = 409

    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT", message, details)
