"""Error taxonomy shared by the store, the jobs and the API layer.

Each error carries the HTTP status and the machine-readable code used in the
``{"success": false, "error": {...}}`` envelope. Per-item failures inside bulk
jobs are not raised; they are folded into the job report instead.
"""
from typing import Any, Optional


class EngineError(Exception):
    """Base class for errors surfaced to the job caller."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class ValidationError(EngineError):
    """Raised when input is malformed or missing. No side effects occurred."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(EngineError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(EngineError):
    """Raised when a referential-integrity guard rejects a mutation."""

    status_code = 409
    code = "RESOURCE_CONFLICT"


class ConfigurationError(EngineError):
    """Raised when configuration or a required dataset invariant is broken."""

    status_code = 500
    code = "CONFIGURATION_ERROR"


class StoreUnavailableError(EngineError):
    """Raised when the document store cannot be read or written."""

    status_code = 503
    code = "STORE_UNAVAILABLE"
