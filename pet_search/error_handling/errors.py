"""
Error taxonomy for the search service.

Each error carries the HTTP status it maps to at the API boundary.
"""

from typing import Any, Dict, List, Optional


class SearchServiceError(Exception):
    """Base class for errors surfaced by the search service."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class SearchValidationError(SearchServiceError):
    """Malformed or out-of-range request parameters."""

    status_code = 400
    public_message = "Invalid query parameters"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.details = details or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "SearchValidationError":
        return cls(details=[{"field": field, "message": message}])

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}


class NotFoundError(SearchServiceError):
    """Requested record does not exist."""

    status_code = 404
    public_message = "Not found"


class BackendUnavailable(SearchServiceError):
    """A strategy's data source failed or timed out."""

    status_code = 503
    public_message = "Search backend unavailable"

    def __init__(self, backend: str, reason: Optional[str] = None):
        super().__init__(f"{backend} backend unavailable: {reason}" if reason else None)
        self.backend = backend


class TelemetryWriteFailure(SearchServiceError):
    """Telemetry record could not be persisted."""

    public_message = "Telemetry write failed"
