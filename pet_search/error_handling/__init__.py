"""
Error handling module for the search service.

Provides the error taxonomy and the bounded backend-call guard.
"""

from .errors import (
    SearchServiceError,
    SearchValidationError,
    NotFoundError,
    BackendUnavailable,
    TelemetryWriteFailure,
)
from .error_handler import RetryConfig, StrategyGuard

__all__ = [
    'SearchServiceError',
    'SearchValidationError',
    'NotFoundError',
    'BackendUnavailable',
    'TelemetryWriteFailure',
    'RetryConfig',
    'StrategyGuard',
]
