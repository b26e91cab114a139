"""
Backend call guard for entity search strategies.

Bounds each backend call with a timeout, retries with escalating timeouts and
exponential backoff, and converts any failure into BackendUnavailable.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .errors import BackendUnavailable


logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Configuration for bounded backend calls.

    Attributes:
        max_retries: Number of retries after the first attempt
        initial_timeout_seconds: Timeout of the first attempt
        timeout_multiplier: Multiplier for timeout escalation on each retry
        backoff_base_seconds: Base delay for exponential backoff between attempts
    """
    max_retries: int = 1
    initial_timeout_seconds: float = 3.0
    timeout_multiplier: float = 1.5
    backoff_base_seconds: float = 0.05

    def get_timeout(self, attempt: int) -> float:
        """
        Calculate timeout for a specific attempt.

        timeout = initial_timeout_seconds * (timeout_multiplier ^ attempt)

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Timeout in seconds for the given attempt
        """
        return self.initial_timeout_seconds * (self.timeout_multiplier ** attempt)

    def get_backoff_delay(self, attempt: int) -> float:
        """
        Calculate backoff delay before the next attempt.

        delay = backoff_base_seconds * (2 ^ attempt)
        """
        return self.backoff_base_seconds * (2 ** attempt)

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1


class StrategyGuard:
    """
    Runs backend operations under a timeout with bounded retries.

    Used at the strategy boundary so that a slow or failing backend raises a
    single BackendUnavailable instead of stalling or crashing the fan-out.
    """

    def __init__(self, config: RetryConfig = None):
        self.config = config or RetryConfig()

    async def call(
        self,
        backend: str,
        operation: Callable[..., Awaitable[Any]],
        *args,
        **kwargs
    ) -> Any:
        """
        Execute operation with timeout escalation and retry.

        Args:
            backend: Name of the backend, used for logging and the raised error
            operation: Async callable to execute
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result from the first successful attempt

        Raises:
            BackendUnavailable: If every attempt failed or timed out
        """
        last_error: Exception = None

        for attempt in range(self.config.total_attempts):
            timeout = self.config.get_timeout(attempt)
            try:
                return await asyncio.wait_for(operation(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"{backend} timed out after {timeout:.2f}s "
                    f"(attempt {attempt + 1}/{self.config.total_attempts})"
                )
            except Exception as e:
                last_error = e
                logger.error(
                    f"{backend} failed on attempt {attempt + 1}/{self.config.total_attempts}: "
                    f"{type(e).__name__}: {e}"
                )

            if attempt < self.config.total_attempts - 1:
                await asyncio.sleep(self.config.get_backoff_delay(attempt))

        reason = "timeout" if isinstance(last_error, asyncio.TimeoutError) else str(last_error)
        raise BackendUnavailable(backend, reason)
