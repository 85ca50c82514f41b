"""Retry logic with exponential backoff for transient action failures."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ruleflow.core.automation.errors import TransientActionError

logger = logging.getLogger(__name__)


def calculate_backoff(attempt: int, base_ms: int = 500) -> float:
    """Calculate exponential backoff delay in seconds.

    Args:
        attempt: Current attempt number (0-indexed)
        base_ms: Delay before the first retry, in milliseconds

    Returns:
        Delay in seconds (0.5s, 1s, 2s, ... for the default base)
    """
    return base_ms * (2**attempt) / 1000


def should_retry(attempt: int, max_attempts: int = 3) -> bool:
    """Check if another attempt is allowed after ``attempt`` failed.

    Args:
        attempt: Attempt number that just failed (0-indexed)
        max_attempts: Maximum number of attempts

    Returns:
        True if should retry, False otherwise
    """
    return attempt + 1 < max_attempts


class RetryHandler:
    """Handler for retrying operations with exponential backoff.

    Only ``TransientActionError`` is retried; any other exception is raised
    on the first occurrence.
    """

    def __init__(self, max_attempts: int = 3, backoff_base_ms: int = 500):
        """Initialize retry handler.

        Args:
            max_attempts: Maximum number of attempts, including the first one
            backoff_base_ms: Base delay for exponential backoff
        """
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_ms = backoff_base_ms

    async def retry_with_backoff(
        self,
        callback: Callable[[], Awaitable[Any]],
        operation_name: str = "operation",
        on_attempt: Callable[[int], None] | None = None,
    ) -> Any:
        """Retry an async operation with exponential backoff.

        Args:
            callback: Async function to retry
            operation_name: Name of the operation for logging
            on_attempt: Called with the 1-based attempt number before each attempt

        Returns:
            Result of the callback

        Raises:
            Exception: Last exception if all retries fail
        """
        attempt = 0
        while True:
            if on_attempt is not None:
                on_attempt(attempt + 1)
            try:
                return await callback()
            except TransientActionError as e:
                if not should_retry(attempt, self.max_attempts):
                    logger.error(
                        f"{operation_name} failed after {self.max_attempts} attempts: {e}"
                    )
                    raise

                delay = calculate_backoff(attempt, self.backoff_base_ms)
                logger.warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                attempt += 1
