"""
Error handler with retry logic for outbound calls.

Implements exponential backoff and timeout escalation for calls to the external
geocoding source. Only transient upstream failures are retried.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .errors import UpstreamServiceError, UpstreamRateLimited


logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of attempts
        initial_timeout_ms: Timeout of the first attempt in milliseconds
        timeout_multiplier: Multiplier for timeout escalation on each retry
        backoff_base_seconds: Delay before the second attempt
    """
    max_retries: int = 3
    initial_timeout_ms: int = 5000
    timeout_multiplier: float = 1.5
    backoff_base_seconds: float = 0.2

    def get_timeout(self, attempt: int) -> int:
        """
        Calculate timeout for a specific attempt.

        timeout = initial_timeout_ms * (timeout_multiplier ^ attempt)

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Timeout value in milliseconds for the given attempt
        """
        return int(self.initial_timeout_ms * (self.timeout_multiplier ** attempt))

    def get_backoff_delay(self, attempt: int) -> float:
        """
        Calculate backoff delay after a failed attempt.

        delay = backoff_base_seconds * (2 ^ attempt)

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Delay in seconds before the next attempt
        """
        return self.backoff_base_seconds * (2 ** attempt)


class ErrorHandler:
    """
    Retries transient upstream failures with escalating timeouts.

    ``UpstreamRateLimited`` and 4xx upstream answers are never retried.
    """

    def __init__(self, config: RetryConfig = None):
        self.config = config or RetryConfig()

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        if isinstance(error, UpstreamRateLimited):
            return False
        if isinstance(error, UpstreamServiceError):
            return error.status is None or error.status >= 500
        return isinstance(error, asyncio.TimeoutError)

    async def retry_with_backoff(
        self,
        operation: Callable,
        *args,
        **kwargs
    ) -> Any:
        """
        Execute operation with exponential backoff retry logic.

        Each attempt runs under its own timeout. Non-retryable errors are
        raised immediately.

        Args:
            operation: Async callable to execute
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result from successful operation execution

        Raises:
            UpstreamServiceError: The last error once retries are exhausted
        """
        name = getattr(operation, "__name__", repr(operation))
        last_exception = None

        for attempt in range(self.config.max_retries):
            timeout = self.config.get_timeout(attempt) / 1000
            try:
                logger.debug(f"Attempt {attempt + 1}/{self.config.max_retries} for {name}")
                return await asyncio.wait_for(operation(*args, **kwargs), timeout)

            except Exception as e:
                if not self.is_retryable(e):
                    raise

                if isinstance(e, asyncio.TimeoutError):
                    e = UpstreamServiceError(f"{name} timed out after {timeout:.1f}s")
                last_exception = e

                self._log_error(
                    operation_name=name,
                    attempt=attempt + 1,
                    max_attempts=self.config.max_retries,
                    error=e,
                    args=args,
                    kwargs=kwargs
                )

                if attempt == self.config.max_retries - 1:
                    logger.error(
                        f"Operation {name} failed after {self.config.max_retries} attempts. "
                        f"Final error: {e}"
                    )
                    break

                backoff_delay = self.config.get_backoff_delay(attempt)
                logger.info(f"Waiting {backoff_delay:.1f}s before retrying {name}...")
                await asyncio.sleep(backoff_delay)

        raise last_exception

    def _log_error(
        self,
        operation_name: str,
        attempt: int,
        max_attempts: int,
        error: Exception,
        args: tuple,
        kwargs: dict
    ) -> None:
        """
        Log error with timestamp, context, and diagnostic data.
        """
        context = {
            'timestamp': datetime.now().isoformat(),
            'operation': operation_name,
            'attempt': f"{attempt}/{max_attempts}",
            'error_type': type(error).__name__,
            'error_message': str(error),
            'args': str(args) if args else 'None',
            'kwargs': {k: str(v) for k, v in kwargs.items()} if kwargs else {}
        }

        logger.warning(
            f"Operation failed: {operation_name} | "
            f"Attempt: {attempt}/{max_attempts} | "
            f"Error: {type(error).__name__}: {error}"
        )
        logger.debug(f"Full error context: {context}")
