"""Error handling and retry configuration for the duplicate checker.

Provides custom exceptions, retry logic, and error handling decorators.
"""

import asyncio
import inspect
from functools import wraps
from typing import Any, Callable, Optional, Type
from loguru import logger


# Custom Exception Classes

class DuplicateCheckError(Exception):
    """Base exception for all duplicate checker errors."""
    pass


class InvalidProposalError(DuplicateCheckError):
    """Raised when an award proposal is structurally invalid (client error)."""
    pass


class RecordStoreError(DuplicateCheckError):
    """Raised when the record store cannot be seeded or queried."""
    pass


class OracleError(DuplicateCheckError):
    """Raised when the Judgment Oracle call fails or returns garbage."""
    pass


class ConfigurationError(DuplicateCheckError):
    """Raised when environment configuration is invalid."""
    pass


# Retry Configuration

class RetryConfig:
    """Configuration for retry logic with exponential backoff."""

    def __init__(
        self,
        attempts: int = 1,
        exp_base: int = 2,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
    ):
        """Initialize retry configuration.

        Args:
            attempts: Maximum number of attempts (1 means no retry)
            exp_base: Base for exponential backoff calculation
            initial_delay: Initial delay in seconds
            max_delay: Maximum delay between retries in seconds
        """
        if attempts < 1:
            raise ConfigurationError(f"Retry attempts must be at least 1, got {attempts}")
        self.attempts = attempts
        self.exp_base = exp_base
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt using exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.exp_base ** attempt)
        return min(delay, self.max_delay)


# Single shot: an oracle failure goes straight to the lexical fallback
ORACLE_RETRY_CONFIG = RetryConfig(attempts=1)


def _log_retry(config: RetryConfig, attempt: int, func: Callable, error: Exception) -> Optional[float]:
    """Log a failed attempt and return the delay before the next one, if any."""
    if attempt < config.attempts - 1:
        delay = config.calculate_delay(attempt)
        logger.warning(
            f"Attempt {attempt + 1}/{config.attempts} failed, retrying in {delay}s",
            function=func.__name__,
            error=str(error),
            error_type=type(error).__name__
        )
        return delay

    logger.error(
        f"All {config.attempts} attempts failed",
        function=func.__name__,
        error=str(error),
        error_type=type(error).__name__
    )
    return None


def retry_with_backoff(
    config: RetryConfig = ORACLE_RETRY_CONFIG,
    exceptions: tuple[Type[Exception], ...] = (Exception,)
) -> Callable:
    """Decorator to retry a coroutine function with exponential backoff.

    Sleeps with asyncio so the event loop is never blocked between attempts;
    cancellation during a sleep stops the retries.

    Args:
        config: Retry configuration
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated coroutine function with retry logic
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff needs a coroutine function, got {func.__name__}")

        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            for attempt in range(config.attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    delay = _log_retry(config, attempt, func, e)
                    if delay is None:
                        raise
                    await asyncio.sleep(delay)

        return wrapper
    return decorator


def handle_errors(error_type: Type[DuplicateCheckError]) -> Callable:
    """Decorator to convert unexpected exceptions into a domain exception type.

    Domain exceptions pass through untouched; anything else is logged and
    re-raised as `error_type`, chained to the original.

    Args:
        error_type: Custom exception type to raise

    Returns:
        Decorated function with error handling
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)

            except DuplicateCheckError:
                raise

            except Exception as e:
                logger.error(
                    f"Error in {func.__name__}",
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise error_type(f"Error in {func.__name__}: {str(e)}") from e

        return wrapper
    return decorator
