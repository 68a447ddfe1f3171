"""Retry policy implementation for backend calls.

This module provides retry logic with exponential backoff and jitter for
handling transient backend failures. It distinguishes between retryable errors
(rate limits, server faults, timeouts, transport failures) and non-retryable
errors (bad credentials, malformed requests, invalid configuration).

The retry system supports:
- Exponential, linear, and constant backoff strategies
- Randomized jitter on top of the computed delay
- Configurable max attempts and delay bounds
- Error code-based retry decisions, with parse failures behind a policy flag
- Structured logging of retry attempts
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, TypeVar

from shotgen.agents.base import (
    BackoffStrategy,
    ParseError,
    RetriesExhaustedError,
    RetryPolicy,
)


logger = logging.getLogger(__name__)


T = TypeVar('T')


RETRYABLE_ERROR_CODES = {
    'API_RATE_LIMIT',
    'API_TIMEOUT',
    'SERVER_FAULT',
    'NETWORK_ERROR',
}


# Deterministic failures; retrying cannot fix them
NON_RETRYABLE_ERROR_CODES = {
    'AUTHENTICATION_FAILED',
    'MALFORMED_REQUEST',
    'INVALID_CONFIGURATION',
    'INVALID_BATCH',
    'INVALID_INPUT',
    'RETRIES_EXHAUSTED',
    'UNEXPECTED_ERROR',
}


@dataclass
class RetryContext:
    """Context information for retry attempts.

    Attributes:
        agent_name: Name of the operation being retried
        attempt: Number of attempts started so far
        max_attempts: Maximum number of attempts
        last_error: Last error encountered
        total_delay: Total delay accumulated across retries
    """
    agent_name: str
    attempt: int
    max_attempts: int
    last_error: Optional[Exception] = None
    total_delay: float = 0.0


def calculate_backoff_delay(
    attempt: int,
    strategy: BackoffStrategy,
    base_delay: float,
    max_delay: float
) -> float:
    """Calculate backoff delay for retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        strategy: Backoff strategy to use
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds, capped at max_delay

    Examples:
        >>> calculate_backoff_delay(0, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        1.0
        >>> calculate_backoff_delay(2, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        4.0
        >>> calculate_backoff_delay(10, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        60.0
    """
    if strategy == BackoffStrategy.EXPONENTIAL:
        delay = base_delay * (2 ** attempt)
    elif strategy == BackoffStrategy.LINEAR:
        delay = base_delay * (attempt + 1)
    else:  # CONSTANT
        delay = base_delay

    return min(delay, max_delay)


def apply_jitter(delay: float, jitter_ratio: float) -> float:
    """Add uniform random jitter in ``[0, delay * jitter_ratio]`` to a delay."""
    if delay <= 0 or jitter_ratio <= 0:
        return delay
    return delay + random.uniform(0.0, delay * jitter_ratio)


def is_retryable_error(error: Exception, retry_policy: RetryPolicy) -> bool:
    """Determine if an error is retryable based on retry policy.

    Logic:
        1. Parse failures are retried only when the policy enables it
        2. Errors without an error_code are never retried
        3. Codes in NON_RETRYABLE_ERROR_CODES are never retried
        4. Otherwise the policy's retryable_errors decide, falling back to
           RETRYABLE_ERROR_CODES when the policy lists none
    """
    if isinstance(error, ParseError):
        return retry_policy.retry_parse_errors

    error_code = getattr(error, 'error_code', None)

    if error_code is None:
        return False

    if error_code in NON_RETRYABLE_ERROR_CODES:
        return False

    if retry_policy.retryable_errors:
        return error_code in retry_policy.retryable_errors

    return error_code in RETRYABLE_ERROR_CODES


def execute_with_retry(
    func: Callable[[], T],
    retry_policy: RetryPolicy,
    context_name: str = "operation",
    retry_context: Optional[RetryContext] = None
) -> T:
    """Execute a function with retry logic.

    Args:
        func: Function to execute (should take no arguments)
        retry_policy: Retry policy to apply
        context_name: Name for logging context
        retry_context: Optional context updated with the attempt count,
            last error and accumulated delay

    Returns:
        Result of successful function execution

    Raises:
        RetriesExhaustedError: If the final attempt failed with a retryable error
        Exception: The original error if it is not retryable

    Example:
        >>> policy = RetryPolicy(max_attempts=3, base_delay_seconds=0.5)
        >>> result = execute_with_retry(lambda: backend.call(prompt), policy, "segment[0]")
    """
    if retry_context is None:
        retry_context = RetryContext(
            agent_name=context_name,
            attempt=0,
            max_attempts=retry_policy.max_attempts
        )

    for attempt in range(retry_policy.max_attempts):
        retry_context.attempt = attempt + 1
        try:
            result = func()

            if attempt > 0:
                logger.info(
                    f"{context_name} succeeded on attempt {attempt + 1} "
                    f"after {retry_context.total_delay:.2f}s total delay"
                )

            return result

        except Exception as e:
            retry_context.last_error = e
            error_code = getattr(e, 'error_code', 'UNKNOWN')

            if not is_retryable_error(e, retry_policy):
                logger.error(
                    f"{context_name} failed with non-retryable error: {error_code}"
                )
                raise

            if attempt == retry_policy.max_attempts - 1:
                logger.error(
                    f"{context_name} failed after {retry_policy.max_attempts} attempts"
                )
                raise RetriesExhaustedError(e, retry_policy.max_attempts) from e

            delay = calculate_backoff_delay(
                attempt,
                retry_policy.backoff_strategy,
                retry_policy.base_delay_seconds,
                retry_policy.max_delay_seconds
            )
            delay = apply_jitter(delay, retry_policy.jitter_ratio)
            retry_context.total_delay += delay

            logger.warning(
                f"{context_name} failed with {error_code}, "
                f"retrying in {delay:.2f}s (attempt {attempt + 2}/{retry_policy.max_attempts})"
            )

            time.sleep(delay)

    # max_attempts >= 1 is enforced by RetryPolicy, so the loop always returns or raises
    raise RuntimeError(f"{context_name}: retry loop ended without a result")


def create_retry_policy(
    max_attempts: int = 3,
    base_delay_seconds: float = 1.0,
    max_delay_seconds: float = 30.0,
    jitter_ratio: float = 0.25,
    retry_parse_errors: bool = False,
    retryable_errors: Optional[List[str]] = None
) -> RetryPolicy:
    """Create the retry policy used for segment backend calls.

    Args:
        max_attempts: Total attempts allowed (1 disables retry)
        base_delay_seconds: Base delay for exponential backoff
        max_delay_seconds: Cap on the pre-jitter delay
        jitter_ratio: Jitter upper bound as a fraction of the delay
        retry_parse_errors: Retry attempts whose output could not be parsed
        retryable_errors: Error codes to retry (None = RETRYABLE_ERROR_CODES)

    Returns:
        RetryPolicy with exponential backoff
    """
    if retryable_errors is None:
        retryable_errors = sorted(RETRYABLE_ERROR_CODES)

    return RetryPolicy(
        max_attempts=max_attempts,
        backoff_strategy=BackoffStrategy.EXPONENTIAL,
        base_delay_seconds=base_delay_seconds,
        max_delay_seconds=max_delay_seconds,
        retryable_errors=list(retryable_errors),
        jitter_ratio=jitter_ratio,
        retry_parse_errors=retry_parse_errors
    )
