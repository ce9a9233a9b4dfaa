"""Retry policy and shared error types for external service calls.

Retryable errors (rate limits, network failures, temporary 5xx responses) are
retried with exponential backoff. Everything else propagates immediately.
"""

import logging

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when a required credential or setting is missing."""

    pass


class APIRateLimitError(Exception):
    """Raised when a remote API rejects a request because of rate limiting."""

    pass


class NetworkError(Exception):
    """Raised when a remote API could not be reached."""

    pass


class TemporaryServiceError(Exception):
    """Raised when a remote API reports a temporary server-side failure."""

    pass


RETRYABLE_ERRORS = (APIRateLimitError, NetworkError, TemporaryServiceError)


def retry_api_call(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """Decorator retrying a sync or async API call on retryable errors.

    Args:
        max_retries: Total number of attempts (including the first)
        base_delay: Multiplier for the exponential backoff in seconds
        max_delay: Upper bound for a single wait in seconds

    Returns:
        Configured tenacity decorator. The last error is re-raised unchanged
        once attempts are exhausted.
    """
    return retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
