"""
Retry utilities with tenacity.

Outbound calls fail in two ways that are handled differently:

- exhaustion (auth/quota rejection): the active token is dropped and the
  call is retried with the next one. These retries do not count against
  the transient budget; the pool shrinking on every rotation bounds them.
- transient (anything else): retried with a fixed delay up to
  ``max_attempts`` times, then surfaced as TransientIO.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    wait_fixed,
)
from tenacity.stop import stop_base

from actorqueue.core.clients.tokens import CredentialRotator, preview
from actorqueue.core.errors import (
    AllCredentialsExhausted,
    ApiError,
    CredentialError,
    NoCredentialsAvailable,
    TransientIO,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.5  # seconds

# Status codes that mean the token is spent or refused
EXHAUSTION_STATUS_CODES = {401, 402, 403}

# Rate limiting is temporary, never a reason to drop a token
RATE_LIMIT_STATUS_CODE = 429

EXHAUSTION_PATTERN = re.compile(
    r"\b403\b|forbidden|quota|limit exceeded|payment required",
    re.IGNORECASE,
)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_RETRY_DELAY,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum attempts for transient failures
            delay: Fixed wait between attempts in seconds
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.delay = delay


class TokenExhausted(Exception):
    """Internal signal: the token was rotated, try again."""

    def __init__(self, context: str, cause: BaseException):
        super().__init__(f"Token exhausted during {context}: {cause}")
        self.cause = cause


def _status_code(error: BaseException) -> int | None:
    if isinstance(error, ApiError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def is_exhaustion_error(error: BaseException) -> bool:
    """Check whether an error means the active token is exhausted."""
    status_code = _status_code(error)

    if status_code == RATE_LIMIT_STATUS_CODE:
        return False
    if status_code in EXHAUSTION_STATUS_CODES:
        return True

    return bool(EXHAUSTION_PATTERN.search(str(error)))


class stop_after_transient_attempts(stop_base):
    """Stop once transient failures reach the budget.

    Attempts that ended in a token rotation are not counted.
    """

    def __init__(self, max_attempts: int):
        self.max_attempts = max_attempts
        self.transient_failures = 0

    def __call__(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is not None and isinstance(outcome.exception(), TokenExhausted):
            return False

        self.transient_failures += 1
        return self.transient_failures >= self.max_attempts


def _should_retry(error: BaseException) -> bool:
    return isinstance(error, Exception) and not isinstance(error, CredentialError)


async def call_with_rotation(
    operation: Callable[[str], Awaitable[T]],
    *,
    rotator: CredentialRotator,
    config: RetryConfig | None = None,
    context: str = "operation",
    on_rotate: Callable[[str], Any] | None = None,
) -> T:
    """Run ``operation(token)`` with token rotation and transient retries.

    Args:
        operation: Async callable receiving the token to use
        rotator: Shared token pool
        config: Retry configuration
        context: Label used in logs and errors
        on_rotate: Called with the new token after each rotation

    Returns:
        Operation result

    Raises:
        AllCredentialsExhausted: If the pool is (or becomes) empty
        TransientIO: If transient failures used up the retry budget
    """
    if config is None:
        config = RetryConfig()

    stop = stop_after_transient_attempts(config.max_attempts)

    try:
        async for attempt in AsyncRetrying(
            stop=stop,
            wait=wait_fixed(config.delay),
            retry=retry_if_exception(_should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                try:
                    token = rotator.current()
                except NoCredentialsAvailable as e:
                    raise AllCredentialsExhausted() from e

                try:
                    return await operation(token)
                except Exception as exc:
                    if not is_exhaustion_error(exc):
                        raise

                    logger.warning(
                        "Token exhausted for %s, rotating...",
                        context,
                        extra={"attempt": attempt.retry_state.attempt_number},
                    )
                    if not rotator.rotate_on_exhaustion(token):
                        raise AllCredentialsExhausted() from exc

                    new_token = rotator.current()
                    if on_rotate is not None:
                        on_rotate(new_token)
                    logger.info("Retrying %s with token %s", context, preview(new_token))
                    raise TokenExhausted(context, exc) from exc
    except CredentialError:
        raise
    except Exception as exc:
        raise TransientIO(context, stop.transient_failures, exc) from exc

    # AsyncRetrying always returns or raises above
    raise RuntimeError(f"Retry loop for {context} ended without a result")
