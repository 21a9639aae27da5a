"""
Exception taxonomy for actorqueue.

Lookup and validation errors are raised synchronously to callers of the
scraping service. Execution-time errors are captured into the job's tracked
status by the orchestrator and logged at the queue boundary.
"""

from __future__ import annotations


class ActorQueueError(Exception):
    """Base exception for all actorqueue errors."""
    pass


# =============================================================================
# Request / Lookup Errors
# =============================================================================


class InvalidConfig(ActorQueueError):
    """Platform configuration failed validation.

    Carries every violation found, not just the first one.
    """

    def __init__(self, errors: list[str], platform: str | None = None):
        self.errors = list(errors)
        self.platform = platform
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class PlatformNotSupported(ActorQueueError):
    """No strategy is registered for the requested platform."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Platform '{platform}' is not supported")


class JobNotFound(ActorQueueError):
    """Job is not tracked, or has no stored result."""

    def __init__(self, job_id: str, detail: str | None = None):
        self.job_id = job_id
        super().__init__(detail or f"Job {job_id} not found")


class JobNotCompleted(ActorQueueError):
    """Results were requested for a job that has not completed."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is not completed. Current status: {status}")


class JobAlreadyTerminal(ActorQueueError):
    """Cancellation was requested for a job that already finished."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is already {status}")


# =============================================================================
# Credential Errors
# =============================================================================


class CredentialError(ActorQueueError):
    """Base exception for credential pool errors."""
    pass


class NoCredentialsAvailable(CredentialError):
    """Credential pool is empty."""

    def __init__(self, message: str = "No tokens available. Please load tokens first."):
        super().__init__(message)


class AllCredentialsExhausted(CredentialError):
    """Every credential in the pool was rejected as exhausted."""

    def __init__(self, message: str = "All Apify tokens have been exhausted. Please add more tokens."):
        super().__init__(message)


# =============================================================================
# Outbound API Errors
# =============================================================================


class ApiError(ActorQueueError):
    """Error response from the scraping backend API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.cause = cause


class TransientIO(ActorQueueError):
    """Outbound call kept failing after the retry budget was spent."""

    def __init__(self, context: str, attempts: int, last_error: BaseException | None = None):
        self.context = context
        self.attempts = attempts
        self.last_error = last_error
        msg = f"{context} failed after {attempts} attempts"
        if last_error is not None:
            msg += f": {last_error}"
        super().__init__(msg)
