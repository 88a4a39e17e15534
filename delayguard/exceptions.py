"""Exceptions raised across the DelayGuard tracking core."""

from delayguard.models.tracking import CarrierErrorCode


class DelayGuardError(Exception):
    """Base class for DelayGuard errors."""


class TokenExchangeError(DelayGuardError):
    """Raised when a carrier OAuth token cannot be obtained."""


class RetryablePollError(DelayGuardError):
    """
    Raised by the poll orchestrator for a retryable carrier failure.

    The worker turns this into an HTTP 500 so Cloud Tasks redelivers
    the task with its queue backoff.
    """

    def __init__(self, code: CarrierErrorCode, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
