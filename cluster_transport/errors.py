"""Exception hierarchy for the cluster transport."""

from typing import Optional


class TransportError(Exception):
    """Base class for every error raised by the transport layer."""


class ImproperlyConfigured(TransportError):
    """Configuration is invalid or inconsistent."""


class ConnectionError(TransportError):
    """The exchange with a node could not be completed (refused, DNS, TLS, reset)."""

    def __init__(self, message: str, host: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.host = host
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.host:
            return f"{base} (host={self.host})"
        return base


class ConnectionTimeout(ConnectionError):
    """The node did not answer within the configured timeout."""


class RetryableResponseError(TransportError):
    """The node answered with a status that marks it unhealthy (e.g. 502/503/504)."""

    def __init__(self, status: int, host: Optional[str] = None, response=None):
        super().__init__(f"Node returned retryable status {status}")
        self.status = status
        self.host = host
        self.response = response


class ClientResponseError(TransportError):
    """The node answered with a non-success status that is not retried."""

    def __init__(self, status: int, response=None):
        super().__init__(f"Request failed with status {status}")
        self.status = status
        self.response = response


class NoConnectionsAvailable(TransportError):
    """The pool has no connection to hand out."""


class MaxRetriesException(TransportError):
    """Every attempt allowed by the retry budget ended in a retryable failure."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        message = f"Exhausted retry budget after {attempts} attempt(s)"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
