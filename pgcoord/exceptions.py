"""Exceptions raised by the lock and the queue."""

from datetime import timedelta


class CoordinationError(Exception):
    """Base exception for pgcoord errors."""


class InvalidArgumentError(CoordinationError, ValueError):
    """Malformed caller input, detected before any store access."""

    def __init__(self, param_name: str, message: str):
        super().__init__(f"{param_name}: {message}")
        self.param_name = param_name


class LockTimeoutError(CoordinationError):
    """The lock could not be acquired within the timeout budget."""

    def __init__(self, resource: str, timeout: timedelta):
        super().__init__(
            f"Could not place a lock on the resource '{resource}': "
            f"lock timeout after {timeout.total_seconds():g}s"
        )
        self.resource = resource
        self.timeout = timeout


class LockNotHeldError(CoordinationError):
    """Release was attempted on a lock this holder no longer owns."""

    def __init__(self, resource: str):
        super().__init__(
            f"Could not release a lock on the resource '{resource}': lock is not held"
        )
        self.resource = resource


class OperationCanceledError(CoordinationError):
    """A blocking wait was canceled by the caller."""
