from __future__ import annotations


class PowerLensError(Exception):
    """Base class for errors raised by the dashboard services."""


class InvalidInputError(PowerLensError):
    pass


class InsufficientHistoryError(PowerLensError):
    def __init__(self, message: str, available: int = 0, required: int = 0):
        super().__init__(message)
        self.available = available
        self.required = required


class ForbiddenForRole(PowerLensError):
    pass


class ServiceUnavailableError(PowerLensError):
    """The remote service could not be reached (timeout, refused connection)."""


class RemoteServiceError(PowerLensError):
    """The remote service answered with a non-success status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}{' - ' + message if message else ''}")
        self.status_code = status_code
        self.message = message
