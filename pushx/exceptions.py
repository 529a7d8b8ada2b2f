"""Custom exceptions for pushx."""

from typing import Optional


class PushxError(Exception):
    """Base exception for all pushx operations."""

    def __init__(self, message: str = "", stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class ConfigurationError(PushxError):
    """Raised when a required setting is missing or malformed, or a file cannot be read."""


class DriverNotFoundError(PushxError):
    """Raised when the destination driver name is empty or not registered."""


class BackendConnectionError(PushxError):
    """Raised when a driver cannot establish its client or session during init."""


class DeliveryError(PushxError):
    """Raised when the push itself fails."""


class CleanupError(PushxError):
    """Raised when releasing driver resources fails after init."""
