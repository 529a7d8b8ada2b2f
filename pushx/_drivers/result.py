"""PushResult dataclass for the outcome of a push run."""

from dataclasses import dataclass
from typing import Optional

from pushx.exceptions import CleanupError, PushxError


@dataclass
class PushResult:
    """
    Result of a push run.

    Attributes:
        success: Whether every stage, cleanup included, completed
        driver_name: Name of the driver that handled the run
        delivered: Whether the driver's push completed
        stage: Stage that failed, None on success
        error: Primary error of the run
        cleanup_error: Error raised by cleanup, if any
        bytes_read: Number of payload bytes consumed by the driver
    """

    success: bool
    driver_name: str
    delivered: bool = False
    stage: Optional[str] = None
    error: Optional[PushxError] = None
    cleanup_error: Optional[CleanupError] = None
    bytes_read: int = 0

    def __post_init__(self) -> None:
        """Validate result state."""
        if self.success and (self.error or self.cleanup_error):
            raise ValueError("Successful result should not have an error")
        if not self.success and not (self.error or self.cleanup_error):
            raise ValueError("Failed result must have an error")

    @property
    def error_message(self) -> Optional[str]:
        failure = self.error or self.cleanup_error
        return str(failure) if failure else None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @classmethod
    def success_result(
        cls,
        driver_name: str,
        bytes_read: int = 0,
    ) -> "PushResult":
        """Create a successful push result."""
        return cls(
            success=True,
            driver_name=driver_name,
            delivered=True,
            bytes_read=bytes_read,
        )

    @classmethod
    def failure_result(
        cls,
        driver_name: str,
        error: PushxError,
        delivered: bool = False,
        cleanup_error: Optional[CleanupError] = None,
        bytes_read: int = 0,
    ) -> "PushResult":
        """Create a failed push result."""
        return cls(
            success=False,
            driver_name=driver_name,
            delivered=delivered,
            stage=error.stage,
            error=error,
            cleanup_error=cleanup_error,
            bytes_read=bytes_read,
        )
