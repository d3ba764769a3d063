"""
ROLLOFF Fault Monitor

Counts consecutive I/O failures on the periodic status reads. Once the
count passes the threshold the hardware session is considered lost and
the controller performs a hard reset: disconnect, setup again, and start
counting from zero. Individual failed operations are never retried.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from rolloff.exceptions import TooManyFaultsError

logger = logging.getLogger("rolloff.services.enclosure")

DEFAULT_FAULT_THRESHOLD = 10


class FaultMonitor:
    """Consecutive I/O failure counter with a hard-reset trip point."""

    def __init__(self, threshold: int = DEFAULT_FAULT_THRESHOLD):
        """
        Args:
            threshold: Failures tolerated; one more trips the monitor
        """
        self.threshold = threshold
        self.consecutive_failures = 0
        self.total_failures = 0
        self.reset_count = 0
        self.last_error: Optional[str] = None
        self.last_reset: Optional[datetime] = None

    @property
    def tripped(self) -> bool:
        """True when a hard reset is required."""
        return self.consecutive_failures > self.threshold

    def record_success(self) -> None:
        """Record a successful status read."""
        self.consecutive_failures = 0

    def record_failure(self, error: Exception) -> bool:
        """
        Record a failed status read.

        Args:
            error: The I/O error raised by the read

        Returns:
            True if the monitor has tripped
        """
        self.consecutive_failures += 1
        self.total_failures += 1
        self.last_error = str(error)
        logger.debug(f"Status read failure {self.consecutive_failures}/{self.threshold}: {error}")
        return self.tripped

    def trip_error(self) -> TooManyFaultsError:
        return TooManyFaultsError(
            "Too many errors communicating with the GPIO controller",
            failures=self.consecutive_failures,
            threshold=self.threshold,
        )

    def reset(self) -> None:
        """Clear the counter after a hard reset."""
        self.consecutive_failures = 0
        self.reset_count += 1
        self.last_reset = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "consecutive_failures": self.consecutive_failures,
            "threshold": self.threshold,
            "total_failures": self.total_failures,
            "reset_count": self.reset_count,
            "last_error": self.last_error,
            "last_reset": self.last_reset.isoformat() if self.last_reset else None,
        }
