"""
ROLLOFF Custom Exceptions

Provides the exception hierarchy for the roll-off roof driver. Every failure
the driver can report to an operator is one of these, so callers can catch
the whole family with a single ``except RolloffError`` clause.

Exception Hierarchy:
    RolloffError (base)
    ├── ConfigurationError
    ├── NotConnectedError
    ├── MissingDefinitionError
    ├── SafetyError
    │   ├── LockedError
    │   └── MountNotParkedError
    ├── MotionError
    │   ├── AlreadyAtLimitError
    │   ├── MotionBusyError
    │   └── MotionTimeoutError
    ├── GPIOIOError
    └── TooManyFaultsError
"""

from typing import Any, Optional


class RolloffError(Exception):
    """Base exception for all ROLLOFF errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional error context
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(RolloffError):
    """Error in configuration file or pin definitions.

    Raised when configuration validation fails, a file cannot be read, or a
    pin definition cannot be used for the requested operation (for example a
    motion relay configured without a pulse limit).
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_file:
            details["config_file"] = config_file
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class MissingDefinitionError(RolloffError):
    """A mandatory roof function has no GPIO pin definition.

    OPEN, CLOSE and ABORT relays and the OPENED and CLOSED switches are
    mandatory; the optional lock and auxiliary functions never raise this.
    """

    def __init__(self, message: str, function: Optional[str] = None) -> None:
        details = {}
        if function:
            details["function"] = function
        super().__init__(message, details)
        self.function = function


# =============================================================================
# Connection and I/O Errors
# =============================================================================

class NotConnectedError(RolloffError):
    """No hardware session has been established with the GPIO backend."""

    def __init__(self, message: str, backend: Optional[str] = None) -> None:
        details = {}
        if backend:
            details["backend"] = backend
        super().__init__(message, details)
        self.backend = backend


class GPIOIOError(RolloffError):
    """A pin write or read failed.

    When raised while releasing a pulse the output may have been left
    asserted; the operator has to check the relay.
    """

    def __init__(
        self,
        message: str,
        pin: Optional[int] = None,
        function: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if function:
            details["function"] = function
        if pin is not None:
            details["pin"] = pin
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.pin = pin
        self.function = function
        self.operation = operation


class TooManyFaultsError(RolloffError):
    """Consecutive I/O failures exceeded the fault threshold.

    Fatal to the hardware session: the controller forces a disconnect and
    re-runs setup when this condition is reached.
    """

    def __init__(self, message: str, failures: int = 0, threshold: int = 0) -> None:
        super().__init__(message, {"failures": failures, "threshold": threshold})
        self.failures = failures
        self.threshold = threshold


# =============================================================================
# Safety Errors
# =============================================================================

class SafetyError(RolloffError):
    """Base class for interlocks that block roof motion."""
    pass


class LockedError(SafetyError):
    """The roof lock is engaged (or its state could not be read)."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        details = {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.operation = operation


class MountNotParkedError(SafetyError):
    """The telescope mount is not parked and the mount lock policy is on."""
    pass


# =============================================================================
# Motion Errors
# =============================================================================

class MotionError(RolloffError):
    """Base class for motion request rejections."""

    def __init__(self, message: str, direction: Optional[str] = None, **kwargs: Any) -> None:
        details = kwargs
        if direction:
            details["direction"] = direction
        super().__init__(message, details)
        self.direction = direction


class AlreadyAtLimitError(MotionError):
    """The requested direction's limit switch is already active."""
    pass


class MotionBusyError(MotionError):
    """A motion request is already in flight in the other direction.

    Requests are never queued; the caller must abort first.
    """

    def __init__(
        self,
        message: str,
        direction: Optional[str] = None,
        current_motion: Optional[str] = None,
    ) -> None:
        super().__init__(message, direction)
        if current_motion:
            self.details["current_motion"] = current_motion
        self.current_motion = current_motion


class MotionTimeoutError(MotionError):
    """The motion deadline passed without reaching the limit switch.

    This is a soft error: the roof may be physically fine, the deadline is
    only a fallback.
    """

    def __init__(
        self,
        message: str,
        direction: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message, direction)
        if timeout_seconds is not None:
            self.details["timeout_seconds"] = timeout_seconds
        self.timeout_seconds = timeout_seconds
