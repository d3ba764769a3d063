"""
ROLLOFF Driver Interface

The narrow contract between a roof driver and the host that runs it. The
host owns scheduling and operator I/O; the driver owns the hardware and
the roof state machine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from rolloff.exceptions import RolloffError

from .roof_status import LightState


class CommandKind(Enum):
    """Operator requests accepted by a roof driver."""
    OPEN = "open"
    CLOSE = "close"
    PARK = "park"
    UNPARK = "unpark"
    ABORT = "abort"
    LOCK = "lock"
    AUX = "aux"


@dataclass
class CommandResult:
    """Outcome of an operator request.

    ``state`` follows the status light grades: BUSY while motion was
    started, OK when done, IDLE for a no-op, ALERT when refused or failed.
    """
    kind: CommandKind
    state: LightState
    message: str = ""
    error: Optional[RolloffError] = None

    @property
    def ok(self) -> bool:
        return self.state != LightState.ALERT


@runtime_checkable
class RoofDriver(Protocol):
    """Lifecycle and command entry points driven by the host."""

    def connect(self) -> bool:
        ...

    def disconnect(self) -> None:
        ...

    def on_tick(self) -> float:
        """Run one evaluation; return seconds until the next tick."""
        ...

    def on_command(self, kind: CommandKind, **args: Any) -> CommandResult:
        ...
