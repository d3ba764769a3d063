"""
ROLLOFF Shared Type Definitions

Enumerations shared by the configuration layer and the GPIO/enclosure
services. Function names are closed enumerations so pin lookups never
compare strings.

Usage:
    from rolloff.types import OutputFunction, InputFunction, ActiveLevel
"""

from enum import Enum
from typing import Optional


class OutputFunction(Enum):
    """Roles an output (relay) pin can play."""
    OPEN = "open"
    CLOSE = "close"
    ABORT = "abort"
    LOCK = "lock"
    AUXSET = "auxset"
    UNUSED = "unused"

    @property
    def is_motion(self) -> bool:
        """Motion relays must be pulsed and must be defined."""
        return self in MOTION_OUTPUTS


class InputFunction(Enum):
    """Roles an input (switch) pin can play."""
    OPENED = "opened"
    CLOSED = "closed"
    LOCKED = "locked"
    AUXSTATE = "auxstate"
    UNUSED = "unused"

    @property
    def is_mandatory(self) -> bool:
        return self in MANDATORY_INPUTS


MOTION_OUTPUTS = frozenset({OutputFunction.OPEN, OutputFunction.CLOSE, OutputFunction.ABORT})
MANDATORY_INPUTS = frozenset({InputFunction.OPENED, InputFunction.CLOSED})


class ActiveLevel(Enum):
    """Electrical level at which a function is considered on."""
    HIGH = "high"
    LOW = "low"


class PulseDuration(Enum):
    """How long an output stays asserted before it is released."""
    MS_100 = "0.1s"
    MS_250 = "0.25s"
    MS_500 = "0.5s"
    MS_750 = "0.75s"
    NO_LIMIT = "no_limit"

    @property
    def milliseconds(self) -> Optional[int]:
        """Pulse length in milliseconds, None when the level is held."""
        return _PULSE_MILLISECONDS[self]

    @property
    def seconds(self) -> Optional[float]:
        ms = self.milliseconds
        return None if ms is None else ms / 1000.0


_PULSE_MILLISECONDS = {
    PulseDuration.MS_100: 100,
    PulseDuration.MS_250: 250,
    PulseDuration.MS_500: 500,
    PulseDuration.MS_750: 750,
    PulseDuration.NO_LIMIT: None,
}


class Direction(Enum):
    """Roof travel direction."""
    OPEN = "open"
    CLOSE = "close"

    @property
    def relay(self) -> OutputFunction:
        """Output function that starts travel in this direction."""
        return OutputFunction.OPEN if self is Direction.OPEN else OutputFunction.CLOSE

    @property
    def limit(self) -> InputFunction:
        """Input function reporting the end of travel in this direction."""
        return InputFunction.OPENED if self is Direction.OPEN else InputFunction.CLOSED
