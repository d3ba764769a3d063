"""
ROLLOFF - Roll-Off Roof Driver for Raspberry Pi GPIO

Drives a motorized roll-off observatory roof through relay outputs and
limit switch inputs on the Raspberry Pi header. The motor itself is run by
an external roof controller; this driver pulses its push-button inputs and
polls the limit switches to track the roof.

Architecture:
    - services.gpio: pin function map, hardware backends, activation engine
    - services.enclosure: roof state machine, status lights, fault monitor
    - services.simulators: simulated roof behind the GPIO interface
"""

__version__ = "0.1.0"

# Version tuple for programmatic comparison
VERSION_INFO = (0, 1, 0)

from rolloff.exceptions import RolloffError

from rolloff.types import (
    ActiveLevel,
    Direction,
    InputFunction,
    OutputFunction,
    PulseDuration,
)

__all__ = [
    "__version__",
    "VERSION_INFO",
    "RolloffError",
    "ActiveLevel",
    "Direction",
    "InputFunction",
    "OutputFunction",
    "PulseDuration",
]
