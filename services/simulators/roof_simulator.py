"""
ROLLOFF Roof Simulator

Simulates a roll-off roof and its external motor controller behind the
GPIO header, for development and integration testing without hardware.

The simulated controller behaves like a typical garage-door style unit:
- A pulse on the OPEN or CLOSE relay starts travel in that direction
- A pulse on the ABORT relay stops travel wherever the roof is
- The motor stops by itself when the roof reaches a limit
- The LOCK and AUXSET relays are looped back to the LOCKED and AUXSTATE
  switches

Switch and relay polarity follow the pin map, so the same configuration
file drives both the simulator and the real hardware.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from rolloff.exceptions import GPIOIOError, NotConnectedError
from rolloff.types import ActiveLevel, InputFunction, OutputFunction

from services.gpio.hardware import GPIOBackend, GPIODirection, GPIOInterface, GPIOPull, GPIOState
from services.gpio.pin_map import PinFunctionMap

from .base import FaultConfig, SimulatorStats, should_inject_fault

logger = logging.getLogger("rolloff.services.simulators")


class RoofPosition(Enum):
    """Simulated roof starting positions."""
    CLOSED = "closed"
    OPEN = "open"
    PARTIAL = "partial"


_START_FRACTION = {
    RoofPosition.CLOSED: 0.0,
    RoofPosition.OPEN: 1.0,
    RoofPosition.PARTIAL: 0.5,
}


def _level(active: ActiveLevel, on: bool) -> GPIOState:
    active_state = GPIOState.HIGH if active == ActiveLevel.HIGH else GPIOState.LOW
    return active_state if on else active_state.inverted()


class SimulatedRoof(GPIOInterface):
    """
    GPIO interface backed by a simulated roof.

    Usage:
        roof = SimulatedRoof(pin_map, travel_time_sec=10.0)
        controller = RoofMotionController(roof, pin_map)
    """

    backend = GPIOBackend.SIMULATOR

    def __init__(
        self,
        pin_map: PinFunctionMap,
        travel_time_sec: float = 10.0,
        start: RoofPosition = RoofPosition.CLOSED,
        clock: Callable[[], float] = time.monotonic,
        fault_config: Optional[FaultConfig] = None,
    ):
        """
        Initialize the simulated roof.

        Args:
            pin_map: Pin map used to decode relays and encode switches
            travel_time_sec: Time for a full open or close travel
            start: Initial roof position
            clock: Monotonic clock in seconds
            fault_config: Pin fault injection settings
        """
        self.pin_map = pin_map
        self.travel_time_sec = max(travel_time_sec, 0.001)
        self.fault_config = fault_config or FaultConfig()
        self.stats = SimulatorStats()
        self._clock = clock

        self.position = _START_FRACTION[start]  # 0.0 closed, 1.0 open
        self.motion = 0                         # +1 opening, -1 closing
        self.stalled = False
        self.external_lock = False
        self.offline = False

        self._moved_at = clock()
        self._connected = False
        self._levels: Dict[int, GPIOState] = {}
        self.modes: Dict[int, GPIODirection] = {}
        self.pulls: Dict[int, GPIOPull] = {}
        self._output_pins = {d.pin: f for f, d in pin_map.outputs.items()}

    def rewire(self, pin_map: PinFunctionMap) -> None:
        """Follow a new pin map; the roof keeps its position."""
        self.pin_map = pin_map
        self._output_pins = {d.pin: f for f, d in pin_map.outputs.items()}
        self._levels.clear()

    # =========================================================================
    # SESSION
    # =========================================================================

    @property
    def connected(self) -> bool:
        return self._connected

    def open_session(self) -> None:
        if self.offline:
            raise NotConnectedError("Simulated GPIO service is offline", backend=self.backend.value)
        self._connected = True
        self.stats.started_at = datetime.now()
        logger.info(f"Roof simulator session opened, roof {self.describe()}")

    def close_session(self) -> None:
        self._connected = False
        logger.info("Roof simulator session closed")

    # =========================================================================
    # PINS
    # =========================================================================

    def set_pin_mode(self, pin: int, direction: GPIODirection) -> None:
        self._require_session()
        self.modes[pin] = direction

    def set_pull(self, pin: int, pull: GPIOPull) -> None:
        self._require_session()
        self.pulls[pin] = pull

    def write_pin(self, pin: int, level: GPIOState) -> None:
        self._require_session()
        self._check_fault(pin, "write")
        self.stats.writes += 1

        previous = self._levels.get(pin)
        self._levels[pin] = level

        function = self._output_pins.get(pin)
        if function is None:
            return
        definition = self.pin_map.output(function)
        asserted = level == _level(definition.active_level, True)
        was_asserted = previous == _level(definition.active_level, True)
        if asserted and not was_asserted:
            self._on_relay(function)

    def read_pin(self, pin: int) -> GPIOState:
        self._require_session()
        self._check_fault(pin, "read")
        self.stats.reads += 1
        self._advance()

        for function, definition in self.pin_map.inputs.items():
            if definition.pin == pin:
                return _level(definition.active_level, self.switch_state(function))
        return self._levels.get(pin, GPIOState.LOW)

    def _check_fault(self, pin: int, operation: str) -> None:
        if should_inject_fault(self.fault_config, pin):
            self.stats.faults_injected += 1
            message = self.fault_config.message or f"Simulated {operation} fault"
            raise GPIOIOError(message, pin=pin, operation=operation)

    # =========================================================================
    # ROOF MODEL
    # =========================================================================

    def relay_asserted(self, function: OutputFunction) -> bool:
        definition = self.pin_map.output(function)
        if definition is None:
            return False
        return self._levels.get(definition.pin) == _level(definition.active_level, True)

    def switch_state(self, function: InputFunction) -> bool:
        """Logical state the simulated hardware presents on a switch."""
        if function == InputFunction.OPENED:
            return self.position >= 1.0
        if function == InputFunction.CLOSED:
            return self.position <= 0.0
        if function == InputFunction.LOCKED:
            return self.external_lock or self.relay_asserted(OutputFunction.LOCK)
        if function == InputFunction.AUXSTATE:
            return self.relay_asserted(OutputFunction.AUXSET)
        return False

    def _on_relay(self, function: OutputFunction) -> None:
        self._advance()
        if function == OutputFunction.OPEN:
            if self.position < 1.0:
                self.motion = 1
                logger.debug("Simulated roof opening")
        elif function == OutputFunction.CLOSE:
            if self.position > 0.0:
                self.motion = -1
                logger.debug("Simulated roof closing")
        elif function == OutputFunction.ABORT:
            self.motion = 0
            logger.debug(f"Simulated roof stopped at {self.position:.0%}")

    def _advance(self) -> None:
        now = self._clock()
        elapsed = now - self._moved_at
        self._moved_at = now
        if self.motion == 0 or self.stalled:
            return

        self.position += self.motion * elapsed / self.travel_time_sec
        if self.position >= 1.0 or self.position <= 0.0:
            self.position = min(max(self.position, 0.0), 1.0)
            self.motion = 0
            logger.debug(f"Simulated roof reached the {self.describe()} limit")

    def describe(self) -> str:
        if self.position >= 1.0:
            return "open"
        if self.position <= 0.0:
            return "closed"
        return f"{self.position:.0%} open"
