"""
ROLLOFF GPIO Activation Engine

Owns all direct pin I/O for the roof driver. Outputs are driven as a
level change, optionally released after a pulse to emulate a momentary
push button; inputs are read and translated to a logical state using the
configured polarity.

The pulse release wait is a blocking sleep on the calling thread. Pulses
are at most 750 ms and the assert-then-release order must be kept, so no
other request is serviced while a pulse is in progress.
"""

import logging
import time
from typing import Callable, List

from rolloff.exceptions import (
    ConfigurationError,
    GPIOIOError,
    LockedError,
    MissingDefinitionError,
    NotConnectedError,
)
from rolloff.types import ActiveLevel, InputFunction, MOTION_OUTPUTS, OutputFunction

from .hardware import GPIODirection, GPIOInterface, GPIOPull, GPIOState
from .pin_map import OutputDefinition, PinFunctionMap

logger = logging.getLogger("rolloff.services.gpio")

REQUIRED_ROLES = 4  # OPEN, CLOSE relays and OPENED, CLOSED switches


def _active_state(level: ActiveLevel) -> GPIOState:
    return GPIOState.HIGH if level == ActiveLevel.HIGH else GPIOState.LOW


class GPIOActivationEngine:
    """
    Executes roof functions on GPIO pins.

    Usage:
        engine = GPIOActivationEngine(PigpioInterface(), pin_map)
        engine.open_session()
        engine.apply_configuration()

        engine.activate(OutputFunction.OPEN, True)   # pulse the open relay
        opened = engine.read_switch(InputFunction.OPENED)
    """

    def __init__(
        self,
        hardware: GPIOInterface,
        pin_map: PinFunctionMap,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the activation engine.

        Args:
            hardware: GPIO hardware access collaborator
            pin_map: Function to pin table used for every lookup
            sleep: Blocking sleep used for pulse release
        """
        self.hardware = hardware
        self.pin_map = pin_map
        self._sleep = sleep

    @property
    def connected(self) -> bool:
        return self.hardware.connected

    def open_session(self) -> None:
        self.hardware.open_session()

    def close_session(self) -> None:
        self.hardware.close_session()

    # =========================================================================
    # SETUP
    # =========================================================================

    def apply_configuration(self) -> bool:
        """
        Set pin modes, pull resistors and idle output levels from the map.

        A pin that fails to configure is logged and skipped; the remaining
        pins are still configured.

        Returns:
            True if the OPEN, CLOSE, OPENED and CLOSED roles were all set up
        """
        required = 0

        logger.debug("Summary of GPIO pins defined:")
        for function, definition in self.pin_map.outputs.items():
            try:
                self.hardware.set_pin_mode(definition.pin, GPIODirection.OUTPUT)
                self.hardware.set_pull(definition.pin, GPIOPull.NONE)
            except GPIOIOError as e:
                logger.error(f"Failed to set {function.value} GPIO pin {definition.pin} to output mode: {e}")
                continue

            idle = _active_state(definition.active_level).inverted()
            try:
                self.hardware.write_pin(definition.pin, idle)
            except GPIOIOError as e:
                logger.warning(f"GPIO write failed for {function.value}, {definition.pin}: {e}")

            if function in (OutputFunction.OPEN, OutputFunction.CLOSE):
                required += 1
            logger.debug(
                f"Slot {definition.slot}, Function {function.value}, Pin {definition.pin}, Mode Output, "
                f"Activate {definition.active_level.value}, Resistor off, Timed {definition.pulse.value}"
            )

        for function, definition in self.pin_map.inputs.items():
            pull = GPIOPull.DOWN if definition.active_high else GPIOPull.UP
            try:
                self.hardware.set_pin_mode(definition.pin, GPIODirection.INPUT)
                self.hardware.set_pull(definition.pin, pull)
            except GPIOIOError as e:
                logger.error(f"Failed to set {function.value} GPIO pin {definition.pin} to input mode: {e}")
                continue

            if function.is_mandatory:
                required += 1
            logger.debug(
                f"Slot {definition.slot}, Function {function.value}, Pin {definition.pin}, Mode Input, "
                f"Activate {definition.active_level.value}, Resistor pull {pull.value}"
            )

        if required < REQUIRED_ROLES:
            logger.error("The GPIO definitions must include relays OPEN, CLOSE, and switches OPENED, CLOSED")
            return False
        return True

    # =========================================================================
    # OUTPUTS
    # =========================================================================

    def require_output(self, function: OutputFunction) -> OutputDefinition:
        """Return the definition of a mandatory output or raise."""
        definition = self.pin_map.output(function)
        if definition is None:
            raise MissingDefinitionError(
                f"A GPIO pin definition for {function.value.upper()} was not found",
                function=function.value,
            )
        return definition

    def activate(self, function: OutputFunction, turn_on: bool, ignore_lock: bool = False) -> None:
        """
        Drive an output function.

        Args:
            function: Output role to drive
            turn_on: True to assert the function, False to release it
            ignore_lock: Skip the roof lock interlock (used by lock/aux)

        Raises:
            NotConnectedError: No hardware session
            LockedError: Lock engaged or its state unreadable
            MissingDefinitionError: Unmapped OPEN, CLOSE or ABORT relay
            ConfigurationError: Motion relay configured without a pulse limit
            GPIOIOError: Pin write failed, including the pulse release
        """
        if not self.connected:
            raise NotConnectedError("No contact with the roof controller has been established")

        if not ignore_lock:
            try:
                locked = self.read_switch(InputFunction.LOCKED)
            except GPIOIOError as e:
                raise LockedError(
                    "Roof lock state could not be read, movement refused",
                    operation=function.value,
                ) from e
            if locked:
                raise LockedError("Roof external lock state prevents roof movement",
                                  operation=function.value)

        definition = self.pin_map.output(function)
        if definition is None:
            if function in MOTION_OUTPUTS:
                self.require_output(function)
            # Optional relay not wired up, nothing to do
            return

        if function in MOTION_OUTPUTS and not definition.timed:
            raise ConfigurationError(
                f"{function.value.upper()} needs an active limit interval, "
                "No Limit is only available for LOCK and AUXSET",
                config_key=f"outputs.{definition.slot}.pulse",
            )

        want_high = definition.active_high == turn_on
        level = GPIOState.HIGH if want_high else GPIOState.LOW
        try:
            self.hardware.write_pin(definition.pin, level)
        except GPIOIOError as e:
            logger.warning(f"GPIO write failed for {function.value}, {definition.pin}: {e}")
            raise GPIOIOError(
                f"GPIO write failed for {function.value}",
                pin=definition.pin,
                function=function.value,
                operation="assert",
            ) from e

        if not definition.timed:
            logger.debug(f"{function.value} held {level.name} on pin {definition.pin}")
            return

        self._sleep(definition.pulse.seconds)
        try:
            self.hardware.write_pin(definition.pin, level.inverted())
        except GPIOIOError as e:
            logger.error(
                f"GPIO write reset failed for {function.value}, {definition.pin}; "
                "the relay may still be asserted"
            )
            raise GPIOIOError(
                f"GPIO release failed for {function.value}",
                pin=definition.pin,
                function=function.value,
                operation="release",
            ) from e
        logger.debug(f"{function.value} pulsed on pin {definition.pin} for {definition.pulse.value}")

    # =========================================================================
    # INPUTS
    # =========================================================================

    def read_switch(self, function: InputFunction) -> bool:
        """
        Read the logical state of an input function.

        Returns:
            True when the sensed level matches the configured active level.
            Optional switches that are not defined read False.
        """
        if not self.connected:
            raise NotConnectedError("No contact with the roof controller has been established")

        definition = self.pin_map.input(function)
        if definition is None:
            if function.is_mandatory:
                raise MissingDefinitionError(
                    f"A usable GPIO pin definition for {function.value.upper()} was not found",
                    function=function.value,
                )
            return False

        level = self.hardware.read_pin(definition.pin)
        return level == _active_state(definition.active_level)

    def summary(self) -> List[str]:
        """Describe every defined pin, one line each."""
        lines = []
        for function, d in self.pin_map.outputs.items():
            lines.append(
                f"OUT slot {d.slot}: {function.value:<8} pin {d.pin:>2}  "
                f"active {d.active_level.value:<4}  pulse {d.pulse.value}"
            )
        for function, d in self.pin_map.inputs.items():
            pull = "down" if d.active_high else "up"
            lines.append(
                f"IN  slot {d.slot}: {function.value:<8} pin {d.pin:>2}  "
                f"active {d.active_level.value:<4}  pull {pull}"
            )
        return lines
