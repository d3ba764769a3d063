"""
ROLLOFF GPIO Hardware Access

Session and pin level access to the Raspberry Pi header, independent of
roof semantics. Two hardware backends are provided:

- pigpio: talks to the pigpiod daemon, so the driver needs no root
  privileges and can run on another host than the Pi
- RPi.GPIO: direct register access on the Pi itself

The roof simulator in ``services.simulators`` implements the same
interface for bench testing without hardware.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional

from rolloff.exceptions import ConfigurationError, GPIOIOError, NotConnectedError

logger = logging.getLogger("rolloff.services.gpio")


class GPIOState(Enum):
    """GPIO pin levels."""
    LOW = 0
    HIGH = 1

    def inverted(self) -> "GPIOState":
        return GPIOState.LOW if self is GPIOState.HIGH else GPIOState.HIGH


class GPIODirection(Enum):
    """GPIO pin direction."""
    INPUT = "in"
    OUTPUT = "out"


class GPIOPull(Enum):
    """GPIO pull resistor configuration."""
    NONE = "none"
    UP = "up"
    DOWN = "down"


class GPIOBackend(Enum):
    """Available GPIO backends."""
    PIGPIO = "pigpio"
    RPIGPIO = "rpigpio"
    SIMULATOR = "simulator"


class GPIOInterface(ABC):
    """Hardware access used by the activation engine.

    Implementations raise ``GPIOIOError`` for failed pin operations and
    ``NotConnectedError`` when no session is open.
    """

    backend: GPIOBackend

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while a hardware session is open."""

    @abstractmethod
    def open_session(self) -> None:
        """Open the hardware session."""

    @abstractmethod
    def close_session(self) -> None:
        """Close the hardware session. Safe to call when closed."""

    @abstractmethod
    def set_pin_mode(self, pin: int, direction: GPIODirection) -> None:
        """Configure a pin as input or output."""

    @abstractmethod
    def set_pull(self, pin: int, pull: GPIOPull) -> None:
        """Select the internal pull resistor of a pin."""

    @abstractmethod
    def write_pin(self, pin: int, level: GPIOState) -> None:
        """Drive an output pin."""

    @abstractmethod
    def read_pin(self, pin: int) -> GPIOState:
        """Sample a pin level."""

    def _require_session(self) -> None:
        if not self.connected:
            raise NotConnectedError("No GPIO session established", backend=self.backend.value)


class PigpioInterface(GPIOInterface):
    """GPIO access through the pigpiod daemon."""

    backend = GPIOBackend.PIGPIO

    def __init__(self, host: Optional[str] = None, port: int = 8888):
        self.host = host
        self.port = port
        self._pi = None
        self._pigpio = None

    @property
    def connected(self) -> bool:
        return self._pi is not None and bool(self._pi.connected)

    def open_session(self) -> None:
        if self.connected:
            return
        try:
            import pigpio
        except ImportError as e:
            raise ConfigurationError(
                "The pigpio package is required for the pigpio backend",
                config_key="gpio.backend",
            ) from e

        if self.host:
            pi = pigpio.pi(self.host, self.port, show_errors=False)
        else:
            pi = pigpio.pi(port=self.port, show_errors=False)
        if not pi.connected:
            raise NotConnectedError(
                f"Unable to contact the pigpiod service at {self.host or 'localhost'}:{self.port}",
                backend=self.backend.value,
            )
        self._pigpio = pigpio
        self._pi = pi
        logger.info(f"pigpiod session opened at {self.host or 'localhost'}:{self.port}")

    def close_session(self) -> None:
        if self._pi is None:
            return
        try:
            self._pi.stop()
        except (OSError, AttributeError) as e:
            logger.warning(f"pigpiod session did not close cleanly: {e}")
        self._pi = None
        logger.info("pigpiod session closed")

    def _call(self, operation: str, pin: int, func, *args):
        self._require_session()
        try:
            result = func(pin, *args)
        except self._pigpio.error as e:
            raise GPIOIOError(f"GPIO {operation} failed: {e}", pin=pin, operation=operation) from e
        if isinstance(result, int) and result < 0:
            raise GPIOIOError(
                f"GPIO {operation} failed: {self._pigpio.error_text(result)}",
                pin=pin,
                operation=operation,
            )
        return result

    def set_pin_mode(self, pin: int, direction: GPIODirection) -> None:
        mode = self._pigpio.OUTPUT if direction == GPIODirection.OUTPUT else self._pigpio.INPUT
        self._call("set_mode", pin, self._pi.set_mode, mode)

    def set_pull(self, pin: int, pull: GPIOPull) -> None:
        pud = {
            GPIOPull.NONE: self._pigpio.PUD_OFF,
            GPIOPull.UP: self._pigpio.PUD_UP,
            GPIOPull.DOWN: self._pigpio.PUD_DOWN,
        }[pull]
        self._call("set_pull_up_down", pin, self._pi.set_pull_up_down, pud)

    def write_pin(self, pin: int, level: GPIOState) -> None:
        self._call("write", pin, self._pi.write, level.value)

    def read_pin(self, pin: int) -> GPIOState:
        return GPIOState(self._call("read", pin, self._pi.read))


class RPiGPIOInterface(GPIOInterface):
    """GPIO access through RPi.GPIO with BCM numbering."""

    backend = GPIOBackend.RPIGPIO

    def __init__(self):
        self._gpio = None
        self._modes: Dict[int, GPIODirection] = {}

    @property
    def connected(self) -> bool:
        return self._gpio is not None

    def open_session(self) -> None:
        if self.connected:
            return
        try:
            import RPi.GPIO as GPIO
        except ImportError as e:
            raise ConfigurationError(
                "The RPi.GPIO package is required for the rpigpio backend",
                config_key="gpio.backend",
            ) from e
        except RuntimeError as e:
            raise NotConnectedError(f"RPi.GPIO cannot access the GPIO header: {e}",
                                    backend=self.backend.value) from e

        GPIO.setmode(GPIO.BCM)
        GPIO.setwarnings(False)
        self._gpio = GPIO
        logger.info("RPi.GPIO session opened")

    def close_session(self) -> None:
        if self._gpio is None:
            return
        pins = list(self._modes)
        if pins:
            try:
                self._gpio.cleanup(pins)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"RPi.GPIO cleanup failed: {e}")
        self._gpio = None
        self._modes.clear()
        logger.info("RPi.GPIO session closed")

    def set_pin_mode(self, pin: int, direction: GPIODirection) -> None:
        self._require_session()
        mode = self._gpio.OUT if direction == GPIODirection.OUTPUT else self._gpio.IN
        try:
            self._gpio.setup(pin, mode)
        except (RuntimeError, ValueError) as e:
            raise GPIOIOError(f"GPIO setup failed: {e}", pin=pin, operation="setup") from e
        self._modes[pin] = direction

    def set_pull(self, pin: int, pull: GPIOPull) -> None:
        self._require_session()
        # RPi.GPIO only applies pull resistors when an input is set up
        if self._modes.get(pin) != GPIODirection.INPUT:
            return
        pud = {
            GPIOPull.NONE: self._gpio.PUD_OFF,
            GPIOPull.UP: self._gpio.PUD_UP,
            GPIOPull.DOWN: self._gpio.PUD_DOWN,
        }[pull]
        try:
            self._gpio.setup(pin, self._gpio.IN, pull_up_down=pud)
        except (RuntimeError, ValueError) as e:
            raise GPIOIOError(f"GPIO pull setup failed: {e}", pin=pin, operation="pull") from e

    def write_pin(self, pin: int, level: GPIOState) -> None:
        self._require_session()
        try:
            self._gpio.output(pin, level.value)
        except (RuntimeError, ValueError) as e:
            raise GPIOIOError(f"GPIO write failed: {e}", pin=pin, operation="write") from e

    def read_pin(self, pin: int) -> GPIOState:
        self._require_session()
        try:
            return GPIOState(self._gpio.input(pin))
        except (RuntimeError, ValueError) as e:
            raise GPIOIOError(f"GPIO read failed: {e}", pin=pin, operation="read") from e


def create_gpio_interface(
    backend: GPIOBackend,
    host: Optional[str] = None,
    port: int = 8888,
) -> GPIOInterface:
    """Create a hardware interface for a backend.

    The simulator backend needs a pin map and lives in
    ``services.simulators.roof_simulator``; use ``SimulatedRoof`` directly.
    """
    if backend == GPIOBackend.PIGPIO:
        return PigpioInterface(host=host, port=port)
    if backend == GPIOBackend.RPIGPIO:
        return RPiGPIOInterface()
    raise ConfigurationError(
        f"Backend {backend.value} cannot be created without a pin map",
        config_key="gpio.backend",
    )
