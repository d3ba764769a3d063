"""
ROLLOFF GPIO Services

Pin function mapping, hardware backends and the activation engine that
drives relays and reads switches for the roof controller.
"""

from .activation import GPIOActivationEngine
from .hardware import (
    GPIOBackend,
    GPIODirection,
    GPIOInterface,
    GPIOPull,
    GPIOState,
    PigpioInterface,
    RPiGPIOInterface,
    create_gpio_interface,
)
from .pin_map import InputDefinition, OutputDefinition, PinFunctionMap

__all__ = [
    "GPIOActivationEngine",
    "GPIOBackend",
    "GPIODirection",
    "GPIOInterface",
    "GPIOPull",
    "GPIOState",
    "PigpioInterface",
    "RPiGPIOInterface",
    "create_gpio_interface",
    "InputDefinition",
    "OutputDefinition",
    "PinFunctionMap",
]
