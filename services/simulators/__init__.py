"""
ROLLOFF Simulators Package

Hardware-in-loop simulators for testing without physical hardware. The roof
simulator implements the same GPIO interface as the pigpio and RPi.GPIO
backends, so the activation engine and roof controller run unchanged.

All simulators support:
- Configurable timing
- Fault injection for error testing
- Statistics on pin traffic
"""

from .base import FaultConfig, SimulatorStats, should_inject_fault
from .roof_simulator import RoofPosition, SimulatedRoof

__all__ = [
    "FaultConfig",
    "SimulatorStats",
    "should_inject_fault",
    "RoofPosition",
    "SimulatedRoof",
]
