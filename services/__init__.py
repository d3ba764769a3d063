"""
ROLLOFF Services Package

Service modules for the roll-off roof driver, organized by function.

Core Services
=============

GPIO (services.gpio)
--------------------
- PinFunctionMap: Relay and switch functions assigned to BCM pins
- PigpioInterface / RPiGPIOInterface: Hardware backends
- GPIOActivationEngine: Relay pulses, polarity and switch reads

Enclosure (services.enclosure)
------------------------------
- RoofMotionController: Roof state machine with lock, limit and deadline
  interlocks
- StatusAggregator: Status lights from the switch readings
- FaultMonitor: Hardware session reset after repeated read failures
- ParkStore: Parked indication persisted between runs
- RoofDriverHost: Asyncio tick loop, command routing and config edits

Simulation
----------
- services.simulators: Simulated roof behind the GPIO interface
"""

__version__ = "0.1.0"
