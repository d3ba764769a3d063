"""
Pytest Fixtures for ROLLOFF Testing.

Shared fixtures for unit and integration tests: a standard pin map, the
recording GPIO double, and a fake clock/sleep pair so motion deadlines and
relay pulses are tested without waiting.

Standard wiring (BCM):
    Outputs: OPEN 5, CLOSE 6, ABORT 13, LOCK 16, AUXSET 20
    Inputs:  OPENED 19, CLOSED 26, LOCKED 21, AUXSTATE 12
"""

from typing import List

import pytest

from rolloff.types import ActiveLevel, InputFunction, OutputFunction, PulseDuration
from services.gpio.hardware import GPIOState
from services.gpio.pin_map import InputDefinition, OutputDefinition, PinFunctionMap
from tests.mocks.mock_gpio import MockGPIOInterface

OPEN_PIN, CLOSE_PIN, ABORT_PIN, LOCK_PIN, AUX_PIN = 5, 6, 13, 16, 20
OPENED_PIN, CLOSED_PIN, LOCKED_PIN, AUXSTATE_PIN = 19, 26, 21, 12


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Records pulse sleeps and advances a FakeClock when given one."""

    def __init__(self, clock: FakeClock = None):
        self.calls: List[float] = []
        self._clock = clock

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


def standard_outputs(**overrides) -> List[OutputDefinition]:
    """Output definitions for the standard wiring; override by function name."""
    outputs = {
        "open": OutputDefinition(OutputFunction.OPEN, OPEN_PIN, ActiveLevel.HIGH, PulseDuration.MS_500, 1),
        "close": OutputDefinition(OutputFunction.CLOSE, CLOSE_PIN, ActiveLevel.HIGH, PulseDuration.MS_500, 2),
        "abort": OutputDefinition(OutputFunction.ABORT, ABORT_PIN, ActiveLevel.HIGH, PulseDuration.MS_250, 3),
        "lock": OutputDefinition(OutputFunction.LOCK, LOCK_PIN, ActiveLevel.HIGH, PulseDuration.NO_LIMIT, 4),
        "auxset": OutputDefinition(OutputFunction.AUXSET, AUX_PIN, ActiveLevel.LOW, PulseDuration.NO_LIMIT, 5),
    }
    outputs.update(overrides)
    return [d for d in outputs.values() if d is not None]


def standard_inputs(**overrides) -> List[InputDefinition]:
    inputs = {
        "opened": InputDefinition(InputFunction.OPENED, OPENED_PIN, ActiveLevel.HIGH, 1),
        "closed": InputDefinition(InputFunction.CLOSED, CLOSED_PIN, ActiveLevel.HIGH, 2),
        "locked": InputDefinition(InputFunction.LOCKED, LOCKED_PIN, ActiveLevel.HIGH, 3),
        "auxstate": InputDefinition(InputFunction.AUXSTATE, AUXSTATE_PIN, ActiveLevel.LOW, 4),
    }
    inputs.update(overrides)
    return [d for d in inputs.values() if d is not None]


def set_switches(hw: MockGPIOInterface, opened: bool = False, closed: bool = False,
                 locked: bool = False, auxiliary: bool = False) -> None:
    """Drive the standard switch inputs to logical states."""
    hw.set_input(OPENED_PIN, GPIOState.HIGH if opened else GPIOState.LOW)
    hw.set_input(CLOSED_PIN, GPIOState.HIGH if closed else GPIOState.LOW)
    hw.set_input(LOCKED_PIN, GPIOState.HIGH if locked else GPIOState.LOW)
    # AUXSTATE is active low
    hw.set_input(AUXSTATE_PIN, GPIOState.LOW if auxiliary else GPIOState.HIGH)


@pytest.fixture
def pin_map() -> PinFunctionMap:
    """Pin map for the standard wiring."""
    return PinFunctionMap.build(standard_outputs(), standard_inputs())


@pytest.fixture
def mock_hw() -> MockGPIOInterface:
    """Recording GPIO double with all switches inactive, session not open."""
    hw = MockGPIOInterface()
    set_switches(hw)
    return hw


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock) -> SleepRecorder:
    return SleepRecorder(clock)
