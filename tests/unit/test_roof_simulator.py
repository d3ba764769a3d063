"""
Unit tests for the ROLLOFF roof simulator.
"""

import pytest

from rolloff.exceptions import GPIOIOError, NotConnectedError
from rolloff.types import InputFunction, OutputFunction
from services.gpio.hardware import GPIOState
from services.gpio.pin_map import PinFunctionMap
from services.simulators import FaultConfig, RoofPosition, SimulatedRoof, SimulatorStats, should_inject_fault
from tests.conftest import (
    ABORT_PIN,
    AUX_PIN,
    AUXSTATE_PIN,
    CLOSE_PIN,
    CLOSED_PIN,
    LOCK_PIN,
    LOCKED_PIN,
    OPEN_PIN,
    OPENED_PIN,
    standard_inputs,
    standard_outputs,
)


@pytest.fixture
def roof(pin_map, clock):
    sim = SimulatedRoof(pin_map, travel_time_sec=10.0, clock=clock)
    sim.open_session()
    return sim


def pulse(sim, pin, active=GPIOState.HIGH):
    sim.write_pin(pin, active)
    sim.write_pin(pin, active.inverted())


class TestSession:
    def test_requires_session(self, pin_map, clock):
        sim = SimulatedRoof(pin_map, clock=clock)
        with pytest.raises(NotConnectedError):
            sim.read_pin(OPENED_PIN)

    def test_offline(self, pin_map, clock):
        sim = SimulatedRoof(pin_map, clock=clock)
        sim.offline = True
        with pytest.raises(NotConnectedError):
            sim.open_session()

    def test_stats(self, roof):
        roof.read_pin(OPENED_PIN)
        roof.write_pin(OPEN_PIN, GPIOState.LOW)
        data = roof.stats.to_dict()
        assert data["reads"] == 1
        assert data["writes"] == 1
        assert data["started_at"] is not None


class TestRoofModel:
    """Tests for the simulated roof travel."""

    @pytest.mark.parametrize("start,opened,closed", [
        (RoofPosition.CLOSED, GPIOState.LOW, GPIOState.HIGH),
        (RoofPosition.OPEN, GPIOState.HIGH, GPIOState.LOW),
        (RoofPosition.PARTIAL, GPIOState.LOW, GPIOState.LOW),
    ])
    def test_start_positions(self, pin_map, clock, start, opened, closed):
        sim = SimulatedRoof(pin_map, start=start, clock=clock)
        sim.open_session()
        assert sim.read_pin(OPENED_PIN) == opened
        assert sim.read_pin(CLOSED_PIN) == closed

    def test_open_travel(self, roof, clock):
        pulse(roof, OPEN_PIN)
        assert roof.motion == 1

        clock.advance(5)
        assert roof.read_pin(CLOSED_PIN) == GPIOState.LOW
        assert roof.describe() == "50% open"

        clock.advance(5)
        assert roof.read_pin(OPENED_PIN) == GPIOState.HIGH
        assert roof.motion == 0

    def test_travel_stops_at_limit(self, roof, clock):
        pulse(roof, OPEN_PIN)
        clock.advance(60)
        roof.read_pin(OPENED_PIN)
        assert roof.position == 1.0

    def test_close_from_open(self, pin_map, clock):
        sim = SimulatedRoof(pin_map, start=RoofPosition.OPEN, clock=clock)
        sim.open_session()
        pulse(sim, CLOSE_PIN)
        clock.advance(10)
        assert sim.read_pin(CLOSED_PIN) == GPIOState.HIGH
        assert sim.describe() == "closed"

    def test_open_at_open_limit_ignored(self, pin_map, clock):
        sim = SimulatedRoof(pin_map, start=RoofPosition.OPEN, clock=clock)
        sim.open_session()
        pulse(sim, OPEN_PIN)
        assert sim.motion == 0

    def test_abort_stops_travel(self, roof, clock):
        pulse(roof, OPEN_PIN)
        clock.advance(3)
        pulse(roof, ABORT_PIN)
        clock.advance(10)
        roof.read_pin(OPENED_PIN)
        assert roof.motion == 0
        assert roof.position == pytest.approx(0.3)

    def test_held_relay_does_not_restart(self, roof, clock):
        """Only the asserted edge starts travel."""
        roof.write_pin(OPEN_PIN, GPIOState.HIGH)
        pulse(roof, ABORT_PIN)
        roof.write_pin(OPEN_PIN, GPIOState.HIGH)
        assert roof.motion == 0

    def test_stalled_motor(self, roof, clock):
        roof.stalled = True
        pulse(roof, OPEN_PIN)
        clock.advance(30)
        assert roof.read_pin(CLOSED_PIN) == GPIOState.HIGH


class TestLoopback:
    """LOCK and AUXSET relays drive the LOCKED and AUXSTATE switches."""

    def test_lock_relay(self, roof):
        assert roof.read_pin(LOCKED_PIN) == GPIOState.LOW
        roof.write_pin(LOCK_PIN, GPIOState.HIGH)
        assert roof.switch_state(InputFunction.LOCKED) is True
        assert roof.read_pin(LOCKED_PIN) == GPIOState.HIGH

    def test_external_lock(self, roof):
        roof.external_lock = True
        assert roof.read_pin(LOCKED_PIN) == GPIOState.HIGH

    def test_aux_active_low(self, roof):
        """AUXSET is active low; AUXSTATE is active low."""
        roof.write_pin(AUX_PIN, GPIOState.LOW)
        assert roof.relay_asserted(OutputFunction.AUXSET)
        assert roof.read_pin(AUXSTATE_PIN) == GPIOState.LOW
        roof.write_pin(AUX_PIN, GPIOState.HIGH)
        assert roof.read_pin(AUXSTATE_PIN) == GPIOState.HIGH


class TestFaultInjection:
    def test_read_fault(self, pin_map, clock):
        sim = SimulatedRoof(pin_map, clock=clock,
                            fault_config=FaultConfig(enabled=True, probability=1.0, pins={OPENED_PIN}))
        sim.open_session()
        with pytest.raises(GPIOIOError):
            sim.read_pin(OPENED_PIN)
        assert sim.read_pin(CLOSED_PIN) == GPIOState.HIGH
        assert sim.stats.faults_injected == 1

    def test_disabled(self):
        assert not should_inject_fault(FaultConfig(probability=1.0), OPENED_PIN)

    def test_all_pins(self):
        assert should_inject_fault(FaultConfig(enabled=True, probability=1.0), 7)

    def test_stats_reset(self):
        stats = SimulatorStats(reads=3, writes=2, faults_injected=1)
        stats.reset()
        assert stats.to_dict() == {"started_at": None, "reads": 0, "writes": 0, "faults_injected": 0}


class TestRewire:
    def test_keeps_position(self, roof, clock):
        pulse(roof, OPEN_PIN)
        clock.advance(4)
        roof.rewire(PinFunctionMap.build(standard_outputs(abort=None), standard_inputs()))
        roof.read_pin(OPENED_PIN)
        assert roof.position == pytest.approx(0.4)
        # ABORT is no longer mapped; its pin is a plain output
        pulse(roof, ABORT_PIN)
        assert roof.motion == 1
