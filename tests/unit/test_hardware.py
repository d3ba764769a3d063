"""
Unit tests for ROLLOFF GPIO hardware backends.

The pigpio and RPi.GPIO modules are replaced in sys.modules by the mocks
in tests/mocks/mock_gpio.py, so these tests run off the Pi.
"""

import sys

import pytest

from rolloff.exceptions import ConfigurationError, GPIOIOError, NotConnectedError
from services.gpio.hardware import (
    GPIOBackend,
    GPIODirection,
    GPIOPull,
    GPIOState,
    PigpioInterface,
    RPiGPIOInterface,
    create_gpio_interface,
)
from tests.mocks.mock_gpio import MockPigpioModule, MockRPiGPIO


@pytest.fixture
def pigpio(monkeypatch):
    module = MockPigpioModule()
    monkeypatch.setitem(sys.modules, "pigpio", module)
    return module


@pytest.fixture
def rpi_gpio(monkeypatch):
    gpio = MockRPiGPIO()
    monkeypatch.setitem(sys.modules, "RPi", gpio.package())
    monkeypatch.setitem(sys.modules, "RPi.GPIO", gpio)
    return gpio


class TestGPIOState:
    def test_inverted(self):
        assert GPIOState.HIGH.inverted() == GPIOState.LOW
        assert GPIOState.LOW.inverted() == GPIOState.HIGH


class TestPigpioInterface:
    """Tests for the pigpiod daemon backend."""

    def test_open_session_local(self, pigpio):
        hw = PigpioInterface()
        hw.open_session()
        assert hw.connected
        assert pigpio.connections[0].host == "localhost"

    def test_open_session_remote(self, pigpio):
        hw = PigpioInterface(host="roofpi.local", port=8889)
        hw.open_session()
        pi = pigpio.connections[0]
        assert (pi.host, pi.port) == ("roofpi.local", 8889)

    def test_open_session_idempotent(self, pigpio):
        hw = PigpioInterface()
        hw.open_session()
        hw.open_session()
        assert len(pigpio.connections) == 1

    def test_daemon_not_running(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "pigpio", MockPigpioModule(daemon_running=False))
        hw = PigpioInterface()
        with pytest.raises(NotConnectedError):
            hw.open_session()
        assert not hw.connected

    def test_package_missing(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "pigpio", None)
        with pytest.raises(ConfigurationError):
            PigpioInterface().open_session()

    def test_pin_operations(self, pigpio):
        hw = PigpioInterface()
        hw.open_session()
        pi = pigpio.connections[0]

        hw.set_pin_mode(5, GPIODirection.OUTPUT)
        hw.set_pull(19, GPIOPull.DOWN)
        hw.write_pin(5, GPIOState.HIGH)
        assert pi.modes[5] == MockPigpioModule.OUTPUT
        assert pi.pulls[19] == MockPigpioModule.PUD_DOWN
        assert pi.levels[5] == 1

        pi.levels[19] = 1
        assert hw.read_pin(19) == GPIOState.HIGH

    def test_negative_status_raises(self, pigpio):
        hw = PigpioInterface()
        hw.open_session()
        pigpio.connections[0].bad_pins.add(5)
        with pytest.raises(GPIOIOError) as exc_info:
            hw.write_pin(5, GPIOState.HIGH)
        assert "GPIO not 0-53" in str(exc_info.value)
        assert exc_info.value.pin == 5

    def test_operations_require_session(self, pigpio):
        with pytest.raises(NotConnectedError):
            PigpioInterface().read_pin(19)

    def test_close_session(self, pigpio):
        hw = PigpioInterface()
        hw.open_session()
        pi = pigpio.connections[0]
        hw.close_session()
        assert pi.stopped
        assert not hw.connected
        # Closing again is harmless
        hw.close_session()


class TestRPiGPIOInterface:
    """Tests for the RPi.GPIO backend."""

    def test_open_session_uses_bcm(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        assert hw.connected
        assert rpi_gpio.mode == MockRPiGPIO.BCM
        assert rpi_gpio.warnings is False

    def test_package_missing(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "RPi", None)
        monkeypatch.setitem(sys.modules, "RPi.GPIO", None)
        with pytest.raises(ConfigurationError):
            RPiGPIOInterface().open_session()

    def test_input_pull_applied_on_setup(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        hw.set_pin_mode(26, GPIODirection.INPUT)
        hw.set_pull(26, GPIOPull.UP)
        assert rpi_gpio.setups[-1] == (26, MockRPiGPIO.IN, MockRPiGPIO.PUD_UP)

    def test_output_pull_ignored(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        hw.set_pin_mode(5, GPIODirection.OUTPUT)
        hw.set_pull(5, GPIOPull.NONE)
        assert rpi_gpio.setups == [(5, MockRPiGPIO.OUT, MockRPiGPIO.PUD_OFF)]

    def test_write_and_read(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        hw.write_pin(6, GPIOState.HIGH)
        assert rpi_gpio.states[6] == 1
        rpi_gpio.simulate_input(19, MockRPiGPIO.HIGH)
        assert hw.read_pin(19) == GPIOState.HIGH

    def test_errors_wrapped(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        rpi_gpio.bad_pins.add(13)
        with pytest.raises(GPIOIOError):
            hw.set_pin_mode(13, GPIODirection.OUTPUT)
        with pytest.raises(GPIOIOError):
            hw.read_pin(13)

    def test_close_cleans_configured_pins(self, rpi_gpio):
        hw = RPiGPIOInterface()
        hw.open_session()
        hw.set_pin_mode(5, GPIODirection.OUTPUT)
        hw.set_pin_mode(19, GPIODirection.INPUT)
        hw.close_session()
        assert sorted(rpi_gpio.cleaned) == [5, 19]
        assert not hw.connected


class TestCreateGPIOInterface:
    def test_pigpio(self):
        hw = create_gpio_interface(GPIOBackend.PIGPIO, host="roofpi", port=9000)
        assert isinstance(hw, PigpioInterface)
        assert hw.host == "roofpi"
        assert hw.port == 9000

    def test_rpigpio(self):
        assert isinstance(create_gpio_interface(GPIOBackend.RPIGPIO), RPiGPIOInterface)

    def test_simulator_needs_pin_map(self):
        with pytest.raises(ConfigurationError):
            create_gpio_interface(GPIOBackend.SIMULATOR)
