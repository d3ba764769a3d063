"""
ROLLOFF Driver Host

Runs a roof driver the way an observatory device framework would: one
asyncio task calls ``on_tick()`` and sleeps for the interval the driver
returns, operator commands are routed to ``on_command()``, and status
events are published to listeners.

The host also owns the configuration file. Pin slot and motion timeout
edits are validated, written back with ``save_config()`` and applied on
the next connect.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from rolloff.config import InputSlotConfig, MotionConfig, OutputSlotConfig, RolloffConfig, save_config
from rolloff.exceptions import ConfigurationError
from rolloff.types import ActiveLevel, InputFunction, OutputFunction, PulseDuration

from services.gpio.hardware import GPIOBackend, GPIOInterface, create_gpio_interface
from services.gpio.pin_map import PinFunctionMap
from services.simulators.roof_simulator import RoofPosition, SimulatedRoof

from .driver_api import CommandKind, CommandResult
from .park_store import ParkStore
from .roof_controller import RoofConfig, RoofMotionController
from .roof_status import RoofStatus

logger = logging.getLogger("rolloff.services.enclosure")


def roof_config_from(config: RolloffConfig) -> RoofConfig:
    """Controller settings from the application configuration."""
    return RoofConfig(
        motion_timeout_sec=config.motion.timeout_sec,
        initial_poll_ms=config.motion.initial_poll_ms,
        idle_poll_ms=config.motion.idle_poll_ms,
        active_poll_ms=config.motion.active_poll_ms,
        max_consecutive_errors=config.faults.max_consecutive_errors,
        mount_lock_policy=config.motion.mount_lock_policy,
    )


def create_hardware(config: RolloffConfig, pin_map: PinFunctionMap,
                    clock: Callable[[], float] = time.monotonic) -> GPIOInterface:
    """Hardware interface for the configured backend."""
    backend = GPIOBackend(config.gpio.backend)
    if backend == GPIOBackend.SIMULATOR:
        return SimulatedRoof(
            pin_map,
            travel_time_sec=config.simulator.travel_time_sec,
            start=RoofPosition(config.simulator.start_position),
            clock=clock,
        )
    return create_gpio_interface(backend, host=config.gpio.host, port=config.gpio.port)


class RoofDriverHost:
    """
    Asyncio host for a roof driver.

    Usage:
        host = RoofDriverHost(load_config())
        await host.start()
        host.command(CommandKind.OPEN)
        await host.wait_until_settled()
        await host.stop()
    """

    def __init__(
        self,
        config: RolloffConfig,
        config_path: Optional[str] = None,
        hardware: Optional[GPIOInterface] = None,
        mount_service=None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the host.

        Args:
            config: Application configuration
            config_path: File that configuration edits are saved to
            hardware: GPIO interface; built from the config when None
            mount_service: Mount parked check for the mount lock policy
            clock: Monotonic clock passed to the controller
            sleep: Blocking sleep used for relay pulses
        """
        self.config = config
        self.config_path = config_path
        pin_map = config.to_pin_map()
        self.hardware = hardware or create_hardware(config, pin_map, clock=clock)
        self.controller = RoofMotionController(
            self.hardware,
            pin_map,
            config=roof_config_from(config),
            park_store=ParkStore(config.park_file),
            mount_service=mount_service,
            clock=clock,
            sleep=sleep,
        )
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._ticks = 0
        self._settled: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def status(self) -> RoofStatus:
        return self.controller.status

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> bool:
        """Connect the driver and start the tick loop."""
        if self._running:
            return True

        self._apply_pending_config()
        if not self.controller.connect():
            logger.error("Roof driver failed to connect")
            return False

        self._running = True
        self._settled = asyncio.Event()
        self._task = asyncio.create_task(self._tick_loop())
        logger.info("Roof driver host started")
        return True

    async def stop(self) -> None:
        """Stop the tick loop and disconnect the driver."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self.controller.connected:
            self.controller.disconnect()
        logger.info("Roof driver host stopped")

    async def restart(self) -> bool:
        """Disconnect and connect again, applying saved configuration edits."""
        await self.stop()
        return await self.start()

    def _apply_pending_config(self) -> None:
        pin_map = self.config.to_pin_map()
        self.controller.reload_pin_map(pin_map)
        if isinstance(self.hardware, SimulatedRoof):
            self.hardware.rewire(pin_map)
        roof_config = roof_config_from(self.config)
        self.controller.config = roof_config
        self.controller.faults.threshold = roof_config.max_consecutive_errors

    async def _tick_loop(self) -> None:
        await asyncio.sleep(self.controller.initial_delay())
        while self._running:
            try:
                delay = self.controller.on_tick()
            except Exception as e:
                logger.exception(f"Roof tick failed: {e}")
                delay = self.config.motion.idle_poll_ms / 1000.0
            self._ticks += 1
            if not self.controller.is_moving:
                self._settled.set()
            await asyncio.sleep(delay)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def command(self, kind: CommandKind, **args: Any) -> CommandResult:
        """Route an operator command to the driver."""
        result = self.controller.on_command(kind, **args)
        if self._settled is not None and self.controller.is_moving:
            self._settled.clear()
        log = logger.info if result.ok else logger.warning
        log(f"Command {kind.value}: {result.message}")
        return result

    async def wait_until_settled(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the roof is no longer believed to be moving.

        Returns:
            False if the wait timed out
        """
        if self._settled is None or not self.controller.is_moving:
            return True
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def add_listener(self, callback: Callable) -> None:
        """Register callback(event, status) for every roof event."""
        self.controller.register_callback(callback)

    def remove_listener(self, callback: Callable) -> bool:
        return self.controller.unregister_callback(callback)

    # =========================================================================
    # CONFIGURATION EDITS
    # =========================================================================

    def update_output_slot(
        self,
        slot: int,
        function: Optional[OutputFunction] = None,
        pin: Optional[int] = None,
        active_level: Optional[ActiveLevel] = None,
        pulse: Optional[PulseDuration] = None,
    ) -> OutputSlotConfig:
        """
        Edit one output slot (1-based) and persist the configuration.

        Raises:
            ConfigurationError: Slot out of range or the edit is invalid
        """
        outputs = list(self.config.gpio.outputs)
        index = self._slot_index(slot, len(outputs), "output")
        changes = {k: v for k, v in {
            "function": function, "pin": pin, "active_level": active_level, "pulse": pulse,
        }.items() if v is not None}
        outputs[index] = self._validated(OutputSlotConfig, outputs[index], changes)
        self._commit_gpio(outputs=outputs)
        logger.info(f"Output slot {slot} set to {outputs[index].function.value} on pin {outputs[index].pin}")
        return outputs[index]

    def update_input_slot(
        self,
        slot: int,
        function: Optional[InputFunction] = None,
        pin: Optional[int] = None,
        active_level: Optional[ActiveLevel] = None,
    ) -> InputSlotConfig:
        """Edit one input slot (1-based) and persist the configuration."""
        inputs = list(self.config.gpio.inputs)
        index = self._slot_index(slot, len(inputs), "input")
        changes = {k: v for k, v in {
            "function": function, "pin": pin, "active_level": active_level,
        }.items() if v is not None}
        inputs[index] = self._validated(InputSlotConfig, inputs[index], changes)
        self._commit_gpio(inputs=inputs)
        logger.info(f"Input slot {slot} set to {inputs[index].function.value} on pin {inputs[index].pin}")
        return inputs[index]

    def set_motion_timeout(self, seconds: int) -> None:
        """Change the motion timeout (1-300 s) and persist the configuration."""
        motion = self._validated(MotionConfig, self.config.motion, {"timeout_sec": seconds})
        self.config = self.config.model_copy(update={"motion": motion})
        self._save()
        logger.info(f"Roof motion timeout set to {seconds}s")

    @staticmethod
    def _slot_index(slot: int, count: int, kind: str) -> int:
        if not 1 <= slot <= count:
            raise ConfigurationError(f"No {kind} slot {slot}, slots are 1-{count}",
                                     config_key=f"gpio.{kind}s")
        return slot - 1

    @staticmethod
    def _validated(model, current, changes):
        try:
            return model(**{**current.model_dump(), **changes})
        except ValueError as e:
            raise ConfigurationError(f"Invalid setting: {e}") from e

    def _commit_gpio(self, **changes) -> None:
        try:
            gpio = type(self.config.gpio)(**{**self.config.gpio.model_dump(), **changes})
            candidate = self.config.model_copy(update={"gpio": gpio})
            candidate.to_pin_map()
        except ConfigurationError:
            raise
        except ValueError as e:
            raise ConfigurationError(f"Invalid GPIO definition: {e}") from e
        self.config = candidate
        self._save()

    def _save(self) -> None:
        if self.config_path:
            save_config(self.config, self.config_path)
            logger.debug(f"Configuration saved to {self.config_path}")
