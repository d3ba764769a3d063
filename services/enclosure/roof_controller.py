"""
ROLLOFF Roll-Off Roof Controller
Roof motion state machine over GPIO relays and limit switches

The external roof controller decides when the motor stops; this driver
only pulses the open, close and abort relays and polls the limit switches
to learn when travel has ended. Interlocks:
- Roof lock switch blocks every motion relay
- Requests toward a limit that is already active are refused
- A motion deadline ends the wait when no limit switch is reached
- Repeated switch read failures force a hardware session reset
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from rolloff.exceptions import (
    AlreadyAtLimitError,
    GPIOIOError,
    LockedError,
    MissingDefinitionError,
    MotionBusyError,
    MotionTimeoutError,
    MountNotParkedError,
    NotConnectedError,
    RolloffError,
)
from rolloff.logging_config import log_exception
from rolloff.types import Direction, InputFunction, OutputFunction

from services.gpio.activation import GPIOActivationEngine
from services.gpio.hardware import GPIOInterface
from services.gpio.pin_map import PinFunctionMap

from .driver_api import CommandKind, CommandResult
from .fault_monitor import DEFAULT_FAULT_THRESHOLD, FaultMonitor
from .park_store import ParkStore
from .roof_status import LightState, RoofStatus, StatusAggregator, SwitchReadings, idle_lights

logger = logging.getLogger("rolloff.services.enclosure")


class MotionState(Enum):
    """Controller motion states."""
    IDLE = "idle"
    OPENING = "opening"
    CLOSING = "closing"
    ABORTING = "aborting"


class MoveResult(Enum):
    """Accepted outcomes of a move request; both mean the roof is busy."""
    ACCEPTED = "accepted"
    ALREADY_MOVING = "already_moving"

    @property
    def busy(self) -> bool:
        return True


@dataclass
class RoofConfig:
    """Roof controller configuration."""
    # Motion
    motion_timeout_sec: int = 15        # Fallback deadline to reach a limit

    # Polling
    initial_poll_ms: int = 500          # First tick after connect
    idle_poll_ms: int = 1000            # Status refresh while stationary
    active_poll_ms: int = 500           # Limit switch polling while moving

    # Faults
    max_consecutive_errors: int = DEFAULT_FAULT_THRESHOLD

    # Refuse to close while the mount reports it is not parked
    mount_lock_policy: bool = False


@dataclass
class MotionRequest:
    """The single move in flight."""
    direction: Direction
    deadline_sec: float
    started: float

    def elapsed(self, now: float) -> float:
        return now - self.started

    def expired(self, now: float) -> bool:
        return self.elapsed(now) >= self.deadline_sec


_MOTION_STATES = {
    Direction.OPEN: MotionState.OPENING,
    Direction.CLOSE: MotionState.CLOSING,
}


class RoofMotionController:
    """
    Roll-off roof driver.

    Implements the host driver interface (connect, disconnect, on_tick,
    on_command). All methods run on the host's single thread; relay pulses
    block for their configured duration.

    Usage:
        roof = RoofMotionController(PigpioInterface(), pin_map)
        roof.connect()

        roof.request_move(Direction.OPEN)
        while roof.is_moving:
            time.sleep(roof.on_tick())
    """

    STATUS_EVENTS = ("opening", "opened", "closing", "closed", "timeout", "aborted", "reset", "status")

    def __init__(self,
                 hardware: GPIOInterface,
                 pin_map: PinFunctionMap,
                 config: Optional[RoofConfig] = None,
                 park_store: Optional[ParkStore] = None,
                 mount_service=None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize roof controller.

        Args:
            hardware: GPIO hardware access collaborator
            pin_map: Function to pin table for this session
            config: Roof configuration
            park_store: Persisted parked indication
            mount_service: Object with ``is_parked() -> bool`` for the
                mount lock policy
            clock: Monotonic clock in seconds
            sleep: Blocking sleep used for relay pulses
        """
        self.config = config or RoofConfig()
        self.engine = GPIOActivationEngine(hardware, pin_map, sleep=sleep)
        self.park_store = park_store or ParkStore()
        self.faults = FaultMonitor(self.config.max_consecutive_errors)
        self.aggregator = StatusAggregator()
        self._mount = mount_service
        self._clock = clock

        self._connected = False
        self._state = MotionState.IDLE
        self._motion: Optional[MotionRequest] = None
        self._timed_out: Optional[Direction] = None
        self._parked: Optional[bool] = None
        self._switches = SwitchReadings()
        self._status = RoofStatus(lights=idle_lights())
        self._lock_switch = False
        self._aux_switch = False
        self.last_error: Optional[RolloffError] = None

        self._callbacks: List[Callable] = []
        self._status_callbacks: Dict[str, List[Callable]] = {event: [] for event in self.STATUS_EVENTS}

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def state(self) -> MotionState:
        return self._state

    @property
    def motion(self) -> Optional[MotionRequest]:
        return self._motion

    @property
    def is_moving(self) -> bool:
        return self._state in (MotionState.OPENING, MotionState.CLOSING)

    @property
    def timed_out(self) -> Optional[Direction]:
        """Direction of the last move that hit its deadline."""
        return self._timed_out

    @property
    def parked(self) -> Optional[bool]:
        """True when parked (closed), False when unparked, None if unknown."""
        return self._parked

    @property
    def switches(self) -> SwitchReadings:
        return self._switches

    @property
    def status(self) -> RoofStatus:
        """Status computed on the last tick."""
        return self._status

    @property
    def lock_switch(self) -> bool:
        return self._lock_switch

    @property
    def aux_switch(self) -> bool:
        return self._aux_switch

    def reload_pin_map(self, pin_map: PinFunctionMap) -> None:
        """Use a new pin map from the next connect on."""
        if self._connected:
            raise RuntimeError("Pin definitions can only be replaced while disconnected")
        self.engine.pin_map = pin_map

    # =========================================================================
    # CONNECTION
    # =========================================================================

    def connect(self) -> bool:
        """
        Open the GPIO session, configure pins and infer the roof position.

        Returns:
            True if connected
        """
        try:
            self.engine.open_session()
        except RolloffError as e:
            logger.error(f"Unable to contact the GPIO service: {e}")
            return False

        for problem in self.engine.pin_map.problems():
            logger.error(problem)
        self.engine.apply_configuration()
        self._release_relay_memory()

        self._connected = True
        self._state = MotionState.IDLE
        self._motion = None
        self._timed_out = None
        self.faults.record_success()
        self._parked = self.park_store.parked

        self._setup_conditions()
        logger.info(f"Roof controller connected. Parked: {self._describe_parked()}")
        return True

    def disconnect(self) -> None:
        """Close the GPIO session and drop any motion in flight."""
        if self._motion is not None:
            logger.warning("Disconnecting while the roof is moving; motion tracking discarded")
        self._motion = None
        self._state = MotionState.IDLE
        self._connected = False
        self.engine.close_session()
        logger.info("Roof controller disconnected")

    def initial_delay(self) -> float:
        """Seconds until the first tick after connect."""
        return self.config.initial_poll_ms / 1000.0

    def _setup_conditions(self) -> None:
        """Establish the roof position on connect."""
        try:
            opened = self.engine.read_switch(InputFunction.OPENED)
            closed = self.engine.read_switch(InputFunction.CLOSED)
            logger.debug("Obtained initial state of opened and closed switches")
        except RolloffError as e:
            logger.debug(f"Could not read opened and closed switch state ({e}), using stored park data")
            if self._parked is True:
                opened, closed = False, True
            elif self._parked is False:
                opened, closed = True, False
            else:
                logger.info("No park data available, roof position unknown")
                opened = closed = False
        self._switches = SwitchReadings(opened=opened, closed=closed)

        # Report apparent inconsistency between park data and switches
        if self._parked is True:
            if opened:
                logger.warning("Roof is recorded as parked but the opened switch is set")
            elif not closed:
                logger.warning("Roof is recorded as parked but the closed switch is not set")
        elif self._parked is False:
            if closed:
                logger.warning("Roof is recorded as unparked but the closed switch is set")
            elif not opened:
                logger.warning("Roof is recorded as unparked but the opened switch is not set")

    # =========================================================================
    # TICK
    # =========================================================================

    def on_tick(self) -> float:
        """
        Poll the switches, advance motion and recompute status.

        Returns:
            Seconds until the next tick: the active poll rate while the roof
            is believed to be moving, otherwise the idle poll rate
        """
        delay_ms = self.config.idle_poll_ms
        if not self._connected:
            return delay_ms / 1000.0

        readings = self._read_switches(track_faults=True)

        if self.is_moving:
            delay_ms = self._evaluate_motion(readings)

        self._publish_status(readings)

        if self.faults.tripped:
            self._hard_reset()

        return delay_ms / 1000.0

    def _read_switches(self, track_faults: bool = False) -> SwitchReadings:
        """
        Sample every switch; a failed read counts as not active.

        Args:
            track_faults: Feed read outcomes to the fault monitor
        """
        values = {}
        failed = False
        for function in (InputFunction.OPENED, InputFunction.CLOSED,
                         InputFunction.LOCKED, InputFunction.AUXSTATE):
            try:
                values[function] = self.engine.read_switch(function)
            except MissingDefinitionError as e:
                logger.debug(str(e))
                values[function] = False
            except (GPIOIOError, NotConnectedError) as e:
                logger.warning(f"Unable to obtain from the controller whether or not the roof is "
                               f"{function.value}: {e}")
                values[function] = False
                failed = True
                if track_faults:
                    self.faults.record_failure(e)

        if track_faults and not failed:
            self.faults.record_success()

        readings = SwitchReadings(
            opened=values[InputFunction.OPENED],
            closed=values[InputFunction.CLOSED],
            locked=values[InputFunction.LOCKED],
            auxiliary=values[InputFunction.AUXSTATE],
        )
        self._switches = readings
        return readings

    def _evaluate_motion(self, readings: SwitchReadings) -> int:
        """Check the move in flight against its limit and deadline."""
        motion = self._motion
        direction = motion.direction
        reached = readings.opened if direction == Direction.OPEN else readings.closed

        if reached:
            self._motion = None
            self._state = MotionState.IDLE
            if direction == Direction.OPEN:
                logger.info("Roof is open")
                self._set_parked(False)
                self._emit("opened")
            else:
                logger.info("Roof is closed")
                self._set_parked(True)
                self._emit("closed")
            return self.config.idle_poll_ms

        now = self._clock()
        if motion.expired(now):
            verb = "opening" if direction == Direction.OPEN else "closing"
            logger.warning(f"Time allowed for {verb} the roof has expired after {motion.elapsed(now):.0f}s")
            self._motion = None
            self._state = MotionState.IDLE
            self._timed_out = direction
            self.last_error = MotionTimeoutError(
                f"Roof did not reach the {direction.limit.value} limit in time",
                direction=direction.value,
                timeout_seconds=motion.deadline_sec,
            )
            self._emit("timeout")
            return self.config.idle_poll_ms

        return self.config.active_poll_ms

    def _publish_status(self, readings: SwitchReadings) -> RoofStatus:
        self._status = self.aggregator.evaluate(
            readings,
            opening=self._state == MotionState.OPENING,
            closing=self._state == MotionState.CLOSING,
            timed_out=self._timed_out,
        )
        self._emit("status")
        return self._status

    def _release_relay_memory(self) -> None:
        # Pin setup leaves the held LOCK and AUXSET relays inactive
        self._lock_switch = False
        self._aux_switch = False

    def _hard_reset(self) -> None:
        """Drop the hardware session and set it up again."""
        error = self.faults.trip_error()
        self.last_error = error
        logger.error(f"{error}. Resetting the GPIO session; check the GPIO service and wiring.")

        self.engine.close_session()
        self._motion = None
        self._state = MotionState.IDLE
        self._release_relay_memory()
        try:
            self.engine.open_session()
            self.engine.apply_configuration()
        except RolloffError as e:
            log_exception(logger, "GPIO setup after reset failed", e)
        self.faults.reset()
        self._emit("reset")

    # =========================================================================
    # ROOF OPERATION
    # =========================================================================

    def request_move(self, direction: Direction) -> MoveResult:
        """
        Start moving the roof.

        Args:
            direction: OPEN or CLOSE

        Returns:
            ACCEPTED when the relay was pulsed, ALREADY_MOVING when the same
            move is in progress

        Raises:
            NotConnectedError, MissingDefinitionError, LockedError,
            MotionBusyError, AlreadyAtLimitError, MountNotParkedError,
            ConfigurationError, GPIOIOError
        """
        if not self._connected:
            raise NotConnectedError("Roof controller not connected")

        # Refuse before touching any pin when the relay is not mapped
        self.engine.require_output(direction.relay)

        try:
            locked = self.engine.read_switch(InputFunction.LOCKED)
        except GPIOIOError as e:
            raise LockedError("Roof lock state could not be read, movement refused",
                              operation=direction.value) from e
        if locked:
            logger.warning("Roof is externally locked, no movement possible")
            raise LockedError("Roof is externally locked", operation=direction.value)

        if self.is_moving:
            current = self._motion.direction
            if current == direction:
                logger.debug(f"Roof is in process of {self._state.value}, wait for completion.")
                return MoveResult.ALREADY_MOVING
            raise MotionBusyError(
                f"Roof is {self._state.value}, abort before reversing",
                direction=direction.value,
                current_motion=current.value,
            )

        opened = self.engine.read_switch(InputFunction.OPENED)
        closed = self.engine.read_switch(InputFunction.CLOSED)
        self._switches = SwitchReadings(opened=opened, closed=closed,
                                        locked=False, auxiliary=self._switches.auxiliary)

        if direction == Direction.OPEN and opened:
            logger.warning("Open requested but roof is already fully opened")
            self._set_parked(False)
            raise AlreadyAtLimitError("Roof is already fully opened", direction=direction.value)
        if direction == Direction.CLOSE and closed:
            logger.warning("Close requested but roof is already fully closed")
            self._set_parked(True)
            raise AlreadyAtLimitError("Roof is already fully closed", direction=direction.value)

        if direction == Direction.CLOSE and self.config.mount_lock_policy:
            self._verify_mount_parked()

        try:
            self.engine.activate(direction.relay, True)
        except RolloffError:
            logger.warning(f"Failed to operate controller to {direction.value} roof")
            raise

        self._state = _MOTION_STATES[direction]
        self._timed_out = None
        self._motion = MotionRequest(
            direction=direction,
            deadline_sec=self.config.motion_timeout_sec,
            started=self._clock(),
        )
        logger.info(f"Roof is {self._state.value}...")
        logger.debug(f"Roof motion timeout setting: {self.config.motion_timeout_sec}")
        self._emit(self._state.value)
        return MoveResult.ACCEPTED

    def park(self) -> MoveResult:
        """Close the roof."""
        result = self.request_move(Direction.CLOSE)
        logger.info("Roof is parking...")
        return result

    def unpark(self) -> MoveResult:
        """Open the roof."""
        result = self.request_move(Direction.OPEN)
        logger.info("Roof is unparking...")
        return result

    def abort(self) -> bool:
        """
        Stop roof motion.

        Best effort: the abort relay is pulsed once, the state returns to
        idle whatever the relay outcome, and nothing is retried.

        Returns:
            True if the abort relay was pulsed
        """
        if not self._connected:
            raise NotConnectedError("Roof controller not connected")

        readings = self._read_switches()
        if readings.locked:
            logger.warning("Roof is externally locked, no action taken on abort request")
            return False

        pulsed = False
        if not self.is_moving:
            if readings.closed:
                logger.info("Roof appears to be closed and stationary, no action taken on abort request")
                return False
            if readings.opened:
                logger.info("Roof appears to be open and stationary, no action taken on abort request")
                return False
            logger.warning("Roof appears to be partially open and stationary, no action taken on abort request")
        else:
            logger.warning(f"Abort roof action requested while the roof was {self._state.value}. "
                           "Direction correction may be needed on the next move request.")
            self._state = MotionState.ABORTING
            try:
                self.engine.activate(OutputFunction.ABORT, True)
                pulsed = True
            except RolloffError as e:
                self.last_error = e
                log_exception(logger, "Abort relay could not be operated", e)
            finally:
                self._motion = None
                self._state = MotionState.IDLE
            self._emit("aborted")

        # Neither limit set: the roof is neither parked nor unparked
        if not readings.opened and not readings.closed:
            self._set_parked(None)
        return pulsed

    def set_lock(self, on: bool) -> None:
        """Assert or release the lock relay. Bypasses the lock interlock."""
        if not self._connected:
            raise NotConnectedError("Roof controller not connected")
        self.engine.activate(OutputFunction.LOCK, on, ignore_lock=True)
        self._lock_switch = on

    def set_aux(self, on: bool) -> None:
        """Assert or release the auxiliary relay."""
        if not self._connected:
            raise NotConnectedError("Roof controller not connected")
        self.engine.activate(OutputFunction.AUXSET, on, ignore_lock=True)
        self._aux_switch = on

    def on_command(self, kind: CommandKind, **args: Any) -> CommandResult:
        """
        Host entry point for operator requests.

        Errors are logged and returned as ALERT results, never raised.

        Args:
            kind: Requested command
            **args: ``on`` (bool) for LOCK and AUX
        """
        try:
            if kind in (CommandKind.OPEN, CommandKind.UNPARK, CommandKind.CLOSE, CommandKind.PARK):
                handler = {
                    CommandKind.OPEN: lambda: self.request_move(Direction.OPEN),
                    CommandKind.UNPARK: self.unpark,
                    CommandKind.CLOSE: lambda: self.request_move(Direction.CLOSE),
                    CommandKind.PARK: self.park,
                }[kind]
                result = handler()
                return CommandResult(kind, LightState.BUSY, f"Roof is {self._state.value}"
                                     if result == MoveResult.ACCEPTED else "Roof is already moving")

            if kind == CommandKind.ABORT:
                pulsed = self.abort()
                return CommandResult(kind, LightState.OK,
                                     "Roof motion aborted" if pulsed else "No action taken")

            if kind in (CommandKind.LOCK, CommandKind.AUX):
                on = bool(args.get("on", True))
                current = self._lock_switch if kind == CommandKind.LOCK else self._aux_switch
                label = "Lock" if kind == CommandKind.LOCK else "Auxiliary"
                if on == current:
                    logger.debug(f"{label} switch is already {'on' if on else 'off'}")
                    return CommandResult(kind, LightState.IDLE, f"{label} switch is already {'on' if on else 'off'}")
                if kind == CommandKind.LOCK:
                    self.set_lock(on)
                else:
                    self.set_aux(on)
                self._publish_status(self._read_switches())
                return CommandResult(kind, LightState.OK, f"{label} switch {'on' if on else 'off'}")

        except RolloffError as e:
            self.last_error = e
            logger.warning(f"{kind.value} request failed: {e}")
            return CommandResult(kind, LightState.ALERT, str(e), error=e)

        raise ValueError(f"Unsupported command: {kind}")

    # =========================================================================
    # SAFETY CHECKS
    # =========================================================================

    def _verify_mount_parked(self) -> None:
        """Refuse to close while the mount is out of its park position."""
        if self._mount is None:
            logger.warning("No mount service - assuming parked")
            return

        try:
            is_parked = bool(self._mount.is_parked())
        except Exception as e:
            logger.error(f"Park verification failed: {e}")
            is_parked = False

        if not is_parked:
            logger.warning("Cannot close roof while the mount is not parked. See the mount lock policy.")
            raise MountNotParkedError("Telescope mount is not parked", {"operation": "close"})

    # =========================================================================
    # PARK DATA
    # =========================================================================

    def _set_parked(self, parked: Optional[bool]) -> None:
        if parked == self._parked:
            return
        self._parked = parked
        self.park_store.save(parked)
        logger.debug(f"Park status: {self._describe_parked()}")

    def _describe_parked(self) -> str:
        if self._parked is None:
            return "unknown"
        return "parked" if self._parked else "unparked"

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable):
        """Register callback(event, status) for every roof event."""
        self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable) -> bool:
        try:
            self._callbacks.remove(callback)
            return True
        except ValueError:
            return False

    def register_status_callback(self, event: str, callback: Callable):
        """
        Register callback(status) for a single event.

        Args:
            event: One of STATUS_EVENTS
            callback: Function to call when the event occurs
        """
        if event not in self._status_callbacks:
            raise ValueError(f"Invalid event: {event}. Valid events: {list(self._status_callbacks.keys())}")
        self._status_callbacks[event].append(callback)

    def unregister_status_callback(self, event: str, callback: Callable) -> bool:
        if event in self._status_callbacks:
            try:
                self._status_callbacks[event].remove(callback)
                return True
            except ValueError:
                return False
        return False

    def _emit(self, event: str) -> None:
        status = self._status
        for callback in self._status_callbacks.get(event, []):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Status callback error for '{event}': {e}")
        for callback in self._callbacks:
            try:
                callback(event, status)
            except Exception as e:
                logger.error(f"Callback error: {e}")
