"""
ROLLOFF Roof Status Aggregation

Derives the five roof status lights and the aggregate grade shown to the
operator from the latest switch readings and the controller's motion
flags. Status is recomputed every tick and never stored.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from rolloff.types import Direction

logger = logging.getLogger("rolloff.services.enclosure")


class LightState(Enum):
    """Grade of a status light."""
    IDLE = "idle"
    OK = "ok"
    BUSY = "busy"
    ALERT = "alert"


class RoofLight(Enum):
    """Status lights published for the roof."""
    OPENED = "opened"
    CLOSED = "closed"
    MOVING = "moving"
    LOCKED = "locked"
    AUXILIARY = "auxiliary"


@dataclass
class SwitchReadings:
    """Logical switch states sampled on one tick."""
    opened: bool = False
    closed: bool = False
    locked: bool = False
    auxiliary: bool = False


@dataclass
class RoofStatus:
    """Composite roof status for one tick."""
    lights: Dict[RoofLight, LightState]
    state: LightState = LightState.IDLE
    switches: SwitchReadings = field(default_factory=SwitchReadings)
    inconsistent: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def light(self, which: RoofLight) -> LightState:
        return self.lights[which]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "lights": {light.value: grade.value for light, grade in self.lights.items()},
            "switches": {
                "opened": self.switches.opened,
                "closed": self.switches.closed,
                "locked": self.switches.locked,
                "auxiliary": self.switches.auxiliary,
            },
            "inconsistent": self.inconsistent,
            "timestamp": self.timestamp.isoformat(),
        }


def idle_lights() -> Dict[RoofLight, LightState]:
    return {light: LightState.IDLE for light in RoofLight}


class StatusAggregator:
    """
    Computes roof status lights.

    Priority order:
    1. Locked: the lock light is red; a closed or opened roof is still OK,
       motion while locked is an alert
    2. Unlocked at one limit: that light is OK
    3. Unlocked and moving: direction light and moving light are busy
    4. Stationary between limits: the light of the last timed out direction
       is an alert

    Both limit switches active at once is reported as an inconsistent
    status rather than picking one of them.
    """

    STATIONARY_WARNINGS = 10

    def __init__(self):
        self._stationary_reports = 0

    @property
    def stationary_reports(self) -> int:
        return self._stationary_reports

    def evaluate(
        self,
        switches: SwitchReadings,
        opening: bool = False,
        closing: bool = False,
        timed_out: Optional[Direction] = None,
    ) -> RoofStatus:
        """
        Grade the status lights.

        Args:
            switches: Current switch readings
            opening: Controller believes the roof is opening
            closing: Controller believes the roof is closing
            timed_out: Direction of the last move that hit its deadline

        Returns:
            Freshly computed RoofStatus
        """
        opened, closed = switches.opened, switches.closed
        moving = opening or closing

        self._report_stationary(opened or closed or moving)

        inconsistent = opened and closed
        if inconsistent:
            logger.warning("Roof showing it is both opened and closed according to the controller")

        lights = idle_lights()
        state = LightState.IDLE

        if switches.auxiliary:
            lights[RoofLight.AUXILIARY] = LightState.OK

        if switches.locked:
            lights[RoofLight.LOCKED] = LightState.ALERT
            if closed:
                lights[RoofLight.CLOSED] = LightState.OK
                state = LightState.OK
            # A lock is not expected unless closed, but the controller may use it for other reasons
            elif opened:
                lights[RoofLight.OPENED] = LightState.OK
                state = LightState.OK
            elif moving:
                lights[RoofLight.MOVING] = LightState.ALERT
                state = LightState.ALERT
        elif inconsistent:
            lights[RoofLight.OPENED] = LightState.ALERT
            lights[RoofLight.CLOSED] = LightState.ALERT
            state = LightState.ALERT
        elif opened:
            lights[RoofLight.OPENED] = LightState.OK
            state = LightState.OK
        elif closed:
            lights[RoofLight.CLOSED] = LightState.OK
            state = LightState.OK
        elif moving:
            direction_light = RoofLight.OPENED if opening else RoofLight.CLOSED
            lights[direction_light] = LightState.BUSY
            lights[RoofLight.MOVING] = LightState.BUSY
            state = LightState.BUSY
        else:
            if timed_out == Direction.OPEN:
                lights[RoofLight.OPENED] = LightState.ALERT
            elif timed_out == Direction.CLOSE:
                lights[RoofLight.CLOSED] = LightState.ALERT
            state = LightState.ALERT

        return RoofStatus(
            lights=lights,
            state=state,
            switches=switches,
            inconsistent=inconsistent,
        )

    def _report_stationary(self, settled: bool) -> None:
        if settled:
            self._stationary_reports = 0
            return

        if self._stationary_reports < self.STATIONARY_WARNINGS:
            self._stationary_reports += 1
            logger.warning("Roof stationary, neither opened or closed, adjust to match PARK button")
        elif self._stationary_reports == self.STATIONARY_WARNINGS:
            self._stationary_reports += 1
            logger.error("Roof stationary, not opened or closed. Will stop reporting this error.")
