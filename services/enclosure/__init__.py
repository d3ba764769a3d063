"""
ROLLOFF Enclosure Services

Roll-off roof state machine, status lights, fault monitoring, park data
and the asyncio driver host.
"""

from .driver_api import CommandKind, CommandResult, RoofDriver
from .driver_host import RoofDriverHost, create_hardware, roof_config_from
from .fault_monitor import FaultMonitor
from .park_store import ParkStore
from .roof_controller import MotionRequest, MotionState, MoveResult, RoofConfig, RoofMotionController
from .roof_status import LightState, RoofLight, RoofStatus, StatusAggregator, SwitchReadings

__all__ = [
    "CommandKind",
    "CommandResult",
    "RoofDriver",
    "RoofDriverHost",
    "create_hardware",
    "roof_config_from",
    "FaultMonitor",
    "ParkStore",
    "MotionRequest",
    "MotionState",
    "MoveResult",
    "RoofConfig",
    "RoofMotionController",
    "LightState",
    "RoofLight",
    "RoofStatus",
    "StatusAggregator",
    "SwitchReadings",
]
