"""
ROLLOFF Simulator Support

Fault injection and statistics shared by the simulators.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Set


@dataclass
class FaultConfig:
    """Configuration for fault injection on pin reads and writes."""
    enabled: bool = False
    probability: float = 0.0  # 0.0 to 1.0
    pins: Set[int] = field(default_factory=set)  # Empty means every pin
    message: str = ""


@dataclass
class SimulatorStats:
    """Statistics tracked by simulators."""
    started_at: Optional[datetime] = None
    reads: int = 0
    writes: int = 0
    faults_injected: int = 0

    def reset(self) -> None:
        """Reset all statistics."""
        self.started_at = None
        self.reads = 0
        self.writes = 0
        self.faults_injected = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "reads": self.reads,
            "writes": self.writes,
            "faults_injected": self.faults_injected,
        }


def should_inject_fault(config: FaultConfig, pin: int) -> bool:
    """Check if a fault should be injected for a pin operation."""
    if not config.enabled:
        return False
    if config.pins and pin not in config.pins:
        return False
    return random.random() < config.probability
