"""
ROLLOFF Park Data Store

Persists the last known parked (closed) or unparked (opened) indication so
the roof position can be inferred on connect when the limit switches
cannot be read.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger("rolloff.services.enclosure")


class ParkStore:
    """YAML file holding the parked indication.

    A store without a path keeps the value in memory only.
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path).expanduser() if path else None
        self._parked: Optional[bool] = None
        self._loaded = False

    def load(self) -> Optional[bool]:
        """
        Read the stored indication.

        Returns:
            True if parked, False if unparked, None when no data exists
        """
        self._loaded = True
        if self.path is None or not self.path.exists():
            return self._parked

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read park data from {self.path}: {e}")
            return self._parked

        if not isinstance(data, dict):
            logger.warning(f"Ignoring park data in {self.path}: top level is not a mapping")
            self._parked = None
            return self._parked

        parked = data.get("parked")
        self._parked = parked if isinstance(parked, bool) else None
        return self._parked

    @property
    def parked(self) -> Optional[bool]:
        if not self._loaded:
            return self.load()
        return self._parked

    def save(self, parked: Optional[bool]) -> None:
        """Store a new indication; None clears it."""
        self._parked = parked
        self._loaded = True
        if self.path is None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(
                    {"parked": parked, "updated": datetime.now().isoformat()},
                    f,
                    default_flow_style=False,
                )
        except OSError as e:
            logger.warning(f"Could not write park data to {self.path}: {e}")
