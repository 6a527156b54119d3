"""
Lane model: one independent sensing channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class LaneState(str, Enum):
    """Detection states of a single lane."""
    IDLE = "idle"
    PRESENT = "present"
    LOCKOUT = "lockout"


@dataclass
class Lane:
    """
    Per-lane calibration, count and detection state.

    Thresholds are written only by calibration; count and state only by the
    detection state machine and by reset.

    Attributes:
        lane_id: 1-based lane identifier.
        baseline_mm: Empty-lane reference distance.
        enter_threshold_mm: An object is present below this distance.
        clear_threshold_mm: A present object has passed above this distance.
        count: Objects counted since start or last reset.
        state: Current detection state.
        lockout_started_ms: Timestamp of the last count (valid in LOCKOUT).
        healthy: False if the sensor failed to start or calibrate.
        last_distance_mm: Latest raw reading, for diagnostics only.
    """
    lane_id: int
    baseline_mm: int = 0
    enter_threshold_mm: int = 0
    clear_threshold_mm: int = 0
    count: int = 0
    state: LaneState = LaneState.IDLE
    lockout_started_ms: int = 0
    healthy: bool = False
    last_distance_mm: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "lane_id": self.lane_id,
            "baseline_mm": self.baseline_mm,
            "enter_threshold_mm": self.enter_threshold_mm,
            "clear_threshold_mm": self.clear_threshold_mm,
            "count": self.count,
            "state": self.state.value,
            "healthy": self.healthy,
            "last_distance_mm": self.last_distance_mm,
        }
