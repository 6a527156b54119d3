"""
Immutable count snapshots handed to observers (REST, WebSocket, logs).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .lane import Lane


@dataclass(frozen=True)
class LaneSnapshot:
    """Read-only copy of the externally visible fields of a lane."""
    lane_id: int
    count: int
    healthy: bool
    state: str
    baseline_mm: int = 0
    last_distance_mm: int = 0

    @classmethod
    def from_lane(cls, lane: Lane) -> "LaneSnapshot":
        return cls(
            lane_id=lane.lane_id,
            count=lane.count,
            healthy=lane.healthy,
            state=lane.state.value,
            baseline_mm=lane.baseline_mm,
            last_distance_mm=lane.last_distance_mm,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lane_id": self.lane_id,
            "count": self.count,
            "healthy": self.healthy,
            "state": self.state,
            "baseline_mm": self.baseline_mm,
            "last_distance_mm": self.last_distance_mm,
        }


@dataclass(frozen=True)
class CountsSnapshot:
    """
    Consistent view of every lane plus the total at one instant.

    Attributes:
        lanes: Per-lane snapshots ordered by lane_id.
        total: Aggregate count.
        timestamp_ms: Monotonic timestamp the snapshot was taken at.
    """
    lanes: Tuple[LaneSnapshot, ...] = field(default_factory=tuple)
    total: int = 0
    timestamp_ms: int = 0

    @classmethod
    def from_lanes(cls, lanes: List[Lane], total: int, timestamp_ms: int) -> "CountsSnapshot":
        return cls(
            lanes=tuple(LaneSnapshot.from_lane(lane) for lane in lanes),
            total=total,
            timestamp_ms=timestamp_ms,
        )

    @property
    def unhealthy_lane_ids(self) -> List[int]:
        return [lane.lane_id for lane in self.lanes if not lane.healthy]

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used by the REST API."""
        return {
            "lanes": [lane.to_dict() for lane in self.lanes],
            "total": self.total,
            "timestamp_ms": self.timestamp_ms,
        }

    def to_wire_dict(self) -> Dict[str, Any]:
        """
        Flat push format for dashboard clients.

        {"l1": 3, "s1": true, "l2": 0, "s2": false, ..., "total": 3, "ts": 12345}
        """
        d: Dict[str, Any] = {}
        for lane in self.lanes:
            d[f"l{lane.lane_id}"] = lane.count
            d[f"s{lane.lane_id}"] = lane.healthy
        d["total"] = self.total
        d["ts"] = self.timestamp_ms
        return d
