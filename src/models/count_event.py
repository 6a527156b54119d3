"""
CountEvent model for objects counted on a lane.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CountEvent:
    """
    A counting event emitted when an object fully passes a lane sensor.

    Attributes:
        lane_id: Lane that counted the object.
        lane_count: Lane count after this event.
        total: Aggregate count across all lanes after this event.
        timestamp_ms: Monotonic timestamp of the clearing reading.
        distance_mm: The reading that cleared the lane.
    """
    lane_id: int
    lane_count: int
    total: int
    timestamp_ms: int
    distance_mm: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "lane_id": self.lane_id,
            "lane_count": self.lane_count,
            "total": self.total,
            "timestamp_ms": self.timestamp_ms,
            "distance_mm": self.distance_mm,
        }
