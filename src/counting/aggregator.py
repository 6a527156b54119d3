"""
Lane collection owner: per-lane counting, total, reset and snapshots.
"""

from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from models.count_event import CountEvent
from models.lane import Lane, LaneState
from models.snapshot import CountsSnapshot
from .calibration import DEFAULT_OUT_OF_RANGE_MM, CalibrationResult, calibrate_lane
from .state_machine import process_lane_reading


class CountAggregator:
    """
    Owns every Lane and the cached total.

    The total is kept equal to the sum of lane counts: it is incremented once
    per counted object and zeroed on reset. A single re-entrant lock guards
    the lane set and the total, so a reset or snapshot from another thread
    never observes a partially updated set of counts.

    Example:
        aggregator = CountAggregator(num_lanes=4)
        aggregator.apply_calibration(1, samples, 80, 30)
        event = aggregator.process_reading(1, 400, now_ms=1000, lockout_ms=60)
    """

    def __init__(self, num_lanes: int = 4):
        if num_lanes <= 0:
            raise ValueError("num_lanes must be positive")
        self._lanes: List[Lane] = [Lane(lane_id=i + 1) for i in range(num_lanes)]
        self._total = 0
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def lanes(self) -> List[Lane]:
        """The live lane objects. Mutate only under ``lock``."""
        return self._lanes

    @property
    def num_lanes(self) -> int:
        return len(self._lanes)

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def lane_ids(self) -> List[int]:
        return [lane.lane_id for lane in self._lanes]

    def get_lane(self, lane_id: int) -> Lane:
        """Look up a lane by its 1-based id. Raises KeyError if unknown."""
        if not isinstance(lane_id, int) or not 1 <= lane_id <= len(self._lanes):
            raise KeyError(f"Unknown lane {lane_id}")
        return self._lanes[lane_id - 1]

    def on_counted(self, lane: Lane) -> None:
        """Record one counted object on ``lane`` in the total."""
        with self._lock:
            self._total += 1

    def process_reading(
        self,
        lane_id: int,
        distance_mm: int,
        now_ms: int,
        lockout_ms: int,
    ) -> Optional[CountEvent]:
        """
        Feed one valid reading to a lane's state machine.

        Returns:
            A CountEvent if the reading completed a pass, else None.
        """
        with self._lock:
            lane = self.get_lane(lane_id)
            if not process_lane_reading(lane, distance_mm, now_ms, lockout_ms):
                return None
            self.on_counted(lane)
            return CountEvent(
                lane_id=lane.lane_id,
                lane_count=lane.count,
                total=self._total,
                timestamp_ms=now_ms,
                distance_mm=distance_mm,
            )

    def apply_calibration(
        self,
        lane_id: int,
        samples: Iterable[Optional[int]],
        detection_delta_mm: int,
        clear_hysteresis_mm: int,
        out_of_range_mm: int = DEFAULT_OUT_OF_RANGE_MM,
    ) -> CalibrationResult:
        """Calibrate one lane from already collected samples."""
        with self._lock:
            return calibrate_lane(
                self.get_lane(lane_id),
                samples,
                detection_delta_mm,
                clear_hysteresis_mm,
                out_of_range_mm,
            )

    def mark_unhealthy(self, lane_id: int) -> None:
        with self._lock:
            lane = self.get_lane(lane_id)
            lane.healthy = False
            lane.state = LaneState.IDLE

    def reset(self) -> None:
        """Zero every lane count and the total; calibration is kept."""
        with self._lock:
            for lane in self._lanes:
                lane.count = 0
                lane.state = LaneState.IDLE
            self._total = 0

    def snapshot(self, now_ms: int) -> CountsSnapshot:
        with self._lock:
            return CountsSnapshot.from_lanes(self._lanes, self._total, now_ms)

    def sum_of_counts(self) -> int:
        with self._lock:
            return sum(lane.count for lane in self._lanes)

    def is_consistent(self) -> bool:
        """True if the cached total equals the sum of lane counts."""
        with self._lock:
            return self._total == self.sum_of_counts()
