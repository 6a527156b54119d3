from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from counting.aggregator import CountAggregator
from counting.calibration import Calibrator
from counting.throttle import UpdateThrottle
from sensors.base import DistanceSensor
from sensors.simulated import monotonic_ms


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: dict
    aggregator: CountAggregator
    throttle: UpdateThrottle
    sensors: List[DistanceSensor]
    calibrator: Calibrator
    web_state: Any = None
    clock: Callable[[], int] = monotonic_ms

    # Observability
    system_stats: Dict[str, Any] = field(default_factory=dict)

    def sensor_for(self, lane_id: int) -> Optional[DistanceSensor]:
        for sensor in self.sensors:
            if sensor.lane_id == lane_id:
                return sensor
        return None

    def update_cycle_stats(self, stats: Dict[str, Any]) -> None:
        self.system_stats.update(stats)
        if hasattr(self.web_state, "update_system_stats"):
            self.web_state.update_system_stats(stats)

    def get_system_stats_copy(self) -> Dict[str, Any]:
        return dict(self.system_stats)
