"""
Sensor layer for pluggable per-lane distance sources.

This layer abstracts where distance readings come from (simulation,
recorded traces, hardware) from the counting core. Each source implements
the DistanceSensor interface and returns millimetres or None.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from .base import DistanceSensor, SensorConfig, SensorError
from .simulated import SimulatedSensor, SimulatedSensorSettings, monotonic_ms
from .replay import ReplaySensor, ReplaySensorSettings, load_trace


def create_sensors_from_config(
    sensors_cfg: Dict[str, Any],
    clock: Callable[[], int] = monotonic_ms,
) -> List[DistanceSensor]:
    """
    Factory: build one sensor per lane from the ``sensors`` config section.

    Args:
        sensors_cfg: Sensors configuration dict (from config.yaml).
        clock: Monotonic millisecond clock shared with the host loop.

    Raises:
        ValueError: If the backend is unknown.
        SensorError: If a replay trace cannot be loaded.
    """
    backend = sensors_cfg.get("backend", "simulated")
    num_lanes = int(sensors_cfg.get("num_lanes", 4))
    timeout_ms = sensors_cfg.get("timeout_ms", 50)

    if backend == "simulated":
        return [
            SimulatedSensor(SimulatedSensorSettings.from_sensors_config(sensors_cfg, lane_id), clock=clock)
            for lane_id in range(1, num_lanes + 1)
        ]

    if backend == "replay":
        path = (sensors_cfg.get("replay") or {}).get("path", "")
        trace = load_trace(path)
        return [
            ReplaySensor(
                ReplaySensorSettings(
                    lane_id=lane_id,
                    timeout_ms=timeout_ms,
                    readings=trace.get(lane_id, []),
                )
            )
            for lane_id in range(1, num_lanes + 1)
        ]

    raise ValueError(f"Unknown sensor backend: {backend}")


__all__ = [
    "DistanceSensor",
    "SensorConfig",
    "SensorError",
    "SimulatedSensor",
    "SimulatedSensorSettings",
    "ReplaySensor",
    "ReplaySensorSettings",
    "load_trace",
    "monotonic_ms",
    "create_sensors_from_config",
]
