"""
Typed models for the hub counter application.

These models are plain dataclasses with dict adapters so they can be built
from YAML config and serialized for the web layer.
"""

from .lane import Lane, LaneState
from .count_event import CountEvent
from .snapshot import CountsSnapshot, LaneSnapshot
from .health import Health
from .config import (
    Config,
    SensorsConfig,
    SimulatedSensorConfig,
    ReplaySensorConfig,
    CalibrationConfig,
    CountingConfig,
    BroadcastConfig,
    WebConfig,
    PipelineSettings,
)

__all__ = [
    # Lanes
    "Lane",
    "LaneState",
    # Counting
    "CountEvent",
    "CountsSnapshot",
    "LaneSnapshot",
    # Health
    "Health",
    # Config
    "Config",
    "SensorsConfig",
    "SimulatedSensorConfig",
    "ReplaySensorConfig",
    "CalibrationConfig",
    "CountingConfig",
    "BroadcastConfig",
    "WebConfig",
    "PipelineSettings",
]
