"""
Pipeline module for the hub counter.

The pipeline orchestrates the host loop:
- Sensor startup and baseline calibration
- One distance read per lane per cycle
- Counting through the lane state machines
- Throttled count notifications to observers
"""

from .engine import PipelineEngine, PipelineConfig, PipelineStats, create_engine_from_config

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "PipelineStats",
    "create_engine_from_config",
]
