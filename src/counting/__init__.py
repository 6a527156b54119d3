"""
Counting core for distance-sensor lanes.

Pure state and functions over readings and timestamps supplied by the
caller. Nothing here reads a sensor, sleeps (except Calibrator.collect) or
talks to a network.

- thresholds: enter/clear threshold derivation
- state_machine: IDLE -> PRESENT -> LOCKOUT detection per reading
- calibration: baseline estimation and lane health
- aggregator: lane ownership, total, reset, snapshots
- throttle: notification rate limiting
"""

from .thresholds import Thresholds, calculate_thresholds, apply_thresholds
from .state_machine import process_lane_reading
from .calibration import (
    DEFAULT_OUT_OF_RANGE_MM,
    CalibrationResult,
    Calibrator,
    calibrate_lane,
    is_valid_sample,
)
from .aggregator import CountAggregator
from .throttle import UpdateThrottle

__all__ = [
    "Thresholds",
    "calculate_thresholds",
    "apply_thresholds",
    "process_lane_reading",
    "DEFAULT_OUT_OF_RANGE_MM",
    "CalibrationResult",
    "Calibrator",
    "calibrate_lane",
    "is_valid_sample",
    "CountAggregator",
    "UpdateThrottle",
]
