"""
Baseline calibration for empty lanes.

A lane is sampled N times while believed empty. Samples that timed out or
report "no target" are discarded; the baseline is the integer mean of the
rest. A lane with no valid samples is marked unhealthy until recalibrated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from models.lane import Lane, LaneState
from .thresholds import apply_thresholds

# Readings at or above this are what the sensor reports with no target in range.
DEFAULT_OUT_OF_RANGE_MM = 8000


@dataclass(frozen=True)
class CalibrationResult:
    """
    Outcome of calibrating one lane.

    Attributes:
        lane_id: Calibrated lane.
        ok: True if at least one valid sample was collected.
        baseline_mm: Mean of the valid samples (None on failure).
        valid_samples: Number of samples used.
        total_samples: Number of samples taken.
    """
    lane_id: int
    ok: bool
    baseline_mm: Optional[int]
    valid_samples: int
    total_samples: int

    def to_dict(self) -> dict:
        return {
            "lane_id": self.lane_id,
            "ok": self.ok,
            "baseline_mm": self.baseline_mm,
            "valid_samples": self.valid_samples,
            "total_samples": self.total_samples,
        }


def is_valid_sample(sample: Optional[int], out_of_range_mm: int = DEFAULT_OUT_OF_RANGE_MM) -> bool:
    """A sample is valid if the read succeeded and saw a target."""
    return sample is not None and sample < out_of_range_mm


def calibrate_lane(
    lane: Lane,
    samples: Iterable[Optional[int]],
    detection_delta_mm: int,
    clear_hysteresis_mm: int,
    out_of_range_mm: int = DEFAULT_OUT_OF_RANGE_MM,
) -> CalibrationResult:
    """
    Establish a lane's baseline from raw samples and update its health.

    On success the thresholds are overwritten and the lane is marked healthy.
    On failure the lane is marked unhealthy and its thresholds are left alone.
    Either way the lane returns to IDLE; its count is preserved.
    """
    samples = list(samples)
    valid = [int(s) for s in samples if is_valid_sample(s, out_of_range_mm)]
    lane.state = LaneState.IDLE

    if not valid:
        lane.healthy = False
        return CalibrationResult(
            lane_id=lane.lane_id,
            ok=False,
            baseline_mm=None,
            valid_samples=0,
            total_samples=len(samples),
        )

    baseline_mm = sum(valid) // len(valid)
    apply_thresholds(lane, baseline_mm, detection_delta_mm, clear_hysteresis_mm)
    lane.healthy = True
    return CalibrationResult(
        lane_id=lane.lane_id,
        ok=True,
        baseline_mm=baseline_mm,
        valid_samples=len(valid),
        total_samples=len(samples),
    )


class Calibrator:
    """
    Collects calibration samples from a sensor read function.

    The read function returns a distance in mm, or None when the read timed
    out. Sampling blocks for roughly ``settle_ms + samples * sample_interval_ms``
    and must run on the thread that owns the sensor.

    Example:
        calibrator = Calibrator(samples=20, sample_interval_ms=35)
        raw = calibrator.collect(sensor.read)
        result = aggregator.apply_calibration(lane_id, raw)
    """

    def __init__(
        self,
        samples: int = 20,
        sample_interval_ms: int = 35,
        settle_ms: int = 500,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.samples = samples
        self.sample_interval_ms = sample_interval_ms
        self.settle_ms = settle_ms
        self._sleep = sleep

    def collect(self, read: Callable[[], Optional[int]]) -> List[Optional[int]]:
        """Take the configured number of samples, pausing between reads."""
        if self.settle_ms > 0:
            self._sleep(self.settle_ms / 1000.0)

        raw: List[Optional[int]] = []
        for _ in range(self.samples):
            try:
                raw.append(read())
            except Exception as e:
                logging.debug(f"Calibration read failed: {e}")
                raw.append(None)
            if self.sample_interval_ms > 0:
                self._sleep(self.sample_interval_ms / 1000.0)
        return raw
