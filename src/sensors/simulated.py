"""
Simulated distance sensor.

Produces a noisy empty-lane baseline with periodic ball passes, driven by a
monotonic millisecond clock so the signal depends on time rather than on
how often it is read.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np

from .base import DistanceSensor, SensorConfig, SensorError


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class SimulatedSensorSettings(SensorConfig):
    """
    Configuration for a simulated lane.

    Attributes:
        baseline_mm: Distance seen with the lane empty.
        noise_mm: Standard deviation of Gaussian read noise.
        ball_distance_mm: Distance seen while a ball occludes the sensor.
        ball_interval_ms: Time between ball passes (0 disables balls).
        ball_duration_ms: How long each ball occludes the sensor.
        phase_ms: Offset of this lane's first ball.
        quiet_ms: No balls for this long after open, so calibration sees an empty lane.
        dropout_rate: Probability that a read times out.
        fail_open: Simulate a sensor that does not respond at init.
        seed: RNG seed for reproducible signals.
    """
    baseline_mm: int = 500
    noise_mm: float = 4.0
    ball_distance_mm: int = 380
    ball_interval_ms: int = 900
    ball_duration_ms: int = 120
    phase_ms: int = 0
    quiet_ms: int = 6000
    dropout_rate: float = 0.01
    fail_open: bool = False
    seed: Optional[int] = None

    @classmethod
    def from_sensors_config(cls, sensors_cfg: Dict[str, Any], lane_id: int) -> "SimulatedSensorSettings":
        """
        Adapter: Create settings for one lane from the ``sensors`` config dict.

        Lanes are phase-shifted so balls do not arrive on every lane at once.
        """
        sim = sensors_cfg.get("simulated", {}) or {}
        num_lanes = max(1, int(sensors_cfg.get("num_lanes", 4)))
        interval = int(sim.get("ball_interval_ms", 900))
        seed = sim.get("seed")
        return cls(
            lane_id=lane_id,
            timeout_ms=sensors_cfg.get("timeout_ms", 50),
            baseline_mm=sim.get("baseline_mm", 500),
            noise_mm=sim.get("noise_mm", 4.0),
            ball_distance_mm=sim.get("ball_distance_mm", 380),
            ball_interval_ms=interval,
            ball_duration_ms=sim.get("ball_duration_ms", 120),
            phase_ms=(lane_id - 1) * interval // num_lanes,
            quiet_ms=sim.get("quiet_ms", 6000),
            dropout_rate=sim.get("dropout_rate", 0.01),
            fail_open=lane_id in (sim.get("failed_lanes") or []),
            seed=None if seed is None else int(seed) + lane_id,
        )


class SimulatedSensor(DistanceSensor):
    """
    Synthetic time-of-flight sensor for one lane.

    Example:
        sensor = SimulatedSensor(SimulatedSensorSettings(lane_id=1, seed=7))
        with sensor:
            distance = sensor.read()
    """

    def __init__(self, config: SimulatedSensorSettings, clock: Callable[[], int] = monotonic_ms):
        super().__init__(config)
        self._settings = config
        self._clock = clock
        self._rng: Optional[np.random.Generator] = None
        self._start_ms = 0

    def open(self) -> None:
        if self._settings.fail_open:
            raise SensorError(f"Lane {self.lane_id}: sensor did not respond at init")
        self._rng = np.random.default_rng(self._settings.seed)
        self._start_ms = self._clock()
        self._reads = 0
        self._failures = 0
        self._is_open = True
        logging.info(f"Simulated sensor opened: lane={self.lane_id}, baseline={self._settings.baseline_mm}mm")

    def ball_present(self, now_ms: int) -> bool:
        """Whether a simulated ball occludes the sensor at ``now_ms``."""
        s = self._settings
        if s.ball_interval_ms <= 0:
            return False
        elapsed = now_ms - self._start_ms - s.quiet_ms - s.phase_ms
        if elapsed < 0:
            return False
        return elapsed % s.ball_interval_ms < s.ball_duration_ms

    def read(self) -> Optional[int]:
        if not self._is_open or self._rng is None:
            return self._record(None)

        s = self._settings
        if s.dropout_rate > 0 and self._rng.random() < s.dropout_rate:
            return self._record(None)

        target = s.ball_distance_mm if self.ball_present(self._clock()) else s.baseline_mm
        noisy = target + self._rng.normal(0.0, s.noise_mm) if s.noise_mm > 0 else float(target)
        return self._record(max(0, int(round(noisy))))

    def close(self) -> None:
        self._is_open = False
