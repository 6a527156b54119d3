"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.lane import Lane  # noqa: E402
from counting.thresholds import apply_thresholds  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
sensors:
  backend: "simulated"
  num_lanes: 4
  out_of_range_mm: 8000

calibration:
  samples: 20
  sample_interval_ms: 35
  settle_ms: 500

counting:
  detection_delta_mm: 80
  clear_hysteresis_mm: 30
  lockout_ms: 60

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "sensors": {
            "backend": "simulated",
            "num_lanes": 4,
            "timeout_ms": 50,
            "out_of_range_mm": 8000,
            "simulated": {"seed": 1},
        },
        "calibration": {
            "samples": 20,
            "sample_interval_ms": 35,
            "settle_ms": 500,
        },
        "counting": {
            "detection_delta_mm": 80,
            "clear_hysteresis_mm": 30,
            "lockout_ms": 60,
        },
        "broadcast": {"min_interval_ms": 50},
        "web": {"enabled": True, "host": "127.0.0.1", "port": 5000},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def calibrated_lane():
    """Factory for a healthy lane calibrated to the given baseline."""
    def _make(lane_id=1, baseline_mm=500, detection_delta_mm=80, clear_hysteresis_mm=30):
        lane = Lane(lane_id=lane_id)
        apply_thresholds(lane, baseline_mm, detection_delta_mm, clear_hysteresis_mm)
        lane.healthy = True
        return lane
    return _make


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms=0):
        self.now_ms = start_ms

    def __call__(self):
        return self.now_ms

    def advance(self, ms):
        self.now_ms += ms
        return self.now_ms


@pytest.fixture
def fake_clock():
    return FakeClock()
