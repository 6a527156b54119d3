"""
Tests for the REST API routes.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from counting.aggregator import CountAggregator
from counting.calibration import Calibrator
from counting.throttle import UpdateThrottle
from pipeline.engine import PipelineConfig, PipelineEngine
from runtime.context import RuntimeContext
from sensors.replay import ReplaySensor, ReplaySensorSettings
from web.routes.api import _compute_warnings


def make_running_engine(fake_clock):
    """Engine with lane 1 counted once, lane 2 healthy and lane 3 failed."""
    sensors = [
        ReplaySensor(ReplaySensorSettings(lane_id=1, readings=[500] * 3 + [400, 470])),
        ReplaySensor(ReplaySensorSettings(lane_id=2, readings=[600] * 3 + [600, 600])),
        ReplaySensor(ReplaySensorSettings(lane_id=3, readings=[None] * 3)),
    ]
    ctx = RuntimeContext(
        config={},
        aggregator=CountAggregator(num_lanes=3),
        throttle=UpdateThrottle(),
        sensors=sensors,
        calibrator=Calibrator(samples=3, sample_interval_ms=0, settle_ms=0, sleep=lambda s: None),
        clock=fake_clock,
    )
    engine = PipelineEngine(ctx, PipelineConfig())
    engine.start_sensors()
    engine.calibrate_all()
    engine.run_cycle(now_ms=0)
    engine.run_cycle(now_ms=10)
    return engine


class TestComputeWarnings:
    """Tests for warning computation logic."""

    def test_no_warnings_when_healthy(self):
        """No warnings when all metrics are healthy."""
        warnings = _compute_warnings(unhealthy_lanes=[], last_cycle_age_s=0.1, cpu_temp_c=45.0)
        assert warnings == []

    def test_lane_offline_warning(self):
        """One lane_<n>_offline warning per unhealthy lane."""
        warnings = _compute_warnings(unhealthy_lanes=[2, 4], last_cycle_age_s=0.1, cpu_temp_c=None)
        assert warnings == ["lane_2_offline", "lane_4_offline"]

    def test_loop_stale_warning(self):
        """loop_stale when last cycle is > 2s but <= 10s old."""
        warnings = _compute_warnings(unhealthy_lanes=[], last_cycle_age_s=5.0, cpu_temp_c=45.0)
        assert "loop_stale" in warnings
        assert "loop_stopped" not in warnings

    def test_loop_stopped_warning(self):
        """loop_stopped when last cycle is > 10s old."""
        warnings = _compute_warnings(unhealthy_lanes=[], last_cycle_age_s=15.0, cpu_temp_c=45.0)
        assert "loop_stopped" in warnings
        assert "loop_stale" not in warnings

    def test_loop_stopped_when_no_cycle(self):
        """loop_stopped when the loop has not cycled yet."""
        warnings = _compute_warnings(unhealthy_lanes=[], last_cycle_age_s=None, cpu_temp_c=45.0)
        assert "loop_stopped" in warnings

    def test_temp_high_threshold_exact(self):
        """temp_high not triggered at exactly 80°C."""
        assert "temp_high" not in _compute_warnings([], 0.1, 80.0)
        assert "temp_high" in _compute_warnings([], 0.1, 80.5)


class TestCountsEndpoints:
    """Tests for counts, reset and recalibrate routes."""

    @pytest.fixture
    def mock_state(self, fake_clock):
        mock = MagicMock()
        mock.engine = make_running_engine(fake_clock)
        return mock

    def test_counts(self, mock_state):
        with patch("web.routes.api.state", mock_state):
            from web.routes.api import counts
            response = counts()

        assert response.total == 1
        assert [lane.count for lane in response.lanes] == [1, 0, 0]
        assert [lane.healthy for lane in response.lanes] == [True, True, False]

    def test_counts_without_engine(self):
        mock = MagicMock()
        mock.engine = None
        with patch("web.routes.api.state", mock):
            from web.routes.api import counts
            with pytest.raises(HTTPException) as exc:
                counts()

        assert exc.value.status_code == 503

    def test_reset(self, mock_state):
        with patch("web.routes.api.state", mock_state):
            from web.routes.api import reset
            response = reset()

        assert response.ok is True
        assert response.command == "reset"
        assert response.counts.total == 0
        assert mock_state.engine.aggregator.total == 0

    def test_recalibrate_queues_lane(self, mock_state):
        with patch("web.routes.api.state", mock_state):
            from web.routes.api import recalibrate
            response = recalibrate(3)

        assert response.ok is True
        assert response.lane_id == 3
        assert mock_state.engine._recalibration_requests.qsize() == 1

    def test_recalibrate_unknown_lane(self, mock_state):
        with patch("web.routes.api.state", mock_state):
            from web.routes.api import recalibrate
            with pytest.raises(HTTPException) as exc:
                recalibrate(9)

        assert exc.value.status_code == 404


class TestStatusEndpoint:
    """Integration tests for the /api/status endpoint."""

    @pytest.fixture
    def mock_state(self, fake_clock):
        engine = make_running_engine(fake_clock)
        engine.stats.skipped_by_lane = {2: 4}
        mock = MagicMock()
        mock.engine = engine
        mock.get_snapshot.return_value = engine.aggregator.snapshot(10)
        mock.get_system_stats_copy.return_value = {
            "cycles": 2,
            "last_cycle_ts": time.time() - 0.5,
            "start_time": time.time() - 3600,
        }
        mock.uptime_seconds.return_value = 3600.0
        return mock

    def test_running_with_recent_cycle(self, mock_state):
        with patch("web.routes.api.state", mock_state):
            with patch("web.routes.api.HealthService") as mock_health:
                mock_health.read_cpu_temp_c.return_value = 45.0

                from web.routes.api import status
                response = status()

        assert response.running is True
        assert response.healthy_lanes == [1, 2]
        assert response.unhealthy_lanes == [3]
        assert response.total == 1
        assert response.cycles == 2
        assert response.uptime_seconds == 3600
        assert response.skipped_reads == {2: 4}
        assert response.warnings == ["lane_3_offline"]

    def test_not_running_when_loop_stopped(self, mock_state):
        mock_state.get_system_stats_copy.return_value = {
            "cycles": 2,
            "last_cycle_ts": time.time() - 60,
        }
        with patch("web.routes.api.state", mock_state):
            with patch("web.routes.api.HealthService") as mock_health:
                mock_health.read_cpu_temp_c.return_value = None

                from web.routes.api import status
                response = status()

        assert response.running is False
        assert "loop_stopped" in response.warnings

    def test_status_without_engine(self):
        mock = MagicMock()
        mock.engine = None
        mock.get_snapshot.return_value = None
        mock.get_system_stats_copy.return_value = {}
        mock.uptime_seconds.return_value = None
        with patch("web.routes.api.state", mock):
            with patch("web.routes.api.HealthService") as mock_health:
                mock_health.read_cpu_temp_c.return_value = None

                from web.routes.api import status
                response = status()

        assert response.running is False
        assert response.total == 0
        assert response.healthy_lanes == []


class TestHealthEndpoint:

    def test_health_reports_sensor_config(self):
        mock = MagicMock()
        mock.get_config_copy.return_value = {
            "log_path": "logs/test.log",
            "sensors": {"backend": "replay", "num_lanes": 4},
        }
        with patch("web.routes.api.state", mock):
            from web.routes.api import health
            summary = health()

        assert summary["sensor_backend"] == "replay"
        assert summary["num_lanes"] == 4
        assert summary["log_path"] == "logs/test.log"


class TestCounterState:
    """Tests for the state shared with the host loop."""

    def test_snapshot_none_without_engine(self):
        from web.state import CounterState

        assert CounterState().get_snapshot() is None

    def test_snapshot_from_engine(self, fake_clock):
        from web.state import CounterState

        shared = CounterState()
        shared.set_engine(make_running_engine(fake_clock))
        fake_clock.advance(500)

        snapshot = shared.get_snapshot()

        assert snapshot.total == 1
        assert snapshot.timestamp_ms == 500

    def test_config_copy_is_detached(self, valid_config):
        from web.state import CounterState

        shared = CounterState()
        shared.set_config(valid_config, "config/config.yaml")
        copy = shared.get_config_copy()
        copy["counting"]["lockout_ms"] = 999

        assert shared.get_config_copy()["counting"]["lockout_ms"] == 60
        assert shared.config_path == "config/config.yaml"

    def test_uptime(self):
        from web.state import CounterState

        shared = CounterState()
        assert shared.uptime_seconds() is None

        shared.update_system_stats({"start_time": time.time() - 10})
        assert 9 <= shared.uptime_seconds() < 60
