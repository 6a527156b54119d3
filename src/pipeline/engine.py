"""
Pipeline engine for the hub counter.

This module owns the host loop: it reads one distance per lane per cycle,
feeds valid readings into the counting core, and pushes throttled count
snapshots to registered callbacks (e.g. the WebSocket broadcaster).
Sensors are only ever touched from the loop thread; the web thread talks to
the engine through request_reset() and request_recalibration().
"""

from __future__ import annotations

import logging
import queue
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from counting.aggregator import CountAggregator
from counting.calibration import DEFAULT_OUT_OF_RANGE_MM, CalibrationResult, Calibrator
from counting.throttle import UpdateThrottle
from models.config import Config
from models.count_event import CountEvent
from models.snapshot import CountsSnapshot
from runtime.context import RuntimeContext
from sensors import create_sensors_from_config
from sensors.base import SensorError
from sensors.simulated import monotonic_ms


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        detection_delta_mm: Margin below baseline meaning "object present".
        clear_hysteresis_mm: Band above the enter threshold before "clear".
        lockout_ms: Post-count dead time per lane.
        out_of_range_mm: Readings at or above this are treated as failed.
        cycle_interval_ms: Pause between cycles (0 = back-to-back).
        stats_log_interval: Seconds between status log messages.
        max_cycles: Stop after this many cycles (None = run until stopped).
    """
    detection_delta_mm: int = 80
    clear_hysteresis_mm: int = 30
    lockout_ms: int = 60
    out_of_range_mm: int = DEFAULT_OUT_OF_RANGE_MM
    cycle_interval_ms: int = 0
    stats_log_interval: float = 60.0
    max_cycles: Optional[int] = None


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    cycles: int = 0
    counted: int = 0
    skipped_by_lane: Dict[int, int] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    last_cycle_time: Optional[float] = None
    last_stats_log_time: float = field(default_factory=time.time)


class PipelineEngine:
    """
    Main host loop driving the counting core.

    Each cycle:
    - Applies queued recalibration requests
    - Reads every lane once; failed or out-of-range reads skip that lane
    - Runs the lane state machines through the aggregator
    - Marks the throttle on any count and notifies callbacks when it allows

    Example:
        ctx = RuntimeContext(config, aggregator, throttle, sensors, calibrator)
        engine = PipelineEngine(ctx, PipelineConfig(lockout_ms=60))
        engine.add_callback(broadcaster.publish_snapshot)
        engine.run()
    """

    def __init__(self, ctx: RuntimeContext, config: PipelineConfig):
        self.ctx = ctx
        self.config = config
        self.stats = PipelineStats()
        self._running = False
        self._callbacks: List[Callable[[CountsSnapshot], None]] = []
        self._recalibration_requests: "queue.Queue[int]" = queue.Queue()

    @property
    def aggregator(self) -> CountAggregator:
        return self.ctx.aggregator

    @property
    def throttle(self) -> UpdateThrottle:
        return self.ctx.throttle

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: Callable[[CountsSnapshot], None]) -> None:
        """
        Add a callback invoked with a snapshot whenever a notification fires.

        Args:
            callback: Function taking a CountsSnapshot.
        """
        self._callbacks.append(callback)

    # -------------------------------------------------------------------------
    # Commands (safe to call from other threads)
    # -------------------------------------------------------------------------

    def request_reset(self) -> CountsSnapshot:
        """Reset all counts now and schedule a notification."""
        self.aggregator.reset()
        self.throttle.mark_changed()
        logging.info("Counts reset")
        return self.aggregator.snapshot(self.ctx.clock())

    def request_recalibration(self, lane_id: int) -> None:
        """
        Queue a lane for recalibration on the next cycle.

        Raises:
            KeyError: If the lane does not exist.
        """
        self.aggregator.get_lane(lane_id)
        self._recalibration_requests.put(lane_id)
        logging.info(f"Recalibration requested for lane {lane_id}")

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    def start_sensors(self) -> None:
        """Open every sensor; lanes whose sensor fails to start are marked unhealthy."""
        for sensor in self.ctx.sensors:
            try:
                sensor.open()
            except SensorError as e:
                self.aggregator.mark_unhealthy(sensor.lane_id)
                logging.error(f"Lane {sensor.lane_id} sensor init failed: {e}")

    def calibrate(self, lane_id: int) -> CalibrationResult:
        """Sample a lane and recompute its baseline. Blocks while sampling."""
        sensor = self.ctx.sensor_for(lane_id)
        if sensor is None or not sensor.is_open:
            samples: List[Optional[int]] = []
        else:
            samples = self.ctx.calibrator.collect(sensor.read)

        result = self.aggregator.apply_calibration(
            lane_id,
            samples,
            self.config.detection_delta_mm,
            self.config.clear_hysteresis_mm,
            self.config.out_of_range_mm,
        )
        if result.ok:
            lane = self.aggregator.get_lane(lane_id)
            logging.info(
                f"Lane {lane_id} calibrated: baseline={result.baseline_mm}mm, "
                f"threshold={lane.enter_threshold_mm}mm, clear={lane.clear_threshold_mm}mm, "
                f"samples={result.valid_samples}/{result.total_samples}"
            )
        else:
            logging.error(f"Lane {lane_id} calibration failed: no valid samples")
        self.throttle.mark_changed()
        return result

    def calibrate_all(self) -> List[CalibrationResult]:
        """Calibrate every lane with an open sensor. Keep lanes clear while this runs."""
        logging.info("Calibrating baselines, keep lanes clear")
        results = []
        for lane_id in self.aggregator.lane_ids():
            sensor = self.ctx.sensor_for(lane_id)
            if sensor is None or not sensor.is_open:
                continue
            results.append(self.calibrate(lane_id))
        logging.info("Calibration done")
        return results

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def run_cycle(self, now_ms: Optional[int] = None) -> List[CountEvent]:
        """
        Run one pass over all lanes.

        Args:
            now_ms: Timestamp for this cycle; defaults to the context clock.

        Returns:
            Count events produced in this cycle.
        """
        self._drain_recalibration_requests()

        events: List[CountEvent] = []
        for sensor in self.ctx.sensors:
            lane_id = sensor.lane_id
            if not self.aggregator.get_lane(lane_id).healthy or not sensor.is_open:
                continue

            try:
                distance = sensor.read()
            except Exception as e:
                logging.debug(f"Lane {lane_id} read raised: {e}")
                distance = None
            ts = self.ctx.clock() if now_ms is None else now_ms
            if distance is None or distance >= self.config.out_of_range_mm:
                self.stats.skipped_by_lane[lane_id] = self.stats.skipped_by_lane.get(lane_id, 0) + 1
                logging.debug(f"Lane {lane_id} read skipped: {distance}")
                continue

            event = self.aggregator.process_reading(lane_id, distance, ts, self.config.lockout_ms)
            if event is not None:
                events.append(event)

        for event in events:
            self.stats.counted += 1
            logging.info(f"Lane {event.lane_id} count={event.lane_count} total={event.total}")
        if events:
            self.throttle.mark_changed()

        self.stats.cycles += 1
        self.stats.last_cycle_time = time.time()
        self._maybe_notify(self.ctx.clock() if now_ms is None else now_ms)
        return events

    def run(self) -> None:
        """
        Run the host loop.

        Opens and calibrates the sensors, then cycles until stopped,
        max_cycles is reached or every sensor is exhausted. Sensors are
        closed on exit.
        """
        self._running = True
        self.stats = PipelineStats()

        try:
            self.start_sensors()
            self.calibrate_all()
            logging.info(f"Pipeline started: lanes={self.aggregator.num_lanes}")

            while self._running:
                self.run_cycle()
                self._handle_periodic_tasks()

                if self.config.max_cycles is not None and self.stats.cycles >= self.config.max_cycles:
                    logging.info(f"Reached max cycles ({self.config.max_cycles}), stopping")
                    break
                if self._sources_exhausted():
                    logging.info("All sensors exhausted, stopping")
                    break
                if self.config.cycle_interval_ms > 0:
                    time.sleep(self.config.cycle_interval_ms / 1000.0)

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        finally:
            self._cleanup()

    def _sources_exhausted(self) -> bool:
        """
        True once every lane still being read has run out of readings.

        With no lane left to read, a run over recordings only is over as well;
        live sensors keep the loop up so a lane can still be recalibrated.
        """
        readable = [
            s for s in self.ctx.sensors
            if s.is_open and self.aggregator.get_lane(s.lane_id).healthy
        ]
        if readable:
            return all(s.exhausted for s in readable)
        return bool(self.ctx.sensors) and all(s.finite for s in self.ctx.sensors)

    def _drain_recalibration_requests(self) -> None:
        while True:
            try:
                lane_id = self._recalibration_requests.get_nowait()
            except queue.Empty:
                return
            sensor = self.ctx.sensor_for(lane_id)
            if sensor is not None and not sensor.is_open:
                # A sensor that failed at init gets another chance.
                try:
                    sensor.open()
                except SensorError as e:
                    logging.error(f"Lane {lane_id} sensor init failed: {e}")
            self.calibrate(lane_id)

    def _maybe_notify(self, now_ms: int, flush: bool = False) -> None:
        # flush ignores the interval so a final change still reaches observers
        interval = 0 if flush else None
        if not self.throttle.should_notify_now(now_ms, min_interval_ms=interval):
            return
        snapshot = self.aggregator.snapshot(now_ms)
        logging.debug(f"Notifying {len(self._callbacks)} observer(s): total={snapshot.total}")
        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        self.ctx.update_cycle_stats({
            "cycles": self.stats.cycles,
            "last_cycle_ts": self.stats.last_cycle_time,
        })
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: cycles={self.stats.cycles}, "
                f"counted={self.stats.counted}, total={self.aggregator.total}, "
                f"skipped={self.stats.skipped_by_lane}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False
        if self.throttle.pending:
            self._maybe_notify(self.ctx.clock(), flush=True)
        for sensor in self.ctx.sensors:
            try:
                sensor.close()
            except Exception as e:
                logging.warning(f"Error closing lane {sensor.lane_id} sensor: {e}")
        logging.info("Pipeline stopped")


def create_engine_from_config(
    config: Dict[str, Any],
    web_state: Any = None,
    clock: Callable[[], int] = monotonic_ms,
    max_cycles: Optional[int] = None,
) -> PipelineEngine:
    """
    Factory function to build the aggregator, sensors and engine from a config dict.

    Args:
        config: Full application config dict.
        web_state: Shared web state to publish loop stats to.
        clock: Monotonic millisecond clock.
        max_cycles: Optional cycle limit.
    """
    cfg = Config.from_dict(config)

    ctx = RuntimeContext(
        config=config,
        aggregator=CountAggregator(num_lanes=int(cfg.sensors.num_lanes)),
        throttle=UpdateThrottle(min_interval_ms=int(cfg.broadcast.min_interval_ms)),
        sensors=create_sensors_from_config(config.get("sensors", {}) or {}, clock=clock),
        calibrator=Calibrator(
            samples=int(cfg.calibration.samples),
            sample_interval_ms=int(cfg.calibration.sample_interval_ms),
            settle_ms=int(cfg.calibration.settle_ms),
        ),
        web_state=web_state,
        clock=clock,
    )
    pipeline_config = PipelineConfig(
        detection_delta_mm=int(cfg.counting.detection_delta_mm),
        clear_hysteresis_mm=int(cfg.counting.clear_hysteresis_mm),
        lockout_ms=int(cfg.counting.lockout_ms),
        out_of_range_mm=int(cfg.sensors.out_of_range_mm),
        cycle_interval_ms=int(cfg.pipeline.cycle_interval_ms),
        stats_log_interval=float(cfg.pipeline.stats_log_interval_s),
        max_cycles=max_cycles,
    )
    return PipelineEngine(ctx, pipeline_config)
