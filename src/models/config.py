"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SimulatedSensorConfig:
    """Synthetic distance signal used when no hardware is attached."""
    baseline_mm: int = 500
    noise_mm: float = 4.0
    ball_distance_mm: int = 380
    ball_interval_ms: int = 900
    ball_duration_ms: int = 120
    quiet_ms: int = 6000
    dropout_rate: float = 0.01
    failed_lanes: List[int] = field(default_factory=list)
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SimulatedSensorConfig":
        return cls(
            baseline_mm=d.get("baseline_mm", 500),
            noise_mm=d.get("noise_mm", 4.0),
            ball_distance_mm=d.get("ball_distance_mm", 380),
            ball_interval_ms=d.get("ball_interval_ms", 900),
            ball_duration_ms=d.get("ball_duration_ms", 120),
            quiet_ms=d.get("quiet_ms", 6000),
            dropout_rate=d.get("dropout_rate", 0.01),
            failed_lanes=list(d.get("failed_lanes") or []),
            seed=d.get("seed"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline_mm": self.baseline_mm,
            "noise_mm": self.noise_mm,
            "ball_distance_mm": self.ball_distance_mm,
            "ball_interval_ms": self.ball_interval_ms,
            "ball_duration_ms": self.ball_duration_ms,
            "quiet_ms": self.quiet_ms,
            "dropout_rate": self.dropout_rate,
            "failed_lanes": self.failed_lanes,
            "seed": self.seed,
        }


@dataclass
class ReplaySensorConfig:
    """Recorded reading traces played back per lane."""
    path: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReplaySensorConfig":
        return cls(path=d.get("path", ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path}


@dataclass
class SensorsConfig:
    """Distance sensor configuration."""
    backend: str = "simulated"
    num_lanes: int = 4
    timeout_ms: int = 50
    out_of_range_mm: int = 8000
    simulated: SimulatedSensorConfig = field(default_factory=SimulatedSensorConfig)
    replay: Optional[ReplaySensorConfig] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SensorsConfig":
        replay_dict = d.get("replay")
        return cls(
            backend=d.get("backend", "simulated"),
            num_lanes=d.get("num_lanes", 4),
            timeout_ms=d.get("timeout_ms", 50),
            out_of_range_mm=d.get("out_of_range_mm", 8000),
            simulated=SimulatedSensorConfig.from_dict(d.get("simulated") or {}),
            replay=ReplaySensorConfig.from_dict(replay_dict) if replay_dict else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "backend": self.backend,
            "num_lanes": self.num_lanes,
            "timeout_ms": self.timeout_ms,
            "out_of_range_mm": self.out_of_range_mm,
            "simulated": self.simulated.to_dict(),
        }
        if self.replay:
            d["replay"] = self.replay.to_dict()
        return d


@dataclass
class CalibrationConfig:
    """Baseline calibration settings."""
    samples: int = 20
    sample_interval_ms: int = 35
    settle_ms: int = 500

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CalibrationConfig":
        return cls(
            samples=d.get("samples", 20),
            sample_interval_ms=d.get("sample_interval_ms", 35),
            settle_ms=d.get("settle_ms", 500),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "samples": self.samples,
            "sample_interval_ms": self.sample_interval_ms,
            "settle_ms": self.settle_ms,
        }


@dataclass
class CountingConfig:
    """Detection margins and post-count dead time."""
    detection_delta_mm: int = 80
    clear_hysteresis_mm: int = 30
    lockout_ms: int = 60

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CountingConfig":
        return cls(
            detection_delta_mm=d.get("detection_delta_mm", 80),
            clear_hysteresis_mm=d.get("clear_hysteresis_mm", 30),
            lockout_ms=d.get("lockout_ms", 60),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detection_delta_mm": self.detection_delta_mm,
            "clear_hysteresis_mm": self.clear_hysteresis_mm,
            "lockout_ms": self.lockout_ms,
        }


@dataclass
class BroadcastConfig:
    """Count push throttling."""
    min_interval_ms: int = 50

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BroadcastConfig":
        return cls(min_interval_ms=d.get("min_interval_ms", 50))

    def to_dict(self) -> Dict[str, Any]:
        return {"min_interval_ms": self.min_interval_ms}


@dataclass
class WebConfig:
    """HTTP/WebSocket server settings."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class PipelineSettings:
    """Host loop pacing and housekeeping."""
    cycle_interval_ms: int = 0
    stats_log_interval_s: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            cycle_interval_ms=d.get("cycle_interval_ms", 0),
            stats_log_interval_s=d.get("stats_log_interval_s", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_interval_ms": self.cycle_interval_ms,
            "stats_log_interval_s": self.stats_log_interval_s,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    sensors: SensorsConfig = field(default_factory=SensorsConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    counting: CountingConfig = field(default_factory=CountingConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    web: WebConfig = field(default_factory=WebConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_path: str = "logs/hub_counter.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            sensors=SensorsConfig.from_dict(d.get("sensors") or {}),
            calibration=CalibrationConfig.from_dict(d.get("calibration") or {}),
            counting=CountingConfig.from_dict(d.get("counting") or {}),
            broadcast=BroadcastConfig.from_dict(d.get("broadcast") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline") or {}),
            log_path=d.get("log_path", "logs/hub_counter.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "sensors": self.sensors.to_dict(),
            "calibration": self.calibration.to_dict(),
            "counting": self.counting.to_dict(),
            "broadcast": self.broadcast.to_dict(),
            "web": self.web.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
