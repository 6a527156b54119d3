"""
Health summary served by /api/health.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional


@dataclass
class Health:
    """
    Host and deployment facts for remote troubleshooting.

    Attributes:
        timestamp: When the summary was taken (unix seconds).
        platform: platform.platform() of the host.
        python: Interpreter version.
        cwd: Working directory the counter was started from.
        log_path: Configured log file.
        sensor_backend: simulated or replay.
        num_lanes: Configured lane count.
    """
    timestamp: float
    platform: str
    python: str
    cwd: str
    log_path: Optional[str] = None
    sensor_backend: Optional[str] = None
    num_lanes: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Health":
        """Adapter: unknown keys are ignored, missing optional keys default to None."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
