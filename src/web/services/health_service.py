from __future__ import annotations

import os
import platform
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.health import Health

# sysfs thermal sources on Raspberry Pi / generic Linux, in preference order
THERMAL_PATHS = (
    "/sys/class/thermal/thermal_zone0/temp",
    "/sys/class/hwmon/hwmon0/temp1_input",
)


@dataclass
class HealthService:
    cfg: Dict[str, Any]

    def get_health_summary(self) -> Dict[str, Any]:
        sensors = self.cfg.get("sensors") or {}
        summary = Health(
            timestamp=time.time(),
            platform=platform.platform(),
            python=platform.python_version(),
            cwd=os.getcwd(),
            log_path=self.cfg.get("log_path"),
            sensor_backend=sensors.get("backend"),
            num_lanes=sensors.get("num_lanes"),
        )
        return summary.to_dict()

    @staticmethod
    def read_cpu_temp_c() -> Optional[float]:
        """CPU temperature in Celsius, or None if no thermal source is readable."""
        for path in THERMAL_PATHS:
            try:
                with open(path) as fh:
                    raw = fh.read().strip()
                value = float(raw)
            except (OSError, ValueError):
                continue
            # millidegrees unless the source already reports degrees
            return value / 1000.0 if value > 200 else value
        return None
