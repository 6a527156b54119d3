"""
Replay sensor: plays back recorded per-lane readings.

Trace files are YAML:

    lanes:
      1: [500, 498, 400, 380, 460, null, 501]
      2: [510, 509, 512]

``null`` marks a failed read (timeout).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import yaml

from .base import DistanceSensor, SensorConfig, SensorError


@dataclass
class ReplaySensorSettings(SensorConfig):
    """
    Attributes:
        readings: Readings to play, one per read() call.
    """
    readings: List[Optional[int]] = field(default_factory=list)


def load_trace(path: str) -> Dict[int, List[Optional[int]]]:
    """
    Load a YAML trace file into {lane_id: readings}.

    Raises:
        SensorError: If the file is missing or malformed.
    """
    if not os.path.exists(path):
        raise SensorError(f"Trace file not found: {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    lanes = data.get("lanes")
    if not isinstance(lanes, dict):
        raise SensorError(f"Trace file {path} has no 'lanes' mapping")

    trace: Dict[int, List[Optional[int]]] = {}
    for lane_id, readings in lanes.items():
        trace[int(lane_id)] = [None if r is None else int(r) for r in (readings or [])]
    return trace


class ReplaySensor(DistanceSensor):
    """Finite sensor that returns recorded readings in order."""

    def __init__(self, config: ReplaySensorSettings):
        super().__init__(config)
        self._readings = list(config.readings)
        self._pos = 0

    @property
    def finite(self) -> bool:
        return True

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._readings)

    @property
    def remaining(self) -> int:
        return max(0, len(self._readings) - self._pos)

    def open(self) -> None:
        self._pos = 0
        self._reads = 0
        self._failures = 0
        self._is_open = True
        logging.info(f"Replay sensor opened: lane={self.lane_id}, readings={len(self._readings)}")

    def read(self) -> Optional[int]:
        if not self._is_open or self.exhausted:
            return self._record(None)
        distance = self._readings[self._pos]
        self._pos += 1
        return self._record(distance)

    def close(self) -> None:
        self._is_open = False
