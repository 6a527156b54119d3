"""
DistanceSensor interface for pluggable per-lane distance sources.

This defines the contract that every distance source must implement so the
host loop can drive the counting core from any input:
- simulated lanes (development, demos)
- recorded traces (replay, regression checks)
- hardware time-of-flight sensors
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional


class SensorError(RuntimeError):
    """Raised when a sensor cannot be initialised."""


@dataclass
class SensorConfig:
    """
    Base configuration for distance sensors.

    Attributes:
        lane_id: Lane this sensor watches (1-based).
        timeout_ms: Per-read timeout; a read that takes longer is a failure.
        metadata: Additional source-specific configuration.
    """
    lane_id: int = 1
    timeout_ms: int = 50
    metadata: Dict[str, Any] = field(default_factory=dict)


class DistanceSensor(ABC):
    """
    Abstract base class for distance sensors.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialise the sensor
        3. Call read() repeatedly to get distances in mm
        4. Call close() to release resources

    Can also be used as a context manager:
        with SimulatedSensor(config) as sensor:
            for distance in sensor:
                process(distance)
    """

    def __init__(self, config: SensorConfig):
        self._config = config
        self._is_open = False
        self._reads = 0
        self._failures = 0

    @property
    def lane_id(self) -> int:
        return self._config.lane_id

    @property
    def is_open(self) -> bool:
        """Whether the sensor is open and ready to read."""
        return self._is_open

    @property
    def reads(self) -> int:
        """Number of read attempts since open."""
        return self._reads

    @property
    def failures(self) -> int:
        """Number of failed reads since open."""
        return self._failures

    @property
    def exhausted(self) -> bool:
        """True once a finite source has nothing left to play."""
        return False

    @property
    def finite(self) -> bool:
        """True for sources that play a fixed recording rather than a live lane."""
        return False

    @abstractmethod
    def open(self) -> None:
        """
        Initialise the sensor.

        Raises:
            SensorError: If the sensor cannot be initialised.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[int]:
        """
        Read one distance.

        Returns:
            Distance in millimetres, or None if the read timed out or failed.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the sensor. Safe to call multiple times."""
        pass

    def _record(self, distance: Optional[int]) -> Optional[int]:
        self._reads += 1
        if distance is None:
            self._failures += 1
        return distance

    def __enter__(self) -> "DistanceSensor":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Optional[int]]:
        """Yield readings until the source is exhausted."""
        if not self._is_open:
            raise SensorError("Sensor must be open before iterating")

        while not self.exhausted:
            yield self.read()
