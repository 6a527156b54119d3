"""
Detection threshold derivation.

A lane is considered occupied when the measured distance drops below
``baseline - detection_delta`` and clear again once it rises above that
value plus a hysteresis band.
"""

from __future__ import annotations

from typing import NamedTuple

from models.lane import Lane


class Thresholds(NamedTuple):
    enter_mm: int
    clear_mm: int


def calculate_thresholds(baseline_mm: int, detection_delta_mm: int, clear_hysteresis_mm: int) -> Thresholds:
    """
    Derive enter/clear thresholds from an empty-lane baseline.

    Args:
        baseline_mm: Calibrated empty-lane distance.
        detection_delta_mm: Margin below baseline that means "object present".
        clear_hysteresis_mm: Band above the enter threshold before "clear".

    Returns:
        Thresholds(enter_mm, clear_mm).
    """
    enter_mm = int(baseline_mm) - int(detection_delta_mm)
    return Thresholds(enter_mm=enter_mm, clear_mm=enter_mm + int(clear_hysteresis_mm))


def apply_thresholds(lane: Lane, baseline_mm: int, detection_delta_mm: int, clear_hysteresis_mm: int) -> Thresholds:
    """Store the baseline and derived thresholds on a lane."""
    thresholds = calculate_thresholds(baseline_mm, detection_delta_mm, clear_hysteresis_mm)
    lane.baseline_mm = int(baseline_mm)
    lane.enter_threshold_mm = thresholds.enter_mm
    lane.clear_threshold_mm = thresholds.clear_mm
    return thresholds
