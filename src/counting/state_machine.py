"""
Per-lane detection state machine.

    IDLE ──(d < enter)──► PRESENT
    PRESENT ──(d > clear)──► LOCKOUT   (count += 1)
    LOCKOUT ──(now - start >= lockout)──► IDLE

The caller owns the clock and must not pass failed readings.
"""

from __future__ import annotations

from typing import Callable, Dict

from models.lane import Lane, LaneState


def _on_idle(lane: Lane, distance_mm: int, now_ms: int, lockout_ms: int) -> bool:
    if distance_mm < lane.enter_threshold_mm:
        lane.state = LaneState.PRESENT
    return False


def _on_present(lane: Lane, distance_mm: int, now_ms: int, lockout_ms: int) -> bool:
    if distance_mm > lane.clear_threshold_mm:
        lane.count += 1
        lane.lockout_started_ms = now_ms
        lane.state = LaneState.LOCKOUT
        return True
    return False


def _on_lockout(lane: Lane, distance_mm: int, now_ms: int, lockout_ms: int) -> bool:
    # The re-arming reading is not checked against the enter threshold.
    if now_ms - lane.lockout_started_ms >= lockout_ms:
        lane.state = LaneState.IDLE
    return False


_TRANSITIONS: Dict[LaneState, Callable[[Lane, int, int, int], bool]] = {
    LaneState.IDLE: _on_idle,
    LaneState.PRESENT: _on_present,
    LaneState.LOCKOUT: _on_lockout,
}


def process_lane_reading(lane: Lane, distance_mm: int, now_ms: int, lockout_ms: int) -> bool:
    """
    Advance a lane by one distance reading.

    Args:
        lane: Lane to update in place.
        distance_mm: Valid distance reading.
        now_ms: Monotonic timestamp of the reading.
        lockout_ms: Dead time after a count before the lane re-arms.

    Returns:
        True if an object was counted on this call.
    """
    if not lane.healthy:
        return False

    lane.last_distance_mm = distance_mm
    return _TRANSITIONS[lane.state](lane, distance_mm, now_ms, lockout_ms)
