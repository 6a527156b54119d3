from __future__ import annotations

import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException

from models.snapshot import CountsSnapshot
from ..api_models import CommandResponse, CountsResponse, StatusResponse
from ..services.health_service import HealthService
from ..state import state

router = APIRouter()


def _require_engine():
    if state.engine is None:
        raise HTTPException(status_code=503, detail="Counter not running")
    return state.engine


def _counts_response(snapshot: CountsSnapshot) -> CountsResponse:
    return CountsResponse(**snapshot.to_dict())


def _compute_warnings(
    unhealthy_lanes: List[int],
    last_cycle_age_s: Optional[float],
    cpu_temp_c: Optional[float],
) -> List[str]:
    """
    Compute warning flags for the status endpoint.

    Thresholds:
    - lane_<n>_offline: lane n is unhealthy
    - loop_stale: last_cycle_age_s > 2
    - loop_stopped: no cycle yet, or last_cycle_age_s > 10
    - temp_high: cpu_temp_c > 80
    """
    warnings = [f"lane_{lane_id}_offline" for lane_id in unhealthy_lanes]

    if last_cycle_age_s is None or last_cycle_age_s > 10:
        warnings.append("loop_stopped")
    elif last_cycle_age_s > 2:
        warnings.append("loop_stale")

    if cpu_temp_c is not None and cpu_temp_c > 80:
        warnings.append("temp_high")

    return warnings


@router.get("/health")
def health():
    cfg = state.get_config_copy() or {}
    return HealthService(cfg=cfg).get_health_summary()


@router.get("/counts", response_model=CountsResponse)
def counts():
    engine = _require_engine()
    return _counts_response(engine.aggregator.snapshot(engine.ctx.clock()))


@router.post("/reset", response_model=CommandResponse)
def reset():
    engine = _require_engine()
    snapshot = engine.request_reset()
    return CommandResponse(ok=True, command="reset", counts=_counts_response(snapshot))


@router.post("/lanes/{lane_id}/recalibrate", response_model=CommandResponse)
def recalibrate(lane_id: int):
    """Queue a lane for recalibration; it runs on the next host loop cycle."""
    engine = _require_engine()
    try:
        engine.request_recalibration(lane_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown lane {lane_id}")
    return CommandResponse(ok=True, command="recalibrate", lane_id=lane_id)


@router.get("/status", response_model=StatusResponse)
def status():
    """
    Compact status for dashboard polling.

    - running: host loop cycled within the last 10s
    - healthy_lanes / unhealthy_lanes: lane ids by sensor health
    - warnings: lane_<n>_offline, loop_stale, loop_stopped, temp_high
    """
    now = time.time()
    sys_stats = state.get_system_stats_copy()
    last_cycle_ts = sys_stats.get("last_cycle_ts")
    last_cycle_age_s = (now - last_cycle_ts) if last_cycle_ts else None
    uptime = state.uptime_seconds()

    snapshot = state.get_snapshot()
    healthy_lanes: List[int] = []
    unhealthy_lanes: List[int] = []
    total = 0
    skipped = {}
    if snapshot is not None:
        healthy_lanes = [lane.lane_id for lane in snapshot.lanes if lane.healthy]
        unhealthy_lanes = snapshot.unhealthy_lane_ids
        total = snapshot.total
        skipped = dict(state.engine.stats.skipped_by_lane)

    cpu_temp_c = HealthService.read_cpu_temp_c()
    warnings = _compute_warnings(unhealthy_lanes, last_cycle_age_s, cpu_temp_c)

    return StatusResponse(
        running="loop_stopped" not in warnings,
        healthy_lanes=healthy_lanes,
        unhealthy_lanes=unhealthy_lanes,
        total=total,
        cycles=int(sys_stats.get("cycles") or 0),
        last_cycle_age_s=last_cycle_age_s,
        uptime_seconds=int(uptime) if uptime is not None else None,
        cpu_temp_c=cpu_temp_c,
        skipped_reads=skipped,
        warnings=warnings,
    )
