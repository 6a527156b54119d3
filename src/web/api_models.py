from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class LaneStatus(BaseModel):
    lane_id: int
    count: int
    healthy: bool
    state: str
    baseline_mm: int
    last_distance_mm: int


class CountsResponse(BaseModel):
    lanes: List[LaneStatus]
    total: int
    timestamp_ms: int


class CommandResponse(BaseModel):
    ok: bool
    command: str = Field(..., description="reset|recalibrate")
    lane_id: Optional[int] = None
    counts: Optional[CountsResponse] = None


class StatusResponse(BaseModel):
    """
    Compact status for dashboard polling.
    """
    running: bool = Field(..., description="True if the host loop is cycling")
    healthy_lanes: List[int] = Field(default_factory=list)
    unhealthy_lanes: List[int] = Field(default_factory=list)
    total: int = Field(0, description="Aggregate count")
    cycles: int = Field(0, description="Host loop cycles since start")
    last_cycle_age_s: Optional[float] = Field(None, description="Seconds since last cycle")
    uptime_seconds: Optional[int] = None
    cpu_temp_c: Optional[float] = Field(None, description="CPU temperature in Celsius")
    skipped_reads: Dict[int, int] = Field(default_factory=dict, description="Skipped reads per lane")
    warnings: List[str] = Field(default_factory=list, description="Active warnings")
