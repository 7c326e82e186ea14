from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from .optimize import OptimizationResponse, OptimizeRequest


class JobRequest(OptimizeRequest):
    mode: Literal["simulation", "genetic"] = "simulation"


class JobResponse(BaseModel):
    job_id: str
    mode: str
    state: Literal["queued", "running", "completed", "failed", "canceled"]
    stage: str
    percent: float
    message: str | None = None
    created_at: datetime
    updated_at: datetime
    cancel_requested_at: datetime | None = None
    completed_at: datetime | None = None
    result: OptimizationResponse | None = None
