"""Pydantic models for API I/O."""

from .job import JobRequest, JobResponse
from .optimize import OptimizationResponse, OptimizeRequest

__all__ = [
    "JobRequest",
    "JobResponse",
    "OptimizationResponse",
    "OptimizeRequest",
]
