"""REST API for the nexusopt engine."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from nexusopt.api.jobs import Job, JobRegistry
from nexusopt.api.schemas import JobRequest, JobResponse, OptimizationResponse, OptimizeRequest
from nexusopt.config import OptimizerConfig
from nexusopt.optimizer import (
    EngineStateError,
    InvalidInputError,
    LineupOptimizer,
    OptimizationCancelled,
    OptimizationResult,
    OptimizerError,
)


logger = logging.getLogger("uvicorn.error")


def _config_from_request(request: OptimizeRequest) -> OptimizerConfig:
    try:
        return OptimizerConfig.from_env(**(request.config or {}))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid config: {exc}") from exc


def _result_response(result: OptimizationResult) -> OptimizationResponse:
    return OptimizationResponse.model_validate(result.to_payload())


def job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        job_id=job.job_id,
        mode=job.mode,
        state=job.state,
        stage=job.stage,
        percent=round(job.percent, 1),
        message=job.message,
        created_at=job.created_at,
        updated_at=job.updated_at,
        cancel_requested_at=job.cancel_requested_at,
        completed_at=job.completed_at,
        result=_result_response(job.result) if job.result is not None else None,
    )


def create_app() -> FastAPI:
    app = FastAPI(title="nexusopt optimizer")
    registry = JobRegistry()
    app.state.jobs = registry

    def run_sync(request: OptimizeRequest, mode: str) -> OptimizationResponse:
        config = _config_from_request(request)
        optimizer = LineupOptimizer(config)
        try:
            optimizer.initialize(request.players, request.exposure_settings, request.seed_lineups)
            if mode == "genetic":
                result = optimizer.run_genetic(request.lineups)
            else:
                result = optimizer.run_simulation(request.lineups)
        except (InvalidInputError, EngineStateError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except OptimizationCancelled as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except OptimizerError as exc:
            logger.error("%s optimization failed: %s", mode.capitalize(), exc)
            raise HTTPException(status_code=500, detail=f"Optimization failed: {exc}") from exc
        logger.info(
            "%s optimization returned %s/%s lineups",
            mode.capitalize(),
            result.summary.generated,
            request.lineups,
        )
        return _result_response(result)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/optimize/simulation", response_model=OptimizationResponse)
    def optimize_simulation(request: OptimizeRequest):
        return run_sync(request, "simulation")

    @app.post("/optimize/genetic", response_model=OptimizationResponse)
    def optimize_genetic(request: OptimizeRequest):
        return run_sync(request, "genetic")

    @app.post("/jobs", response_model=JobResponse, status_code=202)
    async def create_job(request: JobRequest):
        config = _config_from_request(request)

        def build(on_progress: Callable[[float, str], None], on_status: Callable[[str], None]) -> LineupOptimizer:
            return LineupOptimizer(config, on_progress=on_progress, on_status=on_status)

        def prepare(optimizer: LineupOptimizer) -> None:
            optimizer.initialize(request.players, request.exposure_settings, request.seed_lineups)

        job = registry.submit(request.mode, request.lineups, build, prepare)
        return job_to_response(job)

    @app.get("/jobs")
    async def list_jobs() -> list[dict[str, Any]]:
        return [
            job_to_response(job).model_dump(mode="json", exclude={"result"}) for job in registry.list_jobs()
        ]

    def _fetch_job_or_404(job_id: str) -> Job:
        job: Optional[Job] = registry.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job

    @app.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(job_id: str):
        return job_to_response(_fetch_job_or_404(job_id))

    @app.post("/jobs/{job_id}/cancel", response_model=JobResponse)
    async def cancel_job(job_id: str):
        job = registry.cancel(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job_to_response(job)

    return app


def serve() -> None:
    """Run the API with uvicorn; host and port come from NEXUSOPT_HOST and NEXUSOPT_PORT."""

    uvicorn.run(
        create_app(),
        host=os.getenv("NEXUSOPT_HOST", "127.0.0.1"),
        port=int(os.getenv("NEXUSOPT_PORT", "8000")),
    )


__all__ = ["create_app", "job_to_response", "serve"]
