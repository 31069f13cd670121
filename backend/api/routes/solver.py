from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from schemas.scheduling import (
    MetricsResponse,
    PresetsResponse,
    ScheduleEvaluationRequest,
    ScheduleRequest,
    SolveResponse,
    ValidationResponse,
    ViabilityRequest,
    ViabilityResponse,
)
from services.scheduling_service import (
    metrics_for_flat_schedule,
    run_scheduling_pipeline,
    run_viability,
    validate_flat_schedule,
)
from solver.capacity_analyzer import DEFAULT_PRESET_ID, list_presets
from solver.csp_solver import SolverInvariantError


router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/presets", response_model=PresetsResponse)
def get_presets() -> PresetsResponse:
    return PresetsResponse(presets=list_presets(), default_preset_id=DEFAULT_PRESET_ID)


@router.post("/viability", response_model=ViabilityResponse)
def check_viability(payload: ViabilityRequest) -> ViabilityResponse:
    return ViabilityResponse.model_validate(run_viability(payload))


# Plain `def`: the search is CPU-bound, so Starlette runs it in the threadpool.
@router.post("/solve", response_model=SolveResponse)
def solve_schedule(payload: ScheduleRequest) -> SolveResponse:
    try:
        result = run_scheduling_pipeline(payload)
    except SolverInvariantError as exc:
        logger.exception("/api/solver/solve hit a solver invariant failure code=%s", exc.code)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "SOLVER_INTEGRITY_ERROR",
                "type": str(exc.code),
                "message": str(exc),
                "details": getattr(exc, "details", {}) or {},
            },
        )
    return SolveResponse.model_validate(result)


@router.post("/validate", response_model=ValidationResponse)
def validate_schedule(payload: ScheduleEvaluationRequest) -> ValidationResponse:
    return ValidationResponse.model_validate(validate_flat_schedule(payload))


@router.post("/metrics", response_model=MetricsResponse)
def schedule_metrics(payload: ScheduleEvaluationRequest) -> MetricsResponse:
    return MetricsResponse.model_validate(metrics_for_flat_schedule(payload))
