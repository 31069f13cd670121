from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable

from core.config import settings
from schemas.scheduling import ScheduleEvaluationRequest, ScheduleRequest, ViabilityRequest
from services.schedule_validation import validate_schedule
from solver.adapter import flat_to_lessons, lessons_to_flat, to_nested_schedule
from solver.capacity_analyzer import analyze_viability, format_viability_response
from solver.csp_solver import Solver
from solver.input_builder import build_schedule_input
from solver.metrics import calculate_metrics


logger = logging.getLogger(__name__)


def _viability_payload(analysis: dict[str, Any]) -> dict[str, Any]:
    payload = dict(analysis)
    payload["summary"] = None if analysis["viable"] else format_viability_response(analysis)
    return payload


def run_viability(request: ViabilityRequest | ScheduleRequest) -> dict[str, Any]:
    schedule_input = build_schedule_input(request.teachers, request.time_slots, request.days)
    return _viability_payload(analyze_viability(schedule_input))


def run_scheduling_pipeline(
    request: ScheduleRequest,
    *,
    rng: random.Random | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, Any]:
    """Builder -> viability -> solver -> validator -> metrics for one request.

    CRITICAL viability problems stop the pipeline (status FAILED_VIABILITY)
    unless `request.force` is set or blocking is disabled in settings.
    """

    schedule_input = build_schedule_input(request.teachers, request.time_slots, request.days)
    viability = _viability_payload(analyze_viability(schedule_input))

    if not viability["viable"]:
        if settings.viability_block_on_critical and not request.force:
            logger.info("Solve refused: input failed viability problems=%s", len(viability["problems"]))
            return {"status": "FAILED_VIABILITY", "viability": viability}
        logger.warning("Solving despite critical viability problems force=%s", request.force)

    solution = Solver(
        schedule_input,
        time_limit_seconds=request.max_time_seconds,
        seed=request.seed,
        shuffle=request.shuffle,
        rng=rng,
        clock=clock,
    ).solve()

    if solution.strategy == "greedy_fallback":
        logger.warning(
            "Greedy fallback used conflicts=%s timed_out=%s",
            len(solution.conflicts),
            solution.stats.get("timed_out"),
        )

    validation = validate_schedule(schedule_input, solution.lessons)
    metrics = calculate_metrics(schedule_input, solution.lessons)

    return {
        "status": "VALID" if validation["valid"] else "INVALID",
        "viability": viability,
        "strategy": solution.strategy,
        "solver_state": solution.state,
        "score": solution.score,
        "lessons": lessons_to_flat(schedule_input, solution.lessons),
        "conflicts": [{"type": c.type.value, "message": c.message} for c in solution.conflicts],
        "schedule": to_nested_schedule(schedule_input, solution.lessons),
        "validation": validation,
        "metrics": metrics,
        "solver_stats": solution.stats,
    }


def validate_flat_schedule(request: ScheduleEvaluationRequest) -> dict[str, Any]:
    schedule_input = build_schedule_input(request.teachers, request.time_slots, request.days)
    lessons = flat_to_lessons(schedule_input, request.schedule)
    return validate_schedule(schedule_input, lessons)


def metrics_for_flat_schedule(request: ScheduleEvaluationRequest) -> dict[str, Any]:
    schedule_input = build_schedule_input(request.teachers, request.time_slots, request.days)
    lessons = flat_to_lessons(schedule_input, request.schedule)
    return calculate_metrics(schedule_input, lessons)
