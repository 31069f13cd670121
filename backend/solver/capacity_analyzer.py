from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from solver.domain import ScheduleInput
from solver.solver_diagnostics import ProblemSeverity, build_suggestions, run_viability_checks, summarize_problems


logger = logging.getLogger(__name__)


def _preset(preset_id: str, name: str, description: str, slots: list[str]) -> dict[str, Any]:
    return {
        "id": preset_id,
        "name": name,
        "description": description,
        "weekly_lessons": len(slots) * 5,
        "lessons_per_day": len(slots),
        "slots": slots,
    }


_MORNING = ["07:15-08:05", "08:05-08:55", "09:10-10:00", "10:00-10:50", "11:05-11:55", "11:55-12:45"]
_AFTERNOON = ["14:00-14:50", "14:50-15:40", "15:55-16:45", "16:45-17:35"]

# Standard five-day grids, smallest first.
PRESETS: tuple[dict[str, Any], ...] = (
    _preset("standard-30", "30 lessons/week (6 per day)", "Standard grid, 6 lessons a day over 5 days", list(_MORNING)),
    _preset("extended-35", "35 lessons/week (7 per day)", "Full morning plus one extra period", _MORNING + ["12:45-13:35"]),
    _preset("full-day-40", "40 lessons/week (8 per day)", "Basic full-day grid", _MORNING + _AFTERNOON[:2]),
    _preset("full-day-45", "45 lessons/week (9 per day)", "Extended full-day grid", _MORNING + _AFTERNOON[:3]),
    _preset("full-day-50", "50 lessons/week (10 per day)", "Complete full-day grid", _MORNING + _AFTERNOON),
)

DEFAULT_PRESET_ID = PRESETS[0]["id"]


def list_presets() -> list[dict[str, Any]]:
    return [dict(p, slots=list(p["slots"])) for p in PRESETS]


def preset_for_lessons(weekly_lessons: int) -> dict[str, Any] | None:
    for p in PRESETS:
        if p["weekly_lessons"] >= int(weekly_lessons):
            return dict(p, slots=list(p["slots"]))
    return None


def build_capacity_data(schedule_input: ScheduleInput) -> dict[str, Any]:
    periods = schedule_input.periods_per_day
    days = schedule_input.days

    lessons_per_class: dict[str, int] = {g: 0 for g in schedule_input.grades}
    hours_by_teacher: dict[str, int] = defaultdict(int)
    grades_by_teacher: dict[str, set[str]] = defaultdict(set)
    for a in schedule_input.assignments:
        lessons_per_class[a.grade] += a.hours_per_week
        hours_by_teacher[a.teacher_id] += a.hours_per_week
        grades_by_teacher[a.teacher_id].add(a.grade)

    teachers: list[dict[str, Any]] = []
    for tid, spec in schedule_input.teachers.items():
        usable = {day: spec.availability.usable_periods(day, periods) for day in days}
        teachers.append(
            {
                "id": tid,
                "name": spec.name,
                "subject": spec.subject,
                "hours": hours_by_teacher.get(tid, 0),
                "grades": sorted(grades_by_teacher.get(tid, set())),
                "available_days": sum(1 for n in usable.values() if n > 0),
                "available_slots": sum(usable.values()),
                "unavailable_days": [schedule_input.day_label(d) for d, n in usable.items() if n == 0],
            }
        )

    return {
        "periods_per_day": periods,
        "days": len(days),
        "slots_per_class": periods * len(days),
        "lessons_per_class": lessons_per_class,
        "teachers": teachers,
    }


def _busiest(loads: dict[str, int]) -> dict[str, Any]:
    best = {"name": "", "lessons": 0}
    for name, lessons in loads.items():
        if lessons > best["lessons"]:
            best = {"name": name, "lessons": lessons}
    return best


def analyze_viability(schedule_input: ScheduleInput) -> dict[str, Any]:
    """Pre-flight arithmetic feasibility analysis.

    `viable` is False whenever any CRITICAL problem is found. Nothing here runs a
    search; a viable verdict is necessary, not sufficient, for a clean schedule.
    """

    data = build_capacity_data(schedule_input)
    problems = run_viability_checks(data)

    lessons_per_class = data["lessons_per_class"]
    max_class_load = max(lessons_per_class.values(), default=0)
    recommended = preset_for_lessons(max_class_load)

    suggestions = build_suggestions(problems, needed_preset=recommended, largest_preset=PRESETS[-1])

    teacher_loads: dict[str, int] = {}
    for t in data["teachers"]:
        teacher_loads[t["name"]] = teacher_loads.get(t["name"], 0) + int(t["hours"])

    slots_per_class = data["slots_per_class"]
    busiest_class = _busiest(lessons_per_class)
    statistics = {
        "total_lessons": schedule_input.total_lessons,
        "total_classes": len(lessons_per_class),
        "slots_per_class": slots_per_class,
        "lessons_per_class": dict(lessons_per_class),
        "peak_occupancy_percent": round(busiest_class["lessons"] / slots_per_class * 100, 1) if slots_per_class else 0.0,
        "busiest_teacher": _busiest(teacher_loads),
        "busiest_class": busiest_class,
    }

    viable = not any(p["severity"] == ProblemSeverity.CRITICAL.value for p in problems)
    logger.info(
        "Viability analysis viable=%s problems=%s summary=%r",
        viable,
        len(problems),
        summarize_problems(problems),
    )
    return {
        "viable": viable,
        "problems": problems,
        "statistics": statistics,
        "suggestions": suggestions,
        "recommended_preset": recommended,
    }


def format_viability_response(analysis: dict[str, Any]) -> dict[str, Any]:
    """Compact payload for clients that only show the blocking problems."""

    critical = [p for p in analysis["problems"] if p["severity"] == ProblemSeverity.CRITICAL.value]
    stats = analysis["statistics"]
    return {
        "error": f"Cannot build the timetable: {len(critical)} critical problem(s) detected.",
        "details": [p["message"] for p in critical],
        "suggestion": " ".join(analysis["suggestions"]),
        "statistics": {
            "total_lessons": stats["total_lessons"],
            "total_classes": stats["total_classes"],
            "slots_per_class": stats["slots_per_class"],
            "peak_occupancy_percent": round(stats["peak_occupancy_percent"]),
            "busiest_class": stats["busiest_class"],
        },
        "recommended_preset": analysis["recommended_preset"],
        "presets": list_presets(),
    }
