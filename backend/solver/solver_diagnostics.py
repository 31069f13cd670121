from __future__ import annotations

from enum import Enum
from math import ceil
from typing import Any, Iterable


class ProblemSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    ALERT = "ALERT"
    INFO = "INFO"


class ProblemCategory(str, Enum):
    CAPACITY = "CAPACITY"
    AVAILABILITY = "AVAILABILITY"
    BILOCATION = "BILOCATION"
    DISTRIBUTION = "DISTRIBUTION"


CLASS_NEAR_FULL_RATIO = 0.9
TEACHER_NEAR_FULL_RATIO = 0.8
MULTI_CLASS_DAILY_LOAD_RATIO = 0.6
FEW_DAYS_LIMIT = 3
FEW_DAYS_OCCUPANCY_RATIO = 0.5
BILOCATION_OCCUPANCY_RATIO = 0.7


def summarize_problems(problems: list[dict[str, Any]]) -> str:
    n = sum(1 for p in problems if p.get("severity") == ProblemSeverity.CRITICAL.value)
    if n <= 0:
        return "No blocking problems detected by viability checks."
    if n == 1:
        return "1 blocking problem detected."
    return f"{n} blocking problems detected."


def _problem(
    *,
    severity: ProblemSeverity,
    category: ProblemCategory,
    message: str,
    detail: str | None = None,
    **payload: Any,
) -> dict[str, Any]:
    return {"severity": severity.value, "category": category.value, "message": message, "detail": detail, **payload}


def _pct(part: float, whole: float) -> int:
    return round(part / whole * 100) if whole else 0


def _add_days_hint(missing: Iterable[str], count: int) -> str:
    names = list(missing)[: max(count, 0)]
    return f" [{', '.join(names)}]" if names else ""


def check_class_capacity(data: dict[str, Any]) -> list[dict[str, Any]]:
    problems: list[dict[str, Any]] = []
    slots = int(data["slots_per_class"])
    for grade, hours in data["lessons_per_class"].items():
        if hours > slots:
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.CAPACITY,
                    message=f'Class "{grade}" needs {hours} lessons/week, but only {slots} slots exist.',
                    detail=f"Excess of {hours - slots} lessons. Each class fits at most {slots} lessons with the current grid.",
                    grade=grade,
                )
            )
        elif hours > slots * CLASS_NEAR_FULL_RATIO:
            problems.append(
                _problem(
                    severity=ProblemSeverity.ALERT,
                    category=ProblemCategory.CAPACITY,
                    message=f'Class "{grade}" uses {_pct(hours, slots)}% of its capacity ({hours}/{slots} slots).',
                    detail="A nearly full grid is hard to distribute without conflicts.",
                    grade=grade,
                )
            )
    return problems


def check_teacher_capacity(data: dict[str, Any]) -> list[dict[str, Any]]:
    problems: list[dict[str, Any]] = []
    periods = int(data["periods_per_day"])
    for t in data["teachers"]:
        hours = int(t["hours"])
        if hours <= 0:
            continue
        slots = int(t["available_slots"])
        days = int(t["available_days"])
        n_classes = len(t["grades"])
        label = f'{t["name"]} ({t["subject"]})' if t["subject"] else t["name"]

        if hours > slots:
            days_needed = ceil(hours / periods) if periods else 0
            missing = days_needed - days
            hint = _add_days_hint(t["unavailable_days"], missing)
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.AVAILABILITY,
                    message=f"{label}: needs to teach {hours} lessons but has only {slots} available slots ({days} days).",
                    detail=f"FIX: add {max(missing, 1)} available day(s){hint}, OR remove {hours - slots} lessons.",
                    teacher=t["name"],
                )
            )
        elif n_classes >= 2 and days > 0 and hours / days > periods * MULTI_CLASS_DAILY_LOAD_RATIO:
            problems.append(
                _problem(
                    severity=ProblemSeverity.ALERT,
                    category=ProblemCategory.AVAILABILITY,
                    message=f"{label}: {n_classes} classes with ~{ceil(hours / days)} lessons/day, collisions are likely.",
                    detail="RECOMMENDATION: add available days to spread the lessons across classes.",
                    teacher=t["name"],
                )
            )
        elif hours > slots * TEACHER_NEAR_FULL_RATIO:
            problems.append(
                _problem(
                    severity=ProblemSeverity.ALERT,
                    category=ProblemCategory.AVAILABILITY,
                    message=f"{label}: {_pct(hours, slots)}% of available capacity used ({hours} lessons in {slots} slots).",
                    detail="High occupancy makes distribution harder. Consider adding one more available day.",
                    teacher=t["name"],
                )
            )
        elif n_classes >= 2 and days <= FEW_DAYS_LIMIT and hours > slots * FEW_DAYS_OCCUPANCY_RATIO:
            problems.append(
                _problem(
                    severity=ProblemSeverity.ALERT,
                    category=ProblemCategory.AVAILABILITY,
                    message=f"{label}: {n_classes} classes with only {days} available days, collisions are likely.",
                    detail="RECOMMENDATION: add 1-2 available days to spread the lessons across classes.",
                    teacher=t["name"],
                )
            )
    return problems


def check_distribution(data: dict[str, Any]) -> list[dict[str, Any]]:
    problems: list[dict[str, Any]] = []
    periods = int(data["periods_per_day"])
    for t in data["teachers"]:
        hours = int(t["hours"])
        if hours <= 0:
            continue
        days = int(t["available_days"])
        label = f'{t["name"]} ({t["subject"]})' if t["subject"] else t["name"]
        if days == 0:
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.DISTRIBUTION,
                    message=f"{label} has {hours} lessons but no available day.",
                    detail="Declare at least one available day for this teacher.",
                    teacher=t["name"],
                )
            )
            continue
        per_day = hours / days
        if per_day > periods:
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.DISTRIBUTION,
                    message=f"{label} would need {per_day:.1f} lessons/day, but a day has only {periods} periods.",
                    detail=f"With {days} available days and {hours} lessons the load cannot be distributed.",
                    teacher=t["name"],
                )
            )
    return problems


def check_bilocation(data: dict[str, Any]) -> list[dict[str, Any]]:
    problems: list[dict[str, Any]] = []
    periods = int(data["periods_per_day"])
    for t in data["teachers"]:
        n_classes = len(t["grades"])
        if n_classes < 2:
            continue
        total = int(t["hours"])
        slots = int(t["available_slots"])
        days = int(t["available_days"])
        label = f'{t["name"]} ({t["subject"]})' if t["subject"] else t["name"]

        if total > slots:
            days_needed = ceil(total / periods) if periods else 0
            missing = days_needed - days
            unavailable = list(t["unavailable_days"])
            if unavailable:
                detail = f"FIX: add {max(missing, 1)} day(s) such as {', '.join(unavailable[: min(max(missing, 1), 3)])}, OR reduce the load."
            else:
                detail = f"FIX: reduce the load by {total - slots} lessons, OR split it between more teachers."
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.BILOCATION,
                    message=f"{label}: teaches {n_classes} classes with {total} lessons in total, but has only {slots} slots.",
                    detail=detail,
                    teacher=t["name"],
                )
            )
            continue

        per_day = ceil(total / days) if days else 0
        if per_day > periods:
            problems.append(
                _problem(
                    severity=ProblemSeverity.CRITICAL,
                    category=ProblemCategory.BILOCATION,
                    message=f"{label}: needs {per_day} lessons/day across {n_classes} classes, but a day has only {periods} periods.",
                    detail="FIX: add available days, reduce the load, or split it between more teachers.",
                    teacher=t["name"],
                )
            )
        elif total > slots * BILOCATION_OCCUPANCY_RATIO:
            problems.append(
                _problem(
                    severity=ProblemSeverity.ALERT,
                    category=ProblemCategory.BILOCATION,
                    message=f"{label}: high occupancy ({_pct(total, slots)}%) across {n_classes} classes, collisions are likely.",
                    detail="RECOMMENDATION: add 1-2 available days to make distribution easier.",
                    teacher=t["name"],
                )
            )
    return problems


def run_viability_checks(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Arithmetic pre-flight checks over the capacity tables.

    Expected keys in `data`: periods_per_day, slots_per_class, lessons_per_class,
    and teachers (name, subject, hours, grades, available_days, available_slots,
    unavailable_days).
    """

    problems: list[dict[str, Any]] = []
    problems.extend(check_class_capacity(data))
    problems.extend(check_teacher_capacity(data))
    problems.extend(check_bilocation(data))
    problems.extend(check_distribution(data))
    return problems


def _critical_teachers(problems: list[dict[str, Any]], category: ProblemCategory, limit: int = 3) -> list[str]:
    names: list[str] = []
    for p in problems:
        if p["severity"] != ProblemSeverity.CRITICAL.value or p["category"] != category.value:
            continue
        name = p.get("teacher")
        if name and name not in names:
            names.append(name)
    return names[:limit]


def build_suggestions(
    problems: list[dict[str, Any]],
    *,
    needed_preset: dict[str, Any] | None,
    largest_preset: dict[str, Any],
) -> list[str]:
    critical = {p["category"] for p in problems if p["severity"] == ProblemSeverity.CRITICAL.value}
    suggestions: list[str] = []

    if ProblemCategory.CAPACITY.value in critical:
        if needed_preset is not None:
            suggestions.append(
                f'OPTION 1: switch to "{needed_preset["name"]}" ({needed_preset["lessons_per_day"]} periods/day) '
                f'to fit up to {needed_preset["weekly_lessons"]} lessons/week per class.'
            )
        else:
            suggestions.append(
                f"OPTION 1: the class load exceeds the largest supported grid ({largest_preset['weekly_lessons']} lessons). Remove subjects."
            )
        suggestions.append("OPTION 2: reduce the weekly hours of some subjects to fit the current grid.")

    if ProblemCategory.AVAILABILITY.value in critical:
        names = _critical_teachers(problems, ProblemCategory.AVAILABILITY)
        suggestions.append(f"TEACHERS WITH INSUFFICIENT AVAILABILITY: {', '.join(names)}.")
        suggestions.append("FIX: add available days to these teachers, OR reduce their lessons.")

    if ProblemCategory.BILOCATION.value in critical:
        names = _critical_teachers(problems, ProblemCategory.BILOCATION)
        suggestions.append(f"TEACHERS IN SEVERAL CLASSES: {', '.join(names)}.")
        suggestions.append("FIX: increase these teachers' availability so every class can be covered without collisions.")

    if ProblemCategory.DISTRIBUTION.value in critical:
        suggestions.append("DISTRIBUTION: some teachers need more lessons per day than a day holds. Add available days.")

    return suggestions
