from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Sequence

from solver.domain import Lesson, ScheduleInput


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationConflict:
    conflict_type: str
    message: str
    severity: str = "CRITICAL"
    teacher: str | None = None
    grade: str | None = None
    day: str | None = None
    time_slot: str | None = None
    details: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["details"] = dict(self.details or {})
        return out


def _where(schedule_input: ScheduleInput, day: str, period: int) -> tuple[str, str]:
    return schedule_input.day_label(day), schedule_input.period_label(period)


def _slot_key(schedule_input: ScheduleInput, day: str, period: int) -> tuple[int, int]:
    try:
        return schedule_input.days.index(day), int(period)
    except ValueError:
        return len(schedule_input.days), int(period)


def check_counts(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> list[ValidationConflict]:
    realized: dict[tuple[str, str], int] = defaultdict(int)
    for lesson in lessons:
        realized[(lesson.teacher_id, lesson.grade)] += 1

    conflicts: list[ValidationConflict] = []
    declared = sorted(
        schedule_input.assignments,
        key=lambda a: (schedule_input.teacher_name(a.teacher_id), a.teacher_id, a.grade),
    )
    for a in declared:
        actual = realized.get((a.teacher_id, a.grade), 0)
        if actual == a.hours_per_week:
            continue
        name = schedule_input.teacher_name(a.teacher_id)
        diff = actual - a.hours_per_week
        conflicts.append(
            ValidationConflict(
                conflict_type="COUNT_MISMATCH",
                message=(
                    f"Wrong lesson count: {name} in class {a.grade} has {actual} lessons, "
                    f"expected {a.hours_per_week} (difference {diff:+d})."
                ),
                teacher=name,
                grade=a.grade,
                details={"actual": actual, "expected": a.hours_per_week, "difference": diff},
            )
        )

    declared_pairs = {(a.teacher_id, a.grade) for a in schedule_input.assignments}
    undeclared = sorted(
        (pair for pair in realized if pair not in declared_pairs),
        key=lambda p: (schedule_input.teacher_name(p[0]), p[0], p[1]),
    )
    for tid, grade in undeclared:
        name = schedule_input.teacher_name(tid)
        conflicts.append(
            ValidationConflict(
                conflict_type="UNDECLARED_PAIR",
                message=(
                    f"Undeclared assignment: {name} has {realized[(tid, grade)]} lessons in class {grade}, "
                    f"which is not among the teacher's classes (expected 0)."
                ),
                teacher=name,
                grade=grade,
                details={"actual": realized[(tid, grade)], "expected": 0, "difference": realized[(tid, grade)]},
            )
        )
    return conflicts


def check_availability(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> list[ValidationConflict]:
    conflicts: list[ValidationConflict] = []
    ordered = sorted(
        lessons,
        key=lambda l: (_slot_key(schedule_input, l.day, l.period), schedule_input.teacher_name(l.teacher_id), l.grade),
    )
    for lesson in ordered:
        teacher = schedule_input.teachers.get(lesson.teacher_id)
        if teacher is None:
            continue
        availability = teacher.availability
        if availability.allows(lesson.day, lesson.period):
            continue
        day_label, slot_label = _where(schedule_input, lesson.day, lesson.period)
        if lesson.day in availability.granular:
            reason = f"period {slot_label} is not marked available on {day_label}"
        else:
            reason = f"{day_label} is not one of the teacher's available days"
        conflicts.append(
            ValidationConflict(
                conflict_type="TEACHER_UNAVAILABLE",
                message=f"Availability violated: {teacher.name} teaches class {lesson.grade} on {day_label} at {slot_label}, but {reason}.",
                teacher=teacher.name,
                grade=lesson.grade,
                day=day_label,
                time_slot=slot_label,
                details={"period": int(lesson.period)},
            )
        )
    return conflicts


def check_teacher_collisions(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> list[ValidationConflict]:
    groups: dict[tuple[str, str, int], set[str]] = defaultdict(set)
    for lesson in lessons:
        groups[(lesson.teacher_id, lesson.day, int(lesson.period))].add(lesson.grade)

    conflicts: list[ValidationConflict] = []
    keys = sorted(
        (k for k, grades in groups.items() if len(grades) > 1),
        key=lambda k: (_slot_key(schedule_input, k[1], k[2]), schedule_input.teacher_name(k[0]), k[0]),
    )
    for tid, day, period in keys:
        grades = sorted(groups[(tid, day, period)])
        name = schedule_input.teacher_name(tid)
        day_label, slot_label = _where(schedule_input, day, period)
        conflicts.append(
            ValidationConflict(
                conflict_type="DOUBLE_BOOKING",
                message=f"Double booking: {name} is in classes {', '.join(grades)} at the same time ({day_label} {slot_label}).",
                teacher=name,
                day=day_label,
                time_slot=slot_label,
                details={"grades": grades, "period": int(period)},
            )
        )
    return conflicts


def check_class_collisions(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> list[ValidationConflict]:
    groups: dict[tuple[str, str, int], list[Lesson]] = defaultdict(list)
    for lesson in lessons:
        groups[(lesson.grade, lesson.day, int(lesson.period))].append(lesson)

    conflicts: list[ValidationConflict] = []
    keys = sorted(
        (k for k, items in groups.items() if len(items) > 1),
        key=lambda k: (_slot_key(schedule_input, k[1], k[2]), k[0]),
    )
    for grade, day, period in keys:
        items = sorted(groups[(grade, day, period)], key=lambda l: (schedule_input.teacher_name(l.teacher_id), l.subject))
        who = [f"{schedule_input.teacher_name(l.teacher_id)} ({l.subject})" if l.subject else schedule_input.teacher_name(l.teacher_id) for l in items]
        day_label, slot_label = _where(schedule_input, day, period)
        conflicts.append(
            ValidationConflict(
                conflict_type="CLASS_OVERLAP",
                message=f"Class overlap: class {grade} has {len(items)} lessons on {day_label} at {slot_label}: {', '.join(who)}.",
                grade=grade,
                day=day_label,
                time_slot=slot_label,
                details={"lessons": who, "period": int(period)},
            )
        )
    return conflicts


def check_coverage(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> tuple[list[str], list[str]]:
    """Non-blocking coverage findings.

    Returns (warnings, classes_without_lessons).
    """

    taught: set[tuple[str, str]] = {(l.grade, l.subject) for l in lessons}
    grades_with_lessons = {l.grade for l in lessons}

    warnings: list[str] = []
    declared_subjects: dict[str, set[str]] = defaultdict(set)
    for a in schedule_input.assignments:
        declared_subjects[a.grade].add(a.subject)

    without = sorted(g for g in declared_subjects if g not in grades_with_lessons)
    for grade in without:
        warnings.append(f"Class {grade} has no lessons in the timetable.")
    for grade in sorted(declared_subjects):
        if grade in grades_with_lessons:
            for subject in sorted(declared_subjects[grade]):
                if subject and (grade, subject) not in taught:
                    warnings.append(f"Class {grade} has no {subject} lessons.")
    return warnings, without


def validate_schedule(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> dict[str, Any]:
    """Re-certify a realized schedule against the declared input.

    Pure: the same input always yields the same result, whatever the order of
    `lessons`.
    """

    conflicts: list[ValidationConflict] = []
    conflicts.extend(check_counts(schedule_input, lessons))
    conflicts.extend(check_availability(schedule_input, lessons))
    conflicts.extend(check_teacher_collisions(schedule_input, lessons))
    conflicts.extend(check_class_collisions(schedule_input, lessons))

    warnings, without = check_coverage(schedule_input, lessons)

    teachers_with_errors = {c.teacher for c in conflicts if c.teacher}
    classes_with_errors: set[str] = set()
    for c in conflicts:
        if c.grade:
            classes_with_errors.add(c.grade)
        for g in (c.details or {}).get("grades", []):
            classes_with_errors.add(g)

    result: dict[str, Any] = {
        "valid": not conflicts,
        "errors": [c.message for c in conflicts],
        "conflicts": [c.as_dict() for c in conflicts],
        "warnings": warnings,
        "statistics": {
            "total_generated": len(lessons),
            "total_expected": schedule_input.total_lessons,
            "teachers_with_errors": sorted(teachers_with_errors),
            "classes_with_errors": sorted(classes_with_errors),
            "classes_without_lessons": without,
        },
    }
    result["correction_report"] = None if result["valid"] else build_correction_report(result)

    if not result["valid"]:
        logger.warning(
            "Schedule validation failed errors=%s generated=%s expected=%s",
            len(conflicts),
            len(lessons),
            schedule_input.total_lessons,
        )
    return result


def build_correction_report(result: dict[str, Any]) -> str:
    """Plain-text, numbered list of errors for a human or an external producer to act on."""

    errors: list[str] = list(result.get("errors") or [])
    stats = result.get("statistics") or {}
    lines = [f"The timetable has {len(errors)} error(s) that must be fixed:", ""]
    lines.extend(f"{i}. {msg}" for i, msg in enumerate(errors, start=1))
    lines.append("")
    lines.append(f"Generated lessons: {stats.get('total_generated', 0)}. Expected lessons: {stats.get('total_expected', 0)}.")
    lines.append("Fix every error above and return the complete timetable.")
    return "\n".join(lines)
