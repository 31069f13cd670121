from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from solver.domain import Lesson, ScheduleInput


def _teacher_day_periods(lessons: Iterable[Lesson]) -> dict[tuple[str, str], list[int]]:
    grouped: dict[tuple[str, str], list[int]] = defaultdict(list)
    for lesson in lessons:
        grouped[(lesson.teacher_id, lesson.day)].append(int(lesson.period))
    return grouped


def count_gaps(periods: Iterable[int]) -> int:
    """Number of breaks between consecutive occupied periods.

    A break counts once regardless of its length: {1, 3} and {1, 5} are one gap each.
    """

    ordered = sorted(set(int(p) for p in periods))
    return sum(1 for a, b in zip(ordered, ordered[1:]) if b - a > 1)


def count_teacher_gaps(lessons: Iterable[Lesson]) -> int:
    return sum(count_gaps(periods) for periods in _teacher_day_periods(lessons).values())


def calculate_metrics(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> dict:
    grouped = _teacher_day_periods(lessons)

    total_gaps = sum(count_gaps(periods) for periods in grouped.values())
    single_lesson_days = sum(1 for periods in grouped.values() if len(periods) == 1)

    violations = 0
    for lesson in lessons:
        teacher = schedule_input.teachers.get(lesson.teacher_id)
        if teacher is None or not teacher.availability.allows(lesson.day, lesson.period):
            violations += 1

    total = len(lessons)
    adherence = 100.0 if total == 0 else round((total - violations) / total * 100.0, 1)

    return {
        "total_gaps": total_gaps,
        "single_lesson_days": single_lesson_days,
        "availability_violations": violations,
        "adherence_percent": adherence,
        "total_lessons": total,
    }
