from __future__ import annotations

import re
from typing import Any, Sequence

from pydantic import ValidationError

from schemas.scheduling import FlatLessonIn
from solver.domain import Lesson, ScheduleInput
from solver.input_builder import DAY_ALIASES, InputError, is_pause_slot


_LEADING_NUMBER = re.compile(r"^\s*(\d+)")


def lesson_to_flat(schedule_input: ScheduleInput, lesson: Lesson) -> dict[str, Any]:
    conflict = None
    if lesson.conflict is not None:
        conflict = {"type": lesson.conflict.type.value, "message": lesson.conflict.message}
    return {
        "day": schedule_input.day_label(lesson.day),
        "time_slot": schedule_input.period_label(lesson.period),
        "period": int(lesson.period),
        "grade": lesson.grade,
        "subject": lesson.subject,
        "teacher_id": lesson.teacher_id,
        "teacher_name": schedule_input.teacher_name(lesson.teacher_id),
        "conflict": conflict,
    }


def lessons_to_flat(schedule_input: ScheduleInput, lessons: Sequence[Lesson]) -> list[dict[str, Any]]:
    return [lesson_to_flat(schedule_input, lesson) for lesson in lessons]


def to_nested_schedule(
    schedule_input: ScheduleInput,
    lessons: Sequence[Lesson],
) -> dict[str, dict[str, list[dict[str, Any]]]]:
    """Group lessons as {day label -> slot label -> [flat lessons]}.

    Every day and usable slot of the grid is present, empty ones included.
    """

    nested: dict[str, dict[str, list[dict[str, Any]]]] = {}
    for day in schedule_input.days:
        nested[schedule_input.day_label(day)] = {label: [] for label in schedule_input.period_labels}
    for lesson in sorted(lessons, key=lambda l: (schedule_input.days.index(l.day), l.period, l.grade, l.teacher_id)):
        flat = lesson_to_flat(schedule_input, lesson)
        nested[flat["day"]][flat["time_slot"]].append(flat)
    return nested


def _resolve_period(schedule_input: ScheduleInput, label: str) -> int | None:
    try:
        return schedule_input.period_labels.index(label) + 1
    except ValueError:
        pass
    stripped = label.strip()
    for i, known in enumerate(schedule_input.period_labels):
        if known.strip().lower() == stripped.lower():
            return i + 1
    m = _LEADING_NUMBER.match(stripped)
    if m:
        period = int(m.group(1))
        if 1 <= period <= schedule_input.periods_per_day:
            return period
    return None


def _resolve_teacher(schedule_input: ScheduleInput, teacher_id: str | None, teacher_name: str | None) -> str | None:
    if teacher_id and teacher_id.strip() in schedule_input.teachers:
        return teacher_id.strip()
    if teacher_name:
        wanted = teacher_name.strip().lower()
        for tid, spec in schedule_input.teachers.items():
            if spec.name.lower() == wanted:
                return tid
    return None


def flat_to_lessons(schedule_input: ScheduleInput, flat: Sequence[Any]) -> list[Lesson]:
    """Resolve an externally produced flat schedule against the grid.

    Teachers are looked up by id, then by name. Slots are looked up by label,
    then by their leading period number. Anything unresolvable is an InputError.
    """

    subjects = {(a.teacher_id, a.grade): a.subject for a in schedule_input.assignments}
    lessons: list[Lesson] = []
    errors: list[str] = []

    for i, raw in enumerate(flat or []):
        try:
            item = raw if isinstance(raw, FlatLessonIn) else FlatLessonIn.model_validate(raw)
        except ValidationError as exc:
            for err in exc.errors():
                loc = ".".join(str(p) for p in err.get("loc", ()))
                errors.append(f"schedule[{i}].{loc}: {err.get('msg')}")
            continue

        day = DAY_ALIASES.get(item.day.strip().lower())
        if day is None:
            errors.append(f"schedule[{i}]: unknown weekday label {item.day!r}")
            continue
        if day not in schedule_input.days:
            errors.append(f"schedule[{i}]: day {item.day!r} is not a school day")
            continue

        if is_pause_slot(item.time_slot):
            errors.append(f"schedule[{i}]: slot {item.time_slot!r} is a break")
            continue
        period = _resolve_period(schedule_input, item.time_slot)
        if period is None:
            errors.append(f"schedule[{i}]: unknown time slot {item.time_slot!r}")
            continue

        tid = _resolve_teacher(schedule_input, item.teacher_id, item.teacher_name)
        if tid is None:
            who = item.teacher_id or item.teacher_name or "<missing>"
            errors.append(f"schedule[{i}]: unknown teacher {who!r}")
            continue

        grade = item.grade.strip()
        subject = item.subject.strip() or subjects.get((tid, grade)) or schedule_input.teachers[tid].subject
        lessons.append(Lesson(day=day, period=period, grade=grade, subject=subject, teacher_id=tid))

    if errors:
        raise InputError(errors)
    return lessons
