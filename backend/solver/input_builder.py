from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from core.config import settings
from schemas.scheduling import TeacherIn
from solver.domain import (
    WEEKDAY_KEYS,
    AssignmentSpec,
    Availability,
    LessonVariable,
    ScheduleInput,
    TeacherSpec,
    TimeSlot,
)


logger = logging.getLogger(__name__)


class InputError(ValueError):
    """Structurally malformed scheduling input.

    `errors` is the itemized list of problems found; the builder collects every
    problem it can before raising instead of stopping at the first one.
    """

    code = "INVALID_INPUT"

    def __init__(self, errors: Sequence[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = [str(e) for e in errors]
        super().__init__("; ".join(self.errors) if self.errors else "Invalid input")


DAY_ALIASES: dict[str, str] = {
    # English
    "monday": "mon",
    "mon": "mon",
    "tuesday": "tue",
    "tue": "tue",
    "tues": "tue",
    "wednesday": "wed",
    "wed": "wed",
    "thursday": "thu",
    "thu": "thu",
    "thur": "thu",
    "thurs": "thu",
    "friday": "fri",
    "fri": "fri",
    "saturday": "sat",
    "sat": "sat",
    "sunday": "sun",
    "sun": "sun",
    # Portuguese
    "segunda-feira": "mon",
    "segunda": "mon",
    "seg": "mon",
    "terça-feira": "tue",
    "terca-feira": "tue",
    "terça": "tue",
    "terca": "tue",
    "ter": "tue",
    "quarta-feira": "wed",
    "quarta": "wed",
    "qua": "wed",
    "quinta-feira": "thu",
    "quinta": "thu",
    "qui": "thu",
    "sexta-feira": "fri",
    "sexta": "fri",
    "sex": "fri",
    "sábado": "sat",
    "sabado": "sat",
    "sáb": "sat",
    "sab": "sat",
    "domingo": "sun",
    "dom": "sun",
}

# Slot labels containing any of these are breaks and never receive lessons.
PAUSE_KEYWORDS: tuple[str, ...] = (
    "intervalo",
    "almoço",
    "almoco",
    "recreio",
    "pausa",
    "lanche",
    "break",
    "lunch",
    "recess",
)


def normalize_day(label: Any) -> str:
    """Map a weekday label (any supported alias) to its canonical key."""

    key = DAY_ALIASES.get(str(label or "").strip().lower())
    if key is None:
        raise InputError([f"Unknown weekday label: {label!r}"])
    return key


def is_pause_slot(label: str) -> bool:
    lowered = str(label).lower()
    return any(k in lowered for k in PAUSE_KEYWORDS)


def usable_slot_labels(time_slots: Iterable[str]) -> list[str]:
    return [str(s) for s in time_slots if not is_pause_slot(str(s))]


def _coerce_teachers(teachers: Sequence[Any]) -> list[TeacherIn]:
    out: list[TeacherIn] = []
    errors: list[str] = []
    for i, t in enumerate(teachers or []):
        if isinstance(t, TeacherIn):
            out.append(t)
            continue
        try:
            out.append(TeacherIn.model_validate(t))
        except ValidationError as exc:
            for err in exc.errors():
                loc = ".".join(str(p) for p in err.get("loc", ()))
                errors.append(f"teachers[{i}].{loc}: {err.get('msg')}")
    if errors:
        raise InputError(errors)
    return out


def _resolve_days(days: Sequence[str] | None) -> tuple[tuple[str, ...], dict[str, str]]:
    labels = list(days) if days else list(settings.school_days)
    keys: list[str] = []
    day_labels: dict[str, str] = {}
    errors: list[str] = []
    for label in labels:
        key = DAY_ALIASES.get(str(label or "").strip().lower())
        if key is None:
            errors.append(f"Unknown weekday label: {label!r}")
            continue
        if key in day_labels:
            continue
        day_labels[key] = str(label).strip()
        keys.append(key)
    if errors:
        raise InputError(errors)
    if not keys:
        raise InputError(["At least one weekday is required"])
    keys.sort(key=WEEKDAY_KEYS.index)
    return tuple(keys), day_labels


def build_schedule_input(
    teachers: Sequence[Any],
    time_slots: Sequence[str],
    days: Sequence[str] | None = None,
) -> ScheduleInput:
    """Normalize raw teacher records into a ScheduleInput.

    Raises InputError listing every structural problem found.
    """

    records = _coerce_teachers(teachers)
    week, day_labels = _resolve_days(days)
    week_set = set(week)

    period_labels = tuple(usable_slot_labels(time_slots or []))
    errors: list[str] = []
    if not period_labels:
        errors.append("No usable time slots after removing breaks")
    seen_labels: set[str] = set()
    for label in period_labels:
        folded = label.strip().lower()
        if folded in seen_labels:
            errors.append(f"Duplicate time slot label: {label!r}")
        seen_labels.add(folded)

    teacher_specs: dict[str, TeacherSpec] = {}
    assignments: list[AssignmentSpec] = []
    seen_pairs: set[tuple[str, str]] = set()

    for t in records:
        tid = t.id.strip()
        if tid in teacher_specs:
            errors.append(f"Duplicate teacher id: {tid!r}")
            continue

        coarse: set[str] = set()
        for label in t.availability_days:
            key = DAY_ALIASES.get(str(label or "").strip().lower())
            if key is None:
                errors.append(f"Teacher {t.name!r}: unknown weekday label {label!r}")
            elif key in week_set:
                coarse.add(key)

        granular: dict[str, tuple[int, ...]] = {}
        for label, bits in (t.availability or {}).items():
            key = DAY_ALIASES.get(str(label or "").strip().lower())
            if key is None:
                errors.append(f"Teacher {t.name!r}: unknown weekday label {label!r} in period availability")
                continue
            if any(int(b) not in (0, 1) for b in bits):
                errors.append(f"Teacher {t.name!r}: period availability for {label!r} must contain only 0 or 1")
                continue
            if key in week_set:
                granular[key] = tuple(int(b) for b in bits)

        teacher_specs[tid] = TeacherSpec(
            id=tid,
            name=t.name.strip(),
            subject=(t.subject or "").strip(),
            availability=Availability(days=frozenset(coarse), granular=granular),
        )

        for a in t.class_assignments:
            grade = a.grade.strip()
            if a.class_count < 1:
                errors.append(
                    f"Teacher {t.name!r}, class {grade!r}: hours per week must be a positive integer (got {a.class_count})"
                )
                continue
            pair = (tid, grade)
            if pair in seen_pairs:
                errors.append(f"Teacher {t.name!r} is assigned to class {grade!r} more than once")
                continue
            seen_pairs.add(pair)
            assignments.append(
                AssignmentSpec(
                    teacher_id=tid,
                    grade=grade,
                    subject=(a.subject or t.subject or "").strip(),
                    hours_per_week=int(a.class_count),
                )
            )

    if errors:
        raise InputError(errors)

    schedule_input = ScheduleInput(
        days=week,
        day_labels=day_labels,
        period_labels=period_labels,
        teachers=teacher_specs,
        assignments=tuple(assignments),
    )
    logger.debug(
        "Built schedule input: teachers=%s assignments=%s lessons=%s grid=%sx%s",
        len(teacher_specs),
        len(assignments),
        schedule_input.total_lessons,
        len(week),
        len(period_labels),
    )
    return schedule_input


def build_variables(schedule_input: ScheduleInput) -> list[LessonVariable]:
    variables: list[LessonVariable] = []
    for a in schedule_input.assignments:
        for occurrence in range(a.hours_per_week):
            variables.append(
                LessonVariable(
                    index=len(variables),
                    teacher_id=a.teacher_id,
                    grade=a.grade,
                    subject=a.subject,
                    occurrence=occurrence,
                )
            )
    return variables


def build_domains(
    schedule_input: ScheduleInput,
    variables: Sequence[LessonVariable],
) -> dict[int, tuple[TimeSlot, ...]]:
    """Allowed slots per variable index, in grid order.

    Variables of the same teacher share one tuple.
    """

    grid = schedule_input.grid()
    per_teacher: dict[str, tuple[TimeSlot, ...]] = {}
    domains: dict[int, tuple[TimeSlot, ...]] = {}
    for v in variables:
        dom = per_teacher.get(v.teacher_id)
        if dom is None:
            avail = schedule_input.teachers[v.teacher_id].availability
            dom = tuple(s for s in grid if avail.allows(s.day, s.period))
            per_teacher[v.teacher_id] = dom
        domains[v.index] = dom
    return domains
