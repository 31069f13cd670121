from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


# Canonical weekday keys, in calendar order. Every day label entering the core is
# normalized to one of these by the input builder.
WEEKDAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True, order=True)
class TimeSlot:
    day: str
    period: int


@dataclass(frozen=True)
class Availability:
    """Teacher availability.

    `days` is the coarse set of whole available days. `granular` maps a day to a
    0/1 vector over the usable periods (index 0 = period 1). When a day has a
    vector it governs that day, whatever `days` says. Positions past the end of
    a vector are not blocked; only an explicit 0 blocks a period.
    """

    days: frozenset[str] = frozenset()
    granular: Mapping[str, tuple[int, ...]] = field(default_factory=dict)

    def declared_days(self) -> frozenset[str]:
        return frozenset(self.days) | frozenset(self.granular.keys())

    def allows(self, day: str, period: int) -> bool:
        bits = self.granular.get(day)
        if bits is not None:
            idx = int(period) - 1
            if 0 <= idx < len(bits):
                return int(bits[idx]) != 0
            return True
        return day in self.days

    def usable_periods(self, day: str, periods_per_day: int) -> int:
        return sum(1 for p in range(1, int(periods_per_day) + 1) if self.allows(day, p))


@dataclass(frozen=True)
class TeacherSpec:
    id: str
    name: str
    subject: str
    availability: Availability


@dataclass(frozen=True)
class AssignmentSpec:
    teacher_id: str
    grade: str
    subject: str
    hours_per_week: int


@dataclass(frozen=True)
class LessonVariable:
    index: int
    teacher_id: str
    grade: str
    subject: str
    occurrence: int


@dataclass(frozen=True)
class ScheduleInput:
    """Normalized, per-request scheduling problem."""

    days: tuple[str, ...]
    day_labels: Mapping[str, str]
    period_labels: tuple[str, ...]
    teachers: Mapping[str, TeacherSpec]
    assignments: tuple[AssignmentSpec, ...]

    @property
    def periods_per_day(self) -> int:
        return len(self.period_labels)

    @property
    def total_lessons(self) -> int:
        return sum(a.hours_per_week for a in self.assignments)

    @property
    def grades(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for a in self.assignments:
            seen.setdefault(a.grade, None)
        return tuple(seen)

    def grid(self) -> tuple[TimeSlot, ...]:
        return tuple(TimeSlot(day, p) for day in self.days for p in range(1, self.periods_per_day + 1))

    def day_label(self, day: str) -> str:
        return self.day_labels.get(day, day)

    def period_label(self, period: int) -> str:
        if 1 <= int(period) <= len(self.period_labels):
            return self.period_labels[int(period) - 1]
        return f"Period {period}"

    def teacher_name(self, teacher_id: str) -> str:
        t = self.teachers.get(teacher_id)
        return t.name if t is not None else str(teacher_id)


class ConflictType(str, Enum):
    TEACHER_UNAVAILABLE = "teacher_unavailable"
    DOUBLE_BOOKING = "double_booking"
    CLASS_OVERLAP = "class_overlap"


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    message: str


@dataclass(frozen=True)
class Lesson:
    day: str
    period: int
    grade: str
    subject: str
    teacher_id: str
    conflict: Conflict | None = None

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(self.day, self.period)


@dataclass
class Solution:
    lessons: list[Lesson]
    score: float
    conflicts: list[Conflict] = field(default_factory=list)
    strategy: str = "exact"
    state: str = "INITIALIZED"
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)
