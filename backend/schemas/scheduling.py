from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ClassAssignmentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    grade: str = Field(min_length=1)
    class_count: int = Field(alias="classCount")
    # Defaults to the teacher's subject when omitted.
    subject: str | None = None


class TeacherIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    subject: str = ""
    availability_days: list[str] = Field(default_factory=list, alias="availabilityDays")
    # Granular availability: day label -> 0/1 vector over the usable periods.
    availability: dict[str, list[int]] = Field(default_factory=dict)
    class_assignments: list[ClassAssignmentIn] = Field(default_factory=list, alias="classAssignments")


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teachers: list[TeacherIn] = Field(default_factory=list)
    time_slots: list[str] = Field(alias="timeSlots")
    # Weekday labels; falls back to SCHOOL_DAYS when omitted.
    days: list[str] | None = None

    seed: int | None = None
    max_time_seconds: float | None = Field(default=None, gt=0, alias="maxTimeSeconds")
    shuffle: bool | None = None
    # Run the search even when the viability analysis reports CRITICAL problems.
    force: bool = False


class ViabilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teachers: list[TeacherIn] = Field(default_factory=list)
    time_slots: list[str] = Field(alias="timeSlots")
    days: list[str] | None = None


class FlatLessonIn(BaseModel):
    """One lesson of an externally produced schedule."""

    model_config = ConfigDict(populate_by_name=True)

    day: str = Field(min_length=1)
    time_slot: str = Field(min_length=1, alias="timeSlot")
    grade: str = Field(min_length=1)
    subject: str = ""
    teacher_id: str | None = Field(default=None, alias="teacherId")
    teacher_name: str | None = Field(default=None, alias="teacherName")


class ScheduleEvaluationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teachers: list[TeacherIn] = Field(default_factory=list)
    time_slots: list[str] = Field(alias="timeSlots")
    days: list[str] | None = None
    schedule: list[FlatLessonIn] = Field(default_factory=list)


class ConflictOut(BaseModel):
    type: Literal["teacher_unavailable", "double_booking", "class_overlap"]
    message: str


class LessonOut(BaseModel):
    day: str
    time_slot: str
    period: int
    grade: str
    subject: str
    teacher_id: str
    teacher_name: str
    conflict: ConflictOut | None = None


class ViabilityProblemOut(BaseModel):
    severity: Literal["CRITICAL", "ALERT", "INFO"]
    category: Literal["CAPACITY", "AVAILABILITY", "BILOCATION", "DISTRIBUTION"]
    message: str
    detail: str | None = None
    teacher: str | None = None
    grade: str | None = None


class PresetOut(BaseModel):
    id: str
    name: str
    description: str
    weekly_lessons: int
    lessons_per_day: int
    slots: list[str] = Field(default_factory=list)


class LoadEntry(BaseModel):
    name: str
    lessons: int


class ViabilityStatisticsOut(BaseModel):
    total_lessons: int
    total_classes: int
    slots_per_class: int
    lessons_per_class: dict[str, int] = Field(default_factory=dict)
    peak_occupancy_percent: float
    busiest_teacher: LoadEntry
    busiest_class: LoadEntry


class ViabilitySummaryOut(BaseModel):
    error: str
    details: list[str] = Field(default_factory=list)
    suggestion: str = ""
    statistics: dict[str, Any] = Field(default_factory=dict)
    recommended_preset: PresetOut | None = None
    presets: list[PresetOut] = Field(default_factory=list)


class ViabilityResponse(BaseModel):
    viable: bool
    problems: list[ViabilityProblemOut] = Field(default_factory=list)
    statistics: ViabilityStatisticsOut
    suggestions: list[str] = Field(default_factory=list)
    recommended_preset: PresetOut | None = None
    summary: ViabilitySummaryOut | None = None


class ValidationConflictOut(BaseModel):
    conflict_type: Literal["COUNT_MISMATCH", "UNDECLARED_PAIR", "TEACHER_UNAVAILABLE", "DOUBLE_BOOKING", "CLASS_OVERLAP"]
    severity: Literal["CRITICAL", "WARNING"] = "CRITICAL"
    message: str
    teacher: str | None = None
    grade: str | None = None
    day: str | None = None
    time_slot: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ValidationStatisticsOut(BaseModel):
    total_generated: int
    total_expected: int
    teachers_with_errors: list[str] = Field(default_factory=list)
    classes_with_errors: list[str] = Field(default_factory=list)
    classes_without_lessons: list[str] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    conflicts: list[ValidationConflictOut] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    statistics: ValidationStatisticsOut
    correction_report: str | None = None


class MetricsResponse(BaseModel):
    total_gaps: int
    single_lesson_days: int
    availability_violations: int
    adherence_percent: float
    total_lessons: int


class SolveResponse(BaseModel):
    status: Literal["FAILED_VIABILITY", "VALID", "INVALID"]
    viability: ViabilityResponse

    strategy: Literal["exact", "greedy_fallback"] | None = None
    solver_state: str | None = None
    score: float | None = None
    lessons: list[LessonOut] = Field(default_factory=list)
    conflicts: list[ConflictOut] = Field(default_factory=list)
    schedule: dict[str, dict[str, list[LessonOut]]] = Field(default_factory=dict)
    validation: ValidationResponse | None = None
    metrics: MetricsResponse | None = None
    solver_stats: dict[str, Any] = Field(default_factory=dict)


class PresetsResponse(BaseModel):
    presets: list[PresetOut] = Field(default_factory=list)
    default_preset_id: str
