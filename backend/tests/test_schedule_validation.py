from __future__ import annotations

from services.schedule_validation import build_correction_report, validate_schedule
from solver.domain import Lesson
from solver.input_builder import build_schedule_input


def _lesson(day, period, grade, teacher_id, subject=""):
    return Lesson(day=day, period=period, grade=grade, subject=subject, teacher_id=teacher_id)


def _crossed_lessons():
    return [
        _lesson("mon", 1, "6A", "t-ana", "Math"),
        _lesson("mon", 2, "6B", "t-ana", "Math"),
        _lesson("mon", 1, "6B", "t-bia", "Science"),
        _lesson("mon", 2, "6A", "t-bia", "Science"),
    ]


def _types(result):
    return [c["conflict_type"] for c in result["conflicts"]]


def test_valid_schedule_passes(crossed_input):
    result = validate_schedule(crossed_input, _crossed_lessons())

    assert result["valid"] is True
    assert result["errors"] == []
    assert result["warnings"] == []
    assert result["correction_report"] is None
    assert result["statistics"] == {
        "total_generated": 4,
        "total_expected": 4,
        "teachers_with_errors": [],
        "classes_with_errors": [],
        "classes_without_lessons": [],
    }


def test_missing_lesson_is_a_count_mismatch(crossed_input):
    lessons = _crossed_lessons()[:3]
    result = validate_schedule(crossed_input, lessons)

    assert result["valid"] is False
    assert _types(result) == ["COUNT_MISMATCH"]
    message = result["errors"][0]
    assert "Bia" in message and "6A" in message
    assert "has 0 lessons, expected 1 (difference -1)" in message
    assert result["conflicts"][0]["details"] == {"actual": 0, "expected": 1, "difference": -1}


def test_extra_lesson_for_undeclared_pair(crossed_input):
    lessons = _crossed_lessons() + [_lesson("mon", 1, "7C", "t-ana")]
    result = validate_schedule(crossed_input, lessons)

    assert "UNDECLARED_PAIR" in _types(result)
    assert "DOUBLE_BOOKING" in _types(result)


def test_coarse_day_violation(make_teacher):
    si = build_schedule_input([make_teacher("t1", {"6A": 1}, name="Ana", days=["Monday"])], ["P1"], ["Monday", "Tuesday"])
    result = validate_schedule(si, [_lesson("tue", 1, "6A", "t1")])

    assert _types(result) == ["TEACHER_UNAVAILABLE"]
    conflict = result["conflicts"][0]
    assert conflict["teacher"] == "Ana"
    assert conflict["day"] == "Tuesday"
    assert conflict["time_slot"] == "P1"


def test_granular_period_violation(make_teacher):
    si = build_schedule_input(
        [make_teacher("t1", {"6A": 1}, days=["Monday"], granular={"Monday": [1, 0]})],
        ["P1", "P2"],
        ["Monday"],
    )

    assert validate_schedule(si, [_lesson("mon", 1, "6A", "t1")])["valid"] is True
    result = validate_schedule(si, [_lesson("mon", 2, "6A", "t1")])
    assert _types(result) == ["TEACHER_UNAVAILABLE"]
    assert "not marked available" in result["errors"][0]


def test_teacher_double_booking(crossed_input):
    lessons = [
        _lesson("mon", 1, "6A", "t-ana", "Math"),
        _lesson("mon", 1, "6B", "t-ana", "Math"),
        _lesson("mon", 2, "6B", "t-bia", "Science"),
        _lesson("mon", 2, "6A", "t-bia", "Science"),
    ]
    result = validate_schedule(crossed_input, lessons)

    assert _types(result) == ["DOUBLE_BOOKING", "DOUBLE_BOOKING"]
    conflict = result["conflicts"][0]
    assert conflict["details"]["grades"] == ["6A", "6B"]
    assert "Ana" in conflict["message"] and "Monday P1" in conflict["message"]
    assert "Bia" in result["conflicts"][1]["message"]
    assert result["statistics"]["teachers_with_errors"] == ["Ana", "Bia"]
    assert result["statistics"]["classes_with_errors"] == ["6A", "6B"]


def test_class_overlap(crossed_input):
    lessons = [
        _lesson("mon", 1, "6A", "t-ana", "Math"),
        _lesson("mon", 1, "6A", "t-bia", "Science"),
        _lesson("mon", 2, "6B", "t-ana", "Math"),
        _lesson("mon", 2, "6B", "t-bia", "Science"),
    ]
    result = validate_schedule(crossed_input, lessons)

    assert _types(result) == ["CLASS_OVERLAP", "CLASS_OVERLAP"]
    assert result["conflicts"][0]["grade"] == "6A"
    assert "Ana (Math), Bia (Science)" in result["errors"][0]


def test_validation_is_idempotent_and_order_independent(crossed_input):
    lessons = [
        _lesson("mon", 1, "6A", "t-ana"),
        _lesson("mon", 1, "6B", "t-ana"),
        _lesson("mon", 1, "6A", "t-bia"),
        _lesson("mon", 1, "6A", "t-bia"),
    ]
    first = validate_schedule(crossed_input, lessons)
    second = validate_schedule(crossed_input, lessons)
    shuffled = validate_schedule(crossed_input, list(reversed(lessons)))

    assert first == second == shuffled
    assert first["valid"] is False


def test_coverage_warnings(make_teacher):
    si = build_schedule_input(
        [
            make_teacher("t1", {"6A": 1, "6B": 1}, subject="Math"),
            make_teacher("t2", {"6A": 1}, subject="Art"),
        ],
        ["P1", "P2"],
    )
    result = validate_schedule(si, [_lesson("mon", 1, "6A", "t1", "Math")])

    assert result["statistics"]["classes_without_lessons"] == ["6B"]
    assert "Class 6B has no lessons in the timetable." in result["warnings"]
    assert "Class 6A has no Art lessons." in result["warnings"]


def test_correction_report_lists_every_error(crossed_input):
    result = validate_schedule(crossed_input, _crossed_lessons()[:2])
    report = result["correction_report"]

    assert report == build_correction_report(result)
    assert report.startswith("The timetable has 2 error(s)")
    assert "\n1. " in report and "\n2. " in report
    assert "Generated lessons: 2. Expected lessons: 4." in report
