from __future__ import annotations

import pytest

from solver.capacity_analyzer import (
    DEFAULT_PRESET_ID,
    analyze_viability,
    build_capacity_data,
    format_viability_response,
    list_presets,
    preset_for_lessons,
)
from solver.input_builder import build_schedule_input
from solver.solver_diagnostics import summarize_problems


SIX_SLOTS = ["07:15-08:05", "08:05-08:55", "09:10-10:00", "10:00-10:50", "11:05-11:55", "11:55-12:45"]


def _found(analysis, severity, category):
    return [p for p in analysis["problems"] if p["severity"] == severity and p["category"] == category]


def test_comfortable_input_is_viable(make_teacher):
    si = build_schedule_input(
        [make_teacher("t1", {"6A": 5, "6B": 5}), make_teacher("t2", {"6A": 4}, subject="Art")],
        SIX_SLOTS,
    )
    analysis = analyze_viability(si)

    assert analysis["viable"] is True
    assert analysis["problems"] == []
    assert analysis["suggestions"] == []
    assert analysis["recommended_preset"]["id"] == DEFAULT_PRESET_ID

    stats = analysis["statistics"]
    assert stats["total_lessons"] == 14
    assert stats["total_classes"] == 2
    assert stats["slots_per_class"] == 30
    assert stats["lessons_per_class"] == {"6A": 9, "6B": 5}
    assert stats["peak_occupancy_percent"] == 30.0
    assert stats["busiest_teacher"] == {"name": "T1", "lessons": 10}
    assert stats["busiest_class"] == {"name": "6A", "lessons": 9}


def test_class_over_capacity_is_critical(make_teacher):
    teachers = [make_teacher(f"t{i}", {"9A": 6}, subject=f"S{i}") for i in range(6)]
    analysis = analyze_viability(build_schedule_input(teachers, SIX_SLOTS))

    assert analysis["viable"] is False
    [problem] = _found(analysis, "CRITICAL", "CAPACITY")
    assert '"9A" needs 36 lessons/week' in problem["message"]
    assert analysis["recommended_preset"]["id"] == "full-day-40"
    assert any("40 lessons/week (8 per day)" in s for s in analysis["suggestions"])


def test_nearly_full_class_is_an_alert(make_teacher):
    teachers = [make_teacher(f"t{i}", {"9A": 7}, subject=f"S{i}") for i in range(4)]
    analysis = analyze_viability(build_schedule_input(teachers, SIX_SLOTS))

    assert analysis["viable"] is True
    assert len(_found(analysis, "ALERT", "CAPACITY")) == 1


def test_teacher_capacity_counts_granular_periods(make_teacher):
    teacher = make_teacher("t1", {"6A": 3}, name="Ana", days=[], granular={"Monday": [1, 1, 0, 0, 0, 0]})
    si = build_schedule_input([teacher], SIX_SLOTS)

    data = build_capacity_data(si)
    assert data["teachers"][0]["available_slots"] == 2
    assert data["teachers"][0]["available_days"] == 1

    analysis = analyze_viability(si)
    assert analysis["viable"] is False
    [problem] = _found(analysis, "CRITICAL", "AVAILABILITY")
    assert problem["teacher"] == "Ana"
    assert "only 2 available slots" in problem["message"]
    assert any("INSUFFICIENT AVAILABILITY: Ana" in s for s in analysis["suggestions"])


def test_near_exhausted_teacher_is_an_alert(make_teacher):
    si = build_schedule_input([make_teacher("t1", {"6A": 5}, days=["Monday"])], SIX_SLOTS)
    analysis = analyze_viability(si)

    assert analysis["viable"] is True
    assert len(_found(analysis, "ALERT", "AVAILABILITY")) == 1


def test_teacher_without_available_days(make_teacher):
    analysis = analyze_viability(build_schedule_input([make_teacher("t1", {"6A": 2}, days=[])], SIX_SLOTS))

    assert analysis["viable"] is False
    assert _found(analysis, "CRITICAL", "DISTRIBUTION")
    assert _found(analysis, "CRITICAL", "AVAILABILITY")


def test_multi_class_teacher_over_capacity_is_bilocation(make_teacher):
    teacher = make_teacher("t1", {"6A": 4, "6B": 4}, name="Ana", days=["Monday"])
    analysis = analyze_viability(build_schedule_input([teacher], SIX_SLOTS))

    assert analysis["viable"] is False
    [problem] = _found(analysis, "CRITICAL", "BILOCATION")
    assert "teaches 2 classes with 8 lessons" in problem["message"]
    assert _found(analysis, "CRITICAL", "DISTRIBUTION")
    assert any("SEVERAL CLASSES: Ana" in s for s in analysis["suggestions"])


def test_busy_multi_class_teacher_gets_alerts(make_teacher):
    teacher = make_teacher("t1", {"6A": 11, "6B": 11})
    analysis = analyze_viability(build_schedule_input([teacher], SIX_SLOTS))

    assert analysis["viable"] is True
    assert len(_found(analysis, "ALERT", "BILOCATION")) == 1
    assert len(_found(analysis, "ALERT", "AVAILABILITY")) == 1


def test_multi_class_teacher_on_few_days_is_an_alert(make_teacher):
    teacher = make_teacher("t1", {"6A": 5, "6B": 5}, name="Ana", days=["Monday", "Tuesday", "Wednesday"])
    analysis = analyze_viability(build_schedule_input([teacher], SIX_SLOTS))

    assert analysis["viable"] is True
    [problem] = _found(analysis, "ALERT", "AVAILABILITY")
    assert problem["message"] == "Ana (Math): 2 classes with only 3 available days, collisions are likely."
    assert _found(analysis, "ALERT", "BILOCATION") == []

    lighter = make_teacher("t1", {"6A": 4, "6B": 4}, name="Ana", days=["Monday", "Tuesday", "Wednesday"])
    assert analyze_viability(build_schedule_input([lighter], SIX_SLOTS))["problems"] == []


@pytest.mark.parametrize("extra", [1, 2, 5, 10])
def test_adding_hours_never_restores_viability(make_teacher, extra):
    base = [make_teacher("t1", {"6A": 4, "6B": 4}, days=["Monday"]), make_teacher("t2", {"6A": 3})]
    assert analyze_viability(build_schedule_input(base, SIX_SLOTS))["viable"] is False

    heavier = [make_teacher("t1", {"6A": 4 + extra, "6B": 4}, days=["Monday"]), make_teacher("t2", {"6A": 3 + extra})]
    assert analyze_viability(build_schedule_input(heavier, SIX_SLOTS))["viable"] is False


def test_presets():
    presets = list_presets()

    assert [p["weekly_lessons"] for p in presets] == [30, 35, 40, 45, 50]
    assert [len(p["slots"]) for p in presets] == [6, 7, 8, 9, 10]
    assert preset_for_lessons(32)["id"] == "extended-35"
    assert preset_for_lessons(50)["id"] == "full-day-50"
    assert preset_for_lessons(51) is None


def test_load_beyond_every_preset(make_teacher):
    teachers = [make_teacher(f"t{i}", {"9A": 6}, subject=f"S{i}") for i in range(9)]
    analysis = analyze_viability(build_schedule_input(teachers, SIX_SLOTS))

    assert analysis["recommended_preset"] is None
    assert any("largest supported grid (50 lessons)" in s for s in analysis["suggestions"])


def test_formatted_summary(make_teacher):
    teachers = [make_teacher(f"t{i}", {"9A": 6}, subject=f"S{i}") for i in range(6)]
    analysis = analyze_viability(build_schedule_input(teachers, SIX_SLOTS))

    summary = format_viability_response(analysis)
    assert summary["error"] == "Cannot build the timetable: 1 critical problem(s) detected."
    assert len(summary["details"]) == 1
    assert summary["statistics"]["peak_occupancy_percent"] == 120
    assert summary["recommended_preset"]["id"] == "full-day-40"
    assert len(summary["presets"]) == 5
    assert summarize_problems(analysis["problems"]) == "1 blocking problem detected."
