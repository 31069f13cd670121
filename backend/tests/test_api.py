from __future__ import annotations


def _payload(teachers, slots, days=None, **extra):
    body = {"teachers": teachers, "timeSlots": slots, **extra}
    if days is not None:
        body["days"] = days
    return body


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["app"] == "ok"


def test_presets(client):
    resp = client.get("/api/solver/presets")
    assert resp.status_code == 200
    body = resp.json()
    assert body["default_preset_id"] == "standard-30"
    assert [p["weekly_lessons"] for p in body["presets"]] == [30, 35, 40, 45, 50]


def test_viability_endpoint(client, crossed_teachers):
    resp = client.post("/api/solver/viability", json=_payload(crossed_teachers, ["P1", "P2"], ["Monday"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["viable"] is True
    assert body["summary"] is None
    assert body["statistics"]["total_lessons"] == 4


def test_solve_crossed_case(client, crossed_teachers):
    resp = client.post("/api/solver/solve", json=_payload(crossed_teachers, ["P1", "P2"], ["Monday"], seed=3))
    assert resp.status_code == 200
    body = resp.json()

    assert body["status"] == "VALID"
    assert body["strategy"] == "exact"
    assert body["solver_state"] == "SOLUTION_FOUND"
    assert len(body["lessons"]) == 4
    assert body["conflicts"] == []
    assert body["validation"]["valid"] is True
    assert body["metrics"]["adherence_percent"] == 100.0
    assert sorted(body["schedule"]["Monday"]) == ["P1", "P2"]
    assert all(len(v) == 2 for v in body["schedule"]["Monday"].values())
    assert {l["teacher_name"] for l in body["lessons"]} == {"Ana", "Bia"}


def test_solve_refuses_infeasible_input(client, make_teacher):
    payload = _payload([make_teacher("t1", {"6A": 2})], ["P1"], ["Monday"])
    resp = client.post("/api/solver/solve", json=payload)
    assert resp.status_code == 200
    body = resp.json()

    assert body["status"] == "FAILED_VIABILITY"
    assert body["lessons"] == []
    assert body["viability"]["viable"] is False
    assert body["viability"]["summary"]["error"].startswith("Cannot build the timetable")


def test_forced_solve_uses_the_fallback(client, make_teacher):
    payload = _payload([make_teacher("t1", {"6A": 2})], ["P1"], ["Monday"], force=True)
    resp = client.post("/api/solver/solve", json=payload)
    assert resp.status_code == 200
    body = resp.json()

    assert body["status"] == "INVALID"
    assert body["strategy"] == "greedy_fallback"
    assert body["solver_state"] == "COMPLETED"
    assert len(body["lessons"]) == 2
    assert body["conflicts"][0]["type"] == "class_overlap"
    assert body["validation"]["correction_report"]


def test_malformed_input_is_a_400(client, make_teacher):
    payload = _payload([make_teacher("t1", {"6A": 0}), make_teacher("t1", {"6B": 1})], ["P1"])
    resp = client.post("/api/solver/solve", json=payload)
    assert resp.status_code == 400
    body = resp.json()

    assert body["code"] == "INVALID_INPUT"
    assert len(body["details"]) == 2


def test_missing_time_slots_is_a_422(client, crossed_teachers):
    resp = client.post("/api/solver/solve", json={"teachers": crossed_teachers})
    assert resp.status_code == 422


def test_validate_external_schedule(client, crossed_teachers):
    schedule = [
        {"day": "Segunda-feira", "timeSlot": "P1", "grade": "6A", "teacherName": "Ana"},
        {"day": "Segunda-feira", "timeSlot": "P1", "grade": "6B", "teacherName": "Ana"},
        {"day": "Segunda-feira", "timeSlot": "P2", "grade": "6A", "teacherId": "t-bia"},
        {"day": "Segunda-feira", "timeSlot": "P2", "grade": "6B", "teacherId": "t-bia"},
    ]
    resp = client.post(
        "/api/solver/validate",
        json=_payload(crossed_teachers, ["P1", "P2"], ["Monday"], schedule=schedule),
    )
    assert resp.status_code == 200
    body = resp.json()

    assert body["valid"] is False
    assert [c["conflict_type"] for c in body["conflicts"]] == ["DOUBLE_BOOKING", "DOUBLE_BOOKING"]
    assert body["statistics"]["total_generated"] == 4
    assert body["statistics"]["teachers_with_errors"] == ["Ana", "Bia"]


def test_validate_rejects_unknown_slot(client, crossed_teachers):
    schedule = [{"day": "Monday", "timeSlot": "P7", "grade": "6A", "teacherId": "t-ana"}]
    resp = client.post(
        "/api/solver/validate",
        json=_payload(crossed_teachers, ["P1", "P2"], ["Monday"], schedule=schedule),
    )
    assert resp.status_code == 400
    assert "unknown time slot" in resp.json()["details"][0]


def test_metrics_endpoint(client, crossed_teachers):
    schedule = [
        {"day": "Monday", "timeSlot": "P1", "grade": "6A", "teacherId": "t-ana"},
        {"day": "Monday", "timeSlot": "P2", "grade": "6B", "teacherId": "t-ana"},
        {"day": "Monday", "timeSlot": "P1", "grade": "6B", "teacherId": "t-bia"},
    ]
    resp = client.post(
        "/api/solver/metrics",
        json=_payload(crossed_teachers, ["P1", "P2"], ["Monday"], schedule=schedule),
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "total_gaps": 0,
        "single_lesson_days": 1,
        "availability_violations": 0,
        "adherence_percent": 100.0,
        "total_lessons": 3,
    }
