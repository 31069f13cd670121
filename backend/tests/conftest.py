from __future__ import annotations

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from solver.domain import ScheduleInput
from solver.input_builder import build_schedule_input


WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
SIX_SLOTS = ["07:15-08:05", "08:05-08:55", "09:10-10:00", "10:00-10:50", "11:05-11:55", "11:55-12:45"]


@pytest.fixture
def make_teacher() -> Callable[..., dict[str, Any]]:
    def _make(
        tid: str,
        classes: dict[str, int] | None = None,
        *,
        name: str | None = None,
        subject: str = "Math",
        days: list[str] | None = None,
        granular: dict[str, list[int]] | None = None,
    ) -> dict[str, Any]:
        return {
            "id": tid,
            "name": name or tid.title(),
            "subject": subject,
            "availabilityDays": list(WEEK if days is None else days),
            "availability": dict(granular or {}),
            "classAssignments": [{"grade": g, "classCount": n} for g, n in (classes or {}).items()],
        }

    return _make


@pytest.fixture
def crossed_teachers(make_teacher) -> list[dict[str, Any]]:
    # Two teachers, both free only at the same two slots; each class needs one lesson from each.
    return [
        make_teacher("t-ana", {"6A": 1, "6B": 1}, name="Ana", subject="Math", days=["Monday"]),
        make_teacher("t-bia", {"6A": 1, "6B": 1}, name="Bia", subject="Science", days=["Monday"]),
    ]


@pytest.fixture
def crossed_input(crossed_teachers) -> ScheduleInput:
    return build_schedule_input(crossed_teachers, ["P1", "P2"], ["Monday"])


@pytest.fixture
def client() -> TestClient:
    from main import app

    return TestClient(app)
