from __future__ import annotations

import json
import os
from typing import Any

from fastapi.testclient import TestClient

from main import app


WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
SLOTS = ["07:15-08:05", "08:05-08:55", "08:55-09:10 Break", "09:10-10:00", "10:00-10:50", "11:05-11:55", "11:55-12:45"]


def _sample_school() -> list[dict[str, Any]]:
    grades = ["6A", "6B", "7A"]
    subjects = [
        ("t-math", "Ana", "Math", 5, WEEK),
        ("t-port", "Bruno", "Portuguese", 5, WEEK),
        ("t-sci", "Carla", "Science", 3, ["Monday", "Wednesday", "Friday"]),
        ("t-hist", "Diego", "History", 2, ["Tuesday", "Thursday"]),
        ("t-eng", "Elisa", "English", 2, WEEK[:4]),
        ("t-pe", "Fabio", "PE", 2, WEEK),
    ]
    teachers: list[dict[str, Any]] = []
    for tid, name, subject, hours, days in subjects:
        teachers.append(
            {
                "id": tid,
                "name": name,
                "subject": subject,
                "availabilityDays": days,
                "classAssignments": [{"grade": g, "classCount": hours} for g in grades],
            }
        )
    # Elisa cannot teach first period on Mondays.
    teachers[4]["availability"] = {"Monday": [0, 1, 1, 1, 1, 1]}
    return teachers


def main() -> None:
    client = TestClient(app)

    seed = int(os.environ.get("DIAG_SEED", "7"))
    payload = {"teachers": _sample_school(), "timeSlots": SLOTS, "seed": seed, "force": True}

    viability = client.post("/api/solver/viability", json=payload)
    if viability.status_code >= 400:
        raise SystemExit(f"FAIL /api/solver/viability: {viability.status_code} {viability.text}")
    v = viability.json()
    print(f"viable={v['viable']} problems={len(v['problems'])} peak={v['statistics']['peak_occupancy_percent']}%")
    for p in v["problems"]:
        print(f"  [{p['severity']}/{p['category']}] {p['message']}")

    solved = client.post("/api/solver/solve", json=payload)
    if solved.status_code >= 400:
        raise SystemExit(f"FAIL /api/solver/solve: {solved.status_code} {solved.text}")
    body = solved.json()
    print(
        f"status={body['status']} strategy={body['strategy']} score={body['score']} "
        f"lessons={len(body['lessons'])} conflicts={len(body['conflicts'])}"
    )
    print("metrics:", json.dumps(body["metrics"], indent=2))
    print("solver_stats:", json.dumps(body["solver_stats"], indent=2))

    if body.get("validation") and not body["validation"]["valid"]:
        print(body["validation"]["correction_report"])


if __name__ == "__main__":
    main()
