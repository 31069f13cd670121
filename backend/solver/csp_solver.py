from __future__ import annotations

import logging
import random
import time
from collections import Counter, defaultdict
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Sequence

from core.config import settings
from solver.domain import (
    Conflict,
    ConflictType,
    Lesson,
    LessonVariable,
    ScheduleInput,
    Solution,
    TimeSlot,
)
from solver.input_builder import build_domains, build_variables
from solver.metrics import count_teacher_gaps


logger = logging.getLogger(__name__)


class SolverInvariantError(RuntimeError):
    """Internal consistency failure of the solver (a bug, not bad input)."""

    def __init__(self, message: str, *, code: str = "SOLVER_INVARIANT", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class SearchTimeout(Exception):
    pass


class SolverState(str, Enum):
    INITIALIZED = "INITIALIZED"
    SEARCHING = "SEARCHING"
    SOLUTION_FOUND = "SOLUTION_FOUND"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    FALLBACK_FILLING = "FALLBACK_FILLING"
    COMPLETED = "COMPLETED"


_TRANSITIONS: dict[SolverState, frozenset[SolverState]] = {
    SolverState.INITIALIZED: frozenset({SolverState.SEARCHING}),
    SolverState.SEARCHING: frozenset({SolverState.SOLUTION_FOUND, SolverState.BUDGET_EXCEEDED}),
    SolverState.BUDGET_EXCEEDED: frozenset({SolverState.FALLBACK_FILLING}),
    SolverState.FALLBACK_FILLING: frozenset({SolverState.COMPLETED}),
    SolverState.SOLUTION_FOUND: frozenset(),
    SolverState.COMPLETED: frozenset(),
}


def order_variables(
    variables: Sequence[LessonVariable],
    domains: Mapping[int, Sequence[TimeSlot]],
) -> tuple[LessonVariable, ...]:
    """Most constrained first; ties keep build order."""

    return tuple(sorted(variables, key=lambda v: (len(domains[v.index]), v.index)))


class ExactSearch:
    """Depth-first backtracking over the ordered variables.

    A candidate slot is accepted when no earlier variable of the same teacher or
    the same class already holds it. The wall-clock budget is polled at every
    expansion; `run()` returns None when the budget runs out or the search space
    is exhausted, leaving the largest partial assignment in `best_partial`.
    """

    def __init__(
        self,
        order: Sequence[LessonVariable],
        domains: Mapping[int, Sequence[TimeSlot]],
        *,
        time_limit_seconds: float,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.order = tuple(order)
        self.domains = domains
        self.time_limit_seconds = float(time_limit_seconds)
        self.rng = rng
        self.clock = clock

        self.nodes = 0
        self.timed_out = False
        self.elapsed_seconds = 0.0
        self.best_partial: dict[int, TimeSlot] = {}

        self._started_at = 0.0

    def _candidates(self, var: LessonVariable) -> Iterator[TimeSlot]:
        slots = list(self.domains[var.index])
        if self.rng is not None:
            self.rng.shuffle(slots)
        return iter(slots)

    def _check_budget(self) -> None:
        now = self.clock()
        self.elapsed_seconds = now - self._started_at
        if self.elapsed_seconds > self.time_limit_seconds:
            raise SearchTimeout()

    def run(self) -> dict[int, TimeSlot] | None:
        self._started_at = self.clock()
        try:
            return self._search()
        except SearchTimeout:
            self.timed_out = True
            return None

    def _search(self) -> dict[int, TimeSlot] | None:
        n = len(self.order)
        if n == 0:
            return {}

        assignment: dict[int, TimeSlot] = {}
        teacher_busy: set[tuple[str, TimeSlot]] = set()
        class_busy: set[tuple[str, TimeSlot]] = set()

        # One candidate iterator per depth; the top of the stack is the variable being placed.
        stack: list[Iterator[TimeSlot]] = [self._candidates(self.order[0])]
        while stack:
            self._check_budget()
            depth = len(stack) - 1
            var = self.order[depth]

            previous = assignment.pop(var.index, None)
            if previous is not None:
                teacher_busy.discard((var.teacher_id, previous))
                class_busy.discard((var.grade, previous))

            chosen = None
            for slot in stack[-1]:
                if (var.teacher_id, slot) in teacher_busy or (var.grade, slot) in class_busy:
                    continue
                chosen = slot
                break

            if chosen is None:
                stack.pop()
                continue

            assignment[var.index] = chosen
            teacher_busy.add((var.teacher_id, chosen))
            class_busy.add((var.grade, chosen))
            self.nodes += 1

            if len(assignment) > len(self.best_partial):
                self.best_partial = dict(assignment)
            if len(assignment) == n:
                return dict(assignment)

            stack.append(self._candidates(self.order[depth + 1]))

        return None


class GreedyFallback:
    """Completes a partial assignment, one variable at a time, over the whole grid.

    Each remaining variable takes the lowest-scoring slot; ties go to the first
    slot in grid order. Always assigns every variable.
    """

    UNAVAILABLE_PENALTY = 10_000
    TEACHER_CLASH_PENALTY = 1_000
    CLASS_CLASH_PENALTY = 2_000
    ADJACENT_BONUS = 30
    GAP_FILL_BONUS = 50
    NEW_GAP_PENALTY_PER_PERIOD = 10

    def __init__(self, schedule_input: ScheduleInput, order: Sequence[LessonVariable]):
        self.schedule_input = schedule_input
        self.order = tuple(order)
        self.grid = schedule_input.grid()

        self._teacher_load: Counter[tuple[str, TimeSlot]] = Counter()
        self._class_load: Counter[tuple[str, TimeSlot]] = Counter()
        self._class_day: dict[tuple[str, str], set[int]] = defaultdict(set)

    def _place(self, var: LessonVariable, slot: TimeSlot) -> None:
        self._teacher_load[(var.teacher_id, slot)] += 1
        self._class_load[(var.grade, slot)] += 1
        self._class_day[(var.grade, slot.day)].add(slot.period)

    def score_slot(self, var: LessonVariable, slot: TimeSlot) -> int:
        score = 0
        availability = self.schedule_input.teachers[var.teacher_id].availability
        if not availability.allows(slot.day, slot.period):
            score += self.UNAVAILABLE_PENALTY
        score += self.TEACHER_CLASH_PENALTY * self._teacher_load[(var.teacher_id, slot)]
        score += self.CLASS_CLASH_PENALTY * self._class_load[(var.grade, slot)]

        periods = self._class_day.get((var.grade, slot.day))
        if periods:
            p = slot.period
            lo, hi = min(periods), max(periods)
            if lo < p < hi and p not in periods:
                score -= self.GAP_FILL_BONUS
            elif (p - 1) in periods or (p + 1) in periods:
                score -= self.ADJACENT_BONUS
            elif p < lo:
                score += self.NEW_GAP_PENALTY_PER_PERIOD * (lo - p)
            elif p > hi:
                score += self.NEW_GAP_PENALTY_PER_PERIOD * (p - hi)
        return score

    def complete(self, partial: Mapping[int, TimeSlot]) -> dict[int, TimeSlot]:
        if not self.grid:
            raise SolverInvariantError("Cannot complete a schedule on an empty grid", code="EMPTY_GRID")

        assignment = dict(partial)
        by_index = {v.index: v for v in self.order}
        for idx, slot in assignment.items():
            self._place(by_index[idx], slot)

        for var in self.order:
            if var.index in assignment:
                continue
            best_slot = self.grid[0]
            best_score = self.score_slot(var, best_slot)
            for slot in self.grid[1:]:
                s = self.score_slot(var, slot)
                if s < best_score:
                    best_slot, best_score = slot, s
            assignment[var.index] = best_slot
            self._place(var, best_slot)
        return assignment


def _unique(conflicts: Sequence[Conflict]) -> list[Conflict]:
    seen: dict[Conflict, None] = {}
    for c in conflicts:
        seen.setdefault(c, None)
    return list(seen)


def realize_lessons(
    schedule_input: ScheduleInput,
    variables: Sequence[LessonVariable],
    assignment: Mapping[int, TimeSlot],
) -> list[Lesson]:
    """Turn an assignment into Lessons tagged with their dominant conflict.

    Class overlap wins over teacher double-booking, which wins over unavailability.
    """

    teacher_load: Counter[tuple[str, TimeSlot]] = Counter()
    class_load: Counter[tuple[str, TimeSlot]] = Counter()
    for v in variables:
        slot = assignment[v.index]
        teacher_load[(v.teacher_id, slot)] += 1
        class_load[(v.grade, slot)] += 1

    lessons: list[Lesson] = []
    for v in variables:
        slot = assignment[v.index]
        where = f"{schedule_input.day_label(slot.day)} {schedule_input.period_label(slot.period)}"
        teacher_name = schedule_input.teacher_name(v.teacher_id)
        conflict = None
        if class_load[(v.grade, slot)] > 1:
            conflict = Conflict(
                ConflictType.CLASS_OVERLAP,
                f"Class {v.grade} has {class_load[(v.grade, slot)]} lessons at {where}",
            )
        elif teacher_load[(v.teacher_id, slot)] > 1:
            conflict = Conflict(
                ConflictType.DOUBLE_BOOKING,
                f"{teacher_name} is booked in {teacher_load[(v.teacher_id, slot)]} classes at {where}",
            )
        elif not schedule_input.teachers[v.teacher_id].availability.allows(slot.day, slot.period):
            conflict = Conflict(
                ConflictType.TEACHER_UNAVAILABLE,
                f"{teacher_name} is not available at {where}",
            )
        lessons.append(
            Lesson(
                day=slot.day,
                period=slot.period,
                grade=v.grade,
                subject=v.subject,
                teacher_id=v.teacher_id,
                conflict=conflict,
            )
        )

    grid_pos = {day: i for i, day in enumerate(schedule_input.days)}
    lessons.sort(key=lambda l: (grid_pos[l.day], l.period, l.grade, l.teacher_id))
    return lessons


def score_solution(conflicts: Sequence[Conflict], lessons: Sequence[Lesson]) -> float:
    return float(max(0, 100 - 15 * len(conflicts) - 2 * count_teacher_gaps(lessons)))


class Solver:
    """Runs ExactSearch and, when it fails, GreedyFallback on one ScheduleInput.

    A Solver instance is single-use: `solve()` walks the state machine once.
    """

    def __init__(
        self,
        schedule_input: ScheduleInput,
        *,
        time_limit_seconds: float | None = None,
        seed: int | None = None,
        shuffle: bool | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.schedule_input = schedule_input
        self.time_limit_seconds = settings.effective_time_limit(time_limit_seconds)
        self.seed = seed if seed is not None else settings.solver_seed
        self.shuffle = settings.solver_shuffle_domains if shuffle is None else bool(shuffle)
        if rng is None and self.shuffle:
            rng = random.Random(self.seed)
        self.rng = rng if self.shuffle else None
        self.clock = clock

        self.state = SolverState.INITIALIZED
        self.history: list[SolverState] = [self.state]

    def _transition(self, new_state: SolverState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SolverInvariantError(
                f"Illegal solver transition {self.state.value} -> {new_state.value}",
                code="ILLEGAL_TRANSITION",
                details={"from": self.state.value, "to": new_state.value},
            )
        logger.debug("Solver state %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def solve(self) -> Solution:
        variables = build_variables(self.schedule_input)
        domains = build_domains(self.schedule_input, variables)
        order = order_variables(variables, domains)

        self._transition(SolverState.SEARCHING)
        search = ExactSearch(
            order,
            domains,
            time_limit_seconds=self.time_limit_seconds,
            rng=self.rng,
            clock=self.clock,
        )
        assignment = search.run()

        if assignment is not None and len(assignment) == len(variables):
            self._transition(SolverState.SOLUTION_FOUND)
            strategy = "exact"
        else:
            self._transition(SolverState.BUDGET_EXCEEDED)
            logger.info(
                "Exact search gave up timed_out=%s nodes=%s best_partial=%s/%s; running greedy fallback",
                search.timed_out,
                search.nodes,
                len(search.best_partial),
                len(variables),
            )
            self._transition(SolverState.FALLBACK_FILLING)
            assignment = GreedyFallback(self.schedule_input, order).complete(search.best_partial)
            self._transition(SolverState.COMPLETED)
            strategy = "greedy_fallback"

        missing = [v.index for v in variables if v.index not in assignment]
        if missing:
            raise SolverInvariantError(
                "Solver finished with unassigned lessons",
                code="INCOMPLETE_ASSIGNMENT",
                details={"missing": missing[:20], "count": len(missing)},
            )

        lessons = realize_lessons(self.schedule_input, variables, assignment)
        conflicts = _unique([l.conflict for l in lessons if l.conflict is not None])
        score = score_solution(conflicts, lessons)

        stats = {
            "variables": len(variables),
            "nodes": search.nodes,
            "elapsed_seconds": round(search.elapsed_seconds, 4),
            "time_limit_seconds": self.time_limit_seconds,
            "timed_out": search.timed_out,
            "best_partial_size": len(search.best_partial),
            "seed": self.seed,
            "shuffled": self.rng is not None,
            "state_history": [s.value for s in self.history],
        }
        logger.info(
            "Solver finished strategy=%s lessons=%s conflicts=%s score=%s",
            strategy,
            len(lessons),
            len(conflicts),
            score,
        )
        return Solution(
            lessons=lessons,
            score=score,
            conflicts=conflicts,
            strategy=strategy,
            state=self.state.value,
            stats=stats,
        )


def solve_schedule(schedule_input: ScheduleInput, **kwargs: Any) -> Solution:
    return Solver(schedule_input, **kwargs).solve()
