"""
scheduling_engine.py
--------------------
The engine's function boundary.

    generate_plan(day, candidates, gym)  -> PlanResult
    plan_day(day, habits, tasks, gym)    -> PlanResult   (normalises first)

Pure and synchronous: no I/O, no shared state.  Identical inputs always give
an identical PlanResult. Callers re-run it on every edit.
Structurally invalid input is rejected with PlanningInputError before any
allocation starts; items that merely do not fit are reported in
`PlanResult.unscheduled`, never raised.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from allocator import Allocator
from models import CandidateItem, DayDescription, GymSettings, Habit, PlanResult, Task
from normalizer import normalize_candidates
from plan_assembler import assemble_plan
from scorer import DEFAULT_WEIGHTS, ScoringWeights

logger = logging.getLogger(__name__)


class PlanningInputError(ValueError):
    """Input that cannot describe a day (bad times, zero durations, duplicate ids...)."""


def _coerce(model, value: Union[Mapping[str, Any], Any], what: str):
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise PlanningInputError(f"invalid {what}: {exc}") from exc


def validate_candidates(candidates: Iterable[Any]) -> List[CandidateItem]:
    items = [_coerce(CandidateItem, c, "candidate item") for c in candidates]
    seen = set()
    for item in items:
        if item.id in seen:
            raise PlanningInputError(f"duplicate candidate id: {item.id!r}")
        seen.add(item.id)
    return items


def generate_plan(
    day: Union[DayDescription, Mapping[str, Any]],
    candidates: Iterable[Union[CandidateItem, Mapping[str, Any]]],
    gym: Optional[Union[GymSettings, Mapping[str, Any]]] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> PlanResult:
    """Plan one day from already-normalised candidates."""
    day = _coerce(DayDescription, day, "day description")
    items = validate_candidates(candidates)
    gym = _coerce(GymSettings, gym, "gym settings") if gym is not None else GymSettings()

    outcome = Allocator(day, items, gym, weights).run()
    plan = assemble_plan(day.date, outcome, day.constraints.buffers_between_blocks_min)
    logger.info(
        "planned %s: %d blocks, %d unscheduled, %d min free",
        day.date, len(plan.blocks), len(plan.unscheduled), plan.stats.free_minutes,
    )
    return plan


def plan_day(
    day: Union[DayDescription, Mapping[str, Any]],
    habits: Iterable[Union[Habit, Mapping[str, Any]]] = (),
    tasks: Iterable[Union[Task, Mapping[str, Any]]] = (),
    gym: Optional[Union[GymSettings, Mapping[str, Any]]] = None,
    today: Optional[date] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> PlanResult:
    """Normalise stored habits/tasks for the day, then plan it."""
    day = _coerce(DayDescription, day, "day description")
    gym = _coerce(GymSettings, gym, "gym settings") if gym is not None else GymSettings()
    candidates = normalize_candidates(
        habits=[_coerce(Habit, h, "habit") for h in habits],
        tasks=[_coerce(Task, t, "task") for t in tasks],
        today=today or day.date,
        gym=gym,
    )
    return generate_plan(day, candidates, gym, weights)
