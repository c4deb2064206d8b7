"""
plan_assembler.py
-----------------
Turns the allocator's final state into an immutable PlanResult:
chronological blocks, summary statistics, a templated explanation and a few
next-day suggestions.  String formatting only, no model calls.
"""

from __future__ import annotations

from datetime import date
from typing import List

from allocator import AllocationOutcome
from free_time import total_free_minutes
from models import PlanResult, PlanStats, ScheduledBlock, UnscheduledItem, UnscheduledReason
from time_utils import to_time_string

CANDIDATE_KINDS = ("habit", "task", "gym")

REASON_PHRASES = {
    UnscheduledReason.NO_CAPACITY: "no room left",
    UnscheduledReason.CONFLICT: "time conflict",
    UnscheduledReason.INELIGIBLE: "waiting on cooldown or dependencies",
    UnscheduledReason.WINDOW_UNAVAILABLE: "no slot in its window",
}


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def order_blocks(outcome: AllocationOutcome) -> List[ScheduledBlock]:
    """Fixed blocks first, then placements in commit order, stable-sorted by start."""
    blocks = outcome.fixed_blocks + outcome.placed_blocks
    return sorted(blocks, key=lambda b: b.start_minute)


def compute_stats(blocks: List[ScheduledBlock], outcome: AllocationOutcome) -> PlanStats:
    work_minutes = sum(b.duration for b in blocks if b.kind == "work")
    return PlanStats(
        work_minutes=work_minutes,
        work_hours=round(work_minutes / 60, 1),
        gym_minutes=sum(b.duration for b in blocks if b.kind == "gym"),
        habits_placed=len({b.source_id for b in blocks if b.kind == "habit"}),
        tasks_placed=len({b.source_id for b in blocks if b.kind == "task"}),
        focus_blocks=sum(1 for b in blocks if b.kind == "task"),
        scheduled_minutes=sum(b.duration for b in blocks if b.kind in CANDIDATE_KINDS),
        free_minutes=total_free_minutes(outcome.open_intervals),
    )


def build_explanation(
    blocks: List[ScheduledBlock],
    unscheduled: List[UnscheduledItem],
    stats: PlanStats,
    outcome: AllocationOutcome,
    buffer_min: int,
) -> str:
    window = outcome.window
    parts = [
        f"Planned {_plural(stats.habits_placed, 'habit')} and {_plural(stats.tasks_placed, 'task')} "
        f"between {to_time_string(window.start)} and {to_time_string(window.end)} "
        f"with {buffer_min} min buffers."
    ]

    gym = next((b for b in blocks if b.kind == "gym"), None)
    if gym is not None:
        parts.append(f"Gym at {gym.start}-{gym.end}.")

    for adj in outcome.adjustments:
        if adj.kind == "shrunk":
            parts.append(f"{adj.title} shortened from {adj.planned} to {adj.placed} min.")
        else:
            parts.append(f"{adj.title} split into {adj.parts} parts ({adj.placed} of {adj.planned} min).")

    if unscheduled:
        listed = ", ".join(f"{u.title} ({REASON_PHRASES[u.reason]})" for u in unscheduled)
        parts.append(f"{_plural(len(unscheduled), 'item')} not scheduled: {listed}.")

    parts.append(f"{stats.free_minutes} min left free.")
    return " ".join(parts)


def next_day_suggestions(unscheduled: List[UnscheduledItem]) -> List[str]:
    reasons = {u.reason for u in unscheduled}
    suggestions: List[str] = []
    if UnscheduledReason.NO_CAPACITY in reasons:
        suggestions.append("Consider moving some tasks to tomorrow to ensure quality completion")
        suggestions.append("Review task priorities and deadlines for better planning")
    if UnscheduledReason.CONFLICT in reasons:
        suggestions.append("Move fixed-time habits away from appointments that overlap them")
    if UnscheduledReason.WINDOW_UNAVAILABLE in reasons:
        suggestions.append("Keep your preferred gym window free or widen it")
    return suggestions


def assemble_plan(plan_date: date, outcome: AllocationOutcome, buffer_min: int) -> PlanResult:
    blocks = order_blocks(outcome)
    stats = compute_stats(blocks, outcome)
    unscheduled = list(outcome.unscheduled)
    return PlanResult(
        date=plan_date,
        blocks=blocks,
        unscheduled=unscheduled,
        stats=stats,
        explanation=build_explanation(blocks, unscheduled, stats, outcome, buffer_min),
        next_day_suggestions=next_day_suggestions(unscheduled),
    )
