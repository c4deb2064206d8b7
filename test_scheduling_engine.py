from datetime import timedelta

import pytest

from models import DayDescription, GymSettings, Habit, Task
from normalizer import normalize_candidates
from scheduling_engine import PlanningInputError, generate_plan, plan_day, validate_candidates
from time_utils import overlaps, to_minutes


@pytest.fixture
def busy_day(make_day):
    return make_day(
        sleep=("23:30", "07:30"),
        events=[
            ("Work", "09:30", "18:00", {"category": "work"}),
            ("Dinner with Alex", "19:00", "20:00", {"category": "meal"}),
        ],
        buffer=10,
    )


@pytest.fixture
def busy_inputs(monday):
    habits = [
        Habit(id="meditate", name="Meditate", duration=15, preferred_time_window="morning", energy_level="low"),
        Habit(id="read", name="Read", duration=30, preferred_time_window="evening", energy_level="low"),
        Habit(id="stretch", name="Stretch", duration=20, priority=2),
    ]
    tasks = [
        Task(id="emails", title="Clear inbox", estimated_duration=30, time_window_preference="morning"),
        Task(
            id="report", title="Quarterly report", estimated_duration=120, priority=4,
            energy_level="high", is_splittable=True, chunk_size=45,
            due_date=monday + timedelta(days=1),
        ),
        Task(
            id="taxes", title="Taxes", estimated_duration=60, flexibility="semi-flex",
            minimum_viable_duration=30, due_date=monday + timedelta(days=3),
        ),
    ]
    gym = GymSettings(enabled=True)
    return habits, tasks, gym


def test_blocks_never_overlap_and_keep_buffers(busy_day, busy_inputs):
    plan = plan_day(busy_day, *busy_inputs)

    blocks = plan.blocks
    assert blocks == sorted(blocks, key=lambda b: b.start_minute)
    for prev, nxt in zip(blocks, blocks[1:]):
        assert nxt.start_minute - prev.end_minute >= 10, (prev.id, nxt.id)


def test_placements_stay_inside_the_waking_day(busy_day, busy_inputs):
    plan = plan_day(busy_day, *busy_inputs)
    for block in plan.blocks:
        assert 450 <= block.start_minute < block.end_minute <= 1410


def test_every_candidate_is_accounted_for(busy_day, busy_inputs, monday):
    habits, tasks, gym = busy_inputs
    plan = plan_day(busy_day, habits, tasks, gym)

    for item in normalize_candidates(habits, tasks, monday, gym):
        placed = [b for b in plan.blocks if b.source_id == item.id]
        missing = [u for u in plan.unscheduled if u.source_id == item.id]
        assert placed or missing, item.id
        assert len(missing) <= 1
        if item.kind != "gym":    # gym blocks include warm-up and cool-down
            assert sum(b.duration for b in placed) <= item.duration


def test_same_input_same_plan(busy_day, busy_inputs):
    first = plan_day(busy_day, *busy_inputs)
    second = plan_day(busy_day, *busy_inputs)
    assert first.model_dump_json() == second.model_dump_json()


def test_plan_survives_a_json_round_trip_of_its_inputs(busy_day, busy_inputs):
    habits, tasks, gym = busy_inputs
    plan = plan_day(busy_day, habits, tasks, gym)

    replayed = plan_day(
        DayDescription.model_validate_json(busy_day.model_dump_json()),
        [Habit.model_validate_json(h.model_dump_json()) for h in habits],
        [Task.model_validate_json(t.model_dump_json()) for t in tasks],
        GymSettings.model_validate_json(gym.model_dump_json()),
    )
    assert replayed == plan


def test_plain_dicts_are_accepted(busy_day):
    plan = generate_plan(
        busy_day.model_dump(mode="json"),
        [{"id": "walk", "title": "Walk", "kind": "habit", "duration": 20}],
    )
    assert [b.source_id for b in plan.blocks if b.kind == "habit"] == ["walk"]


def test_stats(busy_day, busy_inputs):
    plan = plan_day(busy_day, *busy_inputs)
    stats = plan.stats

    assert stats.work_minutes == 510
    assert stats.work_hours == 8.5
    assert stats.gym_minutes == sum(b.duration for b in plan.blocks if b.kind == "gym")
    assert stats.focus_blocks == sum(1 for b in plan.blocks if b.kind == "task")
    assert stats.free_minutes >= 0
    assert plan.explanation.startswith(f"Planned {stats.habits_placed} habit")


def test_duplicate_candidate_ids_rejected():
    with pytest.raises(PlanningInputError, match="duplicate candidate id"):
        validate_candidates([
            {"id": "x", "title": "A", "kind": "task", "duration": 30},
            {"id": "x", "title": "B", "kind": "habit", "duration": 15},
        ])


@pytest.mark.parametrize("day", [
    {"date": "2024-01-15", "sleep": {"start": "25:00", "end": "07:00"}},
    {"date": "2024-01-15", "sleep": {"start": "07:00", "end": "07:00"}},
    {"date": "2024-01-15", "sleep": {"start": "23:00", "end": "07:00"},
     "constraints": {"protect_downtime_min": 480}},
    {"date": "2024-01-15", "sleep": {"start": "23:00", "end": "07:00"},
     "fixed_events": [{"title": "Work", "start": "9am", "end": "17:00"}]},
])
def test_malformed_day_rejected(day):
    with pytest.raises(PlanningInputError, match="invalid day description"):
        generate_plan(day, [])


def test_zero_duration_candidate_rejected(make_day):
    with pytest.raises(PlanningInputError, match="invalid candidate item"):
        generate_plan(make_day(), [{"id": "x", "title": "X", "kind": "task", "duration": 0}])


def test_bad_habit_record_rejected(make_day):
    with pytest.raises(PlanningInputError, match="invalid habit"):
        plan_day(make_day(), habits=[{"id": "h", "name": "Fixed", "duration": 10, "flexibility": "fixed"}])


def test_day_without_candidates_lists_fixed_events(make_day):
    day = make_day(events=[("Standup", "09:00", "09:15", {"category": "call"})])
    plan = generate_plan(day, [])

    assert [(b.id, b.kind, b.locked) for b in plan.blocks] == [("fixed-0900-standup", "call", True)]
    assert plan.unscheduled == []
    assert plan.next_day_suggestions == []


@pytest.mark.parametrize("events", [
    [("Work", "09:00", "17:00"), ("Doctor", "16:00", "16:30")],
    [("Late shift", "22:00", "02:00"), ("Night call", "01:00", "01:30")],
])
def test_overlapping_fixed_events_rejected(events):
    day = {
        "date": "2024-01-15",
        "sleep": {"start": "03:00", "end": "07:00"},
        "fixed_events": [{"title": t, "start": s, "end": e} for t, s, e in events],
    }
    with pytest.raises(PlanningInputError, match="overlap"):
        generate_plan(day, [])


def overlapping_pairs(plan):
    """Pairs of blocks sharing a minute, on the absolute axis or on the wall clock."""
    clashes = []
    blocks = plan.blocks
    for i, a in enumerate(blocks):
        for b in blocks[i + 1:]:
            absolute = a.start_minute < b.end_minute and b.start_minute < a.end_minute
            wall = overlaps((to_minutes(a.start), to_minutes(a.end)), (to_minutes(b.start), to_minutes(b.end)))
            if absolute or wall:
                clashes.append((a.title, b.title))
    return clashes


@pytest.mark.parametrize("day_kwargs", [
    {"sleep": ("23:30", "07:30"), "events": [("Work", "09:30", "18:00", {"category": "work"}),
                                              ("Dinner with Alex", "19:00", "20:00", {"category": "meal"})]},
    {"events": [("Work", "09:00", "17:00", {"category": "work"})], "meals": [("12:00", "13:00", "lunch")]},
    {"events": [("Early call", "06:30", "07:30", {"category": "call"})], "buffer": 0},
    {"events": [("Work", "09:00", "17:00", {"category": "work"}), ("Concert", "22:30", "23:30")],
     "meals": [("07:30", "08:00", "breakfast"), ("19:00", "20:00", "dinner")], "commute": 15},
    {"sleep": ("03:00", "11:00"), "events": [("Shift", "12:00", "20:00", {"category": "work"})],
     "downtime": 30},
])
def test_no_two_blocks_overlap(make_day, busy_inputs, day_kwargs):
    plan = plan_day(make_day(**day_kwargs), *busy_inputs)
    assert overlapping_pairs(plan) == []
