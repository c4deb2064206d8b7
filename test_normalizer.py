from datetime import timedelta

import pytest

from models import FixedTiming, GymSettings, Habit, Task
from normalizer import (
    GYM_ITEM_ID,
    URGENCY_DATED_MIN,
    URGENCY_MIN,
    gym_candidate,
    habit_occurs_today,
    normalize_candidates,
    task_urgency,
    weekday_index,
)


def habit(**fields):
    data = {"id": "h1", "name": "Meditate", "duration": 15}
    data.update(fields)
    return Habit.model_validate(data)


def task(**fields):
    data = {"id": "t1", "title": "Write report", "estimated_duration": 60}
    data.update(fields)
    return Task.model_validate(data)


def test_weekday_index_starts_on_sunday(monday):
    assert weekday_index(monday) == 1
    assert weekday_index(monday - timedelta(days=1)) == 0


def test_habit_in_cooldown_is_dropped(monday):
    h = habit(cooldown_days=1, last_completed=monday)
    assert normalize_candidates([h], [], monday) == []

    kept = normalize_candidates([h], [], monday, keep_ineligible=True)
    assert [c.id for c in kept] == ["h1"]
    assert not kept[0].eligible


@pytest.mark.parametrize("days_ago,eligible", [(1, False), (2, True)])
def test_cooldown_expires(monday, days_ago, eligible):
    h = habit(cooldown_days=2, last_completed=monday - timedelta(days=days_ago))
    ids = [c.id for c in normalize_candidates([h], [], monday)]
    assert (ids == ["h1"]) is eligible


def test_specific_days(monday):
    assert habit_occurs_today(habit(frequency={"kind": "specific-days", "days": [1, 3]}), monday)
    assert not habit_occurs_today(habit(frequency={"kind": "specific-days", "days": [0, 6]}), monday)


def test_weekly_habit_waits_a_week(monday):
    recent = habit(frequency={"kind": "weekly"}, last_completed=monday - timedelta(days=3))
    due = habit(frequency={"kind": "weekly"}, last_completed=monday - timedelta(days=8))
    assert not habit_occurs_today(recent, monday)
    assert habit_occurs_today(due, monday)


def test_times_per_week(monday):
    done = habit(frequency={"kind": "x-times-per-week", "times_per_week": 3}, completed_this_week=3)
    assert normalize_candidates([done], [], monday) == []

    pending = habit(frequency={"kind": "x-times-per-week", "times_per_week": 3}, completed_this_week=1)
    [candidate] = normalize_candidates([pending], [], monday)
    assert candidate.urgency == pytest.approx(2 / 7)


def test_inactive_habits_and_completed_tasks_are_skipped(monday):
    items = normalize_candidates(
        [habit(is_active=False)],
        [task(is_completed=True), task(id="t2", is_active=False)],
        monday,
    )
    assert items == []


def test_fixed_habit_keeps_its_start(monday):
    [candidate] = normalize_candidates(
        [habit(flexibility="fixed", explicit_start_time="06:30")], [], monday,
    )
    assert isinstance(candidate.timing, FixedTiming)
    assert candidate.fixed_start == 390


def test_semi_flex_spelling_is_accepted(monday):
    [candidate] = normalize_candidates([], [task(flexibility="semi-flex")], monday)
    assert candidate.flexibility == "semi-flexible"


def test_task_urgency_grows_towards_due_date(monday):
    urgencies = [
        task_urgency(task(due_date=monday + timedelta(days=d)), monday)
        for d in (30, 14, 7, 1, 0, -2)
    ]
    assert urgencies == sorted(urgencies)
    assert urgencies[0] == URGENCY_DATED_MIN
    assert urgencies[2] == pytest.approx(0.575)
    assert urgencies[-2] == urgencies[-1] == 1.0


def test_undated_task_has_minimum_urgency(monday):
    assert task_urgency(task(), monday) == URGENCY_MIN


def test_far_off_due_date_still_beats_no_due_date(monday):
    far = task_urgency(task(due_date=monday + timedelta(days=60)), monday)
    assert far == URGENCY_DATED_MIN
    assert far > task_urgency(task(), monday)


def test_unfinished_dependency_blocks_task(monday):
    first = task(id="t1")
    second = task(id="t2", dependencies=["t1"])
    assert [c.id for c in normalize_candidates([], [first, second], monday)] == ["t1"]

    first_done = task(id="t1", is_completed=True)
    assert [c.id for c in normalize_candidates([], [first_done, second], monday)] == ["t2"]


def test_unknown_dependency_does_not_block(monday):
    orphan = task(dependencies=["deleted-task"])
    assert [c.id for c in normalize_candidates([], [orphan], monday)] == ["t1"]


def test_splittable_task_carries_chunking(monday):
    [candidate] = normalize_candidates(
        [], [task(estimated_duration=120, is_splittable=True, chunk_size=45, minimum_viable_duration=30)],
        monday,
    )
    assert candidate.splittable
    assert candidate.min_chunk == 30


def test_splittable_task_requires_chunk_size():
    with pytest.raises(ValueError):
        task(is_splittable=True)


def test_gym_candidate(monday):
    session = gym_candidate(GymSettings(enabled=True, preferred_window="morning"), monday)
    assert session.id == GYM_ITEM_ID
    assert session.kind == "gym"
    assert session.preferred_window == "morning"
    assert session.min_viable_duration == 20


def test_gym_candidate_skipped_when_disabled_or_done(monday):
    assert gym_candidate(GymSettings(), monday) is None
    assert gym_candidate(GymSettings(enabled=True, frequency=3, sessions_this_week=3), monday) is None


def test_candidate_order_is_habits_tasks_gym(monday):
    items = normalize_candidates(
        [habit()], [task()], monday, gym=GymSettings(enabled=True),
    )
    assert [c.kind for c in items] == ["habit", "task", "gym"]
