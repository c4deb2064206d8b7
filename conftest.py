from datetime import date

import pytest

from models import CandidateItem, DayDescription

MONDAY = date(2024, 1, 15)


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def make_day():
    def _make(sleep=("23:00", "07:00"), events=(), buffer=10, downtime=0, commute=None,
              meals=(), on=MONDAY):
        return DayDescription.model_validate({
            "date": on.isoformat(),
            "sleep": {"start": sleep[0], "end": sleep[1]},
            "fixed_events": [
                {"title": e[0], "start": e[1], "end": e[2], **(e[3] if len(e) > 3 else {})}
                for e in events
            ],
            "constraints": {
                "buffers_between_blocks_min": buffer,
                "protect_downtime_min": downtime,
                "commute_time_min": commute,
                "meal_windows": [
                    {"start": m[0], "end": m[1], "type": m[2]} for m in meals
                ],
            },
        })
    return _make


@pytest.fixture
def make_item():
    def _make(id, duration=60, **fields):
        return CandidateItem.model_validate({
            "id": id,
            "title": fields.pop("title", id.replace("-", " ").title()),
            "kind": fields.pop("kind", "task"),
            "duration": duration,
            **fields,
        })
    return _make
