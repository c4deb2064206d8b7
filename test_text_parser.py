import pytest

from text_parser import classify_event_type, parse_text_input, to_fixed_events


def items(text):
    return [(i.title, i.start, i.end, i.type) for i in parse_text_input(text).items]


def test_parses_semicolon_separated_ranges():
    assert items("Work 9am - 5pm; Lunch 12:30-13:15") == [
        ("Work", "09:00", "17:00", "work"),
        ("Lunch", "12:30", "13:15", "meal"),
    ]


def test_parses_one_range_per_line():
    text = "Dentist appointment 4:30pm to 5pm\nTeam sync from 10 until 10:30"
    assert items(text) == [
        ("Dentist appointment", "16:30", "17:00", "appointment"),
        ("Team sync", "10:00", "10:30", "call"),
    ]


@pytest.mark.parametrize("text,expected", [
    ("Call mom 7-8pm", ("19:00", "20:00")),
    ("Work 9-5pm", ("09:00", "17:00")),
    ("Night shift 10pm-6am", ("22:00", "06:00")),
    ("Breakfast 7:15 – 7:45", ("07:15", "07:45")),
    ("Work 9-5", ("09:00", "17:00")),
    ("Lunch 11:30-1", ("11:30", "13:00")),
    ("Night shift 22-6", ("22:00", "06:00")),
    ("Late shift 20:00-4:00", ("20:00", "04:00")),
])
def test_time_ranges(text, expected):
    [(_, start, end, _)] = items(text)
    assert (start, end) == expected


def test_unmatched_lines_are_returned():
    parsed = parse_text_input("Work 9-17\nbuy milk\n\nGym sometime tonight")
    assert [i.title for i in parsed.items] == ["Work"]
    assert parsed.unparsed_text == "buy milk\nGym sometime tonight"


def test_empty_and_zero_length_ranges_are_unparsed():
    assert parse_text_input("").items == []
    parsed = parse_text_input("Nap 3pm-3pm")
    assert parsed.items == []
    assert parsed.unparsed_text == "Nap 3pm-3pm"


@pytest.mark.parametrize("title,expected", [
    ("Office hours", "work"),
    ("Dinner with Sam", "meal"),
    ("1:1 meeting", "call"),
    ("Doctor", "appointment"),
    ("Networking event", "other"),
    ("Homework club", "other"),
])
def test_classify_event_type(title, expected):
    assert classify_event_type(title) == expected


def test_to_fixed_events():
    [event] = to_fixed_events(parse_text_input("Standup 9:00-9:15"))
    assert (event.title, event.start, event.end, event.category) == ("Standup", "09:00", "09:15", "call")
    assert event.locked
