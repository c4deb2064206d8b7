"""
text_parser.py
--------------
Line-oriented parser for pasted schedules such as

    Work 9am - 5pm; Lunch 12:30-13:15
    Dentist appointment 4:30pm to 5pm

Each segment (split on ';' or newline) that matches `<title> <time> - <time>`
becomes a ParsedScheduleItem; everything else is handed back untouched as
`unparsed_text`.  The result feeds FixedEvents into a DayDescription.
"""

from __future__ import annotations

import re
from typing import List

from models import EventCategory, FixedEvent, ParsedScheduleItem, ParsedTextInput
from time_utils import MINUTES_PER_DAY, parse_natural_time, to_time_string

_TIME = r"\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)?"
_RANGE = re.compile(
    rf"^(?P<title>.+?)\s+(?:from\s+)?(?P<start>{_TIME})\s*(?:-|–|—|to|until)\s*(?P<end>{_TIME})\s*$",
    re.IGNORECASE,
)

_TYPE_KEYWORDS = (
    ("work", ("work", "office", "shift")),
    ("meal", ("lunch", "dinner", "breakfast", "meal", "brunch")),
    ("call", ("call", "meeting", "standup", "sync")),
    ("appointment", ("appointment", "doctor", "dentist", "therapy")),
)


def classify_event_type(title: str) -> EventCategory:
    lowered = title.lower()
    for category, keywords in _TYPE_KEYWORDS:
        if any(re.search(rf"\b{k}(?:s|es)?\b", lowered) for k in keywords):
            return category
    return "other"


def _has_meridiem(text: str) -> bool:
    return re.search(r"(am|pm|a\.m\.|p\.m\.)\s*$", text, re.IGNORECASE) is not None


def _resolve_range(start_text: str, end_text: str):
    start = parse_natural_time(start_text)
    end = parse_natural_time(end_text)
    if start is None or end is None:
        return None
    # "2-3pm": a bare start borrows the afternoon from the end when that keeps it first
    if not _has_meridiem(start_text) and end_text.lower().rstrip(". ").endswith(("pm", "p.m")):
        shifted = start + 12 * 60
        if start < 12 * 60 and shifted < MINUTES_PER_DAY and shifted <= end:
            start = shifted
    # "9-5": a bare end before a bare start is the afternoon, if that keeps the range in one day
    if not _has_meridiem(start_text) and not _has_meridiem(end_text) and end < start:
        shifted = end + 12 * 60
        if end < 12 * 60 and start < shifted:
            end = shifted
    if start == end:
        return None
    return start, end


def parse_text_input(text: str) -> ParsedTextInput:
    items: List[ParsedScheduleItem] = []
    unmatched: List[str] = []

    segments = [s.strip() for s in re.split(r"[;\n]", text or "")]
    for segment in filter(None, segments):
        match = _RANGE.match(segment)
        resolved = _resolve_range(match["start"], match["end"]) if match else None
        if resolved is None:
            unmatched.append(segment)
            continue

        title = match["title"].strip(" :,-")
        start, end = resolved
        items.append(ParsedScheduleItem(
            title=title,
            start=to_time_string(start),
            end=to_time_string(end),
            type=classify_event_type(title),
        ))

    return ParsedTextInput(items=items, unparsed_text="\n".join(unmatched))


def to_fixed_events(parsed: ParsedTextInput, locked: bool = True) -> List[FixedEvent]:
    return [
        FixedEvent(title=i.title, start=i.start, end=i.end, category=i.type, locked=locked)
        for i in parsed.items
    ]
