from datetime import date
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from time_utils import overlaps, to_minutes, to_time_string


TimeOfDay = Literal["morning", "afternoon", "evening"]
EnergyLevel = Literal["low", "medium", "high"]
ItemKind = Literal["habit", "task", "gym"]
EventCategory = Literal["work", "meal", "appointment", "call", "other"]
BlockKind = Literal["work", "meal", "appointment", "call", "other", "habit", "task", "gym"]


def _check_hhmm(value: str) -> str:
    to_minutes(value)   # raises ValueError -> pydantic ValidationError
    return value.strip()


# ── Day description (input) ──────────────────────────────────────────

class TimeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str   # "23:00"
    end: str     # "07:00"  (end < start means the range crosses midnight)

    @field_validator("start", "end")
    @classmethod
    def _valid_time(cls, v: str) -> str:
        return _check_hhmm(v)

    @model_validator(mode="after")
    def _non_empty(self):
        if self.start_minute == self.end_minute:
            raise ValueError(f"time range {self.start}-{self.end} has zero length")
        return self

    @property
    def start_minute(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minute(self) -> int:
        return to_minutes(self.end)


class FixedEvent(TimeRange):
    title: str
    category: EventCategory = "other"
    location: Optional[str] = None
    locked: bool = True     # unlocked events are obstacles but get no buffer padding


class MealWindow(TimeRange):
    type: Literal["breakfast", "lunch", "dinner", "snack"] = "lunch"


class DayConstraints(BaseModel):
    model_config = ConfigDict(frozen=True)

    buffers_between_blocks_min: int = Field(10, ge=0, le=240)
    protect_downtime_min: int = Field(0, ge=0, le=720)
    commute_time_min: Optional[int] = Field(None, ge=0, le=240)
    meal_windows: List[MealWindow] = Field(default_factory=list)


class DayDescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    timezone: str = "UTC"
    sleep: TimeRange                    # start = bedtime, end = wake-up
    fixed_events: List[FixedEvent] = Field(default_factory=list)
    constraints: DayConstraints = Field(default_factory=DayConstraints)

    @model_validator(mode="after")
    def _waking_day_left(self):
        waking = 24 * 60 - self.sleep_minutes
        if waking - 2 * self.constraints.protect_downtime_min <= 0:
            raise ValueError("downtime protection leaves no waking time in the day")
        return self

    @model_validator(mode="after")
    def _events_disjoint(self):
        events = self.fixed_events
        for i, a in enumerate(events):
            for b in events[i + 1:]:
                if overlaps((a.start_minute, a.end_minute), (b.start_minute, b.end_minute)):
                    raise ValueError(
                        f"fixed events {a.title!r} ({a.start}-{a.end}) and "
                        f"{b.title!r} ({b.start}-{b.end}) overlap"
                    )
        return self

    @property
    def sleep_minutes(self) -> int:
        s, e = self.sleep.start_minute, self.sleep.end_minute
        return (e - s) % (24 * 60)


# ── Habits / tasks / gym (persistence-shaped records) ─────────────────

class DailyFrequency(BaseModel):
    kind: Literal["daily"] = "daily"


class WeeklyFrequency(BaseModel):
    kind: Literal["weekly"] = "weekly"


class SpecificDaysFrequency(BaseModel):
    kind: Literal["specific-days"] = "specific-days"
    days: List[Annotated[int, Field(ge=0, le=6)]] = Field(..., min_length=1)   # 0 = Sunday


class TimesPerWeekFrequency(BaseModel):
    kind: Literal["x-times-per-week"] = "x-times-per-week"
    times_per_week: int = Field(..., ge=1, le=7)


Frequency = Annotated[
    Union[DailyFrequency, WeeklyFrequency, SpecificDaysFrequency, TimesPerWeekFrequency],
    Field(discriminator="kind"),
]


def _normalise_flexibility(v):
    # stored records use the short "semi-flex" spelling
    return "semi-flexible" if v == "semi-flex" else v


class Habit(BaseModel):
    id: str
    name: str
    duration: int = Field(..., gt=0, le=720)
    frequency: Frequency = Field(default_factory=DailyFrequency)
    preferred_time_window: Optional[TimeOfDay] = None
    explicit_start_time: Optional[str] = None
    priority: int = Field(3, ge=1, le=5)
    flexibility: Literal["fixed", "semi-flexible", "flexible"] = "flexible"
    minimum_viable_duration: Optional[int] = Field(None, gt=0)
    cooldown_days: int = Field(0, ge=0)
    energy_level: EnergyLevel = "medium"
    category: str = "personal"
    is_active: bool = True
    last_completed: Optional[date] = None       # supplied by the persistence layer
    completed_this_week: int = Field(0, ge=0)

    @field_validator("flexibility", mode="before")
    @classmethod
    def _semi_flex_alias(cls, v):
        return _normalise_flexibility(v)

    @field_validator("explicit_start_time")
    @classmethod
    def _valid_start(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_hhmm(v)

    @model_validator(mode="after")
    def _consistent(self):
        if self.flexibility == "fixed" and self.explicit_start_time is None:
            raise ValueError(f"habit {self.id}: fixed habits need explicit_start_time")
        if self.minimum_viable_duration and self.minimum_viable_duration > self.duration:
            raise ValueError(f"habit {self.id}: minimum_viable_duration exceeds duration")
        return self


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    estimated_duration: int = Field(..., gt=0, le=720)
    due_date: Optional[date] = None
    priority: int = Field(3, ge=1, le=5)
    category: str = "life"
    energy_level: EnergyLevel = "medium"
    time_window_preference: Optional[TimeOfDay] = None
    flexibility: Literal["semi-flexible", "flexible"] = "flexible"
    is_splittable: bool = False
    chunk_size: Optional[int] = Field(None, gt=0)
    minimum_viable_duration: Optional[int] = Field(None, gt=0)
    dependencies: List[str] = Field(default_factory=list)
    is_completed: bool = False
    is_active: bool = True

    @field_validator("flexibility", mode="before")
    @classmethod
    def _semi_flex_alias(cls, v):
        return _normalise_flexibility(v)

    @model_validator(mode="after")
    def _consistent(self):
        if self.is_splittable and self.chunk_size is None:
            raise ValueError(f"task {self.id}: splittable tasks need chunk_size")
        if self.minimum_viable_duration and self.minimum_viable_duration > self.estimated_duration:
            raise ValueError(f"task {self.id}: minimum_viable_duration exceeds estimated_duration")
        return self


class GymSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    frequency: int = Field(3, ge=0, le=7)              # sessions per week
    sessions_this_week: int = Field(0, ge=0)
    default_duration: int = Field(60, gt=0, le=240)
    preferred_window: Literal["after-work", "morning", "evening"] = "after-work"
    minimum_duration: int = Field(20, gt=0)
    bedtime_buffer: int = Field(120, ge=0)
    warmup_duration: int = Field(5, ge=0)
    cooldown_duration: int = Field(5, ge=0)

    @model_validator(mode="after")
    def _minimum_fits(self):
        if self.minimum_duration > self.default_duration:
            raise ValueError("gym minimum_duration exceeds default_duration")
        return self

    @property
    def padding(self) -> int:
        return self.warmup_duration + self.cooldown_duration


# ── Candidate items (normalised, engine input) ───────────────────────

class FixedTiming(BaseModel):
    model_config = ConfigDict(frozen=True)

    flexibility: Literal["fixed"] = "fixed"
    start: str

    @field_validator("start")
    @classmethod
    def _valid_start(cls, v: str) -> str:
        return _check_hhmm(v)


class FlexibleTiming(BaseModel):
    model_config = ConfigDict(frozen=True)

    flexibility: Literal["flexible", "semi-flexible"] = "flexible"


Timing = Annotated[Union[FixedTiming, FlexibleTiming], Field(discriminator="flexibility")]


class Chunking(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(..., gt=0)


class CandidateItem(BaseModel):
    """One schedulable occurrence of a habit, task or gym session for the target day."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    kind: ItemKind
    duration: int = Field(..., gt=0)
    min_viable_duration: int = Field(..., gt=0)
    priority: int = Field(3, ge=1, le=5)
    energy_level: EnergyLevel = "medium"
    timing: Timing = Field(default_factory=FlexibleTiming)
    preferred_window: Optional[TimeOfDay] = None
    chunking: Optional[Chunking] = None        # None = not splittable
    urgency: float = Field(0.1, ge=0.0, le=1.0)
    eligible: bool = True

    @model_validator(mode="before")
    @classmethod
    def _default_min_viable(cls, data):
        if isinstance(data, dict) and data.get("min_viable_duration") is None:
            data = {**data, "min_viable_duration": data.get("duration")}
        return data

    @model_validator(mode="after")
    def _consistent(self):
        if self.min_viable_duration > self.duration:
            raise ValueError(f"item {self.id}: min_viable_duration exceeds duration")
        if isinstance(self.timing, FixedTiming) and self.chunking is not None:
            raise ValueError(f"item {self.id}: fixed-time items cannot be split")
        return self

    @property
    def flexibility(self) -> str:
        return self.timing.flexibility

    @property
    def splittable(self) -> bool:
        return self.chunking is not None

    @property
    def fixed_start(self) -> Optional[int]:
        return to_minutes(self.timing.start) if isinstance(self.timing, FixedTiming) else None

    @property
    def min_chunk(self) -> int:
        """Smallest chunk a splittable item may be cut into."""
        if self.chunking is None:
            return self.duration
        return min(self.chunking.chunk_size, self.min_viable_duration)


# ── Plan output ──────────────────────────────────────────────────────

class ScheduledBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    start: str                      # "HH:MM" wall clock
    end: str
    start_minute: int               # absolute minutes from midnight of the plan date
    end_minute: int
    kind: BlockKind
    source_id: Optional[str] = None
    locked: bool = False
    energy_level: Optional[EnergyLevel] = None
    original_duration: Optional[int] = None
    notes: str = ""

    @classmethod
    def span(cls, start_minute: int, end_minute: int, **fields) -> "ScheduledBlock":
        return cls(
            start=to_time_string(start_minute),
            end=to_time_string(end_minute),
            start_minute=start_minute,
            end_minute=end_minute,
            **fields,
        )

    @property
    def duration(self) -> int:
        return self.end_minute - self.start_minute


class UnscheduledReason(str, Enum):
    NO_CAPACITY = "NO_CAPACITY"
    CONFLICT = "CONFLICT"
    INELIGIBLE = "INELIGIBLE"
    WINDOW_UNAVAILABLE = "WINDOW_UNAVAILABLE"


class UnscheduledItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    reason: UnscheduledReason
    source_id: str
    priority: Optional[int] = None
    remaining_minutes: Optional[int] = None
    detail: str = ""


class PlanStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    work_minutes: int = 0
    work_hours: float = 0.0
    gym_minutes: int = 0
    habits_placed: int = 0
    tasks_placed: int = 0
    focus_blocks: int = 0
    scheduled_minutes: int = 0
    free_minutes: int = 0


class PlanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    blocks: List[ScheduledBlock]
    unscheduled: List[UnscheduledItem]
    stats: PlanStats
    explanation: str
    next_day_suggestions: List[str] = Field(default_factory=list)


# ── Optional AI briefing ─────────────────────────────────────────────

class Briefing(BaseModel):
    greeting: str
    summary: str
    top_priority: str
    motivation: str
    tip: str


# ── Free-text schedule parsing ───────────────────────────────────────

class ParsedScheduleItem(BaseModel):
    title: str
    start: str
    end: str
    type: EventCategory


class ParsedTextInput(BaseModel):
    items: List[ParsedScheduleItem]
    unparsed_text: str = ""


# ── API envelopes ────────────────────────────────────────────────────

class PlanRequest(BaseModel):
    day: DayDescription
    habits: List[Habit] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    gym: GymSettings = Field(default_factory=GymSettings)
    include_briefing: bool = False


class PlanResponse(BaseModel):
    """Top-level API response envelope."""
    success: bool = True
    data: PlanResult
    briefing: Optional[Briefing] = None
    message: str = "Plan generated successfully"


class ParseTextRequest(BaseModel):
    text: str = Field(..., max_length=10000)
