from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Annotated, Literal, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator, model_validator

ONE_MILLISECOND = timedelta(milliseconds=1)


def day_bounds(day: date, zone: tzinfo) -> tuple[datetime, datetime]:
    """Return the first instant and the last millisecond of ``day`` in ``zone``."""
    start = datetime.combine(day, time.min, tzinfo=zone)
    next_start = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start, next_start - ONE_MILLISECOND


class Coordinates(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    lat: float
    lon: float

    @field_validator("lat")
    @classmethod
    def clamp_latitude(cls, value: float) -> float:
        if math.isnan(value):
            raise ValueError("Latitude and longitude must be numbers")
        return min(90.0, max(-90.0, value))

    @field_validator("lon")
    @classmethod
    def clamp_longitude(cls, value: float) -> float:
        if math.isnan(value):
            raise ValueError("Latitude and longitude must be numbers")
        return min(180.0, max(-180.0, value))


class DateRange(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode="after")
    def validate_order(self) -> DateRange:
        if self.end < self.start:
            raise ValueError("date range end must be >= start")
        return self

    @property
    def key(self) -> str:
        return f"{self.start.isoformat()}|{self.end.isoformat()}"

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class CalendarListEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    summary: str
    primary: bool = False
    background_color: str | None = None
    foreground_color: str | None = None


class AllDayTiming(BaseModel):
    """Date-only span; ``end_day`` is the last included day."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: Literal["all_day"] = "all_day"
    start_day: date
    end_day: date

    @model_validator(mode="after")
    def validate_days(self) -> AllDayTiming:
        if self.end_day < self.start_day:
            raise ValueError("End must be after start")
        return self

    def bounds(self, zone: tzinfo) -> tuple[datetime, datetime]:
        start, _ = day_bounds(self.start_day, zone)
        _, end = day_bounds(self.end_day, zone)
        return start, end


class TimedTiming(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: Literal["timed"] = "timed"
    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode="after")
    def validate_times(self) -> TimedTiming:
        if self.end <= self.start:
            raise ValueError("End must be after start")
        return self

    def bounds(self, zone: tzinfo) -> tuple[datetime, datetime]:
        return self.start.astimezone(zone), self.end.astimezone(zone)


EventTiming = Annotated[Union[AllDayTiming, TimedTiming], Field(discriminator="kind")]


class CalendarEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    external_id: str
    calendar_id: str
    calendar_summary: str = "Calendar"
    title: str
    start: AwareDatetime
    end: AwareDatetime
    is_all_day: bool = False
    hangout_link: str | None = None
    location: str | None = None
    description: str | None = None
    color: str | None = None

    @model_validator(mode="after")
    def validate_time_range(self) -> CalendarEvent:
        if self.end <= self.start:
            raise ValueError("calendar event end must be after start")
        return self

    @property
    def timing(self) -> AllDayTiming | TimedTiming:
        if self.is_all_day:
            return AllDayTiming(start_day=self.start.date(), end_day=self.end.date())
        return TimedTiming(start=self.start, end=self.end)


class CalendarEventDraft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    calendar_id: str
    title: str = ""
    timing: EventTiming
    location: str | None = None
    description: str | None = None
    event_id: str | None = None
    external_id: str | None = None

    @field_validator("calendar_id")
    @classmethod
    def validate_calendar_id(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("draft calendar_id must not be empty")
        return text

    @property
    def is_all_day(self) -> bool:
        return isinstance(self.timing, AllDayTiming)

    @property
    def is_existing(self) -> bool:
        return self.external_id is not None


class EventSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: CalendarEvent
    start: AwareDatetime
    end: AwareDatetime
    top: float
    height: float
    column: int = Field(ge=0)
    column_span: int = Field(ge=1)


class DayLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    timed: list[EventSegment] = Field(default_factory=list)
    all_day: list[CalendarEvent] = Field(default_factory=list)


class DaylightWindow(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    iso_date: str
    sunrise: AwareDatetime | None = None
    sunset: AwareDatetime | None = None
    is_polar_day: bool = False
    is_polar_night: bool = False

    @model_validator(mode="after")
    def validate_exclusive_state(self) -> DaylightWindow:
        if self.is_polar_day or self.is_polar_night:
            if self.is_polar_day and self.is_polar_night:
                raise ValueError("a day cannot be both polar day and polar night")
            if self.sunrise is not None or self.sunset is not None:
                raise ValueError("polar days carry no sunrise or sunset")
            return self
        if self.sunrise is None or self.sunset is None:
            raise ValueError("non-polar days need both sunrise and sunset")
        return self


class DaylightShading(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["gradient", "polar_day", "polar_night"] = "gradient"
    sunrise_percent: float = 0.0
    sunset_percent: float = 100.0
