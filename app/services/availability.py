# app/services/availability.py
# Tutor weekly availability: typed document + containment check
#
# Stored as JSON text on the tutor's latest application:
#   [
#     {"day": "MON", "off": false, "slots": [{"start": "14:00", "end": "16:00"}]},
#     {"day": "TUE", "off": true,  "slots": []},
#     ...
#   ]
#
# Day keys are SUN..SAT. Times are "HH:MM" on the campus clock
# (settings.campus_timezone); "24:00" means end of day. A session must fit
# entirely inside one slot of its own weekday. Windows crossing midnight never
# fit, including one that ends exactly at the next midnight.

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from app.core.config import settings
from app.core.exceptions import ValidationFailedError

logger = logging.getLogger("tutorlink.availability")

DAY_KEYS = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")
DayKey = Literal["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]

_HHMM = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")
MINUTES_PER_DAY = 24 * 60


def to_minutes(hhmm: str) -> int:
    if hhmm == "24:00":
        return MINUTES_PER_DAY
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


# ── Value Objects ─────────────────────────────────────────────────────────────

class TimeSlot(BaseModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def check_hhmm(cls, v: str) -> str:
        v = v.strip()
        if v != "24:00" and not _HHMM.match(v):
            raise ValueError(f"'{v}' is not a HH:MM time")
        return v

    @model_validator(mode="after")
    def check_order(self):
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError(f"slot {self.start}-{self.end} must end after it starts")
        return self

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def contains(self, start_min: int, end_min: int) -> bool:
        return self.start_minutes <= start_min and end_min <= self.end_minutes


class DayAvailability(BaseModel):
    day: DayKey
    off: bool = False
    slots: List[TimeSlot] = []


class WeeklyAvailability(BaseModel):
    days: List[DayAvailability]

    @field_validator("days")
    @classmethod
    def unique_days(cls, v: List[DayAvailability]) -> List[DayAvailability]:
        if not v:
            raise ValueError("at least one day is required")
        seen = set()
        for d in v:
            if d.day in seen:
                raise ValueError(f"day {d.day} listed twice")
            seen.add(d.day)
        return v

    def for_day(self, key: str) -> Optional[DayAvailability]:
        for d in self.days:
            if d.day == key:
                return d
        return None

    def to_json(self) -> str:
        return json.dumps([d.model_dump() for d in self.days])


# ── Parsing ───────────────────────────────────────────────────────────────────

def _load(raw) -> WeeklyAvailability:
    """Strict parse; raises ValueError / ValidationError on anything malformed."""
    if isinstance(raw, WeeklyAvailability):
        return raw
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if isinstance(raw, dict) and "days" in raw:
        raw = raw["days"]
    if not isinstance(raw, list):
        raise ValueError("availability must be a list of day records")
    return WeeklyAvailability(days=raw)


def parse_availability(raw) -> Optional[WeeklyAvailability]:
    """Lenient entry point: None for missing or malformed documents."""
    if raw is None or raw == "":
        return None
    try:
        return _load(raw)
    except (ValueError, TypeError, ValidationError):
        return None


def validate_availability(raw) -> WeeklyAvailability:
    """
    Strict entry point for the availability write endpoint.
    Raises ValidationFailedError naming the first problem found.
    """
    if raw is None or raw == "":
        raise ValidationFailedError("Availability is required.")
    try:
        return _load(raw)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        msg = first.get("msg", "invalid value")
        if where:
            raise ValidationFailedError(f"Invalid availability at {where}: {msg}")
        raise ValidationFailedError(f"Invalid availability: {msg}")
    except (ValueError, TypeError) as e:
        raise ValidationFailedError(f"Invalid availability: {e}")


# ── Matching ──────────────────────────────────────────────────────────────────

def campus_zone(name: Optional[str] = None):
    name = name or settings.campus_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown campus timezone %r, falling back to UTC", name)
        return timezone.utc


def _local(dt: datetime, tz) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def day_key(dt: datetime, tz=None) -> str:
    local = _local(dt, tz or campus_zone())
    # isoweekday: Mon=1 .. Sun=7  →  SUN=0 .. SAT=6
    return DAY_KEYS[local.isoweekday() % 7]


def is_within_availability(doc, start: datetime, end: datetime, tz=None) -> bool:
    """
    True when [start, end) sits inside one declared slot on start's weekday.
    Fails closed on missing / malformed documents and on cross-day windows.
    """
    availability = parse_availability(doc)
    if availability is None or end <= start:
        return False

    tz = tz or campus_zone()
    local_start = _local(start, tz)
    local_end = _local(end, tz)
    if local_end.date() != local_start.date():
        return False

    # A partial minute at the end counts as the whole minute
    end_min = local_end.hour * 60 + local_end.minute
    if local_end.second or local_end.microsecond:
        end_min += 1

    day = availability.for_day(DAY_KEYS[local_start.isoweekday() % 7])
    if day is None or day.off or not day.slots:
        return False

    start_min = local_start.hour * 60 + local_start.minute
    return any(slot.contains(start_min, end_min) for slot in day.slots)
