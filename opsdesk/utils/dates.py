import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from dateutil import parser as dtparser

from opsdesk.errors import ValidationError

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def as_utc(value: datetime) -> datetime:
    """Stored values may come back naive (SQLite); they are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be an ISO-8601 date string")
    try:
        parsed = dtparser.isoparse(value.strip())
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} is not a valid ISO-8601 date: {value!r}")
    return as_utc(parsed)


def day_key(value: datetime) -> str:
    return as_utc(value).date().isoformat()


@dataclass(frozen=True)
class DateRange:
    """
    Optional [start, end] window. A date-only end bound covers that whole
    day, so it is stored as the following midnight and compared exclusively.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    end_exclusive: bool = False
    raw_start: Optional[str] = None
    raw_end: Optional[str] = None

    @classmethod
    def parse(cls, start: Optional[str], end: Optional[str], field: str = "date") -> "DateRange":
        for bound in (start, end):
            if bound is not None and not isinstance(bound, str):
                raise ValidationError(f"{field} bounds must be ISO-8601 date strings")
        start = (start or "").strip() or None
        end = (end or "").strip() or None

        start_dt = parse_timestamp(start, f"{field} start") if start else None
        end_dt = None
        end_exclusive = False
        if end:
            end_dt = parse_timestamp(end, f"{field} end")
            if DATE_ONLY.match(end):
                end_dt = end_dt + timedelta(days=1)
                end_exclusive = True

        if start_dt and end_dt:
            if start_dt > end_dt or (end_exclusive and start_dt == end_dt):
                raise ValidationError(f"{field} start must not be after {field} end")

        return cls(start_dt, end_dt, end_exclusive, start, end)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def clauses(self, column) -> list:
        out = []
        if self.start is not None:
            out.append(column >= self.start)
        if self.end is not None:
            out.append(column < self.end if self.end_exclusive else column <= self.end)
        return out

    def contains(self, value: datetime) -> bool:
        value = as_utc(value)
        if self.start is not None and value < self.start:
            return False
        if self.end is not None:
            return value < self.end if self.end_exclusive else value <= self.end
        return True

    def as_dict(self) -> dict:
        return {"startDate": self.raw_start, "endDate": self.raw_end}
