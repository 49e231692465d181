from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

logger = logging.getLogger("ctrm.month_codes")

MONTH_ABBREVIATIONS: tuple[str, ...] = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_MONTH_INDEX = {abbr.lower(): i + 1 for i, abbr in enumerate(MONTH_ABBREVIATIONS)}
_CANONICAL_RE = re.compile(r"^([A-Za-z]{3})-(\d{2})$")
_CONCATENATED_RE = re.compile(r"^([A-Za-z]{3})(\d{2})$")

DateLike = Union[date, datetime, str]


class InvalidMonthCodeError(ValueError):
    """Raised when a month code cannot be mapped to a calendar month."""


def parse_iso_date(value: object) -> Optional[date]:
    """Best-effort conversion of trade data to a calendar date.

    Accepts ``date``/``datetime`` instances and ISO strings (``2024-03-01`` or
    ``2024-03-01T10:00:00Z``). Returns ``None`` for anything else; the time of
    day is always discarded.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s[:10])
        except ValueError:
            return None
    return None


@dataclass(frozen=True, order=True)
class MonthCode:
    """A calendar month identified by its canonical ``Mon-YY`` token."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidMonthCodeError(f"month out of range: {self.month}")

    @classmethod
    def parse(cls, code: str) -> "MonthCode":
        s = standardize_month_code(str(code or ""))
        m = _CANONICAL_RE.match(s)
        if not m:
            raise InvalidMonthCodeError(f"invalid month code: {code!r}")
        month = _MONTH_INDEX.get(m.group(1).lower())
        if month is None:
            raise InvalidMonthCodeError(f"unknown month abbreviation in {code!r}")
        return cls(year=2000 + int(m.group(2)), month=month)

    @classmethod
    def from_date(cls, d: date) -> "MonthCode":
        return cls(year=d.year, month=d.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def next(self) -> "MonthCode":
        if self.month == 12:
            return MonthCode(self.year + 1, 1)
        return MonthCode(self.year, self.month + 1)

    def __str__(self) -> str:
        return f"{MONTH_ABBREVIATIONS[self.month - 1]}-{self.year % 100:02d}"


def format_month_code(d: date) -> str:
    """``date(2024, 3, 15)`` -> ``"Mar-24"``."""
    return str(MonthCode.from_date(d))


def standardize_month_code(code: str) -> str:
    """Normalize ``"Mar 24"`` / ``"Mar24"`` to ``"Mar-24"``.

    Codes already containing a hyphen are returned as-is. Unrecognized formats
    are returned unchanged and logged.
    """
    s = (code or "").strip()
    if not s or "-" in s:
        return s

    parts = s.split()
    if len(parts) == 2:
        return f"{parts[0].capitalize()}-{parts[1]}"

    m = _CONCATENATED_RE.match(s)
    if m:
        return f"{m.group(1).capitalize()}-{m.group(2)}"

    logger.warning("month_code_unrecognized", extra={"code": code})
    return s


def month_code_to_date_range(code: str) -> tuple[date, date]:
    """First and last calendar day of a month code.

    Raises InvalidMonthCodeError on an unknown month token.
    """
    mc = MonthCode.parse(code)
    return mc.first_day, mc.last_day


def month_codes_between(start: DateLike, end: DateLike) -> list[str]:
    """Every month code touched by ``[start, end]``, chronologically."""
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if s is None or e is None or e < s:
        return []

    codes: list[str] = []
    current = MonthCode.from_date(s)
    last = MonthCode.from_date(e)
    while current <= last:
        codes.append(str(current))
        current = current.next()
    return codes


def is_date_in_range(d: DateLike, start: DateLike, end: DateLike) -> bool:
    value = parse_iso_date(d)
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if value is None or s is None or e is None:
        return False
    return s <= value <= e


def does_month_overlap_range(code: str, start: DateLike, end: DateLike) -> bool:
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if s is None or e is None:
        return False
    try:
        first, last = month_code_to_date_range(code)
    except InvalidMonthCodeError:
        logger.warning("month_overlap_invalid_code", extra={"code": code})
        return False
    return first <= e and last >= s


def next_month_codes(count: int, start: Optional[date] = None) -> list[str]:
    """``count`` consecutive month codes beginning with the month of ``start``."""
    current = MonthCode.from_date(start or date.today())
    codes: list[str] = []
    for _ in range(max(0, int(count))):
        codes.append(str(current))
        current = current.next()
    return codes


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range used to filter exposure."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(
                f"date range end {self.end.isoformat()} is before start {self.start.isoformat()}"
            )

    @classmethod
    def between(cls, start: DateLike, end: Optional[DateLike] = None) -> "DateRange":
        s = parse_iso_date(start)
        if s is None:
            raise ValueError(f"invalid date range start: {start!r}")
        e = parse_iso_date(end) if end is not None else s
        if e is None:
            raise ValueError(f"invalid date range end: {end!r}")
        return cls(start=s, end=e)

    @property
    def month_codes(self) -> list[str]:
        return month_codes_between(self.start, self.end)

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end
