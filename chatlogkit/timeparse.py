"""Parsing of loose time expressions into points and ranges.

Local times are returned as naive ``datetime`` objects; times that carry an
explicit offset (RFC 3339 input) and the ``all`` range are timezone-aware.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone
from enum import IntEnum

__all__ = [
    "Granularity",
    "time_of",
    "time_of_with_granularity",
    "time_range_of",
    "perfect_time_format",
]


class Granularity(IntEnum):
    """How precisely a parsed time point was specified."""

    UNKNOWN = 0
    SECOND = 1
    MINUTE = 2
    HOUR = 3
    DAY = 4
    MONTH = 5
    QUARTER = 6
    YEAR = 7


_MIN_YEAR = 1970
_MAX_YEAR = 9999
_MIN_TIMESTAMP = 1_000_000_000
_MAX_TIMESTAMP = 253_402_300_799

_RELATIVE_RE = re.compile(r"^([0-9]+)([hdwmy])$")
_QUARTER_RE = re.compile(r"^([0-9]{4})Q([1-4])$")
_CLOCK_RE = re.compile(r"^[0-9]{2}:[0-9]{2}$")
_LAST_RANGE_RE = re.compile(r"^last-([0-9]+)([dwmy])$")
_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_RFC3339_RE = re.compile(
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})$"
)
_RFC3339_NO_SECONDS_RE = re.compile(
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2})"
    r"(Z|[+-][0-9]{2}:[0-9]{2})$"
)
_DURATION_PART_RE = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_RANGE_SEPARATORS = ("~", ",", " to ")

_END_OF_DAY = {"hour": 23, "minute": 59, "second": 59, "microsecond": 999999}
_START_OF_DAY = {"hour": 0, "minute": 0, "second": 0, "microsecond": 0}


def _is_digits(text: str) -> bool:
    return bool(text) and all("0" <= c <= "9" for c in text)


def _atoi(text: str) -> int:
    if not _INT_RE.match(text):
        raise ValueError(f"not an integer: {text!r}")
    return int(text)


def _is_valid_date(year: int, month: int, day: int) -> bool:
    return day <= calendar.monthrange(year, month)[1]


def _date_in_range(year: int, month: int, day: int) -> bool:
    return (
        _MIN_YEAR <= year <= _MAX_YEAR
        and 1 <= month <= 12
        and 1 <= day <= 31
        and _is_valid_date(year, month, day)
    )


def _start_of_day(t: datetime) -> datetime:
    return t.replace(**_START_OF_DAY)


def _end_of_day(t: datetime) -> datetime:
    return t.replace(**_END_OF_DAY)


def _end_of_month(t: datetime, month: int | None = None) -> datetime:
    month = t.month if month is None else month
    last = calendar.monthrange(t.year, month)[1]
    return t.replace(month=month, day=last, **_END_OF_DAY)


def _quarter_start_month(month: int) -> int:
    return (month - 1) // 3 * 3 + 1


def _add_date(t: datetime, years: int = 0, months: int = 0, days: int = 0) -> datetime:
    """Shift a datetime by calendar units, normalising overflowing days."""
    total = t.year * 12 + (t.month - 1) + years * 12 + months
    year, month0 = divmod(total, 12)
    base = t.replace(year=year, month=month0 + 1, day=1)
    return base + timedelta(days=t.day - 1 + days)


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``90s``."""
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration: {text!r}")
    seconds = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART_RE.match(rest, pos)
        if not match or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration: {text!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=-seconds if negative else seconds)


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    hours, minutes = int(text[1:3]), int(text[4:6])
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid offset: {text!r}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339_RE.match(text)
    if match:
        year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
        fraction = match.group(7)
        micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
        tz = _parse_offset(match.group(8))
    else:
        match = _RFC3339_NO_SECONDS_RE.match(text)
        if not match:
            raise ValueError(f"not an RFC 3339 time: {text!r}")
        year, month, day, hour, minute = (int(g) for g in match.groups()[:5])
        second, micro = 0, 0
        tz = _parse_offset(match.group(6))
    if hour > 23 or minute > 59 or second > 59:
        raise ValueError(f"time out of range: {text!r}")
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)


def _parse_named(lower: str) -> tuple[datetime, Granularity] | None:
    now = datetime.now()
    if lower == "now":
        return now, Granularity.SECOND
    if lower == "today":
        return _start_of_day(now), Granularity.DAY
    if lower == "yesterday":
        return _start_of_day(_add_date(now, days=-1)), Granularity.DAY
    if lower == "this-week":
        return _start_of_day(now - timedelta(days=now.weekday())), Granularity.DAY
    if lower == "last-week":
        return _start_of_day(now - timedelta(days=now.weekday() + 7)), Granularity.DAY
    first_of_month = _start_of_day(now.replace(day=1))
    if lower == "this-month":
        return first_of_month, Granularity.MONTH
    if lower == "last-month":
        return _add_date(first_of_month, months=-1), Granularity.MONTH
    if lower == "this-year":
        return first_of_month.replace(month=1), Granularity.YEAR
    if lower == "last-year":
        return first_of_month.replace(year=now.year - 1, month=1), Granularity.YEAR
    if lower == "all":
        return datetime.min, Granularity.YEAR
    return None


def _parse_ago(text: str) -> tuple[datetime, Granularity] | None:
    if text == "0d":
        return _start_of_day(datetime.now()), Granularity.DAY

    match = _RELATIVE_RE.match(text)
    if match:
        num = int(match.group(1))
        if num <= 0:
            return None
        now = datetime.now()
        unit = match.group(2)
        if unit == "h":
            return now - timedelta(hours=num), Granularity.HOUR
        if unit == "d":
            return _add_date(now, days=-num), Granularity.DAY
        if unit == "w":
            return _add_date(now, days=-num * 7), Granularity.DAY
        if unit == "m":
            return _add_date(now, months=-num), Granularity.MONTH
        return _add_date(now, years=-num), Granularity.YEAR

    try:
        duration = _parse_duration(text)
    except ValueError:
        return None
    hours = duration.total_seconds() / 3600
    if hours < 1:
        granularity = Granularity.SECOND
    elif hours < 24:
        granularity = Granularity.HOUR
    else:
        granularity = Granularity.DAY
    return datetime.now() - duration, granularity


def _parse_with_slash(text: str) -> tuple[datetime, Granularity] | None:
    parts = text.split("/")
    if len(parts) != 2:
        return None
    date_part, time_part = parts
    if len(date_part) == 8 and _is_digits(date_part):
        year, month, day = int(date_part[0:4]), int(date_part[4:6]), int(date_part[6:8])
    elif len(date_part) == 10 and date_part.count("-") == 2:
        year, month, day = (_atoi(p) for p in date_part.split("-"))
    else:
        return None
    if not _date_in_range(year, month, day):
        return None
    if not _CLOCK_RE.match(time_part):
        return None
    hour, minute = (int(p) for p in time_part.split(":"))
    if hour > 23 or minute > 59:
        return None
    return datetime(year, month, day, hour, minute), Granularity.MINUTE


def _parse(text: str) -> tuple[datetime, Granularity] | None:
    if text == "":
        return None
    s = text.strip()

    named = _parse_named(s.lower())
    if named is not None:
        return named

    if s.endswith("-ago"):
        return _parse_ago(s[: -len("-ago")])

    match = _QUARTER_RE.match(s)
    if match:
        year, quarter = int(match.group(1)), int(match.group(2))
        if not _MIN_YEAR <= year <= _MAX_YEAR:
            return None
        return datetime(year, (quarter - 1) * 3 + 1, 1), Granularity.QUARTER

    if len(s) == 4 and _is_digits(s):
        year = int(s)
        if _MIN_YEAR <= year <= _MAX_YEAR:
            return datetime(year, 1, 1), Granularity.YEAR
        return None

    if (len(s) == 6 and _is_digits(s)) or (len(s) == 7 and s.count("-") == 1):
        if len(s) == 6 and _is_digits(s):
            year, month = int(s[0:4]), int(s[4:6])
        else:
            year_text, month_text = s.split("-")
            year, month = _atoi(year_text), _atoi(month_text)
        if not (_MIN_YEAR <= year <= _MAX_YEAR and 1 <= month <= 12):
            return None
        return datetime(year, month, 1), Granularity.MONTH

    if len(s) == 8 and _is_digits(s):
        year, month, day = int(s[0:4]), int(s[4:6]), int(s[6:8])
        if not _date_in_range(year, month, day):
            return None
        return datetime(year, month, day), Granularity.DAY
    if len(s) == 10 and s.count("-") == 2:
        year, month, day = (_atoi(p) for p in s.split("-"))
        if not _date_in_range(year, month, day):
            return None
        return datetime(year, month, day), Granularity.DAY

    if len(s) == 12 and _is_digits(s):
        year, month, day = int(s[0:4]), int(s[4:6]), int(s[6:8])
        hour, minute = int(s[8:10]), int(s[10:12])
        if not _date_in_range(year, month, day) or hour > 23 or minute > 59:
            return None
        return datetime(year, month, day, hour, minute), Granularity.MINUTE

    if "/" in s:
        return _parse_with_slash(s)

    if len(s) == 14 and _is_digits(s):
        year, month, day = int(s[0:4]), int(s[4:6]), int(s[6:8])
        hour, minute, second = int(s[8:10]), int(s[10:12]), int(s[12:14])
        if not _date_in_range(year, month, day) or hour > 23 or minute > 59 or second > 59:
            return None
        return datetime(year, month, day, hour, minute, second), Granularity.SECOND

    if _is_digits(s):
        value = int(s)
        if _MIN_TIMESTAMP <= value <= _MAX_TIMESTAMP:
            return datetime.fromtimestamp(value), Granularity.SECOND
        return None

    if "T" in s and ("Z" in s or "+" in s or "-" in s):
        return _parse_rfc3339(s), Granularity.SECOND

    return None


def _parse_safely(text: str) -> tuple[datetime, Granularity] | None:
    try:
        return _parse(text)
    except (ValueError, OverflowError, OSError):
        return None


def time_of_with_granularity(text: str) -> tuple[datetime, Granularity]:
    """Parse a time expression, returning the point and its granularity.

    Raises ValueError when the expression is not recognised.
    """
    parsed = _parse_safely(text)
    if parsed is None:
        raise ValueError(f"unrecognised time expression: {text!r}")
    return parsed


def time_of(text: str) -> datetime:
    """Parse a time expression into a single point in time.

    Raises ValueError when the expression is not recognised.
    """
    return time_of_with_granularity(text)[0]


def _adjust_start(t: datetime, g: Granularity) -> datetime:
    if g in (Granularity.SECOND, Granularity.MINUTE, Granularity.HOUR):
        return t
    if g is Granularity.MONTH:
        return _start_of_day(t.replace(day=1))
    if g is Granularity.QUARTER:
        return _start_of_day(t.replace(month=_quarter_start_month(t.month), day=1))
    if g is Granularity.YEAR:
        return _start_of_day(t.replace(month=1, day=1))
    return _start_of_day(t)


def _adjust_end(t: datetime, g: Granularity) -> datetime:
    if g in (Granularity.SECOND, Granularity.MINUTE, Granularity.HOUR):
        return t
    if g is Granularity.MONTH:
        return _end_of_month(t)
    if g is Granularity.QUARTER:
        return _end_of_month(t, _quarter_start_month(t.month) + 2)
    if g is Granularity.YEAR:
        return t.replace(month=12, day=31, **_END_OF_DAY)
    return _end_of_day(t)


def _comparable(t: datetime) -> datetime:
    if t.tzinfo is not None:
        return t
    try:
        return t.astimezone()
    except (OverflowError, ValueError, OSError):
        return t.replace(tzinfo=timezone.utc)


def _is_after(a: datetime, b: datetime) -> bool:
    if (a.tzinfo is None) == (b.tzinfo is None):
        return a > b
    return _comparable(a) > _comparable(b)


def _last_range(s: str) -> tuple[datetime, datetime] | None:
    match = _LAST_RANGE_RE.match(s)
    if not match:
        return None
    num = int(match.group(1))
    if num <= 0:
        raise ValueError(f"invalid relative range: {s!r}")
    now = datetime.now()
    end = _end_of_day(now)
    unit = match.group(2)
    if unit == "d":
        start = _add_date(now, days=-num)
    elif unit == "w":
        start = _add_date(now, days=-num * 7)
    elif unit == "m":
        start = _add_date(now, months=-num)
    else:
        start = _add_date(now, years=-num)
    return _start_of_day(start), end


def _separated_range(s: str) -> tuple[datetime, datetime] | None:
    for sep in _RANGE_SEPARATORS:
        if sep not in s:
            continue
        parts = s.split(sep)
        if len(parts) != 2:
            continue
        first = _parse_safely(parts[0].strip())
        second = _parse_safely(parts[1].strip())
        if first is None or second is None:
            continue
        (start_time, start_gran), (end_time, end_gran) = first, second
        start = _adjust_start(start_time, start_gran)
        end = _adjust_end(end_time, end_gran)
        if _is_after(start, end):
            start = _adjust_start(end_time, end_gran)
            end = _adjust_end(start_time, start_gran)
        return start, end
    return None


def _time_range(text: str) -> tuple[datetime, datetime] | None:
    if text == "":
        return None
    s = text.strip()

    if s.lower() == "all":
        return (
            datetime(1970, 1, 1, tzinfo=timezone.utc),
            datetime(9999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc),
        )

    last = _last_range(s)
    if last is not None:
        return last

    separated = _separated_range(s)
    if separated is not None:
        return separated

    parsed = _parse_safely(s)
    if parsed is None:
        return None
    t, g = parsed
    if g in (Granularity.SECOND, Granularity.MINUTE, Granularity.HOUR, Granularity.DAY):
        return _start_of_day(t), _end_of_day(t)
    return _adjust_start(t, g), _adjust_end(t, g)


def time_range_of(text: str) -> tuple[datetime, datetime]:
    """Parse a time range expression into ``(start, end)``.

    Accepts single points (expanded by their granularity), ``a~b``, ``a,b``,
    ``a to b``, ``last-Nd/w/m/y``, named periods and ``all``.
    Raises ValueError when the expression is not recognised.
    """
    try:
        result = _time_range(text)
    except (ValueError, OverflowError, OSError):
        result = None
    if result is None:
        raise ValueError(f"unrecognised time range: {text!r}")
    return result


def perfect_time_format(start: datetime, end: datetime) -> str:
    """Pick the shortest strftime format that tells apart times in the range."""
    end_time = end
    if (end_time.hour, end_time.minute, end_time.second, end_time.microsecond) == (0, 0, 0, 0):
        end_time = end_time - timedelta(seconds=1)

    if start.year != end_time.year:
        return "%Y-%m-%d %H:%M:%S"
    if start.timetuple().tm_yday != end_time.timetuple().tm_yday:
        return "%m-%d %H:%M:%S"
    return "%H:%M:%S"