# astrotiming/core/timescales.py
# -----------------------------------------------------------------------------
# Calendar ↔ continuous astronomical time (Julian Day)
#
# Public API:
#   Instant(jd)                                         immutable JD wrapper
#   to_instant(year, month, day, hour, minute, second)  -> Instant
#   to_calendar(instant)                                -> CalendarDate
#   instant_from_civil(date_str, time_str, tz_name)     -> Instant
#
# Guarantees:
#   • ERFA chain: calendar → JD via erfa.dtf2d, JD → calendar via erfa.d2dtf.
#   • Uniform 86 400 s days (no leap-second table); inputs are treated as UTC.
#   • Proleptic Gregorian calendar; impossible dates raise InvalidDate.
#   • d2dtf rounds with carry, so 23:59:59 never spills into the next day and
#     calendar → Instant → calendar is stable to the millisecond.
#   • No POSIX timestamp math feeds any JD.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NamedTuple, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import math
import re

import erfa  # pyERFA

from astrotiming.core.errors import InvalidDate, InvalidInput

__all__ = [
    "CalendarDate",
    "Instant",
    "to_instant",
    "to_calendar",
    "instant_from_civil",
    "instant_from_datetime",
]

# Scale label handed to ERFA; anything but "UTC" means no leap-second handling.
_ERFA_SCALE = "UT1"
_NDP = 3  # millisecond resolution on the way back

# erfa.jd2cal lower bound (JD of -4799-01-01)
_JD_MIN = -68569.5

# ───────────────────────────── Data types ─────────────────────────────

class CalendarDate(NamedTuple):
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: float = 0.0


@dataclass(frozen=True, order=True)
class Instant:
    jd: float

    def __post_init__(self) -> None:
        try:
            v = float(self.jd)
        except (TypeError, ValueError) as e:
            raise InvalidInput("non_numeric", f"Julian Day must be a number, got {self.jd!r}") from e
        if not math.isfinite(v):
            raise InvalidInput("non_finite", f"Julian Day must be finite, got {v!r}")
        if v < _JD_MIN:
            raise InvalidInput("out_of_range", f"Julian Day {v} precedes the supported calendar span")
        object.__setattr__(self, "jd", v)

    def __add__(self, days: float) -> "Instant":
        if isinstance(days, Instant):
            return NotImplemented
        return Instant(self.jd + float(days))

    def __sub__(self, other: Union["Instant", float]) -> Union["Instant", float]:
        if isinstance(other, Instant):
            return self.jd - other.jd
        return Instant(self.jd - float(other))

    @classmethod
    def from_calendar(cls, year: int, month: int, day: int,
                      hour: int = 0, minute: int = 0, second: float = 0.0) -> "Instant":
        return to_instant(year, month, day, hour, minute, second)

    def to_calendar(self) -> CalendarDate:
        return to_calendar(self)

    @property
    def decimal_year(self) -> float:
        """Calendar year plus the elapsed fraction of that year."""
        year = to_calendar(self).year
        j0 = _jd_of_midnight(year, 1, 1)
        j1 = _jd_of_midnight(year + 1, 1, 1)
        return year + (self.jd - j0) / (j1 - j0)

    def __repr__(self) -> str:
        c = to_calendar(self)
        return (f"Instant({self.jd:.6f} = {c.year:04d}-{c.month:02d}-{c.day:02d}"
                f"T{c.hour:02d}:{c.minute:02d}:{c.second:06.3f}Z)")


# ───────────────────────────── Helpers ─────────────────────────────

def _split_jd(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd)
    d2 = jd - d1
    return float(d1), float(d2)


def _jd_of_midnight(year: int, month: int, day: int) -> float:
    djm0, djm = erfa.cal2jd(int(year), int(month), int(day))
    return float(djm0) + float(djm)


def _check_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise InvalidDate(f"{name} must be an integer, got {value!r}")
    return int(value)


# ───────────────────────────── Public API ─────────────────────────────

def to_instant(year: int, month: int, day: int,
               hour: int = 0, minute: int = 0, second: float = 0.0) -> Instant:
    """Proleptic Gregorian UTC calendar fields → Instant."""
    iy = _check_int("year", year)
    im = _check_int("month", month)
    iday = _check_int("day", day)
    ih = _check_int("hour", hour)
    imin = _check_int("minute", minute)
    try:
        sec = float(second)
    except (TypeError, ValueError) as e:
        raise InvalidDate(f"second must be a number, got {second!r}") from e

    if not 1 <= im <= 12:
        raise InvalidDate(f"month {im} outside 1..12")
    if not 0 <= ih <= 23:
        raise InvalidDate(f"hour {ih} outside 0..23")
    if not 0 <= imin <= 59:
        raise InvalidDate(f"minute {imin} outside 0..59")
    if not (math.isfinite(sec) and 0.0 <= sec < 60.0):
        raise InvalidDate(f"second {second!r} outside [0, 60)")

    try:
        d1, d2 = erfa.dtf2d(_ERFA_SCALE, iy, im, iday, ih, imin, sec)
    except erfa.ErfaError as e:
        # bad year / bad day for that month and year
        raise InvalidDate(f"{iy:04d}-{im:02d}-{iday:02d} is not a valid calendar date ({e})") from e
    return Instant(math.fsum((float(d1), float(d2))))


def to_calendar(instant: Instant) -> CalendarDate:
    """Instant → UTC calendar fields (seconds rounded to the millisecond, with carry)."""
    d1, d2 = _split_jd(instant.jd)
    try:
        iy, im, iday, ihmsf = erfa.d2dtf(_ERFA_SCALE, _NDP, d1, d2)
    except erfa.ErfaError as e:
        raise InvalidInput("out_of_range", f"Julian Day {instant.jd} cannot be expressed as a date ({e})") from e
    sec = int(ihmsf["s"]) + int(ihmsf["f"]) / 10 ** _NDP
    return CalendarDate(int(iy), int(im), int(iday), int(ihmsf["h"]), int(ihmsf["m"]), sec)


# ───────────────────────────── Civil-time entry ─────────────────────────────

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")
_TIME_RE = re.compile(r"^\s*(?P<h>\d{2}):(?P<m>\d{2})(?::(?P<s>\d{2})(?:\.(?P<f>\d+))?)?\s*$")


def _parse_date_str(date_str: str) -> Tuple[int, int, int]:
    m = _DATE_RE.match(date_str or "")
    if not m:
        raise InvalidInput("invalid_date", f"Invalid date_str '{date_str}': expected YYYY-MM-DD")
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def _parse_time_str(time_str: str) -> Tuple[int, int, float]:
    m = _TIME_RE.match(time_str or "")
    if not m:
        raise InvalidInput("invalid_time", f"Invalid time_str '{time_str}': expected HH:MM[:SS[.frac]]")
    sec = float(f"{m.group('s') or '0'}.{m.group('f') or '0'}")
    return int(m.group("h")), int(m.group("m")), sec


def instant_from_civil(date_str: str, time_str: str, tz_name: str = "UTC") -> Instant:
    """
    Local civil time in an IANA zone → Instant (UTC).

    Ambiguous wall times (DST fall-back) resolve to the first occurrence (fold=0).
    """
    iy, im, iday = _parse_date_str(date_str)
    ih, imin, sec = _parse_time_str(time_str)
    try:
        z = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput("invalid_timezone", f"Unknown IANA time zone '{tz_name}'") from e

    # Validate the wall-clock fields before datetime sees them
    local_jd = to_instant(iy, im, iday, ih, imin, sec)

    whole = int(sec)
    try:
        local = datetime(iy, im, iday, ih, imin, whole, tzinfo=z, fold=0)
    except ValueError as e:
        raise InvalidDate(f"{date_str} {time_str} not representable in {tz_name} ({e})") from e
    offset = local.utcoffset()
    if offset is None:
        raise InvalidInput("invalid_timezone", f"Time zone '{tz_name}' returned no UTC offset")
    utc_shift_days = offset.total_seconds() / 86400.0
    return Instant(local_jd.jd - utc_shift_days)


def instant_from_datetime(dt: datetime) -> Instant:
    """Aware datetime → Instant; naive values are taken as UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return to_instant(dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second + dt.microsecond / 1e6)
