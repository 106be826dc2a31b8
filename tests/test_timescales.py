# tests/test_timescales.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
import math
import pytest
from hypothesis import given, strategies as st

from astrotiming.core.constants import J2000_JD, SECONDS_PER_DAY
from astrotiming.core.errors import InvalidDate, InvalidInput
from astrotiming.core.timescales import (
    CalendarDate, Instant, instant_from_civil, instant_from_datetime, to_calendar, to_instant,
)

ONE_SECOND_D = 1.0 / SECONDS_PER_DAY


# ─────────────────────────────────────────────────────────────────────────────
# Known values
# ─────────────────────────────────────────────────────────────────────────────

def test_j2000_epoch() -> None:
    assert to_instant(2000, 1, 1, 12, 0, 0).jd == pytest.approx(J2000_JD, abs=1e-9)


def test_gregorian_reform_boundary_is_proleptic() -> None:
    # 1582-10-15 (Gregorian) is JD 2299160.5; the proleptic day before is 10-14
    assert to_instant(1582, 10, 15).jd == pytest.approx(2299160.5, abs=1e-9)
    assert to_instant(1582, 10, 14).jd == pytest.approx(2299159.5, abs=1e-9)


def test_end_of_day_does_not_roll_over() -> None:
    cal = to_calendar(to_instant(2024, 12, 31, 23, 59, 59))
    assert cal == CalendarDate(2024, 12, 31, 23, 59, 59.0)


def test_leap_day() -> None:
    cal = to_instant(2024, 2, 29, 6, 30, 15.25).to_calendar()
    assert cal[:5] == (2024, 2, 29, 6, 30)
    assert cal.second == pytest.approx(15.25, abs=1e-3)


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("fields", [
    (2023, 13, 1), (2023, 0, 1), (2023, 2, 29), (2023, 4, 31), (2023, 1, 0),
    (2023, 1, 1, 24), (2023, 1, 1, 0, 60), (2023, 1, 1, 0, 0, 60.0), (2023, 1, 1, 0, 0, -1.0),
    (2023.5, 1, 1),
])
def test_impossible_dates_rejected(fields) -> None:
    with pytest.raises(InvalidDate) as ei:
        to_instant(*fields)
    assert ei.value.code == "invalid_date"
    assert isinstance(ei.value, InvalidInput)


def test_non_finite_jd_rejected() -> None:
    with pytest.raises(InvalidInput):
        Instant(math.nan)
    with pytest.raises(InvalidInput):
        Instant(math.inf)


# ─────────────────────────────────────────────────────────────────────────────
# Instant arithmetic
# ─────────────────────────────────────────────────────────────────────────────

def test_instant_arithmetic_and_order() -> None:
    a = Instant(2451545.0)
    b = a + 1.5
    assert isinstance(b, Instant) and b.jd == 2451546.5
    assert (b - 0.5).jd == 2451546.0
    assert b - a == pytest.approx(1.5)
    assert a < b
    assert Instant(2451545.0) == a


def test_decimal_year() -> None:
    assert Instant.from_calendar(2000, 1, 1).decimal_year == pytest.approx(2000.0, abs=1e-12)
    mid = Instant.from_calendar(2001, 7, 2, 12).decimal_year   # day 182.5 of 365
    assert mid == pytest.approx(2001.5, abs=1e-9)


def test_repr_has_iso_time() -> None:
    assert "2000-01-01T12:00:00.000Z" in repr(Instant(J2000_JD))


# ─────────────────────────────────────────────────────────────────────────────
# Round trip
# ─────────────────────────────────────────────────────────────────────────────

@given(
    y=st.integers(min_value=1600, max_value=2400),
    m=st.integers(min_value=1, max_value=12),
    d=st.integers(min_value=1, max_value=28),
    hh=st.integers(min_value=0, max_value=23),
    mm=st.integers(min_value=0, max_value=59),
    ss=st.floats(min_value=0.0, max_value=59.999, allow_nan=False, allow_infinity=False),
)
def test_calendar_round_trip_within_one_second(y, m, d, hh, mm, ss) -> None:
    inst = to_instant(y, m, d, hh, mm, ss)
    back = to_instant(*to_calendar(inst))
    assert abs(back.jd - inst.jd) < ONE_SECOND_D


# ─────────────────────────────────────────────────────────────────────────────
# Civil time
# ─────────────────────────────────────────────────────────────────────────────

def test_civil_time_in_fixed_offset_zone() -> None:
    ist = instant_from_civil("2024-01-15", "10:30", "Asia/Kolkata")   # +05:30
    assert ist.jd == pytest.approx(to_instant(2024, 1, 15, 5, 0, 0).jd, abs=1e-9)


def test_civil_time_in_dst_zone() -> None:
    summer = instant_from_civil("2024-07-01", "12:00:00", "America/New_York")  # EDT, −4 h
    assert summer.jd == pytest.approx(to_instant(2024, 7, 1, 16).jd, abs=1e-9)


def test_civil_time_fractional_seconds() -> None:
    a = instant_from_civil("2020-06-01", "00:00:30.5", "UTC")
    assert a.to_calendar().second == pytest.approx(30.5, abs=1e-3)


@pytest.mark.parametrize("date_str, time_str, tz, code", [
    ("2024-01-15", "10:30", "Mars/Olympus_Mons", "invalid_timezone"),
    ("15/01/2024", "10:30", "UTC", "invalid_date"),
    ("2024-01-15", "10h30", "UTC", "invalid_time"),
    ("2024-02-30", "10:30", "UTC", "invalid_date"),
])
def test_civil_time_rejects_bad_input(date_str, time_str, tz, code) -> None:
    with pytest.raises(InvalidInput) as ei:
        instant_from_civil(date_str, time_str, tz)
    assert ei.value.code == code


def test_instant_from_datetime() -> None:
    aware = datetime(2024, 3, 10, 8, 0, tzinfo=timezone(timedelta(hours=2)))
    assert instant_from_datetime(aware).jd == pytest.approx(to_instant(2024, 3, 10, 6).jd, abs=1e-9)
    naive = datetime(2024, 3, 10, 6, 0)
    assert instant_from_datetime(naive).jd == pytest.approx(to_instant(2024, 3, 10, 6).jd, abs=1e-9)
