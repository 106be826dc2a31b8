# tests/test_engine.py
from __future__ import annotations

import pytest

from astrotiming.core.angles import signed_delta
from astrotiming.core.ayanamsa import TROPICAL
from astrotiming.core.constants import BODY_ORDER, EVENT_INGRESS
from astrotiming.core.engine import TimingEngine
from astrotiming.core.solver import NoCrossingInWindow
from astrotiming.version import VERSION

from conftest import EPOCH, LinearEphemeris


@pytest.fixture
def engine() -> TimingEngine:
    return TimingEngine(ayanamsa="lahiri")


def test_sidereal_positions_at_epoch(engine) -> None:
    rows = engine.positions_at(EPOCH)
    assert list(rows) == list(BODY_ORDER)
    # Mean Sun 280.46646° minus Lahiri 23.85° (plus a day's worth of drift)
    assert rows["Sun"].longitude == pytest.approx(256.616, abs=1e-3)
    assert rows["Ketu"].longitude == pytest.approx((rows["Rahu"].longitude + 180.0) % 360.0)
    assert engine.ayanamsa(EPOCH) == pytest.approx(23.85, abs=1e-4)


def test_positions_are_served_from_cache(engine) -> None:
    first = engine.positions_at(EPOCH)
    assert len(engine.tropical) == 1
    assert engine.positions_at(EPOCH) == first
    assert len(engine.tropical) == 1


def test_classify_uses_engine_orbs(engine) -> None:
    assert engine.classify(0.0, 95.0).aspect == "square"
    assert engine.classify(0.0, 100.0) is None
    assert engine.classify(0.0, 100.0, orb=10.0).aspect == "square"


def test_find_first_lands_on_target(engine) -> None:
    c = engine.find_first("Moon", 100.0, EPOCH, 30)
    assert c.found
    lon = engine.positions_at(c.instant)["Moon"].longitude
    assert abs(signed_delta(lon, 100.0)) < 1e-4
    assert engine.find_all("Moon", 100.0, EPOCH, 30)[0] == c


def test_find_first_reports_absence(engine) -> None:
    # Saturn moves ~0.03°/day; half a sign away is out of reach in a week
    sat = engine.positions_at(EPOCH)["Saturn"].longitude
    res = engine.find_first("Saturn", sat + 15.0, EPOCH, 7)
    assert isinstance(res, NoCrossingInWindow)


def test_sun_calendar_over_two_months(engine) -> None:
    cal = engine.build_event_calendar(EPOCH, EPOCH + 60, ["Sun"])
    assert [(e.kind, e.sign_name) for e in cal] == [(EVENT_INGRESS, "Capricorn"), (EVENT_INGRESS, "Aquarius")]
    for ev in cal:
        lon = engine.positions_at(ev.instant)["Sun"].longitude
        assert abs(signed_delta(lon, ev.sign * 30.0)) < 1e-4


def test_simultaneous_ingresses_follow_body_order() -> None:
    eng = TimingEngine(LinearEphemeris({"Sun": (29.5, 1.0), "Moon": (59.0, 2.0)}), ayanamsa=TROPICAL)
    cal = eng.build_event_calendar(EPOCH, EPOCH + 1, ["Sun", "Moon"])
    assert [(e.body, e.sign_name) for e in cal] == [("Sun", "Taurus"), ("Moon", "Gemini")]
    assert cal[0].instant == cal[1].instant


def test_two_engines_side_by_side() -> None:
    lahiri = TimingEngine(ayanamsa="lahiri").positions_at(EPOCH)["Sun"].longitude
    raman = TimingEngine(ayanamsa="raman").positions_at(EPOCH)["Sun"].longitude
    assert lahiri - raman == pytest.approx(22.41 - 23.85, abs=1e-9)


def test_describe(engine) -> None:
    engine.positions_at(EPOCH)
    info = engine.describe()
    assert info["version"] == VERSION
    assert info["provider"] == "MeanMotionEphemeris"
    assert info["ayanamsa"]["name"] == "lahiri"
    assert info["max_iterations"] == 50
    assert info["cached_instants"] == 1


def test_calendar_defaults_to_every_tracked_body(engine) -> None:
    cal = engine.build_event_calendar(EPOCH, EPOCH + 3)
    assert any(e.body == "Moon" for e in cal)
    assert {e.body for e in cal} <= set(BODY_ORDER)


@pytest.mark.slow
def test_saturn_walks_every_sign_over_thirty_years(engine) -> None:
    cal = engine.build_event_calendar(EPOCH, EPOCH + 30 * 365.25, ["Saturn"], step_minutes=10 * 1440)
    assert len(cal) == 13
    assert [e.sign for e in cal] == [(1 + k) % 12 for k in range(13)]
    gaps = [b.instant - a.instant for a, b in zip(cal, cal[1:])]
    assert all(g == pytest.approx(30.0 / 0.03346, rel=1e-3) for g in gaps)
