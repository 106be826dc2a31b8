# tests/test_ayanamsa.py
from __future__ import annotations

import pytest

from astrotiming.core.angles import separation
from astrotiming.core.ayanamsa import (
    AYANAMSA_PRESETS, LAHIRI, AyanamsaModel, SiderealEphemeris, ayanamsa_at, resolve_model, to_sidereal,
)
from astrotiming.core.constants import J2000_JD
from astrotiming.core.errors import InvalidInput
from astrotiming.core.timescales import Instant, to_instant

from conftest import LinearEphemeris


def test_lahiri_linear_model() -> None:
    assert ayanamsa_at(2000) == pytest.approx(23.85)
    assert ayanamsa_at(2100) - ayanamsa_at(2000) == pytest.approx(100 * 50.2388 / 3600.0)
    assert LAHIRI.rate_deg_per_year == pytest.approx(0.013955, abs=1e-6)


def test_ayanamsa_increases_with_time() -> None:
    years = [1900, 1950, 2000, 2024.5, 2100]
    values = [ayanamsa_at(y) for y in years]
    assert values == sorted(values)


def test_to_sidereal() -> None:
    assert to_sidereal(100.0, 24.0) == pytest.approx(76.0)
    assert to_sidereal(10.0, 24.0) == pytest.approx(346.0)
    with pytest.raises(InvalidInput):
        to_sidereal(float("nan"), 24.0)


def test_presets_resolve_by_name() -> None:
    assert resolve_model("Fagan-Bradley") is AYANAMSA_PRESETS["fagan_bradley"]
    assert resolve_model(None) is LAHIRI
    assert ayanamsa_at(1987.3, "tropical") == 0.0
    with pytest.raises(InvalidInput) as ei:
        resolve_model("galactic")
    assert ei.value.code == "invalid_ayanamsa"


def test_end_to_end_sidereal_position() -> None:
    # Tropical 100° with a flat 24° offset → sidereal 76°
    provider = LinearEphemeris({"Sun": (100.0, 0.0)})
    flat = AyanamsaModel("flat24", 24.0, rate_deg_per_year=0.0)
    sid = SiderealEphemeris(provider, flat)
    assert sid.position_of("Sun", Instant(J2000_JD + 123.0)).longitude == pytest.approx(76.0)


def test_systems_coexist_side_by_side() -> None:
    provider = LinearEphemeris({"Sun": (200.0, 1.0)})
    t = to_instant(2010, 5, 5)
    lahiri = SiderealEphemeris(provider, "lahiri").position_of("Sun", t).longitude
    raman = SiderealEphemeris(provider, "raman").position_of("Sun", t).longitude
    assert separation(lahiri, raman) == pytest.approx(23.85 - 22.41, abs=1e-9)


def test_offset_is_continuous_across_new_year() -> None:
    sid = SiderealEphemeris(LinearEphemeris({"Sun": (0.0, 1.0)}), "lahiri")
    before = sid.ayanamsa(to_instant(2023, 12, 31, 23, 59, 0))
    after = sid.ayanamsa(to_instant(2024, 1, 1, 0, 1, 0))
    assert 0.0 < after - before < 1e-6


def test_speeds_and_latitudes_pass_through() -> None:
    sid = SiderealEphemeris(LinearEphemeris({"Moon": (50.0, 13.0)}), "krishnamurti")
    p = sid.position_of("Moon", Instant(J2000_JD))
    assert p.speed == 13.0 and p.latitude == 0.0
    with pytest.raises(InvalidInput):
        sid.position_of("Vulcan", Instant(J2000_JD))


def test_model_rejects_non_finite_parameters() -> None:
    with pytest.raises(InvalidInput):
        AyanamsaModel("bad", float("inf"))
