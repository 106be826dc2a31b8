# astrotiming/core/ayanamsa.py
# -*- coding: utf-8 -*-
"""
Tropical → sidereal conversion

APIs
----
ayanamsa_at(year, model=LAHIRI) -> float          # degrees
to_sidereal(tropical_lon, ayanamsa_deg) -> float  # [0, 360)
SiderealEphemeris(provider, model).positions_at(instant)

Models are linear in (possibly fractional) year: base + rate × (year − epoch).
The sidereal pipeline evaluates them at `instant.decimal_year` so the offset moves
smoothly with time instead of stepping on 1 January.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from astrotiming.core.angles import ensure_finite, normalize
from astrotiming.core.constants import DAYS_PER_JULIAN_YEAR
from astrotiming.core.ephemeris import BodyPosition, EphemerisProvider
from astrotiming.core.errors import InvalidInput
from astrotiming.core.timescales import Instant

__all__ = [
    "AyanamsaModel",
    "AYANAMSA_PRESETS",
    "LAHIRI",
    "TROPICAL",
    "resolve_model",
    "ayanamsa_at",
    "to_sidereal",
    "SiderealEphemeris",
]

_ARCSEC = 1.0 / 3600.0
_PRECESSION_RATE = 50.2388 * _ARCSEC  # deg / year


@dataclass(frozen=True)
class AyanamsaModel:
    name: str
    base_deg: float
    epoch_year: float = 2000.0
    rate_deg_per_year: float = _PRECESSION_RATE

    def __post_init__(self) -> None:
        ensure_finite(self.base_deg, "base_deg")
        ensure_finite(self.epoch_year, "epoch_year")
        ensure_finite(self.rate_deg_per_year, "rate_deg_per_year")

    def at(self, year: float) -> float:
        return self.base_deg + self.rate_deg_per_year * (ensure_finite(year, "year") - self.epoch_year)


LAHIRI = AyanamsaModel("lahiri", 23.85)
TROPICAL = AyanamsaModel("tropical", 0.0, rate_deg_per_year=0.0)

AYANAMSA_PRESETS: Mapping[str, AyanamsaModel] = MappingProxyType({
    "lahiri": LAHIRI,
    "krishnamurti": AyanamsaModel("krishnamurti", 23.757),
    "raman": AyanamsaModel("raman", 22.41),
    "fagan_bradley": AyanamsaModel("fagan_bradley", 24.736),
    "tropical": TROPICAL,
})


def resolve_model(model: Union[str, AyanamsaModel, None]) -> AyanamsaModel:
    if model is None:
        return LAHIRI
    if isinstance(model, AyanamsaModel):
        return model
    key = str(model).strip().lower().replace("-", "_")
    try:
        return AYANAMSA_PRESETS[key]
    except KeyError:
        raise InvalidInput(
            "invalid_ayanamsa", f"unknown ayanamsa {model!r}; expected one of {sorted(AYANAMSA_PRESETS)}"
        ) from None


def ayanamsa_at(year: float, model: Union[str, AyanamsaModel, None] = None) -> float:
    return resolve_model(model).at(year)


def to_sidereal(tropical_lon: float, ayanamsa_deg: float) -> float:
    return normalize(ensure_finite(tropical_lon, "longitude") - ensure_finite(ayanamsa_deg, "ayanamsa"))


class SiderealEphemeris:
    """Wraps a tropical provider; speeds are unchanged (the offset drift is ~1e-5 °/day)."""

    def __init__(self, provider: EphemerisProvider, model: Union[str, AyanamsaModel, None] = None):
        self.provider = provider
        self.model = resolve_model(model)

    def ayanamsa(self, instant: Instant) -> float:
        if self.model.rate_deg_per_year == 0.0:
            return self.model.base_deg
        return self.model.at(instant.decimal_year)

    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]:
        ay = self.ayanamsa(instant)
        return {
            name: BodyPosition(name, to_sidereal(p.longitude, ay), p.speed, p.latitude)
            for name, p in self.provider.positions_at(instant).items()
        }

    def position_of(self, body: str, instant: Instant) -> BodyPosition:
        rows = self.positions_at(instant)
        try:
            return rows[body]
        except KeyError:
            raise InvalidInput("unknown_body", f"{body!r} is not tracked; have {list(rows)}") from None

    def mean_motion(self, body: str) -> Optional[float]:
        """Sidereal mean daily motion: tropical mean motion less the ayanamsa drift."""
        fn = getattr(self.provider, "mean_motion", None)
        motion = None if fn is None else fn(body)
        if motion is None:
            return None
        return motion - self.model.rate_deg_per_year / DAYS_PER_JULIAN_YEAR
