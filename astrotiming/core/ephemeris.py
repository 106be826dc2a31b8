# astrotiming/core/ephemeris.py
# -*- coding: utf-8 -*-
"""
Mean-motion ephemeris (low fidelity by design)

APIs
----
MeanMotionEphemeris(elements=None, epoch_jd=J2000_JD).positions_at(instant)
    -> {body: BodyPosition}         # tropical longitudes, deg/day speeds
CachedEphemeris(provider, capacity=4096, jd_quantum=1e-8).positions_at(instant)

Notes
-----
- Each body is `normalize(base_at_epoch + daily_motion × days_since_epoch)`; the
  speed is the constant daily motion. Mean longitudes of date after Meeus ch. 31/47.
- The descending node (Ketu) is always Rahu + 180° and shares Rahu's speed.
- This is not an astronomical ephemeris: no equation of centre, no geocentric
  reduction, hence no retrograde stations for the planets. Anything implementing
  `positions_at(instant) -> Dict[str, BodyPosition]` can stand in for it
  (see ephemeris_adapter.SkyfieldEphemeris); nothing downstream depends on fidelity.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from collections import OrderedDict
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable
import logging
import threading

from astrotiming.core.angles import ensure_finite, normalize, sign_index
from astrotiming.core.constants import (
    BODY_ORDER, J2000_JD, JUPITER, KETU, MARS, MERCURY, MOON, RAHU, SATURN, SUN, VENUS,
)
from astrotiming.core.errors import InvalidInput
from astrotiming.core.timescales import Instant
from astrotiming.utils.metrics import EPHEMERIS_CACHE

log = logging.getLogger(__name__)

__all__ = [
    "BodyPosition",
    "EphemerisProvider",
    "MeanElements",
    "DEFAULT_ELEMENTS",
    "MeanMotionEphemeris",
    "CachedEphemeris",
    "order_bodies",
]


# ── data types ───────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class BodyPosition:
    body: str
    longitude: float          # degrees [0, 360)
    speed: float              # degrees / day (negative = retrograde)
    latitude: float = 0.0     # ecliptic latitude; 0 where unsupported

    @property
    def retrograde(self) -> bool:
        return self.speed < 0.0

    @property
    def sign(self) -> int:
        return sign_index(self.longitude)


@runtime_checkable
class EphemerisProvider(Protocol):
    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]: ...


@dataclass(frozen=True)
class MeanElements:
    base_deg: float            # mean longitude at the epoch
    daily_motion_deg: float    # degrees per day

    def __post_init__(self) -> None:
        ensure_finite(self.base_deg, "base_deg")
        ensure_finite(self.daily_motion_deg, "daily_motion_deg")


# Century rates / 36525 → per-day motion
DEFAULT_ELEMENTS: Mapping[str, MeanElements] = MappingProxyType({
    SUN:     MeanElements(280.46646,   36000.76983 / 36525.0),
    MOON:    MeanElements(218.3164477, 481267.88123421 / 36525.0),
    MARS:    MeanElements(355.433000,  19141.6964471 / 36525.0),
    MERCURY: MeanElements(252.250906,  149474.0722491 / 36525.0),
    JUPITER: MeanElements(34.351519,   3036.3027748 / 36525.0),
    VENUS:   MeanElements(181.979801,  58519.2130302 / 36525.0),
    SATURN:  MeanElements(50.077444,   1223.5110686 / 36525.0),
    RAHU:    MeanElements(125.04452,   -1934.136261 / 36525.0),
})


def order_bodies(names) -> list:
    """Known bodies in canonical order, then anything else alphabetically."""
    rank = {b: i for i, b in enumerate(BODY_ORDER)}
    return sorted(names, key=lambda n: (rank.get(n, len(rank)), n))


# ── mean-motion provider ─────────────────────────────────────────────────────
class MeanMotionEphemeris:
    def __init__(self, elements: Optional[Mapping[str, MeanElements]] = None,
                 epoch_jd: float = J2000_JD, include_ketu: bool = True):
        self.elements: Dict[str, MeanElements] = dict(DEFAULT_ELEMENTS if elements is None else elements)
        if KETU in self.elements:
            raise InvalidInput("invalid_elements", "Ketu is derived from Rahu; do not supply it")
        self.epoch_jd = ensure_finite(epoch_jd, "epoch_jd")
        self.include_ketu = include_ketu and RAHU in self.elements

    @property
    def bodies(self) -> list:
        names = list(self.elements)
        if self.include_ketu:
            names.append(KETU)
        return order_bodies(names)

    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]:
        if not isinstance(instant, Instant):
            raise InvalidInput("invalid_instant", f"expected Instant, got {type(instant).__name__}")
        days = instant.jd - self.epoch_jd
        out: Dict[str, BodyPosition] = {}
        for name in self.bodies:
            if name == KETU:
                rahu = out[RAHU]
                out[KETU] = BodyPosition(KETU, normalize(rahu.longitude + 180.0), rahu.speed)
                continue
            el = self.elements[name]
            out[name] = BodyPosition(name, normalize(el.base_deg + el.daily_motion_deg * days), el.daily_motion_deg)
        return out

    def mean_motion(self, body: str) -> Optional[float]:
        """Mean daily motion in degrees, or None for an untracked body."""
        el = self.elements.get(RAHU if body == KETU and self.include_ketu else body)
        return None if el is None else el.daily_motion_deg


# ── memo layer ───────────────────────────────────────────────────────────────
class CachedEphemeris:
    """
    Bounded LRU in front of any provider, keyed by the JD rounded to `jd_quantum`.

    Non-authoritative: a miss always recomputes from the wrapped provider.
    """
    def __init__(self, provider: EphemerisProvider, capacity: int = 4096, jd_quantum: float = 1e-8):
        if int(capacity) != capacity or capacity < 1:
            raise InvalidInput("invalid_config", f"capacity must be a positive integer, got {capacity!r}")
        if jd_quantum <= 0:
            raise InvalidInput("invalid_config", "jd_quantum must be > 0")
        self.provider = provider
        self.capacity = int(capacity)
        self.jd_quantum = float(jd_quantum)
        self._rows: "OrderedDict[int, Dict[str, BodyPosition]]" = OrderedDict()
        self._lock = threading.Lock()

    def _key(self, instant: Instant) -> int:
        return int(round(instant.jd / self.jd_quantum))

    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]:
        key = self._key(instant)
        with self._lock:
            hit = self._rows.get(key)
            if hit is not None:
                self._rows.move_to_end(key)
        if hit is not None:
            EPHEMERIS_CACHE.labels(result="hit").inc()
            return dict(hit)

        EPHEMERIS_CACHE.labels(result="miss").inc()
        log.debug("ephemeris cache miss jd=%.9f", instant.jd)
        # Provider call stays outside the lock
        rows = self.provider.positions_at(instant)
        with self._lock:
            self._rows[key] = dict(rows)
            self._rows.move_to_end(key)
            while len(self._rows) > self.capacity:
                self._rows.popitem(last=False)
        return rows

    def mean_motion(self, body: str) -> Optional[float]:
        fn = getattr(self.provider, "mean_motion", None)
        return None if fn is None else fn(body)

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
