# astrotiming/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Skyfield-backed ephemeris (drop-in for MeanMotionEphemeris)
#
# Highlights
# • Same contract as the mean-motion provider: positions_at(instant) -> {body: BodyPosition}
# • Apparent geocentric (or topocentric) ecliptic-of-date longitudes from a local
#   JPL kernel (DE421 by default); no network downloads
# • Central-difference speeds, so retrograde stations show up as sign changes
# • Mean lunar node (Rahu) with Ketu = Rahu + 180°
# • Thread-safe lazy kernel bootstrap; categorized EphemerisError on failure
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple
import logging
import math
import os
import threading

from astrotiming.core.angles import normalize, signed_delta
from astrotiming.core.constants import (
    BODY_ORDER, J2000_JD, JUPITER, KETU, MARS, MERCURY, MOON, RAHU, SATURN, SUN, VENUS,
)
from astrotiming.core.ephemeris import BodyPosition, order_bodies
from astrotiming.core.errors import EphemerisError, InvalidInput
from astrotiming.core.timescales import Instant
from astrotiming.utils.validation import Location

log = logging.getLogger(__name__)

__all__ = ["SkyfieldEphemeris", "resolve_kernel_path", "DE421_JD_MIN", "DE421_JD_MAX"]

# ─────────────────────────────────────────────────────────────────────────────
# Constants / environment
# ─────────────────────────────────────────────────────────────────────────────
DE421_JD_MIN = float(os.getenv("ASTRO_DE421_JD_MIN", "2414992.5"))  # 1899-12-31
DE421_JD_MAX = float(os.getenv("ASTRO_DE421_JD_MAX", "2469807.5"))  # 2053-10-09

_KERNEL_KEYS: Dict[str, str] = {
    SUN: "sun",
    MOON: "moon",
    MERCURY: "mercury",
    VENUS: "venus",
    MARS: "mars",
    JUPITER: "jupiter barycenter",
    SATURN: "saturn barycenter",
}

# Half-steps (days) for central differences
_SPEED_STEP_MAP = {MOON: 0.05, MERCURY: 0.25, VENUS: 0.33}
_SPEED_STEP_DEFAULT = 0.5

# ─────────────────────────────────────────────────────────────────────────────
# Kernel I/O
# ─────────────────────────────────────────────────────────────────────────────
_LOCK_KERNEL = threading.Lock()


def resolve_kernel_path(explicit: Optional[str] = None) -> Optional[str]:
    path = explicit or os.getenv("ASTRO_EPHEMERIS")
    if path and os.path.isfile(path):
        return path
    fallback = os.path.join(os.getcwd(), "data", "de421.bsp")
    return fallback if os.path.isfile(fallback) else None


def _looks_like_lfs_pointer(path: str) -> bool:
    if os.path.getsize(path) > 512:
        return False
    with open(path, "rb") as f:
        head = f.read(128)
    return head.startswith(b"version https://git-lfs.github.com/spec/v1")


def _mean_node(jd: float) -> float:
    # Meeus ch. 47 polynomial for the mean ascending node
    T = (jd - J2000_JD) / 36525.0
    omega = 125.04452 - 1934.136261 * T + 0.0020708 * (T ** 2) + (T ** 3) / 450000.0
    return normalize(omega)


# ─────────────────────────────────────────────────────────────────────────────
# Provider
# ─────────────────────────────────────────────────────────────────────────────
class SkyfieldEphemeris:
    def __init__(self, kernel_path: Optional[str] = None, *, location: Optional[Location] = None,
                 enforce_jd_range: bool = True):
        self.kernel_path = kernel_path
        self.location = location
        self.enforce_jd_range = enforce_jd_range
        self._ts = None
        self._kernel = None
        self._ecliptic = None

    # ---- kernel bootstrap ---------------------------------------------------
    def _load(self) -> Tuple[Any, Any, Any]:
        if self._kernel is not None:
            return self._ts, self._kernel, self._ecliptic
        with _LOCK_KERNEL:
            if self._kernel is None:
                from skyfield.api import load, load_file
                from skyfield.framelib import ecliptic_frame

                path = resolve_kernel_path(self.kernel_path)
                if not path:
                    raise EphemerisError("kernel", "No local DE421 found (set ASTRO_EPHEMERIS or place data/de421.bsp)")
                if _looks_like_lfs_pointer(path):
                    raise EphemerisError("kernel", f"Kernel looks like a Git LFS pointer: {path}")
                try:
                    kernel = load_file(path)
                except (OSError, ValueError) as e:
                    raise EphemerisError("kernel", f"Skyfield failed to load kernel: {path}", error=str(e)) from e
                self._ts = load.timescale()
                self._ecliptic = ecliptic_frame
                self._kernel = kernel
                log.info("loaded ephemeris kernel %s", os.path.basename(path))
        return self._ts, self._kernel, self._ecliptic

    def _observer(self, kernel):
        earth = kernel["earth"]
        if self.location is None:
            return earth
        from skyfield.api import wgs84
        loc = self.location
        return earth + wgs84.latlon(loc.latitude, loc.longitude, elevation_m=loc.elevation_m)

    def _check_jd_guard(self, jd: float) -> None:
        if self.enforce_jd_range and not (DE421_JD_MIN <= jd <= DE421_JD_MAX):
            raise InvalidInput("out_of_range", f"Julian Day {jd} outside DE421 nominal span")

    # ---- geometry -----------------------------------------------------------
    def _lon_lat(self, body_key: str, jd: float) -> Tuple[float, float]:
        ts, kernel, ecliptic = self._load()
        obs = self._observer(kernel)
        try:
            target = kernel[body_key]
        except KeyError as e:
            raise EphemerisError("body", f"kernel has no segment for {body_key!r}") from e
        apparent = obs.at(ts.ut1_jd(jd)).observe(target).apparent()
        lat, lon, _ = apparent.frame_latlon(ecliptic)
        return normalize(float(lon.degrees)), float(lat.degrees)

    def _speed(self, body_key: str, name: str, jd: float) -> float:
        h = _SPEED_STEP_MAP.get(name, _SPEED_STEP_DEFAULT)
        lon_p, _ = self._lon_lat(body_key, jd + h)
        lon_m, _ = self._lon_lat(body_key, jd - h)
        return signed_delta(lon_p, lon_m) / (2.0 * h)

    @property
    def bodies(self) -> list:
        return order_bodies(BODY_ORDER)

    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]:
        if not isinstance(instant, Instant):
            raise InvalidInput("invalid_instant", f"expected Instant, got {type(instant).__name__}")
        jd = instant.jd
        self._check_jd_guard(jd)
        out: Dict[str, BodyPosition] = {}
        for name, key in _KERNEL_KEYS.items():
            lon, lat = self._lon_lat(key, jd)
            spd = self._speed(key, name, jd)
            if not (math.isfinite(lon) and math.isfinite(spd)):
                raise EphemerisError("compute", f"non-finite result for {name}", jd=jd)
            out[name] = BodyPosition(name, lon, spd, lat)

        rahu = _mean_node(jd)
        node_speed = signed_delta(_mean_node(jd + 0.5), _mean_node(jd - 0.5))
        out[RAHU] = BodyPosition(RAHU, rahu, node_speed)
        out[KETU] = BodyPosition(KETU, normalize(rahu + 180.0), node_speed)
        return {b: out[b] for b in self.bodies}
