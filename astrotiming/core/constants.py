# astrotiming/core/constants.py
# -*- coding: utf-8 -*-
"""
Core constants for the timing engine

Purpose
-------
Single source of truth for:
- tracked body ids and their deterministic ordering
- zodiac sign names (30° each)
- aspect angles, priority order and default orbs
- time constants (J2000 epoch, year/month lengths)
- solver defaults (tolerances, iteration cap)

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Constants are immutable by convention (tuples / read-only mappings).
"""

from __future__ import annotations
from types import MappingProxyType
from typing import Mapping, Tuple

__all__ = [
    # bodies
    "SUN", "MOON", "MARS", "MERCURY", "JUPITER", "VENUS", "SATURN", "RAHU", "KETU",
    "BODY_ORDER", "NODES",
    # signs
    "SIGNS", "SIGN_SPAN_DEG",
    # aspects
    "MAJOR_ASPECTS", "MINOR_ASPECTS", "ASPECT_PRIORITY", "DEFAULT_ORBS_DEG", "MINOR_ORB_DEG",
    # time
    "J2000_JD", "DAYS_PER_JULIAN_YEAR", "SECONDS_PER_DAY",
    "SOLAR_YEAR_D", "LUNAR_SIDEREAL_D", "SIDEREAL_PERIODS_D",
    # solver
    "DEFAULT_TOLERANCE_DEG", "ASPECT_TOLERANCE_DEG", "DEFAULT_MAX_ITERATIONS",
    # transit events
    "EVENT_INGRESS", "EVENT_EGRESS", "EVENT_ASPECT_FORMED", "EVENT_ASPECT_SEPARATED",
    "EVENT_PRIORITY",
]

# ── bodies ───────────────────────────────────────────────────────────────────
SUN, MOON, MARS, MERCURY = "Sun", "Moon", "Mars", "Mercury"
JUPITER, VENUS, SATURN = "Jupiter", "Venus", "Saturn"
RAHU, KETU = "Rahu", "Ketu"  # ascending / descending lunar node

# Weekday-lord order; also the tie-break order for simultaneous events.
BODY_ORDER: Tuple[str, ...] = (SUN, MOON, MARS, MERCURY, JUPITER, VENUS, SATURN, RAHU, KETU)
NODES: Tuple[str, ...] = (RAHU, KETU)

# ── signs ────────────────────────────────────────────────────────────────────
SIGN_SPAN_DEG: float = 30.0
SIGNS: Tuple[str, ...] = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)

# ── aspect geometry ──────────────────────────────────────────────────────────
# Dict order is the classification priority (majors first, then minors).
MAJOR_ASPECTS: Mapping[str, float] = MappingProxyType({
    "conjunction": 0.0,
    "sextile": 60.0,
    "square": 90.0,
    "trine": 120.0,
    "opposition": 180.0,
})

MINOR_ASPECTS: Mapping[str, float] = MappingProxyType({
    "semisextile": 30.0,
    "semisquare": 45.0,
    "sesquiquadrate": 135.0,
    "quincunx": 150.0,
})

ASPECT_PRIORITY: Tuple[str, ...] = tuple(MAJOR_ASPECTS) + tuple(MINOR_ASPECTS)

MINOR_ORB_DEG: float = 2.0

# Transit orbs (degrees)
DEFAULT_ORBS_DEG: Mapping[str, float] = MappingProxyType({
    "conjunction": 10.0,
    "sextile": 6.0,
    "square": 8.0,
    "trine": 8.0,
    "opposition": 10.0,
    "semisextile": MINOR_ORB_DEG,
    "semisquare": MINOR_ORB_DEG,
    "sesquiquadrate": MINOR_ORB_DEG,
    "quincunx": MINOR_ORB_DEG,
})

# ── time constants ───────────────────────────────────────────────────────────
J2000_JD: float = 2451545.0
DAYS_PER_JULIAN_YEAR: float = 365.25
SECONDS_PER_DAY: float = 86400.0

SOLAR_YEAR_D: float = 365.256363      # sidereal year
LUNAR_SIDEREAL_D: float = 27.321582

# Geocentric mean periods (days), the return seed for providers without mean elements
SIDEREAL_PERIODS_D: Mapping[str, float] = MappingProxyType({
    SUN: SOLAR_YEAR_D,
    MOON: LUNAR_SIDEREAL_D,
    MERCURY: SOLAR_YEAR_D,   # geocentric mean motion follows the Sun
    VENUS: SOLAR_YEAR_D,
    MARS: 686.980,
    JUPITER: 4332.589,
    SATURN: 10759.22,
    RAHU: 6793.48,
    KETU: 6793.48,
})

# ── solver defaults ──────────────────────────────────────────────────────────
DEFAULT_TOLERANCE_DEG: float = 1e-4   # returns / ingress
ASPECT_TOLERANCE_DEG: float = 1e-3    # aspect edges & exact aspects
DEFAULT_MAX_ITERATIONS: int = 50

# ── transit event kinds ──────────────────────────────────────────────────────
EVENT_INGRESS = "ingress"
EVENT_EGRESS = "egress"
EVENT_ASPECT_FORMED = "aspect-formed"
EVENT_ASPECT_SEPARATED = "aspect-separated"

# Tie-break priority for events sharing an instant (lower first)
EVENT_PRIORITY: Mapping[str, int] = MappingProxyType({
    EVENT_EGRESS: 0,
    EVENT_INGRESS: 1,
    EVENT_ASPECT_SEPARATED: 2,
    EVENT_ASPECT_FORMED: 3,
})
