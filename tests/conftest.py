# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the astrotiming suite.

- Registers Hypothesis profiles for local dev and CI.
- Adds a 'slow' marker for long sweeps.
- Provides synthetic providers with exactly known motion, so solver and tracker
  results can be checked against closed-form answers.
"""

import math
import os
import pytest
from hypothesis import settings, HealthCheck

from astrotiming.core.ayanamsa import TROPICAL, SiderealEphemeris
from astrotiming.core.constants import J2000_JD
from astrotiming.core.ephemeris import BodyPosition, MeanElements, MeanMotionEphemeris
from astrotiming.core.solver import EventSolver, SolverConfig
from astrotiming.core.timescales import Instant


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=200,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Synthetic providers
# ──────────────────────────────────────────────────────────────────────────────
EPOCH = Instant(J2000_JD)


class LinearEphemeris:
    """lon(t) = base + speed × (t − epoch), exactly."""

    def __init__(self, bodies, epoch_jd: float = J2000_JD):
        self.bodies = dict(bodies)          # name → (base_deg, speed_deg_per_day)
        self.epoch_jd = epoch_jd
        self.calls = 0

    def positions_at(self, instant: Instant):
        self.calls += 1
        dt = instant.jd - self.epoch_jd
        return {
            name: BodyPosition(name, (base + spd * dt) % 360.0, spd)
            for name, (base, spd) in self.bodies.items()
        }


class StationEphemeris:
    """
    A body that stations: lon(t) = base + amp × sin(2π (t − epoch) / period) + drift × (t − epoch).
    With amp·2π/period > drift it goes retrograde once per period.
    """

    def __init__(self, base=100.0, amp=10.0, period=40.0, drift=0.5, epoch_jd=J2000_JD):
        self.base, self.amp, self.period, self.drift, self.epoch_jd = base, amp, period, drift, epoch_jd

    def lon(self, jd: float) -> float:
        dt = jd - self.epoch_jd
        return (self.base + self.amp * math.sin(2 * math.pi * dt / self.period) + self.drift * dt) % 360.0

    def speed(self, jd: float) -> float:
        dt = jd - self.epoch_jd
        return self.amp * 2 * math.pi / self.period * math.cos(2 * math.pi * dt / self.period) + self.drift

    def positions_at(self, instant: Instant):
        return {"Mars": BodyPosition("Mars", self.lon(instant.jd), self.speed(instant.jd))}


@pytest.fixture
def epoch() -> Instant:
    return EPOCH


@pytest.fixture
def linear_provider() -> LinearEphemeris:
    # Sun-like body at 1°/day starting at 80°; it reaches 90° at epoch + 10 d.
    # Moon-like body at 13°/day starting at 0°.
    return LinearEphemeris({"Sun": (80.0, 1.0), "Moon": (0.0, 13.0), "Rahu": (50.0, -0.05)})


@pytest.fixture
def zero_ayanamsa():
    return TROPICAL


@pytest.fixture
def linear_solver(linear_provider, zero_ayanamsa) -> EventSolver:
    return EventSolver(SiderealEphemeris(linear_provider, zero_ayanamsa), SolverConfig())


@pytest.fixture
def mean_provider() -> MeanMotionEphemeris:
    return MeanMotionEphemeris()


@pytest.fixture
def simple_elements():
    return {"Sun": MeanElements(0.0, 1.0), "Rahu": MeanElements(10.0, -0.05)}
