# astrotiming/core/returns.py
# -*- coding: utf-8 -*-
"""
Planetary returns (solar, lunar, any tracked body) with uncertainty

APIs
----
find_return(
    solver: EventSolver,
    body: str,
    birth: Instant,
    *,
    occurrence: int = 1,              # which return after birth (1 => first)
    around: Instant | None = None,    # alt: search around this instant instead
    fd_step_minutes: float = 2.0,     # central-diff step for the uncertainty speed
) -> ReturnEvent | NoCrossingInWindow

Notes
-----
- The natal longitude is read from the solver's provider at `birth`, so a solver
  built on a SiderealEphemeris yields sidereal returns.
- Seed = birth + occurrence × mean period. The period comes from the provider's
  `mean_motion(body)` when it has one (360 / |motion|), else from the geocentric
  table SIDEREAL_PERIODS_D. The search covers seed ± half a period, and the
  crossing closest to the seed wins (a retrograde loop can produce up to three
  crossings).
- Uncertainty is residual / |speed| with the speed from a central difference around
  the solution (independent of the provider's own speed).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
import logging

from astrotiming.core.angles import signed_delta
from astrotiming.core.constants import SECONDS_PER_DAY, SIDEREAL_PERIODS_D
from astrotiming.core.errors import InvalidInput
from astrotiming.core.solver import Crossing, EventSolver, LongitudeTarget, NoCrossingInWindow
from astrotiming.core.timescales import Instant

log = logging.getLogger(__name__)

__all__ = ["ReturnEvent", "find_return"]

_MIN_SPEED = 1e-9


@dataclass(frozen=True)
class ReturnEvent:
    body: str
    occurrence: int
    natal_longitude: float
    instant: Instant
    residual_deg: float
    iterations: int
    uncertainty_days: float

    @property
    def found(self) -> bool:
        return True

    @property
    def uncertainty_seconds(self) -> float:
        return self.uncertainty_days * SECONDS_PER_DAY


def _central_speed(solver: EventSolver, body: str, jd: float, h_days: float) -> float:
    fn = solver.position_fn(body)
    lon_p, _ = fn(jd + h_days)
    lon_m, _ = fn(jd - h_days)
    return signed_delta(lon_p, lon_m) / (2.0 * h_days)


def _mean_period(solver: EventSolver, body: str) -> float:
    fn = getattr(solver.provider, "mean_motion", None)
    motion = None if fn is None else fn(body)
    if motion is not None and abs(motion) > _MIN_SPEED:
        return 360.0 / abs(motion)
    try:
        return SIDEREAL_PERIODS_D[body]
    except KeyError:
        raise InvalidInput("unknown_body", f"no mean period known for {body!r}") from None


def find_return(solver: EventSolver, body: str, birth: Instant, *, occurrence: int = 1,
                around: Optional[Instant] = None,
                fd_step_minutes: float = 2.0) -> Union[ReturnEvent, NoCrossingInWindow]:
    """Instant at which `body` comes back to its longitude at `birth`."""
    if not isinstance(birth, Instant):
        raise InvalidInput("invalid_instant", f"expected Instant, got {type(birth).__name__}")
    if isinstance(occurrence, bool) or not isinstance(occurrence, int) or occurrence < 1:
        raise InvalidInput("invalid_occurrence", f"occurrence must be an integer >= 1, got {occurrence!r}")
    period = _mean_period(solver, body)

    natal_lon, _ = solver.position_fn(body)(birth.jd)
    seed = around if around is not None else birth + occurrence * period
    start = seed - 0.5 * period
    hits = solver.find_all(body, LongitudeTarget(natal_lon), start, period)
    if not hits:
        log.info("no %s return near %r", body, seed)
        return NoCrossingInWindow(body, (natal_lon,), start, start + period)

    best: Crossing = min(hits, key=lambda c: abs(c.instant.jd - seed.jd))
    h = max(1e-6, float(fd_step_minutes) / 1440.0)
    spd = abs(_central_speed(solver, body, best.instant.jd, h))
    if spd < 1e-5:
        log.warning("%s near a station at %r; return time uncertainty is large", body, best.instant)
    dt = best.residual_deg / spd if spd > _MIN_SPEED else float("inf")
    return ReturnEvent(body, occurrence, natal_lon, best.instant, best.residual_deg, best.iterations, dt)
