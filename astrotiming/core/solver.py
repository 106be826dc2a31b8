# astrotiming/core/solver.py
# -*- coding: utf-8 -*-
"""
Event convergence solver: when does a body reach a longitude?

APIs
----
EventSolver(provider, config=None)
    .find_first(body, target, start, days) -> Crossing | NoCrossingInWindow
    .find_all(body, target, start, days)   -> [Crossing, ...]   (time-ordered)

find_crossings(position_fn, target_deg, start_jd, end_jd, config, ...)
    functional core; `position_fn(jd) -> (longitude_deg, speed_deg_per_day)`

Method
------
f(t) = signed_delta(lon(t), target) ∈ (−180, 180].

1. Coarse sampling over the window; step = max_step_deg / |speed| clamped to
   [min_step_days, max_step_days], so no sample pair spans more than a few degrees.
2. Where the speed changes sign between two samples (a station), the interval is
   split by bisection on the speed until every piece is monotonic.
3. A bracket is a sign change of f between neighbours whose f values differ by less
   than 180°; the jump at the antipode (+180 → −180) is therefore never a bracket.
   A sample already within tolerance is a crossing by itself.
4. Each bracket is refined by safeguarded Newton–bisection: a Newton step from the
   latest point using the body's speed, replaced by the midpoint whenever it leaves
   the bracket or the bracket failed to halve.
5. Refinement that exhausts `max_iterations` raises ConvergenceFailure with the best
   residual; it never returns a best guess.

"Nothing to find" is a value (NoCrossingInWindow / empty list), not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union
import logging
import math

from astrotiming.core.angles import ensure_finite, normalize, signed_delta
from astrotiming.core.constants import (
    ASPECT_TOLERANCE_DEG, DEFAULT_MAX_ITERATIONS, DEFAULT_TOLERANCE_DEG,
)
from astrotiming.core.ephemeris import EphemerisProvider
from astrotiming.core.errors import ConvergenceFailure, InvalidInput
from astrotiming.core.timescales import Instant
from astrotiming.utils.metrics import SOLVER_ITERATIONS, SOLVER_OUTCOMES

log = logging.getLogger(__name__)

__all__ = [
    "SolverConfig",
    "LongitudeTarget",
    "AspectTarget",
    "Crossing",
    "NoCrossingInWindow",
    "EventSolver",
    "find_crossings",
]

PositionFn = Callable[[float], Tuple[float, float]]

_STATION_SPLIT_DEPTH = 16
_DEDUP_DAYS = 1e-6
_MIN_SPEED = 1e-9


# ─────────────────────────────────────────────────────────────────────────────
# Configuration, targets & results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SolverConfig:
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG
    aspect_tolerance_deg: float = ASPECT_TOLERANCE_DEG
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_step_deg: float = 10.0
    max_step_days: float = 5.0
    min_step_days: float = 1.0 / 1440.0

    def __post_init__(self) -> None:
        for name in ("tolerance_deg", "aspect_tolerance_deg", "max_step_deg", "max_step_days", "min_step_days"):
            v = ensure_finite(getattr(self, name), name)
            if v <= 0.0:
                raise InvalidInput("invalid_config", f"{name} must be > 0, got {v}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise InvalidInput("invalid_config", f"max_iterations must be a positive integer, got {self.max_iterations!r}")
        if self.min_step_days > self.max_step_days:
            raise InvalidInput("invalid_config", "min_step_days must not exceed max_step_days")


@dataclass(frozen=True)
class LongitudeTarget:
    longitude: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "longitude", normalize(self.longitude))

    def longitudes(self) -> Tuple[float, ...]:
        return (self.longitude,)


@dataclass(frozen=True)
class AspectTarget:
    """Exact aspect to a fixed point: the moving body at reference ± angle."""
    reference: float
    angle: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "reference", normalize(self.reference))
        a = ensure_finite(self.angle, "angle")
        if not 0.0 <= a <= 180.0:
            raise InvalidInput("out_of_range", f"aspect angle must be within [0, 180], got {a}")
        object.__setattr__(self, "angle", a)

    def longitudes(self) -> Tuple[float, ...]:
        ahead = normalize(self.reference + self.angle)
        behind = normalize(self.reference - self.angle)
        return (ahead,) if math.isclose(ahead, behind, abs_tol=1e-12) else (ahead, behind)


Target = Union[float, LongitudeTarget, AspectTarget]


@dataclass(frozen=True)
class Crossing:
    body: str
    instant: Instant
    target_deg: float
    residual_deg: float       # |f| at the accepted instant
    iterations: int
    direction: int            # +1 crossing forward (direct), −1 backward (retrograde)

    @property
    def found(self) -> bool:
        return True

    @property
    def jd(self) -> float:
        return self.instant.jd


@dataclass(frozen=True)
class NoCrossingInWindow:
    body: str
    targets_deg: Tuple[float, ...]
    start: Instant
    end: Instant

    @property
    def found(self) -> bool:
        return False


# ─────────────────────────────────────────────────────────────────────────────
# Functional core
# ─────────────────────────────────────────────────────────────────────────────

def _step_days(speed: float, cfg: SolverConfig) -> float:
    s = abs(speed)
    raw = cfg.max_step_deg / s if s > _MIN_SPEED else cfg.max_step_days
    return min(max(raw, cfg.min_step_days), cfg.max_step_days)


def _split_at_stations(position_fn: PositionFn, target: float,
                       a: Tuple[float, float, float], b: Tuple[float, float, float],
                       depth: int) -> List[Tuple[float, float, float]]:
    """Interior samples that cut (a, b) into pieces with a constant speed sign."""
    if depth <= 0 or (a[2] >= 0.0) == (b[2] >= 0.0):
        return []
    jd = 0.5 * (a[0] + b[0])
    lon, spd = position_fn(jd)
    mid = (jd, signed_delta(lon, target), spd)
    return (_split_at_stations(position_fn, target, a, mid, depth - 1)
            + [mid]
            + _split_at_stations(position_fn, target, mid, b, depth - 1))


def _sample(position_fn: PositionFn, target: float, start_jd: float, end_jd: float,
            cfg: SolverConfig) -> List[Tuple[float, float, float]]:
    lon, spd = position_fn(start_jd)
    samples = [(start_jd, signed_delta(lon, target), spd)]
    jd = start_jd
    while jd < end_jd:
        jd = min(jd + _step_days(samples[-1][2], cfg), end_jd)
        lon, spd = position_fn(jd)
        nxt = (jd, signed_delta(lon, target), spd)
        samples.extend(_split_at_stations(position_fn, target, samples[-1], nxt, _STATION_SPLIT_DEPTH))
        samples.append(nxt)
    return samples


def _refine(position_fn: PositionFn, target: float,
            lo: Tuple[float, float, float], hi: Tuple[float, float, float],
            cfg: SolverConfig, tol: float) -> Tuple[float, float, int]:
    """Safeguarded Newton–bisection inside a sign-change bracket → (jd, |f|, iterations)."""
    (t_lo, f_lo, _), (t_hi, f_hi, _) = lo, hi
    best_jd, best_f = (t_lo, f_lo) if abs(f_lo) <= abs(f_hi) else (t_hi, f_hi)
    # Newton seed from the endpoint closer to zero
    seed = lo if abs(f_lo) <= abs(f_hi) else hi
    t = seed[0] - seed[1] / seed[2] if abs(seed[2]) > _MIN_SPEED else 0.5 * (t_lo + t_hi)
    width = t_hi - t_lo

    for it in range(1, cfg.max_iterations + 1):
        if not (t_lo < t < t_hi):
            t = 0.5 * (t_lo + t_hi)
        lon, spd = position_fn(t)
        f = signed_delta(lon, target)
        if abs(f) <= abs(best_f):
            best_jd, best_f = t, f
        if abs(f) < tol:
            return t, abs(f), it

        if (f < 0.0) == (f_lo < 0.0):
            t_lo, f_lo = t, f
        else:
            t_hi, f_hi = t, f

        new_width = t_hi - t_lo
        halved = new_width <= 0.5 * width
        width = new_width
        if halved and abs(spd) > _MIN_SPEED:
            t = t - f / spd
        else:
            t = 0.5 * (t_lo + t_hi)
        log.debug("refine it=%d jd=%.9f f=%.3e bracket=%.3e d", it, t, f, width)

    raise ConvergenceFailure(abs(best_f), cfg.max_iterations, best_jd=best_jd, target_deg=target)


def find_crossings(position_fn: PositionFn, target_deg: float, start_jd: float, end_jd: float,
                   config: Optional[SolverConfig] = None, *, tolerance_deg: Optional[float] = None,
                   body: str = "") -> List[Crossing]:
    """Every instant in [start_jd, end_jd] where the longitude equals `target_deg`."""
    cfg = config or SolverConfig()
    tol = cfg.tolerance_deg if tolerance_deg is None else ensure_finite(tolerance_deg, "tolerance_deg")
    target = normalize(target_deg)
    start_jd = ensure_finite(start_jd, "start_jd")
    end_jd = ensure_finite(end_jd, "end_jd")
    if end_jd <= start_jd:
        raise InvalidInput("invalid_window", f"window end must be after start ({start_jd} .. {end_jd})")

    samples = _sample(position_fn, target, start_jd, end_jd, cfg)
    out: List[Crossing] = []

    def _emit(jd: float, resid: float, iters: int, direction: int) -> None:
        if out and abs(out[-1].instant.jd - jd) < _DEDUP_DAYS:
            return
        out.append(Crossing(body, Instant(jd), target, resid, iters, direction))
        SOLVER_OUTCOMES.labels(outcome="converged").inc()
        SOLVER_ITERATIONS.observe(iters)

    first = samples[0]
    if abs(first[1]) < tol:
        _emit(first[0], abs(first[1]), 0, 1 if first[2] >= 0.0 else -1)

    for a, b in zip(samples, samples[1:]):
        if abs(b[1]) < tol:
            if abs(a[1]) >= tol:
                _emit(b[0], abs(b[1]), 0, 1 if b[2] >= 0.0 else -1)
            continue
        if abs(a[1]) < tol:
            continue
        if (a[1] < 0.0) == (b[1] < 0.0) or abs(b[1] - a[1]) >= 180.0:
            continue
        log.debug("bracket %s target=%.6f jd=[%.6f, %.6f] f=[%.4f, %.4f]",
                  body or "?", target, a[0], b[0], a[1], b[1])
        try:
            jd, resid, iters = _refine(position_fn, target, a, b, cfg, tol)
        except ConvergenceFailure as e:
            SOLVER_OUTCOMES.labels(outcome="failed").inc()
            log.warning("no convergence for %s → %.6f° in [%.6f, %.6f]: %s", body or "?", target, a[0], b[0], e)
            raise
        _emit(jd, resid, iters, 1 if b[1] > a[1] else -1)
    return out


# ─────────────────────────────────────────────────────────────────────────────
# Provider-bound solver
# ─────────────────────────────────────────────────────────────────────────────

def _as_target(target: Target) -> Union[LongitudeTarget, AspectTarget]:
    if isinstance(target, (LongitudeTarget, AspectTarget)):
        return target
    return LongitudeTarget(ensure_finite(target, "target longitude"))


class EventSolver:
    """Binds the functional core to an ephemeris provider (usually a SiderealEphemeris)."""

    def __init__(self, provider: EphemerisProvider, config: Optional[SolverConfig] = None):
        self.provider = provider
        self.config = config or SolverConfig()

    def position_fn(self, body: str) -> PositionFn:
        def _fn(jd: float) -> Tuple[float, float]:
            rows = self.provider.positions_at(Instant(jd))
            try:
                p = rows[body]
            except KeyError:
                raise InvalidInput("unknown_body", f"{body!r} is not tracked; have {list(rows)}") from None
            return p.longitude, p.speed
        return _fn

    def _window(self, start: Instant, days: float) -> Tuple[float, float]:
        if not isinstance(start, Instant):
            raise InvalidInput("invalid_instant", f"expected Instant, got {type(start).__name__}")
        d = ensure_finite(days, "days")
        if d <= 0.0:
            raise InvalidInput("invalid_window", f"search window must be > 0 days, got {d}")
        return start.jd, start.jd + d

    def find_all(self, body: str, target: Target, start: Instant, days: float,
                 tolerance_deg: Optional[float] = None) -> List[Crossing]:
        tgt = _as_target(target)
        t0, t1 = self._window(start, days)
        if tolerance_deg is None and isinstance(tgt, AspectTarget):
            tolerance_deg = self.config.aspect_tolerance_deg
        fn = self.position_fn(body)
        hits: List[Crossing] = []
        for lon in tgt.longitudes():
            hits.extend(find_crossings(fn, lon, t0, t1, self.config, tolerance_deg=tolerance_deg, body=body))
        hits.sort(key=lambda c: (c.instant.jd, c.target_deg))
        return hits

    def find_first(self, body: str, target: Target, start: Instant, days: float,
                   tolerance_deg: Optional[float] = None) -> Union[Crossing, NoCrossingInWindow]:
        hits = self.find_all(body, target, start, days, tolerance_deg=tolerance_deg)
        if hits:
            return hits[0]
        SOLVER_OUTCOMES.labels(outcome="no_crossing").inc()
        t0, t1 = self._window(start, days)
        return NoCrossingInWindow(body, _as_target(target).longitudes(), Instant(t0), Instant(t1))
