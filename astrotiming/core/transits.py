# astrotiming/core/transits.py
# -*- coding: utf-8 -*-
"""
Transit window tracker: sign ingresses and aspect edges as a dated calendar

APIs
----
TransitTracker(provider, solver=None, config=None)
    .sample_series(start, end, step_minutes=None)        -> [Sample, ...]
    .detect_ingress_events(series, body)                 -> [TransitEvent, ...]
    .detect_aspect_events(series, body, references)      -> [TransitEvent, ...]
    .build_event_calendar(start, end, bodies, references=None) -> [TransitEvent, ...]

Notes
-----
- Samples only locate events; every reported instant is refined by the solver.
  Sample spacing is never the reported precision.
- Motion between two samples is unwrapped onto the branch the sampled speeds
  predict, so a step longer than half a lap still reads forward. Every 30° line on
  that arc yields its own event, including a line passed twice in one step.
- Aspect state per sample is the aspect `classify` gives each reference. When it
  changes, or when the step is long enough to jump a whole orb window, the pair is
  cut at every orb-edge crossing of the reference and each cut that switches the
  state is reported. Priority switches between overlapping orbs are timed as well.
- If refinement fails the event is kept, stamped with an interpolated time and
  `exact=False` (logged at WARNING). `TrackerConfig(strict=True)` re-raises instead.
- Calendar order: instant, then egress < ingress < aspect-separated < aspect-formed,
  then canonical body order, then reference name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
import logging
import math

from astrotiming.core.angles import lerp, normalize, unwrap_pair
from astrotiming.core.aspects import AspectConfig, active_aspects, aspect_catalog, classify
from astrotiming.core.constants import (
    BODY_ORDER, EVENT_ASPECT_FORMED, EVENT_ASPECT_SEPARATED, EVENT_EGRESS, EVENT_INGRESS,
    EVENT_PRIORITY, SIGN_SPAN_DEG, SIGNS,
)
from astrotiming.core.ephemeris import BodyPosition, EphemerisProvider
from astrotiming.core.errors import ConvergenceFailure, InvalidInput
from astrotiming.core.solver import AspectTarget, Crossing, EventSolver, LongitudeTarget
from astrotiming.core.timescales import Instant
from astrotiming.utils.metrics import TRANSIT_EVENTS
from astrotiming.utils.validation import validate_longitudes

log = logging.getLogger(__name__)

__all__ = ["TransitEvent", "Sample", "TrackerConfig", "TransitTracker", "event_sort_key"]

_MAX_SAMPLES = 500_000
_MINUTES_PER_DAY = 1440.0


# ─────────────────────────────────────────────────────────────────────────────
# Data types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TransitEvent:
    kind: str
    body: str
    instant: Instant
    sign: Optional[int] = None          # sign entered (ingress) or left (egress)
    aspect: Optional[str] = None
    reference: Optional[str] = None
    exact: bool = True

    @property
    def sign_name(self) -> Optional[str]:
        return None if self.sign is None else SIGNS[self.sign]

    def as_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "body": self.body,
            "jd": self.instant.jd,
            "sign": self.sign_name,
            "aspect": self.aspect,
            "reference": self.reference,
            "exact": self.exact,
        }


@dataclass(frozen=True)
class Sample:
    instant: Instant
    positions: Mapping[str, BodyPosition]

    def position(self, body: str) -> BodyPosition:
        try:
            return self.positions[body]
        except KeyError:
            raise InvalidInput("unknown_body", f"{body!r} is not in the sampled positions") from None

    def longitude(self, body: str) -> float:
        return self.position(body).longitude


@dataclass(frozen=True)
class TrackerConfig:
    step_minutes: float = _MINUTES_PER_DAY
    track_egress: bool = False
    strict: bool = False
    aspects: AspectConfig = field(default_factory=AspectConfig)
    dedup_days: float = 1e-5

    def __post_init__(self) -> None:
        if not (math.isfinite(self.step_minutes) and self.step_minutes > 0):
            raise InvalidInput("invalid_config", f"step_minutes must be > 0, got {self.step_minutes!r}")
        if not (math.isfinite(self.dedup_days) and self.dedup_days >= 0):
            raise InvalidInput("invalid_config", f"dedup_days must be >= 0, got {self.dedup_days!r}")


_BODY_RANK = {b: i for i, b in enumerate(BODY_ORDER)}


def event_sort_key(ev: TransitEvent) -> Tuple[float, int, int, str, str, str]:
    return (
        ev.instant.jd,
        EVENT_PRIORITY.get(ev.kind, len(EVENT_PRIORITY)),
        _BODY_RANK.get(ev.body, len(_BODY_RANK)),
        ev.body,
        ev.reference or "",
        ev.aspect or "",
    )


def _same_event(a: TransitEvent, b: TransitEvent) -> bool:
    return (a.kind, a.body, a.sign, a.aspect, a.reference) == (b.kind, b.body, b.sign, b.aspect, b.reference)


# ─────────────────────────────────────────────────────────────────────────────
# Tracker
# ─────────────────────────────────────────────────────────────────────────────

class TransitTracker:
    def __init__(self, provider: EphemerisProvider, solver: Optional[EventSolver] = None,
                 config: Optional[TrackerConfig] = None):
        self.provider = provider
        self.solver = solver or EventSolver(provider)
        self.config = config or TrackerConfig()

    # ---- sampling -----------------------------------------------------------
    def sample_series(self, start: Instant, end: Instant, step_minutes: Optional[float] = None) -> List[Sample]:
        if not (isinstance(start, Instant) and isinstance(end, Instant)):
            raise InvalidInput("invalid_instant", "start and end must be Instants")
        if end.jd <= start.jd:
            raise InvalidInput("invalid_window", f"window end must be after start ({start!r} .. {end!r})")
        step_min = self.config.step_minutes if step_minutes is None else float(step_minutes)
        if not (math.isfinite(step_min) and step_min > 0):
            raise InvalidInput("invalid_step", f"step_minutes must be > 0, got {step_minutes!r}")
        step = step_min / _MINUTES_PER_DAY
        n = int(math.floor((end.jd - start.jd) / step))
        if n + 2 > _MAX_SAMPLES:
            raise InvalidInput("too_many_samples", f"{n + 2} samples requested; widen step_minutes")

        # Multiply rather than accumulate so long sweeps do not drift
        jds = [start.jd + i * step for i in range(n + 1)]
        if end.jd - jds[-1] > 1e-9:
            jds.append(end.jd)
        return [Sample(Instant(jd), self.provider.positions_at(Instant(jd))) for jd in jds]

    # ---- refinement helpers ---------------------------------------------------
    def _crossings(self, body: str, target, a: Sample, b: Sample,
                   tolerance_deg: Optional[float] = None) -> List[Crossing]:
        return self.solver.find_all(body, target, a.instant, b.instant - a.instant, tolerance_deg=tolerance_deg)

    def _degrade(self, what: str, err: Optional[Exception]) -> None:
        if err is not None and self.config.strict:
            raise err
        log.warning("could not refine %s%s; emitting exact=False", what, f" ({err})" if err else "")

    # ---- ingress --------------------------------------------------------------
    def detect_ingress_events(self, series: Sequence[Sample], body: str) -> List[TransitEvent]:
        events: List[TransitEvent] = []
        for a, b in zip(series, series[1:]):
            la = a.longitude(body)
            end = la + _unwrapped_delta(a, b, body)
            # A step longer than a lap passes the same line more than once
            laps: Dict[int, int] = {}
            for boundary_unwrapped, entered, left in _boundaries_crossed(la, end):
                nth = laps.get(entered, 0)
                laps[entered] = nth + 1
                events.extend(self._ingress_at(body, a, b, la, end, boundary_unwrapped, entered, left, nth))
        return events

    def _ingress_at(self, body: str, a: Sample, b: Sample, la: float, end: float,
                    boundary_unwrapped: float, entered: int, left: int, nth: int) -> List[TransitEvent]:
        boundary = normalize(boundary_unwrapped)
        forward = entered == (left + 1) % 12
        instant, exact, err = None, True, None
        try:
            hits = self._crossings(body, LongitudeTarget(boundary), a, b)
        except ConvergenceFailure as e:
            hits, err = [], e
        matching = [c for c in hits if (c.direction > 0) == forward] or hits
        if nth < len(matching):
            instant = matching[nth].instant
        else:
            self._degrade(f"{body} ingress at {boundary:.4f}°", err)
            instant = Instant(lerp(boundary_unwrapped, la, end, a.instant.jd, b.instant.jd))
            exact = False

        out = [TransitEvent(EVENT_INGRESS, body, instant, sign=entered, exact=exact)]
        if self.config.track_egress:
            out.append(TransitEvent(EVENT_EGRESS, body, instant, sign=left, exact=exact))
        return out

    # ---- aspects --------------------------------------------------------------
    def _edge_targets(self, reference: float) -> List[AspectTarget]:
        cfg = self.config.aspects
        seps: Set[float] = set()
        for name, angle, _ in aspect_catalog(cfg.include_minors):
            orb = cfg.orb_for(name)
            for edge in (angle - orb, angle + orb):
                if 0.0 <= edge <= 180.0:
                    seps.add(edge)
        return [AspectTarget(reference, e) for e in sorted(seps)]

    def _edge_gap(self) -> float:
        """Narrowest arc of longitude between two orb edges around a reference."""
        offsets = sorted({round(lon, 9) for t in self._edge_targets(0.0) for lon in t.longitudes()})
        if len(offsets) < 2:
            return 360.0
        gaps = [hi - lo for lo, hi in zip(offsets, offsets[1:])]
        gaps.append(offsets[0] + 360.0 - offsets[-1])
        return min(gaps)

    def _edge_crossings(self, body: str, reference: float, a: Sample, b: Sample) -> List[float]:
        tol = self.solver.config.aspect_tolerance_deg
        jds: List[float] = []
        for tgt in self._edge_targets(reference):
            jds.extend(c.instant.jd for c in self._crossings(body, tgt, a, b, tolerance_deg=tol))
        return sorted(jds)

    def _aspect_at(self, body: str, jd: float, reference: float) -> Optional[str]:
        m = classify(reference, self.solver.position_fn(body)(jd)[0], config=self.config.aspects)
        return None if m is None else m.aspect

    def _aspect_edges(self, body: str, name: str, reference: float, a: Sample, b: Sample,
                      before: Optional[str], after: Optional[str]) -> List[TransitEvent]:
        """Every switch of the aspect to `name` between samples a and b."""
        err: Optional[Exception] = None
        try:
            edges = self._edge_crossings(body, reference, a, b)
        except ConvergenceFailure as e:
            edges, err = [], e

        if edges:
            times = [a.instant.jd] + edges + [b.instant.jd]
            # State is constant between consecutive edge crossings; read it at each gap's midpoint
            inner = [self._aspect_at(body, 0.5 * (lo + hi), reference) for lo, hi in zip(times, times[1:])]
            states, exact = [before] + inner + [after], True
        elif before == after:
            if err is not None and self.config.strict:
                raise err
            return []
        else:
            self._degrade(f"{body} aspect edge to {name}", err)
            times = [0.5 * (a.instant.jd + b.instant.jd)]
            states, exact = [before, after], False

        out: List[TransitEvent] = []
        for jd, old, new in zip(times, states, states[1:]):
            if old == new:
                continue
            if old is not None:
                out.append(TransitEvent(EVENT_ASPECT_SEPARATED, body, Instant(jd), aspect=old,
                                        reference=name, exact=exact))
            if new is not None:
                out.append(TransitEvent(EVENT_ASPECT_FORMED, body, Instant(jd), aspect=new,
                                        reference=name, exact=exact))
        return out

    def detect_aspect_events(self, series: Sequence[Sample], body: str,
                             references: Mapping[str, float]) -> List[TransitEvent]:
        refs = validate_longitudes(references)
        cfg = self.config.aspects
        gap = self._edge_gap()
        events: List[TransitEvent] = []
        prev: Optional[Dict[str, str]] = None
        for a, b in zip(series, series[1:]):
            if prev is None:
                prev = {r: m.aspect for r, m in active_aspects(a.longitude(body), refs, cfg).items()}
            cur = {r: m.aspect for r, m in active_aspects(b.longitude(body), refs, cfg).items()}
            reach = max(abs(a.position(body).speed), abs(b.position(body).speed)) * (b.instant - a.instant)
            for name in sorted(refs):
                before, after = prev.get(name), cur.get(name)
                # Equal end states hide nothing unless the step can jump a whole orb window
                if before == after and reach < gap:
                    continue
                events.extend(self._aspect_edges(body, name, refs[name], a, b, before, after))
            prev = cur
        events.sort(key=event_sort_key)
        return events

    # ---- calendar -----------------------------------------------------------
    def build_event_calendar(self, start: Instant, end: Instant, bodies: Iterable[str],
                             references: Optional[Mapping[str, float]] = None,
                             step_minutes: Optional[float] = None) -> List[TransitEvent]:
        series = self.sample_series(start, end, step_minutes)
        names = list(dict.fromkeys(bodies))
        if not names:
            raise InvalidInput("invalid_bodies", "at least one body is required")
        events: List[TransitEvent] = []
        for body in names:
            events.extend(self.detect_ingress_events(series, body))
            if references:
                events.extend(self.detect_aspect_events(series, body, references))

        calendar: List[TransitEvent] = []
        for ev in sorted(events, key=event_sort_key):
            if not (start.jd <= ev.instant.jd <= end.jd):
                continue
            if any(_same_event(ev, seen) and abs(ev.instant.jd - seen.instant.jd) <= self.config.dedup_days
                   for seen in calendar[-8:]):
                continue
            calendar.append(ev)
            TRANSIT_EVENTS.labels(kind=ev.kind).inc()

        inexact = sum(1 for ev in calendar if not ev.exact)
        log.info("event calendar %r .. %r: %d events (%d inexact) for %s",
                 start, end, len(calendar), inexact, ", ".join(names))
        return calendar


def _boundaries_crossed(start: float, end: float) -> List[Tuple[float, int, int]]:
    """(unwrapped boundary, sign entered, sign left) for each 30° line between start and end."""
    out: List[Tuple[float, int, int]] = []
    if end > start:
        for k in range(int(math.floor(start / SIGN_SPAN_DEG)) + 1, int(math.floor(end / SIGN_SPAN_DEG)) + 1):
            out.append((k * SIGN_SPAN_DEG, k % 12, (k - 1) % 12))
    elif end < start:
        for k in range(int(math.floor(start / SIGN_SPAN_DEG)), int(math.floor(end / SIGN_SPAN_DEG)), -1):
            out.append((k * SIGN_SPAN_DEG, (k - 1) % 12, k % 12))
    return out


def _unwrapped_delta(a: Sample, b: Sample, body: str) -> float:
    """Net motion from a to b, on the 360° branch the sampled speeds predict."""
    pa, pb = a.position(body), b.position(body)
    x1, x2 = unwrap_pair(pa.longitude, pb.longitude)
    short = x2 - x1
    predicted = 0.5 * (pa.speed + pb.speed) * (b.instant - a.instant)
    return short + 360.0 * round((predicted - short) / 360.0)
