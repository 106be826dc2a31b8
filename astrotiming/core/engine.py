# astrotiming/core/engine.py
# -*- coding: utf-8 -*-
"""
TimingEngine: one object wiring the pipeline together

    tropical provider → CachedEphemeris → SiderealEphemeris → EventSolver / TransitTracker

Outbound surface
----------------
positions_at(instant)                         -> {body: BodyPosition}  (sidereal)
classify(lon1, lon2, orb=None)                -> AspectMatch | None
find_first(body, target, start, days)         -> Crossing | NoCrossingInWindow
find_all(body, target, start, days)           -> [Crossing, ...]
find_return(body, birth, occurrence=1)        -> ReturnEvent | NoCrossingInWindow
build_event_calendar(start, end, bodies, references=None) -> [TransitEvent, ...]
describe()                                    -> {version, provider, ayanamsa, ...}

All components are built from explicit, immutable configs; two engines with
different ayanamsa systems can live side by side.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Union
import logging

from astrotiming.core.aspects import AspectConfig, AspectMatch, classify
from astrotiming.core.ayanamsa import AyanamsaModel, SiderealEphemeris
from astrotiming.core.constants import BODY_ORDER
from astrotiming.core.ephemeris import BodyPosition, CachedEphemeris, EphemerisProvider, MeanMotionEphemeris
from astrotiming.core.returns import ReturnEvent, find_return
from astrotiming.core.solver import Crossing, EventSolver, NoCrossingInWindow, SolverConfig, Target
from astrotiming.core.timescales import Instant
from astrotiming.core.transits import TrackerConfig, TransitEvent, TransitTracker
from astrotiming.version import VERSION

log = logging.getLogger(__name__)

__all__ = ["TimingEngine"]


class TimingEngine:
    def __init__(self, provider: Optional[EphemerisProvider] = None, *,
                 ayanamsa: Union[str, AyanamsaModel, None] = None,
                 solver_config: Optional[SolverConfig] = None,
                 tracker_config: Optional[TrackerConfig] = None,
                 cache_capacity: int = 4096, jd_quantum: float = 1e-8):
        self.tropical = CachedEphemeris(provider or MeanMotionEphemeris(), cache_capacity, jd_quantum)
        self.sidereal = SiderealEphemeris(self.tropical, ayanamsa)
        self.solver = EventSolver(self.sidereal, solver_config)
        self.tracker = TransitTracker(self.sidereal, self.solver, tracker_config)

    @classmethod
    def from_config(cls, path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> "TimingEngine":
        # Imported here: utils.config depends on the core modules
        from astrotiming.utils.config import load_settings

        s = load_settings(path, env)
        provider: EphemerisProvider
        if s.ephemeris.provider == "skyfield":
            from astrotiming.core.ephemeris_adapter import SkyfieldEphemeris
            provider = SkyfieldEphemeris(s.ephemeris.kernel_path, location=s.ephemeris.location())
        else:
            provider = MeanMotionEphemeris()
        log.info("astrotiming %s engine: provider=%s ayanamsa=%s", VERSION, s.ephemeris.provider, s.ayanamsa.preset)
        return cls(
            provider,
            ayanamsa=s.ayanamsa.to_model(),
            solver_config=s.solver.to_config(),
            tracker_config=s.tracker_config(),
            cache_capacity=s.cache.capacity,
            jd_quantum=s.cache.jd_quantum,
        )

    @property
    def ayanamsa_model(self) -> AyanamsaModel:
        return self.sidereal.model

    @property
    def aspect_config(self) -> AspectConfig:
        return self.tracker.config.aspects

    def ayanamsa(self, instant: Instant) -> float:
        return self.sidereal.ayanamsa(instant)

    def positions_at(self, instant: Instant) -> Dict[str, BodyPosition]:
        return self.sidereal.positions_at(instant)

    def classify(self, longitude1: float, longitude2: float, orb: Optional[float] = None) -> Optional[AspectMatch]:
        return classify(longitude1, longitude2, orb=orb, config=self.aspect_config)

    def find_first(self, body: str, target: Target, start: Instant, days: float) -> Union[Crossing, NoCrossingInWindow]:
        return self.solver.find_first(body, target, start, days)

    def find_all(self, body: str, target: Target, start: Instant, days: float) -> List[Crossing]:
        return self.solver.find_all(body, target, start, days)

    def find_return(self, body: str, birth: Instant, occurrence: int = 1) -> Union[ReturnEvent, NoCrossingInWindow]:
        return find_return(self.solver, body, birth, occurrence=occurrence)

    def build_event_calendar(self, start: Instant, end: Instant, bodies: Optional[Iterable[str]] = None,
                             references: Optional[Mapping[str, float]] = None,
                             step_minutes: Optional[float] = None) -> List[TransitEvent]:
        return self.tracker.build_event_calendar(
            start, end, BODY_ORDER if bodies is None else bodies, references, step_minutes
        )

    def describe(self) -> Dict[str, object]:
        """Static metadata about this engine, suitable for a health or status payload."""
        model = self.ayanamsa_model
        solver = self.solver.config
        return {
            "version": VERSION,
            "provider": type(self.tropical.provider).__name__,
            "ayanamsa": {"name": model.name, "base_deg": model.base_deg,
                         "epoch_year": model.epoch_year, "rate_deg_per_year": model.rate_deg_per_year},
            "tolerance_deg": solver.tolerance_deg,
            "aspect_tolerance_deg": solver.aspect_tolerance_deg,
            "max_iterations": solver.max_iterations,
            "include_minors": self.aspect_config.include_minors,
            "cached_instants": len(self.tropical),
        }
