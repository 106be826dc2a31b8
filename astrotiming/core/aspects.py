# astrotiming/core/aspects.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Literal, Mapping, Optional, Tuple, Union

from astrotiming.core.angles import ensure_finite, separation
from astrotiming.core.constants import DEFAULT_ORBS_DEG, MAJOR_ASPECTS, MINOR_ASPECTS
from astrotiming.core.errors import InvalidInput

__all__ = [
    "AspectConfig",
    "AspectMatch",
    "classify",      # PURE geometry: one pair → best aspect or None
    "strength",
    "active_aspects",
    "aspect_catalog",
]

Classification = Literal["major", "minor"]

# ─────────────────────────────────────────────────────────────────────────────
# Configuration & results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AspectConfig:
    include_minors: bool = False
    # Per-aspect orbs; missing names fall back to DEFAULT_ORBS_DEG
    orbs_deg: Mapping[str, float] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_ORBS_DEG)))
    # Uniform orb for every aspect (overrides orbs_deg when set)
    orb: Optional[float] = None

    def __post_init__(self) -> None:
        orbs = {str(k): _check_orb(v, f"orb for {k}") for k, v in dict(self.orbs_deg).items()}
        unknown = set(orbs) - set(MAJOR_ASPECTS) - set(MINOR_ASPECTS)
        if unknown:
            raise InvalidInput("invalid_config", f"unknown aspect names in orbs: {sorted(unknown)}")
        object.__setattr__(self, "orbs_deg", MappingProxyType(orbs))
        if self.orb is not None:
            object.__setattr__(self, "orb", _check_orb(self.orb, "orb"))

    def orb_for(self, aspect: str) -> float:
        if self.orb is not None:
            return self.orb
        return float(self.orbs_deg.get(aspect, DEFAULT_ORBS_DEG[aspect]))


@dataclass(frozen=True)
class AspectMatch:
    reference: float          # reference longitude
    moving: float             # moving longitude
    aspect: str
    angle: float              # exact aspect angle
    separation: float         # measured shortest-arc separation [0, 180]
    exactness: float          # |separation − angle|
    orb: float                # orb used for this match
    classification: Classification

    @property
    def strength(self) -> float:
        return strength(self.exactness, self.orb)


def _check_orb(value: float, what: str) -> float:
    v = ensure_finite(value, what)
    if v < 0.0:
        raise InvalidInput("invalid_orb", f"{what} must be >= 0, got {v}")
    return v


def aspect_catalog(include_minors: bool) -> Tuple[Tuple[str, float, Classification], ...]:
    """Aspects in classification priority: majors first, then minors."""
    rows = [(name, angle, "major") for name, angle in MAJOR_ASPECTS.items()]
    if include_minors:
        rows.extend((name, angle, "minor") for name, angle in MINOR_ASPECTS.items())
    return tuple(rows)  # type: ignore[return-value]

# ─────────────────────────────────────────────────────────────────────────────
# PURE geometry API
# ─────────────────────────────────────────────────────────────────────────────

def classify(longitude1: float, longitude2: float, orb: Optional[float] = None,
             config: Optional[AspectConfig] = None) -> Optional[AspectMatch]:
    """
    First aspect (in priority order) whose |separation − angle| <= orb, else None.

    `orb` applies uniformly to every aspect; without it the per-aspect orbs of
    `config` are used. Overlapping orbs resolve to the earlier aspect
    (conjunction > sextile > square > trine > opposition > minors).
    """
    cfg = config or AspectConfig()
    uniform = None if orb is None else _check_orb(orb, "orb")
    ref = ensure_finite(longitude1, "longitude1")
    mov = ensure_finite(longitude2, "longitude2")
    sep = separation(ref, mov)
    for name, angle, cls in aspect_catalog(cfg.include_minors):
        allowed = uniform if uniform is not None else cfg.orb_for(name)
        delta = abs(sep - angle)
        if delta <= allowed:
            return AspectMatch(ref, mov, name, angle, sep, delta, allowed, cls)
    return None


def strength(match_or_exactness: Union[AspectMatch, float], orb: Optional[float] = None) -> float:
    """Linear falloff: 1.0 when exact, 0.0 at (or beyond) the orb edge."""
    if isinstance(match_or_exactness, AspectMatch):
        exactness = match_or_exactness.exactness
        orb = match_or_exactness.orb if orb is None else orb
    else:
        exactness = ensure_finite(match_or_exactness, "exactness")
    if orb is None:
        raise InvalidInput("invalid_orb", "orb is required when scoring a bare exactness")
    orb = _check_orb(orb, "orb")
    if orb == 0.0:
        return 1.0 if exactness == 0.0 else 0.0
    return max(0.0, (orb - abs(exactness)) / orb)


def active_aspects(moving_lon: float, references: Mapping[str, float],
                   config: Optional[AspectConfig] = None) -> Dict[str, AspectMatch]:
    """Reference name → AspectMatch for every reference the moving point aspects."""
    out: Dict[str, AspectMatch] = {}
    for name, lon in references.items():
        m = classify(lon, moving_lon, config=config)
        if m is not None:
            out[name] = m
    return out
