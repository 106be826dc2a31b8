# astrotiming/utils/config.py
import os
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from astrotiming.core.aspects import AspectConfig
from astrotiming.core.ayanamsa import AYANAMSA_PRESETS, AyanamsaModel, resolve_model
from astrotiming.core.constants import (
    ASPECT_TOLERANCE_DEG, DEFAULT_MAX_ITERATIONS, DEFAULT_ORBS_DEG, DEFAULT_TOLERANCE_DEG,
    MAJOR_ASPECTS, MINOR_ASPECTS,
)
from astrotiming.core.errors import InvalidInput
from astrotiming.core.solver import SolverConfig
from astrotiming.core.transits import TrackerConfig
from astrotiming.utils.validation import Location, validate_location

_FROZEN = ConfigDict(frozen=True, extra="forbid")

# Environment variables read once per load_settings() call
ENV_AYANAMSA = "ASTRO_AYANAMSA"
ENV_SOLVER_MAX_ITER = "ASTRO_SOLVER_MAX_ITER"
ENV_CACHE_CAPACITY = "ASTRO_CACHE_CAPACITY"


class AyanamsaSettings(BaseModel):
    model_config = _FROZEN

    preset: str = "lahiri"
    # A custom linear model; when base_deg is set the preset name only labels it
    base_deg: Optional[float] = None
    epoch_year: float = 2000.0
    rate_deg_per_year: Optional[float] = None

    @field_validator("preset")
    @classmethod
    def _fold_preset(cls, v: str) -> str:
        return v.strip().lower().replace("-", "_")

    @model_validator(mode="after")
    def _preset_or_custom(self) -> "AyanamsaSettings":
        if self.base_deg is None and self.preset not in AYANAMSA_PRESETS:
            raise ValueError(f"unknown ayanamsa preset {self.preset!r}; expected one of {sorted(AYANAMSA_PRESETS)}")
        return self

    def to_model(self) -> AyanamsaModel:
        if self.base_deg is None:
            return resolve_model(self.preset)
        rate = AYANAMSA_PRESETS["lahiri"].rate_deg_per_year if self.rate_deg_per_year is None else self.rate_deg_per_year
        return AyanamsaModel(self.preset, self.base_deg, self.epoch_year, rate)


class AspectSettings(BaseModel):
    model_config = _FROZEN

    include_minors: bool = False
    orb: Optional[float] = Field(default=None, ge=0.0)
    orbs: Dict[str, float] = Field(default_factory=dict)

    @field_validator("orbs")
    @classmethod
    def _known_aspects(cls, v: Dict[str, float]) -> Dict[str, float]:
        unknown = set(v) - set(MAJOR_ASPECTS) - set(MINOR_ASPECTS)
        if unknown:
            raise ValueError(f"unknown aspect names: {sorted(unknown)}")
        if any(o < 0 for o in v.values()):
            raise ValueError("orbs must be >= 0")
        return v

    def to_config(self) -> AspectConfig:
        if self.orbs:
            return AspectConfig(include_minors=self.include_minors, orbs_deg=self._merged(), orb=self.orb)
        return AspectConfig(include_minors=self.include_minors, orb=self.orb)

    def _merged(self) -> Dict[str, float]:
        return {**DEFAULT_ORBS_DEG, **self.orbs}


class SolverSettings(BaseModel):
    model_config = _FROZEN

    tolerance_deg: float = Field(default=DEFAULT_TOLERANCE_DEG, gt=0.0)
    aspect_tolerance_deg: float = Field(default=ASPECT_TOLERANCE_DEG, gt=0.0)
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1, le=10_000)
    max_step_deg: float = Field(default=10.0, gt=0.0)
    max_step_days: float = Field(default=5.0, gt=0.0)
    min_step_days: float = Field(default=1.0 / 1440.0, gt=0.0)

    def to_config(self) -> SolverConfig:
        return SolverConfig(**self.model_dump())


class CacheSettings(BaseModel):
    model_config = _FROZEN

    capacity: int = Field(default=4096, ge=1)
    jd_quantum: float = Field(default=1e-8, gt=0.0)


class TrackerSettings(BaseModel):
    model_config = _FROZEN

    step_minutes: float = Field(default=1440.0, gt=0.0)
    track_egress: bool = False
    strict: bool = False


class EphemerisSettings(BaseModel):
    model_config = _FROZEN

    provider: Literal["mean", "skyfield"] = "mean"
    kernel_path: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    elevation_m: float = 0.0

    @model_validator(mode="after")
    def _location_pair(self) -> "EphemerisSettings":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    def location(self) -> Optional[Location]:
        if self.latitude is None:
            return None
        return validate_location(self.latitude, self.longitude, self.elevation_m)


class EngineSettings(BaseModel):
    model_config = _FROZEN

    ayanamsa: AyanamsaSettings = Field(default_factory=AyanamsaSettings)
    aspects: AspectSettings = Field(default_factory=AspectSettings)
    solver: SolverSettings = Field(default_factory=SolverSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    ephemeris: EphemerisSettings = Field(default_factory=EphemerisSettings)

    def tracker_config(self) -> TrackerConfig:
        t = self.tracker
        return TrackerConfig(step_minutes=t.step_minutes, track_egress=t.track_egress, strict=t.strict,
                             aspects=self.aspects.to_config())


def _section(out: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = out.setdefault(name, {})
    if not isinstance(sec, dict):
        raise InvalidInput("invalid_config", f"section {name!r} must be a mapping, got {type(sec).__name__}")
    return sec


def _apply_env(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    # A section left empty in YAML loads as None
    out = {k: ({} if v is None else dict(v) if isinstance(v, dict) else v) for k, v in data.items()}
    if env.get(ENV_AYANAMSA):
        _section(out, "ayanamsa")["preset"] = env[ENV_AYANAMSA]
    if env.get(ENV_SOLVER_MAX_ITER):
        _section(out, "solver")["max_iterations"] = env[ENV_SOLVER_MAX_ITER]
    if env.get(ENV_CACHE_CAPACITY):
        _section(out, "cache")["capacity"] = env[ENV_CACHE_CAPACITY]
    return out


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """
    Load YAML settings from `path` (defaults when None) and apply env overrides:
      - ASTRO_AYANAMSA         (ayanamsa.preset)
      - ASTRO_SOLVER_MAX_ITER  (solver.max_iterations)
      - ASTRO_CACHE_CAPACITY   (cache.capacity)
    Any unreadable file or invalid value raises InvalidInput("invalid_config").
    """
    data: Dict[str, Any] = {}
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InvalidInput("invalid_config", f"cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidInput("invalid_config", f"{path} must contain a mapping at the top level")

    data = _apply_env(data, os.environ if env is None else env)
    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise InvalidInput("invalid_config", str(e)) from e
