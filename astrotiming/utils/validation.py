from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional

from astrotiming.core.angles import ensure_finite
from astrotiming.core.errors import InvalidInput


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    elevation_m: float = 0.0


def validate_location(latitude: float, longitude: float, elevation_m: Optional[float] = 0.0) -> Location:
    """Bounds-checked observer location; east longitudes positive."""
    lat = ensure_finite(latitude, "latitude")
    lon = ensure_finite(longitude, "longitude")
    elev = ensure_finite(elevation_m or 0.0, "elevation_m")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInput("out_of_range", f"latitude must be between -90 and 90 degrees, got {lat}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidInput("out_of_range", f"longitude must be between -180 and 180 degrees, got {lon}")
    if not -500.0 <= elev <= 10000.0:
        raise InvalidInput("out_of_range", f"elevation_m must be between -500 and 10000, got {elev}")
    return Location(lat, lon, elev)


def validate_longitudes(points: Mapping[str, float]) -> dict:
    """Name → longitude map with every value checked finite."""
    if not isinstance(points, Mapping):
        raise InvalidInput("invalid_points", "reference longitudes must be a mapping of name → degrees")
    return {str(k): ensure_finite(v, f"longitude of {k}") for k, v in points.items()}
