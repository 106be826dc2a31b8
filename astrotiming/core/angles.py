# astrotiming/core/angles.py
from __future__ import annotations
from typing import Tuple
import math

from astrotiming.core.constants import SIGN_SPAN_DEG
from astrotiming.core.errors import InvalidInput

__all__ = [
    "ensure_finite",
    "normalize",
    "separation",
    "signed_delta",
    "unwrap_pair",
    "lerp",
    "sign_index",
]


def ensure_finite(x: float, what: str = "angle") -> float:
    try:
        v = float(x)
    except (TypeError, ValueError) as e:
        raise InvalidInput("non_numeric", f"{what} must be a number, got {x!r}") from e
    if not math.isfinite(v):
        raise InvalidInput("non_finite", f"{what} must be finite, got {v!r}")
    return v


def normalize(angle: float) -> float:
    """Reduce any finite angle to [0, 360) in O(1)."""
    v = ensure_finite(angle) % 360.0  # Python's % already yields [0, 360] for a positive modulus
    # -1e-17 % 360 rounds to 360.0 in binary floating point
    return 0.0 if v >= 360.0 else v


def separation(a: float, b: float) -> float:
    """Shortest-arc distance on the circle, in [0, 180]."""
    d = abs(ensure_finite(a) - ensure_finite(b)) % 360.0
    return min(d, 360.0 - d)


def signed_delta(current: float, target: float) -> float:
    """
    Shortest signed difference current − target in (−180, 180].

    Positive when `current` is ahead of `target` in the zodiacal direction.
    """
    d = normalize(ensure_finite(current) - ensure_finite(target))
    return d - 360.0 if d > 180.0 else d


def unwrap_pair(lon1: float, lon2: float) -> Tuple[float, float]:
    """Lift one side by 360° when the pair straddles the 0°/360° seam."""
    if abs(lon2 - lon1) > 180.0:
        if lon2 > lon1:
            lon1 += 360.0
        else:
            lon2 += 360.0
    return lon1, lon2


def lerp(target: float, x1: float, x2: float, y1: float, y2: float) -> float:
    # Degenerate span returns y1
    if x2 == x1:
        return y1
    return y1 + (target - x1) * (y2 - y1) / (x2 - x1)


def sign_index(longitude: float) -> int:
    return int(normalize(longitude) // SIGN_SPAN_DEG) % 12
