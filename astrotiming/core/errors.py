# astrotiming/core/errors.py
from __future__ import annotations
from typing import Any, Optional

__all__ = ["InvalidInput", "InvalidDate", "ConvergenceFailure", "EphemerisError"]


class InvalidInput(ValueError):
    """Rejected at the boundary; never allowed to reach numerical code as NaN."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class InvalidDate(InvalidInput):
    def __init__(self, message: str):
        super().__init__("invalid_date", message)


class ConvergenceFailure(RuntimeError):
    """
    The solver hit its iteration cap without reaching tolerance.

    `best_jd` is informational only; callers must not treat it as an exact time.
    """
    def __init__(self, residual_deg: float, iterations: int, best_jd: Optional[float] = None,
                 target_deg: Optional[float] = None):
        self.residual_deg = float(residual_deg)
        self.iterations = int(iterations)
        self.best_jd = best_jd
        self.target_deg = target_deg
        super().__init__(
            f"no convergence after {self.iterations} iterations; "
            f"best residual {self.residual_deg * 3600.0:.2f} arcsec"
        )


class EphemerisError(RuntimeError):
    """Categorized error for ephemeris providers."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context
