from __future__ import annotations
from typing import Final

from prometheus_client import Counter, Histogram

# Names are part of the scrape contract; keep them stable.
SOLVER_OUTCOMES: Final = Counter(
    "astrotiming_solver_outcomes_total", "Crossing searches by outcome", ["outcome"]
)
SOLVER_ITERATIONS: Final = Histogram(
    "astrotiming_solver_iterations", "Refinement iterations per crossing",
    buckets=(1, 2, 3, 5, 8, 13, 21, 34, 50, 100),
)
EPHEMERIS_CACHE: Final = Counter(
    "astrotiming_ephemeris_cache_total", "Ephemeris cache lookups", ["result"]
)
TRANSIT_EVENTS: Final = Counter(
    "astrotiming_transit_events_total", "Transit events emitted", ["kind"]
)
