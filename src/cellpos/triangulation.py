"""Signal-strength weighted cell triangulation."""

import logging
from typing import Callable, Iterable, Optional, List, Tuple

from .cell_cache import CellLocationCache
from .config import MINIMUM_ACCURACY, BASE_ACCURACY, PER_CELL_ACCURACY_GAIN
from .models import Accuracy, CellObservation, Coordinates, LocationFix, UniqueCellId, now_ms

logger = logging.getLogger(__name__)


def estimate_accuracy(resolved_count: int) -> float:
    """Heuristic horizontal accuracy in metres for a number of resolved cells."""
    return float(max(MINIMUM_ACCURACY, BASE_ACCURACY - PER_CELL_ACCURACY_GAIN * resolved_count))


class TriangulationEngine:
    """
    Estimates the device position as the signal-strength weighted average
    of the known locations of the visible cells.
    """

    def __init__(self, cache: CellLocationCache, clock: Callable[[], int] = now_ms):
        self.cache = cache
        self.clock = clock

    def estimate(self, observations: Iterable[CellObservation]) -> Optional[LocationFix]:
        """
        Estimate a fix from the visible cells.

        Args:
            observations: Currently visible cells with signal strengths

        Returns:
            LocationFix stamped with the current time, or None when no
            observed cell has a known location (or all of them report zero
            strength). Callers keep their previous fix in that case.
        """
        resolved: List[Tuple[UniqueCellId, Coordinates, int]] = []
        seen = set()
        total_strength = 0.0

        for observation in observations:
            if observation.cell in seen:
                continue
            seen.add(observation.cell)

            coords = self.cache.resolve(observation.cell)
            if coords is None:
                logger.debug(f"Do not know position of cell {observation.cell}")
                continue
            resolved.append((observation.cell, coords, observation.signal_strength))
            total_strength += observation.signal_strength

        count = len(resolved)
        if count == 0:
            logger.debug("No cell id data to calculate position from")
            return None
        elif count == 1:
            logger.debug("Only one cell id datum to calculate position from, position will be extremely inaccurate")
        elif count == 2:
            logger.debug("Only two cell id data to calculate position from, position will be highly inaccurate")
        else:
            logger.debug(f"Calculating position from {count} cell id data")

        if total_strength <= 0:
            logger.debug(f"All {count} resolved cells report zero signal strength, cannot weight them")
            return None

        latitude = 0.0
        longitude = 0.0
        for cell, coords, strength in resolved:
            weight = strength / total_strength
            latitude += weight * coords.lat
            longitude += weight * coords.lon
            logger.debug(f"Have cell {cell} with position {coords.lat}, {coords.lon} with weight {weight:.3f}")

        return LocationFix(
            timestamp=self.clock(),
            latitude=latitude,
            longitude=longitude,
            accuracy=Accuracy(horizontal=estimate_accuracy(count)),
        )
