"""Online-first position computation with offline fallback."""

import logging
from typing import Callable, List, Optional

from .models import Accuracy, CellObservation, LocationFix, now_ms
from .online_locator import LocationQuery, OnlineLocator
from .triangulation import TriangulationEngine

logger = logging.getLogger(__name__)


class FallbackCoordinator:
    """
    Runs one recompute cycle.

    When online positioning is enabled the visible cells (and WLAN access
    points) are sent to the online locator. An online error, an unsendable
    query or disabled online positioning fall back to cell triangulation.
    Fixes from either source are handed to on_candidate, which applies the
    scheduler's supersession rule.

    While an online query is in flight a recompute waits for its answer:
    no new query is built and previous_query is left alone.

    Attributes:
        observations: Callable returning the currently visible cells
        online_enabled: Online positioning and online data both allowed
        previous_query: Last query actually sent to the locator
    """

    def __init__(
        self,
        engine: TriangulationEngine,
        observations: Callable[[], List[CellObservation]],
        locator: Optional[OnlineLocator] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.engine = engine
        self.observations = observations
        self.locator = locator
        self.clock = clock
        self.online_enabled = False
        self.previous_query: Optional[LocationQuery] = None

        # Wired by the provider
        self.on_candidate: Callable[[LocationFix], None] = lambda fix: None
        self.on_wlan_changed: Callable[[], None] = lambda: None

        if self.locator is not None:
            self.locator.on_location_found = self.online_location_found
            self.locator.on_error = self.online_location_error
            self.locator.on_wlan_changed = self.online_wlan_changed

    def recompute(self):
        cells = self.observations()
        if self.online_enabled and self.locator is not None:
            if self.locator.in_flight:
                logger.debug("Waiting for the online query in flight")
                return
            query = self.locator.build_location_query(cells, self.previous_query)
            if self.locator.find_location(query):
                self.previous_query = query
                return

        self.update_from_cells(cells)

    def update_from_cells(self, cells: List[CellObservation]):
        fix = self.engine.estimate(cells)
        if fix is None:
            return
        self.on_candidate(fix)

    def online_location_found(self, latitude: float, longitude: float, accuracy: float):
        logger.debug(f"Location from online source: {latitude} {longitude} {accuracy}")
        self.on_candidate(LocationFix(
            timestamp=self.clock(),
            latitude=latitude,
            longitude=longitude,
            accuracy=Accuracy(horizontal=accuracy),
        ))

    def online_location_error(self, message: str):
        logger.debug(f"Cannot fetch position from online source: {message}, falling back to offline source")
        self.update_from_cells(self.observations())

    def online_wlan_changed(self):
        self.on_wlan_changed()

    def cancel(self):
        """Forget any in-flight online query."""
        if self.locator is not None:
            self.locator.cancel()
