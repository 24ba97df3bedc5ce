"""Position provider: wires the engine components behind the client API."""

import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple

from .cell_cache import CacheStrategy, CellLocationCache
from .cell_observer import CellObserver, CellReport, collect_observations
from .cell_store import CellLocationStore
from .config import MINIMUM_INTERVAL, PROVIDER_NAME, PROVIDER_DESCRIPTION
from .fallback import FallbackCoordinator
from .models import Accuracy, CellObservation, LocationFix, PositionFields, Status, now_ms
from .online_locator import OnlineLocator
from .scheduler import PositionScheduler
from .sessions import ClientSessionRegistry
from .settings import EngineSettings, evaluate_settings
from .status import StatusStateMachine
from .triangulation import TriangulationEngine

logger = logging.getLogger(__name__)


class PositionProvider:
    """
    Cell-id position provider.

    Owns the cell caches, the current fix and the timers. Clients take a
    reference to receive updates; positioning runs while at least one
    reference is held and the settings allow it. Inbound notifications
    (settings, visible cells, client disappearance) and timer expiry all
    run on the same event loop.

    Components:
        - CellLocationStore / CellLocationCache: cell -> coordinates
        - TriangulationEngine: offline estimate
        - OnlineLocator (optional): online estimate
        - FallbackCoordinator: online first, offline on failure
        - PositionScheduler: timers, reuse and supersession
        - ClientSessionRegistry: admission
        - StatusStateMachine: published availability

    Note:
        Create exactly one instance per process and hand it to whatever
        exposes it to clients.
    """

    def __init__(
        self,
        loop,
        store: Optional[CellLocationStore] = None,
        locator: Optional[OnlineLocator] = None,
        cache_strategy: Optional[CacheStrategy] = None,
        clock: Callable[[], int] = now_ms,
        minimum_interval: int = MINIMUM_INTERVAL,
        **timings,
    ):
        self.loop = loop
        self.clock = clock
        self.settings = EngineSettings()

        self.store = store if store is not None else CellLocationStore()
        self.cache = CellLocationCache(self.store, cache_strategy)
        self.engine = TriangulationEngine(self.cache, clock=clock)

        self.locator = locator
        self.coordinator = FallbackCoordinator(self.engine, self.seen_cells, locator, clock=clock)

        self.status = StatusStateMachine()
        self.scheduler = PositionScheduler(loop, self.status, clock=clock, **timings)
        self.sessions = ClientSessionRegistry(self.scheduler, minimum_interval=minimum_interval)

        self.observer = CellObserver()
        self.observer.set_listener(self.scheduler.mark_cells_changed)

        self.scheduler.recompute = self.coordinator.recompute
        self.scheduler.on_stopped = self.coordinator.cancel
        self.coordinator.on_candidate = self.scheduler.offer
        self.coordinator.on_wlan_changed = self.scheduler.mark_wlan_changed

        logger.info("Cell-id position provider active")
        if not self.sessions.has_sessions:
            self.scheduler.idle_timer.start(self.scheduler.quit_idle_time)

    # ------------------------------------------------------------------
    # Client API
    # ------------------------------------------------------------------

    def add_reference(self, client_id: str):
        self.sessions.add_reference(client_id)

    def remove_reference(self, client_id: str):
        self.sessions.remove_reference(client_id)

    def client_vanished(self, client_id: str):
        self.sessions.client_vanished(client_id)

    def set_options(self, client_id: str, options: Mapping[str, Any]) -> bool:
        return self.sessions.set_options(client_id, options)

    def get_provider_info(self) -> Tuple[str, str]:
        return PROVIDER_NAME, PROVIDER_DESCRIPTION

    def get_status(self) -> Status:
        return self.status.status

    def get_position(self) -> Tuple[PositionFields, int, float, float, float, Accuracy]:
        """
        Current fix as (fields, timestamp in seconds, latitude, longitude,
        altitude, accuracy); fields flags which values are known.
        """
        fix = self.scheduler.current_fix
        if fix.is_valid:
            logger.debug(
                f"GetPosition: timestamp: {fix.timestamp} latitude: {fix.latitude} "
                f"longitude: {fix.longitude} accuracy: {fix.accuracy.horizontal}"
            )
        else:
            logger.debug("GetPosition: no valid current location known")
        return (
            fix.position_fields(),
            fix.timestamp // 1000,
            fix.latitude,
            fix.longitude,
            fix.altitude,
            fix.accuracy,
        )

    def add_position_listener(self, listener: Callable[[LocationFix], None]):
        self.scheduler.add_position_listener(listener)

    def add_status_listener(self, listener: Callable[[Status], None]):
        self.status.add_listener(listener)

    @property
    def current_fix(self) -> LocationFix:
        return self.scheduler.current_fix

    # ------------------------------------------------------------------
    # Inbound notifications
    # ------------------------------------------------------------------

    def cells_changed(self, reports: List[CellReport]):
        """
        Visible cells reported by the modem binding.

        The latest reports are always kept so positioning can use them as
        soon as cell data is allowed again; only the change flag depends on
        the setting.
        """
        self.observer.update(reports)

    def seen_cells(self) -> List[CellObservation]:
        return collect_observations(self.observer.reports, self.settings.cell_data_allowed)

    def apply_settings(self, settings: EngineSettings):
        """React to a new settings snapshot."""
        decision = evaluate_settings(self.scheduler.positioning_enabled, settings)
        self.settings = settings

        listening = self.observer.listener is not None
        if settings.cell_data_allowed and not listening:
            logger.debug("Listening for cell data changes")
            self.observer.set_listener(self.scheduler.mark_cells_changed)
            self.scheduler.mark_cells_changed()
        elif not settings.cell_data_allowed and listening:
            logger.debug("No longer listening for cell data changes")
            self.observer.set_listener(None)
            self.scheduler.mark_cells_changed()

        if self.locator is not None:
            self.locator.set_wlan_data_allowed(settings.wlan_data_allowed)
        self.coordinator.online_enabled = settings.online_enabled

        logger.debug(f"{'Allowed' if settings.online_data_allowed else 'Not allowed'} to use online data to determine position")
        logger.debug(f"{'Allowed' if settings.cell_data_allowed else 'Not allowed'} to use adjacent cell id data to determine position")
        logger.debug(f"{'Allowed' if settings.wlan_data_allowed else 'Not allowed'} to use wlan data to determine position")

        if decision.start:
            logger.info("Positioning has been enabled")
            self.scheduler.positioning_enabled = True
            self.scheduler.mark_cells_changed()
            self.sessions.start_positioning_if_needed()
        elif decision.stop:
            logger.info("Positioning has been disabled")
            self.scheduler.positioning_enabled = False
            self.scheduler.publish(LocationFix.empty())
            self.sessions.stop_positioning_if_needed()
