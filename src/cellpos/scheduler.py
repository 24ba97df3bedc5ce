"""Recompute / reuse / supersede scheduling of position fixes."""

import logging
from typing import Callable, List

from .config import (
    QUIT_IDLE_TIME,
    FIX_TIMEOUT,
    REUSE_INTERVAL,
    FALLBACK_INTERVAL,
)
from .models import LocationFix, now_ms
from .status import StatusStateMachine
from .timers import Timer

logger = logging.getLogger(__name__)


class PositionScheduler:
    """
    Owns the idle, fix-lost and recompute timers and the current fix.

    Recompute timer fire:
        - positioning disabled: nothing happens
        - no fix, fix older than the reuse window, or pending cell/WLAN
          change: the recompute callback runs and the flags are cleared
        - otherwise the current fix is republished unchanged

    Candidate fixes, online or triangulated, go through offer(): a current
    fix that is younger than the fallback window and strictly more accurate
    wins over the candidate.

    Attributes:
        current_fix: Fix clients see
        last_fix: Fix that current_fix replaced (diagnostics only)
        positioning_enabled: Settings allow positioning
        started: Recompute timer is running for at least one client
    """

    def __init__(
        self,
        loop,
        status: StatusStateMachine,
        clock: Callable[[], int] = now_ms,
        quit_idle_time: int = QUIT_IDLE_TIME,
        fix_timeout: int = FIX_TIMEOUT,
        reuse_interval: int = REUSE_INTERVAL,
        fallback_interval: int = FALLBACK_INTERVAL,
    ):
        self.status = status
        self.clock = clock
        self.quit_idle_time = quit_idle_time
        self.fix_timeout = fix_timeout
        self.reuse_interval = reuse_interval
        self.fallback_interval = fallback_interval

        self.idle_timer = Timer(loop, "idle", self._on_idle)
        self.fix_lost_timer = Timer(loop, "fix-lost", self._on_fix_lost)
        self.recompute_timer = Timer(loop, "recompute", self._on_recompute, repeating=True)

        self.current_fix = LocationFix.empty()
        self.last_fix = LocationFix.empty()
        self.positioning_enabled = False
        self.started = False
        self.cells_changed = False
        self.wlan_changed = False

        # Wired by the provider
        self.recompute: Callable[[], None] = lambda: None
        self.idle_callback: Callable[[], None] = lambda: None
        self.on_stopped: Callable[[], None] = lambda: None
        self.position_listeners: List[Callable[[LocationFix], None]] = []

    def add_position_listener(self, listener: Callable[[LocationFix], None]):
        self.position_listeners.append(listener)

    def mark_cells_changed(self):
        self.cells_changed = True

    def mark_wlan_changed(self):
        self.wlan_changed = True

    def start(self, interval: int):
        """Begin positioning: recompute now and then every interval ms."""
        logger.info(f"Starting positioning, recompute interval {interval} ms")
        self.started = True
        self.recompute()
        self.recompute_timer.start(interval)

    def stop(self):
        logger.info("Stopping positioning")
        self.started = False
        self.status.stopped()
        self.fix_lost_timer.stop()
        self.recompute_timer.stop()
        self.on_stopped()

    def _on_idle(self):
        logger.info("Have been idle for too long, quitting")
        self.idle_callback()

    def _on_fix_lost(self):
        self.status.fix_lost()

    def _on_recompute(self):
        now = self.clock()
        if not self.positioning_enabled:
            logger.debug("Positioning is disabled, preventing position calculation")
        elif (not self.current_fix.is_valid
                or self.current_fix.age(now) > self.reuse_interval
                or self.cells_changed or self.wlan_changed):
            logger.debug("Calculating new position information")
            self.cells_changed = False
            self.wlan_changed = False
            self.recompute()
        else:
            logger.debug("Re-using old position information")
            self.publish(self.current_fix)

    def offer(self, candidate: LocationFix):
        """Publish a candidate unless a recent, more accurate fix supersedes it."""
        current = self.current_fix
        if (current.is_valid
                and current.age(self.clock()) < self.fallback_interval
                and current.accuracy.horizontal < candidate.accuracy.horizontal):
            logger.debug(
                f"Re-using old position information due to better accuracy, preferring "
                f"{current.latitude}, {current.longitude}, {current.accuracy.horizontal} over "
                f"{candidate.latitude}, {candidate.longitude}, {candidate.accuracy.horizontal}"
            )
            self.publish(current)
        else:
            self.publish(candidate)

    def publish(self, fix: LocationFix):
        """Make fix the current one and notify listeners."""
        logger.debug(
            f"Setting current location to ts: {fix.timestamp}, lat: {fix.latitude}, "
            f"lon: {fix.longitude}, accuracy: {fix.accuracy.horizontal}"
        )
        if fix.is_valid:
            self.status.fix_published()
            self.fix_lost_timer.start(self.fix_timeout)
            self.last_fix = self.current_fix
        else:
            logger.debug("Location invalid, lost positioning fix")
            self.last_fix = LocationFix.empty()

        self.current_fix = fix
        for listener in self.position_listeners:
            listener(fix)
