"""Client session bookkeeping and positioning admission."""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Mapping

from .config import MINIMUM_INTERVAL
from .scheduler import PositionScheduler

logger = logging.getLogger(__name__)

UPDATE_INTERVAL_OPTION = "UpdateInterval"


@dataclass
class ClientSession:
    """A client's registered interest in position updates."""
    reference_count: int = 0
    update_interval: int = 0  # ms, 0 = no preference


class ClientSessionRegistry:
    """
    Reference-counted client sessions.

    Positioning runs only while at least one session exists and positioning
    is enabled. The effective recompute interval is the smallest interval
    any client asked for, never below MINIMUM_INTERVAL.

    Attributes:
        sessions: Dictionary mapping client id to ClientSession
        scheduler: Timers and fix policy driven by admission changes
    """

    def __init__(self, scheduler: PositionScheduler, minimum_interval: int = MINIMUM_INTERVAL):
        self.scheduler = scheduler
        self.minimum_interval = minimum_interval
        self.sessions: Dict[str, ClientSession] = {}

    @property
    def has_sessions(self) -> bool:
        return bool(self.sessions)

    def add_reference(self, client_id: str):
        """Take a reference for a client, creating its session if needed."""
        was_inactive = not self.sessions
        session = self.sessions.setdefault(client_id, ClientSession())
        session.reference_count += 1
        logger.debug(f"Client {client_id} now holds {session.reference_count} references")

        if was_inactive:
            logger.debug("New watched client, stopping idle timer.")
            self.scheduler.idle_timer.stop()

        self.start_positioning_if_needed()

    def remove_reference(self, client_id: str):
        """Drop one reference; the session goes away when none are left."""
        session = self.sessions.get(client_id)
        if session is None or session.reference_count == 0:
            logger.warning(f"Client {client_id} removed a reference it does not hold")
            return

        session.reference_count -= 1
        if session.reference_count == 0:
            del self.sessions[client_id]
            self._session_gone()

    def client_vanished(self, client_id: str):
        """The client went away without releasing its references."""
        if self.sessions.pop(client_id, None) is None:
            return
        logger.info(f"Client {client_id} disappeared, dropping its session")
        self._session_gone()

    def _session_gone(self):
        if not self.sessions:
            logger.debug("No watched clients, starting idle timer.")
            self.scheduler.idle_timer.start(self.scheduler.quit_idle_time)
        self.stop_positioning_if_needed()

    def set_requested_interval(self, client_id: str, interval: int) -> bool:
        """
        Record a client's preferred update interval in milliseconds.

        Returns:
            False if the client has no active session (the call is rejected)
        """
        session = self.sessions.get(client_id)
        if session is None:
            logger.warning(f"Only active clients can set options, rejected call from {client_id}")
            return False

        session.update_interval = max(0, int(interval))
        if self.scheduler.started:
            self.scheduler.recompute_timer.start(self.minimum_requested_interval())
        return True

    def set_options(self, client_id: str, options: Mapping[str, Any]) -> bool:
        """Apply a client options mapping; only UpdateInterval is understood."""
        if client_id not in self.sessions:
            logger.warning(f"Only active clients can set options, rejected call from {client_id}")
            return False

        if UPDATE_INTERVAL_OPTION in options:
            try:
                interval = int(options[UPDATE_INTERVAL_OPTION])
            except (TypeError, ValueError):
                logger.warning(f"Invalid {UPDATE_INTERVAL_OPTION} from {client_id}: {options[UPDATE_INTERVAL_OPTION]!r}")
                return False
            return self.set_requested_interval(client_id, interval)
        return True

    def minimum_requested_interval(self) -> int:
        """Effective recompute interval across active sessions."""
        requested = [
            s.update_interval for s in self.sessions.values()
            if s.reference_count > 0 and s.update_interval > 0
        ]
        if not requested:
            return self.minimum_interval
        return max(min(requested), self.minimum_interval)

    def start_positioning_if_needed(self):
        if self.scheduler.started:
            return
        if not self.sessions:
            return
        if not self.scheduler.positioning_enabled:
            return

        self.scheduler.idle_timer.stop()
        self.scheduler.start(self.minimum_requested_interval())

    def stop_positioning_if_needed(self):
        if not self.scheduler.started:
            return
        if self.scheduler.positioning_enabled and self.sessions:
            return

        self.scheduler.stop()
