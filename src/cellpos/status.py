"""Provider availability state machine."""

import logging
from typing import Callable, List

from .models import Status

logger = logging.getLogger(__name__)


class StatusStateMachine:
    """
    Unavailable / Acquiring / Available.

    Listeners are notified only when the state actually changes.
    """

    def __init__(self):
        self.status = Status.UNAVAILABLE
        self.listeners: List[Callable[[Status], None]] = []

    def add_listener(self, listener: Callable[[Status], None]):
        self.listeners.append(listener)

    def set_status(self, status: Status) -> bool:
        """Move to a state. Returns True if it changed."""
        if self.status == status:
            return False
        logger.info(f"Status changed: {self.status.name} -> {status.name}")
        self.status = status
        for listener in self.listeners:
            listener(status)
        return True

    def fix_published(self):
        self.set_status(Status.AVAILABLE)

    def fix_lost(self):
        if self.status == Status.AVAILABLE:
            self.set_status(Status.ACQUIRING)

    def stopped(self):
        self.set_status(Status.UNAVAILABLE)
