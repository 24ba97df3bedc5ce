"""Single-shot and repeating timers on the event loop."""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Timer:
    """
    Restartable timer driven by an event loop's call_later.

    Intervals are in milliseconds. A repeating timer re-arms itself before
    invoking its callback; a single-shot timer goes inactive first.

    Attributes:
        name: Label used in log messages
        interval: Interval of the last start() in milliseconds
    """

    def __init__(self, loop, name: str, callback: Callable[[], None], repeating: bool = False):
        self.loop = loop
        self.name = name
        self.callback = callback
        self.repeating = repeating
        self.interval: Optional[int] = None
        self._handle = None

    @property
    def is_active(self) -> bool:
        return self._handle is not None

    def start(self, interval: int):
        """Start or restart the timer."""
        self.stop()
        self.interval = interval
        self._schedule()

    def stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self):
        self._handle = self.loop.call_later(self.interval / 1000.0, self._fire)

    def _fire(self):
        if self.repeating:
            self._schedule()
        else:
            self._handle = None
        logger.debug(f"{self.name} timer fired")
        self.callback()
