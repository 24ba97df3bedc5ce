"""Shared test fixtures."""

import heapq
import itertools
from concurrent.futures import Future

import pytest

from cellpos.models import CellTechnology, UniqueCellId


class FakeHandle:
    """Cancellable timer handle."""

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """
    Deterministic stand-in for an asyncio event loop.

    Time only moves through advance(). Executor jobs are queued until
    run_jobs() is called so tests control when online results arrive.
    """

    START_MS = 1_700_000_000_000

    def __init__(self):
        self.now = 0.0  # seconds since start
        self._timers = []
        self._seq = itertools.count()
        self.jobs = []

    def time(self):
        return self.now

    def now_ms(self):
        return self.START_MS + int(round(self.now * 1000))

    def call_later(self, delay, callback, *args):
        handle = FakeHandle()
        heapq.heappush(self._timers, (self.now + delay, next(self._seq), handle, callback, args))
        return handle

    def run_in_executor(self, executor, func, *args):
        future = Future()
        self.jobs.append((future, func, args))
        return future

    def run_jobs(self):
        jobs, self.jobs = self.jobs, []
        for future, func, args in jobs:
            try:
                future.set_result(func(*args))
            except Exception as e:
                future.set_exception(e)

    def advance(self, seconds):
        target = self.now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, handle, callback, args = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self.now = when
            callback(*args)
        self.now = target

    def pending(self):
        return [t for t in self._timers if not t[2].cancelled]


@pytest.fixture
def loop():
    return FakeLoop()


def make_cell(cell_id=1, location_code=1234, mcc=244, mnc=5, technology=CellTechnology.GSM):
    return UniqueCellId(technology, cell_id, location_code, mcc, mnc)
