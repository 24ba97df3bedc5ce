"""Tests for client session bookkeeping."""

from unittest.mock import Mock

import pytest

from cellpos.models import Status
from cellpos.scheduler import PositionScheduler
from cellpos.sessions import ClientSessionRegistry
from cellpos.status import StatusStateMachine


@pytest.fixture
def scheduler(loop):
    scheduler = PositionScheduler(loop, StatusStateMachine(), clock=loop.now_ms)
    scheduler.recompute = Mock()
    scheduler.positioning_enabled = True
    return scheduler


@pytest.fixture
def registry(scheduler):
    return ClientSessionRegistry(scheduler)


def test_add_reference_starts_positioning(registry, scheduler):
    scheduler.idle_timer.start(30000)
    registry.add_reference(":1.10")

    assert registry.sessions[":1.10"].reference_count == 1
    assert not scheduler.idle_timer.is_active
    assert scheduler.started
    scheduler.recompute.assert_called_once()
    assert scheduler.recompute_timer.interval == 10000


def test_add_reference_disabled_does_not_start(registry, scheduler):
    scheduler.positioning_enabled = False
    registry.add_reference(":1.10")
    assert not scheduler.started
    scheduler.recompute.assert_not_called()


def test_reference_counting_arms_idle_once(registry, scheduler):
    scheduler.idle_timer.start = Mock(wraps=scheduler.idle_timer.start)

    registry.add_reference("x")
    registry.add_reference("x")
    registry.remove_reference("x")
    assert registry.has_sessions
    assert scheduler.started
    registry.remove_reference("x")

    assert not registry.has_sessions
    assert scheduler.idle_timer.start.call_count == 1
    assert not scheduler.started
    assert scheduler.status.status == Status.UNAVAILABLE


def test_redundant_remove_is_noop(registry, scheduler):
    scheduler.idle_timer.start = Mock(wraps=scheduler.idle_timer.start)
    registry.remove_reference("ghost")
    assert not registry.has_sessions
    scheduler.idle_timer.start.assert_not_called()


def test_positioning_continues_while_other_client_active(registry, scheduler):
    registry.add_reference("a")
    registry.add_reference("b")
    registry.remove_reference("a")
    assert scheduler.started
    assert not scheduler.idle_timer.is_active


def test_client_vanished(registry, scheduler):
    registry.add_reference("a")
    registry.add_reference("a")
    registry.client_vanished("a")

    assert not registry.has_sessions
    assert scheduler.idle_timer.is_active
    assert not scheduler.started


def test_client_vanished_unknown_is_ignored(registry, scheduler):
    registry.add_reference("a")
    registry.client_vanished("b")
    assert scheduler.started
    assert not scheduler.idle_timer.is_active


def test_set_requested_interval_requires_session(registry):
    assert registry.set_requested_interval("nobody", 20000) is False
    assert registry.sessions == {}


def test_minimum_requested_interval(registry):
    assert registry.minimum_requested_interval() == 10000

    registry.add_reference("a")
    registry.add_reference("b")
    assert registry.minimum_requested_interval() == 10000

    registry.set_requested_interval("a", 60000)
    assert registry.minimum_requested_interval() == 60000
    registry.set_requested_interval("b", 45000)
    assert registry.minimum_requested_interval() == 45000
    registry.set_requested_interval("b", 1000)
    assert registry.minimum_requested_interval() == 10000


def test_set_interval_restarts_recompute_timer(registry, scheduler):
    registry.add_reference("a")
    registry.set_requested_interval("a", 60000)
    assert scheduler.recompute_timer.interval == 60000

    registry.remove_reference("a")
    registry.add_reference("a")
    # Interval preference went away with the session
    assert scheduler.recompute_timer.interval == 10000


def test_set_options(registry, scheduler):
    registry.add_reference("a")
    assert registry.set_options("a", {"UpdateInterval": 30000}) is True
    assert scheduler.recompute_timer.interval == 30000
    assert registry.set_options("a", {"Other": 1}) is True
    assert registry.set_options("a", {"UpdateInterval": "soon"}) is False
    assert registry.set_options("b", {"UpdateInterval": 30000}) is False


def test_start_stop_idempotent(registry, scheduler):
    registry.add_reference("a")
    registry.start_positioning_if_needed()
    assert scheduler.recompute.call_count == 1

    scheduler.positioning_enabled = False
    registry.stop_positioning_if_needed()
    assert not scheduler.started
    registry.stop_positioning_if_needed()
    assert not scheduler.started
