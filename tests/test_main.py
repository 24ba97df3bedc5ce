"""Tests for the provider composition root."""

import json
import os
from unittest.mock import patch

import pytest

from cellpos import main as service_main
from cellpos.errors import IntegrationError
from cellpos.models import CellObservation
from cellpos.settings import EngineSettings

from conftest import make_cell

CELLS = [CellObservation(make_cell(), 10)]


@pytest.fixture
def service(loop, tmp_path):
    with patch.multiple(
        service_main,
        ONLINE_LOCATOR_URL="https://locator.example/",
        WLAN_FILE=tmp_path / "wlan.json",
        CELLS_FILE=tmp_path / "cells.json",
        SETTINGS_FILE=tmp_path / "location.conf",
        DATASET_DIR=tmp_path / "mlsdb",
    ):
        yield service_main.Service(loop)


def write_scan(path, mac, stamp):
    path.write_text(json.dumps([{"macAddress": mac, "signalStrength": -55}]))
    os.utime(path, (stamp, stamp))


def test_second_instance_refused(tmp_path):
    lock = tmp_path / "cellpos.lock"
    first = service_main.acquire_instance_lock(lock)
    try:
        with pytest.raises(IntegrationError):
            service_main.acquire_instance_lock(lock)
    finally:
        first.close()

    # Lock is free again once the first instance is gone
    service_main.acquire_instance_lock(lock).close()


def test_main_exits_non_zero_when_lock_held(tmp_path):
    lock = tmp_path / "cellpos.lock"
    held = service_main.acquire_instance_lock(lock)
    try:
        with patch.object(service_main, "LOCK_FILE", lock), \
                patch.object(service_main, "Service") as service:
            assert service_main.main() == 1
        service.assert_not_called()
    finally:
        held.close()


def test_online_queries_carry_wlan_scan(service, tmp_path):
    write_scan(tmp_path / "wlan.json", "aa:bb:cc:dd:ee:ff", 1000)
    service.wlan_source.poll()

    locator = service.provider.locator
    assert locator.wlan_source == service.wlan_source.latest
    locator.set_wlan_data_allowed(True)
    _, payload = locator.build_location_query(CELLS)
    assert payload["wifiAccessPoints"] == [{"macAddress": "aa:bb:cc:dd:ee:ff", "signalStrength": -55}]


def test_new_wlan_scan_flags_recompute(service, tmp_path):
    provider = service.provider
    provider.apply_settings(EngineSettings(
        positioning_enabled=True,
        cell_positioning_enabled=True,
        online_positioning_enabled=True,
    ))
    locator = provider.locator

    write_scan(tmp_path / "wlan.json", "aa:aa:aa:aa:aa:aa", 1000)
    service.wlan_source.poll()
    previous = locator.build_location_query(CELLS)
    assert not provider.scheduler.wlan_changed

    write_scan(tmp_path / "wlan.json", "bb:bb:bb:bb:bb:bb", 2000)
    service.wlan_source.poll()
    locator.build_location_query(CELLS, previous)
    assert provider.scheduler.wlan_changed


def test_no_locator_without_url(loop, tmp_path):
    with patch.multiple(
        service_main,
        ONLINE_LOCATOR_URL="",
        WLAN_FILE=tmp_path / "wlan.json",
        DATASET_DIR=tmp_path / "mlsdb",
    ):
        service = service_main.Service(loop)
    assert service.provider.locator is None
