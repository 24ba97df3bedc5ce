"""Tests for location settings."""

from unittest.mock import Mock

from cellpos.settings import (
    EngineSettings,
    SettingsWatcher,
    evaluate_settings,
    parse_settings,
    read_settings,
)

FULL = """\
[location]
enabled=true
mls\\enabled=true
mls\\online_enabled=true
allowed_data_sources\\online=true
allowed_data_sources\\cell_data=true
allowed_data_sources\\wlan_data=false
"""


def test_defaults_for_missing_file(tmp_path):
    settings = read_settings(tmp_path / "location.conf")
    assert settings == EngineSettings()
    assert settings.positioning_enabled is False
    assert settings.online_data_allowed is True
    assert settings.cell_data_allowed is True
    assert settings.wlan_data_allowed is True


def test_parse_full():
    settings = parse_settings(FULL)
    assert settings.positioning_enabled
    assert settings.cell_positioning_enabled
    assert settings.online_positioning_enabled
    assert settings.online_data_allowed
    assert settings.cell_data_allowed
    assert not settings.wlan_data_allowed
    assert settings.enabled
    assert settings.online_enabled


def test_cell_positioning_needs_positioning():
    settings = parse_settings("[location]\nenabled=false\nmls\\enabled=true\nmls\\online_enabled=true\n")
    assert not settings.cell_positioning_enabled
    assert not settings.online_positioning_enabled
    assert not settings.enabled


def test_deprecated_key_is_ored_in():
    settings = parse_settings("[location]\nenabled=true\ncell_id_positioning_enabled=true\n")
    assert settings.cell_positioning_enabled


def test_online_needs_cell_positioning():
    settings = parse_settings("[location]\nenabled=true\nmls\\online_enabled=true\n")
    assert not settings.online_positioning_enabled


def test_slash_spelled_subkeys():
    settings = parse_settings("[location]\nenabled=true\nmls/enabled=true\nallowed_data_sources/online=false\n")
    assert settings.cell_positioning_enabled
    assert not settings.online_data_allowed
    assert not settings.online_enabled


def test_invalid_boolean_uses_default():
    settings = parse_settings("[location]\nenabled=maybe\n")
    assert not settings.positioning_enabled


def test_garbled_file_gives_defaults(tmp_path):
    path = tmp_path / "location.conf"
    path.write_text("enabled=true without a section\n")
    assert read_settings(path) == EngineSettings()


def test_evaluate_settings():
    on = parse_settings(FULL)
    off = EngineSettings()

    decision = evaluate_settings(False, on)
    assert decision.start and not decision.stop

    decision = evaluate_settings(True, off)
    assert decision.stop and not decision.start

    decision = evaluate_settings(True, on)
    assert not decision.changed
    assert not decision.start and not decision.stop


def test_watcher_rereads_on_change(loop, tmp_path):
    path = tmp_path / "location.conf"
    path.write_text("[location]\nenabled=false\n")
    callback = Mock()
    watcher = SettingsWatcher(loop, callback, path, interval=2)

    watcher.start()
    assert callback.call_count == 1
    assert not callback.call_args.args[0].positioning_enabled

    loop.advance(2)
    assert callback.call_count == 1

    path.write_text(FULL)
    watcher._stamp = None  # file systems with coarse mtimes may not notice
    loop.advance(2)
    assert callback.call_count == 2
    assert callback.call_args.args[0].enabled

    watcher.stop()
    assert loop.pending() == []
