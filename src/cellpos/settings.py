"""Location settings snapshot, policy and file watch."""

import logging
import configparser
from pathlib import Path
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .config import SETTINGS_FILE, SETTINGS_POLL_INTERVAL

logger = logging.getLogger(__name__)

SECTION = "location"
ENABLED_KEY = "enabled"
MLS_ENABLED_KEY = "mls\\enabled"
MLS_ONLINE_ENABLED_KEY = "mls\\online_enabled"
OLD_MLS_ENABLED_KEY = "cell_id_positioning_enabled"  # deprecated
ONLINE_ALLOWED_KEY = "allowed_data_sources\\online"
CELL_DATA_ALLOWED_KEY = "allowed_data_sources\\cell_data"
WLAN_DATA_ALLOWED_KEY = "allowed_data_sources\\wlan_data"


@dataclass(frozen=True)
class EngineSettings:
    """Read-only snapshot of the location settings."""
    positioning_enabled: bool = False
    cell_positioning_enabled: bool = False
    online_positioning_enabled: bool = False
    online_data_allowed: bool = True
    cell_data_allowed: bool = True
    wlan_data_allowed: bool = True

    @property
    def enabled(self) -> bool:
        """Cell-id positioning may run at all."""
        return self.positioning_enabled and self.cell_positioning_enabled

    @property
    def online_enabled(self) -> bool:
        return self.online_positioning_enabled and self.online_data_allowed


@dataclass(frozen=True)
class SettingsDecision:
    """What the provider must do after a settings change."""
    enabled: bool
    changed: bool

    @property
    def start(self) -> bool:
        return self.changed and self.enabled

    @property
    def stop(self) -> bool:
        return self.changed and not self.enabled


def evaluate_settings(previously_enabled: bool, settings: EngineSettings) -> SettingsDecision:
    """Decide whether a new settings snapshot enables or disables positioning."""
    enabled = settings.enabled
    return SettingsDecision(enabled=enabled, changed=enabled != previously_enabled)


def _get_bool(parser: configparser.ConfigParser, key: str, default: bool) -> bool:
    # Hand-edited files sometimes spell subkeys with "/" instead of "\"
    if not parser.has_option(SECTION, key):
        key = key.replace("\\", "/")
    try:
        return parser.getboolean(SECTION, key, fallback=default)
    except ValueError:
        logger.warning(f"Invalid boolean for {SECTION}/{key}, using {default}")
        return default


def parse_settings(text: str) -> EngineSettings:
    """Build a snapshot from INI text."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    parser.read_string(text)

    positioning_enabled = _get_bool(parser, ENABLED_KEY, False)
    cell_positioning_enabled = positioning_enabled and (
        _get_bool(parser, MLS_ENABLED_KEY, False)
        or _get_bool(parser, OLD_MLS_ENABLED_KEY, False)
    )
    online_positioning_enabled = cell_positioning_enabled and _get_bool(parser, MLS_ONLINE_ENABLED_KEY, False)

    return EngineSettings(
        positioning_enabled=positioning_enabled,
        cell_positioning_enabled=cell_positioning_enabled,
        online_positioning_enabled=online_positioning_enabled,
        online_data_allowed=_get_bool(parser, ONLINE_ALLOWED_KEY, True),
        cell_data_allowed=_get_bool(parser, CELL_DATA_ALLOWED_KEY, True),
        wlan_data_allowed=_get_bool(parser, WLAN_DATA_ALLOWED_KEY, True),
    )


def read_settings(path: Path = SETTINGS_FILE) -> EngineSettings:
    """
    Read the settings file.

    A missing or unreadable file yields the defaults (positioning disabled,
    every data source allowed).
    """
    try:
        text = Path(path).read_text()
    except FileNotFoundError:
        logger.debug(f"Settings file {path} not found, using defaults")
        return EngineSettings()
    except OSError as e:
        logger.warning(f"Could not read settings file {path}: {e}")
        return EngineSettings()

    try:
        settings = parse_settings(text)
    except configparser.Error as e:
        logger.warning(f"Could not parse settings file {path}: {e}")
        return EngineSettings()

    logger.debug(f"Positioning is {'enabled' if settings.positioning_enabled else 'disabled'}")
    logger.debug(f"Device-local cell triangulation positioning is {'enabled' if settings.cell_positioning_enabled else 'disabled'}")
    logger.debug(f"Online service positioning is {'enabled' if settings.online_positioning_enabled else 'disabled'}")
    return settings


class SettingsWatcher:
    """
    Re-reads the settings whenever the file or its directory changes.

    Modification times are polled on the event loop; the full snapshot is
    handed to the callback on every detected change.
    """

    def __init__(self, loop, callback: Callable[[EngineSettings], None],
                 path: Path = SETTINGS_FILE, interval: float = SETTINGS_POLL_INTERVAL):
        self.loop = loop
        self.callback = callback
        self.path = Path(path)
        self.interval = interval
        self._stamp: Optional[Tuple] = None
        self._handle = None

    def _current_stamp(self) -> Tuple:
        stamps = []
        for p in (self.path.parent, self.path):
            try:
                stamps.append(p.stat().st_mtime_ns)
            except OSError:
                stamps.append(None)
        return tuple(stamps)

    def start(self):
        self._stamp = self._current_stamp()
        self.callback(read_settings(self.path))
        self._handle = self.loop.call_later(self.interval, self.poll)

    def stop(self):
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def poll(self):
        stamp = self._current_stamp()
        if stamp != self._stamp:
            self._stamp = stamp
            logger.debug(f"Settings at {self.path} changed, re-reading")
            self.callback(read_settings(self.path))
        self._handle = self.loop.call_later(self.interval, self.poll)
