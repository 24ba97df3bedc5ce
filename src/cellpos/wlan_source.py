"""Visible WLAN access points from the WLAN scanner."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import WLAN_FILE, WLAN_POLL_INTERVAL

logger = logging.getLogger(__name__)


class WlanFileSource:
    """
    Polls a JSON file of WLAN access points written by the scanner.

    The file holds a list of {"macAddress": ..., "signalStrength": ...}
    objects. Every new scan is handed out once by latest(); between scans
    latest() returns None and the online locator carries the previous
    query's access points forward.
    """

    def __init__(self, loop, path: Path = WLAN_FILE, interval: float = WLAN_POLL_INTERVAL):
        self.loop = loop
        self.path = Path(path)
        self.interval = interval
        self._mtime: Optional[float] = None
        self._scan: Optional[List[Dict[str, Any]]] = None
        self._handle = None

    def start(self):
        self.poll()

    def stop(self):
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def poll(self):
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            mtime = None

        if mtime != self._mtime:
            self._mtime = mtime
            self._scan = self.read()
            logger.debug(f"Have {len(self._scan)} visible WLAN access points")

        self._handle = self.loop.call_later(self.interval, self.poll)

    def latest(self) -> Optional[List[Dict[str, Any]]]:
        """Scan received since the previous call, or None."""
        scan, self._scan = self._scan, None
        return scan

    def read(self) -> List[Dict[str, Any]]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read WLAN scan from {self.path}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"WLAN scan file {self.path} does not hold a list")
            return []
        return [item for item in data if isinstance(item, dict) and item.get("macAddress")]
