"""Main provider application."""

import fcntl
import signal
import asyncio
import logging
from pathlib import Path
from typing import Optional, TextIO

from .config import (
    LOG_LEVEL,
    DATASET_DIR,
    DATASET_FILE_NAME,
    SETTINGS_FILE,
    CELLS_FILE,
    WLAN_FILE,
    LOCK_FILE,
    ONLINE_LOCATOR_URL,
    PROJECT_NAME,
)
from .cell_observer import CellFileSource
from .cell_store import CellLocationStore
from .errors import IntegrationError
from .online_locator import OnlineLocator
from .provider import PositionProvider
from .settings import SettingsWatcher
from .wlan_source import WlanFileSource

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Set urllib3 (used by requests) to WARNING to reduce noise unless debugging
urllib3_log_level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
if urllib3_log_level > logging.DEBUG:
    urllib3_log_level = logging.WARNING
logging.getLogger("urllib3").setLevel(urllib3_log_level)

logger = logging.getLogger(__name__)


class Service:
    """
    Composition root owning the single PositionProvider.

    Components:
        - PositionProvider: the position engine
        - SettingsWatcher: location settings file watch
        - CellFileSource: visible cells written by the modem binding
        - WlanFileSource: visible access points written by the WLAN scanner
        - OnlineLocator: only when an online URL is configured

    main() builds exactly one Service per process, after taking the
    instance lock. The event loop runs until a shutdown signal arrives or
    the provider has been idle (no client references) for the idle period.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.wlan_source = WlanFileSource(loop, WLAN_FILE)
        locator = OnlineLocator(loop, wlan_source=self.wlan_source.latest) if ONLINE_LOCATOR_URL else None
        self.provider = PositionProvider(
            loop,
            store=CellLocationStore(DATASET_DIR, DATASET_FILE_NAME),
            locator=locator,
        )
        self.provider.scheduler.idle_callback = self.stop
        self.settings_watcher = SettingsWatcher(loop, self.provider.apply_settings, SETTINGS_FILE)
        self.cell_source = CellFileSource(loop, _ProviderCellSink(self.provider), CELLS_FILE)

    def _signal_handler(self, signum):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()

    def start(self):
        """Start the provider and run the event loop."""
        logger.info(f"Starting {PROJECT_NAME}")
        logger.info(f"Dataset: {DATASET_DIR}")
        logger.info(f"Settings: {SETTINGS_FILE}")

        for signum in (signal.SIGINT, signal.SIGTERM):
            self.loop.add_signal_handler(signum, self._signal_handler, signum)

        self.settings_watcher.start()
        self.cell_source.start()
        if self.provider.locator is not None:
            self.wlan_source.start()
        if not self.provider.scheduler.positioning_enabled:
            logger.info("Positioning is not currently enabled, idling")

        try:
            self.loop.run_forever()
        finally:
            self.settings_watcher.stop()
            self.cell_source.stop()
            self.wlan_source.stop()
            logger.info("Provider stopped")

    def stop(self):
        self.loop.stop()


class _ProviderCellSink:
    """Adapter so CellFileSource can push into the provider."""

    def __init__(self, provider: PositionProvider):
        self.provider = provider

    def update(self, reports):
        self.provider.cells_changed(reports)


def acquire_instance_lock(path: Optional[Path] = None) -> TextIO:
    """
    Take the process-wide provider lock.

    The returned file must stay open for as long as the provider runs.

    Raises:
        IntegrationError: Another provider holds the lock or the lock file
            cannot be created
    """
    path = Path(path or LOCK_FILE)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(path, "a")
    except OSError as e:
        raise IntegrationError(f"Cannot create instance lock {path}: {e}")

    try:
        fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        lock_file.close()
        raise IntegrationError(f"Only a single provider instance is supported, {path} is held")
    return lock_file


def main():
    """Main entry point."""
    try:
        lock_file = acquire_instance_lock()
    except IntegrationError as e:
        logger.critical(str(e))
        return 1

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        service = Service(loop)
        service.start()
    finally:
        loop.close()
        lock_file.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
