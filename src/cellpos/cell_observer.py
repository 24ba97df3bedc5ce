"""Visible cell intake from the modem."""

import json
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .config import CELLS_FILE, CELLS_POLL_INTERVAL
from .models import CellObservation, CellTechnology, UniqueCellId

logger = logging.getLogger(__name__)

# Modem value for "field not reported"
INVALID_VALUE = 0x7FFFFFFF

_TECHNOLOGIES = {
    "lte": CellTechnology.LTE,
    "gsm": CellTechnology.GSM,
    "wcdma": CellTechnology.UMTS,
}


@dataclass
class CellReport:
    """Raw neighbour cell record as reported by the modem."""
    type: str = ""
    mcc: int = 0
    mnc: int = 0
    lac: int = INVALID_VALUE
    cid: int = INVALID_VALUE
    tac: int = INVALID_VALUE
    ci: int = INVALID_VALUE
    pci: int = INVALID_VALUE
    psc: int = INVALID_VALUE
    signal_strength: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "CellReport":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _valid(value: int) -> bool:
    return value != INVALID_VALUE and value != 0


def collect_observations(reports: Iterable[CellReport], cell_data_allowed: bool = True) -> List[CellObservation]:
    """
    Turn raw modem reports into unique cell observations.

    GSM/UMTS cells are keyed by (lac, cid), LTE cells by (tac, ci). Reports
    without a usable cell id or country code are ignored. A cell reported
    twice is kept once, first report wins.

    Returns:
        Observations in report order; empty when cell data is not allowed
    """
    if not cell_data_allowed:
        return []

    observations: List[CellObservation] = []
    seen = set()
    for report in reports:
        technology = _TECHNOLOGIES.get(report.type.lower(), CellTechnology.UMTS)
        if _valid(report.cid) and report.mcc != 0:
            location_code, cell_id = report.lac, report.cid
        elif _valid(report.ci) and report.mcc != 0:
            location_code, cell_id = report.tac, report.ci
        else:
            logger.debug(
                f"Ignoring neighbour cell with no cell id: type={report.type} mcc={report.mcc} "
                f"mnc={report.mnc} lac={report.lac} tac={report.tac} pci={report.pci} psc={report.psc}"
            )
            continue

        cell = UniqueCellId(technology, cell_id, location_code, report.mcc, report.mnc)
        if cell in seen:
            continue
        seen.add(cell)
        logger.debug(f"Have neighbour cell {cell} with strength {report.signal_strength}")
        observations.append(CellObservation(cell, report.signal_strength))
    return observations


class CellObserver:
    """
    Holds the latest cell reports and notifies a listener when they change.

    The modem binding pushes into update(); the provider reads reports when
    it recomputes.
    """

    def __init__(self):
        self.reports: List[CellReport] = []
        self.listener: Optional[Callable[[], None]] = None

    def set_listener(self, listener: Optional[Callable[[], None]]):
        self.listener = listener

    def update(self, reports: List[CellReport]):
        if reports == self.reports:
            return
        self.reports = list(reports)
        logger.debug(f"Have {len(self.reports)} neighbouring cells")
        if self.listener:
            self.listener()


class CellFileSource:
    """
    Polls a JSON file of cell reports and feeds a CellObserver.

    The file holds a list of objects with CellReport field names.
    """

    def __init__(self, loop, observer: CellObserver, path: Path = CELLS_FILE,
                 interval: float = CELLS_POLL_INTERVAL):
        self.loop = loop
        self.observer = observer
        self.path = Path(path)
        self.interval = interval
        self._mtime: Optional[float] = None
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
            self.observer.update(self.read())

        self._handle = self.loop.call_later(self.interval, self.poll)

    def read(self) -> List[CellReport]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read cell reports from {self.path}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Cell reports file {self.path} does not hold a list")
            return []
        return [CellReport.from_dict(item) for item in data if isinstance(item, dict)]
