"""Value types shared by the position engine."""

import math
import time
from enum import IntEnum, IntFlag
from dataclasses import dataclass, field


class CellTechnology(IntEnum):
    """Radio technology of a cell; values are the dataset technology tags."""
    LTE = 0
    GSM = 1
    UMTS = 2


class Status(IntEnum):
    """Provider availability as seen by clients."""
    UNAVAILABLE = 0
    ACQUIRING = 1
    AVAILABLE = 2


class PositionFields(IntFlag):
    """Which fields of a published position are known."""
    NONE = 0
    LATITUDE = 1
    LONGITUDE = 2
    ALTITUDE = 4


@dataclass(frozen=True, order=True)
class UniqueCellId:
    """
    Composite identifier of one physical cell.

    Two observations with the same five fields denote the same cell.
    Field order defines the sort order.
    """
    technology: CellTechnology
    cell_id: int
    location_code: int
    mcc: int
    mnc: int

    def __str__(self) -> str:
        return (
            f"{self.technology.name}:{self.mcc}:{self.mnc}:"
            f"{self.location_code}:{self.cell_id}"
        )


@dataclass(frozen=True)
class Coordinates:
    """Latitude/longitude pair in decimal degrees."""
    lat: float
    lon: float


@dataclass(frozen=True)
class CellObservation:
    """A visible cell with its relative signal strength."""
    cell: UniqueCellId
    signal_strength: int = 0


@dataclass(frozen=True)
class Accuracy:
    horizontal: float = math.nan
    vertical: float = math.nan


@dataclass(frozen=True)
class LocationFix:
    """
    Timestamped position estimate.

    Attributes:
        timestamp: Milliseconds since epoch, 0 means "no fix"
        latitude: Decimal degrees or NaN
        longitude: Decimal degrees or NaN
        altitude: Metres or NaN (cell positioning never produces one)
        accuracy: Horizontal/vertical accuracy in metres
    """
    timestamp: int = 0
    latitude: float = math.nan
    longitude: float = math.nan
    altitude: float = math.nan
    accuracy: Accuracy = field(default_factory=Accuracy)

    @classmethod
    def empty(cls) -> "LocationFix":
        """Return the "no fix" value."""
        return cls()

    @property
    def is_valid(self) -> bool:
        return self.timestamp != 0

    def age(self, now: int) -> int:
        """Age in milliseconds relative to now."""
        return now - self.timestamp

    def position_fields(self) -> PositionFields:
        fields = PositionFields.NONE
        if not math.isnan(self.latitude):
            fields |= PositionFields.LATITUDE
        if not math.isnan(self.longitude):
            fields |= PositionFields.LONGITUDE
        if not math.isnan(self.altitude):
            fields |= PositionFields.ALTITUDE
        return fields


def now_ms() -> int:
    """Current device time in milliseconds since epoch."""
    return int(time.time() * 1000)
