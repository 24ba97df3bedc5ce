"""On-disk cell location dataset."""

import os
import struct
import logging
from pathlib import Path
from typing import Optional, Dict, Mapping

from .config import DATASET_DIR, DATASET_FILE_NAME, DATASET_MAGIC, DATASET_VERSION
from .errors import DatasetFormatError
from .models import CellTechnology, Coordinates, UniqueCellId

logger = logging.getLogger(__name__)

# Big-endian, as written by the dataset tooling
_HEADER = struct.Struct(">Ii")
_COUNT = struct.Struct(">I")
_ENTRY = struct.Struct(">HIIHHdd")


def parse_shard(data: bytes) -> Dict[UniqueCellId, Coordinates]:
    """
    Parse the contents of one shard file.

    Layout: u32 magic, i32 version, u32 entry count, then per entry the key
    (u16 technology, u32 cell id, u32 location code, u16 mcc, u16 mnc) and
    the value (f64 latitude, f64 longitude).

    Raises:
        DatasetFormatError: Wrong magic, wrong version or truncated payload
    """
    if len(data) < _HEADER.size:
        raise DatasetFormatError(f"file too short for header: {len(data)} bytes")

    magic, version = _HEADER.unpack_from(data, 0)
    if magic != DATASET_MAGIC:
        raise DatasetFormatError(f"format unknown: {magic:#x} expected: {DATASET_MAGIC:#x}")
    if version != DATASET_VERSION:
        raise DatasetFormatError(f"version unknown: {version}")

    offset = _HEADER.size
    if len(data) < offset + _COUNT.size:
        raise DatasetFormatError("file too short for entry count")
    (count,) = _COUNT.unpack_from(data, offset)
    offset += _COUNT.size

    expected = offset + count * _ENTRY.size
    if len(data) < expected:
        raise DatasetFormatError(
            f"truncated payload: {count} entries need {expected} bytes, have {len(data)}"
        )

    locations: Dict[UniqueCellId, Coordinates] = {}
    for tech, cell_id, location_code, mcc, mnc, lat, lon in _ENTRY.iter_unpack(data[offset:expected]):
        try:
            technology = CellTechnology(tech)
        except ValueError:
            raise DatasetFormatError(f"unknown technology tag: {tech}")
        locations[UniqueCellId(technology, cell_id, location_code, mcc, mnc)] = Coordinates(lat, lon)
    return locations


def write_shard(path: Path, locations: Mapping[UniqueCellId, Coordinates]):
    """Serialize a cell location mapping to a shard file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(_HEADER.pack(DATASET_MAGIC, DATASET_VERSION))
        f.write(_COUNT.pack(len(locations)))
        for cell in sorted(locations):
            coords = locations[cell]
            f.write(_ENTRY.pack(
                int(cell.technology),
                cell.cell_id,
                cell.location_code,
                cell.mcc,
                cell.mnc,
                coords.lat,
                coords.lon,
            ))


def shard_key(location_code: int) -> str:
    """Shard directory name for a location code: its first decimal digit."""
    return str(location_code)[0]


class CellLocationStore:
    """
    Point lookups against the sharded cell location dataset.

    Each lookup walks the dataset root and opens only the shard files whose
    parent directory matches the first digit of the location code. Several
    install locations may contribute shards for the same digit; the first
    file that contains the cell wins.

    Attributes:
        root: Dataset root directory
        file_name: Shard file name
        lookup_count: Number of searches performed (each one hits the disk)

    Note:
        No caching happens here, see CellLocationCache.
    """

    def __init__(self, root: Path = DATASET_DIR, file_name: str = DATASET_FILE_NAME):
        self.root = Path(root)
        self.file_name = file_name
        self.lookup_count = 0

    def _candidate_files(self, digit: str):
        suffix = f"/{digit}/{self.file_name}".lower()
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for name in filenames:
                path = os.path.join(dirpath, name)
                if path.replace(os.sep, "/").lower().endswith(suffix):
                    yield Path(path)

    def search(self, cell: UniqueCellId) -> Optional[Coordinates]:
        """
        Search the dataset for a cell.

        Returns:
            Coordinates of the cell, or None if no shard knows it
        """
        self.lookup_count += 1
        digit = shard_key(cell.location_code)

        for path in self._candidate_files(digit):
            try:
                locations = parse_shard(path.read_bytes())
            except DatasetFormatError as e:
                logger.debug(f"Dataset file {path} skipped: {e}")
                continue
            except OSError as e:
                logger.warning(f"Dataset file {path} unreadable: {e}")
                continue

            if not locations:
                logger.debug(f"Dataset file {path} contained no cell locations!")
                continue

            coords = locations.get(cell)
            if coords is not None:
                logger.debug(f"Dataset file {path} contains the location of cell {cell}: {coords.lat}, {coords.lon}")
                return coords
            logger.debug(f"Dataset file {path} contains {len(locations)} cell locations, but not for: {cell}")

        logger.debug(f"No dataset file contains the location of cell {cell}")
        return None
