"""Build the sharded cell location dataset from a CSV export."""

import csv
import logging
import argparse
from pathlib import Path
from collections import defaultdict
from typing import Dict, Iterable, Optional, Set

from .cell_store import shard_key, write_shard
from .config import DATASET_FILE_NAME, LOG_LEVEL
from .models import CellTechnology, Coordinates, UniqueCellId

logger = logging.getLogger(__name__)

_RADIOS = {
    "GSM": CellTechnology.GSM,
    "UMTS": CellTechnology.UMTS,
    "LTE": CellTechnology.LTE,
}


def read_cells(rows: Iterable[dict], mcc_filter: Optional[Set[int]] = None) -> Dict[UniqueCellId, Coordinates]:
    """
    Convert CSV rows (radio,mcc,net,area,cell,unit,lon,lat,...) to a
    cell location mapping.

    Unknown radio types and malformed rows are skipped.
    """
    cells: Dict[UniqueCellId, Coordinates] = {}
    skipped = 0
    for row in rows:
        technology = _RADIOS.get((row.get("radio") or "").upper())
        if technology is None:
            skipped += 1
            continue
        try:
            cell = UniqueCellId(
                technology,
                int(row["cell"]),
                int(row["area"]),
                int(row["mcc"]),
                int(row["net"]),
            )
            coords = Coordinates(float(row["lat"]), float(row["lon"]))
        except (KeyError, TypeError, ValueError):
            skipped += 1
            continue

        if mcc_filter and cell.mcc not in mcc_filter:
            continue
        cells[cell] = coords

    if skipped:
        logger.info(f"Skipped {skipped} unusable rows")
    return cells


def build_dataset(cells: Dict[UniqueCellId, Coordinates], out_dir: Path,
                  file_name: str = DATASET_FILE_NAME) -> Dict[str, int]:
    """
    Write one shard per first digit of the location code.

    Returns:
        Dictionary mapping shard digit to number of cells written
    """
    shards: Dict[str, Dict[UniqueCellId, Coordinates]] = defaultdict(dict)
    for cell, coords in cells.items():
        shards[shard_key(cell.location_code)][cell] = coords

    counts = {}
    for digit, locations in sorted(shards.items()):
        path = Path(out_dir) / digit / file_name
        write_shard(path, locations)
        counts[digit] = len(locations)
        logger.info(f"Wrote {len(locations)} cells to {path}")
    return counts


def main(argv=None):
    """Command line entry point."""
    parser = argparse.ArgumentParser(description="Build the sharded cell location dataset")
    parser.add_argument("csv", type=Path, help="Cell export CSV (radio,mcc,net,area,cell,unit,lon,lat,...)")
    parser.add_argument("out", type=Path, help="Output dataset directory")
    parser.add_argument("--mcc", type=int, action="append", help="Only keep cells of this country code (repeatable)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    with open(args.csv, newline="") as f:
        cells = read_cells(csv.DictReader(f), set(args.mcc) if args.mcc else None)

    counts = build_dataset(cells, args.out)
    logger.info(f"Dataset built: {sum(counts.values())} cells in {len(counts)} shards")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
