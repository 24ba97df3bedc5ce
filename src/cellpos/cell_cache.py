"""Cell location cache."""

import logging
from collections import OrderedDict
from typing import Optional, Dict, Union

from .cell_store import CellLocationStore
from .models import Coordinates, UniqueCellId

logger = logging.getLogger(__name__)


class _Unresolvable:
    """Marker stored for cells the dataset does not know."""

    def __repr__(self):
        return "UNRESOLVABLE"


UNRESOLVABLE = _Unresolvable()

CacheEntry = Union[Coordinates, _Unresolvable]


class CacheStrategy:
    """Storage policy for cache entries."""

    def get(self, cell: UniqueCellId) -> Optional[CacheEntry]:
        raise NotImplementedError

    def put(self, cell: UniqueCellId, entry: CacheEntry):
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class UnboundedCacheStrategy(CacheStrategy):
    """
    Keeps every entry for the lifetime of the process.

    Growth is bounded by the number of distinct cells the device has ever
    seen, not by time. Nothing is evicted, so a cell marked unresolvable is
    never probed again.
    """

    def __init__(self):
        self.entries: Dict[UniqueCellId, CacheEntry] = {}

    def get(self, cell):
        return self.entries.get(cell)

    def put(self, cell, entry):
        self.entries[cell] = entry

    def __len__(self):
        return len(self.entries)


class BoundedCacheStrategy(CacheStrategy):
    """
    Least-recently-used cache capped at max_entries.

    Note:
        An evicted cell is searched on disk again the next time it is seen.
    """

    def __init__(self, max_entries: int):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive: {max_entries}")
        self.max_entries = max_entries
        self.entries: "OrderedDict[UniqueCellId, CacheEntry]" = OrderedDict()

    def get(self, cell):
        entry = self.entries.get(cell)
        if entry is not None:
            self.entries.move_to_end(cell)
        return entry

    def put(self, cell, entry):
        self.entries[cell] = entry
        self.entries.move_to_end(cell)
        while len(self.entries) > self.max_entries:
            evicted, _ = self.entries.popitem(last=False)
            logger.debug(f"Evicted cell {evicted} from location cache")

    def __len__(self):
        return len(self.entries)


class CellLocationCache:
    """
    Positive and negative cache in front of CellLocationStore.

    Resolved cells map to their Coordinates; cells the dataset does not
    contain are remembered as unresolvable. With the default strategy each
    distinct cell triggers at most one disk search.

    Attributes:
        store: Backing dataset store
        strategy: Entry storage policy

    Note:
        There is no invalidation, the dataset is treated as static while the
        process runs.
    """

    def __init__(self, store: CellLocationStore, strategy: Optional[CacheStrategy] = None):
        self.store = store
        self.strategy = strategy if strategy is not None else UnboundedCacheStrategy()

    def resolve(self, cell: UniqueCellId) -> Optional[Coordinates]:
        """Return the coordinates of a cell, or None if it is unresolvable."""
        entry = self.strategy.get(cell)
        if entry is UNRESOLVABLE:
            return None
        if entry is not None:
            return entry

        coords = self.store.search(cell)
        if coords is None:
            self.strategy.put(cell, UNRESOLVABLE)
            logger.debug(f"Cell {cell} marked unresolvable")
            return None

        self.strategy.put(cell, coords)
        return coords

    def __len__(self):
        return len(self.strategy)
