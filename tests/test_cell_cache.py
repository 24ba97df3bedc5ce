"""Tests for the cell location cache."""

from unittest.mock import Mock

import pytest

from cellpos.cell_cache import CellLocationCache, BoundedCacheStrategy, UnboundedCacheStrategy
from cellpos.cell_store import CellLocationStore, write_shard
from cellpos.models import Coordinates

from conftest import make_cell


@pytest.fixture
def store():
    """Store mock that knows a single cell."""
    known = make_cell(cell_id=1)
    store = Mock(spec=CellLocationStore)
    store.search.side_effect = lambda cell: Coordinates(1.0, 2.0) if cell == known else None
    return store


def test_resolve_hits_store_once(store):
    cache = CellLocationCache(store)
    cell = make_cell(cell_id=1)

    assert cache.resolve(cell) == Coordinates(1.0, 2.0)
    assert cache.resolve(cell) == Coordinates(1.0, 2.0)
    assert cache.resolve(cell) == Coordinates(1.0, 2.0)
    assert store.search.call_count == 1


def test_negative_entry_is_permanent(store):
    cache = CellLocationCache(store)
    unknown = make_cell(cell_id=2)

    assert cache.resolve(unknown) is None
    assert cache.resolve(unknown) is None
    assert store.search.call_count == 1
    assert len(cache) == 1


def test_default_strategy_is_unbounded(store):
    cache = CellLocationCache(store)
    assert isinstance(cache.strategy, UnboundedCacheStrategy)
    for i in range(100):
        cache.resolve(make_cell(cell_id=100 + i))
    assert len(cache) == 100


def test_bounded_strategy_evicts_least_recently_used(store):
    cache = CellLocationCache(store, BoundedCacheStrategy(max_entries=2))
    a, b, c = make_cell(cell_id=1), make_cell(cell_id=2), make_cell(cell_id=3)

    cache.resolve(a)
    cache.resolve(b)
    cache.resolve(a)  # a is now most recent
    cache.resolve(c)  # evicts b
    assert len(cache) == 2
    assert store.search.call_count == 3

    cache.resolve(a)
    assert store.search.call_count == 3
    cache.resolve(b)
    assert store.search.call_count == 4


def test_bounded_strategy_rejects_zero():
    with pytest.raises(ValueError):
        BoundedCacheStrategy(0)


def test_bad_shard_cell_cached_negatively(tmp_path):
    """A cell only present in a version 2 file resolves as unresolvable, once."""
    root = tmp_path / "data"
    cell = make_cell(location_code=1234)
    path = root / "1" / "mlsdb.data"
    write_shard(path, {cell: Coordinates(1.0, 2.0)})
    data = bytearray(path.read_bytes())
    data[4:8] = (2).to_bytes(4, "big")
    path.write_bytes(bytes(data))

    store = CellLocationStore(root)
    cache = CellLocationCache(store)
    assert cache.resolve(cell) is None
    assert cache.resolve(cell) is None
    assert store.lookup_count == 1
