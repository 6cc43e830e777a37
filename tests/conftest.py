"""Pytest configuration and fixtures."""

import pytest
import tempfile
from pathlib import Path

from json_kv import JSONStore, StoreConfig
from json_kv.storage import LmdbStorageAdapter, MemoryStorageAdapter

TEST_MAP_SIZE = 64 * 1024 * 1024


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture(params=["memory", "lmdb"])
def adapter(request, temp_dir):
    """A fresh storage adapter of each kind."""
    if request.param == "memory":
        storage = MemoryStorageAdapter(max_batch_bytes=1024)
    else:
        storage = LmdbStorageAdapter(temp_dir / "adapter.db", map_size=TEST_MAP_SIZE,
                                     max_batch_bytes=1024)
    yield storage
    storage.close()


@pytest.fixture
def store_factory(temp_dir):
    """Build stores of either kind; everything built is closed afterwards."""
    stores = []

    def build(kind="memory", **config_values):
        config = StoreConfig(map_size=TEST_MAP_SIZE, **config_values)
        if kind == "memory":
            store = JSONStore.in_memory(config)
        else:
            store = JSONStore.open_lmdb(temp_dir / f"store{len(stores)}.db", config)
        stores.append(store)
        return store

    yield build
    for store in stores:
        store.close()


@pytest.fixture(params=["memory", "lmdb"])
def store(request, store_factory):
    """A JSONStore backed by each adapter kind."""
    return store_factory(request.param)


@pytest.fixture
def sample_nested_json():
    """Nested document with unique keys and arrays shorter than ten items."""
    return {
        "users": {
            "alice": {
                "email": "alice@example.com",
                "age": 30,
                "tags": ["admin", "dev"],
                "active": True
            },
            "bob": {
                "email": "bob@example.com",
                "age": 25,
                "tags": ["ops"],
                "manager": None
            }
        },
        "settings": {
            "theme": "dark",
            "ratio": 0.75,
            "limits": [10, 20, 30]
        },
        "matrix": [[1, 2], [3, [4, 5]]],
        "title": "Sample \"quoted\" document é"
    }


@pytest.fixture
def large_json_data():
    """Document large enough to span many small batches."""
    return {
        f"section_{i}": {
            f"item_{j}": f"value_{j}_" + "x" * 20
            for j in range(10)
        }
        for i in range(10)
    }
