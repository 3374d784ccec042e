"""Pytest fixtures for logbatch_sdk tests."""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from logbatch_sdk.clock import log_clock
from logbatch_sdk.config import LoggerConfiguration, StorageMode
from logbatch_sdk.context import clear_session_id
from logbatch_sdk.coordinator import FlushCoordinator
from logbatch_sdk.ingest import IngestionEntrypoint
from logbatch_sdk.kv import MemoryKeyValueStore
from logbatch_sdk.pipeline import set_default_entrypoint
from logbatch_sdk.sink import MemorySink
from logbatch_sdk.store import DurableBufferStore, VolatileBufferStore


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def frozen_clock():
    """Freeze the package clock at T0 for the duration of a test."""
    log_clock.freeze(T0)
    yield log_clock
    log_clock.unfreeze()


@pytest.fixture
def memory_sink():
    return MemorySink()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def volatile_store():
    return VolatileBufferStore()


@pytest.fixture
def durable_store(kv):
    return DurableBufferStore(kv)


@pytest.fixture
def coordinator(memory_sink):
    return FlushCoordinator(memory_sink)


@pytest.fixture
def make_entrypoint(coordinator, volatile_store, durable_store):
    """Build an entrypoint over both stores with the given default configuration."""

    def _make(**config_kwargs) -> IngestionEntrypoint:
        return IngestionEntrypoint(
            coordinator,
            [volatile_store, durable_store],
            default_configuration=LoggerConfiguration(**config_kwargs),
        )

    return _make


@pytest.fixture
def durable_config():
    return LoggerConfiguration(flush_count=3, storage_mode=StorageMode.DURABLE)


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables and process defaults after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    set_default_entrypoint(None)
    clear_session_id()
