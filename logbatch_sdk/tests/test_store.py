"""Tests for logbatch_sdk.store and the local key-value stores."""

import json
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from logbatch_sdk.config import StorageMode
from logbatch_sdk.errors import StorageUnavailable
from logbatch_sdk.kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from logbatch_sdk.record import LogRecord
from logbatch_sdk.store import DurableBufferStore, VolatileBufferStore


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def rec(message):
    return LogRecord.create(message, "INFO", T0)


class TestVolatileBufferStore:
    """Tests for VolatileBufferStore."""

    def test_mode(self, volatile_store):
        assert volatile_store.mode == StorageMode.VOLATILE

    def test_append_creates_buffer(self, volatile_store):
        assert not volatile_store.exists("s-1")
        stats = volatile_store.append("s-1", rec("a"))

        assert stats.count == 1
        assert volatile_store.exists("s-1")

    def test_keys_are_independent(self, volatile_store):
        volatile_store.append("s-1", rec("a"))
        volatile_store.append("s-1", rec("b"))
        volatile_store.append("s-2", rec("x"))

        assert volatile_store.peek_stats("s-1").count == 2
        assert volatile_store.peek_stats("s-2").count == 1

    def test_snapshot_and_clear(self, volatile_store):
        volatile_store.append("s-1", rec("a"))
        batch = volatile_store.snapshot_and_clear("s-1")

        assert [r.message for r in batch] == ["a"]
        assert volatile_store.peek_stats("s-1").is_empty

    def test_unknown_key(self, volatile_store):
        assert volatile_store.snapshot_and_clear("nope") == ()
        assert volatile_store.peek_stats("nope").is_empty

    def test_keys_lists_non_empty_buffers(self, volatile_store):
        volatile_store.append("s-1", rec("a"))
        volatile_store.append("s-2", rec("b"))
        volatile_store.snapshot_and_clear("s-2")

        assert volatile_store.keys() == ["s-1"]


class TestDurableBufferStore:
    """Tests for DurableBufferStore."""

    def test_mode(self, durable_store):
        assert durable_store.mode == StorageMode.DURABLE

    def test_append_persists_serialized_buffer(self, durable_store, kv):
        durable_store.append("s-1", rec("a"))
        durable_store.append("s-1", rec("b"))

        stored = json.loads(kv.get("s-1"))
        assert [r["message"] for r in stored["records"]] == ["a", "b"]

    def test_state_survives_a_new_store_instance(self, kv):
        DurableBufferStore(kv).append("s-1", rec("a"))
        stats = DurableBufferStore(kv).append("s-1", rec("b"))

        assert stats.count == 2

    def test_exists_lifecycle(self, durable_store):
        assert not durable_store.exists("s-1")
        durable_store.append("s-1", rec("a"))
        assert durable_store.exists("s-1")

        durable_store.snapshot_and_clear("s-1")
        durable_store.delete("s-1")
        assert not durable_store.exists("s-1")

    def test_snapshot_saves_empty_buffer(self, durable_store, kv):
        durable_store.append("s-1", rec("a"))
        batch = durable_store.snapshot_and_clear("s-1")

        assert [r.message for r in batch] == ["a"]
        assert json.loads(kv.get("s-1"))["records"] == []

    def test_delete_keeps_refilled_buffer(self, durable_store):
        durable_store.append("s-1", rec("a"))
        durable_store.snapshot_and_clear("s-1")
        durable_store.append("s-1", rec("b"))

        durable_store.delete("s-1")

        assert durable_store.exists("s-1")
        assert durable_store.peek_stats("s-1").count == 1

    def test_snapshot_of_missing_key(self, durable_store):
        assert durable_store.snapshot_and_clear("nope") == ()
        assert durable_store.peek_stats("nope").is_empty

    def test_kv_failure_raises_storage_unavailable(self):
        kv = Mock(spec=KeyValueStore)
        kv.get.side_effect = ConnectionError("table offline")
        store = DurableBufferStore(kv)

        with pytest.raises(StorageUnavailable) as exc_info:
            store.append("s-1", rec("a"))

        assert exc_info.value.operation == "load"
        assert exc_info.value.key == "s-1"
        kv.put.assert_not_called()

    def test_save_failure_raises_storage_unavailable(self):
        kv = Mock(spec=KeyValueStore)
        kv.get.return_value = None
        kv.put.side_effect = TimeoutError("slow")
        store = DurableBufferStore(kv)

        with pytest.raises(StorageUnavailable) as exc_info:
            store.append("s-1", rec("a"))
        assert exc_info.value.operation == "save"

    def test_corrupt_value_raises_storage_unavailable(self, kv):
        kv.put("s-1", "{not json")
        with pytest.raises(StorageUnavailable) as exc_info:
            DurableBufferStore(kv).append("s-1", rec("a"))
        assert exc_info.value.operation == "decode"


class TestMemoryKeyValueStore:
    """Tests for MemoryKeyValueStore."""

    def test_get_put_delete(self):
        kv = MemoryKeyValueStore()
        assert kv.get("k") is None
        kv.put("k", "v1")
        kv.put("k", "v2")
        assert kv.get("k") == "v2"
        assert kv.keys() == ["k"]
        kv.delete("k")
        kv.delete("k")
        assert kv.get("k") is None


class TestFileKeyValueStore:
    """Tests for FileKeyValueStore."""

    def test_creates_base_dir(self, temp_dir):
        FileKeyValueStore(temp_dir / "nested" / "buffers")
        assert (temp_dir / "nested" / "buffers").is_dir()

    def test_round_trip_on_disk(self, temp_dir):
        kv = FileKeyValueStore(temp_dir)
        kv.put("session-1", '{"records": []}')

        assert (temp_dir / "session-1.json").exists()
        assert FileKeyValueStore(temp_dir).get("session-1") == '{"records": []}'

    def test_unsafe_key_is_hashed(self, temp_dir):
        kv = FileKeyValueStore(temp_dir)
        kv.put("../../etc/passwd", "x")

        files = list(temp_dir.iterdir())
        assert len(files) == 1
        assert files[0].parent == temp_dir
        assert len(files[0].stem) == 64
        assert kv.get("../../etc/passwd") == "x"

    def test_delete_missing_is_not_an_error(self, temp_dir):
        kv = FileKeyValueStore(temp_dir)
        kv.delete("nothing")
        kv.put("k", "v")
        kv.delete("k")
        assert kv.get("k") is None

    def test_no_temp_files_left_behind(self, temp_dir):
        kv = FileKeyValueStore(temp_dir)
        kv.put("k", "v1")
        kv.put("k", "v2")
        assert [p.name for p in temp_dir.iterdir()] == ["k.json"]

    def test_backs_durable_store(self, temp_dir):
        store = DurableBufferStore(FileKeyValueStore(temp_dir))
        store.append("s-1", rec("a"))

        assert DurableBufferStore(FileKeyValueStore(temp_dir)).peek_stats("s-1").count == 1
