"""
Pipeline wiring - builds the object graph from a PipelineConfig.

    sink  <- sink.type  (elasticsearch | memory)
    store <- storage_mode, store.type (dynamodb | file | memory)

A process-wide default entrypoint is kept for adapters (Lambda handler,
Flask blueprint) that are invoked without one.
"""

import logging
import threading
from typing import List, Optional

from .config import PipelineConfig, StorageMode, load_config
from .coordinator import FlushCoordinator
from .ingest import IngestionEntrypoint
from .kv import DynamoDBKeyValueStore, FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .sink import BulkSink, ElasticsearchSink, MemorySink
from .store import BufferStore, DurableBufferStore, VolatileBufferStore

logger = logging.getLogger(__name__)


def build_sink(config: PipelineConfig) -> BulkSink:
    sink_type = config.sink_type
    if sink_type == "elasticsearch":
        return ElasticsearchSink.from_config(config.sink_config)
    if sink_type == "memory":
        return MemorySink()
    raise ValueError(f"Unknown sink type: {sink_type}")


def build_kv_store(config: PipelineConfig) -> KeyValueStore:
    store_config = config.store_config
    store_type = store_config.get("type", "dynamodb")
    if store_type == "dynamodb":
        return DynamoDBKeyValueStore(
            table=store_config.get("table", "LogQueueTable"),
            region=store_config.get("region"),
        )
    if store_type == "file":
        return FileKeyValueStore(store_config.get("directory", ".logbatch/buffers"))
    if store_type == "memory":
        return MemoryKeyValueStore()
    raise ValueError(f"Unknown store type: {store_type}")


def build_entrypoint(
    config: Optional[PipelineConfig] = None,
    sink: Optional[BulkSink] = None,
) -> IngestionEntrypoint:
    """
    Build an IngestionEntrypoint from configuration.

    A volatile store is always available. A durable store is added when the
    configured storage mode is durable or a store section is present, so
    sessions can opt into either mode.

    Args:
        config: Pipeline configuration. Loaded with load_config() if None.
        sink: Sink override (tests, custom backends)
    """
    config = config or load_config()
    stores: List[BufferStore] = [VolatileBufferStore()]
    if config.storage_mode == StorageMode.DURABLE or config.store_config:
        stores.append(DurableBufferStore(build_kv_store(config)))

    coordinator = FlushCoordinator(sink or build_sink(config))
    default_configuration = config.default_logger_configuration()
    logger.info(
        f"Pipeline ready: storage={default_configuration.storage_mode.value}, "
        f"flush_count={default_configuration.flush_count}, "
        f"flush_after={default_configuration.flush_after}"
    )
    return IngestionEntrypoint(coordinator, stores, default_configuration)


# Global default entrypoint
_default_entrypoint: Optional[IngestionEntrypoint] = None
_entrypoint_lock = threading.Lock()


def get_default_entrypoint() -> IngestionEntrypoint:
    """
    Get the default IngestionEntrypoint, building it from configuration on
    first use.
    """
    global _default_entrypoint

    with _entrypoint_lock:
        if _default_entrypoint is None:
            _default_entrypoint = build_entrypoint()
        return _default_entrypoint


def set_default_entrypoint(entrypoint: Optional[IngestionEntrypoint]) -> None:
    """Set (or clear, with None) the default IngestionEntrypoint."""
    global _default_entrypoint

    with _entrypoint_lock:
        _default_entrypoint = entrypoint


def init_pipeline(
    config_path: Optional[str] = None,
    sink: Optional[BulkSink] = None,
) -> IngestionEntrypoint:
    """
    Load configuration, build the pipeline and make it the default.

    Args:
        config_path: Optional explicit path to logbatch.yaml
        sink: Sink override

    Returns:
        The configured IngestionEntrypoint
    """
    entrypoint = build_entrypoint(load_config(config_path), sink=sink)
    set_default_entrypoint(entrypoint)
    return entrypoint
