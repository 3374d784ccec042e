"""
logbatch_sdk - session-keyed log batching for search backends

This package buffers log records per session and flushes them in bulk once
a count or elapsed-time threshold is reached:
- Volatile buffering for long-lived processes
- Durable buffering (DynamoDB, files) for stateless invocations
- Single-flight flushing per session key
- Elasticsearch bulk sink with session routing
- Producer handler, Flask and AWS Lambda/SQS adapters
"""

from logbatch_sdk.errors import (
    LogBatchError,
    InvalidRecord,
    StorageUnavailable,
    SinkPushFailed,
)
from logbatch_sdk.clock import LogClock, log_clock
from logbatch_sdk.record import LogLevel, LogRecord, parse_timestamp
from logbatch_sdk.config import (
    FlushBasis,
    LoggerConfiguration,
    PipelineConfig,
    StorageMode,
    load_config,
    parse_duration,
)
from logbatch_sdk.policy import BufferStats, should_flush, is_overdue
from logbatch_sdk.buffer import SessionBuffer
from logbatch_sdk.kv import (
    KeyValueStore,
    MemoryKeyValueStore,
    FileKeyValueStore,
    DynamoDBKeyValueStore,
)
from logbatch_sdk.store import BufferStore, VolatileBufferStore, DurableBufferStore
from logbatch_sdk.sink import BulkSink, PushResult, MemorySink, ElasticsearchSink
from logbatch_sdk.coordinator import FlushCoordinator
from logbatch_sdk.ingest import IngestionEntrypoint, IngestRequest, IngestResult
from logbatch_sdk.wire import decode_message, encode_message
from logbatch_sdk.context import get_session_id, set_session_id, session_scope
from logbatch_sdk.handler import SessionLogHandler, LineFormatter, format_line
from logbatch_sdk.pipeline import (
    build_entrypoint,
    init_pipeline,
    get_default_entrypoint,
    set_default_entrypoint,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "LogBatchError",
    "InvalidRecord",
    "StorageUnavailable",
    "SinkPushFailed",
    # Clock
    "LogClock",
    "log_clock",
    # Records
    "LogLevel",
    "LogRecord",
    "parse_timestamp",
    # Config
    "FlushBasis",
    "LoggerConfiguration",
    "PipelineConfig",
    "StorageMode",
    "load_config",
    "parse_duration",
    # Policy
    "BufferStats",
    "should_flush",
    "is_overdue",
    # Buffers and stores
    "SessionBuffer",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "DynamoDBKeyValueStore",
    "BufferStore",
    "VolatileBufferStore",
    "DurableBufferStore",
    # Sinks
    "BulkSink",
    "PushResult",
    "MemorySink",
    "ElasticsearchSink",
    # Pipeline
    "FlushCoordinator",
    "IngestionEntrypoint",
    "IngestRequest",
    "IngestResult",
    "build_entrypoint",
    "init_pipeline",
    "get_default_entrypoint",
    "set_default_entrypoint",
    # Transport helpers
    "decode_message",
    "encode_message",
    "get_session_id",
    "set_session_id",
    "session_scope",
    "SessionLogHandler",
    "LineFormatter",
    "format_line",
]
