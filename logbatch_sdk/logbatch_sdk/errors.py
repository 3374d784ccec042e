"""
Exception taxonomy for the batching pipeline.

Ingestion-time errors (InvalidRecord, StorageUnavailable) propagate to the
caller so the transport can decide on redelivery. SinkPushFailed never
leaves the flush path: it is caught, logged and counted there.
"""

from typing import Optional


class LogBatchError(Exception):
    """Base class for all pipeline errors."""


class InvalidRecord(LogBatchError, ValueError):
    """Raised when a record is rejected before buffering.

    Attributes:
        field: Name of the offending field (session_id, timestamp, level, ...)
        value: The rejected value
    """

    def __init__(self, field: str, value: object = None, reason: str = ""):
        self.field = field
        self.value = value
        msg = f"Invalid {field}: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class StorageUnavailable(LogBatchError):
    """Raised when the durable buffer store cannot be read or written.

    The record that triggered the operation is NOT buffered.
    """

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        msg = f"Buffer storage unavailable during {operation} for session {key}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class SinkPushFailed(LogBatchError):
    """Raised by a sink when a bulk write is rejected or the backend is unreachable.

    Attributes:
        target: Index the batch was addressed to
        count: Number of records in the lost batch
        diagnostic: Backend-provided diagnostic text
    """

    def __init__(self, target: str, count: int, diagnostic: str = ""):
        self.target = target
        self.count = count
        self.diagnostic = diagnostic
        msg = f"Bulk push of {count} records to {target} failed"
        if diagnostic:
            msg += f": {diagnostic}"
        super().__init__(msg)
