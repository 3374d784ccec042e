"""
AWS Lambda entry point for SQS-triggered ingestion.

Each invocation may run on a fresh container, so sessions should use the
durable storage mode (set LOGBATCH_STORAGE_MODE=durable). Every SQS record
is ingested on its own; the return value is a partial batch response, so
only records that hit a storage failure are redelivered by SQS.

Lambda handler setting:
    logbatch_sdk.lambda_handler.handler

Message attributes (optional, used by older producers):
    SessionID: session key; the body is then the plain message text
    LoggerConfiguration: JSON object with flush thresholds
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidRecord, StorageUnavailable
from .ingest import IngestionEntrypoint, IngestRequest
from .config import LoggerConfiguration
from .pipeline import get_default_entrypoint
from .wire import apply_overrides, decode_message

logger = logging.getLogger(__name__)


def handle_sqs_event(
    event: Dict[str, Any],
    context: Any = None,
    entrypoint: Optional[IngestionEntrypoint] = None,
) -> Dict[str, List[Dict[str, str]]]:
    """
    Ingest every record of an SQS event.

    Args:
        event: SQS event as passed to Lambda
        context: Lambda context (unused)
        entrypoint: Pipeline entrypoint. Defaults to the process default.

    Returns:
        {"batchItemFailures": [{"itemIdentifier": messageId}, ...]}
    """
    entrypoint = entrypoint or get_default_entrypoint()
    failures: List[Dict[str, str]] = []
    records = event.get("Records", [])

    for sqs_record in records:
        message_id = sqs_record.get("messageId", "")
        try:
            request = decode_sqs_record(sqs_record, entrypoint.default_configuration)
            entrypoint.ingest_request(request)
        except InvalidRecord as e:
            logger.warning(f"Dropping invalid message {message_id}: {e}")
        except StorageUnavailable as e:
            logger.error(f"Storage unavailable for message {message_id}, requesting redelivery: {e}")
            failures.append({"itemIdentifier": message_id})

    logger.info(f"Processed {len(records)} messages, {len(failures)} to be redelivered")
    return {"batchItemFailures": failures}


def decode_sqs_record(sqs_record: Dict[str, Any], defaults: LoggerConfiguration) -> IngestRequest:
    """Turn one SQS record into an IngestRequest."""
    body = sqs_record.get("body", "")
    attributes = sqs_record.get("messageAttributes") or {}
    session_attr = _attribute(attributes, "SessionID")

    if session_attr is None:
        return decode_message(body, defaults)

    config_attr = _attribute(attributes, "LoggerConfiguration")
    configuration = defaults
    if config_attr:
        try:
            overrides = json.loads(config_attr)
        except ValueError as e:
            raise InvalidRecord("configuration", config_attr, f"invalid JSON: {e}") from e
        configuration = apply_overrides(defaults, overrides)

    if body.strip().startswith("{"):
        request = decode_message(body, configuration)
        return IngestRequest(
            session_id=session_attr,
            message=request.message,
            level=request.level,
            timestamp=request.timestamp,
            configuration=request.configuration,
        )

    sent = (sqs_record.get("attributes") or {}).get("SentTimestamp")
    return IngestRequest(
        session_id=session_attr,
        message=body,
        timestamp=int(sent) / 1000.0 if sent and str(sent).isdigit() else None,
        configuration=configuration,
    )


def _attribute(attributes: Dict[str, Any], name: str) -> Optional[str]:
    value = attributes.get(name)
    if not value:
        return None
    return value.get("stringValue") or value.get("StringValue")


# Lambda handler alias
handler = handle_sqs_event
