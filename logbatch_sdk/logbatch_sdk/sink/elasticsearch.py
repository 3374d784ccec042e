"""
ElasticsearchSink - bulk indexing over the Elasticsearch HTTP API.

Each batch becomes one NDJSON request to {url}/_bulk. Every document is
routed by the session key so all records of a session live on the same
shard and can be retrieved together.

Optionally attaches an index lifecycle policy to the target index after a
successful push.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..errors import SinkPushFailed
from ..record import LogRecord
from . import BulkSink

logger = logging.getLogger(__name__)


# Max number of per-item errors quoted in a diagnostic
MAX_REPORTED_ERRORS = 3


class ElasticsearchSink(BulkSink):
    """
    Bulk sink writing to an Elasticsearch (or OpenSearch) cluster.

    Usage:
        sink = ElasticsearchSink("http://localhost:9200", lifecycle_policy="logs-policy")
        result = sink.push(batch, target="logs", routing_key="session-1")
    """

    def __init__(
        self,
        url: str = "http://localhost:9200",
        lifecycle_policy: Optional[str] = None,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the sink.

        Args:
            url: Cluster base URL
            lifecycle_policy: Name of an ILM policy to attach to target indices
            api_key: Encoded API key sent as "Authorization: ApiKey ..."
            username: Basic auth user
            password: Basic auth password
            timeout: Per-request timeout in seconds
            session: Optional pre-built requests.Session
        """
        self.url = url.rstrip("/")
        self.lifecycle_policy = lifecycle_policy
        self.timeout = timeout
        self._session = session or requests.Session()
        if api_key:
            self._session.headers["Authorization"] = f"ApiKey {api_key}"
        elif username:
            self._session.auth = (username, password or "")
        self._configured_indices = set()

    @classmethod
    def from_config(cls, sink_config: Dict[str, Any]) -> "ElasticsearchSink":
        return cls(
            url=sink_config.get("url", "http://localhost:9200"),
            lifecycle_policy=sink_config.get("lifecycle_policy"),
            api_key=sink_config.get("api_key"),
            username=sink_config.get("username"),
            password=sink_config.get("password"),
            timeout=float(sink_config.get("timeout", 10.0)),
        )

    def build_bulk_body(self, batch: Sequence[LogRecord], target: str, routing_key: str) -> str:
        """Render a batch as an NDJSON bulk body (trailing newline included)."""
        lines: List[str] = []
        action = json.dumps({"index": {"_index": target, "routing": routing_key}})
        for record in batch:
            lines.append(action)
            lines.append(json.dumps(record.to_document(routing_key)))
        return "\n".join(lines) + "\n"

    def _push_batch(self, batch: Sequence[LogRecord], target: str, routing_key: str) -> None:
        body = self.build_bulk_body(batch, target, routing_key)
        try:
            response = self._session.post(
                f"{self.url}/_bulk",
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/x-ndjson"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkPushFailed(target, len(batch), f"backend unreachable: {e}") from e

        if response.status_code >= 400:
            raise SinkPushFailed(
                target, len(batch), f"HTTP {response.status_code}: {response.text[:500]}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise SinkPushFailed(target, len(batch), f"invalid bulk response: {e}") from e

        if result.get("errors"):
            raise SinkPushFailed(target, len(batch), _describe_item_errors(result))

        logger.info(f"Indexed {len(batch)} records for session {routing_key} into {target}")

        if self.lifecycle_policy:
            self._configure_lifecycle(target)

    def _configure_lifecycle(self, index: str) -> None:
        """Attach the lifecycle policy to index. Failures are only logged."""
        if index in self._configured_indices:
            return

        settings = {
            "index.lifecycle.name": self.lifecycle_policy,
            "index.lifecycle.rollover_alias": index,
            "index.lifecycle.parse_origination_date": True,
        }
        try:
            response = self._session.put(
                f"{self.url}/{index}/_settings",
                json=settings,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Failed to configure lifecycle policy for index {index}: {e}")
            return

        if response.status_code >= 400:
            logger.warning(
                f"Failed to configure lifecycle policy for index {index}: "
                f"HTTP {response.status_code}: {response.text[:500]}"
            )
            return

        self._configured_indices.add(index)

    def close(self) -> None:
        self._session.close()


def _describe_item_errors(result: Dict[str, Any]) -> str:
    """Summarize per-item failures of a bulk response."""
    reasons = []
    failed = 0
    for item in result.get("items", []):
        op = next(iter(item.values()), {})
        error = op.get("error")
        if not error:
            continue
        failed += 1
        if len(reasons) < MAX_REPORTED_ERRORS:
            if isinstance(error, dict):
                reasons.append(f"{error.get('type', 'error')}: {error.get('reason', '')}")
            else:
                reasons.append(str(error))
    summary = f"{failed} item(s) rejected"
    if reasons:
        summary += ": " + "; ".join(reasons)
    return summary
