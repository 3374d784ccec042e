"""
DynamoDB key-value store for stateless deployments.

Table layout:
    {table}
        SessionId (S, partition key)
        LogQueue  (S, serialized session buffer)
"""

import logging
from typing import Optional

import boto3

from . import KeyValueStore

logger = logging.getLogger(__name__)


DEFAULT_TABLE = "LogQueueTable"
KEY_ATTRIBUTE = "SessionId"
VALUE_ATTRIBUTE = "LogQueue"


class DynamoDBKeyValueStore(KeyValueStore):
    """
    Stores one item per session key in a DynamoDB table.

    Reads are strongly consistent so an invocation sees the buffer the
    previous invocation saved. Concurrent writers to the same key are
    last-writer-wins.
    """

    def __init__(
        self,
        table: str = DEFAULT_TABLE,
        region: Optional[str] = None,
        client=None,
    ):
        """
        Initialize the store.

        Args:
            table: DynamoDB table name
            region: AWS region. Defaults to the boto3 session's region.
            client: Optional pre-built DynamoDB client
        """
        self.table = table
        self.region = region
        self._client = client

    def _get_client(self):
        """Lazy initialization of the DynamoDB client."""
        if self._client is None:
            self._client = boto3.client("dynamodb", region_name=self.region)
        return self._client

    def _key(self, key: str):
        return {KEY_ATTRIBUTE: {"S": key}}

    def get(self, key: str) -> Optional[str]:
        response = self._get_client().get_item(
            TableName=self.table,
            Key=self._key(key),
            ConsistentRead=True,
        )
        item = response.get("Item") or {}
        value = item.get(VALUE_ATTRIBUTE, {}).get("S")
        logger.debug(f"Loaded {key} from {self.table}: {'hit' if value is not None else 'miss'}")
        return value

    def put(self, key: str, value: str) -> None:
        self._get_client().update_item(
            TableName=self.table,
            Key=self._key(key),
            UpdateExpression=f"SET {VALUE_ATTRIBUTE} = :value",
            ExpressionAttributeValues={":value": {"S": value}},
        )

    def delete(self, key: str) -> None:
        self._get_client().delete_item(
            TableName=self.table,
            Key=self._key(key),
        )
