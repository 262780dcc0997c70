"""DynamoDB-backed document store for transactions and pinned files."""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StorageUnavailable
from .transactions import TransactionRecord

_LOGGER = logging.getLogger("chaingate.store")
_SERIALIZER = TypeSerializer()
_DESERIALIZER = TypeDeserializer()
_DDB_CLIENT = None

SENDER_INDEX = "sender-createdTS"
BATCH_WRITE_LIMIT = 25
HISTORY_FIELDS = ("hash", "blockNumber", "receiver", "contractAddress", "value", "gasUsed", "createdTS")


def dynamodb_client(region: Optional[str] = None, endpoint_url: Optional[str] = None):
    global _DDB_CLIENT
    if _DDB_CLIENT is None:
        _LOGGER.info("ddb init region=%s endpoint=%s", region, endpoint_url)
        _DDB_CLIENT = boto3.client("dynamodb", region_name=region, endpoint_url=endpoint_url)
    return _DDB_CLIENT


def _marshal(item: dict) -> dict:
    return {key: _SERIALIZER.serialize(value) for key, value in item.items() if value is not None}


def _unmarshal_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _unmarshal(item: dict) -> dict:
    return {key: _unmarshal_value(_DESERIALIZER.deserialize(value)) for key, value in item.items()}


def _chunks(items: List[dict], size: int) -> List[List[dict]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class TransactionStore:
    """Transactions keyed by ``hash`` with a sender/createdTS index."""

    def __init__(self, client, table_name: str) -> None:
        self.client = client
        self.table_name = table_name

    def bulk_upsert(self, records: List[TransactionRecord]) -> None:
        # Duplicate keys inside one BatchWriteItem call are rejected; keep the last.
        by_hash: Dict[str, dict] = {}
        for record in records:
            by_hash[record.hash] = record.to_dict()
        put_requests = [{"PutRequest": {"Item": _marshal(item)}} for item in by_hash.values()]
        try:
            for chunk in _chunks(put_requests, BATCH_WRITE_LIMIT):
                response = self.client.batch_write_item(RequestItems={self.table_name: chunk})
                unprocessed = response.get("UnprocessedItems") or {}
                if unprocessed.get(self.table_name):
                    _LOGGER.error(
                        "ddb batch_write unprocessed table=%s count=%s",
                        self.table_name,
                        len(unprocessed[self.table_name]),
                    )
                    raise StorageUnavailable()
        except (BotoCoreError, ClientError) as exc:
            _LOGGER.exception("ddb batch_write failed table=%s", self.table_name)
            raise StorageUnavailable() from exc
        _LOGGER.info("ddb batch_write ok table=%s items=%s", self.table_name, len(put_requests))

    def _history_query(self, sender: str, from_ts: Optional[int], to_ts: Optional[int]) -> dict:
        names = {"#sender": "sender", "#createdTS": "createdTS"}
        values: Dict[str, dict] = {":sender": {"S": sender}}
        condition = "#sender = :sender"
        if from_ts is not None and to_ts is not None:
            condition += " AND #createdTS BETWEEN :from AND :to"
        elif from_ts is not None:
            condition += " AND #createdTS >= :from"
        elif to_ts is not None:
            condition += " AND #createdTS <= :to"
        if from_ts is not None:
            values[":from"] = {"N": str(from_ts)}
        if to_ts is not None:
            values[":to"] = {"N": str(to_ts)}
        projection = []
        for position, name in enumerate(HISTORY_FIELDS):
            placeholder = f"#f{position}"
            names[placeholder] = name
            projection.append(placeholder)
        return {
            "TableName": self.table_name,
            "IndexName": SENDER_INDEX,
            "KeyConditionExpression": condition,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ProjectionExpression": ", ".join(projection),
            "ScanIndexForward": False,
        }

    def find_by_sender(
        self, sender: str, from_ts: Optional[int] = None, to_ts: Optional[int] = None
    ) -> List[dict]:
        """Return stored transactions sent by ``sender`` within the range, newest first."""

        params = self._history_query(sender, from_ts, to_ts)
        items: List[dict] = []
        try:
            while True:
                response = self.client.query(**params)
                items.extend(_unmarshal(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                params["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            _LOGGER.exception("ddb query failed table=%s sender=%s", self.table_name, sender)
            raise StorageUnavailable("An error occurred while fetching transactions.") from exc
        _LOGGER.info("ddb query ok table=%s sender=%s items=%s", self.table_name, sender, len(items))
        return items

    def create_table(self) -> None:
        self.client.create_table(
            TableName=self.table_name,
            AttributeDefinitions=[
                {"AttributeName": "hash", "AttributeType": "S"},
                {"AttributeName": "sender", "AttributeType": "S"},
                {"AttributeName": "createdTS", "AttributeType": "N"},
            ],
            KeySchema=[{"AttributeName": "hash", "KeyType": "HASH"}],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": SENDER_INDEX,
                    "KeySchema": [
                        {"AttributeName": "sender", "KeyType": "HASH"},
                        {"AttributeName": "createdTS", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        self.client.get_waiter("table_exists").wait(TableName=self.table_name)


class PinnedFileStore:
    """CIDs uploaded through the gateway."""

    def __init__(self, client, table_name: str) -> None:
        self.client = client
        self.table_name = table_name

    def add(self, cid: str) -> None:
        item = {"hash": cid, "createdAt": int(time.time())}
        try:
            self.client.put_item(TableName=self.table_name, Item=_marshal(item))
        except (BotoCoreError, ClientError) as exc:
            _LOGGER.exception("ddb put_item failed table=%s cid=%s", self.table_name, cid)
            raise StorageUnavailable() from exc

    def exists(self, cid: str) -> bool:
        try:
            response = self.client.get_item(
                TableName=self.table_name,
                Key={"hash": {"S": cid}},
                ProjectionExpression="#hash",
                ExpressionAttributeNames={"#hash": "hash"},
            )
        except (BotoCoreError, ClientError) as exc:
            _LOGGER.exception("ddb get_item failed table=%s cid=%s", self.table_name, cid)
            raise StorageUnavailable() from exc
        return bool(response.get("Item"))

    def create_table(self) -> None:
        self.client.create_table(
            TableName=self.table_name,
            AttributeDefinitions=[{"AttributeName": "hash", "AttributeType": "S"}],
            KeySchema=[{"AttributeName": "hash", "KeyType": "HASH"}],
            BillingMode="PAY_PER_REQUEST",
        )
        self.client.get_waiter("table_exists").wait(TableName=self.table_name)
