"""
Pytest fixtures for Chaingate tests. Outbound HTTP goes through mocked
``requests`` sessions; endpoint tests use an in-memory transaction store.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from unittest.mock import MagicMock

import boto3
import pytest
import requests

from chaingate.etherscan import EtherscanClient

SENDER = "0x4838b106fce9647bdf1e7877bf73ce8b0bad5f97"
RECEIVER = "0xdac17f958d2ee523a2206206994597c13d831ec7"


def raw_tx(tx_hash: str, timestamp: int, is_error: str = "0", **overrides) -> dict:
    """Etherscan ``txlist`` entry with string-encoded numbers."""
    tx = {
        "blockNumber": "19000000",
        "timeStamp": str(timestamp),
        "hash": tx_hash,
        "from": SENDER,
        "to": RECEIVER,
        "value": "1000000000000000000",
        "gas": "21000",
        "gasUsed": "21000",
        "isError": is_error,
        "txreceipt_status": "1" if is_error == "0" else "0",
        "contractAddress": "",
    }
    tx.update(overrides)
    return tx


def mock_response(payload=None, status_code: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


class InMemoryTransactionStore:
    """Dict keyed by hash, mirroring the DynamoDB table semantics."""

    def __init__(self) -> None:
        self.items: Dict[str, dict] = {}
        self.upsert_calls = 0
        self.query_calls = 0

    def bulk_upsert(self, records) -> None:
        self.upsert_calls += 1
        for record in records:
            self.items[record.hash] = record.to_dict()

    def find_by_sender(self, sender: str, from_ts: Optional[int] = None, to_ts: Optional[int] = None) -> List[dict]:
        self.query_calls += 1
        matches = [
            {key: value for key, value in item.items() if key != "sender"}
            for item in self.items.values()
            if item["sender"] == sender
            and (from_ts is None or item["createdTS"] >= from_ts)
            and (to_ts is None or item["createdTS"] <= to_ts)
        ]
        return sorted(matches, key=lambda item: item["createdTS"], reverse=True)


@pytest.fixture
def etherscan_session():
    session = MagicMock()
    session.get.return_value = mock_response({"status": "1", "message": "OK", "result": []})
    return session


@pytest.fixture
def etherscan(etherscan_session):
    return EtherscanClient(api_key="test-key", session=etherscan_session)


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def ddb_client():
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def client(etherscan, store):
    """FastAPI TestClient with Etherscan and DynamoDB collaborators replaced."""
    from fastapi.testclient import TestClient

    from api.main import app, get_etherscan_client, get_transaction_store

    app.dependency_overrides[get_etherscan_client] = lambda: etherscan
    app.dependency_overrides[get_transaction_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
