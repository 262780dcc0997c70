"""Transaction sync and history lookups.

Two flows share the transaction record:

* ``sync_latest_transactions`` fetches the newest transactions for an address
  from Etherscan, drops execution-errored entries, upserts the rest by hash
  and returns them in provider order.
* ``query_transactions`` turns an optional ``YYYY-MM-DD`` date range into UTC
  midnight timestamps and reads the stored history for a sender, newest first.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

from .exceptions import InvalidDate, InvalidLimit, MalformedDate, MissingDateRange, RangeInverted

_LOGGER = logging.getLogger("chaingate.transactions")

MAX_TRANSACTIONS_PER_FETCH = 100
DEFAULT_LIMIT = 5
DATE_RANGE_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$")


@dataclass(frozen=True)
class TransactionRecord:
    hash: str
    blockNumber: str
    sender: str
    value: int
    gasUsed: int
    createdTS: int
    receiver: Optional[str] = None
    contractAddress: Optional[str] = None

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class ReconcileResult:
    records: List[TransactionRecord] = field(default_factory=list)
    dropped: int = 0
    malformed: int = 0


@dataclass(frozen=True)
class DateRange:
    from_ts: Optional[int] = None
    to_ts: Optional[int] = None


class TransactionFetcher(Protocol):
    def fetch_latest(self, address: str, limit: int) -> List[dict]: ...


class TransactionRepository(Protocol):
    def bulk_upsert(self, records: List[TransactionRecord]) -> None: ...

    def find_by_sender(
        self, sender: str, from_ts: Optional[int], to_ts: Optional[int]
    ) -> List[dict]: ...


def _parse_int(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _optional_str(value: object) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def is_execution_error(raw: dict) -> bool:
    return raw.get("isError") != "0"


def normalize_transaction(raw: dict) -> Optional[TransactionRecord]:
    """Map one Etherscan ``txlist`` entry onto a record.

    Returns ``None`` when the entry lacks a required field or one of
    ``gasUsed``/``timeStamp`` is not an integer. ``value`` falls back to 0.
    """

    tx_hash = _optional_str(raw.get("hash"))
    block_number = _optional_str(raw.get("blockNumber"))
    sender = _optional_str(raw.get("from"))
    gas_used = _parse_int(raw.get("gasUsed"))
    created_ts = _parse_int(raw.get("timeStamp"))
    if not tx_hash or not block_number or not sender or gas_used is None or created_ts is None:
        return None
    value = _parse_int(raw.get("value"))
    return TransactionRecord(
        hash=tx_hash,
        blockNumber=block_number,
        sender=sender,
        receiver=_optional_str(raw.get("to")),
        contractAddress=_optional_str(raw.get("contractAddress")),
        value=value if value is not None else 0,
        gasUsed=gas_used,
        createdTS=created_ts,
    )


def reconcile(raw_entries: Iterable[dict]) -> ReconcileResult:
    records: List[TransactionRecord] = []
    dropped = 0
    malformed = 0
    for raw in raw_entries:
        if not isinstance(raw, dict):
            malformed += 1
            continue
        if is_execution_error(raw):
            dropped += 1
            continue
        record = normalize_transaction(raw)
        if record is None:
            malformed += 1
            continue
        records.append(record)
    return ReconcileResult(records=records, dropped=dropped, malformed=malformed)


def validate_limit(limit: int) -> int:
    if limit > MAX_TRANSACTIONS_PER_FETCH:
        raise InvalidLimit(f"Up to {MAX_TRANSACTIONS_PER_FETCH} is allowed")
    if limit < 1:
        raise InvalidLimit("limit must be a positive integer")
    return limit


def sync_latest_transactions(
    address: str,
    limit: int,
    fetcher: TransactionFetcher,
    repository: TransactionRepository,
) -> List[TransactionRecord]:
    """Fetch, filter and persist the newest transactions for ``address``.

    A storage failure propagates as ``StorageUnavailable``; nothing is
    returned in that case.
    """

    validate_limit(limit)
    _LOGGER.info("sync start address=%s limit=%s", address, limit)
    raw_entries = fetcher.fetch_latest(address, limit)
    result = reconcile(raw_entries)
    if result.dropped or result.malformed:
        _LOGGER.info(
            "sync filtered address=%s dropped=%s malformed=%s",
            address,
            result.dropped,
            result.malformed,
        )
    if result.records:
        repository.bulk_upsert(result.records)
    _LOGGER.info("sync complete address=%s stored=%s", address, len(result.records))
    return result.records


def parse_date_bound(value: Optional[str], bound: str) -> Optional[int]:
    """Return the UTC-midnight Unix timestamp for ``value`` or ``None`` if unset."""

    if not value:
        return None
    if not DATE_RANGE_RE.match(value):
        raise MalformedDate(bound)
    year, month, day = (int(part) for part in value.split("-"))
    try:
        midnight = datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as exc:
        raise InvalidDate(bound) from exc
    return int(midnight.timestamp())


def resolve_date_range(date_from: Optional[str], date_to: Optional[str]) -> DateRange:
    if not (date_from or date_to):
        raise MissingDateRange()
    from_ts = parse_date_bound(date_from, "dateFrom")
    to_ts = parse_date_bound(date_to, "dateTo")
    if from_ts is not None and to_ts is not None and to_ts <= from_ts:
        raise RangeInverted()
    return DateRange(from_ts=from_ts, to_ts=to_ts)


def query_transactions(
    address: str,
    date_from: Optional[str],
    date_to: Optional[str],
    repository: TransactionRepository,
) -> List[dict]:
    date_range = resolve_date_range(date_from, date_to)
    _LOGGER.info(
        "history query address=%s from_ts=%s to_ts=%s",
        address,
        date_range.from_ts,
        date_range.to_ts,
    )
    return repository.find_by_sender(address, date_range.from_ts, date_range.to_ts)
