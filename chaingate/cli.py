"""CLI for Chaingate."""

from __future__ import annotations

import argparse
import json
import sys

from .config import load_settings
from .etherscan import EtherscanClient
from .exceptions import ChaingateError
from .store import PinnedFileStore, TransactionStore, dynamodb_client
from .transactions import DEFAULT_LIMIT, query_transactions, reconcile, sync_latest_transactions, validate_limit


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chaingate")
    parser.add_argument("--dotenv", default=".env", help="Path to .env file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("create-tables", help="Create the DynamoDB tables")

    latest_parser = subparsers.add_parser("latest", help="Fetch and store the latest transactions")
    latest_parser.add_argument("address", help="Wallet address")
    latest_parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT, help="Number of transactions")
    latest_parser.add_argument(
        "--no-store",
        action="store_true",
        help="Print the normalized transactions without writing to DynamoDB",
    )
    latest_parser.add_argument("--json", action="store_true", help="Print as JSON")

    history_parser = subparsers.add_parser("history", help="Read stored transactions for a sender")
    history_parser.add_argument("address", help="Sender address")
    history_parser.add_argument("--date-from", help="YYYY-MM-DD, inclusive")
    history_parser.add_argument("--date-to", help="YYYY-MM-DD, inclusive")

    return parser


def _print_transactions(transactions: list, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"transactions": transactions}))
        return
    for tx in transactions:
        print(f"{tx['createdTS']} {tx['hash']} value={tx['value']} gasUsed={tx['gasUsed']}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args.dotenv)

    try:
        if args.command == "create-tables":
            client = dynamodb_client(settings.ddb_region, settings.ddb_endpoint)
            TransactionStore(client, settings.transactions_table).create_table()
            PinnedFileStore(client, settings.ipfs_table).create_table()
            print(f"created {settings.transactions_table} and {settings.ipfs_table}")
            return 0

        if args.command == "latest":
            etherscan = EtherscanClient(
                api_key=settings.etherscan_api_key,
                base_url=settings.etherscan_url,
                timeout=settings.http_timeout,
            )
            if args.no_store:
                validate_limit(args.limit)
                records = reconcile(etherscan.fetch_latest(args.address, args.limit)).records
            else:
                client = dynamodb_client(settings.ddb_region, settings.ddb_endpoint)
                store = TransactionStore(client, settings.transactions_table)
                records = sync_latest_transactions(args.address, args.limit, etherscan, store)
            _print_transactions([record.to_dict() for record in records], args.json)
            return 0

        if args.command == "history":
            client = dynamodb_client(settings.ddb_region, settings.ddb_endpoint)
            store = TransactionStore(client, settings.transactions_table)
            transactions = query_transactions(args.address, args.date_from, args.date_to, store)
            _print_transactions(transactions, True)
            return 0
    except ChaingateError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
