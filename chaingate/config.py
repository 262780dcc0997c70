"""Environment-driven settings for Chaingate."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/api"
DEFAULT_HTTP_TIMEOUT = 10


@dataclass(frozen=True)
class Settings:
    etherscan_api_key: Optional[str]
    etherscan_url: str
    http_timeout: int
    transactions_table: str
    ipfs_table: str
    ddb_region: Optional[str]
    ddb_endpoint: Optional[str]
    pinata_jwt: Optional[str]
    pinata_gateway: Optional[str]
    infura_api_key: Optional[str]
    root_path: str


def load_dotenv(path: str = ".env") -> None:
    env_file = Path(path)
    if not env_file.exists():
        return
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings(dotenv_path: str = ".env") -> Settings:
    """Build settings from the process environment, seeded from ``.env``."""

    load_dotenv(dotenv_path)
    return Settings(
        etherscan_api_key=os.getenv("ETHERSCAN_API_KEY"),
        etherscan_url=os.getenv("CHAINGATE_ETHERSCAN_URL", DEFAULT_ETHERSCAN_URL),
        http_timeout=_int_env("CHAINGATE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        transactions_table=os.getenv("CHAINGATE_TRANSACTIONS_TABLE", "CryptoTransactions"),
        ipfs_table=os.getenv("CHAINGATE_IPFS_TABLE", "IPFSFiles"),
        ddb_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
        ddb_endpoint=os.getenv("CHAINGATE_DDB_ENDPOINT") or None,
        pinata_jwt=os.getenv("PINATA_JWT_TOKEN"),
        pinata_gateway=os.getenv("PINATA_GATEWAY"),
        infura_api_key=os.getenv("INFURA_API_KEY"),
        root_path=os.getenv("CHAINGATE_ROOT_PATH", ""),
    )
