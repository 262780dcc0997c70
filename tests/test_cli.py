"""
Tests for the chaingate CLI and environment settings.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from chaingate import cli
from chaingate.config import load_settings

from conftest import SENDER, raw_tx


@pytest.fixture
def no_dotenv(tmp_path):
    return str(tmp_path / "missing.env")


def test_load_settings_reads_dotenv_without_overriding(tmp_path, monkeypatch):
    monkeypatch.setenv("ETHERSCAN_API_KEY", "from-env")
    for name in ("CHAINGATE_TRANSACTIONS_TABLE", "CHAINGATE_HTTP_TIMEOUT"):
        # set then delete so teardown also removes whatever .env loads
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "# local settings\nETHERSCAN_API_KEY=from-file\nCHAINGATE_TRANSACTIONS_TABLE='TxCache'\n",
        encoding="utf-8",
    )
    settings = load_settings(str(dotenv))
    assert settings.etherscan_api_key == "from-env"
    assert settings.transactions_table == "TxCache"
    assert settings.http_timeout == 10


def test_load_settings_rejects_bad_timeout(monkeypatch, no_dotenv):
    monkeypatch.setenv("CHAINGATE_HTTP_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="CHAINGATE_HTTP_TIMEOUT"):
        load_settings(no_dotenv)


def test_latest_no_store_prints_json(monkeypatch, capsys, no_dotenv):
    etherscan = MagicMock()
    etherscan.fetch_latest.return_value = [raw_tx("0x2", 200), raw_tx("0x1", 100, is_error="1")]
    monkeypatch.setattr(cli, "EtherscanClient", MagicMock(return_value=etherscan))
    ddb = MagicMock()
    monkeypatch.setattr(cli, "dynamodb_client", ddb)

    assert cli.main(["--dotenv", no_dotenv, "latest", SENDER, "--limit", "2", "--no-store", "--json"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert [tx["hash"] for tx in output["transactions"]] == ["0x2"]
    etherscan.fetch_latest.assert_called_once_with(SENDER, 2)
    ddb.assert_not_called()


def test_latest_limit_error_exits_nonzero(monkeypatch, capsys, no_dotenv):
    monkeypatch.setattr(cli, "EtherscanClient", MagicMock())
    assert cli.main(["--dotenv", no_dotenv, "latest", SENDER, "--limit", "101", "--no-store"]) == 1
    assert "Up to 100 is allowed" in capsys.readouterr().err


def test_history_requires_dates(monkeypatch, capsys, no_dotenv):
    monkeypatch.setattr(cli, "dynamodb_client", MagicMock())
    assert cli.main(["--dotenv", no_dotenv, "history", SENDER]) == 1
    assert "At least one of date ranges must be set" in capsys.readouterr().err
