"""Etherscan transaction-list client."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from .config import DEFAULT_ETHERSCAN_URL, DEFAULT_HTTP_TIMEOUT
from .exceptions import UpstreamRejected, UpstreamUnavailable

_LOGGER = logging.getLogger("chaingate.etherscan")

START_BLOCK = 0
END_BLOCK = 99999999


class EtherscanClient:
    """Thin wrapper over one long-lived ``requests.Session``."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_ETHERSCAN_URL,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def _txlist_params(self, address: str, limit: int) -> dict:
        return {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startBlock": START_BLOCK,
            "endBlock": END_BLOCK,
            "page": 1,
            "offset": limit,
            "sort": "desc",
            "apikey": self.api_key,
        }

    def _get_envelope(self, params: dict) -> dict:
        try:
            response = self.session.get(
                self.base_url,
                params=params,
                headers={"accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            envelope = response.json()
        except (requests.RequestException, ValueError) as exc:
            _LOGGER.exception("etherscan request failed action=%s", params.get("action"))
            raise UpstreamUnavailable() from exc
        if not isinstance(envelope, dict) or "status" not in envelope:
            _LOGGER.error("etherscan malformed envelope action=%s", params.get("action"))
            raise UpstreamUnavailable()
        return envelope

    def fetch_latest(self, address: str, limit: int) -> List[dict]:
        """Return up to ``limit`` raw transactions for ``address``, newest first."""

        envelope = self._get_envelope(self._txlist_params(address, limit))
        result: Any = envelope.get("result")
        if envelope.get("status") == "1":
            if not isinstance(result, list):
                raise UpstreamUnavailable()
            return result
        message = result if isinstance(result, str) and result else envelope.get("message")
        _LOGGER.warning("etherscan rejected address=%s message=%s", address, message)
        raise UpstreamRejected(str(message or "Request rejected by provider"))
