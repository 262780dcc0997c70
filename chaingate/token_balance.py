"""ERC20 balance lookups through web3.py."""

from __future__ import annotations

import logging
from typing import Optional

import requests
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.providers import BaseProvider

from .config import DEFAULT_HTTP_TIMEOUT
from .exceptions import InvalidAddress, ProviderError

_LOGGER = logging.getLogger("chaingate.token_balance")

_INFURA_MAINNET = "https://mainnet.infura.io/v3/{}"

# Only the two views the balance lookup needs.
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
]


def infura_endpoint(api_key: Optional[str]) -> str:
    return _INFURA_MAINNET.format(api_key or "")


class NodeClient:
    """Read-only ERC20 calls against one Ethereum node."""

    def __init__(
        self,
        endpoint: str,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
        provider: Optional[BaseProvider] = None,
    ) -> None:
        self.endpoint = endpoint
        if provider is None:
            provider = Web3.HTTPProvider(
                endpoint,
                request_kwargs={"timeout": timeout},
                session=session,
                exception_retry_configuration=None,
            )
        self.w3 = Web3(provider)

    def _token(self, token_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)

    def balance_of(self, token_address: str, wallet_address: str) -> int:
        try:
            return self._token(token_address).functions.balanceOf(Web3.to_checksum_address(wallet_address)).call()
        except (Web3Exception, requests.RequestException, ValueError) as exc:
            _LOGGER.exception("balanceOf failed token=%s wallet=%s", token_address, wallet_address)
            raise ProviderError("Failed to fetch token balance") from exc

    def decimals(self, token_address: str) -> int:
        try:
            return self._token(token_address).functions.decimals().call()
        except (Web3Exception, requests.RequestException, ValueError) as exc:
            _LOGGER.exception("decimals failed token=%s", token_address)
            raise ProviderError("Failed to fetch token balance") from exc


def get_token_balance(wallet_address: Optional[str], token_address: Optional[str], node: NodeClient) -> str:
    """Whole-token balance of ``wallet_address`` in ``token_address``, truncated."""

    if not wallet_address or not Web3.is_address(wallet_address):
        raise InvalidAddress("wallet")
    if not token_address or not Web3.is_address(token_address):
        raise InvalidAddress("token contract")
    balance = node.balance_of(token_address, wallet_address)
    decimals = node.decimals(token_address)
    _LOGGER.info("token balance wallet=%s token=%s raw=%s decimals=%s", wallet_address, token_address, balance, decimals)
    return str(balance // 10**decimals)
