"""IPFS file proxy through the Pinata pinning service."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import requests

from .config import DEFAULT_HTTP_TIMEOUT
from .exceptions import FileNotPinned, MissingData, UpstreamUnavailable

_LOGGER = logging.getLogger("chaingate.pinata")

PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"


class PinataClient:
    def __init__(
        self,
        jwt: Optional[str],
        gateway: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self.jwt = jwt
        self.gateway = gateway
        self.session = session or requests.Session()
        self.timeout = timeout

    def _gateway_url(self, cid: str) -> str:
        gateway = (self.gateway or "gateway.pinata.cloud").rstrip("/")
        if not gateway.startswith(("http://", "https://")):
            gateway = f"https://{gateway}"
        return f"{gateway}/ipfs/{cid}"

    def pin_text(self, data: str) -> str:
        """Upload ``data`` as a text file and return its CID."""

        files = {"file": (str(uuid.uuid4()), data.encode("utf-8"), "text/plain")}
        try:
            response = self.session.post(
                PIN_FILE_URL,
                files=files,
                headers={"Authorization": f"Bearer {self.jwt}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            cid = response.json().get("IpfsHash")
        except (requests.RequestException, ValueError, AttributeError) as exc:
            _LOGGER.exception("pinata upload failed")
            raise UpstreamUnavailable() from exc
        if not cid:
            _LOGGER.error("pinata upload returned no hash")
            raise UpstreamUnavailable()
        return cid

    def fetch(self, cid: str) -> Optional[str]:
        try:
            response = self.session.get(self._gateway_url(cid), timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except requests.RequestException as exc:
            _LOGGER.exception("pinata gateway fetch failed cid=%s", cid)
            raise UpstreamUnavailable() from exc
        return response.text or None


def add_file(data: Optional[str], pinata: PinataClient, files) -> str:
    if not data:
        raise MissingData("No data provided")
    cid = pinata.pin_text(data)
    files.add(cid)
    _LOGGER.info("ipfs add complete cid=%s", cid)
    return cid


def get_file(cid: Optional[str], pinata: PinataClient, files) -> str:
    if not cid:
        raise MissingData("No file hash to lookup")
    if not files.exists(cid):
        raise FileNotPinned()
    data = pinata.fetch(cid)
    if not data:
        _LOGGER.error("ipfs file recorded but missing from gateway cid=%s", cid)
        raise FileNotPinned()
    return data
