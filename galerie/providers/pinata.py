"""Async client for the Pinata IPFS pinning API (NFT metadata and images)."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from ..config import settings
from ..core.errors import InvalidRequestError, NetworkError, NotReadyError, RateLimitedError


logger = logging.getLogger(__name__)


class PinataProvider:
    """Thin wrapper around https://api.pinata.cloud endpoints."""

    name = "pinata"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        secret_api_key: Optional[str] = None,
        gateway_url: Optional[str] = None,
        fallback_gateways: Optional[Sequence[str]] = None,
        base_url: str = "https://api.pinata.cloud",
        timeout_s: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.pinata_api_key
        self.secret_api_key = secret_api_key if secret_api_key is not None else settings.pinata_secret_api_key
        gateway = gateway_url or settings.ipfs_gateway_url
        self.gateway = gateway if gateway.endswith("/") else f"{gateway}/"
        fallbacks = fallback_gateways if fallback_gateways is not None else settings.ipfs_fallback_gateways
        self.fallback_gateways = [url if url.endswith("/") else f"{url}/" for url in fallbacks]
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "pinata_api_key": self.api_key,
            "pinata_secret_api_key": self.secret_api_key,
        }

    async def ready(self) -> bool:
        return bool(self.api_key and self.secret_api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Pinata keys not configured"}
        try:
            await self.test_authentication()
            return {"status": "healthy"}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _request(self, method: str, path: str, *, expect_json: bool = True, **kwargs: Any) -> Dict[str, Any]:
        if not await self.ready():
            raise NotReadyError("Pinata API keys are not configured", adapter=self.name)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(f"Pinata unreachable: {exc}", provider=self.name) from exc

        if response.status_code == 429:
            raise RateLimitedError("Pinata rate limit exceeded", provider=self.name)
        if response.status_code in (400, 401, 403):
            raise InvalidRequestError(f"Pinata rejected the request ({response.status_code}): {response.text}")
        response.raise_for_status()
        return response.json() if expect_json else {}

    async def test_authentication(self) -> Dict[str, Any]:
        return await self._request("GET", "/data/testAuthentication")

    def gateway_url(self, ipfs_hash: str) -> str:
        return f"{self.gateway}{ipfs_hash}"

    def _pinned(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ipfs_hash = payload.get("IpfsHash")
        if not ipfs_hash:
            raise NetworkError("Pinata response did not include an IPFS hash", provider=self.name)
        return {
            "ipfs_hash": ipfs_hash,
            "ipfs_url": self.gateway_url(ipfs_hash),
            "pin_size": payload.get("PinSize"),
            "timestamp": payload.get("Timestamp"),
        }

    async def pin_json(self, content: Any, metadata: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Pin a JSON document (typically NFT metadata)."""
        metadata = metadata or {}
        body = {
            "pinataMetadata": {
                "name": metadata.get("name") or f"pin-{int(time.time() * 1000)}",
                "keyvalues": dict(metadata.get("keyvalues") or {}),
            },
            "pinataContent": content,
        }
        payload = await self._request("POST", "/pinning/pinJSONToIPFS", json=body)
        result = self._pinned(payload)
        logger.info("Pinned JSON %s as %s", body["pinataMetadata"]["name"], result["ipfs_hash"])
        return result

    async def pin_file(
        self,
        data: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        """Pin raw file bytes (typically an NFT image)."""
        if not data:
            raise InvalidRequestError("File is empty", field_name="file")
        payload = await self._request(
            "POST",
            "/pinning/pinFileToIPFS",
            files={"file": (filename, data, content_type)},
        )
        result = self._pinned(payload)
        logger.info("Pinned file %s as %s", filename, result["ipfs_hash"])
        return result

    async def unpin(self, ipfs_hash: str) -> None:
        """Remove a pin. Pinata answers with a plain-text body."""
        if not ipfs_hash:
            raise InvalidRequestError("IPFS hash is required", field_name="ipfs_hash")
        await self._request("DELETE", f"/pinning/unpin/{ipfs_hash}", expect_json=False)
        logger.info("Unpinned %s", ipfs_hash)

    async def fetch_json(self, ipfs_hash: str) -> Dict[str, Any]:
        """
        Read a pinned JSON document, trying the configured gateway first and
        then the public fallbacks.

        Raises:
            NetworkError: every gateway failed
        """
        gateways: List[str] = [self.gateway, *(url for url in self.fallback_gateways if url != self.gateway)]
        last_error: Optional[str] = None
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            for gateway in gateways:
                url = f"{gateway}{ipfs_hash}"
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    document = response.json()
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("IPFS gateway %s failed: %s", gateway, exc)
                    last_error = str(exc)
                    continue
                if isinstance(document, dict):
                    return document
                last_error = "document is not a JSON object"
        raise NetworkError(f"All IPFS gateways failed for {ipfs_hash}: {last_error}", provider=self.name)
