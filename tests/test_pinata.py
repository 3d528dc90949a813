import json

import httpx
import pytest

from galerie.core.errors import InvalidRequestError, NetworkError, NotReadyError
from galerie.providers.pinata import PinataProvider


def pinata_with(handler, **kwargs):
    options = dict(
        api_key="key",
        secret_api_key="secret",
        gateway_url="https://gateway.test/ipfs",
        transport=httpx.MockTransport(handler),
    )
    options.update(kwargs)
    return PinataProvider(**options)


@pytest.mark.asyncio
async def test_pin_json_wraps_content_and_metadata():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"IpfsHash": "QmHash", "PinSize": 120, "Timestamp": "2024-01-01T00:00:00Z"})

    result = await pinata_with(handler).pin_json(
        {"name": "Sunset #1", "image": "ipfs://QmImage"},
        {"name": "sunset-1", "keyvalues": {"collection": "sunsets"}},
    )

    assert seen["path"] == "/pinning/pinJSONToIPFS"
    assert seen["headers"]["pinata_api_key"] == "key"
    assert seen["headers"]["pinata_secret_api_key"] == "secret"
    assert seen["body"] == {
        "pinataMetadata": {"name": "sunset-1", "keyvalues": {"collection": "sunsets"}},
        "pinataContent": {"name": "Sunset #1", "image": "ipfs://QmImage"},
    }
    assert result["ipfs_hash"] == "QmHash"
    assert result["ipfs_url"] == "https://gateway.test/ipfs/QmHash"


@pytest.mark.asyncio
async def test_pin_file_uploads_multipart():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"IpfsHash": "QmFile"})

    result = await pinata_with(handler).pin_file(b"\x89PNG...", "art.png", "image/png")

    assert seen["path"] == "/pinning/pinFileToIPFS"
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'filename="art.png"' in seen["body"]
    assert result["ipfs_url"] == "https://gateway.test/ipfs/QmFile"


@pytest.mark.asyncio
async def test_missing_keys_is_not_ready():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(NotReadyError):
        await pinata_with(handler, api_key="", secret_api_key="").pin_json({"a": 1})


@pytest.mark.asyncio
async def test_rejected_credentials():
    pinata = pinata_with(lambda request: httpx.Response(401, json={"error": "Invalid API key"}))

    with pytest.raises(InvalidRequestError):
        await pinata.test_authentication()


def test_gateway_url_normalizes_trailing_slash():
    pinata = PinataProvider(api_key="k", secret_api_key="s", gateway_url="https://gw.test/ipfs/")

    assert pinata.gateway_url("QmX") == "https://gw.test/ipfs/QmX"


@pytest.mark.asyncio
async def test_unpin_accepts_plain_text_reply():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        return httpx.Response(200, text="OK")

    await pinata_with(handler).unpin("QmOld")

    assert seen == {"method": "DELETE", "path": "/pinning/unpin/QmOld"}


@pytest.mark.asyncio
async def test_fetch_json_falls_back_to_public_gateways():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "gateway.test":
            return httpx.Response(504)
        return httpx.Response(200, json={"name": "Sunset #1"})

    pinata = pinata_with(handler, fallback_gateways=["https://ipfs.test/ipfs/", "https://dweb.test/ipfs"])

    document = await pinata.fetch_json("QmMeta")

    assert document == {"name": "Sunset #1"}
    assert hosts == ["gateway.test", "ipfs.test"]


@pytest.mark.asyncio
async def test_fetch_json_fails_when_every_gateway_fails():
    pinata = pinata_with(lambda request: httpx.Response(404), fallback_gateways=["https://ipfs.test/ipfs/"])

    with pytest.raises(NetworkError, match="All IPFS gateways failed"):
        await pinata.fetch_json("QmMissing")
