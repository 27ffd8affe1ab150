"""
Pinning-service client (Pinata) and IPFS gateway URL helpers.
"""

import json
import time
from dataclasses import dataclass
from typing import List, Optional

import httpx

from config import BlocksConfig, settings

SUPPORTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")

ALTERNATE_GATEWAYS = (
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://dweb.link/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
)


class PinningError(Exception):
    pass


@dataclass(frozen=True)
class PinResult:
    hash: str
    url: str


def _with_slash(base: str) -> str:
    return base if base.endswith("/") else base + "/"


def gateway_url(content_hash: str, gateway: str) -> str:
    return f"{_with_slash(gateway)}{content_hash}"


def content_hash_from_url(url: str) -> Optional[str]:
    tail = (url or "").rstrip("/").rsplit("/", 1)[-1]
    return tail or None


def rewrite_gateway(url: str, gateway: str) -> str:
    """Same content hash behind a different gateway base."""
    content_hash = content_hash_from_url(url)
    if not content_hash or "ipfs" not in (url or ""):
        return url
    return gateway_url(content_hash, gateway)


def gateway_candidates(url: str) -> List[str]:
    content_hash = content_hash_from_url(url)
    if not content_hash:
        return []
    return [gateway_url(content_hash, g) for g in ALTERNATE_GATEWAYS]


def validate_image(content_type: str, size: int, config: BlocksConfig = settings) -> Optional[str]:
    if content_type not in SUPPORTED_IMAGE_TYPES:
        return "Please upload a valid image file (JPEG, PNG, WebP, or GIF)"
    if size > config.max_upload_bytes:
        return f"Image must be less than {config.max_upload_bytes // (1024 * 1024)}MB"
    return None


class PinningClient:
    def __init__(
        self,
        config: BlocksConfig = settings,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self.transport = transport

    async def upload(self, filename: str, content: bytes, content_type: str) -> PinResult:
        """Pin one file; returns its content hash and gateway URL."""
        if not self.config.pinata_jwt:
            raise PinningError("PINATA_JWT is not configured")
        problem = validate_image(content_type, len(content), self.config)
        if problem:
            raise PinningError(problem)

        metadata = {
            "name": f"blocks-{int(time.time() * 1000)}-{filename}",
            "keyvalues": {"app": "blocks-social", "timestamp": str(int(time.time() * 1000))},
        }
        url = f"{self.config.pinata_api_url.rstrip('/')}/pinning/pinFileToIPFS"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    url,
                    headers={"Authorization": f"Bearer {self.config.pinata_jwt}"},
                    files={"file": (filename, content, content_type)},
                    data={
                        "pinataMetadata": json.dumps(metadata),
                        "pinataOptions": json.dumps({"cidVersion": 0}),
                    },
                )
            except httpx.HTTPError as exc:
                raise PinningError(f"upload failed: {exc}") from exc
        if response.status_code != 200:
            raise PinningError(f"upload failed: http={response.status_code}")
        content_hash = (response.json() or {}).get("IpfsHash")
        if not content_hash:
            raise PinningError("upload response has no IpfsHash")
        return PinResult(hash=content_hash, url=gateway_url(content_hash, self.config.pinata_gateway))
