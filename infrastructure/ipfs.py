# ============================================================================
# IPFS ARTIFACT STORE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Infrastructure - Pinata pinning over httpx
# PURPOSE: Persist generated images and ERC-721 metadata to IPFS
# CREATED: 25 SEP 2026
# ============================================================================
"""
IPFS artifact store.

A generated image arrives either as an https URL (short-lived, provider
hosted) or as a data: URL. Both are turned into bytes, pinned, and
referenced from a metadata document whose ipfs:// URI becomes the
tokenURI.
"""

import base64
import logging
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

import httpx

from core.config import ArtifactConfig
from core.errors import ArtifactStoreError
from infrastructure.traits import derive_traits

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactStore(Protocol):
    async def store_image(self, image_url: str, name: str) -> str:
        """Persist an image; return its ipfs:// URI."""
        ...

    async def store_metadata(self, metadata: Dict[str, Any], name: str) -> str:
        """Persist a metadata document; return its ipfs:// URI."""
        ...


def decode_data_url(url: str) -> Tuple[bytes, str]:
    """data:<mime>;base64,<payload> -> (bytes, mime)."""
    header, _, payload = url.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise ArtifactStoreError("unsupported data URL")
    mime = header[5:].split(";")[0] or "application/octet-stream"
    try:
        return base64.b64decode(payload, validate=True), mime
    except ValueError as e:
        raise ArtifactStoreError(f"invalid base64 image payload: {e}") from e


def build_metadata(
    token_id: int,
    breed: str,
    image_uri: str,
    provider: str,
    extra_attributes: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """ERC-721 metadata for one token; traits are derived from (token_id, breed)."""
    traits = derive_traits(token_id, breed)
    attributes = traits.attributes()
    attributes.append({"trait_type": "Image Provider", "value": provider})
    for key, value in (extra_attributes or {}).items():
        attributes.append({"trait_type": key, "value": value})
    return {
        "name": f"Pixel Ninja {breed} #{token_id}",
        "description": (
            f"A {traits.traits['Rank'][0]} {breed} pixel ninja cat wielding a "
            f"{traits.traits['Weapon'][0]}, attuned to {traits.traits['Element'][0]}."
        ),
        "image": image_uri,
        "attributes": attributes,
        "rarity": {"score": traits.rarity_score, "tier": traits.rarity},
    }


class PinataArtifactStore:
    """ArtifactStore backed by the Pinata pinning API."""

    def __init__(
        self,
        config: ArtifactConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.config = config
        self._http_client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    @property
    def _headers(self) -> Dict[str, str]:
        if not self.config.pinata_jwt:
            raise ArtifactStoreError("PINATA_JWT is not configured")
        return {"Authorization": f"Bearer {self.config.pinata_jwt}"}

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _image_bytes(self, image_url: str) -> Tuple[bytes, str]:
        if image_url.startswith("data:"):
            return decode_data_url(image_url)
        response = await self.http.get(image_url, follow_redirects=True)
        response.raise_for_status()
        mime = response.headers.get("content-type", "image/png").split(";")[0]
        return response.content, mime

    async def store_image(self, image_url: str, name: str) -> str:
        try:
            content, mime = await self._image_bytes(image_url)
            extension = mime.split("/")[-1] if mime.startswith("image/") else "png"
            response = await self.http.post(
                f"{self.config.pinata_api_url}/pinning/pinFileToIPFS",
                headers=self._headers,
                files={"file": (f"{name}.{extension}", content, mime)},
            )
            response.raise_for_status()
            cid = response.json()["IpfsHash"]
        except httpx.HTTPError as e:
            raise ArtifactStoreError(f"image pin failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise ArtifactStoreError(f"unexpected pinning response: {e}") from e
        logger.info(f"Pinned image {name} ({len(content)} bytes)")
        return f"ipfs://{cid}"

    async def store_metadata(self, metadata: Dict[str, Any], name: str) -> str:
        try:
            response = await self.http.post(
                f"{self.config.pinata_api_url}/pinning/pinJSONToIPFS",
                headers=self._headers,
                json={"pinataContent": metadata, "pinataMetadata": {"name": name}},
            )
            response.raise_for_status()
            cid = response.json()["IpfsHash"]
        except httpx.HTTPError as e:
            raise ArtifactStoreError(f"metadata pin failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise ArtifactStoreError(f"unexpected pinning response: {e}") from e
        logger.info(f"Pinned metadata {name}")
        return f"ipfs://{cid}"


__all__ = [
    "ArtifactStore",
    "PinataArtifactStore",
    "build_metadata",
    "decode_data_url",
]
