"""Pinata IPFS pinning client."""

import json
from dataclasses import dataclass
from typing import Protocol

import httpx

from lossy_mint.domain.uploads import PinnedContent
from lossy_mint.errors import UpstreamFailure, UpstreamTimeout

_SERVICE = "pinata"


class PinningClient(Protocol):
    """Interface for content-addressed uploads."""

    async def pin_file(  # noqa: PLR0913
        self,
        filename: str,
        content: bytes,
        mime_type: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinnedContent:
        """Pin a binary blob and return its content address."""

    async def pin_json(self, document: dict[str, object], name: str) -> PinnedContent:
        """Pin a JSON document and return its content address."""


@dataclass
class HttpxPinataClient(PinningClient):
    """Pinata client using httpx."""

    jwt: str
    api_url: str
    gateway_base: str
    http_client: httpx.AsyncClient
    timeout: float = 60.0

    @classmethod
    def create(
        cls, jwt: str, api_url: str, gateway_base: str, timeout: float
    ) -> "HttpxPinataClient":
        """Create a Pinata client with a managed httpx session."""
        return cls(
            jwt=jwt.strip(),
            api_url=api_url.rstrip("/"),
            gateway_base=gateway_base.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def pin_file(  # noqa: PLR0913
        self,
        filename: str,
        content: bytes,
        mime_type: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinnedContent:
        """Upload a file via pinFileToIPFS."""
        metadata: dict[str, object] = {"name": name or filename}
        if keyvalues:
            metadata["keyvalues"] = keyvalues
        payload = await self._post(
            "/pinning/pinFileToIPFS",
            files={"file": (filename, content, mime_type)},
            data={
                "pinataMetadata": json.dumps(metadata),
                "pinataOptions": json.dumps({"cidVersion": 1}),
            },
        )
        return self._pinned(payload)

    async def pin_json(self, document: dict[str, object], name: str) -> PinnedContent:
        """Upload a JSON document via pinJSONToIPFS."""
        payload = await self._post(
            "/pinning/pinJSONToIPFS",
            json={
                "pinataContent": document,
                "pinataMetadata": {"name": name},
                "pinataOptions": {"cidVersion": 1},
            },
        )
        return self._pinned(payload)

    def gateway_url(self, cid: str) -> str:
        """Return the public gateway URL for a content id."""
        return f"{self.gateway_base}/{cid}"

    async def _post(self, path: str, **kwargs: object) -> dict[str, object]:
        if not self.jwt:
            raise UpstreamFailure(_SERVICE, "PINATA_JWT not configured")
        try:
            response = await self.http_client.post(
                f"{self.api_url}{path}",
                headers={"Authorization": f"Bearer {self.jwt}"},
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(_SERVICE, self.timeout) from exc
        except httpx.HTTPError as exc:
            raise UpstreamFailure(_SERVICE, f"Pinata request failed: {exc}") from exc
        if response.status_code >= 400:
            raise UpstreamFailure(
                _SERVICE,
                f"Pinata upload failed: HTTP {response.status_code} "
                f"{response.text[:200]}",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFailure(
                _SERVICE, f"Pinata returned a malformed body: {response.text[:200]}"
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamFailure(_SERVICE, "Pinata returned a malformed body")
        return payload

    def _pinned(self, payload: dict[str, object]) -> PinnedContent:
        cid = payload.get("IpfsHash")
        if not isinstance(cid, str) or not cid:
            raise UpstreamFailure(
                _SERVICE, "Pinata upload failed: " + json.dumps(payload)[:200]
            )
        return PinnedContent(cid=cid, uri=self.gateway_url(cid))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
