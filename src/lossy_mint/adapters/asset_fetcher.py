"""HTTP download client for static assets."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class AssetFetcher(Protocol):
    """Interface for downloading remote files."""

    async def fetch_bytes(self, url: str) -> bytes:
        """Download a file and return its bytes."""


@dataclass
class HttpxAssetFetcher(AssetFetcher):
    """Asset fetcher using httpx."""

    http_client: httpx.AsyncClient

    @classmethod
    def create(cls) -> "HttpxAssetFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(follow_redirects=True))

    async def fetch_bytes(self, url: str) -> bytes:
        """Download ``url`` and return the response body."""
        response = await self.http_client.get(url, timeout=20)
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
