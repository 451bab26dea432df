"""Source file fetcher for uploaded documents."""

import asyncio
import logging

import httpx

from backend.docchat.errors import PolicyExceeded, SourceFetchError

logger = logging.getLogger(__name__)


class SourceFetcher:
    """Downloads uploaded files from the upload provider's storage.

    The whole download is time-bounded; a hang past ``timeout_seconds`` is
    reported the same way as a network failure.
    """

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = 30.0) -> None:
        """Initialize fetcher.

        Args:
            client: Shared httpx client (process-scoped)
            timeout_seconds: Upper bound on the complete download
        """
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def fetch(self, url: str, *, max_bytes: int | None = None) -> bytes:
        """Download the file at ``url``.

        Args:
            url: Source URL of the uploaded file
            max_bytes: Optional size limit; larger bodies are rejected while streaming

        Returns:
            Raw file bytes

        Raises:
            SourceFetchError: On network errors, non-2xx responses or timeout
            PolicyExceeded: If the body is larger than ``max_bytes``
        """
        try:
            return await asyncio.wait_for(
                self._download(url, max_bytes), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise SourceFetchError(
                f"Fetching {url} exceeded {self._timeout_seconds}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                f"Fetching {url} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Fetching {url} failed: {type(e).__name__}") from e

    async def _download(self, url: str, max_bytes: int | None) -> bytes:
        async with self._client.stream("GET", url) as response:
            response.raise_for_status()

            declared = response.headers.get("content-length")
            if max_bytes is not None and declared is not None and declared.isdigit():
                if int(declared) > max_bytes:
                    raise PolicyExceeded("file_too_large", int(declared), max_bytes)

            body = bytearray()
            async for block in response.aiter_bytes():
                body.extend(block)
                if max_bytes is not None and len(body) > max_bytes:
                    raise PolicyExceeded("file_too_large", len(body), max_bytes)

        logger.debug(f"Fetched {len(body)} bytes from {url}")
        return bytes(body)
