"""Network retrieval of remote images.

One ``Fetcher`` owns one ``httpx.AsyncClient`` for a processing pass, so
connections to the same host are reused across the batch. Every failure is
classified into a ``FetchError`` subclass; nothing is retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType

import httpx
from loguru import logger

from localimages.config import LocalImagesSettings
from localimages.errors import (
    FetchStatusError,
    FetchTransportError,
    InvalidContentError,
)
from localimages.utils.mime import (
    clean_content_type,
    detect_image_extension,
    get_extension_from_mime,
    get_extension_from_url,
    is_image_mime,
)


@dataclass
class FetchedImage:
    """Bytes of one downloaded image plus what we learned about them."""

    url: str  # URL as requested
    content: bytes
    content_type: str  # cleaned Content-Type header, may be empty
    extension: str  # best guess, always with a leading dot

    @property
    def size(self) -> int:
        return len(self.content)


class Fetcher:
    """Download image bytes with validation.

    Usage:
        async with Fetcher(settings) as fetcher:
            image = await fetcher.fetch("https://example.com/a.png")

    Args:
        settings: Timeout, user agent and size/content-type policy
        client: Pre-built client. A client passed in is not closed by the
            fetcher.
        transport: Transport for the client the fetcher builds itself
            (``httpx.MockTransport`` in tests)
    """

    def __init__(
        self,
        settings: LocalImagesSettings,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._transport = transport
        self._owns_client = client is None

    async def __aenter__(self) -> Fetcher:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._settings.user_agent},
                follow_redirects=True,
                timeout=self._settings.request_timeout,
                transport=self._transport,
            )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchedImage:
        """Fetch ``url`` and return its validated body.

        Raises:
            FetchTransportError: Network failure or timeout
            FetchStatusError: Non-2xx response
            InvalidContentError: Empty, oversized or non-image body
        """
        if self._client is None:
            raise RuntimeError("Fetcher is not open; use 'async with Fetcher(...)'")

        max_bytes = self._settings.max_image_bytes
        try:
            async with self._client.stream(
                "GET",
                url,
                follow_redirects=True,
                timeout=self._settings.request_timeout,
            ) as response:
                if not response.is_success:
                    raise FetchStatusError(
                        f"HTTP {response.status_code} downloading {url}",
                        url=url,
                        status_code=response.status_code,
                    )

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise InvalidContentError(
                        f"Image too large: {int(declared)} bytes (max {max_bytes})",
                        url=url,
                    )

                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > max_bytes:
                        raise InvalidContentError(
                            f"Image too large: more than {max_bytes} bytes",
                            url=url,
                        )
                    chunks.append(chunk)
                content_type = clean_content_type(response.headers.get("Content-Type"))
        except httpx.TimeoutException as e:
            raise FetchTransportError(f"Timeout downloading {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchTransportError(f"Failed to download {url}: {e}", url=url) from e

        content = b"".join(chunks)
        if not content:
            raise InvalidContentError(f"Empty response body from {url}", url=url)

        sniffed = detect_image_extension(content)
        if self._settings.require_image_content_type and not (
            is_image_mime(content_type) or sniffed
        ):
            raise InvalidContentError(
                f"Not an image: {url} (Content-Type: {content_type or 'missing'})",
                url=url,
            )

        extension = (
            sniffed
            or get_extension_from_mime(content_type)
            or get_extension_from_url(url)
            or ".bin"
        )
        logger.debug(f"Fetched {url[:80]} ({len(content)} bytes, {content_type or '?'})")
        return FetchedImage(
            url=url,
            content=content,
            content_type=content_type,
            extension=extension,
        )
