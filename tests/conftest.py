"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

from localimages.config import LocalImagesSettings
from localimages.fetcher import Fetcher
from localimages.vault import FileSystemVault
from tests.samples import PNG_BYTES

# =============================================================================
# Vault Fixtures
# =============================================================================


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Empty vault directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def vault(vault_dir: Path) -> FileSystemVault:
    return FileSystemVault(vault_dir)


@pytest.fixture
def settings() -> LocalImagesSettings:
    return LocalImagesSettings()


# =============================================================================
# Network Fixtures
# =============================================================================


@dataclass
class FakeImageServer:
    """Serves canned responses through ``httpx.MockTransport``.

    ``routes`` maps URL -> (status, body, content type). URLs listed in
    ``broken`` raise a connection error. Every request is recorded.
    """

    routes: dict[str, tuple[int, bytes, str]] = field(default_factory=dict)
    broken: set[str] = field(default_factory=set)
    requests: list[str] = field(default_factory=list)

    def add(
        self,
        url: str,
        body: bytes = PNG_BYTES,
        content_type: str = "image/png",
        status: int = 200,
    ) -> None:
        self.routes[url] = (status, body, content_type)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.broken:
            raise httpx.ConnectError("Connection refused", request=request)
        if url not in self.routes:
            return httpx.Response(404, content=b"not found", request=request)
        status, body, content_type = self.routes[url]
        headers = {"Content-Type": content_type} if content_type else {}
        return httpx.Response(status, content=body, headers=headers, request=request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fetcher_factory(self) -> Callable[[LocalImagesSettings], Fetcher]:
        """Factory suitable for ``LocalImagesPlugin(fetcher_factory=...)``."""
        return lambda settings: Fetcher(settings, transport=self.transport)


@pytest.fixture
def server() -> FakeImageServer:
    return FakeImageServer()
