"""Structured error classes for the image localization engine.

Each error type tells the orchestrator whether a failure is confined to a
single image reference or fatal to the whole invocation.

Error Hierarchy:
    LocalImagesError (base)
    ├── FetchError (one URL skipped)
    │   ├── FetchTransportError (network/timeout, retryable on a later run)
    │   ├── FetchStatusError (non-2xx response)
    │   └── InvalidContentError (empty, oversized or non-image body)
    ├── StorageError (one URL skipped, no partial file left behind)
    ├── DocumentIOError (fatal, nothing committed)
    └── PersistenceError (reported, document commit is kept)

Usage:
    try:
        image = await fetcher.fetch(url)
    except FetchStatusError as e:
        print(f"HTTP {e.status_code} for {e.url}")
    except FetchError as e:
        print(f"Skipping {e.url}: {e}")
"""

from __future__ import annotations


class LocalImagesError(Exception):
    """Base exception for all localimages errors.

    Attributes:
        retryable: Whether running the same operation later may succeed
    """

    retryable: bool = False


class FetchError(LocalImagesError):
    """Base class for failures while retrieving a remote image.

    Attributes:
        url: The URL that failed
    """

    __slots__ = ("url",)

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class FetchTransportError(FetchError):
    """Network-level failure (DNS, connection reset, timeout).

    Not retried automatically within a pass; the next run tries again.
    """

    retryable = True


class FetchStatusError(FetchError):
    """Server answered with a non-2xx status code.

    Attributes:
        status_code: HTTP status returned by the server
    """

    __slots__ = ("status_code",)

    def __init__(self, message: str, *, url: str, status_code: int) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code
        # 5xx and 429 are often transient
        self.retryable = status_code >= 500 or status_code == 429


class InvalidContentError(FetchError):
    """Response body failed a sanity check (empty, too large, not an image)."""


class StorageError(LocalImagesError):
    """Writing an artifact to local storage failed.

    Attributes:
        path: Destination path that could not be written (if known)
    """

    __slots__ = ("path",)

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class DocumentIOError(LocalImagesError):
    """Reading or committing the document itself failed."""

    __slots__ = ("document_path",)

    def __init__(self, message: str, *, document_path: str) -> None:
        super().__init__(message)
        self.document_path = document_path


class PersistenceError(LocalImagesError):
    """Loading or saving the plugin data blob failed."""

    retryable = True
