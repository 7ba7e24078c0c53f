"""Host collaborators: document access, file lookup, data store, notifications.

The engine only talks to these protocols. ``FileSystemVault`` and
``JsonDataStore`` implement them on top of a plain directory of Markdown
notes so the engine can run outside any editor.
"""

from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

import aiofiles
from loguru import logger

from localimages.constants import (
    DATA_DIRNAME,
    DATA_FILENAME,
    MAX_DATA_FILE_SIZE,
    MAX_DOCUMENT_SIZE,
)
from localimages.errors import DocumentIOError, PersistenceError
from localimages.security import (
    atomic_write_bytes_async,
    atomic_write_json_async,
    atomic_write_text_async,
    validate_file_size,
    validate_path_within_base,
)


@runtime_checkable
class DocumentStore(Protocol):
    """Read and replace whole documents by their vault-relative path."""

    async def read_document(self, path: str) -> str: ...

    async def write_document(self, path: str, text: str) -> None: ...


@runtime_checkable
class FileLookup(Protocol):
    """Answer questions about stored files by vault-relative path."""

    def exists(self, path: str) -> bool: ...

    def size(self, path: str) -> int | None: ...

    async def read_bytes(self, path: str) -> bytes: ...


@runtime_checkable
class DataStore(Protocol):
    """Load/save one opaque JSON-like blob at plugin scope."""

    async def load(self) -> dict[str, Any] | None: ...

    async def save(self, data: dict[str, Any]) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget user-facing messages."""

    def notify(self, message: str) -> None: ...


class LogNotifier:
    """Notifier that only writes to the log."""

    def notify(self, message: str) -> None:
        logger.info(message)


def normalize_vault_path(path: str) -> str:
    """Normalize a vault-relative path to POSIX form without leading './'."""
    normalized = PurePosixPath(path.replace("\\", "/"))
    parts = [p for p in normalized.parts if p not in ("", ".")]
    if not parts:
        return ""
    return str(PurePosixPath(*parts))


class FileSystemVault:
    """A directory of notes and attachments addressed by relative POSIX paths."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Map a vault-relative path to an absolute path inside the vault.

        Raises:
            ValueError: If the path escapes the vault root
        """
        relative = normalize_vault_path(path)
        target = self.root / relative if relative else self.root
        return validate_path_within_base(target, self.root)

    def relative(self, absolute: Path) -> str:
        """Inverse of resolve()."""
        return Path(absolute).resolve().relative_to(self.root).as_posix()

    # FileLookup

    def exists(self, path: str) -> bool:
        try:
            return self.resolve(path).is_file()
        except ValueError:
            return False

    def size(self, path: str) -> int | None:
        try:
            return self.resolve(path).stat().st_size
        except (OSError, ValueError):
            return None

    async def read_bytes(self, path: str) -> bytes:
        async with aiofiles.open(self.resolve(path), "rb") as f:
            return await f.read()

    async def write_bytes(self, path: str, data: bytes) -> None:
        await atomic_write_bytes_async(self.resolve(path), data)

    # DocumentStore

    async def read_document(self, path: str) -> str:
        try:
            target = self.resolve(path)
            validate_file_size(target, MAX_DOCUMENT_SIZE)
            async with aiofiles.open(target, "r", encoding="utf-8", newline="") as f:
                return await f.read()
        except (OSError, ValueError, UnicodeDecodeError) as e:
            raise DocumentIOError(
                f"Cannot read document {path}: {e}", document_path=path
            ) from e

    async def write_document(self, path: str, text: str) -> None:
        try:
            await atomic_write_text_async(self.resolve(path), text)
        except (OSError, ValueError) as e:
            raise DocumentIOError(
                f"Cannot write document {path}: {e}", document_path=path
            ) from e


class JsonDataStore:
    """Plugin data persisted as a single JSON file, saved atomically."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @classmethod
    def for_vault(cls, vault: FileSystemVault) -> JsonDataStore:
        """Default location: ``<vault>/.localimages/data.json``."""
        return cls(vault.root / DATA_DIRNAME / DATA_FILENAME)

    async def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            logger.debug(f"No plugin data at {self.path}, using defaults")
            return None
        try:
            validate_file_size(self.path, MAX_DATA_FILE_SIZE)
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
            data = json.loads(content) if content.strip() else None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot load plugin data: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise PersistenceError(
                f"Plugin data must be a JSON object, got {type(data).__name__}"
            )
        return data

    async def save(self, data: dict[str, Any]) -> None:
        try:
            await atomic_write_json_async(self.path, data)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot save plugin data: {e}") from e
        logger.debug(f"Saved plugin data to {self.path}")
