"""Unit tests for the filesystem collaborators."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from localimages.errors import DocumentIOError, PersistenceError
from localimages.vault import (
    DataStore,
    DocumentStore,
    FileLookup,
    FileSystemVault,
    JsonDataStore,
    Notifier,
    LogNotifier,
    normalize_vault_path,
)


class TestNormalizeVaultPath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("notes/a.md", "notes/a.md"),
            ("./notes//a.md", "notes/a.md"),
            ("notes\\sub\\a.md", "notes/sub/a.md"),
            ("", ""),
            (".", ""),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_vault_path(raw) == expected


class TestFileSystemVault:
    def test_implements_protocols(self, vault: FileSystemVault) -> None:
        assert isinstance(vault, DocumentStore)
        assert isinstance(vault, FileLookup)
        assert isinstance(LogNotifier(), Notifier)

    def test_resolve_rejects_escape(self, vault: FileSystemVault) -> None:
        with pytest.raises(ValueError):
            vault.resolve("../outside.md")

    def test_exists_and_size(self, vault: FileSystemVault, vault_dir: Path) -> None:
        (vault_dir / "a.png").write_bytes(b"1234")

        assert vault.exists("a.png")
        assert vault.size("a.png") == 4
        assert not vault.exists("b.png")
        assert vault.size("b.png") is None
        assert not vault.exists("../a.png")

    def test_directories_are_not_files(self, vault: FileSystemVault, vault_dir: Path) -> None:
        (vault_dir / "folder").mkdir()
        assert not vault.exists("folder")

    def test_relative(self, vault: FileSystemVault, vault_dir: Path) -> None:
        assert vault.relative(vault_dir / "notes" / "a.md") == "notes/a.md"

    @pytest.mark.asyncio
    async def test_document_round_trip_keeps_newlines(
        self, vault: FileSystemVault, vault_dir: Path
    ) -> None:
        (vault_dir / "note.md").write_bytes("a\r\nü\n".encode())

        text = await vault.read_document("note.md")
        assert text == "a\r\nü\n"

        await vault.write_document("note.md", text + "b\r\n")
        assert (vault_dir / "note.md").read_bytes() == "a\r\nü\nb\r\n".encode()

    @pytest.mark.asyncio
    async def test_read_missing_document(self, vault: FileSystemVault) -> None:
        with pytest.raises(DocumentIOError) as exc_info:
            await vault.read_document("missing.md")
        assert exc_info.value.document_path == "missing.md"

    @pytest.mark.asyncio
    async def test_read_non_utf8_document(self, vault: FileSystemVault, vault_dir: Path) -> None:
        (vault_dir / "bad.md").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(DocumentIOError):
            await vault.read_document("bad.md")

    @pytest.mark.asyncio
    async def test_write_bytes_and_read_back(self, vault: FileSystemVault) -> None:
        await vault.write_bytes("attachments/x.png", b"data")
        assert await vault.read_bytes("attachments/x.png") == b"data"


class TestJsonDataStore:
    def test_default_location(self, vault: FileSystemVault, vault_dir: Path) -> None:
        store = JsonDataStore.for_vault(vault)

        assert isinstance(store, DataStore)
        assert store.path == vault.root / ".localimages" / "data.json"

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path: Path) -> None:
        assert await JsonDataStore(tmp_path / "data.json").load() is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path: Path) -> None:
        store = JsonDataStore(tmp_path / "sub" / "data.json")
        await store.save({"settings": {}, "processedImageUrls": {"u": {"filePath": "p"}}})

        assert await store.load() == {
            "settings": {},
            "processedImageUrls": {"u": {"filePath": "p"}},
        }

    @pytest.mark.asyncio
    async def test_corrupt_json(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceError):
            await JsonDataStore(path).load()

    @pytest.mark.asyncio
    async def test_non_object_json(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text(json.dumps([1, 2]))

        with pytest.raises(PersistenceError, match="JSON object"):
            await JsonDataStore(path).load()

    @pytest.mark.asyncio
    async def test_save_failure_wrapped(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = JsonDataStore(blocker / "data.json")  # parent is a file

        with pytest.raises(PersistenceError):
            await store.save({})
