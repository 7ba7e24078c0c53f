"""Unit tests for the plugin lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from localimages.config import ImageMeta
from localimages.constants import (
    COMMAND_DOWNLOAD_CURRENT_NOTE,
    COMMAND_DOWNLOAD_CURRENT_NOTE_NAME,
    NO_DOCUMENT_MESSAGE,
    NO_DOCUMENT_SHORTCUT_MESSAGE,
    SHORTCUT_ICON,
    SHORTCUT_TOOLTIP,
)
from localimages.errors import PersistenceError
from localimages.plugin import (
    LocalImagesPlugin,
    MemoryShortcutHost,
    ShortcutToggle,
    open_plugin,
)
from tests.conftest import FakeImageServer

URL = "https://example.com/a.png"


class MemoryDataStore:
    """DataStore keeping the blob in memory."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = data
        self.saves = 0

    async def load(self) -> dict[str, Any] | None:
        return self.data

    async def save(self, data: dict[str, Any]) -> None:
        self.saves += 1
        self.data = data


@pytest.fixture
def store() -> MemoryDataStore:
    return MemoryDataStore()


@pytest.fixture
def host() -> MemoryShortcutHost:
    return MemoryShortcutHost()


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_plugin(vault_dir: Path, store: MemoryDataStore, host: MemoryShortcutHost, notifier: MagicMock, server: FakeImageServer):
    def _make(active: str | None = None) -> LocalImagesPlugin:
        return LocalImagesPlugin(
            vault_dir,
            data_store=store,
            notifier=notifier,
            shortcut_host=host,
            active_document=lambda: active,
            fetcher_factory=server.fetcher_factory(),
        )

    return _make


class TestShortcutToggle:
    def test_show_is_idempotent(self, host: MemoryShortcutHost) -> None:
        toggle = ShortcutToggle(host, AsyncMock())

        assert toggle.show() is True
        assert toggle.show() is False
        assert toggle.state == "shown"
        assert len(host.shortcuts) == 1

    def test_hide_is_idempotent(self, host: MemoryShortcutHost) -> None:
        toggle = ShortcutToggle(host, AsyncMock())

        assert toggle.hide() is False
        toggle.show()
        assert toggle.hide() is True
        assert toggle.hide() is False
        assert toggle.state == "hidden"
        assert host.shortcuts == []

    def test_sync_never_stacks(self, host: MemoryShortcutHost) -> None:
        toggle = ShortcutToggle(host, AsyncMock())

        for enabled in (True, True, False, True, True):
            toggle.sync(enabled)

        assert len(host.shortcuts) == 1

    def test_uses_icon_and_tooltip(self, host: MemoryShortcutHost) -> None:
        ShortcutToggle(host, AsyncMock()).show()

        (shortcut,) = host.shortcuts
        assert shortcut.icon == SHORTCUT_ICON
        assert shortcut.tooltip == SHORTCUT_TOOLTIP


class TestLoad:
    @pytest.mark.asyncio
    async def test_defaults_when_nothing_saved(self, make_plugin, host: MemoryShortcutHost) -> None:
        plugin = make_plugin()
        await plugin.load()

        assert plugin.loaded
        assert plugin.settings.show_ribbon_icon is True
        assert len(plugin.registry) == 0
        assert len(host.shortcuts) == 1
        command = plugin.commands[COMMAND_DOWNLOAD_CURRENT_NOTE]
        assert command.name == COMMAND_DOWNLOAD_CURRENT_NOTE_NAME

    @pytest.mark.asyncio
    async def test_partial_blob_filled(self, make_plugin, store: MemoryDataStore, host: MemoryShortcutHost) -> None:
        store.data = {
            "settings": {"showRibbonIcon": False},
            "processedImageUrls": {URL: {"filePath": "attachments/a.png"}},
        }
        plugin = make_plugin()
        await plugin.load()

        assert plugin.settings.show_ribbon_icon is False
        assert plugin.settings.attachment_folder == "attachments"
        assert plugin.registry.lookup(URL).file_path == "attachments/a.png"
        assert host.shortcuts == []

    @pytest.mark.asyncio
    async def test_invalid_blob_raises(self, make_plugin, store: MemoryDataStore) -> None:
        store.data = {"settings": {"maxConcurrency": 0}}

        with pytest.raises(PersistenceError):
            await make_plugin().load()

    @pytest.mark.asyncio
    async def test_load_twice_registers_once(self, make_plugin, host: MemoryShortcutHost) -> None:
        plugin = make_plugin()
        await plugin.load()
        await plugin.load()

        assert len(host.shortcuts) == 1

    def test_settings_before_load(self, make_plugin) -> None:
        with pytest.raises(RuntimeError):
            _ = make_plugin().settings


class TestCommands:
    @pytest.mark.asyncio
    async def test_unknown_command(self, make_plugin) -> None:
        plugin = make_plugin()
        await plugin.load()

        with pytest.raises(KeyError):
            await plugin.run_command("nope")

    @pytest.mark.asyncio
    async def test_no_active_document(self, make_plugin, notifier: MagicMock) -> None:
        plugin = make_plugin(active=None)
        await plugin.load()

        assert await plugin.run_command(COMMAND_DOWNLOAD_CURRENT_NOTE) is None
        notifier.notify.assert_called_once_with(NO_DOCUMENT_MESSAGE)

    @pytest.mark.asyncio
    async def test_non_markdown_document(self, make_plugin, notifier: MagicMock) -> None:
        plugin = make_plugin(active="drawing.canvas")
        await plugin.load()

        assert await plugin.run_command(COMMAND_DOWNLOAD_CURRENT_NOTE) is None
        notifier.notify.assert_called_once_with(NO_DOCUMENT_MESSAGE)

    @pytest.mark.asyncio
    async def test_shortcut_without_document(self, make_plugin, host: MemoryShortcutHost, notifier: MagicMock) -> None:
        plugin = make_plugin(active=None)
        await plugin.load()

        await host.shortcuts[0].callback()

        notifier.notify.assert_called_once_with(NO_DOCUMENT_SHORTCUT_MESSAGE)

    @pytest.mark.asyncio
    async def test_processes_active_document(
        self, make_plugin, vault_dir: Path, store: MemoryDataStore, server: FakeImageServer
    ) -> None:
        server.add(URL)
        (vault_dir / "note.md").write_text(f"![a]({URL})\n", encoding="utf-8")
        plugin = make_plugin(active="note.md")
        await plugin.load()

        report = await plugin.run_command(COMMAND_DOWNLOAD_CURRENT_NOTE)

        assert report.status == "updated"
        assert (vault_dir / "note.md").read_text(encoding="utf-8") == "![a](attachments/a.png)\n"
        assert store.data["processedImageUrls"][URL]["filePath"] == "attachments/a.png"
        assert store.data["settings"]["showRibbonIcon"] is True

    @pytest.mark.asyncio
    async def test_explicit_path_wins(self, make_plugin, vault_dir: Path, server: FakeImageServer) -> None:
        server.add(URL)
        (vault_dir / "other.md").write_text(f"![a]({URL})\n", encoding="utf-8")
        plugin = make_plugin(active="note.md")
        await plugin.load()

        report = await plugin.process_active("other.md")

        assert report.document_path == "other.md"


class TestUnload:
    @pytest.mark.asyncio
    async def test_unload_hides_shortcut(self, make_plugin, host: MemoryShortcutHost, store: MemoryDataStore) -> None:
        plugin = make_plugin()
        await plugin.load()
        await plugin.unload()

        assert host.shortcuts == []
        assert not plugin.loaded
        assert plugin.commands == {}
        # Nothing changed, nothing written
        assert store.saves == 0

    @pytest.mark.asyncio
    async def test_unload_flushes_dirty_registry(self, make_plugin, store: MemoryDataStore) -> None:
        plugin = make_plugin()
        await plugin.load()
        plugin.registry.record(URL, ImageMeta(file_path="attachments/a.png"))
        await plugin.unload()

        assert store.saves == 1
        assert URL in store.data["processedImageUrls"]

    @pytest.mark.asyncio
    async def test_refresh_after_setting_change(self, make_plugin, host: MemoryShortcutHost) -> None:
        plugin = make_plugin()
        await plugin.load()

        plugin.settings.show_ribbon_icon = False
        plugin.refresh_shortcut()
        plugin.refresh_shortcut()
        assert host.shortcuts == []

        plugin.settings.show_ribbon_icon = True
        plugin.refresh_shortcut()
        plugin.refresh_shortcut()
        assert len(host.shortcuts) == 1

    @pytest.mark.asyncio
    async def test_open_plugin_context(self, vault_dir: Path, host: MemoryShortcutHost, store: MemoryDataStore) -> None:
        async with open_plugin(vault_dir, data_store=store, shortcut_host=host) as plugin:
            assert plugin.loaded
            assert len(host.shortcuts) == 1

        assert not plugin.loaded
        assert host.shortcuts == []

    @pytest.mark.asyncio
    async def test_save_round_trip(self, vault_dir: Path, server: FakeImageServer) -> None:
        async with open_plugin(vault_dir, fetcher_factory=server.fetcher_factory()) as plugin:
            plugin.settings.file_naming = "hash"
            plugin.registry.record(URL, ImageMeta(file_path="attachments/a.png", size=3))
            await plugin.save()

        async with open_plugin(vault_dir) as reloaded:
            assert reloaded.settings.file_naming == "hash"
            assert reloaded.registry.lookup(URL).size == 3
