"""Plugin lifecycle: load data, expose the command, manage the shortcut."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Literal, Protocol

from loguru import logger

from localimages.config import LocalImagesSettings, PluginData, load_plugin_data
from localimages.constants import (
    COMMAND_DOWNLOAD_CURRENT_NOTE,
    COMMAND_DOWNLOAD_CURRENT_NOTE_NAME,
    MARKDOWN_EXTENSIONS,
    NO_DOCUMENT_MESSAGE,
    NO_DOCUMENT_SHORTCUT_MESSAGE,
    SHORTCUT_ICON,
    SHORTCUT_TOOLTIP,
)
from localimages.errors import PersistenceError
from localimages.fetcher import Fetcher
from localimages.processor import ContentProcessor, ProcessReport
from localimages.registry import DownloadRegistry
from localimages.vault import (
    DataStore,
    FileSystemVault,
    JsonDataStore,
    LogNotifier,
    Notifier,
    normalize_vault_path,
)

ShortcutState = Literal["hidden", "shown"]
CommandCallback = Callable[[str | None], Awaitable[ProcessReport | None]]


class ShortcutHost(Protocol):
    """Surface that can display a clickable shortcut (a ribbon icon)."""

    def add_shortcut(
        self, icon: str, tooltip: str, callback: Callable[[], Awaitable[Any]]
    ) -> Any: ...

    def remove_shortcut(self, handle: Any) -> None: ...


@dataclass
class Shortcut:
    icon: str
    tooltip: str
    callback: Callable[[], Awaitable[Any]]


class MemoryShortcutHost:
    """ShortcutHost that keeps shortcuts in a list (headless use)."""

    def __init__(self) -> None:
        self.shortcuts: list[Shortcut] = []

    def add_shortcut(
        self, icon: str, tooltip: str, callback: Callable[[], Awaitable[Any]]
    ) -> Shortcut:
        shortcut = Shortcut(icon=icon, tooltip=tooltip, callback=callback)
        self.shortcuts.append(shortcut)
        return shortcut

    def remove_shortcut(self, handle: Shortcut) -> None:
        if handle in self.shortcuts:
            self.shortcuts.remove(handle)


class ShortcutToggle:
    """Two-state holder for the optional shortcut.

    ``show()`` while shown and ``hide()`` while hidden do nothing, so
    repeated settings changes never stack duplicate shortcuts.
    """

    def __init__(
        self,
        host: ShortcutHost,
        callback: Callable[[], Awaitable[Any]],
        icon: str = SHORTCUT_ICON,
        tooltip: str = SHORTCUT_TOOLTIP,
    ) -> None:
        self._host = host
        self._callback = callback
        self._icon = icon
        self._tooltip = tooltip
        self._handle: Any = None

    @property
    def state(self) -> ShortcutState:
        return "hidden" if self._handle is None else "shown"

    def show(self) -> bool:
        """Create the shortcut. Returns False if it was already shown."""
        if self._handle is not None:
            return False
        self._handle = self._host.add_shortcut(self._icon, self._tooltip, self._callback)
        return True

    def hide(self) -> bool:
        """Remove the shortcut. Returns False if it was already hidden."""
        if self._handle is None:
            return False
        handle, self._handle = self._handle, None
        self._host.remove_shortcut(handle)
        return True

    def sync(self, enabled: bool) -> bool:
        """Show or hide to match ``enabled``; True if the state changed."""
        return self.show() if enabled else self.hide()


@dataclass(frozen=True)
class Command:
    id: str
    name: str
    callback: CommandCallback


class LocalImagesPlugin:
    """Host-facing entry point.

    Collaborators are injected; anything left out gets the filesystem
    default for ``vault_root``.

    Usage:
        plugin = LocalImagesPlugin("~/notes")
        await plugin.load()
        report = await plugin.run_command(
            "download-local-images-current-note", "daily/today.md"
        )
        await plugin.unload()
    """

    def __init__(
        self,
        vault_root: Path | str,
        *,
        data_store: DataStore | None = None,
        notifier: Notifier | None = None,
        shortcut_host: ShortcutHost | None = None,
        active_document: Callable[[], str | None] | None = None,
        fetcher_factory: Callable[[LocalImagesSettings], Fetcher] | None = None,
    ) -> None:
        self.vault = FileSystemVault(vault_root)
        self.data_store = data_store or JsonDataStore.for_vault(self.vault)
        self.notifier = notifier or LogNotifier()
        self.shortcut_host = shortcut_host or MemoryShortcutHost()
        self._active_document = active_document or (lambda: None)
        self._fetcher_factory = fetcher_factory or Fetcher

        self.data: PluginData | None = None
        self.registry: DownloadRegistry | None = None
        self.processor: ContentProcessor | None = None
        self.commands: dict[str, Command] = {}
        self.shortcut = ShortcutToggle(self.shortcut_host, self._on_shortcut)

    @property
    def loaded(self) -> bool:
        return self.data is not None

    @property
    def settings(self) -> LocalImagesSettings:
        if self.data is None:
            raise RuntimeError("Plugin is not loaded")
        return self.data.settings

    async def load(self) -> None:
        """Load persisted data, build the processor and register commands."""
        if self.loaded:
            return
        logger.info(f"Loading localimages for vault {self.vault.root}")
        raw = await self.data_store.load()
        try:
            self.data = load_plugin_data(raw)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Invalid plugin data: {e}") from e
        self.registry = DownloadRegistry(self.vault, self.data.processed_image_urls)
        settings = self.data.settings
        self.processor = ContentProcessor(
            documents=self.vault,
            vault=self.vault,
            registry=self.registry,
            settings=settings,
            persist=self.save,
            notifier=self.notifier,
            fetcher_factory=lambda: self._fetcher_factory(settings),
        )
        self.commands = {
            COMMAND_DOWNLOAD_CURRENT_NOTE: Command(
                id=COMMAND_DOWNLOAD_CURRENT_NOTE,
                name=COMMAND_DOWNLOAD_CURRENT_NOTE_NAME,
                callback=self.process_active,
            )
        }
        self.refresh_shortcut()
        logger.debug(f"Loaded {len(self.registry)} registry entries")

    async def unload(self) -> None:
        """Remove the shortcut and flush unsaved registry entries."""
        if not self.loaded:
            return
        self.shortcut.hide()
        if self.registry is not None and self.registry.dirty:
            try:
                await self.save()
            except PersistenceError as e:
                logger.error(f"Failed to save plugin data on unload: {e}")
        self.commands = {}
        self.processor = None
        self.registry = None
        self.data = None
        logger.info("Unloaded localimages")

    async def save(self) -> None:
        """Write settings and registry to the data store.

        Raises:
            PersistenceError: If the data store cannot be written
        """
        if self.data is None or self.registry is None:
            raise RuntimeError("Plugin is not loaded")
        self.data.processed_image_urls = dict(self.registry.items())
        await self.data_store.save(self.data.to_json_dict())
        self.registry.mark_clean()

    def refresh_shortcut(self) -> None:
        """Match the shortcut to the current ``showRibbonIcon`` setting."""
        self.shortcut.sync(self.settings.show_ribbon_icon)

    async def run_command(
        self, command_id: str, document_path: str | None = None
    ) -> ProcessReport | None:
        """Invoke a registered command by id.

        Raises:
            KeyError: If no command has that id
        """
        command = self.commands.get(command_id)
        if command is None:
            raise KeyError(f"Unknown command: {command_id}")
        return await command.callback(document_path)

    async def process_active(
        self, document_path: str | None = None
    ) -> ProcessReport | None:
        """Process ``document_path`` or, when omitted, the active document."""
        return await self._process(document_path, NO_DOCUMENT_MESSAGE)

    async def _on_shortcut(self) -> ProcessReport | None:
        return await self._process(None, NO_DOCUMENT_SHORTCUT_MESSAGE)

    async def _process(
        self, document_path: str | None, missing_message: str
    ) -> ProcessReport | None:
        if self.processor is None:
            raise RuntimeError("Plugin is not loaded")
        path = document_path or self._active_document()
        if not path or PurePosixPath(path).suffix.lower() not in MARKDOWN_EXTENSIONS:
            self.notifier.notify(missing_message)
            return None
        return await self.processor.process(normalize_vault_path(path))


@asynccontextmanager
async def open_plugin(
    vault_root: Path | str, **kwargs: Any
) -> AsyncIterator[LocalImagesPlugin]:
    """Load a plugin for the duration of a block, unloading it afterwards."""
    plugin = LocalImagesPlugin(vault_root, **kwargs)
    await plugin.load()
    try:
        yield plugin
    finally:
        await plugin.unload()
