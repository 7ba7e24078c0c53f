"""Per-document orchestration: extract, resolve, rewrite, commit, persist.

The document is read once, every remote URL is resolved (reused from the
registry or downloaded), and only then is the new text built and written
back in a single atomic replace. Per-URL failures leave that URL's text
untouched; only document I/O aborts the pass.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from loguru import logger

from localimages.config import ImageMeta, LocalImagesSettings
from localimages.errors import (
    DocumentIOError,
    FetchError,
    PersistenceError,
    StorageError,
)
from localimages.extractor import ImageReference, extract_references
from localimages.fetcher import Fetcher
from localimages.registry import DownloadRegistry
from localimages.rewriter import Edit, build_edit, rewrite
from localimages.storage import StorageWriter
from localimages.utils.paths import relative_link
from localimages.utils.text import format_error_message
from localimages.vault import DocumentStore, FileSystemVault, LogNotifier, Notifier

ProcessStatus = Literal["nothing_to_do", "unchanged", "updated"]


@dataclass
class ProcessReport:
    """Outcome of one processing pass.

    Counts are per distinct URL, except ``skipped_local`` which counts local
    image references seen in the document.
    """

    document_path: str
    status: ProcessStatus = "nothing_to_do"
    downloaded: int = 0
    reused: int = 0
    failed: int = 0
    skipped_local: int = 0
    failures: dict[str, str] = field(default_factory=dict)  # url -> message
    committed: bool = False
    persistence_error: PersistenceError | None = None

    @property
    def resolved(self) -> int:
        return self.downloaded + self.reused

    def summary(self) -> str:
        """One-line description suitable for a notification."""
        if self.status == "nothing_to_do":
            return f"No remote images found in {self.document_path}"
        parts = [f"{self.downloaded} downloaded", f"{self.reused} reused"]
        if self.failed:
            parts.append(f"{self.failed} failed")
        if self.skipped_local:
            parts.append(f"{self.skipped_local} already local")
        message = f"{self.document_path}: " + ", ".join(parts)
        if self.persistence_error is not None:
            message += " (registry not saved)"
        return message


@dataclass
class _Resolution:
    url: str
    meta: ImageMeta | None = None
    downloaded: bool = False
    error: str | None = None


class ContentProcessor:
    """Run processing passes over documents of one vault.

    Args:
        documents: Reads and commits document text
        vault: Storage for downloaded images
        registry: URL -> ImageMeta mapping shared across passes
        settings: Read-only options for the pass
        persist: Coroutine function that saves the registry (and settings)
        notifier: Receives one summary per pass
        fetcher_factory: Builds the Fetcher used for a pass
    """

    def __init__(
        self,
        *,
        documents: DocumentStore,
        vault: FileSystemVault,
        registry: DownloadRegistry,
        settings: LocalImagesSettings,
        persist: Callable[[], Awaitable[None]],
        notifier: Notifier | None = None,
        fetcher_factory: Callable[[], Fetcher] | None = None,
    ) -> None:
        self._documents = documents
        self._vault = vault
        self._registry = registry
        self._settings = settings
        self._persist = persist
        self._notifier = notifier or LogNotifier()
        self._fetcher_factory = fetcher_factory or (lambda: Fetcher(settings))

    async def process(self, document_path: str) -> ProcessReport:
        """Localize every remote image referenced by ``document_path``.

        Returns:
            ProcessReport describing the pass

        Raises:
            DocumentIOError: The document could not be read or committed
        """
        report = ProcessReport(document_path=document_path)
        try:
            text = await self._documents.read_document(document_path)
        except DocumentIOError as e:
            logger.error(f"Cannot read {document_path}: {e}")
            self._notifier.notify(f"Failed to read {document_path}: {format_error_message(e)}")
            raise

        references = extract_references(
            text,
            include_html=self._settings.include_html_images,
            include_local=True,
        )
        remote = [ref for ref in references if ref.remote]
        report.skipped_local = len(references) - len(remote)
        if not remote:
            logger.info(f"Nothing to do for {document_path}")
            self._notifier.notify(report.summary())
            return report

        urls = list(dict.fromkeys(ref.url for ref in remote))
        logger.info(f"Resolving {len(urls)} remote image(s) in {document_path}")
        resolutions = await self._resolve_all(urls, document_path)

        for resolution in resolutions.values():
            if resolution.meta is None:
                report.failed += 1
                report.failures[resolution.url] = resolution.error or "unknown error"
            elif resolution.downloaded:
                report.downloaded += 1
            else:
                report.reused += 1

        edits = self._build_edits(remote, resolutions, document_path)
        new_text = rewrite(text, edits)

        try:
            if edits and new_text != text:
                await self._commit(document_path, text, new_text)
                report.committed = True
        except DocumentIOError as e:
            logger.error(f"Cannot commit {document_path}: {e}")
            # Downloaded files are valid, keep their registry entries
            await self._save_registry()
            self._notifier.notify(
                f"Failed to update {document_path}: {format_error_message(e)}"
            )
            raise

        report.status = "updated" if report.committed else "unchanged"
        report.persistence_error = await self._save_registry()

        for url, message in report.failures.items():
            logger.warning(f"Skipped {url[:80]}: {message}")
        self._notifier.notify(report.summary())
        return report

    async def _resolve_all(
        self, urls: list[str], document_path: str
    ) -> dict[str, _Resolution]:
        storage = StorageWriter(self._vault, self._settings)
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)

        async with self._fetcher_factory() as fetcher:
            results = await asyncio.gather(
                *(
                    self._resolve(url, document_path, fetcher, storage, semaphore)
                    for url in urls
                )
            )
        return {resolution.url: resolution for resolution in results}

    async def _resolve(
        self,
        url: str,
        document_path: str,
        fetcher: Fetcher,
        storage: StorageWriter,
        semaphore: asyncio.Semaphore,
    ) -> _Resolution:
        async with self._registry.lock(url):
            meta = await self._valid_entry(url)
            if meta is not None:
                logger.debug(f"Reusing {meta.file_path} for {url[:80]}")
                return _Resolution(url=url, meta=meta)

            previous = self._registry.lookup(url)
            try:
                async with semaphore:
                    image = await fetcher.fetch(url)
                path = await storage.store(
                    image.content,
                    url,
                    document_path=document_path,
                    extension=image.extension,
                    replace=previous.file_path if previous else None,
                    is_claimed=lambda p: self._registry.claimed_by(p) not in (None, url),
                )
            except (FetchError, StorageError) as e:
                logger.debug(f"Resolution failed for {url[:80]}: {e}")
                return _Resolution(url=url, error=format_error_message(e))

            meta = ImageMeta(
                file_path=path,
                size=image.size,
                sha256=hashlib.sha256(image.content).hexdigest(),
                content_type=image.content_type or None,
                downloaded_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            )
            self._registry.record(url, meta)
            return _Resolution(url=url, meta=meta, downloaded=True)

    async def _valid_entry(self, url: str) -> ImageMeta | None:
        strict = self._settings.verify_integrity
        meta = self._registry.resolve(url, strict=strict)
        if meta is None:
            return None
        if strict and not await self._registry.verify_fingerprint(meta):
            logger.info(f"Content of {meta.file_path} changed, downloading {url[:80]} again")
            return None
        return meta

    def _link_target(self, file_path: str, document_path: str) -> str:
        if self._settings.link_style == "vault":
            return file_path
        return relative_link(file_path, document_path)

    def _build_edits(
        self,
        references: list[ImageReference],
        resolutions: dict[str, _Resolution],
        document_path: str,
    ) -> list[Edit]:
        edits: list[Edit] = []
        for ref in references:
            meta = resolutions[ref.url].meta
            if meta is None:
                continue
            edits.append(build_edit(ref, self._link_target(meta.file_path, document_path)))
        return edits

    async def _commit(self, document_path: str, original: str, new_text: str) -> None:
        current = await self._documents.read_document(document_path)
        if current != original:
            raise DocumentIOError(
                f"{document_path} changed while images were downloading",
                document_path=document_path,
            )
        await self._documents.write_document(document_path, new_text)
        logger.info(f"Updated {document_path}")

    async def _save_registry(self) -> PersistenceError | None:
        """Persist when dirty; return the error instead of raising."""
        if not self._registry.dirty:
            return None
        try:
            await self._persist()
        except PersistenceError as e:
            logger.error(f"Failed to save registry: {e}")
            return e
        self._registry.mark_clean()
        return None
