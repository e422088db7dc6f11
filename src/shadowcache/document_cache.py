"""Crash-resilient shadow copies of open documents.

``DocumentCache`` keeps one backing file per tracked document inside the
active cache directory, plus a ``mapping`` file naming the original path of
each. Opening a directory that still holds a mapping means the previous
session never reached ``close()``; that residue is archived as a backup and
exposed through ``previous_cache`` so the host can offer recovery.

Absence is benign (missing mapping, missing cache file on remove). Write
failures are raised as ``ShadowCacheError`` without rolling back the in-memory
association, so the next successful save brings the mapping file back in sync.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from shadowcache.backups import BackupRotator
from shadowcache.config import CacheSettings
from shadowcache.errors import ErrorCode, ShadowCacheError
from shadowcache.identifiers import IdentifierGenerator
from shadowcache.mapping import MappingStore
from shadowcache.models.mapping import MappingEntry, RecoveredFile

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from types import TracebackType

    from shadowcache.protocols import Document, DocumentWriter, Ordering

log = structlog.get_logger()


class DocumentCache:
    """Shadows host documents as files in a single active cache directory."""

    def __init__(
        self,
        settings: CacheSettings | None = None,
        ordering: Ordering | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or CacheSettings()
        self._path = self._settings.active_path
        self._ordering = ordering
        # Insertion-ordered; also the fallback ordering
        self._identifiers: dict[Document, str] = {}
        self._closed = False

        self._mapping = MappingStore()
        self._generator = IdentifierGenerator(
            prefix=self._settings.identifier_prefix,
            width=self._settings.identifier_width,
            max_attempts=self._settings.identifier_max_attempts,
        )
        self._rotator = BackupRotator(
            self._path,
            retention=self._settings.backup_retention,
            clock=clock,
            mapping_filename=self._mapping.filename,
        )

        try:
            self._path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot create cache directory {self._path}: {exc.strerror or exc}",
            ) from exc

        self._previous_cache: Path | None = None
        if self._rotator.has_residue():
            self._previous_cache = self._rotator.rotate()
            log.warning("crash_residue_archived", backup=str(self._previous_cache))
        log.info("cache_opened", path=str(self._path), clean=self.is_clean())

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def previous_cache(self) -> Path | None:
        """Backup holding the previous session's residue, or None when clean."""
        return self._previous_cache

    @property
    def rotator(self) -> BackupRotator:
        return self._rotator

    def is_clean(self) -> bool:
        return self._previous_cache is None

    def is_writable(self) -> bool:
        return os.access(self._path, os.W_OK) and os.access(self._path.parent, os.W_OK)

    def set_ordering(self, ordering: Ordering | None) -> None:
        self._ordering = ordering

    def identifier_for(self, document: Document) -> str | None:
        return self._identifiers.get(document)

    def cache_file_for(self, document: Document) -> Path | None:
        identifier = self._identifiers.get(document)
        return None if identifier is None else self._path / identifier

    def __contains__(self, document: object) -> bool:
        return document in self._identifiers

    def __len__(self) -> int:
        return len(self._identifiers)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def add(self, document: Document) -> str:
        """Start tracking *document* and return its identifier."""
        self._require_open()
        existing = self._identifiers.get(document)
        if existing is not None:
            return existing

        identifier = self._generator.next(self._path, reserved=self._identifiers.values())
        self._identifiers[document] = identifier
        document.add_listener(self)
        log.debug("document_tracked", identifier=identifier, path=document.path)
        self.update_mapping()
        return identifier

    def remove(self, document: Document) -> None:
        """Stop tracking *document* and delete its cache file."""
        self._require_open()
        identifier = self._identifiers.pop(document, None)
        if identifier is None:
            return
        document.remove_listener(self)
        log.debug("document_untracked", identifier=identifier)
        self.update_mapping()

        cache_file = self._path / identifier
        try:
            cache_file.unlink(missing_ok=True)
        except OSError:
            log.warning("cache_file_remove_error", path=str(cache_file), exc_info=True)

    def update_mapping(self) -> None:
        """Rewrite the mapping file from the current ordering."""
        self._require_open()
        documents = self._ordering if self._ordering is not None else list(self._identifiers)
        entries = []
        for index in range(len(documents)):
            document = documents[index]
            identifier = self._identifiers.get(document)
            if identifier is None:
                continue
            entries.append(MappingEntry(identifier=identifier, original_path=document.path))
        self._mapping.save(self._path, entries)

    # ------------------------------------------------------------------
    # Cache file content
    # ------------------------------------------------------------------

    def replace_cache_file(self, document: Document, source: str | os.PathLike[str]) -> None:
        """Copy *source* over the document's cache file."""
        self._require_open()
        cache_file = self._require_cache_file(document)
        source_path = Path(source)
        if source_path == cache_file or (
            source_path.exists() and cache_file.exists() and source_path.samefile(cache_file)
        ):
            return
        tmp_file = cache_file.with_name(cache_file.name + ".tmp")
        try:
            # The old copy survives until the new one is complete
            shutil.copyfile(source_path, tmp_file)
            os.replace(tmp_file, cache_file)
        except OSError as exc:
            tmp_file.unlink(missing_ok=True)
            log.warning(
                "cache_file_copy_error",
                source=str(source_path),
                target=str(cache_file),
                exc_info=True,
            )
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot copy {source_path} to {cache_file}: {exc.strerror or exc}",
                recoverable=True,
            ) from exc

    def write_cache_file(self, document: Document, writer: DocumentWriter) -> None:
        """Have *writer* serialize the document into its cache file, then close it."""
        try:
            self._require_open()
            cache_file = self._require_cache_file(document)
            writer.set_target_path(str(cache_file))
            writer.write()
        except OSError as exc:
            log.warning("cache_file_write_error", path=str(cache_file), exc_info=True)
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot write cache file {cache_file}: {exc.strerror or exc}",
                recoverable=True,
            ) from exc
        finally:
            writer.close()

    # ------------------------------------------------------------------
    # Document notifications
    # ------------------------------------------------------------------

    def on_path_changed(self, document: Document) -> None:
        if document in self._identifiers:
            self.update_mapping()

    def on_write_requested(self, document: Document, writer: DocumentWriter) -> None:
        self.write_cache_file(document, writer)

    def on_replace_requested(self, document: Document, source: str) -> None:
        self.replace_cache_file(document, source)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def parse_mapping(self) -> list[RecoveredFile]:
        """Documents recorded by the previous session, or by this one when clean."""
        directory = self._previous_cache or self._path
        return [
            RecoveredFile(original_path=entry.original_path, cache_file=directory / entry.identifier)
            for entry in self._mapping.load(directory)
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> Path | None:
        """Archive this session's cache. Returns the backup path, if one was made."""
        if self._closed:
            return None
        self._closed = True
        for document in list(self._identifiers):
            document.remove_listener(self)
        self._identifiers.clear()

        if self._rotator.is_empty():
            log.info("cache_closed", path=str(self._path), backup=None)
            return None
        backup = self._rotator.rotate()
        log.info("cache_closed", path=str(self._path), backup=str(backup))
        return backup

    def __enter__(self) -> DocumentCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _require_open(self) -> None:
        if self._closed:
            raise ShadowCacheError(ErrorCode.CLOSED, f"Cache at {self._path} is closed")

    def _require_cache_file(self, document: Document) -> Path:
        cache_file = self.cache_file_for(document)
        if cache_file is None:
            raise ShadowCacheError(
                ErrorCode.NOT_TRACKED,
                f"Document {document.path!r} is not tracked by this cache",
            )
        return cache_file
