"""Mapping file persistence.

The mapping file lists one ``<identifier> <original path>`` pair per line. It
is always regenerated in full from the in-memory association, so it never
needs partial updates.

Reads degrade gracefully: a missing or unreadable file is an empty mapping.
Writes are atomic (temporary sibling + ``os.replace``) and failures are raised
as ``ShadowCacheError`` so the host decides what to do. The previous file
stays in place until the next successful save.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from shadowcache.errors import ErrorCode, ShadowCacheError
from shadowcache.models.mapping import MappingEntry

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

log = structlog.get_logger()

MAPPING_FILENAME = "mapping"
_TMP_SUFFIX = ".tmp"


class MappingStore:
    """Reads and writes the ``mapping`` file of a cache directory."""

    def __init__(self, filename: str = MAPPING_FILENAME) -> None:
        self._filename = filename

    @property
    def filename(self) -> str:
        return self._filename

    def path_in(self, directory: Path) -> Path:
        return directory / self._filename

    def load(self, directory: Path) -> list[MappingEntry]:
        """Parse the mapping file. Returns ``[]`` when absent or unreadable."""
        path = self.path_in(directory)
        try:
            # utf-8-sig strips a leading BOM when present and is a no-op otherwise
            text = path.read_text(encoding="utf-8-sig")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError):
            log.warning("mapping_read_error", path=str(path), exc_info=True)
            return []

        entries: list[MappingEntry] = []
        # read_text applied universal newlines; paths may contain \u2028
        for line in text.split("\n"):
            identifier, _, original_path = line.partition(" ")
            if not identifier:
                continue
            try:
                entries.append(MappingEntry(identifier=identifier, original_path=original_path))
            except ValidationError:
                log.warning("mapping_line_skipped", path=str(path), line=line)
        return entries

    def save(self, directory: Path, entries: Iterable[MappingEntry]) -> None:
        """Overwrite the mapping file with *entries*, in the order given."""
        path = self.path_in(directory)
        tmp_path = path.with_name(path.name + _TMP_SUFFIX)
        lines = [f"{entry.identifier} {entry.original_path}\n" for entry in entries]
        try:
            # utf-8-sig writes the BOM
            with tmp_path.open("w", encoding="utf-8-sig", newline="\n") as fh:
                fh.writelines(lines)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            log.warning("mapping_write_error", path=str(path), exc_info=True)
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot write mapping file {path}: {exc.strerror or exc}",
                recoverable=True,
            ) from exc
        log.debug("mapping_saved", path=str(path), entries=len(lines))
