"""Timestamped archival of cache directories.

A backup is the whole active directory renamed to a sibling named after the
UTC time of the rotation (``yyyyMMddHHmmss``), with ``-N`` appended when that
second is already taken. The rename is a single ``os.rename`` so no reader
ever sees a half-moved directory.

Retention is best-effort: a backup that cannot be deleted is logged and left
behind, and the rotation still succeeds.
"""

from __future__ import annotations

import os
import re
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from shadowcache.errors import ErrorCode, ShadowCacheError
from shadowcache.mapping import MAPPING_FILENAME
from shadowcache.models.backup import BackupInfo

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

_STAMP_FORMAT = "%Y%m%d%H%M%S"
_BACKUP_NAME = re.compile(r"^(?P<stamp>\d{14})(?:-(?P<seq>\d+))?$")

DEFAULT_RETENTION = 5


def _utc_now() -> datetime:
    return datetime.now(UTC)


def parse_backup_name(name: str) -> tuple[datetime, int] | None:
    """Return ``(created_at, sequence)`` for a backup name, or None."""
    match = _BACKUP_NAME.match(name)
    if match is None:
        return None
    try:
        created_at = datetime.strptime(match["stamp"], _STAMP_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None
    return created_at, int(match["seq"] or 0)


class BackupRotator:
    def __init__(
        self,
        active_dir: Path,
        retention: int = DEFAULT_RETENTION,
        clock: Callable[[], datetime] | None = None,
        mapping_filename: str = MAPPING_FILENAME,
    ) -> None:
        self._active_dir = Path(active_dir)
        self._retention = retention
        self._clock = clock or _utc_now
        self._mapping_filename = mapping_filename

    @property
    def active_dir(self) -> Path:
        return self._active_dir

    @property
    def backup_root(self) -> Path:
        return self._active_dir.parent

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def has_residue(self) -> bool:
        """True when the active directory holds a mapping left by a prior session."""
        try:
            with os.scandir(self._active_dir) as it:
                files = [entry.name for entry in it if entry.is_file()]
        except FileNotFoundError:
            return False
        except OSError:
            log.warning("cache_dir_scan_error", path=str(self._active_dir), exc_info=True)
            return False
        return self._mapping_filename in files

    def is_empty(self) -> bool:
        try:
            with os.scandir(self._active_dir) as it:
                return next(it, None) is None
        except FileNotFoundError:
            return True

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def next_backup_path(self) -> Path:
        stamp = self._clock().astimezone(UTC).strftime(_STAMP_FORMAT)
        extra = 0
        for name in self._sibling_dirs():
            if name.startswith(stamp):
                parsed = parse_backup_name(name)
                seq = parsed[1] if parsed else 0
                extra = max(extra, seq + 1)
        name = stamp if extra == 0 else f"{stamp}-{extra}"
        return self.backup_root / name

    def rotate(self) -> Path:
        """Move the active directory into a new backup and recreate it empty."""
        backup_path = self.next_backup_path()
        try:
            os.rename(self._active_dir, backup_path)
        except OSError as exc:
            log.error(
                "backup_rename_error",
                source=str(self._active_dir),
                target=str(backup_path),
                exc_info=True,
            )
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot move {self._active_dir} to {backup_path}: {exc.strerror or exc}",
            ) from exc

        try:
            self._active_dir.mkdir()
        except OSError as exc:
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot recreate cache directory {self._active_dir}: {exc.strerror or exc}",
            ) from exc

        log.info("backup_created", path=str(backup_path))
        self.prune()
        return backup_path

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def list_backups(self) -> list[BackupInfo]:
        """Existing backups, oldest first."""
        backups = []
        for name in self._sibling_dirs():
            parsed = parse_backup_name(name)
            if parsed is None:
                continue
            created_at, seq = parsed
            backups.append(
                BackupInfo(
                    name=name,
                    path=self.backup_root / name,
                    created_at=created_at,
                    sequence=seq,
                )
            )
        # by (timestamp, suffix) so "-10" sorts after "-9"
        backups.sort(key=lambda b: (b.created_at, b.sequence))
        return backups

    def prune(self) -> list[Path]:
        """Delete the oldest backups beyond the retention cap. Non-fatal on failure."""
        backups = self.list_backups()
        excess = len(backups) - self._retention
        removed: list[Path] = []
        for backup in backups[: max(excess, 0)]:
            try:
                shutil.rmtree(backup.path)
            except OSError:
                log.warning("backup_prune_error", path=str(backup.path), exc_info=True)
                continue
            removed.append(backup.path)
        if removed:
            log.info("backups_pruned", removed=len(removed), retention=self._retention)
        return removed

    def _sibling_dirs(self) -> list[str]:
        try:
            with os.scandir(self.backup_root) as it:
                return [
                    entry.name
                    for entry in it
                    if entry.is_dir(follow_symlinks=False) and entry.name != self._active_dir.name
                ]
        except FileNotFoundError:
            return []
