from __future__ import annotations

from shadowcache.models.backup import BackupInfo
from shadowcache.models.mapping import MappingEntry, RecoveredFile

__all__ = [
    # mapping
    "MappingEntry",
    "RecoveredFile",
    # backups
    "BackupInfo",
]
