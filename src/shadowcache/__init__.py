"""On-disk shadow cache for open documents with crash-recovery backups."""

from __future__ import annotations

from shadowcache.backups import BackupRotator
from shadowcache.config import CacheSettings, LoggingSettings, Settings
from shadowcache.document_cache import DocumentCache
from shadowcache.errors import ErrorCode, ShadowCacheError
from shadowcache.identifiers import IdentifierGenerator
from shadowcache.mapping import MappingStore

__all__ = [
    "BackupRotator",
    "CacheSettings",
    "DocumentCache",
    "ErrorCode",
    "IdentifierGenerator",
    "LoggingSettings",
    "MappingStore",
    "Settings",
    "ShadowCacheError",
]
