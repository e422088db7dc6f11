"""Error taxonomy for shadowcache.

Every failure that crosses the package boundary is a ``ShadowCacheError``
carrying a machine-readable ``ErrorCode``. Underlying ``OSError`` instances are
chained via ``raise ... from exc`` so the original errno stays inspectable.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    FILESYSTEM_ERROR = "FILESYSTEM_ERROR"
    COLLISION_EXHAUSTED = "COLLISION_EXHAUSTED"
    NOT_TRACKED = "NOT_TRACKED"
    CLOSED = "CLOSED"


class ShadowCacheError(Exception):
    """Raised for write failures and environment problems the host must handle."""

    def __init__(self, code: ErrorCode, message: str, *, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable
