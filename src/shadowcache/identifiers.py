"""Collision-free cache file names.

Names are ``<prefix><token>`` where the token is a zero-padded base-36 number.
The random source is shared by every generator in the process and seeded once
from the clock, so two runs do not walk the same sequence.
"""

from __future__ import annotations

import os
import random
import string
import time
from typing import TYPE_CHECKING

import structlog

from shadowcache.errors import ErrorCode, ShadowCacheError

if TYPE_CHECKING:
    from collections.abc import Collection
    from pathlib import Path

log = structlog.get_logger()

_DIGITS = string.digits + string.ascii_lowercase

_rng: random.Random | None = None


def _process_rng() -> random.Random:
    global _rng
    if _rng is None:
        _rng = random.Random(time.time_ns())
    return _rng


def to_base36(value: int, width: int) -> str:
    """Render a non-negative integer in base 36, left-padded with ``0``."""
    if value < 0:
        raise ValueError("value must be non-negative")
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return "".join(reversed(digits)).rjust(width, "0")


class IdentifierGenerator:
    def __init__(
        self,
        prefix: str = "fw_",
        width: int = 6,
        max_attempts: int = 10_000,
        rng: random.Random | None = None,
    ) -> None:
        self._prefix = prefix
        self._width = width
        self._max_attempts = max_attempts
        self._rng = rng

    def next(self, directory: Path, reserved: Collection[str] = ()) -> str:
        """Return a name that does not exist in *directory* right now.

        *reserved* holds names already handed out whose files may not have been
        written yet.
        """
        try:
            existing = set(os.listdir(directory))
        except OSError as exc:
            raise ShadowCacheError(
                ErrorCode.FILESYSTEM_ERROR,
                f"Cannot list cache directory {directory}: {exc.strerror}",
            ) from exc

        rng = self._rng or _process_rng()
        upper = 36**self._width
        for _ in range(self._max_attempts):
            candidate = self._prefix + to_base36(rng.randrange(upper), self._width)
            if candidate not in existing and candidate not in reserved:
                return candidate

        log.error("identifier_collision_exhausted", directory=str(directory))
        raise ShadowCacheError(
            ErrorCode.COLLISION_EXHAUSTED,
            f"No free identifier in {directory} after {self._max_attempts} attempts",
        )
