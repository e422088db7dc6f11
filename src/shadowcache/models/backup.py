from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel


class BackupInfo(BaseModel):
    """An archived cache directory, named ``yyyyMMddHHmmss[-N]``."""

    name: str
    path: Path
    created_at: datetime  # Parsed from the name, UTC
    sequence: int = 0  # The -N suffix; 0 when absent
