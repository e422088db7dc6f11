from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, field_validator


class MappingEntry(BaseModel):
    """One line of the mapping file."""

    identifier: str  # Cache file name within the active directory
    original_path: str  # User-visible document path; may be empty or repeated

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not v or " " in v or "/" in v or "\n" in v:
            raise ValueError(f"Invalid identifier: {v!r}")
        return v

    @field_validator("original_path")
    @classmethod
    def validate_original_path(cls, v: str) -> str:
        # The file format has no escaping
        if "\n" in v or "\r" in v:
            raise ValueError(f"original_path must not contain line breaks: {v!r}")
        return v


class RecoveredFile(BaseModel):
    """A mapped document together with the cache file holding its content."""

    original_path: str
    cache_file: Path
