"""Collaborator interfaces supplied by the host application."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, TypeAlias


class DocumentWriter(Protocol):
    """Serializes a document's content to a file chosen by the cache."""

    def set_target_path(self, path: str) -> None: ...

    def write(self) -> None: ...

    def close(self) -> None: ...


class DocumentListener(Protocol):
    """Receives change notifications from a tracked document."""

    def on_path_changed(self, document: Document) -> None: ...

    def on_write_requested(self, document: Document, writer: DocumentWriter) -> None: ...

    def on_replace_requested(self, document: Document, source: str) -> None: ...


class Document(Protocol):
    """Host-owned document handle. Must be hashable by identity."""

    @property
    def path(self) -> str: ...

    def add_listener(self, listener: DocumentListener) -> None: ...

    def remove_listener(self, listener: DocumentListener) -> None: ...


# Any indexable sequence works: ``len(ordering)`` and ``ordering[i]``.
Ordering: TypeAlias = Sequence[Document]
