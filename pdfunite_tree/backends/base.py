"""Codec protocol for turning PDF bytes into object stores and back."""

from __future__ import annotations

from typing import Protocol

from ..store import ObjectStore


class PDFCodec(Protocol):
    """Protocol defining the low-level PDF parse/serialize operations."""

    def load(self, data: bytes, *, source: str | None = None) -> ObjectStore:
        """Parse ``data`` into an :class:`ObjectStore`."""

    def dump(self, store: ObjectStore) -> bytes:
        """Serialize ``store`` into a complete PDF file."""
