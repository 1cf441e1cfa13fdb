"""
Custom exceptions for pdfunite-tree.

Every recoverable failure the tree walker can isolate to a single
filesystem entry has its own exception class; the walker turns them into
diagnostics. :class:`RebaseCollision` is the exception to that rule: it
signals a broken invariant in the merge itself and always aborts the run.
"""

from __future__ import annotations

from typing import Any


class PdfTreeError(Exception):
    """Base exception for all pdfunite-tree errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown pdfunite-tree error occurred."


class DanglingReference(PdfTreeError):
    """Raised when an indirect reference does not resolve inside its store."""

    def __init__(self, ref: Any, source: str | None = None) -> None:
        self.ref = ref
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Reference {ref} does not resolve to any object{where}")


class MissingPageTree(PdfTreeError):
    """Raised when a document catalog has no usable /Pages entry."""

    @property
    def default_message(self) -> str:
        return "Document catalog has no page tree."


class UnparseablePdf(PdfTreeError):
    """Raised when a file cannot be parsed into an object store."""

    @property
    def default_message(self) -> str:
        return "Invalid or corrupted PDF file."


class UnsupportedFileType(PdfTreeError):
    """Raised when a file is neither a PDF nor a convertible notebook."""

    @property
    def default_message(self) -> str:
        return "File type is not supported."


class UnsupportedFeature(PdfTreeError):
    """Raised when a catalog entry is rejected by the feature policy."""

    def __init__(self, feature_key: str, message: str = "") -> None:
        self.feature_key = feature_key
        super().__init__(
            message
            or f"The document uses the unsupported catalog feature '{feature_key}'"
        )


class SymlinkEscapesTree(PdfTreeError):
    """Raised when a symbolic link cannot be followed inside the input tree."""

    @property
    def default_message(self) -> str:
        return "Symbolic link points outside the input tree."


class MaxDepthExceeded(PdfTreeError):
    """Raised when a directory lies deeper than the configured maximum depth."""

    @property
    def default_message(self) -> str:
        return "Maximum directory depth exceeded."


class EmptySubtree(PdfTreeError):
    """Raised when a directory contributes no document to the merge."""

    @property
    def default_message(self) -> str:
        return "Directory contains no mergeable document."


class EmptyMergeUnit(PdfTreeError):
    """Raised when there is nothing left to merge."""

    @property
    def default_message(self) -> str:
        return "No valid PDF documents to merge."


class RebaseCollision(PdfTreeError):
    """Raised when renumbered objects would overwrite objects already merged.

    This is an internal invariant violation and never a problem with the
    input documents.
    """

    def __init__(self, ref: Any) -> None:
        self.ref = ref
        super().__init__(
            f"Object {ref} already exists in the combined document; "
            "object renumbering is inconsistent"
        )


class NoOutlineLeaves(PdfTreeError):
    """Raised when a document has no bookmark that points directly at a page."""

    @property
    def default_message(self) -> str:
        return "The document outline has no entry with a direct page destination."
