"""
Type definitions and dataclasses for pdfunite-tree.

This module defines the data structures passed between the walker, the
merge engine and the splitter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, Sequence, Union

from .store import ObjectStore

if TYPE_CHECKING:
    from .outline import OutlineNode
    from .report import Report


@dataclass(slots=True)
class LeafDocument:
    """
    A validated input document.

    Attributes:
        name: File name, used as the bookmark title
        path: Location of the file in the input tree
        store: Parsed object graph of the document
    """
    name: str
    path: Path
    store: ObjectStore

    @property
    def page_count(self) -> int:
        return len(self.store.page_refs())


@dataclass(slots=True)
class DirectoryGroup:
    """
    A directory of the input tree.

    Attributes:
        name: Directory name, used as the bookmark title
        path: Location of the directory
        children: Subdirectories first, then documents, in walk order
    """
    name: str
    path: Path
    children: list[Union["DirectoryGroup", LeafDocument]] = field(default_factory=list)

    def iter_leaves(self) -> Iterator[LeafDocument]:
        """Yield every document below this directory in pre-order."""
        for child in self.children:
            if isinstance(child, DirectoryGroup):
                yield from child.iter_leaves()
            else:
                yield child

    @property
    def is_empty(self) -> bool:
        return not self.children


@dataclass(frozen=True, slots=True)
class PageSpan:
    """Position of a document's pages in the merged output (0-based)."""
    start: int
    count: int

    @property
    def stop(self) -> int:
        return self.start + self.count


@dataclass(slots=True)
class MergeResult:
    """
    Result of merging a tree.

    Attributes:
        store: The combined document
        outline: Top-level bookmark entries that were attached
        leaf_ranges: Page span of every merged document, keyed by its path
    """
    store: ObjectStore
    outline: list["OutlineNode"]
    leaf_ranges: dict[Path, PageSpan] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return sum(span.count for span in self.leaf_ranges.values())


@dataclass(slots=True)
class SplitPart:
    """
    One output document of a split.

    Attributes:
        titles: Bookmark titles from the top level down to the leaf
        start: First page index in the source document
        stop: Page index after the last page
        store: Freshly built document holding the pages
    """
    titles: tuple[str, ...]
    start: int
    stop: int
    store: ObjectStore

    @property
    def page_count(self) -> int:
        return self.stop - self.start


@dataclass(slots=True)
class WalkResult:
    unit: DirectoryGroup
    report: "Report"


@dataclass(slots=True)
class MergeRun:
    """
    Outcome of merging a directory into a file.

    Attributes:
        report: Diagnostics of the walk
        result: The merge, or ``None`` when nothing could be merged
        output: Written file, or ``None`` when nothing was written
    """
    report: "Report"
    result: MergeResult | None = None
    output: Path | None = None

    @property
    def exit_code(self) -> int:
        return self.report.exit_code


XoppConverter = Callable[[Path], bytes]
ExternalValidator = Callable[[Path, bytes], Union[str, None]]
IndexGenerator = Callable[[Sequence[LeafDocument]], bytes]


__all__ = [
    "LeafDocument",
    "DirectoryGroup",
    "PageSpan",
    "MergeResult",
    "SplitPart",
    "WalkResult",
    "MergeRun",
    "XoppConverter",
    "ExternalValidator",
    "IndexGenerator",
]
