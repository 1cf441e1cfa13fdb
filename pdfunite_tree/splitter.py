"""Split a merged document back into one file per bookmark leaf."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Sequence

from pypdf.generic import PdfObject

from .backends import PDFCodec, PypdfCodec
from .exceptions import NoOutlineLeaves
from .outline import OutlineNode, read_outline
from .store import ObjectRef, ObjectStore
from .types import SplitPart
from .utils import PathLike, ensure_path, sanitize_component

LOGGER = logging.getLogger("pdfunite_tree.split")

# (titles, start, stop)
PageRange = tuple[tuple[str, ...], int, int]


def _has_destination(node: OutlineNode) -> bool:
    return any(descendant.page is not None for _, descendant in node.walk())


def leaf_ranges(outline: Sequence[OutlineNode], pages: Sequence[ObjectRef]) -> list[PageRange]:
    """Compute the page range of every deepest bookmark with a direct destination.

    A range runs from the bookmark's page up to the page of the next such
    bookmark in page order; the last one runs to the end of the document.
    Bookmarks whose range would be empty are skipped.
    """

    positions = {ref: index for index, ref in enumerate(pages)}
    leaves: list[tuple[int, int, tuple[str, ...]]] = []
    order = 0
    for top in outline:
        for ancestors, node in top.walk():
            order += 1
            if node.page is None or any(_has_destination(child) for child in node.children):
                continue
            if node.page not in positions:
                LOGGER.warning("Bookmark %r points to a page outside the page tree", node.title)
                continue
            leaves.append((positions[node.page], order, ancestors + (node.title,)))
    if not leaves:
        raise NoOutlineLeaves()

    leaves.sort(key=lambda item: (item[0], item[1]))
    ranges: list[PageRange] = []
    for index, (start, _, titles) in enumerate(leaves):
        stop = leaves[index + 1][0] if index + 1 < len(leaves) else len(pages)
        if stop <= start:
            LOGGER.warning("Skipping bookmark %r: it shares its page with the next bookmark", "/".join(titles))
            continue
        ranges.append((titles, start, stop))
    return ranges


class Splitter:
    """Partition a document at bookmark-leaf granularity.

    Args:
        workers: Number of threads used to extract page ranges.
    """

    def __init__(self, *, workers: int = 1) -> None:
        self.workers = max(1, workers)

    def split(self, store: ObjectStore, outline: Sequence[OutlineNode] | None = None) -> list[SplitPart]:
        """Return one fresh document per bookmark leaf of ``store``.

        Raises:
            NoOutlineLeaves: If no bookmark points directly at a page.
        """

        if outline is None:
            outline = read_outline(store)
        pages = store.page_refs()
        inherited = store.inherited_page_attributes()
        ranges = leaf_ranges(outline, pages)
        LOGGER.info("Splitting %d page(s) into %d part(s)", len(pages), len(ranges))

        def extract(page_range: PageRange) -> SplitPart:
            return self._extract(store, pages, inherited, page_range)

        if self.workers > 1 and len(ranges) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                return list(executor.map(extract, ranges))
        return [extract(page_range) for page_range in ranges]

    def _extract(
        self,
        store: ObjectStore,
        pages: Sequence[ObjectRef],
        inherited: Mapping[ObjectRef, Mapping[str, PdfObject]],
        page_range: PageRange,
    ) -> SplitPart:
        titles, start, stop = page_range
        selected = list(pages[start:stop])
        part = ObjectStore.new_document(store.version, source="/".join(titles))
        mapping = part.copy_subgraph(store, selected, keep_pages=selected, inherited=inherited)
        part.attach_pages(mapping[ref] for ref in selected)
        LOGGER.debug("Extracted pages %d-%d as %s", start + 1, stop, "/".join(titles))
        return SplitPart(titles=titles, start=start, stop=stop, store=part)


def split_document(
    store: ObjectStore,
    outline: Sequence[OutlineNode] | None = None,
    *,
    workers: int = 1,
) -> list[SplitPart]:
    return Splitter(workers=workers).split(store, outline)


def part_path(output_dir: Path, titles: Iterable[str]) -> Path:
    """Return ``output_dir/<ancestor titles>/<leaf title>.pdf`` for a part."""

    components = [sanitize_component(title) for title in titles]
    leaf = components[-1]
    if not leaf.lower().endswith(".pdf"):
        leaf = f"{leaf}.pdf"
    return output_dir.joinpath(*components[:-1], leaf)


def _deduplicate(target: Path, used: set[Path]) -> Path:
    candidate = target
    counter = 2
    while candidate in used:
        candidate = target.with_name(f"{target.stem} ({counter}){target.suffix}")
        counter += 1
    used.add(candidate)
    return candidate


def write_parts(
    parts: Sequence[SplitPart],
    output_dir: PathLike,
    *,
    codec: PDFCodec | None = None,
    overwrite: bool = False,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> list[Path]:
    """Serialize ``parts`` below ``output_dir`` and return the written paths.

    Raises:
        FileExistsError: If a target exists and ``overwrite`` is false;
            nothing is written in that case.
    """

    codec = codec or PypdfCodec()
    root = ensure_path(output_dir)
    used: set[Path] = set()
    targets = [_deduplicate(part_path(root, part.titles), used) for part in parts]
    if not overwrite:
        for target in targets:
            if target.exists():
                raise FileExistsError(f"Output file already exists: {target}")

    for index, (part, target) in enumerate(zip(parts, targets), start=1):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(codec.dump(part.store))
        LOGGER.debug("Wrote %s (%d page(s))", target, part.page_count)
        if progress_callback:
            progress_callback(index, len(parts))
    return targets


def default_split_dir(input_pdf: PathLike) -> Path:
    """Return ``<input stem>-split`` next to the input file."""

    path = ensure_path(input_pdf)
    return path.with_name(f"{path.stem}-split")


def split_file(
    input_pdf: PathLike,
    output_dir: PathLike | None = None,
    *,
    workers: int = 1,
    overwrite: bool = False,
    codec: PDFCodec | None = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> list[Path]:
    """Split the PDF at ``input_pdf`` into files below ``output_dir``."""

    codec = codec or PypdfCodec()
    input_path = ensure_path(input_pdf)
    if not input_path.is_file():
        raise FileNotFoundError(f"PDF file not found: {input_pdf}")
    store = codec.load(input_path.read_bytes(), source=str(input_path))
    parts = split_document(store, workers=workers)
    target = ensure_path(output_dir) if output_dir is not None else default_split_dir(input_path)
    return write_parts(parts, target, codec=codec, overwrite=overwrite, progress_callback=progress_callback)


__all__ = [
    "Splitter",
    "split_document",
    "split_file",
    "write_parts",
    "leaf_ranges",
    "part_path",
    "default_split_dir",
]
