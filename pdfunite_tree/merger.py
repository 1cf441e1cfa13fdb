"""Merge a validated directory tree into one document with a mirroring outline."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from .backends import PDFCodec, PypdfCodec
from .exceptions import EmptyMergeUnit
from .outline import OutlineBuilder, OutlineNode
from .store import ObjectRef, ObjectStore
from .types import DirectoryGroup, IndexGenerator, MergeResult, MergeRun, PageSpan
from .utils import PathLike, ensure_path, is_within
from .walker import WalkOptions, walk_tree

LOGGER = logging.getLogger("pdfunite_tree.merge")

OUTPUT_SUFFIX = "-united.pdf"


@dataclass(slots=True)
class MergeOptions:
    """
    Settings for the merge engine.

    Attributes:
        with_outlines: Attach the bookmark tree to the output
        navigable_directories: Directory bookmarks jump to their first page
        index_title: Bookmark title for leading index pages, if any
        version: Lowest PDF version written to the output header
    """
    with_outlines: bool = True
    navigable_directories: bool = True
    index_title: str | None = None
    version: str = "1.7"


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split(".") if part.isdigit())


class MergeEngine:
    """Folds the documents of a :class:`DirectoryGroup` into one object store.

    Documents are consumed: their stores are renumbered and their objects
    moved into the combined store.
    """

    def __init__(self, options: MergeOptions | None = None) -> None:
        self.options = options or MergeOptions()

    def merge(self, unit: DirectoryGroup, *, index: ObjectStore | None = None) -> MergeResult:
        """Merge every document of ``unit`` in pre-order.

        Args:
            unit: Tree of validated documents.
            index: Optional pages placed before all documents.

        Raises:
            EmptyMergeUnit: If ``unit`` holds no document.
            RebaseCollision: If renumbering failed to keep objects apart.
        """

        leaves = list(unit.iter_leaves())
        if not leaves:
            raise EmptyMergeUnit()

        combined = ObjectStore.new_document(self.options.version, source=str(unit.path))
        versions = [self.options.version]
        position = 0
        index_page: ObjectRef | None = None
        if index is not None:
            pages = self._fold(combined, index)
            index_page = pages[0] if pages else None
            position += len(pages)
            versions.append(index.version)

        first_pages: dict[Path, ObjectRef] = {}
        leaf_ranges: dict[Path, PageSpan] = {}
        for leaf in leaves:
            LOGGER.debug("Folding %s at page %d", leaf.path, position + 1)
            versions.append(leaf.store.version)
            pages = self._fold(combined, leaf.store)
            first_pages[leaf.path] = pages[0]
            leaf_ranges[leaf.path] = PageSpan(position, len(pages))
            position += len(pages)
        combined.version = max(versions, key=_version_key)

        outline: list[OutlineNode] = []
        if self.options.with_outlines:
            builder = OutlineBuilder(navigable_directories=self.options.navigable_directories)
            outline = builder.build(unit, first_pages)
            if self.options.index_title and index_page is not None:
                outline.insert(0, OutlineNode(title=self.options.index_title, page=index_page))
            builder.attach(combined, outline)

        LOGGER.info("Merged %d document(s) into %d page(s)", len(leaves), position)
        return MergeResult(store=combined, outline=outline, leaf_ranges=leaf_ranges)

    def _fold(self, combined: ObjectStore, store: ObjectStore) -> list[ObjectRef]:
        """Move the pages of ``store`` and everything they use into ``combined``."""

        store.rebase(combined.max_number + 1)
        pages = store.flatten_page_tree()
        # Catalog, page tree nodes and document outline stay behind.
        objects = store.traverse(pages, follow_page_parents=False)
        combined.absorb(store, objects)
        combined.attach_pages(pages)
        return pages


def merge_tree(
    unit: DirectoryGroup,
    options: MergeOptions | None = None,
    *,
    index: ObjectStore | None = None,
) -> MergeResult:
    return MergeEngine(options).merge(unit, index=index)


def default_output_path(input_dir: PathLike) -> Path:
    """Return ``<input_dir>-united.pdf`` next to the input directory."""

    path = ensure_path(input_dir)
    return path.with_name(f"{path.name}{OUTPUT_SUFFIX}")


def check_output_path(input_dir: PathLike, output: PathLike, *, overwrite: bool = False) -> Path:
    """Validate the output location of a merge.

    Raises:
        ValueError: If ``output`` lies inside ``input_dir``.
        FileExistsError: If ``output`` exists and ``overwrite`` is false.
    """

    input_path = ensure_path(input_dir)
    output_path = ensure_path(output)
    if is_within(output_path.resolve(), input_path.resolve()):
        raise ValueError(f"Output file must not be inside the input directory: {output_path}")
    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Output file already exists: {output_path}")
    return output_path


def merge_directory(
    input_dir: PathLike,
    output: PathLike | None = None,
    *,
    walk_options: WalkOptions | None = None,
    merge_options: MergeOptions | None = None,
    index_generator: IndexGenerator | None = None,
    codec: PDFCodec | None = None,
    overwrite: bool = False,
) -> MergeRun:
    """Walk ``input_dir``, merge its valid documents and write the result.

    The output is written whenever at least one document survived
    validation; the returned report says whether anything was skipped.
    """

    codec = codec or PypdfCodec()
    output_path = check_output_path(
        input_dir,
        output if output is not None else default_output_path(input_dir),
        overwrite=overwrite,
    )

    walk = walk_tree(input_dir, walk_options, codec=codec)
    if not walk.unit.children:
        LOGGER.warning("Nothing to merge in %s", input_dir)
        return MergeRun(report=walk.report)

    index = None
    if index_generator is not None:
        index = codec.load(index_generator(list(walk.unit.iter_leaves())), source="<index>")

    result = MergeEngine(merge_options).merge(walk.unit, index=index)
    data = codec.dump(result.store)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    LOGGER.info("Wrote %s (%d bytes)", output_path, len(data))
    return MergeRun(report=walk.report, result=result, output=output_path)


__all__ = [
    "MergeOptions",
    "MergeEngine",
    "merge_tree",
    "merge_directory",
    "default_output_path",
    "check_output_path",
]
