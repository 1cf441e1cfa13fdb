"""Small generated documents for fixtures, demos and index pages."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    NameObject,
    NumberObject,
)

from .backends import PDFCodec, PypdfCodec
from .store import ObjectRef, ObjectStore, dictionary
from .types import LeafDocument
from .utils import PathLike, ensure_path, is_within

PAGE_WIDTH = 612
PAGE_HEIGHT = 792
LINE_HEIGHT = 28


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _text_stream(lines: Sequence[str]) -> DecodedStreamObject:
    operations = ["BT", "/F1 18 Tf", f"72 {PAGE_HEIGHT - 72} Td"]
    for index, line in enumerate(lines):
        if index:
            operations.append(f"0 -{LINE_HEIGHT} Td")
        operations.append(f"({_escape(line)}) Tj")
    operations.append("ET")
    stream = DecodedStreamObject()
    stream.set_data("\n".join(operations).encode("latin-1", errors="replace"))
    return stream


def build_text_document(pages: Sequence[Sequence[str]], *, version: str = "1.7") -> ObjectStore:
    """Return a document with one page per entry of ``pages``.

    Font and media box live on the page tree root and are inherited by
    every page.
    """

    store = ObjectStore.new_document(version)
    root_ref = store.page_tree_root_ref()
    font = store.insert(
        dictionary(
            {
                "/Type": NameObject("/Font"),
                "/Subtype": NameObject("/Type1"),
                "/BaseFont": NameObject("/Courier"),
            }
        )
    )
    root = store.resolve(root_ref)
    root[NameObject("/Resources")] = dictionary({"/Font": dictionary({"/F1": store.reference(font)})})
    root[NameObject("/MediaBox")] = ArrayObject(
        [NumberObject(0), NumberObject(0), NumberObject(PAGE_WIDTH), NumberObject(PAGE_HEIGHT)]
    )

    page_refs: list[ObjectRef] = []
    for lines in pages:
        contents = store.insert(_text_stream(lines))
        page_refs.append(
            store.insert(
                dictionary({"/Type": NameObject("/Page"), "/Contents": store.reference(contents)})
            )
        )
    store.attach_pages(page_refs)
    return store


def build_basic_document(name: str, num_pages: int, *, version: str = "1.7") -> ObjectStore:
    """Return ``num_pages`` pages reading ``name`` and ``Page i of n``."""

    if num_pages < 1:
        raise ValueError("num_pages must be at least 1")
    return build_text_document(
        [[name, f"Page {index} of {num_pages}"] for index in range(1, num_pages + 1)],
        version=version,
    )


def write_basic_document(
    path: PathLike,
    num_pages: int,
    *,
    name: str | None = None,
    codec: PDFCodec | None = None,
) -> Path:
    target = ensure_path(path)
    store = build_basic_document(name or target.stem, num_pages)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes((codec or PypdfCodec()).dump(store))
    return target


def index_generator(root: PathLike | None = None, *, title: str = "Index", lines_per_page: int = 24):
    """Return an index generator listing the merged documents.

    Paths are shown relative to ``root`` when given.
    """

    base = ensure_path(root) if root is not None else None

    def generate(leaves: Sequence[LeafDocument]) -> bytes:
        entries = [title, ""]
        for number, leaf in enumerate(leaves, start=1):
            label = leaf.path.relative_to(base).as_posix() if base and is_within(leaf.path, base) else leaf.name
            entries.append(f"{number}. {label}")
        pages = [entries[i : i + lines_per_page] for i in range(0, len(entries), lines_per_page)]
        return PypdfCodec().dump(build_text_document(pages))

    return generate


__all__ = [
    "build_text_document",
    "build_basic_document",
    "write_basic_document",
    "index_generator",
]
