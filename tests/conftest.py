from __future__ import annotations

from io import BytesIO
from pathlib import Path
import re
from typing import Callable, Mapping
import sys

import pytest
from pypdf import PdfReader
from pypdf.generic import NameObject, NumberObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdfunite_tree.backends import PypdfCodec  # noqa: E402
from pdfunite_tree.samples import build_basic_document  # noqa: E402

_SHOWN_TEXT = re.compile(rb"\((.*?)\) Tj")


@pytest.fixture()
def codec() -> PypdfCodec:
    return PypdfCodec()


@pytest.fixture()
def pdf_bytes(codec: PypdfCodec) -> Callable[..., bytes]:
    """Build a sample document; ``extra_catalog`` adds integer catalog entries."""

    def _build(name: str, pages: int = 1, *, version: str = "1.7", extra_catalog: tuple[str, ...] = ()) -> bytes:
        store = build_basic_document(name, pages, version=version)
        catalog = store.catalog()
        for key in extra_catalog:
            catalog[NameObject(key)] = NumberObject(1)
        return codec.dump(store)

    return _build


@pytest.fixture()
def dangling_pdf(codec: PypdfCodec) -> bytes:
    """A one-page document whose page refers to object 999, which does not exist."""

    store = build_basic_document("broken", 1)
    page = store.resolve(store.page_refs()[0])
    page[NameObject("/Annots")] = NameObject("/XXXXXXXX")
    data = codec.dump(store)
    # Same length, so the cross-reference offsets stay valid.
    return data.replace(b"/XXXXXXXX", b"999 0 R  ")


@pytest.fixture()
def tree_factory(tmp_path: Path, pdf_bytes: Callable[..., bytes]) -> Callable[..., Path]:
    """Create ``tmp_path/tree`` from ``{"a/1.pdf": 2, "notes.txt": b"..."}``.

    Integer values become PDFs with that many pages whose text is the
    relative path; bytes are written verbatim; ``None`` creates a directory.
    """

    def _create(entries: Mapping[str, int | bytes | None], root_name: str = "tree") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in entries.items():
            path = root / relative
            if content is None:
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_bytes(pdf_bytes(relative, content))
        return root

    return _create


@pytest.fixture()
def page_texts() -> Callable[[Path | bytes], list[tuple[str, ...]]]:
    """Return the strings shown on each page of a generated document."""

    def _read(source: Path | bytes) -> list[tuple[str, ...]]:
        data = source if isinstance(source, bytes) else Path(source).read_bytes()
        reader = PdfReader(BytesIO(data))
        texts = []
        for page in reader.pages:
            contents = page["/Contents"].get_object().get_data()
            texts.append(tuple(match.decode("latin-1") for match in _SHOWN_TEXT.findall(contents)))
        return texts

    return _read
