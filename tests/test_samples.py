from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from pypdf.generic import NameObject

from pdfunite_tree.backends import PypdfCodec
from pdfunite_tree.samples import build_basic_document, build_text_document, write_basic_document


def test_build_basic_document_requires_pages() -> None:
    with pytest.raises(ValueError):
        build_basic_document("empty", 0)


def test_write_basic_document(tmp_path: Path, page_texts: Callable) -> None:
    path = write_basic_document(tmp_path / "out" / "lecture.pdf", 2)

    assert page_texts(path) == [("lecture", "Page 1 of 2"), ("lecture", "Page 2 of 2")]


def test_text_is_escaped(codec: PypdfCodec, page_texts: Callable) -> None:
    store = build_text_document([["f(x) = 1"]])

    assert page_texts(codec.dump(store)) == [("f\\(x\\) = 1",)]


def test_page_content_stream_holds_text_operators() -> None:
    store = build_text_document([["hello"]])
    page = store.resolve(store.page_refs()[0])

    contents = store.follow(page.get(NameObject("/Contents")))

    assert contents.get_data().startswith(b"BT\n")
    assert b"(hello) Tj" in contents.get_data()
