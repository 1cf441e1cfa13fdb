"""pypdf codec implementation for pdfunite-tree."""

from __future__ import annotations

from collections import deque
import io
import logging
import re

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    PdfObject,
)

from ..exceptions import DanglingReference, UnparseablePdf
from ..store import ObjectRef, ObjectStore, copy_value, iter_references
from .base import PDFCodec

LOGGER = logging.getLogger("pdfunite_tree.backends.pypdf")

_HEADER_VERSION = re.compile(rb"%PDF-(\d\.\d)")
DEFAULT_VERSION = "1.7"


def detect_version(data: bytes) -> str | None:
    """Return the header version of ``data`` (``"1.7"``) or ``None``."""

    match = _HEADER_VERSION.search(data[:1024])
    return match.group(1).decode("ascii") if match else None


class PypdfCodec(PDFCodec):
    """Codec that parses with :class:`pypdf.PdfReader` and writes through :class:`pypdf.PdfWriter`."""

    def load(self, data: bytes, *, source: str | None = None) -> ObjectStore:
        label = source or "<memory>"
        try:
            reader = PdfReader(io.BytesIO(data), strict=False)
        except PdfReadError as exc:
            raise UnparseablePdf(f"Corrupted or invalid PDF file: {label}. Error: {exc}") from exc
        except Exception as exc:
            raise UnparseablePdf(f"Unexpected error reading PDF: {label}. Error: {exc}") from exc

        if reader.is_encrypted:
            raise UnparseablePdf(f"PDF is encrypted: {label}")

        store = ObjectStore(version=detect_version(data) or DEFAULT_VERSION, source=source)
        roots: list[ObjectRef] = []
        for key in ("/Root", "/Info"):
            value = reader.trailer.get(NameObject(key))
            if isinstance(value, IndirectObject):
                ref = ObjectRef.of(value)
                store.trailer[NameObject(key)] = store.reference(ref)
                roots.append(ref)
            elif isinstance(value, DictionaryObject) and key == "/Info":
                store.trailer[NameObject(key)] = store.bind(copy_value(value))
                roots.extend(iter_references(value))
        if NameObject("/Root") not in store.trailer:
            raise UnparseablePdf(f"PDF trailer has no document catalog: {label}")

        pending = deque(roots)
        seen: set[ObjectRef] = set()
        while pending:
            ref = pending.popleft()
            if ref in seen:
                continue
            seen.add(ref)
            value = self._fetch(reader, ref, source)
            copy = copy_value(value)
            pending.extend(iter_references(copy))
            store.put(ref, store.bind(copy))

        LOGGER.debug("Loaded %d object(s) from %s", len(store), label)
        return store

    @staticmethod
    def _is_defined(reader: PdfReader, ref: ObjectRef) -> bool:
        xref = getattr(reader, "xref", None)
        if xref is None:
            return True
        if ref.generation == 0 and ref.number in getattr(reader, "xref_objStm", {}):
            return True
        free = getattr(reader, "xref_free_entry", {}).get(ref.generation, {})
        return ref.number in xref.get(ref.generation, {}) and not free.get(ref.number, False)

    def _fetch(self, reader: PdfReader, ref: ObjectRef, source: str | None) -> PdfObject:
        if not self._is_defined(reader, ref):
            raise DanglingReference(ref, source)
        try:
            value = reader.get_object(IndirectObject(ref.number, ref.generation, reader))
        except PdfReadError as exc:
            raise UnparseablePdf(f"Unable to read object {ref} of {source}: {exc}") from exc
        except Exception as exc:
            raise UnparseablePdf(f"Unexpected error reading object {ref} of {source}: {exc}") from exc
        if value is None:
            raise UnparseablePdf(f"Object {ref} of {source} could not be read")
        return value

    def dump(self, store: ObjectStore) -> bytes:
        writer = PdfWriter()
        # Start from an empty object table; the store supplies catalog and page tree.
        writer._info = None
        writer._objects.clear()  # type: ignore[attr-defined]
        writer.pdf_header = f"%PDF-{store.version}"

        info = store.trailer.get(NameObject("/Info"))
        info_ref = ObjectRef.of(info) if isinstance(info, IndirectObject) else None
        targets: dict[ObjectRef, IndirectObject] = {}
        for ref in store.references():
            if ref != info_ref:
                targets[ref] = writer._add_object(copy_value(store.resolve(ref)))

        for value in writer._objects:  # type: ignore[attr-defined]
            _rewire(value, store, targets)
        writer._root_object = writer.get_object(targets[store.catalog_ref])  # type: ignore[attr-defined]
        info_dict = store.follow(info)
        if isinstance(info_dict, DictionaryObject):
            writer.add_metadata(info_dict)
        writer.generate_file_identifiers()

        buffer = io.BytesIO()
        writer.write(buffer)
        LOGGER.debug("Serialized %d object(s) into %d bytes", len(targets), buffer.tell())
        return buffer.getvalue()


def _rewire(value: PdfObject, store: ObjectStore, targets: dict[ObjectRef, IndirectObject]) -> PdfObject:
    """Point the store references nested in ``value`` at the writer's objects, in place."""

    if isinstance(value, IndirectObject):
        if value.pdf is not store:
            return value
        ref = ObjectRef.of(value)
        if ref not in targets:
            LOGGER.warning("Writing null for reference %s of %s: no such object", ref, store.source)
            return NullObject()
        return targets[ref]
    if isinstance(value, DictionaryObject):
        for key, item in list(value.items()):
            value[key] = _rewire(item, store, targets)
    elif isinstance(value, ArrayObject):
        for index, item in enumerate(value):
            value[index] = _rewire(item, store, targets)
    return value
