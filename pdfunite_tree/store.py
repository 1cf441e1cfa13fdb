"""In-memory object graph of a single PDF document.

:class:`ObjectStore` is an arena of indirect objects keyed by
:class:`ObjectRef`.  Values are plain :mod:`pypdf.generic` objects; every
reference nested inside a value is an :class:`~pypdf.generic.IndirectObject`
bound to the owning store, so ``IndirectObject.get_object()`` resolves
through :meth:`ObjectStore.get_object` exactly like it would through a
:class:`pypdf.PdfReader`.

Structure is always read from the forward links (``/Kids``, ``/First``,
``/Next``); back-links such as a page's ``/Parent`` are rewritten whenever
pages move.
"""

from __future__ import annotations

from collections import deque
import logging
from typing import Callable, Iterable, Iterator, Mapping, NamedTuple

from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    EncodedStreamObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    PdfObject,
    StreamObject,
)

from .exceptions import DanglingReference, MissingPageTree, RebaseCollision, UnparseablePdf

LOGGER = logging.getLogger("pdfunite_tree.store")

INHERITABLE_PAGE_KEYS = ("/Resources", "/MediaBox", "/CropBox", "/Rotate")

__all__ = [
    "ObjectRef",
    "ObjectStore",
    "INHERITABLE_PAGE_KEYS",
    "dictionary",
    "copy_value",
    "iter_references",
]


class ObjectRef(NamedTuple):
    """Address of an indirect object: ``(number, generation)``."""

    number: int
    generation: int = 0

    @classmethod
    def of(cls, indirect: IndirectObject) -> "ObjectRef":
        return cls(int(indirect.idnum), int(indirect.generation))

    def __str__(self) -> str:
        return f"{self.number} {self.generation} R"


# -- Helpers -----------------------------------------------------------------


def dictionary(entries: Mapping[str, PdfObject]) -> DictionaryObject:
    """Build a :class:`DictionaryObject` from ``"/Key" -> value`` pairs."""

    result = DictionaryObject()
    for key, value in entries.items():
        result[NameObject(key)] = value
    return result


def iter_references(value: PdfObject, *, skip_keys: Iterable[str] = ()) -> Iterator[ObjectRef]:
    """Yield the references nested in ``value`` without following them."""

    skipped = frozenset(skip_keys)
    pending: list[PdfObject] = [value]
    top_level = True
    while pending:
        current = pending.pop()
        if isinstance(current, IndirectObject):
            yield ObjectRef.of(current)
        elif isinstance(current, DictionaryObject):
            items = [
                item
                for key, item in current.items()
                if not (top_level and key in skipped)
            ]
            pending.extend(reversed(items))
        elif isinstance(current, ArrayObject):
            pending.extend(reversed(list(current)))
        top_level = False


def copy_value(value: PdfObject) -> PdfObject:
    """Deep-copy the direct part of ``value``; references are copied as-is."""

    if isinstance(value, StreamObject):
        copy: DictionaryObject = (
            EncodedStreamObject() if isinstance(value, EncodedStreamObject) else DecodedStreamObject()
        )
        copy._data = value._data  # type: ignore[attr-defined]
        for key, item in value.items():
            copy[key] = copy_value(item)
        return copy
    if isinstance(value, DictionaryObject):
        copy = DictionaryObject()
        for key, item in value.items():
            copy[key] = copy_value(item)
        return copy
    if isinstance(value, ArrayObject):
        return ArrayObject(copy_value(item) for item in value)
    if isinstance(value, IndirectObject):
        return IndirectObject(value.idnum, value.generation, value.pdf)
    return value


def _type_of(value: PdfObject) -> str | None:
    if isinstance(value, DictionaryObject):
        kind = value.get(NameObject("/Type"))
        if isinstance(kind, NameObject):
            return str(kind)
    return None


def _is_page(value: PdfObject) -> bool:
    return _type_of(value) == "/Page"


def _is_page_tree_node(value: PdfObject) -> bool:
    return _type_of(value) in ("/Page", "/Pages")


# -- Object store ------------------------------------------------------------


class ObjectStore:
    """Indirect objects and trailer of one PDF document."""

    def __init__(self, *, version: str = "1.7", source: str | None = None) -> None:
        self.version = version
        self.source = source
        self.trailer = DictionaryObject()
        self._objects: dict[ObjectRef, PdfObject] = {}
        self._next_number = 1

    @classmethod
    def new_document(cls, version: str = "1.7", *, source: str | None = None) -> "ObjectStore":
        """Return a store holding only a catalog and an empty page tree."""

        store = cls(version=version, source=source)
        pages = store.insert(
            dictionary(
                {
                    "/Type": NameObject("/Pages"),
                    "/Kids": ArrayObject(),
                    "/Count": NumberObject(0),
                }
            )
        )
        catalog = store.insert(
            dictionary({"/Type": NameObject("/Catalog"), "/Pages": store.reference(pages)})
        )
        store.trailer[NameObject("/Root")] = store.reference(catalog)
        return store

    # -- Mapping protocol ----------------------------------------------------

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, ref: object) -> bool:
        if isinstance(ref, IndirectObject):
            ref = ObjectRef.of(ref)
        return ref in self._objects

    def __iter__(self) -> Iterator[ObjectRef]:
        return iter(self.references())

    def references(self) -> list[ObjectRef]:
        return sorted(self._objects)

    @property
    def max_number(self) -> int:
        """Highest object number currently present (0 for an empty store)."""

        return max((ref.number for ref in self._objects), default=0)

    # -- Core operations -----------------------------------------------------

    def reference(self, ref: ObjectRef) -> IndirectObject:
        """Return an :class:`IndirectObject` for ``ref`` bound to this store."""

        return IndirectObject(ref.number, ref.generation, self)

    def resolve(self, ref: ObjectRef | IndirectObject) -> PdfObject:
        """Return the value stored at ``ref``.

        Raises:
            DanglingReference: If no object lives at ``ref``.
        """

        key = ObjectRef.of(ref) if isinstance(ref, IndirectObject) else ObjectRef(*ref)
        try:
            return self._objects[key]
        except KeyError as exc:
            raise DanglingReference(key, self.source) from exc

    def get_object(self, ref: ObjectRef | IndirectObject | int) -> PdfObject:
        """pypdf-compatible alias of :meth:`resolve`."""

        if isinstance(ref, int):
            ref = ObjectRef(ref, 0)
        return self.resolve(ref)

    def follow(self, value: PdfObject | None) -> PdfObject | None:
        """Resolve ``value`` when it is a reference, otherwise return it."""

        if isinstance(value, IndirectObject):
            return self.resolve(value)
        return value

    def insert(self, value: PdfObject) -> ObjectRef:
        """Store ``value`` under a fresh object number and return its reference."""

        ref = ObjectRef(self._next_number, 0)
        self._objects[ref] = value
        self._next_number += 1
        return ref

    def put(self, ref: ObjectRef, value: PdfObject) -> None:
        """Store ``value`` at an explicit reference, replacing any previous value."""

        self._objects[ref] = value
        self._next_number = max(self._next_number, ref.number + 1)

    def remove(self, ref: ObjectRef) -> PdfObject:
        """Drop ``ref``; its number is never handed out again by :meth:`insert`."""

        try:
            return self._objects.pop(ref)
        except KeyError as exc:
            raise DanglingReference(ref, self.source) from exc

    def rebase(self, offset: int) -> dict[ObjectRef, ObjectRef]:
        """Add ``offset`` to every object number and every reference to it.

        Returns the mapping from old to new references.  Only reference
        numbers change; every other part of every value is left untouched.
        """

        if offset < 0:
            raise ValueError(f"Rebase offset must not be negative: {offset}")
        mapping = {
            ref: ObjectRef(ref.number + offset, ref.generation) for ref in self._objects
        }
        if offset == 0:
            return mapping

        rebind = self._rebinder(lambda ref: ObjectRef(ref.number + offset, ref.generation))
        self._objects = {mapping[ref]: rebind(value) for ref, value in self._objects.items()}
        self.trailer = rebind(self.trailer)
        self._next_number += offset
        LOGGER.debug("Rebased %d object(s) of %s by %d", len(mapping), self.source, offset)
        return mapping

    def absorb(self, source: "ObjectStore", refs: Iterable[ObjectRef]) -> None:
        """Move the objects at ``refs`` from ``source`` into this store.

        References keep their numbers and are re-bound to this store.

        Raises:
            RebaseCollision: If any of ``refs`` is already taken here.
        """

        rebind = self._rebinder(lambda ref: ref)
        for ref in refs:
            if ref in self._objects:
                raise RebaseCollision(ref)
            self.put(ref, rebind(source.resolve(ref)))

    def bind(self, value: PdfObject) -> PdfObject:
        """Re-bind every reference nested in ``value`` to this store, in place."""

        return self._rebinder(lambda ref: ref)(value)

    def copy_subgraph(
        self,
        source: "ObjectStore",
        roots: Iterable[ObjectRef],
        *,
        keep_pages: Iterable[ObjectRef] = (),
        inherited: Mapping[ObjectRef, Mapping[str, PdfObject]] | None = None,
    ) -> dict[ObjectRef, ObjectRef]:
        """Copy the closure of ``roots`` from ``source`` under fresh numbers.

        ``source`` is only read.  Page objects lose their ``/Parent``; page
        tree nodes other than ``keep_pages`` are not copied and references
        to them become ``null``.  ``inherited`` supplies, per page, attributes
        to set on the copy where the page has none of its own.  Returns the
        old to new reference mapping.
        """

        roots = list(roots)
        keep = set(keep_pages) | set(roots)
        inherited = inherited or {}
        extra = [
            target
            for ref in roots
            for value in inherited.get(ref, {}).values()
            for target in iter_references(value)
        ]

        def prune(ref: ObjectRef, value: PdfObject) -> bool:
            return _is_page_tree_node(value) and ref not in keep

        order = source.traverse([*roots, *extra], follow_page_parents=False, prune=prune)
        mapping = {ref: ObjectRef(self._next_number + index, 0) for index, ref in enumerate(order)}
        rebind = self._rebinder(mapping.get)
        for ref in order:
            value = copy_value(source.resolve(ref))
            if _is_page(value):
                value.pop(NameObject("/Parent"), None)
                for key, item in inherited.get(ref, {}).items():
                    if NameObject(key) not in value:
                        value[NameObject(key)] = copy_value(item)
            self.put(mapping[ref], rebind(value))
        return mapping

    def _rebinder(
        self, renumber: Callable[[ObjectRef], ObjectRef | None]
    ) -> Callable[[PdfObject], PdfObject]:
        seen: set[int] = set()

        def rebind(value: PdfObject) -> PdfObject:
            if isinstance(value, IndirectObject):
                target = renumber(ObjectRef.of(value))
                return NullObject() if target is None else self.reference(target)
            if isinstance(value, (DictionaryObject, ArrayObject)):
                # Containers are rewritten in place; shared ones only once.
                if id(value) in seen:
                    return value
                seen.add(id(value))
                items = value.items() if isinstance(value, DictionaryObject) else enumerate(value)
                for key, item in list(items):
                    value[key] = rebind(item)
            return value

        return rebind

    # -- Graph walking -------------------------------------------------------

    def traverse(
        self,
        roots: Iterable[ObjectRef],
        *,
        follow_page_parents: bool = True,
        prune: Callable[[ObjectRef, PdfObject], bool] | None = None,
    ) -> list[ObjectRef]:
        """Return the references reachable from ``roots`` in breadth-first order.

        Raises:
            DanglingReference: On the first reference that does not resolve.
        """

        order: list[ObjectRef] = []
        seen: set[ObjectRef] = set()
        pending = deque(roots)
        while pending:
            ref = pending.popleft()
            if ref in seen:
                continue
            seen.add(ref)
            value = self.resolve(ref)
            if prune is not None and prune(ref, value):
                continue
            order.append(ref)
            skip = ("/Parent",) if not follow_page_parents and _is_page(value) else ()
            pending.extend(iter_references(value, skip_keys=skip))
        return order

    def reachable(self) -> list[ObjectRef]:
        """Return every reference reachable from the trailer."""

        return self.traverse(iter_references(self.trailer))

    # -- Catalog accessors ---------------------------------------------------

    @property
    def catalog_ref(self) -> ObjectRef:
        root = self.trailer.get(NameObject("/Root"))
        if not isinstance(root, IndirectObject):
            raise UnparseablePdf(f"Document has no catalog: {self.source}")
        return ObjectRef.of(root)

    def catalog(self) -> DictionaryObject:
        catalog = self.resolve(self.catalog_ref)
        if not isinstance(catalog, DictionaryObject):
            raise UnparseablePdf(f"Document catalog is not a dictionary: {self.source}")
        return catalog

    def page_tree_root_ref(self) -> ObjectRef:
        pages = self.catalog().get(NameObject("/Pages"))
        if not isinstance(pages, IndirectObject):
            raise MissingPageTree(f"Document catalog has no /Pages entry: {self.source}")
        ref = ObjectRef.of(pages)
        try:
            node = self.resolve(ref)
        except DanglingReference as exc:
            raise MissingPageTree(f"Page tree root {ref} is missing: {self.source}") from exc
        if not isinstance(node, DictionaryObject):
            raise MissingPageTree(f"Page tree root {ref} is not a dictionary: {self.source}")
        return ref

    def page_tree_root(self) -> DictionaryObject:
        return self.resolve(self.page_tree_root_ref())  # type: ignore[return-value]

    def outline_root(self) -> DictionaryObject | None:
        """Return the ``/Outlines`` dictionary, or ``None`` when absent."""

        outlines = self.follow(self.catalog().get(NameObject("/Outlines")))
        return outlines if isinstance(outlines, DictionaryObject) else None

    # -- Page tree -----------------------------------------------------------

    def page_refs(self) -> list[ObjectRef]:
        """Return the leaf pages in document order."""

        return [ref for ref, _ in self._walk_pages()]

    def inherited_page_attributes(self) -> dict[ObjectRef, dict[str, PdfObject]]:
        """Map each leaf page, in document order, to the inherited attributes it lacks."""

        result: dict[ObjectRef, dict[str, PdfObject]] = {}
        for ref, inherited in self._walk_pages():
            page = self.resolve(ref)
            result[ref] = {key: value for key, value in inherited.items() if NameObject(key) not in page}
        return result

    def flatten_page_tree(self) -> list[ObjectRef]:
        """Copy inherited page attributes onto each leaf page.

        After this, every page can be re-parented under another page tree
        without changing how it renders.  Returns the pages in document order.
        """

        attributes = self.inherited_page_attributes()
        for ref, inherited in attributes.items():
            page = self.resolve(ref)
            for key, value in inherited.items():
                page[NameObject(key)] = copy_value(value)
        return list(attributes)

    def _walk_pages(self) -> Iterator[tuple[ObjectRef, dict[str, PdfObject]]]:
        root = self.page_tree_root_ref()
        visited: set[ObjectRef] = set()
        stack: list[tuple[ObjectRef, dict[str, PdfObject]]] = [(root, {})]
        while stack:
            ref, inherited = stack.pop()
            node = self.resolve(ref)
            if not isinstance(node, DictionaryObject):
                LOGGER.warning("Ignoring non-dictionary page tree node %s in %s", ref, self.source)
                continue
            kids = self.follow(node.get(NameObject("/Kids")))
            if not isinstance(kids, ArrayObject):
                yield ref, inherited
                continue
            if ref in visited:
                LOGGER.warning("Page tree cycle at %s in %s", ref, self.source)
                continue
            visited.add(ref)
            scope = dict(inherited)
            for key in INHERITABLE_PAGE_KEYS:
                value = node.get(NameObject(key))
                if value is not None:
                    scope[key] = value
            children = []
            for kid in kids:
                if isinstance(kid, IndirectObject):
                    children.append((ObjectRef.of(kid), scope))
                else:
                    LOGGER.warning("Ignoring direct page tree kid under %s in %s", ref, self.source)
            stack.extend(reversed(children))

    def attach_pages(self, pages: Iterable[ObjectRef]) -> None:
        """Append ``pages`` as direct children of the page tree root."""

        root_ref = self.page_tree_root_ref()
        root = self.resolve(root_ref)
        kids = self.follow(root.get(NameObject("/Kids")))
        if not isinstance(kids, ArrayObject):
            kids = ArrayObject()
            root[NameObject("/Kids")] = kids
        count = self.follow(root.get(NameObject("/Count")))
        total = int(count) if isinstance(count, (int, float)) else 0
        for ref in pages:
            page = self.resolve(ref)
            page[NameObject("/Parent")] = self.reference(root_ref)
            kids.append(self.reference(ref))
            total += 1
        root[NameObject("/Count")] = NumberObject(total)
