"""Bookmark (outline) trees: building them from a merge unit and reading them back."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NumberObject,
    PdfObject,
    TextStringObject,
)

from .store import ObjectRef, ObjectStore, dictionary
from .types import DirectoryGroup

LOGGER = logging.getLogger("pdfunite_tree.outline")


@dataclass(slots=True)
class OutlineNode:
    """A bookmark: a title, an optional target page and nested bookmarks."""

    title: str
    page: ObjectRef | None = None
    children: list["OutlineNode"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def depth(self) -> int:
        return 1 + max((child.depth for child in self.children), default=0)

    def walk(self, ancestors: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], "OutlineNode"]]:
        """Yield ``(ancestor titles, node)`` for this node and its descendants in pre-order."""

        yield ancestors, self
        for child in self.children:
            yield from child.walk(ancestors + (self.title,))


def outline_depth(nodes: Sequence[OutlineNode]) -> int:
    return max((node.depth for node in nodes), default=0)


class OutlineBuilder:
    """Builds bookmark trees that mirror a :class:`DirectoryGroup`.

    Args:
        navigable_directories: When true, a directory bookmark jumps to the
            first page of its first document; otherwise it only groups its
            children.
    """

    def __init__(self, *, navigable_directories: bool = True) -> None:
        self.navigable_directories = navigable_directories

    def build(self, group: DirectoryGroup, first_pages: Mapping[Path, ObjectRef]) -> list[OutlineNode]:
        """Return one bookmark per child of ``group``, recursively.

        ``first_pages`` maps each document path to its first page in the
        combined document.
        """

        nodes: list[OutlineNode] = []
        for child in group.children:
            if isinstance(child, DirectoryGroup):
                node = OutlineNode(title=child.name, children=self.build(child, first_pages))
                if self.navigable_directories:
                    node.page = _first_page(node.children)
            else:
                node = OutlineNode(title=child.name, page=first_pages[child.path])
            nodes.append(node)
        return nodes

    def attach(self, store: ObjectStore, nodes: Sequence[OutlineNode]) -> ObjectRef:
        """Write ``nodes`` into ``store`` and hang them off the catalog.

        Returns the reference of the new outline root.
        """

        root_ref = store.insert(dictionary({"/Type": NameObject("/Outlines")}))
        visible = self._link(store, root_ref, nodes)
        store.resolve(root_ref)[NameObject("/Count")] = NumberObject(visible)

        catalog = store.catalog()
        catalog[NameObject("/Outlines")] = store.reference(root_ref)
        catalog[NameObject("/PageMode")] = NameObject("/UseOutlines")
        LOGGER.debug("Attached outline with %d entries at %s", visible, root_ref)
        return root_ref

    def _link(self, store: ObjectStore, parent_ref: ObjectRef, nodes: Sequence[OutlineNode]) -> int:
        refs = [store.insert(DictionaryObject()) for _ in nodes]
        if not refs:
            return 0
        parent = store.resolve(parent_ref)
        parent[NameObject("/First")] = store.reference(refs[0])
        parent[NameObject("/Last")] = store.reference(refs[-1])

        total = 0
        for index, (ref, node) in enumerate(zip(refs, nodes)):
            item = store.resolve(ref)
            item[NameObject("/Title")] = TextStringObject(node.title)
            item[NameObject("/Parent")] = store.reference(parent_ref)
            if index > 0:
                item[NameObject("/Prev")] = store.reference(refs[index - 1])
            if index < len(refs) - 1:
                item[NameObject("/Next")] = store.reference(refs[index + 1])
            if node.page is not None:
                item[NameObject("/Dest")] = ArrayObject(
                    [store.reference(node.page), NameObject("/Fit")]
                )
            descendants = self._link(store, ref, node.children)
            if descendants:
                # Positive count: the entry is shown expanded.
                item[NameObject("/Count")] = NumberObject(descendants)
            total += 1 + descendants
        return total


def _first_page(nodes: Sequence[OutlineNode]) -> ObjectRef | None:
    for node in nodes:
        for _, descendant in node.walk():
            if descendant.is_leaf and descendant.page is not None:
                return descendant.page
    return None


# -- Reading -----------------------------------------------------------------


def read_outline(store: ObjectStore) -> list[OutlineNode]:
    """Parse the ``/Outlines`` tree of ``store``; an absent outline gives ``[]``."""

    root = store.outline_root()
    if root is None:
        return []
    return _read_siblings(store, root.get(NameObject("/First")), set())


def _read_siblings(store: ObjectStore, first: PdfObject | None, seen: set[ObjectRef]) -> list[OutlineNode]:
    nodes: list[OutlineNode] = []
    current = first
    while isinstance(current, IndirectObject):
        ref = ObjectRef.of(current)
        if ref in seen:
            LOGGER.warning("Outline cycle at %s in %s", ref, store.source)
            break
        seen.add(ref)
        item = store.resolve(ref)
        if not isinstance(item, DictionaryObject):
            LOGGER.warning("Ignoring non-dictionary outline item %s", ref)
            break
        node = OutlineNode(title=_title(store, item), page=_destination_page(store, item))
        node.children = _read_siblings(store, item.get(NameObject("/First")), seen)
        nodes.append(node)
        current = item.get(NameObject("/Next"))
    return nodes


def _title(store: ObjectStore, item: DictionaryObject) -> str:
    title = store.follow(item.get(NameObject("/Title")))
    if title is None:
        return ""
    if isinstance(title, bytes):
        return title.decode("latin-1")
    return str(title)


def _destination_page(store: ObjectStore, item: DictionaryObject) -> ObjectRef | None:
    destination = store.follow(item.get(NameObject("/Dest")))
    if destination is None:
        action = store.follow(item.get(NameObject("/A")))
        if isinstance(action, DictionaryObject) and action.get(NameObject("/S")) == "/GoTo":
            destination = store.follow(action.get(NameObject("/D")))
    if isinstance(destination, ArrayObject) and len(destination) > 0:
        target = destination[0]
        if isinstance(target, IndirectObject):
            return ObjectRef.of(target)
    return None


__all__ = ["OutlineNode", "OutlineBuilder", "read_outline", "outline_depth"]
