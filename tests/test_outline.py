from __future__ import annotations

from pathlib import Path

from pypdf.generic import ArrayObject, NameObject, TextStringObject

from pdfunite_tree.outline import OutlineBuilder, OutlineNode, outline_depth, read_outline
from pdfunite_tree.store import ObjectRef, ObjectStore, dictionary
from pdfunite_tree.types import DirectoryGroup, LeafDocument


def shape(nodes: list[OutlineNode]) -> list[tuple]:
    return [(node.title, node.page, shape(node.children)) for node in nodes]


def make_document(page_count: int) -> tuple[ObjectStore, list[ObjectRef]]:
    store = ObjectStore.new_document()
    pages = [store.insert(dictionary({"/Type": NameObject("/Page")})) for _ in range(page_count)]
    store.attach_pages(pages)
    return store, pages


def make_group(root: Path) -> DirectoryGroup:
    empty = ObjectStore.new_document()
    chapter = DirectoryGroup(
        name="ch1",
        path=root / "ch1",
        children=[
            LeafDocument(name="a.pdf", path=root / "ch1" / "a.pdf", store=empty),
            LeafDocument(name="b.pdf", path=root / "ch1" / "b.pdf", store=empty),
        ],
    )
    return DirectoryGroup(
        name="root",
        path=root,
        children=[chapter, LeafDocument(name="c.pdf", path=root / "c.pdf", store=empty)],
    )


def ref_of(item, key: str) -> ObjectRef:
    return ObjectRef.of(item.get(NameObject(key)))


def test_build_mirrors_directory_tree(tmp_path: Path) -> None:
    _, pages = make_document(3)
    first_pages = {
        tmp_path / "ch1" / "a.pdf": pages[0],
        tmp_path / "ch1" / "b.pdf": pages[1],
        tmp_path / "c.pdf": pages[2],
    }

    nodes = OutlineBuilder().build(make_group(tmp_path), first_pages)

    assert shape(nodes) == [
        ("ch1", pages[0], [("a.pdf", pages[0], []), ("b.pdf", pages[1], [])]),
        ("c.pdf", pages[2], []),
    ]
    assert outline_depth(nodes) == 2


def test_structural_directories_have_no_destination(tmp_path: Path) -> None:
    _, pages = make_document(3)
    first_pages = {
        tmp_path / "ch1" / "a.pdf": pages[0],
        tmp_path / "ch1" / "b.pdf": pages[1],
        tmp_path / "c.pdf": pages[2],
    }

    nodes = OutlineBuilder(navigable_directories=False).build(make_group(tmp_path), first_pages)

    assert nodes[0].page is None
    assert nodes[0].children[0].page == pages[0]


def test_attach_links_items_and_counts() -> None:
    store, pages = make_document(3)
    nodes = [
        OutlineNode(
            title="ch1",
            page=pages[0],
            children=[OutlineNode("a.pdf", pages[0]), OutlineNode("b.pdf", pages[1])],
        ),
        OutlineNode("c.pdf", pages[2]),
    ]

    root_ref = OutlineBuilder().attach(store, nodes)

    catalog = store.catalog()
    assert ref_of(catalog, "/Outlines") == root_ref
    assert catalog["/PageMode"] == "/UseOutlines"
    root = store.resolve(root_ref)
    assert root["/Type"] == "/Outlines"
    assert root["/Count"] == 4

    chapter_ref, last_ref = ref_of(root, "/First"), ref_of(root, "/Last")
    chapter, last = store.resolve(chapter_ref), store.resolve(last_ref)
    assert chapter["/Title"] == "ch1"
    assert chapter["/Count"] == 2
    assert ref_of(chapter, "/Parent") == root_ref
    assert ref_of(chapter, "/Next") == last_ref
    assert ref_of(last, "/Prev") == chapter_ref
    assert "/Prev" not in chapter
    assert "/Next" not in last
    assert "/Count" not in last

    first_child = store.resolve(ref_of(chapter, "/First"))
    assert ref_of(first_child, "/Parent") == chapter_ref
    destination = first_child.get(NameObject("/Dest"))
    assert ObjectRef.of(destination[0]) == pages[0]
    assert destination[1] == "/Fit"


def test_read_outline_returns_attached_tree() -> None:
    store, pages = make_document(3)
    nodes = [
        OutlineNode(
            title="Kapitel é",
            page=pages[0],
            children=[OutlineNode("a.pdf", pages[0]), OutlineNode("b.pdf", pages[1])],
        ),
        OutlineNode("c.pdf", pages[2]),
    ]
    OutlineBuilder().attach(store, nodes)

    assert shape(read_outline(store)) == shape(nodes)


def test_read_outline_without_outline_is_empty() -> None:
    store, _ = make_document(1)

    assert read_outline(store) == []


def test_read_outline_stops_at_cycles() -> None:
    store, pages = make_document(2)
    OutlineBuilder().attach(store, [OutlineNode("one", pages[0]), OutlineNode("two", pages[1])])
    root = store.outline_root()
    first_ref, last_ref = ref_of(root, "/First"), ref_of(root, "/Last")
    store.resolve(last_ref)[NameObject("/Next")] = store.reference(first_ref)

    assert [node.title for node in read_outline(store)] == ["one", "two"]


def test_read_outline_follows_goto_actions() -> None:
    store, pages = make_document(2)
    OutlineBuilder().attach(store, [OutlineNode("one")])
    item = store.resolve(ref_of(store.outline_root(), "/First"))
    item[NameObject("/Title")] = TextStringObject("jump")
    item[NameObject("/A")] = dictionary(
        {
            "/S": NameObject("/GoTo"),
            "/D": ArrayObject([store.reference(pages[1]), NameObject("/Fit")]),
        }
    )

    assert shape(read_outline(store)) == [("jump", pages[1], [])]
