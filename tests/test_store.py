from __future__ import annotations

from typing import Any

import pytest
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    StreamObject,
    TextStringObject,
)

from pdfunite_tree.exceptions import DanglingReference, MissingPageTree, RebaseCollision
from pdfunite_tree.samples import build_basic_document
from pdfunite_tree.store import ObjectRef, ObjectStore, dictionary, iter_references


def plain(value: Any, offset: int = 0) -> Any:
    """Convert a value into plain Python, with references shifted back by ``offset``."""

    if isinstance(value, IndirectObject):
        return ("ref", value.idnum - offset, value.generation)
    if isinstance(value, StreamObject):
        return ("stream", bytes(value._data), plain(dict(value.items()), offset))
    if isinstance(value, dict):
        return {str(key): plain(item, offset) for key, item in value.items()}
    if isinstance(value, list):
        return [plain(item, offset) for item in value]
    return value


def test_new_document_has_catalog_and_empty_page_tree() -> None:
    store = ObjectStore.new_document("1.6")

    assert store.version == "1.6"
    assert store.catalog()["/Type"] == "/Catalog"
    assert store.page_tree_root()["/Count"] == 0
    assert store.page_refs() == []
    assert store.outline_root() is None


def test_insert_never_reuses_numbers() -> None:
    store = ObjectStore()
    first = store.insert(NumberObject(1))
    second = store.insert(NumberObject(2))
    store.remove(second)

    third = store.insert(NumberObject(3))

    assert first == ObjectRef(1, 0)
    assert third.number == 3
    assert second not in store


def test_resolve_missing_reference_raises() -> None:
    store = ObjectStore(source="memory.pdf")

    with pytest.raises(DanglingReference) as excinfo:
        store.resolve(ObjectRef(7, 0))

    assert excinfo.value.ref == ObjectRef(7, 0)
    assert "memory.pdf" in str(excinfo.value)


def test_bound_references_resolve_through_store() -> None:
    store = ObjectStore()
    target = store.insert(TextStringObject("hello"))
    holder = store.insert(dictionary({"/Value": store.reference(target)}))

    value = store.resolve(holder)["/Value"]

    assert value == "hello"


def test_rebase_is_pure_renumbering() -> None:
    store = build_basic_document("doc", 3)
    before = {ref: plain(store.resolve(ref)) for ref in store.references()}
    pages_before = len(store.page_refs())

    mapping = store.rebase(10)

    assert set(mapping) == set(before)
    for old, new in mapping.items():
        assert new == ObjectRef(old.number + 10, old.generation)
        assert plain(store.resolve(new), offset=10) == before[old]
    assert store.catalog_ref.number == min(mapping.values()).number + 1
    assert len(store.page_refs()) == pages_before


def test_rebase_advances_fresh_numbers() -> None:
    store = build_basic_document("doc", 1)
    highest = store.max_number

    store.rebase(5)
    ref = store.insert(NullObject())

    assert ref.number == highest + 6


def test_rebase_rejects_negative_offset() -> None:
    store = build_basic_document("doc", 1)

    with pytest.raises(ValueError):
        store.rebase(-1)


def test_absorb_detects_collisions() -> None:
    combined = ObjectStore.new_document()
    other = ObjectStore.new_document()

    with pytest.raises(RebaseCollision):
        combined.absorb(other, [ObjectRef(1, 0)])


def test_missing_pages_entry_raises_missing_page_tree() -> None:
    store = ObjectStore()
    catalog = store.insert(dictionary({"/Type": NameObject("/Catalog")}))
    store.trailer[NameObject("/Root")] = store.reference(catalog)

    with pytest.raises(MissingPageTree):
        store.page_tree_root()


def test_page_refs_follow_nested_kids_in_order() -> None:
    store = ObjectStore.new_document()
    root_ref = store.page_tree_root_ref()
    pages = [store.insert(dictionary({"/Type": NameObject("/Page")})) for _ in range(3)]
    middle = store.insert(
        dictionary(
            {
                "/Type": NameObject("/Pages"),
                "/Kids": ArrayObject([store.reference(pages[1]), store.reference(pages[2])]),
                "/Count": NumberObject(2),
                "/Rotate": NumberObject(90),
            }
        )
    )
    root = store.resolve(root_ref)
    root[NameObject("/Kids")] = ArrayObject([store.reference(pages[0]), store.reference(middle)])
    root[NameObject("/Count")] = NumberObject(3)

    assert store.page_refs() == pages
    flattened = store.flatten_page_tree()

    assert flattened == pages
    assert "/Rotate" not in store.resolve(pages[0])
    assert store.resolve(pages[1])["/Rotate"] == 90


def test_page_tree_cycle_is_not_followed_twice() -> None:
    store = ObjectStore.new_document()
    root_ref = store.page_tree_root_ref()
    page = store.insert(dictionary({"/Type": NameObject("/Page")}))
    root = store.resolve(root_ref)
    root[NameObject("/Kids")] = ArrayObject([store.reference(page), store.reference(root_ref)])

    assert store.page_refs() == [page]


def test_flatten_copies_inherited_resources_onto_pages() -> None:
    store = build_basic_document("doc", 2)
    pages = store.flatten_page_tree()

    for ref in pages:
        page = store.resolve(ref)
        assert "/Resources" in page
        assert "/MediaBox" in page


def test_reachable_reports_dangling_reference() -> None:
    store = build_basic_document("doc", 1)
    page = store.resolve(store.page_refs()[0])
    page[NameObject("/Annots")] = store.reference(ObjectRef(99, 0))

    with pytest.raises(DanglingReference):
        store.reachable()


def test_copy_subgraph_prunes_unkept_pages_and_leaves_source_untouched() -> None:
    source = build_basic_document("doc", 2)
    first, second = source.flatten_page_tree()
    link = DictionaryObject()
    link[NameObject("/Dest")] = ArrayObject([source.reference(second), NameObject("/Fit")])
    source.resolve(first)[NameObject("/Annots")] = ArrayObject([link])
    snapshot = {ref: plain(source.resolve(ref)) for ref in source.references()}

    target = ObjectStore.new_document()
    mapping = target.copy_subgraph(source, [first], keep_pages=[first])

    copied = target.resolve(mapping[first])
    assert "/Parent" not in copied
    assert isinstance(copied["/Annots"][0]["/Dest"][0], NullObject)
    assert second not in mapping
    assert {ref: plain(source.resolve(ref)) for ref in source.references()} == snapshot


def test_iter_references_skips_top_level_keys_only() -> None:
    store = ObjectStore()
    value = dictionary(
        {
            "/Parent": store.reference(ObjectRef(1, 0)),
            "/Nested": dictionary({"/Parent": store.reference(ObjectRef(2, 0))}),
        }
    )

    assert list(iter_references(value, skip_keys=("/Parent",))) == [ObjectRef(2, 0)]


def test_attach_pages_updates_parent_and_count() -> None:
    store = ObjectStore.new_document()
    pages = [store.insert(dictionary({"/Type": NameObject("/Page")})) for _ in range(2)]

    store.attach_pages(pages)

    root_ref = store.page_tree_root_ref()
    assert store.page_tree_root()["/Count"] == 2
    for ref in pages:
        assert store.resolve(ref).get("/Parent") == store.reference(root_ref)


def test_inherited_page_attributes_leave_pages_unchanged() -> None:
    store = build_basic_document("doc", 2)

    attributes = store.inherited_page_attributes()

    assert list(attributes) == store.page_refs()
    for ref, inherited in attributes.items():
        assert sorted(inherited) == ["/MediaBox", "/Resources"]
        assert "/MediaBox" not in store.resolve(ref)
        assert "/Resources" not in store.resolve(ref)
