"""
Tests for processing/merger.py

Covers: append (upsert by id plus new records), replace, collection-level
keys, and invalid modes.
"""

import pytest

from processing.merger import MergeResult, merge_into_collection
from processing.models import Collection, Store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_store(store_id: str, store_name: str = "", **fields) -> Store:
    return Store(id=store_id, store_name=store_name or f"Store {store_id}", **fields)


def _make_collection(*stores: Store) -> Collection:
    return Collection(
        id="col-1",
        name="Favourites",
        stores=tuple(stores),
        extra={"ownerId": "user-1", "folios": []},
    )


# ═══════════════════════════════════════════════════════════════════════════
# Append
# ═══════════════════════════════════════════════════════════════════════════

class TestAppend:
    def test_new_records_appended(self):
        collection = _make_collection(_make_store("a"))
        result = merge_into_collection(collection, [_make_store("b"), _make_store("c")])
        assert isinstance(result, MergeResult)
        assert [s.id for s in result.collection.stores] == ["a", "b", "c"]
        assert result.added == 2
        assert result.updated == 0
        assert result.total_stores == 3

    def test_records_with_existing_id_replace_in_place(self):
        collection = _make_collection(_make_store("a", "Old"), _make_store("b"))
        result = merge_into_collection(collection, [_make_store("a", "New")], "append")
        assert [s.store_name for s in result.collection.stores] == ["New", "Store b"]
        assert result.updated == 1
        assert result.added == 0

    def test_collection_keys_kept(self):
        collection = _make_collection()
        result = merge_into_collection(collection, [_make_store("a")])
        assert result.collection.name == "Favourites"
        assert result.collection.extra == {"ownerId": "user-1", "folios": []}

    def test_input_collection_unchanged(self):
        collection = _make_collection(_make_store("a"))
        merge_into_collection(collection, [_make_store("b")])
        assert [s.id for s in collection.stores] == ["a"]

    def test_empty_import(self):
        collection = _make_collection(_make_store("a"))
        result = merge_into_collection(collection, [])
        assert result.collection.stores == collection.stores


# ═══════════════════════════════════════════════════════════════════════════
# Replace
# ═══════════════════════════════════════════════════════════════════════════

class TestReplace:
    def test_records_become_the_collection(self):
        collection = _make_collection(_make_store("a"), _make_store("b"))
        result = merge_into_collection(collection, [_make_store("c")], "replace")
        assert [s.id for s in result.collection.stores] == ["c"]
        assert result.added == 1
        assert result.collection.extra["ownerId"] == "user-1"

    def test_replace_with_nothing_empties(self):
        collection = _make_collection(_make_store("a"))
        result = merge_into_collection(collection, [], "replace")
        assert result.collection.stores == ()


class TestInvalidMode:
    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown write mode"):
            merge_into_collection(_make_collection(), [], "upsert")
