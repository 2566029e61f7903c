"""
Tests for output/collection_store.py

Covers: loading missing collections, full round trips with unknown keys,
collection id validation, and atomic saves.
"""

import json
from unittest.mock import patch

import pytest

from output.collection_store import JsonCollectionStore
from processing.models import Collection, Store


def _make_collection() -> Collection:
    return Collection(
        id="col-1",
        name="Favourites",
        stores=(
            Store(
                id="s1",
                store_name="Ganni",
                website="https://ganni.com",
                tags=("Scandi", "Prints"),
                price_range="mid",
                extra={"addedBy": "user-1", "favoritedBy": ["user-2"]},
            ),
        ),
        extra={"ownerId": "user-1", "folios": [{"id": "f1"}]},
    )


class TestLoad:
    def test_missing_collection_is_empty(self, tmp_path):
        collection = JsonCollectionStore(tmp_path).load("col-1")
        assert collection.id == "col-1"
        assert collection.stores == ()

    def test_round_trip_keeps_unknown_keys(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.save(_make_collection())
        loaded = store.load("col-1")

        assert loaded == _make_collection()
        assert loaded.extra == {"ownerId": "user-1", "folios": [{"id": "f1"}]}
        assert loaded.stores[0].extra == {"addedBy": "user-1", "favoritedBy": ["user-2"]}

    def test_document_uses_storage_keys(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.save(_make_collection())
        document = json.loads(store.path_for("col-1").read_text(encoding="utf-8"))
        assert document["stores"][0]["priceRange"] == "mid"
        assert document["stores"][0]["tags"] == ["Scandi", "Prints"]


class TestCollectionIds:
    @pytest.mark.parametrize("collection_id", ["", "../etc", "a b", "col/1"])
    def test_invalid_ids_rejected(self, tmp_path, collection_id):
        with pytest.raises(ValueError, match="Invalid collection id"):
            JsonCollectionStore(tmp_path).path_for(collection_id)

    def test_valid_id(self, tmp_path):
        assert JsonCollectionStore(tmp_path).path_for("Col_1-a").name == "Col_1-a.json"


class TestAtomicSave:
    def test_no_temporary_files_left(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.save(_make_collection())
        assert [p.name for p in tmp_path.iterdir()] == ["col-1.json"]

    def test_creates_root(self, tmp_path):
        store = JsonCollectionStore(tmp_path / "nested" / "collections")
        store.save(_make_collection())
        assert store.path_for("col-1").exists()

    def test_failed_replace_keeps_previous_document(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.save(_make_collection())
        before = store.path_for("col-1").read_bytes()

        with patch("output.collection_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.save(Collection(id="col-1", name="Changed"))

        assert store.path_for("col-1").read_bytes() == before
        assert [p.name for p in tmp_path.iterdir()] == ["col-1.json"]
