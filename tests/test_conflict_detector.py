"""
Tests for processing/conflict_detector.py

Covers: name-key collisions, empty keys, sequential folding within a batch,
and the merge / overwrite / skip resolutions.
"""

import pytest

from processing.conflict_detector import (
    Collision,
    detect_collisions,
    find_existing_match,
    merge_records,
    overwrite_record,
    resolve_collision,
)
from processing.models import Store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_store(store_id: str = "s1", store_name: str = "Ganni", **fields) -> Store:
    return Store(id=store_id, store_name=store_name, **fields)


# ═══════════════════════════════════════════════════════════════════════════
# Detection
# ═══════════════════════════════════════════════════════════════════════════

class TestDetectCollisions:
    def test_no_existing_records(self):
        incoming = [_make_store("n1", "Ganni"), _make_store("n2", "Toteme")]
        report = detect_collisions(incoming, [])
        assert report.collisions == []
        assert report.non_conflicting == incoming
        assert not report.has_collisions

    @pytest.mark.parametrize("name", ["ganni", "GANNI!", "  Ganni ", "G-a-n-n-i"])
    def test_name_key_ignores_case_and_punctuation(self, name):
        existing = [_make_store("e1", "Ganni")]
        report = detect_collisions([_make_store("n1", name)], existing)
        assert len(report.collisions) == 1
        collision = report.collisions[0]
        assert collision.existing.id == "e1"
        assert collision.incoming.id == "n1"
        assert collision.name_key == "ganni"

    def test_accents_folded(self):
        existing = [_make_store("e1", "Café Noir")]
        report = detect_collisions([_make_store("n1", "cafe noir")], existing)
        assert len(report.collisions) == 1

    def test_different_names_pass_through(self):
        existing = [_make_store("e1", "Ganni")]
        report = detect_collisions([_make_store("n1", "Toteme")], existing)
        assert report.collisions == []
        assert [r.id for r in report.non_conflicting] == ["n1"]

    def test_empty_key_never_collides(self):
        existing = [_make_store("e1", "!!!")]
        incoming = [_make_store("n1", "???"), _make_store("n2", "***")]
        report = detect_collisions(incoming, existing)
        assert report.collisions == []
        assert len(report.non_conflicting) == 2

    def test_repeat_within_batch_collides_with_earlier_row(self):
        incoming = [_make_store("n1", "Toteme"), _make_store("n2", "TOTEME")]
        report = detect_collisions(incoming, [])
        assert [r.id for r in report.non_conflicting] == ["n1"]
        assert len(report.collisions) == 1
        assert report.collisions[0].existing.id == "n1"
        assert report.collisions[0].incoming.id == "n2"

    def test_collection_record_preferred_over_batch_record(self):
        existing = [_make_store("e1", "Ganni")]
        incoming = [_make_store("n1", "Ganni"), _make_store("n2", "ganni")]
        report = detect_collisions(incoming, existing)
        assert [c.existing.id for c in report.collisions] == ["e1", "e1"]

    def test_input_order_kept(self):
        existing = [_make_store("e1", "A"), _make_store("e2", "B")]
        incoming = [_make_store("n1", "B"), _make_store("n2", "C"), _make_store("n3", "A")]
        report = detect_collisions(incoming, existing)
        assert [c.incoming.id for c in report.collisions] == ["n1", "n3"]


class TestFindExistingMatch:
    def test_match(self):
        existing = [_make_store("e1", "Toteme"), _make_store("e2", "Ganni")]
        assert find_existing_match(_make_store("n1", "ganni"), existing).id == "e2"

    def test_no_match(self):
        assert find_existing_match(_make_store("n1", "Ganni"), [_make_store("e1", "Toteme")]) is None

    def test_empty_key(self):
        assert find_existing_match(_make_store("n1", "..."), [_make_store("e1", "---")]) is None


# ═══════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════

class TestMerge:
    def test_non_destructive(self):
        existing = _make_store(
            "e1", "Ganni",
            website="https://ganni.com",
            description="Danish label",
            tags=("Scandi", "Prints"),
            price_range="",
            extra={"addedBy": "user-1"},
        )
        incoming = _make_store(
            "n1", "GANNI",
            website="https://other.com",
            instagram_name="ganni",
            description="Something else",
            tags=("Prints", "Denim"),
            price_range="high",
        )
        merged = merge_records(existing, incoming)
        assert merged.id == "e1"
        assert merged.store_name == "Ganni"
        assert merged.website == "https://ganni.com"
        assert merged.instagram_name == "ganni"
        assert merged.description == "Danish label"
        assert merged.tags == ("Scandi", "Prints", "Denim")
        assert merged.price_range == "high"
        assert merged.extra == {"addedBy": "user-1"}

    def test_existing_tags_kept_first(self):
        existing = _make_store("e1", tags=("b", "a"))
        incoming = _make_store("n1", tags=("c", "a"))
        assert merge_records(existing, incoming).tags == ("b", "a", "c")

    def test_union_capped_existing_first(self):
        existing = _make_store("e1", tags=tuple(f"old{i}" for i in range(20)))
        incoming = _make_store("n1", tags=tuple(f"new{i}" for i in range(5)))
        merged = merge_records(existing, incoming)
        assert len(merged.tags) == 20
        assert merged.tags == existing.tags

    def test_union_fills_up_to_cap(self):
        existing = _make_store("e1", tags=("a", "b"))
        incoming = _make_store("n1", tags=("c", "d", "e"))
        assert merge_records(existing, incoming, max_tags=3).tags == ("a", "b", "c")

    def test_unknown_price_filled(self):
        existing = _make_store("e1", price_range="unknown")
        incoming = _make_store("n1", price_range="low")
        assert merge_records(existing, incoming).price_range == "low"

    def test_known_price_kept(self):
        existing = _make_store("e1", price_range="mid")
        incoming = _make_store("n1", price_range="low")
        assert merge_records(existing, incoming).price_range == "mid"

    def test_originals_unchanged(self):
        existing = _make_store("e1", tags=("a",))
        incoming = _make_store("n1", tags=("b",))
        merge_records(existing, incoming)
        assert existing.tags == ("a",)
        assert incoming.tags == ("b",)


class TestOverwrite:
    def test_incoming_values_win(self):
        existing = _make_store(
            "e1", "Ganni",
            website="https://ganni.com",
            city="Copenhagen",
            tags=("Scandi",),
            extra={"addedBy": "user-1"},
        )
        incoming = _make_store("n1", "GANNI", website="https://ganni.dk", tags=("Denim",))
        result = overwrite_record(existing, incoming)
        assert result.id == "e1"
        assert result.store_name == "GANNI"
        assert result.website == "https://ganni.dk"
        assert result.tags == ("Denim",)
        assert result.extra == {"addedBy": "user-1"}

    def test_blank_incoming_fields_do_not_erase(self):
        existing = _make_store("e1", city="Copenhagen", price_range="mid")
        incoming = _make_store("n1", price_range="unknown")
        result = overwrite_record(existing, incoming)
        assert result.city == "Copenhagen"
        assert result.price_range == "mid"


class TestResolveCollision:
    def _collision(self):
        return Collision(
            incoming=_make_store("n1", "ganni", tags=("b",)),
            existing=_make_store("e1", "Ganni", tags=("a",)),
            name_key="ganni",
        )

    def test_merge(self):
        assert resolve_collision(self._collision(), "merge").tags == ("a", "b")

    def test_merge_respects_tag_cap(self):
        assert resolve_collision(self._collision(), "merge", max_tags=1).tags == ("a",)

    def test_overwrite(self):
        result = resolve_collision(self._collision(), "overwrite")
        assert result.id == "e1"
        assert result.tags == ("b",)

    def test_skip(self):
        assert resolve_collision(self._collision(), "skip") is None

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="Unknown resolution action"):
            resolve_collision(self._collision(), "delete")
