"""
Store and Collection records.

Both are frozen dataclasses: the pipeline never edits a record in place, it
builds a new one with dataclasses.replace.  Keys found in stored documents
that the pipeline does not own (collectionId, addedBy, favoritedBy, folios…)
are carried in ``extra`` so a whole-collection write never drops them.

Serialized documents use the storage key names (priceRange, imageUrl), not
the Python attribute names.
"""

from dataclasses import dataclass, field
from typing import Any

# Python attribute → document key, for fields whose names differ.
_DOCUMENT_KEYS: dict[str, str] = {
    "price_range": "priceRange",
    "image_url": "imageUrl",
}

_STORE_ATTRIBUTES: tuple[str, ...] = (
    "id",
    "store_name",
    "website",
    "instagram_name",
    "country",
    "city",
    "description",
    "tags",
    "price_range",
    "rating",
    "sustainability",
    "image_url",
)


@dataclass(frozen=True)
class Store:
    """One normalized brand/store record."""

    id: str
    store_name: str
    website: str = ""
    instagram_name: str = ""
    country: str = ""
    city: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    price_range: str = ""
    rating: float = 0.0
    sustainability: str = ""
    image_url: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a storage document (extra keys included)."""
        document: dict[str, Any] = dict(self.extra)
        for attribute in _STORE_ATTRIBUTES:
            value = getattr(self, attribute)
            if attribute == "tags":
                value = list(value)
            document[_DOCUMENT_KEYS.get(attribute, attribute)] = value
        return document

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "Store":
        """Build a Store from a storage document, keeping unknown keys."""
        known_keys = {_DOCUMENT_KEYS.get(a, a) for a in _STORE_ATTRIBUTES}
        extra = {k: v for k, v in document.items() if k not in known_keys}

        tags = document.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]

        return cls(
            id=str(document.get("id", "")),
            store_name=str(document.get("store_name") or ""),
            website=str(document.get("website") or ""),
            instagram_name=str(document.get("instagram_name") or ""),
            country=str(document.get("country") or ""),
            city=str(document.get("city") or ""),
            description=str(document.get("description") or ""),
            tags=tuple(str(tag) for tag in tags),
            price_range=str(document.get("priceRange") or ""),
            rating=float(document.get("rating") or 0.0),
            sustainability=str(document.get("sustainability") or ""),
            image_url=str(document.get("imageUrl") or ""),
            extra=extra,
        )


@dataclass(frozen=True)
class Collection:
    """A user's collection: the aggregate persisted as one document."""

    id: str
    name: str = ""
    stores: tuple[Store, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = dict(self.extra)
        document["id"] = self.id
        document["name"] = self.name
        document["stores"] = [store.to_dict() for store in self.stores]
        return document

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "Collection":
        extra = {
            k: v for k, v in document.items() if k not in ("id", "name", "stores")
        }
        return cls(
            id=str(document.get("id", "")),
            name=str(document.get("name") or ""),
            stores=tuple(Store.from_dict(s) for s in document.get("stores") or []),
            extra=extra,
        )
