"""
Collection storage — the whole-collection document store the import writes to.

The pipeline only needs two operations: load a collection and save it back in
full.  CollectionStore describes that contract; JsonCollectionStore keeps one
JSON document per collection on disk.

Saves are atomic: the document is written to a temporary file in the same
directory and moved over the old one with os.replace, so a failed write
leaves the previous document untouched.

Public API:
    CollectionStore (protocol)
    JsonCollectionStore(root)
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

from processing.models import Collection

logger = logging.getLogger(__name__)

_VALID_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class CollectionStore(Protocol):
    """Whole-collection persistence used by the import pipeline."""

    def load(self, collection_id: str) -> Collection:
        ...

    def save(self, collection: Collection) -> None:
        ...


class JsonCollectionStore:
    """One ``<collection_id>.json`` document per collection under *root*."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def path_for(self, collection_id: str) -> Path:
        """
        Document path for a collection.

        Raises:
            ValueError: The id contains characters other than letters,
                        digits, "_" and "-".
        """
        if not _VALID_ID.match(collection_id or ""):
            raise ValueError(f"Invalid collection id: '{collection_id}'")
        return self.root / f"{collection_id}.json"

    def load(self, collection_id: str) -> Collection:
        """Load a collection; a collection that was never saved is empty."""
        path = self.path_for(collection_id)
        if not path.exists():
            logger.info(f"Collection '{collection_id}' not found — starting empty")
            return Collection(id=collection_id)

        document = json.loads(path.read_text(encoding="utf-8"))
        collection = Collection.from_dict(document)
        logger.info(f"Loaded collection '{collection_id}' ({len(collection.stores)} stores)")
        return collection

    def save(self, collection: Collection) -> None:
        """Write the whole collection, replacing the stored document atomically."""
        path = self.path_for(collection.id)
        self.root.mkdir(parents=True, exist_ok=True)

        payload = json.dumps(collection.to_dict(), indent=2, ensure_ascii=False)
        fd, temp_name = tempfile.mkstemp(dir=self.root, prefix=f".{collection.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_name, path)
        except OSError as exc:
            logger.error(f"Could not save collection '{collection.id}': {exc}")
            if os.path.exists(temp_name):
                os.remove(temp_name)
            raise

        logger.info(f"Saved collection '{collection.id}' ({len(collection.stores)} stores)")
