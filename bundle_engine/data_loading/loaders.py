"""
Catalog snapshot loading and saving.

A snapshot is a single JSON document with one list per collection:

    {"products": [...], "reviews": [...], "bundles": [...], "users": [...]}

Each entry is the record's to_dict() form. Ids are preserved on load, so
review references and bundle parts stay valid across a round trip.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any

from ..catalog.schema import Bundle, Product, Review, User
from ..catalog.store import DocumentStore

logger = logging.getLogger(__name__)

COLLECTION_TYPES = {
    "products": Product,
    "reviews": Review,
    "bundles": Bundle,
    "users": User,
}


def load_catalog(filepath: str) -> DocumentStore:
    """
    Load a catalog snapshot into a fresh document store.

    Args:
        filepath: Path to the JSON snapshot

    Returns:
        DocumentStore populated with the snapshot's records

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a JSON object or a record is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {filepath}")

    logger.info(f"Loading catalog from {filepath}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Catalog file must contain a JSON object: {filepath}")

    store = DocumentStore()
    for name, record_type in COLLECTION_TYPES.items():
        collection = getattr(store, name)
        for idx, record in enumerate(data.get(name, [])):
            try:
                collection.create(record_type.from_dict(record))
            except (KeyError, TypeError) as e:
                raise ValueError(f"Malformed {name} record at index {idx}: {e}") from e

    logger.info(f"Loaded catalog: {store.stats()}")
    return store


def save_catalog(store: DocumentStore, filepath: str) -> None:
    """
    Write every collection of the store to a JSON snapshot.

    Args:
        store: Document store to export
        filepath: Destination path (parent directories are created)
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    data: Dict[str, Any] = {
        name: [record.to_dict() for record in getattr(store, name).find()]
        for name in COLLECTION_TYPES
    }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    logger.info(f"Saved catalog to {filepath}: {store.stats()}")
