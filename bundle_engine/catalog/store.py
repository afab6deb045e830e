"""
In-memory document store for catalog records.

The engine only needs CRUD with per-document atomicity, so the store is a
set of collections keyed by id. Each collection:
- hands out deep copies, so callers never hold live references to stored
  records and must re-resolve by id after any batch operation
- preserves insertion order (the reconciler relies on it to pick a primary)
- enforces declared unique indexes (Review: user_id + product_id)
- rejects patches to declared immutable fields (Product: group_key)
"""

import copy
import logging
import threading
import uuid
from enum import Enum
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..errors import (
    BundleNotFoundError,
    DuplicateKeyError,
    ImmutableFieldError,
    NotFoundError,
    ProductNotFoundError,
    ReviewNotFoundError,
    UserNotFoundError,
)
from .schema import Bundle, Product, Review, User

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Collection(Generic[T]):
    """
    A single collection of records of one dataclass type.

    Attributes:
        name: Collection name (used in error messages)
        unique_indexes: Field tuples whose combined values must be unique
        immutable_fields: Fields that cannot change after create
        not_found_error: Error type raised by update/delete on a missing id
    """

    def __init__(
        self,
        name: str,
        unique_indexes: Sequence[Tuple[str, ...]] = (),
        immutable_fields: Sequence[str] = (),
        not_found_error: type = NotFoundError
    ):
        self.name = name
        self.unique_indexes = [tuple(idx) for idx in unique_indexes]
        self.immutable_fields = set(immutable_fields)
        self.not_found_error = not_found_error
        self._docs: Dict[str, T] = {}
        self._lock = threading.RLock()

    def find(self, query: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[T]:
        """
        Return copies of all records matching the query, in insertion order.

        Args:
            query: Field -> value equality filter. A list, tuple or set value
                matches when the field equals any of its members.
            limit: Maximum number of records to return

        Returns:
            List of matching records
        """
        query = query or {}
        with self._lock:
            results = []
            for doc in self._docs.values():
                if _matches(doc, query):
                    results.append(copy.deepcopy(doc))
                    if limit is not None and len(results) >= limit:
                        break
            return results

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        found = self.find(query, limit=1)
        return found[0] if found else None

    def find_by_id(self, doc_id: Optional[str]) -> Optional[T]:
        if doc_id is None:
            return None
        with self._lock:
            doc = self._docs.get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def create(self, entity: T) -> T:
        """
        Insert a record, assigning an id if it has none.

        Raises:
            DuplicateKeyError: If the id or a unique index is already taken
        """
        with self._lock:
            doc = copy.deepcopy(entity)
            if getattr(doc, "id", None) is None:
                doc.id = uuid.uuid4().hex
            elif doc.id in self._docs:
                raise DuplicateKeyError(self.name, ("id",), (doc.id,))
            self._check_unique(doc)
            self._docs[doc.id] = doc
            return copy.deepcopy(doc)

    def update(self, doc_id: str, patch: Dict[str, Any]) -> T:
        """
        Apply a field patch to one record atomically.

        Raises:
            NotFoundError: If the record does not exist
            ImmutableFieldError: If the patch changes an immutable field
            DuplicateKeyError: If the patch violates a unique index
        """
        with self._lock:
            current = self._docs.get(doc_id)
            if current is None:
                raise self.not_found_error(doc_id)

            updated = copy.deepcopy(current)
            for key, value in patch.items():
                if key == "id":
                    continue
                if not hasattr(updated, key):
                    raise AttributeError(f"{self.name} has no field '{key}'")
                if key in self.immutable_fields and getattr(current, key) != value:
                    raise ImmutableFieldError(self.name, key)
                setattr(updated, key, copy.deepcopy(value))

            self._check_unique(updated, exclude_id=doc_id)
            self._docs[doc_id] = updated
            return copy.deepcopy(updated)

    def push(self, doc_id: str, field_name: str, value: Any) -> T:
        """
        Append a value to a list field of the stored record atomically.

        The append applies to the current stored list, so concurrent pushes
        to the same record are never lost.

        Raises:
            NotFoundError: If the record does not exist
        """
        with self._lock:
            current = self._docs.get(doc_id)
            if current is None:
                raise self.not_found_error(doc_id)
            return self.update(doc_id, {field_name: getattr(current, field_name) + [value]})

    def save(self, entity: T) -> T:
        """Write back a full record previously read from this collection."""
        patch = {
            key: value for key, value in vars(entity).items()
            if key != "id"
        }
        return self.update(entity.id, patch)

    def delete(self, doc_id: str) -> None:
        with self._lock:
            if doc_id not in self._docs:
                raise self.not_found_error(doc_id)
            del self._docs[doc_id]

    def delete_many(self, doc_ids: Iterable[str]) -> int:
        """Delete every listed record that exists; returns the number deleted."""
        deleted = 0
        with self._lock:
            for doc_id in doc_ids:
                if self._docs.pop(doc_id, None) is not None:
                    deleted += 1
        return deleted

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        if not query:
            with self._lock:
                return len(self._docs)
        return len(self.find(query))

    def _check_unique(self, doc: T, exclude_id: Optional[str] = None) -> None:
        for index in self.unique_indexes:
            values = tuple(getattr(doc, f) for f in index)
            for other_id, other in self._docs.items():
                if other_id in (exclude_id, doc.id):
                    continue
                if tuple(getattr(other, f) for f in index) == values:
                    raise DuplicateKeyError(self.name, index, values)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _matches(doc: Any, query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        actual = _plain(getattr(doc, key, None))
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in [_plain(e) for e in expected]:
                return False
        elif actual != _plain(expected):
            return False
    return True


class DocumentStore:
    """
    The catalog's persistent collections.

    Attributes:
        products: Product records (group_key is immutable)
        reviews: Review records (unique on user_id + product_id)
        bundles: Bundle records
        users: User records
    """

    def __init__(self):
        self.products: Collection[Product] = Collection(
            "products",
            immutable_fields=["group_key"],
            not_found_error=ProductNotFoundError
        )
        self.reviews: Collection[Review] = Collection(
            "reviews",
            unique_indexes=[("user_id", "product_id")],
            not_found_error=ReviewNotFoundError
        )
        self.bundles: Collection[Bundle] = Collection(
            "bundles",
            not_found_error=BundleNotFoundError
        )
        self.users: Collection[User] = Collection(
            "users",
            not_found_error=UserNotFoundError
        )

    def stats(self) -> Dict[str, int]:
        return {
            "products": self.products.count(),
            "reviews": self.reviews.count(),
            "bundles": self.bundles.count(),
            "users": self.users.count()
        }
