"""Tests for the in-memory document store."""

import pytest

from bundle_engine.catalog import Category, Review
from bundle_engine.errors import (
    DuplicateKeyError,
    ImmutableFieldError,
    ProductNotFoundError,
    ValidationError,
)

from conftest import build_product


class TestCollectionReads:
    """Tests for find/find_by_id."""

    def test_create_assigns_id(self, store):
        created = store.products.create(build_product())
        assert created.id
        assert store.products.find_by_id(created.id).name == created.name

    def test_reads_are_copies(self, store):
        """Mutating a returned record does not change the stored one."""
        created = store.products.create(build_product())
        fetched = store.products.find_by_id(created.id)
        fetched.name = "changed"
        fetched.sources.clear()

        again = store.products.find_by_id(created.id)
        assert again.name == created.name
        assert len(again.sources) == 1

    def test_find_preserves_insertion_order(self, store):
        ids = [store.products.create(build_product(model=f"M{i}")).id for i in range(5)]
        assert [p.id for p in store.products.find()] == ids

    def test_find_by_membership_and_enum(self, store):
        cpu = store.products.create(build_product(category=Category.CPU, model="A"))
        gpu = store.products.create(build_product(category=Category.GPU, model="B"))
        store.products.create(build_product(category=Category.RAM, model="C"))

        assert [p.id for p in store.products.find({"category": Category.GPU})] == [gpu.id]
        assert [p.id for p in store.products.find({"category": "CPU"})] == [cpu.id]
        assert len(store.products.find({"id": [cpu.id, gpu.id, "missing"]})) == 2

    def test_find_limit(self, store):
        for i in range(3):
            store.products.create(build_product(model=f"M{i}"))
        assert len(store.products.find(limit=2)) == 2

    def test_missing_id(self, store):
        assert store.products.find_by_id("missing") is None
        assert store.products.find_by_id(None) is None


class TestCollectionWrites:
    """Tests for update/delete and declared constraints."""

    def test_update_unknown_field(self, store):
        created = store.products.create(build_product())
        with pytest.raises(AttributeError):
            store.products.update(created.id, {"colour": "red"})

    def test_update_missing_record(self, store):
        with pytest.raises(ProductNotFoundError):
            store.products.update("missing", {"name": "x"})

    def test_group_key_is_immutable(self, store):
        created = store.products.create(build_product())
        with pytest.raises(ImmutableFieldError):
            store.products.update(created.id, {"group_key": "other_key"})

    def test_save_with_unchanged_group_key(self, store):
        created = store.products.create(build_product())
        created.comfort_score = 42
        saved = store.products.save(created)
        assert saved.comfort_score == 42

    def test_review_unique_index(self, store):
        store.reviews.create(Review(user_id="u1", product_id="p1", rating=4, comment="ok"))
        with pytest.raises(DuplicateKeyError) as exc_info:
            store.reviews.create(Review(user_id="u1", product_id="p1", rating=2, comment="again"))
        assert isinstance(exc_info.value, ValidationError)

    def test_review_unique_index_on_update(self, store):
        store.reviews.create(Review(user_id="u1", product_id="p1", rating=4, comment="ok"))
        other = store.reviews.create(Review(user_id="u1", product_id="p2", rating=4, comment="ok"))
        with pytest.raises(DuplicateKeyError):
            store.reviews.update(other.id, {"product_id": "p1"})

    def test_push_appends_to_stored_list(self, store):
        product = store.products.create(build_product())
        stale = store.products.find_by_id(product.id)
        store.products.push(product.id, "platform_reviews", "r1")
        store.products.push(stale.id, "platform_reviews", "r2")
        assert store.products.find_by_id(product.id).platform_reviews == ["r1", "r2"]

    def test_push_missing_record(self, store):
        with pytest.raises(ProductNotFoundError):
            store.products.push("missing", "platform_reviews", "r1")

    def test_delete_many_counts_existing(self, store):
        ids = [store.products.create(build_product(model=f"M{i}")).id for i in range(3)]
        assert store.products.delete_many(ids[:2] + ["missing"]) == 2
        assert store.products.count() == 1

    def test_delete_missing(self, store):
        with pytest.raises(ProductNotFoundError):
            store.products.delete("missing")

    def test_stats(self, store):
        store.products.create(build_product())
        assert store.stats() == {"products": 1, "reviews": 0, "bundles": 0, "users": 0}
