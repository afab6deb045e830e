"""Tests for duplicate-product reconciliation."""

import json

import pytest

from bundle_engine.catalog import ShopRating
from bundle_engine.data_loading import load_catalog, save_catalog
from bundle_engine.reconciliation import CatalogReconciler, ReconcileStats


@pytest.fixture
def reconciler(store):
    return CatalogReconciler(store)


@pytest.fixture
def duplicates(make_product):
    """Three listings of the same CPU under different spellings, plus an unrelated GPU."""
    primary = make_product(brand="AMD", model="Ryzen 5 7600", prices=(20000.0,),
                           shop_ratings=(("ShopA", 4.0, 10),))
    second = make_product(brand="amd", model="RYZEN 5  7600", prices=(21000.0, 19000.0),
                          shop_ratings=(("ShopA", 2.0, 99), ("ShopB", 5.0, 10)))
    third = make_product(brand=" AMD ", model="ryzen 5 7600", prices=(25000.0,))
    other = make_product(brand="NVIDIA", model="RTX 4070")
    return primary, second, third, other


class TestReconcile:
    """Tests for merging duplicate groups."""

    def test_merges_into_first_member(self, reconciler, store, duplicates):
        primary, second, third, other = duplicates

        stats = reconciler.reconcile()

        assert stats == ReconcileStats(total_groups=2, merged=2, kept=2)
        assert [p.id for p in store.products.find()] == [primary.id, other.id]

    def test_sources_union_first_seen_wins(self, reconciler, store, duplicates):
        primary = duplicates[0]
        reconciler.reconcile()

        merged = store.products.find_by_id(primary.id)
        assert [s.shop_name for s in merged.sources] == ["ShopA", "ShopB"]
        assert merged.find_source("ShopA").price == 20000.0
        assert merged.price_range.min == 19000.0
        assert merged.price_range.max == 20000.0
        assert merged.total_sources == 2

    def test_ratings_union_and_rederived(self, reconciler, store, duplicates):
        primary = duplicates[0]
        reconciler.reconcile()

        merged = store.products.find_by_id(primary.id)
        assert merged.ratings.by_source == [
            ShopRating(shop_name="ShopA", average=4.0, count=10),
            ShopRating(shop_name="ShopB", average=5.0, count=10),
        ]
        assert merged.ratings.overall.average == pytest.approx(4.5)
        assert merged.ratings.overall.count == 20

    def test_reviews_move_to_primary(self, reconciler, store, duplicates, make_review):
        primary, second, third, _ = duplicates
        r1 = make_review(primary.id, user_id="u1")
        r2 = make_review(second.id, user_id="u2")
        r3 = make_review(third.id, user_id="u3")

        reconciler.reconcile()

        merged = store.products.find_by_id(primary.id)
        assert merged.platform_reviews == [r1.id, r2.id, r3.id]
        assert {r.product_id for r in store.reviews.find()} == {primary.id}

    def test_newest_review_per_user_survives(self, reconciler, store, duplicates, make_review):
        primary, second, third, _ = duplicates
        make_review(primary.id, user_id="u1", age_days=30, rating=2)
        newest = make_review(second.id, user_id="u1", age_days=1, rating=5)
        make_review(third.id, user_id="u1", age_days=60, rating=1)

        reconciler.reconcile()

        reviews = store.reviews.find({"user_id": "u1"})
        assert [r.id for r in reviews] == [newest.id]
        assert reviews[0].product_id == primary.id
        assert store.products.find_by_id(primary.id).platform_reviews == [newest.id]

    def test_dangling_references_dropped(self, reconciler, store, duplicates, make_review):
        primary, second, _, _ = duplicates
        review = make_review(second.id, user_id="u1")
        store.products.update(primary.id, {"platform_reviews": ["deleted-review"]})

        reconciler.reconcile()

        assert store.products.find_by_id(primary.id).platform_reviews == [review.id]

    def test_second_run_is_a_no_op(self, reconciler, store, duplicates, make_review):
        primary, second, _, _ = duplicates
        make_review(primary.id, user_id="u1", age_days=5)
        make_review(second.id, user_id="u1", age_days=1)
        reconciler.reconcile()
        snapshot = [p.to_dict() for p in store.products.find()]
        reviews = [r.to_dict() for r in store.reviews.find()]

        stats = reconciler.reconcile()

        assert stats == ReconcileStats(total_groups=2, merged=0, kept=2)
        assert [p.to_dict() for p in store.products.find()] == snapshot
        assert [r.to_dict() for r in store.reviews.find()] == reviews

    def test_clean_catalog_writes_nothing(self, reconciler, store, make_product, monkeypatch):
        make_product(model="A")
        make_product(model="B")

        def fail(*args, **kwargs):
            raise AssertionError("unexpected write")

        monkeypatch.setattr(store.products, "update", fail)
        monkeypatch.setattr(store.products, "delete_many", fail)
        monkeypatch.setattr(store.reviews, "update", fail)

        assert reconciler.reconcile() == ReconcileStats(total_groups=2, merged=0, kept=2)


class TestSelfHealing:
    """Tests for completing an interrupted merge."""

    def test_orphaned_reviews_are_recovered(self, reconciler, store, duplicates, make_review):
        """Reviews still pointing at a duplicate whose references were cleared are picked up."""
        primary, second, _, _ = duplicates
        orphan = make_review(second.id, user_id="u9")
        store.products.update(second.id, {"platform_reviews": []})

        reconciler.reconcile()

        assert store.products.find_by_id(primary.id).platform_reviews == [orphan.id]
        assert store.reviews.find_by_id(orphan.id).product_id == primary.id

    def test_review_already_repointed(self, reconciler, store, duplicates, make_review):
        """A review re-pointed by an earlier run but still referenced by a duplicate is kept once."""
        primary, second, _, _ = duplicates
        review = make_review(second.id, user_id="u1")
        store.reviews.update(review.id, {"product_id": primary.id})

        reconciler.reconcile()

        assert store.products.find_by_id(primary.id).platform_reviews == [review.id]
        assert store.reviews.count() == 1


class TestMixedTimestamps:
    """Tests for catalogs whose timestamps mix naive and UTC-offset values."""

    def test_reconcile_loaded_snapshot(self, tmp_path, store, duplicates, make_review):
        """A naive created_at is read as UTC, so the newest review still wins."""
        primary, second, _, _ = duplicates
        older = make_review(primary.id, user_id="u1")
        newer = make_review(second.id, user_id="u1")
        path = tmp_path / "catalog.json"
        save_catalog(store, str(path))

        data = json.loads(path.read_text())
        for review in data["reviews"]:
            if review["id"] == older.id:
                review["created_at"] = "2024-01-01T00:00:00"
            else:
                review["created_at"] = "2024-01-02T00:00:00+00:00"
        path.write_text(json.dumps(data))

        loaded = load_catalog(str(path))
        assert loaded.reviews.find_by_id(older.id).created_at.tzinfo is not None

        stats = CatalogReconciler(loaded).reconcile()

        assert stats.merged == 2
        assert [r.id for r in loaded.reviews.find({"user_id": "u1"})] == [newer.id]
        assert loaded.products.find_by_id(primary.id).platform_reviews == [newer.id]
