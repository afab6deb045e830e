"""Tests for product and bundle comfort scoring."""

import threading

import pytest

from bundle_engine.catalog import Category
from bundle_engine.errors import ProductNotFoundError
from bundle_engine.inference import ComfortScorer

from conftest import FakeModel, build_product


@pytest.fixture
def scorer(store, fake_model):
    return ComfortScorer(store, fake_model)


class TestScoreProduct:
    """Tests for single-product scoring."""

    def test_unreviewed_product_uses_model(self, scorer, make_product):
        product = make_product()
        score = scorer.score_product(product.id)
        assert score.to_dict() == {"overall": 24, "ease": 60, "performance": 40}

    def test_reviews_are_blended(self, scorer, make_product, make_review):
        product = make_product()
        for i in range(5):
            make_review(product.id, user_id=f"u{i}", ease=5, performance=3)

        score = scorer.score_product(product.id, return_breakdown=True)
        assert score.ease == 80
        assert score.performance == 50
        assert score.breakdown["review_weight"] == pytest.approx(0.5)

    def test_unattached_reviews_still_count(self, scorer, make_product, make_review):
        """Statistics come from every review on the product, not only referenced ones."""
        product = make_product()
        make_review(product.id, ease=5, performance=5, attach=False)

        score = scorer.score_product(product.id, return_breakdown=True)
        assert score.breakdown["review_statistics"]["review_count"] == 1

    def test_missing_product(self, scorer):
        with pytest.raises(ProductNotFoundError):
            scorer.score_product("missing")


class TestScoreBundle:
    """Tests for bundle scoring."""

    def test_empty_bundle(self, scorer):
        assert scorer.score_bundle({}).to_dict() == {"overall": 0, "ease": 0, "performance": 0}

    def test_parts_without_id_are_skipped(self, scorer):
        unsaved = build_product()
        assert scorer.score_bundle({"CPU": unsaved, "GPU": None}).overall == 0

    def test_failed_part_is_excluded(self, scorer, make_product, store):
        cpu = make_product(category=Category.CPU)
        gpu = make_product(category=Category.GPU, brand="NVIDIA", model="RTX 4070")
        store.products.delete(gpu.id)

        score = scorer.score_bundle({"CPU": cpu, "GPU": gpu})
        assert set(score.breakdown["components"]) == {"CPU"}
        assert score.ease == 51
        assert score.performance == 34

    def test_parts_are_re_resolved(self, scorer, make_product, store):
        """A stale part object is scored from the stored record."""
        cpu = make_product(category=Category.CPU, prices=(10000.0,))
        store.products.update(cpu.id, {"platform_reviews": ["r1", "r2"]})

        score = scorer.score_bundle({Category.CPU: cpu})
        assert score.breakdown["total_reviews"] == 2

    def test_totals_from_products(self, scorer, make_product):
        cpu = make_product(category=Category.CPU, prices=(10000.0, 20000.0),
                           shop_ratings=(("ShopA", 4.0, 10),))
        ram = make_product(category=Category.RAM, brand="Corsair", model="Vengeance",
                           prices=(5000.0,))

        score = scorer.score_bundle({"CPU": cpu, "RAM": ram})
        assert score.breakdown["total_price"] == pytest.approx(20000.0)
        assert score.breakdown["avg_shop_rating"] == pytest.approx(2.0)


class TestLazyInitialization:
    """Tests for first-use model initialization."""

    def test_initializes_once(self, store, make_product):
        model = FakeModel()
        scorer = ComfortScorer(store, model)
        product = make_product()

        scorer.score_product(product.id)
        scorer.score_product(product.id)
        assert model.init_calls == 1

    def test_concurrent_first_calls_share_initialization(self, store, make_product):
        model = FakeModel(init_delay=0.05)
        scorer = ComfortScorer(store, model)
        product = make_product()
        barrier = threading.Barrier(8)
        errors = []

        def worker():
            barrier.wait()
            try:
                scorer.score_product(product.id)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert model.init_calls == 1

    def test_failed_initialization_is_retried(self, store, make_product):
        model = FakeModel(fail_init=1)
        scorer = ComfortScorer(store, model)
        product = make_product()

        with pytest.raises(RuntimeError):
            scorer.score_product(product.id)
        assert scorer.score_product(product.id).ease == 60
        assert model.init_calls == 2

    def test_status(self, scorer):
        status = scorer.status()
        assert status["features"] == 12
        assert status["outputs"] == 2
        assert status["is_ready"] is False
