"""Shared fixtures for bundle engine tests."""

import threading
import time
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from bundle_engine.catalog import (
    Category,
    ComfortRatings,
    DocumentStore,
    Product,
    Review,
    ShopRating,
    Source,
)
from bundle_engine.modeling import TrainingLog

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


class FakeModel:
    """Comfort model double returning a fixed prediction."""

    def __init__(self, prediction=(0.6, 0.4), init_delay: float = 0.0, fail_init: int = 0):
        self.prediction = np.array(prediction, dtype=float)
        self.init_delay = init_delay
        self.fail_init = fail_init
        self.init_calls = 0
        self.fit_calls = []
        self.save_calls = 0
        self._ready = False
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready

    def initialize(self):
        with self._lock:
            self.init_calls += 1
            call = self.init_calls
        if self.init_delay:
            time.sleep(self.init_delay)
        if call <= self.fail_init:
            raise RuntimeError("weights unavailable")
        self._ready = True

    def predict(self, vector):
        assert len(vector) == 12
        return self.prediction.copy()

    def fit(self, X, y, fit_config=None):
        self.fit_calls.append((np.asarray(X), np.asarray(y)))
        return TrainingLog(
            n_samples=len(X),
            n_train=len(X),
            n_validation=0,
            epochs_run=1,
            final_loss=0.0
        )

    def save(self, filepath=None):
        self.save_calls += 1


@pytest.fixture
def store():
    return DocumentStore()


@pytest.fixture
def fake_model():
    return FakeModel()


def build_product(
    category=Category.CPU,
    brand="AMD",
    model="Ryzen 5 7600",
    specifications=None,
    prices=(20000.0,),
    shop_ratings=(),
    in_stock=True,
):
    """Build an unsaved product with one source per price (shops A, B, C...)."""
    shops = [chr(ord("A") + i) for i in range(len(prices))]
    product = Product(
        name=f"{brand} {model}",
        category=category,
        brand=brand,
        model=model,
        specifications=specifications or {},
        sources=[
            Source(shop_name=f"Shop{shop}", price=price, in_stock=in_stock,
                   product_url=f"https://shop{shop.lower()}.example/item")
            for shop, price in zip(shops, prices)
        ],
    )
    product.ratings.by_source = [
        ShopRating(shop_name=name, average=average, count=count)
        for name, average, count in shop_ratings
    ]
    product.update_price_range()
    product.update_ratings()
    return product


@pytest.fixture
def make_product(store):
    """Factory that saves a product to the store and returns the stored copy."""
    def _make(**kwargs):
        return store.products.create(build_product(**kwargs))
    return _make


@pytest.fixture
def make_review(store):
    """Factory that saves a review and attaches it to its product."""
    def _make(product_id, user_id="user-1", rating=4, ease=None, performance=None,
              age_days=10, attach=True):
        review = store.reviews.create(Review(
            user_id=user_id,
            product_id=product_id,
            rating=rating,
            comment="Works as expected",
            comfort_ratings=ComfortRatings(ease=ease, performance=performance),
            created_at=NOW - timedelta(days=age_days),
        ))
        if attach:
            product = store.products.find_by_id(product_id)
            store.products.update(product_id, {
                "platform_reviews": product.platform_reviews + [review.id]
            })
        return review
    return _make
