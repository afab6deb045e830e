"""
Comfort scoring for products and bundles.

This module provides the scoring path that:
1. Resolves a product by id (always a fresh lookup, never a cached object)
2. Extracts its feature vector and review statistics
3. Runs the comfort model
4. Blends the prediction with the review statistics

Bundle scoring repeats the per-product path for every part and aggregates
the results; a part that fails is logged and left out rather than failing
the whole bundle.

The scorer owns its model. It is constructed once at process start and
handed to whatever needs it; the model is initialized lazily on first use,
and concurrent first callers share a single in-flight initialization.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ..catalog.schema import Category, Product
from ..catalog.store import DocumentStore
from ..errors import ProductNotFoundError
from ..feature_engineering import (
    FEATURE_NAMES,
    TARGET_NAMES,
    extract_product_features,
    extract_review_statistics,
)
from ..fusion import BundleTotals, ComfortScore, aggregate_bundle_scores, blend_product_score
from ..modeling import ComfortModel

logger = logging.getLogger(__name__)


class ComfortScorer:
    """
    Per-product and per-bundle comfort scorer.

    Attributes:
        store: Document store to resolve products and reviews from
        model: Comfort model (predict/initialize)
    """

    def __init__(self, store: DocumentStore, model: ComfortModel):
        self.store = store
        self.model = model
        self._init_lock = threading.Lock()
        self._init_future: Optional[Future] = None

    @property
    def is_ready(self) -> bool:
        return self.model.is_ready

    def ensure_model(self) -> None:
        """
        Initialize the model once, however many callers arrive at the same time.

        The first caller runs initialization; everyone else waits on the same
        future. A failed initialization is re-raised to every waiter and the
        next call starts a fresh attempt.
        """
        if self.model.is_ready:
            return

        with self._init_lock:
            future = self._init_future
            owner = future is None
            if owner:
                future = Future()
                self._init_future = future

        if owner:
            try:
                self.model.initialize()
            except Exception as e:
                with self._init_lock:
                    self._init_future = None
                future.set_exception(e)
                raise
            future.set_result(True)

        future.result()

    def _resolve_product(self, product_id: Optional[str]) -> Product:
        product = self.store.products.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _score_resolved(
        self,
        product: Product,
        return_breakdown: bool = False,
        now: Optional[datetime] = None
    ) -> ComfortScore:
        features = extract_product_features(product)
        reviews = self.store.reviews.find({"product_id": product.id})
        stats = extract_review_statistics(reviews, now=now)

        prediction = self.model.predict(features.to_vector())
        return blend_product_score(prediction, stats, return_breakdown=return_breakdown)

    def score_product(
        self,
        product_id: str,
        return_breakdown: bool = False,
        now: Optional[datetime] = None
    ) -> ComfortScore:
        """
        Compute the comfort score for one product.

        Args:
            product_id: Product identifier
            return_breakdown: Whether to include blend weights and inputs
            now: Reference time for review recency

        Returns:
            ComfortScore with ease, performance and overall

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        self.ensure_model()
        product = self._resolve_product(product_id)
        return self._score_resolved(product, return_breakdown=return_breakdown, now=now)

    def score_bundle(
        self,
        parts: Mapping[Any, Optional[Product]],
        now: Optional[datetime] = None
    ) -> ComfortScore:
        """
        Compute the comfort score for a bundle of parts.

        Each part is re-resolved by id, so stale objects passed in by the
        caller never influence the score. Parts that fail to score are logged
        and excluded from aggregation.

        Args:
            parts: Category -> product (each must carry an id)
            now: Reference time for review recency

        Returns:
            Aggregated ComfortScore; all zeros when no part could be scored
        """
        self.ensure_model()

        component_scores: Dict[Any, ComfortScore] = {}
        totals = BundleTotals()

        for category, part in parts.items():
            if part is None or getattr(part, "id", None) is None:
                logger.warning(f"Skipping {category}: part has no product id")
                continue

            try:
                product = self._resolve_product(part.id)
                score = self._score_resolved(product, now=now)
            except Exception:
                logger.exception(f"Error calculating comfort score for {category}")
                continue

            component_scores[_category_key(category)] = score
            totals.add_part(
                product.price_range.average,
                product.ratings.overall.average,
                len(product.platform_reviews)
            )

        return aggregate_bundle_scores(component_scores, totals)

    def status(self) -> Dict[str, Any]:
        return {
            "is_ready": self.model.is_ready,
            "model_type": "Feed-forward network (sklearn MLPRegressor)",
            "features": len(FEATURE_NAMES),
            "outputs": len(TARGET_NAMES),
            "metrics": ["ease", "performance"]
        }


def _category_key(category: Any) -> Any:
    try:
        return Category.parse(category)
    except ValueError:
        return category
