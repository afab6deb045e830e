"""
Feature extraction for comfort modeling.

A product is described to the regression model by a fixed 12-dimensional
vector built from price, shop-rating and availability data. Observed user
reviews are summarized separately into a ReviewStatistics record, which is
blended with the model output at scoring time and used as the training
target; it is never fed to the model.

Feature vector (order is fixed; the model is trained on it):
     1. avg_price              min(price_range.average / 100000, 1)
     2. price_range            min((max - min) / min, 1)
     3. overall_shop_rating    ratings.overall.average / 5
     4. shop_rating_count      min(sum(by_source counts) / 1000, 1)
     5. shop_availability      available_at / total_sources
     6. platform_rating        reserved (0)
     7. platform_review_count  min(len(platform_reviews) / 50, 1)
     8. review_recency         reserved (0)
     9. review_consistency     reserved (0)
    10. avg_user_rating        reserved (0)
    11. price_to_rating_ratio  overall_shop_rating / (average price / 50000)
    12. avg_shop_rating        mean(by_source averages) / 5

Every non-zero entry is multiplied by a per-category weight.

Key Design Decisions:
- The reserved slots stay zero. The equivalent statistics exist in
  ReviewStatistics, but wiring them in changes what the model learns and
  requires retraining, so the layout is kept as deployed
- Products without reviews get neutral (0.5) ease/performance priors rather
  than zero, so unreviewed products are not penalized
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..catalog.schema import Category, Product, Review
from ..normalization import (
    mean_or_default,
    normalize_price,
    normalize_price_spread,
    normalize_rating,
    review_consistency,
    review_recency,
)
from ..normalization.normalizers import PLATFORM_REVIEW_CEILING, SHOP_RATING_COUNT_CEILING

logger = logging.getLogger(__name__)

FEATURE_NAMES = [
    "avg_price",
    "price_range",
    "overall_shop_rating",
    "shop_rating_count",
    "shop_availability",
    "platform_rating",
    "platform_review_count",
    "review_recency",
    "review_consistency",
    "avg_user_rating",
    "price_to_rating_ratio",
    "avg_shop_rating",
]
NUM_FEATURES = len(FEATURE_NAMES)

TARGET_NAMES = ["avg_ease", "avg_performance"]

CATEGORY_FEATURE_WEIGHTS = {
    Category.CPU: 1.2,
    Category.GPU: 1.2,
    Category.RAM: 0.9,
    Category.MOTHERBOARD: 1.0,
    Category.STORAGE: 0.95,
    Category.PSU: 1.1,
    Category.CASE: 0.85,
}
DEFAULT_CATEGORY_FEATURE_WEIGHT = 1.0

PRICE_TO_RATING_SCALE = 50000
NEUTRAL_PRIOR = 0.5


@dataclass
class ProductFeatures:
    """Model-input features for one product, in FEATURE_NAMES order."""
    avg_price: float = 0.0
    price_range: float = 0.0
    overall_shop_rating: float = 0.0
    shop_rating_count: float = 0.0
    shop_availability: float = 0.0
    platform_rating: float = 0.0
    platform_review_count: float = 0.0
    review_recency: float = 0.0
    review_consistency: float = 0.0
    avg_user_rating: float = 0.0
    price_to_rating_ratio: float = 0.0
    avg_shop_rating: float = 0.0

    def to_vector(self) -> np.ndarray:
        """Return the features as a (12,) float array in model order."""
        return np.array([getattr(self, name) for name in FEATURE_NAMES], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class ReviewStatistics:
    """
    Summary of a product's platform reviews.

    Attributes:
        avg_ease: Mean ease sub-rating / 5 (0.5 when none are set)
        avg_performance: Mean performance sub-rating / 5 (0.5 when none are set)
        review_count: Number of reviews
        recency: Mean recency weight (0 with no reviews)
        consistency: 1 - std(rating) / 2.5 (0.5 with fewer than two reviews)
    """
    avg_ease: float = NEUTRAL_PRIOR
    avg_performance: float = NEUTRAL_PRIOR
    review_count: int = 0
    recency: float = 0.0
    consistency: float = NEUTRAL_PRIOR

    def to_target(self) -> np.ndarray:
        return np.array([self.avg_ease, self.avg_performance], dtype=float)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_category_weight(category: Any) -> float:
    """Feature multiplier for a category (1.0 for unknown categories)."""
    try:
        category = Category.parse(category)
    except ValueError:
        return DEFAULT_CATEGORY_FEATURE_WEIGHT
    return CATEGORY_FEATURE_WEIGHTS.get(category, DEFAULT_CATEGORY_FEATURE_WEIGHT)


def extract_product_features(product: Product) -> ProductFeatures:
    """
    Build the model-input features for a product.

    Args:
        product: Catalog product

    Returns:
        ProductFeatures with category weighting applied
    """
    features = ProductFeatures()

    avg_price = product.price_range.average or 0.0
    features.avg_price = normalize_price(avg_price)
    features.price_range = normalize_price_spread(
        product.price_range.min or 0.0,
        product.price_range.max or 0.0
    )

    features.overall_shop_rating = normalize_rating(product.ratings.overall.average or 0.0)

    by_source = product.ratings.by_source
    if by_source:
        total_count = sum(r.count or 0 for r in by_source)
        features.shop_rating_count = min(total_count / SHOP_RATING_COUNT_CEILING, 1.0)
        features.avg_shop_rating = normalize_rating(
            sum(r.average or 0.0 for r in by_source) / len(by_source)
        )

    if product.available_at and product.total_sources:
        features.shop_availability = product.available_at / product.total_sources

    if product.platform_reviews:
        features.platform_review_count = min(
            len(product.platform_reviews) / PLATFORM_REVIEW_CEILING, 1.0
        )

    # Value indicator, computed from the unweighted rating and raw price
    if features.overall_shop_rating > 0 and avg_price > 0:
        features.price_to_rating_ratio = features.overall_shop_rating / (avg_price / PRICE_TO_RATING_SCALE)

    weight = get_category_weight(product.category)
    for name in FEATURE_NAMES:
        value = getattr(features, name)
        if value > 0:
            setattr(features, name, value * weight)

    return features


def extract_review_statistics(
    reviews: Sequence[Review],
    now: Optional[datetime] = None
) -> ReviewStatistics:
    """
    Summarize a product's reviews for blending and training.

    Args:
        reviews: All reviews on the product
        now: Reference time for recency (defaults to current UTC time)

    Returns:
        ReviewStatistics record
    """
    if not reviews:
        return ReviewStatistics()

    ease_values = [r.comfort_ratings.ease for r in reviews if r.comfort_ratings.ease]
    performance_values = [
        r.comfort_ratings.performance for r in reviews if r.comfort_ratings.performance
    ]

    return ReviewStatistics(
        avg_ease=mean_or_default(ease_values, NEUTRAL_PRIOR * 5) / 5,
        avg_performance=mean_or_default(performance_values, NEUTRAL_PRIOR * 5) / 5,
        review_count=len(reviews),
        recency=review_recency([r.created_at for r in reviews], now=now),
        consistency=review_consistency([r.rating for r in reviews])
    )


def build_feature_frame(
    products: Sequence[Product],
    reviews_by_product: Mapping[str, Sequence[Review]],
    now: Optional[datetime] = None
) -> pd.DataFrame:
    """
    Tabulate features and review statistics for a batch of products.

    Args:
        products: Products to describe
        reviews_by_product: Product id -> its reviews
        now: Reference time for recency

    Returns:
        DataFrame indexed by product id with FEATURE_NAMES columns followed by
        review-statistics columns and the product category
    """
    rows: List[Dict[str, Any]] = []
    for product in products:
        features = extract_product_features(product)
        stats = extract_review_statistics(reviews_by_product.get(product.id, []), now=now)
        row = {"product_id": product.id, "category": product.category.value}
        row.update(features.to_dict())
        row.update(stats.to_dict())
        rows.append(row)

    columns = ["product_id", "category"] + FEATURE_NAMES + list(ReviewStatistics.__dataclass_fields__)
    frame = pd.DataFrame(rows, columns=columns)
    return frame.set_index("product_id")
