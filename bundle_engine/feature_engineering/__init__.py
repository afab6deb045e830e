"""Feature engineering module for product and review features."""

from .product_features import (
    FEATURE_NAMES,
    NUM_FEATURES,
    TARGET_NAMES,
    ProductFeatures,
    ReviewStatistics,
    extract_product_features,
    extract_review_statistics,
    build_feature_frame,
    get_category_weight,
)

__all__ = [
    "FEATURE_NAMES",
    "NUM_FEATURES",
    "TARGET_NAMES",
    "ProductFeatures",
    "ReviewStatistics",
    "extract_product_features",
    "extract_review_statistics",
    "build_feature_frame",
    "get_category_weight",
]
