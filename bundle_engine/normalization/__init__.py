"""Normalization helpers for prices, ratings, reviews and specification strings."""

from .normalizers import (
    normalize_price,
    normalize_price_spread,
    normalize_rating,
    normalize_review_count,
    recency_weight,
    review_recency,
    review_consistency,
    parse_spec_number,
    round_half_up,
    mean_or_default,
)

__all__ = [
    "normalize_price",
    "normalize_price_spread",
    "normalize_rating",
    "normalize_review_count",
    "recency_weight",
    "review_recency",
    "review_consistency",
    "parse_spec_number",
    "round_half_up",
    "mean_or_default",
]
