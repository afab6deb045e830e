"""Fusion module for blending model output with review statistics."""

from .blend import (
    ComfortScore,
    BundleTotals,
    blend_product_score,
    aggregate_bundle_scores,
    review_weight,
    overall_score,
)

__all__ = [
    "ComfortScore",
    "BundleTotals",
    "blend_product_score",
    "aggregate_bundle_scores",
    "review_weight",
    "overall_score",
]
