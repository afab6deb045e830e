"""
Blending of model predictions with observed review statistics.

Product level:
    w_r = min(review_count / 10, 0.7)
    w_m = 1 - w_r
    ease        = round(100 * (model_ease * w_m + avg_ease * w_r))
    performance = round(100 * (model_perf * w_m + avg_performance * w_r))
    overall     = round(0.2 * ease + 0.3 * performance)

Bundle level:
    Per-part scores are averaged with fixed category weights, renormalized
    over the categories actually present, then scaled by a review-volume
    confidence factor in [0.85, 1.0].

The overall formula is sub-additive on purpose: its weights sum to 0.5,
leaving room for noise and temperature axes to contribute the remainder.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from ..catalog.schema import Category
from ..feature_engineering import ReviewStatistics
from ..normalization import round_half_up

logger = logging.getLogger(__name__)

REVIEW_WEIGHT_SCALE = 10
REVIEW_WEIGHT_CAP = 0.7

OVERALL_EASE_WEIGHT = 0.2
OVERALL_PERFORMANCE_WEIGHT = 0.3

BUNDLE_CATEGORY_WEIGHTS = {
    Category.CPU: 0.25,
    Category.GPU: 0.25,
    Category.RAM: 0.10,
    Category.MOTHERBOARD: 0.10,
    Category.STORAGE: 0.10,
    Category.PSU: 0.15,
    Category.CASE: 0.05,
}
DEFAULT_BUNDLE_CATEGORY_WEIGHT = 0.05

REVIEW_CONFIDENCE_SCALE = 20
CONFIDENCE_FLOOR = 0.85
CONFIDENCE_SPAN = 0.15

PRICE_QUALITY_SCALE = 50000
PRICE_ADJUSTMENT_CAP = 1.2


@dataclass
class ComfortScore:
    """
    Comfort scores for a product or bundle.

    Attributes:
        overall: round(0.2 * ease + 0.3 * performance)
        ease: 0-100
        performance: 0-100
        breakdown: Optional intermediate values (weights, totals, ratios)
    """
    overall: int = 0
    ease: int = 0
    performance: int = 0
    breakdown: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "overall": self.overall,
            "ease": self.ease,
            "performance": self.performance
        }
        if self.breakdown:
            result["breakdown"] = self.breakdown
        return result


@dataclass
class BundleTotals:
    """Running bundle-level metrics gathered while scoring parts."""
    total_price: float = 0.0
    shop_rating_sum: float = 0.0
    total_reviews: int = 0
    scored_parts: int = 0

    def add_part(self, average_price: float, overall_shop_rating: float, platform_review_count: int) -> None:
        self.total_price += average_price or 0.0
        if overall_shop_rating:
            self.shop_rating_sum += overall_shop_rating
        self.total_reviews += platform_review_count
        self.scored_parts += 1

    @property
    def avg_shop_rating(self) -> float:
        if self.scored_parts == 0:
            return 0.0
        return self.shop_rating_sum / self.scored_parts


def overall_score(ease: float, performance: float) -> int:
    return round_half_up(ease * OVERALL_EASE_WEIGHT + performance * OVERALL_PERFORMANCE_WEIGHT)


def review_weight(review_count: int) -> float:
    """Share of trust given to observed reviews (capped at 70%)."""
    return min(review_count / REVIEW_WEIGHT_SCALE, REVIEW_WEIGHT_CAP)


def blend_product_score(
    prediction: Sequence[float],
    stats: ReviewStatistics,
    return_breakdown: bool = False
) -> ComfortScore:
    """
    Blend a model prediction with observed review statistics.

    Args:
        prediction: Model output (ease, performance), each in [0, 1]
        stats: Review statistics for the product
        return_breakdown: Whether to attach the weights and raw inputs

    Returns:
        ComfortScore on a 0-100 scale
    """
    model_ease, model_performance = (float(v) for v in np.clip(prediction[:2], 0.0, 1.0))

    w_review = review_weight(stats.review_count)
    w_model = 1 - w_review

    ease = round_half_up((model_ease * w_model + stats.avg_ease * w_review) * 100)
    performance = round_half_up(
        (model_performance * w_model + stats.avg_performance * w_review) * 100
    )

    breakdown = None
    if return_breakdown:
        breakdown = {
            "model_weight": w_model,
            "review_weight": w_review,
            "model_prediction": {"ease": model_ease, "performance": model_performance},
            "review_statistics": stats.to_dict()
        }

    return ComfortScore(
        overall=overall_score(ease, performance),
        ease=ease,
        performance=performance,
        breakdown=breakdown
    )


def get_bundle_weight(category: Any) -> float:
    try:
        category = Category.parse(category)
    except ValueError:
        return DEFAULT_BUNDLE_CATEGORY_WEIGHT
    return BUNDLE_CATEGORY_WEIGHTS.get(category, DEFAULT_BUNDLE_CATEGORY_WEIGHT)


def aggregate_bundle_scores(
    component_scores: Mapping[Any, ComfortScore],
    totals: BundleTotals
) -> ComfortScore:
    """
    Combine per-part comfort scores into a bundle score.

    Args:
        component_scores: Category -> score for every successfully scored part
        totals: Bundle-level running totals

    Returns:
        ComfortScore with a breakdown, or all zeros when no part was scored
    """
    if not component_scores:
        return ComfortScore(overall=0, ease=0, performance=0)

    weighted_ease = 0.0
    weighted_performance = 0.0
    total_weight = 0.0
    for category, score in component_scores.items():
        weight = get_bundle_weight(category)
        weighted_ease += score.ease * weight
        weighted_performance += score.performance * weight
        total_weight += weight

    # Renormalize by the weight actually present
    if total_weight > 0:
        weighted_ease /= total_weight
        weighted_performance /= total_weight

    avg_shop_rating = totals.avg_shop_rating
    if avg_shop_rating > 0:
        if totals.total_price > 0:
            price_quality_ratio = (avg_shop_rating / 5) / (totals.total_price / PRICE_QUALITY_SCALE)
        else:
            price_quality_ratio = 0.0
    else:
        price_quality_ratio = 1.0
    # Exposed for inspection only; not applied to the scores
    price_adjustment = min(price_quality_ratio, PRICE_ADJUSTMENT_CAP)

    review_confidence = min(totals.total_reviews / REVIEW_CONFIDENCE_SCALE, 1.0)
    confidence_factor = CONFIDENCE_FLOOR + review_confidence * CONFIDENCE_SPAN
    weighted_ease *= confidence_factor
    weighted_performance *= confidence_factor

    return ComfortScore(
        overall=overall_score(weighted_ease, weighted_performance),
        ease=round_half_up(weighted_ease),
        performance=round_half_up(weighted_performance),
        breakdown={
            "components": {
                _category_label(category): score.to_dict()
                for category, score in component_scores.items()
            },
            "total_price": totals.total_price,
            "avg_shop_rating": avg_shop_rating,
            "total_reviews": totals.total_reviews,
            "review_confidence": review_confidence,
            "price_quality_ratio": price_quality_ratio,
            "price_adjustment": price_adjustment
        }
    )


def _category_label(category: Any) -> str:
    return category.value if isinstance(category, Category) else str(category)
