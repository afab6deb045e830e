"""Tests for comfort score blending and bundle aggregation."""

import pytest

from bundle_engine.catalog import Category
from bundle_engine.feature_engineering import ReviewStatistics
from bundle_engine.fusion import (
    BundleTotals,
    ComfortScore,
    aggregate_bundle_scores,
    blend_product_score,
    overall_score,
    review_weight,
)


class TestReviewWeight:
    """Tests for the review trust weight."""

    @pytest.mark.parametrize("count,expected", [(0, 0.0), (3, 0.3), (7, 0.7), (50, 0.7)])
    def test_capped_at_seventy_percent(self, count, expected):
        assert review_weight(count) == pytest.approx(expected)


class TestBlendProductScore:
    """Tests for product-level blending."""

    def test_model_only_without_reviews(self):
        score = blend_product_score([0.6, 0.4], ReviewStatistics())
        assert score.ease == 60
        assert score.performance == 40
        assert score.overall == 24

    def test_reviews_shift_the_score(self):
        stats = ReviewStatistics(avg_ease=1.0, avg_performance=0.6, review_count=5)
        score = blend_product_score([0.6, 0.4], stats)
        assert score.ease == 80
        assert score.performance == 50
        assert score.overall == 31

    def test_prediction_is_clipped(self):
        score = blend_product_score([1.7, -0.3], ReviewStatistics())
        assert score.ease == 100
        assert score.performance == 0

    def test_breakdown(self):
        stats = ReviewStatistics(review_count=20)
        score = blend_product_score([0.5, 0.5], stats, return_breakdown=True)
        assert score.breakdown["review_weight"] == pytest.approx(0.7)
        assert score.breakdown["model_weight"] == pytest.approx(0.3)
        assert score.to_dict()["breakdown"]["review_statistics"]["review_count"] == 20

    def test_overall_is_sub_additive(self):
        assert overall_score(100, 100) == 50


class TestAggregateBundleScores:
    """Tests for bundle-level aggregation."""

    def test_empty_bundle(self):
        score = aggregate_bundle_scores({}, BundleTotals())
        assert score.to_dict() == {"overall": 0, "ease": 0, "performance": 0}

    def test_single_part_scaled_by_confidence(self):
        totals = BundleTotals()
        totals.add_part(20000, 4.0, 0)
        score = aggregate_bundle_scores({Category.CPU: ComfortScore(24, 60, 40)}, totals)

        # No reviews: confidence factor 0.85
        assert score.ease == 51
        assert score.performance == 34
        assert score.overall == 20

    def test_weights_renormalized_over_present_parts(self):
        totals = BundleTotals()
        totals.add_part(20000, 4.0, 10)
        totals.add_part(30000, 4.0, 10)
        score = aggregate_bundle_scores({
            Category.CPU: ComfortScore(0, 80, 80),
            Category.CASE: ComfortScore(0, 20, 20),
        }, totals)

        # (80 * 0.25 + 20 * 0.05) / 0.30 = 70, full confidence at 20 reviews
        assert score.ease == 70
        assert score.breakdown["review_confidence"] == 1.0
        assert set(score.breakdown["components"]) == {"CPU", "Case"}

    def test_price_quality_is_exposed_not_applied(self):
        totals = BundleTotals()
        totals.add_part(50000, 5.0, 20)
        score = aggregate_bundle_scores({Category.GPU: ComfortScore(0, 50, 50)}, totals)

        assert score.breakdown["price_quality_ratio"] == pytest.approx(1.0)
        assert score.breakdown["price_adjustment"] == pytest.approx(1.0)
        assert score.ease == 50

    def test_no_shop_ratings(self):
        totals = BundleTotals()
        totals.add_part(1000, 0.0, 0)
        score = aggregate_bundle_scores({Category.RAM: ComfortScore(0, 50, 50)}, totals)
        assert score.breakdown["price_quality_ratio"] == 1.0
        assert score.breakdown["price_adjustment"] == 1.0
