"""
Inference module for comfort scoring.

This module provides the scoring path from catalog products to comfort
scores for single products and whole bundles.
"""

from .scorer import ComfortScorer

__all__ = [
    "ComfortScorer",
]
