"""Bundles module for user-curated part selections."""

from .service import BundleService

__all__ = [
    "BundleService",
]
