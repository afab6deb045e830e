"""Catalog module: domain records, document store and catalog operations."""

from .schema import (
    Category,
    Product,
    Source,
    Shipping,
    PriceRange,
    Ratings,
    RatingSummary,
    ShopRating,
    Review,
    ComfortRatings,
    ComfortProfile,
    Bundle,
    BundleItem,
    SelectedSource,
    User,
    compute_group_key,
)
from .store import Collection, DocumentStore
from .service import CatalogService

__all__ = [
    "Category",
    "Product",
    "Source",
    "Shipping",
    "PriceRange",
    "Ratings",
    "RatingSummary",
    "ShopRating",
    "Review",
    "ComfortRatings",
    "ComfortProfile",
    "Bundle",
    "BundleItem",
    "SelectedSource",
    "User",
    "compute_group_key",
    "Collection",
    "DocumentStore",
    "CatalogService",
]
