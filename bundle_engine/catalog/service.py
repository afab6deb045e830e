"""
Catalog operations: products, retailer sources and platform reviews.

Every write keeps the Product invariants intact: sources are upserted by
shop name and the price aggregates are re-derived after every change,
and reviews go through the store's (user_id, product_id) unique index.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import DuplicateKeyError, DuplicateReviewError, ProductNotFoundError, ValidationError
from .schema import Category, ComfortRatings, Product, Review, Source, utcnow
from .store import DocumentStore

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Catalog reads and writes on top of the document store.

    Attributes:
        store: Document store holding products and reviews
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_product(self, product_id: str) -> Product:
        product = self.store.products.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def add_product(self, data: Dict[str, Any]) -> Product:
        """
        Create a product from a dictionary.

        group_key, price_range and ratings.overall are derived from the input;
        any values supplied for them are ignored.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        try:
            product = Product.from_dict({**data, "group_key": ""})
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError(f"Invalid product: {e}") from e

        seen_shops = set()
        for source in product.sources:
            if source.shop_name in seen_shops:
                raise ValidationError(f"Duplicate source for shop {source.shop_name}")
            seen_shops.add(source.shop_name)

        product.update_price_range()
        product.update_ratings()
        created = self.store.products.create(product)
        logger.info(f"Created product {created.id} ({created.group_key})")
        return created

    def upsert_source(self, product_id: str, source_data: Dict[str, Any]) -> Product:
        """
        Add a retailer listing or replace the existing one with the same shop name.

        Args:
            product_id: Product to update
            source_data: Source fields (shop_name and price are required)

        Returns:
            Updated product with re-derived price aggregates
        """
        product = self.get_product(product_id)
        try:
            source = Source.from_dict({**source_data, "last_updated": utcnow()})
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError(f"Invalid source: {e}") from e

        for idx, existing in enumerate(product.sources):
            if existing.shop_name == source.shop_name:
                product.sources[idx] = source
                break
        else:
            product.sources.append(source)

        product.update_price_range()
        return self.store.products.update(product_id, {
            "sources": product.sources,
            "price_range": product.price_range,
            "available_at": product.available_at,
            "total_sources": product.total_sources
        })

    def create_review(
        self,
        user_id: str,
        product_id: str,
        rating: int,
        comment: str,
        comfort_ratings: Optional[Dict[str, Any]] = None
    ) -> Review:
        """
        Create a platform review and attach it to the product.

        Raises:
            ProductNotFoundError: If the product does not exist
            DuplicateReviewError: If the user already reviewed the product
            ValidationError: If the rating or comment is invalid
        """
        self.get_product(product_id)

        if self.store.reviews.find_one({"user_id": user_id, "product_id": product_id}):
            raise DuplicateReviewError(user_id, product_id)

        try:
            review = Review(
                user_id=user_id,
                product_id=product_id,
                rating=rating,
                comment=comment,
                comfort_ratings=ComfortRatings.from_dict(comfort_ratings)
            )
        except ValueError as e:
            raise ValidationError(f"Invalid review: {e}") from e

        try:
            created = self.store.reviews.create(review)
        except DuplicateKeyError as e:
            # Lost a race with a concurrent create for the same pair
            raise DuplicateReviewError(user_id, product_id) from e

        self.store.products.push(product_id, "platform_reviews", created.id)
        return created

    def list_reviews(self, product_id: str) -> List[Review]:
        """Reviews on a product, newest first."""
        reviews = self.store.reviews.find({"product_id": product_id})
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    def compare_sources(self, product_id: str) -> Dict[str, Any]:
        """
        Compare a product's listings across retailers.

        Returns:
            Dictionary with sources sorted by price (each with the shop's
            rating, if any) and the best in-stock deal by price plus shipping
        """
        product = self.get_product(product_id)
        ratings_by_shop = {r.shop_name: r for r in product.ratings.by_source}

        sources = []
        for source in sorted(product.sources, key=lambda s: s.price):
            rating = ratings_by_shop.get(source.shop_name)
            sources.append({
                "shop": source.shop_name,
                "price": source.price,
                "in_stock": source.in_stock,
                "url": source.product_url,
                "shipping": source.shipping.to_dict(),
                "rating": rating.to_dict() if rating else None,
                "last_updated": source.last_updated.isoformat()
            })

        best_deal = None
        in_stock = [s for s in sources if s["in_stock"]]
        if in_stock:
            best = min(in_stock, key=lambda s: s["price"] + (s["shipping"]["cost"] or 0))
            best_deal = {**best, "total_cost": best["price"] + (best["shipping"]["cost"] or 0)}

        return {
            "product_name": product.name,
            "brand": product.brand,
            "model": product.model,
            "price_range": product.price_range.to_dict(),
            "sources": sources,
            "best_deal": best_deal
        }

    def group_products(self, category: Optional[Any] = None) -> List[Dict[str, Any]]:
        """Group catalog products by group_key (optionally within one category)."""
        query = {"category": Category.parse(category)} if category is not None else None
        groups: Dict[str, Dict[str, Any]] = {}
        for product in self.store.products.find(query):
            group = groups.setdefault(product.group_key, {
                "group_key": product.group_key,
                "name": product.name,
                "brand": product.brand,
                "model": product.model,
                "category": product.category.value,
                "products": []
            })
            group["products"].append(product)
        return list(groups.values())
