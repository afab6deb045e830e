"""
Duplicate-product reconciliation.

Products that share a group_key (same brand and model) are merged into a
single primary product: the first member of the group in insertion order.

For each group with duplicates:
1. Union sources and per-shop ratings by shop_name (primary's entries win)
2. Collect every review attached to the group, by reference or by product_id
3. Keep only the newest review per user, hard-delete the rest
4. Re-point surviving reviews to the primary
5. Clear the duplicates' review references
6. Store the survivors on the primary and re-derive its aggregates
7. Delete the duplicates

Key Design Decisions:
- Every step converges when re-run: an interrupted merge is completed by the
  next run, and a run on a clean catalog performs no writes
- Reviews are found by product_id as well as by reference, so reviews
  orphaned by an interrupted run are picked up again
- The one-review-per-user invariant is restored before re-pointing, so the
  (user_id, product_id) unique index never rejects a merge
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from ..catalog.schema import Product, Review
from ..catalog.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    """
    Summary of one reconciliation run.

    Attributes:
        total_groups: Distinct group keys in the catalog
        merged: Duplicate products deleted
        kept: Products kept (one per group)
    """
    total_groups: int = 0
    merged: int = 0
    kept: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class CatalogReconciler:
    """
    Merges duplicate products and their reviews.

    Attributes:
        store: Document store holding products and reviews
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def group_products(self) -> "OrderedDict[str, List[Product]]":
        """Group all products by group_key, preserving insertion order."""
        groups: "OrderedDict[str, List[Product]]" = OrderedDict()
        for product in self.store.products.find():
            groups.setdefault(product.group_key, []).append(product)
        return groups

    def reconcile(self) -> ReconcileStats:
        """
        Merge every group of duplicate products.

        Returns:
            ReconcileStats for the run
        """
        groups = self.group_products()
        stats = ReconcileStats(total_groups=len(groups))

        for group_key, members in groups.items():
            stats.kept += 1
            if len(members) < 2:
                continue

            deleted = self._merge_group(members)
            stats.merged += deleted
            logger.info(f"Merged {len(members) - 1} duplicates into '{group_key}' ({members[0].id})")

        logger.info(f"Reconciliation complete: {stats.total_groups} groups, "
                    f"{stats.merged} merged, {stats.kept} kept")
        return stats

    def _merge_group(self, members: List[Product]) -> int:
        primary, duplicates = members[0], members[1:]
        member_ids = [m.id for m in members]

        for duplicate in duplicates:
            for source in duplicate.sources:
                if primary.find_source(source.shop_name) is None:
                    primary.sources.append(source)

            known_shops = {r.shop_name for r in primary.ratings.by_source}
            for shop_rating in duplicate.ratings.by_source:
                if shop_rating.shop_name not in known_shops:
                    primary.ratings.by_source.append(shop_rating)
                    known_shops.add(shop_rating.shop_name)

        candidates = self._collect_reviews(members)
        survivors = _newest_per_user(candidates)
        survivor_ids = {r.id for r in survivors}

        stale_ids = [r.id for r in candidates if r.id not in survivor_ids]
        if stale_ids:
            removed = self.store.reviews.delete_many(stale_ids)
            logger.info(f"Removed {removed} superseded reviews for '{primary.group_key}'")

        for review in survivors:
            if review.product_id != primary.id:
                self.store.reviews.update(review.id, {"product_id": primary.id})

        for duplicate in duplicates:
            if duplicate.platform_reviews:
                self.store.products.update(duplicate.id, {"platform_reviews": []})

        primary.platform_reviews = [r.id for r in survivors]
        primary.update_price_range()
        primary.update_ratings()
        self.store.products.save(primary)

        return self.store.products.delete_many(member_ids[1:])

    def _collect_reviews(self, members: List[Product]) -> List[Review]:
        """
        Gather the group's reviews, deduplicated by id, in a stable order.

        Referenced ids that no longer exist are dropped.
        """
        reviews: "OrderedDict[str, Review]" = OrderedDict()

        referenced_ids = [rid for m in members for rid in m.platform_reviews]
        for review in self.store.reviews.find({"id": referenced_ids}):
            reviews[review.id] = review

        for review in self.store.reviews.find({"product_id": [m.id for m in members]}):
            reviews.setdefault(review.id, review)

        dangling = len(set(referenced_ids)) - sum(1 for rid in set(referenced_ids) if rid in reviews)
        if dangling:
            logger.warning(f"Dropping {dangling} dangling review references")

        return list(reviews.values())


def _newest_per_user(reviews: List[Review]) -> List[Review]:
    """Keep the most recently created review of each user, in first-seen user order."""
    newest: Dict[Any, Review] = OrderedDict()
    for review in reviews:
        current = newest.get(review.user_id)
        if current is None or review.created_at > current.created_at:
            newest[review.user_id] = review
    return list(newest.values())
