"""
Bundle lifecycle: create, view, list, update and delete user bundles.

A bundle stores one product per category together with a snapshot of the
retailer listing the user picked. Its total price, compatibility score and
comfort profile are computed when the bundle is created.

Key Design Decisions:
- All part selections are validated before anything is written
- A failed comfort computation does not block bundle creation; the bundle
  is saved with an empty profile, which get_bundle() recomputes later
- Only the owner may modify or delete a bundle; public bundles can be viewed
  by anyone
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..catalog.schema import (
    Bundle,
    BundleItem,
    Category,
    ComfortProfile,
    Product,
    SelectedSource,
)
from ..catalog.store import DocumentStore
from ..compatibility import check_compatibility
from ..errors import (
    BundleAccessDeniedError,
    BundleNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from ..inference import ComfortScorer

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "notes", "is_public")


def comfort_profile_from_score(score) -> ComfortProfile:
    return ComfortProfile(
        overall=score.overall,
        ease=score.ease,
        performance=score.performance
    )


class BundleService:
    """
    Bundle operations on top of the document store.

    Attributes:
        store: Document store holding bundles, products and users
        scorer: Comfort scorer used for bundle comfort profiles
    """

    def __init__(self, store: DocumentStore, scorer: ComfortScorer):
        self.store = store
        self.scorer = scorer

    def _resolve_selections(
        self,
        parts: Mapping[Any, Optional[Mapping[str, Any]]]
    ) -> List[tuple]:
        """
        Validate part selections and resolve them to (category, product, source).

        Raises:
            ValidationError: For an unknown category, missing selection or unlisted shop
            ProductNotFoundError: If a selected product does not exist
        """
        resolved = []
        for key, selection in parts.items():
            try:
                category = Category.parse(key)
            except ValueError as e:
                raise ValidationError(str(e)) from e

            if not selection or not selection.get("product_id"):
                raise ValidationError(f"Missing product selection for {category.value}")
            if not selection.get("shop_name"):
                raise ValidationError(f"Missing source selection for {category.value}")

            product = self.store.products.find_by_id(selection["product_id"])
            if product is None:
                raise ProductNotFoundError(selection["product_id"])

            source = product.find_source(selection["shop_name"])
            if source is None:
                raise ValidationError(
                    f"Shop {selection['shop_name']} does not list product {product.id}"
                )
            resolved.append((category, product, source))
        return resolved

    def _compute_comfort(self, parts: Mapping[Category, Product]) -> ComfortProfile:
        try:
            return comfort_profile_from_score(self.scorer.score_bundle(parts))
        except Exception:
            logger.exception("Error calculating bundle comfort profile, using empty profile")
            return ComfortProfile()

    def create_bundle(
        self,
        user_id: str,
        name: str,
        parts: Mapping[Any, Optional[Mapping[str, Any]]],
        notes: str = "",
        is_public: bool = False
    ) -> Bundle:
        """
        Create a bundle from per-category product and shop selections.

        Args:
            user_id: Owning user
            name: Bundle name
            parts: Category -> {"product_id": ..., "shop_name": ...}
            notes: Free text (max 1000 characters)
            is_public: Whether other users may view the bundle

        Returns:
            The stored bundle with price, compatibility and comfort filled in
        """
        resolved = self._resolve_selections(parts)

        items = [
            BundleItem(
                product_id=product.id,
                category=category,
                selected_source=SelectedSource.from_source(source)
            )
            for category, product, source in resolved
        ]
        by_category = {category: product for category, product, _ in resolved}

        total_price = sum(item.selected_source.price for item in items)
        compatibility = check_compatibility(by_category)

        try:
            bundle = Bundle(
                user_id=user_id,
                name=name,
                products=items,
                total_price=total_price,
                compatibility_score=compatibility.score,
                is_public=is_public,
                notes=notes or ""
            )
        except ValueError as e:
            raise ValidationError(f"Invalid bundle: {e}") from e

        bundle.comfort_profile = self._compute_comfort(by_category)
        created = self.store.bundles.create(bundle)

        if self.store.users.find_by_id(user_id) is not None:
            self.store.users.push(user_id, "saved_bundles", created.id)

        logger.info(f"Created bundle {created.id} for user {user_id}: "
                    f"{len(items)} parts, compatibility {created.compatibility_score}")
        return created

    def _get_owned(self, bundle_id: str, user_id: str, action: str) -> Bundle:
        bundle = self.store.bundles.find_by_id(bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        if bundle.user_id != user_id:
            raise BundleAccessDeniedError(bundle_id, user_id, action)
        return bundle

    def get_bundle(self, bundle_id: str, user_id: Optional[str] = None) -> Bundle:
        """
        Fetch a bundle the user owns or that is public.

        A cached comfort profile with overall 0 is treated as stale and
        recomputed from current catalog data.

        Raises:
            BundleNotFoundError: If the bundle does not exist
            BundleAccessDeniedError: If the bundle is private and not the user's
        """
        bundle = self.store.bundles.find_by_id(bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        if bundle.user_id != user_id and not bundle.is_public:
            raise BundleAccessDeniedError(bundle_id, user_id, "view")

        if bundle.comfort_profile.overall == 0 and bundle.products:
            parts = {}
            for item in bundle.products:
                product = self.store.products.find_by_id(item.product_id)
                if product is not None:
                    parts[item.category] = product
            bundle.comfort_profile = self._compute_comfort(parts)
            if bundle.comfort_profile.overall > 0:
                bundle = self.store.bundles.update(bundle_id, {"comfort_profile": bundle.comfort_profile})

        return bundle

    def list_user_bundles(self, user_id: str) -> List[Bundle]:
        """A user's bundles, newest first."""
        bundles = self.store.bundles.find({"user_id": user_id})
        return sorted(bundles, key=lambda b: b.created_at, reverse=True)

    def update_bundle(self, bundle_id: str, user_id: str, patch: Dict[str, Any]) -> Bundle:
        """
        Update a bundle's name, notes or visibility.

        Raises:
            ValidationError: If the patch touches any other field or is invalid
        """
        updated = self._get_owned(bundle_id, user_id, "update")

        disallowed = sorted(set(patch) - set(UPDATABLE_FIELDS))
        if disallowed:
            raise ValidationError(f"Cannot update bundle fields: {', '.join(disallowed)}")

        for key, value in patch.items():
            setattr(updated, key, value)
        try:
            updated.__post_init__()
        except ValueError as e:
            raise ValidationError(f"Invalid bundle: {e}") from e

        return self.store.bundles.update(bundle_id, {key: getattr(updated, key) for key in patch})

    def delete_bundle(self, bundle_id: str, user_id: str) -> None:
        """Delete a bundle and remove it from the owner's saved bundles."""
        self._get_owned(bundle_id, user_id, "delete")
        self.store.bundles.delete(bundle_id)

        user = self.store.users.find_by_id(user_id)
        if user is not None and bundle_id in user.saved_bundles:
            self.store.users.update(user_id, {
                "saved_bundles": [b for b in user.saved_bundles if b != bundle_id]
            })
        logger.info(f"Deleted bundle {bundle_id}")
