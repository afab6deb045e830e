"""
Catalog records: products, retailer sources, reviews, bundles and users.

Records are plain dataclasses that round-trip through dictionaries so the
document store (and any HTTP layer on top of it) can persist them as-is.

Derived fields on Product (group_key, price_range, available_at,
total_sources, ratings.overall) are never set by hand: they are re-derived
from the fields they summarize by update_price_range() and update_ratings().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List
import re


class Category(Enum):
    """PC component categories a product can belong to."""
    CPU = "CPU"
    GPU = "GPU"
    RAM = "RAM"
    MOTHERBOARD = "Motherboard"
    STORAGE = "Storage"
    PSU = "PSU"
    CASE = "Case"

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """Accept a Category, its value ("Motherboard") or its name ("MOTHERBOARD")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        if isinstance(value, str) and value.upper() in cls.__members__:
            return cls[value.upper()]
        raise ValueError(f"Unknown category: {value!r}")


MAX_REVIEW_COMMENT_LENGTH = 500
MAX_BUNDLE_NOTES_LENGTH = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if value is None:
        return utcnow()
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _normalize_key_part(value: str) -> str:
    return re.sub(r"\s+", " ", (value or "").strip().lower())


def compute_group_key(brand: str, model: str) -> str:
    """
    Compute the duplicate-detection key for a product.

    Args:
        brand: Manufacturer name
        model: Model designation

    Returns:
        "<brand>_<model>", lower-cased with whitespace collapsed

    Example:
        >>> compute_group_key(" AMD ", "Ryzen 5  7600")
        'amd_ryzen 5 7600'
    """
    return f"{_normalize_key_part(brand)}_{_normalize_key_part(model)}"


@dataclass
class Shipping:
    available: bool = True
    cost: float = 0.0
    estimated_days: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "cost": self.cost,
            "estimated_days": self.estimated_days
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Shipping":
        d = d or {}
        return cls(
            available=d.get("available", True),
            cost=d.get("cost", 0.0) or 0.0,
            estimated_days=d.get("estimated_days")
        )


@dataclass
class Source:
    """
    One retailer's listing of a product.

    Attributes:
        shop_name: Retailer identifier, unique within a product
        shop_url: Retailer home page
        product_url: Listing URL
        price: Listed price (>= 0)
        in_stock: Whether the retailer currently has stock
        shipping: Shipping terms
        last_updated: When the listing was last refreshed
    """
    shop_name: str
    price: float
    shop_url: str = ""
    product_url: str = ""
    in_stock: bool = True
    shipping: Shipping = field(default_factory=Shipping)
    last_updated: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.shop_name:
            raise ValueError("shop_name is required")
        if self.price is None or self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")
        if isinstance(self.shipping, dict):
            self.shipping = Shipping.from_dict(self.shipping)
        self.last_updated = _parse_datetime(self.last_updated)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop_name": self.shop_name,
            "shop_url": self.shop_url,
            "product_url": self.product_url,
            "price": self.price,
            "in_stock": self.in_stock,
            "shipping": self.shipping.to_dict(),
            "last_updated": self.last_updated.isoformat()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Source":
        return cls(
            shop_name=d["shop_name"],
            price=d["price"],
            shop_url=d.get("shop_url", ""),
            product_url=d.get("product_url", ""),
            in_stock=d.get("in_stock", True),
            shipping=Shipping.from_dict(d.get("shipping")),
            last_updated=_parse_datetime(d.get("last_updated"))
        )


@dataclass
class PriceRange:
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "average": self.average}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "PriceRange":
        d = d or {}
        return cls(min=d.get("min", 0.0), max=d.get("max", 0.0), average=d.get("average", 0.0))


@dataclass
class RatingSummary:
    average: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"average": self.average, "count": self.count}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "RatingSummary":
        d = d or {}
        return cls(average=d.get("average", 0.0), count=d.get("count", 0))


@dataclass
class ShopRating:
    """A retailer's own rating aggregate for the product."""
    shop_name: str
    average: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"shop_name": self.shop_name, "average": self.average, "count": self.count}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShopRating":
        return cls(shop_name=d["shop_name"], average=d.get("average", 0.0), count=d.get("count", 0))


@dataclass
class Ratings:
    overall: RatingSummary = field(default_factory=RatingSummary)
    by_source: List[ShopRating] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.to_dict(),
            "by_source": [r.to_dict() for r in self.by_source]
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Ratings":
        d = d or {}
        return cls(
            overall=RatingSummary.from_dict(d.get("overall")),
            by_source=[ShopRating.from_dict(r) for r in d.get("by_source", [])]
        )


@dataclass
class Product:
    """
    A catalog product with its retailer listings and rating aggregates.

    Attributes:
        name: Display name
        category: Component category
        brand: Manufacturer
        model: Model designation
        specifications: Free-form key -> string map ("socket", "TDP", ...)
        sources: Retailer listings, unique by shop_name
        price_range: Derived from sources
        available_at: Derived: number of in-stock sources
        total_sources: Derived: number of sources
        ratings: Per-shop ratings and their derived overall aggregate
        platform_reviews: Ids of reviews left on this platform
        comfort_score: Cached overall comfort score (0-100)
        group_key: Duplicate-detection key, fixed at creation
        id: Store identifier (assigned on create)
    """
    name: str
    category: Category
    brand: str
    model: str
    specifications: Dict[str, str] = field(default_factory=dict)
    sources: List[Source] = field(default_factory=list)
    price_range: PriceRange = field(default_factory=PriceRange)
    available_at: int = 0
    total_sources: int = 0
    ratings: Ratings = field(default_factory=Ratings)
    platform_reviews: List[str] = field(default_factory=list)
    comfort_score: int = 0
    group_key: str = ""
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.category = Category.parse(self.category)
        self.specifications = {
            str(k): str(v) for k, v in (self.specifications or {}).items() if v is not None
        }
        if not self.group_key:
            self.group_key = compute_group_key(self.brand, self.model)
        if not 0 <= self.comfort_score <= 100:
            raise ValueError(f"comfort_score must be between 0 and 100, got {self.comfort_score}")
        self.created_at = _parse_datetime(self.created_at)

    def get_spec(self, key: str) -> Optional[str]:
        """Look up a specification value, falling back to a case-insensitive match."""
        if key in self.specifications:
            return self.specifications[key]
        lowered = key.lower()
        for spec_key, value in self.specifications.items():
            if spec_key.lower() == lowered:
                return value
        return None

    def find_source(self, shop_name: str) -> Optional[Source]:
        for source in self.sources:
            if source.shop_name == shop_name:
                return source
        return None

    def update_price_range(self) -> None:
        """Re-derive price_range, available_at and total_sources from sources."""
        prices = [s.price for s in self.sources]
        if prices:
            self.price_range = PriceRange(
                min=min(prices),
                max=max(prices),
                average=sum(prices) / len(prices)
            )
        else:
            self.price_range = PriceRange()
        self.available_at = sum(1 for s in self.sources if s.in_stock)
        self.total_sources = len(self.sources)

    def update_ratings(self) -> None:
        """
        Re-derive ratings.overall from ratings.by_source.

        The overall average is weighted by each shop's rating count; when no
        shop reports a count the plain mean of shop averages is used.
        """
        by_source = self.ratings.by_source
        if not by_source:
            self.ratings.overall = RatingSummary()
            return

        total_count = sum(r.count for r in by_source)
        if total_count > 0:
            average = sum(r.average * r.count for r in by_source) / total_count
        else:
            average = sum(r.average for r in by_source) / len(by_source)
        self.ratings.overall = RatingSummary(average=average, count=total_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "brand": self.brand,
            "model": self.model,
            "specifications": dict(self.specifications),
            "sources": [s.to_dict() for s in self.sources],
            "price_range": self.price_range.to_dict(),
            "available_at": self.available_at,
            "total_sources": self.total_sources,
            "ratings": self.ratings.to_dict(),
            "platform_reviews": list(self.platform_reviews),
            "comfort_score": self.comfort_score,
            "group_key": self.group_key,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Product":
        return cls(
            id=d.get("id"),
            name=d["name"],
            category=d["category"],
            brand=d["brand"],
            model=d["model"],
            specifications=d.get("specifications", {}),
            sources=[Source.from_dict(s) for s in d.get("sources", [])],
            price_range=PriceRange.from_dict(d.get("price_range")),
            available_at=d.get("available_at", 0),
            total_sources=d.get("total_sources", 0),
            ratings=Ratings.from_dict(d.get("ratings")),
            platform_reviews=list(d.get("platform_reviews", [])),
            comfort_score=d.get("comfort_score", 0),
            group_key=d.get("group_key", ""),
            created_at=_parse_datetime(d.get("created_at"))
        )


@dataclass
class ComfortRatings:
    """
    Per-review comfort sub-ratings, each on a 1-5 scale when set.

    noise and temperature belong to the extended rating variant and are
    optional.
    """
    ease: Optional[int] = None
    performance: Optional[int] = None
    noise: Optional[int] = None
    temperature: Optional[int] = None

    def __post_init__(self):
        for attr in ["ease", "performance", "noise", "temperature"]:
            val = getattr(self, attr)
            if val is not None and not 1 <= val <= 5:
                raise ValueError(f"{attr} must be between 1 and 5, got {val}")

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "ease": self.ease,
            "performance": self.performance,
            "noise": self.noise,
            "temperature": self.temperature
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "ComfortRatings":
        d = d or {}
        return cls(
            ease=d.get("ease"),
            performance=d.get("performance"),
            noise=d.get("noise"),
            temperature=d.get("temperature")
        )


@dataclass
class Review:
    """
    A platform user's review of a product.

    At most one review exists per (user_id, product_id); the review
    collection enforces this with a unique index.
    """
    user_id: str
    product_id: str
    rating: int
    comment: str
    comfort_ratings: ComfortRatings = field(default_factory=ComfortRatings)
    helpful: int = 0
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not isinstance(self.rating, int) or not 1 <= self.rating <= 5:
            raise ValueError(f"rating must be an integer between 1 and 5, got {self.rating}")
        if not self.comment:
            raise ValueError("comment is required")
        if len(self.comment) > MAX_REVIEW_COMMENT_LENGTH:
            raise ValueError(f"comment cannot exceed {MAX_REVIEW_COMMENT_LENGTH} characters")
        if isinstance(self.comfort_ratings, dict):
            self.comfort_ratings = ComfortRatings.from_dict(self.comfort_ratings)
        self.created_at = _parse_datetime(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "rating": self.rating,
            "comment": self.comment,
            "comfort_ratings": self.comfort_ratings.to_dict(),
            "helpful": self.helpful,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Review":
        return cls(
            id=d.get("id"),
            user_id=d["user_id"],
            product_id=d["product_id"],
            rating=d["rating"],
            comment=d["comment"],
            comfort_ratings=ComfortRatings.from_dict(d.get("comfort_ratings")),
            helpful=d.get("helpful", 0),
            created_at=_parse_datetime(d.get("created_at"))
        )


@dataclass
class ComfortProfile:
    """
    Comfort scores cached on a bundle.

    Always recomputable from product and review data; treat as stale.
    """
    overall: int = 0
    ease: int = 0
    performance: int = 0
    noise: int = 0
    temperature: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "overall": self.overall,
            "ease": self.ease,
            "performance": self.performance,
            "noise": self.noise,
            "temperature": self.temperature
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "ComfortProfile":
        d = d or {}
        return cls(
            overall=d.get("overall", 0),
            ease=d.get("ease", 0),
            performance=d.get("performance", 0),
            noise=d.get("noise", 0),
            temperature=d.get("temperature", 0)
        )


@dataclass
class SelectedSource:
    """Snapshot of the retailer listing chosen for a bundle part."""
    shop_name: str
    price: float
    product_url: str
    shipping: Shipping = field(default_factory=Shipping)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop_name": self.shop_name,
            "price": self.price,
            "product_url": self.product_url,
            "shipping": self.shipping.to_dict()
        }

    @classmethod
    def from_source(cls, source: Source) -> "SelectedSource":
        return cls(
            shop_name=source.shop_name,
            price=source.price,
            product_url=source.product_url,
            shipping=Shipping.from_dict(source.shipping.to_dict())
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SelectedSource":
        return cls(
            shop_name=d["shop_name"],
            price=d["price"],
            product_url=d.get("product_url", ""),
            shipping=Shipping.from_dict(d.get("shipping"))
        )


@dataclass
class BundleItem:
    product_id: str
    category: Category
    selected_source: SelectedSource

    def __post_init__(self):
        self.category = Category.parse(self.category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "category": self.category.value,
            "selected_source": self.selected_source.to_dict()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BundleItem":
        return cls(
            product_id=d["product_id"],
            category=d["category"],
            selected_source=SelectedSource.from_dict(d["selected_source"])
        )


@dataclass
class Bundle:
    """
    A user-curated set of one product per category with a chosen source.

    Attributes:
        user_id: Owning user
        name: Bundle name
        products: Ordered part selections
        total_price: Sum of selected source prices
        compatibility_score: 0-100 score from the compatibility checker
        comfort_profile: Cached comfort scores
        is_public: Whether other users may view the bundle
        notes: Free text (max 1000 characters)
    """
    user_id: str
    name: str
    products: List[BundleItem] = field(default_factory=list)
    total_price: float = 0.0
    compatibility_score: int = 0
    comfort_profile: ComfortProfile = field(default_factory=ComfortProfile)
    is_public: bool = False
    notes: str = ""
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Bundle name is required")
        self.name = self.name.strip()
        if len(self.notes or "") > MAX_BUNDLE_NOTES_LENGTH:
            raise ValueError(f"Notes cannot exceed {MAX_BUNDLE_NOTES_LENGTH} characters")
        if self.total_price < 0:
            raise ValueError(f"total_price must be >= 0, got {self.total_price}")
        if not 0 <= self.compatibility_score <= 100:
            raise ValueError(f"compatibility_score must be between 0 and 100, got {self.compatibility_score}")
        self.created_at = _parse_datetime(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "products": [p.to_dict() for p in self.products],
            "total_price": self.total_price,
            "compatibility_score": self.compatibility_score,
            "comfort_profile": self.comfort_profile.to_dict(),
            "is_public": self.is_public,
            "notes": self.notes,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Bundle":
        return cls(
            id=d.get("id"),
            user_id=d["user_id"],
            name=d["name"],
            products=[BundleItem.from_dict(p) for p in d.get("products", [])],
            total_price=d.get("total_price", 0.0),
            compatibility_score=d.get("compatibility_score", 0),
            comfort_profile=ComfortProfile.from_dict(d.get("comfort_profile")),
            is_public=d.get("is_public", False),
            notes=d.get("notes", ""),
            created_at=_parse_datetime(d.get("created_at"))
        )


@dataclass
class User:
    username: str
    email: str = ""
    saved_bundles: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.created_at = _parse_datetime(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "saved_bundles": list(self.saved_bundles),
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "User":
        return cls(
            id=d.get("id"),
            username=d["username"],
            email=d.get("email", ""),
            saved_bundles=list(d.get("saved_bundles", [])),
            created_at=_parse_datetime(d.get("created_at"))
        )
