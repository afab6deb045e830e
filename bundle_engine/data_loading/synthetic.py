"""
Synthetic demo catalog.

Generates a reproducible catalog of products, retailer listings, users and
reviews for demonstration and smoke testing when no real catalog snapshot
is available. A few products are listed twice under slightly different
spellings so the reconciler has duplicates to merge.
"""

import logging
from datetime import timedelta

import numpy as np

from ..catalog.schema import (
    Category,
    ComfortRatings,
    Product,
    Review,
    ShopRating,
    Source,
    User,
    compute_group_key,
    utcnow,
)
from ..catalog.store import DocumentStore

logger = logging.getLogger(__name__)

SHOPS = ["Startech", "Ryans", "TechLand", "Skyland", "UltraTech"]

BRANDS = {
    Category.CPU: ["AMD", "Intel"],
    Category.GPU: ["NVIDIA", "AMD"],
    Category.RAM: ["Corsair", "G.Skill", "Kingston"],
    Category.MOTHERBOARD: ["ASUS", "MSI", "Gigabyte"],
    Category.STORAGE: ["Samsung", "WD", "Seagate"],
    Category.PSU: ["Corsair", "Seasonic", "Cooler Master"],
    Category.CASE: ["NZXT", "Lian Li", "Fractal"],
}

PRICE_RANGES = {
    Category.CPU: (12000, 60000),
    Category.GPU: (25000, 180000),
    Category.RAM: (3000, 20000),
    Category.MOTHERBOARD: (10000, 45000),
    Category.STORAGE: (4000, 25000),
    Category.PSU: (5000, 20000),
    Category.CASE: (4000, 18000),
}

COMMENTS = [
    "Easy to install and runs well.",
    "Does the job, nothing special.",
    "Great performance for the price.",
    "Runs hot under load.",
    "Setup took a while but works fine now.",
]


def _random_specifications(category: Category, rng: np.random.RandomState) -> dict:
    socket = rng.choice(["AM5", "LGA1700"])
    memory = rng.choice(["DDR5", "DDR4"])
    if category == Category.CPU:
        return {"socket": socket, "TDP": f"{rng.choice([65, 105, 125])}W", "cores": str(rng.choice([6, 8, 12]))}
    if category == Category.MOTHERBOARD:
        return {"socket": socket, "memoryType": memory, "formFactor": rng.choice(["ATX", "mATX"])}
    if category == Category.RAM:
        return {"type": f"{memory}-{rng.choice([3200, 5600, 6000])}", "capacity": f"{rng.choice([16, 32])}GB"}
    if category == Category.GPU:
        return {"TDP": f"{rng.choice([120, 200, 285, 320])}W", "length": f"{rng.randint(240, 340)}mm"}
    if category == Category.STORAGE:
        return {"type": rng.choice(["NVMe SSD", "SATA SSD", "HDD"]), "capacity": f"{rng.choice([512, 1000, 2000])}GB"}
    if category == Category.PSU:
        return {"wattage": f"{rng.choice([450, 550, 650, 750, 850])}W"}
    return {"maxGPULength": f"{rng.randint(300, 400)}mm"}


def _random_product(category: Category, index: int, rng: np.random.RandomState) -> Product:
    brand = str(rng.choice(BRANDS[category]))
    model = f"{category.name[:3]}-{1000 + index}"
    low, high = PRICE_RANGES[category]
    base_price = float(rng.randint(low, high))

    n_sources = rng.randint(1, 4)
    shops = rng.choice(SHOPS, size=n_sources, replace=False)
    sources = [
        Source(
            shop_name=str(shop),
            price=round(base_price * rng.uniform(0.95, 1.1)),
            product_url=f"https://{str(shop).lower()}.example/{model.lower()}",
            in_stock=bool(rng.rand() > 0.2)
        )
        for shop in shops
    ]
    by_source = [
        ShopRating(shop_name=str(shop), average=round(float(rng.uniform(3.0, 5.0)), 1), count=int(rng.randint(0, 400)))
        for shop in shops
    ]

    product = Product(
        name=f"{brand} {model}",
        category=category,
        brand=brand,
        model=model,
        specifications=_random_specifications(category, rng),
        sources=sources
    )
    product.ratings.by_source = by_source
    product.update_price_range()
    product.update_ratings()
    return product


def create_synthetic_catalog(
    n_products: int = 70,
    n_users: int = 40,
    n_duplicates: int = 5,
    random_seed: int = 42
) -> DocumentStore:
    """
    Create a synthetic catalog for demonstration.

    Args:
        n_products: Number of distinct products (spread across categories)
        n_users: Number of users writing reviews
        n_duplicates: Number of products listed a second time
        random_seed: Seed for reproducibility

    Returns:
        Populated DocumentStore
    """
    rng = np.random.RandomState(random_seed)
    store = DocumentStore()
    categories = list(Category)
    now = utcnow()

    products = []
    for i in range(n_products):
        products.append(store.products.create(_random_product(categories[i % len(categories)], i, rng)))

    for original in products[:n_duplicates]:
        duplicate = _random_product(original.category, 0, rng)
        duplicate.brand = original.brand.upper()
        duplicate.model = f"  {original.model} "
        duplicate.name = original.name
        duplicate.group_key = compute_group_key(duplicate.brand, duplicate.model)
        products.append(store.products.create(duplicate))

    users = [store.users.create(User(username=f"user{i}", email=f"user{i}@example.com")) for i in range(n_users)]

    review_ids = {p.id: [] for p in products}
    for user in users:
        n_reviews = rng.randint(0, 6)
        for idx in rng.choice(len(products), size=n_reviews, replace=False):
            product = products[idx]
            quality = rng.uniform(1, 5)
            review = store.reviews.create(Review(
                user_id=user.id,
                product_id=product.id,
                rating=int(np.clip(round(quality + rng.normal(0, 0.5)), 1, 5)),
                comment=str(rng.choice(COMMENTS)),
                comfort_ratings=ComfortRatings(
                    ease=int(np.clip(round(quality + rng.normal(0, 1)), 1, 5)),
                    performance=int(np.clip(round(quality + rng.normal(0, 1)), 1, 5))
                ),
                created_at=now - timedelta(days=int(rng.randint(0, 500)))
            ))
            review_ids[product.id].append(review.id)

    for product_id, ids in review_ids.items():
        if ids:
            store.products.update(product_id, {"platform_reviews": ids})

    logger.info(f"Created synthetic catalog: {store.stats()}")
    return store
