"""
Numeric helpers shared by the compatibility checker and the feature extractor.

Every helper here is a pure function. Scaling helpers map raw catalog values
(prices in local currency, 1-5 star ratings, counts) into roughly [0, 1].
Parsing helpers read the loosely-typed specification map, where values such
as "65W", "65 W" and "65" all mean the same thing.

Key Design Decisions:
- Missing or unparseable specification values fall back to a caller-supplied
  default instead of failing; absence of data is not a compatibility failure
- A parsed value of zero is treated as missing (a 0W TDP is never real data)
- Scores use half-up rounding, not Python's banker's rounding
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# Price ceiling used for scaling, in catalog currency
PRICE_CEILING = 100000
SHOP_RATING_COUNT_CEILING = 1000
PLATFORM_REVIEW_CEILING = 50
REVIEW_COUNT_CEILING = 100
RATING_SCALE_MAX = 5

# (max age in days, weight), checked in order
RECENCY_STEPS = [
    (30, 1.0),
    (90, 0.8),
    (180, 0.6),
    (365, 0.4),
]
RECENCY_FLOOR = 0.2

CONSISTENCY_STD_SCALE = 2.5
NEUTRAL_CONSISTENCY = 0.5

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def normalize_price(price: float) -> float:
    """Scale a price into [0, 1], saturating at PRICE_CEILING."""
    return min(price / PRICE_CEILING, 1.0)


def normalize_price_spread(min_price: float, max_price: float) -> float:
    """
    Relative spread between the cheapest and most expensive listing.

    Args:
        min_price: Lowest source price
        max_price: Highest source price

    Returns:
        (max - min) / min capped at 1, or 0 when either bound is 0
    """
    if min_price == 0 or max_price == 0:
        return 0.0
    spread = (max_price - min_price) / min_price
    return min(spread, 1.0)


def normalize_rating(rating: float) -> float:
    """Map a 1-5 star rating onto [0, 1]."""
    return rating / RATING_SCALE_MAX


def normalize_review_count(count: int) -> float:
    return min(count / REVIEW_COUNT_CEILING, 1.0)


def recency_weight(age_days: float) -> float:
    """
    Step-function weight for a single review's age.

    Args:
        age_days: Age of the review in days

    Returns:
        1.0 for < 30 days, decreasing to 0.2 for a year or older
    """
    for max_age, weight in RECENCY_STEPS:
        if age_days < max_age:
            return weight
    return RECENCY_FLOOR


def review_recency(
    created_dates: Sequence[datetime],
    now: Optional[datetime] = None
) -> float:
    """
    Mean recency weight across a set of reviews.

    Args:
        created_dates: Creation timestamps of the reviews
        now: Reference time (defaults to current UTC time)

    Returns:
        Arithmetic mean of per-review weights, 0 for no reviews
    """
    if not created_dates:
        return 0.0

    now = now or datetime.now(timezone.utc)
    weights = []
    for created in created_dates:
        age_days = (now - _as_utc(created)).total_seconds() / 86400
        weights.append(recency_weight(age_days))

    return float(np.mean(weights))


def review_consistency(ratings: Sequence[float]) -> float:
    """
    Agreement between reviewers on the raw 1-5 rating.

    Uses the sample standard deviation, so [1, 5, 1, 5] gives
    std ~2.31 and a consistency of ~0.076.

    Args:
        ratings: Raw star ratings

    Returns:
        max(0, 1 - std / 2.5), or 0.5 with fewer than two ratings
    """
    if len(ratings) < 2:
        return NEUTRAL_CONSISTENCY

    std = float(np.std(np.asarray(ratings, dtype=float), ddof=1))
    return max(0.0, 1.0 - std / CONSISTENCY_STD_SCALE)


def parse_spec_number(value: Optional[str], default: float) -> float:
    """
    Parse the leading number of a specification string.

    "65W", "65 W", "280mm" and "65" all parse; anything else, including a
    parsed zero, yields the default.

    Args:
        value: Raw specification value (may be None or non-string)
        default: Fallback value

    Returns:
        Parsed integer value or default
    """
    if value is None:
        return default

    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return default

    parsed = int(float(match.group(1)))
    return parsed if parsed else default


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 always rounding up."""
    return int(math.floor(value + 0.5))


def mean_or_default(values: Iterable[float], default: float) -> float:
    values = list(values)
    if not values:
        return default
    return float(np.mean(values))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
