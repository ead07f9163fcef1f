"""Domain Pricing - price tier validation and tour price resolution

Both halves are pure functions over the data they are handed. Callers load
price ranges and tour prices from the repositories first.
"""
import logging
from typing import Iterable, List, Mapping, Optional
from uuid import UUID

from domain.errors import NoPriceTierError, ValidationError
from domain.value_objects import Money, PeopleRange, PriceQuote, PriceTier

logger = logging.getLogger(__name__)


# ==================== PRICE TIER VALIDATOR ====================

def validate_range_bounds(min_people: Optional[int], max_people: Optional[int]) -> PeopleRange:
    """Check band bounds and return them as a PeopleRange"""
    if min_people is None or min_people < 1:
        raise ValidationError("Minimum people must be at least 1")
    if max_people is not None and max_people < min_people:
        raise ValidationError("Maximum people must be greater than or equal to minimum people")
    return PeopleRange(min_people=min_people, max_people=max_people)


def find_overlapping(candidate: PeopleRange, existing: Iterable, exclude_id: Optional[UUID] = None) -> List:
    """Return every existing price range whose band intersects the candidate.

    ``existing`` holds price-range entities; each must expose
    ``price_range_id`` and ``people_range``. The range identified by
    ``exclude_id`` (the one being updated) is skipped.
    """
    return [
        price_range for price_range in existing
        if price_range.price_range_id != exclude_id
        and candidate.overlaps(price_range.people_range)
    ]


def validate_no_overlap(candidate: PeopleRange, existing: Iterable, exclude_id: Optional[UUID] = None) -> bool:
    """True when the candidate band shares no party size with any existing band"""
    validate_range_bounds(candidate.min_people, candidate.max_people)
    return not find_overlapping(candidate, existing, exclude_id)


# ==================== TOUR PRICING RESOLVER ====================

def build_price_tiers(tour_prices: Iterable, price_ranges: Mapping[UUID, object]) -> List[PriceTier]:
    """Join a tour's prices with their price ranges, keeping price order.

    Prices whose range no longer exists are dropped.
    """
    tiers = []
    for tour_price in tour_prices:
        price_range = price_ranges.get(tour_price.price_range_id)
        if price_range is None:
            logger.warning("Tour price %s references missing price range %s",
                           tour_price.tour_price_id, tour_price.price_range_id)
            continue
        tiers.append(PriceTier(
            people_range=price_range.people_range,
            unit_price=tour_price.price,
            price_range_id=price_range.price_range_id
        ))
    return tiers


def resolve_price(people_count: int, tiers: Iterable[PriceTier]) -> PriceQuote:
    """Pick the tier covering people_count and price the whole party"""
    if people_count is None or people_count < 1:
        raise ValidationError("Number of people must be at least 1")

    matches = [tier for tier in tiers if tier.people_range.contains(people_count)]
    if not matches:
        raise NoPriceTierError(people_count)
    if len(matches) > 1:
        # Overlapping tiers; stay deterministic and use iteration order
        logger.warning(
            "%d price tiers match %d people, using %s",
            len(matches), people_count, matches[0].people_range.describe()
        )

    tier = matches[0]
    unit_price = Money(amount=tier.unit_price)
    return PriceQuote(
        people_count=people_count,
        unit_price=unit_price,
        total_price=unit_price.times(people_count),
        price_range_id=tier.price_range_id
    )
