"""Application Services - Catalog use cases (categories, inclusions, price ranges, tours)"""
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from domain.entities import Category, Inclusion, PriceRange, Tour, TourPrice
from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.pricing import build_price_tiers, find_overlapping
from domain.queries import NameQuery, TourQuery, TourPriceQuery, ReservationQuery
from domain.repositories import (
    CategoryRepository, InclusionRepository, PriceRangeRepository, TourRepository,
    TourPriceRepository, ReservationRepository, UnitOfWork
)
from domain.value_objects import PriceTier

logger = logging.getLogger(__name__)


class CategoryDetail(BaseModel):
    category: Category
    tour_count: int


class InclusionDetail(BaseModel):
    inclusion: Inclusion
    usage_count: int


class PriceRangeDetail(BaseModel):
    price_range: PriceRange
    usage_count: int


class TourPriceDetail(BaseModel):
    tour_price: TourPrice
    price_range: PriceRange


class TourDetail(BaseModel):
    """A tour with its category, inclusions and priced ranges"""
    tour: Tour
    category: Optional[Category] = None
    inclusions: List[Inclusion] = []
    prices: List[TourPriceDetail] = []


async def load_price_tiers(
    tour_id: UUID,
    tour_prices: TourPriceRepository,
    price_ranges: PriceRangeRepository
) -> List[PriceTier]:
    """Price tiers of a tour, ready for resolve_price"""
    prices = await tour_prices.find_by_tour(tour_id)
    ranges = await price_ranges.find_by_ids([p.price_range_id for p in prices])
    return build_price_tiers(prices, {r.price_range_id: r for r in ranges})


class CategoryService:
    """Service for Category use cases"""

    def __init__(self, repository: CategoryRepository, tour_repo: TourRepository):
        self.repository = repository
        self.tour_repo = tour_repo

    async def list_categories(self, query: NameQuery) -> List[Category]:
        return await self.repository.find_all(query)

    async def _get_or_raise(self, category_id: UUID) -> Category:
        category = await self.repository.find_by_id(category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    async def get_category(self, category_id: UUID) -> CategoryDetail:
        category = await self._get_or_raise(category_id)
        tour_count = await self.tour_repo.count_by_category(category_id)
        return CategoryDetail(category=category, tour_count=tour_count)

    async def create_category(self, name: str) -> Category:
        category = Category.create(name)
        if await self.repository.find_by_name(category.name):
            raise ConflictError("A category with this name already exists")
        saved = await self.repository.save(category)
        logger.info("Category %s created (%s)", saved.category_id, saved.name)
        return saved

    async def update_category(self, category_id: UUID, name: str) -> Category:
        category = await self._get_or_raise(category_id)
        category.rename(name)
        existing = await self.repository.find_by_name(category.name)
        if existing and existing.category_id != category_id:
            raise ConflictError("A category with this name already exists")
        return await self.repository.update(category)

    async def delete_category(self, category_id: UUID) -> None:
        await self._get_or_raise(category_id)
        tour_count = await self.tour_repo.count_by_category(category_id)
        if tour_count > 0:
            raise ConflictError(f"Cannot delete category: it has {tour_count} associated tours")
        await self.repository.delete(category_id)
        logger.info("Category %s deleted", category_id)


class InclusionService:
    """Service for Inclusion use cases"""

    def __init__(self, repository: InclusionRepository, tour_repo: TourRepository):
        self.repository = repository
        self.tour_repo = tour_repo

    async def list_inclusions(self, query: NameQuery) -> List[Inclusion]:
        return await self.repository.find_all(query)

    async def _get_or_raise(self, inclusion_id: UUID) -> Inclusion:
        inclusion = await self.repository.find_by_id(inclusion_id)
        if not inclusion:
            raise NotFoundError("Inclusion not found")
        return inclusion

    async def get_inclusion(self, inclusion_id: UUID) -> InclusionDetail:
        inclusion = await self._get_or_raise(inclusion_id)
        usage_count = await self.tour_repo.count_by_inclusion(inclusion_id)
        return InclusionDetail(inclusion=inclusion, usage_count=usage_count)

    async def create_inclusion(self, name: str, icon: Optional[str] = None) -> Inclusion:
        inclusion = Inclusion.create(name, icon)
        if await self.repository.find_by_name(inclusion.name):
            raise ConflictError("An inclusion with this name already exists")
        saved = await self.repository.save(inclusion)
        logger.info("Inclusion %s created (%s)", saved.inclusion_id, saved.name)
        return saved

    async def update_inclusion(self, inclusion_id: UUID, changes: Dict[str, Any]) -> Inclusion:
        if not changes:
            raise ValidationError("No fields to update")
        inclusion = await self._get_or_raise(inclusion_id)
        inclusion.apply_changes(changes)
        existing = await self.repository.find_by_name(inclusion.name)
        if existing and existing.inclusion_id != inclusion_id:
            raise ConflictError("An inclusion with this name already exists")
        return await self.repository.update(inclusion)

    async def delete_inclusion(self, inclusion_id: UUID) -> None:
        await self._get_or_raise(inclusion_id)
        usage_count = await self.tour_repo.count_by_inclusion(inclusion_id)
        if usage_count > 0:
            raise ConflictError(f"Cannot delete inclusion: it is used by {usage_count} tours")
        await self.repository.delete(inclusion_id)
        logger.info("Inclusion %s deleted", inclusion_id)


class PriceRangeService:
    """Service for PriceRange use cases

    Bands are checked against every stored band before writing; the
    repository repeats the check on write.
    """

    def __init__(self, repository: PriceRangeRepository, tour_price_repo: TourPriceRepository):
        self.repository = repository
        self.tour_price_repo = tour_price_repo

    async def list_price_ranges(self, query: NameQuery) -> List[PriceRange]:
        return await self.repository.find_all(query)

    async def _get_or_raise(self, price_range_id: UUID) -> PriceRange:
        price_range = await self.repository.find_by_id(price_range_id)
        if not price_range:
            raise NotFoundError("Price range not found")
        return price_range

    async def get_price_range(self, price_range_id: UUID) -> PriceRangeDetail:
        price_range = await self._get_or_raise(price_range_id)
        usage_count = await self.tour_price_repo.count_by_price_range(price_range_id)
        return PriceRangeDetail(price_range=price_range, usage_count=usage_count)

    async def create_price_range(self, name: str, min_people: int, max_people: Optional[int] = None) -> PriceRange:
        price_range = PriceRange.create(name, min_people, max_people)

        if await self.repository.find_by_name(price_range.name):
            raise ConflictError("A price range with this name already exists")

        existing = await self.repository.list_ranges()
        if find_overlapping(price_range.people_range, existing):
            raise ConflictError("This price range overlaps with an existing range")

        saved = await self.repository.save(price_range)
        logger.info("Price range %s created (%s, %s)",
                    saved.price_range_id, saved.name, saved.people_range.describe())
        return saved

    async def update_price_range(self, price_range_id: UUID, changes: Dict[str, Any]) -> PriceRange:
        """Merge a partial update with the stored band and re-check it"""
        if not changes:
            raise ValidationError("No fields to update")
        price_range = await self._get_or_raise(price_range_id)

        band = price_range.merged_range(changes)
        existing = await self.repository.list_ranges()
        if find_overlapping(band, existing, exclude_id=price_range_id):
            raise ConflictError("This update would overlap with an existing range")

        updated = price_range.model_copy(deep=True)
        updated.apply_changes(changes)
        duplicate = await self.repository.find_by_name(updated.name)
        if duplicate and duplicate.price_range_id != price_range_id:
            raise ConflictError("A price range with this name already exists")

        return await self.repository.update(updated)

    async def delete_price_range(self, price_range_id: UUID) -> None:
        await self._get_or_raise(price_range_id)
        usage_count = await self.tour_price_repo.count_by_price_range(price_range_id)
        if usage_count > 0:
            raise ConflictError(f"Cannot delete price range: it is used by {usage_count} tours")
        await self.repository.delete(price_range_id)
        logger.info("Price range %s deleted", price_range_id)


class TourService:
    """Service for Tour use cases

    Writes that touch a tour together with its inclusion links or prices
    run inside one unit of work.
    """

    def __init__(
        self,
        repository: TourRepository,
        tour_price_repo: TourPriceRepository,
        category_repo: CategoryRepository,
        inclusion_repo: InclusionRepository,
        price_range_repo: PriceRangeRepository,
        reservation_repo: ReservationRepository,
        unit_of_work: Callable[[], UnitOfWork]
    ):
        self.repository = repository
        self.tour_price_repo = tour_price_repo
        self.category_repo = category_repo
        self.inclusion_repo = inclusion_repo
        self.price_range_repo = price_range_repo
        self.reservation_repo = reservation_repo
        self.unit_of_work = unit_of_work

    # ==================== QUERIES ====================
    async def list_tours(
        self,
        query: TourQuery,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None
    ) -> List[Tour]:
        """List tours; a price bound keeps tours with any price inside it"""
        if min_price is not None or max_price is not None:
            tour_ids = await self.tour_price_repo.find_tour_ids(
                TourPriceQuery(min_price=min_price, max_price=max_price)
            )
            query = query.model_copy(update={"tour_ids": tour_ids})
        return await self.repository.find_all(query)

    async def _get_or_raise(self, tour_id: UUID) -> Tour:
        tour = await self.repository.find_by_id(tour_id)
        if not tour:
            raise NotFoundError("Tour not found")
        return tour

    async def get_tour(self, tour_id: UUID) -> TourDetail:
        tour = await self._get_or_raise(tour_id)
        category = await self.category_repo.find_by_id(tour.category_id)
        inclusions = await self.inclusion_repo.find_by_ids(
            await self.repository.find_inclusion_ids(tour_id)
        )
        prices = await self.tour_price_repo.find_by_tour(tour_id)
        ranges = {
            r.price_range_id: r
            for r in await self.price_range_repo.find_by_ids([p.price_range_id for p in prices])
        }
        price_details = [
            TourPriceDetail(tour_price=p, price_range=ranges[p.price_range_id])
            for p in prices if p.price_range_id in ranges
        ]
        price_details.sort(key=lambda d: d.price_range.min_people)
        return TourDetail(
            tour=tour,
            category=category,
            inclusions=sorted(inclusions, key=lambda i: i.name),
            prices=price_details
        )

    async def list_category_tours(self, category_id: UUID) -> List[Tour]:
        """Active tours of a category"""
        if not await self.category_repo.find_by_id(category_id):
            raise NotFoundError("Category not found")
        return await self.repository.find_all(
            TourQuery(category_id=category_id, is_active=True, limit=100)
        )

    async def get_price_tiers(self, tour_id: UUID) -> List[PriceTier]:
        await self._get_or_raise(tour_id)
        return await load_price_tiers(tour_id, self.tour_price_repo, self.price_range_repo)

    # ==================== LINK HELPERS ====================
    async def _check_inclusions(self, inclusion_ids: List[UUID]) -> None:
        found = await self.inclusion_repo.find_by_ids(inclusion_ids)
        if len(found) != len(set(inclusion_ids)):
            raise NotFoundError("One or more inclusions not found")

    async def _build_prices(self, tour_id: UUID, prices: List[dict]) -> List[TourPrice]:
        """Turn ``{"price_range_id", "price"}`` dicts into TourPrices"""
        range_ids = [p["price_range_id"] for p in prices]
        found = await self.price_range_repo.find_by_ids(range_ids)
        if len(found) != len(set(range_ids)):
            raise NotFoundError("One or more price ranges not found")
        return [
            TourPrice(tour_id=tour_id, price_range_id=p["price_range_id"], price=Decimal(str(p["price"])))
            for p in prices
        ]

    # ==================== COMMANDS ====================
    async def create_tour(
        self,
        name: str,
        description: str,
        duration: str,
        duration_minutes: int,
        category_id: UUID,
        image: Optional[str] = None,
        is_active: bool = True,
        inclusion_ids: Optional[List[UUID]] = None,
        prices: Optional[List[dict]] = None
    ) -> TourDetail:
        """Create a tour with its inclusions and prices in one unit of work"""
        if not await self.category_repo.find_by_id(category_id):
            raise NotFoundError("Category not found")

        tour = Tour(
            name=name,
            description=description,
            duration=duration,
            duration_minutes=duration_minutes,
            category_id=category_id,
            image=image,
            is_active=is_active
        )
        tour.apply_changes({"name": name, "description": description, "duration": duration})

        async with self.unit_of_work():
            await self.repository.save(tour)
            if inclusion_ids:
                await self._check_inclusions(inclusion_ids)
                await self.repository.add_inclusions(tour.tour_id, inclusion_ids)
            if prices:
                await self.tour_price_repo.add_prices(await self._build_prices(tour.tour_id, prices))

        logger.info("Tour %s created (%s)", tour.tour_id, tour.name)
        return await self.get_tour(tour.tour_id)

    async def update_tour(self, tour_id: UUID, changes: Dict[str, Any]) -> Tour:
        # image is the only field that may be cleared
        changes = {k: v for k, v in changes.items() if v is not None or k == "image"}
        if not changes:
            raise ValidationError("No fields to update")
        tour = await self._get_or_raise(tour_id)
        if changes.get("category_id") is not None and not await self.category_repo.find_by_id(changes["category_id"]):
            raise NotFoundError("Category not found")
        tour.apply_changes(changes)
        return await self.repository.update(tour)

    async def replace_inclusions(self, tour_id: UUID, inclusion_ids: List[UUID]) -> TourDetail:
        await self._get_or_raise(tour_id)
        async with self.unit_of_work():
            await self.repository.remove_inclusions(tour_id)
            if inclusion_ids:
                await self._check_inclusions(inclusion_ids)
                await self.repository.add_inclusions(tour_id, inclusion_ids)
        return await self.get_tour(tour_id)

    async def replace_prices(self, tour_id: UUID, prices: List[dict]) -> TourDetail:
        await self._get_or_raise(tour_id)
        async with self.unit_of_work():
            await self.tour_price_repo.delete_by_tour(tour_id)
            if prices:
                await self.tour_price_repo.add_prices(await self._build_prices(tour_id, prices))
        logger.info("Prices of tour %s replaced (%d tiers)", tour_id, len(prices))
        return await self.get_tour(tour_id)

    async def toggle_tour_status(self, tour_id: UUID) -> Tour:
        tour = await self._get_or_raise(tour_id)
        tour.toggle_status()
        logger.info("Tour %s is now %s", tour_id, "active" if tour.is_active else "inactive")
        return await self.repository.update(tour)

    async def delete_tour(self, tour_id: UUID) -> None:
        await self._get_or_raise(tour_id)
        reservation_count = await self.reservation_repo.count(ReservationQuery(tour_id=tour_id))
        if reservation_count > 0:
            raise ConflictError(f"Cannot delete tour: it has {reservation_count} associated reservations")
        async with self.unit_of_work():
            await self.tour_price_repo.delete_by_tour(tour_id)
            await self.repository.delete(tour_id)
        logger.info("Tour %s deleted", tour_id)
