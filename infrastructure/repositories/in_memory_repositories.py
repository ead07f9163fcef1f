"""In-Memory Repository Implementations

Entities are copied on the way in and on the way out, so a caller mutating
a loaded entity changes nothing until it calls ``update``.
"""
import copy
import logging
from typing import Optional, List, Dict, Set, Tuple
from uuid import UUID

from domain.repositories import (
    UserRepository, CategoryRepository, InclusionRepository, PriceRangeRepository,
    TourRepository, TourPriceRepository, ReservationRepository, UnitOfWork
)
from domain.auth import UserInDB
from domain.entities import Category, Inclusion, PriceRange, Tour, TourPrice, Reservation
from domain.errors import ConflictError, NotFoundError
from domain.pricing import find_overlapping
from domain.queries import (
    NameQuery, TourQuery, TourPriceQuery, UserQuery, ReservationQuery, matches_text
)

logger = logging.getLogger(__name__)


def _copy(entity):
    return entity.model_copy(deep=True)


def _page(items: list, query) -> list:
    return items[query.offset:query.offset + query.limit]


class _SnapshotStore:
    """Storage the unit of work can snapshot and restore"""

    def __init__(self):
        self._storage: Dict = {}

    def _snapshot(self):
        return copy.deepcopy(self._storage)

    def _restore(self, snapshot) -> None:
        self._storage = snapshot


class InMemoryUserRepository(_SnapshotStore, UserRepository):
    """In-memory implementation of UserRepository"""

    def __init__(self, users: Optional[List[UserInDB]] = None):
        super().__init__()
        for user in users or []:
            self._storage[user.user_id] = _copy(user)

    async def save(self, user: UserInDB) -> UserInDB:
        existing = await self.find_by_email(user.email)
        if existing and existing.user_id != user.user_id:
            raise ConflictError("User with this email already exists")
        self._storage[user.user_id] = _copy(user)
        return _copy(user)

    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        user = self._storage.get(user_id)
        return _copy(user) if user else None

    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        for user in self._storage.values():
            if user.email.lower() == email.lower():
                return _copy(user)
        return None

    def _filter(self, query: Optional[UserQuery]) -> List[UserInDB]:
        users = list(self._storage.values())
        if query is None:
            return users
        if query.role is not None:
            users = [u for u in users if u.role == query.role]
        if query.is_active is not None:
            users = [u for u in users if u.is_active == query.is_active]
        if query.search:
            users = [
                u for u in users
                if matches_text(u.email, query.search)
                or matches_text(u.name, query.search)
                or matches_text(u.phone, query.search)
            ]
        return users

    async def find_all(self, query: UserQuery) -> List[UserInDB]:
        users = sorted(self._filter(query), key=lambda u: u.created_at, reverse=True)
        return [_copy(u) for u in _page(users, query)]

    async def count(self, query: Optional[UserQuery] = None) -> int:
        return len(self._filter(query))

    async def update(self, user: UserInDB) -> UserInDB:
        if user.user_id not in self._storage:
            raise NotFoundError("User not found")
        return await self.save(user)


class InMemoryCategoryRepository(_SnapshotStore, CategoryRepository):
    """In-memory implementation of CategoryRepository"""

    async def save(self, category: Category) -> Category:
        existing = await self.find_by_name(category.name)
        if existing and existing.category_id != category.category_id:
            raise ConflictError("A category with this name already exists")
        self._storage[category.category_id] = _copy(category)
        return _copy(category)

    async def find_by_id(self, category_id: UUID) -> Optional[Category]:
        category = self._storage.get(category_id)
        return _copy(category) if category else None

    async def find_by_name(self, name: str) -> Optional[Category]:
        for category in self._storage.values():
            if category.name.lower() == name.lower():
                return _copy(category)
        return None

    async def find_all(self, query: NameQuery) -> List[Category]:
        categories = [c for c in self._storage.values() if matches_text(c.name, query.search)]
        categories.sort(key=lambda c: c.name)
        return [_copy(c) for c in _page(categories, query)]

    async def update(self, category: Category) -> Category:
        if category.category_id not in self._storage:
            raise NotFoundError("Category not found")
        return await self.save(category)

    async def delete(self, category_id: UUID) -> bool:
        if category_id in self._storage:
            del self._storage[category_id]
            return True
        return False


class InMemoryInclusionRepository(_SnapshotStore, InclusionRepository):
    """In-memory implementation of InclusionRepository"""

    async def save(self, inclusion: Inclusion) -> Inclusion:
        existing = await self.find_by_name(inclusion.name)
        if existing and existing.inclusion_id != inclusion.inclusion_id:
            raise ConflictError("An inclusion with this name already exists")
        self._storage[inclusion.inclusion_id] = _copy(inclusion)
        return _copy(inclusion)

    async def find_by_id(self, inclusion_id: UUID) -> Optional[Inclusion]:
        inclusion = self._storage.get(inclusion_id)
        return _copy(inclusion) if inclusion else None

    async def find_by_ids(self, inclusion_ids: List[UUID]) -> List[Inclusion]:
        return [_copy(self._storage[i]) for i in dict.fromkeys(inclusion_ids) if i in self._storage]

    async def find_by_name(self, name: str) -> Optional[Inclusion]:
        for inclusion in self._storage.values():
            if inclusion.name.lower() == name.lower():
                return _copy(inclusion)
        return None

    async def find_all(self, query: NameQuery) -> List[Inclusion]:
        inclusions = [i for i in self._storage.values() if matches_text(i.name, query.search)]
        inclusions.sort(key=lambda i: i.name)
        return [_copy(i) for i in _page(inclusions, query)]

    async def update(self, inclusion: Inclusion) -> Inclusion:
        if inclusion.inclusion_id not in self._storage:
            raise NotFoundError("Inclusion not found")
        return await self.save(inclusion)

    async def delete(self, inclusion_id: UUID) -> bool:
        if inclusion_id in self._storage:
            del self._storage[inclusion_id]
            return True
        return False


class InMemoryPriceRangeRepository(_SnapshotStore, PriceRangeRepository):
    """In-memory implementation of PriceRangeRepository

    Writes enforce the same exclusion constraint a database would: no two
    stored bands may share a party size.
    """

    async def save(self, price_range: PriceRange) -> PriceRange:
        existing = await self.find_by_name(price_range.name)
        if existing and existing.price_range_id != price_range.price_range_id:
            raise ConflictError("A price range with this name already exists")

        conflicts = find_overlapping(
            price_range.people_range, self._storage.values(), exclude_id=price_range.price_range_id
        )
        if conflicts:
            logger.warning("Rejected price range %s (%s): overlaps %s",
                           price_range.name, price_range.people_range.describe(),
                           ", ".join(c.name for c in conflicts))
            raise ConflictError("This price range overlaps with an existing range")

        self._storage[price_range.price_range_id] = _copy(price_range)
        return _copy(price_range)

    async def find_by_id(self, price_range_id: UUID) -> Optional[PriceRange]:
        price_range = self._storage.get(price_range_id)
        return _copy(price_range) if price_range else None

    async def find_by_ids(self, price_range_ids: List[UUID]) -> List[PriceRange]:
        return [_copy(self._storage[i]) for i in dict.fromkeys(price_range_ids) if i in self._storage]

    async def find_by_name(self, name: str) -> Optional[PriceRange]:
        for price_range in self._storage.values():
            if price_range.name.lower() == name.lower():
                return _copy(price_range)
        return None

    async def find_all(self, query: NameQuery) -> List[PriceRange]:
        ranges = [r for r in self._storage.values() if matches_text(r.name, query.search)]
        ranges.sort(key=lambda r: (r.min_people, r.name))
        return [_copy(r) for r in _page(ranges, query)]

    async def list_ranges(self) -> List[PriceRange]:
        return [_copy(r) for r in sorted(self._storage.values(), key=lambda r: r.min_people)]

    async def update(self, price_range: PriceRange) -> PriceRange:
        if price_range.price_range_id not in self._storage:
            raise NotFoundError("Price range not found")
        return await self.save(price_range)

    async def delete(self, price_range_id: UUID) -> bool:
        if price_range_id in self._storage:
            del self._storage[price_range_id]
            return True
        return False


class InMemoryTourRepository(_SnapshotStore, TourRepository):
    """In-memory implementation of TourRepository"""

    def __init__(self):
        super().__init__()
        self._inclusions: Set[Tuple[UUID, UUID]] = set()

    def _snapshot(self):
        return copy.deepcopy(self._storage), set(self._inclusions)

    def _restore(self, snapshot) -> None:
        self._storage, self._inclusions = snapshot

    async def save(self, tour: Tour) -> Tour:
        self._storage[tour.tour_id] = _copy(tour)
        return _copy(tour)

    async def find_by_id(self, tour_id: UUID) -> Optional[Tour]:
        tour = self._storage.get(tour_id)
        return _copy(tour) if tour else None

    async def find_all(self, query: TourQuery) -> List[Tour]:
        tours = list(self._storage.values())
        if query.category_id is not None:
            tours = [t for t in tours if t.category_id == query.category_id]
        if query.is_active is not None:
            tours = [t for t in tours if t.is_active == query.is_active]
        if query.search:
            tours = [
                t for t in tours
                if matches_text(t.name, query.search) or matches_text(t.description, query.search)
            ]
        if query.min_duration is not None:
            tours = [t for t in tours if t.duration_minutes >= query.min_duration]
        if query.max_duration is not None:
            tours = [t for t in tours if t.duration_minutes <= query.max_duration]
        if query.inclusion_ids:
            wanted = set(query.inclusion_ids)
            tours = [
                t for t in tours
                if any((t.tour_id, inclusion_id) in self._inclusions for inclusion_id in wanted)
            ]
        if query.tour_ids is not None:
            allowed = set(query.tour_ids)
            tours = [t for t in tours if t.tour_id in allowed]
        tours.sort(key=lambda t: t.name)
        return [_copy(t) for t in _page(tours, query)]

    async def update(self, tour: Tour) -> Tour:
        if tour.tour_id not in self._storage:
            raise NotFoundError("Tour not found")
        return await self.save(tour)

    async def delete(self, tour_id: UUID) -> bool:
        if tour_id in self._storage:
            del self._storage[tour_id]
            await self.remove_inclusions(tour_id)
            return True
        return False

    async def count_by_category(self, category_id: UUID) -> int:
        return sum(1 for t in self._storage.values() if t.category_id == category_id)

    async def add_inclusions(self, tour_id: UUID, inclusion_ids: List[UUID]) -> None:
        for inclusion_id in inclusion_ids:
            self._inclusions.add((tour_id, inclusion_id))

    async def remove_inclusions(self, tour_id: UUID) -> None:
        self._inclusions = {link for link in self._inclusions if link[0] != tour_id}

    async def find_inclusion_ids(self, tour_id: UUID) -> List[UUID]:
        return [inclusion_id for t_id, inclusion_id in self._inclusions if t_id == tour_id]

    async def count_by_inclusion(self, inclusion_id: UUID) -> int:
        return sum(1 for _, i_id in self._inclusions if i_id == inclusion_id)


class InMemoryTourPriceRepository(_SnapshotStore, TourPriceRepository):
    """In-memory implementation of TourPriceRepository"""

    async def add_prices(self, prices: List[TourPrice]) -> List[TourPrice]:
        stored = []
        for price in prices:
            duplicate = any(
                p.tour_id == price.tour_id and p.price_range_id == price.price_range_id
                for p in self._storage.values()
            )
            if duplicate:
                continue
            self._storage[price.tour_price_id] = _copy(price)
            stored.append(_copy(price))
        return stored

    async def find_by_tour(self, tour_id: UUID) -> List[TourPrice]:
        return [_copy(p) for p in self._storage.values() if p.tour_id == tour_id]

    async def delete_by_tour(self, tour_id: UUID) -> int:
        doomed = [k for k, p in self._storage.items() if p.tour_id == tour_id]
        for key in doomed:
            del self._storage[key]
        return len(doomed)

    async def count_by_price_range(self, price_range_id: UUID) -> int:
        return sum(1 for p in self._storage.values() if p.price_range_id == price_range_id)

    async def find_tour_ids(self, query: TourPriceQuery) -> List[UUID]:
        tour_ids = []
        for price in self._storage.values():
            if query.min_price is not None and price.price < query.min_price:
                continue
            if query.max_price is not None and price.price > query.max_price:
                continue
            if price.tour_id not in tour_ids:
                tour_ids.append(price.tour_id)
        return tour_ids


class InMemoryReservationRepository(_SnapshotStore, ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        self._storage[reservation.reservation_id] = _copy(reservation)
        return _copy(reservation)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        reservation = self._storage.get(reservation_id)
        return _copy(reservation) if reservation else None

    @staticmethod
    def _latest_first(reservations) -> List[Reservation]:
        return sorted(reservations, key=lambda r: (r.reservation_date, r.created_at), reverse=True)

    async def find_by_user_id(self, user_id: UUID) -> List[Reservation]:
        """Find reservations by user ID"""
        return [_copy(r) for r in self._latest_first(
            r for r in self._storage.values() if r.user_id == user_id
        )]

    async def find_by_guide_id(self, guide_id: UUID) -> List[Reservation]:
        """Find reservations by guide ID"""
        return [_copy(r) for r in self._latest_first(
            r for r in self._storage.values() if r.guide_id == guide_id
        )]

    def _filter(self, query: Optional[ReservationQuery]) -> List[Reservation]:
        reservations = list(self._storage.values())
        if query is None:
            return reservations
        if query.user_id is not None:
            reservations = [r for r in reservations if r.user_id == query.user_id]
        if query.tour_id is not None:
            reservations = [r for r in reservations if r.tour_id == query.tour_id]
        if query.guide_id is not None:
            reservations = [r for r in reservations if r.guide_id == query.guide_id]
        if query.status is not None:
            reservations = [r for r in reservations if r.status == query.status]
        if query.statuses is not None:
            reservations = [r for r in reservations if r.status in query.statuses]
        if query.payment_status is not None:
            reservations = [r for r in reservations if r.payment_status == query.payment_status]
        if query.from_date is not None:
            reservations = [r for r in reservations if r.reservation_date >= query.from_date]
        if query.to_date is not None:
            reservations = [r for r in reservations if r.reservation_date <= query.to_date]
        if query.search:
            tour_ids = set(query.search_tour_ids)
            user_ids = set(query.search_user_ids)
            reservations = [
                r for r in reservations
                if r.tour_id in tour_ids
                or r.user_id in user_ids
                or (r.notes is not None and matches_text(r.notes, query.search))
            ]
        return reservations

    async def find_all(self, query: ReservationQuery) -> List[Reservation]:
        """Find reservations matching the query"""
        reservations = self._latest_first(self._filter(query))
        return [_copy(r) for r in _page(reservations, query)]

    async def count(self, query: Optional[ReservationQuery] = None) -> int:
        return len(self._filter(query))

    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        if reservation.reservation_id not in self._storage:
            raise NotFoundError("Reservation not found")
        return await self.save(reservation)


class InMemoryUnitOfWork(UnitOfWork):
    """Snapshot-and-restore unit of work over in-memory stores.

    Rollback restores the whole store, so it offers no isolation from
    writes made by other requests while the unit is open.
    """

    def __init__(self, *stores: _SnapshotStore):
        self._stores = stores
        self._snapshots: Optional[list] = None

    async def begin(self) -> None:
        self._snapshots = [store._snapshot() for store in self._stores]

    async def commit(self) -> None:
        self._snapshots = None

    async def rollback(self) -> None:
        if self._snapshots is None:
            return
        logger.warning("Rolling back unit of work over %d stores", len(self._stores))
        for store, snapshot in zip(self._stores, self._snapshots):
            store._restore(snapshot)
        self._snapshots = None


class InMemoryRepositories:
    """Every in-memory repository behind one handle"""

    def __init__(self, users: Optional[List[UserInDB]] = None):
        self.users = InMemoryUserRepository(users)
        self.categories = InMemoryCategoryRepository()
        self.inclusions = InMemoryInclusionRepository()
        self.price_ranges = InMemoryPriceRangeRepository()
        self.tours = InMemoryTourRepository()
        self.tour_prices = InMemoryTourPriceRepository()
        self.reservations = InMemoryReservationRepository()

    def unit_of_work(self) -> InMemoryUnitOfWork:
        """Unit of work spanning the tour aggregate and its links"""
        return InMemoryUnitOfWork(self.tours, self.tour_prices)
