"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Category, Inclusion, PriceRange, Tour, TourPrice, Reservation
from domain.queries import NameQuery, TourQuery, TourPriceQuery, UserQuery, ReservationQuery


class UserRepository(ABC):
    """Repository interface for User"""

    @abstractmethod
    async def save(self, user: UserInDB) -> UserInDB:
        """Save user"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        """Find user by email (case-insensitive)"""
        pass

    @abstractmethod
    async def find_all(self, query: UserQuery) -> List[UserInDB]:
        """Find users matching query, newest first"""
        pass

    @abstractmethod
    async def count(self, query: Optional[UserQuery] = None) -> int:
        """Count users matching query"""
        pass

    @abstractmethod
    async def update(self, user: UserInDB) -> UserInDB:
        """Update user"""
        pass


class CategoryRepository(ABC):
    """Repository interface for Category"""

    @abstractmethod
    async def save(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def find_by_id(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Category]:
        pass

    @abstractmethod
    async def find_all(self, query: NameQuery) -> List[Category]:
        """Find categories ordered by name"""
        pass

    @abstractmethod
    async def update(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def delete(self, category_id: UUID) -> bool:
        pass


class InclusionRepository(ABC):
    """Repository interface for Inclusion"""

    @abstractmethod
    async def save(self, inclusion: Inclusion) -> Inclusion:
        pass

    @abstractmethod
    async def find_by_id(self, inclusion_id: UUID) -> Optional[Inclusion]:
        pass

    @abstractmethod
    async def find_by_ids(self, inclusion_ids: List[UUID]) -> List[Inclusion]:
        """Find the inclusions that exist among the given ids"""
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Inclusion]:
        pass

    @abstractmethod
    async def find_all(self, query: NameQuery) -> List[Inclusion]:
        """Find inclusions ordered by name"""
        pass

    @abstractmethod
    async def update(self, inclusion: Inclusion) -> Inclusion:
        pass

    @abstractmethod
    async def delete(self, inclusion_id: UUID) -> bool:
        pass


class PriceRangeRepository(ABC):
    """Repository interface for PriceRange

    Implementations must refuse to store a range overlapping another one.
    """

    @abstractmethod
    async def save(self, price_range: PriceRange) -> PriceRange:
        pass

    @abstractmethod
    async def find_by_id(self, price_range_id: UUID) -> Optional[PriceRange]:
        pass

    @abstractmethod
    async def find_by_ids(self, price_range_ids: List[UUID]) -> List[PriceRange]:
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[PriceRange]:
        pass

    @abstractmethod
    async def find_all(self, query: NameQuery) -> List[PriceRange]:
        """Find price ranges ordered by min_people then name"""
        pass

    @abstractmethod
    async def list_ranges(self) -> List[PriceRange]:
        """Every stored range, unpaged; input for the overlap check"""
        pass

    @abstractmethod
    async def update(self, price_range: PriceRange) -> PriceRange:
        pass

    @abstractmethod
    async def delete(self, price_range_id: UUID) -> bool:
        pass


class TourRepository(ABC):
    """Repository interface for Tour Aggregate and its inclusion links"""

    @abstractmethod
    async def save(self, tour: Tour) -> Tour:
        pass

    @abstractmethod
    async def find_by_id(self, tour_id: UUID) -> Optional[Tour]:
        pass

    @abstractmethod
    async def find_all(self, query: TourQuery) -> List[Tour]:
        """Find tours matching query ordered by name"""
        pass

    @abstractmethod
    async def update(self, tour: Tour) -> Tour:
        pass

    @abstractmethod
    async def delete(self, tour_id: UUID) -> bool:
        pass

    @abstractmethod
    async def count_by_category(self, category_id: UUID) -> int:
        pass

    @abstractmethod
    async def add_inclusions(self, tour_id: UUID, inclusion_ids: List[UUID]) -> None:
        """Link inclusions to a tour, skipping links that already exist"""
        pass

    @abstractmethod
    async def remove_inclusions(self, tour_id: UUID) -> None:
        pass

    @abstractmethod
    async def find_inclusion_ids(self, tour_id: UUID) -> List[UUID]:
        pass

    @abstractmethod
    async def count_by_inclusion(self, inclusion_id: UUID) -> int:
        pass


class TourPriceRepository(ABC):
    """Repository interface for TourPrice"""

    @abstractmethod
    async def add_prices(self, prices: List[TourPrice]) -> List[TourPrice]:
        """Store prices, skipping a second price for the same tour and range"""
        pass

    @abstractmethod
    async def find_by_tour(self, tour_id: UUID) -> List[TourPrice]:
        pass

    @abstractmethod
    async def delete_by_tour(self, tour_id: UUID) -> int:
        pass

    @abstractmethod
    async def count_by_price_range(self, price_range_id: UUID) -> int:
        pass

    @abstractmethod
    async def find_tour_ids(self, query: TourPriceQuery) -> List[UUID]:
        """Tours having at least one price inside the bounds"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Reservation]:
        """Find reservations booked by a user, latest date first"""
        pass

    @abstractmethod
    async def find_by_guide_id(self, guide_id: UUID) -> List[Reservation]:
        """Find reservations assigned to a guide, latest date first"""
        pass

    @abstractmethod
    async def find_all(self, query: ReservationQuery) -> List[Reservation]:
        """Find reservations matching query, latest date first"""
        pass

    @abstractmethod
    async def count(self, query: Optional[ReservationQuery] = None) -> int:
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        pass


class UnitOfWork(ABC):
    """Groups repository writes that must succeed or fail together.

    Usage:
        async with uow:
            await tours.save(tour)
            await tour_prices.add_prices(prices)
        # commits on clean exit, rolls back when the block raises
    """

    async def __aenter__(self) -> "UnitOfWork":
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    @abstractmethod
    async def begin(self) -> None:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
