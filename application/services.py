"""Application Services - Reservation use cases"""
import logging
from uuid import UUID
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel

from domain.auth import Principal, UserInDB
from domain.entities import Reservation, Tour
from domain.enums import Role, ReservationStatus, PaymentStatus
from domain.errors import ForbiddenError, NotFoundError, StateError, UnexpectedError
from domain.pricing import resolve_price
from domain.queries import ReservationQuery, TourQuery, UserQuery, matches_text
from domain.repositories import (
    ReservationRepository, TourRepository, TourPriceRepository, PriceRangeRepository, UserRepository
)
from domain import lifecycle
from application.catalog import load_price_tiers

logger = logging.getLogger(__name__)


class ReservationDetail(BaseModel):
    """A reservation with the tour, customer and guide it refers to"""
    reservation: Reservation
    tour: Tour
    user: UserInDB
    guide: Optional[UserInDB] = None


class ReservationService:
    """Service for Reservation business use cases"""

    def __init__(self,
                 repository: ReservationRepository,
                 tour_repo: TourRepository,
                 tour_price_repo: TourPriceRepository,
                 price_range_repo: PriceRangeRepository,
                 user_repo: UserRepository):
        self.repository = repository
        self.tour_repo = tour_repo
        self.tour_price_repo = tour_price_repo
        self.price_range_repo = price_range_repo
        self.user_repo = user_repo

    async def _quote(self, tour_id: UUID, people_count: int):
        tiers = await load_price_tiers(tour_id, self.tour_price_repo, self.price_range_repo)
        return resolve_price(people_count, tiers)

    async def _get_or_raise(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    async def _get_owned(self, principal: Principal, reservation_id: UUID, action: str) -> Reservation:
        reservation = await self._get_or_raise(reservation_id)
        if not principal.can_act_on(reservation.user_id):
            raise ForbiddenError(f"You do not have permission to {action} this reservation")
        return reservation

    # ==================== COMMANDS ====================
    async def create_reservation(
        self,
        principal: Principal,
        tour_id: UUID,
        reservation_date: date,
        people_count: int,
        notes: Optional[str] = None
    ) -> Reservation:
        """Book a tour for the acting user, priced by the tier covering the party"""
        tour = await self.tour_repo.find_by_id(tour_id)
        if not tour:
            raise NotFoundError("Tour not found")
        if not tour.is_active:
            raise StateError("Tour is not available for booking")

        quote = await self._quote(tour_id, people_count)

        reservation = Reservation.create(
            tour_id=tour_id,
            user_id=principal.user_id,
            reservation_date=reservation_date,
            quote=quote,
            notes=notes
        )
        saved = await self.repository.save(reservation)
        logger.info("Reservation %s created for tour %s: %d people, total %s",
                    saved.reservation_id, tour_id, people_count, saved.total_price)
        return saved

    async def update_reservation(
        self,
        principal: Principal,
        reservation_id: UUID,
        reservation_date: Optional[date] = None,
        people_count: Optional[int] = None,
        notes: Optional[str] = None,
        notes_provided: bool = False
    ) -> Reservation:
        """Change a PENDING reservation; a new party size is priced again"""
        reservation = await self._get_owned(principal, reservation_id, "update")
        lifecycle.ensure_editable(reservation.status)

        quote = None
        if reservation.needs_repricing(people_count):
            quote = await self._quote(reservation.tour_id, people_count)

        reservation.update_details(
            reservation_date=reservation_date,
            notes=notes,
            quote=quote,
            notes_provided=notes_provided
        )
        return await self.repository.update(reservation)

    async def set_status(self, reservation_id: UUID, status: ReservationStatus) -> Reservation:
        reservation = await self._get_or_raise(reservation_id)
        previous = reservation.status
        reservation.set_status(status)
        logger.info("Reservation %s status %s -> %s", reservation_id, previous.value, status.value)
        return await self.repository.update(reservation)

    async def set_payment_status(self, reservation_id: UUID, payment_status: PaymentStatus) -> Reservation:
        reservation = await self._get_or_raise(reservation_id)
        reservation.set_payment_status(payment_status)
        logger.info("Reservation %s payment status -> %s", reservation_id, payment_status.value)
        return await self.repository.update(reservation)

    async def assign_guide(self, reservation_id: UUID, guide_id: UUID) -> Reservation:
        reservation = await self._get_or_raise(reservation_id)
        guide = await self.user_repo.find_by_id(guide_id)
        if not guide or not guide.is_guide() or not guide.is_active:
            raise NotFoundError("Guide not found or not active")
        reservation.assign_guide(guide_id)
        logger.info("Guide %s assigned to reservation %s", guide_id, reservation_id)
        return await self.repository.update(reservation)

    async def cancel_reservation(self, principal: Principal, reservation_id: UUID) -> Reservation:
        reservation = await self._get_owned(principal, reservation_id, "cancel")
        reservation.cancel()
        logger.info("Reservation %s cancelled by %s", reservation_id, principal.user_id)
        return await self.repository.update(reservation)

    # ==================== QUERIES ====================
    async def get_reservation(self, principal: Principal, reservation_id: UUID) -> Reservation:
        """Readable by admins, guides and the booking owner"""
        reservation = await self._get_or_raise(reservation_id)
        if principal.role not in (Role.ADMIN, Role.GUIDE) and principal.user_id != reservation.user_id:
            raise ForbiddenError("You do not have permission to view this reservation")
        return reservation

    async def _resolve_search(self, query: ReservationQuery) -> ReservationQuery:
        """Expand the free-text search into the tours and users it names"""
        if not query.search:
            return query
        tours = await self.tour_repo.find_all(TourQuery(search=query.search, limit=100))
        users = await self.user_repo.find_all(UserQuery(search=query.search, limit=100))
        return query.model_copy(update={
            "search_tour_ids": [t.tour_id for t in tours if matches_text(t.name, query.search)],
            "search_user_ids": [u.user_id for u in users if matches_text(u.name, query.search)],
        })

    async def list_reservations(self, query: ReservationQuery) -> List[Reservation]:
        return await self.repository.find_all(await self._resolve_search(query))

    async def count_reservations(self, query: ReservationQuery) -> int:
        return await self.repository.count(await self._resolve_search(query))

    async def get_user_reservations(self, user_id: UUID) -> List[Reservation]:
        return await self.repository.find_by_user_id(user_id)

    async def get_guide_reservations(self, guide_id: UUID) -> List[Reservation]:
        return await self.repository.find_by_guide_id(guide_id)

    async def describe(self, reservation: Reservation) -> ReservationDetail:
        return (await self.describe_all([reservation]))[0]

    async def describe_all(self, reservations: List[Reservation]) -> List[ReservationDetail]:
        """Attach tour, customer and guide records, loading each id once"""
        tours: Dict[UUID, Optional[Tour]] = {}
        users: Dict[UUID, Optional[UserInDB]] = {}
        details = []
        for reservation in reservations:
            if reservation.tour_id not in tours:
                tours[reservation.tour_id] = await self.tour_repo.find_by_id(reservation.tour_id)
            for user_id in (reservation.user_id, reservation.guide_id):
                if user_id is not None and user_id not in users:
                    users[user_id] = await self.user_repo.find_by_id(user_id)
            tour = tours[reservation.tour_id]
            user = users[reservation.user_id]
            if tour is None or user is None:
                raise UnexpectedError(f"Reservation {reservation.reservation_id} refers to a missing tour or user")
            details.append(ReservationDetail(
                reservation=reservation,
                tour=tour,
                user=user,
                guide=users[reservation.guide_id] if reservation.guide_id else None
            ))
        return details
