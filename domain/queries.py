"""Domain Query Objects - filter predicates handed to repositories"""
from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import Role, ReservationStatus, PaymentStatus


class Page(BaseModel):
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class NameQuery(Page):
    """Case-insensitive substring search on name (categories, inclusions, price ranges)"""
    search: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=100)


class TourQuery(Page):
    category_id: Optional[UUID] = None
    search: Optional[str] = None
    is_active: Optional[bool] = None
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    inclusion_ids: List[UUID] = []
    # Restricts results to these tours; resolved from the price filter
    tour_ids: Optional[List[UUID]] = None


class TourPriceQuery(BaseModel):
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class UserQuery(Page):
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    search: Optional[str] = None


class ReservationQuery(Page):
    user_id: Optional[UUID] = None
    tour_id: Optional[UUID] = None
    guide_id: Optional[UUID] = None
    status: Optional[ReservationStatus] = None
    statuses: Optional[List[ReservationStatus]] = None
    payment_status: Optional[PaymentStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    # search matches notes directly, or any of the pre-resolved tour/user ids
    search: Optional[str] = None
    search_tour_ids: List[UUID] = []
    search_user_ids: List[UUID] = []


def matches_text(value: Optional[str], search: Optional[str]) -> bool:
    """Case-insensitive substring match"""
    if not search:
        return True
    return value is not None and search.lower() in value.lower()
