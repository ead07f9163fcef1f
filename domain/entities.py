"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional, Dict, Any
from decimal import Decimal

from domain.enums import ReservationStatus, PaymentStatus
from domain.errors import ValidationError
from domain.value_objects import PeopleRange, PriceQuote
from domain import lifecycle
from domain.pricing import validate_range_bounds


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_name(name: Optional[str], label: str) -> str:
    if name is None or not name.strip():
        raise ValidationError(f"{label} name is required")
    return name.strip()


class Category(BaseModel):
    """Category Entity"""
    category_id: UUID = Field(default_factory=uuid4)
    name: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def create(name: str) -> "Category":
        return Category(name=_require_name(name, "Category"))

    def rename(self, name: str) -> None:
        self.name = _require_name(name, "Category")
        self.updated_at = _utcnow()


class Inclusion(BaseModel):
    """Inclusion Entity - something a tour provides (meals, transport...)"""
    inclusion_id: UUID = Field(default_factory=uuid4)
    name: str
    icon: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def create(name: str, icon: Optional[str] = None) -> "Inclusion":
        return Inclusion(name=_require_name(name, "Inclusion"), icon=icon)

    def apply_changes(self, changes: Dict[str, Any]) -> None:
        if "name" in changes:
            self.name = _require_name(changes["name"], "Inclusion")
        if "icon" in changes:
            self.icon = changes["icon"]
        self.updated_at = _utcnow()


class PriceRange(BaseModel):
    """PriceRange Entity - a party-size band tours attach prices to"""
    price_range_id: UUID = Field(default_factory=uuid4)
    name: str
    min_people: int = Field(ge=1)
    max_people: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def create(name: str, min_people: int, max_people: Optional[int] = None) -> "PriceRange":
        """Create new price range with bound validation"""
        validate_range_bounds(min_people, max_people)
        return PriceRange(
            name=_require_name(name, "Price range"),
            min_people=min_people,
            max_people=max_people
        )

    @property
    def people_range(self) -> PeopleRange:
        return PeopleRange(min_people=self.min_people, max_people=self.max_people)

    def merged_range(self, changes: Dict[str, Any]) -> PeopleRange:
        """Band this range would cover after applying a partial update"""
        min_people = changes.get("min_people", self.min_people)
        max_people = changes["max_people"] if "max_people" in changes else self.max_people
        return validate_range_bounds(min_people, max_people)

    def apply_changes(self, changes: Dict[str, Any]) -> None:
        band = self.merged_range(changes)
        if "name" in changes:
            self.name = _require_name(changes["name"], "Price range")
        self.min_people = band.min_people
        self.max_people = band.max_people
        self.updated_at = _utcnow()


class TourPrice(BaseModel):
    """Child entity joining a tour to a price range with a unit price"""
    tour_price_id: UUID = Field(default_factory=uuid4)
    tour_id: UUID
    price_range_id: UUID
    price: Decimal = Field(ge=0)

    class Config:
        from_attributes = True


class Tour(BaseModel):
    """Tour Aggregate Root Entity"""
    tour_id: UUID = Field(default_factory=uuid4)
    name: str
    description: str
    duration: str
    duration_minutes: int = Field(gt=0)
    image: Optional[str] = None
    is_active: bool = True
    category_id: UUID
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    def apply_changes(self, changes: Dict[str, Any]) -> None:
        for field_name in ("name", "description", "duration"):
            if field_name in changes and not (changes[field_name] or "").strip():
                raise ValidationError(f"Tour {field_name} cannot be empty")
        if "duration_minutes" in changes and (changes["duration_minutes"] or 0) <= 0:
            raise ValidationError("Tour duration_minutes must be positive")
        for field_name, value in changes.items():
            setattr(self, field_name, value)
        self.updated_at = _utcnow()

    def toggle_status(self) -> None:
        self.is_active = not self.is_active
        self.updated_at = _utcnow()


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # References to other aggregates
    tour_id: UUID
    user_id: UUID
    guide_id: Optional[UUID] = None

    # Booking details
    reservation_date: date
    people_count: int = Field(ge=1)
    total_price: Decimal = Field(ge=0)
    notes: Optional[str] = None

    # Enums/Status
    status: ReservationStatus = lifecycle.INITIAL_STATUS
    payment_status: PaymentStatus = lifecycle.INITIAL_PAYMENT_STATUS

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        tour_id: UUID,
        user_id: UUID,
        reservation_date: date,
        quote: PriceQuote,
        notes: Optional[str] = None
    ) -> "Reservation":
        """Create a PENDING reservation priced by a resolved quote"""
        return Reservation(
            tour_id=tour_id,
            user_id=user_id,
            reservation_date=reservation_date,
            people_count=quote.people_count,
            total_price=quote.total_price.amount,
            notes=notes,
            status=lifecycle.INITIAL_STATUS,
            payment_status=lifecycle.INITIAL_PAYMENT_STATUS
        )

    # ==================== MODIFICATION METHODS ====================
    def needs_repricing(self, people_count: Optional[int]) -> bool:
        """A new party size means the tier has to be resolved again"""
        return people_count is not None and people_count != self.people_count

    def update_details(
        self,
        reservation_date: Optional[date] = None,
        notes: Optional[str] = None,
        quote: Optional[PriceQuote] = None,
        notes_provided: bool = False
    ) -> None:
        """Change date, notes or party size while the reservation is PENDING"""
        lifecycle.ensure_editable(self.status)

        if reservation_date is not None:
            self.reservation_date = reservation_date

        if notes_provided:
            self.notes = notes

        if quote is not None:
            self.people_count = quote.people_count
            self.total_price = quote.total_price.amount

        self.updated_at = _utcnow()

    # ==================== STATE TRANSITION METHODS ====================
    def set_status(self, status: ReservationStatus) -> None:
        """Admin status change; any value of the enum is accepted"""
        lifecycle.check_status_change(self.status, status)
        self.status = status
        self.updated_at = _utcnow()

    def set_payment_status(self, payment_status: PaymentStatus) -> None:
        self.payment_status = payment_status
        self.updated_at = _utcnow()

    def assign_guide(self, guide_id: UUID) -> None:
        self.guide_id = guide_id
        self.updated_at = _utcnow()

    def cancel(self) -> None:
        """Cancel reservation; payment is cancelled with it"""
        lifecycle.ensure_cancellable(self.status)
        self.status = ReservationStatus.CANCELLED
        self.payment_status = PaymentStatus.CANCELLED
        self.updated_at = _utcnow()

    # ==================== QUERY METHODS ====================
    def is_modifiable(self) -> bool:
        return lifecycle.is_editable(self.status)

    def is_cancellable(self) -> bool:
        return lifecycle.is_cancellable(self.status)

    def is_upcoming(self, today: date) -> bool:
        return (
            self.reservation_date >= today
            and self.status in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
        )
