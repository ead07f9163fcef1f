"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Any, Generic, List, Optional, TypeVar

from domain.enums import Role, ReservationStatus, PaymentStatus

T = TypeVar("T")


# ============================================================================
# ENVELOPE
# ============================================================================

class ApiResponse(BaseModel, Generic[T]):
    """Every response body: success flag plus data, message or error"""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[Any] = None


class PageMeta(BaseModel):
    total: int
    limit: int
    offset: int


class PagedData(BaseModel, Generic[T]):
    items: List[T]
    pagination: PageMeta


# ============================================================================
# AUTH & USER SCHEMAS
# ============================================================================

class RegisterRequest(BaseModel):
    """Self-registration request DTO"""
    email: str
    password: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class CreateUserRequest(RegisterRequest):
    """Admin user creation DTO; any role"""
    role: Role = Role.CUSTOMER


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    email: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserProfileResponse(UserResponse):
    reservations_count: int


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================

class CategoryRequest(BaseModel):
    name: str


class CategoryResponse(BaseModel):
    category_id: UUID
    name: str
    tour_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class CreateInclusionRequest(BaseModel):
    name: str
    icon: Optional[str] = None


class UpdateInclusionRequest(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None


class InclusionResponse(BaseModel):
    inclusion_id: UUID
    name: str
    icon: Optional[str] = None
    usage_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class CreatePriceRangeRequest(BaseModel):
    """Create price range request DTO; max_people omitted means no upper bound"""
    name: str
    min_people: int
    max_people: Optional[int] = None


class UpdatePriceRangeRequest(BaseModel):
    name: Optional[str] = None
    min_people: Optional[int] = None
    max_people: Optional[int] = None


class PriceRangeResponse(BaseModel):
    price_range_id: UUID
    name: str
    min_people: int
    max_people: Optional[int] = None
    usage_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TourPriceRequest(BaseModel):
    price_range_id: UUID
    price: Decimal = Field(ge=0)


class CreateTourRequest(BaseModel):
    """Create tour request DTO"""
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    duration: str = Field(min_length=1)
    duration_minutes: int = Field(gt=0)
    category_id: UUID
    image: Optional[str] = None
    is_active: bool = True
    inclusion_ids: List[UUID] = []
    prices: List[TourPriceRequest] = []


class UpdateTourRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    category_id: Optional[UUID] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None


class ReplaceInclusionsRequest(BaseModel):
    inclusion_ids: List[UUID]


class ReplacePricesRequest(BaseModel):
    prices: List[TourPriceRequest]


class TourPriceResponse(BaseModel):
    tour_price_id: UUID
    price: Decimal
    price_range: PriceRangeResponse


class TourResponse(BaseModel):
    """Tour response DTO"""
    tour_id: UUID
    name: str
    description: str
    duration: str
    duration_minutes: int
    image: Optional[str] = None
    is_active: bool
    category_id: UUID
    created_at: datetime
    updated_at: datetime


class TourDetailResponse(TourResponse):
    category: Optional[CategoryResponse] = None
    inclusions: List[InclusionResponse] = []
    prices: List[TourPriceResponse] = []


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    tour_id: UUID
    reservation_date: date
    people_count: int = Field(ge=1)
    notes: Optional[str] = None


class UpdateReservationRequest(BaseModel):
    """Update reservation request DTO; omitted fields are left alone"""
    reservation_date: Optional[date] = None
    people_count: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: ReservationStatus


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus


class AssignGuideRequest(BaseModel):
    guide_id: UUID


class TourSummary(BaseModel):
    tour_id: UUID
    name: str
    duration: str
    image: Optional[str] = None


class UserSummary(BaseModel):
    user_id: UUID
    name: str
    email: str
    phone: Optional[str] = None


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    tour_id: UUID
    user_id: UUID
    guide_id: Optional[UUID] = None
    reservation_date: date
    people_count: int
    total_price: Decimal
    notes: Optional[str] = None
    status: ReservationStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    tour: Optional[TourSummary] = None
    user: Optional[UserSummary] = None
    guide: Optional[UserSummary] = None


# ============================================================================
# DASHBOARD SCHEMAS
# ============================================================================

class GuideDashboardResponse(BaseModel):
    upcoming: List[ReservationResponse]
    completed_count: int


class AdminDashboardResponse(BaseModel):
    total_users: int
    total_reservations: int
    pending_reservations: int
