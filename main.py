import logging
import time
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.schemas import (
    ApiResponse, PagedData, PageMeta,
    # Auth & users
    RegisterRequest, LoginRequest, ChangePasswordRequest, CreateUserRequest, UpdateProfileRequest,
    Token, UserResponse, UserProfileResponse, AuthResponse,
    GuideDashboardResponse, AdminDashboardResponse,
    # Catalog
    CategoryRequest, CategoryResponse, CreateInclusionRequest, UpdateInclusionRequest, InclusionResponse,
    CreatePriceRangeRequest, UpdatePriceRangeRequest, PriceRangeResponse,
    CreateTourRequest, UpdateTourRequest, ReplaceInclusionsRequest, ReplacePricesRequest,
    TourResponse, TourDetailResponse, TourPriceResponse,
    # Reservations
    CreateReservationRequest, UpdateReservationRequest, UpdateStatusRequest,
    UpdatePaymentStatusRequest, AssignGuideRequest, ReservationResponse, TourSummary, UserSummary
)
from api.dependencies import (
    get_current_user, require_admin, require_guide, require_guide_only,
    get_auth_service, get_user_service, get_category_service, get_inclusion_service,
    get_price_range_service, get_tour_service, get_reservation_service
)
from application.catalog import (
    CategoryService, InclusionService, PriceRangeService, TourService, TourDetail
)
from application.services import ReservationService, ReservationDetail
from application.users import AuthService, UserService, issue_token
from domain.auth import Principal
from domain.enums import Role, ReservationStatus, PaymentStatus
from domain.errors import DomainError
from domain.queries import NameQuery, TourQuery, UserQuery, ReservationQuery
from infrastructure import config
from infrastructure.logging_config import configure_logging

configure_logging()
logger = logging.getLogger("tour_booking")

app = FastAPI(
    title="Tour Booking API",
    description="Tour catalog, tiered pricing and reservations with Domain-Driven Design",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in config.CORS_ORIGIN.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# MIDDLEWARE & EXCEPTION HANDLERS
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.debug("%s %s -> %d (%.1f ms)", request.method, request.url.path,
                 response.status_code, (time.perf_counter() - started) * 1000)
    return response


def _error_response(status_code: int, message: str, error=None, headers=None) -> JSONResponse:
    body = ApiResponse(success=False, message=message, error=error)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
        headers=headers
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        if config.IS_PRODUCTION:
            return _error_response(exc.status_code, "Something went wrong")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(400, "Validation error", error=jsonable_encoder(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if config.IS_PRODUCTION:
        return _error_response(500, "Something went wrong")
    return _error_response(500, str(exc), error={"type": type(exc).__name__})


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running", "environment": config.ENVIRONMENT}


# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/api/auth/register", response_model=ApiResponse[AuthResponse], status_code=201, tags=["Auth"])
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Register a customer account"""
    user = await service.register(
        email=request.email,
        password=request.password,
        name=request.name,
        phone=request.phone,
        address=request.address
    )
    return ApiResponse(
        data=AuthResponse(user=_user_to_response(user), token=issue_token(user)),
        message="User registered successfully"
    )


@app.post("/api/auth/login", response_model=ApiResponse[AuthResponse], tags=["Auth"])
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    user, token = await service.login(request.email, request.password)
    return ApiResponse(data=AuthResponse(user=_user_to_response(user), token=token), message="Login successful")


@app.post("/api/auth/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service)
):
    """OAuth2 password flow; the username field carries the email"""
    _, token = await service.login(form_data.username, form_data.password)
    return {"access_token": token, "token_type": "bearer"}


@app.get("/api/auth/me", response_model=ApiResponse[UserResponse], tags=["Auth"])
async def read_users_me(
    principal: Principal = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return ApiResponse(data=_user_to_response(await service.get_user(principal.user_id)))


@app.post("/api/auth/change-password", response_model=ApiResponse, tags=["Auth"])
async def change_password(
    request: ChangePasswordRequest,
    principal: Principal = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    await service.change_password(principal, request.current_password, request.new_password)
    return ApiResponse(message="Password changed successfully")


@app.post("/api/auth/logout", response_model=ApiResponse, tags=["Auth"])
async def logout(principal: Principal = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy"""
    return ApiResponse(message="Logged out successfully")


# ============================================================================
# USER ENDPOINTS
# ============================================================================

@app.get("/api/users/profile", response_model=ApiResponse[UserProfileResponse], tags=["Users"])
async def get_profile(
    principal: Principal = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    profile = await service.get_profile(principal.user_id)
    return ApiResponse(data=UserProfileResponse(
        **_user_to_response(profile.user).model_dump(),
        reservations_count=profile.reservations_count
    ))


@app.put("/api/users/profile", response_model=ApiResponse[UserResponse], tags=["Users"])
async def update_profile(
    request: UpdateProfileRequest,
    principal: Principal = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    user = await service.update_profile(principal.user_id, request.model_dump(exclude_unset=True))
    return ApiResponse(data=_user_to_response(user), message="Profile updated successfully")


@app.put("/api/users/change-password", response_model=ApiResponse, tags=["Users"])
async def change_own_password(
    request: ChangePasswordRequest,
    principal: Principal = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    await service.change_password(principal, request.current_password, request.new_password)
    return ApiResponse(message="Password changed successfully")


@app.get("/api/users/reservations", response_model=ApiResponse[List[ReservationResponse]], tags=["Users"])
async def get_own_reservations(
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    reservations = await service.get_user_reservations(principal.user_id)
    return ApiResponse(data=[_reservation_to_response(d) for d in await service.describe_all(reservations)])


@app.get("/api/users/guide-dashboard", response_model=ApiResponse[GuideDashboardResponse], tags=["Users"])
async def guide_dashboard(
    principal: Principal = Depends(require_guide),
    service: UserService = Depends(get_user_service),
    reservation_service: ReservationService = Depends(get_reservation_service)
):
    dashboard = await service.guide_dashboard(principal.user_id)
    upcoming = await reservation_service.describe_all(dashboard.upcoming)
    return ApiResponse(data=GuideDashboardResponse(
        upcoming=[_reservation_to_response(d) for d in upcoming],
        completed_count=dashboard.completed_count
    ))


@app.get("/api/users/guide-tours", response_model=ApiResponse[List[ReservationResponse]], tags=["Users"])
async def get_guide_tours(
    principal: Principal = Depends(require_guide_only),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reservations assigned to the calling guide"""
    reservations = await service.get_guide_reservations(principal.user_id)
    return ApiResponse(data=[_reservation_to_response(d) for d in await service.describe_all(reservations)])


@app.get("/api/users/admin-dashboard", response_model=ApiResponse[AdminDashboardResponse], tags=["Users"])
async def admin_dashboard(
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    dashboard = await service.admin_dashboard()
    return ApiResponse(data=AdminDashboardResponse(**dashboard.model_dump()))


@app.get("/api/users", response_model=ApiResponse[PagedData[UserResponse]], tags=["Users"])
async def list_users(
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    query = UserQuery(role=role, is_active=is_active, search=search, limit=limit, offset=offset)
    users = await service.list_users(query)
    total = await service.count_users(query)
    return ApiResponse(data=PagedData(
        items=[_user_to_response(u) for u in users],
        pagination=PageMeta(total=total, limit=limit, offset=offset)
    ))


@app.post("/api/users", response_model=ApiResponse[UserResponse], status_code=201, tags=["Users"])
async def create_user(
    request: CreateUserRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    user = await service.create_user(
        email=request.email,
        password=request.password,
        name=request.name,
        role=request.role,
        phone=request.phone,
        address=request.address
    )
    return ApiResponse(data=_user_to_response(user), message="User created successfully")


@app.get("/api/users/{user_id}", response_model=ApiResponse[UserResponse], tags=["Users"])
async def get_user(
    user_id: UUID,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    return ApiResponse(data=_user_to_response(await service.get_user(user_id)))


@app.put("/api/users/{user_id}/toggle-status", response_model=ApiResponse[UserResponse], tags=["Users"])
async def toggle_user_status(
    user_id: UUID,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    user = await service.toggle_user_status(user_id)
    state = "activated" if user.is_active else "deactivated"
    return ApiResponse(data=_user_to_response(user), message=f"User {state} successfully")


# ============================================================================
# CATEGORY ENDPOINTS
# ============================================================================

@app.get("/api/categories", response_model=ApiResponse[List[CategoryResponse]], tags=["Categories"])
async def list_categories(
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: CategoryService = Depends(get_category_service)
):
    categories = await service.list_categories(NameQuery(search=search, limit=limit, offset=offset))
    return ApiResponse(data=[_category_to_response(c) for c in categories])


@app.get("/api/categories/{category_id}", response_model=ApiResponse[CategoryResponse], tags=["Categories"])
async def get_category(category_id: UUID, service: CategoryService = Depends(get_category_service)):
    detail = await service.get_category(category_id)
    return ApiResponse(data=_category_to_response(detail.category, detail.tour_count))


@app.post("/api/categories", response_model=ApiResponse[CategoryResponse], status_code=201, tags=["Categories"])
async def create_category(
    request: CategoryRequest,
    principal: Principal = Depends(require_admin),
    service: CategoryService = Depends(get_category_service)
):
    category = await service.create_category(request.name)
    return ApiResponse(data=_category_to_response(category), message="Category created successfully")


@app.put("/api/categories/{category_id}", response_model=ApiResponse[CategoryResponse], tags=["Categories"])
async def update_category(
    category_id: UUID,
    request: CategoryRequest,
    principal: Principal = Depends(require_admin),
    service: CategoryService = Depends(get_category_service)
):
    category = await service.update_category(category_id, request.name)
    return ApiResponse(data=_category_to_response(category), message="Category updated successfully")


@app.delete("/api/categories/{category_id}", response_model=ApiResponse, tags=["Categories"])
async def delete_category(
    category_id: UUID,
    principal: Principal = Depends(require_admin),
    service: CategoryService = Depends(get_category_service)
):
    await service.delete_category(category_id)
    return ApiResponse(message="Category deleted successfully")


# ============================================================================
# INCLUSION ENDPOINTS
# ============================================================================

@app.get("/api/inclusions", response_model=ApiResponse[List[InclusionResponse]], tags=["Inclusions"])
async def list_inclusions(
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: InclusionService = Depends(get_inclusion_service)
):
    inclusions = await service.list_inclusions(NameQuery(search=search, limit=limit, offset=offset))
    return ApiResponse(data=[_inclusion_to_response(i) for i in inclusions])


@app.get("/api/inclusions/{inclusion_id}", response_model=ApiResponse[InclusionResponse], tags=["Inclusions"])
async def get_inclusion(inclusion_id: UUID, service: InclusionService = Depends(get_inclusion_service)):
    detail = await service.get_inclusion(inclusion_id)
    return ApiResponse(data=_inclusion_to_response(detail.inclusion, detail.usage_count))


@app.post("/api/inclusions", response_model=ApiResponse[InclusionResponse], status_code=201, tags=["Inclusions"])
async def create_inclusion(
    request: CreateInclusionRequest,
    principal: Principal = Depends(require_admin),
    service: InclusionService = Depends(get_inclusion_service)
):
    inclusion = await service.create_inclusion(request.name, request.icon)
    return ApiResponse(data=_inclusion_to_response(inclusion), message="Inclusion created successfully")


@app.put("/api/inclusions/{inclusion_id}", response_model=ApiResponse[InclusionResponse], tags=["Inclusions"])
async def update_inclusion(
    inclusion_id: UUID,
    request: UpdateInclusionRequest,
    principal: Principal = Depends(require_admin),
    service: InclusionService = Depends(get_inclusion_service)
):
    inclusion = await service.update_inclusion(inclusion_id, request.model_dump(exclude_unset=True))
    return ApiResponse(data=_inclusion_to_response(inclusion), message="Inclusion updated successfully")


@app.delete("/api/inclusions/{inclusion_id}", response_model=ApiResponse, tags=["Inclusions"])
async def delete_inclusion(
    inclusion_id: UUID,
    principal: Principal = Depends(require_admin),
    service: InclusionService = Depends(get_inclusion_service)
):
    await service.delete_inclusion(inclusion_id)
    return ApiResponse(message="Inclusion deleted successfully")


# ============================================================================
# PRICE RANGE ENDPOINTS
# ============================================================================

@app.get("/api/price-ranges", response_model=ApiResponse[List[PriceRangeResponse]], tags=["Price Ranges"])
async def list_price_ranges(
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: PriceRangeService = Depends(get_price_range_service)
):
    ranges = await service.list_price_ranges(NameQuery(search=search, limit=limit, offset=offset))
    return ApiResponse(data=[_price_range_to_response(r) for r in ranges])


@app.get("/api/price-ranges/{price_range_id}", response_model=ApiResponse[PriceRangeResponse], tags=["Price Ranges"])
async def get_price_range(price_range_id: UUID, service: PriceRangeService = Depends(get_price_range_service)):
    detail = await service.get_price_range(price_range_id)
    return ApiResponse(data=_price_range_to_response(detail.price_range, detail.usage_count))


@app.post("/api/price-ranges", response_model=ApiResponse[PriceRangeResponse], status_code=201, tags=["Price Ranges"])
async def create_price_range(
    request: CreatePriceRangeRequest,
    principal: Principal = Depends(require_admin),
    service: PriceRangeService = Depends(get_price_range_service)
):
    price_range = await service.create_price_range(request.name, request.min_people, request.max_people)
    return ApiResponse(data=_price_range_to_response(price_range), message="Price range created successfully")


@app.put("/api/price-ranges/{price_range_id}", response_model=ApiResponse[PriceRangeResponse], tags=["Price Ranges"])
async def update_price_range(
    price_range_id: UUID,
    request: UpdatePriceRangeRequest,
    principal: Principal = Depends(require_admin),
    service: PriceRangeService = Depends(get_price_range_service)
):
    price_range = await service.update_price_range(price_range_id, request.model_dump(exclude_unset=True))
    return ApiResponse(data=_price_range_to_response(price_range), message="Price range updated successfully")


@app.delete("/api/price-ranges/{price_range_id}", response_model=ApiResponse, tags=["Price Ranges"])
async def delete_price_range(
    price_range_id: UUID,
    principal: Principal = Depends(require_admin),
    service: PriceRangeService = Depends(get_price_range_service)
):
    await service.delete_price_range(price_range_id)
    return ApiResponse(message="Price range deleted successfully")


# ============================================================================
# TOUR ENDPOINTS
# ============================================================================

@app.get("/api/tours", response_model=ApiResponse[List[TourResponse]], tags=["Tours"])
async def list_tours(
    category_id: Optional[UUID] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    min_duration: Optional[int] = Query(None, ge=0),
    max_duration: Optional[int] = Query(None, ge=0),
    inclusion_ids: List[UUID] = Query([]),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: TourService = Depends(get_tour_service)
):
    query = TourQuery(
        category_id=category_id,
        search=search,
        is_active=is_active,
        min_duration=min_duration,
        max_duration=max_duration,
        inclusion_ids=inclusion_ids,
        limit=limit,
        offset=offset
    )
    tours = await service.list_tours(query, min_price=min_price, max_price=max_price)
    return ApiResponse(data=[_tour_to_response(t) for t in tours])


@app.get("/api/tours/category/{category_id}", response_model=ApiResponse[List[TourResponse]], tags=["Tours"])
async def list_category_tours(category_id: UUID, service: TourService = Depends(get_tour_service)):
    """Active tours of a category"""
    tours = await service.list_category_tours(category_id)
    return ApiResponse(data=[_tour_to_response(t) for t in tours])


@app.get("/api/tours/{tour_id}", response_model=ApiResponse[TourDetailResponse], tags=["Tours"])
async def get_tour(tour_id: UUID, service: TourService = Depends(get_tour_service)):
    return ApiResponse(data=_tour_detail_to_response(await service.get_tour(tour_id)))


@app.post("/api/tours", response_model=ApiResponse[TourDetailResponse], status_code=201, tags=["Tours"])
async def create_tour(
    request: CreateTourRequest,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    detail = await service.create_tour(
        name=request.name,
        description=request.description,
        duration=request.duration,
        duration_minutes=request.duration_minutes,
        category_id=request.category_id,
        image=request.image,
        is_active=request.is_active,
        inclusion_ids=request.inclusion_ids,
        prices=[p.model_dump() for p in request.prices]
    )
    return ApiResponse(data=_tour_detail_to_response(detail), message="Tour created successfully")


@app.put("/api/tours/{tour_id}", response_model=ApiResponse[TourResponse], tags=["Tours"])
async def update_tour(
    tour_id: UUID,
    request: UpdateTourRequest,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    tour = await service.update_tour(tour_id, request.model_dump(exclude_unset=True))
    return ApiResponse(data=_tour_to_response(tour), message="Tour updated successfully")


@app.put("/api/tours/{tour_id}/inclusions", response_model=ApiResponse[TourDetailResponse], tags=["Tours"])
async def replace_tour_inclusions(
    tour_id: UUID,
    request: ReplaceInclusionsRequest,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    detail = await service.replace_inclusions(tour_id, request.inclusion_ids)
    return ApiResponse(data=_tour_detail_to_response(detail), message="Tour inclusions updated successfully")


@app.put("/api/tours/{tour_id}/prices", response_model=ApiResponse[TourDetailResponse], tags=["Tours"])
async def replace_tour_prices(
    tour_id: UUID,
    request: ReplacePricesRequest,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    detail = await service.replace_prices(tour_id, [p.model_dump() for p in request.prices])
    return ApiResponse(data=_tour_detail_to_response(detail), message="Tour prices updated successfully")


@app.put("/api/tours/{tour_id}/toggle-status", response_model=ApiResponse[TourResponse], tags=["Tours"])
async def toggle_tour_status(
    tour_id: UUID,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    tour = await service.toggle_tour_status(tour_id)
    state = "activated" if tour.is_active else "deactivated"
    return ApiResponse(data=_tour_to_response(tour), message=f"Tour {state} successfully")


@app.delete("/api/tours/{tour_id}", response_model=ApiResponse, tags=["Tours"])
async def delete_tour(
    tour_id: UUID,
    principal: Principal = Depends(require_admin),
    service: TourService = Depends(get_tour_service)
):
    await service.delete_tour(tour_id)
    return ApiResponse(message="Tour deleted successfully")


# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ApiResponse[ReservationResponse], status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Create new reservation"""
    reservation = await service.create_reservation(
        principal=principal,
        tour_id=request.tour_id,
        reservation_date=request.reservation_date,
        people_count=request.people_count,
        notes=request.notes
    )
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Reservation created successfully")


@app.get("/api/reservations", response_model=ApiResponse[PagedData[ReservationResponse]], tags=["Reservations"])
async def list_reservations(
    user_id: Optional[UUID] = None,
    tour_id: Optional[UUID] = None,
    guide_id: Optional[UUID] = None,
    status: Optional[ReservationStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    search: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service)
):
    """Get all reservations"""
    query = ReservationQuery(
        user_id=user_id,
        tour_id=tour_id,
        guide_id=guide_id,
        status=status,
        payment_status=payment_status,
        from_date=from_date,
        to_date=to_date,
        search=search,
        limit=limit,
        offset=offset
    )
    reservations = await service.list_reservations(query)
    total = await service.count_reservations(query)
    return ApiResponse(data=PagedData(
        items=[_reservation_to_response(d) for d in await service.describe_all(reservations)],
        pagination=PageMeta(total=total, limit=limit, offset=offset)
    ))


@app.get("/api/reservations/my-reservations", response_model=ApiResponse[List[ReservationResponse]], tags=["Reservations"])
async def get_my_reservations(
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    reservations = await service.get_user_reservations(principal.user_id)
    return ApiResponse(data=[_reservation_to_response(d) for d in await service.describe_all(reservations)])


@app.get("/api/reservations/guide-tours", response_model=ApiResponse[List[ReservationResponse]], tags=["Reservations"])
async def get_guide_reservations(
    principal: Principal = Depends(require_guide_only),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reservations assigned to the calling guide"""
    reservations = await service.get_guide_reservations(principal.user_id)
    return ApiResponse(data=[_reservation_to_response(d) for d in await service.describe_all(reservations)])


@app.get("/api/reservations/{reservation_id}", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Get reservation by ID"""
    reservation = await service.get_reservation(principal, reservation_id)
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail))


@app.put("/api/reservations/{reservation_id}", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def update_reservation(
    reservation_id: UUID,
    request: UpdateReservationRequest,
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Update a pending reservation"""
    reservation = await service.update_reservation(
        principal=principal,
        reservation_id=reservation_id,
        reservation_date=request.reservation_date,
        people_count=request.people_count,
        notes=request.notes,
        notes_provided="notes" in request.model_fields_set
    )
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Reservation updated successfully")


@app.post("/api/reservations/{reservation_id}/cancel", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    principal: Principal = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Cancel reservation"""
    reservation = await service.cancel_reservation(principal, reservation_id)
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Reservation cancelled successfully")


@app.put("/api/reservations/{reservation_id}/status", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def update_reservation_status(
    reservation_id: UUID,
    request: UpdateStatusRequest,
    principal: Principal = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service)
):
    reservation = await service.set_status(reservation_id, request.status)
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Reservation status updated successfully")


@app.put("/api/reservations/{reservation_id}/payment-status", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def update_payment_status(
    reservation_id: UUID,
    request: UpdatePaymentStatusRequest,
    principal: Principal = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service)
):
    reservation = await service.set_payment_status(reservation_id, request.payment_status)
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Payment status updated successfully")


@app.put("/api/reservations/{reservation_id}/assign-guide", response_model=ApiResponse[ReservationResponse], tags=["Reservations"])
async def assign_guide(
    reservation_id: UUID,
    request: AssignGuideRequest,
    principal: Principal = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service)
):
    reservation = await service.assign_guide(reservation_id, request.guide_id)
    detail = await service.describe(reservation)
    return ApiResponse(data=_reservation_to_response(detail), message="Guide assigned successfully")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _user_to_response(user) -> UserResponse:
    """Convert User entity to UserResponse, leaving the password hash behind"""
    return UserResponse(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        phone=user.phone,
        address=user.address,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at
    )


def _category_to_response(category, tour_count: Optional[int] = None) -> CategoryResponse:
    return CategoryResponse(
        category_id=category.category_id,
        name=category.name,
        tour_count=tour_count,
        created_at=category.created_at,
        updated_at=category.updated_at
    )


def _inclusion_to_response(inclusion, usage_count: Optional[int] = None) -> InclusionResponse:
    return InclusionResponse(
        inclusion_id=inclusion.inclusion_id,
        name=inclusion.name,
        icon=inclusion.icon,
        usage_count=usage_count,
        created_at=inclusion.created_at,
        updated_at=inclusion.updated_at
    )


def _price_range_to_response(price_range, usage_count: Optional[int] = None) -> PriceRangeResponse:
    return PriceRangeResponse(
        price_range_id=price_range.price_range_id,
        name=price_range.name,
        min_people=price_range.min_people,
        max_people=price_range.max_people,
        usage_count=usage_count,
        created_at=price_range.created_at,
        updated_at=price_range.updated_at
    )


def _tour_to_response(tour) -> TourResponse:
    """Convert Tour entity to TourResponse"""
    return TourResponse(
        tour_id=tour.tour_id,
        name=tour.name,
        description=tour.description,
        duration=tour.duration,
        duration_minutes=tour.duration_minutes,
        image=tour.image,
        is_active=tour.is_active,
        category_id=tour.category_id,
        created_at=tour.created_at,
        updated_at=tour.updated_at
    )


def _tour_detail_to_response(detail: TourDetail) -> TourDetailResponse:
    return TourDetailResponse(
        **_tour_to_response(detail.tour).model_dump(),
        category=_category_to_response(detail.category) if detail.category else None,
        inclusions=[_inclusion_to_response(i) for i in detail.inclusions],
        prices=[
            TourPriceResponse(
                tour_price_id=p.tour_price.tour_price_id,
                price=p.tour_price.price,
                price_range=_price_range_to_response(p.price_range)
            )
            for p in detail.prices
        ]
    )


def _user_summary(user) -> UserSummary:
    return UserSummary(user_id=user.user_id, name=user.name, email=user.email, phone=user.phone)


def _reservation_to_response(detail: ReservationDetail) -> ReservationResponse:
    """Convert a ReservationDetail to ReservationResponse with embedded summaries"""
    reservation = detail.reservation
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        tour_id=reservation.tour_id,
        user_id=reservation.user_id,
        guide_id=reservation.guide_id,
        reservation_date=reservation.reservation_date,
        people_count=reservation.people_count,
        total_price=reservation.total_price,
        notes=reservation.notes,
        status=reservation.status,
        payment_status=reservation.payment_status,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        tour=TourSummary(
            tour_id=detail.tour.tour_id,
            name=detail.tour.name,
            duration=detail.tour.duration,
            image=detail.tour.image
        ),
        user=_user_summary(detail.user),
        guide=_user_summary(detail.guide) if detail.guide else None
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
