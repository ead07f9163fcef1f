"""API Dependencies - Repositories, services and authentication"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from domain.auth import Principal, UserInDB
from domain.enums import Role
from domain.errors import AuthError, ForbiddenError
from infrastructure import config
from infrastructure.security import decode_access_token, get_password_hash
from infrastructure.repositories.in_memory_repositories import InMemoryRepositories
from application.catalog import CategoryService, InclusionService, PriceRangeService, TourService
from application.services import ReservationService
from application.users import AuthService, UserService, DEACTIVATED_MESSAGE

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

_repositories: Optional[InMemoryRepositories] = None


def _bootstrap_admin() -> UserInDB:
    return UserInDB(
        email=config.ADMIN_EMAIL.lower(),
        name=config.ADMIN_NAME,
        role=Role.ADMIN,
        hashed_password=get_password_hash(config.ADMIN_PASSWORD)
    )


def get_repositories() -> InMemoryRepositories:
    """Process-wide store, created with the bootstrap admin on first access"""
    global _repositories
    if _repositories is None:
        _repositories = InMemoryRepositories(users=[_bootstrap_admin()])
        logger.info("In-memory store initialised with admin %s", config.ADMIN_EMAIL)
    return _repositories


# ==================== SERVICES ====================

def get_auth_service(repos: InMemoryRepositories = Depends(get_repositories)) -> AuthService:
    return AuthService(repos.users)


def get_user_service(repos: InMemoryRepositories = Depends(get_repositories)) -> UserService:
    return UserService(repos.users, repos.reservations)


def get_category_service(repos: InMemoryRepositories = Depends(get_repositories)) -> CategoryService:
    return CategoryService(repos.categories, repos.tours)


def get_inclusion_service(repos: InMemoryRepositories = Depends(get_repositories)) -> InclusionService:
    return InclusionService(repos.inclusions, repos.tours)


def get_price_range_service(repos: InMemoryRepositories = Depends(get_repositories)) -> PriceRangeService:
    return PriceRangeService(repos.price_ranges, repos.tour_prices)


def get_tour_service(repos: InMemoryRepositories = Depends(get_repositories)) -> TourService:
    return TourService(
        repos.tours, repos.tour_prices, repos.categories, repos.inclusions,
        repos.price_ranges, repos.reservations, repos.unit_of_work
    )


def get_reservation_service(repos: InMemoryRepositories = Depends(get_repositories)) -> ReservationService:
    return ReservationService(
        repos.reservations, repos.tours, repos.tour_prices, repos.price_ranges, repos.users
    )


# ==================== AUTHENTICATION ====================

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    repos: InMemoryRepositories = Depends(get_repositories)
) -> Principal:
    """Decode the bearer token and re-check the account it names"""
    payload = decode_access_token(token)
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError:
        raise AuthError("Invalid or expired token")

    user = await repos.users.find_by_id(user_id)
    if user is None:
        raise AuthError("User not found")
    if not user.is_active:
        raise ForbiddenError(DEACTIVATED_MESSAGE)
    return Principal(user_id=user.user_id, email=user.email, role=user.role)


def require_roles(*roles: Role):
    """Dependency allowing only principals holding one of ``roles``"""

    async def checker(principal: Principal = Depends(get_current_user)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError("You do not have permission to perform this action")
        return principal

    return checker


require_admin = require_roles(Role.ADMIN)
require_guide = require_roles(Role.GUIDE, Role.ADMIN)
require_guide_only = require_roles(Role.GUIDE)
