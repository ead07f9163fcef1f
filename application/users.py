"""Application Services - Authentication, user management and dashboards"""
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from domain.auth import UserInDB, Principal
from domain.entities import Reservation
from domain.enums import Role, ReservationStatus
from domain.errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from domain.queries import UserQuery, ReservationQuery
from domain.repositories import UserRepository, ReservationRepository
from infrastructure.config import MIN_PASSWORD_LENGTH
from infrastructure.security import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEACTIVATED_MESSAGE = "Your account has been deactivated. Please contact support."

# Fields a user may change on their own profile
PROFILE_FIELDS = ("name", "phone", "address")


class UserProfile(BaseModel):
    user: UserInDB
    reservations_count: int


class GuideDashboard(BaseModel):
    upcoming: List[Reservation]
    completed_count: int


class AdminDashboard(BaseModel):
    total_users: int
    total_reservations: int
    pending_reservations: int


def _validate_credentials(email: str, password: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please provide a valid email")
    _validate_password(password)
    return email


def _validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def issue_token(user: UserInDB) -> str:
    return create_access_token({"sub": str(user.user_id), "email": user.email, "role": user.role.value})


class AuthService:
    """Service for registration, login and password changes"""

    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        role: Role = Role.CUSTOMER
    ) -> UserInDB:
        """Create an account; self-registration always gets the CUSTOMER role"""
        email = _validate_credentials(email, password)
        if not name or not name.strip():
            raise ValidationError("Name is required")
        if await self.user_repo.find_by_email(email):
            raise ConflictError("User with this email already exists")

        user = UserInDB(
            email=email,
            name=name.strip(),
            phone=phone,
            address=address,
            role=role,
            hashed_password=get_password_hash(password)
        )
        saved = await self.user_repo.save(user)
        logger.info("User %s registered with role %s", saved.user_id, saved.role.value)
        return saved

    async def authenticate(self, email: str, password: str) -> UserInDB:
        user = await self.user_repo.find_by_email((email or "").strip())
        if not user or not verify_password(password, user.hashed_password):
            logger.info("Failed login for %s", email)
            raise AuthError("Invalid email or password")
        if not user.is_active:
            raise ForbiddenError(DEACTIVATED_MESSAGE)
        return user

    async def login(self, email: str, password: str) -> Tuple[UserInDB, str]:
        user = await self.authenticate(email, password)
        return user, issue_token(user)

    async def change_password(self, principal: Principal, current_password: str, new_password: str) -> None:
        user = await self.user_repo.find_by_id(principal.user_id)
        if not user:
            raise NotFoundError("User not found")
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        _validate_password(new_password)
        user.hashed_password = get_password_hash(new_password)
        user.touch()
        await self.user_repo.update(user)
        logger.info("User %s changed password", user.user_id)


class UserService:
    """Service for user profiles, administration and dashboards"""

    def __init__(self, user_repo: UserRepository, reservation_repo: ReservationRepository):
        self.user_repo = user_repo
        self.reservation_repo = reservation_repo

    async def _get_or_raise(self, user_id: UUID) -> UserInDB:
        user = await self.user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_profile(self, user_id: UUID) -> UserProfile:
        user = await self._get_or_raise(user_id)
        count = await self.reservation_repo.count(ReservationQuery(user_id=user_id))
        return UserProfile(user=user, reservations_count=count)

    async def update_profile(self, user_id: UUID, changes: Dict[str, Any]) -> UserInDB:
        changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        if not changes:
            raise ValidationError("No fields to update")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Name is required")

        user = await self._get_or_raise(user_id)
        for field_name, value in changes.items():
            setattr(user, field_name, value)
        user.touch()
        return await self.user_repo.update(user)

    async def list_users(self, query: UserQuery) -> List[UserInDB]:
        return await self.user_repo.find_all(query)

    async def count_users(self, query: UserQuery) -> int:
        return await self.user_repo.count(query)

    async def get_user(self, user_id: UUID) -> UserInDB:
        return await self._get_or_raise(user_id)

    async def create_user(
        self,
        email: str,
        password: str,
        name: str,
        role: Role,
        phone: Optional[str] = None,
        address: Optional[str] = None
    ) -> UserInDB:
        """Admin account creation with any role"""
        return await AuthService(self.user_repo).register(
            email=email, password=password, name=name, phone=phone, address=address, role=role
        )

    async def toggle_user_status(self, user_id: UUID) -> UserInDB:
        user = await self._get_or_raise(user_id)
        user.toggle_active()
        logger.info("User %s is now %s", user_id, "active" if user.is_active else "inactive")
        return await self.user_repo.update(user)

    async def guide_dashboard(self, guide_id: UUID, today: Optional[date] = None) -> GuideDashboard:
        today = today or date.today()
        assigned = await self.reservation_repo.find_by_guide_id(guide_id)
        upcoming = sorted(
            (r for r in assigned if r.is_upcoming(today)),
            key=lambda r: r.reservation_date
        )
        completed = sum(1 for r in assigned if r.status == ReservationStatus.COMPLETED)
        return GuideDashboard(upcoming=upcoming, completed_count=completed)

    async def admin_dashboard(self) -> AdminDashboard:
        return AdminDashboard(
            total_users=await self.user_repo.count(),
            total_reservations=await self.reservation_repo.count(),
            pending_reservations=await self.reservation_repo.count(
                ReservationQuery(status=ReservationStatus.PENDING)
            )
        )
