"""Shared pytest fixtures for the Tour Booking API tests"""
import os

# Cheap hashing and a stable environment; must run before the app modules load
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from main import app
from api.dependencies import get_repositories, _bootstrap_admin
from application.catalog import CategoryService, InclusionService, PriceRangeService, TourService
from application.services import ReservationService
from application.users import AuthService, UserService
from domain.auth import Principal, UserInDB
from domain.enums import Role
from infrastructure import config
from infrastructure.repositories.in_memory_repositories import InMemoryRepositories
from infrastructure.security import get_password_hash


def make_user(email: str, role: Role = Role.CUSTOMER, name: str = "Test User",
              password: str = "password123", is_active: bool = True) -> UserInDB:
    return UserInDB(
        email=email,
        name=name,
        role=role,
        is_active=is_active,
        hashed_password=get_password_hash(password)
    )


def principal_of(user: UserInDB) -> Principal:
    return Principal(user_id=user.user_id, email=user.email, role=user.role)


# ============================================================================
# REPOSITORIES & SERVICES
# ============================================================================

@pytest.fixture
def users():
    """Admin, guide and two customers"""
    return SimpleNamespace(
        admin=make_user("boss@example.com", Role.ADMIN, "Boss"),
        guide=make_user("guide@example.com", Role.GUIDE, "Gina Guide"),
        customer=make_user("alice@example.com", Role.CUSTOMER, "Alice Walker"),
        other=make_user("bob@example.com", Role.CUSTOMER, "Bob Stone"),
    )


@pytest.fixture
def repos(users):
    return InMemoryRepositories(users=[users.admin, users.guide, users.customer, users.other])


@pytest.fixture
def category_service(repos):
    return CategoryService(repos.categories, repos.tours)


@pytest.fixture
def inclusion_service(repos):
    return InclusionService(repos.inclusions, repos.tours)


@pytest.fixture
def price_range_service(repos):
    return PriceRangeService(repos.price_ranges, repos.tour_prices)


@pytest.fixture
def tour_service(repos):
    return TourService(
        repos.tours, repos.tour_prices, repos.categories, repos.inclusions,
        repos.price_ranges, repos.reservations, repos.unit_of_work
    )


@pytest.fixture
def reservation_service(repos):
    return ReservationService(
        repos.reservations, repos.tours, repos.tour_prices, repos.price_ranges, repos.users
    )


@pytest.fixture
def auth_service(repos):
    return AuthService(repos.users)


@pytest.fixture
def user_service(repos):
    return UserService(repos.users, repos.reservations)


@pytest.fixture
async def catalog(category_service, inclusion_service, price_range_service, tour_service):
    """A category, two inclusions, tiers 1-4 at 100 and 5+ at 80, one active tour"""
    category = await category_service.create_category("City Walks")
    lunch = await inclusion_service.create_inclusion("Lunch", "utensils")
    transport = await inclusion_service.create_inclusion("Transport", "bus")
    small = await price_range_service.create_price_range("Small group", 1, 4)
    large = await price_range_service.create_price_range("Large group", 5, None)
    detail = await tour_service.create_tour(
        name="Old Town Walk",
        description="Cobblestones and cathedrals",
        duration="3 hours",
        duration_minutes=180,
        category_id=category.category_id,
        inclusion_ids=[lunch.inclusion_id],
        prices=[
            {"price_range_id": small.price_range_id, "price": Decimal("100")},
            {"price_range_id": large.price_range_id, "price": Decimal("80")},
        ]
    )
    return SimpleNamespace(
        category=category, lunch=lunch, transport=transport,
        small=small, large=large, tour=detail.tour
    )


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
def api_repos():
    return InMemoryRepositories(users=[_bootstrap_admin()])


@pytest.fixture
def client(api_repos):
    """FastAPI test client over a fresh store"""
    app.dependency_overrides[get_repositories] = lambda: api_repos
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/auth/login", json={
        "email": config.ADMIN_EMAIL, "password": config.ADMIN_PASSWORD
    })
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def register(client, email: str, password: str = "password123", name: str = "Test User") -> dict:
    """Register an account and return its auth headers and user id"""
    response = client.post("/api/auth/register", json={
        "email": email, "password": password, "name": name
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return {"headers": {"Authorization": f"Bearer {data['token']}"}, "user_id": data["user"]["user_id"]}


@pytest.fixture
def customer(client):
    return register(client, "carol@example.com", name="Carol Jones")
