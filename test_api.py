"""
API Integration Tests for Tour Booking API
Exercises the FastAPI app end to end over a fresh in-memory store
"""

import pytest
from datetime import date, timedelta
from uuid import uuid4

from application.catalog import CategoryService
from conftest import register
from domain.errors import UnexpectedError
from infrastructure import config


@pytest.fixture
def tour(client, admin_headers):
    """Category, tiers 1-4 at 100 and 5+ at 80, and one active tour"""
    category = client.post("/api/categories", json={"name": "Nature"}, headers=admin_headers).json()["data"]
    small = client.post("/api/price-ranges", json={
        "name": "Small", "min_people": 1, "max_people": 4
    }, headers=admin_headers).json()["data"]
    large = client.post("/api/price-ranges", json={
        "name": "Large", "min_people": 5
    }, headers=admin_headers).json()["data"]
    response = client.post("/api/tours", json={
        "name": "Forest Hike",
        "description": "Pines and waterfalls",
        "duration": "4 hours",
        "duration_minutes": 240,
        "category_id": category["category_id"],
        "prices": [
            {"price_range_id": small["price_range_id"], "price": "100"},
            {"price_range_id": large["price_range_id"], "price": "80"},
        ]
    }, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def reservation(client, customer, tour):
    response = client.post("/api/reservations", json={
        "tour_id": tour["tour_id"],
        "reservation_date": str(date.today() + timedelta(days=14)),
        "people_count": 3,
        "notes": "Bring snacks"
    }, headers=customer["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestHealthAndAuth:
    """Test health and authentication endpoints"""

    @pytest.mark.integration
    @pytest.mark.api
    def test_health_check(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.integration
    @pytest.mark.api
    def test_register_returns_token_and_customer(self, client):
        response = client.post("/api/auth/register", json={
            "email": "dave@example.com", "password": "password123", "name": "Dave"
        })
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["role"] == "CUSTOMER"
        assert "hashed_password" not in body["data"]["user"]
        assert body["data"]["token"]

    @pytest.mark.integration
    @pytest.mark.api
    @pytest.mark.edge_case
    def test_register_short_password(self, client):
        response = client.post("/api/auth/register", json={
            "email": "eve@example.com", "password": "short", "name": "Eve"
        })
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.integration
    @pytest.mark.api
    def test_login_wrong_password(self, client, customer):
        response = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "wrong-one"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.integration
    @pytest.mark.api
    def test_oauth2_token_endpoint(self, client, customer):
        response = client.post("/api/auth/token", data={"username": "carol@example.com", "password": "password123"})
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    @pytest.mark.integration
    @pytest.mark.api
    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.integration
    @pytest.mark.api
    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.integration
    @pytest.mark.api
    def test_deactivated_user_token_rejected(self, client, admin_headers, customer):
        toggle = client.put(f"/api/users/{customer['user_id']}/toggle-status", headers=admin_headers)
        assert toggle.json()["data"]["is_active"] is False

        response = client.get("/api/auth/me", headers=customer["headers"])
        assert response.status_code == 403
        assert "deactivated" in response.json()["message"]

        login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "password123"})
        assert login.status_code == 403

    @pytest.mark.integration
    @pytest.mark.api
    def test_change_password_and_logout(self, client, customer):
        response = client.post("/api/auth/change-password", json={
            "current_password": "password123", "new_password": "brand-new-pass"
        }, headers=customer["headers"])
        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "brand-new-pass"})
        assert login.status_code == 200
        assert client.post("/api/auth/logout", headers=customer["headers"]).status_code == 200

    @pytest.mark.integration
    @pytest.mark.api
    def test_change_password_from_users_route(self, client, customer):
        response = client.put("/api/users/change-password", json={
            "current_password": "password123", "new_password": "another-pass"
        }, headers=customer["headers"])
        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "another-pass"})
        assert login.status_code == 200

    @pytest.mark.integration
    @pytest.mark.api
    @pytest.mark.edge_case
    def test_unexpected_error_hidden_in_production(self, client, monkeypatch):
        async def broken(self, query):
            raise UnexpectedError("db password=hunter2")

        monkeypatch.setattr(CategoryService, "list_categories", broken)
        monkeypatch.setattr(config, "IS_PRODUCTION", True)
        response = client.get("/api/categories")
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Something went wrong"}

    @pytest.mark.integration
    @pytest.mark.api
    @pytest.mark.edge_case
    def test_unexpected_error_detail_outside_production(self, client, monkeypatch):
        async def broken(self, query):
            raise UnexpectedError("store unavailable")

        monkeypatch.setattr(CategoryService, "list_categories", broken)
        monkeypatch.setattr(config, "IS_PRODUCTION", False)
        response = client.get("/api/categories")
        assert response.status_code == 500
        assert response.json()["message"] == "store unavailable"



class TestCatalogEndpoints:
    """Test catalog endpoints and their guards"""

    @pytest.mark.integration
    @pytest.mark.api
    def test_customer_cannot_create_category(self, client, customer):
        response = client.post("/api/categories", json={"name": "Hidden"}, headers=customer["headers"])
        assert response.status_code == 403

    @pytest.mark.integration
    @pytest.mark.api
    def test_catalog_reads_are_public(self, client, tour):
        assert client.get("/api/categories").status_code == 200
        assert client.get("/api/price-ranges").status_code == 200
        detail = client.get(f"/api/tours/{tour['tour_id']}").json()["data"]
        assert [p["price_range"]["name"] for p in detail["prices"]] == ["Small", "Large"]
        assert detail["category"]["name"] == "Nature"

    @pytest.mark.integration
    @pytest.mark.api
    def test_overlapping_price_range_rejected(self, client, admin_headers, tour):
        response = client.post("/api/price-ranges", json={
            "name": "Medium", "min_people": 4, "max_people": 6
        }, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "This price range overlaps with an existing range"

    @pytest.mark.integration
    @pytest.mark.api
    def test_tour_price_filter(self, client, tour):
        assert len(client.get("/api/tours", params={"max_price": "90"}).json()["data"]) == 1
        assert client.get("/api/tours", params={"min_price": "500"}).json()["data"] == []

    @pytest.mark.integration
    @pytest.mark.api
    def test_unknown_tour(self, client):
        response = client.get(f"/api/tours/{uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Tour not found"}

    @pytest.mark.integration
    @pytest.mark.api
    @pytest.mark.edge_case
    def test_malformed_id_is_bad_request(self, client):
        response = client.get("/api/tours/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["message"] == "Validation error"

    @pytest.mark.integration
    @pytest.mark.api
    def test_delete_category_in_use(self, client, admin_headers, tour):
        response = client.delete(f"/api/categories/{tour['category_id']}", headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.integration
    @pytest.mark.api
    def test_inclusion_lifecycle(self, client, admin_headers):
        created = client.post("/api/inclusions", json={"name": "Water", "icon": "droplet"}, headers=admin_headers)
        assert created.status_code == 201
        inclusion_id = created.json()["data"]["inclusion_id"]
        updated = client.put(f"/api/inclusions/{inclusion_id}", json={"icon": "bottle"}, headers=admin_headers)
        assert updated.json()["data"]["icon"] == "bottle"
        assert client.delete(f"/api/inclusions/{inclusion_id}", headers=admin_headers).status_code == 200

    @pytest.mark.integration
    @pytest.mark.api
    def test_category_tours_and_toggle(self, client, admin_headers, tour):
        listed = client.get(f"/api/tours/category/{tour['category_id']}").json()["data"]
        assert [t["tour_id"] for t in listed] == [tour["tour_id"]]

        toggle = client.put(f"/api/tours/{tour['tour_id']}/toggle-status", headers=admin_headers)
        assert toggle.status_code == 200
        assert toggle.json()["data"]["is_active"] is False
        assert client.get(f"/api/tours/category/{tour['category_id']}").json()["data"] == []



class TestReservationEndpoints:
    """Test reservation endpoints"""

    @pytest.mark.integration
    @pytest.mark.api
    def test_create_computes_total(self, reservation):
        assert reservation["status"] == "PENDING"
        assert reservation["payment_status"] == "PENDING"
        assert float(reservation["total_price"]) == 300

    @pytest.mark.integration
    @pytest.mark.api
    @pytest.mark.edge_case
    def test_zero_people_rejected_at_input(self, client, customer, tour):
        response = client.post("/api/reservations", json={
            "tour_id": tour["tour_id"],
            "reservation_date": str(date.today() + timedelta(days=3)),
            "people_count": 0
        }, headers=customer["headers"])
        assert response.status_code == 400

    @pytest.mark.integration
    @pytest.mark.api
    def test_update_reprices(self, client, customer, reservation):
        response = client.put(f"/api/reservations/{reservation['reservation_id']}", json={
            "people_count": 6
        }, headers=customer["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert float(data["total_price"]) == 480
        assert data["notes"] == "Bring snacks"

    @pytest.mark.integration
    @pytest.mark.api
    def test_update_after_confirmation_rejected(self, client, admin_headers, customer, reservation):
        reservation_id = reservation["reservation_id"]
        client.put(f"/api/reservations/{reservation_id}/status", json={"status": "CONFIRMED"}, headers=admin_headers)
        response = client.put(f"/api/reservations/{reservation_id}", json={"notes": "x"}, headers=customer["headers"])
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot update a reservation in status CONFIRMED"

    @pytest.mark.integration
    @pytest.mark.api
    def test_cancel(self, client, customer, reservation):
        response = client.post(f"/api/reservations/{reservation['reservation_id']}/cancel", headers=customer["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "CANCELLED"
        assert data["payment_status"] == "CANCELLED"

    @pytest.mark.integration
    @pytest.mark.api
    def test_other_customer_forbidden(self, client, reservation):
        stranger = register(client, "mallory@example.com", name="Mallory")
        reservation_id = reservation["reservation_id"]
        assert client.get(f"/api/reservations/{reservation_id}", headers=stranger["headers"]).status_code == 403
        assert client.post(
            f"/api/reservations/{reservation_id}/cancel", headers=stranger["headers"]
        ).status_code == 403

    @pytest.mark.integration
    @pytest.mark.api
    def test_admin_only_actions(self, client, customer, reservation):
        reservation_id = reservation["reservation_id"]
        response = client.put(
            f"/api/reservations/{reservation_id}/status", json={"status": "COMPLETED"}, headers=customer["headers"]
        )
        assert response.status_code == 403
        assert client.get("/api/reservations", headers=customer["headers"]).status_code == 403

    @pytest.mark.integration
    @pytest.mark.api
    def test_assign_guide_and_guide_views(self, client, admin_headers, reservation):
        guide = client.post("/api/users", json={
            "email": "gus@example.com", "password": "password123", "name": "Gus", "role": "GUIDE"
        }, headers=admin_headers).json()["data"]
        reservation_id = reservation["reservation_id"]

        response = client.put(f"/api/reservations/{reservation_id}/assign-guide",
                              json={"guide_id": guide["user_id"]}, headers=admin_headers)
        assert response.json()["data"]["guide_id"] == guide["user_id"]
        assert response.json()["data"]["guide"]["name"] == "Gus"

        login = client.post("/api/auth/login", json={"email": "gus@example.com", "password": "password123"})
        guide_headers = {"Authorization": f"Bearer {login.json()['data']['token']}"}
        assigned = client.get("/api/reservations/guide-tours", headers=guide_headers).json()["data"]
        assert [r["reservation_id"] for r in assigned] == [reservation_id]
        from_users = client.get("/api/users/guide-tours", headers=guide_headers).json()["data"]
        assert [r["reservation_id"] for r in from_users] == [reservation_id]
        dashboard = client.get("/api/users/guide-dashboard", headers=guide_headers).json()["data"]
        assert len(dashboard["upcoming"]) == 1
        assert client.get(f"/api/reservations/{reservation_id}", headers=guide_headers).status_code == 200

    @pytest.mark.integration
    @pytest.mark.api
    def test_assign_non_guide(self, client, admin_headers, customer, reservation):
        response = client.put(f"/api/reservations/{reservation['reservation_id']}/assign-guide",
                              json={"guide_id": customer["user_id"]}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Guide not found or not active"

    @pytest.mark.integration
    @pytest.mark.api
    def test_admin_list_and_dashboard(self, client, admin_headers, reservation):
        listing = client.get("/api/reservations", params={"search": "carol"}, headers=admin_headers).json()["data"]
        assert listing["pagination"]["total"] == 1
        assert listing["items"][0]["reservation_id"] == reservation["reservation_id"]
        dashboard = client.get("/api/users/admin-dashboard", headers=admin_headers).json()["data"]
        assert dashboard["pending_reservations"] == 1

    @pytest.mark.integration
    @pytest.mark.api
    def test_my_reservations_and_profile(self, client, customer, reservation):
        mine = client.get("/api/reservations/my-reservations", headers=customer["headers"]).json()["data"]
        assert [r["reservation_id"] for r in mine] == [reservation["reservation_id"]]
        profile = client.get("/api/users/profile", headers=customer["headers"]).json()["data"]
        assert profile["reservations_count"] == 1

    @pytest.mark.integration
    @pytest.mark.api
    def test_tour_with_reservation_cannot_be_deleted(self, client, admin_headers, tour, reservation):
        response = client.delete(f"/api/tours/{tour['tour_id']}", headers=admin_headers)
        assert response.status_code == 400
        assert "associated reservations" in response.json()["message"]

    @pytest.mark.integration
    @pytest.mark.api
    def test_reservation_embeds_tour_and_customer(self, reservation):
        assert reservation["tour"]["tour_id"] == reservation["tour_id"]
        assert reservation["tour"]["name"] == "Forest Hike"
        assert reservation["tour"]["duration"] == "4 hours"
        assert reservation["user"]["name"] == "Carol Jones"
        assert reservation["user"]["email"] == "carol@example.com"
        assert reservation.get("guide") is None

    @pytest.mark.integration
    @pytest.mark.api
    def test_status_and_payment_updates(self, client, admin_headers, reservation):
        reservation_id = reservation["reservation_id"]
        status = client.put(f"/api/reservations/{reservation_id}/status",
                            json={"status": "CONFIRMED"}, headers=admin_headers)
        assert status.status_code == 200
        assert status.json()["data"]["status"] == "CONFIRMED"

        payment = client.put(f"/api/reservations/{reservation_id}/payment-status",
                             json={"payment_status": "PAID"}, headers=admin_headers)
        assert payment.status_code == 200
        assert payment.json()["data"]["payment_status"] == "PAID"
        assert payment.json()["data"]["tour"]["name"] == "Forest Hike"

    @pytest.mark.integration
    @pytest.mark.api
    def test_guide_tours_only_for_guides(self, client, admin_headers):
        assert client.get("/api/reservations/guide-tours", headers=admin_headers).status_code == 403
        assert client.get("/api/users/guide-tours", headers=admin_headers).status_code == 403

    @pytest.mark.integration
    @pytest.mark.api
    def test_users_reservations_route(self, client, customer, reservation):
        response = client.get("/api/users/reservations", headers=customer["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert [r["reservation_id"] for r in data] == [reservation["reservation_id"]]
        assert data[0]["user"]["user_id"] == customer["user_id"]
