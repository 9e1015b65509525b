"""Integration tests for API endpoints using Starlette TestClient."""

import pytest
from unittest.mock import MagicMock
from starlette.testclient import TestClient

from carbonlogr.core.models import FootprintEntry, Recommendation, User
from carbonlogr.main import create_app
from carbonlogr.shell import clients
from carbonlogr.shell.auth import AuthClient
from carbonlogr.shell.firestore_client import FootprintFirestoreClient, NotAuthorizedError, RecordNotFoundError
from carbonlogr.shell.text_generator import UnavailableTextGenerator


API_KEY = "clr_" + "k" * 43
USER_ID = "a" * 32
AUTH = {"Authorization": f"Bearer {API_KEY}"}


def make_entry(**overrides) -> FootprintEntry:
    data = dict(
        id="fp1",
        owner_id=USER_ID,
        category="transportation",
        activity="Commute",
        carbon_emission=17.0,
    )
    data.update(overrides)
    return FootprintEntry(**data)


@pytest.fixture
def store(monkeypatch):
    """Mock record store shared by routes."""
    mock_store = MagicMock(spec=FootprintFirestoreClient)
    monkeypatch.setattr(clients, "_firestore_client", mock_store)
    return mock_store


@pytest.fixture
def auth(monkeypatch):
    """Mock auth client accepting only API_KEY."""
    mock_auth = MagicMock(spec=AuthClient)
    mock_auth.authenticate.side_effect = lambda header: USER_ID if header == AUTH["Authorization"] else None
    monkeypatch.setattr(clients, "_auth_client", mock_auth)
    return mock_auth


@pytest.fixture
def client(store, auth, monkeypatch):
    """Create test client with mocked collaborators and no AI service."""
    monkeypatch.setattr(clients, "_text_generator", UnavailableTextGenerator())
    return TestClient(create_app())


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "carbonlogr"}


class TestRegisterEndpoint:
    """Tests for /auth/register endpoint."""

    def test_register_success(self, client, auth):
        auth.register_user.return_value = (API_KEY, USER_ID)

        response = client.post("/auth/register", json={"email": "test@example.com", "name": "Ada"})

        assert response.status_code == 200
        data = response.json()
        assert data["api_key"] == API_KEY
        assert "mcp_command" in data
        auth.register_user.assert_called_once_with("test@example.com", name="Ada")

    def test_register_invalid_email(self, client):
        response = client.post("/auth/register", json={"email": "not-an-email"})
        assert response.status_code == 400

    def test_register_malformed_body(self, client):
        response = client.post("/auth/register", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_register_failure(self, client, auth):
        auth.register_user.side_effect = RuntimeError("firestore down")

        response = client.post("/auth/register", json={"email": "test@example.com"})

        assert response.status_code == 500


class TestValidateEndpoint:
    """Tests for /auth/validate endpoint."""

    def test_missing_key(self, client):
        assert client.post("/auth/validate", json={}).json()["valid"] is False

    def test_existing_key(self, client, auth):
        auth.validate_api_key.return_value = USER_ID
        assert client.post("/auth/validate", json={"api_key": API_KEY}).json()["valid"] is True


class TestAuthentication:
    """API routes require a valid API key."""

    def test_missing_key_rejected(self, client, store):
        response = client.get("/api/footprints")

        assert response.status_code == 401
        store.list_footprints.assert_not_called()

    def test_unknown_key_rejected(self, client):
        response = client.get("/api/footprints", headers={"Authorization": "Bearer clr_" + "x" * 43})
        assert response.status_code == 401


class TestFootprintEndpoints:
    """Tests for /api/footprints routes."""

    def test_list(self, client, store):
        store.list_footprints.return_value = [make_entry()]

        response = client.get("/api/footprints", headers=AUTH)

        assert response.status_code == 200
        assert response.json()[0]["id"] == "fp1"
        store.list_footprints.assert_called_once_with(USER_ID)

    def test_create_estimates_emission(self, client, store):
        store.save_footprint.return_value = True

        response = client.post(
            "/api/footprints",
            headers=AUTH,
            json={"category": "transportation", "activity": "Drive", "details": {"type": "car", "distance": 100}},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["carbon_emission"] == 17.0
        assert data["owner_id"] == USER_ID
        assert data["unit"] == "kg CO2e"
        saved = store.save_footprint.call_args.args[0]
        assert saved.owner_id == USER_ID

    def test_create_with_supplied_emission(self, client, store):
        store.save_footprint.return_value = True

        response = client.post(
            "/api/footprints",
            headers=AUTH,
            json={"category": "food", "activity": "Lunch", "carbon_emission": 2.5, "date": "2025-05-01"},
        )

        assert response.status_code == 201
        assert response.json()["carbon_emission"] == 2.5
        assert response.json()["date"].startswith("2025-05-01")

    def test_create_owner_cannot_be_spoofed(self, client, store):
        store.save_footprint.return_value = True

        response = client.post(
            "/api/footprints",
            headers=AUTH,
            json={"category": "food", "activity": "Lunch", "carbon_emission": 1, "owner_id": "someone-else"},
        )

        assert response.json()["owner_id"] == USER_ID

    def test_create_invalid_category(self, client, store):
        response = client.post("/api/footprints", headers=AUTH, json={"category": "travel", "activity": "Trip"})

        assert response.status_code == 400
        assert response.json()["details"]
        store.save_footprint.assert_not_called()

    def test_create_negative_emission(self, client, store):
        response = client.post(
            "/api/footprints", headers=AUTH, json={"category": "food", "activity": "x", "carbon_emission": -1}
        )
        assert response.status_code == 400

    def test_create_malformed_json(self, client):
        response = client.post(
            "/api/footprints", headers={**AUTH, "Content-Type": "application/json"}, content=b"{oops"
        )
        assert response.status_code == 400

    def test_create_save_failure(self, client, store):
        store.save_footprint.return_value = False

        response = client.post(
            "/api/footprints", headers=AUTH, json={"category": "food", "activity": "x", "carbon_emission": 1}
        )

        assert response.status_code == 500

    def test_summary(self, client, store):
        store.list_footprints.return_value = [
            make_entry(id="a", category="transportation", carbon_emission=17.0),
            make_entry(id="b", category="food", carbon_emission=5.0),
        ]

        response = client.get("/api/footprints/summary", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 22.0
        assert data["by_category"] == [
            {"category": "transportation", "total": 17.0},
            {"category": "food", "total": 5.0},
        ]
        assert len(data["by_month"]) == 1

    def test_summary_empty(self, client, store):
        store.list_footprints.return_value = []

        response = client.get("/api/footprints/summary", headers=AUTH)

        assert response.json() == {"total": 0.0, "by_category": [], "by_month": []}

    def test_estimate_preview(self, client, store):
        response = client.post(
            "/api/footprints/estimate",
            headers=AUTH,
            json={"category": "energy", "details": {"type": "electricity", "kwh": 100}},
        )

        assert response.status_code == 200
        assert response.json()["carbon_emission"] == pytest.approx(39.4)
        assert response.json()["quantity_unit"] == "kWh"
        store.save_footprint.assert_not_called()

    def test_estimate_huge_quantity(self, client):
        """Integers beyond float range estimate 0 instead of failing."""
        response = client.post(
            "/api/footprints/estimate",
            headers=AUTH,
            json={"category": "transportation", "details": {"type": "car", "distance": 10**400}},
        )

        assert response.status_code == 200
        assert response.json()["carbon_emission"] == 0.0

    def test_estimate_unknown_category(self, client):
        response = client.post("/api/footprints/estimate", headers=AUTH, json={"category": "travel", "details": {}})

        assert response.json()["carbon_emission"] == 0.0

    def test_update(self, client, store):
        store.update_footprint.return_value = make_entry(activity="Drive to office")

        response = client.put("/api/footprints/fp1", headers=AUTH, json={"activity": "Drive to office"})

        assert response.status_code == 200
        assert response.json()["activity"] == "Drive to office"
        owner_id, footprint_id, changes = store.update_footprint.call_args.args
        assert (owner_id, footprint_id) == (USER_ID, "fp1")
        assert changes.activity == "Drive to office"

    def test_update_not_owner(self, client, store):
        store.update_footprint.side_effect = NotAuthorizedError("User not authorized")

        response = client.put("/api/footprints/fp1", headers=AUTH, json={"activity": "x"})

        assert response.status_code == 403
        assert response.json()["error"] == "User not authorized"

    def test_update_not_found(self, client, store):
        store.update_footprint.side_effect = RecordNotFoundError("Footprint not found")

        response = client.put("/api/footprints/nope", headers=AUTH, json={"activity": "x"})

        assert response.status_code == 404

    def test_delete(self, client, store):
        store.delete_footprint.return_value = True

        response = client.delete("/api/footprints/fp1", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"id": "fp1"}
        store.delete_footprint.assert_called_once_with(USER_ID, "fp1")

    def test_delete_not_owner(self, client, store):
        store.delete_footprint.side_effect = NotAuthorizedError("User not authorized")

        assert client.delete("/api/footprints/fp1", headers=AUTH).status_code == 403

    def test_factors(self, client):
        response = client.get("/api/factors", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["transportation"]["factors"]["car"] == 0.17


class TestRecommendationEndpoints:
    """Tests for /api/recommendations routes."""

    def test_generate_rule_based(self, client, store):
        store.recent_footprints.return_value = [
            make_entry(id="a", category="transportation", carbon_emission=17.0),
            make_entry(id="b", category="food", carbon_emission=5.0),
        ]
        store.save_recommendations.side_effect = lambda recs: recs

        response = client.post("/api/recommendations/generate", headers=AUTH)

        assert response.status_code == 201
        data = response.json()
        assert [r["title"] for r in data] == ["Switch to Public Transit", "Carpool to Work", "Track Your Progress"]
        assert all(r["owner_id"] == USER_ID for r in data)
        assert data[2]["potential_impact"] == pytest.approx(2.2)
        store.recent_footprints.assert_called_once_with(USER_ID, 50)

    def test_generate_without_data(self, client, store):
        store.recent_footprints.return_value = []

        response = client.post("/api/recommendations/generate", headers=AUTH)

        assert response.status_code == 400
        store.save_recommendations.assert_not_called()

    def test_generate_save_failure(self, client, store):
        store.recent_footprints.return_value = [make_entry()]
        store.save_recommendations.return_value = []

        assert client.post("/api/recommendations/generate", headers=AUTH).status_code == 500

    def test_create(self, client, store):
        store.save_recommendation.return_value = True

        response = client.post(
            "/api/recommendations",
            headers=AUTH,
            json={"category": "energy", "title": "Unplug chargers", "description": "Standby power adds up."},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["difficulty"] == "medium"
        assert data["source"] == "system"
        assert data["potential_impact"] == 0.0

    def test_create_missing_fields(self, client, store):
        response = client.post("/api/recommendations", headers=AUTH, json={"category": "energy"})

        assert response.status_code == 400
        store.save_recommendation.assert_not_called()

    def test_list(self, client, store):
        store.list_recommendations.return_value = [
            Recommendation(owner_id=USER_ID, category="general", title="Track", description="Keep going"),
        ]

        response = client.get("/api/recommendations", headers=AUTH)

        assert response.status_code == 200
        assert response.json()[0]["implementation_status"] == "not-started"

    def test_update_status(self, client, store):
        store.update_recommendation.return_value = Recommendation(
            id="rec1", owner_id=USER_ID, category="general", title="Track", description="Keep going",
            implementation_status="completed",
        )

        response = client.put("/api/recommendations/rec1", headers=AUTH, json={"implementation_status": "completed"})

        assert response.status_code == 200
        assert response.json()["is_implemented"] is True

    def test_update_invalid_status(self, client):
        response = client.put("/api/recommendations/rec1", headers=AUTH, json={"implementation_status": "done"})
        assert response.status_code == 400

    def test_delete_not_found(self, client, store):
        store.delete_recommendation.side_effect = RecordNotFoundError("Recommendation not found")

        assert client.delete("/api/recommendations/nope", headers=AUTH).status_code == 404


class TestProfileEndpoints:
    """Tests for /api/users/me."""

    def test_get_profile_hides_key_hash(self, client, auth):
        auth.get_user.return_value = User(email="a@example.com", name="Ada", api_key_hash=USER_ID)

        response = client.get("/api/users/me", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["name"] == "Ada"
        assert "api_key_hash" not in response.json()

    def test_update_profile(self, client, auth):
        auth.update_profile.return_value = User(email="a@example.com", api_key_hash=USER_ID, carbon_goal=250)

        response = client.put("/api/users/me", headers=AUTH, json={"carbon_goal": 250})

        assert response.status_code == 200
        assert response.json()["carbon_goal"] == 250
        assert auth.update_profile.call_args.args[1].carbon_goal == 250

    def test_profile_missing_user(self, client, auth):
        auth.get_user.return_value = None
        assert client.get("/api/users/me", headers=AUTH).status_code == 404


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_preflight_allowed_origin(self, client):
        response = client.options(
            "/api/footprints",
            headers={
                "Origin": "https://carbonlogr.app",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization",
            },
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "https://carbonlogr.app"

    def test_cors_preflight_localhost(self, client):
        response = client.options(
            "/auth/register",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
        )
        assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"
