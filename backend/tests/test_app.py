"""Tests for the FastAPI application: error envelope and health check."""

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from skill_challenges.core.errors import (
    AggregationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from skill_challenges.core.settings import Settings
from skill_challenges.main import create_app


class Item(BaseModel):
    quantity: int


@pytest.fixture
def app(fake_db, fake_redis):
    """App wired with in-memory fakes; the lifespan is not run."""
    app = create_app(Settings(environment="test", cache_enabled=True))
    app.state.db = fake_db
    app.state.redis = fake_redis

    errors = {
        "invalid": InvalidInputError("Invalid challengeId format"),
        "missing": NotFoundError("Challenge does not exist"),
        "conflict": ConflictError("You have already joined the challenge."),
        "aggregation": AggregationError("Error retrieving the statistics."),
    }

    @app.get("/raise/{kind}")
    async def raise_error(kind: str):
        if kind in errors:
            raise errors[kind]
        raise RuntimeError("unexpected")

    @app.post("/items")
    async def create_item(item: Item):
        return item

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    """Test the translation of errors into HTTP responses."""

    @pytest.mark.parametrize(
        "kind,status,code",
        [
            ("invalid", 400, "INVALID_INPUT"),
            ("missing", 404, "NOT_FOUND"),
            ("conflict", 409, "CONFLICT"),
            ("aggregation", 500, "AGGREGATION_FAILURE"),
        ],
    )
    def test_service_errors(self, client, kind, status, code):
        """Test that each error kind maps to its status and code."""
        response = client.get(f"/raise/{kind}")

        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == code

    def test_unexpected_error(self, client):
        """Test that unhandled errors give a generic 500."""
        response = client.get("/raise/other")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"

    def test_request_validation_error(self, client):
        """Test the 422 envelope with field details."""
        response = client.post("/items", json={"quantity": "many"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "body -> quantity"

    def test_unknown_route(self, client):
        """Test the envelope for plain HTTP errors."""
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "HTTP_404"


class TestHealth:
    """Test the health endpoint."""

    def test_health_ok(self, client):
        """Test a healthy deployment."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"] == {"database": "ok", "redis": "ok"}
        assert body["version"] == "1.0.0"

    def test_health_cache_disabled(self, app, client):
        """Test that a disabled cache is not an error."""
        app.state.redis = None

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["redis"] == "disabled"

    def test_health_degraded(self, fake_db, client):
        """Test that a failing dependency gives 503."""
        fake_db.ping_error = ConnectionError("mongo down")

        response = client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"].startswith("error")
